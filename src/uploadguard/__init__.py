#  Copyright (c) 2025 Tom Villani, Ph.D.
"""uploadguard - A safety layer for untrusted uploads and archive entries.

uploadguard neutralizes filenames supplied by HTTP clients or remote storage
and rejects malicious archive content before any of it reaches disk, a
listing, or a storage key.

Key Features
------------
- Filename sanitization that never fails (unsalvageable names become ``upload.tmp``)
- Archive entry name checks against traversal, absolute paths and control characters
- Zip bomb defenses: entry count, declared size, compression ratio, and streamed byte limits
- Per-archive extraction sessions with duplicate detection and target-directory containment
- Limits configurable through ``UPLOADGUARD_*`` environment variables

Requirements
------------
- Python 3.10+

Examples
--------
Sanitizing an uploaded filename:

    >>> from uploadguard import sanitize_filename
    >>> sanitize_filename("../../etc/passwd")
    'etcpasswd'

Checking archive entries before extraction:

    >>> import zipfile
    >>> from uploadguard import ArchiveEntryValidator, guard_stream
    >>> validator = ArchiveEntryValidator()
    >>> with zipfile.ZipFile("upload.zip") as archive:  # doctest: +SKIP
    ...     validator.validate_entry_count(len(archive.infolist()))
    ...     with validator.new_session(target_dir="out") as session:
    ...         for info in archive.infolist():
    ...             safe_name = validator.validate_entry(info, session)
    ...             with archive.open(info) as source:
    ...                 for chunk in guard_stream(iter(lambda: source.read(65536), b""), safe_name, session, validator):
    ...                     ...

"""

__version__ = "1.0.0"

from uploadguard.archive import (
    ArchiveEntryMetadata,
    ArchiveEntryValidator,
    ExtractionSession,
    entry_metadata,
    guard_stream,
)
from uploadguard.config import DEFAULT_LIMITS, ValidationLimits, load_limits_from_env, validate_upload_limits
from uploadguard.exceptions import (
    ConfigurationError,
    SecurityError,
    SecurityValidationError,
    SessionClosedError,
    UnsupportedEntryTypeError,
    UploadGuardError,
)
from uploadguard.filenames import FilenameSanitizer, ensure_archive_extension, sanitize_entry_name, sanitize_filename

__all__ = [
    "__version__",
    "ArchiveEntryMetadata",
    "ArchiveEntryValidator",
    "ConfigurationError",
    "DEFAULT_LIMITS",
    "ExtractionSession",
    "FilenameSanitizer",
    "SecurityError",
    "SecurityValidationError",
    "SessionClosedError",
    "UnsupportedEntryTypeError",
    "UploadGuardError",
    "ValidationLimits",
    "ensure_archive_extension",
    "entry_metadata",
    "guard_stream",
    "load_limits_from_env",
    "sanitize_entry_name",
    "sanitize_filename",
    "validate_upload_limits",
]
