#  Copyright (c) 2025 Tom Villani, Ph.D.
"""Archive entry validation.

Pre-write checks live on :class:`ArchiveEntryValidator`, per-archive state on
:class:`ExtractionSession`, and streamed-byte enforcement in
:func:`guard_stream`.
"""

from uploadguard.archive.metadata import ArchiveEntryMetadata, entry_metadata, is_symlink_mode
from uploadguard.archive.session import ExtractionSession
from uploadguard.archive.streaming import guard_stream
from uploadguard.archive.validator import ArchiveEntryValidator

__all__ = [
    "ArchiveEntryMetadata",
    "ArchiveEntryValidator",
    "ExtractionSession",
    "entry_metadata",
    "guard_stream",
    "is_symlink_mode",
]
