#  Copyright (c) 2025 Tom Villani, Ph.D.
"""Security checks for archive entries.

This module provides :class:`ArchiveEntryValidator`, a set of independent
checks that an extraction routine calls at fixed points while it walks an
archive. Each check either returns ``None`` or raises
:class:`~uploadguard.exceptions.SecurityValidationError`, at which point the
caller must abort the extraction and remove anything already written.

Call sequence per archive
-------------------------
1. ``validate_entry_count`` once the archive listing is known.
2. For every entry, before any byte is written: ``validate_entry_name``,
   ``validate_entry_size`` and ``validate_duplicate_entry`` (or
   ``validate_entry``, which runs all of them).
3. While streaming the entry: ``validate_actual_extracted_size`` after every
   chunk (see :func:`uploadguard.archive.streaming.guard_stream`).
4. ``validate_total_decompressed_size`` with the session's running total.

The streaming checks are the authoritative defense against zip bombs: the
declared sizes checked in step 2 come from the archive and may lie.
"""

from __future__ import annotations

import logging
import os
import string
from pathlib import PurePath
from typing import Any, NoReturn

from uploadguard.archive.metadata import ArchiveEntryMetadata, entry_metadata
from uploadguard.archive.session import ExtractionSession
from uploadguard.config import DEFAULT_LIMITS, ValidationLimits
from uploadguard.constants import (
    ALLOWED_ENTRY_NAME_CONTROL_CHARS,
    ENCODED_TRAVERSAL_SEQUENCES,
    ENTRY_NAME_PREVIEW_LENGTH,
    SYMLINK_ENTRY_MARKER,
)
from uploadguard.exceptions import SecurityValidationError
from uploadguard.filenames import FilenameSanitizer, sanitize_entry_name
from uploadguard.utils.escape import escape_for_log

logger = logging.getLogger(__name__)


def _is_control_char(char: str) -> bool:
    """Return True for C0 and C1 control characters (U+0000-U+001F, U+007F-U+009F)."""
    code = ord(char)
    return code <= 0x1F or 0x7F <= code <= 0x9F


class ArchiveEntryValidator:
    """Stateless security checks for archive entries.

    The validator holds only its limits, so one instance can serve any
    number of concurrent extractions. Per-archive state lives in the
    :class:`ExtractionSession` each caller passes in.

    Parameters
    ----------
    limits : ValidationLimits, optional
        Limits to enforce (default: :data:`DEFAULT_LIMITS`)

    Examples
    --------
    >>> validator = ArchiveEntryValidator()
    >>> validator.validate_entry_name("a/b/c.txt")
    >>> validator.validate_entry_name("../evil")  # doctest: +SKIP
    SecurityValidationError: Archive entry contains path traversal sequence: ../evil

    """

    def __init__(self, limits: ValidationLimits | None = None):
        self.limits = limits or DEFAULT_LIMITS
        self._sanitizer = FilenameSanitizer(self.limits)

    def new_session(self, target_dir: str | os.PathLike[str] | None = None) -> ExtractionSession:
        """Create a fresh session for one archive extraction."""
        return ExtractionSession(target_dir=target_dir)

    def validate_entry_count(self, count: int) -> None:
        """Reject archives with more entries than ``max_entry_count``."""
        limit = self.limits.max_entry_count
        if count > limit:
            self._fail(
                f"Archive contains too many entries (limit: {limit}, found: {count}). Possible zip bomb attack.",
                limit=limit,
                actual=count,
            )

    def validate_entry_name(self, entry_name: str) -> None:
        """Reject entry names that could escape the target directory or corrupt logs.

        Parameters
        ----------
        entry_name : str
            Entry name as stored in the archive

        Raises
        ------
        SecurityValidationError
            If the name is blank, too long, contains NUL or control
            characters, is absolute, traverses upwards (plainly or
            percent-encoded), or looks like a symbolic link entry

        """
        if not entry_name or not entry_name.strip():
            self._fail("Archive entry name cannot be empty", entry_name=entry_name)

        limit = self.limits.max_entry_name_length
        if len(entry_name) > limit:
            self._fail(
                f"Archive entry name too long (limit: {limit}): "
                f"{escape_for_log(entry_name, ENTRY_NAME_PREVIEW_LENGTH)}",
                entry_name=entry_name,
                limit=limit,
                actual=len(entry_name),
            )

        self._validate_safe_characters(entry_name)

        normalized = self._normalize_entry_path(entry_name)

        self._validate_not_absolute(entry_name)
        self._validate_no_traversal(entry_name, normalized)

        if SYMLINK_ENTRY_MARKER in entry_name:
            self._fail(
                f"Archive entry appears to be a symbolic link: {escape_for_log(entry_name)}",
                entry_name=entry_name,
            )

    def validate_entry_size(self, entry: ArchiveEntryMetadata | Any) -> None:
        """Check the sizes an entry declares before extracting it.

        This is an early-reject fast path only. The declared size can be
        forged, so the streamed size must still be checked with
        :meth:`validate_actual_extracted_size`.

        Parameters
        ----------
        entry : ArchiveEntryMetadata or archive library entry
            Entry to check; library entries go through :func:`entry_metadata`

        Raises
        ------
        SecurityValidationError
            If the declared size is unknown (negative), above
            ``max_entry_size``, or implies a compression ratio above
            ``max_compression_ratio``

        """
        metadata = entry_metadata(entry)
        name = metadata.name
        declared = metadata.declared_size

        if declared < 0:
            self._fail(
                f"Archive entry has unknown size and cannot be bounded: {escape_for_log(name)}",
                entry_name=name,
                actual=declared,
            )

        limit = self.limits.max_entry_size
        if declared > limit:
            self._fail(
                f"Archive entry declares size too large (limit: {limit} bytes, declared: {declared} bytes): "
                f"{escape_for_log(name)}",
                entry_name=name,
                limit=limit,
                actual=declared,
            )

        self._validate_compression_ratio(declared, metadata.compressed_size, name)

    def validate_not_link(self, entry: ArchiveEntryMetadata | Any) -> None:
        """Reject symbolic and hard link entries."""
        metadata = entry_metadata(entry)
        if metadata.is_link:
            self._fail(
                f"Symbolic link entries are not allowed: {escape_for_log(metadata.name)}",
                entry_name=metadata.name,
            )

    def validate(self, entry: ArchiveEntryMetadata | Any) -> None:
        """Run the stateless per-entry checks: name, declared size and link type."""
        metadata = entry_metadata(entry)
        self.validate_entry_name(metadata.name)
        self.validate_entry_size(metadata)
        self.validate_not_link(metadata)

    def validate_duplicate_entry(self, entry_name: str, session: ExtractionSession) -> None:
        """Reject a name already extracted in this session, otherwise record it.

        Raises
        ------
        SecurityValidationError
            If ``entry_name`` was already seen in ``session``

        """
        if entry_name in session.seen_names:
            self._fail(f"Duplicate archive entry detected: {escape_for_log(entry_name)}", entry_name=entry_name)
        session.mark_seen(entry_name)

    def validate_path_traversal(self, entry_path: str | os.PathLike[str], target_dir: str | os.PathLike[str]) -> None:
        """Ensure ``entry_path`` stays inside ``target_dir`` once both are normalized.

        The comparison is component-wise, so ``/tmp/out-sibling`` is not
        considered inside ``/tmp/out``. No filesystem access is performed.

        Raises
        ------
        SecurityValidationError
            If the normalized entry path is outside the normalized target

        """
        normalized_entry = PurePath(os.path.normpath(entry_path))
        normalized_target = PurePath(os.path.normpath(target_dir))

        if normalized_entry != normalized_target and not normalized_entry.is_relative_to(normalized_target):
            self._fail(
                f"Path traversal attempt detected. Entry would extract outside target directory: "
                f"{escape_for_log(normalized_entry)}",
                entry_name=str(entry_path),
            )

    def validate_actual_extracted_size(self, extracted_size: int, entry_name: str) -> None:
        """Check the number of bytes actually streamed out of one entry.

        Call this after every chunk copied out of the entry. It is the
        authoritative per-entry bound and ignores whatever the archive
        declared.

        Raises
        ------
        SecurityValidationError
            As soon as ``extracted_size`` exceeds ``max_entry_size``

        """
        limit = self.limits.max_entry_size
        if extracted_size > limit:
            self._fail(
                f"Entry size exceeded during extraction: {escape_for_log(entry_name)} "
                f"(limit: {limit} bytes, actual: {extracted_size} bytes)",
                entry_name=entry_name,
                limit=limit,
                actual=extracted_size,
            )

    def validate_total_decompressed_size(self, total_size: int) -> None:
        """Reject an archive whose streamed bytes exceed ``max_total_decompressed_size``."""
        limit = self.limits.max_total_decompressed_size
        if total_size > limit:
            self._fail(
                f"Total decompressed size exceeds limit (limit: {limit} bytes, actual: {total_size} bytes). "
                f"Possible zip bomb attack.",
                limit=limit,
                actual=total_size,
            )

    def validate_entry(self, entry: ArchiveEntryMetadata | Any, session: ExtractionSession) -> str:
        """Run every check due before an entry's first byte is written.

        Counts the entry on ``session``, re-checks the entry count, validates
        name, declared size and link type, confines the sanitized path to
        the session's target directory when it has one, and rejects
        duplicates.

        Parameters
        ----------
        entry : ArchiveEntryMetadata or archive library entry
            Entry about to be extracted
        session : ExtractionSession
            State of the current extraction

        Returns
        -------
        str
            Sanitized relative path to extract the entry to

        Raises
        ------
        SecurityValidationError
            If any check fails

        """
        metadata = entry_metadata(entry)

        self.validate_entry_count(session.record_entry())
        self.validate(metadata)

        safe_name = sanitize_entry_name(metadata.name, self._sanitizer)
        if session.target_dir is not None:
            self.validate_path_traversal(session.resolve_entry_path(safe_name), session.target_dir)
        self.validate_duplicate_entry(safe_name, session)

        return safe_name

    def _validate_safe_characters(self, entry_name: str) -> None:
        if "\x00" in entry_name:
            self._fail(f"Archive entry name contains null byte: {escape_for_log(entry_name)}", entry_name=entry_name)

        for char in entry_name:
            if _is_control_char(char) and char not in ALLOWED_ENTRY_NAME_CONTROL_CHARS:
                self._fail(
                    f"Archive entry name contains control character: {escape_for_log(entry_name)}",
                    entry_name=entry_name,
                )

    def _normalize_entry_path(self, entry_name: str) -> str:
        """Rebuild the entry path from its meaningful components, refusing any ``..``."""
        components = []
        for component in entry_name.replace("\\", "/").split("/"):
            if component in ("", "."):
                continue
            if component == "..":
                self._fail(
                    f"Archive entry contains path traversal sequence: {escape_for_log(entry_name)}",
                    entry_name=entry_name,
                )
            components.append(component)
        return "/".join(components)

    def _validate_not_absolute(self, entry_name: str) -> None:
        is_drive_path = len(entry_name) >= 2 and entry_name[1] == ":" and entry_name[0] in string.ascii_letters
        if entry_name.startswith("/") or is_drive_path:
            self._fail(f"Archive entry uses absolute path: {escape_for_log(entry_name)}", entry_name=entry_name)

    def _validate_no_traversal(self, entry_name: str, normalized: str) -> None:
        if ".." in normalized:
            self._fail(
                f"Archive entry contains path traversal sequence after normalization: {escape_for_log(normalized)}",
                entry_name=entry_name,
            )

        lowered = normalized.lower()
        if any(sequence in lowered for sequence in ENCODED_TRAVERSAL_SEQUENCES):
            self._fail(
                f"Archive entry contains encoded path traversal: {escape_for_log(normalized)}",
                entry_name=entry_name,
            )

    def _validate_compression_ratio(self, declared_size: int, compressed_size: int, entry_name: str) -> None:
        if compressed_size <= 0 or declared_size <= 0:
            return

        if compressed_size < self.limits.ratio_check_min_compressed_size:
            return

        ratio = declared_size // compressed_size
        limit = self.limits.max_compression_ratio
        if ratio > limit:
            self._fail(
                f"Archive entry has suspicious compression ratio ({ratio}:1, limit: {limit}:1, "
                f"declared: {declared_size} bytes, compressed: {compressed_size} bytes): "
                f"{escape_for_log(entry_name)}. Possible zip bomb attack.",
                entry_name=entry_name,
                limit=limit,
                actual=ratio,
            )

    def _fail(
        self,
        message: str,
        entry_name: str | None = None,
        limit: int | None = None,
        actual: int | None = None,
    ) -> NoReturn:
        logger.warning(message)
        raise SecurityValidationError(message, entry_name=entry_name, limit=limit, actual=actual)
