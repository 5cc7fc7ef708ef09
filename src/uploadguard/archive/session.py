#  Copyright (c) 2025 Tom Villani, Ph.D.
"""Per-archive extraction state.

An :class:`ExtractionSession` carries the running totals for one archive
extraction: how many entries were seen, which names were already extracted,
and how many decompressed bytes were streamed. The validator itself is
stateless; the caller creates one session per archive, passes it to the
aggregate checks, and discards it when extraction ends.

Sessions are not thread-safe and must never be shared between extractions.
Using a session as a context manager closes it on exit, after which any
mutation raises :class:`~uploadguard.exceptions.SessionClosedError`.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import PurePath
from types import TracebackType

from uploadguard.exceptions import SessionClosedError


@dataclass
class ExtractionSession:
    """Mutable counters for a single archive extraction.

    Attributes
    ----------
    entry_count : int
        Number of entries processed so far
    seen_names : set[str]
        Entry names already accepted for extraction
    cumulative_decompressed_bytes : int
        Bytes actually streamed out of the archive so far
    target_dir : str or os.PathLike, optional
        Directory the archive is extracted into
    closed : bool
        True once the extraction has ended

    """

    entry_count: int = 0
    seen_names: set[str] = field(default_factory=set)
    cumulative_decompressed_bytes: int = 0
    target_dir: str | os.PathLike[str] | None = None
    closed: bool = False

    def __enter__(self) -> ExtractionSession:
        self._ensure_open()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    def close(self) -> None:
        """End the session; counters stay readable but can no longer change."""
        self.closed = True

    def record_entry(self) -> int:
        """Count one more entry and return the new entry count."""
        self._ensure_open()
        self.entry_count += 1
        return self.entry_count

    def mark_seen(self, name: str) -> None:
        """Remember ``name`` as extracted."""
        self._ensure_open()
        self.seen_names.add(name)

    def add_bytes(self, count: int) -> int:
        """Add streamed bytes to the running total and return the new total.

        Raises
        ------
        ValueError
            If ``count`` is negative; the total never decreases

        """
        self._ensure_open()
        if count < 0:
            raise ValueError(f"Byte count must not be negative, got {count}")
        self.cumulative_decompressed_bytes += count
        return self.cumulative_decompressed_bytes

    def resolve_entry_path(self, entry_name: str) -> PurePath:
        """Join a sanitized entry name onto ``target_dir`` and normalize the result.

        Raises
        ------
        ValueError
            If the session has no target directory

        """
        if self.target_dir is None:
            raise ValueError("Extraction session has no target directory")
        return PurePath(os.path.normpath(os.path.join(self.target_dir, entry_name)))

    def _ensure_open(self) -> None:
        if self.closed:
            raise SessionClosedError()
