#  Copyright (c) 2025 Tom Villani, Ph.D.
"""Byte-level enforcement while an entry is being extracted.

:func:`guard_stream` wraps whatever iterator the caller uses to read an entry
and checks the real number of bytes produced after every chunk. It is the
defense that holds when an archive lies about its declared sizes.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator

from uploadguard.archive.session import ExtractionSession
from uploadguard.archive.validator import ArchiveEntryValidator

logger = logging.getLogger(__name__)


def guard_stream(
    chunks: Iterable[bytes],
    entry_name: str,
    session: ExtractionSession,
    validator: ArchiveEntryValidator,
) -> Iterator[bytes]:
    """Yield ``chunks`` unchanged while enforcing per-entry and per-archive byte limits.

    Each chunk is counted and checked before it is handed to the caller, so
    no byte beyond a limit is ever written.

    Parameters
    ----------
    chunks : Iterable[bytes]
        Decompressed data of one entry, in order
    entry_name : str
        Name of the entry, used in error messages
    session : ExtractionSession
        Session whose cumulative byte total is updated
    validator : ArchiveEntryValidator
        The validator that ran the pre-write checks for this entry, so the
        streamed bytes are bounded by the same limits

    Yields
    ------
    bytes
        The caller's chunks, unmodified

    Raises
    ------
    SecurityValidationError
        As soon as the entry or the archive exceeds its size limit
    SessionClosedError
        If ``session`` is already closed

    Examples
    --------
    >>> import zipfile
    >>> validator = ArchiveEntryValidator()
    >>> with zipfile.ZipFile("upload.zip") as archive, validator.new_session() as session:  # doctest: +SKIP
    ...     with archive.open("data.csv") as source, open("out/data.csv", "wb") as target:
    ...         for chunk in guard_stream(iter(lambda: source.read(65536), b""), "data.csv", session, validator):
    ...             target.write(chunk)

    """
    entry_bytes = 0

    for chunk in chunks:
        entry_bytes += len(chunk)
        total_bytes = session.add_bytes(len(chunk))

        validator.validate_actual_extracted_size(entry_bytes, entry_name)
        validator.validate_total_decompressed_size(total_bytes)

        yield chunk

    logger.debug(f"Streamed {entry_bytes} bytes for entry (archive total: {session.cumulative_decompressed_bytes})")
