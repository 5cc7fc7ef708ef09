#  Copyright (c) 2025 Tom Villani, Ph.D.
"""Archive entry metadata adapter.

Archive libraries expose the same few facts about an entry under different
names. :func:`entry_metadata` maps them onto :class:`ArchiveEntryMetadata` so
the validator never depends on a particular library's entry type.

Every value here comes from the archive itself and is attacker-controlled.
Declared sizes are only used for early rejection; the streamed byte count is
what actually bounds extraction.
"""

from __future__ import annotations

import tarfile
import zipfile
from dataclasses import dataclass
from typing import Any

from uploadguard.constants import UNIX_FILE_TYPE_MASK, UNIX_SYMLINK_TYPE
from uploadguard.exceptions import UnsupportedEntryTypeError


@dataclass(frozen=True)
class ArchiveEntryMetadata:
    """Untrusted metadata describing one archive entry.

    Attributes
    ----------
    name : str
        Entry name as stored in the archive
    declared_size : int
        Declared uncompressed size in bytes; negative when unknown
    compressed_size : int
        Compressed size in bytes; 0 when the format does not record it
    is_dir : bool
        Whether the entry is a directory
    is_link : bool
        Whether the entry is a symbolic or hard link

    """

    name: str
    declared_size: int
    compressed_size: int
    is_dir: bool = False
    is_link: bool = False


def is_symlink_mode(unix_mode: int) -> bool:
    """Return True if Unix mode bits describe a symbolic link (0 means no mode recorded)."""
    if unix_mode == 0:
        return False
    return unix_mode & UNIX_FILE_TYPE_MASK == UNIX_SYMLINK_TYPE


def _from_zip_info(info: zipfile.ZipInfo) -> ArchiveEntryMetadata:
    unix_mode = (info.external_attr >> 16) & 0xFFFF
    return ArchiveEntryMetadata(
        name=info.filename,
        declared_size=info.file_size,
        compressed_size=info.compress_size,
        is_dir=info.is_dir(),
        is_link=is_symlink_mode(unix_mode),
    )


def _from_tar_info(info: tarfile.TarInfo) -> ArchiveEntryMetadata:
    # Tar members carry no per-member compressed size
    return ArchiveEntryMetadata(
        name=info.name,
        declared_size=info.size,
        compressed_size=0,
        is_dir=info.isdir(),
        is_link=info.issym() or info.islnk(),
    )


def _from_duck_typed(entry: Any) -> ArchiveEntryMetadata | None:
    name = getattr(entry, "filename", None)
    if not isinstance(name, str):
        return None

    # rarfile.RarInfo mirrors zipfile.ZipInfo
    if hasattr(entry, "file_size") and hasattr(entry, "compress_size"):
        declared, compressed = entry.file_size, entry.compress_size
        is_dir = bool(entry.is_dir()) if callable(getattr(entry, "is_dir", None)) else name.endswith("/")
        is_link = bool(entry.is_symlink()) if callable(getattr(entry, "is_symlink", None)) else False
    # py7zr.FileInfo
    elif hasattr(entry, "uncompressed") and hasattr(entry, "compressed"):
        declared, compressed = entry.uncompressed, entry.compressed
        is_dir = bool(getattr(entry, "is_directory", False))
        is_link = bool(getattr(entry, "is_symlink", False))
    else:
        return None

    return ArchiveEntryMetadata(
        name=name,
        declared_size=-1 if declared is None else int(declared),
        compressed_size=0 if compressed is None else int(compressed),
        is_dir=is_dir,
        is_link=is_link,
    )


def entry_metadata(entry: Any) -> ArchiveEntryMetadata:
    """Extract :class:`ArchiveEntryMetadata` from an archive library's entry object.

    Parameters
    ----------
    entry : Any
        A ``zipfile.ZipInfo``, ``tarfile.TarInfo``, an existing
        ``ArchiveEntryMetadata``, or an object exposing ``filename`` with
        either ``file_size``/``compress_size`` (rarfile) or
        ``uncompressed``/``compressed`` (py7zr)

    Returns
    -------
    ArchiveEntryMetadata
        Library-independent entry metadata

    Raises
    ------
    UnsupportedEntryTypeError
        If the entry type is not recognized

    Examples
    --------
    >>> import zipfile
    >>> info = zipfile.ZipInfo("docs/readme.txt")
    >>> info.file_size, info.compress_size = 2048, 512
    >>> entry_metadata(info)
    ArchiveEntryMetadata(name='docs/readme.txt', declared_size=2048, compressed_size=512, is_dir=False, is_link=False)

    """
    if isinstance(entry, ArchiveEntryMetadata):
        return entry
    if isinstance(entry, zipfile.ZipInfo):
        return _from_zip_info(entry)
    if isinstance(entry, tarfile.TarInfo):
        return _from_tar_info(entry)

    metadata = _from_duck_typed(entry)
    if metadata is None:
        raise UnsupportedEntryTypeError(type(entry))
    return metadata
