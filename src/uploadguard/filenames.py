#  Copyright (c) 2025 Tom Villani, Ph.D.
#
# src/uploadguard/filenames.py
"""Filename sanitization for untrusted uploads.

This module turns filenames supplied by HTTP clients or remote storage into
names that are safe to write to disk, list, or use as a storage key. The
sanitizer never raises: any input that cannot be salvaged becomes the fixed
fallback name ``upload.tmp``.

Sanitization steps
------------------
1. Blank input returns the fallback immediately.
2. Inputs that look like genuine file paths keep only their basename; inputs
   that look crafted (shell metacharacters, traversal surviving
   normalization, unparseable, too long) have ``..`` and every separator
   removed instead.
3. Hidden names lose their leading dots (``.htaccess`` -> ``_htaccess``,
   ``.mp4`` -> ``_.mp4``).
4. Characters outside ``[a-zA-Z0-9._-]`` become ``_``, dot runs collapse,
   and the result is truncated to the length limit, preserving a short
   extension.

Functions
---------
- sanitize_filename: Sanitize one filename with the default sanitizer
- sanitize_entry_name: Sanitize every component of an archive entry path
- ensure_archive_extension: Make sure an archive name ends with its extension
"""

from __future__ import annotations

import logging
import posixpath
import re

from uploadguard.config import DEFAULT_LIMITS, ValidationLimits
from uploadguard.constants import (
    BARE_EXTENSION_PATTERN,
    DEFAULT_ARCHIVE_EXTENSION,
    DEFAULT_ARCHIVE_NAME,
    DEFAULT_FALLBACK_FILENAME,
    MAX_PATH_LENGTH,
    SHELL_METACHARACTERS,
    UNSAFE_FILENAME_CHAR_PATTERN,
)
from uploadguard.utils.escape import escape_for_log

logger = logging.getLogger(__name__)

_SEPARATOR_PATTERN = re.compile(r"[/\\]")
_UNSAFE_CHAR_RE = re.compile(UNSAFE_FILENAME_CHAR_PATTERN)
_BARE_EXTENSION_RE = re.compile(BARE_EXTENSION_PATTERN)


class FilenameSanitizer:
    """Callable that converts an untrusted filename into a safe one.

    Instances hold no mutable state and may be shared between threads.

    Parameters
    ----------
    limits : ValidationLimits, optional
        Length limits to enforce (default: :data:`DEFAULT_LIMITS`)
    fallback : str, default "upload.tmp"
        Name returned when the input cannot be salvaged

    Examples
    --------
    >>> sanitizer = FilenameSanitizer()
    >>> sanitizer("report.pdf")
    'report.pdf'
    >>> sanitizer("C:\\\\Users\\\\admin\\\\doc.txt")
    'doc.txt'
    >>> sanitizer("file;rm -rf /.jpg")
    'file_rm_-rf_.jpg'
    >>> sanitizer(".htaccess")
    '_htaccess'

    """

    def __init__(self, limits: ValidationLimits | None = None, fallback: str = DEFAULT_FALLBACK_FILENAME):
        self.limits = limits or DEFAULT_LIMITS
        self.fallback = fallback

    def __call__(self, filename: str | None) -> str:
        """Sanitize ``filename``; see :meth:`sanitize`."""
        return self.sanitize(filename)

    def sanitize(self, filename: str | None) -> str:
        """Return a safe version of ``filename``.

        Parameters
        ----------
        filename : str or None
            Untrusted filename, possibly a full path

        Returns
        -------
        str
            Non-empty name of at most ``max_filename_length`` characters drawn
            from ``[a-zA-Z0-9._-]``, never containing ``..``

        """
        if not filename or not filename.strip():
            logger.warning(f"Filename is empty or blank, using default: {self.fallback}")
            return self.fallback

        if self._is_legitimate_file_path(filename):
            sanitized = _SEPARATOR_PATTERN.split(filename)[-1]
            if not sanitized.strip():
                return self._fallback_for(filename)
        else:
            sanitized = filename.replace("..", "")
            sanitized = _SEPARATOR_PATTERN.sub("", sanitized)

        normalized = _normalize(sanitized)
        if normalized is not None:
            sanitized = normalized

        sanitized = _neutralize_hidden_file(sanitized)
        sanitized = _UNSAFE_CHAR_RE.sub("_", sanitized)
        sanitized = _collapse_dots(sanitized)
        sanitized = self._enforce_max_length(sanitized)

        if _is_invalid_result(sanitized):
            return self._fallback_for(filename)

        if sanitized != filename:
            logger.debug(
                f"Filename sanitized: original={escape_for_log(filename, 200)}, sanitized={sanitized}"
            )
        return sanitized

    def _is_legitimate_file_path(self, filename: str) -> bool:
        """Tell a genuine path (``/home/user/a.pdf``) from a crafted pattern (``..\\..\\cmd.exe``).

        Paths are parsed with POSIX semantics on every platform, so a Windows
        path is a single segment whose basename is recovered by splitting on
        both separators.
        """
        if len(filename) > MAX_PATH_LENGTH:
            return False

        # A NUL byte makes the string unusable as a path
        if "\x00" in filename:
            return False

        normalized = posixpath.normpath(filename)
        if ".." in normalized:
            return False

        if any(char in SHELL_METACHARACTERS for char in filename):
            return False

        return posixpath.isabs(normalized) or normalized != "."

    def _enforce_max_length(self, filename: str) -> str:
        """Truncate to the length limit, keeping an extension of up to ``max_extension_length``."""
        max_length = self.limits.max_filename_length
        if len(filename) <= max_length:
            return filename

        base, dot, extension = filename.rpartition(".")
        if dot and extension and len(extension) <= self.limits.max_extension_length:
            max_base_length = max_length - len(extension) - 1  # -1 for the dot
            # A cut right after a dot would otherwise leave ".." before the extension
            base = base[:max_base_length].rstrip(".")
            return f"{base}.{extension}"

        return filename[:max_length]

    def _fallback_for(self, original: str) -> str:
        logger.warning(
            f"Filename became invalid after sanitization, using default: {self.fallback} "
            f"(original: {escape_for_log(original, 200)})"
        )
        return self.fallback


def _normalize(filename: str) -> str | None:
    """Normalize a path, returning None when it cannot be normalized safely."""
    if not filename or "\x00" in filename:
        return None

    normalized = posixpath.normpath(filename)
    if normalized == ".." or normalized.startswith("../"):
        return None
    return normalized


def _neutralize_hidden_file(filename: str) -> str:
    if not filename.startswith("."):
        return filename

    without_leading_dots = filename.lstrip(".")
    if not without_leading_dots:
        return "_"

    # ".mp4" keeps its extension shape, ".htaccess" just loses the dot
    if _BARE_EXTENSION_RE.fullmatch(without_leading_dots):
        return f"_.{without_leading_dots}"

    return f"_{without_leading_dots}"


def _collapse_dots(filename: str) -> str:
    while ".." in filename:
        filename = filename.replace("..", ".")
    return filename


def _is_invalid_result(filename: str) -> bool:
    return not filename.strip() or filename in ("_", ".") or all(char == "_" for char in filename)


_default_sanitizer = FilenameSanitizer()


def sanitize_filename(filename: str | None, limits: ValidationLimits | None = None) -> str:
    """Sanitize an untrusted filename.

    Parameters
    ----------
    filename : str or None
        Untrusted filename or path
    limits : ValidationLimits, optional
        Length limits (default: :data:`DEFAULT_LIMITS`)

    Returns
    -------
    str
        Safe filename, or ``upload.tmp`` if nothing usable remains

    Examples
    --------
    >>> sanitize_filename("../../etc/passwd")
    'etcpasswd'
    >>> sanitize_filename("my video file.mp4")
    'my_video_file.mp4'
    >>> sanitize_filename("@#$%^&*()")
    'upload.tmp'

    """
    sanitizer = _default_sanitizer if limits is None else FilenameSanitizer(limits)
    return sanitizer(filename)


def sanitize_entry_name(entry_name: str, sanitizer: FilenameSanitizer | None = None) -> str:
    """Sanitize each component of an archive entry path.

    Separators of either style are accepted and the result always uses
    ``/``. Empty and ``.`` components are dropped.

    Parameters
    ----------
    entry_name : str
        Archive entry name, already accepted by the entry validator
    sanitizer : FilenameSanitizer, optional
        Sanitizer applied to each component

    Returns
    -------
    str
        Relative path whose components are all sanitized filenames

    Examples
    --------
    >>> sanitize_entry_name("docs\\\\my report.pdf")
    'docs/my_report.pdf'

    """
    sanitizer = sanitizer or _default_sanitizer
    components = [part for part in _SEPARATOR_PATTERN.split(entry_name) if part not in ("", ".")]
    if not components:
        return sanitizer.fallback
    return "/".join(sanitizer(part) for part in components)


def ensure_archive_extension(name: str | None, extension: str = DEFAULT_ARCHIVE_EXTENSION) -> str:
    """Append ``extension`` to ``name`` unless it already ends with it.

    Examples
    --------
    >>> ensure_archive_extension("backup")
    'backup.zip'
    >>> ensure_archive_extension("BACKUP.ZIP")
    'BACKUP.ZIP'
    >>> ensure_archive_extension("  ")
    'archive.zip'

    """
    if not name or not name.strip():
        return DEFAULT_ARCHIVE_NAME + extension

    return name if name.lower().endswith(extension.lower()) else name + extension
