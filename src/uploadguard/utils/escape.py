#  Copyright (c) 2025 Tom Villani, Ph.D.
#
# src/uploadguard/utils/escape.py
"""Escaping utilities for attacker-controlled text.

Filenames and archive entry names come from untrusted sources. Before any of
them is embedded in an exception message or a log record, it is rendered
through :func:`escape_for_log` so that newlines, terminal escape sequences and
bidirectional overrides cannot forge log lines or disguise the real value.

"""

from __future__ import annotations

TRUNCATION_MARKER = "..."


def escape_for_log(value: object, max_length: int | None = None) -> str:
    r"""Render a value as a single printable ASCII line.

    Backslashes, control characters and non-ASCII characters are replaced by
    their Python escape sequences. The escaping is applied after truncation,
    so ``max_length`` bounds the number of source characters shown.

    Parameters
    ----------
    value : object
        Value to render; ``None`` renders as ``'None'``
    max_length : int, optional
        Maximum number of source characters to keep before escaping

    Returns
    -------
    str
        Escaped text containing only printable ASCII characters

    Examples
    --------
        >>> escape_for_log("evil.txt\nINFO: forged")
        'evil.txt\\nINFO: forged'
        >>> escape_for_log("café")
        'caf\\xe9'
        >>> escape_for_log("a" * 10, max_length=4)
        'aaaa...'

    """
    text = str(value)

    truncated = max_length is not None and len(text) > max_length
    if truncated:
        text = text[:max_length]

    escaped = text.encode("unicode_escape").decode("ascii")

    return escaped + TRUNCATION_MARKER if truncated else escaped
