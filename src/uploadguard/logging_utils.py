#  Copyright (c) 2025 Tom Villani, Ph.D.
"""Logging setup for the uploadguard command line.

Library modules only emit records through their module loggers. The CLI
calls :func:`configure_logging` once to attach handlers to the root logger.

Records produced here routinely quote filenames and archive entry names
chosen by an attacker, so every handler renders messages through
:class:`EscapingFormatter`: one record is always one printable ASCII line,
whether it goes to the console or to ``--log-file``.
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Mapping
from typing import Optional

from uploadguard.constants import LOG_LEVEL_ENV_VAR
from uploadguard.exceptions import ConfigurationError
from uploadguard.utils.escape import escape_for_log

DEFAULT_LOG_LEVEL = "WARNING"

PLAIN_FORMAT = "%(levelname)s: %(message)s"
TRACE_FORMAT = "[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s"
TRACE_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class EscapingFormatter(logging.Formatter):
    """Formatter that escapes the rendered message of every record.

    Messages from the validator are already escaped, but third-party code or
    a careless ``%s`` argument can still put raw newlines or terminal escape
    sequences into a record. Any message that is not printable ASCII is
    passed through :func:`escape_for_log`; messages that already are stay
    untouched, so escaped text is never escaped twice. Tracebacks are
    appended unescaped.

    Examples
    --------
    >>> formatter = EscapingFormatter("%(message)s")
    >>> record = logging.makeLogRecord({"msg": "bad\\nINFO: forged"})
    >>> formatter.format(record)
    'bad\\\\nINFO: forged'

    """

    def formatMessage(self, record: logging.LogRecord) -> str:  # noqa: N802
        if not (record.message.isascii() and record.message.isprintable()):
            record.message = escape_for_log(record.message)
        return super().formatMessage(record)


def resolve_log_level(log_level: int | str | None = None, environ: Mapping[str, str] | None = None) -> int:
    """Turn a level name, number, or the environment default into a logging level.

    Parameters
    ----------
    log_level : int, str or None
        Explicit level; ``None`` reads ``UPLOADGUARD_LOG_LEVEL`` and falls
        back to ``WARNING``
    environ : Mapping[str, str], optional
        Environment to read from (default: ``os.environ``)

    Returns
    -------
    int
        Numeric logging level

    Raises
    ------
    ConfigurationError
        If the level name is not a standard logging level

    """
    if isinstance(log_level, int):
        return log_level

    source = "--log-level"
    if log_level is None:
        environ = os.environ if environ is None else environ
        log_level = environ.get(LOG_LEVEL_ENV_VAR) or DEFAULT_LOG_LEVEL
        source = LOG_LEVEL_ENV_VAR

    level = logging.getLevelName(log_level.strip().upper())
    if not isinstance(level, int):
        raise ConfigurationError(
            f"Invalid log level for {source}: {escape_for_log(log_level)}",
            parameter_name=source,
            parameter_value=log_level,
        )
    return level


def configure_logging(
    log_level: int | str | None = None,
    log_file: Optional[str] = None,
    trace_mode: bool = False,
) -> logging.Logger:
    """Attach escaping console and optional file handlers to the root logger.

    Parameters
    ----------
    log_level : int, str or None
        Level name or number; ``None`` uses ``UPLOADGUARD_LOG_LEVEL``
        (default: WARNING)
    log_file : str, optional
        Also append records to this file
    trace_mode : bool, default False
        Include timestamps and logger names in every record

    Returns
    -------
    logging.Logger
        The configured root logger

    Raises
    ------
    ConfigurationError
        If the log level is invalid

    """
    resolved_level = resolve_log_level(log_level)

    if trace_mode:
        formatter = EscapingFormatter(TRACE_FORMAT, datefmt=TRACE_DATE_FORMAT)
    else:
        formatter = EscapingFormatter(PLAIN_FORMAT)

    root_logger = logging.getLogger()
    root_logger.setLevel(resolved_level)
    root_logger.handlers.clear()

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        try:
            handlers.append(logging.FileHandler(log_file, mode="a", encoding="utf-8"))
        except OSError as exc:
            root_logger.warning(f"Could not create log file {escape_for_log(log_file)}: {exc}")

    for handler in handlers:
        handler.setLevel(resolved_level)
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    if log_file and len(handlers) > 1:
        root_logger.info(f"Logging to file: {escape_for_log(log_file)}")

    return root_logger
