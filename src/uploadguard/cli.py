#  Copyright (c) 2025 Tom Villani, Ph.D.

# src/uploadguard/cli.py
"""Command-line interface for uploadguard.

The CLI exposes the validation layer for manual checks and scripting. It
never extracts anything: ``inspect`` reads an archive's listing and runs the
pre-write checks on every entry.

Environment Variable Support
----------------------------
Limits are read from the ``UPLOADGUARD_*`` variables described in
:mod:`uploadguard.config`. The default log level comes from
``UPLOADGUARD_LOG_LEVEL``; ``--log-level`` always overrides it.

Examples
--------
Sanitize filenames::

    $ uploadguard sanitize "../../etc/passwd" "my video.mp4"
    etcpasswd
    my_video.mp4

Check an uploaded archive before extracting it::

    $ uploadguard inspect upload.zip --target-dir /srv/uploads/123

Show the effective limits::

    $ UPLOADGUARD_MAX_ENTRY_COUNT=500 uploadguard limits --rich

"""

from __future__ import annotations

import argparse
import logging
import sys
import tarfile
import zipfile
from pathlib import Path
from typing import Any

from uploadguard import __version__
from uploadguard.archive.metadata import ArchiveEntryMetadata, entry_metadata
from uploadguard.archive.validator import ArchiveEntryValidator
from uploadguard.config import ValidationLimits, load_limits_from_env
from uploadguard.constants import LIMIT_ENV_VARS, LOG_LEVEL_ENV_VAR
from uploadguard.exceptions import ConfigurationError, SecurityError
from uploadguard.filenames import FilenameSanitizer
from uploadguard.logging_utils import configure_logging
from uploadguard.utils.escape import escape_for_log

logger = logging.getLogger(__name__)

EXIT_SUCCESS = 0
EXIT_ERROR = 1
EXIT_VALIDATION_ERROR = 3
EXIT_FILE_ERROR = 4
EXIT_SECURITY_ERROR = 8

LOG_LEVEL_CHOICES = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def get_exit_code_for_exception(exception: Exception) -> int:
    """Map an exception to an appropriate CLI exit code.

    Parameters
    ----------
    exception : Exception
        The exception to map to an exit code

    Returns
    -------
    int
        The appropriate exit code for the exception type

    """
    if isinstance(exception, SecurityError):
        return EXIT_SECURITY_ERROR

    if isinstance(exception, ConfigurationError):
        return EXIT_VALIDATION_ERROR

    if isinstance(exception, (OSError, zipfile.BadZipFile, tarfile.TarError)):
        return EXIT_FILE_ERROR

    return EXIT_ERROR


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser with one subcommand per operation.

    Returns
    -------
    argparse.ArgumentParser
        Configured parser

    """
    parser = argparse.ArgumentParser(
        prog="uploadguard",
        description="Sanitize untrusted filenames and check archives before extraction.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=LOG_LEVEL_CHOICES,
        default=None,
        help=f"Logging level (default: ${LOG_LEVEL_ENV_VAR} or WARNING)",
    )
    parser.add_argument("--log-file", type=str, help="Also write log output to this file")
    parser.add_argument("--trace", action="store_true", help="Verbose log format with timestamps and logger names")

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")
    subparsers.required = True

    sanitize_parser = subparsers.add_parser("sanitize", help="Print the sanitized form of each filename")
    sanitize_parser.add_argument("names", nargs="+", metavar="NAME", help="Untrusted filename or path")

    inspect_parser = subparsers.add_parser(
        "inspect", help="Run pre-extraction checks on a zip or tar archive without extracting it"
    )
    inspect_parser.add_argument("archive", metavar="ARCHIVE", help="Path to a zip or tar archive")
    inspect_parser.add_argument(
        "--target-dir", type=str, help="Directory the archive would be extracted into (enables containment checks)"
    )
    inspect_parser.add_argument("--rich", action="store_true", help="Use rich terminal output with formatting")

    limits_parser = subparsers.add_parser("limits", help="Show the effective validation limits")
    limits_parser.add_argument("--rich", action="store_true", help="Use rich terminal output with formatting")

    return parser


def _read_archive_listing(path: Path) -> list[ArchiveEntryMetadata]:
    """Read entry metadata from a zip or tar archive without decompressing entry data.

    Raises
    ------
    OSError
        If the file is missing, unreadable, or not a zip or tar archive

    """
    if not path.is_file():
        raise FileNotFoundError(f"Archive not found: {path}")

    if zipfile.is_zipfile(path):
        with zipfile.ZipFile(path) as archive:
            return [entry_metadata(info) for info in archive.infolist()]

    if tarfile.is_tarfile(path):
        with tarfile.open(path, "r:*") as archive:
            return [entry_metadata(member) for member in archive.getmembers()]

    raise OSError(f"Not a zip or tar archive: {path}")


def handle_sanitize_command(args: argparse.Namespace, limits: ValidationLimits) -> int:
    """Print one sanitized filename per input name."""
    sanitizer = FilenameSanitizer(limits)
    for name in args.names:
        print(sanitizer(name))
    return EXIT_SUCCESS


def handle_inspect_command(args: argparse.Namespace, limits: ValidationLimits) -> int:
    """Run every pre-write check on each entry of an archive.

    Stops at the first rejected entry, the way an extraction would.

    Returns
    -------
    int
        ``EXIT_SUCCESS`` if every entry passes, ``EXIT_SECURITY_ERROR`` on
        the first rejection, ``EXIT_FILE_ERROR`` if the archive cannot be read

    """
    path = Path(args.archive)
    try:
        entries = _read_archive_listing(path)
    except (OSError, zipfile.BadZipFile, tarfile.TarError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return get_exit_code_for_exception(e)

    validator = ArchiveEntryValidator(limits)
    results: list[tuple[ArchiveEntryMetadata, str]] = []

    try:
        validator.validate_entry_count(len(entries))
        with validator.new_session(target_dir=args.target_dir) as session:
            for entry in entries:
                results.append((entry, validator.validate_entry(entry, session)))
    except SecurityError as e:
        _render_inspection(args, results)
        print(f"Rejected: {e}", file=sys.stderr)
        return get_exit_code_for_exception(e)

    _render_inspection(args, results)
    logger.info(f"All {len(entries)} entries passed pre-extraction checks: {path}")
    return EXIT_SUCCESS


def _extract_target(entry: ArchiveEntryMetadata, safe_name: str) -> str:
    """Show directories with a trailing separator, as they would be created."""
    return f"{safe_name}/" if entry.is_dir else safe_name


def _render_inspection(args: argparse.Namespace, results: list[tuple[ArchiveEntryMetadata, str]]) -> None:
    if args.rich:
        from rich.console import Console
        from rich.table import Table

        table = Table(title="Accepted entries")
        table.add_column("Entry", style="cyan")
        table.add_column("Type")
        table.add_column("Extract as", style="green")
        table.add_column("Declared size", justify="right")
        table.add_column("Compressed size", justify="right")
        for entry, safe_name in results:
            table.add_row(
                escape_for_log(entry.name),
                "directory" if entry.is_dir else "file",
                _extract_target(entry, safe_name),
                str(entry.declared_size),
                str(entry.compressed_size),
            )
        Console().print(table)
        return

    for entry, safe_name in results:
        detail = "directory" if entry.is_dir else f"{entry.declared_size} bytes"
        print(f"OK  {escape_for_log(entry.name)} -> {_extract_target(entry, safe_name)} ({detail})")


def handle_limits_command(args: argparse.Namespace, limits: ValidationLimits) -> int:
    """Print the effective limits with the environment variable overriding each."""
    rows: list[tuple[str, Any, str]] = [
        (name, value, LIMIT_ENV_VARS[name]) for name, value in limits.as_dict().items()
    ]

    if args.rich:
        from rich.console import Console
        from rich.table import Table

        table = Table(title="Validation limits")
        table.add_column("Limit", style="cyan")
        table.add_column("Value", justify="right", style="green")
        table.add_column("Environment variable", style="dim")
        for name, value, env_var in rows:
            table.add_row(name, str(value), env_var)
        Console().print(table)
        return EXIT_SUCCESS

    width = max(len(name) for name, _, _ in rows)
    for name, value, env_var in rows:
        print(f"{name:<{width}}  {value:>12}  ({env_var})")
    return EXIT_SUCCESS


COMMAND_HANDLERS = {
    "sanitize": handle_sanitize_command,
    "inspect": handle_inspect_command,
    "limits": handle_limits_command,
}


def main(args: list[str] | None = None) -> int:
    """Execute the CLI entry point.

    Parameters
    ----------
    args : list[str], optional
        Command line arguments (default: ``sys.argv[1:]``)

    Returns
    -------
    int
        Process exit code

    """
    parser = create_parser()
    parsed_args = parser.parse_args(args)

    try:
        configure_logging(parsed_args.log_level, log_file=parsed_args.log_file, trace_mode=parsed_args.trace)
        limits = load_limits_from_env()
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return get_exit_code_for_exception(e)

    handler = COMMAND_HANDLERS[parsed_args.command]
    return handler(parsed_args, limits)
