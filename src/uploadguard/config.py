"""Validation limits configuration.

This module holds the limits enforced by the filename sanitizer and the
archive entry validator. Limits default to the values in
:mod:`uploadguard.constants` and can be overridden through environment
variables, one per limit:

  UPLOADGUARD_MAX_FILENAME_LENGTH              Longest sanitized filename (default: 200)
  UPLOADGUARD_MAX_EXTENSION_LENGTH             Longest extension kept when truncating (default: 10)
  UPLOADGUARD_MAX_ENTRY_NAME_LENGTH            Longest accepted archive entry name (default: 4096)
  UPLOADGUARD_MAX_ENTRY_SIZE                   Per-entry size cap, declared or streamed (default: 512MB)
  UPLOADGUARD_MAX_TOTAL_SIZE                   Total decompressed bytes per archive (default: 1GB)
  UPLOADGUARD_MAX_ENTRY_COUNT                  Entries per archive (default: 10000)
  UPLOADGUARD_MAX_COMPRESSION_RATIO            Declared/compressed ratio cap (default: 100)
  UPLOADGUARD_RATIO_CHECK_MIN_COMPRESSED_SIZE  Compressed size enabling the ratio check (default: 1000)

Size limits accept a byte count or a value with a KB/MB/GB suffix (binary
multiples, so ``512MB`` is 512 * 1024 * 1024 bytes).

Classes
-------
- ValidationLimits: Immutable set of limits

"""

#  Copyright (c) 2025 Tom Villani, Ph.D.

from __future__ import annotations

import logging
import os
import re
import sys
from collections.abc import Mapping
from dataclasses import dataclass, fields, replace
from typing import Any

if sys.version_info >= (3, 11):
    from typing import Self
else:
    from typing_extensions import Self

from uploadguard.constants import (
    ABSOLUTE_MAX_UPLOAD_SIZE,
    BYTES_PER_GB,
    BYTES_PER_KB,
    BYTES_PER_MB,
    DEFAULT_MAX_COMPRESSION_RATIO,
    DEFAULT_MAX_ENTRY_COUNT,
    DEFAULT_MAX_ENTRY_NAME_LENGTH,
    DEFAULT_MAX_ENTRY_SIZE,
    DEFAULT_MAX_EXTENSION_LENGTH,
    DEFAULT_MAX_FILENAME_LENGTH,
    DEFAULT_MAX_TOTAL_DECOMPRESSED_SIZE,
    DEFAULT_RATIO_CHECK_MIN_COMPRESSED_SIZE,
    LIMIT_ENV_VARS,
    RECOMMENDED_MAX_UPLOAD_SIZE,
    SIZE_LIMIT_FIELDS,
)
from uploadguard.exceptions import ConfigurationError, SecurityValidationError

logger = logging.getLogger(__name__)

_SIZE_PATTERN = re.compile(r"^\s*(\d+)\s*(?:([kmg])i?b?|b)?\s*$", re.IGNORECASE)
_SIZE_MULTIPLIERS = {"k": BYTES_PER_KB, "m": BYTES_PER_MB, "g": BYTES_PER_GB}


class CloneFrozenMixin:
    """Mixin providing frozen dataclass cloning capabilities."""

    def create_updated(self, **kwargs: Any) -> Self:
        """Create a new instance with updated field values.

        Parameters
        ----------
        **kwargs : Any
            Field names and their new values

        Returns
        -------
        Self
            New instance with specified fields updated

        """
        return replace(self, **kwargs)  # type: ignore[type-var]


@dataclass(frozen=True)
class ValidationLimits(CloneFrozenMixin):
    """Limits applied to untrusted filenames and archive entries.

    Attributes
    ----------
    max_filename_length : int
        Maximum length of a sanitized filename (default: 200)
    max_extension_length : int
        Longest extension preserved when a filename is truncated (default: 10)
    max_entry_name_length : int
        Maximum length of an archive entry name (default: 4096)
    max_entry_size : int
        Maximum size in bytes of a single entry, whether declared in the
        archive metadata or counted while streaming (default: 512 MiB)
    max_total_decompressed_size : int
        Maximum decompressed bytes across one archive (default: 1 GiB)
    max_entry_count : int
        Maximum number of entries in one archive (default: 10000)
    max_compression_ratio : int
        Maximum declared/compressed size ratio (default: 100)
    ratio_check_min_compressed_size : int
        Compressed size from which the ratio check applies (default: 1000)

    """

    max_filename_length: int = DEFAULT_MAX_FILENAME_LENGTH
    max_extension_length: int = DEFAULT_MAX_EXTENSION_LENGTH
    max_entry_name_length: int = DEFAULT_MAX_ENTRY_NAME_LENGTH
    max_entry_size: int = DEFAULT_MAX_ENTRY_SIZE
    max_total_decompressed_size: int = DEFAULT_MAX_TOTAL_DECOMPRESSED_SIZE
    max_entry_count: int = DEFAULT_MAX_ENTRY_COUNT
    max_compression_ratio: int = DEFAULT_MAX_COMPRESSION_RATIO
    ratio_check_min_compressed_size: int = DEFAULT_RATIO_CHECK_MIN_COMPRESSED_SIZE

    def validate(self) -> None:
        """Validate limit consistency.

        Raises
        ------
        ConfigurationError
            If a limit is not a positive integer, or the extension limit
            leaves no room for a base name

        """
        for limit in fields(self):
            value = getattr(self, limit.name)
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise ConfigurationError(
                    f"Limit '{limit.name}' must be a positive integer, got {value!r}",
                    parameter_name=limit.name,
                    parameter_value=value,
                )

        if self.max_extension_length >= self.max_filename_length:
            raise ConfigurationError(
                f"max_extension_length ({self.max_extension_length}) must be smaller than "
                f"max_filename_length ({self.max_filename_length})",
                parameter_name="max_extension_length",
                parameter_value=self.max_extension_length,
            )

    def as_dict(self) -> dict[str, int]:
        """Return the limits as a plain dictionary keyed by field name."""
        return {limit.name: getattr(self, limit.name) for limit in fields(self)}


def parse_size(value: str) -> int:
    """Parse a byte count with an optional KB/MB/GB suffix.

    Parameters
    ----------
    value : str
        Text such as ``"1048576"``, ``"64KB"``, ``"512MB"`` or ``"1GiB"``

    Returns
    -------
    int
        Number of bytes

    Raises
    ------
    ValueError
        If the value is not a recognizable size

    Examples
    --------
    >>> parse_size("512MB")
    536870912
    >>> parse_size("1000")
    1000

    """
    match = _SIZE_PATTERN.match(value)
    if not match:
        raise ValueError(f"Invalid size: {value!r}")

    amount = int(match.group(1))
    unit = match.group(2)
    if unit:
        amount *= _SIZE_MULTIPLIERS[unit.lower()]
    return amount


def _read_limit(environ: Mapping[str, str], field_name: str, default: int) -> int:
    """Read one limit override, returning `default` when the variable is unset."""
    env_key = LIMIT_ENV_VARS[field_name]
    raw = environ.get(env_key)
    if raw is None or not raw.strip():
        return default

    try:
        if field_name in SIZE_LIMIT_FIELDS:
            return parse_size(raw)
        return int(raw.strip())
    except ValueError as e:
        raise ConfigurationError(
            f"Invalid value for {env_key}: {raw!r}",
            parameter_name=env_key,
            parameter_value=raw,
            original_error=e,
        ) from e


def load_limits_from_env(environ: Mapping[str, str] | None = None) -> ValidationLimits:
    """Load validation limits from environment variables.

    Parameters
    ----------
    environ : Mapping[str, str], optional
        Environment to read from (default: ``os.environ``)

    Returns
    -------
    ValidationLimits
        Limits with environment overrides applied

    Raises
    ------
    ConfigurationError
        If an override cannot be parsed or the resulting limits are inconsistent

    """
    if environ is None:
        environ = os.environ

    defaults = ValidationLimits()
    overrides = {
        name: _read_limit(environ, name, default) for name, default in defaults.as_dict().items()
    }

    limits = ValidationLimits(**overrides)
    limits.validate()

    changed = {name: value for name, value in overrides.items() if value != getattr(defaults, name)}
    if changed:
        logger.debug(f"Validation limits overridden from environment: {changed}")

    return limits


def validate_upload_limits(max_file_size: int | None, max_request_size: int | None) -> None:
    """Check that configured HTTP upload limits are explicit and bounded.

    Unlimited uploads are a denial-of-service vector, so both limits must be
    set to a positive value no larger than the absolute maximum (100 MiB).
    Values above the recommended 8 MiB are accepted with a warning.

    Parameters
    ----------
    max_file_size : int or None
        Maximum size in bytes of one uploaded file
    max_request_size : int or None
        Maximum size in bytes of one upload request

    Raises
    ------
    SecurityValidationError
        If either limit is missing, non-positive or above the absolute maximum

    """
    for label, value in (("max file size", max_file_size), ("max request size", max_request_size)):
        if value is None or value <= 0:
            raise SecurityValidationError(
                f"Upload {label} must be explicitly configured with a positive value",
                limit=ABSOLUTE_MAX_UPLOAD_SIZE,
                actual=value,
            )

        if value > ABSOLUTE_MAX_UPLOAD_SIZE:
            raise SecurityValidationError(
                f"Upload {label} ({value} bytes) exceeds absolute maximum ({ABSOLUTE_MAX_UPLOAD_SIZE} bytes). "
                f"This poses a serious DoS risk.",
                limit=ABSOLUTE_MAX_UPLOAD_SIZE,
                actual=value,
            )

        if value > RECOMMENDED_MAX_UPLOAD_SIZE:
            logger.warning(
                f"Upload {label} ({value} bytes) exceeds the recommended {RECOMMENDED_MAX_UPLOAD_SIZE} bytes. "
                f"Ensure this is required for your use case."
            )

    logger.info(f"Upload limits validated - max file size: {max_file_size}, max request size: {max_request_size}")


DEFAULT_LIMITS = ValidationLimits()
