#  Copyright (c) 2025 Tom Villani, Ph.D.
"""Custom exceptions for the uploadguard library.

This module defines the exception classes raised by the validation layer.
Callers translating failures into user-facing responses should catch
:class:`SecurityValidationError` around archive extraction and
:class:`ConfigurationError` around limit loading.

Exception Hierarchy
-------------------
- UploadGuardError (base exception)

  - ConfigurationError (invalid limits or environment overrides)

  - SecurityError (security violations)
    - SecurityValidationError (rejected filename, entry or archive)

  - SessionClosedError (extraction session reused after it ended)

  - UnsupportedEntryTypeError (archive entry type the metadata adapter cannot map)

"""

from typing import Any


class UploadGuardError(Exception):
    """Base exception class for all uploadguard-specific errors.

    Parameters
    ----------
    message : str
        Human-readable description of the error
    original_error : Exception, optional
        The original exception that caused this error, if applicable

    Attributes
    ----------
    message : str
        The error message
    original_error : Exception or None
        The wrapped original exception, if any

    """

    def __init__(self, message: str, original_error: Exception | None = None):
        """Initialize the error with a message and optional original exception."""
        super().__init__(message)
        self.message = message
        self.original_error = original_error


class ConfigurationError(UploadGuardError):
    """Exception raised for invalid validation limits.

    Parameters
    ----------
    message : str
        Description of the configuration error
    parameter_name : str, optional
        Name of the limit or environment variable at fault
    parameter_value : any, optional
        The invalid value that was provided
    original_error : Exception, optional
        The original exception that caused this error

    """

    def __init__(
        self,
        message: str,
        parameter_name: str | None = None,
        parameter_value: Any = None,
        original_error: Exception | None = None,
    ):
        """Initialize the configuration error with parameter details."""
        super().__init__(message, original_error=original_error)
        self.parameter_name = parameter_name
        self.parameter_value = parameter_value


class SecurityError(UploadGuardError):
    """Base exception for security violations.

    Parameters
    ----------
    message : str
        Description of the security violation
    original_error : Exception, optional
        The original exception that caused this error

    """


class SecurityValidationError(SecurityError):
    """Exception raised when untrusted input fails a security check.

    This covers path traversal, zip bombs, oversized or excessive entries,
    duplicate entries, symbolic links and unsafe upload limits. The caller
    must abort the current upload or extraction and clean up partial state.

    Parameters
    ----------
    message : str
        Description of the violation, already safe to log
    entry_name : str, optional
        Offending archive entry name, stored unescaped
    limit : int, optional
        The limit that was crossed
    actual : int, optional
        The observed value

    Attributes
    ----------
    entry_name : str or None
        Raw entry name; escape it before embedding it anywhere
    limit : int or None
        Limit that was exceeded
    actual : int or None
        Value that exceeded it

    """

    def __init__(
        self,
        message: str,
        entry_name: str | None = None,
        limit: int | None = None,
        actual: int | None = None,
        original_error: Exception | None = None,
    ):
        """Initialize the security validation error."""
        super().__init__(message, original_error=original_error)
        self.entry_name = entry_name
        self.limit = limit
        self.actual = actual


class SessionClosedError(UploadGuardError):
    """Exception raised when an extraction session is used after it was closed."""

    def __init__(self, message: str | None = None):
        """Initialize the session closed error."""
        if message is None:
            message = "Extraction session is closed; start a new session for each archive"
        super().__init__(message)


class UnsupportedEntryTypeError(UploadGuardError):
    """Exception raised when an archive entry object cannot be mapped to metadata.

    Parameters
    ----------
    entry_type : type
        The type of the unsupported entry object

    """

    def __init__(self, entry_type: type):
        """Initialize the unsupported entry type error."""
        super().__init__(
            f"Cannot read archive entry metadata from '{entry_type.__name__}'. "
            f"Expected zipfile.ZipInfo, tarfile.TarInfo or an object exposing "
            f"filename/file_size/compress_size or filename/uncompressed/compressed."
        )
        self.entry_type = entry_type
