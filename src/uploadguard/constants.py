#  Copyright (c) 2025 Tom Villani, Ph.D.
"""Constants and default values for the uploadguard library.

This module centralizes the hardcoded values and default limits used by the
filename sanitizer and the archive entry validator. Every limit listed here
can be overridden through :mod:`uploadguard.config`.

Constants are organized by category:
1. Size Units
2. Filename Sanitization
3. Archive Entry Validation
4. Upload Limit Policy
5. Environment Variables
"""

from __future__ import annotations

# =============================================================================
# Size Units
# =============================================================================

BYTES_PER_KB = 1024
BYTES_PER_MB = BYTES_PER_KB * BYTES_PER_KB
BYTES_PER_GB = BYTES_PER_KB * BYTES_PER_MB

# =============================================================================
# Filename Sanitization
# =============================================================================

DEFAULT_FALLBACK_FILENAME = "upload.tmp"  # Returned whenever a name cannot be salvaged
DEFAULT_MAX_FILENAME_LENGTH = 200
DEFAULT_MAX_EXTENSION_LENGTH = 10  # Longest extension preserved when truncating

# Anything outside this set is replaced with an underscore
UNSAFE_FILENAME_CHAR_PATTERN = r"[^a-zA-Z0-9._-]"

# Shell metacharacters that mark a name as a crafted pattern rather than a path
SHELL_METACHARACTERS = frozenset(";<>|&$`")

# Longest string still considered as a candidate file path
MAX_PATH_LENGTH = 4096

# A hidden file whose remainder matches this is treated as a bare extension (".mp4" -> "_.mp4")
BARE_EXTENSION_PATTERN = r"[a-z0-9]{2,5}|[A-Z0-9]{2,5}"

DEFAULT_ARCHIVE_NAME = "archive"
DEFAULT_ARCHIVE_EXTENSION = ".zip"

# =============================================================================
# Archive Entry Validation
# =============================================================================

DEFAULT_MAX_ENTRY_NAME_LENGTH = 4096
DEFAULT_MAX_ENTRY_SIZE = 512 * BYTES_PER_MB  # Per-entry cap, declared or streamed
DEFAULT_MAX_TOTAL_DECOMPRESSED_SIZE = BYTES_PER_GB  # Per-archive cap
DEFAULT_MAX_ENTRY_COUNT = 10_000
DEFAULT_MAX_COMPRESSION_RATIO = 100  # declared / compressed, integer division
# Compressed size from which the ratio check applies; 1000 bytes, so a 1000-byte entry is checked
DEFAULT_RATIO_CHECK_MIN_COMPRESSED_SIZE = 1000

# Control characters tolerated inside entry names
ALLOWED_ENTRY_NAME_CONTROL_CHARS = frozenset("\n\r\t")

# Percent-encoded forms of ".." (single and double encoded), matched case-insensitively
ENCODED_TRAVERSAL_SEQUENCES = ("%2e%2e", "%252e")

# Some archivers serialize symbolic links as "name -> target"
SYMLINK_ENTRY_MARKER = "->"

# Unix file type bits as stored in the upper half of a zip entry's external attributes
UNIX_FILE_TYPE_MASK = 0o170000
UNIX_SYMLINK_TYPE = 0o120000

# Portion of an oversized entry name shown in error messages
ENTRY_NAME_PREVIEW_LENGTH = 100

# =============================================================================
# Upload Limit Policy
# =============================================================================

RECOMMENDED_MAX_UPLOAD_SIZE = 8 * BYTES_PER_MB
ABSOLUTE_MAX_UPLOAD_SIZE = 100 * BYTES_PER_MB

# =============================================================================
# Environment Variables
# =============================================================================

# Maps ValidationLimits field names to the environment variable overriding them
LIMIT_ENV_VARS = {
    "max_filename_length": "UPLOADGUARD_MAX_FILENAME_LENGTH",
    "max_extension_length": "UPLOADGUARD_MAX_EXTENSION_LENGTH",
    "max_entry_name_length": "UPLOADGUARD_MAX_ENTRY_NAME_LENGTH",
    "max_entry_size": "UPLOADGUARD_MAX_ENTRY_SIZE",
    "max_total_decompressed_size": "UPLOADGUARD_MAX_TOTAL_SIZE",
    "max_entry_count": "UPLOADGUARD_MAX_ENTRY_COUNT",
    "max_compression_ratio": "UPLOADGUARD_MAX_COMPRESSION_RATIO",
    "ratio_check_min_compressed_size": "UPLOADGUARD_RATIO_CHECK_MIN_COMPRESSED_SIZE",
}

# Fields whose environment values may carry a KB/MB/GB suffix
SIZE_LIMIT_FIELDS = frozenset({"max_entry_size", "max_total_decompressed_size", "ratio_check_min_compressed_size"})

LOG_LEVEL_ENV_VAR = "UPLOADGUARD_LOG_LEVEL"
