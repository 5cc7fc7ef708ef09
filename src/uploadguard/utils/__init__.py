#  Copyright (c) 2025 Tom Villani, Ph.D.
"""Utility helpers for uploadguard."""

from uploadguard.utils.escape import escape_for_log

__all__ = ["escape_for_log"]
