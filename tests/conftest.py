"""Pytest configuration and shared fixtures for the uploadguard test suite.

This module provides shared fixtures, test configuration, and utilities
that are used across the entire test suite.
"""

import logging
import os
import zipfile
from pathlib import Path

import pytest
from hypothesis import Phase, Verbosity, settings

from uploadguard.archive.metadata import ArchiveEntryMetadata
from uploadguard.archive.session import ExtractionSession
from uploadguard.archive.validator import ArchiveEntryValidator
from uploadguard.config import ValidationLimits

# Register custom Hypothesis profiles
settings.register_profile("ci", max_examples=100, verbosity=Verbosity.verbose)
settings.register_profile("dev", max_examples=20)
settings.register_profile(
    "debug", max_examples=10, verbosity=Verbosity.verbose, phases=[Phase.explicit, Phase.reuse, Phase.generate]
)

# Load profile from environment or use default
settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "dev"))


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests - fast, isolated component tests")
    config.addinivalue_line("markers", "integration: Integration tests - component interaction tests")
    config.addinivalue_line("markers", "security: Tests for defenses against malicious input")
    config.addinivalue_line("markers", "fuzzing: Property-based tests driven by Hypothesis")
    config.addinivalue_line("markers", "cli: Tests related to command-line interface")


@pytest.fixture(autouse=True)
def clean_limit_environment(monkeypatch):
    """Keep UPLOADGUARD_* variables from the developer's shell out of the tests."""
    for key in list(os.environ):
        if key.startswith("UPLOADGUARD_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture(autouse=True)
def restore_root_logging():
    """Undo handler changes made by CLI tests that call configure_logging."""
    root_logger = logging.getLogger()
    handlers = list(root_logger.handlers)
    level = root_logger.level
    yield
    root_logger.handlers[:] = handlers
    root_logger.setLevel(level)


@pytest.fixture
def validator() -> ArchiveEntryValidator:
    """Provide a validator with the default limits."""
    return ArchiveEntryValidator()


@pytest.fixture
def small_limits() -> ValidationLimits:
    """Provide tight limits so boundary tests stay fast.

    Returns
    -------
    ValidationLimits
        1000-byte entries, 2500-byte archives, 5 entries

    """
    return ValidationLimits(
        max_entry_size=1000,
        max_total_decompressed_size=2500,
        max_entry_count=5,
    )


@pytest.fixture
def session() -> ExtractionSession:
    """Provide a fresh extraction session without a target directory."""
    return ExtractionSession()


@pytest.fixture
def make_entry():
    """Provide a factory for entry metadata with sensible defaults."""

    def _make_entry(name: str = "docs/readme.txt", declared_size: int = 2048, compressed_size: int = 512, **kwargs):
        return ArchiveEntryMetadata(name=name, declared_size=declared_size, compressed_size=compressed_size, **kwargs)

    return _make_entry


@pytest.fixture
def sample_zip(tmp_path) -> Path:
    """Create a small, well-formed zip archive.

    Returns
    -------
    Path
        Path to an archive with two text files in nested folders

    """
    zip_path = tmp_path / "sample.zip"
    with zipfile.ZipFile(zip_path, "w", zipfile.ZIP_DEFLATED) as zf:
        zf.writestr("docs/readme.txt", "Hello World! " * 20)
        zf.writestr("data/values.csv", "a,b,c\n1,2,3\n")
    return zip_path
