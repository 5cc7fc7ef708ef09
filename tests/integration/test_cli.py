"""Integration tests for the uploadguard CLI.

This module tests end-to-end CLI behavior including subcommands, archive
inspection, environment overrides and exit codes.
"""

import io
import tarfile
import zipfile

import pytest

from uploadguard.cli import (
    EXIT_FILE_ERROR,
    EXIT_SECURITY_ERROR,
    EXIT_SUCCESS,
    EXIT_VALIDATION_ERROR,
    get_exit_code_for_exception,
    main,
)
from uploadguard.exceptions import ConfigurationError, SecurityValidationError


@pytest.mark.integration
@pytest.mark.cli
class TestSanitizeCommand:
    """Test the sanitize subcommand."""

    def test_prints_one_name_per_line(self, capsys):
        """Test that each argument is sanitized and printed on its own line."""
        result = main(["sanitize", "../../etc/passwd", "my video.mp4", ".htaccess"])

        assert result == EXIT_SUCCESS
        assert capsys.readouterr().out.splitlines() == ["etcpasswd", "my_video.mp4", "_htaccess"]

    def test_env_limits_applied(self, capsys, monkeypatch):
        """Test that environment overrides reach the sanitizer."""
        monkeypatch.setenv("UPLOADGUARD_MAX_FILENAME_LENGTH", "12")
        monkeypatch.setenv("UPLOADGUARD_MAX_EXTENSION_LENGTH", "4")

        assert main(["sanitize", "a" * 40 + ".txt"]) == EXIT_SUCCESS
        assert capsys.readouterr().out.strip() == "a" * 8 + ".txt"

    def test_requires_a_name(self):
        """Test that argparse rejects a missing name."""
        with pytest.raises(SystemExit):
            main(["sanitize"])


@pytest.mark.integration
@pytest.mark.cli
@pytest.mark.security
class TestInspectCommand:
    """Test the inspect subcommand."""

    def test_clean_archive(self, sample_zip, capsys):
        """Test that a well-formed archive passes."""
        result = main(["inspect", str(sample_zip)])

        out = capsys.readouterr().out
        assert result == EXIT_SUCCESS
        assert "docs/readme.txt -> docs/readme.txt" in out
        assert "data/values.csv -> data/values.csv" in out

    def test_clean_archive_with_target_dir(self, sample_zip, tmp_path):
        """Test that containment checks pass for a well-formed archive."""
        assert main(["inspect", str(sample_zip), "--target-dir", str(tmp_path / "out")]) == EXIT_SUCCESS

    def test_traversal_entry_rejected(self, tmp_path, capsys):
        """Test that an entry escaping the target directory fails the inspection."""
        zip_path = tmp_path / "evil.zip"
        with zipfile.ZipFile(zip_path, "w") as zf:
            zf.writestr("ok.txt", "fine")
            zf.writestr("../evil.txt", "payload")

        result = main(["inspect", str(zip_path)])

        captured = capsys.readouterr()
        assert result == EXIT_SECURITY_ERROR
        assert "ok.txt" in captured.out
        assert "path traversal" in captured.err

    def test_zip_bomb_rejected(self, tmp_path, capsys):
        """Test that a highly compressed entry fails the inspection."""
        zip_path = tmp_path / "bomb.zip"
        with zipfile.ZipFile(zip_path, "w", zipfile.ZIP_DEFLATED) as zf:
            zf.writestr("bomb.txt", "0" * 5_000_000)

        assert main(["inspect", str(zip_path)]) == EXIT_SECURITY_ERROR
        assert "compression ratio" in capsys.readouterr().err

    def test_tar_symlink_rejected(self, tmp_path, capsys):
        """Test that a symbolic link member of a tar archive fails the inspection."""
        tar_path = tmp_path / "links.tar.gz"
        with tarfile.open(tar_path, "w:gz") as tf:
            data = b"hello"
            member = tarfile.TarInfo("hello.txt")
            member.size = len(data)
            tf.addfile(member, io.BytesIO(data))

            link = tarfile.TarInfo("passwd")
            link.type = tarfile.SYMTYPE
            link.linkname = "/etc/passwd"
            tf.addfile(link)

        assert main(["inspect", str(tar_path)]) == EXIT_SECURITY_ERROR
        assert "Symbolic link" in capsys.readouterr().err

    def test_entry_count_from_environment(self, sample_zip, monkeypatch, capsys):
        """Test that the entry count limit can be lowered through the environment."""
        monkeypatch.setenv("UPLOADGUARD_MAX_ENTRY_COUNT", "1")

        assert main(["inspect", str(sample_zip)]) == EXIT_SECURITY_ERROR
        assert "too many entries" in capsys.readouterr().err

    def test_missing_archive(self, tmp_path, capsys):
        """Test that a missing file is reported as a file error."""
        assert main(["inspect", str(tmp_path / "missing.zip")]) == EXIT_FILE_ERROR
        assert "Archive not found" in capsys.readouterr().err

    def test_not_an_archive(self, tmp_path, capsys):
        """Test that a non-archive file is reported as a file error."""
        text_file = tmp_path / "notes.txt"
        text_file.write_text("just text\n")

        assert main(["inspect", str(text_file)]) == EXIT_FILE_ERROR
        assert "Not a zip or tar archive" in capsys.readouterr().err

    def test_rich_output(self, sample_zip, capsys):
        """Test that rich output renders the accepted entries as a table."""
        assert main(["inspect", str(sample_zip), "--rich"]) == EXIT_SUCCESS
        assert "Accepted entries" in capsys.readouterr().out

    def test_directory_entry_reported(self, tmp_path, capsys):
        """Test that directory entries are listed as directories, not zero-byte files."""
        archive_path = tmp_path / "tree.zip"
        with zipfile.ZipFile(archive_path, "w") as zf:
            zf.writestr("folder/", "")
            zf.writestr("folder/a.txt", "content")

        assert main(["inspect", str(archive_path)]) == EXIT_SUCCESS

        out = capsys.readouterr().out
        assert "OK  folder/ -> folder/ (directory)" in out
        assert "OK  folder/a.txt -> folder/a.txt (7 bytes)" in out

    def test_directory_entry_rich_type_column(self, tmp_path, capsys):
        """Test that the rich table shows the entry type."""
        archive_path = tmp_path / "tree.zip"
        with zipfile.ZipFile(archive_path, "w") as zf:
            zf.writestr("folder/", "")

        assert main(["inspect", str(archive_path), "--rich"]) == EXIT_SUCCESS
        assert "directory" in capsys.readouterr().out


@pytest.mark.integration
@pytest.mark.cli
class TestLimitsCommand:
    """Test the limits subcommand."""

    def test_prints_defaults(self, capsys):
        """Test that every limit is listed with its environment variable."""
        assert main(["limits"]) == EXIT_SUCCESS

        out = capsys.readouterr().out
        assert "max_entry_count" in out
        assert "10000" in out
        assert "UPLOADGUARD_MAX_TOTAL_SIZE" in out

    def test_prints_overrides(self, capsys, monkeypatch):
        """Test that environment overrides are shown."""
        monkeypatch.setenv("UPLOADGUARD_MAX_ENTRY_SIZE", "64MB")

        assert main(["limits"]) == EXIT_SUCCESS
        assert str(64 * 1024 * 1024) in capsys.readouterr().out

    def test_invalid_environment(self, capsys, monkeypatch):
        """Test that a bad override is reported as a configuration error."""
        monkeypatch.setenv("UPLOADGUARD_MAX_ENTRY_COUNT", "lots")

        assert main(["limits"]) == EXIT_VALIDATION_ERROR
        assert "UPLOADGUARD_MAX_ENTRY_COUNT" in capsys.readouterr().err

    def test_rich_output(self, capsys):
        """Test that rich output renders a table."""
        assert main(["limits", "--rich"]) == EXIT_SUCCESS
        assert "Validation limits" in capsys.readouterr().out


@pytest.mark.integration
@pytest.mark.cli
class TestGlobalOptions:
    """Test options shared by every subcommand."""

    def test_log_file(self, tmp_path, sample_zip):
        """Test that log records are written to the requested file."""
        log_file = tmp_path / "uploadguard.log"

        assert main(["--log-level", "info", "--log-file", str(log_file), "inspect", str(sample_zip)]) == EXIT_SUCCESS
        assert "passed pre-extraction checks" in log_file.read_text()

    def test_log_level_from_environment(self, tmp_path, sample_zip, monkeypatch):
        """Test that the default log level can come from the environment."""
        monkeypatch.setenv("UPLOADGUARD_LOG_LEVEL", "debug")
        log_file = tmp_path / "debug.log"

        assert main(["--log-file", str(log_file), "sanitize", "a b.txt"]) == EXIT_SUCCESS
        assert "Filename sanitized" in log_file.read_text()

    def test_log_level_option_overrides_environment(self, tmp_path, monkeypatch):
        """Test that --log-level wins over UPLOADGUARD_LOG_LEVEL."""
        monkeypatch.setenv("UPLOADGUARD_LOG_LEVEL", "debug")
        log_file = tmp_path / "quiet.log"

        assert main(["--log-level", "error", "--log-file", str(log_file), "sanitize", "a b.txt"]) == EXIT_SUCCESS
        assert "Filename sanitized" not in log_file.read_text()

    def test_invalid_log_level_in_environment(self, capsys, monkeypatch):
        """Test that an unknown level name in the environment is a configuration error."""
        monkeypatch.setenv("UPLOADGUARD_LOG_LEVEL", "chatty")

        assert main(["limits"]) == EXIT_VALIDATION_ERROR
        assert "UPLOADGUARD_LOG_LEVEL" in capsys.readouterr().err

    def test_log_file_lines_escaped(self, tmp_path):
        """Test that a hostile filename cannot forge extra lines in the log file."""
        log_file = tmp_path / "escaped.log"

        assert main(["--log-level", "debug", "--log-file", str(log_file), "sanitize", "a\nERROR: forged"]) == EXIT_SUCCESS

        lines = log_file.read_text().splitlines()
        assert lines
        assert not any(line.startswith("ERROR: forged") for line in lines)

    def test_command_required(self):
        """Test that running without a subcommand is an argparse error."""
        with pytest.raises(SystemExit) as exc_info:
            main([])

        assert exc_info.value.code == 2

    def test_version(self, capsys):
        """Test that the version flag prints the package version."""
        with pytest.raises(SystemExit) as exc_info:
            main(["--version"])

        assert exc_info.value.code == 0
        assert "uploadguard" in capsys.readouterr().out

    @pytest.mark.parametrize(
        "error,expected",
        [
            (SecurityValidationError("x"), EXIT_SECURITY_ERROR),
            (ConfigurationError("x"), EXIT_VALIDATION_ERROR),
            (FileNotFoundError("x"), EXIT_FILE_ERROR),
            (zipfile.BadZipFile("x"), EXIT_FILE_ERROR),
            (RuntimeError("x"), 1),
        ],
    )
    def test_exit_code_mapping(self, error, expected):
        """Test that exceptions map to the documented exit codes."""
        assert get_exit_code_for_exception(error) == expected
