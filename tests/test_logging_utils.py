import re
from pathlib import Path

import pytest

from conftest import read_entries
from dependency_installer.errors import LogWriteError
from dependency_installer.logging_utils import InstallLog

TIMESTAMPED = re.compile(r"^\[\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}\] ")


class _FullDisk:
    def write(self, _: str) -> None:
        raise OSError(28, "No space left on device")

    def flush(self) -> None:
        pass

    def close(self) -> None:
        pass


class TestInstallLog:
    def test_initialize_truncates_previous_run(self, log_path: Path) -> None:
        log_path.write_text("[2020-01-01 00:00:00] stale entry\n", encoding="utf-8")

        with InstallLog.initialize(log_path) as log:
            log.log("fresh entry")

        assert read_entries(log_path) == ["fresh entry"]

    def test_initialize_creates_missing_file_and_parents(self, tmp_path: Path) -> None:
        target = tmp_path / "nested" / "dir" / "install.log"

        with InstallLog.initialize(target):
            pass

        assert target.exists()
        assert target.read_text(encoding="utf-8") == ""

    def test_every_line_is_timestamped(self, install_log: InstallLog, log_path: Path) -> None:
        install_log.log("plain")
        install_log.log("with header", header_char="#", lines_before=1, lines_after=2)

        lines = log_path.read_text(encoding="utf-8").splitlines()
        assert len(lines) == 6
        assert all(TIMESTAMPED.match(line) for line in lines)

    def test_header_and_padding_layout(self, install_log: InstallLog, log_path: Path) -> None:
        install_log.log("Installing core dependencies...", header_char="#", lines_before=1, lines_after=1)

        assert read_entries(log_path) == [
            "",
            "#" * 80,
            "Installing core dependencies...",
            "",
        ]

    def test_custom_header_length(self, install_log: InstallLog, log_path: Path) -> None:
        install_log.log("short", header_char="!", header_length=12)

        assert read_entries(log_path) == ["!" * 12, "short"]

    def test_multiline_text_gets_one_prefix_per_line(self, install_log: InstallLog, log_path: Path) -> None:
        install_log.log("first\nsecond")

        lines = log_path.read_text(encoding="utf-8").splitlines()
        assert len(lines) == 2
        assert all(TIMESTAMPED.match(line) for line in lines)

    def test_lines_are_on_disk_before_close(self, install_log: InstallLog, log_path: Path) -> None:
        install_log.log("visible while running")

        assert "visible while running" in log_path.read_text(encoding="utf-8")

    def test_rejects_multi_character_header(self, install_log: InstallLog) -> None:
        with pytest.raises(ValueError):
            install_log.log("x", header_char="##")

    def test_unwritable_path_is_fatal(self, tmp_path: Path) -> None:
        # A directory cannot be opened as the log file.
        with pytest.raises(LogWriteError):
            InstallLog.initialize(tmp_path)

    def test_write_failure_mid_run_is_fatal(self, install_log: InstallLog) -> None:
        install_log.log("before")
        install_log._handler.stream = _FullDisk()

        with pytest.raises(LogWriteError, match="No space left"):
            install_log.log("after")

    def test_logging_after_close_raises(self, log_path: Path) -> None:
        log = InstallLog.initialize(log_path)
        log.close()

        with pytest.raises(LogWriteError):
            log.log("too late")
