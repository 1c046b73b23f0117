from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from typing import Optional

from .errors import LogWriteError

LOG_FILE_NAME = "install-dependencies.log"
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
HEADER_LENGTH = 80

RED = "\033[31m"
GREEN = "\033[32m"
YELLOW = "\033[33m"


def _supports_color() -> bool:
    """Detect if stdout likely supports ANSI colors."""
    if os.getenv("NO_COLOR"):
        return False
    force_color = os.getenv("FORCE_COLOR")
    if force_color and force_color not in ("0", "false", "False"):
        return True
    if os.getenv("TERM") == "dumb":
        return False
    return sys.stdout.isatty()


def colorize(message: str, color: str) -> str:
    if not _supports_color():
        return message
    return f"{color}{message}\033[0m"


def configure_logging(level: int = logging.INFO, also_console: bool = True) -> None:
    """Configure console logging for progress lines.

    The install log file is not handled here; see InstallLog. Console output
    stays terse: one line per prerequisite and per section, plus the final
    verdict.
    """

    logger = logging.getLogger()
    logger.setLevel(level)

    # Avoid duplicate handlers if configure_logging() is called multiple times.
    if getattr(logger, "_dependency_installer_configured", False):
        return

    if also_console:
        console = logging.StreamHandler(sys.stdout)
        console.setFormatter(logging.Formatter(fmt="%(message)s"))
        logger.addHandler(console)

    setattr(logger, "_dependency_installer_configured", True)


class _StrictFileHandler(logging.FileHandler):
    """FileHandler that raises on write errors instead of printing them."""

    def handleError(self, record: logging.LogRecord) -> None:
        exc = sys.exc_info()[1]
        raise LogWriteError(f"Cannot write to log file {self.baseFilename}: {exc}") from exc


class InstallLog:
    """Append-only, timestamped install log.

    Every line in the file looks like ``[2024-05-01 12:00:00] text``. The file
    is truncated once, when the log is initialized, and each line is flushed
    as it is written so a hung command is visible while it hangs.
    """

    def __init__(self, path: Path, handler: logging.FileHandler) -> None:
        self._path = path
        self._handler: Optional[logging.FileHandler] = handler
        self._logger = logging.getLogger(f"{__name__}.install_log.{path}")
        self._logger.setLevel(logging.INFO)
        self._logger.propagate = False
        for old in list(self._logger.handlers):
            self._logger.removeHandler(old)
            old.close()
        self._logger.addHandler(handler)

    @classmethod
    def initialize(cls, path: str | Path) -> "InstallLog":
        p = Path(path).absolute()
        try:
            p.parent.mkdir(parents=True, exist_ok=True)
            handler = _StrictFileHandler(str(p), mode="w", encoding="utf-8")
        except OSError as e:
            raise LogWriteError(f"Cannot create log file {p}: {e}") from e
        handler.setFormatter(logging.Formatter(fmt="[%(asctime)s] %(message)s", datefmt=TIMESTAMP_FORMAT))
        return cls(p, handler)

    @property
    def path(self) -> Path:
        return self._path

    def log(
        self,
        text: str = "",
        *,
        lines_before: int = 0,
        lines_after: int = 0,
        header_char: Optional[str] = None,
        header_length: int = HEADER_LENGTH,
    ) -> None:
        if self._handler is None:
            raise LogWriteError(f"Log file {self._path} is closed")
        if header_char is not None and len(header_char) != 1:
            raise ValueError(f"header_char must be a single character, got {header_char!r}")

        for _ in range(lines_before):
            self._write("")
        if header_char is not None:
            self._write(header_char * header_length)
        for line in text.split("\n"):
            self._write(line)
        for _ in range(lines_after):
            self._write("")

    def _write(self, line: str) -> None:
        self._logger.info("%s", line)

    def close(self) -> None:
        if self._handler is None:
            return
        self._logger.removeHandler(self._handler)
        self._handler.close()
        self._handler = None

    def __enter__(self) -> "InstallLog":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
