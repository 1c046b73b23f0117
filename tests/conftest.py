from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pytest

from dependency_installer.lib.command import ExecutionResult
from dependency_installer.logging_utils import InstallLog
from dependency_installer.main import build_sections


class RecordingRunner:
    """CommandRunner double: records every call and replays scripted exit codes."""

    def __init__(self, root: Path, failures: Optional[Dict[Tuple[str, str], int]] = None) -> None:
        self.root = root
        self.failures = failures or {}
        self.calls: List[Tuple[str, str]] = []
        self.cwds: List[str] = []

    def run(self, command: str, *, cwd: Optional[str] = None) -> ExecutionResult:
        section = Path(cwd or os.getcwd()).relative_to(self.root).as_posix()
        self.calls.append((section, command))
        self.cwds.append(os.getcwd())
        exit_code = self.failures.get((section, command), 0)
        return ExecutionResult(command=command, exit_code=exit_code, output_lines=(f"ran {command}",))

    def sections_called(self) -> List[str]:
        seen: List[str] = []
        for section, _ in self.calls:
            if section not in seen:
                seen.append(section)
        return seen


@pytest.fixture
def project_root(tmp_path: Path) -> Path:
    root = tmp_path / "project"
    for section in build_sections():
        (root / section.name).mkdir(parents=True)
    return root


@pytest.fixture
def log_path(tmp_path: Path) -> Path:
    return tmp_path / "install-dependencies.log"


@pytest.fixture
def install_log(log_path: Path):
    log = InstallLog.initialize(log_path)
    yield log
    log.close()


@pytest.fixture(autouse=True)
def no_color(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("NO_COLOR", "1")


def read_entries(path: Path) -> List[str]:
    """Log lines with the timestamp prefix stripped."""
    return [line.split("] ", 1)[1] for line in path.read_text(encoding="utf-8").splitlines()]
