from __future__ import annotations

from typing import Sequence


class InstallerError(RuntimeError):
    """Base for every error that terminates an install run."""


class LogWriteError(InstallerError):
    pass


class MissingPrerequisiteError(InstallerError):
    def __init__(self, names: Sequence[str]) -> None:
        self.names = list(names)
        super().__init__(f"Missing required tools: {', '.join(self.names)}")


class CommandFailedError(InstallerError):
    def __init__(self, *, section: str, command: str, exit_code: int) -> None:
        self.section = section
        self.command = command
        self.exit_code = exit_code
        super().__init__(f"Command failed in {section} ({exit_code}): {command}")
