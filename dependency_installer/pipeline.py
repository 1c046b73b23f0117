from __future__ import annotations

import contextlib
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, List, Optional, Sequence, Tuple

from .lib.command import CommandRunner
from .logging_utils import InstallLog

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommandSpec:
    command: str

    @property
    def display_text(self) -> str:
        return self.command


@dataclass(frozen=True)
class Section:
    """A subproject directory and the commands to run inside it, in order."""

    name: str
    commands: Tuple[CommandSpec, ...]

    @classmethod
    def of(cls, name: str, *commands: str) -> "Section":
        return cls(name=name, commands=tuple(CommandSpec(c) for c in commands))


@dataclass(frozen=True)
class PipelineResult:
    succeeded: bool
    ran_sections: List[str] = field(default_factory=list)
    skipped_sections: List[str] = field(default_factory=list)
    failed_section: Optional[str] = None
    failed_command: Optional[str] = None
    exit_code: Optional[int] = None


@contextlib.contextmanager
def working_directory(path: str | Path) -> Iterator[Path]:
    """chdir into path, restoring the previous directory on every exit path."""

    previous = os.getcwd()
    os.chdir(path)
    try:
        yield Path(path)
    finally:
        os.chdir(previous)


def _select(
    sections: Sequence[Section],
    start_at: Optional[str],
    stop_after: Optional[str],
) -> Tuple[List[Section], List[str]]:
    names = [s.name for s in sections]
    for label, value in (("start_at", start_at), ("stop_after", stop_after)):
        if value is not None and value not in names:
            raise ValueError(f"Unknown section for {label}: {value!r} (expected one of {', '.join(names)})")

    first = names.index(start_at) if start_at is not None else 0
    last = names.index(stop_after) if stop_after is not None else len(names) - 1
    if first > last:
        raise ValueError(f"start_at {start_at!r} comes after stop_after {stop_after!r}")

    selected = list(sections[first : last + 1])
    skipped = names[:first] + names[last + 1 :]
    return selected, skipped


def run_pipeline(
    *,
    sections: Sequence[Section],
    runner: CommandRunner,
    install_log: InstallLog,
    root: str | Path = ".",
    start_at: Optional[str] = None,
    stop_after: Optional[str] = None,
) -> PipelineResult:
    """Run sections in order, stopping at the first failing command.

    Later sections use what earlier ones installed and linked, so nothing is
    run once a command has failed. Nothing already done is undone either.
    """

    selected, skipped = _select(sections, start_at, stop_after)
    for name in skipped:
        logger.debug("Skipping section %s", name)

    root_path = Path(root).absolute()
    ran: List[str] = []

    for section in selected:
        logger.info("Installing %s dependencies...", section.name)
        install_log.log(f"Installing {section.name} dependencies...", header_char="#")

        section_dir = root_path / section.name
        if not section_dir.is_dir():
            install_log.log(f"Section directory not found: {section_dir}", header_char="!")
            logger.error("Section directory not found: %s", section_dir)
            return PipelineResult(
                succeeded=False,
                ran_sections=ran,
                skipped_sections=skipped,
                failed_section=section.name,
                failed_command=f"cd {section_dir}",
                exit_code=-1,
            )

        with working_directory(section_dir):
            for spec in section.commands:
                result = runner.run(spec.command, cwd=str(section_dir))
                if not result.succeeded:
                    logger.error("%s failed in %s (exit code %s)", spec.display_text, section.name, result.exit_code)
                    return PipelineResult(
                        succeeded=False,
                        ran_sections=ran,
                        skipped_sections=skipped,
                        failed_section=section.name,
                        failed_command=spec.display_text,
                        exit_code=result.exit_code,
                    )

        ran.append(section.name)

    return PipelineResult(succeeded=True, ran_sections=ran, skipped_sections=skipped)
