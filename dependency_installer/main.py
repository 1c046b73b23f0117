from __future__ import annotations

import argparse
import logging
import shutil
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from .errors import CommandFailedError, InstallerError, LogWriteError, MissingPrerequisiteError
from .lib.command import CommandRunner, ShellCommandRunner
from .logging_utils import LOG_FILE_NAME, InstallLog, configure_logging
from .pipeline import PipelineResult, Section, run_pipeline
from .prerequisites import (
    Prerequisite,
    PrerequisiteChecker,
    PrerequisiteStatus,
    missing_required,
    probe_version,
)
from .report_store import build_report, save_report

logger = logging.getLogger(__name__)


SUCCESS_MESSAGE = "All dependencies installed successfully."
CORE_PACKAGE = "@continuedev/core"
DEFAULT_EDITOR = "vscode"

PREREQUISITES = (
    Prerequisite(
        "npm",
        required=True,
        remediation=(
            "npm ships with Node.js: https://nodejs.org/en/download/",
            "or use your package manager, e.g. 'winget install -e --id OpenJS.NodeJS' or 'brew install node'",
        ),
    ),
    Prerequisite(
        "cargo",
        required=False,
        remediation=(
            "cargo is only needed for native builds: https://rustup.rs/",
            "or 'winget install Rustlang.Rustup'",
        ),
    ),
)


def build_sections(editor: str = DEFAULT_EDITOR) -> List[Section]:
    # Order matters: gui and the extension link against the core package.
    return [
        Section.of("core", "npm install", "npm link"),
        Section.of("gui", "npm install", f"npm link {CORE_PACKAGE}", "npm run build"),
        Section.of(
            f"extensions/{editor}",
            "npm install",
            f"npm link {CORE_PACKAGE}",
            "npm run prepackage",
            "npm run package",
        ),
        Section.of("binary", "npm install", "npm run build"),
        Section.of("docs", "npm install"),
    ]


def run(
    *,
    root: str = ".",
    log_path: str = LOG_FILE_NAME,
    report_path: Optional[str] = None,
    editor: str = DEFAULT_EDITOR,
    start_at: Optional[str] = None,
    stop_after: Optional[str] = None,
    timeout_s: Optional[float] = None,
    sections: Optional[Sequence[Section]] = None,
    prerequisites: Sequence[Prerequisite] = PREREQUISITES,
    runner: Optional[CommandRunner] = None,
    which: Callable[[str], Optional[str]] = shutil.which,
    probe: Callable[[str, Sequence[str]], Optional[str]] = probe_version,
) -> PipelineResult:
    """Check prerequisites, then install every section in order.

    Raises MissingPrerequisiteError before any section runs if a required
    tool is absent, and CommandFailedError as soon as a command fails.
    """

    install_log = InstallLog.initialize(log_path)

    statuses: List[PrerequisiteStatus] = []
    result: Optional[PipelineResult] = None
    try:
        logger.info("Checking for required dependencies...")
        install_log.log("Checking for required dependencies...", header_char="#")

        checker = PrerequisiteChecker(install_log, which=which, probe=probe)
        statuses = checker.check_all(prerequisites)
        missing = missing_required(statuses)
        if missing:
            install_log.log(f"Missing required tools: {', '.join(missing)}", header_char="!")
            raise MissingPrerequisiteError(missing)

        result = run_pipeline(
            sections=build_sections(editor) if sections is None else sections,
            runner=runner or ShellCommandRunner(install_log, timeout_s=timeout_s),
            install_log=install_log,
            root=root,
            start_at=start_at,
            stop_after=stop_after,
        )
        if not result.succeeded:
            raise CommandFailedError(
                section=result.failed_section or "",
                command=result.failed_command or "",
                exit_code=result.exit_code if result.exit_code is not None else -1,
            )

        install_log.log(SUCCESS_MESSAGE, lines_before=1)
        logger.info(SUCCESS_MESSAGE)
        return result
    finally:
        try:
            if report_path:
                _write_report(report_path, install_log, statuses, result)
        finally:
            install_log.close()


def _write_report(
    report_path: str,
    install_log: InstallLog,
    statuses: Sequence[PrerequisiteStatus],
    result: Optional[PipelineResult],
) -> None:
    # Report errors are logged, never raised.
    try:
        save_report(
            report_path,
            build_report(log_path=str(install_log.path), prerequisites=statuses, result=result),
        )
    except (OSError, RuntimeError) as e:
        logger.error("Could not write run report %s: %s", report_path, e)
        install_log.log(f"Could not write run report {report_path}: {e}", header_char="!")


def main(argv: Optional[list[str]] = None) -> int:
    p = argparse.ArgumentParser(prog="install-dependencies")
    p.add_argument("--root", default=".", help="Project root containing the sections")
    p.add_argument("--log", default=LOG_FILE_NAME, help="Path to the install log (truncated each run)")
    p.add_argument("--report", default=None, help="Write a run report (json|yaml)")
    p.add_argument("--editor", default=DEFAULT_EDITOR, help="Editor extension to build (extensions/<editor>)")
    p.add_argument("--start-at", default=None, help="Start at section (e.g. gui)")
    p.add_argument("--stop-after", default=None, help="Stop after section")
    p.add_argument("--timeout", type=float, default=None, help="Per-command timeout in seconds")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug output on the console")

    args = p.parse_args(argv)

    names = [s.name for s in build_sections(args.editor)]
    for flag, value in (("--start-at", args.start_at), ("--stop-after", args.stop_after)):
        if value is not None and value not in names:
            p.error(f"{flag}: unknown section {value!r} (choose from {', '.join(names)})")
    if args.start_at and args.stop_after and names.index(args.start_at) > names.index(args.stop_after):
        p.error(f"--start-at {args.start_at!r} comes after --stop-after {args.stop_after!r}")

    configure_logging(level=logging.DEBUG if args.verbose else logging.INFO)

    try:
        run(
            root=args.root,
            log_path=args.log,
            report_path=args.report,
            editor=args.editor,
            start_at=args.start_at,
            stop_after=args.stop_after,
            timeout_s=args.timeout,
        )
    except LogWriteError as e:
        logger.error("Install log unavailable: %s", e)
        return 1
    except MissingPrerequisiteError as e:
        logger.error("%s. Please install them before proceeding.", e)
        return 1
    except InstallerError as e:
        logger.error("%s", e)
        logger.error("Check '%s' for details.", Path(args.log).absolute())
        return 1

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
