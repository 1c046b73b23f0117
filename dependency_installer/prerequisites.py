from __future__ import annotations

import logging
import shutil
import subprocess
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

from .logging_utils import GREEN, RED, YELLOW, InstallLog, colorize

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Prerequisite:
    """An external tool the installer itself relies on.

    Optional prerequisites are reported like required ones but never stop
    the run.
    """

    name: str
    required: bool = True
    version_args: Tuple[str, ...] = ("--version",)
    remediation: Tuple[str, ...] = ()


@dataclass(frozen=True)
class PrerequisiteStatus:
    tool_name: str
    found: bool
    version: Optional[str] = None
    required: bool = True
    path: Optional[str] = None


def probe_version(path: str, args: Sequence[str]) -> Optional[str]:
    """Return the first non-empty line a tool prints for its version flag."""

    try:
        p = subprocess.run(
            [path, *args],
            text=True,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            stdin=subprocess.DEVNULL,
            timeout=60,
        )
    except (OSError, subprocess.SubprocessError) as e:
        logger.debug("Version probe failed for %s: %s", path, e)
        return None

    if p.returncode != 0:
        logger.debug("Version probe for %s exited with %s", path, p.returncode)
        return None

    for line in p.stdout.splitlines():
        if line.strip():
            return line.strip()
    return None


class PrerequisiteChecker:
    def __init__(
        self,
        install_log: InstallLog,
        *,
        which: Callable[[str], Optional[str]] = shutil.which,
        probe: Callable[[str, Sequence[str]], Optional[str]] = probe_version,
    ) -> None:
        self._log = install_log
        self._which = which
        self._probe = probe

    def check(self, prerequisite: Prerequisite) -> PrerequisiteStatus:
        name = prerequisite.name
        path = self._which(name)

        if path is None:
            color = RED if prerequisite.required else YELLOW
            logger.info("%s %s", colorize("Not Found", color), name)
            for hint in prerequisite.remediation:
                logger.info("  %s", hint)
            self._log.log(f"Not Found {name}")
            return PrerequisiteStatus(tool_name=name, found=False, required=prerequisite.required)

        version = self._probe(path, prerequisite.version_args)
        logger.info("%s %s: %s", colorize("Found", GREEN), name, version or "unknown version")
        self._log.log(f"Found {name}: {version or 'unknown version'}")
        return PrerequisiteStatus(
            tool_name=name,
            found=True,
            version=version,
            required=prerequisite.required,
            path=path,
        )

    def check_all(self, prerequisites: Sequence[Prerequisite]) -> List[PrerequisiteStatus]:
        # Check everything first so the operator sees every missing tool at once.
        return [self.check(p) for p in prerequisites]


def missing_required(statuses: Sequence[PrerequisiteStatus]) -> List[str]:
    return [s.tool_name for s in statuses if s.required and not s.found]
