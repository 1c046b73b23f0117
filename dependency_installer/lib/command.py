from __future__ import annotations

import logging
import os
import signal
import subprocess
import sys
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, TextIO, Tuple

from ..logging_utils import InstallLog

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExecutionResult:
    command: str
    exit_code: int
    output_lines: Tuple[str, ...] = field(default_factory=tuple)
    timed_out: bool = False
    # Exactly what the process wrote, line terminators and undecodable bytes included.
    raw_output: bytes = b""

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0 and not self.timed_out


class CommandRunner(Protocol):
    """Runs one shell command and reports how it went."""

    def run(self, command: str, *, cwd: Optional[str] = None) -> ExecutionResult:
        ...


def _group_kwargs() -> Dict[str, Any]:
    if os.name == "posix":
        return {"start_new_session": True}
    return {"creationflags": subprocess.CREATE_NEW_PROCESS_GROUP}


def _kill(proc: subprocess.Popen, *, group: bool) -> None:
    """Kill proc, and with group=True everything it spawned."""

    if group and os.name == "posix":
        try:
            os.killpg(proc.pid, signal.SIGKILL)
            return
        except (ProcessLookupError, OSError):
            pass
    elif group:
        # The shell's children (npm.cmd, node) hold the pipe open; take the whole tree.
        subprocess.run(
            ["taskkill", "/F", "/T", "/PID", str(proc.pid)],
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )
    proc.kill()


def _decode(raw: bytes) -> str:
    line = raw[:-1] if raw.endswith(b"\n") else raw
    if line.endswith(b"\r"):
        line = line[:-1]
    return line.decode("utf-8", errors="replace")


class ShellCommandRunner:
    """Run commands through the platform shell, streaming output to the install log.

    - stderr is merged into stdout by the OS, so lines keep the order the
      process wrote them in.
    - Output is read as bytes and split on newlines only; every line reaches
      the log as soon as it is read.
    - Output is shown on the console only when the command fails, byte for
      byte as the process wrote it.
    """

    def __init__(
        self,
        install_log: InstallLog,
        *,
        timeout_s: Optional[float] = None,
        console: Optional[TextIO] = None,
    ) -> None:
        self._log = install_log
        self._timeout_s = timeout_s
        self._console = console

    def run(self, command: str, *, cwd: Optional[str] = None) -> ExecutionResult:
        self._log.log(f"Executing: {command}")
        logger.debug("CMD %s", command)

        group = self._timeout_s is not None
        try:
            proc = subprocess.Popen(
                command,
                shell=True,
                cwd=cwd,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                stdin=subprocess.DEVNULL,
                **(_group_kwargs() if group else {}),
            )
        except OSError as e:
            self._log.log(str(e))
            result = ExecutionResult(
                command=command,
                exit_code=-1,
                output_lines=(str(e),),
                raw_output=(str(e) + "\n").encode("utf-8"),
            )
            return self._finish(result)

        timed_out = threading.Event()
        timer: Optional[threading.Timer] = None
        if self._timeout_s is not None:

            def expire() -> None:
                if proc.poll() is not None:
                    return
                timed_out.set()
                _kill(proc, group=group)

            timer = threading.Timer(self._timeout_s, expire)
            timer.daemon = True
            timer.start()

        lines: List[str] = []
        chunks: List[bytes] = []
        try:
            assert proc.stdout is not None
            for raw in iter(proc.stdout.readline, b""):
                chunks.append(raw)
                line = _decode(raw)
                lines.append(line)
                self._log.log(line)
            proc.stdout.close()
            returncode = proc.wait()
        except BaseException:
            _kill(proc, group=group)
            proc.wait()
            raise
        finally:
            if timer is not None:
                timer.cancel()

        if timed_out.is_set():
            self._log.log(f"Command timed out after {self._timeout_s}s: {command}")

        result = ExecutionResult(
            command=command,
            exit_code=returncode,
            output_lines=tuple(lines),
            timed_out=timed_out.is_set(),
            raw_output=b"".join(chunks),
        )
        return self._finish(result)

    def _finish(self, result: ExecutionResult) -> ExecutionResult:
        if result.succeeded:
            return result

        self._log.log(f"Command failed: {result.command} (exit code {result.exit_code})", header_char="!")
        console = self._console or sys.stderr
        console.flush()
        binary = getattr(console, "buffer", None)
        if binary is not None:
            binary.write(result.raw_output)
            binary.flush()
        else:
            console.write(result.raw_output.decode("utf-8", errors="replace"))
            console.flush()
        return result
