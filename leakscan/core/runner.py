from __future__ import annotations

import logging
import os
import signal
import subprocess
import time
from dataclasses import dataclass
from typing import List, Optional, Sequence

from .config import DEFAULT_LOGGER_NAME
from .errors import ProcessSpawnFailed

TIMEOUT_EXIT_CODE = 124
DRAIN_TIMEOUT_SECONDS = 5.0


@dataclass
class ProcessOutput:
    stdout: str
    stderr: str
    exit_code: int
    timed_out: bool = False
    duration: float = 0.0

    @property
    def combined(self) -> str:
        if self.stderr:
            return f"{self.stdout}\nSTDERR:\n{self.stderr}"
        return self.stdout


class ScanProcessRunner:
    """Runs one scanner invocation with a hard wall-clock deadline.

    The child is started from an argument vector (no shell). When the deadline
    passes it is killed and reaped before ``run`` returns, and whatever it had
    written so far is still handed back for parsing.
    """

    def __init__(self, *, logger: Optional[logging.Logger] = None) -> None:
        base_logger = logger or logging.getLogger(DEFAULT_LOGGER_NAME)
        self.logger = base_logger.getChild("runner")

    def run(
        self,
        executable: str,
        args: Sequence[str],
        paths: Sequence[str] = (),
        timeout: float = 120.0,
    ) -> ProcessOutput:
        cmd: List[str] = [executable, *args, *paths]
        self.logger.info("Running %s with %d argument(s) and %d path(s)", executable, len(args), len(paths))
        start = time.monotonic()
        try:
            proc = subprocess.Popen(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
                start_new_session=True,
            )
        except OSError as exc:
            raise ProcessSpawnFailed(executable, str(exc)) from exc

        with proc:
            try:
                stdout, stderr = proc.communicate(timeout=timeout)
            except subprocess.TimeoutExpired:
                self._kill_tree(proc)
                try:
                    stdout, stderr = proc.communicate(timeout=DRAIN_TIMEOUT_SECONDS)
                except subprocess.TimeoutExpired:
                    self.logger.warning("Scanner output still open %gs after kill, dropping it", DRAIN_TIMEOUT_SECONDS)
                    stdout, stderr = "", ""
                duration = time.monotonic() - start
                self.logger.warning("Scanner killed after %.1fs (timeout %gs)", duration, timeout)
                return ProcessOutput(
                    stdout=stdout or "",
                    stderr=(stderr or "") + f"\nExecution timed out after {timeout:g}s",
                    exit_code=TIMEOUT_EXIT_CODE,
                    timed_out=True,
                    duration=duration,
                )

        duration = time.monotonic() - start
        self.logger.info("Scanner exited with code %s in %.2fs", proc.returncode, duration)
        return ProcessOutput(
            stdout=stdout or "",
            stderr=stderr or "",
            exit_code=proc.returncode,
            duration=duration,
        )

    def _kill_tree(self, proc: subprocess.Popen) -> None:
        # the child leads its own session, so its group holds any helpers it spawned
        if hasattr(os, "killpg"):
            try:
                os.killpg(proc.pid, signal.SIGKILL)
                return
            except ProcessLookupError:
                return
            except OSError as exc:
                self.logger.debug("killpg failed for %s: %s", proc.pid, exc)
        proc.kill()
