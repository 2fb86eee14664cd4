"""
Shell command runner — the one place processes are started.

Output is captured; unless ``silent`` is set each line is also echoed
to the log so it lands in the job log. Many tools (git among them)
write progress to stderr, so the level stderr is logged at is chosen
per call.
"""

from __future__ import annotations

import logging
import subprocess
import time

from setup_macports.adapters.base import CommandRunner, ExecResult, StderrLevel

logger = logging.getLogger(__name__)

_LEVELS = {
    "error": logging.ERROR,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}


class ShellCommandRunner(CommandRunner):
    """Run commands with ``subprocess.run`` (no shell, argv list)."""

    def __init__(self, timeout: int | None = None):
        self._timeout = timeout

    def execute(
        self,
        command: str,
        args: list[str] | None = None,
        *,
        silent: bool = False,
        cwd: str | None = None,
        stderr_level: StderrLevel = "error",
    ) -> ExecResult:
        argv = [command, *(args or [])]
        logger.debug("Executing: %s (cwd=%s)", " ".join(argv), cwd)
        start = time.monotonic()

        try:
            proc = subprocess.run(
                argv,
                cwd=cwd,
                capture_output=True,
                text=True,
                timeout=self._timeout,
            )
        except subprocess.TimeoutExpired:
            logger.debug("Command timed out after %ss: %s", self._timeout, command)
            return ExecResult(
                command=argv,
                exit_code=124,
                stderr=f"Command timed out after {self._timeout}s",
                duration_ms=int((time.monotonic() - start) * 1000),
            )
        except OSError as e:
            logger.debug("Command could not start: %s", e)
            return ExecResult(command=argv, exit_code=127, stderr=str(e))

        elapsed_ms = int((time.monotonic() - start) * 1000)

        if not silent:
            for line in proc.stdout.splitlines():
                logger.info(line)
            for line in proc.stderr.splitlines():
                logger.log(_LEVELS[stderr_level], line)

        if proc.returncode != 0:
            logger.debug("Command failed (exit %d): %s", proc.returncode, " ".join(argv))

        return ExecResult(
            command=argv,
            exit_code=proc.returncode,
            stdout=proc.stdout,
            stderr=proc.stderr,
            duration_ms=elapsed_ms,
        )
