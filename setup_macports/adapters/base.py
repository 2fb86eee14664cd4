"""
Adapter base — the contract between the setup services and processes.

Services never call ``subprocess`` themselves: they hand a command to a
CommandRunner and get an ExecResult back. A non-zero exit code is data,
not an exception; the caller decides whether it is fatal.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Literal

from pydantic import BaseModel

StderrLevel = Literal["error", "warning", "info", "debug"]


class ExecResult(BaseModel):
    """Outcome of one process invocation."""

    command: list[str]
    exit_code: int = 0
    stdout: str = ""
    stderr: str = ""
    duration_ms: int = 0

    @property
    def ok(self) -> bool:
        """Whether the process exited with status 0."""
        return self.exit_code == 0

    def describe_failure(self) -> str:
        detail = (self.stderr or self.stdout).strip()
        return f"{' '.join(self.command)} failed with exit code {self.exit_code}: {detail}"


class CommandError(RuntimeError):
    """Raised by callers that treat a non-zero exit as fatal."""

    def __init__(self, result: ExecResult):
        super().__init__(result.describe_failure())
        self.result = result


class CommandRunner(ABC):
    """Abstract process runner.

    To create a new runner:
        1. Subclass CommandRunner
        2. Implement execute
    """

    @abstractmethod
    def execute(
        self,
        command: str,
        args: list[str] | None = None,
        *,
        silent: bool = False,
        cwd: str | None = None,
        stderr_level: StderrLevel = "error",
    ) -> ExecResult:
        """Run ``command`` with ``args`` and wait for it.

        MUST NOT raise for a non-zero exit code; failures to even start
        the process are reported as exit code 127.
        """

    def execute_sudo(
        self,
        command: str,
        args: list[str] | None = None,
        **kwargs,
    ) -> ExecResult:
        """Run through ``sudo -n``: fails instead of prompting for a password."""
        return self.execute("sudo", ["-n", command, *(args or [])], **kwargs)

    def capture(self, command: str, args: list[str] | None = None, **kwargs) -> str:
        """Run silently and return stripped stdout.

        Raises:
            CommandError: On a non-zero exit code.
        """
        kwargs["silent"] = True
        result = self.execute(command, args, **kwargs)
        if not result.ok:
            raise CommandError(result)
        return result.stdout.strip()

    def check(self, command: str, args: list[str] | None = None, **kwargs) -> ExecResult:
        """Run and raise CommandError on a non-zero exit code."""
        result = self.execute(command, args, **kwargs)
        if not result.ok:
            raise CommandError(result)
        return result

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}>"
