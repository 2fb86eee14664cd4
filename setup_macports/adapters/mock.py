"""
Mock command runner — test double for every process the setup starts.

By default every command succeeds with empty output. Individual
commands can be given canned results, matched on the command name and
optionally on the first argument.
"""

from __future__ import annotations

from setup_macports.adapters.base import CommandRunner, ExecResult, StderrLevel


class MockCommandRunner(CommandRunner):
    """Record calls, return configured results."""

    def __init__(self, default_stdout: str = ""):
        self._default_stdout = default_stdout
        self._responses: dict[tuple[str, ...], ExecResult] = {}
        self._call_log: list[dict] = []

    @property
    def call_log(self) -> list[dict]:
        """Every call as ``{"command", "args", "silent", "cwd"}``."""
        return self._call_log

    @property
    def call_count(self) -> int:
        return len(self._call_log)

    @property
    def commands(self) -> list[list[str]]:
        """Full argv of every call, in order."""
        return [[c["command"], *c["args"]] for c in self._call_log]

    def set_response(
        self,
        command: str,
        *,
        first_arg: str | None = None,
        exit_code: int = 0,
        stdout: str = "",
        stderr: str = "",
    ) -> None:
        key = (command,) if first_arg is None else (command, first_arg)
        self._responses[key] = ExecResult(
            command=list(key),
            exit_code=exit_code,
            stdout=stdout,
            stderr=stderr,
        )

    def set_failure(self, command: str, *, first_arg: str | None = None, error: str = "Mock failure") -> None:
        self.set_response(command, first_arg=first_arg, exit_code=1, stderr=error)

    def execute(
        self,
        command: str,
        args: list[str] | None = None,
        *,
        silent: bool = False,
        cwd: str | None = None,
        stderr_level: StderrLevel = "error",
    ) -> ExecResult:
        args = list(args or [])
        self._call_log.append(
            {"command": command, "args": args, "silent": silent, "cwd": cwd}
        )

        candidates = []
        if args:
            candidates.append((command, args[0]))
        candidates.append((command,))
        for key in candidates:
            if key in self._responses:
                canned = self._responses[key]
                return canned.model_copy(update={"command": [command, *args]})

        return ExecResult(command=[command, *args], stdout=self._default_stdout)

    def reset(self) -> None:
        self._call_log.clear()
