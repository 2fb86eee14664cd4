"""Adapters — bindings for external processes.

Public re-exports for convenient access.
"""

from setup_macports.adapters.base import CommandError, CommandRunner, ExecResult
from setup_macports.adapters.mock import MockCommandRunner
from setup_macports.adapters.shell.command import ShellCommandRunner

__all__ = [
    "CommandError",
    "CommandRunner",
    "ExecResult",
    "MockCommandRunner",
    "ShellCommandRunner",
]
