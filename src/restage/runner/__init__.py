"""Shell command execution over staged files."""

from .command import (
    CommandInterrupted,
    Invocation,
    SpawnError,
    build_argv,
    build_command_line,
    run,
)

__all__ = [
    "CommandInterrupted",
    "Invocation",
    "SpawnError",
    "build_argv",
    "build_command_line",
    "run",
]
