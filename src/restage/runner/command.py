"""Run the user command through a shell with inherited standard streams."""

from __future__ import annotations

import contextlib
import shlex
import shutil
import signal
import subprocess
import threading
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from pathlib import Path
from types import FrameType

FORWARDED_SIGNALS: tuple[signal.Signals, ...] = tuple(
    getattr(signal, name) for name in ("SIGTERM", "SIGHUP") if hasattr(signal, name)
)
CANCEL_SIGNALS: frozenset[int] = frozenset(
    int(getattr(signal, name))
    for name in ("SIGINT", "SIGTERM", "SIGHUP", "SIGKILL", "SIGQUIT")
    if hasattr(signal, name)
)


@dataclass(slots=True, frozen=True)
class Invocation:
    """Resolved shell, command tokens and optional filter for one run."""

    shell: str
    command_tokens: tuple[str, ...]
    filter: str | None = None


class SpawnError(Exception):
    """Raised when the shell executable cannot be located or started."""

    def __init__(self, reason: str, hint: str = "") -> None:
        super().__init__(reason)
        self.reason = reason
        self.hint = hint


class CommandInterrupted(Exception):
    """Raised when the run was cancelled by a termination signal."""

    def __init__(self, signum: int) -> None:
        try:
            name = signal.Signals(signum).name
        except ValueError:
            name = f"signal {signum}"
        super().__init__(f"Command interrupted by {name}.")
        self.signum = signum
        self.signal_name = name

    @property
    def exit_code(self) -> int:
        """Return the conventional shell exit status for the signal."""
        return 128 + self.signum


def build_command_line(invocation: Invocation, files: Sequence[str]) -> str:
    """Join command tokens verbatim, then append each file path quoted on its own."""
    return " ".join([*invocation.command_tokens, *(shlex.quote(path) for path in files)])


def build_argv(invocation: Invocation, files: Sequence[str]) -> list[str]:
    """Return the argument vector handed to the process spawner."""
    return [invocation.shell, "-c", build_command_line(invocation, files)]


def run(invocation: Invocation, files: Sequence[str], cwd: Path | None = None) -> int:
    """Run the command over files and return its exit status.

    An empty file list still runs the command. A non-zero status is returned,
    not raised. Standard input, output and error are inherited.
    """
    shell_path = shutil.which(invocation.shell)
    if shell_path is None:
        raise SpawnError(
            reason=f"Shell {invocation.shell!r} was not found or is not executable.",
            hint="Pass --shell with the path to an executable shell, or set $SHELL.",
        )
    argv = build_argv(invocation, files)
    argv[0] = shell_path
    try:
        process = subprocess.Popen(argv, cwd=cwd)
    except OSError as error:
        raise SpawnError(
            reason=f"Could not start shell {shell_path!r}: {error.strerror or error}.",
            hint="Check that the shell is executable.",
        ) from error

    received: list[int] = []
    with _forward_signals(process, received):
        try:
            returncode = process.wait()
        except KeyboardInterrupt:
            # The terminal already delivered SIGINT to the whole process group.
            received.append(int(signal.SIGINT))
            returncode = _wait_after_interrupt(process)
    if received:
        raise CommandInterrupted(received[0])
    if returncode < 0:
        if -returncode in CANCEL_SIGNALS:
            raise CommandInterrupted(-returncode)
        return 128 - returncode
    return returncode


def _wait_after_interrupt(process: subprocess.Popen[bytes]) -> int:
    try:
        return process.wait()
    except KeyboardInterrupt:
        process.kill()
        return process.wait()


@contextlib.contextmanager
def _forward_signals(process: subprocess.Popen[bytes], received: list[int]) -> Iterator[None]:
    """Relay termination signals to the child while it runs."""
    if threading.current_thread() is not threading.main_thread():
        yield
        return

    def relay(signum: int, _frame: FrameType | None) -> None:
        received.append(signum)
        if process.poll() is None:
            process.send_signal(signum)

    previous = {signum: signal.signal(signum, relay) for signum in FORWARDED_SIGNALS}
    try:
        yield
    finally:
        for signum, handler in previous.items():
            signal.signal(signum, handler if handler is not None else signal.SIG_DFL)
