"""Process spawning with captured or streamed output."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Protocol, Sequence, Tuple, Union
import os
import shlex
import subprocess


class CaptureMode(Enum):
    """How the child's standard streams are wired."""

    CAPTURED = "captured"
    STREAMED = "streamed"


@dataclass(frozen=True)
class Success:
    """Outcome of a command that exited with a success status.

    ``stdout`` is ``None`` when the output was streamed to the terminal.
    """

    code: int
    stdout: Optional[str] = None
    decode_failed: bool = False

    @property
    def failed(self) -> bool:
        return False

    @property
    def stderr(self) -> None:
        return None


@dataclass(frozen=True)
class Failure:
    """Outcome of a command that exited with a failure status.

    Both streams are ``None`` when the output was streamed to the terminal.
    """

    code: int
    stdout: Optional[str] = None
    stderr: Optional[str] = None
    decode_failed: bool = False

    @property
    def failed(self) -> bool:
        return True


Outcome = Union[Success, Failure]


def failed(outcome: Outcome) -> bool:
    """Return ``True`` when ``outcome`` is a :class:`Failure`."""
    return isinstance(outcome, Failure)


def code(outcome: Outcome) -> int:
    return outcome.code


def stdout(outcome: Outcome) -> Optional[str]:
    return outcome.stdout


def stderr(outcome: Outcome) -> Optional[str]:
    if isinstance(outcome, Failure):
        return outcome.stderr
    return None


class LaunchError(RuntimeError):
    """Raised when a command could not be started at all."""

    def __init__(self, command: Sequence[str], error: Exception, *, cwd: Path | None = None):
        message = f"Failed to execute `{format_command(command)}`"
        if cwd:
            message = f"{message} (cwd={cwd})"
        reason = getattr(error, "strerror", None) or str(error)
        super().__init__(f"{message}: {reason}")
        self.command = tuple(command)
        self.cwd = cwd


class RunnerConsole(Protocol):
    """Minimal console interface used for debug output."""

    def debug(self, message: str) -> None:
        ...


def format_command(command: Sequence[str]) -> str:
    return " ".join(shlex.quote(part) for part in command)


def exit_code(returncode: int) -> int:
    """Map a ``subprocess`` return code to the reported exit code.

    Negative return codes mean the child was killed by a signal and has no exit
    code of its own; those report 1, as a signal never counts as success.
    """
    if returncode < 0:
        return 1
    return returncode


def decode_stream(data: bytes | None) -> Tuple[str, bool]:
    """Decode captured bytes as UTF-8.

    Undecodable output becomes an empty string; the second item tells whether
    that happened.
    """
    if not data:
        return "", False
    try:
        return data.decode("utf-8"), False
    except UnicodeDecodeError:
        return "", True


class CommandRunner:
    """Abstract command runner interface."""

    def run(
        self,
        command: Sequence[str],
        *,
        mode: CaptureMode = CaptureMode.CAPTURED,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
    ) -> Outcome:
        raise NotImplementedError

    def format_command(self, command: Sequence[str]) -> str:
        return format_command(command)


class SubprocessCommandRunner(CommandRunner):
    """Command runner that executes commands via :mod:`subprocess`."""

    def __init__(self, console: RunnerConsole | None = None) -> None:
        self.console = console

    @staticmethod
    def _merge_environment(env: Mapping[str, str] | None) -> Dict[str, str] | None:
        if env is None:
            return None
        merged = os.environ.copy()
        merged.update(env)
        return merged

    def _debug(self, message: str) -> None:
        if self.console is not None:
            self.console.debug(message)

    def run(
        self,
        command: Sequence[str],
        *,
        mode: CaptureMode = CaptureMode.CAPTURED,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
    ) -> Outcome:
        command = list(command)
        self._debug(f"{self.format_command(command)} ({mode.value})")
        if mode is CaptureMode.STREAMED:
            return self._run_streamed(command, cwd=cwd, env=env)
        return self._run_captured(command, cwd=cwd, env=env)

    def _spawn(self, command: List[str], *, cwd: Path | None, env: Mapping[str, str] | None, **kwargs):
        # ValueError: subprocess rejects arguments or paths with embedded NUL bytes
        try:
            return subprocess.run(
                command,
                cwd=str(cwd) if cwd else None,
                env=self._merge_environment(env),
                check=False,
                **kwargs,
            )
        except (OSError, ValueError) as e:
            raise LaunchError(command, e, cwd=cwd) from e

    def _run_captured(self, command: List[str], *, cwd: Path | None, env: Mapping[str, str] | None) -> Outcome:
        process = self._spawn(
            command,
            cwd=cwd,
            env=env,
            stdin=subprocess.DEVNULL,
            capture_output=True,
        )
        out, out_lossy = decode_stream(process.stdout)
        err, err_lossy = decode_stream(process.stderr)
        lossy = out_lossy or err_lossy
        if lossy:
            self._debug(f"Output of `{self.format_command(command)}` was not valid UTF-8; replaced with empty text")

        if process.returncode == 0:
            return Success(code=exit_code(process.returncode), stdout=out, decode_failed=lossy)
        return Failure(code=exit_code(process.returncode), stdout=out, stderr=err, decode_failed=lossy)

    def _run_streamed(self, command: List[str], *, cwd: Path | None, env: Mapping[str, str] | None) -> Outcome:
        process = self._spawn(command, cwd=cwd, env=env)
        if process.returncode == 0:
            return Success(code=exit_code(process.returncode))
        return Failure(code=exit_code(process.returncode))


@dataclass(slots=True)
class RecordedCommand:
    command: List[str]
    cwd: str | None
    env: Dict[str, str]
    mode: CaptureMode


class RecordingCommandRunner(CommandRunner):
    """Command runner that records commands instead of executing them."""

    def __init__(self) -> None:
        self.commands: List[RecordedCommand] = []

    def run(
        self,
        command: Sequence[str],
        *,
        mode: CaptureMode = CaptureMode.CAPTURED,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
    ) -> Outcome:
        self.commands.append(
            RecordedCommand(
                command=list(command),
                cwd=str(cwd) if cwd else None,
                env=dict(env) if env else {},
                mode=mode,
            )
        )
        if mode is CaptureMode.STREAMED:
            return Success(code=0)
        return Success(code=0, stdout="")

    def iter_formatted(self, *, workspace: Path | None = None) -> Iterable[str]:
        default_cwd = str(workspace) if workspace else None
        for record in self.commands:
            cwd = record.cwd or default_cwd
            parts: List[str] = ["[dry-run]"]
            if cwd:
                parts.append(f"(cwd={cwd})")
            parts.append(self.format_command(record.command))
            yield " ".join(parts)
