"""Git CLI invocation."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Iterable, Mapping, Optional, Tuple, Union

from .command_runner import (
    CaptureMode,
    CommandRunner,
    Outcome,
    SubprocessCommandRunner,
)

GIT = "git"

_RUNNER = SubprocessCommandRunner()


class Git:
    """
    A single git invocation: ``git`` followed by the stored arguments.

    Arguments are kept verbatim and in order. Nothing is validated, quoted or
    escaped; each item is passed to the child process as one argv entry.

    Example:
        >>> outcome = Git(["log", "--shortstat"]).run()
        >>> print(outcome.stdout)
    """

    def __init__(
        self,
        items: Iterable[Any] = (),
        *,
        runner: Optional[CommandRunner] = None,
        cwd: Path | str | None = None,
        env: Optional[Mapping[str, str]] = None,
    ) -> None:
        if isinstance(items, (str, bytes)):
            raise TypeError(
                f"Git() takes a sequence of arguments, not {type(items).__name__}; "
                "use Git.from_phrase() to split a single string"
            )
        self._arguments: Tuple[str, ...] = tuple(str(item) for item in items)
        self._runner = runner or _RUNNER
        self.cwd = Path(cwd) if cwd else None
        self.env = dict(env) if env else None

    @classmethod
    def from_phrase(cls, phrase: str, **kwargs: Any) -> "Git":
        """
        Build an invocation from a single string split on whitespace.

        Quoting is not understood: an argument that itself contains spaces
        cannot be expressed this way and needs the list form instead.
        """
        return cls(phrase.split(), **kwargs)

    @property
    def arguments(self) -> Tuple[str, ...]:
        return self._arguments

    @property
    def command(self) -> Tuple[str, ...]:
        """The full argv, including the ``git`` prefix."""
        return (GIT,) + self._arguments

    def _invoke(self, mode: CaptureMode) -> Outcome:
        return self._runner.run(list(self.command), mode=mode, cwd=self.cwd, env=self.env)

    def run(self) -> Outcome:
        """Run and capture stdout/stderr as text."""
        return self._invoke(CaptureMode.CAPTURED)

    def stream(self) -> Outcome:
        """Run with stdin, stdout and stderr inherited from this process."""
        return self._invoke(CaptureMode.STREAMED)

    def __repr__(self) -> str:
        return f"Git({list(self._arguments)!r})"


def _as_git(value: Union[str, Iterable[Any]], **kwargs: Any) -> Git:
    if isinstance(value, str):
        return Git.from_phrase(value, **kwargs)
    return Git(value, **kwargs)


def run_git(value: Union[str, Iterable[Any]], **kwargs: Any) -> Outcome:
    """
    Run git directly from a phrase or a token list, capturing output.

    ``run_git("log --shortstat")`` is the same as
    ``Git(["log", "--shortstat"]).run()``.
    """
    return _as_git(value, **kwargs).run()


def stream_git(value: Union[str, Iterable[Any]], **kwargs: Any) -> Outcome:
    """Like :func:`run_git` but with output going straight to the terminal."""
    return _as_git(value, **kwargs).stream()
