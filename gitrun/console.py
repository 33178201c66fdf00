"""
Levelled console output for gitrun.
"""
import sys
from typing import Optional, TextIO


class Console:
    """Console output with a configurable log level.

    Levels: none < error < info < debug. Errors and debug lines go to stderr
    so they never mix with git output relayed on stdout.
    """

    LEVELS = {
        "none": 0,
        "error": 1,
        "info": 2,
        "debug": 3,
    }

    def __init__(self, level: str = "none", dry_run: bool = False):
        self.level_name = level
        self.level = self.LEVELS.get(level, 0)
        self.dry_run = dry_run

    @classmethod
    def from_flags(cls, level: str, *, verbose: bool = False, quiet: bool = False, dry_run: bool = False) -> "Console":
        """Build a console where ``verbose`` / ``quiet`` override ``level``."""
        if verbose:
            level = "debug"
        elif quiet:
            level = "none"
        return cls(level, dry_run=dry_run)

    def _emit(self, threshold: str, prefix: str, message: str, stream: Optional[TextIO] = None) -> None:
        if self.level >= self.LEVELS[threshold]:
            print(f"[{prefix}] {message}", file=stream or sys.stdout)

    def error(self, message: str) -> None:
        self._emit("error", "ERROR", message, sys.stderr)

    def info(self, message: str) -> None:
        self._emit("info", "INFO", message)

    def debug(self, message: str) -> None:
        self._emit("debug", "DEBUG", message, sys.stderr)

    def dry(self, message: str) -> None:
        if self.dry_run:
            print(f"[DRY] {message}")
