"""Run git as a child process and report the outcome."""

from .command_runner import (
    CaptureMode,
    CommandRunner,
    Failure,
    LaunchError,
    Outcome,
    RecordedCommand,
    RecordingCommandRunner,
    SubprocessCommandRunner,
    Success,
    code,
    failed,
    stderr,
    stdout,
)
from .config_loader import ConfigError, RunnerSettings, load_settings
from .console import Console
from .git import GIT, Git, run_git, stream_git

__all__ = [
    "CaptureMode",
    "CommandRunner",
    "Failure",
    "LaunchError",
    "Outcome",
    "RecordedCommand",
    "RecordingCommandRunner",
    "SubprocessCommandRunner",
    "Success",
    "code",
    "failed",
    "stderr",
    "stdout",
    "ConfigError",
    "RunnerSettings",
    "load_settings",
    "Console",
    "GIT",
    "Git",
    "run_git",
    "stream_git",
]
