"""CLI entry point for gitrun."""
import argparse
import sys
from pathlib import Path
from typing import Dict, List, Optional

from .command_runner import (
    CaptureMode,
    CommandRunner,
    LaunchError,
    RecordingCommandRunner,
    SubprocessCommandRunner,
)
from .config_loader import ConfigError, load_settings
from .console import Console
from .git import Git

EXIT_LAUNCH_FAILED = 127
EXIT_USAGE = 2


def _parse_env(pairs: List[str]) -> Dict[str, str]:
    env: Dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise ValueError(f"Invalid environment override '{pair}', expected KEY=VALUE")
        env[key] = value
    return env


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gitrun",
        allow_abbrev=False,
        description="Run git and report its outcome",
    )
    parser.add_argument(
        "-c", "--config", action="append", default=[], type=Path,
        help="Extra configuration file (may be repeated, later files win)",
    )
    mode_group = parser.add_mutually_exclusive_group()
    mode_group.add_argument(
        "--stream", dest="mode", action="store_const", const=CaptureMode.STREAMED,
        help="Let git write straight to this terminal",
    )
    mode_group.add_argument(
        "--capture", dest="mode", action="store_const", const=CaptureMode.CAPTURED,
        help="Capture git output and print it afterwards (default)",
    )
    parser.add_argument(
        "--dry-run", action="store_true", default=None,
        help="Print the command instead of running it",
    )
    level_group = parser.add_mutually_exclusive_group()
    level_group.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug output"
    )
    level_group.add_argument(
        "-q", "--quiet", action="store_true", help="Suppress console output"
    )
    parser.add_argument(
        "-C", dest="cwd", type=Path, help="Run git in this directory"
    )
    parser.add_argument(
        "-e", "--env", action="append", default=[], metavar="KEY=VALUE",
        help="Environment override for the git process (may be repeated)",
    )
    parser.add_argument(
        "--phrase",
        help="Whole git command line as one string, split on whitespace",
    )
    parser.add_argument(
        "args", nargs=argparse.REMAINDER,
        help="Arguments passed to git verbatim (use -- to separate)",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    git_args = list(args.args)
    if git_args and git_args[0] == "--":
        git_args = git_args[1:]
    if args.phrase is not None and git_args:
        print("Error: --phrase cannot be combined with positional arguments", file=sys.stderr)
        return EXIT_USAGE

    try:
        settings = load_settings(args.cwd, extra=args.config)
        env_overrides = _parse_env(args.env)
    except (ConfigError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_USAGE

    dry_run = settings.dry_run if args.dry_run is None else args.dry_run
    console = Console.from_flags(
        settings.log_level, verbose=args.verbose, quiet=args.quiet, dry_run=dry_run
    )
    for source in settings.sources:
        console.debug(f"Loaded configuration from {source}")

    mode = args.mode or settings.mode
    cwd = args.cwd or settings.cwd
    env = {**settings.env, **env_overrides} or None

    runner: CommandRunner
    if dry_run:
        runner = RecordingCommandRunner()
    else:
        runner = SubprocessCommandRunner(console)

    if args.phrase is not None:
        git = Git.from_phrase(args.phrase, runner=runner, cwd=cwd, env=env)
    else:
        git = Git(git_args, runner=runner, cwd=cwd, env=env)

    try:
        outcome = git.stream() if mode is CaptureMode.STREAMED else git.run()
    except LaunchError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_LAUNCH_FAILED

    if isinstance(runner, RecordingCommandRunner):
        for line in runner.iter_formatted():
            console.dry(line)
        return 0

    if outcome.stdout:
        sys.stdout.write(outcome.stdout)
    if outcome.stderr:
        sys.stderr.write(outcome.stderr)
    if outcome.decode_failed:
        console.error("git output was not valid UTF-8 and was discarded")
    if outcome.failed:
        console.info(f"git exited with code {outcome.code}")
    return outcome.code


if __name__ == "__main__":
    sys.exit(main())
