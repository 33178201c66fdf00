"""Helpers for locating and loading gitrun defaults."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

import json
import os
import tomllib

import pygit2
import yaml

from .command_runner import CaptureMode
from .console import Console


ConfigLoader = Callable[[Any], Mapping[str, Any]]

FILE_LOADERS: Dict[str, ConfigLoader] = {
    ".toml": lambda stream: tomllib.load(stream),
    ".json": lambda stream: json.load(stream),
    ".yaml": lambda stream: yaml.safe_load(stream),
    ".yml": lambda stream: yaml.safe_load(stream),
}
"""Mapping of file suffixes to loader callables."""

USER_CONFIG_STEM = "config"
REPO_CONFIG_STEM = ".gitrun"

KNOWN_KEYS = frozenset({"mode", "log_level", "dry_run", "cwd", "env"})


class ConfigError(RuntimeError):
    """Raised when a configuration file cannot be used."""

    def __init__(self, message: str, *, path: Path | None = None):
        if path is not None:
            message = f"{path}: {message}"
        super().__init__(message)
        self.path = path


@dataclass(frozen=True)
class RunnerSettings:
    """Defaults applied to invocations made through the CLI."""

    mode: CaptureMode = CaptureMode.CAPTURED
    log_level: str = "error"
    dry_run: bool = False
    cwd: Optional[Path] = None
    env: Mapping[str, str] = field(default_factory=dict)
    sources: tuple[Path, ...] = ()


def load_config_file(path: Path) -> Mapping[str, Any]:
    """Load and decode a configuration mapping from ``path``."""

    suffix = path.suffix.lower()
    loader = FILE_LOADERS.get(suffix)
    if loader is None:
        supported = ", ".join(sorted(FILE_LOADERS)) or "<none>"
        raise ConfigError(
            f"Unsupported configuration file extension: {suffix}. Supported: {supported}", path=path
        )

    mode = "rb" if suffix == ".toml" else "r"
    kwargs: Dict[str, Any] = {}
    if mode == "r":
        kwargs["encoding"] = "utf-8"

    try:
        with path.open(mode, **kwargs) as handle:
            data = loader(handle)
    except OSError as e:
        raise ConfigError(f"Cannot read configuration: {e}", path=path) from e
    except (tomllib.TOMLDecodeError, json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigError(f"Invalid configuration: {e}", path=path) from e

    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise ConfigError("Configuration must contain a mapping at the root", path=path)

    return data


def find_config_file(directory: Path, stem: str) -> Optional[Path]:
    """Return the single ``stem.<ext>`` file in ``directory``, if any."""

    found: List[Path] = []
    for suffix in FILE_LOADERS:
        candidate = directory / f"{stem}{suffix}"
        if candidate.is_file():
            found.append(candidate)

    if len(found) > 1:
        names = "', '".join(p.name for p in found)
        raise ConfigError(
            f"Multiple configuration files found for '{stem}': '{names}'. "
            "Only one format per configuration entry is allowed.",
            path=directory,
        )
    return found[0] if found else None


def merge_mappings(base: Mapping[str, Any], overlay: Mapping[str, Any]) -> Dict[str, Any]:
    """Deep merge two mapping objects."""

    result: Dict[str, Any] = dict(base)
    for key, value in overlay.items():
        existing = result.get(key)
        if isinstance(existing, Mapping) and isinstance(value, Mapping):
            result[key] = merge_mappings(existing, value)
        else:
            result[key] = value
    return result


def user_config_dir() -> Path:
    base = os.environ.get("XDG_CONFIG_HOME")
    root = Path(base) if base else Path.home() / ".config"
    return root / "gitrun"


def find_repository_root(start: Path) -> Optional[Path]:
    """Return the work tree root of the repository containing ``start``."""

    try:
        git_dir = pygit2.discover_repository(str(start))
        if not git_dir:
            return None
        repo = pygit2.Repository(git_dir)
    except pygit2.GitError:
        return None
    # Bare repositories have no work tree
    if repo.is_bare or not repo.workdir:
        return None
    return Path(repo.workdir)


def default_config_paths(start: Path) -> List[Path]:
    """Return existing user and repository configuration files, lowest priority first."""

    paths: List[Path] = []
    user_dir = user_config_dir()
    if user_dir.is_dir():
        user_file = find_config_file(user_dir, USER_CONFIG_STEM)
        if user_file:
            paths.append(user_file)

    repo_root = find_repository_root(start) or start
    repo_file = find_config_file(repo_root, REPO_CONFIG_STEM)
    if repo_file:
        paths.append(repo_file)
    return paths


def _parse_settings(
    data: Mapping[str, Any], sources: tuple[Path, ...], *, path: Path | None = None
) -> RunnerSettings:
    unknown = sorted(set(data) - KNOWN_KEYS)
    if unknown:
        raise ConfigError(f"Unknown configuration keys: {', '.join(unknown)}", path=path)

    raw_mode = data.get("mode", CaptureMode.CAPTURED.value)
    try:
        mode = CaptureMode(raw_mode)
    except ValueError:
        choices = ", ".join(m.value for m in CaptureMode)
        raise ConfigError(f"mode must be one of: {choices} (got {raw_mode!r})", path=path)

    log_level = data.get("log_level", "error")
    if log_level not in Console.LEVELS:
        choices = ", ".join(Console.LEVELS)
        raise ConfigError(f"log_level must be one of: {choices} (got {log_level!r})", path=path)

    dry_run = data.get("dry_run", False)
    if not isinstance(dry_run, bool):
        raise ConfigError("dry_run must be a boolean", path=path)

    cwd = data.get("cwd")
    if cwd is not None and not isinstance(cwd, str):
        raise ConfigError("cwd must be a string", path=path)

    env = data.get("env", {})
    if not isinstance(env, Mapping) or not all(
        isinstance(k, str) and isinstance(v, str) for k, v in env.items()
    ):
        raise ConfigError("env must be a mapping of strings to strings", path=path)

    return RunnerSettings(
        mode=mode,
        log_level=log_level,
        dry_run=dry_run,
        cwd=Path(cwd).expanduser() if cwd else None,
        env=dict(env),
        sources=sources,
    )


def load_settings(
    start: Path | None = None, *, extra: Iterable[Path] = ()
) -> RunnerSettings:
    """
    Load settings from the user file, the repository file and ``extra`` files.

    Later files override earlier ones.
    """
    start = (start or Path.cwd()).resolve()
    paths = default_config_paths(start) + [Path(p) for p in extra]

    merged: Dict[str, Any] = {}
    for path in paths:
        if not path.is_file():
            raise ConfigError("Configuration file not found", path=path)
        data = dict(load_config_file(path))
        _parse_settings(data, (path,), path=path)
        cwd = data.get("cwd")
        if cwd:
            # Relative to the declaring file
            data["cwd"] = str(path.parent.resolve() / Path(cwd).expanduser())
        merged = merge_mappings(merged, data)

    return _parse_settings(merged, tuple(paths))
