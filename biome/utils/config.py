"""User configuration — XDG base directories and the YAML settings file."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from biome.sync.pipe import DEFAULT_MAX_BUFFER

APP_DIR_NAME = "biome"
SETTINGS_FILE_NAME = "config.yaml"


class ConfigError(Exception):
    """The settings file exists but could not be understood."""


def config_home() -> Path:
    value = os.environ.get("XDG_CONFIG_HOME", "")
    if value and os.path.isabs(value):
        return Path(value)
    return Path.home() / ".config"


def config_dirs() -> list[Path]:
    """Return the system configuration directories, most important first."""
    value = os.environ.get("XDG_CONFIG_DIRS", "") or "/etc/xdg"
    return [Path(d) for d in value.split(os.pathsep) if d and os.path.isabs(d)]


def cache_home() -> Path:
    value = os.environ.get("XDG_CACHE_HOME", "")
    if value and os.path.isabs(value):
        return Path(value)
    return Path.home() / ".cache"


def config_search_paths() -> list[Path]:
    """Return this application's configuration directories, least important first.

    Files read in this order let the user's own configuration override the
    system's.
    """
    dirs = list(reversed(config_dirs()))
    dirs.append(config_home())
    return [d / APP_DIR_NAME for d in dirs]


@dataclass
class Settings:
    """Settings read from ``config.yaml`` in the user configuration directory.

    Attributes:
        debug: Log at debug level without passing ``--debug``.
        ignore: Extra global ignore patterns, applied after the global
            ignore files.
        pipe_buffer: Bytes buffered between the bundler and the biome.
    """

    debug: bool = False
    ignore: list[str] = field(default_factory=list)
    pipe_buffer: int = DEFAULT_MAX_BUFFER

    @classmethod
    def load(cls, path: str | Path | None = None) -> Settings:
        """Load settings from path, defaulting to the user's settings file.

        A missing file yields the defaults.
        """
        if path is None:
            path = config_home() / APP_DIR_NAME / SETTINGS_FILE_NAME
        try:
            with open(path) as f:
                data = yaml.safe_load(f)
        except FileNotFoundError:
            return cls()
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"{path}: {e}") from e

        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise ConfigError(f"{path}: expected a mapping at the top level")

        settings = cls()
        debug = data.get("debug", settings.debug)
        if not isinstance(debug, bool):
            raise ConfigError(f"{path}: debug must be true or false")
        ignore = data.get("ignore", settings.ignore) or []
        if not isinstance(ignore, list) or not all(isinstance(p, str) for p in ignore):
            raise ConfigError(f"{path}: ignore must be a list of patterns")
        pipe_buffer = data.get("pipe_buffer", settings.pipe_buffer)
        if isinstance(pipe_buffer, bool) or not isinstance(pipe_buffer, int) or pipe_buffer <= 0:
            raise ConfigError(f"{path}: pipe_buffer must be a positive integer")
        return cls(debug=debug, ignore=ignore, pipe_buffer=pipe_buffer)
