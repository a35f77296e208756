"""
ratiosplit configuration

Settings are read once at startup from an INI file with a [main] section:

    [main]
    ratio = 0.33
    log_file = ~/.config/i3/ratiosplit.log
    log_file_level = info
    log_console_level = off
"""

from __future__ import annotations
import configparser
import logging
import os
from dataclasses import dataclass, fields
from typing import Callable, Dict, Optional

from .errors import ConfigError
from .log import OFF, parse_level


DEFAULT_CONFIG_PATH = "~/.config/i3/ratiosplit.ini"
DEFAULT_LOG_PATH = "~/.config/i3/ratiosplit.log"
SECTION = "main"


def expand_path(path: str) -> str:
    return os.path.expanduser(os.path.expandvars(path))


@dataclass(frozen=True)
class RatioSplitConfig:
    """ratiosplit configuration."""

    # Fraction of the parent the new window takes along the split axis
    ratio: float = 0.33

    # Logging
    log_file: str = DEFAULT_LOG_PATH
    log_file_level: int = logging.INFO
    log_console_level: int = OFF

    # IPC socket, discovered from I3SOCK/SWAYSOCK when unset
    socket_path: Optional[str] = None
    command_timeout: float = 5.0

    # Reconnect backoff: delay doubles per attempt up to the max
    reconnect_attempts: int = 5
    reconnect_delay: float = 0.5
    reconnect_max_delay: float = 8.0

    def __post_init__(self):
        """Validate settings."""
        if not 0.0 < self.ratio < 1.0:
            raise ConfigError(f"ratio must be between 0 and 1 (exclusive), got {self.ratio}")
        if self.command_timeout <= 0:
            raise ConfigError(f"command_timeout must be positive, got {self.command_timeout}")
        if self.reconnect_attempts < 0:
            raise ConfigError(
                f"reconnect_attempts must not be negative, got {self.reconnect_attempts}"
            )
        if self.reconnect_delay < 0 or self.reconnect_max_delay < self.reconnect_delay:
            raise ConfigError(
                "reconnect_delay must be >= 0 and <= reconnect_max_delay, got "
                f"{self.reconnect_delay} and {self.reconnect_max_delay}"
            )


# Key -> converter for every setting the [main] section may hold
_CONVERTERS: Dict[str, Callable[[str], object]] = {
    "ratio": float,
    "log_file": expand_path,
    "log_file_level": parse_level,
    "log_console_level": parse_level,
    "socket_path": expand_path,
    "command_timeout": float,
    "reconnect_attempts": int,
    "reconnect_delay": float,
    "reconnect_max_delay": float,
}


def config_path(path: Optional[str] = None) -> str:
    """The config file to read: the given path, or the default location."""
    return expand_path(path if path is not None else DEFAULT_CONFIG_PATH)


def load_config(path: Optional[str] = None) -> RatioSplitConfig:
    """Load the configuration file.

    Without an explicit path the default location is used, and a missing
    file there means all defaults. An explicitly given file must exist.

    Args:
        path: Path to an INI file, or None for the default location

    Raises:
        ConfigError: If the file cannot be read or holds an invalid value
    """
    explicit = path is not None
    path = config_path(path)

    if not os.path.exists(path):
        if explicit:
            raise ConfigError(f"Config file not found: {path}")
        return RatioSplitConfig(log_file=expand_path(DEFAULT_LOG_PATH))

    parser = configparser.ConfigParser(interpolation=None)
    try:
        with open(path, encoding="utf-8") as f:
            parser.read_file(f)
    except (OSError, UnicodeDecodeError, configparser.Error) as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e

    return config_from_parser(parser, source=path)


def config_from_parser(
    parser: configparser.ConfigParser, source: str = "<config>"
) -> RatioSplitConfig:
    """Build a config from a parsed INI file."""
    values: Dict[str, object] = {"log_file": expand_path(DEFAULT_LOG_PATH)}
    if not parser.has_section(SECTION):
        return RatioSplitConfig(**values)

    known = {f.name for f in fields(RatioSplitConfig)}
    for key, raw in parser.items(SECTION):
        if key not in known:
            raise ConfigError(f"{source}: unknown setting {key!r} in [{SECTION}]")
        raw = raw.strip()
        if key == "socket_path" and not raw:
            continue
        try:
            values[key] = _CONVERTERS[key](raw)
        except ValueError as e:
            raise ConfigError(f"{source}: invalid value for {key!r}: {e}") from e

    return RatioSplitConfig(**values)
