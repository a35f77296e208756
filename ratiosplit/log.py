"""
Logging setup

Configures the root logger with a file handler and a console handler, each
filtered at its own level. Level names follow the config file: off, error,
warn, info, debug, trace.
"""

from __future__ import annotations
import logging
import os
import sys
from typing import TYPE_CHECKING, List

if TYPE_CHECKING:
    from .config import RatioSplitConfig


TRACE = 5
logging.addLevelName(TRACE, "TRACE")

# Above CRITICAL: a handler at this level never emits
OFF = logging.CRITICAL + 10

LEVELS = {
    "off": OFF,
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
    "trace": TRACE,
}

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def parse_level(name: str) -> int:
    """Map a level name to a logging level.

    Raises:
        ValueError: If the name is not a known level
    """
    try:
        return LEVELS[name.strip().lower()]
    except KeyError:
        raise ValueError(
            f"Unknown log level {name!r}, expected one of: "
            f"off, error, warn, info, debug, trace"
        ) from None


def setup_logging(config: "RatioSplitConfig") -> List[logging.Handler]:
    """Attach file and console handlers to the root logger.

    A destination whose level is off gets no handler at all. If the log file
    cannot be opened the file destination is skipped with a warning on the
    console, the same as a missing destination.

    Returns:
        The handlers that were attached
    """
    root = logging.getLogger()
    formatter = logging.Formatter(LOG_FORMAT)
    handlers: List[logging.Handler] = []

    if config.log_file_level < OFF and config.log_file:
        try:
            directory = os.path.dirname(config.log_file)
            if directory:
                os.makedirs(directory, exist_ok=True)
            file_handler = logging.FileHandler(config.log_file, mode="a")
        except OSError as e:
            print(f"Cannot open log file {config.log_file}: {e}", file=sys.stderr)
        else:
            file_handler.setLevel(config.log_file_level)
            file_handler.setFormatter(formatter)
            handlers.append(file_handler)

    if config.log_console_level < OFF:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(config.log_console_level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    for handler in handlers:
        root.addHandler(handler)

    if handlers:
        root.setLevel(min(handler.level for handler in handlers))
    else:
        root.setLevel(OFF)

    return handlers
