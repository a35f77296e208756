"""
Main entry point for ratiosplit.

Usage:
    ratiosplit [--config PATH]
    python -m ratiosplit [--config PATH]
"""

from __future__ import annotations
import argparse
import logging
import os
import sys
from typing import List, Optional

from . import __version__
from .config import DEFAULT_CONFIG_PATH, config_path, load_config
from .dispatcher import EventDispatcher
from .errors import ConfigError, ConnectError, ProtocolError
from .log import TRACE, setup_logging

logger = logging.getLogger("ratiosplit")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="ratiosplit",
        description="Alternate split orientation and resize new i3/sway windows.",
    )
    parser.add_argument(
        "-c",
        "--config",
        metavar="PATH",
        help=f"configuration file (default: {DEFAULT_CONFIG_PATH})",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    try:
        config = load_config(args.config)
    except ConfigError as e:
        print(f"ratiosplit: {e}", file=sys.stderr)
        return 1

    setup_logging(config)
    logger.info("Starting ratiosplit %s", __version__)
    path = config_path(args.config)
    if os.path.exists(path):
        logger.info("Loaded settings from %s", path)
    else:
        logger.info("No config file at %s, using defaults", path)
    logger.info("Using settings %s", config)

    dispatcher = EventDispatcher(config)
    if logging.getLogger().isEnabledFor(TRACE):
        dispatcher.enable_bus_tracing()

    try:
        dispatcher.run()
    except KeyboardInterrupt:
        pass
    except ConnectError as e:
        logger.error("Error connecting to window manager: %s", e)
        return 1
    except ProtocolError as e:
        logger.error("Window manager rejected startup: %s", e)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
