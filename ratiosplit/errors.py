"""
Error types for ratiosplit

ConnectError and its subclasses are about the IPC socket itself; everything
else is scoped to a single operation and does not end the dispatcher.
"""

from __future__ import annotations
from typing import Optional


class RatioSplitError(Exception):
    """Base class for all ratiosplit errors."""


class ConnectError(RatioSplitError):
    """The IPC endpoint is unreachable."""


class ConnectionLostError(ConnectError):
    """An established connection was reset or closed."""


class ReconnectError(ConnectError):
    """Reconnecting gave up after the configured number of attempts."""


class ProtocolError(RatioSplitError):
    """A reply or event did not have the expected shape."""


class MalformedFrameError(ProtocolError):
    """A frame header was invalid (bad magic or oversized payload)."""


class CommandError(RatioSplitError):
    """The window manager rejected a command."""

    def __init__(self, command: str, error: Optional[str] = None):
        self.command = command
        self.error = error
        super().__init__(f"Command {command!r} failed: {error or 'unknown error'}")


class ConfigError(RatioSplitError):
    """The configuration file is unreadable or holds an invalid value."""
