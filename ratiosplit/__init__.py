"""
ratiosplit

Keeps i3/sway layouts in a "main window + side window" shape: every new
window gets the split orientation opposite to its parent's and is resized to
a fixed ratio of the parent.

This package provides:
- Framing for the i3 IPC protocol
- A command/event transport over the IPC socket
- Layout tree parsing and the split policy
- The event dispatcher that ties them together

Example usage:
    from ratiosplit import EventDispatcher, load_config

    dispatcher = EventDispatcher(load_config())
    dispatcher.run()

Or run directly:
    python -m ratiosplit
"""

__version__ = "0.1.0"

from .errors import (
    RatioSplitError,
    ConnectError,
    ConnectionLostError,
    ReconnectError,
    ProtocolError,
    MalformedFrameError,
    CommandError,
    ConfigError,
)

from .protocol import (
    MessageType,
    EventType,
    Frame,
    FrameDecoder,
    encode_frame,
    read_frame,
)

from .connection import IPCTransport, PendingRequest, CommandResult, get_socket_path

from .objects import (
    Orientation,
    Rect,
    ContainerNode,
    WindowCreatedEvent,
    fetch_tree,
    find_container,
    find_parent,
)

from .policy import SplitDecision, decide

from .config import RatioSplitConfig, load_config

from .splitter import RatioSplitter

from .dispatcher import EventDispatcher, DispatcherState

from . import topics

__all__ = [
    # Version
    "__version__",
    # Errors
    "RatioSplitError",
    "ConnectError",
    "ConnectionLostError",
    "ReconnectError",
    "ProtocolError",
    "MalformedFrameError",
    "CommandError",
    "ConfigError",
    # Protocol
    "MessageType",
    "EventType",
    "Frame",
    "FrameDecoder",
    "encode_frame",
    "read_frame",
    # Connection
    "IPCTransport",
    "PendingRequest",
    "CommandResult",
    "get_socket_path",
    # Tree
    "Orientation",
    "Rect",
    "ContainerNode",
    "WindowCreatedEvent",
    "fetch_tree",
    "find_container",
    "find_parent",
    # Policy
    "SplitDecision",
    "decide",
    # Config
    "RatioSplitConfig",
    "load_config",
    # Components
    "RatioSplitter",
    "EventDispatcher",
    "DispatcherState",
    # Event topics
    "topics",
]
