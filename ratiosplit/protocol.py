"""
i3 IPC Wire Protocol

Framing for the i3/sway IPC protocol: every message is the magic string
"i3-ipc", a little-endian u32 payload length, a little-endian u32 message
type and the payload itself (UTF-8 JSON for replies and events).

Protocol documentation: https://i3wm.org/docs/ipc.html
"""

from __future__ import annotations
import json
import socket
import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Optional, Union

from .errors import ConnectionLostError, MalformedFrameError, ProtocolError


MAGIC = b"i3-ipc"
HEADER_FORMAT = "<II"
HEADER_SIZE = len(MAGIC) + struct.calcsize(HEADER_FORMAT)

# i3 itself never sends anything close to this; a larger value means the
# stream is out of sync.
MAX_PAYLOAD_SIZE = 64 * 1024 * 1024

EVENT_MASK = 0x80000000


class MessageType(IntEnum):
    """i3 IPC message types."""

    RUN_COMMAND = 0
    GET_WORKSPACES = 1
    SUBSCRIBE = 2
    GET_OUTPUTS = 3
    GET_TREE = 4
    GET_MARKS = 5
    GET_BAR_CONFIG = 6
    GET_VERSION = 7
    GET_BINDING_MODES = 8
    GET_CONFIG = 9
    SEND_TICK = 10
    SYNC = 11
    GET_BINDING_STATE = 12


class EventType(IntEnum):
    """i3 IPC event types (with high bit set)."""

    WORKSPACE = 0x80000000
    OUTPUT = 0x80000001
    MODE = 0x80000002
    WINDOW = 0x80000003
    BARCONFIG_UPDATE = 0x80000004
    BINDING = 0x80000005
    SHUTDOWN = 0x80000006
    TICK = 0x80000007


# Names used in SUBSCRIBE payloads
EVENT_NAMES = {
    EventType.WORKSPACE: "workspace",
    EventType.OUTPUT: "output",
    EventType.MODE: "mode",
    EventType.WINDOW: "window",
    EventType.BARCONFIG_UPDATE: "barconfig_update",
    EventType.BINDING: "binding",
    EventType.SHUTDOWN: "shutdown",
    EventType.TICK: "tick",
}


@dataclass(frozen=True)
class Frame:
    """One decoded IPC message."""

    message_type: int
    payload: bytes = b""

    @property
    def length(self) -> int:
        return len(self.payload)

    @property
    def is_event(self) -> bool:
        return bool(self.message_type & EVENT_MASK)

    def json(self) -> Any:
        """Decode the payload as UTF-8 JSON."""
        return decode_payload(self.payload)

    def encode(self) -> bytes:
        return encode_frame(self.message_type, self.payload)


def decode_payload(payload: bytes) -> Any:
    """Decode a reply or event payload.

    Raises:
        ProtocolError: If the payload is not valid UTF-8 JSON
    """
    try:
        return json.loads(payload.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as e:
        raise ProtocolError(f"Unparseable payload: {e}") from e


def encode_frame(message_type: int, payload: Union[bytes, str] = b"") -> bytes:
    """Encode a message to wire format.

    Args:
        message_type: Message or event type tag
        payload: Payload bytes, strings are UTF-8 encoded

    Returns:
        The complete frame, header included
    """
    data = payload.encode("utf-8") if isinstance(payload, str) else bytes(payload)
    return MAGIC + struct.pack(HEADER_FORMAT, len(data), message_type) + data


class FrameDecoder:
    """Incremental frame decoder.

    Bytes are fed as they arrive from the socket; complete frames are taken
    out one at a time. A frame is consumed from the buffer only once it has
    been fully received.
    """

    def __init__(self, max_payload_size: int = MAX_PAYLOAD_SIZE):
        self.max_payload_size = max_payload_size
        self.buffer = bytearray()

    def feed(self, data: bytes):
        """Append received bytes to the buffer."""
        self.buffer.extend(data)

    def clear(self):
        self.buffer.clear()

    def next_frame(self) -> Optional[Frame]:
        """Take the next complete frame out of the buffer.

        Returns:
            The frame, or None if the buffer does not hold a full frame yet

        Raises:
            MalformedFrameError: If the header is invalid. The buffer is left
                untouched in that case.
        """
        # Check the magic as soon as it could differ, not only once the
        # whole header is in
        prefix = bytes(self.buffer[: len(MAGIC)])
        if prefix != MAGIC[: len(prefix)]:
            raise MalformedFrameError(f"Invalid magic bytes: {prefix!r}")

        if len(self.buffer) < HEADER_SIZE:
            return None

        length, message_type = struct.unpack_from(
            HEADER_FORMAT, self.buffer, len(MAGIC)
        )
        if length > self.max_payload_size:
            raise MalformedFrameError(
                f"Declared payload length {length} exceeds maximum "
                f"{self.max_payload_size}"
            )

        end = HEADER_SIZE + length
        if len(self.buffer) < end:
            return None

        payload = bytes(self.buffer[HEADER_SIZE:end])
        del self.buffer[:end]
        return Frame(message_type, payload)


def read_frame(
    sock: socket.socket, decoder: FrameDecoder, chunk_size: int = 4096
) -> Frame:
    """Block until one complete frame has been read from a socket.

    Bytes after the frame stay in the decoder for the next call.

    Raises:
        ConnectionLostError: If the peer closed the connection
        MalformedFrameError: If the stream does not contain a valid frame
    """
    while True:
        frame = decoder.next_frame()
        if frame is not None:
            return frame

        chunk = sock.recv(chunk_size)
        if not chunk:
            raise ConnectionLostError("Connection closed by the window manager")
        decoder.feed(chunk)
