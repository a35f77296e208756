"""
i3 IPC Connection Module

Handles low-level socket communication with i3/sway.

Two connections are opened to the same IPC socket: one for commands and
their replies, one that is subscribed to events. Each has its own frame
decoder so a frame is always fully decoded before the next one starts.
"""

from __future__ import annotations
import json
import logging
import os
import socket
import subprocess
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Deque, Iterable, List, Optional, Union

from .errors import (
    CommandError,
    ConnectError,
    ConnectionLostError,
    MalformedFrameError,
    ProtocolError,
)
from .log import TRACE
from .protocol import (
    Frame,
    FrameDecoder,
    MessageType,
    decode_payload,
    encode_frame,
    read_frame,
)

logger = logging.getLogger(__name__)

Connector = Callable[[str, Optional[float]], socket.socket]


@dataclass
class PendingRequest:
    """The single command awaiting its reply."""

    message_type: int
    sent_at: float = field(default_factory=time.monotonic)


@dataclass
class CommandResult:
    """Outcome of one command in a RUN_COMMAND reply."""

    success: bool
    error: Optional[str] = None


def get_socket_path() -> str:
    """Locate the IPC socket of the running window manager.

    Checks I3SOCK and SWAYSOCK first, then asks i3 and sway themselves.

    Raises:
        ConnectError: If no socket path could be found
    """
    for var in ("I3SOCK", "SWAYSOCK"):
        path = os.environ.get(var, "").strip()
        if path:
            return path

    for program in ("i3", "sway"):
        try:
            result = subprocess.run(
                [program, "--get-socketpath"],
                capture_output=True,
                text=True,
                timeout=2,
            )
        except (OSError, subprocess.SubprocessError):
            continue
        path = result.stdout.strip()
        if result.returncode == 0 and path:
            return path

    raise ConnectError("Could not find the i3/sway IPC socket (is I3SOCK set?)")


def unix_connect(address: str, timeout: Optional[float] = None) -> socket.socket:
    """Open a stream connection to a Unix socket."""
    sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    try:
        sock.settimeout(timeout)
        sock.connect(address)
    except OSError:
        sock.close()
        raise
    return sock


class IPCTransport:
    """Command and event channels to the window manager.

    Only one command may be in flight at a time: i3 replies carry no request
    id, so replies are matched to requests purely by order.
    """

    def __init__(
        self,
        address: str,
        command_timeout: Optional[float] = 5.0,
        connector: Connector = unix_connect,
    ):
        """Initialize an unconnected transport.

        Args:
            address: Path of the IPC socket
            command_timeout: Seconds to wait for a command reply (None waits forever)
            connector: Function opening one socket to the address
        """
        self.address = address
        self.command_timeout = command_timeout
        self._connector = connector

        self.command_socket: Optional[socket.socket] = None
        self.event_socket: Optional[socket.socket] = None
        self._command_decoder = FrameDecoder()
        self._event_decoder = FrameDecoder()

        self.pending: Optional[PendingRequest] = None
        self.subscriptions: List[str] = []
        self._queued_events: Deque[Frame] = deque()
        self.connected = False

    @classmethod
    def connect(
        cls,
        address: Optional[str] = None,
        command_timeout: Optional[float] = 5.0,
        connector: Connector = unix_connect,
    ) -> "IPCTransport":
        """Create a transport and open both connections.

        Args:
            address: Path of the IPC socket, discovered if None

        Raises:
            ConnectError: If the endpoint is unreachable
        """
        transport = cls(
            address or get_socket_path(),
            command_timeout=command_timeout,
            connector=connector,
        )
        transport._open()
        return transport

    @property
    def in_event_mode(self) -> bool:
        return bool(self.subscriptions)

    def _open(self):
        try:
            self.command_socket = self._connector(self.address, self.command_timeout)
            # Events may be minutes apart; block without timeout
            self.event_socket = self._connector(self.address, None)
        except OSError as e:
            self._close_sockets()
            raise ConnectError(f"Cannot connect to {self.address}: {e}") from e

        self._command_decoder.clear()
        self._event_decoder.clear()
        self.connected = True
        logger.info("Connected to window manager at %s", self.address)

    def _close_sockets(self):
        for sock in (self.command_socket, self.event_socket):
            if sock is not None:
                try:
                    sock.close()
                except OSError:
                    pass
        self.command_socket = None
        self.event_socket = None

    def _mark_lost(self, reason: str) -> ConnectionLostError:
        """Drop both connections and return the error to raise."""
        if self.connected:
            logger.warning("Connection to window manager lost: %s", reason)
        self.connected = False
        self.pending = None
        self._close_sockets()
        return ConnectionLostError(reason)

    def _ensure_connected(self):
        if not self.connected:
            raise ConnectionLostError("Transport is disconnected; call reconnect()")

    def reconnect(self):
        """Reopen both connections.

        Subscriptions and queued events belong to the old session and are
        dropped; callers must subscribe again.

        Raises:
            ConnectError: If the endpoint is still unreachable
        """
        self._close_sockets()
        self.connected = False
        self.pending = None
        self.subscriptions = []
        self._queued_events.clear()
        self._open()

    def close(self):
        """Close both connections."""
        self._close_sockets()
        self.connected = False
        self.pending = None

    def __enter__(self) -> "IPCTransport":
        return self

    def __exit__(self, *exc_info):
        self.close()

    def _read(self, sock: socket.socket, decoder: FrameDecoder) -> Frame:
        try:
            return read_frame(sock, decoder)
        except socket.timeout as e:
            raise self._mark_lost("Timed out waiting for a reply") from e
        except ConnectionLostError as e:
            raise self._mark_lost(str(e)) from e
        except MalformedFrameError as e:
            # The stream cannot be resynchronized after a bad header
            self._mark_lost(str(e))
            raise
        except OSError as e:
            raise self._mark_lost(str(e)) from e

    def _write(self, sock: socket.socket, message_type: int, payload: Union[bytes, str]):
        try:
            sock.sendall(encode_frame(message_type, payload))
        except OSError as e:
            raise self._mark_lost(str(e)) from e

    def send_command(self, message_type: int, payload: Union[bytes, str] = b"") -> bytes:
        """Send one command and block until its reply arrives.

        Args:
            message_type: Message type of the command
            payload: Command payload

        Returns:
            The reply payload

        Raises:
            ConnectionLostError: If the connection is or becomes unusable
            ProtocolError: If the reply does not match the request
            RuntimeError: If another command is still awaiting its reply
        """
        self._ensure_connected()
        if self.pending is not None:
            raise RuntimeError(
                f"Command {self.pending.message_type} is still awaiting its reply"
            )

        assert self.command_socket is not None
        self.pending = PendingRequest(message_type)
        try:
            self._write(self.command_socket, message_type, payload)
            while True:
                frame = self._read(self.command_socket, self._command_decoder)
                if frame.is_event:
                    # Not ours: hand it to the event side
                    self._queued_events.append(frame)
                    continue
                if frame.message_type != message_type:
                    raise ProtocolError(
                        f"Reply type {frame.message_type} does not match "
                        f"request type {message_type}"
                    )
                logger.log(
                    TRACE,
                    "Reply to %s after %.3fs (%d bytes)",
                    message_type,
                    time.monotonic() - self.pending.sent_at,
                    frame.length,
                )
                return frame.payload
        finally:
            self.pending = None

    def subscribe(self, event_names: Iterable[str]):
        """Subscribe the event connection to the given events.

        After this, next_event() yields the pushed event frames.

        Raises:
            ConnectionLostError: If the connection is or becomes unusable
            ProtocolError: If the window manager refused the subscription
        """
        self._ensure_connected()
        names = list(event_names)
        assert self.event_socket is not None

        self._write(self.event_socket, MessageType.SUBSCRIBE, json.dumps(names))
        while True:
            frame = self._read(self.event_socket, self._event_decoder)
            if frame.is_event:
                self._queued_events.append(frame)
                continue
            break

        if frame.message_type != MessageType.SUBSCRIBE:
            raise ProtocolError(f"Unexpected reply type {frame.message_type} to subscribe")
        reply = frame.json()
        if not isinstance(reply, dict) or not reply.get("success"):
            raise ProtocolError(f"Subscription to {names} was refused: {reply}")

        self.subscriptions.extend(n for n in names if n not in self.subscriptions)
        logger.info("Subscribed to events: %s", ", ".join(names))

    def next_event(self) -> Frame:
        """Block until the next event frame arrives.

        Raises:
            ConnectionLostError: If the connection is or becomes unusable
            RuntimeError: If subscribe() has not been called
        """
        self._ensure_connected()
        if not self.in_event_mode:
            raise RuntimeError("Not subscribed to any events")
        if self._queued_events:
            return self._queued_events.popleft()

        assert self.event_socket is not None
        while True:
            frame = self._read(self.event_socket, self._event_decoder)
            if frame.is_event:
                return frame
            logger.warning("Ignoring non-event frame of type %s", frame.message_type)

    def run_command(self, command: str) -> List[CommandResult]:
        """Run a textual command.

        Raises:
            CommandError: If the window manager reports a failure
            ProtocolError: If the reply has an unexpected shape
        """
        reply = decode_payload(self.send_command(MessageType.RUN_COMMAND, command))
        if not isinstance(reply, list):
            raise ProtocolError(f"Unexpected reply to RUN_COMMAND: {reply!r}")

        results = []
        for entry in reply:
            if not isinstance(entry, dict):
                raise ProtocolError(f"Unexpected command result: {entry!r}")
            results.append(
                CommandResult(bool(entry.get("success")), entry.get("error"))
            )

        for result in results:
            if not result.success:
                raise CommandError(command, result.error)
        return results

    def get_tree(self) -> dict:
        """Fetch the raw layout tree."""
        reply = decode_payload(self.send_command(MessageType.GET_TREE))
        if not isinstance(reply, dict):
            raise ProtocolError(f"Unexpected reply to GET_TREE: {type(reply).__name__}")
        return reply
