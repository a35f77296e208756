"""
Event Dispatcher

The long-running loop: waits for i3 events, bridges window creation into the
event bus, and reconnects when the connection drops.
"""

from __future__ import annotations
import logging
import time
from enum import Enum, auto
from typing import Callable, Optional

from pubsub import pub

from . import topics
from .config import RatioSplitConfig
from .connection import IPCTransport
from .errors import ConnectError, ConnectionLostError, ProtocolError, ReconnectError
from .log import TRACE
from .objects import WindowCreatedEvent
from .protocol import EVENT_NAMES, EventType, Frame
from .splitter import RatioSplitter

logger = logging.getLogger(__name__)

SUBSCRIBED_EVENTS = (EVENT_NAMES[EventType.WINDOW], EVENT_NAMES[EventType.SHUTDOWN])


class DispatcherState(Enum):
    """Dispatcher state machine states."""

    CONNECTING = auto()
    SUBSCRIBED = auto()
    DISPATCHING = auto()
    RECONNECTING = auto()
    STOPPED = auto()


class EventDispatcher:
    """
    Event Dispatcher

    Owns the transport and runs the event loop on the calling thread.

    Architecture:
    1. Create components - they self-subscribe to bus topics
    2. Connect and subscribe to i3 events
    3. Publish each new window on the bus; RatioSplitter handles it
    """

    def __init__(
        self,
        config: RatioSplitConfig,
        transport_factory: Optional[Callable[[], IPCTransport]] = None,
        bus=None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize the dispatcher.

        Args:
            config: Settings, not modified
            transport_factory: Opens a connected transport, defaults to
                IPCTransport.connect with the configured socket
            bus: Event bus instance (Pypubsub), defaults to the global one
            sleep: Used to wait between reconnect attempts
        """
        self.config = config
        self.bus = bus if bus is not None else pub
        self._transport_factory = transport_factory or self._connect_transport
        self._sleep = sleep

        self.state = DispatcherState.CONNECTING
        self.transport: Optional[IPCTransport] = None
        self.running = False
        self.adjusted_windows = 0

        # Window handling (self-subscribes)
        self.splitter = RatioSplitter(bus=self.bus, ratio=config.ratio)

        self.bus.subscribe(self._on_window_adjusted, topics.LAYOUT_ADJUSTED)

    def _connect_transport(self) -> IPCTransport:
        return IPCTransport.connect(
            self.config.socket_path, command_timeout=self.config.command_timeout
        )

    def _set_state(self, state: DispatcherState):
        if state != self.state:
            logger.debug("Dispatcher state %s -> %s", self.state.name, state.name)
            self.state = state

    def debug_event_logger(self, topic=pub.AUTO_TOPIC, **kwargs):
        """Log all messages published on the event bus."""
        data_str = ", ".join(f"{k}={v}" for k, v in kwargs.items() if k != "topic")
        logger.log(TRACE, "EVENT: %s | %s", topic.getName(), data_str)

    def enable_bus_tracing(self):
        self.bus.subscribe(self.debug_event_logger, pub.ALL_TOPICS)

    def _on_window_adjusted(self, event: WindowCreatedEvent, decision):
        self.adjusted_windows += 1

    def connect(self):
        """Connect and subscribe.

        Raises:
            ConnectError: If the window manager is unreachable
        """
        self._set_state(DispatcherState.CONNECTING)
        logger.info("Connecting to window manager")
        self.transport = self._transport_factory()
        self.splitter.transport = self.transport
        self._subscribe()

    def _subscribe(self):
        assert self.transport is not None
        self.transport.subscribe(SUBSCRIBED_EVENTS)
        self._set_state(DispatcherState.SUBSCRIBED)

    def run(self):
        """Run until stopped.

        Raises:
            ConnectError: If the first connection fails, or reconnecting
                gives up (ReconnectError)
        """
        self.running = True
        try:
            if self.transport is None or not self.transport.connected:
                self.connect()
            self._set_state(DispatcherState.DISPATCHING)

            while self.running:
                self.step()
        finally:
            self.running = False
            self._set_state(DispatcherState.STOPPED)
            if self.transport is not None:
                self.transport.close()
            logger.info("Stopped after adjusting %d windows", self.adjusted_windows)

    def stop(self):
        """Stop the loop after the current event."""
        self.running = False

    def step(self):
        """Wait for and handle one event.

        Connection loss is turned into a reconnect. Protocol errors are
        logged; the event is dropped and the loop goes on.
        """
        assert self.transport is not None
        try:
            frame = self.transport.next_event()
            self.dispatch(frame)
        except ConnectError as e:
            self._reconnect(e)
        except ProtocolError as e:
            logger.error("Protocol error, event dropped: %s", e)

    def dispatch(self, frame: Frame):
        """Handle one event frame."""
        if frame.message_type == EventType.WINDOW:
            payload = frame.json()
            change = payload.get("change") if isinstance(payload, dict) else None
            if change != "new":
                logger.log(TRACE, "Ignoring window event %r", change)
                return

            event = WindowCreatedEvent.from_payload(payload)
            logger.debug("New window created %s (%r)", event.container_id, event.name)
            self.bus.sendMessage(topics.WINDOW_CREATED, event=event)

        elif frame.message_type == EventType.SHUTDOWN:
            payload = frame.json()
            change = payload.get("change") if isinstance(payload, dict) else None
            if change == "restart":
                raise ConnectionLostError("Window manager is restarting")
            logger.info("Window manager is shutting down (%s)", change)
            self.stop()

        else:
            logger.log(TRACE, "Ignoring event type %#x", frame.message_type)

    def _reconnect(self, cause: ConnectError):
        """Reconnect with exponential backoff.

        Raises:
            ReconnectError: If every attempt failed
        """
        assert self.transport is not None
        self._set_state(DispatcherState.RECONNECTING)
        logger.warning("Connection lost (%s), reconnecting", cause)

        attempts = self.config.reconnect_attempts
        delay = self.config.reconnect_delay
        for attempt in range(1, attempts + 1):
            self._sleep(delay)
            try:
                self.transport.reconnect()
                self._subscribe()
            except (ConnectError, ProtocolError) as e:
                logger.warning("Reconnect attempt %d/%d failed: %s", attempt, attempts, e)
                delay = min(delay * 2, self.config.reconnect_max_delay)
                continue

            self._set_state(DispatcherState.DISPATCHING)
            logger.info("Reconnected after %d attempt(s)", attempt)
            return

        self.running = False
        logger.error("Giving up after %d reconnect attempts", attempts)
        raise ReconnectError(f"Could not reconnect after {attempts} attempts") from cause
