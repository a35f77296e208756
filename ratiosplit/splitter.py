"""
Ratio Splitter

Reacts to new windows: reads the current tree, decides the split and
applies it.
"""

from __future__ import annotations
import logging
from typing import TYPE_CHECKING, Optional

from . import topics
from .errors import CommandError
from .log import TRACE
from .objects import (
    NON_SPLIT_LAYOUTS,
    WindowCreatedEvent,
    fetch_tree,
    find_container,
    find_parent,
)
from .policy import SplitDecision, decide

if TYPE_CHECKING:
    from .connection import IPCTransport

logger = logging.getLogger(__name__)


class RatioSplitter:
    """Splits and resizes each new window.

    Subscribes to WINDOW_CREATED. Commands are sent one after the other:
    the resize only means something once the split is in place, and is
    skipped when the split fails.

    Protocol and connection errors are not handled here; they propagate to
    whoever published the event.
    """

    def __init__(self, bus, ratio: float):
        """Initialize the splitter.

        Args:
            bus: Event bus instance (Pypubsub)
            ratio: Fraction of the parent a new window takes
        """
        self.bus = bus
        self.ratio = ratio
        # Set by the dispatcher once connected
        self.transport: Optional[IPCTransport] = None

        self._setup_subscriptions()

    def _setup_subscriptions(self):
        self.bus.subscribe(self._on_window_created, topics.WINDOW_CREATED)

    def _on_window_created(self, event: WindowCreatedEvent):
        self.handle(event)

    def handle(self, event: WindowCreatedEvent) -> Optional[SplitDecision]:
        """Split and resize one new window.

        Returns:
            The applied decision, or None if the window was left alone
        """
        if self.transport is None:
            raise RuntimeError("RatioSplitter has no transport")

        logger.log(TRACE, "Retrieving current tree for window %s", event.container_id)
        tree = fetch_tree(self.transport)

        parent = find_parent(tree, event.container_id)
        if parent is None and event.parent_id is not None:
            parent = find_container(tree, event.parent_id)
        if parent is None:
            # Floating windows, or a window that closed again already
            logger.info("Could not find parent container for window %s", event.container_id)
            return None

        if parent.layout in NON_SPLIT_LAYOUTS:
            logger.warning(
                "Parent container %s of window %s is %s, splitting without resize",
                parent.id,
                event.container_id,
                parent.layout,
            )

        decision = decide(parent, self.ratio, window_id=event.container_id)
        if decision.resize_command:
            logger.info(
                "Window %s (%r) in %s container %s: split %s, resize %s to %d px",
                event.container_id,
                event.name,
                parent.orientation.value,
                parent.id,
                decision.target.value,
                decision.resize_axis,
                decision.target_size,
            )
        else:
            logger.info(
                "Window %s (%r) in %s container %s with %d children: split %s, no resize",
                event.container_id,
                event.name,
                parent.orientation.value,
                parent.id,
                len(parent.children),
                decision.target.value,
            )

        if not self._run(decision.split_command):
            return None
        if decision.resize_command and not self._run(decision.resize_command):
            return None

        logger.debug("Adjusted window %s", event.container_id)
        self.bus.sendMessage(topics.LAYOUT_ADJUSTED, event=event, decision=decision)
        return decision

    def _run(self, command: str) -> bool:
        assert self.transport is not None
        logger.log(TRACE, "Running %s", command)
        try:
            self.transport.run_command(command)
        except CommandError as e:
            logger.warning("Command %r failed: %s", command, e.error)
            return False
        return True
