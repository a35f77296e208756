"""
Layout tree objects

Containers as reported by i3's GET_TREE reply, and the window-created event.
A tree is built fresh for every query and never modified afterwards.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Iterator, Optional, Tuple

from .errors import ProtocolError

if TYPE_CHECKING:
    from .connection import IPCTransport

logger = logging.getLogger(__name__)


class Orientation(Enum):
    """Axis along which a container arranges its children."""

    HORIZONTAL = "horizontal"
    VERTICAL = "vertical"
    NONE = "none"

    def opposite(self) -> "Orientation":
        """The axis to split along next. NONE starts with HORIZONTAL."""
        if self is Orientation.HORIZONTAL:
            return Orientation.VERTICAL
        return Orientation.HORIZONTAL


# Layouts that do not split space along an axis
NON_SPLIT_LAYOUTS = ("stacked", "tabbed")


@dataclass(frozen=True)
class Rect:
    """Container geometry in pixels."""

    x: int = 0
    y: int = 0
    width: int = 0
    height: int = 0


@dataclass(frozen=True)
class ContainerNode:
    """One node of the layout tree."""

    id: int
    type: str = "con"
    name: Optional[str] = None
    orientation: Orientation = Orientation.NONE
    layout: str = "splith"
    rect: Rect = field(default_factory=Rect)
    is_focused: bool = False
    children: Tuple["ContainerNode", ...] = ()
    floating_children: Tuple["ContainerNode", ...] = ()

    def iter_nodes(self) -> Iterator["ContainerNode"]:
        """Depth-first iteration over this node and all descendants."""
        yield self
        for child in self.children + self.floating_children:
            yield from child.iter_nodes()

    def focused(self) -> Optional["ContainerNode"]:
        """Find the focused container, if any."""
        for node in self.iter_nodes():
            if node.is_focused:
                return node
        return None


@dataclass(frozen=True)
class WindowCreatedEvent:
    """A "new" window event.

    i3 does not report the parent in the event; parent_id is only set when
    it is known from elsewhere.
    """

    container_id: int
    parent_id: Optional[int] = None
    name: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Any) -> "WindowCreatedEvent":
        """Build the event from a window event payload.

        Raises:
            ProtocolError: If the container or its id is missing
        """
        if not isinstance(payload, dict):
            raise ProtocolError(f"Window event is not an object: {payload!r}")
        container = payload.get("container")
        if not isinstance(container, dict) or "id" not in container:
            raise ProtocolError("Window event has no container id")
        return cls(container_id=container["id"], name=container.get("name"))


def parse_orientation(data: Dict[str, Any]) -> Orientation:
    """Read a container's orientation.

    Stacked and tabbed containers have no split axis. Values i3 is not known
    to send are treated the same, with a warning.
    """
    if data.get("layout") in NON_SPLIT_LAYOUTS:
        return Orientation.NONE

    value = data.get("orientation", "none")
    try:
        return Orientation(value)
    except ValueError:
        logger.warning(
            "Container %s has unknown orientation %r, treating as none",
            data.get("id"),
            value,
        )
        return Orientation.NONE


def parse_rect(data: Any) -> Rect:
    if not isinstance(data, dict):
        raise ProtocolError(f"Container rect is not an object: {data!r}")
    try:
        return Rect(
            x=int(data.get("x", 0)),
            y=int(data.get("y", 0)),
            width=int(data["width"]),
            height=int(data["height"]),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise ProtocolError(f"Invalid container rect {data!r}") from e


def parse_node(data: Any) -> ContainerNode:
    """Convert one node of a GET_TREE reply, with all its descendants.

    Raises:
        ProtocolError: If a node lacks its id or rect
    """
    if not isinstance(data, dict):
        raise ProtocolError(f"Tree node is not an object: {data!r}")
    if "id" not in data:
        raise ProtocolError("Tree node has no id")
    if "rect" not in data:
        raise ProtocolError(f"Tree node {data['id']} has no rect")

    nodes = data.get("nodes") or []
    floating_nodes = data.get("floating_nodes") or []
    if not isinstance(nodes, list) or not isinstance(floating_nodes, list):
        raise ProtocolError(f"Tree node {data['id']} has invalid children")

    return ContainerNode(
        id=data["id"],
        type=data.get("type", "con"),
        name=data.get("name"),
        orientation=parse_orientation(data),
        layout=data.get("layout", ""),
        rect=parse_rect(data["rect"]),
        is_focused=bool(data.get("focused", False)),
        children=tuple(parse_node(child) for child in nodes),
        floating_children=tuple(parse_node(child) for child in floating_nodes),
    )


def fetch_tree(transport: "IPCTransport") -> ContainerNode:
    """Query the current layout tree.

    Returns:
        The root container
    """
    return parse_node(transport.get_tree())


def find_container(tree: ContainerNode, container_id: int) -> Optional[ContainerNode]:
    """Find a container by id, searching depth-first."""
    for node in tree.iter_nodes():
        if node.id == container_id:
            return node
    return None


def find_parent(tree: ContainerNode, child_id: int) -> Optional[ContainerNode]:
    """Find the container whose tiled children include child_id.

    Floating windows have no tiled parent, so None is returned for them, as
    it is for the root and for ids not in the tree.
    """
    for node in tree.iter_nodes():
        for child in node.children:
            if child.id == child_id:
                return node
    return None
