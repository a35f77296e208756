"""
Split orientation policy

Decides the commands for a newly created window from its parent container
alone. The parent's orientation is read from a fresh tree every time, so
nothing is remembered between windows.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional

from .objects import ContainerNode, Orientation


# Dimension a parent of each orientation divides between its children
RESIZE_AXIS = {
    Orientation.HORIZONTAL: "width",
    Orientation.VERTICAL: "height",
}


def ratio_to_ppt(ratio: float) -> int:
    """Percentage points for a resize command, within 1..99.

    i3 rejects a 0 ppt resize, which tiny ratios would otherwise round to.
    """
    return min(99, max(1, round(ratio * 100)))


@dataclass(frozen=True)
class SplitDecision:
    """Commands to run for one new window."""

    target: Orientation
    split_command: str
    resize_command: Optional[str] = None
    resize_axis: Optional[str] = None
    # Expected size of the new window in pixels
    target_size: Optional[int] = None


def decide(
    parent: ContainerNode, ratio: float, window_id: Optional[int] = None
) -> SplitDecision:
    """Decide how to split and resize a new window.

    The next split goes along the axis opposite to the parent's, so windows
    alternate horizontal/vertical. The new window is resized along the
    parent's own axis to ratio of the parent's size there; the other axis is
    left alone.

    Args:
        parent: Parent container of the new window, as currently reported
        ratio: Fraction of the parent the new window should take, in (0, 1)
        window_id: If given, commands target this container via criteria
            instead of the focused one

    Returns:
        The split command and, if a resize makes sense, the resize command
    """
    if not 0.0 < ratio < 1.0:
        raise ValueError(f"ratio must be between 0 and 1, got {ratio}")

    target = parent.orientation.opposite()
    prefix = f"[con_id={window_id}] " if window_id is not None else ""
    split_command = f"{prefix}split {target.value}"

    axis = RESIZE_AXIS.get(parent.orientation)
    # A lone child already fills its parent
    if axis is None or len(parent.children) < 2:
        return SplitDecision(target=target, split_command=split_command)

    return SplitDecision(
        target=target,
        split_command=split_command,
        resize_command=f"{prefix}resize set {axis} {ratio_to_ppt(ratio)} ppt",
        resize_axis=axis,
        target_size=round(ratio * getattr(parent.rect, axis)),
    )
