"""
Live drag synchronization between a dragged node and its connected lines.

A node drag runs in two phases:

1. While the pointer moves, connected lines are re-planned for the node's
   hypothetical geometry and written straight onto retained visual handles
   (line body, endpoint handles, arrow markers). Nothing touches the document.
2. On release, the authoritative patch batch (node position plus every
   changed line) is produced once, so the whole gesture is one history step.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from enum import Enum
from typing import Iterable, Mapping, Optional, Protocol

from canvas_connectors.consistency import model_origin, move_node_updates, plan_line
from canvas_connectors.models import BoxNode, Geometry, LineNode, Node, NodePatch
from canvas_connectors.routing import RoutingConfig


class VisualHandle(Protocol):
    """Anything in the retained scene graph the engine can write to."""

    def set_points(self, pts: list[float]) -> None: ...

    def set_position(self, x: float, y: float) -> None: ...

    def set_rotation(self, degrees: float) -> None: ...


@dataclass
class LineVisual:
    """Retained visuals of one rendered line. Only ``body`` is required."""
    body: VisualHandle
    start_handle: Optional[VisualHandle] = None
    end_handle: Optional[VisualHandle] = None
    start_marker: Optional[VisualHandle] = None
    end_marker: Optional[VisualHandle] = None


class DragPhase(Enum):
    IDLE = "idle"
    LIVE = "live"
    COMMITTED = "committed"


# ---------------------------------------------------------------------------
# Visual writes
# ---------------------------------------------------------------------------

def marker_angles(pts: list[float]) -> tuple[float, float]:
    """Rotation in degrees of the start and end arrow markers.

    The start marker points back along the first segment, the end marker
    along the last one. Zero-length segments next to an end are skipped.
    """
    x0, y0 = pts[0], pts[1]
    xn, yn = pts[-2], pts[-1]

    nx0, ny0 = xn, yn
    for i in range(2, len(pts) - 1, 2):
        if pts[i] != x0 or pts[i + 1] != y0:
            nx0, ny0 = pts[i], pts[i + 1]
            break

    px, py = x0, y0
    for i in range(len(pts) - 4, -1, -2):
        if pts[i] != xn or pts[i + 1] != yn:
            px, py = pts[i], pts[i + 1]
            break

    start = math.degrees(math.atan2(ny0 - y0, nx0 - x0)) + 180
    end = math.degrees(math.atan2(yn - py, xn - px))
    return start, end


def write_line_visual(visual: LineVisual, pts: list[float]) -> None:
    """Push a point list onto a line's retained visuals."""
    visual.body.set_points(list(pts))
    if visual.start_handle is not None:
        visual.start_handle.set_position(pts[0], pts[1])
    if visual.end_handle is not None:
        visual.end_handle.set_position(pts[-2], pts[-1])
    if visual.start_marker is None and visual.end_marker is None:
        return
    start_angle, end_angle = marker_angles(pts)
    if visual.start_marker is not None:
        visual.start_marker.set_position(pts[0], pts[1])
        visual.start_marker.set_rotation(start_angle)
    if visual.end_marker is not None:
        visual.end_marker.set_position(pts[-2], pts[-1])
        visual.end_marker.set_rotation(end_angle)


# ---------------------------------------------------------------------------
# Node drag controller
# ---------------------------------------------------------------------------

class NodeDragController:
    """Owns the scratch state of a single node drag gesture.

    ``nodes`` is the live node collection; it is read but never written
    during the gesture. ``scene`` maps line ids to their retained visuals;
    lines without an entry are still planned but have nothing to draw on.
    """

    def __init__(
        self,
        node: BoxNode,
        nodes: Iterable[Node],
        scene: Optional[Mapping[str, LineVisual]] = None,
        config: Optional[RoutingConfig] = None,
    ) -> None:
        self.node = node
        self.nodes = nodes
        self.scene = scene if scene is not None else {}
        self.config = config
        self.phase = DragPhase.IDLE
        self._geometry: Optional[Geometry] = None
        self._lines: list[LineNode] = []
        self._index: dict[str, Node] = {}

    @property
    def geometry(self) -> Optional[Geometry]:
        """Hypothetical geometry of the dragged node (None outside a gesture)."""
        return self._geometry

    def begin(self) -> None:
        if self.phase is DragPhase.LIVE:
            raise RuntimeError(f"Drag of '{self.node.id}' already in progress")
        nodes = list(self.nodes)
        self._index = {n.id: n for n in nodes}
        self._lines = [
            n for n in nodes if isinstance(n, LineNode) and n.is_connected_to(self.node.id)
        ]
        self._geometry = self.node.geometry
        self.phase = DragPhase.LIVE

    def move(self, x: float, y: float) -> dict[str, list[float]]:
        """Handle one pointer frame at the node's reported position (x, y).

        Returns the points written for each connected line this frame.
        """
        self._require_live("move")
        ox, oy = model_origin(self.node, x, y)
        self._geometry = replace(self.node.geometry, x=ox, y=oy)
        frame: dict[str, list[float]] = {}
        for line in self._lines:
            pts = plan_line(line, self.node.id, self._geometry, self._index, self.config)
            if pts is None:
                continue
            frame[line.id] = pts
            visual = self.scene.get(line.id)
            if visual is not None:
                write_line_visual(visual, pts)
        return frame

    def release(self) -> list[NodePatch]:
        """Finish the gesture and return its patch batch.

        The batch is empty when the node never left its stored position.
        """
        self._require_live("release")
        geometry = self._geometry
        nodes = list(self._index.values())
        self._reset(DragPhase.COMMITTED)
        if geometry is None or geometry == self.node.geometry:
            return []
        return move_node_updates(self.node, geometry.x, geometry.y, nodes, self.config)

    def cancel(self) -> list[NodePatch]:
        """Abort the gesture, keeping the geometry already computed.

        Outside a live gesture this is a no-op.
        """
        if self.phase is not DragPhase.LIVE:
            self.phase = DragPhase.IDLE
            return []
        batch = self.release()
        self.phase = DragPhase.IDLE
        return batch

    # ----- internals -----

    def _require_live(self, op: str) -> None:
        if self.phase is not DragPhase.LIVE:
            raise RuntimeError(f"Cannot {op} drag of '{self.node.id}': no gesture in progress")

    def _reset(self, phase: DragPhase) -> None:
        self._geometry = None
        self._lines = []
        self._index = {}
        self.phase = phase
