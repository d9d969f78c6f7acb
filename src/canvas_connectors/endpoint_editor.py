"""
Interactive editing of a line's endpoints with anchor snapping.

While a start/end handle is dragged the controller keeps a draft of the
line's points and of its two connection references. Each pointer frame the
dragged point is grid- or angle-snapped, then attracted to the nearest
anchor of a nearby node. Nothing reaches the document until ``release``,
which returns a single patch.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Union

from canvas_connectors.anchors import AnchorPoint, anchor_candidates, resolve_connection
from canvas_connectors.drag_sync import LineVisual, write_line_visual
from canvas_connectors.models import (
    Anchor,
    BoxNode,
    Canvas,
    ConnectionRef,
    LineNode,
    Node,
    NodePatch,
    Routing,
    snap_to_grid,
)
from canvas_connectors.routing import RoutingConfig, orthogonal_path

logger = logging.getLogger("canvas-connectors")


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class Draft(Enum):
    """Connection draft markers. UNTOUCHED keeps the stored ref; DETACH clears it."""
    UNTOUCHED = "untouched"
    DETACH = "detach"


class EditorState(Enum):
    IDLE = "idle"
    DRAGGING = "dragging"
    SNAPPED = "snapped"
    DETACHED = "detached"
    COMMITTED = "committed"


HANDLES = frozenset({"start", "end"})

ConnDraft = Union[ConnectionRef, Draft]


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------

@dataclass
class SnapConfig:
    """Snapping behaviour of the endpoint editor.

    Distances are in screen pixels and are multiplied by ``inv_scale``
    (1 / zoom) so the snap feel stays constant across zoom levels.
    """
    snap_radius: float = 12
    show_margin: float = 80
    min_anchor_node_size: float = 15
    grid: bool = False
    grid_size: float = 15
    snap_strength: float = 5
    inv_scale: float = 1.0
    anchor_radius: float = 5
    highlight_radius: float = 9
    angle_step: float = math.pi / 4

    @property
    def snap_step(self) -> float:
        """Grid step for free movement: grid size, else snap strength, else 0."""
        if self.grid and self.grid_size > 0:
            return self.grid_size
        if self.snap_strength > 0:
            return self.snap_strength
        return 0

    @classmethod
    def from_canvas(cls, canvas: Canvas, inv_scale: float = 1.0) -> SnapConfig:
        return cls(
            grid=canvas.grid,
            grid_size=canvas.grid_size,
            snap_strength=canvas.snap_strength,
            inv_scale=inv_scale,
        )


@dataclass
class AnchorCandidate:
    """One anchor shown by the snap UI during a frame."""
    node_id: str
    anchor: Anchor
    x: float
    y: float
    visible: bool = True
    highlighted: bool = False
    radius: float = 5

    def to_dict(self) -> dict:
        return {
            "node_id": self.node_id,
            "anchor": self.anchor.value,
            "x": self.x,
            "y": self.y,
            "visible": self.visible,
            "highlighted": self.highlighted,
            "radius": self.radius,
        }


# ---------------------------------------------------------------------------
# Snapping helpers
# ---------------------------------------------------------------------------

def snap_angle(
    x: float,
    y: float,
    ref_x: float,
    ref_y: float,
    step: float = math.pi / 4,
) -> tuple[float, float]:
    """Rotate (x, y) around the reference point onto the nearest angle step.

    The distance to the reference point is preserved.
    """
    dx = x - ref_x
    dy = y - ref_y
    dist = math.hypot(dx, dy)
    angle = round(math.atan2(dy, dx) / step) * step
    return ref_x + math.cos(angle) * dist, ref_y + math.sin(angle) * dist


def collect_candidates(
    x: float,
    y: float,
    nodes: Iterable[Node],
    config: SnapConfig,
    exclude_id: Optional[str] = None,
) -> list[AnchorCandidate]:
    """Anchors of every node whose margin-expanded bounds contain (x, y).

    Lines and *exclude_id* never take part. Candidates come back in node
    order, then anchor enumeration order.
    """
    margin = config.show_margin * config.inv_scale
    radius = config.anchor_radius * config.inv_scale
    result: list[AnchorCandidate] = []
    for node in nodes:
        if not isinstance(node, BoxNode) or node.id == exclude_id:
            continue
        if not node.geometry.contains_point(x, y, margin):
            continue
        for anchor, point in anchor_candidates(node, config.min_anchor_node_size):
            result.append(AnchorCandidate(node.id, anchor, point.x, point.y, radius=radius))
    return result


def find_snap_candidate(
    x: float,
    y: float,
    candidates: Iterable[AnchorCandidate],
    config: SnapConfig,
) -> Optional[AnchorCandidate]:
    """Closest candidate within the snap radius (boundary included).

    On equal distance the candidate enumerated first wins.
    """
    threshold = config.snap_radius * config.inv_scale
    limit = threshold * threshold
    best: Optional[AnchorCandidate] = None
    best_d2 = 0.0
    for cand in candidates:
        d2 = (cand.x - x) ** 2 + (cand.y - y) ** 2
        if d2 <= limit and (best is None or d2 < best_d2):
            best = cand
            best_d2 = d2
    return best


# ---------------------------------------------------------------------------
# Endpoint drag controller
# ---------------------------------------------------------------------------

class EndpointDragController:
    """State machine for dragging one endpoint handle of a line.

    ``IDLE -> DRAGGING -> (SNAPPED | DETACHED) -> COMMITTED``; ``cancel``
    returns to IDLE from any live state.
    """

    def __init__(
        self,
        line: LineNode,
        nodes: Iterable[Node],
        config: Optional[SnapConfig] = None,
        visual: Optional[LineVisual] = None,
        routing_config: Optional[RoutingConfig] = None,
    ) -> None:
        self.line = line
        self.nodes = nodes
        self.config = config or SnapConfig()
        self.visual = visual
        self.routing_config = routing_config
        self.state = EditorState.IDLE
        self.handle: Optional[str] = None
        self.candidates: list[AnchorCandidate] = []
        self._pts: Optional[list[float]] = None
        self._targets: list[Node] = []
        self._start_draft: ConnDraft = Draft.UNTOUCHED
        self._end_draft: ConnDraft = Draft.UNTOUCHED

    @property
    def is_active(self) -> bool:
        return self.state in (EditorState.DRAGGING, EditorState.SNAPPED, EditorState.DETACHED)

    @property
    def draft_pts(self) -> Optional[list[float]]:
        return None if self._pts is None else list(self._pts)

    @property
    def start_draft(self) -> ConnDraft:
        return self._start_draft

    @property
    def end_draft(self) -> ConnDraft:
        return self._end_draft

    def begin(self, handle: str) -> list[float]:
        """Start dragging the ``"start"`` or ``"end"`` handle.

        Connected endpoints are re-resolved so the draft starts from where
        the line is actually attached. Returns the draft points.
        """
        if self.is_active:
            raise RuntimeError(f"Endpoint drag of '{self.line.id}' already in progress")
        if handle not in HANDLES:
            raise ValueError(f"Unknown handle '{handle}'. Must be 'start' or 'end'.")

        self._targets = [n for n in self.nodes if n.id != self.line.id]
        pts = list(self.line.pts)
        start = resolve_connection(self.line.start_conn, self._targets)
        if start is not None:
            pts[0], pts[1] = start.x, start.y
        end = resolve_connection(self.line.end_conn, self._targets)
        if end is not None:
            pts[-2], pts[-1] = end.x, end.y

        self._pts = pts
        self._start_draft = Draft.UNTOUCHED
        self._end_draft = Draft.UNTOUCHED
        self.handle = handle
        self.candidates = []
        self.state = EditorState.DRAGGING
        return list(pts)

    def move(self, x: float, y: float, modifier: bool = False) -> list[float]:
        """Handle one pointer frame; returns the updated draft points."""
        if not self.is_active or self._pts is None:
            raise RuntimeError(f"Cannot move endpoint of '{self.line.id}': no drag in progress")
        base = self._pts
        cfg = self.config
        is_start = self.handle == "start"
        index = 0 if is_start else len(base) - 2
        orthogonal = self.line.routing is Routing.ORTHOGONAL

        if modifier:
            ref_x, ref_y = (base[2], base[3]) if is_start else (base[index - 2], base[index - 1])
            x, y = snap_angle(x, y, ref_x, ref_y, cfg.angle_step)
        else:
            step = cfg.snap_step
            x, y = snap_to_grid(x, step), snap_to_grid(y, step)

        self.candidates = collect_candidates(x, y, self._targets, cfg, exclude_id=self.line.id)
        best = find_snap_candidate(x, y, self.candidates, cfg)
        if best is not None:
            best.highlighted = True
            best.radius = cfg.highlight_radius * cfg.inv_scale
            x, y = best.x, best.y
            self._set_draft(is_start, ConnectionRef(best.node_id, best.anchor))
            self.state = EditorState.SNAPPED
        else:
            self._set_draft(is_start, Draft.DETACH)
            self.state = EditorState.DETACHED

        if orthogonal and not modifier:
            if is_start:
                start, end = (x, y), (base[-2], base[-1])
            else:
                start, end = (base[0], base[1]), (x, y)
            pts = orthogonal_path(
                self._end_point(start, self._effective(True)),
                self._end_point(end, self._effective(False)),
                self.routing_config,
            )
        else:
            pts = list(base)
            pts[index], pts[index + 1] = x, y

        self._pts = pts
        if self.visual is not None:
            write_line_visual(self.visual, pts)
        return list(pts)

    def release(self) -> Optional[NodePatch]:
        """Commit the gesture as one patch, or None when nothing changed.

        Only connection fields whose draft was touched are included; a
        detached end is written as ``None``.
        """
        if not self.is_active or self._pts is None:
            raise RuntimeError(f"Cannot release endpoint of '{self.line.id}': no drag in progress")
        changes: dict = {}
        if self._pts != list(self.line.pts):
            changes["pts"] = list(self._pts)
        for name, draft in (("start_conn", self._start_draft), ("end_conn", self._end_draft)):
            if draft is Draft.UNTOUCHED:
                continue
            value = None if draft is Draft.DETACH else draft
            if value != getattr(self.line, name):
                changes[name] = value
        self._reset(EditorState.COMMITTED)
        if not changes:
            return None
        return NodePatch(self.line.id, changes)

    def cancel(self) -> Optional[NodePatch]:
        """Abort the gesture: keep the draft points, drop connection changes."""
        if not self.is_active or self._pts is None:
            self._reset(EditorState.IDLE)
            return None
        pts = list(self._pts)
        self._reset(EditorState.IDLE)
        if pts == list(self.line.pts):
            return None
        logger.debug("Endpoint drag of '%s' cancelled; keeping geometry only", self.line.id)
        return NodePatch(self.line.id, {"pts": pts})

    # ----- internals -----

    def _set_draft(self, is_start: bool, value: ConnDraft) -> None:
        if is_start:
            self._start_draft = value
        else:
            self._end_draft = value

    def _effective(self, is_start: bool) -> Optional[ConnectionRef]:
        """Connection an end would have if the gesture were committed now."""
        draft = self._start_draft if is_start else self._end_draft
        if draft is Draft.UNTOUCHED:
            return self.line.start_conn if is_start else self.line.end_conn
        if draft is Draft.DETACH:
            return None
        return draft

    def _end_point(self, point: tuple[float, float], ref: Optional[ConnectionRef]) -> AnchorPoint:
        anchor = resolve_connection(ref, self._targets)
        if anchor is None:
            return AnchorPoint(point[0], point[1])
        return AnchorPoint(point[0], point[1], anchor.nx, anchor.ny)

    def _reset(self, state: EditorState) -> None:
        self._pts = None
        self._targets = []
        self._start_draft = Draft.UNTOUCHED
        self._end_draft = Draft.UNTOUCHED
        self.handle = None
        self.candidates = []
        self.state = state
