"""
Programmatic connection helpers.

Used by layout code and the MCP tools to create connector lines between
existing nodes. Lines created here are attached on both ends and their
points come from the path planner, so they start out consistent.
"""

from __future__ import annotations

from typing import Optional

from canvas_connectors.models import Anchor, BoxNode, Canvas, ConnectionRef, Geometry, Routing
from canvas_connectors.routing import RoutingConfig, connection_path


# ---------------------------------------------------------------------------
# Anchor selection
# ---------------------------------------------------------------------------

def choose_best_anchors(
    src_geo: Geometry,
    tgt_geo: Geometry,
    direction: str = "auto",
) -> tuple[Anchor, Anchor]:
    """Choose exit/entry anchors for a single connector.

    Looks at where the target's center lies relative to the source's and
    picks the facing sides. ``direction`` may force ``"horizontal"`` or
    ``"vertical"``; ``"auto"`` takes the dominant axis and prefers vertical
    when the offset is roughly diagonal.

    Returns:
        (exit_anchor, entry_anchor)
    """
    dx = tgt_geo.cx - src_geo.cx
    dy = tgt_geo.cy - src_geo.cy

    if direction == "auto":
        if abs(dx) > abs(dy) * 1.5:
            direction = "horizontal"
        elif abs(dy) > abs(dx) * 1.5:
            direction = "vertical"
        else:
            direction = "vertical" if abs(dy) >= abs(dx) else "horizontal"

    if direction == "horizontal":
        if dx >= 0:
            return Anchor.RIGHT, Anchor.LEFT
        return Anchor.LEFT, Anchor.RIGHT
    if dy >= 0:
        return Anchor.BOTTOM, Anchor.TOP
    return Anchor.TOP, Anchor.BOTTOM


# ---------------------------------------------------------------------------
# Connecting nodes
# ---------------------------------------------------------------------------

def _box(canvas: Canvas, node_id: str) -> BoxNode:
    node = canvas.find(node_id)
    if node is None:
        raise KeyError(f"Node '{node_id}' not found")
    if not isinstance(node, BoxNode):
        raise ValueError(f"Node '{node_id}' is a line and cannot be connected to")
    return node


def connect_nodes(
    canvas: Canvas,
    source_id: str,
    target_id: str,
    routing: Routing = Routing.ORTHOGONAL,
    start_anchor: Optional[Anchor] = None,
    end_anchor: Optional[Anchor] = None,
    arrows: tuple[str, str] = ("none", "arrow"),
    config: Optional[RoutingConfig] = None,
) -> str:
    """Create a line attached to *source_id* and *target_id*; return its ID.

    Anchors left as None are picked with ``choose_best_anchors``.
    """
    src = _box(canvas, source_id)
    tgt = _box(canvas, target_id)
    if start_anchor is None or end_anchor is None:
        best_start, best_end = choose_best_anchors(src.geometry, tgt.geometry)
        start_anchor = best_start if start_anchor is None else start_anchor
        end_anchor = best_end if end_anchor is None else end_anchor

    pts = connection_path(src.geometry, start_anchor, tgt.geometry, end_anchor, routing, config)
    return canvas.add_line(
        pts,
        routing=routing,
        start_conn=ConnectionRef(source_id, start_anchor),
        end_conn=ConnectionRef(target_id, end_anchor),
        arrows=arrows,
    )


def connect_chain(
    canvas: Canvas,
    ids: list[str],
    routing: Routing = Routing.ORTHOGONAL,
    arrows: tuple[str, str] = ("none", "arrow"),
    config: Optional[RoutingConfig] = None,
) -> list[str]:
    """Connect a list of node IDs sequentially, return line IDs."""
    line_ids: list[str] = []
    for i in range(len(ids) - 1):
        line_ids.append(connect_nodes(canvas, ids[i], ids[i + 1], routing,
                                      arrows=arrows, config=config))
    return line_ids
