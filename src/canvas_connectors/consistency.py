"""
Keeps connected lines in sync with the nodes they are attached to.

Every committed geometry change of a node (drag release, resize, programmatic
move, paste offset) must go through here so that each attached line's
endpoints are recomputed from the node's new geometry. The results are
returned as a batch of ``NodePatch`` records that the document owner applies
as a single undoable step.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Iterable, Mapping, Optional

from canvas_connectors.anchors import AnchorPoint, resolve_anchor
from canvas_connectors.models import (
    BoxNode,
    Canvas,
    ConnectionRef,
    Geometry,
    LineNode,
    Node,
    NodePatch,
    SignatureNode,
    TableNode,
    moved,
)
from canvas_connectors.routing import RoutingConfig, plan_path

logger = logging.getLogger("canvas-connectors")

# Smallest width/height a resize may produce.
MIN_NODE_SIZE = 5

# Shapes whose pointer position is reported at their center rather than
# at their top-left corner.
CENTER_ORIGIN_SHAPES = frozenset({"circle", "star", "pentagon", "hexagon"})


def model_origin(node: BoxNode, x: float, y: float, w: Optional[float] = None,
                 h: Optional[float] = None) -> tuple[float, float]:
    """Convert a pointer-reported node position to the stored top-left corner."""
    if getattr(node, "shape", None) in CENTER_ORIGIN_SHAPES:
        w = node.geometry.w if w is None else w
        h = node.geometry.h if h is None else h
        return x - w / 2, y - h / 2
    return x, y


# ---------------------------------------------------------------------------
# Line recomputation
# ---------------------------------------------------------------------------

def _resolve_end(
    ref: Optional[ConnectionRef],
    literal: tuple[float, float],
    moved_id: Optional[str],
    moved_geometry: Optional[Geometry],
    index: Mapping[str, Node],
) -> tuple[AnchorPoint, bool]:
    """Resolve one line end. The flag tells whether a connection resolved."""
    if ref is None:
        return AnchorPoint(literal[0], literal[1]), False
    if moved_geometry is not None and ref.node_id == moved_id:
        return resolve_anchor(moved_geometry, ref.anchor), True
    target = index.get(ref.node_id)
    if not isinstance(target, BoxNode):
        logger.debug("Unresolved connection to '%s'; keeping literal point", ref.node_id)
        return AnchorPoint(literal[0], literal[1]), False
    return resolve_anchor(target.geometry, ref.anchor), True


def plan_line(
    line: LineNode,
    moved_id: Optional[str],
    moved_geometry: Optional[Geometry],
    index: Mapping[str, Node],
    config: Optional[RoutingConfig] = None,
) -> Optional[list[float]]:
    """Plan *line* as if node *moved_id* had *moved_geometry*.

    Passing None for both plans the line against current geometries only.
    Returns None when none of the line's connections resolve, in which case
    the line keeps its stored points.
    """
    start, start_ok = _resolve_end(line.start_conn, line.start_point, moved_id,
                                   moved_geometry, index)
    end, end_ok = _resolve_end(line.end_conn, line.end_point, moved_id,
                               moved_geometry, index)
    if not (start_ok or end_ok):
        return None
    return plan_path(start, end, line.routing, config)


def recompute(
    node_id: str,
    new_geometry: Geometry,
    nodes: Iterable[Node],
    config: Optional[RoutingConfig] = None,
) -> list[NodePatch]:
    """Recompute every line attached to *node_id* for its new geometry.

    A patch is emitted only when the planned points differ from the stored
    ones, so calling this twice without a geometry change yields nothing.
    """
    nodes = list(nodes)
    index = {n.id: n for n in nodes}
    patches: list[NodePatch] = []
    for node in nodes:
        if not isinstance(node, LineNode) or not node.is_connected_to(node_id):
            continue
        pts = plan_line(node, node_id, new_geometry, index, config)
        if pts is None:
            continue
        if pts != list(node.pts):
            patches.append(NodePatch(node.id, {"pts": pts}))
    return patches


def line_updates(
    line: LineNode,
    nodes: Iterable[Node],
    config: Optional[RoutingConfig] = None,
) -> Optional[NodePatch]:
    """Re-plan a single line from the current geometry of its targets.

    Returns None when the line is already consistent or nothing resolves.
    """
    index = {n.id: n for n in nodes}
    pts = plan_line(line, None, None, index, config)
    if pts is None or pts == list(line.pts):
        return None
    return NodePatch(line.id, {"pts": pts})


# ---------------------------------------------------------------------------
# Node geometry updates
# ---------------------------------------------------------------------------

def move_node_updates(
    node: BoxNode,
    x: float,
    y: float,
    nodes: Iterable[Node],
    config: Optional[RoutingConfig] = None,
) -> list[NodePatch]:
    """Patch batch for moving *node* so its top-left corner is at (x, y).

    The first patch is the node itself, followed by its connected lines.
    """
    geometry = moved(node.geometry, x, y)
    updates = [NodePatch(node.id, {"geometry": geometry})]
    updates.extend(recompute(node.id, geometry, nodes, config))
    return updates


def resize_node_updates(
    node: BoxNode,
    new_geometry: Geometry,
    nodes: Iterable[Node],
    config: Optional[RoutingConfig] = None,
) -> list[NodePatch]:
    """Patch batch for a transform-end resize of *node*.

    Width and height are clamped to ``MIN_NODE_SIZE``. Table rows/columns and
    signature strokes are rescaled in the same node patch, so content,
    geometry and connected lines are captured by one history step.
    """
    geometry = replace(
        new_geometry,
        w=max(MIN_NODE_SIZE, new_geometry.w),
        h=max(MIN_NODE_SIZE, new_geometry.h),
    )
    changes: dict = {"geometry": geometry}
    changes.update(scaled_content_patch(node, geometry))
    updates = [NodePatch(node.id, changes)]
    updates.extend(recompute(node.id, geometry, nodes, config))
    return updates


def scaled_content_patch(node: BoxNode, new_geometry: Geometry) -> dict:
    """Rescale size-dependent content by ``new / old`` on each axis.

    Returns the changed fields (empty for nodes without such content).
    """
    sx = new_geometry.w / (node.geometry.w or 1)
    sy = new_geometry.h / (node.geometry.h or 1)
    if isinstance(node, TableNode):
        return {
            "cols": [w * sx for w in node.cols],
            "rows": [h * sy for h in node.rows],
        }
    if isinstance(node, SignatureNode):
        strokes: list[list[float]] = []
        for stroke in node.strokes:
            scaled: list[float] = []
            for i in range(0, len(stroke) - 1, 2):
                scaled.append(stroke[i] * sx)
                scaled.append(stroke[i + 1] * sy)
            strokes.append(scaled)
        return {"strokes": strokes}
    return {}


def translate_line(line: LineNode, dx: float, dy: float) -> Optional[NodePatch]:
    """Patch for dragging a whole line body by (dx, dy).

    A translated line can no longer sit on its anchors, so both connections
    are cleared. Returns None when nothing moved.
    """
    if dx == 0 and dy == 0:
        return None
    pts = [p + dx if i % 2 == 0 else p + dy for i, p in enumerate(line.pts)]
    return NodePatch(line.id, {"pts": pts, "start_conn": None, "end_conn": None})


# ---------------------------------------------------------------------------
# Applying patches
# ---------------------------------------------------------------------------

def apply_patches(canvas: Canvas, patches: Iterable[NodePatch]) -> list[str]:
    """Apply a patch batch to *canvas* and return the ids that were updated.

    Patches for nodes that disappeared in the meantime are dropped; the rest
    of the batch still applies.
    """
    applied: list[str] = []
    for patch in patches:
        if canvas.apply_patch(patch):
            applied.append(patch.node_id)
        else:
            logger.debug("Dropped patch for missing node '%s'", patch.node_id)
    return applied
