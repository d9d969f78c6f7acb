"""
Connector path planning.

Two routing modes are supported:
- Straight: the two anchor points, nothing in between.
- Orthogonal: a Manhattan path built from each anchor's outward normal.
  A short stub leaves each anchor along its normal, and the stubs are joined
  through a midpoint zig, a detour along the perpendicular axis, or an
  L-bend, depending on how the two ends face each other.

Paths are flat ``[x0, y0, x1, y1, ...]`` lists in document units. The
planner never rounds; snapping is the caller's business.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from canvas_connectors.anchors import AnchorPoint, resolve_anchor
from canvas_connectors.models import Anchor, Geometry, Routing


STUB_LENGTH = 20


@dataclass
class RoutingConfig:
    """Configuration for orthogonal routing."""
    stub_length: float = STUB_LENGTH


def straight_path(start: AnchorPoint, end: AnchorPoint) -> list[float]:
    return [start.x, start.y, end.x, end.y]


def plan_path(
    start: AnchorPoint,
    end: AnchorPoint,
    routing: Routing = Routing.STRAIGHT,
    config: Optional[RoutingConfig] = None,
) -> list[float]:
    """Plan the point list between two anchor points for a routing mode."""
    if routing is Routing.ORTHOGONAL:
        return orthogonal_path(start, end, config)
    return straight_path(start, end)


def connection_path(
    start_geo: Geometry,
    start_anchor: Anchor,
    end_geo: Geometry,
    end_anchor: Anchor,
    routing: Routing = Routing.ORTHOGONAL,
    config: Optional[RoutingConfig] = None,
) -> list[float]:
    """Plan a connector between anchors of two geometries.

    This is the entry point for layout code that has just placed nodes and
    wants the matching connector shape without building line entities.
    """
    return plan_path(
        resolve_anchor(start_geo, start_anchor),
        resolve_anchor(end_geo, end_anchor),
        routing,
        config,
    )


def orthogonal_path(
    start: AnchorPoint,
    end: AnchorPoint,
    config: Optional[RoutingConfig] = None,
) -> list[float]:
    """Compute an orthogonal path between two anchor points.

    Returns ``[start, stub, bend, bend, stub, end]`` (12 numbers). When
    neither end has a normal the stubs would sit on the anchors, so they are
    left out and the path is ``[start, bend, bend, end]`` (8 numbers). A
    zero-length connection falls back to the 2-point straight path.
    """
    if start.x == end.x and start.y == end.y:
        return straight_path(start, end)

    cfg = config or RoutingConfig()
    s = _resolve_diagonal(start, end)
    e = _resolve_diagonal(end, s)

    stub_s = (s.x + s.nx * cfg.stub_length, s.y + s.ny * cfg.stub_length)
    stub_e = (e.x + e.nx * cfg.stub_length, e.y + e.ny * cfg.stub_length)

    s_dir = (s.nx, s.ny) if s.has_direction else _infer_direction(s, e)
    e_dir = (e.nx, e.ny) if e.has_direction else _infer_direction(e, s)

    bend_a, bend_b = _bends(stub_s, stub_e, s_dir, e_dir)

    if not s.has_direction and not e.has_direction:
        return [s.x, s.y, *bend_a, *bend_b, e.x, e.y]
    return [s.x, s.y, *stub_s, *bend_a, *bend_b, *stub_e, e.x, e.y]


def _resolve_diagonal(current: AnchorPoint, target: AnchorPoint) -> AnchorPoint:
    """Reduce a corner anchor's diagonal normal to one cardinal axis.

    Prefers the axis with the larger distance to *target*, provided the
    normal points toward it on that axis; otherwise takes the other axis
    if that one does, and finally falls back to the preferred axis.
    """
    if not current.is_diagonal:
        return current
    dx = target.x - current.x
    dy = target.y - current.y
    match_x = (dx >= 0 and current.nx > 0) or (dx < 0 and current.nx < 0)
    match_y = (dy >= 0 and current.ny > 0) or (dy < 0 and current.ny < 0)
    horizontal = AnchorPoint(current.x, current.y, current.nx, 0)
    vertical = AnchorPoint(current.x, current.y, 0, current.ny)

    if abs(dx) > abs(dy):
        if match_x:
            return horizontal
        if match_y:
            return vertical
        return horizontal
    if match_y:
        return vertical
    if match_x:
        return horizontal
    return vertical


def _infer_direction(current: AnchorPoint, target: AnchorPoint) -> tuple[int, int]:
    """Pick the cardinal direction from *current* toward *target*."""
    dx = target.x - current.x
    dy = target.y - current.y
    if abs(dx) > abs(dy):
        return (1 if dx > 0 else -1, 0)
    return (0, 1 if dy > 0 else -1)


def _bends(
    a: tuple[float, float],
    b: tuple[float, float],
    start_dir: tuple[int, int],
    end_dir: tuple[int, int],
) -> tuple[tuple[float, float], tuple[float, float]]:
    """Return the two interior bends joining stub *a* to stub *b*.

    An L-bend has a single corner, which is returned twice.
    """
    dx = b[0] - a[0]
    dy = b[1] - a[1]
    mid_x = (a[0] + b[0]) / 2
    mid_y = (a[1] + b[1]) / 2

    if start_dir[0] != 0:
        if end_dir[0] != 0:
            # Ahead (ties included): zig through the shared vertical at mid_x.
            if start_dir[0] * dx >= 0:
                return (mid_x, a[1]), (mid_x, b[1])
            # Behind: go around through the horizontal at mid_y.
            return (a[0], mid_y), (b[0], mid_y)
        corner = (b[0], a[1])
        return corner, corner

    if end_dir[1] != 0:
        if start_dir[1] * dy >= 0:
            return (a[0], mid_y), (b[0], mid_y)
        return (mid_x, a[1]), (mid_x, b[1])
    corner = (a[0], b[1])
    return corner, corner
