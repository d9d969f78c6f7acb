"""
Anchor resolution for connector endpoints.

Maps a node geometry and an anchor id to an absolute point plus the
outward normal used to push orthogonal stubs away from the owning shape.
Rotation is not taken into account; anchors always sit on the unrotated
bounding box.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Optional

from canvas_connectors.models import Anchor, BoxNode, ConnectionRef, Geometry, Node


@dataclass(frozen=True)
class AnchorPoint:
    """Absolute anchor position with its outward normal (components in -1..1)."""
    x: float
    y: float
    nx: int = 0
    ny: int = 0

    @property
    def has_direction(self) -> bool:
        return self.nx != 0 or self.ny != 0

    @property
    def is_diagonal(self) -> bool:
        return self.nx != 0 and self.ny != 0


# (fraction of w, fraction of h, nx, ny); corners carry a diagonal normal
_ANCHOR_TABLE: dict[Anchor, tuple[float, float, int, int]] = {
    Anchor.TOP: (0.5, 0, 0, -1),
    Anchor.BOTTOM: (0.5, 1, 0, 1),
    Anchor.LEFT: (0, 0.5, -1, 0),
    Anchor.RIGHT: (1, 0.5, 1, 0),
    Anchor.TOP_LEFT: (0, 0, -1, -1),
    Anchor.TOP_RIGHT: (1, 0, 1, -1),
    Anchor.BOTTOM_LEFT: (0, 1, -1, 1),
    Anchor.BOTTOM_RIGHT: (1, 1, 1, 1),
}

# Enumeration order for snap candidates; the first hit wins on ties.
CANDIDATE_ORDER: tuple[Anchor, ...] = (
    Anchor.TOP_LEFT,
    Anchor.TOP,
    Anchor.TOP_RIGHT,
    Anchor.LEFT,
    Anchor.RIGHT,
    Anchor.BOTTOM_LEFT,
    Anchor.BOTTOM,
    Anchor.BOTTOM_RIGHT,
)

CORNER_ANCHORS = frozenset(
    {Anchor.TOP_LEFT, Anchor.TOP_RIGHT, Anchor.BOTTOM_LEFT, Anchor.BOTTOM_RIGHT}
)


def resolve_anchor(geo: Geometry, anchor: Any) -> AnchorPoint:
    """Return the absolute point and outward normal of *anchor* on *geo*.

    Total over its input: ``auto`` and unknown ids resolve to the center
    with a zero normal.
    """
    key = Anchor.parse(anchor)
    fx, fy, nx, ny = _ANCHOR_TABLE.get(key, (0.5, 0.5, 0, 0))
    return AnchorPoint(geo.x + geo.w * fx, geo.y + geo.h * fy, nx, ny)


def resolve_connection(
    ref: Optional[ConnectionRef],
    nodes: Iterable[Node],
) -> Optional[AnchorPoint]:
    """Look *ref* up by id among *nodes*.

    Returns None when there is no reference, the id is gone, or the target
    has no geometry (lines are never anchor targets).
    """
    if ref is None:
        return None
    for node in nodes:
        if node.id == ref.node_id:
            if isinstance(node, BoxNode):
                return resolve_anchor(node.geometry, ref.anchor)
            return None
    return None


def anchor_candidates(
    node: BoxNode,
    min_size: float = 0,
) -> list[tuple[Anchor, AnchorPoint]]:
    """List the attachable anchors of *node* in snap enumeration order.

    Corner anchors are skipped when either side is below *min_size*.
    """
    geo = node.geometry
    small = geo.w < min_size or geo.h < min_size
    result: list[tuple[Anchor, AnchorPoint]] = []
    for anchor in CANDIDATE_ORDER:
        if small and anchor in CORNER_ANCHORS:
            continue
        result.append((anchor, resolve_anchor(geo, anchor)))
    return result
