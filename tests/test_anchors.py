"""Tests for anchor resolution."""

from canvas_connectors.anchors import (
    CANDIDATE_ORDER,
    AnchorPoint,
    anchor_candidates,
    resolve_anchor,
    resolve_connection,
)
from canvas_connectors.models import Anchor, ConnectionRef, Geometry, LineNode, ShapeNode


BOX = Geometry(0, 0, 100, 100)


def test_side_anchors() -> None:
    assert resolve_anchor(BOX, "t") == AnchorPoint(50, 0, 0, -1)
    assert resolve_anchor(BOX, "b") == AnchorPoint(50, 100, 0, 1)
    assert resolve_anchor(BOX, "l") == AnchorPoint(0, 50, -1, 0)
    assert resolve_anchor(BOX, "r") == AnchorPoint(100, 50, 1, 0)


def test_corner_anchors_are_diagonal() -> None:
    tl = resolve_anchor(BOX, Anchor.TOP_LEFT)
    br = resolve_anchor(BOX, Anchor.BOTTOM_RIGHT)
    assert (tl.x, tl.y, tl.nx, tl.ny) == (0, 0, -1, -1)
    assert (br.x, br.y, br.nx, br.ny) == (100, 100, 1, 1)
    assert tl.is_diagonal


def test_auto_and_unknown_resolve_to_center() -> None:
    for anchor in ("auto", "middle", None):
        p = resolve_anchor(Geometry(10, 20, 40, 60), anchor)
        assert (p.x, p.y) == (30, 50)
        assert not p.has_direction


def test_resolution_is_deterministic() -> None:
    geo = Geometry(3.5, 7.25, 41, 13)
    assert resolve_anchor(geo, "tr") == resolve_anchor(geo, "tr")


def test_rotation_is_ignored() -> None:
    assert resolve_anchor(Geometry(0, 0, 100, 100, 45), "r") == resolve_anchor(BOX, "r")


def test_resolve_connection() -> None:
    nodes = [ShapeNode("a", BOX), LineNode("l")]
    assert resolve_connection(ConnectionRef("a", Anchor.RIGHT), nodes) == AnchorPoint(100, 50, 1, 0)
    assert resolve_connection(ConnectionRef("ghost", Anchor.RIGHT), nodes) is None
    assert resolve_connection(ConnectionRef("l", Anchor.RIGHT), nodes) is None
    assert resolve_connection(None, nodes) is None


def test_anchor_candidates_order() -> None:
    result = anchor_candidates(ShapeNode("a", BOX))
    assert [a for a, _ in result] == list(CANDIDATE_ORDER)


def test_anchor_candidates_small_node_skips_corners() -> None:
    result = anchor_candidates(ShapeNode("a", Geometry(0, 0, 10, 40)), min_size=15)
    assert [a for a, _ in result] == [Anchor.TOP, Anchor.LEFT, Anchor.RIGHT, Anchor.BOTTOM]
