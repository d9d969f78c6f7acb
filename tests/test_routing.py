"""Tests for connector path planning."""

from canvas_connectors.anchors import AnchorPoint
from canvas_connectors.models import Anchor, Geometry, Routing
from canvas_connectors.routing import (
    RoutingConfig,
    connection_path,
    orthogonal_path,
    plan_path,
    straight_path,
)


A = Geometry(0, 0, 100, 100)
B = Geometry(300, 0, 100, 100)


def _segments_axis_aligned(pts: list[float]) -> bool:
    for i in range(0, len(pts) - 2, 2):
        x0, y0, x1, y1 = pts[i:i + 4]
        if x0 != x1 and y0 != y1:
            return False
    return True


def test_straight_path() -> None:
    assert straight_path(AnchorPoint(1, 2), AnchorPoint(3, 4)) == [1, 2, 3, 4]
    assert plan_path(AnchorPoint(1, 2, 1, 0), AnchorPoint(3, 4, -1, 0)) == [1, 2, 3, 4]


def test_face_to_face() -> None:
    pts = connection_path(A, Anchor.RIGHT, B, Anchor.LEFT)
    assert pts == [100, 50, 120, 50, 200, 50, 200, 50, 280, 50, 300, 50]


def test_facing_away_goes_around() -> None:
    behind = Geometry(-300, 100, 100, 100)
    pts = connection_path(A, Anchor.RIGHT, behind, Anchor.LEFT)
    assert pts == [100, 50, 120, 50, 120, 100, -320, 100, -320, 150, -300, 150]
    assert _segments_axis_aligned(pts)


def test_vertical_to_horizontal_l_bend() -> None:
    c = Geometry(200, 200, 100, 100)
    pts = connection_path(A, Anchor.BOTTOM, c, Anchor.LEFT)
    assert pts == [50, 100, 50, 120, 50, 250, 50, 250, 180, 250, 200, 250]


def test_horizontal_to_vertical_l_bend() -> None:
    c = Geometry(200, 200, 100, 100)
    pts = connection_path(A, Anchor.RIGHT, c, Anchor.TOP)
    assert pts == [100, 50, 120, 50, 250, 50, 250, 50, 250, 180, 250, 200]


def test_vertical_face_to_face() -> None:
    below = Geometry(0, 300, 100, 100)
    pts = connection_path(A, Anchor.BOTTOM, below, Anchor.TOP)
    assert pts == [50, 100, 50, 120, 50, 200, 50, 200, 50, 280, 50, 300]


def test_corner_normals_reduce_to_one_axis() -> None:
    far = Geometry(300, 300, 100, 100)
    pts = connection_path(A, Anchor.BOTTOM_RIGHT, far, Anchor.TOP_LEFT)
    assert pts == [100, 100, 100, 120, 100, 200, 300, 200, 300, 280, 300, 300]


def test_no_normals_drops_stubs() -> None:
    pts = orthogonal_path(AnchorPoint(0, 0), AnchorPoint(100, 50))
    assert pts == [0, 0, 50, 0, 50, 50, 100, 50]


def test_zero_length_falls_back_to_straight() -> None:
    p = AnchorPoint(10, 10, 1, 0)
    assert orthogonal_path(p, AnchorPoint(10, 10, -1, 0)) == [10, 10, 10, 10]


def test_custom_stub_length() -> None:
    pts = connection_path(A, Anchor.RIGHT, B, Anchor.LEFT, config=RoutingConfig(stub_length=10))
    assert pts[2:4] == [110, 50]
    assert pts[-4:-2] == [290, 50]


def test_plan_path_straight_mode() -> None:
    pts = connection_path(A, Anchor.RIGHT, B, Anchor.LEFT, routing=Routing.STRAIGHT)
    assert pts == [100, 50, 300, 50]


def test_every_anchor_pair_is_orthogonal() -> None:
    other = Geometry(260, 180, 80, 40)
    for start in Anchor:
        for end in Anchor:
            pts = connection_path(A, start, other, end)
            assert len(pts) in (4, 8, 12), (start, end)
            assert _segments_axis_aligned(pts), (start, end)
