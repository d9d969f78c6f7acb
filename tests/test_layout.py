"""Tests for programmatic connection helpers."""

import pytest

from canvas_connectors.anchors import resolve_anchor
from canvas_connectors.layout import choose_best_anchors, connect_chain, connect_nodes
from canvas_connectors.models import Anchor, Canvas, ConnectionRef, Geometry, Routing
from canvas_connectors.routing import connection_path


def _fresh_canvas() -> Canvas:
    c = Canvas(name="test")
    c.add_shape(0, 0, 100, 100, node_id="A")
    c.add_shape(300, 0, 100, 100, node_id="B")
    c.add_shape(300, 300, 100, 100, node_id="C")
    return c


class TestChooseBestAnchors:
    def test_target_right(self) -> None:
        assert choose_best_anchors(Geometry(0, 0), Geometry(300, 0)) == (Anchor.RIGHT, Anchor.LEFT)

    def test_target_left(self) -> None:
        assert choose_best_anchors(Geometry(300, 0), Geometry(0, 0)) == (Anchor.LEFT, Anchor.RIGHT)

    def test_target_below(self) -> None:
        assert choose_best_anchors(Geometry(0, 0), Geometry(0, 300)) == (Anchor.BOTTOM, Anchor.TOP)

    def test_target_above(self) -> None:
        assert choose_best_anchors(Geometry(0, 300), Geometry(0, 0)) == (Anchor.TOP, Anchor.BOTTOM)

    def test_diagonal_prefers_vertical(self) -> None:
        assert choose_best_anchors(Geometry(0, 0), Geometry(200, 200)) == (Anchor.BOTTOM, Anchor.TOP)

    def test_forced_horizontal(self) -> None:
        result = choose_best_anchors(Geometry(0, 0), Geometry(10, 300), direction="horizontal")
        assert result == (Anchor.RIGHT, Anchor.LEFT)


def test_connect_nodes_sets_refs_and_points() -> None:
    c = _fresh_canvas()
    lid = connect_nodes(c, "A", "B")
    line = c.find(lid)
    assert line.start_conn == ConnectionRef("A", Anchor.RIGHT)
    assert line.end_conn == ConnectionRef("B", Anchor.LEFT)
    assert line.routing is Routing.ORTHOGONAL
    assert line.pts == [100, 50, 120, 50, 200, 50, 200, 50, 280, 50, 300, 50]
    assert line.arrows == ("none", "arrow")


def test_connect_nodes_explicit_anchors() -> None:
    c = _fresh_canvas()
    lid = connect_nodes(c, "A", "C", Routing.STRAIGHT, Anchor.BOTTOM_RIGHT, Anchor.TOP_LEFT)
    line = c.find(lid)
    assert line.pts == [100, 100, 300, 300]


def test_connect_nodes_one_anchor_given() -> None:
    c = _fresh_canvas()
    lid = connect_nodes(c, "A", "B", start_anchor=Anchor.TOP)
    line = c.find(lid)
    assert line.start_conn.anchor is Anchor.TOP
    assert line.end_conn.anchor is Anchor.LEFT
    expected = connection_path(Geometry(0, 0, 100, 100), Anchor.TOP,
                               Geometry(300, 0, 100, 100), Anchor.LEFT)
    assert line.pts == expected


def test_connected_endpoints_sit_on_anchors() -> None:
    c = _fresh_canvas()
    lid = connect_nodes(c, "B", "C")
    line = c.find(lid)
    start = resolve_anchor(c.find("B").geometry, line.start_conn.anchor)
    end = resolve_anchor(c.find("C").geometry, line.end_conn.anchor)
    assert line.start_point == (start.x, start.y)
    assert line.end_point == (end.x, end.y)


def test_connect_nodes_rejects_missing_and_lines() -> None:
    c = _fresh_canvas()
    lid = connect_nodes(c, "A", "B")
    with pytest.raises(KeyError):
        connect_nodes(c, "A", "ghost")
    with pytest.raises(ValueError, match="line"):
        connect_nodes(c, "A", lid)


def test_connect_chain() -> None:
    c = _fresh_canvas()
    ids = connect_chain(c, ["A", "B", "C"])
    assert len(ids) == 2
    first, second = (c.find(i) for i in ids)
    assert first.start_conn.node_id == "A" and first.end_conn.node_id == "B"
    assert second.start_conn.node_id == "B" and second.end_conn.node_id == "C"
    assert second.start_conn.anchor is Anchor.BOTTOM


def test_connect_chain_single_node() -> None:
    c = _fresh_canvas()
    assert connect_chain(c, ["A"]) == []
