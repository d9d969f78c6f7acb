"""Tests for keeping connected lines consistent with node geometry."""

from canvas_connectors.anchors import resolve_anchor
from canvas_connectors.consistency import (
    MIN_NODE_SIZE,
    apply_patches,
    line_updates,
    model_origin,
    move_node_updates,
    recompute,
    resize_node_updates,
    scaled_content_patch,
    translate_line,
)
from canvas_connectors.models import (
    Anchor,
    Canvas,
    ConnectionRef,
    Geometry,
    Routing,
    ShapeNode,
    SignatureNode,
    TableNode,
)


FACE_TO_FACE = [100, 50, 120, 50, 200, 50, 200, 50, 280, 50, 300, 50]


def _canvas() -> Canvas:
    """A.r -> B.l orthogonal (L1) and B.b -> C.t straight (L2)."""
    c = Canvas()
    c.add_shape(0, 0, 100, 100, node_id="A")
    c.add_shape(300, 0, 100, 100, node_id="B")
    c.add_shape(300, 300, 100, 100, node_id="C")
    c.add_line(FACE_TO_FACE, routing=Routing.ORTHOGONAL,
               start_conn=ConnectionRef("A", Anchor.RIGHT),
               end_conn=ConnectionRef("B", Anchor.LEFT), node_id="L1")
    c.add_line([350, 100, 350, 300],
               start_conn=ConnectionRef("B", Anchor.BOTTOM),
               end_conn=ConnectionRef("C", Anchor.TOP), node_id="L2")
    return c


def test_recompute_moved_node() -> None:
    c = _canvas()
    patches = recompute("A", Geometry(0, 200, 100, 100), c.nodes)
    assert len(patches) == 1
    assert patches[0].node_id == "L1"
    pts = patches[0].changes["pts"]
    assert pts[0:2] == [100, 250]
    assert pts == [100, 250, 120, 250, 200, 250, 200, 50, 280, 50, 300, 50]


def test_recompute_does_not_touch_the_document() -> None:
    c = _canvas()
    recompute("A", Geometry(0, 200, 100, 100), c.nodes)
    assert c.find("L1").pts == FACE_TO_FACE
    assert c.find("A").geometry == Geometry(0, 0, 100, 100)


def test_recompute_restores_anchor_invariant() -> None:
    c = _canvas()
    apply_patches(c, move_node_updates(c.find("A"), -40, 120, c.nodes))
    line = c.find("L1")
    start = resolve_anchor(c.find("A").geometry, Anchor.RIGHT)
    end = resolve_anchor(c.find("B").geometry, Anchor.LEFT)
    assert line.start_point == (start.x, start.y)
    assert line.end_point == (end.x, end.y)


def test_recompute_is_idempotent() -> None:
    c = _canvas()
    geo = Geometry(0, 200, 100, 100)
    apply_patches(c, recompute("A", geo, c.nodes))
    assert recompute("A", geo, c.nodes) == []


def test_recompute_unchanged_geometry_emits_nothing() -> None:
    c = _canvas()
    assert recompute("A", Geometry(0, 0, 100, 100), c.nodes) == []


def test_recompute_node_with_several_lines() -> None:
    c = _canvas()
    patches = recompute("B", Geometry(400, 0, 100, 100), c.nodes)
    assert sorted(p.node_id for p in patches) == ["L1", "L2"]
    by_id = {p.node_id: p.changes["pts"] for p in patches}
    assert by_id["L2"] == [450, 100, 350, 300]
    assert by_id["L1"][-2:] == [400, 50]


def test_recompute_missing_other_end_keeps_literal_point() -> None:
    c = Canvas()
    c.add_shape(0, 0, 100, 100, node_id="A")
    c.add_line([100, 50, 500, 500],
               start_conn=ConnectionRef("A", Anchor.RIGHT),
               end_conn=ConnectionRef("ghost", Anchor.LEFT), node_id="L")
    patches = recompute("A", Geometry(0, 200, 100, 100), c.nodes)
    assert patches[0].changes["pts"] == [100, 250, 500, 500]


def test_recompute_unconnected_end_keeps_literal_point() -> None:
    c = Canvas()
    c.add_shape(0, 0, 100, 100, node_id="A")
    c.add_line([400, 400, 100, 50], end_conn=ConnectionRef("A", Anchor.RIGHT), node_id="L")
    patches = recompute("A", Geometry(10, 0, 100, 100), c.nodes)
    assert patches[0].changes["pts"] == [400, 400, 110, 50]


def test_unresolvable_line_is_left_alone() -> None:
    c = Canvas()
    c.add_line([0, 0, 10, 10],
               start_conn=ConnectionRef("x"), end_conn=ConnectionRef("y"), node_id="L")
    assert line_updates(c.find("L"), c.nodes) is None


def test_move_node_updates_batch() -> None:
    c = _canvas()
    batch = move_node_updates(c.find("A"), 0, 200, c.nodes)
    assert batch[0].node_id == "A"
    assert batch[0].changes == {"geometry": Geometry(0, 200, 100, 100)}
    assert [p.node_id for p in batch[1:]] == ["L1"]
    assert apply_patches(c, batch) == ["A", "L1"]
    assert c.find("L1").pts[0:2] == [100, 250]
    assert c.find("L2").pts == [350, 100, 350, 300]


def test_resize_table_scales_rows_and_cols() -> None:
    c = Canvas()
    tid = c.add_table(0, 0, rows=[20, 30], cols=[40, 60])
    table = c.find(tid)
    batch = resize_node_updates(table, Geometry(0, 0, 200, 100), c.nodes)
    apply_patches(c, batch)
    assert isinstance(table, TableNode)
    assert table.cols == [80, 120]
    assert table.rows == [40, 60]
    assert table.geometry == Geometry(0, 0, 200, 100)


def test_resize_signature_scales_strokes() -> None:
    node = SignatureNode("s", Geometry(0, 0, 100, 50), strokes=[[10, 10, 20, 20]])
    assert scaled_content_patch(node, Geometry(0, 0, 200, 100)) == {"strokes": [[20, 20, 40, 40]]}


def test_resize_plain_shape_has_no_content_patch() -> None:
    assert scaled_content_patch(ShapeNode("a", Geometry()), Geometry(0, 0, 10, 10)) == {}


def test_resize_clamps_minimum_size() -> None:
    node = ShapeNode("a", Geometry(0, 0, 100, 100))
    batch = resize_node_updates(node, Geometry(0, 0, 2, 1), [node])
    assert batch[0].changes["geometry"] == Geometry(0, 0, MIN_NODE_SIZE, MIN_NODE_SIZE)


def test_resize_updates_connected_lines_in_same_batch() -> None:
    c = _canvas()
    batch = resize_node_updates(c.find("A"), Geometry(0, 0, 50, 100), c.nodes)
    assert [p.node_id for p in batch] == ["A", "L1"]
    assert batch[1].changes["pts"][0:2] == [50, 50]


def test_translate_line_detaches() -> None:
    c = _canvas()
    patch = translate_line(c.find("L2"), 10, 5)
    assert patch.changes == {
        "pts": [360, 105, 360, 305],
        "start_conn": None,
        "end_conn": None,
    }
    apply_patches(c, [patch])
    line = c.find("L2")
    assert line.start_conn is None and line.end_conn is None


def test_translate_line_without_motion() -> None:
    c = _canvas()
    assert translate_line(c.find("L2"), 0, 0) is None


def test_apply_patches_drops_missing_nodes() -> None:
    c = _canvas()
    batch = move_node_updates(c.find("A"), 0, 200, c.nodes)
    c.remove("L1")
    assert apply_patches(c, batch) == ["A"]
    assert c.find("A").geometry.y == 200


def test_line_updates() -> None:
    c = _canvas()
    assert line_updates(c.find("L1"), c.nodes) is None
    c.find("A").geometry = Geometry(0, 200, 100, 100)
    patch = line_updates(c.find("L1"), c.nodes)
    assert patch.changes["pts"][0:2] == [100, 250]


def test_model_origin_for_centered_shapes() -> None:
    circle = ShapeNode("c", Geometry(0, 0, 40, 40), shape="circle")
    rect = ShapeNode("r", Geometry(0, 0, 40, 40))
    assert model_origin(circle, 70, 70) == (50, 50)
    assert model_origin(rect, 70, 70) == (70, 70)
