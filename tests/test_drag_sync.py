"""Tests for live drag synchronization."""

import pytest

from canvas_connectors.consistency import apply_patches
from canvas_connectors.drag_sync import (
    DragPhase,
    LineVisual,
    NodeDragController,
    marker_angles,
    write_line_visual,
)
from canvas_connectors.models import Anchor, Canvas, ConnectionRef, Geometry, Routing


FACE_TO_FACE = [100, 50, 120, 50, 200, 50, 200, 50, 280, 50, 300, 50]


class FakeHandle:
    """Records what the engine writes onto a retained visual."""

    def __init__(self) -> None:
        self.points: list[float] | None = None
        self.position: tuple[float, float] | None = None
        self.rotation: float | None = None
        self.writes = 0

    def set_points(self, pts: list[float]) -> None:
        self.points = pts
        self.writes += 1

    def set_position(self, x: float, y: float) -> None:
        self.position = (x, y)
        self.writes += 1

    def set_rotation(self, degrees: float) -> None:
        self.rotation = degrees
        self.writes += 1


def _visual() -> LineVisual:
    return LineVisual(FakeHandle(), FakeHandle(), FakeHandle(), FakeHandle(), FakeHandle())


def _canvas() -> Canvas:
    c = Canvas()
    c.add_shape(0, 0, 100, 100, node_id="A")
    c.add_shape(300, 0, 100, 100, node_id="B")
    c.add_line(FACE_TO_FACE, routing=Routing.ORTHOGONAL,
               start_conn=ConnectionRef("A", Anchor.RIGHT),
               end_conn=ConnectionRef("B", Anchor.LEFT), node_id="L1")
    c.add_line([0, 500, 100, 500], node_id="free")
    return c


# ===================================================================
# Visual writes
# ===================================================================

def test_marker_angles_horizontal() -> None:
    assert marker_angles([0, 0, 100, 0]) == (180, 0)


def test_marker_angles_vertical() -> None:
    start, end = marker_angles([0, 0, 0, 100])
    assert start == pytest.approx(270)
    assert end == pytest.approx(90)


def test_marker_angles_skip_zero_length_segments() -> None:
    assert marker_angles([0, 0, 0, 0, 100, 0, 100, 0]) == (180, 0)


def test_marker_angles_follow_end_segments() -> None:
    start, end = marker_angles([100, 250, 120, 250, 200, 250, 200, 50, 280, 50, 300, 50])
    assert start == pytest.approx(180)
    assert end == pytest.approx(0)


def test_write_line_visual() -> None:
    v = _visual()
    write_line_visual(v, [0, 0, 0, 100])
    assert v.body.points == [0, 0, 0, 100]
    assert v.start_handle.position == (0, 0)
    assert v.end_handle.position == (0, 100)
    assert v.start_marker.position == (0, 0)
    assert v.end_marker.rotation == pytest.approx(90)


def test_write_line_visual_body_only() -> None:
    v = LineVisual(FakeHandle())
    write_line_visual(v, [1, 2, 3, 4])
    assert v.body.points == [1, 2, 3, 4]


# ===================================================================
# NodeDragController
# ===================================================================

class TestNodeDragController:
    def test_live_frames_write_visuals_only(self) -> None:
        c = _canvas()
        v = _visual()
        ctrl = NodeDragController(c.find("A"), c.nodes, {"L1": v})
        ctrl.begin()
        assert ctrl.phase is DragPhase.LIVE
        frame = ctrl.move(0, 200)
        assert list(frame) == ["L1"]
        assert v.body.points[0:2] == [100, 250]
        assert v.start_handle.position == (100, 250)
        assert v.end_handle.position == (300, 50)
        assert v.end_marker.rotation == pytest.approx(0)
        # the document is untouched until release
        assert c.find("L1").pts == FACE_TO_FACE
        assert c.find("A").geometry == Geometry(0, 0, 100, 100)

    def test_release_returns_one_batch(self) -> None:
        c = _canvas()
        ctrl = NodeDragController(c.find("A"), c.nodes)
        ctrl.begin()
        ctrl.move(0, 100)
        ctrl.move(0, 200)
        batch = ctrl.release()
        assert ctrl.phase is DragPhase.COMMITTED
        assert [p.node_id for p in batch] == ["A", "L1"]
        apply_patches(c, batch)
        assert c.find("A").geometry == Geometry(0, 200, 100, 100)
        assert c.find("L1").pts[0:2] == [100, 250]
        assert c.find("free").pts == [0, 500, 100, 500]

    def test_release_matches_last_frame(self) -> None:
        c = _canvas()
        ctrl = NodeDragController(c.find("B"), c.nodes)
        ctrl.begin()
        frame = ctrl.move(420, 60)
        batch = ctrl.release()
        assert batch[1].changes["pts"] == frame["L1"]

    def test_release_without_motion_is_empty(self) -> None:
        c = _canvas()
        ctrl = NodeDragController(c.find("A"), c.nodes)
        ctrl.begin()
        assert ctrl.release() == []

    def test_cancel_commits_computed_geometry(self) -> None:
        c = _canvas()
        ctrl = NodeDragController(c.find("A"), c.nodes)
        ctrl.begin()
        ctrl.move(0, 200)
        batch = ctrl.cancel()
        assert ctrl.phase is DragPhase.IDLE
        assert [p.node_id for p in batch] == ["A", "L1"]

    def test_cancel_when_idle(self) -> None:
        c = _canvas()
        ctrl = NodeDragController(c.find("A"), c.nodes)
        assert ctrl.cancel() == []
        assert ctrl.phase is DragPhase.IDLE

    def test_move_before_begin(self) -> None:
        c = _canvas()
        ctrl = NodeDragController(c.find("A"), c.nodes)
        with pytest.raises(RuntimeError, match="no gesture"):
            ctrl.move(1, 1)

    def test_double_begin(self) -> None:
        c = _canvas()
        ctrl = NodeDragController(c.find("A"), c.nodes)
        ctrl.begin()
        with pytest.raises(RuntimeError, match="already"):
            ctrl.begin()

    def test_controller_is_reusable(self) -> None:
        c = _canvas()
        ctrl = NodeDragController(c.find("A"), c.nodes)
        ctrl.begin()
        ctrl.move(0, 10)
        ctrl.release()
        ctrl.begin()
        assert ctrl.phase is DragPhase.LIVE

    def test_centered_shape_reports_center(self) -> None:
        c = Canvas()
        c.add_shape(0, 0, 40, 40, shape="circle", node_id="O")
        c.add_line([40, 20, 200, 20], start_conn=ConnectionRef("O", Anchor.RIGHT), node_id="L")
        ctrl = NodeDragController(c.find("O"), c.nodes)
        ctrl.begin()
        frame = ctrl.move(70, 70)
        assert ctrl.geometry == Geometry(50, 50, 40, 40)
        assert frame["L"] == [90, 70, 200, 20]

    def test_line_without_visual_is_still_planned(self) -> None:
        c = _canvas()
        ctrl = NodeDragController(c.find("A"), c.nodes, {})
        ctrl.begin()
        assert "L1" in ctrl.move(0, 200)
