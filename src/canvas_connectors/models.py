"""
Core document model for connector routing on a diagramming canvas.

Provides typed node classes (shapes, tables, signatures, lines), weak
by-id connection references between line endpoints and node anchors, and
the patch records the engine hands back to the document owner.
"""

from __future__ import annotations

import copy
import uuid
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Any, ClassVar, Optional, Union


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class Anchor(Enum):
    """Named attachment points on a node's bounding box."""
    AUTO = "auto"
    TOP = "t"
    BOTTOM = "b"
    LEFT = "l"
    RIGHT = "r"
    TOP_LEFT = "tl"
    TOP_RIGHT = "tr"
    BOTTOM_LEFT = "bl"
    BOTTOM_RIGHT = "br"

    @classmethod
    def parse(cls, value: Any) -> Anchor:
        """Parse an anchor id; anything unknown falls back to AUTO."""
        if isinstance(value, Anchor):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.AUTO


class Routing(Enum):
    STRAIGHT = "straight"
    ORTHOGONAL = "orthogonal"


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Geometry:
    """Axis-aligned box in document units. ``r`` is rotation in degrees."""
    x: float = 0
    y: float = 0
    w: float = 120
    h: float = 60
    r: float = 0

    @property
    def right(self) -> float:
        return self.x + self.w

    @property
    def bottom(self) -> float:
        return self.y + self.h

    @property
    def cx(self) -> float:
        return self.x + self.w / 2

    @property
    def cy(self) -> float:
        return self.y + self.h / 2

    def contains_point(self, px: float, py: float, margin: float = 0) -> bool:
        """Check if a point is inside this box (with margin, edges included)."""
        return (
            self.x - margin <= px <= self.right + margin
            and self.y - margin <= py <= self.bottom + margin
        )

    def to_dict(self) -> dict[str, float]:
        return {"x": self.x, "y": self.y, "w": self.w, "h": self.h, "r": self.r}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Geometry:
        return cls(
            x=data.get("x", 0),
            y=data.get("y", 0),
            w=data.get("w", 120),
            h=data.get("h", 60),
            r=data.get("r", 0),
        )


@dataclass(frozen=True)
class ConnectionRef:
    """Weak link from a line endpoint to an anchor on another node.

    Only the id is stored; the target is looked up in the live node
    collection every time, so a deleted node simply stops resolving.
    """
    node_id: str
    anchor: Anchor = Anchor.AUTO

    def to_dict(self) -> dict[str, str]:
        return {"node_id": self.node_id, "anchor": self.anchor.value}

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> Optional[ConnectionRef]:
        if not data:
            return None
        return cls(node_id=str(data["node_id"]), anchor=Anchor.parse(data.get("anchor", "auto")))


@dataclass
class BoxNode:
    """Base for every node that owns a geometry and can be an anchor target."""
    id: str
    geometry: Geometry

    kind: ClassVar[str] = "box"

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"id": self.id, "type": self.kind}
        data.update(self.geometry.to_dict())
        return data


@dataclass
class ShapeNode(BoxNode):
    shape: str = "rect"
    label: str = ""

    kind: ClassVar[str] = "shape"

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["shape"] = self.shape
        if self.label:
            data["label"] = self.label
        return data


@dataclass
class TableNode(BoxNode):
    """Table whose row heights and column widths follow its geometry."""
    rows: list[float] = field(default_factory=list)
    cols: list[float] = field(default_factory=list)

    kind: ClassVar[str] = "table"

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["rows"] = list(self.rows)
        data["cols"] = list(self.cols)
        return data


@dataclass
class SignatureNode(BoxNode):
    """Freeform strokes; each stroke is a flat [x, y, ...] list relative to the node."""
    strokes: list[list[float]] = field(default_factory=list)

    kind: ClassVar[str] = "signature"

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["strokes"] = [list(s) for s in self.strokes]
        return data


@dataclass
class LineNode:
    """A connector. ``pts`` is the flattened point list and the render source."""
    id: str
    pts: list[float] = field(default_factory=lambda: [0, 0, 100, 0])
    start_conn: Optional[ConnectionRef] = None
    end_conn: Optional[ConnectionRef] = None
    routing: Routing = Routing.STRAIGHT
    stroke: str = "#000000"
    stroke_w: float = 1
    arrows: tuple[str, str] = ("none", "none")

    kind: ClassVar[str] = "line"

    @property
    def start_point(self) -> tuple[float, float]:
        return self.pts[0], self.pts[1]

    @property
    def end_point(self) -> tuple[float, float]:
        return self.pts[-2], self.pts[-1]

    def is_connected_to(self, node_id: str) -> bool:
        return (
            (self.start_conn is not None and self.start_conn.node_id == node_id)
            or (self.end_conn is not None and self.end_conn.node_id == node_id)
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "type": self.kind,
            "pts": list(self.pts),
            "routing": self.routing.value,
            "stroke": self.stroke,
            "stroke_w": self.stroke_w,
            "arrows": list(self.arrows),
        }
        if self.start_conn:
            data["start_conn"] = self.start_conn.to_dict()
        if self.end_conn:
            data["end_conn"] = self.end_conn.to_dict()
        return data


Node = Union[ShapeNode, TableNode, SignatureNode, LineNode]


@dataclass
class NodePatch:
    """Field-level update for one node.

    A batch of patches is applied by the document owner as one undoable
    step. A value of ``None`` clears the field (used for connections).
    """
    node_id: str
    changes: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"id": self.node_id}
        for key, value in self.changes.items():
            data[key] = _serialize(value)
        return data


def _serialize(value: Any) -> Any:
    if isinstance(value, (Geometry, ConnectionRef)):
        return value.to_dict()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, list):
        return [_serialize(v) for v in value]
    return value


# ---------------------------------------------------------------------------
# Node collection
# ---------------------------------------------------------------------------

@dataclass
class Canvas:
    """One page/slide worth of nodes plus its snapping settings."""
    name: str = "Page-1"
    id: str = field(default_factory=lambda: _uid())
    nodes: list[Node] = field(default_factory=list)
    grid: bool = False
    grid_size: float = 15
    snap_strength: float = 5

    # internal counter
    _next_id: int = field(default=1, init=False, repr=False)

    def next_id(self) -> str:
        """Generate a sequential node ID that is not already taken."""
        taken = {n.id for n in self.nodes}
        while True:
            nid = f"n{self._next_id}"
            self._next_id += 1
            if nid not in taken:
                return nid

    # ----- builder helpers -----

    def add_shape(
        self,
        x: float,
        y: float,
        w: float = 120,
        h: float = 60,
        shape: str = "rect",
        label: str = "",
        r: float = 0,
        node_id: Optional[str] = None,
    ) -> str:
        nid = node_id or self.next_id()
        self.nodes.append(
            ShapeNode(id=nid, geometry=Geometry(x, y, w, h, r), shape=shape, label=label)
        )
        return nid

    def add_table(
        self,
        x: float,
        y: float,
        rows: list[float],
        cols: list[float],
        node_id: Optional[str] = None,
    ) -> str:
        """Add a table sized to the sum of its row heights and column widths."""
        nid = node_id or self.next_id()
        geo = Geometry(x, y, sum(cols), sum(rows))
        self.nodes.append(TableNode(id=nid, geometry=geo, rows=list(rows), cols=list(cols)))
        return nid

    def add_signature(
        self,
        x: float,
        y: float,
        w: float,
        h: float,
        strokes: list[list[float]],
        node_id: Optional[str] = None,
    ) -> str:
        nid = node_id or self.next_id()
        self.nodes.append(
            SignatureNode(id=nid, geometry=Geometry(x, y, w, h), strokes=[list(s) for s in strokes])
        )
        return nid

    def add_line(
        self,
        pts: list[float],
        routing: Routing = Routing.STRAIGHT,
        start_conn: Optional[ConnectionRef] = None,
        end_conn: Optional[ConnectionRef] = None,
        arrows: tuple[str, str] = ("none", "none"),
        node_id: Optional[str] = None,
    ) -> str:
        nid = node_id or self.next_id()
        self.nodes.append(
            LineNode(
                id=nid,
                pts=list(pts),
                start_conn=start_conn,
                end_conn=end_conn,
                routing=routing,
                arrows=arrows,
            )
        )
        return nid

    # ----- queries -----

    def find(self, node_id: str) -> Optional[Node]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def boxes(self) -> list[BoxNode]:
        """Nodes that have geometry (possible anchor targets)."""
        return [n for n in self.nodes if isinstance(n, BoxNode)]

    def lines(self) -> list[LineNode]:
        return [n for n in self.nodes if isinstance(n, LineNode)]

    def lines_connected_to(self, node_id: str) -> list[LineNode]:
        return [ln for ln in self.lines() if ln.is_connected_to(node_id)]

    def remove(self, node_id: str) -> bool:
        """Remove a node. Connection refs pointing at it are left to go stale."""
        for i, node in enumerate(self.nodes):
            if node.id == node_id:
                del self.nodes[i]
                return True
        return False

    # ----- mutation -----

    def apply_patch(self, patch: NodePatch) -> bool:
        """Apply one patch in place. Returns False when the node is gone."""
        node = self.find(patch.node_id)
        if node is None:
            return False
        names = {f.name for f in fields(node)}
        for key, value in patch.changes.items():
            if key in names:
                setattr(node, key, copy.deepcopy(value))
        return True

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "id": self.id,
            "grid": self.grid,
            "grid_size": self.grid_size,
            "snap_strength": self.snap_strength,
            "nodes": [n.to_dict() for n in self.nodes],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Canvas:
        canvas = cls(
            name=data.get("name", "Page-1"),
            grid=bool(data.get("grid", False)),
            grid_size=data.get("grid_size", 15),
            snap_strength=data.get("snap_strength", 5),
        )
        if data.get("id"):
            canvas.id = data["id"]
        for raw in data.get("nodes", []):
            canvas.nodes.append(node_from_dict(raw))
        return canvas


def node_from_dict(data: dict[str, Any]) -> Node:
    """Build a node from its ``to_dict`` form (``type`` selects the class)."""
    kind = data.get("type", "shape")
    nid = str(data["id"])
    if kind == "line":
        arrows = data.get("arrows") or ["none", "none"]
        return LineNode(
            id=nid,
            pts=list(data["pts"]),
            start_conn=ConnectionRef.from_dict(data.get("start_conn")),
            end_conn=ConnectionRef.from_dict(data.get("end_conn")),
            routing=Routing(data.get("routing", "straight")),
            stroke=data.get("stroke", "#000000"),
            stroke_w=data.get("stroke_w", 1),
            arrows=(arrows[0], arrows[1]),
        )
    geo = Geometry.from_dict(data)
    if kind == "table":
        return TableNode(id=nid, geometry=geo, rows=list(data.get("rows", [])),
                         cols=list(data.get("cols", [])))
    if kind == "signature":
        return SignatureNode(id=nid, geometry=geo,
                             strokes=[list(s) for s in data.get("strokes", [])])
    return ShapeNode(id=nid, geometry=geo, shape=data.get("shape", "rect"),
                     label=data.get("label", ""))


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _uid() -> str:
    return uuid.uuid4().hex[:12]


def snap_to_grid(value: float, grid_size: float = 10) -> float:
    """Snap a coordinate to the nearest grid point (no-op for a zero step)."""
    if not grid_size:
        return value
    return round(value / grid_size) * grid_size


def moved(geometry: Geometry, x: float, y: float) -> Geometry:
    """Return *geometry* translated to a new top-left corner."""
    return replace(geometry, x=x, y=y)
