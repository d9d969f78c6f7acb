"""
Canvas Connectors MCP Server — connector routing and geometry sync via Model Context Protocol.

Exposes 5 tools that let an LLM agent build a canvas of shapes and lines,
attach line endpoints to node anchors, and move things around while every
connected line stays glued to its anchors.

Tools:
  1. canvas   — lifecycle/content: create, load_json, get_json, list, add_shapes,
                add_lines, remove
  2. connect  — connections: connect two nodes, chain nodes, detach line ends
  3. route    — planning (read-only): resolve anchors, plan paths, preview recompute
  4. gesture  — edits: move/resize nodes, translate lines, simulated node drags,
                endpoint drags with anchor snapping
  5. inspect  — read-only: anchors, connections, consistency check
"""

from __future__ import annotations

import json
import logging
import threading
from typing import Any, Optional

from mcp.server.fastmcp import FastMCP

from canvas_connectors.anchors import anchor_candidates, resolve_anchor, resolve_connection
from canvas_connectors.consistency import (
    apply_patches,
    line_updates,
    move_node_updates,
    recompute,
    resize_node_updates,
    translate_line,
)
from canvas_connectors.drag_sync import NodeDragController
from canvas_connectors.endpoint_editor import EndpointDragController, SnapConfig
from canvas_connectors.layout import connect_chain, connect_nodes
from canvas_connectors.models import (
    BoxNode,
    Canvas,
    ConnectionRef,
    Geometry,
    LineNode,
    NodePatch,
    Routing,
)
from canvas_connectors.routing import connection_path
from canvas_connectors.validation import (
    ValidationError,
    validate_action,
    validate_anchor,
    validate_arrows,
    validate_bool,
    validate_canvas_dict,
    validate_ends,
    validate_geometry_dict,
    validate_grid_size,
    validate_handle,
    validate_line_dict,
    validate_list,
    validate_non_empty_string,
    validate_non_negative_number,
    validate_number,
    validate_positive_number,
    validate_routing,
    validate_shape_dict,
    validate_string,
    validate_zoom,
    _CANVAS_ACTIONS,
    _CONNECT_ACTIONS,
    _GESTURE_ACTIONS,
    _INSPECT_ACTIONS,
    _ROUTE_ACTIONS,
)

# ---------------------------------------------------------------------------
# Logging — suppress routine FastMCP INFO messages (they go to stderr and
# clients tend to label them as warnings).
# ---------------------------------------------------------------------------
logging.getLogger("mcp.server").setLevel(logging.WARNING)
logger = logging.getLogger("canvas-connectors")

# ---------------------------------------------------------------------------
# MCP Server
# ---------------------------------------------------------------------------
mcp = FastMCP(
    "canvas-connectors",
    instructions=(
        "MCP server for connector lines that stay attached to shapes.\n\n"
        "=== ONLY 5 TOOLS — use the 'action' parameter to pick the operation ===\n\n"
        "1. canvas(action, ...) — create, load_json, get_json, list,\n"
        "   add_shapes, add_lines, remove.\n"
        "2. connect(action, ...) — connect, chain, detach.\n"
        "3. route(action, ...) — anchor, path, recompute (read-only previews).\n"
        "4. gesture(action, ...) — move_node, resize_node, translate_line,\n"
        "   drag_node, endpoint_begin, endpoint_move, endpoint_release,\n"
        "   endpoint_cancel.\n"
        "5. inspect(action, ...) — anchors, connections, check.\n\n"
        "=== RULES ===\n"
        "- ALL coordinates are absolute document units; (x, y) is the top-left corner.\n"
        "- Anchors: t, b, l, r, tl, tr, bl, br (auto = center).\n"
        "- Routing: straight (2 points) or orthogonal (right-angle path with stubs).\n"
        "- Always move/resize nodes through the gesture tool so attached lines follow.\n"
        "- Translating a whole line detaches both of its ends.\n"
        "- An endpoint drag is begin -> move (repeat) -> release or cancel;\n"
        "  only one gesture may be active per canvas, and other edits to that\n"
        "  canvas are refused until it is released or cancelled.\n"
    ),
)

# In-memory canvas registry: name -> Canvas
# Guarded by _canvases_lock for thread-safety.
_canvases: dict[str, Canvas] = {}
_canvases_lock = threading.Lock()

# Active endpoint gesture per canvas name.
_gestures: dict[str, EndpointDragController] = {}


def _dump(data: Any) -> str:
    return json.dumps(data, indent=2)


def _patches_json(patches: list[NodePatch], applied: Optional[list[str]] = None) -> str:
    result: dict[str, Any] = {"patches": [p.to_dict() for p in patches]}
    if applied is not None:
        result["applied"] = applied
    return _dump(result)


# ===================================================================
# TOOL 1: canvas — lifecycle and content
# ===================================================================

@mcp.tool()
def canvas(
    action: str,
    name: str = "",
    json_content: str = "",
    grid: bool = False,
    grid_size: float = 15,
    snap_strength: float = 5,
    shapes: Optional[list[dict]] = None,
    lines: Optional[list[dict]] = None,
    node_ids: Optional[list[str]] = None,
) -> str:
    """Canvas lifecycle and content management.

    Actions:
      create     — Create an empty canvas. Params: name, grid, grid_size, snap_strength.
      load_json  — Load a canvas from its JSON form. Params: name, json_content.
      get_json   — Get the JSON form of a canvas. Params: name.
      list       — List all in-memory canvases. No params needed.
      add_shapes — Add nodes. Params: name, shapes (list of dicts).
                   Each shape: {x, y, w?, h?, shape?, label?, r?, id?}.
                   type="table" needs rows+cols (sizes); type="signature"
                   needs w, h and takes strokes.
      add_lines  — Add lines. Params: name, lines (list of dicts).
                   Each line: {pts?, start_conn?, end_conn?, routing?, arrows?,
                   stroke?, stroke_w?, id?}.
                   start_conn/end_conn: {node_id, anchor}. Points are planned
                   from the connections when they resolve.
      remove     — Remove nodes. Params: name, node_ids. Lines attached to a
                   removed node keep their points and a stale reference.

    Args:
        action: One of: create, load_json, get_json, list, add_shapes, add_lines, remove.
        name: Canvas name (used as key in memory).
        json_content: JSON string for load_json.
        grid: Whether the grid is shown (drives endpoint snapping).
        grid_size: Grid spacing in document units.
        snap_strength: Snap step used when the grid is hidden (0 disables).
        shapes: Node dicts for add_shapes.
        lines: Line dicts for add_lines.
        node_ids: IDs for remove.

    Returns:
        Result string or JSON depending on action.
    """
    try:
        action = validate_action(action, "canvas", _CANVAS_ACTIONS)
    except ValidationError as exc:
        return f"Error: {exc.message}"

    if action == "list":
        result = [
            {"name": n, "shapes": len(c.boxes()), "lines": len(c.lines())}
            for n, c in _canvases.items()
        ]
        return _dump(result)

    try:
        name = validate_non_empty_string(name, "name")
    except ValidationError as exc:
        return f"Error: {exc.message}"

    if action == "create":
        try:
            validate_bool(grid, "grid")
            grid_size = validate_grid_size(grid_size)
            snap_strength = validate_non_negative_number(snap_strength, "snap_strength")
        except ValidationError as exc:
            return f"Error: {exc.message}"
        c = Canvas(name=name, grid=grid, grid_size=grid_size, snap_strength=snap_strength)
        with _canvases_lock:
            _canvases[name] = c
            _gestures.pop(name, None)
        return f"Canvas '{name}' created."

    if action == "load_json":
        try:
            validate_non_empty_string(json_content, "json_content")
        except ValidationError as exc:
            return f"Error: {exc.message}"
        try:
            data = json.loads(json_content)
        except json.JSONDecodeError as exc:
            return f"Error: invalid JSON: {exc}"
        try:
            validate_canvas_dict(data)
        except ValidationError as exc:
            return f"Error: {exc.message}"
        try:
            c = Canvas.from_dict(data)
        except (KeyError, TypeError, ValueError) as exc:
            return f"Error: invalid canvas data: {exc}"
        c.name = name
        with _canvases_lock:
            _canvases[name] = c
            _gestures.pop(name, None)
        return f"Loaded '{name}' with {len(c.nodes)} node(s)."

    c = _canvases.get(name)
    if not c:
        return f"Error: canvas '{name}' not found."

    if action == "get_json":
        return _dump(c.to_dict())

    busy = _gesture_busy(name)
    if busy:
        return busy

    if action == "add_shapes":
        try:
            validate_list(shapes, "shapes", min_length=1)
            for i, s in enumerate(shapes):
                validate_shape_dict(s, i)
        except ValidationError as exc:
            return f"Error: {exc.message}"
        dup = _duplicate_id(c, shapes)
        if dup:
            return f"Error: node id '{dup}' already exists."
        with _canvases_lock:
            ids = [_add_shape(c, s) for s in shapes]
        return _dump({"ids": ids})

    if action == "add_lines":
        try:
            validate_list(lines, "lines", min_length=1)
            for i, ln in enumerate(lines):
                validate_line_dict(ln, i)
        except ValidationError as exc:
            return f"Error: {exc.message}"
        dup = _duplicate_id(c, lines)
        if dup:
            return f"Error: node id '{dup}' already exists."
        for i, ln in enumerate(lines):
            for key in ("start_conn", "end_conn"):
                ref = ln.get(key)
                if ref and not isinstance(c.find(ref["node_id"]), BoxNode):
                    return (
                        f"Error: line at index {i}: '{key}' target '{ref['node_id']}' "
                        "not found or not connectable."
                    )
        with _canvases_lock:
            ids = [_add_line(c, ln) for ln in lines]
        return _dump({"ids": ids})

    if action == "remove":
        try:
            validate_list(node_ids, "node_ids", min_length=1)
            for i, nid in enumerate(node_ids):
                validate_non_empty_string(nid, f"node_ids[{i}]")
        except ValidationError as exc:
            return f"Error: {exc.message}"
        with _canvases_lock:
            removed = [nid for nid in node_ids if c.remove(nid)]
        missing = [nid for nid in node_ids if nid not in removed]
        return _dump({"removed": removed, "missing": missing})

    return f"Error: unknown canvas action '{action}'."


# ===================================================================
# TOOL 2: connect — attach lines to nodes
# ===================================================================

@mcp.tool()
def connect(
    action: str,
    canvas_name: str = "",
    source_id: str = "",
    target_id: str = "",
    node_ids: Optional[list[str]] = None,
    routing: str = "orthogonal",
    start_anchor: str = "",
    end_anchor: str = "",
    arrows: Optional[list[str]] = None,
    line_id: str = "",
    ends: str = "both",
) -> str:
    """Create and detach connections.

    Actions:
      connect — Connect two nodes with a new line. Params: canvas_name,
                source_id, target_id, routing, start_anchor?, end_anchor?, arrows?.
                Anchors left empty are chosen from the relative position.
      chain   — Connect node_ids sequentially. Params: canvas_name, node_ids,
                routing, arrows?.
      detach  — Clear connections of a line (points stay). Params: canvas_name,
                line_id, ends (start, end or both).

    Args:
        action: One of: connect, chain, detach.
        canvas_name: Target canvas name.
        source_id: Source node ID.
        target_id: Target node ID.
        node_ids: Node IDs for chain (at least 2).
        routing: straight or orthogonal.
        start_anchor: Anchor on the source (t, b, l, r, tl, tr, bl, br, auto).
        end_anchor: Anchor on the target.
        arrows: [start_marker, end_marker], e.g. ["none", "arrow"].
        line_id: Line ID for detach.
        ends: Which ends to detach.

    Returns:
        JSON with the created line IDs and points, or the applied patch.
    """
    try:
        action = validate_action(action, "connect", _CONNECT_ACTIONS)
        validate_non_empty_string(canvas_name, "canvas_name")
    except ValidationError as exc:
        return f"Error: {exc.message}"
    c = _canvases.get(canvas_name)
    if not c:
        return f"Error: canvas '{canvas_name}' not found."
    busy = _gesture_busy(canvas_name)
    if busy:
        return busy

    if action == "detach":
        try:
            line_id = validate_non_empty_string(line_id, "line_id")
            ends = validate_ends(ends)
        except ValidationError as exc:
            return f"Error: {exc.message}"
        line = c.find(line_id)
        if not isinstance(line, LineNode):
            return f"Error: line '{line_id}' not found."
        changes: dict[str, Any] = {}
        if ends in ("start", "both"):
            changes["start_conn"] = None
        if ends in ("end", "both"):
            changes["end_conn"] = None
        patch = NodePatch(line_id, changes)
        with _canvases_lock:
            applied = apply_patches(c, [patch])
        return _patches_json([patch], applied)

    try:
        routing_mode = validate_routing(routing)
        arrow_pair = validate_arrows(arrows) if arrows is not None else ("none", "arrow")
    except ValidationError as exc:
        return f"Error: {exc.message}"

    if action == "connect":
        try:
            source_id = validate_non_empty_string(source_id, "source_id")
            target_id = validate_non_empty_string(target_id, "target_id")
            s_anchor = validate_anchor(start_anchor, "start_anchor") if start_anchor else None
            e_anchor = validate_anchor(end_anchor, "end_anchor") if end_anchor else None
        except ValidationError as exc:
            return f"Error: {exc.message}"
        if source_id == target_id:
            return "Error: 'source_id' and 'target_id' must be different."
        try:
            with _canvases_lock:
                lid = connect_nodes(c, source_id, target_id, routing_mode,
                                    s_anchor, e_anchor, arrows=arrow_pair)
        except (KeyError, ValueError) as exc:
            return f"Error: {exc.args[0]}"
        line = c.find(lid)
        return _dump({"line_id": lid, "pts": list(line.pts)})

    # chain
    try:
        validate_list(node_ids, "node_ids", min_length=2)
        for i, nid in enumerate(node_ids):
            validate_non_empty_string(nid, f"node_ids[{i}]")
    except ValidationError as exc:
        return f"Error: {exc.message}"
    for nid in node_ids:
        if not isinstance(c.find(nid), BoxNode):
            return f"Error: node '{nid}' not found or not connectable."
    with _canvases_lock:
        line_ids = connect_chain(c, node_ids, routing_mode, arrows=arrow_pair)
    return _dump({"line_ids": line_ids})


# ===================================================================
# TOOL 3: route — read-only planning
# ===================================================================

@mcp.tool()
def route(
    action: str,
    canvas_name: str = "",
    node_id: str = "",
    anchor: str = "auto",
    geometry: Optional[dict] = None,
    source: Optional[dict] = None,
    target: Optional[dict] = None,
    start_anchor: str = "r",
    end_anchor: str = "l",
    routing: str = "orthogonal",
) -> str:
    """Anchor resolution and path planning without touching any canvas.

    Actions:
      anchor    — Resolve an anchor to a point and outward normal. Params:
                  anchor plus either geometry {x, y, w?, h?} or canvas_name + node_id.
      path      — Plan a connector between two geometries. Params: source,
                  target (geometry dicts), start_anchor, end_anchor, routing.
      recompute — Preview the line patches a node geometry change would
                  produce. Params: canvas_name, node_id, geometry.

    Args:
        action: One of: anchor, path, recompute.
        canvas_name: Canvas name (anchor by node, recompute).
        node_id: Node ID (anchor by node, recompute).
        anchor: Anchor id for the anchor action.
        geometry: Geometry dict {x, y, w?, h?, r?}.
        source: Source geometry dict for path.
        target: Target geometry dict for path.
        start_anchor: Anchor on the source for path.
        end_anchor: Anchor on the target for path.
        routing: straight or orthogonal.

    Returns:
        JSON data.
    """
    try:
        action = validate_action(action, "route", _ROUTE_ACTIONS)
    except ValidationError as exc:
        return f"Error: {exc.message}"

    if action == "anchor":
        try:
            anchor_id = validate_anchor(anchor)
            if geometry is not None:
                geo = validate_geometry_dict(geometry)
            else:
                node = _require_box(canvas_name, node_id)
                geo = node.geometry
        except ValidationError as exc:
            return f"Error: {exc.message}"
        p = resolve_anchor(geo, anchor_id)
        return _dump({"anchor": anchor_id.value, "x": p.x, "y": p.y, "nx": p.nx, "ny": p.ny})

    if action == "path":
        try:
            src = validate_geometry_dict(source, "source")
            tgt = validate_geometry_dict(target, "target")
            s_anchor = validate_anchor(start_anchor, "start_anchor")
            e_anchor = validate_anchor(end_anchor, "end_anchor")
            routing_mode = validate_routing(routing)
        except ValidationError as exc:
            return f"Error: {exc.message}"
        return _dump({"pts": connection_path(src, s_anchor, tgt, e_anchor, routing_mode)})

    # recompute
    try:
        node = _require_box(canvas_name, node_id)
        geo = validate_geometry_dict(geometry)
    except ValidationError as exc:
        return f"Error: {exc.message}"
    c = _canvases[canvas_name]
    return _patches_json(recompute(node.id, geo, c.nodes))


# ===================================================================
# TOOL 4: gesture — committed edits
# ===================================================================

@mcp.tool()
def gesture(
    action: str,
    canvas_name: str = "",
    node_id: str = "",
    line_id: str = "",
    x: float = 0,
    y: float = 0,
    w: float = 0,
    h: float = 0,
    dx: float = 0,
    dy: float = 0,
    path: Optional[list[list[float]]] = None,
    handle: str = "end",
    modifier: bool = False,
    zoom: float = 1.0,
) -> str:
    """Geometry edits that keep connected lines in sync.

    Every committed action applies its patch batch to the canvas as one step.

    Actions:
      move_node        — Move a node's top-left corner to (x, y). Params: node_id, x, y.
      resize_node      — Set a node's box to (x, y, w, h); tables and signatures
                         rescale their content. Params: node_id, x, y, w, h.
      translate_line   — Shift a whole line by (dx, dy); detaches both ends.
                         Params: line_id, dx, dy.
      drag_node        — Simulate a pointer drag of a node through path
                         [[x, y], ...] (reported positions; centered shapes
                         report their center). Params: node_id, path.
      endpoint_begin   — Start dragging a line handle. Params: line_id, handle, zoom.
      endpoint_move    — One pointer frame. Params: x, y, modifier (angle snap).
      endpoint_release — Commit the endpoint drag.
      endpoint_cancel  — Abort the endpoint drag (points kept, connections unchanged).

    Args:
        action: One of the actions above.
        canvas_name: Target canvas name.
        node_id: Node to move/resize/drag.
        line_id: Line to translate or edit.
        x: X position (move/resize/endpoint_move).
        y: Y position.
        w: Width (resize).
        h: Height (resize).
        dx: X offset (translate_line).
        dy: Y offset (translate_line).
        path: Pointer positions for drag_node.
        handle: start or end (endpoint_begin).
        modifier: Hold-to-angle-snap flag (endpoint_move).
        zoom: Current zoom; snap distances are divided by it (endpoint_begin).

    Returns:
        JSON with the patches (and applied IDs) or the live gesture state.
    """
    try:
        action = validate_action(action, "gesture", _GESTURE_ACTIONS)
        validate_non_empty_string(canvas_name, "canvas_name")
    except ValidationError as exc:
        return f"Error: {exc.message}"
    c = _canvases.get(canvas_name)
    if not c:
        return f"Error: canvas '{canvas_name}' not found."

    if action in ("move_node", "resize_node", "drag_node", "translate_line"):
        busy = _gesture_busy(canvas_name)
        if busy:
            return busy

    if action in ("move_node", "resize_node", "drag_node"):
        try:
            node = _require_box(canvas_name, node_id)
        except ValidationError as exc:
            return f"Error: {exc.message}"

        if action == "move_node":
            try:
                validate_number(x, "x")
                validate_number(y, "y")
            except ValidationError as exc:
                return f"Error: {exc.message}"
            with _canvases_lock:
                patches = move_node_updates(node, x, y, c.nodes)
                applied = apply_patches(c, patches)
            return _patches_json(patches, applied)

        if action == "resize_node":
            try:
                validate_number(x, "x")
                validate_number(y, "y")
                validate_positive_number(w, "w")
                validate_positive_number(h, "h")
            except ValidationError as exc:
                return f"Error: {exc.message}"
            geo = Geometry(x, y, w, h, node.geometry.r)
            with _canvases_lock:
                patches = resize_node_updates(node, geo, c.nodes)
                applied = apply_patches(c, patches)
            return _patches_json(patches, applied)

        # drag_node
        try:
            validate_list(path, "path", min_length=1)
            for i, pt in enumerate(path):
                validate_list(pt, f"path[{i}]", min_length=2)
                if len(pt) != 2:
                    raise ValidationError(f"'path[{i}]' must be an [x, y] pair.")
                validate_number(pt[0], f"path[{i}][0]")
                validate_number(pt[1], f"path[{i}][1]")
        except ValidationError as exc:
            return f"Error: {exc.message}"
        with _canvases_lock:
            ctrl = NodeDragController(node, c.nodes)
            ctrl.begin()
            for px, py in path:
                ctrl.move(px, py)
            patches = ctrl.release()
            applied = apply_patches(c, patches)
        return _patches_json(patches, applied)

    if action == "translate_line":
        try:
            line_id = validate_non_empty_string(line_id, "line_id")
            validate_number(dx, "dx")
            validate_number(dy, "dy")
        except ValidationError as exc:
            return f"Error: {exc.message}"
        line = c.find(line_id)
        if not isinstance(line, LineNode):
            return f"Error: line '{line_id}' not found."
        patch = translate_line(line, dx, dy)
        if patch is None:
            return _patches_json([], [])
        with _canvases_lock:
            applied = apply_patches(c, [patch])
        return _patches_json([patch], applied)

    if action == "endpoint_begin":
        try:
            line_id = validate_non_empty_string(line_id, "line_id")
            handle = validate_handle(handle)
            zoom = validate_zoom(zoom)
        except ValidationError as exc:
            return f"Error: {exc.message}"
        line = c.find(line_id)
        if not isinstance(line, LineNode):
            return f"Error: line '{line_id}' not found."
        with _canvases_lock:
            if canvas_name in _gestures:
                return f"Error: a gesture is already active on canvas '{canvas_name}'."
            ctrl = EndpointDragController(line, c.nodes, SnapConfig.from_canvas(c, 1 / zoom))
            pts = ctrl.begin(handle)
            _gestures[canvas_name] = ctrl
        return _dump({"line_id": line_id, "handle": handle, "pts": pts,
                      "state": ctrl.state.value})

    ctrl = _gestures.get(canvas_name)
    if ctrl is None:
        return f"Error: no endpoint gesture active on canvas '{canvas_name}'."

    if action == "endpoint_move":
        try:
            validate_number(x, "x")
            validate_number(y, "y")
            validate_bool(modifier, "modifier")
        except ValidationError as exc:
            return f"Error: {exc.message}"
        pts = ctrl.move(x, y, modifier)
        snapped = next((cand.to_dict() for cand in ctrl.candidates if cand.highlighted), None)
        return _dump({
            "pts": pts,
            "state": ctrl.state.value,
            "snapped": snapped,
            "candidates": len(ctrl.candidates),
        })

    with _canvases_lock:
        _gestures.pop(canvas_name, None)
        if action == "endpoint_release":
            patch = ctrl.release()
        else:
            patch = ctrl.cancel()
        patches = [patch] if patch is not None else []
        applied = apply_patches(c, patches)
    return _patches_json(patches, applied)


# ===================================================================
# TOOL 5: inspect — read-only
# ===================================================================

@mcp.tool()
def inspect(
    action: str,
    canvas_name: str = "",
    node_id: str = "",
) -> str:
    """Read-only inspection of canvases.

    Actions:
      anchors     — List the attachable anchors of a node. Params: canvas_name, node_id.
      connections — List lines with their connections and whether each
                    reference still resolves. Params: canvas_name, node_id? (filter).
      check       — Report lines whose points no longer match their anchors,
                    and references to missing nodes. Params: canvas_name.

    Args:
        action: One of: anchors, connections, check.
        canvas_name: Target canvas name.
        node_id: Node ID (anchors; optional filter for connections).

    Returns:
        JSON data.
    """
    try:
        action = validate_action(action, "inspect", _INSPECT_ACTIONS)
        validate_non_empty_string(canvas_name, "canvas_name")
        validate_string(node_id, "node_id")
    except ValidationError as exc:
        return f"Error: {exc.message}"
    c = _canvases.get(canvas_name)
    if not c:
        return f"Error: canvas '{canvas_name}' not found."

    if action == "anchors":
        try:
            node = _require_box(canvas_name, node_id)
        except ValidationError as exc:
            return f"Error: {exc.message}"
        result = [
            {"anchor": a.value, "x": p.x, "y": p.y, "nx": p.nx, "ny": p.ny}
            for a, p in anchor_candidates(node)
        ]
        return _dump(result)

    if action == "connections":
        entries: list[dict[str, Any]] = []
        for line in c.lines():
            if node_id and not line.is_connected_to(node_id):
                continue
            entries.append({
                "line_id": line.id,
                "routing": line.routing.value,
                "start": _conn_info(line.start_conn, c),
                "end": _conn_info(line.end_conn, c),
            })
        return _dump(entries)

    # check
    out_of_sync: list[dict[str, Any]] = []
    stale: list[dict[str, str]] = []
    for line in c.lines():
        for end, ref in (("start", line.start_conn), ("end", line.end_conn)):
            if ref is not None and resolve_connection(ref, c.nodes) is None:
                stale.append({"line_id": line.id, "end": end, "node_id": ref.node_id})
        patch = line_updates(line, c.nodes)
        if patch is not None:
            out_of_sync.append({"line_id": line.id, "stored": list(line.pts),
                                "expected": patch.changes["pts"]})
    return _dump({
        "consistent": not out_of_sync,
        "out_of_sync": out_of_sync,
        "stale_refs": stale,
    })


# ===================================================================
# Internal helpers
# ===================================================================

def _require_box(canvas_name: str, node_id: str) -> BoxNode:
    """Look up a connectable node, raising ValidationError with a clear message."""
    validate_non_empty_string(canvas_name, "canvas_name")
    validate_non_empty_string(node_id, "node_id")
    c = _canvases.get(canvas_name)
    if not c:
        raise ValidationError(f"canvas '{canvas_name}' not found.")
    node = c.find(node_id)
    if node is None:
        raise ValidationError(f"node '{node_id}' not found.")
    if not isinstance(node, BoxNode):
        raise ValidationError(f"node '{node_id}' is a line, not a shape.")
    return node


def _gesture_busy(canvas_name: str) -> Optional[str]:
    """Error string when an endpoint gesture holds *canvas_name*, else None.

    The gesture is the only writer of its canvas until it is released or
    cancelled.
    """
    if canvas_name in _gestures:
        return (
            f"Error: a gesture is active on canvas '{canvas_name}'; "
            "release or cancel it first."
        )
    return None


def _duplicate_id(c: Canvas, items: list[dict]) -> Optional[str]:
    """Return the first explicit id that is taken or repeated within *items*."""
    seen: set[str] = set()
    for item in items:
        nid = item.get("id")
        if not nid:
            continue
        if nid in seen or c.find(nid) is not None:
            return nid
        seen.add(nid)
    return None


def _add_shape(c: Canvas, s: dict) -> str:
    kind = str(s.get("type", "shape")).lower()
    nid = s.get("id")
    if kind == "table":
        return c.add_table(s["x"], s["y"], s["rows"], s["cols"], node_id=nid)
    if kind == "signature":
        return c.add_signature(s["x"], s["y"], s["w"], s["h"], s.get("strokes", []), node_id=nid)
    return c.add_shape(
        s["x"], s["y"], s.get("w", 120), s.get("h", 60),
        shape=s.get("shape", "rect"), label=s.get("label", ""),
        r=s.get("r", 0), node_id=nid,
    )


def _add_line(c: Canvas, ln: dict) -> str:
    """Add a line and plan its points from whatever connections resolve."""
    start = ConnectionRef.from_dict(ln.get("start_conn"))
    end = ConnectionRef.from_dict(ln.get("end_conn"))
    routing_mode = validate_routing(ln["routing"]) if "routing" in ln else Routing.STRAIGHT
    arrows = validate_arrows(ln["arrows"]) if "arrows" in ln else ("none", "none")
    pts = list(ln["pts"]) if "pts" in ln else _placeholder_pts(c, start, end)
    lid = c.add_line(pts, routing=routing_mode, start_conn=start, end_conn=end,
                     arrows=arrows, node_id=ln.get("id"))
    line = c.find(lid)
    line.stroke = ln.get("stroke", line.stroke)
    line.stroke_w = ln.get("stroke_w", line.stroke_w)
    patch = line_updates(line, c.nodes)
    if patch is not None:
        apply_patches(c, [patch])
    return lid


def _placeholder_pts(c: Canvas, start: Optional[ConnectionRef],
                     end: Optional[ConnectionRef]) -> list[float]:
    s = resolve_connection(start, c.nodes)
    e = resolve_connection(end, c.nodes)
    s_xy = (s.x, s.y) if s else (0, 0)
    e_xy = (e.x, e.y) if e else s_xy
    return [*s_xy, *e_xy]


def _conn_info(ref: Optional[ConnectionRef], c: Canvas) -> Optional[dict[str, Any]]:
    if ref is None:
        return None
    info: dict[str, Any] = ref.to_dict()
    info["resolved"] = resolve_connection(ref, c.nodes) is not None
    return info


# ===================================================================
# Entry point
# ===================================================================

def main() -> None:
    """Run the MCP server."""
    mcp.run()


if __name__ == "__main__":
    main()
