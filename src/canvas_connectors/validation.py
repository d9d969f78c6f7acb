"""
Input validation for canvas-connectors MCP tool parameters.

Provides reusable validators that produce clear error messages for all
parameters received from LLM callers.
"""

from __future__ import annotations

import re
from typing import Any

from canvas_connectors.models import Anchor, Geometry, Routing


# ---------------------------------------------------------------------------
# Validation result
# ---------------------------------------------------------------------------

class ValidationError(Exception):
    """Raised when input validation fails."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


# ---------------------------------------------------------------------------
# Primitive validators
# ---------------------------------------------------------------------------

def validate_non_empty_string(value: Any, field_name: str) -> str:
    """Ensure *value* is a non-empty string after stripping whitespace."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"'{field_name}' must be a non-empty string.")
    return value.strip()


def validate_string(value: Any, field_name: str, *, allow_empty: bool = True) -> str:
    """Ensure *value* is a string (optionally non-empty)."""
    if not isinstance(value, str):
        raise ValidationError(f"'{field_name}' must be a string, got {type(value).__name__}.")
    if not allow_empty and not value.strip():
        raise ValidationError(f"'{field_name}' must not be empty.")
    return value


def validate_color(value: Any, field_name: str) -> str:
    """Validate a CSS-style hex color (#RGB, #RRGGBB, #RRGGBBAA)."""
    if not isinstance(value, str):
        raise ValidationError(f"'{field_name}' must be a color string, got {type(value).__name__}.")
    value = value.strip()
    if not re.match(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6}|[0-9a-fA-F]{8})$", value):
        raise ValidationError(
            f"'{field_name}' must be a valid hex color (#RGB, #RRGGBB, or #RRGGBBAA), got '{value}'."
        )
    return value


def validate_number(
    value: Any,
    field_name: str,
    *,
    min_val: float | None = None,
    max_val: float | None = None,
) -> float:
    """Validate a numeric value and optional range."""
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        raise ValidationError(
            f"'{field_name}' must be a number, got {type(value).__name__}."
        )
    val = float(value)
    if min_val is not None and val < min_val:
        raise ValidationError(
            f"'{field_name}' must be >= {min_val}, got {val}."
        )
    if max_val is not None and val > max_val:
        raise ValidationError(
            f"'{field_name}' must be <= {max_val}, got {val}."
        )
    return val


def validate_bool(value: Any, field_name: str) -> bool:
    """Ensure *value* is a boolean."""
    if not isinstance(value, bool):
        raise ValidationError(
            f"'{field_name}' must be a boolean, got {type(value).__name__}."
        )
    return value


def validate_enum(value: Any, field_name: str, allowed: set[str]) -> str:
    """Validate that a string value is one of the allowed choices (case-insensitive)."""
    if not isinstance(value, str):
        raise ValidationError(
            f"'{field_name}' must be a string, got {type(value).__name__}."
        )
    normalized = value.strip().upper()
    if normalized not in {a.upper() for a in allowed}:
        choices = ", ".join(sorted(allowed))
        raise ValidationError(
            f"'{field_name}' must be one of [{choices}], got '{value}'."
        )
    return normalized


def validate_list(value: Any, field_name: str, *, min_length: int = 0) -> list:
    """Ensure *value* is a list with at least *min_length* items."""
    if not isinstance(value, list):
        raise ValidationError(
            f"'{field_name}' must be a list, got {type(value).__name__}."
        )
    if len(value) < min_length:
        raise ValidationError(
            f"'{field_name}' must have at least {min_length} item(s), got {len(value)}."
        )
    return value


def validate_dict(value: Any, field_name: str) -> dict:
    """Ensure *value* is a dict."""
    if not isinstance(value, dict):
        raise ValidationError(
            f"'{field_name}' must be a dict/object, got {type(value).__name__}."
        )
    return value


# ---------------------------------------------------------------------------
# Composite / domain validators
# ---------------------------------------------------------------------------

_CANVAS_ACTIONS = {"CREATE", "LOAD_JSON", "GET_JSON", "LIST", "ADD_SHAPES", "ADD_LINES", "REMOVE"}
_CONNECT_ACTIONS = {"CONNECT", "CHAIN", "DETACH"}
_ROUTE_ACTIONS = {"ANCHOR", "PATH", "RECOMPUTE"}
_GESTURE_ACTIONS = {
    "MOVE_NODE", "RESIZE_NODE", "TRANSLATE_LINE", "DRAG_NODE",
    "ENDPOINT_BEGIN", "ENDPOINT_MOVE", "ENDPOINT_RELEASE", "ENDPOINT_CANCEL",
}
_INSPECT_ACTIONS = {"ANCHORS", "CONNECTIONS", "CHECK"}

_VALID_ANCHORS = {a.value for a in Anchor}
_VALID_ROUTINGS = {r.value for r in Routing}
_VALID_HANDLES = {"START", "END"}
_VALID_ENDS = {"START", "END", "BOTH"}
_VALID_NODE_TYPES = {"SHAPE", "TABLE", "SIGNATURE"}
_VALID_ARROWS = {"none", "arrow", "circle", "diamond", "bar"}


def validate_action(value: Any, tool_name: str, allowed: set[str]) -> str:
    """Validate the action parameter for a tool."""
    if not isinstance(value, str) or not value.strip():
        choices = ", ".join(sorted(a.lower() for a in allowed))
        raise ValidationError(
            f"'{tool_name}' requires an 'action' parameter. Valid actions: {choices}."
        )
    normalized = value.strip().upper()
    if normalized not in allowed:
        choices = ", ".join(sorted(a.lower() for a in allowed))
        raise ValidationError(
            f"Unknown {tool_name} action '{value}'. Valid actions: {choices}."
        )
    return value.strip().lower()


def validate_anchor(value: Any, field_name: str = "anchor") -> Anchor:
    """Validate an anchor id (t, b, l, r, tl, tr, bl, br or auto)."""
    if isinstance(value, Anchor):
        return value
    normalized = validate_enum(value, field_name, _VALID_ANCHORS)
    return Anchor(normalized.lower())


def validate_routing(value: Any, field_name: str = "routing") -> Routing:
    """Validate a routing mode (straight or orthogonal)."""
    normalized = validate_enum(value, field_name, _VALID_ROUTINGS)
    return Routing(normalized.lower())


def validate_handle(value: Any) -> str:
    """Validate an endpoint handle name (start or end)."""
    return validate_enum(value, "handle", _VALID_HANDLES).lower()


def validate_ends(value: Any) -> str:
    """Validate which connection ends to act on (start, end or both)."""
    return validate_enum(value, "ends", _VALID_ENDS).lower()


def validate_arrows(value: Any) -> tuple[str, str]:
    """Validate an ``[start, end]`` arrow marker pair."""
    validate_list(value, "arrows", min_length=2)
    if len(value) != 2:
        raise ValidationError(f"'arrows' must have exactly 2 items, got {len(value)}.")
    start = validate_enum(value[0], "arrows[0]", _VALID_ARROWS).lower()
    end = validate_enum(value[1], "arrows[1]", _VALID_ARROWS).lower()
    return start, end


def validate_points(value: Any, field_name: str = "pts") -> list[float]:
    """Validate a flat ``[x0, y0, x1, y1, ...]`` point list with at least 2 points."""
    validate_list(value, field_name, min_length=4)
    if len(value) % 2:
        raise ValidationError(
            f"'{field_name}' must contain an even number of coordinates, got {len(value)}."
        )
    return [validate_number(v, f"{field_name}[{i}]") for i, v in enumerate(value)]


def validate_geometry_dict(g: Any, field_name: str = "geometry") -> Geometry:
    """Validate a geometry dict with x, y and optional positive w, h."""
    validate_dict(g, field_name)
    for key in ("x", "y"):
        if key not in g:
            raise ValidationError(f"'{field_name}' missing required key '{key}'.")
        validate_number(g[key], f"{field_name}.{key}")
    for key in ("w", "h"):
        if key in g:
            validate_number(g[key], f"{field_name}.{key}", min_val=0.001)
    if "r" in g:
        validate_number(g["r"], f"{field_name}.r")
    return Geometry.from_dict(g)


def validate_connection_ref_dict(c: Any, field_name: str) -> None:
    """Validate a ``{"node_id", "anchor"}`` connection reference."""
    validate_dict(c, field_name)
    if "node_id" not in c:
        raise ValidationError(f"'{field_name}' missing required key 'node_id'.")
    validate_non_empty_string(c["node_id"], f"{field_name}.node_id")
    if "anchor" in c:
        validate_anchor(c["anchor"], f"{field_name}.anchor")


# ---------------------------------------------------------------------------
# Shape / line dict validators
# ---------------------------------------------------------------------------

def validate_shape_dict(s: dict, index: int) -> None:
    """Validate a single node dict from the shapes list."""
    if not isinstance(s, dict):
        raise ValidationError(f"Shape at index {index} must be a dict/object.")
    for key in ("x", "y"):
        if key not in s:
            raise ValidationError(f"Shape at index {index} missing required key '{key}'.")
        if not isinstance(s[key], (int, float)):
            raise ValidationError(f"Shape at index {index}: '{key}' must be a number.")
    for key in ("w", "h"):
        if key in s and not isinstance(s[key], (int, float)):
            raise ValidationError(f"Shape at index {index}: '{key}' must be a number.")
        if key in s and s[key] <= 0:
            raise ValidationError(f"Shape at index {index}: '{key}' must be > 0.")
    if "type" in s:
        try:
            validate_enum(s["type"], "type", _VALID_NODE_TYPES)
        except ValidationError as exc:
            raise ValidationError(f"Shape at index {index}: {exc.message}") from exc
    kind = str(s.get("type", "shape")).lower()
    if kind == "table":
        for key in ("rows", "cols"):
            if key not in s:
                raise ValidationError(f"Table at index {index} missing required key '{key}'.")
            if not isinstance(s[key], list) or not s[key]:
                raise ValidationError(f"Table at index {index}: '{key}' must be a non-empty list.")
            for v in s[key]:
                if not isinstance(v, (int, float)) or v <= 0:
                    raise ValidationError(
                        f"Table at index {index}: '{key}' entries must be positive numbers."
                    )
    if kind == "signature":
        if "w" not in s or "h" not in s:
            raise ValidationError(f"Signature at index {index} requires 'w' and 'h'.")
        if "strokes" in s and not isinstance(s["strokes"], list):
            raise ValidationError(f"Signature at index {index}: 'strokes' must be a list.")
    if "shape" in s and not isinstance(s["shape"], str):
        raise ValidationError(f"Shape at index {index}: 'shape' must be a string.")
    if "label" in s and not isinstance(s["label"], str):
        raise ValidationError(f"Shape at index {index}: 'label' must be a string.")
    if "id" in s and (not isinstance(s["id"], str) or not s["id"].strip()):
        raise ValidationError(f"Shape at index {index}: 'id' must be a non-empty string.")


def validate_line_dict(ln: dict, index: int) -> None:
    """Validate a single line dict from the lines list.

    A line needs either explicit ``pts`` or both ``start_conn`` and
    ``end_conn`` so its points can be planned.
    """
    if not isinstance(ln, dict):
        raise ValidationError(f"Line at index {index} must be a dict/object.")
    has_pts = "pts" in ln
    has_conns = "start_conn" in ln and "end_conn" in ln
    if not has_pts and not has_conns:
        raise ValidationError(
            f"Line at index {index} must have either 'pts' or both 'start_conn' and 'end_conn'."
        )
    try:
        if has_pts:
            validate_points(ln["pts"], "pts")
        for key in ("start_conn", "end_conn"):
            if ln.get(key) is not None:
                validate_connection_ref_dict(ln[key], key)
        if "routing" in ln:
            validate_routing(ln["routing"])
        if "arrows" in ln:
            validate_arrows(ln["arrows"])
        if "stroke" in ln:
            validate_color(ln["stroke"], "stroke")
        if "stroke_w" in ln:
            validate_positive_number(ln["stroke_w"], "stroke_w")
    except ValidationError as exc:
        raise ValidationError(f"Line at index {index}: {exc.message}") from exc
    if "id" in ln and (not isinstance(ln["id"], str) or not ln["id"].strip()):
        raise ValidationError(f"Line at index {index}: 'id' must be a non-empty string.")


def validate_node_dict(raw: Any, index: int) -> None:
    """Validate one stored node from a canvas JSON document.

    Stored lines always carry their points, so ``pts`` is required for them.
    """
    if not isinstance(raw, dict):
        raise ValidationError(f"Node at index {index} must be a dict/object.")
    if not isinstance(raw.get("id"), str) or not raw["id"].strip():
        raise ValidationError(f"Node at index {index}: 'id' must be a non-empty string.")
    if str(raw.get("type", "shape")).lower() != "line":
        validate_shape_dict(raw, index)
        return
    if "pts" not in raw:
        raise ValidationError(f"Line at index {index} missing required key 'pts'.")
    validate_line_dict(raw, index)


def validate_canvas_dict(data: Any) -> None:
    """Validate a canvas JSON document before it is loaded."""
    validate_dict(data, "json_content")
    nodes = data.get("nodes", [])
    validate_list(nodes, "nodes")
    seen: set[str] = set()
    for i, raw in enumerate(nodes):
        validate_node_dict(raw, i)
        if raw["id"] in seen:
            raise ValidationError(f"Node at index {i}: duplicate id '{raw['id']}'.")
        seen.add(raw["id"])


# ---------------------------------------------------------------------------
# Composite tool-level validators
# ---------------------------------------------------------------------------

def validate_positive_number(value: Any, field_name: str) -> float:
    """Validate that a number is positive (> 0)."""
    return validate_number(value, field_name, min_val=0.001)


def validate_non_negative_number(value: Any, field_name: str) -> float:
    """Validate that a number is >= 0."""
    return validate_number(value, field_name, min_val=0)


def validate_grid_size(value: Any) -> float:
    """Validate grid size (0..100; 0 disables the grid step)."""
    return validate_number(value, "grid_size", min_val=0, max_val=100)


def validate_zoom(value: Any) -> float:
    """Validate a zoom factor (0.05..20)."""
    return validate_number(value, "zoom", min_val=0.05, max_val=20)
