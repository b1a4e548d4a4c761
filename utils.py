"""
utils.py

Utility functions for VecSketch: color conversion and canonical record
key ordering.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from PyQt6.QtGui import QColor


def hex_to_qcolor(s: Optional[str], fallback: QColor) -> QColor:
    """
    Parse a hex string to a QColor.

    Args:
        s: Hex string like "#RGB", "#RRGGBB" or "#RRGGBBAA"
        fallback: Color to return if parsing fails

    Returns:
        Parsed QColor or fallback
    """
    if not s:
        return QColor(fallback)
    s = s.strip().lstrip("#")
    if len(s) == 3:
        s = "".join(ch * 2 for ch in s)
    try:
        if len(s) == 6:
            return QColor(int(s[0:2], 16), int(s[2:4], 16), int(s[4:6], 16))
        if len(s) == 8:
            return QColor(int(s[0:2], 16), int(s[2:4], 16), int(s[4:6], 16), int(s[6:8], 16))
    except ValueError:
        pass
    return QColor(fallback)


def with_opacity(c: QColor, opacity: float) -> QColor:
    """Return a copy of ``c`` with its alpha multiplied by ``opacity`` (0..1)."""
    out = QColor(c)
    opacity = max(0.0, min(1.0, float(opacity)))
    out.setAlpha(int(round(c.alpha() * opacity)))
    return out


# Canonical key order for shape records
SHAPE_KEY_ORDER = [
    "id", "type", "children",
    "x", "y", "w", "h", "rx", "ry", "x1", "y1", "x2", "y2",
    "segments", "closed", "cornerRadius",
    "content", "position", "size", "source", "radius",
    "fontSize", "fontFamily", "justification", "time",
    "style",
]


def sort_shape_keys(rec: dict) -> dict:
    """
    Sort shape record keys in canonical order.

    Any keys not in SHAPE_KEY_ORDER are appended at the end in their
    original order.  Group children are sorted recursively.

    Args:
        rec: The shape record dict

    Returns:
        New dict with keys sorted in canonical order
    """
    result: Dict[str, Any] = {}
    for key in SHAPE_KEY_ORDER:
        if key in rec:
            if key == "children" and isinstance(rec[key], list):
                result[key] = [
                    sort_shape_keys(c) if isinstance(c, dict) else c
                    for c in rec[key]
                ]
            else:
                result[key] = rec[key]
    for key in rec:
        if key not in result:
            result[key] = rec[key]
    return result


def sort_document(data: dict) -> dict:
    """
    Sort a document dict, applying key ordering to every shape record.

    Args:
        data: The document dict with a "shapes" list

    Returns:
        New dict with sorted shape keys
    """
    result = dict(data)
    shapes: List[Any] = result.get("shapes", [])
    if isinstance(shapes, list):
        result["shapes"] = [
            sort_shape_keys(rec) if isinstance(rec, dict) else rec
            for rec in shapes
        ]
    return result
