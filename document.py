"""
document.py

JSON import/export of the shape tree.

A document is ``{"version": 1, "shapes": [<shape record>, ...]}``.  Incoming
documents are validated against ``schemas/shape_schema.json`` before any
shape is built, so a bad file never half-loads into the store.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Iterable, List, Optional, Union

from models import Shape, UnknownShapeVariant, shape_from_record, shape_to_record
from schemas import validate_document
from utils import sort_document

log = logging.getLogger(__name__)

DOCUMENT_VERSION = 1


class DocumentError(ValueError):
    """A document could not be parsed or failed schema validation.

    Attributes:
        errors: One ``"path: message"`` string per problem found.
    """

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        self.errors = list(errors or [])
        if self.errors:
            message = message + "\n" + "\n".join(f"  {e}" for e in self.errors)
        super().__init__(message)


def _shapes_of(source) -> Iterable[Shape]:
    # Accept a store or a plain sequence of shapes
    return getattr(source, "shapes", source)


def export_document(source) -> dict:
    """Build the document dict for a store or a list of shapes."""
    data = {
        "version": DOCUMENT_VERSION,
        "shapes": [shape_to_record(s) for s in _shapes_of(source)],
    }
    return sort_document(data)


def export_json(source, indent: Optional[int] = 2) -> str:
    """Serialize a store or a list of shapes to JSON text."""
    return json.dumps(export_document(source), indent=indent, ensure_ascii=False)


def parse_document(data: Any) -> List[Shape]:
    """Validate a decoded document and build its shapes.

    A bare list is accepted as the ``shapes`` array.

    Raises:
        DocumentError: If the document does not match the schema.
    """
    if isinstance(data, list):
        data = {"version": DOCUMENT_VERSION, "shapes": data}
    if not isinstance(data, dict):
        raise DocumentError("Document must be a JSON object")
    ok, errors = validate_document(data)
    if not ok:
        log.warning("Rejected document with %d schema error(s)", len(errors))
        raise DocumentError("Document failed validation", errors)
    try:
        return [shape_from_record(rec) for rec in data["shapes"]]
    except UnknownShapeVariant as e:
        raise DocumentError(str(e)) from e


def import_json(text: str) -> List[Shape]:
    """Parse JSON text into shapes.

    Raises:
        DocumentError: On malformed JSON or schema violations.
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        log.warning("Rejected document: %s", e)
        raise DocumentError(f"Invalid JSON: {e}") from e
    return parse_document(data)


def save_document(path: Union[str, Path], source) -> Path:
    """Write a store or list of shapes to ``path`` as UTF-8 JSON."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(export_json(source), encoding="utf-8")
    return path


def load_document(path: Union[str, Path], store=None) -> List[Shape]:
    """Read shapes from ``path``; when ``store`` is given, replace its scene.

    Raises:
        DocumentError: On malformed JSON, schema violations or duplicate ids.
        OSError: If the file cannot be read.
    """
    text = Path(path).read_text(encoding="utf-8")
    shapes = import_json(text)
    if store is not None:
        try:
            store.load_shapes(shapes)
        except ValueError as e:
            raise DocumentError(str(e)) from e
    return shapes
