"""
schemas/__init__.py

JSON Schema for VecSketch documents and validation helpers.
"""

from __future__ import annotations

import json
import os
from typing import Dict, List, Optional, Tuple

from jsonschema import Draft202012Validator

# Schema file paths
SCHEMA_DIR = os.path.dirname(os.path.abspath(__file__))
SHAPE_SCHEMA_PATH = os.path.join(SCHEMA_DIR, "shape_schema.json")

# Cached schema and validator
_shape_schema: Optional[Dict] = None
_validator: Optional[Draft202012Validator] = None


def get_shape_schema() -> Dict:
    """Load and return the document schema."""
    global _shape_schema
    if _shape_schema is None:
        with open(SHAPE_SCHEMA_PATH, "r", encoding="utf-8") as f:
            _shape_schema = json.load(f)
    return _shape_schema


def _get_validator() -> Draft202012Validator:
    global _validator
    if _validator is None:
        _validator = Draft202012Validator(get_shape_schema())
    return _validator


def _format_error(error) -> str:
    path = " -> ".join(str(p) for p in error.absolute_path) if error.absolute_path else "root"
    return f"{path}: {error.message}"


def validate_document(data: Dict) -> Tuple[bool, List[str]]:
    """
    Validate a document against the shape schema.

    Args:
        data: The JSON data to validate

    Returns:
        Tuple of (is_valid, list_of_error_messages)
    """
    errors = sorted(_get_validator().iter_errors(data), key=lambda e: [str(p) for p in e.absolute_path])
    return not errors, [_format_error(e) for e in errors]
