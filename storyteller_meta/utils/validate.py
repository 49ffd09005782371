"""
Schema-validation helpers for the YAML/JSON data the pipeline reads.

Usage (inside other modules):
    from storyteller_meta.utils.validate import validate_binding, validate_preset
    validate_binding(data)      # raises jsonschema.ValidationError on failure
"""

from __future__ import annotations

import json
from typing import Any, Dict

import jsonschema
from importlib import resources as pkg


def _load_schema(name: str) -> Dict[str, Any]:
    text = pkg.files("storyteller_meta.schemas").joinpath(name).read_text(encoding="utf-8")
    return json.loads(text)


# ─── public API ──────────────────────────────────────────────────────────
_binding_schema = _load_schema("binding.schema.json")
_preset_schema = _load_schema("preset.schema.json")


def validate_binding(data: Dict[str, Any]) -> None:
    """Check a ``version: 1`` binding mapping. Legacy ``references[]`` files are not validated here."""
    jsonschema.validate(data, _binding_schema)


def validate_preset(data: Dict[str, Any]) -> None:
    jsonschema.validate(data, _preset_schema)
