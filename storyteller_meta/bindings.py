"""
Loader for ``<entity id>.binding.yaml`` sidecars.

Current schema:

    version: 1
    patterns:
      - text: "勇者"
        confidence: 1.0      # optional, default 0.95, clamped to [0, 1]
    excludePatterns:        # optional
      - "勇者という存在"

Legacy schema (still accepted, bad entries are skipped):

    references:
      - pattern: "勇者"
        confidence: 0.9
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from pathlib import Path
from typing import Any, List

import jsonschema
import yaml

from storyteller_meta.exceptions import BindingFileError
from storyteller_meta.models import BindingDefinition, BindingPattern
from storyteller_meta.utils.validate import validate_binding

logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE = 0.95
SUFFIX = ".binding.yaml"


def binding_path_for(entity_dir: Path, entity_id: str) -> Path:
    return entity_dir / f"{entity_id}{SUFFIX}"


def clamp_confidence(value: float) -> float:
    if math.isnan(value):
        return 0.0
    return min(1.0, max(0.0, value))


def _confidence(raw: Any) -> float:
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        return DEFAULT_CONFIDENCE
    return clamp_confidence(float(raw))


def _blank(value: Any) -> bool:
    return not isinstance(value, str) or not value.strip()


def _parse_patterns(raw: List[Mapping]) -> List[BindingPattern]:
    return [BindingPattern(text=e["text"], confidence=_confidence(e.get("confidence"))) for e in raw]


def _parse_legacy_references(raw: Any, path: Path) -> List[BindingPattern]:
    if not isinstance(raw, list):
        raise BindingFileError(f"Invalid binding file {path}: references must be a list")
    out = []
    for entry in raw:
        if not isinstance(entry, Mapping) or _blank(entry.get("pattern")):
            continue
        out.append(BindingPattern(text=entry["pattern"], confidence=_confidence(entry.get("confidence"))))
    return out


def _parse_exclude_patterns(raw: Any, path: Path) -> List[str]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise BindingFileError(f"Invalid binding file {path}: excludePatterns must be a list")
    return [e for e in raw if not _blank(e)]


def load_binding_file(path: Path) -> BindingDefinition | None:
    """
    Load a binding sidecar.

    Returns None when the file does not exist. Raises ``BindingFileError``
    when it exists but cannot be read, is not valid YAML, or matches neither
    schema.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    except OSError as e:
        raise BindingFileError(f"Failed to read binding file: {path}") from e

    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise BindingFileError(f"Failed to parse YAML: {path}") from e

    if not isinstance(data, Mapping):
        raise BindingFileError(f"Invalid binding file {path}: expected a mapping at root")

    version = data.get("version")
    if version == 1 and not isinstance(version, bool) and "patterns" in data:
        try:
            validate_binding(dict(data))
        except jsonschema.ValidationError as e:
            raise BindingFileError(f"Invalid binding file {path}: {e.message}") from e
        patterns = _parse_patterns(data["patterns"])
    elif version is None and "references" in data:
        patterns = _parse_legacy_references(data["references"], path)
    else:
        raise BindingFileError(
            f"Invalid binding file {path}: unsupported schema "
            "(expected version: 1 + patterns[], or legacy references[])"
        )

    binding = BindingDefinition(
        patterns=patterns,
        exclude_patterns=_parse_exclude_patterns(data.get("excludePatterns"), path),
    )
    logger.debug("Loaded %d binding pattern(s) from %s", len(binding.patterns), path.name)
    return binding
