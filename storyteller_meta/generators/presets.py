"""
Scene presets: named bundles of validation rules shipped as JSON
(``storyteller_meta/presets/<name>.json``).
"""

from __future__ import annotations

import json
from importlib import resources as pkg
from typing import Dict, List, get_args

from storyteller_meta.models import Preset, PresetType, ValidationRule
from storyteller_meta.result import Result
from storyteller_meta.utils.validate import validate_preset

PRESET_NAMES: tuple[str, ...] = get_args(PresetType)


def _load_presets() -> Dict[str, Preset]:
    out = {}
    root = pkg.files("storyteller_meta.presets")
    for name in PRESET_NAMES:
        data = json.loads(root.joinpath(f"{name}.json").read_text(encoding="utf-8"))
        validate_preset(data)
        out[name] = Preset.model_validate(data)
    return out


PRESETS = _load_presets()


def get_preset(name: str) -> Preset:
    return PRESETS[name]


def resolve_preset(name: str | None) -> Result[Preset | None]:
    if not name:
        return Result.success(None)
    if name not in PRESETS:
        return Result.failure(
            "invalid_preset",
            f"Invalid preset: {name} (choose from {', '.join(PRESET_NAMES)})",
        )
    return Result.success(PRESETS[name])


def apply_preset(rules: List[ValidationRule], preset: Preset | None) -> List[ValidationRule]:
    """Swap the generic plot_advancement rule for the preset's own rules."""
    if preset is None:
        return list(rules)
    kept = [r for r in rules if r.type != "plot_advancement"]
    return kept + list(preset.validations)
