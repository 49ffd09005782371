# tests/test_validation_rules.py
import json
from importlib import resources as pkg

import jsonschema
import pytest

from storyteller_meta.generators.presets import PRESET_NAMES, apply_preset, get_preset, resolve_preset
from storyteller_meta.generators.validation_rules import ValidationGenerator
from storyteller_meta.models import ContainsAll, ContainsAny, DetectedEntity, DetectionResult, Placeholder


def _detected(kind, id_, patterns):
    return DetectedEntity(
        kind=kind, id=id_, export_name=id_, file_path=f"src/{kind}s/{id_}.py",
        matched_patterns=patterns, occurrences=len(patterns), confidence=1.0,
    )


def test_rules_per_entity_then_placeholders():
    detection = DetectionResult(
        characters=[_detected("character", "hero", ["勇者", "アレクス", "勇者"])],
        settings=[_detected("setting", "kingdom", [])],
    )
    rules = ValidationGenerator().generate(detection)
    assert [r.type for r in rules] == ["character_presence", "setting_consistency", "plot_advancement", "custom"]

    hero_rule = rules[0]
    assert hero_rule.predicate == ContainsAny(patterns=["勇者", "アレクス"])
    assert hero_rule.validate_source == 'lambda content: "勇者" in content or "アレクス" in content'
    assert hero_rule.message == "Character (hero) does not appear in the chapter"

    # no patterns: fall back to the id
    assert rules[1].predicate.patterns == ["kingdom"]
    assert isinstance(rules[2].predicate, Placeholder)
    assert rules[3].message == "TODO: add custom validation rules"


def test_empty_detection_still_has_rules():
    rules = ValidationGenerator().generate(DetectionResult())
    assert [r.type for r in rules] == ["plot_advancement", "custom"]


def test_shipped_presets_match_schema():
    schema = json.loads(pkg.files("storyteller_meta.schemas").joinpath("preset.schema.json").read_text(encoding="utf-8"))
    for name in PRESET_NAMES:
        data = json.loads(pkg.files("storyteller_meta.presets").joinpath(f"{name}.json").read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
        assert data["type"] == name


def test_preset_contents():
    battle = get_preset("battle-scene").validations[0]
    assert battle.predicate == ContainsAny(patterns=["戦", "戦い", "剣"])
    assert get_preset("romance-scene").validations[0].predicate.evaluate("愛してる")
    dialogue = get_preset("dialogue").validations[0].predicate
    assert isinstance(dialogue, ContainsAll)
    assert dialogue.evaluate("「はい」") and not dialogue.evaluate("「はい")
    assert isinstance(get_preset("exposition").validations[0].predicate, Placeholder)


def test_apply_preset_replaces_plot_advancement():
    rules = ValidationGenerator().generate(DetectionResult())
    applied = apply_preset(rules, get_preset("battle-scene"))
    assert [r.type for r in applied] == ["custom", "plot_advancement"]
    assert applied[-1].predicate.patterns == ["戦", "戦い", "剣"]
    assert apply_preset(rules, None) == rules


@pytest.mark.parametrize("name", [None, ""])
def test_resolve_no_preset(name):
    result = resolve_preset(name)
    assert result.ok and result.value is None


def test_resolve_unknown_preset():
    result = resolve_preset("horror")
    assert result.error.kind == "invalid_preset"
    assert "battle-scene" in result.error.message
