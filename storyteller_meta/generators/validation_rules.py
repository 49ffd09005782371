"""
Validation rules from a detection result.

• one presence rule per detected character / setting
• a plot_advancement and a custom placeholder, so the list is never empty
"""

from __future__ import annotations

from typing import List

from storyteller_meta.models import (
    ContainsAny,
    DetectedEntity,
    DetectionResult,
    Placeholder,
    RuleType,
    ValidationRule,
)


def presence_rule(rule_type: RuleType, entity: DetectedEntity, label: str) -> ValidationRule:
    patterns = list(dict.fromkeys(entity.matched_patterns)) or [entity.id]
    return ValidationRule(
        type=rule_type,
        predicate=ContainsAny(patterns=patterns),
        message=f"{label} ({entity.id}) does not appear in the chapter",
    )


class ValidationGenerator:
    def generate(self, detected: DetectionResult) -> List[ValidationRule]:
        rules = [presence_rule("character_presence", c, "Character") for c in detected.characters]
        rules += [presence_rule("setting_consistency", s, "Setting") for s in detected.settings]
        rules.append(
            ValidationRule(
                type="plot_advancement",
                predicate=Placeholder(todo="add plot advancement checks"),
                message="TODO: key plot points are missing",
            )
        )
        rules.append(
            ValidationRule(
                type="custom",
                predicate=Placeholder(todo="add custom checks"),
                message="TODO: add custom validation rules",
            )
        )
        return rules
