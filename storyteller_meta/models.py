# storyteller_meta/models.py
from __future__ import annotations

import json
from collections.abc import Mapping
from pathlib import Path
from typing import Annotated, Any, Dict, List, Literal, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

EntityKind = Literal["character", "setting"]
RuleType = Literal["character_presence", "setting_consistency", "plot_advancement", "custom"]
PresetType = Literal["battle-scene", "romance-scene", "dialogue", "exposition"]


def _strings(value: Any) -> List[str] | None:
    """Keep only the string entries of a list; anything that is not a list is dropped."""
    if not isinstance(value, (list, tuple)):
        return None
    return [v for v in value if isinstance(v, str)]


def _literal(text: str) -> str:
    return json.dumps(text, ensure_ascii=False)


# ─── frontmatter ─────────────────────────────────────────────────────────
class FrontmatterData(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    chapter_id: str
    title: str
    order: int | float
    characters: List[str] | None = None
    settings: List[str] | None = None
    foreshadowings: List[str] | None = None
    timeline_events: List[str] | None = None
    phases: List[str] | None = None
    timelines: List[str] | None = None
    summary: str | None = None


# ─── bindings & entities ─────────────────────────────────────────────────
class BindingPattern(BaseModel):
    text: str
    confidence: float = 0.95


class BindingDefinition(BaseModel):
    patterns: List[BindingPattern] = []
    exclude_patterns: List[str] = []


class DetectionHints(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    common_patterns: List[str] | None = Field(
        None, validation_alias=AliasChoices("common_patterns", "commonPatterns")
    )
    exclude_patterns: List[str] | None = Field(
        None, validation_alias=AliasChoices("exclude_patterns", "excludePatterns")
    )
    confidence: float | None = None

    @field_validator("common_patterns", "exclude_patterns", mode="before")
    @classmethod
    def _only_strings(cls, value: Any) -> List[str] | None:
        return _strings(value)

    @field_validator("confidence", mode="before")
    @classmethod
    def _only_numbers(cls, value: Any) -> float | None:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return None
        return value


class EntityDefinition(BaseModel):
    """What an entity source module exports: ``{"id": ..., "name": ..., ...}``."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    display_names: List[str] | None = Field(
        None, validation_alias=AliasChoices("display_names", "displayNames")
    )
    aliases: List[str] | None = None
    pronouns: List[str] | None = None
    detection_hints: DetectionHints | None = Field(
        None, validation_alias=AliasChoices("detection_hints", "detectionHints")
    )

    @field_validator("display_names", "aliases", "pronouns", mode="before")
    @classmethod
    def _only_strings(cls, value: Any) -> List[str] | None:
        return _strings(value)

    @field_validator("detection_hints", mode="before")
    @classmethod
    def _hints_shape(cls, value: Any) -> Any:
        if isinstance(value, (Mapping, DetectionHints)):
            return value
        return value if hasattr(value, "__dict__") else None


class LoadedEntity(EntityDefinition):
    kind: EntityKind
    export_name: str
    file_path: str
    binding: BindingDefinition | None = None


# ─── detection ───────────────────────────────────────────────────────────
class EntityRef(BaseModel):
    export_name: str
    file_path: str


class PatternMatch(BaseModel):
    occurrences: int
    confidence: float


class DetectedEntity(EntityRef):
    kind: EntityKind
    id: str
    matched_patterns: List[str]
    pattern_matches: Dict[str, PatternMatch] | None = None
    occurrences: int
    confidence: float


class DetectionResult(BaseModel):
    characters: List[DetectedEntity] = []
    settings: List[DetectedEntity] = []
    confidence: float = 0.0


# ─── validation rules ────────────────────────────────────────────────────
class ContainsAny(BaseModel):
    kind: Literal["contains_any"] = "contains_any"
    patterns: List[str] = Field(..., min_length=1)

    def render(self) -> str:
        return "lambda content: " + " or ".join(f"{_literal(p)} in content" for p in self.patterns)

    def evaluate(self, content: str) -> bool:
        return any(p in content for p in self.patterns)


class ContainsAll(BaseModel):
    kind: Literal["contains_all"] = "contains_all"
    patterns: List[str] = Field(..., min_length=1)

    def render(self) -> str:
        return "lambda content: " + " and ".join(f"{_literal(p)} in content" for p in self.patterns)

    def evaluate(self, content: str) -> bool:
        return all(p in content for p in self.patterns)


class Placeholder(BaseModel):
    """A rule body the author is expected to fill in; always passes."""

    kind: Literal["placeholder"] = "placeholder"
    todo: str

    def render(self) -> str:
        return "lambda content: True"

    def evaluate(self, content: str) -> bool:
        return True


Predicate = Annotated[Union[ContainsAny, ContainsAll, Placeholder], Field(discriminator="kind")]


class ValidationRule(BaseModel):
    type: RuleType
    predicate: Predicate
    message: str | None = None

    @property
    def validate_source(self) -> str:
        return self.predicate.render()


class Preset(BaseModel):
    type: PresetType
    validations: List[ValidationRule] = Field(..., min_length=1)


# ─── pipeline output ─────────────────────────────────────────────────────
class ChapterMeta(BaseModel):
    id: str
    title: str
    order: int | float
    characters: List[DetectedEntity | EntityRef] = []
    settings: List[DetectedEntity | EntityRef] = []
    validations: List[ValidationRule] | None = None
    references: Dict[str, EntityRef] | None = None
    summary: str | None = None
    plot_points: List[str] | None = None


class GenerateOptions(BaseModel):
    project_path: Path | None = None
    output_path: Path | None = None
    dry_run: bool = False
    force: bool = False
    update: bool = False
    characters: List[str] | None = None
    settings: List[str] | None = None
    preset: str | None = None
    interactive: bool = False
