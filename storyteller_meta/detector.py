"""
Reference detection: which characters and settings does a chapter use?

Two strategies are merged per entity id:

* frontmatter - ids the author listed are trusted at confidence 1.0
  (occurrences 0), whatever the body says;
* body scan   - literal substring counting of each entity's candidate
  patterns, weighted by where the pattern came from.

    source                    base confidence
    ───────────────────────── ───────────────
    name                      1.0
    display_names             0.9
    aliases                   0.8
    pronouns                  0.6
    detection_hints patterns  hint confidence (default 0.9)
    binding patterns          binding confidence
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Mapping, Protocol, Sequence

from storyteller_meta.bindings import clamp_confidence
from storyteller_meta.exceptions import UnknownReferenceError
from storyteller_meta.frontmatter import strip_frontmatter
from storyteller_meta.models import DetectedEntity, DetectionResult, LoadedEntity, PatternMatch
from storyteller_meta.registry import EntityRegistry, load_registry

logger = logging.getLogger(__name__)

NAME_CONFIDENCE = 1.0
DISPLAY_NAME_CONFIDENCE = 0.9
ALIAS_CONFIDENCE = 0.8
PRONOUN_CONFIDENCE = 0.6
HINT_CONFIDENCE = 0.9
FRONTMATTER_CONFIDENCE = 1.0


class FrontmatterLike(Protocol):
    characters: Sequence[str] | None
    settings: Sequence[str] | None


# ─── counting ────────────────────────────────────────────────────────────
def count_occurrences(haystack: str, needle: str) -> int:
    """Non-overlapping literal occurrences; an empty needle never matches."""
    if not needle:
        return 0
    return haystack.count(needle)


def candidate_patterns(entity: LoadedEntity) -> Dict[str, float]:
    """pattern text → best confidence across every source."""
    candidates: List[tuple[str, float]] = [(entity.name, NAME_CONFIDENCE)]
    candidates += [(p, DISPLAY_NAME_CONFIDENCE) for p in entity.display_names or []]
    candidates += [(p, ALIAS_CONFIDENCE) for p in entity.aliases or []]
    candidates += [(p, PRONOUN_CONFIDENCE) for p in entity.pronouns or []]

    hints = entity.detection_hints
    if hints is not None:
        hint_conf = clamp_confidence(
            hints.confidence if hints.confidence is not None else HINT_CONFIDENCE
        )
        candidates += [(p, hint_conf) for p in hints.common_patterns or []]

    if entity.binding is not None:
        candidates += [(p.text, p.confidence) for p in entity.binding.patterns]

    best: Dict[str, float] = {}
    for pattern, confidence in candidates:
        if not pattern:
            continue
        best[pattern] = max(best.get(pattern, 0.0), confidence)
    return best


def exclude_patterns(entity: LoadedEntity) -> List[str]:
    out: List[str] = []
    if entity.detection_hints is not None:
        out += entity.detection_hints.exclude_patterns or []
    if entity.binding is not None:
        out += entity.binding.exclude_patterns
    return out


def match_entity(body: str, entity: LoadedEntity) -> DetectedEntity | None:
    """Body-scan one entity; None when no pattern survives exclusion."""
    excludes = exclude_patterns(entity)
    matches: Dict[str, PatternMatch] = {}

    for pattern, confidence in candidate_patterns(entity).items():
        found = count_occurrences(body, pattern)
        if found <= 0:
            continue
        occurrences = found
        for exclude in excludes:
            if exclude and pattern in exclude:
                occurrences -= count_occurrences(body, exclude)
        if occurrences < 0:
            logger.warning(
                "%s %s: exclude patterns matched more often than %r (%d); dropping it",
                entity.kind, entity.id, pattern, found,
            )
        if occurrences <= 0:
            continue
        matches[pattern] = PatternMatch(occurrences=occurrences, confidence=confidence)

    if not matches:
        return None

    return DetectedEntity(
        kind=entity.kind,
        id=entity.id,
        export_name=entity.export_name,
        file_path=entity.file_path,
        matched_patterns=list(matches),
        pattern_matches=matches,
        occurrences=sum(m.occurrences for m in matches.values()),
        confidence=max(m.confidence for m in matches.values()),
    )


def detect_by_patterns(body: str, entities: Iterable[LoadedEntity]) -> List[DetectedEntity]:
    return [d for d in (match_entity(body, e) for e in entities) if d is not None]


# ─── frontmatter strategy ────────────────────────────────────────────────
def default_patterns(entity: LoadedEntity) -> List[str]:
    patterns = list(entity.display_names or []) or [entity.name]
    patterns += entity.aliases or []
    if entity.binding is not None:
        patterns += [p.text for p in entity.binding.patterns]
    return [p for p in dict.fromkeys(patterns) if p]


def _source_confidence(entity: LoadedEntity) -> Dict[str, float]:
    conf: Dict[str, float] = {entity.name: NAME_CONFIDENCE}
    sources = [(p, DISPLAY_NAME_CONFIDENCE) for p in entity.display_names or []]
    sources += [(p, ALIAS_CONFIDENCE) for p in entity.aliases or []]
    if entity.binding is not None:
        sources += [(p.text, p.confidence) for p in entity.binding.patterns]
    for pattern, confidence in sources:
        conf[pattern] = max(conf.get(pattern, 0.0), confidence)
    return conf


def detect_from_frontmatter(
    ids: Iterable[str], registry: Mapping[str, LoadedEntity]
) -> List[DetectedEntity]:
    detected = []
    for entity_id in ids:
        entity = registry.get(entity_id)
        if entity is None:
            continue
        patterns = default_patterns(entity)
        conf = _source_confidence(entity)
        detected.append(
            DetectedEntity(
                kind=entity.kind,
                id=entity.id,
                export_name=entity.export_name,
                file_path=entity.file_path,
                matched_patterns=patterns,
                pattern_matches={
                    p: PatternMatch(occurrences=0, confidence=conf.get(p, 1.0)) for p in patterns
                },
                occurrences=0,
                confidence=FRONTMATTER_CONFIDENCE,
            )
        )
    return detected


# ─── merge ───────────────────────────────────────────────────────────────
def merge_pattern_matches(
    a: Mapping[str, PatternMatch] | None, b: Mapping[str, PatternMatch] | None
) -> Dict[str, PatternMatch] | None:
    if a is None and b is None:
        return None
    merged = {p: m.model_copy() for p, m in (a or {}).items()}
    for pattern, match in (b or {}).items():
        existing = merged.get(pattern)
        if existing is None:
            merged[pattern] = match.model_copy()
            continue
        merged[pattern] = PatternMatch(
            occurrences=existing.occurrences + match.occurrences,
            confidence=max(existing.confidence, match.confidence),
        )
    return merged


def merge_detections(
    seed: Iterable[DetectedEntity], found: Iterable[DetectedEntity]
) -> List[DetectedEntity]:
    """Seed by id, then fold later detections in (pattern union, summed counts, max confidence)."""
    merged: Dict[str, DetectedEntity] = {d.id: d for d in seed}
    for d in found:
        existing = merged.get(d.id)
        if existing is None:
            merged[d.id] = d
            continue
        merged[d.id] = existing.model_copy(
            update={
                "matched_patterns": list(dict.fromkeys([*existing.matched_patterns, *d.matched_patterns])),
                "pattern_matches": merge_pattern_matches(existing.pattern_matches, d.pattern_matches),
                "occurrences": existing.occurrences + d.occurrences,
                "confidence": max(existing.confidence, d.confidence),
            }
        )
    return list(merged.values())


def overall_confidence(entities: Sequence[DetectedEntity]) -> float:
    if not entities:
        return 0.0
    return sum(e.confidence for e in entities) / len(entities)


# ─── detector ────────────────────────────────────────────────────────────
class ReferenceDetector:
    def __init__(self, loader: Callable[[Path], EntityRegistry] = load_registry):
        self._load = loader

    def detect(self, content: str, frontmatter: FrontmatterLike, project_root: Path) -> DetectionResult:
        """
        Detect entity references in *content* (frontmatter block is stripped).

        Raises ``UnknownReferenceError`` when the frontmatter lists ids the
        registry does not know; registry/binding load errors propagate.
        """
        registry = self._load(project_root)
        declared_chars = list(frontmatter.characters or [])
        declared_sets = list(frontmatter.settings or [])

        missing_chars = [i for i in declared_chars if i not in registry.characters]
        missing_sets = [i for i in declared_sets if i not in registry.settings]
        if missing_chars or missing_sets:
            raise UnknownReferenceError(missing_chars, missing_sets)

        body = strip_frontmatter(content)
        characters = merge_detections(
            detect_from_frontmatter(declared_chars, registry.characters),
            detect_by_patterns(body, registry.characters.values()),
        )
        settings = merge_detections(
            detect_from_frontmatter(declared_sets, registry.settings),
            detect_by_patterns(body, registry.settings.values()),
        )

        result = DetectionResult(
            characters=characters,
            settings=settings,
            confidence=overall_confidence([*characters, *settings]),
        )
        logger.info(
            "Detected %d character(s), %d setting(s) (confidence %.2f)",
            len(characters), len(settings), result.confidence,
        )
        return result
