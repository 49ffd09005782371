"""
Interactive reference resolution (``generate --interactive``).

Every pattern word claimed by a detected entity becomes a key of the
reference map. A word is settled automatically when exactly one entity
claims it with confidence ≥ threshold; otherwise the user picks one
(0 skips the word, which then stays out of the map).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List

import typer
from rich import print
from rich.markup import escape

from storyteller_meta.models import DetectedEntity, EntityRef

DEFAULT_THRESHOLD = 0.8


@dataclass(frozen=True)
class Candidate:
    entity: DetectedEntity
    confidence: float
    occurrences: int


def collect_candidates(entities: Iterable[DetectedEntity]) -> Dict[str, List[Candidate]]:
    """word → every entity whose pattern matches include it."""
    by_word: Dict[str, List[Candidate]] = {}
    for entity in entities:
        for word, match in (entity.pattern_matches or {}).items():
            by_word.setdefault(word, []).append(Candidate(entity, match.confidence, match.occurrences))
    return by_word


def rank(candidates: Iterable[Candidate]) -> List[Candidate]:
    """Highest confidence first, then most occurrences, then id."""
    return sorted(candidates, key=lambda c: (-c.confidence, -c.occurrences, c.entity.id))


def _ask(message: str) -> str:
    return typer.prompt(message, default="0", show_default=False)


class InteractiveResolver:
    def __init__(
        self,
        write: Callable[[str], None] = print,
        ask: Callable[[str], str] = _ask,
        threshold: float = DEFAULT_THRESHOLD,
    ):
        self.write = write
        self.ask = ask
        self.threshold = threshold

    def resolve(self, entities: Iterable[DetectedEntity]) -> Dict[str, EntityRef]:
        resolved: Dict[str, EntityRef] = {}
        by_word = collect_candidates(entities)
        for word in sorted(by_word):
            ranked = rank(by_word[word])
            top = ranked[0]
            if len(ranked) == 1 and top.confidence >= self.threshold:
                chosen = top
            else:
                chosen = self._choose(word, ranked)
            if chosen is not None:
                resolved[word] = EntityRef(export_name=chosen.entity.export_name, file_path=chosen.entity.file_path)
        return resolved

    def _choose(self, word: str, ranked: List[Candidate]) -> Candidate | None:
        self.write(f"[bold]? Which entity does 「{escape(word)}」 refer to?[/]")
        self.write("  0) skip (leave it out of the reference map)")
        for i, c in enumerate(ranked, 1):
            self.write(
                f"  {i}) {escape(c.entity.id)} ({escape(c.entity.export_name)}) "
                f"\\[confidence: {c.confidence:.0%}]"
            )
        answer = (self.ask(f"Select [0-{len(ranked)}]") or "").strip()
        if not answer.isdigit():
            return None
        selected = int(answer)
        if selected < 1 or selected > len(ranked):
            return None
        return ranked[selected - 1]
