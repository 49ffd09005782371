"""
Writes ``<chapter>.meta.py`` modules.

Four regions are owned by the generator and fenced by sentinel comments:

    # storyteller:auto:imports:start      entity imports
    # storyteller:auto:core:start         title / order
    # storyteller:auto:entities:start     characters / settings
    # storyteller:auto:references:start   pattern → entity map

Everything else (summary, plot points, validations, hand-written code) is
written once by ``emit`` and left alone by ``update_or_emit``.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, List, Sequence, Tuple

from storyteller_meta.models import ChapterMeta, EntityKind, EntityRef, Placeholder
from storyteller_meta.result import Result
from storyteller_meta.utils.paths import find_project_root, module_name

logger = logging.getLogger(__name__)

TOOL = "storyteller meta generate"
REGIONS = ("imports", "core", "entities", "references")
INDENT = "    "
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def marker(region: str, edge: str) -> str:
    return f"# storyteller:auto:{region}:{edge}"


def _lit(value) -> str:
    return json.dumps(value, ensure_ascii=False)


def meta_variable(chapter_id: str) -> str:
    name = re.sub(r"\W", "_", chapter_id) + "_meta"
    return "_" + name if name[0].isdigit() else name


@dataclass(frozen=True)
class ImportEntry:
    kind: EntityKind
    export_name: str
    file_path: str


def collect_entity_imports(meta: ChapterMeta) -> List[ImportEntry]:
    """Unique by (kind, export_name, file_path); characters first, each group by export name."""
    entries: Dict[Tuple[str, str, str], ImportEntry] = {}

    def add(kind: EntityKind, ref: EntityRef) -> None:
        entries.setdefault((kind, ref.export_name, ref.file_path), ImportEntry(kind, ref.export_name, ref.file_path))

    for c in meta.characters:
        add("character", c)
    for s in meta.settings:
        add("setting", s)
    character_names = {c.export_name for c in meta.characters}
    for ref in (meta.references or {}).values():
        add("character" if ref.export_name in character_names else "setting", ref)

    return sorted(entries.values(), key=lambda e: (e.kind != "character", e.export_name, e.file_path))


# ─── region bodies (unindented) ──────────────────────────────────────────
def _imports_body(meta: ChapterMeta, types_module: str) -> List[str]:
    lines = [f"from {types_module} import ChapterMeta"]
    lines += [f"from {module_name(e.file_path)} import {e.export_name}" for e in collect_entity_imports(meta)]
    return lines


def _core_body(meta: ChapterMeta) -> List[str]:
    return [f'"title": {_lit(meta.title)},', f'"order": {_lit(meta.order)},']


def _entities_body(meta: ChapterMeta) -> List[str]:
    chars = ", ".join(c.export_name for c in meta.characters)
    sets = ", ".join(s.export_name for s in meta.settings)
    return [f'"characters": [{chars}],', f'"settings": [{sets}],']


def _references_body(meta: ChapterMeta) -> List[str]:
    refs = meta.references or {}
    if not refs:
        return ['"references": {},']
    lines = ['"references": {']
    lines += [f"{INDENT}{_lit(word)}: {refs[word].export_name}," for word in sorted(refs)]
    lines.append("},")
    return lines


def _region(name: str, body: Sequence[str], indent: str) -> List[str]:
    return [indent + line if line else line for line in (marker(name, "start"), *body, marker(name, "end"))]


class ModuleEmitter:
    def __init__(self, source_dir: str = "src", clock: Callable[[], datetime] = datetime.now):
        self.source_dir = source_dir
        self.clock = clock

    # ─── rendering ───────────────────────────────────────────────────────
    def _bodies(self, meta: ChapterMeta) -> Dict[str, List[str]]:
        return {
            "imports": _imports_body(meta, f"{self.source_dir}.types.chapter"),
            "core": _core_body(meta),
            "entities": _entities_body(meta),
            "references": _references_body(meta),
        }

    def render(self, meta: ChapterMeta) -> str:
        bodies = self._bodies(meta)
        i2, i3 = INDENT * 2, INDENT * 3
        lines = [
            f"# Auto-generated: {TOOL}",
            f"# Generated at: {self.clock().strftime(TIMESTAMP_FORMAT)}",
            "",
            *_region("imports", bodies["imports"], ""),
            "",
            f"{meta_variable(meta.id)}: ChapterMeta = {{",
            f'{INDENT}"id": {_lit(meta.id)},',
            *_region("core", bodies["core"], INDENT),
            *_region("entities", bodies["entities"], INDENT),
        ]

        if meta.summary:
            lines += ["", f'{INDENT}"summary": {_lit(meta.summary)},']

        if meta.plot_points:
            lines += ["", f'{INDENT}"plot_points": [']
            lines += [f"{i2}{_lit(p)}," for p in meta.plot_points]
            lines.append(f"{INDENT}],")

        if meta.validations:
            lines += ["", f'{INDENT}"validations": [']
            for rule in meta.validations:
                lines += [f"{i2}{{", f'{i3}"type": {_lit(rule.type)},']
                if isinstance(rule.predicate, Placeholder):
                    lines.append(f"{i3}# TODO: {rule.predicate.todo}")
                lines.append(f'{i3}"validate": {rule.validate_source},')
                if rule.message:
                    lines.append(f'{i3}"message": {_lit(rule.message)},')
                lines.append(f"{i2}}},")
            lines.append(f"{INDENT}],")

        lines += ["", *_region("references", bodies["references"], INDENT), "}", ""]
        return "\n".join(lines)

    # ─── writing ─────────────────────────────────────────────────────────
    def _check_root(self, output_path: Path) -> Result[Path]:
        root = find_project_root(output_path.parent, self.source_dir)
        if root is None:
            return Result.failure(
                "project_root_not_found", f"Could not find project root from: {output_path.parent}"
            )
        return Result.success(root)

    @staticmethod
    def _write(output_path: Path, code: str) -> Result[None]:
        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            with output_path.open("w", encoding="utf-8", newline="") as f:
                f.write(code)
        except OSError as e:
            return Result.failure("io_error", f"Failed to write output: {output_path}", cause=e)
        return Result.success(None)

    def emit(self, meta: ChapterMeta, output_path: Path) -> Result[None]:
        root = self._check_root(output_path)
        if not root.ok:
            return Result(error=root.error)
        written = self._write(output_path, self.render(meta))
        if written.ok:
            logger.info("Wrote %s", output_path)
        return written

    def update_or_emit(self, meta: ChapterMeta, output_path: Path) -> Result[None]:
        """Rewrite only the marked regions of an existing module; emit when there is none."""
        if not output_path.exists():
            return self.emit(meta, output_path)

        root = self._check_root(output_path)
        if not root.ok:
            return Result(error=root.error)

        try:
            with output_path.open(encoding="utf-8", newline="") as f:
                existing = f.read()
        except OSError as e:
            return Result.failure("io_error", f"Failed to read existing output: {output_path}", cause=e)

        updated = self.splice(existing, meta)
        if updated is None:
            return Result.failure(
                "update_not_supported",
                f"{output_path} has missing or ambiguous storyteller:auto markers; "
                "refusing to update (use --force to overwrite)",
            )
        if updated == existing:
            logger.info("%s is up to date", output_path)
            return Result.success(None)

        written = self._write(output_path, updated)
        if written.ok:
            logger.info("Updated marked regions in %s", output_path)
        return written

    # ─── marker splicing ─────────────────────────────────────────────────
    @staticmethod
    def _locate(text: str, region: str) -> Tuple[int, int, str] | None:
        """(start, end, indent) of one region, sentinels inclusive; None when absent or ambiguous."""
        start_re = re.compile(rf"^([ \t]*){re.escape(marker(region, 'start'))}[ \t]*(?=\r?$)", re.M)
        end_any = re.compile(rf"^[ \t]*{re.escape(marker(region, 'end'))}[ \t]*(?=\r?$)", re.M)

        starts = list(start_re.finditer(text))
        if len(starts) != 1 or len(end_any.findall(text)) != 1:
            return None
        start = starts[0]
        indent = start.group(1)
        end_re = re.compile(rf"^{re.escape(indent)}{re.escape(marker(region, 'end'))}[ \t]*(?=\r?$)", re.M)
        end = end_re.search(text, start.end())
        if end is None:
            return None
        return start.start(), end.end(), indent

    def splice(self, text: str, meta: ChapterMeta) -> str | None:
        spans = []
        for region in REGIONS:
            span = self._locate(text, region)
            if span is None:
                logger.warning("Marker region %r not found or ambiguous", region)
                return None
            spans.append((region, *span))

        spans.sort(key=lambda s: s[1])
        for a, b in zip(spans, spans[1:]):
            if a[2] > b[1]:
                logger.warning("Marker regions %r and %r overlap", a[0], b[0])
                return None

        newline = "\r\n" if "\r\n" in text else "\n"
        bodies = self._bodies(meta)
        for region, start, end, indent in reversed(spans):
            block = newline.join(_region(region, bodies[region], indent))
            text = text[:start] + block + text[end:]
        return text
