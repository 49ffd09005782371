"""
Chapter metadata generation: Markdown manuscript → ``ChapterMeta`` → ``.meta.py``.

    parse frontmatter → resolve project root → resolve preset → apply id
    overrides → detect references → validation rules (+ preset) →
    reference map (or interactive choice) → emit (unless dry-run)

Nothing raises out of ``generate_from_markdown``; every failure comes back
as a ``Result`` carrying a ``MetaError``.
"""

from __future__ import annotations

import logging
from functools import partial
from pathlib import Path
from typing import Dict

from storyteller_meta.config import Settings
from storyteller_meta.detector import ReferenceDetector
from storyteller_meta.emitter import ModuleEmitter
from storyteller_meta.frontmatter import FrontmatterParser
from storyteller_meta.generators.presets import apply_preset, resolve_preset
from storyteller_meta.generators.validation_rules import ValidationGenerator
from storyteller_meta.models import (
    ChapterMeta,
    DetectionResult,
    EntityRef,
    FrontmatterData,
    GenerateOptions,
)
from storyteller_meta.registry import load_registry
from storyteller_meta.resolver import InteractiveResolver
from storyteller_meta.result import Result
from storyteller_meta.utils.paths import default_output_path, find_project_root

logger = logging.getLogger(__name__)


def apply_overrides(frontmatter: FrontmatterData, options: GenerateOptions) -> FrontmatterData:
    update = {}
    if options.characters is not None:
        update["characters"] = list(options.characters)
    if options.settings is not None:
        update["settings"] = list(options.settings)
    return frontmatter.model_copy(update=update)


def build_reference_map(detected: DetectionResult) -> Dict[str, EntityRef]:
    """pattern text → entity; settings win when a pattern is shared."""
    refs: Dict[str, EntityRef] = {}
    for entity in [*detected.characters, *detected.settings]:
        for pattern in entity.matched_patterns:
            if pattern:
                refs[pattern] = EntityRef(export_name=entity.export_name, file_path=entity.file_path)
    return refs


class MetaGeneratorService:
    def __init__(
        self,
        settings: Settings | None = None,
        parser: FrontmatterParser | None = None,
        detector: ReferenceDetector | None = None,
        rules: ValidationGenerator | None = None,
        emitter: ModuleEmitter | None = None,
        resolver: InteractiveResolver | None = None,
    ):
        self.settings = settings or Settings()
        self.parser = parser or FrontmatterParser()
        self.detector = detector or ReferenceDetector(partial(load_registry, settings=self.settings))
        self.rules = rules or ValidationGenerator()
        self.emitter = emitter or ModuleEmitter(source_dir=self.settings.source_dir)
        self.resolver = resolver or InteractiveResolver()

    def output_path_for(self, markdown_path: Path, chapter_id: str, options: GenerateOptions) -> Path:
        if options.output_path is not None:
            return options.output_path
        return default_output_path(markdown_path, chapter_id, self.settings.output_suffix)

    def _references(self, detection: DetectionResult, options: GenerateOptions) -> Dict[str, EntityRef]:
        if options.interactive:
            return self.resolver.resolve([*detection.characters, *detection.settings])
        return build_reference_map(detection)

    def generate_from_markdown(
        self, markdown_path: Path, options: GenerateOptions | None = None
    ) -> Result[ChapterMeta]:
        options = options or GenerateOptions()
        markdown_path = Path(markdown_path)

        try:
            content = markdown_path.read_text(encoding="utf-8-sig")
        except (OSError, UnicodeDecodeError) as e:
            return Result.failure("io_error", f"Failed to read markdown: {markdown_path}", cause=e)

        parsed = self.parser.parse(content)
        if not parsed.ok:
            return parsed

        project_root = options.project_path or find_project_root(
            markdown_path.parent, self.settings.source_dir
        )
        if project_root is None:
            return Result.failure(
                "project_root_not_found", f"Could not find project root for: {markdown_path}"
            )

        preset = resolve_preset(options.preset or self.settings.default_preset)
        if not preset.ok:
            return Result(error=preset.error)

        frontmatter = apply_overrides(parsed.value, options)

        try:
            detection = self.detector.detect(content, frontmatter, Path(project_root))
        except Exception as e:
            logger.debug("Detection failed for %s", markdown_path, exc_info=True)
            return Result.failure(getattr(e, "kind", "detection_failed"), str(e), cause=e)

        validations = apply_preset(self.rules.generate(detection), preset.value)

        meta = ChapterMeta(
            id=frontmatter.chapter_id,
            title=frontmatter.title,
            order=frontmatter.order,
            characters=detection.characters,
            settings=detection.settings,
            validations=validations,
            references=self._references(detection, options),
            summary=frontmatter.summary,
        )

        if options.dry_run:
            logger.info("Dry run: %s not written", markdown_path.name)
            return Result.success(meta)

        output_path = self.output_path_for(markdown_path, frontmatter.chapter_id, options)
        written = self._write(meta, output_path, options)
        if not written.ok:
            return Result(error=written.error)
        return Result.success(meta)

    def _write(self, meta: ChapterMeta, output_path: Path, options: GenerateOptions) -> Result[None]:
        if not output_path.exists():
            return self.emitter.emit(meta, output_path)

        if options.update:
            updated = self.emitter.update_or_emit(meta, output_path)
            if updated.ok or not options.force or updated.error.kind != "update_not_supported":
                return updated
            logger.warning("No usable markers in %s; overwriting (--force)", output_path)
            return self.emitter.emit(meta, output_path)

        if options.force:
            return self.emitter.emit(meta, output_path)

        return Result.failure(
            "output_exists",
            f"Output already exists: {output_path} (use --force to overwrite or --update to refresh)",
        )
