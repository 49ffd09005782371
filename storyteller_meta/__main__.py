"""
storyteller-meta – chapter metadata generator
 • generate: Markdown chapter(s) → <chapter>.meta.py (--interactive to pick ambiguous references)
 • check:    dry-run every target, report failures
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List

import typer
from rich import print
from rich.markup import escape

from storyteller_meta import logconf
from storyteller_meta.config import Settings, load_settings
from storyteller_meta.exceptions import ConfigurationError
from storyteller_meta.models import ChapterMeta, DetectedEntity, GenerateOptions
from storyteller_meta.service import MetaGeneratorService
from storyteller_meta.utils.paths import resolve_markdown_targets

logger = logging.getLogger(__name__)

MAX_REPORTED_FAILURES = 10

app = typer.Typer(pretty_exceptions_show_locals=False, no_args_is_help=True)


# ═════════ helpers ═════════
def _split_ids(raw: str | None) -> List[str] | None:
    if raw is None:
        return None
    return [s.strip() for s in raw.split(",") if s.strip()]


def _setup(config: Path | None, log_level: str | None) -> Settings:
    try:
        settings = load_settings(config)
    except ConfigurationError as e:
        print(f"[red]✖ {escape(str(e))}[/]")
        raise typer.Exit(1)
    logconf.init(log_level or settings.log_level, settings.log_dir)
    return settings


def _targets(paths: List[str] | None, directory: Path | None, recursive: bool, batch: bool) -> List[Path]:
    targets = resolve_markdown_targets(paths or [], directory=directory, recursive=recursive, batch=batch)
    if not targets:
        print("[red]✖ No Markdown files to process[/]")
        raise typer.Exit(1)
    return targets


def _preview(meta: ChapterMeta) -> None:
    print(f"[bold cyan]─── {escape(meta.id)} ───[/]")
    print(f" title: {escape(meta.title)}")
    print(f" order: {meta.order}")
    for label, entities in (("characters", meta.characters), ("settings", meta.settings)):
        print(f" {label}:")
        if not entities:
            print("   (none)")
        for e in entities:
            if isinstance(e, DetectedEntity):
                print(f"   • {escape(e.id)} ({e.export_name}): {e.occurrences}× @ {e.confidence:.0%}")
            else:
                print(f"   • {e.export_name}")


# ═════════ commands ═════════
@app.command()
def generate(
    paths: List[str] = typer.Argument(None, help="Markdown chapter(s), or glob patterns with --batch"),
    directory: Path | None = typer.Option(None, "--dir", help="process every *.md in this directory"),
    recursive: bool = typer.Option(False, "--recursive", "-r", help="with --dir, descend into subdirectories"),
    batch: bool = typer.Option(False, "--batch", help="treat PATHS as glob patterns"),
    characters: str | None = typer.Option(None, "--characters", help="comma-separated character ids"),
    settings_ids: str | None = typer.Option(None, "--settings", help="comma-separated setting ids"),
    output: Path | None = typer.Option(None, "--output", "-o", help="output file (single target only)"),
    preset: str | None = typer.Option(None, "--preset"),
    dry_run: bool = typer.Option(False, "--dry-run", help="do not write anything"),
    preview: bool = typer.Option(False, "--preview", help="print what was detected"),
    force: bool = typer.Option(False, "--force", help="overwrite an existing output"),
    update: bool = typer.Option(False, "--update", help="rewrite only the auto-generated regions"),
    interactive: bool = typer.Option(
        False, "--interactive", "-i", help="ask which entity an ambiguous word refers to"
    ),
    project: Path | None = typer.Option(None, "--project", help="project root (default: nearest dir with src/)"),
    config: Path | None = typer.Option(None, "--config", help="JSON settings file"),
    log_level: str | None = typer.Option(None, "--log-level"),
):
    """Generate <chapter>.meta.py for one or more Markdown chapters."""
    settings = _setup(config, log_level)

    if output is not None and (batch or directory is not None):
        print("[red]✖ --output cannot be combined with --batch or --dir[/]")
        raise typer.Exit(1)

    targets = _targets(paths, directory, recursive, batch)
    service = MetaGeneratorService(settings)
    options = GenerateOptions(
        project_path=project,
        output_path=output,
        dry_run=dry_run,
        force=force,
        update=update,
        interactive=interactive,
        characters=_split_ids(characters),
        settings=_split_ids(settings_ids),
        preset=preset,
    )

    for md in targets:
        result = service.generate_from_markdown(md, options)
        if not result.ok:
            print(f"[red]✖ {escape(str(md))}: {escape(str(result.error))}[/]")
            raise typer.Exit(1)
        if preview:
            _preview(result.value)
        if dry_run:
            print(f"[yellow]• {escape(str(md))} (dry run)[/]")
        else:
            out = service.output_path_for(md, result.value.id, options)
            print(f"[green]✔ {escape(str(md))} → {escape(str(out))}[/]")

    if len(targets) > 1:
        print(f"[green]✔ {len(targets)} chapter(s) processed[/]")


@app.command()
def check(
    paths: List[str] = typer.Argument(None),
    directory: Path | None = typer.Option(None, "--dir"),
    recursive: bool = typer.Option(False, "--recursive", "-r"),
    batch: bool = typer.Option(False, "--batch"),
    characters: str | None = typer.Option(None, "--characters"),
    settings_ids: str | None = typer.Option(None, "--settings"),
    preset: str | None = typer.Option(None, "--preset"),
    project: Path | None = typer.Option(None, "--project"),
    config: Path | None = typer.Option(None, "--config"),
    log_level: str | None = typer.Option(None, "--log-level"),
):
    """Dry-run every target and report the ones that would fail."""
    settings = _setup(config, log_level)
    targets = _targets(paths, directory, recursive, batch)
    service = MetaGeneratorService(settings)
    options = GenerateOptions(
        project_path=project,
        dry_run=True,
        characters=_split_ids(characters),
        settings=_split_ids(settings_ids),
        preset=preset,
    )

    failures = []
    for md in targets:
        result = service.generate_from_markdown(md, options)
        if not result.ok:
            failures.append((md, result.error))

    if not failures:
        print(f"[green]✔ {len(targets)} chapter(s) OK[/]")
        return

    print(f"[red]✖ {len(failures)} of {len(targets)} chapter(s) failed[/]")
    for md, error in failures[:MAX_REPORTED_FAILURES]:
        print(f"  [red]{escape(str(md))}[/]: {escape(f'[{error.kind}] {error}')}")
    if len(failures) > MAX_REPORTED_FAILURES:
        print(f"  … and {len(failures) - MAX_REPORTED_FAILURES} more")
    raise typer.Exit(1)


if __name__ == "__main__":
    app()
