"""
Filesystem helpers: project-root discovery, output naming, batch targets.
"""

from __future__ import annotations

import glob
from pathlib import Path
from typing import Iterable, List

MARKDOWN_SUFFIX = ".md"


def find_project_root(start: Path, marker: str = "src") -> Path | None:
    """Walk upward from *start* until a directory containing *marker*/ is found."""
    current = start.resolve()
    for candidate in (current, *current.parents):
        if (candidate / marker).is_dir():
            return candidate
    return None


def project_relative(project_root: Path, path: Path) -> str:
    return path.resolve().relative_to(project_root.resolve()).as_posix()


def module_name(file_path: str) -> str:
    """``src/characters/hero.py`` → ``src.characters.hero``."""
    stem = file_path[:-3] if file_path.endswith(".py") else file_path
    return stem.replace("/", ".")


def default_output_path(markdown_path: Path, chapter_id: str, suffix: str = ".meta.py") -> Path:
    if markdown_path.suffix == MARKDOWN_SUFFIX:
        return markdown_path.with_name(markdown_path.stem + suffix)
    return markdown_path.parent / f"{chapter_id}{suffix}"


def resolve_markdown_targets(
    inputs: Iterable[str],
    directory: Path | None = None,
    recursive: bool = False,
    batch: bool = False,
) -> List[Path]:
    """
    ``directory`` → every ``*.md`` inside it (``**/*.md`` when recursive).
    ``batch``     → every input is a glob pattern.
    otherwise     → the first input only.
    """
    inputs = [i.strip() for i in inputs if i and i.strip()]
    if directory is not None:
        pattern = "**/*.md" if recursive else "*.md"
        return sorted(p for p in directory.glob(pattern) if p.is_file())
    if batch:
        found = {Path(m) for pattern in inputs for m in glob.glob(pattern, recursive=True)}
        return sorted(p for p in found if p.is_file())
    return [Path(inputs[0])] if inputs else []
