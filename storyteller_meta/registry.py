"""
Entity registry: scans ``src/characters`` and ``src/settings`` for entity
source modules and merges in their binding sidecars.

An entity source is a plain Python module; each public module-level value
with string ``id`` and ``name`` (dict or object) is one entity:

    # src/characters/hero.py
    hero = {"id": "hero", "name": "勇者", "display_names": ["勇者", "アレクス"]}
"""

from __future__ import annotations

import importlib.util
import keyword
import logging
import sys
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import ModuleType
from typing import Any, Dict, List

from pydantic import ValidationError

from storyteller_meta.bindings import binding_path_for, load_binding_file
from storyteller_meta.config import Settings
from storyteller_meta.exceptions import EntityLoadError
from storyteller_meta.models import EntityDefinition, EntityKind, LoadedEntity
from storyteller_meta.utils.paths import module_name, project_relative

logger = logging.getLogger(__name__)


@dataclass
class EntityRegistry:
    characters: Dict[str, LoadedEntity] = field(default_factory=dict)
    settings: Dict[str, LoadedEntity] = field(default_factory=dict)


def _attr(value: Any, name: str) -> Any:
    if isinstance(value, Mapping):
        return value.get(name)
    return getattr(value, name, None)


def parse_entity(value: Any) -> EntityDefinition | None:
    """Return the definition when *value* looks like an entity, else None."""
    if isinstance(value, (type, ModuleType)) or callable(value):
        return None
    if not isinstance(_attr(value, "id"), str) or not isinstance(_attr(value, "name"), str):
        return None
    try:
        if isinstance(value, Mapping):
            return EntityDefinition.model_validate(dict(value))
        return EntityDefinition.model_validate(value, from_attributes=True)
    except ValidationError:
        logger.debug("Skipping value with id %r: not an entity definition", _attr(value, "id"))
        return None


def _importable(dotted: str) -> bool:
    return all(part.isidentifier() and not keyword.iskeyword(part) for part in dotted.split("."))


def _exec_module(path: Path, dotted: str) -> ModuleType:
    """Run an entity module under its project import name, e.g. ``src.characters.hero``."""
    spec = importlib.util.spec_from_file_location(dotted, path)
    if spec is None or spec.loader is None:
        raise EntityLoadError(f"Cannot load entity module: {path}")
    module = importlib.util.module_from_spec(spec)
    # dataclasses look the module up by name while its body runs
    sys.modules[dotted] = module
    try:
        spec.loader.exec_module(module)
    except Exception as e:
        sys.modules.pop(dotted, None)
        raise EntityLoadError(f"Failed to load entity module {path}: {e}") from e
    return module


def _forget_package(package: str) -> None:
    for name in [n for n in sys.modules if n == package or n.startswith(package + ".")]:
        del sys.modules[name]


def load_entities(directory: Path, project_root: Path, kind: EntityKind) -> List[LoadedEntity]:
    """
    Import every entity module in *directory*. ``project_root`` must be on
    ``sys.path`` so modules can import the project's own packages.
    """
    if not directory.is_dir():
        return []

    entities: List[LoadedEntity] = []
    for path in sorted(directory.glob("*.py")):
        if path.name.startswith("_") or not path.is_file():
            continue
        file_path = project_relative(project_root, path)
        dotted = module_name(file_path)
        if not _importable(dotted):
            raise EntityLoadError(
                f"Entity module {file_path} cannot be imported as {dotted!r}; "
                "rename it to a valid Python module name"
            )
        module = _exec_module(path, dotted)
        for export_name, value in vars(module).items():
            if export_name.startswith("_"):
                continue
            definition = parse_entity(value)
            if definition is None:
                continue
            binding = load_binding_file(binding_path_for(directory, definition.id))
            entities.append(
                LoadedEntity(
                    **definition.model_dump(),
                    kind=kind,
                    export_name=export_name,
                    file_path=file_path,
                    binding=binding,
                )
            )
    return entities


def load_registry(project_root: Path, settings: Settings | None = None) -> EntityRegistry:
    settings = settings or Settings()
    registry = EntityRegistry()
    root = str(project_root.resolve())
    packages = {Path(d).parts[0] for d in (settings.characters_dir, settings.settings_dir)}

    # each load sees this project's sources only
    for package in packages:
        _forget_package(package)
    sys.path.insert(0, root)
    try:
        for entity in load_entities(project_root / settings.characters_dir, project_root, "character"):
            registry.characters[entity.id] = entity
        for entity in load_entities(project_root / settings.settings_dir, project_root, "setting"):
            registry.settings[entity.id] = entity
    finally:
        sys.path.remove(root)
        for package in packages:
            _forget_package(package)

    logger.info(
        "Entity registry: %d character(s), %d setting(s)",
        len(registry.characters),
        len(registry.settings),
    )
    return registry
