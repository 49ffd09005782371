"""
Exceptions raised inside the pipeline.

The orchestration layer turns these into ``MetaError`` values using ``kind``.
"""

from __future__ import annotations

from typing import Sequence


class StorytellerMetaError(Exception):
    """Base class for errors raised while building chapter metadata."""

    kind = "detection_failed"


class ConfigurationError(StorytellerMetaError):
    """Settings could not be loaded or contain invalid values."""


class BindingFileError(StorytellerMetaError):
    """A binding sidecar exists but cannot be read or does not match a known schema."""

    kind = "binding_error"


class EntityLoadError(StorytellerMetaError):
    """An entity source module failed to load."""

    kind = "entity_load_error"


class UnknownReferenceError(StorytellerMetaError):
    """Frontmatter lists entity ids that the project does not define."""

    kind = "unknown_reference"

    def __init__(self, characters: Sequence[str] = (), settings: Sequence[str] = ()):
        self.characters = list(characters)
        self.settings = list(settings)
        parts = []
        if self.characters:
            parts.append("characters: " + ", ".join(self.characters))
        if self.settings:
            parts.append("settings: " + ", ".join(self.settings))
        super().__init__("Unknown frontmatter references: " + "; ".join(parts))
