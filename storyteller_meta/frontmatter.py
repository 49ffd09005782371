"""
Frontmatter parsing for chapter manuscripts.

A manuscript starts with a YAML block carrying a ``storyteller`` mapping:

    ---
    storyteller:
      chapter_id: chapter01
      title: "旅の始まり"
      order: 1
      characters: [hero]
    ---
    本文...
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Tuple

import yaml
from pydantic import ValidationError

from storyteller_meta.models import FrontmatterData
from storyteller_meta.result import Result

logger = logging.getLogger(__name__)

DELIMITER = "---"
NAMESPACE = "storyteller"
# checked in this order so the reported field is deterministic
REQUIRED_FIELDS = ("chapter_id", "title", "order")
BOM = "\ufeff"


def split_frontmatter(text: str) -> Tuple[str, str] | None:
    """Return ``(yaml_block, body)`` or None when the delimiters are not both present."""
    lines = text.removeprefix(BOM).split("\n")
    if lines[0].strip() != DELIMITER:
        return None
    for i in range(1, len(lines)):
        if lines[i].strip() == DELIMITER:
            return "\n".join(lines[1:i]), "\n".join(lines[i + 1 :])
    return None


def strip_frontmatter(text: str) -> str:
    parts = split_frontmatter(text)
    return text if parts is None else parts[1]


def _missing(name: str, value) -> bool:
    if name == "order":
        return value is None
    return not value


class FrontmatterParser:
    def parse(self, text: str) -> Result[FrontmatterData]:
        if text.removeprefix(BOM).split("\n", 1)[0].strip() != DELIMITER:
            return Result.failure(
                "no_frontmatter", "No frontmatter found: the file must start with ---"
            )
        parts = split_frontmatter(text)
        if parts is None:
            return Result.failure(
                "no_frontmatter", "Closing frontmatter delimiter (---) not found"
            )

        try:
            data = yaml.safe_load(parts[0])
        except yaml.YAMLError as e:
            return Result.failure("yaml_parse_error", "Failed to parse frontmatter YAML", cause=e)

        block = data.get(NAMESPACE) if isinstance(data, Mapping) else None
        if not isinstance(block, Mapping):
            return Result.failure(
                "missing_storyteller_key",
                "The frontmatter needs a 'storyteller:' section",
            )

        for name in REQUIRED_FIELDS:
            if _missing(name, block.get(name)):
                return Result.failure(
                    "missing_required_field",
                    f"Required field {name} is missing",
                    field=name,
                )

        fields = {k: v for k, v in block.items() if k in FrontmatterData.model_fields}
        try:
            fm = FrontmatterData.model_validate(fields)
        except ValidationError as e:
            err = e.errors()[0]
            name = str(err["loc"][0]) if err["loc"] else None
            return Result.failure(
                "invalid_field", f"Invalid frontmatter value: {err['msg']}", field=name, cause=e
            )

        logger.debug("Parsed frontmatter for %s", fm.chapter_id)
        return Result.success(fm)
