"""
Runtime settings.

Sources, later ones win:
  1. defaults below
  2. ``STORYTELLER_*`` environment variables (``.env`` is loaded first)
  3. an optional JSON config file (``--config PATH``)
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict

from dotenv import load_dotenv
from pydantic import BaseModel, ValidationError

from storyteller_meta.exceptions import ConfigurationError

ENV_PREFIX = "STORYTELLER_"


class Settings(BaseModel):
    log_level: str = "INFO"
    log_dir: Path | None = None
    source_dir: str = "src"
    characters_dir: str = "src/characters"
    settings_dir: str = "src/settings"
    output_suffix: str = ".meta.py"
    default_preset: str | None = None


def _from_env() -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for name in Settings.model_fields:
        value = os.getenv(ENV_PREFIX + name.upper())
        if value:
            out[name] = value
    return out


def load_settings(config_path: Path | None = None) -> Settings:
    load_dotenv()
    data = _from_env()
    if config_path is not None:
        try:
            cfg = json.loads(config_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Cannot read config {config_path}: {e}") from e
        if not isinstance(cfg, dict):
            raise ConfigurationError(f"Config {config_path} must hold a JSON object")
        data.update(cfg)
    try:
        return Settings.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid settings: {e}") from e
