# tests/conftest.py
from datetime import datetime
from pathlib import Path

import pytest

HERO = '''\
hero = {
    "id": "hero",
    "name": "勇者",
    "display_names": ["勇者"],
    "aliases": ["アレクス"],
}
'''

KINGDOM = '''\
kingdom = {"id": "kingdom", "name": "王都", "aliases": ["王国"]}
'''

CHAPTER = """\
---
storyteller:
  chapter_id: chapter01
  title: "旅の始まり"
  order: 1
  characters: [hero]
---
勇者は王都を出た。
勇者は剣を抜いた。
"""


def write_chapter(root: Path, name: str = "chapter01.md", text: str = CHAPTER) -> Path:
    path = root / "manuscripts" / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """A minimal story project: one character, one setting, one chapter."""
    chars = tmp_path / "src" / "characters"
    sets = tmp_path / "src" / "settings"
    chars.mkdir(parents=True)
    sets.mkdir(parents=True)
    (chars / "hero.py").write_text(HERO, encoding="utf-8")
    (sets / "kingdom.py").write_text(KINGDOM, encoding="utf-8")
    write_chapter(tmp_path)
    return tmp_path


@pytest.fixture
def fixed_clock():
    return lambda: datetime(2025, 1, 2, 3, 4, 5)
