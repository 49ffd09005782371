# tests/test_paths.py
from pathlib import Path

from storyteller_meta.utils.paths import (
    default_output_path,
    find_project_root,
    module_name,
    project_relative,
    resolve_markdown_targets,
)


def test_find_project_root(project):
    deep = project / "manuscripts" / "part1"
    deep.mkdir()
    assert find_project_root(deep) == project.resolve()
    assert find_project_root(deep, "no_such_source_dir_for_tests") is None


def test_project_relative_and_module_name(project):
    rel = project_relative(project, project / "src" / "characters" / "hero.py")
    assert rel == "src/characters/hero.py"
    assert module_name(rel) == "src.characters.hero"


def test_default_output_path():
    assert default_output_path(Path("m/chapter01.md"), "c1") == Path("m/chapter01.meta.py")
    assert default_output_path(Path("m/chapter01.txt"), "c1") == Path("m/c1.meta.py")


def test_targets(tmp_path):
    (tmp_path / "sub").mkdir()
    for name in ("b.md", "a.md", "notes.txt", "sub/c.md"):
        (tmp_path / name).write_text("x", encoding="utf-8")

    assert resolve_markdown_targets([], directory=tmp_path) == [tmp_path / "a.md", tmp_path / "b.md"]
    assert resolve_markdown_targets([], directory=tmp_path, recursive=True)[-1] == tmp_path / "sub" / "c.md"
    assert resolve_markdown_targets([str(tmp_path / "*.md")], batch=True) == [tmp_path / "a.md", tmp_path / "b.md"]
    assert resolve_markdown_targets(["one.md", "two.md"]) == [Path("one.md")]
    assert resolve_markdown_targets(["  "]) == []
