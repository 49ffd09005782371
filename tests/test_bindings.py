# tests/test_bindings.py
import pytest

from storyteller_meta.bindings import DEFAULT_CONFIDENCE, binding_path_for, clamp_confidence, load_binding_file
from storyteller_meta.exceptions import BindingFileError


def _write(tmp_path, text):
    path = binding_path_for(tmp_path, "hero")
    path.write_text(text, encoding="utf-8")
    return path


def test_missing_file_is_not_an_error(tmp_path):
    assert load_binding_file(tmp_path / "nobody.binding.yaml") is None


def test_version_one(tmp_path):
    path = _write(
        tmp_path,
        "version: 1\n"
        "patterns:\n"
        "  - text: 勇者\n"
        "    confidence: 1.0\n"
        "  - text: 剣士\n"
        "excludePatterns:\n"
        "  - 勇者という存在\n"
        "  - ''\n",
    )
    binding = load_binding_file(path)
    assert [(p.text, p.confidence) for p in binding.patterns] == [("勇者", 1.0), ("剣士", DEFAULT_CONFIDENCE)]
    assert binding.exclude_patterns == ["勇者という存在"]


def test_confidence_is_clamped(tmp_path):
    path = _write(tmp_path, "version: 1\npatterns:\n  - text: a\n    confidence: 3\n  - text: b\n    confidence: -1\n")
    assert [p.confidence for p in load_binding_file(path).patterns] == [1.0, 0.0]


def test_clamp_nan():
    assert clamp_confidence(float("nan")) == 0.0
    assert clamp_confidence(0.5) == 0.5


def test_legacy_references_skip_bad_entries(tmp_path):
    path = _write(
        tmp_path,
        "references:\n"
        "  - pattern: 勇者\n"
        "    confidence: 0.9\n"
        "  - pattern: '  '\n"
        "  - just a string\n"
        "  - confidence: 0.5\n",
    )
    binding = load_binding_file(path)
    assert [(p.text, p.confidence) for p in binding.patterns] == [("勇者", 0.9)]


@pytest.mark.parametrize(
    "text",
    [
        "version: 1\npatterns: [unclosed\n",
        "- a\n- b\n",
        "version: 2\npatterns: []\n",
        "foo: bar\n",
        "version: 1\npatterns:\n  - text: '   '\n",
        "version: 1\npatterns:\n  - confidence: 0.5\n",
        "version: 1\npatterns: []\nexcludePatterns: nope\n",
    ],
)
def test_invalid_binding_files_raise(tmp_path, text):
    with pytest.raises(BindingFileError) as exc:
        load_binding_file(_write(tmp_path, text))
    assert exc.value.kind == "binding_error"
