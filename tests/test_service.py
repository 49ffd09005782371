# tests/test_service.py
from storyteller_meta.config import Settings
from storyteller_meta.emitter import ModuleEmitter
from storyteller_meta.models import GenerateOptions
from storyteller_meta.service import MetaGeneratorService

from conftest import CHAPTER, write_chapter


def _service(fixed_clock=None, **settings):
    s = Settings(**settings)
    emitter = ModuleEmitter(source_dir=s.source_dir, clock=fixed_clock) if fixed_clock else None
    return MetaGeneratorService(s, emitter=emitter)


def test_dry_run_end_to_end(project):
    md = project / "manuscripts" / "chapter01.md"
    result = _service().generate_from_markdown(md, GenerateOptions(dry_run=True))
    assert result.ok, result.error

    meta = result.value
    assert (meta.id, meta.title, meta.order) == ("chapter01", "旅の始まり", 1)
    assert [c.export_name for c in meta.characters] == ["hero"]
    assert meta.characters[0].occurrences == 2
    assert [s.export_name for s in meta.settings] == ["kingdom"]
    assert meta.references["勇者"].export_name == "hero"
    assert meta.references["王都"].export_name == "kingdom"
    assert [r.type for r in meta.validations] == [
        "character_presence", "setting_consistency", "plot_advancement", "custom",
    ]
    assert not (project / "manuscripts" / "chapter01.meta.py").exists()


def test_writes_next_to_the_manuscript(project, fixed_clock):
    md = project / "manuscripts" / "chapter01.md"
    assert _service(fixed_clock).generate_from_markdown(md).ok
    code = (project / "manuscripts" / "chapter01.meta.py").read_text(encoding="utf-8")
    compile(code, "chapter01.meta.py", "exec")
    assert '"characters": [hero],' in code


def test_explicit_output_path(project):
    md = project / "manuscripts" / "chapter01.md"
    out = project / "src" / "chapters" / "c1.meta.py"
    assert _service().generate_from_markdown(md, GenerateOptions(output_path=out)).ok
    assert out.exists()


def test_existing_output_needs_force_or_update(project, fixed_clock):
    md = project / "manuscripts" / "chapter01.md"
    out = project / "manuscripts" / "chapter01.meta.py"
    service = _service(fixed_clock)
    out.write_text("# mine\n", encoding="utf-8")

    result = service.generate_from_markdown(md)
    assert result.error.kind == "output_exists"
    assert "--force" in result.error.message
    assert out.read_text(encoding="utf-8") == "# mine\n"

    assert service.generate_from_markdown(md, GenerateOptions(update=True)).error.kind == "update_not_supported"
    assert out.read_text(encoding="utf-8") == "# mine\n"

    assert service.generate_from_markdown(md, GenerateOptions(update=True, force=True)).ok
    assert "storyteller:auto:core:start" in out.read_text(encoding="utf-8")


def test_update_refreshes_regions(project, fixed_clock):
    md = project / "manuscripts" / "chapter01.md"
    out = project / "manuscripts" / "chapter01.meta.py"
    service = _service(fixed_clock)
    assert service.generate_from_markdown(md).ok
    out.write_text(out.read_text(encoding="utf-8").replace("}\n", "}\n\nEXTRA = 1\n"), encoding="utf-8")

    md.write_text(CHAPTER.replace("旅の始まり", "第一章"), encoding="utf-8")
    assert service.generate_from_markdown(md, GenerateOptions(update=True)).ok
    code = out.read_text(encoding="utf-8")
    assert '"title": "第一章",' in code
    assert "EXTRA = 1" in code


def test_overrides_replace_frontmatter_ids(project):
    md = project / "manuscripts" / "chapter01.md"
    result = _service().generate_from_markdown(
        md, GenerateOptions(dry_run=True, characters=[], settings=["kingdom"])
    )
    kingdom = result.value.settings[0]
    # declared and mentioned once in the body
    assert kingdom.confidence == 1.0 and kingdom.occurrences == 1


def test_unknown_reference(project):
    md = write_chapter(project, "c2.md", CHAPTER.replace("[hero]", "[hero, missing_person]"))
    result = _service().generate_from_markdown(md, GenerateOptions(dry_run=True))
    assert result.error.kind == "unknown_reference"
    assert "missing_person" in result.error.message


def test_preset_replaces_plot_rule(project):
    md = project / "manuscripts" / "chapter01.md"
    result = _service().generate_from_markdown(md, GenerateOptions(dry_run=True, preset="battle-scene"))
    plot = [r for r in result.value.validations if r.type == "plot_advancement"]
    assert len(plot) == 1
    assert plot[0].predicate.evaluate(CHAPTER)


def test_default_preset_from_settings(project):
    md = project / "manuscripts" / "chapter01.md"
    result = _service(default_preset="dialogue").generate_from_markdown(md, GenerateOptions(dry_run=True))
    assert result.value.validations[-1].predicate.patterns == ["「", "」"]


def test_invalid_preset(project):
    md = project / "manuscripts" / "chapter01.md"
    result = _service().generate_from_markdown(md, GenerateOptions(dry_run=True, preset="horror"))
    assert result.error.kind == "invalid_preset"


def test_frontmatter_errors_pass_through(project):
    md = write_chapter(project, "bad.md", "no frontmatter here\n")
    assert _service().generate_from_markdown(md).error.kind == "no_frontmatter"


def test_missing_markdown(project):
    result = _service().generate_from_markdown(project / "nope.md")
    assert result.error.kind == "io_error"


def test_broken_binding_is_reported(project):
    (project / "src" / "characters" / "hero.binding.yaml").write_text("version: 9\n", encoding="utf-8")
    md = project / "manuscripts" / "chapter01.md"
    result = _service().generate_from_markdown(md, GenerateOptions(dry_run=True))
    assert result.error.kind == "binding_error"


def test_project_root_not_found(tmp_path):
    md = write_chapter(tmp_path)
    result = _service(source_dir="no_such_source_dir_for_tests").generate_from_markdown(md)
    assert result.error.kind == "project_root_not_found"


def test_manuscript_with_byte_order_mark(project):
    md = project / "manuscripts" / "bom.md"
    md.write_bytes(CHAPTER.encode("utf-8-sig"))
    result = _service().generate_from_markdown(md, GenerateOptions(dry_run=True))
    assert result.ok, result.error
    assert result.value.id == "chapter01"


def test_unimportable_entity_module_is_reported(project):
    (project / "src" / "characters" / "old-man.py").write_text(
        "old_man = {'id': 'old_man', 'name': '老人'}\n", encoding="utf-8"
    )
    md = project / "manuscripts" / "chapter01.md"
    result = _service().generate_from_markdown(md)
    assert result.error.kind == "entity_load_error"
    assert not (project / "manuscripts" / "chapter01.meta.py").exists()


class _PickFirst:
    def __init__(self):
        self.seen = []

    def resolve(self, entities):
        self.seen = [e.id for e in entities]
        return {}


def test_interactive_uses_the_resolver(project):
    md = project / "manuscripts" / "chapter01.md"
    resolver = _PickFirst()
    service = MetaGeneratorService(Settings(), resolver=resolver)

    result = service.generate_from_markdown(md, GenerateOptions(dry_run=True, interactive=True))
    assert result.value.references == {}
    assert resolver.seen == ["hero", "kingdom"]

    resolver.seen = []
    assert service.generate_from_markdown(md, GenerateOptions(dry_run=True)).value.references
    assert resolver.seen == []
