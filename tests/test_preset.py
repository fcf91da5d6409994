"""Tests for the preset model and the .aidot-config.toml loader."""

import pytest

from aidot.errors import PresetError
from aidot.preset import CONFIG_FILENAME, MergeStrategy, Section, SourceFile, load_preset
from tests.conftest import make_preset, seed_preset


class TestLoadPreset:
    def test_metadata(self, preset_dir):
        seed_preset(preset_dir, {"rules/a.md": "A\n"}, name="team-preset")
        preset = load_preset(preset_dir)
        assert preset.name == "team-preset"
        assert preset.version == "1.0.0"

    def test_sections_in_canonical_order(self, preset_dir):
        seed_preset(preset_dir, {
            "settings/base.json": "{}",
            "rules/a.md": "A\n",
            "mcp/fs.json": "{}",
        })
        preset = load_preset(preset_dir)
        assert [s.section for s in preset.sections] == [Section.RULES, Section.MCP, Section.SETTINGS]

    def test_files_sorted_and_rooted_at_section(self, preset_dir):
        seed_preset(preset_dir, {
            "rules/b.md": "B\n",
            "rules/a.md": "A\n",
            "rules/nested/c.md": "C\n",
        })
        rules = load_preset(preset_dir).section(Section.RULES)
        assert [f.relative_path for f in rules.files] == [
            "rules/a.md", "rules/b.md", "rules/nested/c.md",
        ]
        assert rules.files[0].content == "A\n"

    def test_default_strategy_is_concat(self, preset_dir):
        seed_preset(preset_dir, {"rules/a.md": "A\n"})
        assert load_preset(preset_dir).section(Section.RULES).strategy is MergeStrategy.CONCATENATE

    def test_replace_strategy(self, preset_dir):
        seed_preset(preset_dir, {"agents/a.md": "A\n"}, strategies={"agents": "replace"})
        assert load_preset(preset_dir).section(Section.AGENTS).strategy is MergeStrategy.REPLACE

    def test_custom_directory_keeps_section_root(self, preset_dir):
        seed_preset(preset_dir, {"shared/rules/style.md": "S\n"},
                    manifest='[rules]\ndirectory = "shared/rules/"\n')
        rules = load_preset(preset_dir).section(Section.RULES)
        assert [f.relative_path for f in rules.files] == ["rules/style.md"]

    def test_explicit_globs_keep_manifest_order(self, preset_dir):
        seed_preset(preset_dir, {"rules/a.md": "A\n", "rules/z.md": "Z\n"},
                    manifest='[rules]\nfiles = ["rules/z.md", "rules/*.md"]\n')
        rules = load_preset(preset_dir).section(Section.RULES)
        assert [f.relative_path for f in rules.files] == ["rules/z.md", "rules/a.md"]

    def test_missing_directory_gives_empty_section(self, preset_dir):
        seed_preset(preset_dir, manifest="[hooks]\n")
        hooks = load_preset(preset_dir).section(Section.HOOKS)
        assert hooks is not None
        assert hooks.files == ()

    def test_file_count(self, preset_dir):
        seed_preset(preset_dir, {"rules/a.md": "A", "memory/m.md": "M"})
        assert load_preset(preset_dir).file_count() == 2


class TestLoadPresetErrors:
    def test_missing_manifest(self, preset_dir):
        with pytest.raises(PresetError, match=CONFIG_FILENAME):
            load_preset(preset_dir)

    def test_invalid_toml(self, preset_dir):
        seed_preset(preset_dir, manifest="[rules\n")
        with pytest.raises(PresetError):
            load_preset(preset_dir)

    def test_unknown_section(self, preset_dir):
        seed_preset(preset_dir, manifest="[snippets]\n")
        with pytest.raises(PresetError, match="snippets"):
            load_preset(preset_dir)

    def test_bad_strategy(self, preset_dir):
        seed_preset(preset_dir, {"rules/a.md": "A"}, strategies={"rules": "append"})
        with pytest.raises(PresetError, match="merge_strategy"):
            load_preset(preset_dir)

    def test_directory_escape(self, preset_dir):
        seed_preset(preset_dir, manifest='[rules]\ndirectory = "../elsewhere"\n')
        with pytest.raises(PresetError, match="escapes"):
            load_preset(preset_dir)

    def test_glob_escape(self, preset_dir):
        seed_preset(preset_dir, manifest='[rules]\nfiles = ["../*.md"]\n')
        with pytest.raises(PresetError, match="escapes"):
            load_preset(preset_dir)

    def test_non_utf8_file(self, preset_dir):
        seed_preset(preset_dir, manifest="[rules]\n")
        (preset_dir / "rules").mkdir()
        (preset_dir / "rules" / "bin.md").write_bytes(b"\xff\xfe\x00bad")
        with pytest.raises(PresetError, match="UTF-8"):
            load_preset(preset_dir)


class TestPresetModel:
    def test_section_lookup(self):
        preset = make_preset({Section.RULES: [("a.md", "A")]})
        assert preset.section(Section.RULES).files[0].relative_path == "rules/a.md"
        assert preset.section(Section.MEMORY) is None

    def test_source_frontmatter(self):
        source = SourceFile("rules/a.md", "---\ndescription: Style\n---\nBody\n")
        assert source.frontmatter == {"description": "Style"}
