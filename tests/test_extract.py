"""Tests for reading tool configs back into preset files."""

import json

from aidot.adapters import CLAUDE_CODE, COPILOT, CURSOR
from aidot.conflict import ConflictMode
from aidot.extract import (
    Extraction,
    ExtractedFile,
    combine,
    extract,
    inventory,
    source_name,
    write_extracted,
)
from aidot.preset import Section
from aidot.report import ApplyOptions
from tests.conftest import make_preset

FORCE = ApplyOptions(mode=ConflictMode.FORCE)
STYLE = "---\ndescription: Python style\nglobs: *.py\n---\nUse black.\n"

PRESET = make_preset({
    Section.RULES: [("style.md", STYLE)],
    Section.MEMORY: [("project.md", "# Project\n")],
    Section.COMMANDS: [("review.md", "Review the diff.\n")],
    Section.MCP: [("fs.json", '{"command": "fs"}')],
    Section.AGENTS: [("helper.md", "You help.\n")],
    Section.SETTINGS: [("base.json", '{"model": "opus"}')],
})


def by_path(extraction):
    return {f"{f.section.value}/{f.path}": f.content for f in extraction.files}


class TestRoundTrip:
    def test_copilot(self, workspace):
        COPILOT.apply(PRESET, workspace, FORCE)
        ex = extract(COPILOT, workspace)
        assert ex.errors == ()
        assert by_path(ex) == {
            "rules/style.md": STYLE,
            "memory/copilot-memory.md": "# Project\n",
            "commands/review.md": "Review the diff.\n",
            "mcp/fs.json": '{\n  "command": "fs"\n}\n',
            "agents/helper.md": "You help.\n",
        }

    def test_cursor_mdc_back_to_md(self, workspace):
        CURSOR.apply(PRESET, workspace, FORCE)
        files = by_path(extract(CURSOR, workspace))
        assert files["rules/style.md"] == STYLE
        assert files["memory/cursor-memory.md"] == "# Project\n"

    def test_claude_splits_shared_settings_file(self, workspace):
        (workspace / ".claude").mkdir()
        (workspace / ".claude/settings.local.json").write_text(
            json.dumps({"permissions": {"allow": ["Bash(ls)"]}})
        )
        CLAUDE_CODE.apply(PRESET, workspace, FORCE)
        files = by_path(extract(CLAUDE_CODE, workspace))
        assert json.loads(files["mcp/fs.json"]) == {"command": "fs"}
        assert json.loads(files["settings/claude-settings.json"]) == {
            "permissions": {"allow": ["Bash(ls)"]},
            "model": "opus",
        }
        assert files["memory/claude-memory.md"] == "# Project\n"

    def test_origin_points_at_tool_file(self, workspace):
        COPILOT.apply(PRESET, workspace, FORCE)
        origins = {f.path: f.origin for f in extract(COPILOT, workspace).files}
        assert origins["style.md"] == ".github/instructions/style.instructions.md"
        assert origins["fs.json"] == ".vscode/mcp.json"


class TestSourceName:
    def test_suffix_stripped(self):
        rule = COPILOT.table[Section.COMMANDS]
        assert source_name("review.prompt.md", rule) == "review.md"
        assert source_name("nested/a.prompt.md", rule) == "nested/a.md"

    def test_unsuffixed_file_not_ours(self):
        rule = COPILOT.table[Section.RULES]
        assert source_name("README.md", rule) is None
        assert source_name(".instructions.md", rule) is None

    def test_extension_restored(self):
        rule = CURSOR.table[Section.RULES]
        assert source_name("style.mdc", rule) == "style.md"
        assert source_name("notes.txt", rule) == "notes.txt"

    def test_frontmatter_only_renamed_in_block(self, workspace):
        d = workspace / ".github/instructions"
        d.mkdir(parents=True)
        (d / "plain.instructions.md").write_text("applyTo: not front-matter\n")
        [f] = extract(COPILOT, workspace).files
        assert f.content == "applyTo: not front-matter\n"


class TestErrors:
    def test_invalid_json_recorded(self, workspace):
        (workspace / ".cursor").mkdir()
        (workspace / ".cursor/mcp.json").write_text("{broken")
        (workspace / ".cursor/rules").mkdir()
        (workspace / ".cursor/rules/a.mdc").write_text("A\n")
        ex = extract(CURSOR, workspace)
        assert [f.path for f in ex.files] == ["a.md"]
        assert [origin for origin, _ in ex.errors] == [".cursor/mcp.json"]
        assert "invalid JSON" in ex.errors[0][1]

    def test_wrapper_not_object(self, workspace):
        (workspace / ".vscode").mkdir()
        (workspace / ".vscode/mcp.json").write_text('{"servers": []}')
        ex = extract(COPILOT, workspace)
        assert ex.files == ()
        assert "servers" in ex.errors[0][1]

    def test_empty_workspace(self, workspace):
        ex = extract(CLAUDE_CODE, workspace)
        assert ex == Extraction(adapter="Claude Code", key="claude")


def _file(section, path, content, origin="x"):
    return ExtractedFile(section, path, content, origin)


class TestCombine:
    def test_same_content_from_second_tool_dropped(self):
        first = Extraction("Cursor", "cursor", (_file(Section.RULES, "style.md", "A\n"),))
        second = Extraction("GitHub Copilot", "copilot", (_file(Section.RULES, "style.md", "A  \r\n"),))
        assert [f.path for f in combine([first, second])] == ["style.md"]

    def test_name_clash_prefixed(self):
        first = Extraction("Cursor", "cursor", (_file(Section.RULES, "style.md", "A\n"),))
        second = Extraction("GitHub Copilot", "copilot", (_file(Section.RULES, "style.md", "B\n"),))
        combined = combine([first, second])
        assert [(f.path, f.content) for f in combined] == [
            ("style.md", "A\n"), ("copilot-style.md", "B\n"),
        ]

    def test_prefix_keeps_directory(self):
        first = Extraction("Cursor", "cursor", (_file(Section.SKILLS, "lint/SKILL.md", "A\n"),))
        second = Extraction("Claude Code", "claude", (_file(Section.SKILLS, "lint/SKILL.md", "B\n"),))
        assert combine([first, second])[1].path == "lint/claude-SKILL.md"

    def test_same_name_other_section_kept(self):
        ex = Extraction("Cursor", "cursor", (
            _file(Section.RULES, "a.md", "A\n"),
            _file(Section.COMMANDS, "a.md", "A\n"),
        ))
        assert len(combine([ex])) == 2


class TestWriteAndInventory:
    def test_write_extracted(self, preset_dir):
        written = write_extracted(preset_dir, [
            _file(Section.RULES, "nested/a.md", "A\n"),
            _file(Section.MCP, "fs.json", "{}\n"),
        ])
        assert written == ["rules/nested/a.md", "mcp/fs.json"]
        assert (preset_dir / "rules/nested/a.md").read_text() == "A\n"

    def test_inventory(self, workspace):
        COPILOT.apply(PRESET, workspace, FORCE)
        found = inventory(COPILOT, workspace)
        assert found[Section.RULES] == [".github/instructions/style.instructions.md"]
        assert found[Section.MCP] == [".vscode/mcp.json"]
        assert found[Section.SKILLS] == []
