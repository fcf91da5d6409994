"""Tests for front-matter parsing and key renaming."""

import pytest

from aidot.errors import TransformError
from aidot.frontmatter import has_frontmatter, parse_frontmatter, rename_frontmatter_key


class TestParseFrontmatter:
    def test_valid_frontmatter(self):
        text = "---\nalwaysApply: true\ndescription: My rule\n---\n# Body\nContent here."
        meta, body = parse_frontmatter(text)
        assert meta["alwaysApply"] is True
        assert meta["description"] == "My rule"
        assert body == "# Body\nContent here."

    def test_no_frontmatter(self):
        text = "# Just a heading\nSome content."
        meta, body = parse_frontmatter(text)
        assert meta == {}
        assert body == text

    def test_quoted_values(self):
        text = '---\ndescription: "A value: with colons"\n---\nBody'
        meta, _ = parse_frontmatter(text)
        assert meta["description"] == "A value: with colons"

    def test_hyphenated_keys(self):
        meta, _ = parse_frontmatter("---\nallowed-tools: Read\n---\n")
        assert meta["allowed-tools"] == "Read"

    def test_missing_closing_delimiter(self):
        text = "---\nalwaysApply: true\nNo closing delimiter"
        meta, body = parse_frontmatter(text)
        assert meta == {}
        assert body == text

    def test_crlf_delimiters(self):
        meta, body = parse_frontmatter("---\r\ndescription: x\r\n---\r\nBody")
        assert meta["description"] == "x"
        assert body == "Body"


class TestHasFrontmatter:
    def test_detects_block(self):
        assert has_frontmatter("---\na: 1\n---\nbody")

    def test_block_must_start_file(self):
        assert not has_frontmatter("intro\n---\na: 1\n---\n")


class TestRenameFrontmatterKey:
    def test_renames_key(self):
        text = "---\nglobs: src/**/*.ts\ndescription: TS\n---\nUse strict mode.\n"
        out = rename_frontmatter_key(text, "globs", "applyTo")
        assert out == "---\napplyTo: src/**/*.ts\ndescription: TS\n---\nUse strict mode.\n"

    def test_body_untouched(self):
        text = "---\nglobs: '*.py'\n---\nglobs: this line is body text\n"
        out = rename_frontmatter_key(text, "globs", "applyTo")
        assert out.endswith("---\nglobs: this line is body text\n")
        assert out.startswith("---\napplyTo: '*.py'\n")

    def test_preserves_spacing_before_colon(self):
        out = rename_frontmatter_key("---\nglobs  : x\n---\n", "globs", "applyTo")
        assert "applyTo  : x" in out

    def test_key_prefix_not_matched(self):
        text = "---\nglobsExtra: x\n---\n"
        assert rename_frontmatter_key(text, "globs", "applyTo") == text

    def test_no_frontmatter_unchanged(self):
        text = "# Rule\nglobs: not front-matter\n"
        assert rename_frontmatter_key(text, "globs", "applyTo") == text

    def test_missing_key_unchanged(self):
        text = "---\ndescription: x\n---\nbody\n"
        assert rename_frontmatter_key(text, "globs", "applyTo") == text

    def test_unclosed_block_raises(self):
        with pytest.raises(TransformError, match="never closed"):
            rename_frontmatter_key("---\nglobs: x\nbody\n", "globs", "applyTo")
