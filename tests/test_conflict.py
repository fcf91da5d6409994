"""Tests for conflict classification, decisions and diffs."""

from dataclasses import dataclass

import pytest

from aidot.conflict import (
    ChangeKind,
    ConflictDecision,
    ConflictMode,
    PromptChoice,
    Sameness,
    compare,
    diff_summary,
    resolve,
    settle,
    unified_diff,
)


@dataclass(frozen=True)
class Target:
    path: str
    content: str


class TestCompare:
    def test_missing(self):
        assert compare("a", None) is None

    def test_identical(self):
        assert compare("a\n", "a\n") is Sameness.IDENTICAL

    def test_normalized(self):
        assert compare("a\n", "a") is Sameness.NORMALIZED
        assert compare("a\nb\n", "a\r\nb\r\n") is Sameness.NORMALIZED

    def test_divergent(self):
        assert compare("a\n", "b\n") is Sameness.DIVERGENT


class TestResolve:
    def test_new_file(self):
        res = resolve(Target("x.md", "hello\n"), None, ConflictMode.SKIP)
        assert res.decision is ConflictDecision.WRITE
        assert res.kind is ChangeKind.NEW
        assert "+hello" in res.diff

    @pytest.mark.parametrize("mode", list(ConflictMode))
    def test_equivalent_always_skipped(self, mode):
        res = resolve(Target("x.md", "hello\n"), "hello", mode)
        assert res.decision is ConflictDecision.SKIP
        assert res.kind is ChangeKind.UNCHANGED
        assert res.sameness is Sameness.NORMALIZED

    @pytest.mark.parametrize("mode,decision", [
        (ConflictMode.FORCE, ConflictDecision.OVERWRITE),
        (ConflictMode.SKIP, ConflictDecision.SKIP),
        (ConflictMode.ASK, ConflictDecision.PROMPTED),
    ])
    def test_divergent_by_mode(self, mode, decision):
        res = resolve(Target("x.md", "new\n"), "old\n", mode)
        assert res.decision is decision
        assert res.kind is ChangeKind.MODIFIED
        assert res.before == "old\n"
        assert res.after == "new\n"


class TestSettle:
    def _prompted(self):
        return resolve(Target("x.md", "new\n"), "old\n", ConflictMode.ASK)

    @pytest.mark.parametrize("choice", [PromptChoice.OVERWRITE, PromptChoice.OVERWRITE_ALL])
    def test_overwrite(self, choice):
        assert settle(self._prompted(), choice).decision is ConflictDecision.OVERWRITE

    @pytest.mark.parametrize("choice", [PromptChoice.SKIP, PromptChoice.SKIP_ALL])
    def test_skip(self, choice):
        assert settle(self._prompted(), choice).decision is ConflictDecision.SKIP

    def test_non_prompted_untouched(self):
        res = resolve(Target("x.md", "new\n"), None, ConflictMode.ASK)
        assert settle(res, PromptChoice.SKIP) is res


class TestDiff:
    def test_unified_diff_labels(self):
        diff = unified_diff("CLAUDE.md", "old\n", "new\n")
        assert "--- CLAUDE.md (local)" in diff
        assert "+++ CLAUDE.md (preset)" in diff
        assert "-old" in diff
        assert "+new" in diff

    def test_missing_trailing_newline_is_terminated(self):
        assert unified_diff("a", "x", "y").endswith("\n")

    def test_summary(self):
        assert diff_summary("a\n", "a\nb\nc\n") == "+2 lines"
        assert diff_summary("a\nb\n", "a\n") == "-1 lines"
        assert diff_summary("a\n", "b\n") == "content differs"
        assert diff_summary("a\n", "a") is None
