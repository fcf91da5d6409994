"""Conflict resolution between computed targets and files already on disk.

The resolver only computes decisions. Writing happens later in the apply
stage, which lets scan and preview reuse the exact same decision logic.
"""

from __future__ import annotations

import difflib
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Protocol

from aidot.transforms import normalize_content


class ConflictMode(str, Enum):
    FORCE = "force"
    SKIP = "skip"
    ASK = "ask"


class ConflictDecision(str, Enum):
    WRITE = "write"
    SKIP = "skip"
    OVERWRITE = "overwrite"
    PROMPTED = "prompted"


class Sameness(str, Enum):
    IDENTICAL = "identical"
    NORMALIZED = "normalized"
    DIVERGENT = "divergent"


class ChangeKind(str, Enum):
    NEW = "new"
    MODIFIED = "modified"
    UNCHANGED = "unchanged"
    ORPHANED_LOCAL = "orphaned-local"


class PromptChoice(str, Enum):
    OVERWRITE = "overwrite"
    SKIP = "skip"
    OVERWRITE_ALL = "overwrite-all"
    SKIP_ALL = "skip-all"


class Target(Protocol):
    path: str
    content: str


@dataclass(frozen=True)
class Resolution:
    path: str
    decision: ConflictDecision
    kind: ChangeKind
    sameness: Optional[Sameness]
    before: Optional[str]
    after: str
    diff: str = ""


def compare(content: str, existing: Optional[str]) -> Optional[Sameness]:
    if existing is None:
        return None
    if existing == content:
        return Sameness.IDENTICAL
    if normalize_content(existing) == normalize_content(content):
        return Sameness.NORMALIZED
    return Sameness.DIVERGENT


def unified_diff(path: str, before: Optional[str], after: str) -> str:
    diff = difflib.unified_diff(
        (before or "").splitlines(keepends=True),
        after.splitlines(keepends=True),
        fromfile=f"{path} (local)",
        tofile=f"{path} (preset)",
    )
    lines = [line if line.endswith("\n") else line + "\n" for line in diff]
    return "".join(lines)


def diff_summary(before: str, after: str) -> Optional[str]:
    """'+N lines' / '-N lines' / 'content differs', or None when equivalent."""
    if normalize_content(before) == normalize_content(after):
        return None
    old, new = len(before.splitlines()), len(after.splitlines())
    if new > old:
        return f"+{new - old} lines"
    if old > new:
        return f"-{old - new} lines"
    return "content differs"


def resolve(target: Target, existing: Optional[str], mode: ConflictMode) -> Resolution:
    sameness = compare(target.content, existing)
    if sameness is None:
        return Resolution(
            path=target.path,
            decision=ConflictDecision.WRITE,
            kind=ChangeKind.NEW,
            sameness=None,
            before=None,
            after=target.content,
            diff=unified_diff(target.path, None, target.content),
        )
    if sameness is not Sameness.DIVERGENT:
        return Resolution(
            path=target.path,
            decision=ConflictDecision.SKIP,
            kind=ChangeKind.UNCHANGED,
            sameness=sameness,
            before=existing,
            after=target.content,
        )
    decision = {
        ConflictMode.FORCE: ConflictDecision.OVERWRITE,
        ConflictMode.SKIP: ConflictDecision.SKIP,
        ConflictMode.ASK: ConflictDecision.PROMPTED,
    }[mode]
    return Resolution(
        path=target.path,
        decision=decision,
        kind=ChangeKind.MODIFIED,
        sameness=sameness,
        before=existing,
        after=target.content,
        diff=unified_diff(target.path, existing, target.content),
    )


def settle(resolution: Resolution, choice: PromptChoice) -> Resolution:
    """Turn a PROMPTED resolution into a final one using the human's choice."""
    if resolution.decision is not ConflictDecision.PROMPTED:
        return resolution
    if choice in (PromptChoice.OVERWRITE, PromptChoice.OVERWRITE_ALL):
        return replace(resolution, decision=ConflictDecision.OVERWRITE)
    return replace(resolution, decision=ConflictDecision.SKIP)
