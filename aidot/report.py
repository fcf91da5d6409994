"""Immutable per-adapter reports and the cross-adapter aggregator."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Iterable, Optional, Union

from aidot.conflict import ChangeKind, ConflictDecision, ConflictMode, PromptChoice, Resolution, Sameness
from aidot.errors import AidotError


class Status(str, Enum):
    WRITTEN = "written"
    SKIPPED = "skipped"
    UNCHANGED = "unchanged"
    FAILED = "failed"


@dataclass(frozen=True)
class ApplyOptions:
    mode: ConflictMode = ConflictMode.SKIP
    tools: Optional[frozenset[str]] = None
    prompt: Optional[Callable[[Resolution], PromptChoice]] = None
    backup_dir: Optional[Path] = None


# ---------------------------------------------------------------------------
# Scan / preview
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ScanEntry:
    path: str
    kind: Optional[ChangeKind]
    sections: tuple[str, ...] = ()
    sources: tuple[str, ...] = ()
    sameness: Optional[Sameness] = None
    diff: str = ""
    summary: Optional[str] = None
    error: Optional[str] = None
    error_kind: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.error is not None


@dataclass(frozen=True)
class ScanResult:
    adapter: str
    entries: tuple[ScanEntry, ...] = ()

    def paths(self, kind: ChangeKind) -> list[str]:
        return [e.path for e in self.entries if e.kind is kind]

    @property
    def failed(self) -> list[ScanEntry]:
        return [e for e in self.entries if e.failed]

    @property
    def has_changes(self) -> bool:
        return any(e.kind in (ChangeKind.NEW, ChangeKind.MODIFIED) for e in self.entries)


@dataclass(frozen=True)
class PreviewResult:
    """Scan entries that would change, with diff bodies for display."""

    adapter: str
    entries: tuple[ScanEntry, ...] = ()

    @property
    def changed_paths(self) -> list[str]:
        return [e.path for e in self.entries if not e.failed]

    @property
    def failed(self) -> list[ScanEntry]:
        return [e for e in self.entries if e.failed]

    @property
    def has_changes(self) -> bool:
        return bool(self.changed_paths)


# ---------------------------------------------------------------------------
# Apply
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ApplyEntry:
    path: str
    status: Status
    decision: Optional[ConflictDecision] = None
    kind: Optional[ChangeKind] = None
    sections: tuple[str, ...] = ()
    sources: tuple[str, ...] = ()
    sameness: Optional[Sameness] = None
    diff: str = ""
    error: Optional[str] = None
    error_kind: Optional[str] = None
    backup: Optional[str] = None


@dataclass(frozen=True)
class ApplyResult:
    adapter: str
    entries: tuple[ApplyEntry, ...] = ()
    aborted: Optional[str] = None

    def paths(self, status: Status) -> list[str]:
        return [e.path for e in self.entries if e.status is status]

    @property
    def written(self) -> list[str]:
        return self.paths(Status.WRITTEN)

    @property
    def skipped(self) -> list[str]:
        return self.paths(Status.SKIPPED)

    @property
    def unchanged(self) -> list[str]:
        return self.paths(Status.UNCHANGED)

    @property
    def failed(self) -> list[ApplyEntry]:
        return [e for e in self.entries if e.status is Status.FAILED]

    @property
    def ok(self) -> bool:
        return self.aborted is None and not self.failed


AdapterResult = Union[ScanResult, PreviewResult, ApplyResult]

# ---------------------------------------------------------------------------
# Aggregator
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AdapterReport:
    adapter: str
    result: Optional[AdapterResult] = None
    error: Optional[str] = None
    error_kind: Optional[str] = None

    @property
    def ok(self) -> bool:
        if self.error is not None:
            return False
        if isinstance(self.result, ApplyResult):
            return self.result.ok
        return self.result is None or not self.result.failed


@dataclass(frozen=True)
class RunReport:
    reports: tuple[AdapterReport, ...] = ()

    def summary(self) -> dict[str, int]:
        counts: Counter[str] = Counter()
        for report in self.reports:
            result = report.result
            if isinstance(result, ApplyResult):
                counts.update(e.status.value for e in result.entries)
            elif result is not None:
                for e in result.entries:
                    counts["failed" if e.failed else e.kind.value] += 1
        keys = ["written", "skipped", "unchanged", "failed",
                "new", "modified", "orphaned-local"]
        return {k: counts.get(k, 0) for k in keys}

    @property
    def has_changes(self) -> bool:
        """True when a scan or preview found something an apply would write."""
        return any(
            isinstance(r.result, (ScanResult, PreviewResult)) and r.result.has_changes
            for r in self.reports
        )

    @property
    def ok(self) -> bool:
        return all(r.ok for r in self.reports)

    @property
    def exit_code(self) -> int:
        return 0 if self.ok else 1


def aggregate(adapters: Iterable, run: Callable[..., AdapterResult]) -> RunReport:
    """Run `run(adapter)` for each adapter in order; one failure never stops the rest."""
    reports: list[AdapterReport] = []
    for adapter in adapters:
        try:
            result = run(adapter)
        except (AidotError, OSError) as exc:
            reports.append(AdapterReport(
                adapter=adapter.name(), error=str(exc), error_kind=type(exc).__name__,
            ))
            continue
        reports.append(AdapterReport(adapter=adapter.name(), result=result))
    return RunReport(reports=tuple(reports))
