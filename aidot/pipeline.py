"""Shared Transform -> Merge -> Conflict pipeline behind every adapter.

`plan` reads the workspace but never writes. `scan` and `preview` are
`plan` plus classification; `apply` adds a write stage on top of the same
decisions, so what preview reports is exactly what a forced apply writes.
"""

from __future__ import annotations

import shutil
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Optional

from aidot.conflict import (
    ChangeKind,
    ConflictDecision,
    ConflictMode,
    Resolution,
    diff_summary,
    resolve,
    settle,
)
from aidot.errors import AidotError, ConflictPromptError, FilesystemError
from aidot.merge import MergedFile, group_targets, resolve_group
from aidot.preset import Preset, Section
from aidot.report import (
    ApplyEntry,
    ApplyOptions,
    ApplyResult,
    PreviewResult,
    ScanEntry,
    ScanResult,
    Status,
)
from aidot.transforms import TargetFile


@dataclass(frozen=True)
class PlannedFile:
    path: str
    sections: tuple[str, ...]
    sources: tuple[str, ...]
    merged: Optional[MergedFile] = None
    existing: Optional[str] = None
    errors: tuple[AidotError, ...] = ()

    @property
    def failed(self) -> bool:
        return bool(self.errors)

    def error_fields(self) -> dict[str, str]:
        """Every distinct message and error kind, joined for one result entry."""
        messages = dict.fromkeys(str(e) for e in self.errors)
        kinds = dict.fromkeys(type(e).__name__ for e in self.errors)
        return {"error": "; ".join(messages), "error_kind": ", ".join(kinds)}


@dataclass(frozen=True)
class Plan:
    adapter: str
    files: tuple[PlannedFile, ...]
    orphans: tuple[tuple[str, str], ...] = ()


# ---------------------------------------------------------------------------
# Filesystem boundary
# ---------------------------------------------------------------------------


def _check_destination(adapter, workspace: Path, path: str) -> None:
    """Reject destinations outside the adapter's roots or the workspace."""
    pure = PurePosixPath(path)
    if pure.is_absolute() or ".." in pure.parts:
        raise FilesystemError(f"{path}: destination escapes workspace root")
    if not any(path == root or path.startswith(root.rstrip("/") + "/")
               for root in adapter.roots):
        raise FilesystemError(f"{path}: outside {adapter.name()} roots ({', '.join(adapter.roots)})")
    full = (workspace / path).resolve()
    if not full.is_relative_to(workspace.resolve()):
        raise FilesystemError(f"{path}: resolves outside workspace {workspace}")


def _read_existing(workspace: Path, path: str) -> Optional[str]:
    full = workspace / path
    if not full.exists():
        return None
    if full.is_dir():
        raise FilesystemError(f"{path}: destination is a directory")
    try:
        return full.read_bytes().decode("utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise FilesystemError(f"{path}: cannot read existing file ({exc})") from exc


def _write(workspace: Path, path: str, content: str) -> None:
    full = workspace / path
    try:
        full.parent.mkdir(parents=True, exist_ok=True)
        full.write_bytes(content.encode("utf-8"))
    except OSError as exc:
        raise FilesystemError(f"{path}: {exc.strerror or exc}") from exc


def _backup(workspace: Path, path: str, backup_dir: Path) -> str:
    dest = backup_dir / path
    try:
        dest.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(workspace / path, dest)
    except OSError as exc:
        raise FilesystemError(f"{path}: backup failed ({exc.strerror or exc})") from exc
    return str(dest)


# ---------------------------------------------------------------------------
# Plan
# ---------------------------------------------------------------------------


def _orphans(adapter, preset: Preset, workspace: Path,
             planned: set[str]) -> list[tuple[str, str]]:
    found: list[tuple[str, str]] = []
    for section, rule in adapter.table.items():
        ps = preset.section(section)
        if ps is None or not ps.files or not rule.owns_directory:
            continue
        root = workspace / rule.dest
        if not root.is_dir():
            continue
        for f in sorted(root.rglob("*")):
            rel = f.relative_to(workspace).as_posix()
            if f.is_file() and rel not in planned:
                found.append((rel, section.value))
    return found


def plan(adapter, preset: Preset, workspace: Path) -> Plan:
    """Compute every destination this adapter would produce for the preset.

    A destination fails as a whole when any of its sources fails; the failed
    entry still names every section and source that targeted it.
    """
    contributors: dict[str, list[tuple[str, str]]] = {}
    targets: list[TargetFile] = []
    failures: dict[str, list[AidotError]] = {}

    for section_index, section in enumerate(Section):
        rule = adapter.table.get(section)
        ps = preset.section(section)
        if rule is None or ps is None:
            continue
        for file_index, source in enumerate(ps.files):
            path = rule.target_path(source, section)
            contributors.setdefault(path, []).append((section.value, source.relative_path))
            try:
                _check_destination(adapter, workspace, path)
                targets.append(rule.project(source, ps, (section_index, file_index)))
            except AidotError as exc:
                failures.setdefault(path, []).append(exc)

    resolved: dict[str, tuple[MergedFile, Optional[str]]] = {}
    for group in group_targets(targets):
        if group.path in failures:
            continue
        try:
            existing = _read_existing(workspace, group.path)
            resolved[group.path] = (resolve_group(group, existing), existing)
        except AidotError as exc:
            failures[group.path] = [exc]

    files: list[PlannedFile] = []
    for path, contributed in contributors.items():
        sections = tuple(dict.fromkeys(s for s, _ in contributed))
        sources = tuple(src for _, src in contributed)
        if path in failures:
            files.append(PlannedFile(
                path=path, sections=sections, sources=sources, errors=tuple(failures[path]),
            ))
            continue
        merged, existing = resolved[path]
        files.append(PlannedFile(
            path=path, sections=sections, sources=sources, merged=merged, existing=existing,
        ))

    orphans = _orphans(adapter, preset, workspace, set(contributors))
    return Plan(adapter=adapter.name(), files=tuple(files), orphans=tuple(orphans))


# ---------------------------------------------------------------------------
# Scan / preview
# ---------------------------------------------------------------------------


def scan(adapter, preset: Preset, workspace: Path) -> ScanResult:
    """Classify every destination as new, modified, unchanged or orphaned."""
    p = plan(adapter, preset, workspace)
    entries: list[ScanEntry] = []
    for f in p.files:
        if f.failed:
            entries.append(ScanEntry(
                path=f.path, kind=None, sections=f.sections, sources=f.sources,
                **f.error_fields(),
            ))
            continue
        res = resolve(f.merged, f.existing, ConflictMode.SKIP)
        summary = None
        if res.kind is ChangeKind.MODIFIED:
            summary = diff_summary(f.existing, f.merged.content)
        elif res.kind is ChangeKind.NEW:
            summary = "new file"
        entries.append(ScanEntry(
            path=f.path,
            kind=res.kind,
            sections=f.sections,
            sources=f.sources,
            sameness=res.sameness,
            diff=res.diff,
            summary=summary,
        ))
    for path, section in p.orphans:
        entries.append(ScanEntry(path=path, kind=ChangeKind.ORPHANED_LOCAL, sections=(section,)))
    return ScanResult(adapter=p.adapter, entries=tuple(entries))


def preview(adapter, preset: Preset, workspace: Path) -> PreviewResult:
    result = scan(adapter, preset, workspace)
    keep = (ChangeKind.NEW, ChangeKind.MODIFIED)
    entries = tuple(e for e in result.entries if e.failed or e.kind in keep)
    return PreviewResult(adapter=result.adapter, entries=entries)


# ---------------------------------------------------------------------------
# Apply
# ---------------------------------------------------------------------------


def _settle_prompts(resolutions: list[Resolution], options: ApplyOptions) -> list[Resolution]:
    settled: list[Resolution] = []
    for res in resolutions:
        if res.decision is ConflictDecision.PROMPTED:
            if options.prompt is None:
                raise ConflictPromptError(
                    f"{res.path}: conflict needs a decision but no interactive prompt is available"
                )
            res = settle(res, options.prompt(res))
        settled.append(res)
    return settled


def _entry(f: PlannedFile, res: Resolution, status: Status, **extra) -> ApplyEntry:
    return ApplyEntry(
        path=f.path, status=status, decision=res.decision, kind=res.kind,
        sections=f.sections, sources=f.sources, sameness=res.sameness, diff=res.diff,
        **extra,
    )


def apply(adapter, preset: Preset, workspace: Path,
          options: Optional[ApplyOptions] = None) -> ApplyResult:
    """Run the pipeline and write every file whose decision allows it.

    Prompts for all conflicts are answered before the first write. Files
    written before a later per-file failure are left in place.
    """
    options = options or ApplyOptions()
    if options.tools is not None and adapter.key not in options.tools:
        return ApplyResult(adapter=adapter.name())

    p = plan(adapter, preset, workspace)
    failed: dict[str, ApplyEntry] = {}
    planned: list[PlannedFile] = []
    for f in p.files:
        if f.failed:
            failed[f.path] = ApplyEntry(
                path=f.path, status=Status.FAILED, sections=f.sections, sources=f.sources,
                **f.error_fields(),
            )
        else:
            planned.append(f)

    resolutions = [resolve(f.merged, f.existing, options.mode) for f in planned]
    try:
        resolutions = _settle_prompts(resolutions, options)
    except ConflictPromptError as exc:
        return ApplyResult(
            adapter=p.adapter, entries=tuple(failed.values()), aborted=str(exc),
        )

    done: dict[str, ApplyEntry] = {}
    for f, res in zip(planned, resolutions):
        if res.decision is ConflictDecision.SKIP:
            status = Status.UNCHANGED if res.kind is ChangeKind.UNCHANGED else Status.SKIPPED
            done[f.path] = _entry(f, res, status)
            continue
        backup = None
        try:
            if res.decision is ConflictDecision.OVERWRITE and options.backup_dir is not None:
                backup = _backup(workspace, f.path, options.backup_dir)
            _write(workspace, f.path, f.merged.content)
        except FilesystemError as exc:
            done[f.path] = _entry(f, res, Status.FAILED,
                                  error=str(exc), error_kind=type(exc).__name__)
            continue
        done[f.path] = _entry(f, res, Status.WRITTEN, backup=backup)

    entries = tuple(done.get(f.path) or failed[f.path] for f in p.files)
    return ApplyResult(adapter=p.adapter, entries=entries)
