"""Merge strategy resolution for targets that share one destination."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Iterable, Optional

from aidot.errors import ConfigurationError, TransformError
from aidot.preset import MergeStrategy
from aidot.transforms import (
    FileFormat,
    TargetFile,
    concatenate,
    dump_json,
    merge_json_entries,
    spread_json_objects,
)


@dataclass(frozen=True)
class MergeGroup:
    path: str
    members: tuple[TargetFile, ...]

    @property
    def fmt(self) -> FileFormat:
        return self.members[0].fmt

    @property
    def sections(self) -> tuple[str, ...]:
        return tuple(dict.fromkeys(m.section.value for m in self.members))

    @property
    def sources(self) -> tuple[str, ...]:
        return tuple(m.source for m in self.members)


@dataclass(frozen=True)
class MergedFile:
    path: str
    content: str
    fmt: FileFormat
    sections: tuple[str, ...]
    sources: tuple[str, ...]


def group_targets(targets: Iterable[TargetFile]) -> list[MergeGroup]:
    """Bucket targets by destination path, in order of first occurrence."""
    buckets: dict[str, list[TargetFile]] = {}
    for t in targets:
        buckets.setdefault(t.path, []).append(t)
    return [
        MergeGroup(path=path, members=tuple(sorted(members, key=lambda m: m.order)))
        for path, members in buckets.items()
    ]


def _merge_text(group: MergeGroup) -> str:
    if len(group.members) == 1:
        return group.members[0].content
    replaced = [m.source for m in group.members if m.strategy is MergeStrategy.REPLACE]
    if replaced:
        raise ConfigurationError(
            f"{group.path}: {len(group.members)} sources map to one destination under "
            f"'replace' strategy ({', '.join(group.sources)})"
        )
    return concatenate([m.content for m in group.members])


def _load_base(group: MergeGroup, existing: Optional[str]) -> dict[str, Any]:
    if existing is None or not any(m.keep_existing for m in group.members):
        return {}
    if not existing.strip():
        return {}
    try:
        base = json.loads(existing)
    except json.JSONDecodeError as exc:
        raise TransformError(f"{group.path}: existing file is not valid JSON ({exc})") from exc
    if not isinstance(base, dict):
        raise TransformError(f"{group.path}: existing file is not a JSON object")
    return base


def _merge_json(group: MergeGroup, existing: Optional[str]) -> str:
    doc = _load_base(group, existing)
    claimed: dict[tuple[Optional[str], str], str] = {}
    for m in group.members:
        if m.entry_key is None:
            keys = list(m.data) if isinstance(m.data, dict) else []
            slots = [(None, k) for k in keys]
        else:
            slots = [(m.wrapper_key, m.entry_key)]
        for slot in slots:
            previous = claimed.get(slot)
            if previous is not None and m.strategy is MergeStrategy.REPLACE:
                where = ".".join(k for k in slot if k)
                raise ConfigurationError(
                    f"{group.path}: '{where}' defined by both {previous} and {m.source} "
                    f"under 'replace' strategy"
                )
            claimed[slot] = m.source
        if m.entry_key is None:
            doc = spread_json_objects(doc, [(m.source, m.data)])
        else:
            doc = merge_json_entries(doc, m.wrapper_key, [(m.entry_key, m.data)])
    return dump_json(doc)


def resolve_group(group: MergeGroup, existing: Optional[str] = None) -> MergedFile:
    """Compute the final content of one destination.

    `existing` is the current on-disk text; only JSON targets that preserve
    foreign keys read it.
    """
    formats = {m.fmt for m in group.members}
    if len(formats) > 1:
        raise ConfigurationError(
            f"{group.path}: sources disagree on format ({', '.join(sorted(f.value for f in formats))})"
        )
    if group.fmt is FileFormat.JSON_MERGE:
        content = _merge_json(group, existing)
    else:
        content = _merge_text(group)
    return MergedFile(
        path=group.path,
        content=content,
        fmt=group.fmt,
        sections=group.sections,
        sources=group.sources,
    )
