"""Reverse projection: rebuild preset files from a workspace's tool configs.

Each adapter table is read backwards. Directory layouts lose their tool
suffix and extension, renamed front-matter keys get their preset names back,
and JSON documents are split into one file per entry.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, replace
from pathlib import Path, PurePosixPath
from typing import Iterable

from aidot.adapters import Layout, SectionRule, ToolAdapter
from aidot.errors import FilesystemError
from aidot.frontmatter import has_frontmatter, rename_frontmatter_key
from aidot.preset import Section
from aidot.transforms import dump_json, normalize_content, replace_extension


@dataclass(frozen=True)
class ExtractedFile:
    section: Section
    path: str     # relative to the section directory
    content: str
    origin: str   # workspace-relative file it came from


@dataclass(frozen=True)
class Extraction:
    adapter: str
    key: str
    files: tuple[ExtractedFile, ...] = ()
    errors: tuple[tuple[str, str], ...] = ()


# ---------------------------------------------------------------------------
# Per-layout inversion
# ---------------------------------------------------------------------------


def _read(workspace: Path, rel: str) -> str:
    try:
        return (workspace / rel).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise FilesystemError(f"{rel}: cannot read ({exc})") from exc


def _read_object(workspace: Path, rel: str) -> dict:
    text = _read(workspace, rel)
    try:
        doc = json.loads(text) if text.strip() else {}
    except json.JSONDecodeError as exc:
        raise FilesystemError(f"{rel}: invalid JSON ({exc})") from exc
    if not isinstance(doc, dict):
        raise FilesystemError(f"{rel}: expected a JSON object at top level")
    return doc


def source_name(name: str, rule: SectionRule) -> str | None:
    """Preset file name for a destination name, or None if the rule never produces it."""
    if rule.suffix:
        tail = f".{rule.suffix}.md"
        if not name.endswith(tail) or len(name) == len(tail):
            return None
        name = name[:-len(tail)] + ".md"
    if rule.extension:
        old, new = rule.extension
        name = replace_extension(name, new, old)
    return name


def restore_frontmatter(content: str, rule: SectionRule) -> str:
    if not has_frontmatter(content):
        return content
    for old, new in rule.rename_keys:
        content = rename_frontmatter_key(content, new, old)
    return content


def _from_directory(workspace: Path, section: Section, rule: SectionRule,
                    errors: list[tuple[str, str]]) -> list[ExtractedFile]:
    root = workspace / rule.dest
    if not root.is_dir():
        return []
    found: list[ExtractedFile] = []
    for f in sorted(root.rglob("*")):
        if not f.is_file():
            continue
        inner = f.relative_to(root).as_posix()
        name = source_name(inner, rule)
        if name is None:
            continue
        origin = f.relative_to(workspace).as_posix()
        try:
            content = _read(workspace, origin)
        except FilesystemError as exc:
            errors.append((origin, str(exc)))
            continue
        found.append(ExtractedFile(section, name, restore_frontmatter(content, rule), origin))
    return found


def _json_entries(doc: dict, rule: SectionRule, table: dict[Section, SectionRule]) -> dict:
    if rule.layout is Layout.JSON_ENTRIES:
        if rule.wrapper_key is None:
            return doc
        entries = doc.get(rule.wrapper_key, {})
        if not isinstance(entries, dict):
            raise FilesystemError(f"{rule.dest}: '{rule.wrapper_key}' is not a JSON object")
        return entries
    # Spread layout: whatever the entry rules sharing this file do not own.
    owned = {
        r.wrapper_key for r in table.values()
        if r.dest == rule.dest and r.layout is Layout.JSON_ENTRIES and r.wrapper_key
    }
    return {k: v for k, v in doc.items() if k not in owned}


def inventory(adapter: ToolAdapter, workspace: Path) -> dict[Section, list[str]]:
    """Workspace-relative files currently sitting at each section's destination."""
    found: dict[Section, list[str]] = {}
    for section, rule in adapter.table.items():
        target = workspace / rule.dest
        if rule.layout is Layout.FILES:
            paths = [f.relative_to(workspace).as_posix()
                     for f in sorted(target.rglob("*")) if f.is_file()] if target.is_dir() else []
        else:
            paths = [rule.dest] if target.is_file() else []
        found[section] = paths
    return found


def extract(adapter: ToolAdapter, workspace: Path) -> Extraction:
    """Collect preset files from one tool's destinations in the workspace."""
    files: list[ExtractedFile] = []
    errors: list[tuple[str, str]] = []
    for section in Section:
        rule = adapter.table.get(section)
        if rule is None:
            continue
        if rule.layout is Layout.FILES:
            files.extend(_from_directory(workspace, section, rule, errors))
            continue
        if not (workspace / rule.dest).is_file():
            continue
        try:
            if rule.layout is Layout.SINGLE:
                content = _read(workspace, rule.dest)
                if content.strip():
                    name = f"{adapter.key}-{section.value}.md"
                    files.append(ExtractedFile(section, name, content, rule.dest))
                continue
            entries = _json_entries(_read_object(workspace, rule.dest), rule, adapter.table)
        except FilesystemError as exc:
            errors.append((rule.dest, str(exc)))
            continue
        if rule.layout is Layout.JSON_SPREAD:
            if entries:
                name = f"{adapter.key}-{section.value}.json"
                files.append(ExtractedFile(section, name, dump_json(entries), rule.dest))
            continue
        for key, value in entries.items():
            files.append(ExtractedFile(section, f"{key}.json", dump_json(value), rule.dest))
    return Extraction(
        adapter=adapter.name(), key=adapter.key, files=tuple(files), errors=tuple(dict.fromkeys(errors)),
    )


# ---------------------------------------------------------------------------
# Combine and write
# ---------------------------------------------------------------------------


def _prefixed(path: str, key: str) -> str:
    p = PurePosixPath(path)
    return str(p.with_name(f"{key}-{p.name}"))


def combine(extractions: Iterable[Extraction]) -> list[ExtractedFile]:
    """Merge extractions in order.

    Content already taken from an earlier tool in the same section is
    dropped. A name clash with different content gets the tool key as a
    prefix.
    """
    taken: dict[tuple[Section, str], str] = {}
    seen: dict[tuple[Section, str], str] = {}
    combined: list[ExtractedFile] = []
    for ex in extractions:
        for f in ex.files:
            norm = normalize_content(f.content)
            owner = seen.get((f.section, norm))
            if owner is not None and owner != ex.key:
                continue
            if (f.section, f.path) in taken:
                f = replace(f, path=_prefixed(f.path, ex.key))
                if (f.section, f.path) in taken:
                    continue
            taken[(f.section, f.path)] = norm
            seen.setdefault((f.section, norm), ex.key)
            combined.append(f)
    return combined


def write_extracted(preset_dir: Path, files: Iterable[ExtractedFile]) -> list[str]:
    """Write files under their section directories; returns preset-relative paths."""
    written: list[str] = []
    for f in files:
        rel = f"{f.section.value}/{f.path}"
        dest = preset_dir / rel
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            dest.write_text(f.content, encoding="utf-8")
        except OSError as exc:
            raise FilesystemError(f"{rel}: {exc.strerror or exc}") from exc
        written.append(rel)
    return written
