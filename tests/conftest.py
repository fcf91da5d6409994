"""Shared fixtures for aidot tests."""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import Any

import pytest

from aidot.adapters import Layout, SectionRule, ToolAdapter
from aidot.preset import CONFIG_FILENAME, MergeStrategy, Preset, PresetSection, Section, SourceFile

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def workspace(tmp_path):
    ws = tmp_path / "project"
    ws.mkdir()
    return ws


@pytest.fixture
def preset_dir(tmp_path):
    d = tmp_path / "preset"
    d.mkdir()
    return d


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def seed_preset(
    preset_dir: Path,
    files: dict[str, str] | None = None,
    strategies: dict[str, str] | None = None,
    name: str = "test-preset",
    manifest: str | None = None,
) -> Path:
    """Write .aidot-config.toml and preset files. Keys of `files` are preset-relative paths.

    Every top-level directory used in `files` gets its own section table
    unless a literal `manifest` is supplied.
    """
    files = files or {}
    strategies = strategies or {}
    for rel, content in files.items():
        path = preset_dir / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)

    if manifest is None:
        lines = ["[metadata]", f'name = "{name}"', 'version = "1.0.0"', ""]
        sections = dict.fromkeys(rel.split("/", 1)[0] for rel in files)
        sections.update(dict.fromkeys(strategies))
        for section in sections:
            lines.append(f"[{section}]")
            if section in strategies:
                lines.append(f'merge_strategy = "{strategies[section]}"')
            lines.append("")
        manifest = "\n".join(lines)
    (preset_dir / CONFIG_FILENAME).write_text(manifest)
    return preset_dir


def make_preset(
    sections: dict[Section, list[tuple[str, str]]],
    strategies: dict[Section, MergeStrategy] | None = None,
    name: str = "test-preset",
) -> Preset:
    """Build an in-memory preset; paths are given relative to the section directory."""
    strategies = strategies or {}
    built = []
    for section in Section:
        if section not in sections:
            continue
        files = tuple(
            SourceFile(relative_path=f"{section.value}/{rel}", content=content)
            for rel, content in sections[section]
        )
        built.append(PresetSection(
            section=section,
            strategy=strategies.get(section, MergeStrategy.CONCATENATE),
            files=files,
        ))
    return Preset(name=name, sections=tuple(built))


def make_adapter(table: dict[Section, SectionRule], roots: tuple[str, ...] = (".tool",),
                 key: str = "tool", label: str = "Test Tool") -> ToolAdapter:
    return ToolAdapter(key=key, label=label, roots=roots, table=table)


SINGLE_RULES = {Section.RULES: SectionRule(Layout.SINGLE, ".tool/RULES.md")}


def always(adapter, workspace) -> bool:
    return True


def never(adapter, workspace) -> bool:
    return False


def make_args(**overrides: Any) -> argparse.Namespace:
    """Create an argparse.Namespace with sensible test defaults."""
    defaults: dict[str, Any] = {
        "workspace": ".",
        "verbose": False,
        "tools": None,
        "command": "pull",
        "dry_run": False,
        "mode": None,
        "backup": False,
    }
    defaults.update(overrides)
    return argparse.Namespace(**defaults)
