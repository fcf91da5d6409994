"""Tool-neutral preset model and the .aidot-config.toml loader."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import Any, Optional

from aidot.errors import PresetError
from aidot.frontmatter import parse_frontmatter

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

CONFIG_FILENAME = ".aidot-config.toml"


class Section(str, Enum):
    RULES = "rules"
    MEMORY = "memory"
    COMMANDS = "commands"
    MCP = "mcp"
    HOOKS = "hooks"
    AGENTS = "agents"
    SKILLS = "skills"
    SETTINGS = "settings"


class MergeStrategy(str, Enum):
    CONCATENATE = "concat"
    REPLACE = "replace"


SECTION_NAMES = [s.value for s in Section]

# ---------------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SourceFile:
    relative_path: str
    content: str

    @property
    def frontmatter(self) -> dict[str, Any]:
        meta, _ = parse_frontmatter(self.content)
        return meta


@dataclass(frozen=True)
class PresetSection:
    section: Section
    strategy: MergeStrategy = MergeStrategy.CONCATENATE
    files: tuple[SourceFile, ...] = ()


@dataclass(frozen=True)
class Preset:
    name: str
    version: str = "0.0.0"
    description: str = ""
    sections: tuple[PresetSection, ...] = field(default_factory=tuple)

    def section(self, section: Section) -> Optional[PresetSection]:
        for s in self.sections:
            if s.section is section:
                return s
        return None

    def file_count(self) -> int:
        return sum(len(s.files) for s in self.sections)


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------


def _check_relative(rel: str, preset_dir: Path) -> str:
    parts = PurePosixPath(rel).parts
    if PurePosixPath(rel).is_absolute() or ".." in parts:
        raise PresetError(f"path '{rel}' escapes preset root {preset_dir}")
    return rel


def _read_source(path: Path, section: Section, root: Path,
                 preset_dir: Path) -> SourceFile:
    """Read one file; its relative path is rooted at the section name."""
    base = root if path.is_relative_to(root) else preset_dir
    inner = _check_relative(path.relative_to(base).as_posix(), preset_dir)
    rel = f"{section.value}/{inner}"
    try:
        content = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise PresetError(f"{rel} is not valid UTF-8 text") from exc
    return SourceFile(relative_path=rel, content=content)


def _collect_files(preset_dir: Path, section: Section, directory: str,
                   patterns: list[str]) -> list[SourceFile]:
    """Files in manifest order: each glob expands sorted, first match wins."""
    _check_relative(directory, preset_dir)
    root = preset_dir / directory
    seen: set[Path] = set()
    paths: list[Path] = []
    if patterns:
        for pattern in patterns:
            _check_relative(pattern, preset_dir)
            for match in sorted(preset_dir.glob(pattern)):
                if match.is_file() and match not in seen:
                    seen.add(match)
                    paths.append(match)
    elif root.is_dir():
        paths = sorted(
            (p for p in root.rglob("*") if p.is_file()),
            key=lambda p: p.relative_to(preset_dir).as_posix(),
        )
    resolved_root = preset_dir.resolve()
    for p in paths:
        if not p.resolve().is_relative_to(resolved_root):
            raise PresetError(f"{p} resolves outside preset root {preset_dir}")
    return [_read_source(p, section, root, preset_dir) for p in paths]


def _parse_strategy(name: str, raw: Any) -> MergeStrategy:
    try:
        return MergeStrategy(raw)
    except ValueError:
        raise PresetError(
            f"[{name}] merge_strategy must be 'concat' or 'replace', got {raw!r}"
        ) from None


def load_preset(preset_dir: Path) -> Preset:
    """Parse a preset directory described by its .aidot-config.toml."""
    config_file = preset_dir / CONFIG_FILENAME
    if not config_file.exists():
        raise PresetError(f"Missing {CONFIG_FILENAME} in {preset_dir}")
    try:
        data = tomllib.loads(config_file.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as exc:
        raise PresetError(f"{config_file}: {exc}") from exc

    metadata = data.get("metadata", {})
    unknown = sorted(k for k in data if k != "metadata" and k not in SECTION_NAMES)
    if unknown:
        raise PresetError(f"Unknown preset section(s): {', '.join(unknown)}")

    sections: list[PresetSection] = []
    for section in Section:
        table = data.get(section.value)
        if table is None:
            continue
        if not isinstance(table, dict):
            raise PresetError(f"[{section.value}] must be a table")
        directory = str(table.get("directory", section.value)).rstrip("/")
        patterns = [str(p) for p in table.get("files", [])]
        strategy = _parse_strategy(
            section.value, table.get("merge_strategy", MergeStrategy.CONCATENATE.value)
        )
        files = _collect_files(preset_dir, section, directory, patterns)
        sections.append(PresetSection(section=section, strategy=strategy, files=tuple(files)))

    return Preset(
        name=str(metadata.get("name", preset_dir.name)),
        version=str(metadata.get("version", "0.0.0")),
        description=str(metadata.get("description", "")),
        sections=tuple(sections),
    )
