"""Tool adapters: per-tool section tables over the shared pipeline.

Each adapter is data. Adding a tool means adding a table, not code.
"""

from __future__ import annotations

import shutil
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Iterable, Optional

from aidot import pipeline
from aidot.errors import TransformError
from aidot.frontmatter import rename_frontmatter_key
from aidot.preset import Preset, PresetSection, Section, SourceFile
from aidot.report import ApplyOptions, ApplyResult, PreviewResult, ScanResult
from aidot.transforms import (
    FileFormat,
    TargetFile,
    json_entry_key,
    parse_json_source,
    remap_path,
)


class Layout(str, Enum):
    FILES = "files"                # one destination per source, under a directory
    SINGLE = "single"              # every source concatenated into one file
    JSON_ENTRIES = "json-entries"  # each source becomes doc[wrapper][name]
    JSON_SPREAD = "json-spread"    # each source object merged into the top level


@dataclass(frozen=True)
class SectionRule:
    layout: Layout
    dest: str
    suffix: Optional[str] = None
    extension: Optional[tuple[str, str]] = None
    rename_keys: tuple[tuple[str, str], ...] = ()
    wrapper_key: Optional[str] = None
    keep_existing: bool = False

    @property
    def owns_directory(self) -> bool:
        return self.layout is Layout.FILES

    @property
    def fmt(self) -> FileFormat:
        if self.layout in (Layout.JSON_ENTRIES, Layout.JSON_SPREAD):
            return FileFormat.JSON_MERGE
        return FileFormat.FRONTMATTER_TEXT if self.rename_keys else FileFormat.TEXT

    def target_path(self, source: SourceFile, section: Section) -> str:
        if self.layout is not Layout.FILES:
            return self.dest
        name = remap_path(source.relative_path, section.value, self.suffix, self.extension)
        return f"{self.dest}/{name}"

    def project(self, source: SourceFile, ps: PresetSection,
                order: tuple[int, int]) -> TargetFile:
        """Transform one source into its target (the TransformRule)."""
        section = ps.section
        base = dict(
            path=self.target_path(source, section),
            fmt=self.fmt,
            section=section,
            strategy=ps.strategy,
            source=source.relative_path,
            order=order,
        )
        if self.fmt is FileFormat.JSON_MERGE:
            data = parse_json_source(source.content, source.relative_path)
            key = None
            if self.layout is Layout.JSON_ENTRIES:
                key = json_entry_key(source.relative_path, section.value)
            elif not isinstance(data, dict):
                raise TransformError(f"{source.relative_path}: expected a JSON object at top level")
            return TargetFile(
                content=source.content, wrapper_key=self.wrapper_key, entry_key=key,
                data=data, keep_existing=self.keep_existing, **base,
            )
        content = source.content
        for old, new in self.rename_keys:
            try:
                content = rename_frontmatter_key(content, old, new)
            except TransformError as exc:
                raise TransformError(f"{source.relative_path}: {exc}") from exc
        return TargetFile(content=content, **base)


Probe = Callable[["ToolAdapter", Path], bool]


@dataclass(frozen=True)
class ToolAdapter:
    key: str
    label: str
    roots: tuple[str, ...]
    table: dict[Section, SectionRule] = field(hash=False)
    markers: tuple[str, ...] = ()
    binary: Optional[str] = None

    def name(self) -> str:
        return self.label

    def detect(self, workspace: Path, probe: Optional[Probe] = None) -> bool:
        return (probe or default_probe)(self, workspace)

    def scan(self, preset: Preset, workspace: Path) -> ScanResult:
        return pipeline.scan(self, preset, workspace)

    def preview(self, preset: Preset, workspace: Path) -> PreviewResult:
        return pipeline.preview(self, preset, workspace)

    def apply(self, preset: Preset, workspace: Path,
              options: Optional[ApplyOptions] = None) -> ApplyResult:
        return pipeline.apply(self, preset, workspace, options)


def default_probe(adapter: ToolAdapter, workspace: Path) -> bool:
    """Marker file/directory in the workspace, or the tool's CLI on PATH."""
    if any((workspace / m).exists() for m in adapter.markers):
        return True
    return adapter.binary is not None and shutil.which(adapter.binary) is not None


# ---------------------------------------------------------------------------
# Shipped adapters
# ---------------------------------------------------------------------------

CLAUDE_CODE = ToolAdapter(
    key="claude",
    label="Claude Code",
    roots=(".claude",),
    markers=(".claude",),
    binary="claude",
    table={
        Section.RULES: SectionRule(Layout.FILES, ".claude/rules"),
        Section.MEMORY: SectionRule(Layout.SINGLE, ".claude/CLAUDE.md"),
        Section.COMMANDS: SectionRule(Layout.FILES, ".claude/commands"),
        Section.MCP: SectionRule(Layout.JSON_ENTRIES, ".claude/settings.local.json",
                                 wrapper_key="mcpServers", keep_existing=True),
        Section.HOOKS: SectionRule(Layout.JSON_ENTRIES, ".claude/hooks.json"),
        Section.AGENTS: SectionRule(Layout.FILES, ".claude/agents"),
        Section.SKILLS: SectionRule(Layout.FILES, ".claude/skills"),
        Section.SETTINGS: SectionRule(Layout.JSON_SPREAD, ".claude/settings.local.json",
                                      keep_existing=True),
    },
)

CURSOR = ToolAdapter(
    key="cursor",
    label="Cursor",
    roots=(".cursor", ".cursorrules"),
    markers=(".cursor", ".cursorrules"),
    binary="cursor",
    table={
        Section.RULES: SectionRule(Layout.FILES, ".cursor/rules", extension=(".md", ".mdc")),
        Section.MEMORY: SectionRule(Layout.SINGLE, ".cursorrules"),
        Section.COMMANDS: SectionRule(Layout.FILES, ".cursor/commands"),
        Section.MCP: SectionRule(Layout.JSON_ENTRIES, ".cursor/mcp.json",
                                 wrapper_key="mcpServers", keep_existing=True),
        Section.HOOKS: SectionRule(Layout.JSON_ENTRIES, ".cursor/hooks.json"),
        Section.AGENTS: SectionRule(Layout.FILES, ".cursor/agents"),
        Section.SKILLS: SectionRule(Layout.FILES, ".cursor/skills"),
    },
)

COPILOT = ToolAdapter(
    key="copilot",
    label="GitHub Copilot",
    roots=(".github", ".vscode/mcp.json"),
    markers=(".github/copilot-instructions.md", ".github/instructions", ".github/prompts"),
    table={
        Section.RULES: SectionRule(Layout.FILES, ".github/instructions", suffix="instructions",
                                   rename_keys=(("globs", "applyTo"),)),
        Section.MEMORY: SectionRule(Layout.SINGLE, ".github/copilot-instructions.md"),
        Section.COMMANDS: SectionRule(Layout.FILES, ".github/prompts", suffix="prompt"),
        Section.MCP: SectionRule(Layout.JSON_ENTRIES, ".vscode/mcp.json",
                                 wrapper_key="servers", keep_existing=True),
        Section.AGENTS: SectionRule(Layout.FILES, ".github/agents", suffix="agent"),
        Section.SKILLS: SectionRule(Layout.FILES, ".github/skills"),
    },
)

REGISTRY: tuple[ToolAdapter, ...] = (CLAUDE_CODE, CURSOR, COPILOT)

# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


def find_adapter(key: str) -> Optional[ToolAdapter]:
    for adapter in REGISTRY:
        if adapter.key == key:
            return adapter
    return None


def active(workspace: Path, requested: Optional[Iterable[str]] = None,
           probe: Optional[Probe] = None,
           registry: tuple[ToolAdapter, ...] = REGISTRY) -> list[ToolAdapter]:
    """Adapters to run, in registry order.

    An explicit subset is used as-is regardless of detection; otherwise only
    detected tools are returned. Unknown names raise KeyError.
    """
    if requested is not None:
        wanted = set(requested)
        unknown = wanted - {a.key for a in registry}
        if unknown:
            raise KeyError(", ".join(sorted(unknown)))
        return [a for a in registry if a.key in wanted]
    return [a for a in registry if a.detect(workspace, probe)]
