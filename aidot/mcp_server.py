#!/usr/bin/env python3
"""MCP server exposing aidot preset operations as structured tools."""

from __future__ import annotations

from dataclasses import asdict
from pathlib import Path
from typing import Any, Callable, Optional

from mcp.server.fastmcp import FastMCP

from aidot.adapters import REGISTRY, ToolAdapter, active
from aidot.conflict import ConflictMode
from aidot.errors import PresetError
from aidot.extract import inventory
from aidot.pipeline import apply, preview, scan
from aidot.preset import load_preset
from aidot.report import ApplyOptions, RunReport, aggregate

mcp = FastMCP(
    "aidot",
    instructions="Apply a tool-neutral AI assistant preset to Claude Code, Cursor, and GitHub Copilot.",
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _report_dict(report: RunReport) -> dict[str, Any]:
    return {
        "success": report.ok,
        "summary": report.summary(),
        "tools": [asdict(r) for r in report.reports],
    }


def _run(preset: str, workspace: str, tools: Optional[list[str]],
         op: Callable[[ToolAdapter, Any, Path], Any]) -> dict[str, Any]:
    ws = Path(workspace).expanduser().resolve()
    try:
        loaded = load_preset(Path(preset).expanduser())
        adapters = active(ws, tools)
    except PresetError as exc:
        return {"success": False, "error": str(exc)}
    except KeyError as exc:
        return {"success": False, "error": f"unknown tool(s): {exc.args[0]}"}
    if not adapters:
        return {"success": True, "summary": {}, "tools": [],
                "note": "no supported tools detected; pass tools explicitly"}
    return _report_dict(aggregate(adapters, lambda a: op(a, loaded, ws)))


# ---------------------------------------------------------------------------
# Read-only tools
# ---------------------------------------------------------------------------


@mcp.tool()
def aidot_detect(workspace: str = ".") -> dict[str, Any]:
    """Report which supported tools are present in a workspace."""
    ws = Path(workspace).expanduser().resolve()
    return {
        "tools": [
            {"key": a.key, "label": a.label, "detected": a.detect(ws)}
            for a in REGISTRY
        ]
    }


@mcp.tool()
def aidot_status(workspace: str = ".") -> dict[str, Any]:
    """List the config files each supported tool has in a workspace, by section."""
    ws = Path(workspace).expanduser().resolve()
    tools = []
    for a in REGISTRY:
        present = inventory(a, ws)
        tools.append({
            "key": a.key,
            "label": a.label,
            "detected": a.detect(ws),
            "files": {section.value: paths for section, paths in present.items() if paths},
        })
    return {"tools": tools}


@mcp.tool()
def aidot_diff(preset: str, workspace: str = ".",
               tools: Optional[list[str]] = None) -> dict[str, Any]:
    """Classify every destination file as new, modified, unchanged or orphaned.

    Args:
        preset: Local preset directory containing .aidot-config.toml.
        workspace: Project directory to compare against.
        tools: Restrict to these tool keys (e.g. ["claude", "cursor"]).
    """
    return _run(preset, workspace, tools, scan)


@mcp.tool()
def aidot_preview(preset: str, workspace: str = ".",
                  tools: Optional[list[str]] = None) -> dict[str, Any]:
    """List the files a pull would create or update, with unified diffs."""
    return _run(preset, workspace, tools, preview)


# ---------------------------------------------------------------------------
# Write tools
# ---------------------------------------------------------------------------


@mcp.tool()
def aidot_pull(preset: str, workspace: str = ".", tools: Optional[list[str]] = None,
               mode: str = "skip") -> dict[str, Any]:
    """Apply a preset to the workspace.

    Args:
        preset: Local preset directory containing .aidot-config.toml.
        workspace: Project directory to write into.
        tools: Restrict to these tool keys.
        mode: "force" overwrites differing files, "skip" keeps them. "ask" has
            nobody to answer here, so tools with conflicts are reported aborted.
    """
    try:
        conflict_mode = ConflictMode(mode)
    except ValueError:
        return {"success": False, "error": f"mode must be force, skip or ask, got {mode!r}"}
    options = ApplyOptions(mode=conflict_mode)
    return _run(preset, workspace, tools, lambda a, p, ws: apply(a, p, ws, options))


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main() -> None:
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
