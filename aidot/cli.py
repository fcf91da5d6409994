"""Command layer: argument parsing, dispatch, prompting and report rendering."""

from __future__ import annotations

import argparse
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from aidot import __version__
from aidot.adapters import REGISTRY, ToolAdapter, active
from aidot.conflict import ChangeKind, ConflictMode, PromptChoice, Resolution
from aidot.errors import ConflictPromptError, FilesystemError, PresetError
from aidot.extract import combine, extract, inventory, write_extracted
from aidot.pipeline import apply, preview, scan
from aidot.preset import CONFIG_FILENAME, SECTION_NAMES, Preset, load_preset
from aidot.report import (
    ApplyOptions,
    ApplyResult,
    PreviewResult,
    RunReport,
    ScanResult,
    Status,
    aggregate,
)

# ---------------------------------------------------------------------------
# Terminal colors (respects NO_COLOR and non-TTY)
# ---------------------------------------------------------------------------

_USE_COLOR = (
    sys.stdout.isatty()
    and os.environ.get("NO_COLOR") is None
    and os.environ.get("TERM") != "dumb"
)


def _ansi(code: str) -> str:
    return f"\033[{code}m" if _USE_COLOR else ""


class C:
    """ANSI escape sequences, empty strings when color is disabled."""
    RESET = _ansi("0")
    BOLD = _ansi("1")
    DIM = _ansi("2")
    RED = _ansi("31")
    GREEN = _ansi("32")
    YELLOW = _ansi("33")
    MAGENTA = _ansi("35")
    CYAN = _ansi("36")
    BOLD_RED = _ansi("1;31")
    BOLD_GREEN = _ansi("1;32")
    BOLD_YELLOW = _ansi("1;33")
    BOLD_CYAN = _ansi("1;36")


BACKUPS_DIR = Path(".aidot") / "backups"
DEFAULT_MODE = ConflictMode.SKIP

# ---------------------------------------------------------------------------
# CLI setup
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="aidot",
        description="Apply one tool-neutral preset to every AI coding assistant in a project.",
    )
    parser.add_argument("--version", action="version", version=f"aidot {__version__}")
    parser.add_argument("--workspace", default=".", help="Project directory (default: cwd)")
    parser.add_argument("--verbose", action="store_true", help="Detailed output")
    parser.add_argument("--tools", metavar="TOOLS",
                        help="Comma-separated tools to target, overrides detection")

    sub = parser.add_subparsers(dest="command")

    init_p = sub.add_parser("init", help="Create an empty preset directory")
    init_p.add_argument("path", nargs="?", default=".", help="Preset directory")
    init_p.add_argument("--force", action="store_true", help=f"Overwrite existing {CONFIG_FILENAME}")
    init_p.add_argument("--from-existing", action="store_true",
                        help="Fill the preset from the tool configs already in --workspace")

    sub.add_parser("detect", help="Show which tools are detected in the workspace")

    status_p = sub.add_parser("status", help="Show tool configs present in the workspace")
    status_p.add_argument("preset", nargs="?", help="Also compare against this preset")

    show_p = sub.add_parser("show", help="List the contents of a preset")
    show_p.add_argument("preset", help="Local preset directory")

    diff_p = sub.add_parser("diff", help="Compare a preset against the workspace")
    diff_p.add_argument("preset", help="Local preset directory")

    pull_p = sub.add_parser("pull", help="Apply a preset to the workspace")
    pull_p.add_argument("preset", help="Local preset directory")
    pull_p.add_argument("--dry-run", action="store_true", help="Preview changes without writing")
    mode = pull_p.add_mutually_exclusive_group()
    mode.add_argument("--force", dest="mode", action="store_const", const=ConflictMode.FORCE,
                      help="Overwrite files that differ")
    mode.add_argument("--skip", dest="mode", action="store_const", const=ConflictMode.SKIP,
                      help="Keep files that differ")
    mode.add_argument("--ask", dest="mode", action="store_const", const=ConflictMode.ASK,
                      help="Ask for each file that differs")
    pull_p.add_argument("--backup", action="store_true",
                        help=f"Copy overwritten files to {BACKUPS_DIR}/<timestamp>/")

    return parser


# ---------------------------------------------------------------------------
# Utilities
# ---------------------------------------------------------------------------


def section_header(title: str) -> None:
    width = 50
    rule = "─" * max(1, width - len(title) - 5)
    print(f"\n{C.BOLD_CYAN}─── {title} {rule}{C.RESET}")


def summary_line(label: str, count: int, detail: str = "") -> None:
    extra = f"  {C.DIM}({detail}){C.RESET}" if detail else ""
    print(f"  {label:15s} {C.BOLD}{count}{C.RESET}{extra}")


def log(msg: str) -> None:
    print(f"  {msg}")


def log_verbose(msg: str, args: argparse.Namespace) -> None:
    if args.verbose:
        print(f"  {C.DIM}[verbose] {msg}{C.RESET}")


def fail(msg: str) -> None:
    print(f"{C.BOLD_RED}Error:{C.RESET} {msg}")
    sys.exit(1)


def print_diff(diff: str) -> None:
    for line in diff.splitlines():
        if line.startswith(("---", "+++")):
            print(f"    {C.BOLD}{line}{C.RESET}")
        elif line.startswith("@@"):
            print(f"    {C.CYAN}{line}{C.RESET}")
        elif line.startswith("-"):
            print(f"    {C.RED}{line}{C.RESET}")
        elif line.startswith("+"):
            print(f"    {C.GREEN}{line}{C.RESET}")
        else:
            print(f"    {C.DIM}{line}{C.RESET}")


class TerminalPrompter:
    """Interactive conflict prompt. Remembers 'all' answers for the rest of the run."""

    def __init__(self) -> None:
        self.sticky: Optional[PromptChoice] = None

    def __call__(self, resolution: Resolution) -> PromptChoice:
        if self.sticky is not None:
            return self.sticky
        print_diff(resolution.diff)
        while True:
            try:
                answer = input(
                    f"  {C.YELLOW}Conflict:{C.RESET} '{resolution.path}' {C.DIM}differs.{C.RESET} "
                    f"[o]verwrite / [s]kip / [d]iff / [O]verwrite all / [S]kip all? "
                ).strip()
            except EOFError:
                raise ConflictPromptError(f"{resolution.path}: input closed while asking") from None
            if answer in ("o", "y", "yes"):
                return PromptChoice.OVERWRITE
            if answer in ("s", "n", "no", ""):
                return PromptChoice.SKIP
            if answer == "d":
                print_diff(resolution.diff)
                continue
            if answer in ("O", "a", "all"):
                self.sticky = PromptChoice.OVERWRITE_ALL
                return self.sticky
            if answer in ("S", "N"):
                self.sticky = PromptChoice.SKIP_ALL
                return self.sticky
            print(f"  {C.YELLOW}?{C.RESET} Please enter 'o', 's', 'd', 'O', or 'S'")


def _workspace(args: argparse.Namespace) -> Path:
    return Path(args.workspace).expanduser().resolve()


def _load(args: argparse.Namespace) -> Preset:
    preset_dir = Path(args.preset).expanduser()
    if not preset_dir.is_dir():
        fail(f"preset directory '{preset_dir}' not found")
    try:
        preset = load_preset(preset_dir)
    except PresetError as exc:
        fail(str(exc))
    log_verbose(f"Loaded preset {preset.name} {preset.version} ({preset.file_count()} files)", args)
    return preset


def _requested_tools(args: argparse.Namespace) -> Optional[list[str]]:
    if not args.tools:
        return None
    return [t.strip() for t in args.tools.split(",") if t.strip()]


def _select(args: argparse.Namespace, workspace: Path) -> list[ToolAdapter]:
    try:
        adapters = active(workspace, _requested_tools(args))
    except KeyError as exc:
        options = ", ".join(a.key for a in REGISTRY)
        fail(f"unknown tool(s) {exc.args[0]}. Options: {options}")
    if not adapters:
        print(f"\n  {C.BOLD_YELLOW}No supported tools detected{C.RESET} in {workspace}.")
        print(f"  {C.DIM}Run 'aidot detect' for details, or pass --tools.{C.RESET}")
    return adapters


def _entry_error(entry) -> str:
    return f"{C.BOLD_RED}✗{C.RESET} {entry.path}  {C.RED}{entry.error_kind}: {entry.error}{C.RESET}"


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


def render_scan(result: ScanResult, args: argparse.Namespace) -> None:
    if not result.entries:
        log(f"{C.DIM}No preset files for this tool{C.RESET}")
        return
    groups = [
        (ChangeKind.NEW, f"{C.GREEN}+{C.RESET}", "New files"),
        (ChangeKind.MODIFIED, f"{C.YELLOW}~{C.RESET}", "Modified files"),
        (ChangeKind.UNCHANGED, f"{C.DIM}={C.RESET}", "Unchanged files"),
        (ChangeKind.ORPHANED_LOCAL, f"{C.MAGENTA}?{C.RESET}", "Local files not in preset"),
    ]
    for kind, mark, title in groups:
        entries = [e for e in result.entries if e.kind is kind]
        if not entries:
            continue
        log(f"{mark} {title}:")
        for e in entries:
            detail = f"  {C.DIM}{e.summary}{C.RESET}" if e.summary and kind is ChangeKind.MODIFIED else ""
            log(f"  {mark} {e.path}{detail}")
            if kind is ChangeKind.MODIFIED and args.verbose:
                print_diff(e.diff)
    for e in result.failed:
        log(_entry_error(e))


def render_preview(result: PreviewResult, args: argparse.Namespace) -> None:
    if not result.entries:
        log(f"{C.DIM}Nothing would change{C.RESET}")
        return
    for e in result.entries:
        if e.failed:
            log(_entry_error(e))
            continue
        tag = f"{C.GREEN}create{C.RESET}" if e.kind is ChangeKind.NEW else f"{C.YELLOW}update{C.RESET}"
        log(f"{C.MAGENTA}[dry-run]{C.RESET} Would {tag} {e.path}  {C.DIM}({', '.join(e.sections)}){C.RESET}")
        if args.verbose:
            print_diff(e.diff)


def render_apply(result: ApplyResult, args: argparse.Namespace) -> None:
    for e in result.entries:
        if e.status is Status.WRITTEN:
            verb = "Created" if e.kind is ChangeKind.NEW else "Updated"
            log(f"{C.GREEN}✓ {verb}{C.RESET} {e.path}")
            if e.backup:
                log_verbose(f"Backed up previous content to {e.backup}", args)
        elif e.status is Status.SKIPPED:
            log(f"{C.YELLOW}- Skipped{C.RESET} {e.path}  {C.DIM}(local changes kept){C.RESET}")
        elif e.status is not Status.UNCHANGED:
            log(_entry_error(e))
    if result.unchanged:
        log_verbose(f"{len(result.unchanged)} file(s) already up to date", args)
    if result.skipped:
        log(f"{C.DIM}{len(result.skipped)} file(s) kept; re-run with --force to overwrite{C.RESET}")
    if result.aborted:
        log(f"{C.BOLD_RED}Aborted:{C.RESET} {result.aborted}")


def render_report(report: RunReport, args: argparse.Namespace, renderer) -> None:
    for r in report.reports:
        section_header(r.adapter)
        if r.error is not None:
            log(f"{C.BOLD_RED}Failed:{C.RESET} {r.error_kind}: {r.error}")
            continue
        renderer(r.result, args)

    section_header("Summary")
    counts = report.summary()
    for key in ("written", "skipped", "unchanged", "new", "modified", "failed"):
        if counts[key]:
            summary_line(key.capitalize(), counts[key])
    if not any(counts.values()):
        log(f"{C.DIM}Nothing to do.{C.RESET}")
    print()


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

CONFIG_TEMPLATE = """\
# aidot preset configuration
[metadata]
name = "{name}"
version = "0.1.0"
description = ""

# Each section below maps a directory of this preset onto every tool.
# merge_strategy: "concat" joins files that share a destination,
# "replace" treats that as an error.
# files: optional ordered globs, relative to this directory.

[rules]
directory = "rules/"

[memory]
directory = "memory/"

[commands]
directory = "commands/"
merge_strategy = "replace"

[mcp]
directory = "mcp/"

[hooks]
directory = "hooks/"

[agents]
directory = "agents/"
merge_strategy = "replace"

[skills]
directory = "skills/"
merge_strategy = "replace"

[settings]
directory = "settings/"
"""


def cmd_init(args: argparse.Namespace) -> None:
    target = Path(args.path).expanduser()
    config_file = target / CONFIG_FILENAME
    if config_file.exists() and not args.force:
        fail(f"{config_file} already exists (use --force to overwrite)")

    section_header("Initializing preset")
    for name in SECTION_NAMES:
        d = target / name
        if not d.exists():
            d.mkdir(parents=True)
            log(f"{C.GREEN}Created{C.RESET} {name}/")
    name = target.resolve().name or "llm-preset"
    config_file.write_text(CONFIG_TEMPLATE.format(name=name))
    log(f"{C.GREEN}Created{C.RESET} {CONFIG_FILENAME}")

    if args.from_existing:
        import_existing(args, target)
        print(f"\n{C.BOLD_GREEN}Done!{C.RESET} Review the imported files, "
              f"then run 'aidot pull {target}' in other projects.\n")
        return
    print(f"\n{C.BOLD_GREEN}Done!{C.RESET} Add files to rules/, memory/, commands/ ... "
          f"then run 'aidot pull {target}' in a project.\n")


def import_existing(args: argparse.Namespace, target: Path) -> None:
    """Read tool configs from the workspace back into preset sections."""
    workspace = _workspace(args)
    requested = _requested_tools(args)
    try:
        adapters = active(workspace, requested) if requested else list(REGISTRY)
    except KeyError as exc:
        fail(f"unknown tool(s) {exc.args[0]}. Options: {', '.join(a.key for a in REGISTRY)}")

    section_header(f"Importing from {workspace}")
    extractions = []
    for adapter in adapters:
        ex = extract(adapter, workspace)
        extractions.append(ex)
        if not ex.files and not ex.errors:
            log(f"{C.DIM}{ex.adapter}: nothing found, skipping{C.RESET}")
            continue
        log_verbose(f"{ex.adapter}: {len(ex.files)} file(s)", args)
        for origin, message in ex.errors:
            log(f"{C.YELLOW}Warning:{C.RESET} {ex.adapter}: skipped {origin}  {C.DIM}{message}{C.RESET}")

    files = combine(extractions)
    try:
        written = write_extracted(target, files)
    except FilesystemError as exc:
        fail(str(exc))
    for f, rel in zip(files, written):
        log(f"{C.GREEN}Imported{C.RESET} {rel}  {C.DIM}(from {f.origin}){C.RESET}")
    summary_line("Imported", len(written))


def cmd_detect(args: argparse.Namespace) -> None:
    workspace = _workspace(args)
    section_header("Tools")
    for adapter in REGISTRY:
        found = adapter.detect(workspace)
        mark = f"{C.GREEN}✓ detected{C.RESET}" if found else f"{C.DIM}○ not found{C.RESET}"
        print(f"  {adapter.label:18s} {C.DIM}[{adapter.key}]{C.RESET}  {mark}")
    print()


def cmd_status(args: argparse.Namespace) -> None:
    workspace = _workspace(args)
    preset = _load(args) if args.preset else None
    for adapter in REGISTRY:
        found = adapter.detect(workspace)
        mark = f"{C.GREEN}detected{C.RESET}" if found else f"{C.DIM}not found{C.RESET}"
        section_header(adapter.label)
        log(f"{C.DIM}[{adapter.key}]{C.RESET} {mark}")
        present = inventory(adapter, workspace)
        for section, paths in present.items():
            if paths:
                summary_line(section.value, len(paths), adapter.table[section].dest)
        if not any(present.values()):
            log(f"{C.DIM}(no config files){C.RESET}")
        if preset is None:
            continue
        result = scan(adapter, preset, workspace)
        counts = {kind: len(result.paths(kind)) for kind in ChangeKind}
        drift = ", ".join(f"{n} {kind.value}" for kind, n in counts.items() if n)
        if result.failed:
            drift = ", ".join(filter(None, [drift, f"{len(result.failed)} failed"]))
        log(f"Preset {C.BOLD}{preset.name}{C.RESET}: {drift or 'nothing to compare'}")
        if result.has_changes:
            log(f"  {C.YELLOW}~{C.RESET} out of date, run 'aidot diff {args.preset}' for details")
    print()


def cmd_show(args: argparse.Namespace) -> None:
    preset = _load(args)
    print(f"\n{C.BOLD}{preset.name}{C.RESET} {C.DIM}v{preset.version}{C.RESET}")
    if preset.description:
        print(f"  {preset.description}")
    for ps in preset.sections:
        section_header(f"{ps.section.value} ({len(ps.files)}, {ps.strategy.value})")
        if not ps.files:
            log(f"{C.DIM}(none){C.RESET}")
        for f in ps.files:
            desc = f.frontmatter.get("description", "")
            log(f"{f.relative_path:40s} {C.DIM}{desc}{C.RESET}")
    print()


def cmd_diff(args: argparse.Namespace) -> None:
    preset = _load(args)
    workspace = _workspace(args)
    adapters = _select(args, workspace)
    if not adapters:
        return
    report = aggregate(adapters, lambda a: scan(a, preset, workspace))
    render_report(report, args, render_scan)
    if report.has_changes:
        print(f"  {C.CYAN}Tip:{C.RESET} run 'aidot pull {args.preset}' to apply changes\n")
    if report.exit_code:
        sys.exit(report.exit_code)


def cmd_pull(args: argparse.Namespace) -> None:
    preset = _load(args)
    workspace = _workspace(args)
    adapters = _select(args, workspace)
    if not adapters:
        return

    if args.dry_run:
        report = aggregate(adapters, lambda a: preview(a, preset, workspace))
        render_report(report, args, render_preview)
        if report.has_changes:
            print(f"  {C.CYAN}Tip:{C.RESET} drop --dry-run to write these files\n")
        if report.exit_code:
            sys.exit(report.exit_code)
        return

    interactive = sys.stdin.isatty()
    mode = args.mode or (ConflictMode.ASK if interactive else DEFAULT_MODE)
    backup_dir = None
    if args.backup:
        ts = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
        backup_dir = workspace / BACKUPS_DIR / ts
    options = ApplyOptions(
        mode=mode,
        prompt=TerminalPrompter() if interactive else None,
        backup_dir=backup_dir,
    )
    log_verbose(f"Conflict mode: {mode.value}", args)
    report = aggregate(adapters, lambda a: apply(a, preset, workspace, options))
    render_report(report, args, render_apply)
    if report.exit_code:
        sys.exit(report.exit_code)


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------


def main(argv: Optional[list[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(0)

    if args.command == "init":
        cmd_init(args)
    elif args.command == "detect":
        cmd_detect(args)
    elif args.command == "status":
        cmd_status(args)
    elif args.command == "show":
        cmd_show(args)
    elif args.command == "diff":
        cmd_diff(args)
    elif args.command == "pull":
        cmd_pull(args)


if __name__ == "__main__":
    main()
