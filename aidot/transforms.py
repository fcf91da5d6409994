"""Pure content transforms from preset sources to tool-native targets.

Every function here is deterministic and touches no filesystem state, so a
scan and an apply over the same inputs always compute the same targets.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Optional

from aidot.errors import TransformError
from aidot.preset import MergeStrategy, Section


class FileFormat(str, Enum):
    TEXT = "text"
    FRONTMATTER_TEXT = "frontmatter-text"
    JSON_MERGE = "json-merge"


@dataclass(frozen=True)
class TargetFile:
    """One source file projected onto a destination path.

    For JSON_MERGE targets `data` holds the parsed contribution and
    `entry_key` the key it is stored under (None spreads an object into the
    top level of the document).
    """

    path: str
    content: str
    fmt: FileFormat
    section: Section
    strategy: MergeStrategy
    source: str
    order: tuple[int, int]
    wrapper_key: Optional[str] = None
    entry_key: Optional[str] = None
    data: Any = None
    keep_existing: bool = False


# ---------------------------------------------------------------------------
# Path remap
# ---------------------------------------------------------------------------


def strip_section_prefix(relative_path: str, section: str) -> str:
    """'rules/code-style.md' -> 'code-style.md'."""
    path = relative_path.replace("\\", "/")
    prefix = f"{section}/"
    if path.startswith(prefix):
        return path[len(prefix):]
    return path


def add_suffix_before_ext(filename: str, suffix: str) -> str:
    """'code-style.md' -> 'code-style.instructions.md'; 'readme' -> 'readme.prompt.md'.

    Suffixed destinations are always markdown, since the tools that read
    them only load `*.<suffix>.md`. A non-markdown name keeps its own
    extension in the stem: 'deploy.sh' -> 'deploy.sh.prompt.md'.
    """
    stem = filename[:-3] if filename.endswith(".md") else filename
    return f"{stem}.{suffix}.md"


def replace_extension(filename: str, old: str, new: str) -> str:
    if filename.endswith(old):
        return filename[:-len(old)] + new
    return filename


def remap_path(relative_path: str, section: str, suffix: Optional[str] = None,
               extension: Optional[tuple[str, str]] = None) -> str:
    name = strip_section_prefix(relative_path, section)
    if extension:
        name = replace_extension(name, *extension)
    if suffix:
        name = add_suffix_before_ext(name, suffix)
    return name


# ---------------------------------------------------------------------------
# JSON structural merge
# ---------------------------------------------------------------------------


def json_entry_key(relative_path: str, section: str) -> str:
    name = strip_section_prefix(relative_path, section)
    return name[:-5] if name.endswith(".json") else name


def parse_json_source(content: str, source: str) -> Any:
    try:
        return json.loads(content)
    except json.JSONDecodeError as exc:
        raise TransformError(f"{source}: invalid JSON ({exc})") from exc


def merge_json_entries(base: dict[str, Any], wrapper_key: Optional[str],
                       entries: Iterable[tuple[str, Any]]) -> dict[str, Any]:
    """Fold (key, value) pairs into base[wrapper_key]; last write wins per key.

    Key order is the order of first occurrence. `base` is not mutated.
    """
    doc = dict(base)
    if wrapper_key is None:
        target = doc
    else:
        existing = doc.get(wrapper_key, {})
        if not isinstance(existing, dict):
            raise TransformError(f"'{wrapper_key}' in destination is not a JSON object")
        target = dict(existing)
    for key, value in entries:
        target[key] = value
    if wrapper_key is not None:
        doc[wrapper_key] = target
    return doc


def spread_json_objects(base: dict[str, Any],
                        objects: Iterable[tuple[str, Any]]) -> dict[str, Any]:
    """Shallow-merge each (source, object) into the top level of base."""
    doc = dict(base)
    for source, obj in objects:
        if not isinstance(obj, dict):
            raise TransformError(f"{source}: expected a JSON object at top level")
        doc.update(obj)
    return doc


def dump_json(doc: Any) -> str:
    return json.dumps(doc, indent=2, ensure_ascii=False) + "\n"


# ---------------------------------------------------------------------------
# Text
# ---------------------------------------------------------------------------


def concatenate(bodies: list[str]) -> str:
    """Join bodies with a single blank line. One body is returned as-is."""
    if len(bodies) == 1:
        return bodies[0]
    joined = "\n\n".join(b.strip("\n") for b in bodies)
    if bodies and bodies[-1].endswith("\n"):
        joined += "\n"
    return joined


def normalize_content(content: str) -> str:
    """Line-ending and trailing-whitespace insensitive form used for comparison."""
    lines = [line.rstrip() for line in content.splitlines()]
    return "\n".join(lines).strip("\n")
