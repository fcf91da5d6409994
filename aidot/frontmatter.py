"""Front-matter helpers (minimal YAML subset between --- delimiters)."""

from __future__ import annotations

import re
from typing import Any

from aidot.errors import TransformError

_OPEN_RE = re.compile(r"^---[ \t]*\r?\n")
_CLOSE_RE = re.compile(r"^---[ \t]*(?:\r?\n|$)", re.MULTILINE)


def _split(text: str) -> tuple[str, str] | None:
    """Return (block, rest) for a leading front-matter block, else None."""
    m = _OPEN_RE.match(text)
    if not m:
        return None
    close = _CLOSE_RE.search(text, m.end())
    if close is None:
        return None
    return text[m.end():close.start()], text[close.start():]


def has_frontmatter(text: str) -> bool:
    return _split(text) is not None


def parse_frontmatter(text: str) -> tuple[dict[str, Any], str]:
    """Parse flat key: value front-matter.
    Returns (metadata, body). If no front-matter, returns ({}, text)."""
    parts = _split(text)
    if parts is None:
        return {}, text
    block, rest = parts
    body = _CLOSE_RE.sub("", rest, count=1).lstrip("\r\n")
    meta: dict[str, Any] = {}
    for line in block.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        m = re.match(r"^([\w-]+)\s*:\s*(.*)$", line)
        if not m:
            continue
        key, val = m.group(1), m.group(2).strip()
        # Type coercion
        if val.lower() in ("true", "false"):
            meta[key] = val.lower() == "true"
        elif len(val) >= 2 and val[0] == val[-1] and val[0] in ("'", '"'):
            meta[key] = val[1:-1]
        else:
            meta[key] = val
    return meta, body


def rename_frontmatter_key(text: str, from_key: str, to_key: str) -> str:
    """Rename one key inside the leading front-matter block.

    Text without a front-matter block is returned unchanged. A block that is
    opened but never closed raises TransformError.
    """
    if not _OPEN_RE.match(text):
        return text
    parts = _split(text)
    if parts is None:
        raise TransformError("front-matter opened with '---' but never closed")
    block, rest = parts
    head = text[:len(text) - len(block) - len(rest)]
    key_re = re.compile(rf"^{re.escape(from_key)}([ \t]*):", re.MULTILINE)
    block = key_re.sub(lambda m: f"{to_key}{m.group(1)}:", block)
    return head + block + rest
