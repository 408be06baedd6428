"""Text and file helpers shared by the crawler, the store and the CLI."""
from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

import orjson

_MISSING = object()
_WHITESPACE_RE = re.compile(r"\s+")


# --- Text ---------------------------------------------------------------------

def collapse_whitespace(text: str) -> str:
    """Replace every whitespace run with a single space and trim."""
    return _WHITESPACE_RE.sub(" ", text).strip()


def truncate_text(text: str, max_chars: int = 200) -> str:
    """First `max_chars` characters, with "..." appended only when something was cut."""
    if len(text) <= max_chars:
        return text
    return text[:max_chars].rstrip() + "..."


# --- JSON files ---------------------------------------------------------------

def save_json(data: Any, path: str | Path) -> None:
    """
    Write `data` as indented JSON.

    The bytes go to a hidden sibling first and are moved into place with
    os.replace, so a concurrent reader sees either the old or the new file.
    """
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    tmp = target.with_name(f".{target.name}.tmp")
    tmp.write_bytes(orjson.dumps(data, option=orjson.OPT_INDENT_2 | orjson.OPT_NON_STR_KEYS))
    os.replace(tmp, target)


def load_json(path: str | Path, default: Any = _MISSING) -> Any:
    """Parse the JSON file at `path`; return `default` instead when the file is absent."""
    target = Path(path)
    if default is not _MISSING and not target.exists():
        return default
    return orjson.loads(target.read_bytes())


def ensure_dirs(*paths: str | Path) -> None:
    for p in paths:
        Path(p).mkdir(parents=True, exist_ok=True)
