from __future__ import annotations

import json
import posixpath
import re
from collections.abc import Iterable
from datetime import UTC, datetime
from fnmatch import fnmatch
from functools import lru_cache
from hashlib import sha1
from pathlib import Path
from typing import Any

ID_SEPARATOR = "::"
DEFAULT_NAME = "[default]"


def utc_now_iso() -> str:
    return datetime.now(UTC).isoformat()


def fingerprint(text: str) -> str:
    return sha1(text.encode("utf-8")).hexdigest()


def digest(*parts: str) -> str:
    joined = "|".join(parts)
    return sha1(joined.encode("utf-8")).hexdigest()


def specifier_id(name: str, file_path: str, project: str) -> str:
    return ID_SEPARATOR.join((name, file_path, project))


def to_relative(path: str) -> str:
    """Normalise a project-relative path to the ``./a/b.js`` form."""
    normalized = posixpath.normpath(path.replace("\\", "/"))
    if normalized in {"", "."}:
        return "./"
    if normalized.startswith("../") or normalized == "..":
        return normalized
    if normalized.startswith("/"):
        normalized = normalized.lstrip("/")
    return f"./{normalized}"


_BRACES = re.compile(r"\{([^{}]+)\}")


def _expand_braces(pattern: str) -> list[str]:
    """``*.{js,mjs}`` becomes ``*.js`` and ``*.mjs``; nested groups expand recursively."""
    match = _BRACES.search(pattern)
    options = [item.strip() for item in match.group(1).split(",") if item.strip()] if match else []
    if match is None or not options:
        return [pattern]
    head, tail = pattern[: match.start()], pattern[match.end() :]
    return [expanded for option in options for expanded in _expand_braces(f"{head}{option}{tail}")]


@lru_cache(maxsize=64)
def _expanded(patterns: tuple[str, ...]) -> tuple[str, ...]:
    return tuple(item for pattern in patterns for item in _expand_braces(pattern))


def path_matches(path: str, patterns: Iterable[str]) -> bool:
    return any(fnmatch(path, pattern) for pattern in _expanded(tuple(patterns)))


def is_included(path: str, include_patterns: list[str], exclude_patterns: list[str]) -> bool:
    return path_matches(path, include_patterns) and not path_matches(path, exclude_patterns)


def canonical_json(payload: Any) -> str:
    return json.dumps(payload, ensure_ascii=False, sort_keys=True, separators=(",", ":"))


def write_json(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
