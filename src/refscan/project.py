from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from refscan.config import ConfigurationError, ScanConfig
from refscan.utils import fingerprint, is_included, path_matches, to_relative

logger = logging.getLogger(__name__)

MODULE_SUFFIXES = (".js", ".mjs", ".cjs", ".jsx")


@dataclass(frozen=True, slots=True)
class SourceFile:
    relative_path: str
    text: str
    fingerprint: str

    @classmethod
    def from_text(cls, relative_path: str, text: str) -> SourceFile:
        return cls(relative_path=to_relative(relative_path), text=text, fingerprint=fingerprint(text))


@dataclass(frozen=True, slots=True)
class ProjectModel:
    path: str
    name: str
    entry: str | None
    files: tuple[SourceFile, ...]

    def file_paths(self) -> set[str]:
        return {item.relative_path for item in self.files}

    @classmethod
    def from_sources(
        cls,
        path: str,
        name: str,
        sources: list[tuple[str, str]],
        main: str | None = None,
    ) -> ProjectModel:
        files = tuple(SourceFile.from_text(rel, text) for rel, text in sources)
        paths = {item.relative_path for item in files}
        entry = resolve_candidates(to_relative(main or "index.js"), paths)
        return cls(path=path, name=name, entry=entry, files=files)


def module_candidates(base: str) -> list[str]:
    base = base.rstrip("/")
    return [
        base,
        *(f"{base}{suffix}" for suffix in MODULE_SUFFIXES),
        f"{base}/index.js",
        f"{base}/index.mjs",
    ]


def resolve_candidates(base: str, paths: set[str]) -> str | None:
    for candidate in module_candidates(base):
        if candidate in paths:
            return candidate
    return None


def _read_manifest(root: Path) -> dict[str, Any]:
    manifest = root / "package.json"
    if not manifest.is_file():
        return {}
    try:
        data = json.loads(manifest.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        logger.warning("ignoring unreadable package.json in %s: %s", root, exc)
        return {}
    return data if isinstance(data, dict) else {}


def _declared_entry(manifest: dict[str, Any]) -> str | None:
    exports = manifest.get("exports")
    if isinstance(exports, dict) and "." in exports:
        exports = exports["."]
    if isinstance(exports, dict):
        exports = exports.get("import") or exports.get("default")
    if isinstance(exports, str):
        return exports
    main = manifest.get("main")
    if isinstance(main, str) and main.strip():
        return main
    return None


def discover_source_files(root: Path, config: ScanConfig) -> list[str]:
    files: list[str] = []
    for current, dirnames, filenames in os.walk(root):
        rel_dir = Path(current).relative_to(root).as_posix()
        prefix = "" if rel_dir == "." else f"{rel_dir}/"
        dirnames[:] = sorted(name for name in dirnames if not path_matches(f"{prefix}{name}/", config.exclude))
        for filename in filenames:
            if not filename.endswith(MODULE_SUFFIXES):
                continue
            rel = f"{prefix}{filename}"
            if is_included(rel, config.include, config.exclude):
                files.append(rel)
    return sorted(files)


def load_project(path: Path, config: ScanConfig) -> ProjectModel:
    root = path.expanduser().resolve()
    if not root.is_dir():
        raise ConfigurationError(f"project path is not a directory: {path}")

    manifest = _read_manifest(root)
    name = manifest.get("name")
    if not isinstance(name, str) or not name.strip():
        logger.warning("no package name declared in %s, using directory name", root)
        name = root.name

    files: list[SourceFile] = []
    for rel in discover_source_files(root, config):
        try:
            text = (root / rel).read_text(encoding="utf-8")
        except UnicodeDecodeError:
            logger.warning("skipping non utf-8 file %s in %s", rel, name)
            continue
        files.append(SourceFile.from_text(rel, text))

    paths = {item.relative_path for item in files}
    declared = _declared_entry(manifest)
    entry = resolve_candidates(to_relative(declared or "index.js"), paths)
    if entry is None:
        logger.debug("project %s has no resolvable entry file", name)

    return ProjectModel(path=str(root), name=name.strip(), entry=entry, files=tuple(files))
