from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

DEFAULT_CONFIG = """include:
  - "*.{js,mjs,cjs,jsx}"
exclude:
  - "node_modules/*"
  - "*/node_modules/*"
  - ".git/*"
  - "*/.git/*"
  - "coverage/*"
  - "*/coverage/*"
  - ".refscan/*"
max_alias_depth: 16
workers: 0
mixin:
  allow_leading_statements: false
cache:
  path: .refscan/cache.db
  disabled: false
  exports_disabled: false
  query_disabled: false
projects:
  targets: []
  references: []
queries:
  - analyzer: match-subclasses
    options:
      dedupe: true
"""


class ConfigurationError(ValueError):
    pass


@dataclass(slots=True)
class MixinConfig:
    allow_leading_statements: bool = False


@dataclass(slots=True)
class CacheConfig:
    path: str = ".refscan/cache.db"
    disabled: bool = False
    exports_disabled: bool = False
    query_disabled: bool = False

    @property
    def extraction_enabled(self) -> bool:
        return not (self.disabled or self.exports_disabled)

    @property
    def query_enabled(self) -> bool:
        return not (self.disabled or self.query_disabled)


@dataclass(slots=True)
class ProjectsConfig:
    targets: list[str] = field(default_factory=list)
    references: list[str] = field(default_factory=list)


@dataclass(slots=True)
class QueryConfig:
    analyzer_name: str
    options: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class RunConfig:
    target_project_paths: list[Path]
    reference_project_paths: list[Path] = field(default_factory=list)


@dataclass(slots=True)
class ScanConfig:
    include: list[str]
    exclude: list[str]
    max_alias_depth: int
    workers: int
    mixin: MixinConfig
    cache: CacheConfig
    projects: ProjectsConfig
    queries: list[QueryConfig]

    @classmethod
    def default(cls) -> ScanConfig:
        data = yaml.safe_load(DEFAULT_CONFIG)
        return cls.from_dict(data)

    @classmethod
    def from_path(cls, path: Path) -> ScanConfig:
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8"))
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"invalid config file {path}: {exc}") from exc
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigurationError(f"config file {path} must contain a mapping")
        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ScanConfig:
        mixin_data = data.get("mixin") or {}
        mixin = MixinConfig(
            allow_leading_statements=bool(mixin_data.get("allow_leading_statements", False)),
        )
        cache_data = data.get("cache") or {}
        cache = CacheConfig(
            path=str(cache_data.get("path", ".refscan/cache.db")),
            disabled=bool(cache_data.get("disabled", False)),
            exports_disabled=bool(cache_data.get("exports_disabled", False)),
            query_disabled=bool(cache_data.get("query_disabled", False)),
        )
        projects_data = data.get("projects") or {}
        projects = ProjectsConfig(
            targets=[str(item) for item in projects_data.get("targets", [])],
            references=[str(item) for item in projects_data.get("references", [])],
        )
        queries = []
        for item in data.get("queries") or []:
            if "analyzer" not in item:
                raise ConfigurationError("every query needs an 'analyzer' name")
            queries.append(QueryConfig(analyzer_name=item["analyzer"], options=dict(item.get("options") or {})))

        max_alias_depth = _to_int(data.get("max_alias_depth", 16), "max_alias_depth")
        workers = _to_int(data.get("workers", 0), "workers")

        env_cache_disabled = os.getenv("REFSCAN_CACHE_DISABLED", "").strip().lower()
        env_cache_path = os.getenv("REFSCAN_CACHE_PATH", "").strip()
        env_workers = os.getenv("REFSCAN_WORKERS", "").strip()
        env_depth = os.getenv("REFSCAN_MAX_ALIAS_DEPTH", "").strip()

        if env_cache_disabled in {"1", "true", "yes", "on"}:
            cache.disabled = True
        elif env_cache_disabled in {"0", "false", "no", "off"}:
            cache.disabled = False
        if env_cache_path:
            cache.path = env_cache_path
        if env_workers:
            workers = _to_int(env_workers, "REFSCAN_WORKERS")
        if env_depth:
            max_alias_depth = _to_int(env_depth, "REFSCAN_MAX_ALIAS_DEPTH")

        if max_alias_depth < 1:
            raise ConfigurationError("max_alias_depth must be at least 1")
        if workers < 0:
            raise ConfigurationError("workers must not be negative")

        return cls(
            include=list(data.get("include", ["*.{js,mjs,cjs,jsx}"])),
            exclude=list(data.get("exclude", ["node_modules/*", "*/node_modules/*"])),
            max_alias_depth=max_alias_depth,
            workers=workers,
            mixin=mixin,
            cache=cache,
            projects=projects,
            queries=queries,
        )

    def worker_count(self, items: int) -> int:
        if self.workers > 0:
            return self.workers
        return max(1, min(32, os.cpu_count() or 1, items))


def _to_int(value: object, key: str) -> int:
    if isinstance(value, bool):
        raise ConfigurationError(f"{key} must be an integer")
    try:
        return int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"{key} must be an integer, got {value!r}") from exc


def ensure_config(path: Path, force: bool = False) -> None:
    if path.exists() and not force:
        return
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(DEFAULT_CONFIG, encoding="utf-8")
