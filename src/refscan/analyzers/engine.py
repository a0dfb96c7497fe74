from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Iterator
from concurrent.futures import Executor, ThreadPoolExecutor
from pathlib import Path
from typing import Any, TypeVar

from refscan.analyzers.export_index import ExportIndex
from refscan.analyzers.exports import MixinPredicate, extract_exports
from refscan.analyzers.imports import ImportMatcher
from refscan.analyzers.inheritance import extract_classes
from refscan.analyzers.resolver import ModuleResolver
from refscan.analyzers.subclasses import MatchOptions, match_subclasses
from refscan.config import ConfigurationError, QueryConfig, RunConfig, ScanConfig
from refscan.project import ProjectModel, SourceFile, load_project
from refscan.schemas import (
    AnalyzerQueryResult,
    ClassListing,
    Diagnostic,
    ExportListing,
    ExportRecord,
    FileClasses,
    FileExports,
    ImportListing,
    QueryResult,
)
from refscan.storage.cache import ExtractionCache, MemoryCache, NullCache, ScopedCache
from refscan.utils import canonical_json, digest

logger = logging.getLogger(__name__)

CACHE_VERSION = "2"

T = TypeVar("T")
R = TypeVar("R")


class AnalysisContext:
    def __init__(
        self,
        config: ScanConfig,
        targets: list[ProjectModel],
        references: list[ProjectModel],
        exports_cache: ScopedCache,
        classes_cache: ScopedCache,
        predicate: MixinPredicate,
        executor: Executor,
    ) -> None:
        self.config = config
        self.targets = targets
        self.references = references
        self.resolver = ModuleResolver([*references, *targets])
        self.exports_cache = exports_cache
        self.classes_cache = classes_cache
        self.predicate = predicate
        self.diagnostics: list[Diagnostic] = []
        self._executor = executor

    def map(self, fn: Callable[[T], R], items: Iterable[T]) -> Iterator[R]:
        return self._executor.map(fn, items)

    def _record_failure(self, project: ProjectModel, file_path: str, error: str | None) -> None:
        if error is None:
            return
        logger.warning("could not parse %s %s: %s", project.name, file_path, error)
        self.diagnostics.append(Diagnostic(kind="parse-failure", project=project.name, file=file_path, message=error))

    def file_exports(self, project: ProjectModel) -> list[FileExports]:
        def work(source_file: SourceFile) -> tuple[FileExports, bool]:
            payload = self.exports_cache.get(project.name, source_file.relative_path, source_file.fingerprint)
            if payload is not None:
                return FileExports.from_dict(payload), False
            return extract_exports(source_file, project.name, self.predicate), True

        results: list[FileExports] = []
        for source_file, (exports, fresh) in zip(project.files, self.map(work, project.files)):
            if fresh:
                self.exports_cache.put(project.name, source_file.relative_path, source_file.fingerprint, exports.to_dict())
            self._record_failure(project, exports.file_path, exports.error)
            results.append(exports)
        return results

    def file_classes(self, project: ProjectModel) -> list[FileClasses]:
        def work(source_file: SourceFile) -> tuple[FileClasses, bool]:
            payload = self.classes_cache.get(project.name, source_file.relative_path, source_file.fingerprint)
            if payload is not None:
                return FileClasses.from_dict(payload), False
            return extract_classes(source_file), True

        results: list[FileClasses] = []
        for source_file, (classes, fresh) in zip(project.files, self.map(work, project.files)):
            if fresh:
                self.classes_cache.put(project.name, source_file.relative_path, source_file.fingerprint, classes.to_dict())
            self._record_failure(project, classes.file_path, classes.error)
            results.append(classes)
        return results

    def build_index(
        self,
        projects: list[ProjectModel],
        forwarding: list[ProjectModel] | None = None,
    ) -> tuple[ExportIndex, dict[str, list[FileExports]]]:
        index = ExportIndex(self.resolver, max_alias_depth=self.config.max_alias_depth)
        tables: dict[str, list[FileExports]] = {}
        for project in projects:
            tables[project.name] = self.file_exports(project)
            for exports in tables[project.name]:
                index.add(project, exports)
        index.finalize()
        self.diagnostics.extend(index.diagnostics)
        # Re-exports inside target projects lead imports back to reference exports.
        for project in forwarding or []:
            for exports in self.file_exports(project):
                index.add_forwards(project, exports)
        return index, tables

    def class_tables(self, projects: list[ProjectModel]) -> list[tuple[ProjectModel, list[FileClasses]]]:
        return [(project, self.file_classes(project)) for project in projects]


class Analyzer:
    name = ""
    requires_reference = False
    default_options: dict[str, Any] = {}
    output_type: Any = None

    def execute(self, context: AnalysisContext, options: dict[str, Any]) -> list[Any]:
        raise NotImplementedError


class FindExportsAnalyzer(Analyzer):
    name = "find-exports"
    output_type = ExportListing

    def execute(self, context: AnalysisContext, options: dict[str, Any]) -> list[ExportListing]:
        index, tables = context.build_index(context.targets)
        canonical = {edge.alias_id: spec for edge, spec in index.aliases()}
        output: list[ExportListing] = []
        for project in context.targets:
            for exports in tables[project.name]:
                records = [
                    ExportRecord(name=spec.name, id=spec.id, canonical_id=spec.id, kind=spec.kind, is_mixin=spec.is_mixin)
                    for spec in exports.specifiers
                ]
                for edge in exports.aliases:
                    target = canonical.get(edge.alias_id)
                    records.append(
                        ExportRecord(
                            name=edge.name,
                            id=edge.alias_id,
                            canonical_id=target.id if target is not None else None,
                            kind="alias",
                            is_mixin=target.is_mixin if target is not None else False,
                        )
                    )
                if records:
                    output.append(ExportListing(project=project.name, file=exports.file_path, exports=records))
        return output


class FindImportsAnalyzer(Analyzer):
    name = "find-imports"
    output_type = ImportListing

    def execute(self, context: AnalysisContext, options: dict[str, Any]) -> list[ImportListing]:
        output: list[ImportListing] = []
        for project, files in context.class_tables(context.targets):
            for item in files:
                if item.imports:
                    output.append(ImportListing(project=project.name, file=item.file_path, imports=list(item.imports)))
        return output


class FindClassesAnalyzer(Analyzer):
    name = "find-classes"
    output_type = ClassListing

    def execute(self, context: AnalysisContext, options: dict[str, Any]) -> list[ClassListing]:
        output: list[ClassListing] = []
        for project, files in context.class_tables(context.targets):
            for item in files:
                if item.classes:
                    output.append(ClassListing(project=project.name, file=item.file_path, classes=list(item.classes)))
        return output


class MatchImportsAnalyzer(Analyzer):
    name = "match-imports"
    requires_reference = True
    default_options = {"dedupe": True}
    output_type = AnalyzerQueryResult

    def execute(self, context: AnalysisContext, options: dict[str, Any]) -> list[AnalyzerQueryResult]:
        index, _ = context.build_index(context.references, forwarding=context.targets)
        matcher = ImportMatcher(index, dedupe=options["dedupe"])
        return matcher.match(context.class_tables(context.targets), context.map)


class MatchSubclassesAnalyzer(Analyzer):
    name = "match-subclasses"
    requires_reference = True
    default_options = {"dedupe": True, "member_overrides": False, "strict_mixins": False}
    output_type = AnalyzerQueryResult

    def execute(self, context: AnalysisContext, options: dict[str, Any]) -> list[AnalyzerQueryResult]:
        index, _ = context.build_index(context.references, forwarding=context.targets)
        return match_subclasses(index, context.class_tables(context.targets), MatchOptions(**options), context.map)


ANALYZERS: dict[str, Analyzer] = {
    analyzer.name: analyzer
    for analyzer in (
        FindExportsAnalyzer(),
        FindImportsAnalyzer(),
        FindClassesAnalyzer(),
        MatchImportsAnalyzer(),
        MatchSubclassesAnalyzer(),
    )
}


def get_query_config(analyzer_name: str, options: dict[str, Any] | None = None) -> QueryConfig:
    analyzer = ANALYZERS.get(analyzer_name)
    if analyzer is None:
        known = ", ".join(sorted(ANALYZERS))
        raise ConfigurationError(f"unknown analyzer {analyzer_name!r} (known: {known})")
    merged = dict(analyzer.default_options)
    for key, value in (options or {}).items():
        if key not in analyzer.default_options:
            raise ConfigurationError(f"analyzer {analyzer_name!r} has no option {key!r}")
        if not isinstance(value, bool):
            raise ConfigurationError(f"option {key!r} of {analyzer_name!r} must be a boolean")
        merged[key] = value
    return QueryConfig(analyzer_name=analyzer_name, options=merged)


def _project_signature(project: ProjectModel) -> dict[str, Any]:
    return {
        "name": project.name,
        "path": project.path,
        "entry": project.entry,
        "files": [[item.relative_path, item.fingerprint] for item in project.files],
    }


class QueryOrchestrator:
    """Runs registered analyzers over target and reference projects.

    Export indexing always completes before matching starts. Per-file
    extraction and matching run on a bounded thread pool and are reduced on
    the calling thread in file order, so output ordering never depends on
    scheduling.
    """

    def __init__(self, config: ScanConfig | None = None, cache: ExtractionCache | None = None) -> None:
        self.config = config or ScanConfig.default()
        backend: ExtractionCache = cache if cache is not None else MemoryCache()
        extraction_backend = backend if self.config.cache.extraction_enabled else NullCache()
        query_backend = backend if self.config.cache.query_enabled else NullCache()
        self.predicate = MixinPredicate(allow_leading_statements=self.config.mixin.allow_leading_statements)
        self.exports_cache = ScopedCache(extraction_backend, f"exports:{self.predicate.signature}")
        self.classes_cache = ScopedCache(extraction_backend, "classes")
        self.query_cache = ScopedCache(query_backend, "query")

    def _load(self, paths: list[Path]) -> list[ProjectModel]:
        return [load_project(Path(path), self.config) for path in paths]

    def _run_digest(self, query: QueryConfig, targets: list[ProjectModel], references: list[ProjectModel]) -> str:
        signature = {
            "analyzer": query.analyzer_name,
            "options": query.options,
            "predicate": self.predicate.signature,
            "max_alias_depth": self.config.max_alias_depth,
            "targets": [_project_signature(item) for item in targets],
            "references": [_project_signature(item) for item in references],
        }
        return digest(CACHE_VERSION, canonical_json(signature))

    def run(self, query: QueryConfig, run_config: RunConfig) -> QueryResult:
        query = get_query_config(query.analyzer_name, query.options)
        analyzer = ANALYZERS[query.analyzer_name]

        if not run_config.target_project_paths:
            raise ConfigurationError("at least one target project path is required")
        if analyzer.requires_reference and not run_config.reference_project_paths:
            raise ConfigurationError(f"analyzer {analyzer.name!r} needs at least one reference project path")
        for path in [*run_config.target_project_paths, *run_config.reference_project_paths]:
            if not Path(path).expanduser().is_dir():
                raise ConfigurationError(f"project path is not a directory: {path}")

        targets = self._load(run_config.target_project_paths)
        references = self._load(run_config.reference_project_paths)
        seen: dict[str, str] = {}
        for project in references:
            if seen.setdefault(project.name, project.path) != project.path:
                raise ConfigurationError(
                    f"reference projects {seen[project.name]} and {project.path} share the name {project.name!r}"
                )

        run_digest = self._run_digest(query, targets, references)
        cached = self.query_cache.get("*", analyzer.name, run_digest)
        if cached is not None:
            logger.info("%s: reusing cached result", analyzer.name)
            return QueryResult(
                analyzer_name=analyzer.name,
                options=dict(query.options),
                output=[analyzer.output_type.from_dict(item) for item in cached["output"]],
                diagnostics=[Diagnostic(**item) for item in cached["diagnostics"]],
            )

        file_count = sum(len(item.files) for item in [*targets, *references])
        with ThreadPoolExecutor(max_workers=self.config.worker_count(file_count)) as executor:
            context = AnalysisContext(
                config=self.config,
                targets=targets,
                references=references,
                exports_cache=self.exports_cache,
                classes_cache=self.classes_cache,
                predicate=self.predicate,
                executor=executor,
            )
            output = analyzer.execute(context, query.options)

        diagnostics = list(dict.fromkeys(context.diagnostics))
        result = QueryResult(
            analyzer_name=analyzer.name,
            options=dict(query.options),
            output=output,
            diagnostics=diagnostics,
        )
        self.query_cache.put(
            "*",
            analyzer.name,
            run_digest,
            {"output": [item.to_dict() for item in output], "diagnostics": [item.to_dict() for item in diagnostics]},
        )
        logger.info(
            "%s: %d result items over %d target and %d reference projects",
            analyzer.name,
            len(output),
            len(targets),
            len(references),
        )
        return result
