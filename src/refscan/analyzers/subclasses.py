from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass
from functools import partial

from refscan.analyzers.export_index import ExportIndex
from refscan.project import ProjectModel
from refscan.schemas import (
    AnalyzerQueryResult,
    ExportSpecifier,
    FileClasses,
    HeritageExpression,
    ImportBinding,
    MatchEntry,
    ProjectMatches,
)

logger = logging.getLogger(__name__)

Mapper = Callable[[Callable[[FileClasses], list], Iterable[FileClasses]], Iterator[list]]
FileMatch = tuple[ExportSpecifier, MatchEntry]


@dataclass(slots=True)
class MatchOptions:
    dedupe: bool = True
    member_overrides: bool = False
    strict_mixins: bool = False


class MatchAccumulator:
    """Append-only results keyed by export id, grouped per target project."""

    def __init__(self, dedupe: bool = True) -> None:
        self.dedupe = dedupe
        self._items: dict[str, AnalyzerQueryResult] = {}
        self._seen: set[tuple[str, str, str, str]] = set()
        self._lock = threading.Lock()

    def add(self, spec: ExportSpecifier, project: str, entry: MatchEntry) -> bool:
        key = (spec.id, project, entry.file, entry.identifier)
        with self._lock:
            if self.dedupe and key in self._seen:
                return False
            self._seen.add(key)
            item = self._items.get(spec.id)
            if item is None:
                item = AnalyzerQueryResult(export_specifier=spec)
                self._items[spec.id] = item
            group = next((group for group in item.matches_per_project if group.project == project), None)
            if group is None:
                group = ProjectMatches(project=project)
                item.matches_per_project.append(group)
            group.files.append(entry)
            return True

    def results(self) -> list[AnalyzerQueryResult]:
        with self._lock:
            return list(self._items.values())


def resolve_binding(
    binding: ImportBinding,
    member: str | None,
    index: ExportIndex,
    project: ProjectModel,
    file_path: str,
) -> ExportSpecifier | None:
    if binding.kind == "namespace":
        if member is None:
            return None
        imported = member
    elif member is not None:
        return None
    else:
        imported = binding.imported
    return index.resolve_import(binding.source, project, file_path, imported)


class SubclassMatcher:
    def __init__(self, index: ExportIndex, options: MatchOptions | None = None) -> None:
        self.index = index
        self.options = options or MatchOptions()

    def resolve_base(
        self,
        heritage: HeritageExpression,
        bindings: dict[str, ImportBinding],
        project: ProjectModel,
        file_path: str,
    ) -> ExportSpecifier | None:
        if heritage.root in heritage.shadowed:
            logger.debug("%s %s: %s is rebound in an enclosing scope", project.name, file_path, heritage.root)
            return None
        binding = bindings.get(heritage.root)
        if binding is None:
            return None
        base = resolve_binding(binding, heritage.member, self.index, project, file_path)
        if base is None:
            return None
        if base.is_mixin:
            logger.debug("%s %s: mixin %s is not a base class", project.name, file_path, base.id)
            return None
        if self.options.strict_mixins:
            for wrapper in heritage.wrappers:
                local, _, member = wrapper.partition(".")
                wrapper_binding = bindings.get(local)
                if wrapper_binding is None or local in heritage.shadowed:
                    continue
                resolved = resolve_binding(wrapper_binding, member or None, self.index, project, file_path)
                if resolved is not None and not resolved.is_mixin:
                    logger.debug("%s wraps %s with non-mixin %s", file_path, base.id, resolved.id)
                    return None
        return base

    def match_file(self, project: ProjectModel, classes: FileClasses) -> list[FileMatch]:
        bindings = classes.bindings()
        matches: list[FileMatch] = []
        for record in classes.classes:
            if record.heritage is None:
                continue
            base = self.resolve_base(record.heritage, bindings, project, classes.file_path)
            if base is None:
                continue
            overrides = None
            if self.options.member_overrides:
                overrides = [member for member in record.members if member in base.members]
            matches.append((base, MatchEntry(identifier=record.name, file=classes.file_path, member_overrides=overrides)))
        return matches

    def match(
        self,
        tables: list[tuple[ProjectModel, list[FileClasses]]],
        mapper: Mapper = map,
    ) -> list[AnalyzerQueryResult]:
        accumulator = MatchAccumulator(dedupe=self.options.dedupe)
        for project, files in tables:
            for matches in mapper(partial(self.match_file, project), files):
                for spec, entry in matches:
                    accumulator.add(spec, project.name, entry)
        return accumulator.results()


def match_subclasses(
    index: ExportIndex,
    tables: list[tuple[ProjectModel, list[FileClasses]]],
    options: MatchOptions | None = None,
    mapper: Mapper = map,
) -> list[AnalyzerQueryResult]:
    return SubclassMatcher(index, options).match(tables, mapper)
