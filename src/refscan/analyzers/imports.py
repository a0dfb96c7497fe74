from __future__ import annotations

from functools import partial

from refscan.analyzers.export_index import ExportIndex
from refscan.analyzers.subclasses import FileMatch, MatchAccumulator, Mapper, resolve_binding
from refscan.project import ProjectModel
from refscan.schemas import AnalyzerQueryResult, FileClasses, MatchEntry


class ImportMatcher:
    """Reference exports imported by target files, keyed by canonical id."""

    def __init__(self, index: ExportIndex, dedupe: bool = True) -> None:
        self.index = index
        self.dedupe = dedupe

    def match_file(self, project: ProjectModel, classes: FileClasses) -> list[FileMatch]:
        matches: list[FileMatch] = []
        for binding in classes.imports:
            if binding.kind == "namespace":
                continue
            spec = resolve_binding(binding, None, self.index, project, classes.file_path)
            if spec is not None:
                matches.append((spec, MatchEntry(identifier=binding.local, file=classes.file_path)))
        return matches

    def match(
        self,
        tables: list[tuple[ProjectModel, list[FileClasses]]],
        mapper: Mapper = map,
    ) -> list[AnalyzerQueryResult]:
        accumulator = MatchAccumulator(dedupe=self.dedupe)
        for project, files in tables:
            for matches in mapper(partial(self.match_file, project), files):
                for spec, entry in matches:
                    accumulator.add(spec, project.name, entry)
        return accumulator.results()
