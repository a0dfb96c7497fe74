from __future__ import annotations

import logging
import posixpath
from collections.abc import Iterable
from dataclasses import dataclass

from refscan.project import ProjectModel, module_candidates
from refscan.utils import to_relative

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ResolvedModule:
    project: ProjectModel
    file_path: str

    @property
    def key(self) -> tuple[str, str]:
        return (self.project.name, self.file_path)


def _is_relative(specifier: str) -> bool:
    return specifier in {".", ".."} or specifier.startswith(("./", "../"))


class ModuleResolver:
    """Resolve import specifiers the way a package manager would.

    Relative specifiers stay inside the importing project. Bare specifiers are
    matched against project names by longest prefix: the name alone points at
    the package entry file, ``name/sub/path`` points straight at that file and
    bypasses the entry. Anything else is unresolved and yields ``None``.
    """

    def __init__(self, projects: Iterable[ProjectModel]) -> None:
        self._projects: dict[str, ProjectModel] = {}
        for project in projects:
            self._projects.setdefault(project.name, project)
        self._paths = {name: project.file_paths() for name, project in self._projects.items()}
        self._by_length = sorted(self._projects.values(), key=lambda item: len(item.name), reverse=True)

    def project(self, name: str) -> ProjectModel | None:
        return self._projects.get(name)

    def _paths_of(self, project: ProjectModel) -> set[str]:
        paths = self._paths.get(project.name)
        if paths is None or self._projects[project.name] is not project:
            return project.file_paths()
        return paths

    def _find(self, project: ProjectModel, base: str) -> ResolvedModule | None:
        paths = self._paths_of(project)
        for candidate in module_candidates(base):
            if candidate in paths:
                return ResolvedModule(project=project, file_path=candidate)
        return None

    def match_project(self, specifier: str) -> tuple[ProjectModel, str] | None:
        for project in self._by_length:
            if specifier == project.name:
                return project, ""
            if specifier.startswith(f"{project.name}/"):
                return project, specifier[len(project.name) + 1 :]
        return None

    def resolve(self, specifier: str, from_project: ProjectModel, from_file: str) -> ResolvedModule | None:
        if _is_relative(specifier):
            directory = posixpath.dirname(from_file.removeprefix("./"))
            base = to_relative(posixpath.join(directory, specifier))
            if base.startswith(".."):
                return None
            return self._find(from_project, base)

        matched = self.match_project(specifier)
        if matched is None:
            logger.debug("unresolved specifier %r imported from %s %s", specifier, from_project.name, from_file)
            return None

        project, subpath = matched
        if subpath:
            return self._find(project, to_relative(subpath))
        if project.entry is None:
            logger.debug("project %s has no entry file for %r", project.name, specifier)
            return None
        return ResolvedModule(project=project, file_path=project.entry)


def resolve_module(
    specifier: str,
    from_project: ProjectModel,
    from_file: str,
    projects: Iterable[ProjectModel],
) -> ResolvedModule | None:
    return ModuleResolver(projects).resolve(specifier, from_project, from_file)
