from __future__ import annotations

import logging

from refscan.analyzers.resolver import ModuleResolver
from refscan.project import ProjectModel
from refscan.schemas import AliasEdge, Diagnostic, ExportSpecifier, FileExports, StarEdge
from refscan.utils import DEFAULT_NAME

logger = logging.getLogger(__name__)

FileKey = tuple[str, str]


class ExportIndex:
    """Exports of a set of reference projects, keyed by specifier id.

    Re-exports are alias edges onto the originating declaration. After
    :meth:`finalize` every alias is resolved to its canonical specifier, or to
    ``None`` when its chain is unresolvable, cyclic or deeper than
    ``max_alias_depth``.
    """

    def __init__(self, resolver: ModuleResolver, max_alias_depth: int = 16) -> None:
        self.resolver = resolver
        self.max_alias_depth = max_alias_depth
        self.diagnostics: list[Diagnostic] = []
        self._specifiers: dict[str, ExportSpecifier] = {}
        self._names: dict[FileKey, dict[str, str | AliasEdge]] = {}
        self._stars: dict[FileKey, list[StarEdge]] = {}
        self._aliases: list[AliasEdge] = []
        self._resolved: dict[str, str | None] = {}
        self._finalized = False

    def add(self, project: ProjectModel, exports: FileExports) -> None:
        key = (project.name, exports.file_path)
        names = self._names.setdefault(key, {})
        for spec in exports.specifiers:
            if spec.id in self._specifiers:
                self._duplicate(spec.project, spec.file_path, spec.name)
                continue
            self._specifiers[spec.id] = spec
            names[spec.name] = spec.id
        for edge in exports.aliases:
            if edge.name in names:
                self._duplicate(edge.project, edge.file_path, edge.name)
                continue
            names[edge.name] = edge
            self._aliases.append(edge)
        if exports.stars:
            self._stars.setdefault(key, []).extend(exports.stars)

    def add_forwards(self, project: ProjectModel, exports: FileExports) -> None:
        """Make a file's re-exports resolvable without indexing its own declarations.

        Forwarded aliases are resolved lazily and never listed by :meth:`aliases`.
        """
        key = (project.name, exports.file_path)
        if key in self._names:
            return
        names: dict[str, str | AliasEdge] = {}
        for edge in exports.aliases:
            names.setdefault(edge.name, edge)
        self._names[key] = names
        if exports.stars:
            self._stars[key] = list(exports.stars)

    def _duplicate(self, project: str, file_path: str, name: str) -> None:
        message = f"export {name!r} is declared more than once"
        logger.warning("%s in %s %s", message, project, file_path)
        self.diagnostics.append(Diagnostic(kind="duplicate-export", project=project, file=file_path, message=message))

    def finalize(self) -> ExportIndex:
        for edge in self._aliases:
            if edge.alias_id not in self._resolved:
                self._resolved[edge.alias_id] = self._resolve_alias(edge, 0, frozenset(), origin=edge)
        self._finalized = True
        return self

    def _warn(self, kind: str, origin: AliasEdge, message: str) -> None:
        logger.warning("%s: %s", origin.alias_id, message)
        self.diagnostics.append(Diagnostic(kind=kind, project=origin.project, file=origin.file_path, message=message))

    def _resolve_alias(
        self,
        edge: AliasEdge,
        depth: int,
        trail: frozenset[str],
        origin: AliasEdge | None = None,
    ) -> str | None:
        if edge.alias_id in self._resolved:
            return self._resolved[edge.alias_id]
        if edge.alias_id in trail:
            if origin is not None:
                self._warn("alias-cycle", origin, f"re-export of {origin.name!r} runs into a cycle at {edge.alias_id}")
            return None
        if depth >= self.max_alias_depth:
            if origin is not None:
                self._warn("alias-depth", origin, f"re-export of {origin.name!r} is deeper than {self.max_alias_depth}")
            return None

        project = self.resolver.project(edge.project)
        if project is None:
            return None
        target = self.resolver.resolve(edge.source, project, edge.file_path)
        if target is None:
            logger.debug("alias %s points at unresolved module %r", edge.alias_id, edge.source)
            return None
        return self._resolve_name(target.key, edge.imported, depth + 1, trail | {edge.alias_id}, origin)

    def _resolve_name(
        self,
        key: FileKey,
        name: str,
        depth: int,
        trail: frozenset[str],
        origin: AliasEdge | None = None,
    ) -> str | None:
        entry = self._names.get(key, {}).get(name)
        if isinstance(entry, str):
            return entry
        if isinstance(entry, AliasEdge):
            return self._resolve_alias(entry, depth, trail, origin)
        if name == DEFAULT_NAME:
            return None

        marker = f"*{key[0]}{key[1]}"
        if marker in trail or depth >= self.max_alias_depth:
            logger.debug("star re-export lookup of %r stopped at %s %s", name, key[0], key[1])
            return None
        project = self.resolver.project(key[0])
        if project is None:
            return None
        for star in self._stars.get(key, []):
            target = self.resolver.resolve(star.source, project, star.file_path)
            if target is None:
                continue
            found = self._resolve_name(target.key, name, depth + 1, trail | {marker})
            if found is not None:
                return found
        return None

    def lookup(self, specifier_id: str) -> ExportSpecifier | None:
        """Specifier for a physical id, or the canonical specifier behind an alias id."""
        spec = self._specifiers.get(specifier_id)
        if spec is not None:
            return spec
        canonical = self._resolved.get(specifier_id)
        return self._specifiers.get(canonical) if canonical is not None else None

    def resolve(self, project: str, file_path: str, name: str) -> ExportSpecifier | None:
        found = self._resolve_name((project, file_path), name, 0, frozenset())
        return self._specifiers.get(found) if found is not None else None

    def resolve_import(
        self,
        source: str,
        from_project: ProjectModel,
        from_file: str,
        imported: str,
    ) -> ExportSpecifier | None:
        target = self.resolver.resolve(source, from_project, from_file)
        if target is None:
            return None
        return self.resolve(target.project.name, target.file_path, imported)

    def specifiers(self) -> list[ExportSpecifier]:
        return list(self._specifiers.values())

    def aliases(self) -> list[tuple[AliasEdge, ExportSpecifier | None]]:
        result: list[tuple[AliasEdge, ExportSpecifier | None]] = []
        for edge in self._aliases:
            canonical = self._resolved.get(edge.alias_id) if self._finalized else None
            result.append((edge, self._specifiers.get(canonical) if canonical is not None else None))
        return result

    def __len__(self) -> int:
        return len(self._specifiers)

    def __contains__(self, specifier_id: object) -> bool:
        return specifier_id in self._specifiers
