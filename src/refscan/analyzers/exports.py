from __future__ import annotations

from dataclasses import dataclass

from refscan.analyzers.js_parser import ParseError, parse_module
from refscan.analyzers.nodes import (
    ClassExpression,
    DefaultExport,
    Expression,
    FunctionExpression,
    Identifier,
    ImportSpecifier,
    LocalExportList,
    Module,
    NamedExport,
    ReExport,
    StarReExport,
)
from refscan.project import SourceFile
from refscan.schemas import AliasEdge, ExportSpecifier, FileExports, StarEdge
from refscan.utils import DEFAULT_NAME


@dataclass(frozen=True, slots=True)
class MixinPredicate:
    """Classifies exported values as mixin functions.

    A mixin takes exactly one plain parameter and its only returned expression
    is a class expression extending that parameter, e.g.
    ``superclass => class extends superclass {}``. Bodies with statements
    before the final ``return`` only qualify with ``allow_leading_statements``.
    Subclass and override :meth:`matches` to widen or narrow the shape.
    """

    allow_leading_statements: bool = False

    @property
    def signature(self) -> str:
        return f"leading={int(self.allow_leading_statements)}"

    def matches(self, value: Expression | None) -> bool:
        if not isinstance(value, FunctionExpression):
            return False
        if len(value.params) != 1 or value.params[0] is None:
            return False
        if value.leading_statements and not self.allow_leading_statements:
            return False
        returned = value.returned
        return isinstance(returned, ClassExpression) and returned.heritage == Identifier(value.params[0])


def _local_value(value: Expression | None, module: Module) -> Expression | None:
    if isinstance(value, Identifier):
        return module.declarations.get(value.name, value)
    return value


def _import_table(module: Module) -> dict[str, tuple[str, ImportSpecifier]]:
    table: dict[str, tuple[str, ImportSpecifier]] = {}
    for declaration in module.imports():
        for spec in declaration.specifiers:
            table.setdefault(spec.local, (declaration.source, spec))
    return table


def extract_exports(
    source_file: SourceFile,
    project: str,
    predicate: MixinPredicate | None = None,
) -> FileExports:
    predicate = predicate or MixinPredicate()
    file_path = source_file.relative_path
    result = FileExports(file_path=file_path)
    try:
        module = parse_module(source_file.text)
    except ParseError as exc:
        result.error = str(exc)
        return result

    imports = _import_table(module)

    def add(name: str, kind: str, value: Expression | None) -> None:
        result.specifiers.append(
            ExportSpecifier(
                name=name,
                file_path=file_path,
                project=project,
                kind=kind,
                is_mixin=predicate.matches(value),
                members=value.members if isinstance(value, ClassExpression) else (),
            )
        )

    def alias(name: str, source: str, imported: str) -> None:
        result.aliases.append(
            AliasEdge(name=name, file_path=file_path, project=project, source=source, imported=imported)
        )

    for statement in module.statements:
        if isinstance(statement, NamedExport):
            for name, value in statement.declarations:
                add(name, "named", value)
        elif isinstance(statement, DefaultExport):
            add(DEFAULT_NAME, "default", _local_value(statement.value, module))
        elif isinstance(statement, LocalExportList):
            for local, exported in statement.specifiers:
                kind = "default" if exported == DEFAULT_NAME else "named"
                bound = imports.get(local)
                if bound is None:
                    add(exported, kind, module.declarations.get(local))
                elif bound[1].kind == "namespace":
                    add(exported, "namespace", None)
                elif kind == "default":
                    add(exported, kind, None)
                else:
                    alias(exported, bound[0], bound[1].imported)
        elif isinstance(statement, ReExport):
            for imported, exported in statement.specifiers:
                alias(exported, statement.source, imported)
        elif isinstance(statement, StarReExport):
            if statement.alias is None:
                result.stars.append(StarEdge(file_path=file_path, project=project, source=statement.source))
            else:
                add(statement.alias, "namespace", None)

    return result
