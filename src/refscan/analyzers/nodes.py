from __future__ import annotations

from dataclasses import dataclass, field

# Expressions


@dataclass(frozen=True, slots=True)
class Identifier:
    name: str


@dataclass(frozen=True, slots=True)
class MemberAccess:
    object: str
    property: str


@dataclass(frozen=True, slots=True)
class CallExpression:
    callee: Expression
    arguments: tuple[Expression, ...] = ()


@dataclass(frozen=True, slots=True)
class ClassExpression:
    name: str | None
    heritage: Expression | None
    members: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class FunctionExpression:
    # None marks a destructured, defaulted or rest parameter.
    params: tuple[str | None, ...]
    returned: Expression | None
    leading_statements: int = 0


@dataclass(frozen=True, slots=True)
class OpaqueExpression:
    kind: str


Expression = Identifier | MemberAccess | CallExpression | ClassExpression | FunctionExpression | OpaqueExpression


# Statements


@dataclass(frozen=True, slots=True)
class ImportSpecifier:
    local: str
    imported: str
    kind: str


@dataclass(frozen=True, slots=True)
class ImportDeclaration:
    source: str
    specifiers: tuple[ImportSpecifier, ...]


@dataclass(frozen=True, slots=True)
class NamedExport:
    declarations: tuple[tuple[str, Expression | None], ...]


@dataclass(frozen=True, slots=True)
class DefaultExport:
    value: Expression


@dataclass(frozen=True, slots=True)
class LocalExportList:
    # (local name, exported name)
    specifiers: tuple[tuple[str, str], ...]


@dataclass(frozen=True, slots=True)
class ReExport:
    # (imported name, exported name)
    specifiers: tuple[tuple[str, str], ...]
    source: str


@dataclass(frozen=True, slots=True)
class StarReExport:
    source: str
    alias: str | None = None


Statement = ImportDeclaration | NamedExport | DefaultExport | LocalExportList | ReExport | StarReExport


@dataclass(frozen=True, slots=True)
class ClassDeclaration:
    name: str
    heritage: Expression | None
    members: tuple[str, ...] = ()
    line: int = 0
    shadowed: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class Module:
    statements: tuple[Statement, ...] = ()
    declarations: dict[str, Expression] = field(default_factory=dict)
    classes: tuple[ClassDeclaration, ...] = ()

    def imports(self) -> list[ImportDeclaration]:
        return [item for item in self.statements if isinstance(item, ImportDeclaration)]
