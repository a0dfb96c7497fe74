from __future__ import annotations

from refscan.analyzers.js_parser import ParseError, parse_module
from refscan.analyzers.nodes import CallExpression, Expression, Identifier, MemberAccess
from refscan.project import SourceFile
from refscan.schemas import ClassRecord, FileClasses, HeritageExpression, ImportBinding


def _callee_name(callee: Expression) -> str | None:
    if isinstance(callee, Identifier):
        return callee.name
    if isinstance(callee, MemberAccess):
        return f"{callee.object}.{callee.property}"
    return None


def decompose_heritage(expression: Expression | None, shadowed: tuple[str, ...] = ()) -> HeritageExpression | None:
    """Split ``A(B(Base))`` into root ``Base`` and wrappers ``(A, B)``.

    The first argument of each call is followed inward. Roots that are not a
    plain identifier or ``namespace.Name``, and calls whose callee is neither,
    cannot be traced and give ``None``.
    """
    wrappers: list[str] = []
    while isinstance(expression, CallExpression):
        name = _callee_name(expression.callee)
        if name is None or not expression.arguments:
            return None
        wrappers.append(name)
        expression = expression.arguments[0]
    if isinstance(expression, Identifier):
        return HeritageExpression(root=expression.name, wrappers=tuple(wrappers), shadowed=shadowed)
    if isinstance(expression, MemberAccess):
        return HeritageExpression(
            root=expression.object,
            member=expression.property,
            wrappers=tuple(wrappers),
            shadowed=shadowed,
        )
    return None


def extract_classes(source_file: SourceFile) -> FileClasses:
    result = FileClasses(file_path=source_file.relative_path)
    try:
        module = parse_module(source_file.text)
    except ParseError as exc:
        result.error = str(exc)
        return result

    for declaration in module.imports():
        for spec in declaration.specifiers:
            result.imports.append(
                ImportBinding(local=spec.local, imported=spec.imported, source=declaration.source, kind=spec.kind)
            )

    for item in module.classes:
        result.classes.append(
            ClassRecord(
                name=item.name,
                heritage=decompose_heritage(item.heritage, item.shadowed),
                members=item.members,
                line=item.line,
            )
        )
    return result
