"""Tree-sitter front end that lowers JavaScript modules into :mod:`refscan.analyzers.nodes`.

Only the syntax the analyzers care about is lowered: import and export
statements, top-level declarations, class heritage clauses and the shape of
function bodies. Everything else becomes an :class:`OpaqueExpression`.
"""

from __future__ import annotations

import threading

import tree_sitter_javascript
from tree_sitter import Language, Node, Parser

from refscan.analyzers.nodes import (
    CallExpression,
    ClassDeclaration,
    ClassExpression,
    DefaultExport,
    Expression,
    FunctionExpression,
    Identifier,
    ImportDeclaration,
    ImportSpecifier,
    LocalExportList,
    MemberAccess,
    Module,
    NamedExport,
    OpaqueExpression,
    ReExport,
    StarReExport,
    Statement,
)
from refscan.utils import DEFAULT_NAME

JS_LANGUAGE = Language(tree_sitter_javascript.language())

CLASS_TYPES = {"class", "class_declaration"}
FUNCTION_TYPES = {
    "arrow_function",
    "function",
    "function_expression",
    "function_declaration",
    "generator_function",
    "generator_function_declaration",
}
NAMED_DECLARATION_TYPES = {"class_declaration", "function_declaration", "generator_function_declaration"}
VARIABLE_DECLARATION_TYPES = {"lexical_declaration", "variable_declaration"}

_local = threading.local()


class ParseError(RuntimeError):
    pass


def _parser() -> Parser:
    parser = getattr(_local, "parser", None)
    if parser is None:
        parser = Parser(JS_LANGUAGE)
        _local.parser = parser
    return parser


def _text(node: Node) -> str:
    return node.text.decode("utf-8")


def _string_value(node: Node) -> str:
    text = _text(node)
    if len(text) >= 2 and text[0] in "'\"`" and text[-1] == text[0]:
        return text[1:-1]
    return text


def _named(node: Node) -> list[Node]:
    return [child for child in node.named_children if child.type != "comment"]


def _export_name(node: Node) -> str:
    value = _string_value(node) if node.type == "string" else _text(node)
    return DEFAULT_NAME if value == "default" else value


def _first_error_line(root: Node) -> int:
    stack = [root]
    while stack:
        node = stack.pop()
        if node.type == "ERROR" or node.is_missing:
            return node.start_point[0] + 1
        stack.extend(child for child in reversed(node.children) if child.has_error or child.is_missing)
    return 0


def parse_module(source: str) -> Module:
    tree = _parser().parse(source.encode("utf-8"))
    root = tree.root_node
    if root.has_error:
        raise ParseError(f"syntax error near line {_first_error_line(root)}")

    statements: list[Statement] = []
    declarations: dict[str, Expression] = {}
    for node in _named(root):
        if node.type == "import_statement":
            statements.append(_lower_import(node))
        elif node.type == "export_statement":
            statement = _lower_export(node, declarations)
            if statement is not None:
                statements.append(statement)
        else:
            for name, value in _declared(node):
                if value is not None:
                    declarations.setdefault(name, value)

    return Module(statements=tuple(statements), declarations=declarations, classes=tuple(_collect_classes(root)))


def _lower_import(node: Node) -> ImportDeclaration:
    source = node.child_by_field_name("source")
    specifiers: list[ImportSpecifier] = []
    for clause in _named(node):
        if clause.type != "import_clause":
            continue
        for part in _named(clause):
            if part.type == "identifier":
                specifiers.append(ImportSpecifier(local=_text(part), imported=DEFAULT_NAME, kind="default"))
            elif part.type == "namespace_import":
                names = [item for item in _named(part) if item.type == "identifier"]
                if names:
                    specifiers.append(ImportSpecifier(local=_text(names[0]), imported="*", kind="namespace"))
            elif part.type == "named_imports":
                for spec in _named(part):
                    if spec.type != "import_specifier":
                        continue
                    name = spec.child_by_field_name("name")
                    if name is None:
                        continue
                    alias = spec.child_by_field_name("alias")
                    imported = _export_name(name)
                    local = _text(alias) if alias is not None else _text(name)
                    kind = "default" if imported == DEFAULT_NAME else "named"
                    specifiers.append(ImportSpecifier(local=local, imported=imported, kind=kind))
    return ImportDeclaration(
        source=_string_value(source) if source is not None else "",
        specifiers=tuple(specifiers),
    )


def _lower_export(node: Node, declarations: dict[str, Expression]) -> Statement | None:
    is_default = any(child.type == "default" for child in node.children)
    declaration = node.child_by_field_name("declaration")
    value = node.child_by_field_name("value")
    source = node.child_by_field_name("source")

    if declaration is not None:
        declared = _declared(declaration)
        for name, expression in declared:
            if expression is not None:
                declarations.setdefault(name, expression)
        if is_default:
            return DefaultExport(value=_lower_expression(declaration))
        return NamedExport(declarations=tuple(declared))

    if value is not None:
        return DefaultExport(value=_lower_expression(value))

    for child in _named(node):
        if child.type == "export_clause":
            pairs: list[tuple[str, str]] = []
            for spec in _named(child):
                if spec.type != "export_specifier":
                    continue
                name = spec.child_by_field_name("name")
                if name is None:
                    continue
                alias = spec.child_by_field_name("alias")
                local = _export_name(name)
                pairs.append((local, _export_name(alias) if alias is not None else local))
            if source is not None:
                return ReExport(specifiers=tuple(pairs), source=_string_value(source))
            return LocalExportList(specifiers=tuple(pairs))
        if child.type == "namespace_export":
            names = [item for item in _named(child) if item.type in {"identifier", "string"}]
            return StarReExport(
                source=_string_value(source) if source is not None else "",
                alias=_export_name(names[0]) if names else None,
            )

    if source is not None:
        return StarReExport(source=_string_value(source))
    return None


def _declared(node: Node) -> list[tuple[str, Expression | None]]:
    if node.type in NAMED_DECLARATION_TYPES:
        name = node.child_by_field_name("name")
        return [(_text(name), _lower_expression(node))] if name is not None else []
    if node.type in VARIABLE_DECLARATION_TYPES:
        result: list[tuple[str, Expression | None]] = []
        for declarator in _named(node):
            if declarator.type != "variable_declarator":
                continue
            name = declarator.child_by_field_name("name")
            if name is None or name.type != "identifier":
                continue
            value = declarator.child_by_field_name("value")
            result.append((_text(name), _lower_expression(value) if value is not None else None))
        return result
    return []


def _lower_expression(node: Node) -> Expression:
    kind = node.type
    if kind == "identifier":
        return Identifier(_text(node))
    if kind == "parenthesized_expression":
        inner = _named(node)
        return _lower_expression(inner[0]) if inner else OpaqueExpression(kind)
    if kind == "member_expression":
        obj = node.child_by_field_name("object")
        prop = node.child_by_field_name("property")
        if obj is not None and prop is not None and obj.type == "identifier" and prop.type == "property_identifier":
            return MemberAccess(object=_text(obj), property=_text(prop))
        return OpaqueExpression(kind)
    if kind == "call_expression":
        callee = node.child_by_field_name("function")
        arguments = node.child_by_field_name("arguments")
        args: tuple[Expression, ...] = ()
        if arguments is not None and arguments.type == "arguments":
            args = tuple(_lower_expression(item) for item in _named(arguments))
        return CallExpression(
            callee=_lower_expression(callee) if callee is not None else OpaqueExpression("missing"),
            arguments=args,
        )
    if kind in CLASS_TYPES:
        return _lower_class(node)
    if kind in FUNCTION_TYPES:
        return _lower_function(node)
    return OpaqueExpression(kind)


def _lower_class(node: Node) -> ClassExpression:
    name = node.child_by_field_name("name")
    heritage: Expression | None = None
    for child in _named(node):
        if child.type == "class_heritage":
            parts = _named(child)
            if parts:
                heritage = _lower_expression(parts[0])
    return ClassExpression(
        name=_text(name) if name is not None else None,
        heritage=heritage,
        members=_class_members(node),
    )


def _class_members(node: Node) -> tuple[str, ...]:
    body = node.child_by_field_name("body")
    if body is None:
        return ()
    members: list[str] = []
    for member in _named(body):
        if member.type == "method_definition":
            name = member.child_by_field_name("name")
        elif member.type == "field_definition":
            name = member.child_by_field_name("property")
        else:
            continue
        if name is None or name.type == "computed_property_name":
            continue
        text = _string_value(name) if name.type == "string" else _text(name)
        if text != "constructor" and text not in members:
            members.append(text)
    return tuple(members)


def _lower_function(node: Node) -> FunctionExpression:
    single = node.child_by_field_name("parameter")
    if single is not None:
        params: tuple[str | None, ...] = (_text(single) if single.type == "identifier" else None,)
    else:
        formal = node.child_by_field_name("parameters")
        params = ()
        if formal is not None:
            params = tuple(_text(item) if item.type == "identifier" else None for item in _named(formal))

    body = node.child_by_field_name("body")
    if body is None:
        return FunctionExpression(params=params, returned=None)
    if body.type != "statement_block":
        return FunctionExpression(params=params, returned=_lower_expression(body))

    statements = _named(body)
    if statements and statements[-1].type == "return_statement":
        values = _named(statements[-1])
        return FunctionExpression(
            params=params,
            returned=_lower_expression(values[0]) if values else None,
            leading_statements=len(statements) - 1,
        )
    return FunctionExpression(params=params, returned=None, leading_statements=len(statements))


def _class_name(node: Node) -> str | None:
    name = node.child_by_field_name("name")
    if name is not None:
        return _text(name)
    parent = node.parent
    if parent is None:
        return None
    if parent.type == "variable_declarator":
        target = parent.child_by_field_name("name")
        return _text(target) if target is not None and target.type == "identifier" else None
    if parent.type == "export_statement":
        return DEFAULT_NAME
    return None


def _pattern_names(node: Node) -> list[str]:
    if node.type in {"identifier", "shorthand_property_identifier_pattern"}:
        return [_text(node)]
    if node.type in {"assignment_pattern", "object_assignment_pattern"}:
        left = node.child_by_field_name("left")
        return _pattern_names(left) if left is not None else []
    if node.type == "pair_pattern":
        value = node.child_by_field_name("value")
        return _pattern_names(value) if value is not None else []
    names: list[str] = []
    for child in _named(node):
        names.extend(_pattern_names(child))
    return names


def _declared_names(node: Node) -> list[str]:
    if node.type in NAMED_DECLARATION_TYPES:
        name = node.child_by_field_name("name")
        return [_text(name)] if name is not None else []
    if node.type in VARIABLE_DECLARATION_TYPES:
        names: list[str] = []
        for declarator in _named(node):
            name = declarator.child_by_field_name("name") if declarator.type == "variable_declarator" else None
            if name is not None:
                names.extend(_pattern_names(name))
        return names
    return []


def _enclosing_bindings(node: Node) -> set[str]:
    """Names bound by the functions and blocks around ``node``, below module scope."""
    names: set[str] = set()
    current = node.parent
    while current is not None and current.type != "program":
        if current.type in FUNCTION_TYPES or current.type == "method_definition":
            params = current.child_by_field_name("parameter")
            if params is None:
                params = current.child_by_field_name("parameters")
            if params is not None:
                names.update(_pattern_names(params))
        elif current.type == "statement_block":
            for statement in _named(current):
                names.update(_declared_names(statement))
        current = current.parent
    return names


def _referenced_names(expression: Expression | None) -> set[str]:
    if isinstance(expression, Identifier):
        return {expression.name}
    if isinstance(expression, MemberAccess):
        return {expression.object}
    if isinstance(expression, CallExpression):
        names = _referenced_names(expression.callee)
        for argument in expression.arguments:
            names |= _referenced_names(argument)
        return names
    return set()


def _collect_classes(root: Node) -> list[ClassDeclaration]:
    classes: list[ClassDeclaration] = []
    stack = [root]
    while stack:
        node = stack.pop()
        if node.type in CLASS_TYPES:
            name = _class_name(node)
            if name is not None:
                expression = _lower_class(node)
                shadowed: tuple[str, ...] = ()
                if expression.heritage is not None:
                    shadowed = tuple(sorted(_referenced_names(expression.heritage) & _enclosing_bindings(node)))
                classes.append(
                    ClassDeclaration(
                        name=name,
                        heritage=expression.heritage,
                        members=expression.members,
                        line=node.start_point[0] + 1,
                        shadowed=shadowed,
                    )
                )
        stack.extend(reversed(node.named_children))
    return classes
