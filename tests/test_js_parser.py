from __future__ import annotations

import pytest

from refscan.analyzers.js_parser import ParseError, parse_module
from refscan.analyzers.nodes import (
    CallExpression,
    ClassExpression,
    DefaultExport,
    FunctionExpression,
    Identifier,
    ImportSpecifier,
    LocalExportList,
    MemberAccess,
    NamedExport,
    ReExport,
    StarReExport,
)


def test_import_clauses_are_lowered_with_kinds() -> None:
    module = parse_module(
        "import D, { a as b, default as c } from 'pkg';\n"
        "import * as ns from './local.js';\n"
        "import './side-effect.js';\n"
    )

    imports = module.imports()
    assert [item.source for item in imports] == ["pkg", "./local.js", "./side-effect.js"]
    assert imports[0].specifiers == (
        ImportSpecifier(local="D", imported="[default]", kind="default"),
        ImportSpecifier(local="b", imported="a", kind="named"),
        ImportSpecifier(local="c", imported="[default]", kind="default"),
    )
    assert imports[1].specifiers == (ImportSpecifier(local="ns", imported="*", kind="namespace"),)
    assert imports[2].specifiers == ()


def test_export_statement_forms() -> None:
    module = parse_module(
        "const a = 1;\n"
        "export const b = 2, c = 3;\n"
        "export { a as default, a };\n"
        "export { x as y } from './x.js';\n"
        "export * from './star.js';\n"
        "export * as space from './space.js';\n"
    )

    statements = list(module.statements)
    assert isinstance(statements[0], NamedExport)
    assert [name for name, _ in statements[0].declarations] == ["b", "c"]
    assert statements[1] == LocalExportList(specifiers=(("a", "[default]"), ("a", "a")))
    assert statements[2] == ReExport(specifiers=(("x", "y"),), source="./x.js")
    assert statements[3] == StarReExport(source="./star.js")
    assert statements[4] == StarReExport(source="./space.js", alias="space")
    assert "a" in module.declarations


def test_default_export_of_identifier_keeps_the_identifier() -> None:
    module = parse_module("import value from './v.js';\nexport default value;\n")

    assert module.statements[-1] == DefaultExport(value=Identifier("value"))


def test_arrow_mixin_shape() -> None:
    module = parse_module("export const M = (base) => class extends base { render() {} };\n")

    (statement,) = module.statements
    assert isinstance(statement, NamedExport)
    (name, value) = statement.declarations[0]
    assert name == "M"
    assert isinstance(value, FunctionExpression)
    assert value.params == ("base",)
    assert value.leading_statements == 0
    assert value.returned == ClassExpression(name=None, heritage=Identifier("base"), members=("render",))


def test_block_body_counts_leading_statements() -> None:
    module = parse_module(
        "export function Wrap(base, { extra }) {\n"
        "  const marker = Symbol();\n"
        "  return class extends base {};\n"
        "}\n"
    )

    (statement,) = module.statements
    (_, value) = statement.declarations[0]
    assert isinstance(value, FunctionExpression)
    assert value.params == ("base", None)
    assert value.leading_statements == 1
    assert isinstance(value.returned, ClassExpression)


def test_heritage_calls_and_member_access() -> None:
    module = parse_module("class A extends outer.Wrap(Mixin(ns.Base)) {}\n")

    (item,) = module.classes
    assert item.heritage == CallExpression(
        callee=MemberAccess(object="outer", property="Wrap"),
        arguments=(CallExpression(callee=Identifier("Mixin"), arguments=(MemberAccess(object="ns", property="Base"),)),),
    )


def test_classes_are_collected_in_document_order() -> None:
    module = parse_module(
        "class A extends B {\n"
        "  constructor() { super(); }\n"
        "  render() {}\n"
        "  static styles = 1;\n"
        "}\n"
        "const C = class extends A {};\n"
        "function build() {\n"
        "  class Inner extends C {}\n"
        "  return Inner;\n"
        "}\n"
        "export default class extends A {}\n"
    )

    assert [item.name for item in module.classes] == ["A", "C", "Inner", "[default]"]
    assert module.classes[0].members == ("render", "styles")
    assert module.classes[0].line == 1
    assert module.classes[1].heritage == Identifier("A")
    assert module.classes[2].line == 8


def test_syntax_error_raises_parse_error() -> None:
    with pytest.raises(ParseError, match="syntax error near line"):
        parse_module("const ok = 1;\nclass {\n")
