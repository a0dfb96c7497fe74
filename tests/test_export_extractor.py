from __future__ import annotations

from conftest import REFERENCE_FILES, REFERENCE_NAME

from refscan.analyzers.exports import MixinPredicate, extract_exports
from refscan.project import SourceFile
from refscan.schemas import AliasEdge, StarEdge


def _extract(text: str, predicate: MixinPredicate | None = None, path: str = "index.js"):
    return extract_exports(SourceFile.from_text(path, text), "proj", predicate)


def test_reference_core_file_has_named_and_default_exports() -> None:
    exports = extract_exports(SourceFile.from_text("ref-src/core.js", REFERENCE_FILES["ref-src/core.js"]), REFERENCE_NAME)

    assert [item.id for item in exports.specifiers] == [
        "RefClass::./ref-src/core.js::exporting-ref-project",
        "[default]::./ref-src/core.js::exporting-ref-project",
    ]
    assert [item.kind for item in exports.specifiers] == ["named", "default"]
    assert exports.aliases == []


def test_reference_index_keeps_default_physical_and_renames_as_alias() -> None:
    exports = extract_exports(SourceFile.from_text("index.js", REFERENCE_FILES["index.js"]), REFERENCE_NAME)

    assert [item.id for item in exports.specifiers] == [
        "[default]::./index.js::exporting-ref-project",
        "Mixin::./index.js::exporting-ref-project",
    ]
    assert exports.specifiers[1].is_mixin is True
    assert exports.specifiers[0].is_mixin is False
    assert exports.aliases == [
        AliasEdge(
            name="RefRenamedClass",
            file_path="./index.js",
            project=REFERENCE_NAME,
            source="./ref-src/core.js",
            imported="RefClass",
        )
    ]


def test_local_export_lists_split_into_physical_and_alias() -> None:
    exports = _extract(
        "import { Base } from './base.js';\n"
        "import * as helpers from './helpers.js';\n"
        "import Fallback from './fallback.js';\n"
        "class Local {}\n"
        "export { Local, Local as Renamed, Base as PublicBase, helpers, Fallback as default };\n"
    )

    assert [(item.name, item.kind) for item in exports.specifiers] == [
        ("Local", "named"),
        ("Renamed", "named"),
        ("helpers", "namespace"),
        ("[default]", "default"),
    ]
    assert [(item.name, item.source, item.imported) for item in exports.aliases] == [
        ("PublicBase", "./base.js", "Base"),
    ]


def test_star_re_exports() -> None:
    exports = _extract("export * from './widgets.js';\nexport * as tools from './tools.js';\n")

    assert exports.stars == [StarEdge(file_path="./index.js", project="proj", source="./widgets.js")]
    assert [(item.name, item.kind) for item in exports.specifiers] == [("tools", "namespace")]


def test_class_members_are_recorded_on_specifiers() -> None:
    exports = _extract("export class Base {\n  constructor() {}\n  render() {}\n  update() {}\n}\n")

    assert exports.specifiers[0].members == ("render", "update")


def test_mixin_predicate_shapes() -> None:
    source = (
        "export const Arrow = superclass => class extends superclass {};\n"
        "export function Declared(base) { return class Named extends base {}; }\n"
        "export const Guarded = base => { const tag = 1; return class extends base {}; };\n"
        "export const TwoParams = (base, opts) => class extends base {};\n"
        "export const WrongBase = base => class extends HTMLElement {};\n"
        "export const NotAFunction = class extends Object {};\n"
        "const local = b => class extends b {};\n"
        "export default local;\n"
    )

    strict = {item.name: item.is_mixin for item in _extract(source).specifiers}
    assert strict == {
        "Arrow": True,
        "Declared": True,
        "Guarded": False,
        "TwoParams": False,
        "WrongBase": False,
        "NotAFunction": False,
        "[default]": True,
    }

    relaxed = {item.name: item.is_mixin for item in _extract(source, MixinPredicate(allow_leading_statements=True)).specifiers}
    assert relaxed["Guarded"] is True
    assert MixinPredicate().signature != MixinPredicate(allow_leading_statements=True).signature


def test_parse_failure_yields_empty_result_with_error() -> None:
    exports = _extract("export class {\n")

    assert exports.specifiers == []
    assert exports.aliases == []
    assert exports.error is not None
