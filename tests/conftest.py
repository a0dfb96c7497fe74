from __future__ import annotations

import json
from pathlib import Path

import pytest

from refscan.analyzers.export_index import ExportIndex
from refscan.analyzers.exports import MixinPredicate, extract_exports
from refscan.analyzers.inheritance import extract_classes
from refscan.analyzers.resolver import ModuleResolver
from refscan.project import ProjectModel
from refscan.schemas import FileClasses

REFERENCE_NAME = "exporting-ref-project"
TARGET_NAME = "importing-target-project"

REFERENCE_FILES = {
    "ref-src/core.js": """
// named specifier
export class RefClass extends HTMLElement {};

// default specifier
export default class OtherClass {};
""",
    "index.js": """
export { RefClass as RefRenamedClass } from './ref-src/core.js';

// re-exported default specifier
import refConstImported from './ref-src/core.js';
export default refConstImported;

export const Mixin = superclass => class MyMixin extends superclass {}
""",
}

TARGET_FILES = {
    "target-src/indirect-imports.js": """
// renamed import (indirect, needs transitivity check)
import { RefRenamedClass } from 'exporting-ref-project';
import defaultExport from 'exporting-ref-project';

class ExtendRefRenamedClass extends RefRenamedClass {}
""",
    "target-src/direct-imports.js": """
// a direct named import
import { RefClass } from 'exporting-ref-project/ref-src/core.js';

// a direct default import
import RefDefault from 'exporting-ref-project';

// a direct named mixin
import { Mixin } from 'exporting-ref-project';

// Non match
import { ForeignMixin } from 'unknown-project';

class ExtendRefClass extends RefClass {}
class ExtendRefDefault extends RefDefault {}
class ExtendRefClassWithMixin extends ForeignMixin(Mixin(RefClass)) {}
""",
}


def write_project(root: Path, name: str | None, files: dict[str, str], manifest: dict | None = None) -> Path:
    root.mkdir(parents=True, exist_ok=True)
    data = dict(manifest or {})
    if name is not None:
        data.setdefault("name", name)
    if data:
        (root / "package.json").write_text(json.dumps(data), encoding="utf-8")
    for rel, text in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
    return root


@pytest.fixture
def scenario(tmp_path: Path) -> tuple[Path, Path]:
    target = write_project(tmp_path / "project", TARGET_NAME, TARGET_FILES)
    reference = write_project(target / "node_modules" / REFERENCE_NAME, REFERENCE_NAME, REFERENCE_FILES)
    return target, reference


def memory_project(name: str, files: dict[str, str], main: str | None = None) -> ProjectModel:
    return ProjectModel.from_sources(
        path=f"/virtual/{name}",
        name=name,
        sources=sorted(files.items()),
        main=main,
    )


def build_index(
    references: list[ProjectModel],
    targets: list[ProjectModel] | None = None,
    predicate: MixinPredicate | None = None,
    max_alias_depth: int = 16,
) -> ExportIndex:
    resolver = ModuleResolver([*references, *(targets or [])])
    index = ExportIndex(resolver, max_alias_depth=max_alias_depth)
    for project in references:
        for source_file in project.files:
            index.add(project, extract_exports(source_file, project.name, predicate))
    index.finalize()
    for project in targets or []:
        for source_file in project.files:
            index.add_forwards(project, extract_exports(source_file, project.name, predicate))
    return index


def class_table(project: ProjectModel) -> tuple[ProjectModel, list[FileClasses]]:
    return project, [extract_classes(item) for item in project.files]
