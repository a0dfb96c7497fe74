from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any

from refscan.utils import specifier_id


class Serializable:
    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class ExportSpecifier(Serializable):
    name: str
    file_path: str
    project: str
    kind: str = "named"
    is_mixin: bool = False
    members: tuple[str, ...] = ()

    @property
    def id(self) -> str:
        return specifier_id(self.name, self.file_path, self.project)

    def to_payload(self) -> dict[str, Any]:
        return {"name": self.name, "filePath": self.file_path, "project": self.project, "id": self.id}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ExportSpecifier:
        return cls(
            name=data["name"],
            file_path=data["file_path"],
            project=data["project"],
            kind=data.get("kind", "named"),
            is_mixin=bool(data.get("is_mixin", False)),
            members=tuple(data.get("members", ())),
        )


@dataclass(frozen=True, slots=True)
class AliasEdge(Serializable):
    name: str
    file_path: str
    project: str
    source: str
    imported: str

    @property
    def alias_id(self) -> str:
        return specifier_id(self.name, self.file_path, self.project)


@dataclass(frozen=True, slots=True)
class StarEdge(Serializable):
    file_path: str
    project: str
    source: str


@dataclass(slots=True)
class FileExports(Serializable):
    file_path: str
    specifiers: list[ExportSpecifier] = field(default_factory=list)
    aliases: list[AliasEdge] = field(default_factory=list)
    stars: list[StarEdge] = field(default_factory=list)
    error: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FileExports:
        return cls(
            file_path=data["file_path"],
            specifiers=[ExportSpecifier.from_dict(item) for item in data.get("specifiers", [])],
            aliases=[AliasEdge(**item) for item in data.get("aliases", [])],
            stars=[StarEdge(**item) for item in data.get("stars", [])],
            error=data.get("error"),
        )


@dataclass(frozen=True, slots=True)
class ImportBinding(Serializable):
    local: str
    imported: str
    source: str
    kind: str

    def to_payload(self) -> dict[str, Any]:
        return {"local": self.local, "imported": self.imported, "source": self.source, "kind": self.kind}


@dataclass(frozen=True, slots=True)
class HeritageExpression(Serializable):
    root: str
    member: str | None = None
    wrappers: tuple[str, ...] = ()
    # Names in the clause that an enclosing function rebinds.
    shadowed: tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> HeritageExpression:
        return cls(
            root=data["root"],
            member=data.get("member"),
            wrappers=tuple(data.get("wrappers", ())),
            shadowed=tuple(data.get("shadowed", ())),
        )


@dataclass(frozen=True, slots=True)
class ClassRecord(Serializable):
    name: str
    heritage: HeritageExpression | None
    members: tuple[str, ...] = ()
    line: int = 0

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"name": self.name, "line": self.line, "members": list(self.members)}
        if self.heritage is not None:
            payload["heritage"] = {
                "root": self.heritage.root if self.heritage.member is None else f"{self.heritage.root}.{self.heritage.member}",
                "wrappers": list(self.heritage.wrappers),
            }
        return payload

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ClassRecord:
        heritage = data.get("heritage")
        return cls(
            name=data["name"],
            heritage=HeritageExpression.from_dict(heritage) if heritage else None,
            members=tuple(data.get("members", ())),
            line=int(data.get("line", 0)),
        )


@dataclass(slots=True)
class FileClasses(Serializable):
    file_path: str
    classes: list[ClassRecord] = field(default_factory=list)
    imports: list[ImportBinding] = field(default_factory=list)
    error: str | None = None

    def bindings(self) -> dict[str, ImportBinding]:
        return {item.local: item for item in self.imports}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FileClasses:
        return cls(
            file_path=data["file_path"],
            classes=[ClassRecord.from_dict(item) for item in data.get("classes", [])],
            imports=[ImportBinding(**item) for item in data.get("imports", [])],
            error=data.get("error"),
        )


@dataclass(frozen=True, slots=True)
class Diagnostic(Serializable):
    kind: str
    project: str
    file: str
    message: str

    def to_payload(self) -> dict[str, Any]:
        return {"kind": self.kind, "project": self.project, "file": self.file, "message": self.message}


@dataclass(slots=True)
class MatchEntry(Serializable):
    identifier: str
    file: str
    member_overrides: list[str] | None = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"identifier": self.identifier, "file": self.file}
        if self.member_overrides is not None:
            payload["memberOverrides"] = list(self.member_overrides)
        return payload


@dataclass(slots=True)
class ProjectMatches(Serializable):
    project: str
    files: list[MatchEntry] = field(default_factory=list)

    def to_payload(self) -> dict[str, Any]:
        return {"project": self.project, "files": [item.to_payload() for item in self.files]}


@dataclass(slots=True)
class AnalyzerQueryResult(Serializable):
    export_specifier: ExportSpecifier
    matches_per_project: list[ProjectMatches] = field(default_factory=list)

    def to_payload(self) -> dict[str, Any]:
        return {
            "exportSpecifier": self.export_specifier.to_payload(),
            "matchesPerProject": [item.to_payload() for item in self.matches_per_project],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AnalyzerQueryResult:
        return cls(
            export_specifier=ExportSpecifier.from_dict(data["export_specifier"]),
            matches_per_project=[
                ProjectMatches(
                    project=group["project"],
                    files=[MatchEntry(**entry) for entry in group.get("files", [])],
                )
                for group in data.get("matches_per_project", [])
            ],
        )


@dataclass(frozen=True, slots=True)
class ExportRecord(Serializable):
    name: str
    id: str
    canonical_id: str | None
    kind: str
    is_mixin: bool = False

    def to_payload(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "id": self.id,
            "canonicalId": self.canonical_id,
            "kind": self.kind,
            "isMixin": self.is_mixin,
        }


@dataclass(slots=True)
class ExportListing(Serializable):
    project: str
    file: str
    exports: list[ExportRecord] = field(default_factory=list)

    def to_payload(self) -> dict[str, Any]:
        return {"project": self.project, "file": self.file, "exports": [item.to_payload() for item in self.exports]}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ExportListing:
        return cls(
            project=data["project"],
            file=data["file"],
            exports=[ExportRecord(**item) for item in data.get("exports", [])],
        )


@dataclass(slots=True)
class ClassListing(Serializable):
    project: str
    file: str
    classes: list[ClassRecord] = field(default_factory=list)

    def to_payload(self) -> dict[str, Any]:
        return {"project": self.project, "file": self.file, "classes": [item.to_payload() for item in self.classes]}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ClassListing:
        return cls(
            project=data["project"],
            file=data["file"],
            classes=[ClassRecord.from_dict(item) for item in data.get("classes", [])],
        )


@dataclass(slots=True)
class ImportListing(Serializable):
    project: str
    file: str
    imports: list[ImportBinding] = field(default_factory=list)

    def to_payload(self) -> dict[str, Any]:
        return {"project": self.project, "file": self.file, "imports": [item.to_payload() for item in self.imports]}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ImportListing:
        return cls(
            project=data["project"],
            file=data["file"],
            imports=[ImportBinding(**item) for item in data.get("imports", [])],
        )


@dataclass(slots=True)
class QueryResult(Serializable):
    analyzer_name: str
    options: dict[str, Any]
    output: list[Any] = field(default_factory=list)
    diagnostics: list[Diagnostic] = field(default_factory=list)

    def to_payload(self) -> dict[str, Any]:
        return {
            "meta": {
                "analyzerName": self.analyzer_name,
                "options": dict(self.options),
                "diagnostics": [item.to_payload() for item in self.diagnostics],
            },
            "queryOutput": [item.to_payload() for item in self.output],
        }
