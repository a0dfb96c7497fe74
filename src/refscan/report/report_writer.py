from __future__ import annotations

import json
from pathlib import Path

from refscan.schemas import AnalyzerQueryResult, ClassListing, ExportListing, ImportListing, QueryResult
from refscan.utils import utc_now_iso, write_json


def write_query_json(result: QueryResult, output_path: Path) -> None:
    write_json(output_path, result.to_payload())


def _match_lines(item: AnalyzerQueryResult) -> list[str]:
    lines = [f"## `{item.export_specifier.id}`", ""]
    for group in item.matches_per_project:
        lines.append(f"- {group.project}")
        for entry in group.files:
            suffix = ""
            if entry.member_overrides:
                suffix = f" (overrides: {', '.join(entry.member_overrides)})"
            lines.append(f"  - `{entry.identifier}` in `{entry.file}`{suffix}")
    lines.append("")
    return lines


def _export_lines(item: ExportListing) -> list[str]:
    lines = [f"## {item.project} `{item.file}`", ""]
    for record in item.exports:
        target = ""
        if record.canonical_id != record.id:
            target = f" -> `{record.canonical_id}`" if record.canonical_id else " -> unresolved"
        mixin = " [mixin]" if record.is_mixin else ""
        lines.append(f"- `{record.id}` ({record.kind}){mixin}{target}")
    lines.append("")
    return lines


def _class_lines(item: ClassListing) -> list[str]:
    lines = [f"## {item.project} `{item.file}`", ""]
    for record in item.classes:
        base = ""
        if record.heritage is not None:
            root = record.heritage.root
            if record.heritage.member:
                root = f"{root}.{record.heritage.member}"
            base = f" extends `{root}`"
            if record.heritage.wrappers:
                base += f" via {', '.join(record.heritage.wrappers)}"
        lines.append(f"- `{record.name}` (line {record.line}){base}")
    lines.append("")
    return lines


def _import_lines(item: ImportListing) -> list[str]:
    lines = [f"## {item.project} `{item.file}`", ""]
    for binding in item.imports:
        lines.append(f"- `{binding.local}` <- `{binding.imported}` from `{binding.source}` ({binding.kind})")
    lines.append("")
    return lines


def write_query_markdown(result: QueryResult, output_path: Path) -> None:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    lines: list[str] = []
    lines.append(f"# refscan {result.analyzer_name}")
    lines.append("")
    lines.append(f"- Generated: `{utc_now_iso()}`")
    lines.append(f"- Options: `{json.dumps(result.options, sort_keys=True)}`")
    lines.append(f"- Results: {len(result.output)}")
    lines.append("")

    if not result.output:
        lines.append("No results.")
        lines.append("")
    for item in result.output:
        if isinstance(item, AnalyzerQueryResult):
            lines.extend(_match_lines(item))
        elif isinstance(item, ExportListing):
            lines.extend(_export_lines(item))
        elif isinstance(item, ClassListing):
            lines.extend(_class_lines(item))
        elif isinstance(item, ImportListing):
            lines.extend(_import_lines(item))

    lines.append("## Diagnostics")
    if not result.diagnostics:
        lines.append("- None")
    else:
        for diagnostic in result.diagnostics:
            lines.append(f"- [{diagnostic.kind}] {diagnostic.project} `{diagnostic.file}`: {diagnostic.message}")
    lines.append("")

    output_path.write_text("\n".join(lines), encoding="utf-8")
