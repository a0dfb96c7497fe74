from __future__ import annotations

import json
from pathlib import Path

from refscan.config import QueryConfig, RunConfig, ScanConfig
from refscan.pipeline import run_queries
from refscan.report.report_writer import write_query_json, write_query_markdown
from refscan.schemas import Diagnostic, QueryResult


def test_run_queries_writes_one_report_pair_per_analyzer(scenario, tmp_path: Path) -> None:
    target, reference = scenario
    output_dir = tmp_path / "reports"

    runs = run_queries(
        config=ScanConfig.default(),
        run_config=RunConfig(target_project_paths=[target], reference_project_paths=[reference]),
        queries=[
            QueryConfig(analyzer_name="match-subclasses", options={"member_overrides": True}),
            QueryConfig(analyzer_name="find-classes"),
        ],
        output_dir=output_dir,
    )

    assert [item.result.analyzer_name for item in runs] == ["match-subclasses", "find-classes"]
    assert runs[0].outputs["json"] == output_dir / "match-subclasses.json"
    payload = json.loads(runs[0].outputs["json"].read_text(encoding="utf-8"))
    assert payload["queryOutput"][0]["matchesPerProject"][0]["files"][0] == {
        "identifier": "ExtendRefClass",
        "file": "./target-src/direct-imports.js",
        "memberOverrides": [],
    }

    markdown = runs[0].outputs["markdown"].read_text(encoding="utf-8")
    assert markdown.startswith("# refscan match-subclasses")
    assert "`RefClass::./ref-src/core.js::exporting-ref-project`" in markdown
    assert "`ExtendRefRenamedClass` in `./target-src/indirect-imports.js`" in markdown

    classes = runs[1].outputs["markdown"].read_text(encoding="utf-8")
    assert "`ExtendRefClassWithMixin` (line 16) extends `RefClass` via ForeignMixin, Mixin" in classes


def test_run_queries_without_output_dir_writes_nothing(scenario, tmp_path: Path) -> None:
    target, _ = scenario

    runs = run_queries(
        config=ScanConfig.default(),
        run_config=RunConfig(target_project_paths=[target]),
        queries=[QueryConfig(analyzer_name="find-imports")],
    )

    assert runs[0].outputs == {}
    assert len(runs[0].result.output) == 2


def test_empty_result_reports(tmp_path: Path) -> None:
    result = QueryResult(
        analyzer_name="find-exports",
        options={},
        diagnostics=[Diagnostic(kind="parse-failure", project="p", file="./bad.js", message="syntax error near line 1")],
    )

    write_query_json(result, tmp_path / "out" / "find-exports.json")
    write_query_markdown(result, tmp_path / "out" / "find-exports.md")

    payload = json.loads((tmp_path / "out" / "find-exports.json").read_text(encoding="utf-8"))
    assert payload == {
        "meta": {
            "analyzerName": "find-exports",
            "options": {},
            "diagnostics": [
                {"kind": "parse-failure", "project": "p", "file": "./bad.js", "message": "syntax error near line 1"}
            ],
        },
        "queryOutput": [],
    }
    markdown = (tmp_path / "out" / "find-exports.md").read_text(encoding="utf-8")
    assert "No results." in markdown
    assert "[parse-failure] p `./bad.js`" in markdown
