from __future__ import annotations

import json
from pathlib import Path

import yaml
from typer.testing import CliRunner

from refscan.cli import app

runner = CliRunner()


def test_cli_init_and_query(scenario, tmp_path: Path) -> None:
    target, reference = scenario
    workspace = tmp_path / "workspace"
    workspace.mkdir()

    init = runner.invoke(app, ["init", "--workspace", str(workspace)])
    assert init.exit_code == 0
    assert (workspace / ".refscan" / "config.yaml").exists()

    query = runner.invoke(
        app,
        [
            "query",
            "--workspace",
            str(workspace),
            "--analyzer",
            "match-subclasses",
            "--analyzer",
            "find-exports",
            "--target",
            str(target),
            "--reference",
            str(reference),
        ],
    )
    assert query.exit_code == 0, query.output
    assert "[refscan] match-subclasses complete" in query.output

    report_dir = workspace / ".refscan" / "reports"
    payload = json.loads((report_dir / "match-subclasses.json").read_text(encoding="utf-8"))
    assert payload["meta"]["analyzerName"] == "match-subclasses"
    assert [item["exportSpecifier"]["id"] for item in payload["queryOutput"]] == [
        "RefClass::./ref-src/core.js::exporting-ref-project",
        "[default]::./index.js::exporting-ref-project",
    ]
    assert (report_dir / "match-subclasses.md").exists()
    assert (report_dir / "find-exports.json").exists()
    assert (workspace / ".refscan" / "cache.db").exists()


def test_cli_reads_projects_and_queries_from_config(scenario, tmp_path: Path) -> None:
    target, reference = scenario
    workspace = tmp_path / "workspace"
    config_path = workspace / "refscan.yaml"
    workspace.mkdir()
    config_path.write_text(
        yaml.safe_dump(
            {
                "projects": {"targets": [str(target)], "references": [str(reference)]},
                "queries": [{"analyzer": "match-imports"}],
            }
        ),
        encoding="utf-8",
    )

    result = runner.invoke(
        app,
        ["query", "--workspace", str(workspace), "--config", "refscan.yaml", "--output", "out", "--no-cache"],
    )

    assert result.exit_code == 0, result.output
    assert (workspace / "out" / "match-imports.json").exists()
    assert not (workspace / ".refscan" / "cache.db").exists()


def test_cli_configuration_errors_exit_with_code_2(scenario, tmp_path: Path) -> None:
    target, _ = scenario

    unknown = runner.invoke(
        app,
        ["query", "--workspace", str(tmp_path), "--analyzer", "match-everything", "--target", str(target)],
    )
    no_reference = runner.invoke(
        app,
        ["query", "--workspace", str(tmp_path), "--analyzer", "match-subclasses", "--target", str(target)],
    )

    assert unknown.exit_code == 2
    assert no_reference.exit_code == 2
