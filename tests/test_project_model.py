from __future__ import annotations

from pathlib import Path

import pytest
from conftest import REFERENCE_NAME, TARGET_NAME, write_project

from refscan.config import ConfigurationError, ScanConfig
from refscan.project import discover_source_files, load_project


def test_load_project_reads_manifest_and_skips_node_modules(scenario) -> None:
    target, reference = scenario
    config = ScanConfig.default()

    project = load_project(target, config)
    assert project.name == TARGET_NAME
    assert [item.relative_path for item in project.files] == [
        "./target-src/direct-imports.js",
        "./target-src/indirect-imports.js",
    ]
    assert project.entry is None

    ref = load_project(reference, config)
    assert ref.name == REFERENCE_NAME
    assert ref.entry == "./index.js"
    assert ref.path == str(reference.resolve())


def test_entry_follows_exports_then_main(tmp_path: Path) -> None:
    config = ScanConfig.default()
    exported = write_project(
        tmp_path / "exported",
        "exported",
        {"lib/main.mjs": "export const a = 1;\n", "index.js": ""},
        manifest={"exports": {".": {"import": "./lib/main.mjs"}}, "main": "index.js"},
    )
    main_only = write_project(tmp_path / "main-only", "main-only", {"dist/app.js": ""}, manifest={"main": "dist/app"})

    assert load_project(exported, config).entry == "./lib/main.mjs"
    assert load_project(main_only, config).entry == "./dist/app.js"


def test_missing_manifest_falls_back_to_directory_name(tmp_path: Path) -> None:
    root = write_project(tmp_path / "bare-dir", None, {"index.js": "export default 1;\n"})

    project = load_project(root, ScanConfig.default())
    assert project.name == "bare-dir"
    assert project.entry == "./index.js"


def test_exclude_patterns_prune_directories(tmp_path: Path) -> None:
    root = write_project(
        tmp_path / "proj",
        "proj",
        {
            "src/a.js": "",
            "src/b.ts": "",
            "coverage/report.js": "",
            "src/node_modules/dep/index.js": "",
            "legacy/old.cjs": "",
        },
    )
    config = ScanConfig.default()
    config.exclude.append("legacy/*")

    assert discover_source_files(root, config) == ["src/a.js"]


def test_fingerprint_tracks_content(tmp_path: Path) -> None:
    root = write_project(tmp_path / "proj", "proj", {"a.js": "export const a = 1;\n"})
    config = ScanConfig.default()
    before = load_project(root, config).files[0].fingerprint

    (root / "a.js").write_text("export const a = 2;\n", encoding="utf-8")
    after = load_project(root, config).files[0].fingerprint

    assert before != after


def test_non_directory_path_is_configuration_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError):
        load_project(tmp_path / "does-not-exist", ScanConfig.default())
