from __future__ import annotations

from pathlib import Path

import pytest

from refscan.config import ConfigurationError, ScanConfig, ensure_config


def test_defaults() -> None:
    config = ScanConfig.default()

    assert config.max_alias_depth == 16
    assert config.mixin.allow_leading_statements is False
    assert config.cache.extraction_enabled is True
    assert config.cache.query_enabled is True
    assert [item.analyzer_name for item in config.queries] == ["match-subclasses"]
    assert config.queries[0].options == {"dedupe": True}


def test_env_overrides(monkeypatch) -> None:
    monkeypatch.setenv("REFSCAN_CACHE_DISABLED", "true")
    monkeypatch.setenv("REFSCAN_CACHE_PATH", "/tmp/refscan-cache.db")
    monkeypatch.setenv("REFSCAN_WORKERS", "3")
    monkeypatch.setenv("REFSCAN_MAX_ALIAS_DEPTH", "4")

    config = ScanConfig.default()

    assert config.cache.disabled is True
    assert config.cache.extraction_enabled is False
    assert config.cache.query_enabled is False
    assert config.cache.path == "/tmp/refscan-cache.db"
    assert config.workers == 3
    assert config.worker_count(100) == 3
    assert config.max_alias_depth == 4


def test_worker_count_is_bounded_by_items() -> None:
    config = ScanConfig.default()

    assert config.worker_count(1) == 1
    assert config.worker_count(0) == 1


def test_config_file_round_trip(tmp_path: Path) -> None:
    path = tmp_path / ".refscan" / "config.yaml"
    ensure_config(path)
    path.write_text(
        path.read_text(encoding="utf-8").replace("allow_leading_statements: false", "allow_leading_statements: true"),
        encoding="utf-8",
    )

    config = ScanConfig.from_path(path)
    assert config.mixin.allow_leading_statements is True

    ensure_config(path)
    assert "allow_leading_statements: true" in path.read_text(encoding="utf-8")
    ensure_config(path, force=True)
    assert "allow_leading_statements: false" in path.read_text(encoding="utf-8")


@pytest.mark.parametrize(
    "text",
    [
        "include: [unclosed\n",
        "- just\n- a list\n",
        "max_alias_depth: zero\n",
        "max_alias_depth: 0\n",
        "workers: -1\n",
        "queries:\n  - options: {dedupe: true}\n",
    ],
)
def test_invalid_config_files(tmp_path: Path, text: str) -> None:
    path = tmp_path / "config.yaml"
    path.write_text(text, encoding="utf-8")

    with pytest.raises(ConfigurationError):
        ScanConfig.from_path(path)


def test_invalid_env_value(monkeypatch) -> None:
    monkeypatch.setenv("REFSCAN_WORKERS", "many")

    with pytest.raises(ConfigurationError):
        ScanConfig.default()
