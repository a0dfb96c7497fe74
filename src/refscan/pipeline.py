from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from refscan.analyzers.engine import QueryOrchestrator, get_query_config
from refscan.config import QueryConfig, RunConfig, ScanConfig
from refscan.report.report_writer import write_query_json, write_query_markdown
from refscan.schemas import QueryResult
from refscan.storage.cache import ExtractionCache, NullCache, SQLiteCache


@dataclass(slots=True)
class QueryRun:
    result: QueryResult
    outputs: dict[str, Path] = field(default_factory=dict)


def open_cache(config: ScanConfig, workspace: Path) -> ExtractionCache:
    if config.cache.disabled:
        return NullCache()
    path = Path(config.cache.path).expanduser()
    if not path.is_absolute():
        path = workspace / path
    return SQLiteCache(path)


def run_queries(
    config: ScanConfig,
    run_config: RunConfig,
    queries: list[QueryConfig],
    output_dir: Path | None = None,
    cache: ExtractionCache | None = None,
    orchestrator: QueryOrchestrator | None = None,
) -> list[QueryRun]:
    checked = [get_query_config(item.analyzer_name, item.options) for item in queries]
    orchestrator = orchestrator or QueryOrchestrator(config=config, cache=cache)

    runs: list[QueryRun] = []
    for query in checked:
        result = orchestrator.run(query, run_config)
        outputs: dict[str, Path] = {}
        if output_dir is not None:
            outputs["json"] = output_dir / f"{query.analyzer_name}.json"
            outputs["markdown"] = output_dir / f"{query.analyzer_name}.md"
            write_query_json(result, outputs["json"])
            write_query_markdown(result, outputs["markdown"])
        runs.append(QueryRun(result=result, outputs=outputs))
    return runs
