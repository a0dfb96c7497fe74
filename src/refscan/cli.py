from __future__ import annotations

import logging
from pathlib import Path

import typer

from refscan.config import ConfigurationError, QueryConfig, RunConfig, ScanConfig, ensure_config
from refscan.pipeline import QueryRun, open_cache, run_queries
from refscan.watch.service import QueryWatcher, run_watch

app = typer.Typer(help="refscan: static export, import and subclass index for JavaScript projects")


def _resolve(workspace: Path, path: Path) -> Path:
    return (workspace / path).resolve() if not path.is_absolute() else path


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        force=True,
    )


def _load_config(path: Path) -> ScanConfig:
    if not path.exists():
        return ScanConfig.default()
    return ScanConfig.from_path(path)


def _queries(config: ScanConfig, analyzers: list[str]) -> list[QueryConfig]:
    if not analyzers:
        return list(config.queries)
    configured = {item.analyzer_name: item for item in reversed(config.queries)}
    queries: list[QueryConfig] = []
    for name in analyzers:
        known = configured.get(name)
        queries.append(QueryConfig(analyzer_name=name, options=dict(known.options) if known else {}))
    return queries


def _run_config(workspace: Path, config: ScanConfig, targets: list[Path], references: list[Path]) -> RunConfig:
    target_paths = targets or [Path(item) for item in config.projects.targets]
    reference_paths = references or [Path(item) for item in config.projects.references]
    return RunConfig(
        target_project_paths=[_resolve(workspace, item) for item in target_paths],
        reference_project_paths=[_resolve(workspace, item) for item in reference_paths],
    )


def _echo_runs(runs: list[QueryRun]) -> None:
    for run in runs:
        result = run.result
        typer.echo(f"[refscan] {result.analyzer_name} complete")
        typer.echo(f"- results: {len(result.output)}")
        typer.echo(f"- diagnostics: {len(result.diagnostics)}")
        if "json" in run.outputs:
            typer.echo(f"- report: {run.outputs['json']}")


@app.command()
def init(
    workspace: Path = typer.Option(Path("."), help="Workspace root"),
    config: Path = typer.Option(Path(".refscan/config.yaml"), help="Config path"),
    force: bool = typer.Option(False, help="Overwrite existing config"),
) -> None:
    workspace = workspace.resolve()
    config_path = _resolve(workspace, config)
    ensure_config(config_path, force=force)
    typer.echo(f"[refscan] initialized config at {config_path}")


@app.command()
def query(
    workspace: Path = typer.Option(Path("."), help="Workspace root"),
    config: Path = typer.Option(Path(".refscan/config.yaml"), help="Config path"),
    analyzer: list[str] | None = typer.Option(None, "--analyzer", help="Analyzer to run, repeatable"),
    target: list[Path] | None = typer.Option(None, "--target", help="Target project path, repeatable"),
    reference: list[Path] | None = typer.Option(None, "--reference", help="Reference project path, repeatable"),
    output: Path = typer.Option(Path(".refscan/reports"), help="Report output directory"),
    no_cache: bool = typer.Option(False, "--no-cache", help="Disable all caches"),
    verbose: bool = typer.Option(False, "--verbose", help="Debug logging"),
) -> None:
    _configure_logging(verbose)
    workspace = workspace.resolve()
    try:
        scan_config = _load_config(_resolve(workspace, config))
        if no_cache:
            scan_config.cache.disabled = True
        runs = run_queries(
            config=scan_config,
            run_config=_run_config(workspace, scan_config, target or [], reference or []),
            queries=_queries(scan_config, analyzer or []),
            output_dir=_resolve(workspace, output),
            cache=open_cache(scan_config, workspace),
        )
    except ConfigurationError as exc:
        typer.echo(f"[refscan] {exc}", err=True)
        raise typer.Exit(code=2) from exc
    _echo_runs(runs)


@app.command()
def watch(
    workspace: Path = typer.Option(Path("."), help="Workspace root"),
    config: Path = typer.Option(Path(".refscan/config.yaml"), help="Config path"),
    analyzer: list[str] | None = typer.Option(None, "--analyzer", help="Analyzer to run, repeatable"),
    target: list[Path] | None = typer.Option(None, "--target", help="Target project path, repeatable"),
    reference: list[Path] | None = typer.Option(None, "--reference", help="Reference project path, repeatable"),
    output: Path = typer.Option(Path(".refscan/reports"), help="Report output directory"),
    no_cache: bool = typer.Option(False, "--no-cache", help="Disable all caches"),
    delay: float = typer.Option(0.5, help="Debounce delay in seconds"),
    verbose: bool = typer.Option(False, "--verbose", help="Debug logging"),
) -> None:
    _configure_logging(verbose)
    workspace = workspace.resolve()
    try:
        scan_config = _load_config(_resolve(workspace, config))
        if no_cache:
            scan_config.cache.disabled = True
        watcher = QueryWatcher(
            config=scan_config,
            run_config=_run_config(workspace, scan_config, target or [], reference or []),
            queries=_queries(scan_config, analyzer or []),
            output_dir=_resolve(workspace, output),
            cache=open_cache(scan_config, workspace),
            on_runs=_echo_runs,
        )
        code = run_watch(watcher, delay_seconds=max(0.1, delay))
    except ConfigurationError as exc:
        typer.echo(f"[refscan] {exc}", err=True)
        raise typer.Exit(code=2) from exc
    raise typer.Exit(code=code)


if __name__ == "__main__":
    app()
