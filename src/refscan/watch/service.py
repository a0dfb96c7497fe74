from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from pathlib import Path

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from refscan.analyzers.engine import QueryOrchestrator
from refscan.config import ConfigurationError, QueryConfig, RunConfig, ScanConfig
from refscan.pipeline import QueryRun, run_queries
from refscan.project import MODULE_SUFFIXES
from refscan.storage.cache import ExtractionCache

logger = logging.getLogger(__name__)

IGNORED_DIRS = {".git", "coverage", ".refscan", "__pycache__"}


def _relative_to(path: Path, root: Path) -> Path | None:
    try:
        return path.resolve().relative_to(root.resolve())
    except ValueError:
        return None


def should_trigger(path: Path, roots: list[Path]) -> bool:
    """True for module sources and manifests below one of ``roots``.

    ``node_modules`` is skipped relative to each root, so a reference project
    that lives inside a target's ``node_modules`` still triggers through its
    own root.
    """
    if path.name != "package.json" and not path.name.endswith(MODULE_SUFFIXES):
        return False
    for root in roots:
        rel = _relative_to(path, root)
        if rel is None:
            continue
        if any(part in IGNORED_DIRS or part == "node_modules" for part in rel.parts[:-1]):
            continue
        if not rel.name.startswith("."):
            return True
    return False


class DebouncedRunner:
    def __init__(self, callback: Callable[[], object], delay_seconds: float = 0.5) -> None:
        self.callback = callback
        self.delay_seconds = delay_seconds
        self._lock = threading.Lock()
        self._timer: threading.Timer | None = None
        self._running = False
        self._pending = False

    def request(self) -> None:
        with self._lock:
            if self._timer:
                self._timer.cancel()
            self._timer = threading.Timer(self.delay_seconds, self._flush)
            self._timer.daemon = True
            self._timer.start()

    def cancel(self) -> None:
        with self._lock:
            if self._timer:
                self._timer.cancel()
                self._timer = None

    def _flush(self) -> None:
        with self._lock:
            if self._running:
                self._pending = True
                return
            self._running = True
        try:
            self.callback()
            while True:
                with self._lock:
                    if not self._pending:
                        self._running = False
                        break
                    self._pending = False
                self.callback()
        finally:
            with self._lock:
                self._running = False


class ProjectChangeHandler(FileSystemEventHandler):
    def __init__(self, roots: list[Path], runner: DebouncedRunner) -> None:
        self.roots = roots
        self.runner = runner

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        paths = [Path(str(event.src_path))]
        dest_path = getattr(event, "dest_path", "")
        if dest_path:
            paths.append(Path(str(dest_path)))
        if any(should_trigger(path, self.roots) for path in paths):
            self.runner.request()


def watch_roots(run_config: RunConfig) -> list[Path]:
    roots = [Path(item).expanduser().resolve() for item in [*run_config.target_project_paths, *run_config.reference_project_paths]]
    unique: list[Path] = []
    for root in roots:
        if root not in unique:
            unique.append(root)
    return unique


def _outermost(roots: list[Path]) -> list[Path]:
    return [root for root in roots if not any(other != root and root.is_relative_to(other) for other in roots)]


class QueryWatcher:
    def __init__(
        self,
        config: ScanConfig,
        run_config: RunConfig,
        queries: list[QueryConfig],
        output_dir: Path | None = None,
        cache: ExtractionCache | None = None,
        on_runs: Callable[[list[QueryRun]], None] | None = None,
    ) -> None:
        self.config = config
        self.run_config = run_config
        self.queries = queries
        self.output_dir = output_dir
        self.orchestrator = QueryOrchestrator(config=config, cache=cache)
        self.on_runs = on_runs

    def run_once(self) -> list[QueryRun]:
        runs = run_queries(
            config=self.config,
            run_config=self.run_config,
            queries=self.queries,
            output_dir=self.output_dir,
            orchestrator=self.orchestrator,
        )
        if self.on_runs is not None:
            self.on_runs(runs)
        return runs

    def rerun(self) -> None:
        try:
            self.run_once()
        except ConfigurationError as exc:
            logger.error("watch run failed: %s", exc)


def run_watch(watcher: QueryWatcher, delay_seconds: float = 0.5) -> int:
    watcher.run_once()

    roots = watch_roots(watcher.run_config)
    runner = DebouncedRunner(callback=watcher.rerun, delay_seconds=delay_seconds)
    handler = ProjectChangeHandler(roots=roots, runner=runner)

    observer = Observer()
    for root in _outermost(roots):
        observer.schedule(handler, str(root), recursive=True)
    observer.start()
    logger.info("watching %d project roots", len(roots))
    try:
        while True:
            observer.join(timeout=1.0)
    except KeyboardInterrupt:
        observer.stop()
    runner.cancel()
    observer.join()
    return 0
