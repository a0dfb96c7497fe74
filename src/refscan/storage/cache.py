from __future__ import annotations

import json
import sqlite3
import threading
from pathlib import Path
from typing import Any, Protocol


class ExtractionCache(Protocol):
    def get(self, namespace: str, project: str, file_path: str, fingerprint: str) -> dict[str, Any] | None:
        ...

    def put(self, namespace: str, project: str, file_path: str, fingerprint: str, payload: dict[str, Any]) -> None:
        ...


class NullCache:
    def get(self, namespace: str, project: str, file_path: str, fingerprint: str) -> dict[str, Any] | None:
        return None

    def put(self, namespace: str, project: str, file_path: str, fingerprint: str, payload: dict[str, Any]) -> None:
        return None


class MemoryCache:
    def __init__(self) -> None:
        self._entries: dict[tuple[str, str, str], tuple[str, str]] = {}
        self._lock = threading.Lock()

    def get(self, namespace: str, project: str, file_path: str, fingerprint: str) -> dict[str, Any] | None:
        with self._lock:
            entry = self._entries.get((namespace, project, file_path))
        if entry is None or entry[0] != fingerprint:
            return None
        return json.loads(entry[1])

    def put(self, namespace: str, project: str, file_path: str, fingerprint: str, payload: dict[str, Any]) -> None:
        encoded = json.dumps(payload, ensure_ascii=False)
        with self._lock:
            self._entries[(namespace, project, file_path)] = (fingerprint, encoded)

    def __len__(self) -> int:
        return len(self._entries)


class SQLiteCache:
    def __init__(self, path: Path) -> None:
        self.path = path
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.path)

    def _init_db(self) -> None:
        with self._lock, self._connect() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS extractions (
                    namespace TEXT NOT NULL,
                    project TEXT NOT NULL,
                    file_path TEXT NOT NULL,
                    fingerprint TEXT NOT NULL,
                    payload TEXT NOT NULL,
                    PRIMARY KEY (namespace, project, file_path)
                );
                """
            )
            conn.commit()

    def get(self, namespace: str, project: str, file_path: str, fingerprint: str) -> dict[str, Any] | None:
        with self._lock, self._connect() as conn:
            row = conn.execute(
                "SELECT fingerprint, payload FROM extractions WHERE namespace = ? AND project = ? AND file_path = ?",
                (namespace, project, file_path),
            ).fetchone()
        if not row or row[0] != fingerprint:
            return None
        return json.loads(row[1])

    def put(self, namespace: str, project: str, file_path: str, fingerprint: str, payload: dict[str, Any]) -> None:
        encoded = json.dumps(payload, ensure_ascii=False)
        with self._lock, self._connect() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO extractions(namespace, project, file_path, fingerprint, payload) VALUES (?, ?, ?, ?, ?)",
                (namespace, project, file_path, fingerprint, encoded),
            )
            conn.commit()


class ScopedCache:
    """One namespace of a cache backend, with hit and miss counters."""

    def __init__(self, backend: ExtractionCache, namespace: str) -> None:
        self.backend = backend
        self.namespace = namespace
        self.hits = 0
        self.misses = 0
        self._lock = threading.Lock()

    def get(self, project: str, file_path: str, fingerprint: str) -> dict[str, Any] | None:
        payload = self.backend.get(self.namespace, project, file_path, fingerprint)
        with self._lock:
            if payload is None:
                self.misses += 1
            else:
                self.hits += 1
        return payload

    def put(self, project: str, file_path: str, fingerprint: str, payload: dict[str, Any]) -> None:
        self.backend.put(self.namespace, project, file_path, fingerprint, payload)
