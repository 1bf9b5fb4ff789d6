"""
SQLite-backed versioned document store.

Thread-safe: one shared connection guarded by a lock.
Every document carries a ``version``; writers pass the version they
read and lose with ``ConcurrencyConflict`` when somebody else wrote
in between (check-and-set).  ``update()`` wraps the read-modify-write
cycle in the retry decorator.
"""

from __future__ import annotations

import copy
import json
import sqlite3
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from utils.exceptions import ConcurrencyConflict, StoreError
from utils.log_config import get_logger
from utils.retry import retry

log = get_logger(__name__)

_CREATE_SQL = """
CREATE TABLE IF NOT EXISTS documents (
    namespace   TEXT NOT NULL,
    key         TEXT NOT NULL,
    version     INTEGER NOT NULL,
    body        TEXT NOT NULL,
    updated_at  REAL,
    PRIMARY KEY (namespace, key)
);

CREATE TABLE IF NOT EXISTS logs (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    namespace   TEXT NOT NULL,
    key         TEXT NOT NULL,
    body        TEXT NOT NULL,
    created_at  REAL
);

CREATE INDEX IF NOT EXISTS idx_logs_key ON logs(namespace, key);
"""


@dataclass
class Versioned:
    data:    Optional[Any]
    version: int = 0

    @property
    def exists(self) -> bool:
        return self.version > 0


class DocumentStore:
    """JSON documents keyed by ``(namespace, key)`` plus append-only logs."""

    def __init__(
        self,
        db_path: Path,
        cas_attempts: int = 5,
        cas_backoff: float = 0.01,
        busy_timeout: int = 10000,
    ) -> None:
        self._db_path = db_path
        self._cas_attempts = cas_attempts
        self._cas_backoff = cas_backoff
        self._busy_timeout = busy_timeout
        self._lock = threading.Lock()
        self._conn: Optional[sqlite3.Connection] = None
        db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    @classmethod
    def from_config(cls, cfg) -> "DocumentStore":
        return cls(
            cfg.paths.store_db,
            cas_attempts=cfg.store.cas_attempts,
            cas_backoff=cfg.store.cas_backoff,
            busy_timeout=cfg.store.busy_timeout,
        )

    def _get_conn(self) -> sqlite3.Connection:
        """Get or create the single shared connection."""
        if self._conn is None:
            self._conn = sqlite3.connect(
                str(self._db_path),
                timeout=30,
                check_same_thread=False,
            )
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute("PRAGMA synchronous=NORMAL")
            self._conn.execute(f"PRAGMA busy_timeout={int(self._busy_timeout)}")
        return self._conn

    def _ensure_schema(self) -> None:
        with self._lock:
            try:
                conn = self._get_conn()
                conn.executescript(_CREATE_SQL)
                conn.commit()
            except sqlite3.Error as exc:
                raise StoreError(f"Cannot open store {self._db_path}: {exc}") from exc

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    # ── documents ───────────────────────────────────────────
    def get(self, namespace: str, key: str) -> Versioned:
        """Return the document and its version; ``(None, 0)`` when absent."""
        with self._lock:
            try:
                row = self._get_conn().execute(
                    "SELECT version, body FROM documents WHERE namespace = ? AND key = ?",
                    (namespace, key),
                ).fetchone()
            except sqlite3.Error as exc:
                raise StoreError(f"get {namespace}/{key}: {exc}") from exc

        if row is None:
            return Versioned(None, 0)
        return Versioned(json.loads(row["body"]), int(row["version"]))

    def put(self, namespace: str, key: str, data: Any, expected_version: int) -> int:
        """
        Write *data* only if the stored version still equals
        *expected_version* (0 = must not exist yet).  Returns the new version.
        """
        body = json.dumps(data, ensure_ascii=False)
        now = time.time()

        with self._lock:
            conn = self._get_conn()
            try:
                if expected_version == 0:
                    try:
                        conn.execute(
                            "INSERT INTO documents (namespace, key, version, body, updated_at) "
                            "VALUES (?, ?, 1, ?, ?)",
                            (namespace, key, body, now),
                        )
                    except sqlite3.IntegrityError:
                        conn.rollback()
                        raise ConcurrencyConflict(
                            f"{namespace}/{key} was created concurrently"
                        ) from None
                else:
                    cur = conn.execute(
                        "UPDATE documents SET version = version + 1, body = ?, updated_at = ? "
                        "WHERE namespace = ? AND key = ? AND version = ?",
                        (body, now, namespace, key, expected_version),
                    )
                    if cur.rowcount == 0:
                        conn.rollback()
                        raise ConcurrencyConflict(
                            f"{namespace}/{key} is no longer at version {expected_version}"
                        )
                conn.commit()
            except sqlite3.Error as exc:
                raise StoreError(f"put {namespace}/{key}: {exc}") from exc

        log.debug("Store PUT %s/%s v%d", namespace, key, expected_version + 1)
        return expected_version + 1

    def update(
        self,
        namespace: str,
        key: str,
        fn: Callable[[Any], Any],
        default: Any = None,
    ) -> Any:
        """
        Read-modify-write with check-and-set, retried on conflict.

        *fn* receives a private copy of the current document (or of
        *default* when missing) and returns the new document.
        """

        @retry(
            max_attempts=self._cas_attempts,
            backoff_base=self._cas_backoff,
            exceptions=(ConcurrencyConflict,),
        )
        def _attempt() -> Any:
            current = self.get(namespace, key)
            base = current.data if current.exists else default
            new = fn(copy.deepcopy(base))
            self.put(namespace, key, new, current.version)
            return new

        return _attempt()

    def delete(self, namespace: str, key: str) -> bool:
        with self._lock:
            try:
                conn = self._get_conn()
                cur = conn.execute(
                    "DELETE FROM documents WHERE namespace = ? AND key = ?",
                    (namespace, key),
                )
                conn.commit()
                return cur.rowcount > 0
            except sqlite3.Error as exc:
                raise StoreError(f"delete {namespace}/{key}: {exc}") from exc

    def keys(self, namespace: str, prefix: str = "") -> List[str]:
        with self._lock:
            try:
                rows = self._get_conn().execute(
                    "SELECT key FROM documents WHERE namespace = ? AND key LIKE ? ESCAPE '\\' ORDER BY key",
                    (namespace, _like_prefix(prefix)),
                ).fetchall()
            except sqlite3.Error as exc:
                raise StoreError(f"keys {namespace}: {exc}") from exc
        return [r["key"] for r in rows]

    # ── append-only logs ────────────────────────────────────
    def append(self, namespace: str, key: str, record: Dict[str, Any]) -> None:
        with self._lock:
            try:
                conn = self._get_conn()
                conn.execute(
                    "INSERT INTO logs (namespace, key, body, created_at) VALUES (?, ?, ?, ?)",
                    (namespace, key, json.dumps(record, ensure_ascii=False), time.time()),
                )
                conn.commit()
            except sqlite3.Error as exc:
                raise StoreError(f"append {namespace}/{key}: {exc}") from exc

    def tail(self, namespace: str, key: str, k: int) -> List[Dict[str, Any]]:
        """Last *k* records, oldest first."""
        if k <= 0:
            return []
        with self._lock:
            try:
                rows = self._get_conn().execute(
                    "SELECT body FROM logs WHERE namespace = ? AND key = ? "
                    "ORDER BY id DESC LIMIT ?",
                    (namespace, key, k),
                ).fetchall()
            except sqlite3.Error as exc:
                raise StoreError(f"tail {namespace}/{key}: {exc}") from exc
        return [json.loads(r["body"]) for r in reversed(rows)]

    def stats(self) -> Dict[str, int]:
        with self._lock:
            try:
                conn = self._get_conn()
                docs = conn.execute("SELECT COUNT(*) AS n FROM documents").fetchone()["n"]
                logs = conn.execute("SELECT COUNT(*) AS n FROM logs").fetchone()["n"]
            except sqlite3.Error as exc:
                log.warning("Store stats error: %s", exc)
                return {"documents": 0, "logs": 0}
        return {"documents": int(docs), "logs": int(logs)}


def _like_prefix(prefix: str) -> str:
    escaped = prefix.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return escaped + "%"
