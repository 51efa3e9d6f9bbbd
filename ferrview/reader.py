"""Pooled read-only access to the current day's database."""

from __future__ import annotations

import logging
import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from ferrview import db
from ferrview.db import MetricDataPoint, StoreError, current_utc_date, db_filename

log = logging.getLogger(__name__)

MAX_CONNECTIONS = 5


class ReaderPool:
    """A small thread-safe pool of connections to an existing day database."""

    def __init__(
        self,
        data_dir: str | Path,
        date: str | None = None,
        max_connections: int = MAX_CONNECTIONS,
    ) -> None:
        self.path = Path(data_dir) / db_filename(date or current_utc_date())
        log.info("Initializing reader pool for: %s", self.path)
        self._slots = threading.BoundedSemaphore(max_connections)
        self._lock = threading.Lock()
        self._idle: list[sqlite3.Connection] = [self._connect()]
        self._closed = False
        log.info("Reader pool initialized with %d connections", max_connections)

    def _connect(self) -> sqlite3.Connection:
        uri = self.path.resolve().as_uri() + "?mode=rw"
        try:
            return sqlite3.connect(uri, uri=True, check_same_thread=False)
        except sqlite3.Error as exc:
            raise StoreError(f"SQLite error: {exc}") from exc

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        if self._closed:
            raise StoreError("SQLite error: pool is closed")
        with self._slots:
            with self._lock:
                conn = self._idle.pop() if self._idle else None
            if conn is None:
                conn = self._connect()
            try:
                yield conn
            finally:
                with self._lock:
                    if self._closed:
                        conn.close()
                    else:
                        self._idle.append(conn)

    def query_node_metrics(
        self, node_id: str, metric_pattern: str, hours: int
    ) -> list[MetricDataPoint]:
        """Points of one node matching the LIKE pattern over the last hours."""
        with self._connection() as conn:
            return db.query_node_metrics(conn, node_id, metric_pattern, hours)

    def query_all_node_ids(self) -> list[str]:
        """All distinct node IDs, sorted."""
        with self._connection() as conn:
            return db.query_all_node_ids(conn)

    def query_latest_node_metrics(self, node_id: str) -> list[MetricDataPoint]:
        """All points of a node at its most recent timestamp."""
        with self._connection() as conn:
            return db.query_latest_node_metrics(conn, node_id)

    def close(self) -> None:
        """Close the pool; connections in use are closed when released."""
        with self._lock:
            self._closed = True
            idle, self._idle = self._idle, []
        for conn in idle:
            conn.close()
        log.info("Reader pool closed")