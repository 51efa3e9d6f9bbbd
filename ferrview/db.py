"""SQLite storage for probe data: one database file per UTC day, plus queries."""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path

from ferrview.models import ProbeDataPoint

log = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS probe_data (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    node_id TEXT NOT NULL,
    timestamp TEXT NOT NULL,
    probe_type TEXT NOT NULL,
    probe_name TEXT NOT NULL,
    probe_value TEXT NOT NULL,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_probe_data_node_timestamp
    ON probe_data(node_id, timestamp);

CREATE INDEX IF NOT EXISTS idx_probe_data_probe_type
    ON probe_data(probe_type);
"""

_INSERT = """
INSERT INTO probe_data (node_id, timestamp, probe_type, probe_name, probe_value)
VALUES (?, ?, ?, ?, ?)
"""

_SELECT_NODE_METRICS = """
SELECT node_id, timestamp, probe_type, probe_name, probe_value
FROM probe_data
WHERE node_id = ?
  AND probe_name LIKE ?
  AND timestamp >= ?
  AND timestamp <= ?
ORDER BY timestamp ASC
"""

_SELECT_NODE_IDS = """
SELECT DISTINCT node_id
FROM probe_data
ORDER BY node_id
"""

_SELECT_LATEST = """
SELECT node_id, timestamp, probe_type, probe_name, probe_value
FROM probe_data
WHERE node_id = ?
  AND timestamp = (
      SELECT MAX(timestamp)
      FROM probe_data
      WHERE node_id = ?
  )
"""

_SELECT_ALL_NODES_METRICS = """
SELECT node_id, timestamp, probe_type, probe_name, probe_value
FROM probe_data
WHERE probe_name LIKE ?
  AND timestamp >= ?
  AND timestamp <= ?
ORDER BY node_id, timestamp ASC
"""


class StoreError(Exception):
    """A storage operation failed."""


@dataclass(frozen=True)
class MetricDataPoint:
    """A single metric data point read from the database."""

    node_id: str
    timestamp: str
    probe_type: str
    probe_name: str
    probe_value: str


@contextmanager
def _sqlite_errors() -> Iterator[None]:
    try:
        yield
    except sqlite3.Error as exc:
        raise StoreError(f"SQLite error: {exc}") from exc


def db_filename(date: str) -> str:
    """File name of the database holding the given YYYY-MM-DD day."""
    return f"ferrview_{date}.db"


def current_utc_date() -> str:
    """Today's UTC date as YYYY-MM-DD."""
    now = datetime.now(timezone.utc)
    return f"{now.year:04d}-{now.month:02d}-{now.day:02d}"


def format_timestamp(dt: datetime) -> str:
    """Format a datetime as RFC 3339; naive values are taken as UTC."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    text = (
        f"{dt.year:04d}-{dt.month:02d}-{dt.day:02d}"
        f"T{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d}"
    )
    if dt.microsecond:
        text += "." + f"{dt.microsecond:06d}".rstrip("0")
    offset = dt.utcoffset() or timedelta(0)
    if not offset:
        return text + "Z"
    sign = "+" if offset > timedelta(0) else "-"
    minutes = abs(int(offset.total_seconds())) // 60
    return f"{text}{sign}{minutes // 60:02d}:{minutes % 60:02d}"


def _window(hours: int) -> tuple[str, str]:
    now = datetime.now(timezone.utc)
    start = now - timedelta(hours=hours)
    return format_timestamp(start), format_timestamp(now)


def _points(rows: Iterable[tuple[str, str, str, str, str]]) -> list[MetricDataPoint]:
    return [MetricDataPoint(*row) for row in rows]


class Database:
    """A connection to the database file of one day."""

    def __init__(self, conn: sqlite3.Connection, path: Path) -> None:
        self.conn = conn
        self.path = path

    @classmethod
    def open_for_date(cls, data_dir: str | Path, date: str) -> Database:
        """Open (creating if needed) data_dir/ferrview_<date>.db and apply the schema."""
        try:
            Path(data_dir).mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StoreError(f"IO error: {exc}") from exc

        path = Path(data_dir) / db_filename(date)
        log.info("Initializing database at: %s", path)

        with _sqlite_errors():
            conn = sqlite3.connect(path, check_same_thread=False)
            try:
                conn.execute("PRAGMA journal_mode=WAL")
                log.debug("Running database migrations")
                conn.executescript(SCHEMA)
            except sqlite3.Error:
                conn.close()
                raise

        log.info("Database initialized successfully: %s", path.name)
        return cls(conn, path)

    def close(self) -> None:
        """Close the connection."""
        with _sqlite_errors():
            self.conn.close()

    def __enter__(self) -> Database:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def insert_batch(conn: sqlite3.Connection, data_points: Iterable[ProbeDataPoint]) -> int:
    """Insert the points in one transaction and return how many were written."""
    points = list(data_points)
    if not points:
        return 0

    log.debug("Inserting batch of %d probe data points", len(points))
    rows = [
        (p.node_id, p.timestamp, p.probe_type, p.probe_name, p.probe_value) for p in points
    ]
    with _sqlite_errors(), conn:
        conn.executemany(_INSERT, rows)
    log.debug("Successfully inserted %d probe data points", len(rows))
    return len(rows)


def query_node_metrics(
    conn: sqlite3.Connection, node_id: str, metric_pattern: str, hours: int
) -> list[MetricDataPoint]:
    """Points of one node whose name matches the LIKE pattern, over the last hours."""
    start, now = _window(hours)
    log.debug(
        "Querying metrics for node %s with pattern '%s' from %s to %s",
        node_id, metric_pattern, start, now,
    )
    with _sqlite_errors():
        rows = conn.execute(_SELECT_NODE_METRICS, (node_id, metric_pattern, start, now))
        result = _points(rows)
    log.debug("Found %d data points", len(result))
    return result


def query_all_node_ids(conn: sqlite3.Connection) -> list[str]:
    """All distinct node IDs, sorted."""
    with _sqlite_errors():
        node_ids = [row[0] for row in conn.execute(_SELECT_NODE_IDS)]
    log.debug("Found %d unique nodes", len(node_ids))
    return node_ids


def query_latest_node_metrics(conn: sqlite3.Connection, node_id: str) -> list[MetricDataPoint]:
    """All points of a node that carry its most recent timestamp."""
    with _sqlite_errors():
        result = _points(conn.execute(_SELECT_LATEST, (node_id, node_id)))
    log.debug("Found %d latest data points", len(result))
    return result


def query_all_nodes_metrics(
    conn: sqlite3.Connection, metric_pattern: str, hours: int
) -> list[MetricDataPoint]:
    """Points of every node matching the LIKE pattern over the last hours."""
    start, now = _window(hours)
    with _sqlite_errors():
        result = _points(conn.execute(_SELECT_ALL_NODES_METRICS, (metric_pattern, start, now)))
    log.debug("Found %d data points across all nodes", len(result))
    return result