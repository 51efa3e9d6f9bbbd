import copy
from datetime import datetime, timedelta, timezone

import pytest

from ferrview.db import (
    Database,
    MetricDataPoint,
    StoreError,
    current_utc_date,
    db_filename,
    format_timestamp,
    insert_batch,
    query_all_node_ids,
    query_all_nodes_metrics,
    query_latest_node_metrics,
    query_node_metrics,
)
from ferrview.models import ProbeDataPoint
from ferrview.timestamp import format_utc

DATE = "2024-12-08"


def _point(node, ts, name, value="1"):
    return ProbeDataPoint(node, ts, "sysinfo", name, value)


@pytest.fixture
def db(tmp_path):
    database = Database.open_for_date(tmp_path / "data", DATE)
    yield database
    database.close()


def test_format_timestamp():
    dt = datetime(2024, 12, 8, 10, 30, 0, tzinfo=timezone.utc)
    formatted = format_timestamp(dt)
    assert formatted.startswith("2024-12-08")
    assert "10:30:00" in formatted
    assert formatted == "2024-12-08T10:30:00Z"


def test_format_timestamp_naive_is_utc():
    naive = datetime(2024, 12, 8, 10, 30, 0)
    aware = naive.replace(tzinfo=timezone.utc)
    assert format_timestamp(naive) == format_timestamp(aware)


def test_metric_data_point_clone():
    point = MetricDataPoint(
        node_id="test",
        timestamp="2024-12-08T10:00:00Z",
        probe_type="sysinfo",
        probe_name="cpu_usage",
        probe_value="50.0",
    )
    cloned = copy.copy(point)
    assert point.node_id == cloned.node_id
    assert point.probe_value == cloned.probe_value
    assert point == cloned


def test_db_filename():
    assert db_filename(DATE) == "ferrview_2024-12-08.db"


def test_current_utc_date_format():
    before = datetime.now(timezone.utc).date()
    value = current_utc_date()
    after = datetime.now(timezone.utc).date()
    assert len(value) == 10
    assert datetime.strptime(value, "%Y-%m-%d").date() in {before, after}


def test_open_creates_file(tmp_path, db):
    assert (tmp_path / "data" / "ferrview_2024-12-08.db").exists()
    assert db.path.name == db_filename(DATE)


def test_open_in_file_path_fails(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("x")
    with pytest.raises(StoreError):
        Database.open_for_date(blocker, DATE)


def test_insert_empty_returns_zero(db):
    assert insert_batch(db.conn, []) == 0
    assert query_all_node_ids(db.conn) == []


def test_insert_and_query_node_ids(db):
    count = insert_batch(
        db.conn,
        [
            _point("node-b", "2024-12-08T10:00:00Z", "cpu_core_count"),
            _point("node-a", "2024-12-08T10:00:00Z", "cpu_core_count"),
            _point("node-a", "2024-12-08T10:01:00Z", "cpu_core_count"),
        ],
    )
    assert count == 3
    assert query_all_node_ids(db.conn) == ["node-a", "node-b"]


def test_latest_node_metrics(db):
    insert_batch(
        db.conn,
        [
            _point("n1", "2024-12-08T10:00:00Z", "memory_total_bytes", "1"),
            _point("n1", "2024-12-08T10:01:00Z", "memory_total_bytes", "2"),
            _point("n1", "2024-12-08T10:01:00Z", "system_hostname", "box"),
            _point("n2", "2024-12-08T11:00:00Z", "memory_total_bytes", "3"),
        ],
    )
    latest = query_latest_node_metrics(db.conn, "n1")
    assert {p.probe_name for p in latest} == {"memory_total_bytes", "system_hostname"}
    assert {p.timestamp for p in latest} == {"2024-12-08T10:01:00Z"}
    assert {p.probe_value for p in latest} == {"2", "box"}


def test_latest_for_unknown_node_is_empty(db):
    assert query_latest_node_metrics(db.conn, "missing") == []


def test_query_node_metrics_window_and_pattern(db):
    now = datetime.now(timezone.utc)
    earlier = format_utc(now - timedelta(hours=2))
    later = format_utc(now - timedelta(hours=1))
    old = format_utc(now - timedelta(hours=48))
    insert_batch(
        db.conn,
        [
            _point("node-a", later, "cpu_core_1_usage_percent", "20"),
            _point("node-a", earlier, "cpu_core_0_usage_percent", "10"),
            _point("node-a", later, "cpu_core_count", "2"),
            _point("node-a", old, "cpu_core_0_usage_percent", "99"),
            _point("node-b", later, "cpu_core_0_usage_percent", "50"),
        ],
    )
    result = query_node_metrics(db.conn, "node-a", "cpu_core_%_usage_percent", 24)
    assert [p.probe_name for p in result] == [
        "cpu_core_0_usage_percent",
        "cpu_core_1_usage_percent",
    ]
    assert [p.timestamp for p in result] == [earlier, later]
    assert all(p.node_id == "node-a" for p in result)


def test_query_all_nodes_metrics_orders_by_node(db):
    now = datetime.now(timezone.utc)
    ts = format_utc(now - timedelta(minutes=5))
    insert_batch(
        db.conn,
        [
            _point("node-b", ts, "forks_total", "7"),
            _point("node-a", ts, "forks_total", "5"),
            _point("node-a", format_utc(now - timedelta(hours=30)), "forks_total", "1"),
        ],
    )
    result = query_all_nodes_metrics(db.conn, "forks_total", 24)
    assert [(p.node_id, p.probe_value) for p in result] == [("node-a", "5"), ("node-b", "7")]


def test_data_persists_after_reopen(tmp_path):
    with Database.open_for_date(tmp_path, DATE) as first:
        insert_batch(first.conn, [_point("node-x", "2024-12-08T00:00:00Z", "forks_total")])
    with Database.open_for_date(tmp_path, DATE) as second:
        assert query_all_node_ids(second.conn) == ["node-x"]


def test_closed_database_raises_store_error(tmp_path):
    database = Database.open_for_date(tmp_path, DATE)
    database.close()
    with pytest.raises(StoreError):
        query_all_node_ids(database.conn)
    with pytest.raises(StoreError):
        insert_batch(database.conn, [_point("n", "2024-12-08T00:00:00Z", "x")])