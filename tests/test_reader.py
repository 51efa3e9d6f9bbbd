from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone

import pytest

from ferrview.db import Database, StoreError, current_utc_date, db_filename, insert_batch
from ferrview.models import ProbeDataPoint
from ferrview.reader import ReaderPool
from ferrview.timestamp import format_utc

DATE = "2024-12-08"


def _point(node, ts, name, value="1"):
    return ProbeDataPoint(node, ts, "sysinfo", name, value)


def _populate(data_dir, date, points):
    with Database.open_for_date(data_dir, date) as database:
        insert_batch(database.conn, points)


@pytest.fixture
def recent():
    now = datetime.now(timezone.utc)
    return format_utc(now - timedelta(hours=2)), format_utc(now - timedelta(hours=1))


@pytest.fixture
def pool(tmp_path, recent):
    earlier, later = recent
    _populate(
        tmp_path,
        DATE,
        [
            _point("node-b", later, "forks_total", "9"),
            _point("node-a", earlier, "memory_used_bytes", "100"),
            _point("node-a", later, "memory_used_bytes", "200"),
            _point("node-a", later, "system_hostname", "alpha"),
        ],
    )
    reader = ReaderPool(tmp_path, date=DATE)
    yield reader
    reader.close()


def test_missing_database_raises_and_is_not_created(tmp_path):
    with pytest.raises(StoreError):
        ReaderPool(tmp_path, date=DATE)
    assert not (tmp_path / db_filename(DATE)).exists()


def test_query_all_node_ids(pool):
    assert pool.query_all_node_ids() == ["node-a", "node-b"]


def test_query_latest_node_metrics(pool, recent):
    _, later = recent
    latest = pool.query_latest_node_metrics("node-a")
    assert sorted((p.probe_name, p.probe_value) for p in latest) == [
        ("memory_used_bytes", "200"),
        ("system_hostname", "alpha"),
    ]
    assert {p.timestamp for p in latest} == {later}


def test_query_node_metrics_in_order(pool, recent):
    result = pool.query_node_metrics("node-a", "memory_used_bytes", 24)
    assert [p.probe_value for p in result] == ["100", "200"]
    assert [p.timestamp for p in result] == list(recent)


def test_query_node_metrics_outside_window_is_empty(pool):
    assert pool.query_node_metrics("node-a", "memory_used_bytes", 0) == []


def test_closed_pool_raises(pool):
    pool.close()
    with pytest.raises(StoreError):
        pool.query_all_node_ids()


def test_concurrent_queries_agree(pool):
    with ThreadPoolExecutor(max_workers=8) as executor:
        results = list(executor.map(lambda _: pool.query_all_node_ids(), range(20)))
    assert all(result == ["node-a", "node-b"] for result in results)


def test_default_date_is_today(tmp_path, recent):
    _populate(tmp_path, current_utc_date(), [_point("today-node", recent[1], "forks_total")])
    reader = ReaderPool(tmp_path)
    try:
        assert reader.query_all_node_ids() == ["today-node"]
    finally:
        reader.close()