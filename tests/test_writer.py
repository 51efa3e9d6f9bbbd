import threading

import pytest

from ferrview.db import Database, StoreError, query_all_node_ids, query_latest_node_metrics
from ferrview.models import ProbeDataPoint
from ferrview.writer import WriterService, create_writer


def _points(node, ts, names):
    return [ProbeDataPoint(node, ts, "sysinfo", name, str(i)) for i, name in enumerate(names)]


def _stored(data_dir, date, node):
    with Database.open_for_date(data_dir, date) as db:
        rows = query_latest_node_metrics(db.conn, node)
    return sorted((p.probe_name, p.probe_value) for p in rows)


def test_insert_then_shutdown_persists(tmp_path):
    service, handle = create_writer(tmp_path)
    worker = threading.Thread(target=service.run)
    worker.start()

    points = _points("node-1", "2024-12-08T10:00:00Z", ["cpu_core_count", "memory_total_bytes"])
    handle.insert_batch(points)
    handle.shutdown()
    worker.join(timeout=10)

    assert not worker.is_alive()
    assert _stored(tmp_path, service.current_date, "node-1") == sorted(
        (p.probe_name, p.probe_value) for p in points
    )


def test_send_after_stop_raises(tmp_path):
    service, handle = create_writer(tmp_path)
    handle.shutdown()
    service.run()
    with pytest.raises(StoreError):
        handle.insert_batch(_points("n", "2024-12-08T10:00:00Z", ["x"]))
    with pytest.raises(StoreError):
        handle.shutdown()


def test_commands_after_shutdown_are_drained(tmp_path):
    service, handle = create_writer(tmp_path)
    before = _points("before", "2024-12-08T10:00:00Z", ["forks_total"])
    after = _points("after", "2024-12-08T10:00:00Z", ["forks_total"])
    handle.insert_batch(before)
    handle.shutdown()
    handle.insert_batch(after)
    service.run()

    with Database.open_for_date(tmp_path, service.current_date) as db:
        assert query_all_node_ids(db.conn) == ["after", "before"]


def test_rotates_database_when_date_changes(tmp_path):
    dates = iter(["2024-01-01", "2024-01-01", "2024-01-02"])
    service = WriterService(tmp_path, date_source=lambda: next(dates))
    handle = service.handle

    handle.insert_batch(_points("day-one", "2024-01-01T23:59:00Z", ["forks_total"]))
    handle.insert_batch(_points("day-two", "2024-01-02T00:01:00Z", ["forks_total"]))
    handle.shutdown()
    service.run()

    assert service.current_date == "2024-01-02"
    with Database.open_for_date(tmp_path, "2024-01-01") as first:
        assert query_all_node_ids(first.conn) == ["day-one"]
    with Database.open_for_date(tmp_path, "2024-01-02") as second:
        assert query_all_node_ids(second.conn) == ["day-two"]


def test_create_writer_creates_data_dir(tmp_path):
    data_dir = tmp_path / "nested" / "data"
    service, handle = create_writer(data_dir)
    handle.shutdown()
    service.run()
    assert (data_dir / f"ferrview_{service.current_date}.db").exists()