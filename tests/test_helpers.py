from datetime import datetime, timezone

import pytest

from ferrview.db import MetricDataPoint
from ferrview.helpers import (
    NodeDetails,
    NodeSummary,
    current_date,
    extract_index,
    format_display_timestamp,
    format_memory,
    format_temp,
    group_metrics_by_index,
    parse_timestamp,
    shorten_uuid,
)


def _point(name, value, timestamp="2024-12-08T09:41:30Z"):
    return MetricDataPoint("node", timestamp, "sysinfo", name, value)


def test_shorten_uuid():
    assert shorten_uuid("d6f0a1c9-a494-4567") == "d6f0a1c9..."
    assert shorten_uuid("short") == "short"


def test_shorten_uuid_exactly_eight():
    assert shorten_uuid("abcdefgh") == "abcdefgh"


def test_parse_timestamp():
    assert isinstance(parse_timestamp("2024-12-08T09:41:30Z"), int)
    with pytest.raises(ValueError):
        parse_timestamp("invalid")


def test_parse_timestamp_epoch():
    assert parse_timestamp("1970-01-01T00:00:00Z") == 0
    assert parse_timestamp("1970-01-01T00:01:00Z") == 60


def test_parse_timestamp_offset_equals_utc():
    assert parse_timestamp("2024-12-08T10:41:30+01:00") == parse_timestamp(
        "2024-12-08T09:41:30Z"
    )


def test_parse_timestamp_truncates_fraction():
    assert parse_timestamp("2024-12-08T09:41:30.9Z") == parse_timestamp("2024-12-08T09:41:30Z")


@pytest.mark.parametrize(
    "text",
    ["2024-12-08", "2024-12-08T09:41:30", "2024-13-08T09:41:30Z", "2024-12-08 09:41:30Z"],
)
def test_parse_timestamp_rejects_non_rfc3339(text):
    with pytest.raises(ValueError):
        parse_timestamp(text)


def test_current_date_format():
    before = datetime.now(timezone.utc).date()
    value = current_date()
    after = datetime.now(timezone.utc).date()
    assert len(value) == 10
    assert datetime.strptime(value, "%Y-%m-%d").date() in {before, after}


def test_extract_index():
    assert extract_index("cpu_core_12_usage_percent", "cpu_core_") == 12
    assert extract_index("cpu_core_count", "cpu_core_") is None
    assert extract_index("memory_total_bytes", "cpu_core_") is None
    assert extract_index("cpu_core_-1_usage", "cpu_core_") is None


def test_group_metrics_by_index_cpu():
    metrics = [
        _point("cpu_core_0_usage_percent", "10.5"),
        _point("cpu_core_1_usage_percent", "20"),
        _point("cpu_core_0_usage_percent", "12.0", "2024-12-08T09:42:30Z"),
        _point("cpu_core_count", "2"),
        _point("cpu_core_1_usage_percent", "not-a-number"),
        _point("cpu_core_1_usage_percent", "5.0", "garbage"),
    ]
    groups = group_metrics_by_index(metrics, "cpu_core_")
    first = parse_timestamp("2024-12-08T09:41:30Z")
    second = parse_timestamp("2024-12-08T09:42:30Z")
    assert groups == {
        "Core 0": [(first, 10.5), (second, 12.0)],
        "Core 1": [(first, 20.0)],
    }


def test_group_metrics_by_index_labels():
    sensors = group_metrics_by_index(
        [_point("temperature_sensor_3_celsius", "40.0")], "temperature_sensor_"
    )
    disks = group_metrics_by_index([_point("disk_0_usage_percent", "55.5")], "disk_")
    assert list(sensors) == ["Sensor 3"]
    assert list(disks) == ["#0"]


def test_group_metrics_rejects_padded_values():
    groups = group_metrics_by_index([_point("disk_0_usage_percent", " 5.0")], "disk_")
    assert groups == {}


def test_format_memory():
    assert format_memory(None) == "N/A"
    assert format_memory(15.96) == "16.0 GB"


def test_format_temp():
    assert format_temp(None) == "N/A"
    assert format_temp(42.0) == "42.0°C"


def test_format_display_timestamp():
    assert format_display_timestamp("2024-12-08T09:41:30Z") == "2024-12-08 09:41:30"
    assert format_display_timestamp("short") == "short"
    assert format_display_timestamp(None) == "N/A"


def test_node_models_start_without_details():
    summary = NodeSummary("node-1")
    details = NodeDetails("node-1")
    assert summary.node_id == details.node_id == "node-1"
    assert summary.max_temp_celsius is None and summary.last_seen is None
    assert details.kernel_version is None and details.memory_total_gb is None