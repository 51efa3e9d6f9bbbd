"""Helpers and view models for the collector's web pages and charts."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from collections.abc import Iterable

from ferrview.db import MetricDataPoint, current_utc_date

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_U32_MAX = 2**32 - 1

_RFC3339 = re.compile(
    r"(\d{4})-(\d{2})-(\d{2})[Tt](\d{2}):(\d{2}):(\d{2})(?:\.(\d+))?"
    r"(?:([Zz])|([+-])(\d{2}):(\d{2}))"
)
_INDEX = re.compile(r"\+?[0-9]+")


@dataclass
class NodeSummary:
    """Summary of a node, shown in the home page list."""

    node_id: str
    hostname: str | None = None
    cpu_arch: str | None = None
    cpu_cores: str | None = None
    memory_total_gb: float | None = None
    temp_sensors: str | None = None
    max_temp_celsius: float | None = None
    last_seen: str | None = None


@dataclass
class NodeDetails:
    """Details of one node, shown on its dashboard."""

    node_id: str
    hostname: str | None = None
    os_name: str | None = None
    kernel_version: str | None = None
    cpu_arch: str | None = None
    cpu_cores: str | None = None
    memory_total_gb: float | None = None
    last_seen: str | None = None


def shorten_uuid(uuid: str) -> str:
    """Keep the first 8 characters of a long identifier, followed by '...'."""
    return f"{uuid[:8]}..." if len(uuid) > 8 else uuid


def parse_timestamp(timestamp_str: str) -> int:
    """Parse an RFC 3339 timestamp to Unix seconds; raise ValueError if invalid."""
    match = _RFC3339.fullmatch(timestamp_str)
    if match is None:
        raise ValueError(f"invalid RFC 3339 timestamp: {timestamp_str!r}")
    year, month, day, hour, minute, second = (int(g) for g in match.group(1, 2, 3, 4, 5, 6))
    fraction = match.group(7) or ""
    microsecond = int(fraction[:6].ljust(6, "0")) if fraction else 0

    if match.group(8):
        tz = timezone.utc
    else:
        off_hours, off_minutes = int(match.group(10)), int(match.group(11))
        if off_hours > 23 or off_minutes > 59:
            raise ValueError(f"invalid offset in timestamp: {timestamp_str!r}")
        offset = timedelta(hours=off_hours, minutes=off_minutes)
        tz = timezone(-offset if match.group(9) == "-" else offset)

    dt = datetime(year, month, day, hour, minute, second, microsecond, tzinfo=tz)
    return (dt - _EPOCH) // timedelta(seconds=1)


def current_date() -> str:
    """Today's UTC date as YYYY-MM-DD."""
    return current_utc_date()


def extract_index(name: str, prefix: str) -> int | None:
    """The unsigned number right after prefix in name, up to the next '_'."""
    if not name.startswith(prefix):
        return None
    segment = name[len(prefix):].split("_", 1)[0]
    if not _INDEX.fullmatch(segment):
        return None
    value = int(segment)
    return value if value <= _U32_MAX else None


def _parse_float(text: str) -> float:
    if not text or text != text.strip() or "_" in text:
        raise ValueError(f"invalid float literal: {text!r}")
    return float(text)


def group_metrics_by_index(
    metrics: Iterable[MetricDataPoint], prefix: str
) -> dict[str, list[tuple[int, float]]]:
    """Group points into labelled series by the index after prefix.

    "cpu_core_0_usage_percent" with prefix "cpu_core_" goes to "Core 0";
    points whose timestamp or value does not parse are skipped.
    """
    groups: dict[str, list[tuple[int, float]]] = {}
    for metric in metrics:
        index = extract_index(metric.probe_name, prefix)
        if index is None:
            continue
        if "cpu" in prefix:
            label = f"Core {index}"
        elif "sensor" in prefix:
            label = f"Sensor {index}"
        else:
            label = f"#{index}"
        try:
            timestamp = parse_timestamp(metric.timestamp)
            value = _parse_float(metric.probe_value)
        except ValueError:
            continue
        groups.setdefault(label, []).append((timestamp, value))
    return groups


def format_memory(gb: float | None) -> str:
    """Memory in GB with one decimal, or N/A."""
    return "N/A" if gb is None else f"{gb:.1f} GB"


def format_temp(temp: float | None) -> str:
    """Temperature in degrees Celsius with one decimal, or N/A."""
    return "N/A" if temp is None else f"{temp:.1f}°C"


def format_display_timestamp(timestamp: str | None) -> str:
    """Show an ISO timestamp as 'YYYY-MM-DD HH:MM:SS'; short values pass through."""
    if timestamp is None:
        return "N/A"
    if len(timestamp) >= 19:
        return f"{timestamp[:10]} {timestamp[11:19]}"
    return timestamp