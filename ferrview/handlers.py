"""Request handlers for the probe API and the SVG chart endpoints."""

from __future__ import annotations

import functools
import logging
from collections.abc import Callable, Iterable, Iterator
from http import HTTPStatus
from typing import Protocol

from ferrview.chart_types import ChartData, TimeSeries, TimeSeriesChart
from ferrview.db import MetricDataPoint, StoreError
from ferrview.helpers import group_metrics_by_index, parse_timestamp, shorten_uuid
from ferrview.models import (
    HealthResponse,
    ProbeDataBatch,
    ProbeDataPoint,
    RequestTooLargeError,
    SuccessResponse,
    max_request_size,
    validate_request_size,
)
from ferrview.renderer import RenderError, SvgRenderer
from ferrview.response import Response, json_error, json_response, svg, svg_error

log = logging.getLogger(__name__)

VERSION = "0.5.0"

_BYTES_PER_GB = 1_073_741_824.0
_CHART_WIDTH = 1200
_CHART_HEIGHT = 500


class BatchWriter(Protocol):
    def insert_batch(self, data: Iterable[ProbeDataPoint]) -> None: ...


class MetricsReader(Protocol):
    def query_node_metrics(
        self, node_id: str, metric_pattern: str, hours: int
    ) -> list[MetricDataPoint]: ...


def handle_probe(body: bytes, writer: BatchWriter) -> Response:
    """Validate and parse a probe batch, then queue it for writing."""
    try:
        validate_request_size(len(body))
    except RequestTooLargeError as exc:
        log.error("Request size validation failed: %s", exc)
        return json_error(HTTPStatus.REQUEST_ENTITY_TOO_LARGE, str(exc))

    try:
        batch = ProbeDataBatch.from_json(body)
    except ValueError as exc:
        log.error("Failed to parse JSON: %s", exc)
        return json_error(HTTPStatus.BAD_REQUEST, "Invalid JSON")

    log.debug("Received batch of %d probe data points", len(batch.data))

    try:
        writer.insert_batch(batch.data)
    except StoreError as exc:
        log.error("Failed to queue write: %s", exc)
        return json_error(HTTPStatus.INTERNAL_SERVER_ERROR, "Failed to queue write")

    return json_response(HTTPStatus.ACCEPTED, SuccessResponse(status="accepted"))


def handle_health() -> Response:
    """Report health, version and the maximum request size."""
    return json_response(
        HTTPStatus.OK,
        HealthResponse(
            status="healthy",
            version=VERSION,
            max_request_size_bytes=max_request_size(),
        ),
    )


def handle_not_found() -> Response:
    return json_error(HTTPStatus.NOT_FOUND, "Not found")


class _NoChart(Exception):
    """The chart cannot be drawn; the message is shown in the error image."""


def _parse_value(text: str) -> float:
    if not text or text != text.strip() or "_" in text:
        raise ValueError(f"invalid float literal: {text!r}")
    return float(text)


def _points(metrics: Iterable[MetricDataPoint]) -> Iterator[tuple[int, float]]:
    for metric in metrics:
        try:
            yield parse_timestamp(metric.timestamp), _parse_value(metric.probe_value)
        except ValueError:
            continue


def _series(
    name: str, unit: str, points: Iterable[tuple[int, float]], scale: float = 1.0
) -> TimeSeries:
    series = TimeSeries(name).with_unit(unit)
    for timestamp, value in points:
        series.add_point(timestamp, value / scale)
    return series


def _query(
    reader: MetricsReader, node_id: str, pattern: str, hours: int, what: str
) -> list[MetricDataPoint]:
    try:
        return reader.query_node_metrics(node_id, pattern, hours)
    except StoreError as exc:
        log.error("Failed to query %s: %s", what, exc)
        raise _NoChart("Query failed") from exc


def _chart_handler(
    kind: str,
) -> Callable[
    [Callable[[str, int, MetricsReader], ChartData]],
    Callable[[str, int, MetricsReader], Response],
]:
    def decorate(
        build: Callable[[str, int, MetricsReader], ChartData],
    ) -> Callable[[str, int, MetricsReader], Response]:
        @functools.wraps(build)
        def handler(node_id: str, hours: int, reader: MetricsReader) -> Response:
            log.debug("Generating %s chart for node %s (%dh)", kind, node_id, hours)
            try:
                chart_data = build(node_id, hours, reader)
            except _NoChart as exc:
                return svg_error(str(exc))
            return render_chart(chart_data)

        return handler

    return decorate


@_chart_handler("CPU")
def handle_cpu_chart(node_id: str, hours: int, reader: MetricsReader) -> Response:
    """Per-core CPU usage over the last hours."""
    metrics = _query(reader, node_id, "cpu_core_%_usage_percent", hours, "CPU metrics")
    if not metrics:
        raise _NoChart("No CPU data available")

    series_map = group_metrics_by_index(metrics, "cpu_core_")
    if not series_map:
        raise _NoChart("No CPU data found")

    chart = ChartData(f"CPU Usage - Node {shorten_uuid(node_id)}").with_labels(
        "Time", "Usage (%)"
    )
    for name, points in series_map.items():
        chart.add_series(_series(name, "%", points))
    return chart


@_chart_handler("memory")
def handle_memory_chart(node_id: str, hours: int, reader: MetricsReader) -> Response:
    """Used and total memory in GB over the last hours."""
    used = _query(reader, node_id, "memory_used_bytes", hours, "used memory")
    total = _query(reader, node_id, "memory_total_bytes", hours, "total memory")
    if not used:
        raise _NoChart("No memory data available")

    chart = ChartData(f"Memory Usage - Node {shorten_uuid(node_id)}").with_labels(
        "Time", "Memory (GB)"
    )
    chart.add_series(_series("Used Memory", "GB", _points(used), _BYTES_PER_GB))
    if total:
        chart.add_series(_series("Total Memory", "GB", _points(total), _BYTES_PER_GB))
    return chart


@_chart_handler("temperature")
def handle_temperature_chart(node_id: str, hours: int, reader: MetricsReader) -> Response:
    """Sensor temperatures over the last hours, without max and critical thresholds."""
    metrics = _query(
        reader, node_id, "temperature_sensor_%_celsius", hours, "temperature metrics"
    )
    readings = [
        m
        for m in metrics
        if "_max_celsius" not in m.probe_name and "_critical_celsius" not in m.probe_name
    ]
    if not readings:
        raise _NoChart("No temperature data available")

    series_map = group_metrics_by_index(readings, "temperature_sensor_")
    if not series_map:
        raise _NoChart("No temperature data found")

    chart = ChartData(f"Temperature - Node {shorten_uuid(node_id)}").with_labels(
        "Time", "Temperature (°C)"
    )
    for name, points in series_map.items():
        chart.add_series(_series(name, "°C", points))
    return chart


@_chart_handler("network")
def handle_network_chart(node_id: str, hours: int, reader: MetricsReader) -> Response:
    """Received and transmitted totals per interface, in GB."""
    rx = _query(
        reader, node_id, "network_interface_%_total_received_bytes", hours, "network RX metrics"
    )
    tx = _query(
        reader,
        node_id,
        "network_interface_%_total_transmitted_bytes",
        hours,
        "network TX metrics",
    )
    if not rx and not tx:
        raise _NoChart("No network data available")

    chart = ChartData(f"Network Traffic - Node {shorten_uuid(node_id)}").with_labels(
        "Time", "Traffic (GB)"
    )
    for metrics, direction in ((rx, "RX"), (tx, "TX")):
        for name, points in group_metrics_by_index(metrics, "network_interface_").items():
            series_name = f"{name.replace('Core', 'eth')} {direction}"
            chart.add_series(_series(series_name, "GB", points, _BYTES_PER_GB))
    return chart


@_chart_handler("disk")
def handle_disk_chart(node_id: str, hours: int, reader: MetricsReader) -> Response:
    """Usage percentage per disk over the last hours."""
    metrics = _query(reader, node_id, "disk_%_usage_percent", hours, "disk metrics")
    if not metrics:
        raise _NoChart("No disk data available")

    series_map = group_metrics_by_index(metrics, "disk_")
    if not series_map:
        raise _NoChart("No disk data found")

    chart = ChartData(f"Disk Usage - Node {shorten_uuid(node_id)}").with_labels(
        "Time", "Usage (%)"
    )
    for name, points in series_map.items():
        chart.add_series(_series(name.replace("Core", "Disk"), "%", points))
    return chart


@_chart_handler("forks")
def handle_forks_chart(node_id: str, hours: int, reader: MetricsReader) -> Response:
    """Cumulative process fork count over the last hours."""
    metrics = _query(reader, node_id, "forks_total", hours, "forks metrics")
    if not metrics:
        raise _NoChart("No forks data available")

    chart = ChartData(f"Process Forks - Node {shorten_uuid(node_id)}").with_labels(
        "Time", "Total Forks"
    )
    chart.add_series(_series("Forks (cumulative)", "", _points(metrics)))
    return chart


def render_chart(chart_data: ChartData) -> Response:
    """Render chart data at 1200x500; a render failure gives an error image."""
    renderer = SvgRenderer(TimeSeriesChart(_CHART_WIDTH, _CHART_HEIGHT))
    try:
        return svg(renderer.render_to_string(chart_data))
    except RenderError as exc:
        log.error("Failed to render chart: %s", exc)
        return svg_error("Render failed")