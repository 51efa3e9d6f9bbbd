"""Web page handlers: the node list and the per-node dashboard."""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable
from html import escape
from http import HTTPStatus
from pathlib import Path
from urllib.parse import quote

from ferrview.db import (
    Database,
    MetricDataPoint,
    StoreError,
    query_all_node_ids,
    query_latest_node_metrics,
)
from ferrview.handlers import VERSION
from ferrview.helpers import (
    NodeDetails,
    NodeSummary,
    current_date,
    format_display_timestamp,
    format_memory,
    format_temp,
    shorten_uuid,
)
from ferrview.response import Response, html, html_error

log = logging.getLogger(__name__)

_BYTES_PER_GB = 1_073_741_824.0
CHARTS = ("cpu", "memory", "temperature", "network", "disk", "forks")


def _try_float(text: str) -> float | None:
    if not text or text != text.strip() or "_" in text:
        return None
    try:
        return float(text)
    except ValueError:
        return None


def _fmax(current: float, value: float) -> float:
    if math.isnan(current):
        return value
    if math.isnan(value):
        return current
    return max(current, value)


def build_node_summary(node_id: str, metrics: Iterable[MetricDataPoint]) -> NodeSummary:
    """Summarise a node's latest metrics for the home page list."""
    summary = NodeSummary(node_id)
    max_temp: float | None = None

    for metric in metrics:
        if summary.last_seen is None and metric.timestamp:
            summary.last_seen = metric.timestamp
        name, value = metric.probe_name, metric.probe_value
        match name:
            case "system_hostname":
                summary.hostname = value
            case "system_cpu_arch":
                summary.cpu_arch = value
            case "cpu_core_count":
                summary.cpu_cores = value
            case "memory_total_bytes":
                total = _try_float(value)
                if total is not None:
                    summary.memory_total_gb = total / _BYTES_PER_GB
            case "temperature_sensor_count":
                summary.temp_sensors = value
            case _:
                if name.startswith("temperature_sensor_") and name.endswith("_celsius"):
                    temp = _try_float(value)
                    if temp is not None:
                        max_temp = temp if max_temp is None else _fmax(max_temp, temp)

    summary.max_temp_celsius = max_temp
    return summary


def build_node_details(node_id: str, metrics: Iterable[MetricDataPoint]) -> NodeDetails:
    """Collect a node's latest metrics into the details shown on its dashboard."""
    details = NodeDetails(node_id)

    for metric in metrics:
        if details.last_seen is None and metric.timestamp:
            details.last_seen = metric.timestamp
        value = metric.probe_value
        match metric.probe_name:
            case "system_hostname":
                details.hostname = value
            case "system_os_name":
                details.os_name = value
            case "system_kernel_version":
                details.kernel_version = value
            case "system_cpu_arch":
                details.cpu_arch = value
            case "cpu_core_count":
                details.cpu_cores = value
            case "memory_total_bytes":
                total = _try_float(value)
                if total is not None:
                    details.memory_total_gb = total / _BYTES_PER_GB
            case _:
                pass

    return details


def _page(title: str, body: str) -> str:
    return (
        "<!DOCTYPE html>\n"
        '<html lang="en">\n<head>\n<meta charset="utf-8">\n'
        f"<title>{escape(title)}</title>\n</head>\n<body>\n"
        f"{body}\n"
        f"<footer>ferrview v{escape(VERSION)}</footer>\n"
        "</body>\n</html>\n"
    )


def _or_na(value: str | None) -> str:
    return escape(value) if value else "N/A"


def _node_link(node_id: str) -> str:
    return f"/ui/node/{quote(node_id, safe='')}"


def _render_home(nodes: list[NodeSummary]) -> str:
    rows = "\n".join(
        "<tr>"
        f'<td><a href="{escape(_node_link(n.node_id))}">{escape(shorten_uuid(n.node_id))}</a></td>'
        f"<td>{_or_na(n.hostname)}</td>"
        f"<td>{_or_na(n.cpu_arch)}</td>"
        f"<td>{_or_na(n.cpu_cores)}</td>"
        f"<td>{escape(format_memory(n.memory_total_gb))}</td>"
        f"<td>{_or_na(n.temp_sensors)}</td>"
        f"<td>{escape(format_temp(n.max_temp_celsius))}</td>"
        f"<td>{escape(format_display_timestamp(n.last_seen))}</td>"
        "</tr>"
        for n in nodes
    )
    body = (
        f"<h1>Nodes ({len(nodes)})</h1>\n"
        "<table>\n<tr><th>Node</th><th>Hostname</th><th>Arch</th><th>Cores</th>"
        "<th>Memory</th><th>Sensors</th><th>Max temp</th><th>Last seen</th></tr>\n"
        f"{rows}\n</table>"
    )
    return _page("Ferrview", body)


def _render_node(node: NodeDetails) -> str:
    display_name = node.hostname or shorten_uuid(node.node_id)
    facts = [
        ("Node ID", escape(node.node_id)),
        ("Hostname", _or_na(node.hostname)),
        ("OS", _or_na(node.os_name)),
        ("Kernel", _or_na(node.kernel_version)),
        ("Architecture", _or_na(node.cpu_arch)),
        ("CPU cores", _or_na(node.cpu_cores)),
        ("Memory", escape(format_memory(node.memory_total_gb))),
        ("Last seen", escape(format_display_timestamp(node.last_seen))),
    ]
    items = "\n".join(f"<dt>{label}</dt><dd>{value}</dd>" for label, value in facts)
    base = _node_link(node.node_id)
    charts = "\n".join(
        f'<img src="{escape(base)}/{chart}.svg" alt="{chart} chart">' for chart in CHARTS
    )
    body = (
        f'<p><a href="/ui">All nodes</a></p>\n<h1>{escape(display_name)}</h1>\n'
        f"<dl>\n{items}\n</dl>\n{charts}"
    )
    return _page(f"Ferrview - {display_name}", body)


def _render_error(title: str, message: str) -> Response:
    body = f"<h1>{escape(title)}</h1>\n<p>{escape(message)}</p>\n<p><a href=\"/ui\">Back</a></p>"
    return html_error(HTTPStatus.INTERNAL_SERVER_ERROR, _page(title, body))


def handle_home(data_dir: str | Path) -> Response:
    """The page listing every node seen today."""
    log.debug("Handling home page request")
    try:
        db = Database.open_for_date(data_dir, current_date())
    except StoreError as exc:
        log.error("Failed to open database: %s", exc)
        return _render_error("Database Error", "Failed to connect to database")

    with db:
        try:
            node_ids = query_all_node_ids(db.conn)
        except StoreError as exc:
            log.error("Failed to query node IDs: %s", exc)
            return _render_error("Query Error", "Failed to load node list")

        nodes = []
        for node_id in node_ids:
            try:
                metrics = query_latest_node_metrics(db.conn, node_id)
            except StoreError:
                metrics = []
            nodes.append(build_node_summary(node_id, metrics))

    return html(_render_home(nodes))


def handle_node_dashboard(node_id: str, data_dir: str | Path) -> Response:
    """The dashboard page of one node."""
    log.debug("Handling node dashboard for %s", node_id)
    try:
        db = Database.open_for_date(data_dir, current_date())
    except StoreError as exc:
        log.error("Failed to open database: %s", exc)
        return _render_error("Database Error", "Failed to connect to database")

    with db:
        try:
            metrics = query_latest_node_metrics(db.conn, node_id)
        except StoreError as exc:
            log.error("Failed to query metrics for %s: %s", node_id, exc)
            return _render_error("Query Error", "Failed to load node metrics")

    if not metrics:
        return _render_error("Not Found", f"No data found for node {node_id}")

    return html(_render_node(build_node_details(node_id, metrics)))