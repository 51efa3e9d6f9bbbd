"""The node agent: collects enabled probes and sends them to the collector."""

from __future__ import annotations

import argparse
import logging
import os
import time
from collections.abc import Callable, Sequence

import psutil

from ferrview.client import ClientError, HttpClient
from ferrview.config import Config, ConfigError
from ferrview.models import ProbeDataPoint
from ferrview.probes import (
    probe_cpu,
    probe_disks,
    probe_forks,
    probe_memory,
    probe_networks,
    probe_static_info,
    probe_temperature,
)
from ferrview.retry import send_with_retry

log = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "ferrview-node.toml"
SEND_RETRIES = 3
_CPU_WARMUP_SECONDS = 0.2


def collect(config: Config) -> list[ProbeDataPoint]:
    """Run every probe enabled in config and return all points collected."""
    node_id = config.node_id
    sysinfo = config.probes.sysinfo
    selected: list[tuple[bool, str, Callable[[str], list[ProbeDataPoint]]]] = [
        (sysinfo.static_info, "static info", probe_static_info),
        (sysinfo.cpu, "CPU", probe_cpu),
        (sysinfo.memory, "memory", probe_memory),
        (sysinfo.disk, "disk", probe_disks),
        (sysinfo.temperature, "temperature", probe_temperature),
        (sysinfo.network, "network", probe_networks),
    ]

    data: list[ProbeDataPoint] = []
    for enabled, label, probe in selected:
        if enabled:
            points = probe(node_id)
            log.debug("Collected %d %s metrics", len(points), label)
            data.extend(points)

    if config.probes.procfs.forks:
        try:
            points = probe_forks(node_id)
        except OSError as exc:
            log.error("Failed to collect fork metrics: %s", exc)
        else:
            log.debug("Collected %d fork metrics", len(points))
            data.extend(points)

    log.info("Collected %d total metrics", len(data))
    return data


def _run(config: Config, client: HttpClient) -> None:
    interval = config.collection_interval_secs
    log.info("Starting collection loop")
    while True:
        data = collect(config)
        if data:
            try:
                send_with_retry(lambda: client.send_batch(data), SEND_RETRIES)
            except ClientError as exc:
                log.error("Failed to send batch after retries: %s", exc)
            else:
                log.info("Batch sent successfully")
        else:
            log.info("No metrics collected, skipping send")
        log.debug("Sleeping for %ds", interval)
        time.sleep(interval)


def _setup_logging() -> None:
    root = logging.getLogger()
    if root.handlers:
        return
    name = os.environ.get("LOG_LEVEL", "INFO").upper()
    level = logging.getLevelNamesMapping().get(name, logging.INFO)
    formatter = logging.Formatter(
        "%(asctime)s %(levelname)s %(name)s: %(message)s", datefmt="%Y-%m-%dT%H:%M:%SZ"
    )
    formatter.converter = time.gmtime
    handler = logging.StreamHandler()
    handler.setFormatter(formatter)
    root.addHandler(handler)
    root.setLevel(level)


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="ferrview-node", description="Metrics collection node"
    )
    parser.add_argument(
        "--config-file", default=DEFAULT_CONFIG_FILE, help="config file location"
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    """Run the node agent until interrupted; return 1 if the config cannot be loaded."""
    _setup_logging()
    log.info("Starting ferrview-node")

    args = _parse_args(argv)
    log.debug("Args: %s", args)
    log.info("Config file: %s", args.config_file)

    try:
        config = Config.load(args.config_file)
    except ConfigError as exc:
        log.error("Failed to load configuration: %s", exc)
        return 1

    log.debug("Config: %s", config)
    log.info("Node ID: %s", config.node_id)
    log.info("Collector address: %s", config.metrics_collector_addr)
    log.info("Collection interval: %ds", config.collection_interval_secs)

    client = HttpClient(config.metrics_collector_addr)

    log.info("Performing initial CPU refresh for accurate readings")
    psutil.cpu_percent(percpu=True)
    time.sleep(_CPU_WARMUP_SECONDS)

    try:
        _run(config, client)
    except KeyboardInterrupt:
        log.info("Interrupted, stopping")
    return 0