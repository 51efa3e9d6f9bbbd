"""Probes that sample the local system and turn readings into probe data points."""

from __future__ import annotations

import logging
import math
import platform
import sys
from dataclasses import dataclass, field
from pathlib import Path

import psutil

from ferrview.models import ProbeDataPoint
from ferrview.timestamp import utc_timestamp

log = logging.getLogger(__name__)

PROC_STAT = "/proc/stat"


def _format_float(value: float) -> str:
    """Shortest decimal form of a float; whole numbers have no fractional part."""
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "inf" if value > 0 else "-inf"
    if value == int(value):
        return str(int(value))
    return repr(float(value))


@dataclass
class _Batch:
    node_id: str
    probe_type: str = "sysinfo"
    timestamp: str = field(default_factory=utc_timestamp)
    points: list[ProbeDataPoint] = field(default_factory=list)

    def add(self, name: str, value: object) -> None:
        self.points.append(
            ProbeDataPoint(
                node_id=self.node_id,
                timestamp=self.timestamp,
                probe_type=self.probe_type,
                probe_name=name,
                probe_value=str(value),
            )
        )


def probe_cpu(node_id: str) -> list[ProbeDataPoint]:
    """Core count, and per-core frequency (MHz) and usage (%)."""
    log.info("Starting CPU probe")
    usages = psutil.cpu_percent(percpu=True) or []
    try:
        freqs = psutil.cpu_freq(percpu=True) or []
    except (NotImplementedError, OSError, AttributeError):
        freqs = []

    core_count = len(usages)
    log.info("Detected %d CPU cores", core_count)

    batch = _Batch(node_id)
    batch.add("cpu_core_count", core_count)
    for idx, usage in enumerate(usages):
        if len(freqs) == core_count:
            freq = freqs[idx].current
        elif len(freqs) == 1:
            freq = freqs[0].current
        else:
            freq = 0
        batch.add(f"cpu_core_{idx}_frequency_mhz", int(freq or 0))
        batch.add(f"cpu_core_{idx}_usage_percent", _format_float(usage))
    return batch.points


def probe_memory(node_id: str) -> list[ProbeDataPoint]:
    """Total, used and available memory, and total and used swap, in bytes."""
    log.info("Starting memory probe")
    vm = psutil.virtual_memory()
    swap = psutil.swap_memory()

    batch = _Batch(node_id)
    batch.add("memory_total_bytes", vm.total)
    batch.add("memory_used_bytes", max(vm.total - vm.available, 0))
    batch.add("memory_available_bytes", vm.available)
    batch.add("swap_total_bytes", swap.total)
    batch.add("swap_used_bytes", swap.used)
    return batch.points


def probe_disks(node_id: str) -> list[ProbeDataPoint]:
    """Disk count and, per mounted disk, name, space, usage, filesystem and mount point."""
    log.info("Starting disk probe")
    disks = []
    for part in psutil.disk_partitions(all=False):
        try:
            usage = psutil.disk_usage(part.mountpoint)
        except OSError as exc:
            log.debug("Skipping %s: %s", part.mountpoint, exc)
            continue
        disks.append((part, usage.total, usage.free))
    log.info("Detected %d disk(s)", len(disks))

    batch = _Batch(node_id)
    batch.add("disk_count", len(disks))
    for idx, (part, total, available) in enumerate(disks):
        log.info("Processing disk %d: %s", idx, part.device)
        batch.add(f"disk_{idx}_name", part.device)
        batch.add(f"disk_{idx}_total_bytes", total)
        batch.add(f"disk_{idx}_available_bytes", available)
        if total > 0:
            usage_percent = max(total - available, 0) / total * 100.0
            batch.add(f"disk_{idx}_usage_percent", f"{usage_percent:.2f}")
        batch.add(f"disk_{idx}_filesystem_type", part.fstype)
        batch.add(f"disk_{idx}_mount_point", part.mountpoint)

    log.info("Collected %d disk metrics", len(batch.points))
    return batch.points


def probe_networks(node_id: str) -> list[ProbeDataPoint]:
    """Interface count and per-interface byte, packet and error counters."""
    log.info("Starting network probe")
    counters = psutil.net_io_counters(pernic=True) or {}
    log.info("Detected %d network interface(s)", len(counters))

    batch = _Batch(node_id)
    batch.add("network_interface_count", len(counters))
    for idx, (name, io) in enumerate(counters.items()):
        log.info("Processing network interface %d: %s", idx, name)
        prefix = f"network_interface_{idx}"
        batch.add(f"{prefix}_name", name)
        batch.add(f"{prefix}_total_received_bytes", io.bytes_recv)
        batch.add(f"{prefix}_total_transmitted_bytes", io.bytes_sent)
        batch.add(f"{prefix}_packets_received", io.packets_recv)
        batch.add(f"{prefix}_packets_transmitted", io.packets_sent)
        batch.add(f"{prefix}_errors_on_received", io.errin)
        batch.add(f"{prefix}_errors_on_transmitted", io.errout)

    log.info("Collected %d network metrics", len(batch.points))
    return batch.points


def _temperature_components() -> list[tuple[str, float | None, float | None, float | None]]:
    reader = getattr(psutil, "sensors_temperatures", None)
    if reader is None:
        return []
    try:
        sensors = reader() or {}
    except (OSError, NotImplementedError):
        return []
    components = []
    for chip, entries in sensors.items():
        for entry in entries:
            label = f"{chip} {entry.label}" if entry.label else chip
            components.append((label, entry.current, entry.high, entry.critical))
    return components


def probe_temperature(node_id: str) -> list[ProbeDataPoint]:
    """Sensor count and, per sensor, temperature, label, maximum and critical in °C."""
    log.info("Starting temperature probe")
    components = _temperature_components()
    log.info("Detected %d temperature sensors", len(components))

    batch = _Batch(node_id)
    batch.add("temperature_sensor_count", len(components))
    if not components:
        log.info("No temperature sensors available")
        return batch.points

    for idx, (label, current, high, critical) in enumerate(components):
        prefix = f"temperature_sensor_{idx}"
        if current is not None:
            batch.add(f"{prefix}_celsius", _format_float(current))
        batch.add(f"{prefix}_label", label)
        if high is not None:
            batch.add(f"{prefix}_max_celsius", _format_float(high))
        if critical is not None:
            batch.add(f"{prefix}_critical_celsius", _format_float(critical))
    return batch.points


def _os_release() -> dict[str, str]:
    try:
        return platform.freedesktop_os_release()
    except OSError:
        return {}


def _os_name_and_version() -> tuple[str, str]:
    system = platform.system()
    if system == "Linux":
        release = _os_release()
        return release.get("NAME", system), release.get("VERSION_ID", "")
    if system == "Darwin":
        return system, platform.mac_ver()[0]
    return system, platform.version()


def probe_static_info(node_id: str) -> list[ProbeDataPoint]:
    """Architecture, OS name, kernel version, OS version and hostname."""
    log.info("Collecting static system information")
    os_name, os_version = _os_name_and_version()

    batch = _Batch(node_id)
    batch.add("system_cpu_arch", platform.machine())
    batch.add("system_os_name", os_name)
    batch.add("system_kernel_version", platform.release())
    batch.add("system_os_version", os_version)
    batch.add("system_hostname", platform.node())

    log.info("Collected %d static system metrics", len(batch.points))
    return batch.points


def probe_forks(node_id: str, stat_path: str | Path | None = None) -> list[ProbeDataPoint]:
    """Cumulative number of processes created since boot, from /proc/stat.

    Without stat_path, platforms other than Linux yield no points. Raises
    OSError if the stat file cannot be read.
    """
    if stat_path is None:
        if not sys.platform.startswith("linux"):
            log.info("Forks probe not supported on this platform")
            return []
        stat_path = PROC_STAT

    log.info("Starting forks probe")
    batch = _Batch(node_id, probe_type="procfs")
    content = Path(stat_path).read_text(encoding="utf-8", errors="replace")

    for line in content.splitlines():
        if not line.startswith("processes "):
            continue
        parts = line.split()
        if len(parts) >= 2:
            log.info("Fork count: %s", parts[1])
            batch.add("forks_total", parts[1])
            return batch.points

    log.warning("Could not find 'processes' line in %s", stat_path)
    return batch.points