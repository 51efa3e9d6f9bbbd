"""Node agent configuration loaded from TOML."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

DEFAULT_COLLECTION_INTERVAL_SECS = 60

_MISSING = object()


class ConfigError(Exception):
    """The configuration could not be read or is invalid."""


def _get(table: dict[str, Any], key: str, kind: type, where: str, default: Any = _MISSING) -> Any:
    if key not in table:
        if default is _MISSING:
            raise ConfigError(f"missing field `{where}{key}`")
        return default
    value = table[key]
    if kind is bool:
        valid = isinstance(value, bool)
    elif kind is int:
        valid = isinstance(value, int) and not isinstance(value, bool) and value >= 0
    else:
        valid = isinstance(value, kind)
    if not valid:
        raise ConfigError(f"invalid type for `{where}{key}`")
    return value


@dataclass
class SysinfoProbes:
    cpu: bool
    memory: bool
    temperature: bool
    static_info: bool
    disk: bool = False
    network: bool = False

    @classmethod
    def _from_table(cls, table: dict[str, Any]) -> SysinfoProbes:
        where = "probes.sysinfo."
        return cls(
            cpu=_get(table, "cpu", bool, where),
            memory=_get(table, "memory", bool, where),
            temperature=_get(table, "temperature", bool, where),
            static_info=_get(table, "static_info", bool, where),
            disk=_get(table, "disk", bool, where, False),
            network=_get(table, "network", bool, where, False),
        )


@dataclass
class ProcfsProbes:
    forks: bool = False

    @classmethod
    def _from_table(cls, table: dict[str, Any]) -> ProcfsProbes:
        return cls(forks=_get(table, "forks", bool, "probes.procfs.", False))


@dataclass
class ProbesConfig:
    sysinfo: SysinfoProbes
    procfs: ProcfsProbes = field(default_factory=ProcfsProbes)

    @classmethod
    def _from_table(cls, table: dict[str, Any]) -> ProbesConfig:
        sysinfo = _get(table, "sysinfo", dict, "probes.")
        procfs = _get(table, "procfs", dict, "probes.", None)
        return cls(
            sysinfo=SysinfoProbes._from_table(sysinfo),
            procfs=ProcfsProbes._from_table(procfs) if procfs is not None else ProcfsProbes(),
        )


@dataclass
class Config:
    node_id: str
    metrics_collector_addr: str
    probes: ProbesConfig
    collection_interval_secs: int = DEFAULT_COLLECTION_INTERVAL_SECS

    @classmethod
    def load(cls, path: str | Path) -> Config:
        """Read and parse the configuration file at path."""
        try:
            content = Path(path).read_text(encoding="utf-8")
        except OSError as exc:
            raise ConfigError(f"cannot read {path}: {exc}") from exc
        return cls.from_str(content)

    @classmethod
    def from_str(cls, content: str) -> Config:
        """Parse configuration from TOML text."""
        try:
            table = tomllib.loads(content)
        except tomllib.TOMLDecodeError as exc:
            raise ConfigError(f"invalid TOML: {exc}") from exc
        return cls(
            node_id=_get(table, "node_id", str, ""),
            metrics_collector_addr=_get(table, "metrics_collector_addr", str, ""),
            probes=ProbesConfig._from_table(_get(table, "probes", dict, "")),
            collection_interval_secs=_get(
                table, "collection_interval_secs", int, "", DEFAULT_COLLECTION_INTERVAL_SECS
            ),
        )