import pytest

from ferrview.config import Config
from ferrview.node import collect, main


def make_config(**sysinfo):
    flags = {"cpu": False, "memory": False, "temperature": False, "static_info": False}
    flags.update(sysinfo)
    lines = "\n".join(f"{key} = {'true' if value else 'false'}" for key, value in flags.items())
    return Config.from_str(
        'node_id = "test-node"\n'
        'metrics_collector_addr = "localhost:8080"\n'
        "[probes.sysinfo]\n" + lines + "\n"
    )


def test_collect_nothing_enabled():
    assert collect(make_config()) == []


def test_collect_memory_only():
    points = collect(make_config(memory=True))
    assert [p.probe_name for p in points] == [
        "memory_total_bytes",
        "memory_used_bytes",
        "memory_available_bytes",
        "swap_total_bytes",
        "swap_used_bytes",
    ]
    assert {p.node_id for p in points} == {"test-node"}


def test_collect_static_info_only():
    points = collect(make_config(static_info=True))
    assert [p.probe_name for p in points] == [
        "system_cpu_arch",
        "system_os_name",
        "system_kernel_version",
        "system_os_version",
        "system_hostname",
    ]


def test_collect_cpu_counts_match():
    points = collect(make_config(cpu=True))
    assert points[0].probe_name == "cpu_core_count"
    assert len(points) == 1 + 2 * int(points[0].probe_value)
    assert all(p.probe_type == "sysinfo" for p in points)


def test_collect_orders_static_before_memory():
    points = collect(make_config(static_info=True, memory=True))
    names = [p.probe_name for p in points]
    assert names.index("system_hostname") < names.index("memory_total_bytes")


def test_main_missing_config_file(tmp_path):
    assert main(["--config-file", str(tmp_path / "missing.toml")]) == 1


def test_main_invalid_toml(tmp_path):
    path = tmp_path / "bad.toml"
    path.write_text("node_id = [unterminated\n", encoding="utf-8")
    assert main(["--config-file", str(path)]) == 1


def test_main_config_without_probes(tmp_path):
    path = tmp_path / "node.toml"
    path.write_text(
        'node_id = "test-node"\nmetrics_collector_addr = "localhost:8080"\n', encoding="utf-8"
    )
    assert main(["--config-file", str(path)]) == 1


def test_main_rejects_unknown_option():
    with pytest.raises(SystemExit) as excinfo:
        main(["--no-such-option"])
    assert excinfo.value.code == 2