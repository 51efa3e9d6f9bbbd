# ferrview

A lightweight system monitoring tool made of two parts:

- **ferrview-node** runs on each machine you want to watch. It reads CPU,
  memory, disk, network, temperature and static system information, and on
  Linux the cumulative process fork count from `/proc/stat`. It sends the
  readings in batches to a collector over HTTP.
- **ferrview-collector** receives those batches and stores them in a daily
  SQLite database (`ferrview_YYYY-MM-DD.db`, named by the UTC date). It also
  serves a small web UI with per-node pages and SVG time-series charts.

## Installation

```
pip install .
```

The node agent uses `psutil` to read system information. The collector
uses only the standard library.

## Running a node

Create a configuration file, for example `ferrview-node.toml`:

```toml
node_id = "d6f0a1c9-0000-0000-0000-000000000000"
metrics_collector_addr = "localhost:8080"
collection_interval_secs = 60   # optional, defaults to 60

[probes.sysinfo]
cpu = true
memory = true
temperature = true
static_info = true
disk = true        # optional, defaults to false
network = true     # optional, defaults to false

[probes.procfs]
forks = true       # optional, defaults to false; yields nothing off Linux
```

`node_id`, `metrics_collector_addr` and the `[probes.sysinfo]` table with
`cpu`, `memory`, `temperature` and `static_info` are required. If
`metrics_collector_addr` has no `http://` or `https://` prefix, `http://` is
added; batches are posted to `/api/v1/probe` on that address.

Start the agent:

```
ferrview-node --config-file ferrview-node.toml
```

Without `--config-file` the agent reads `ferrview-node.toml` from the
current directory, and it exits with status 1 if the file cannot be loaded.
It then collects and sends a batch every interval until interrupted. A
failed send is tried up to three times in all, waiting 1 and then 2 seconds
between attempts; a send counts as successful on status 200 or 202.

## Running the collector

```
ferrview-collector --host localhost --port 8080 --data-dir data
```

The defaults are `localhost`, `8080` and `data`; the short forms are `-l`,
`-p` and `-d`, and `ferrview-collector help` shows the help. The host must
be an IP address (IPv6 in square brackets); `localhost` is accepted as the
name of the IPv4 loopback. On Ctrl+C the collector stops the server, writes
what is still queued and closes the database.

### Endpoints

| Method | Path                               | Description                                    |
|--------|------------------------------------|------------------------------------------------|
| POST   | `/api/v1/probe`                    | Submit a `{"data": [...]}` batch; returns 202  |
| GET    | `/health`                          | Status, version and maximum request size       |
| GET    | `/ui`                              | List of nodes in today's database              |
| GET    | `/ui/node/{node_id}`               | Page for one node                              |
| GET    | `/ui/node/{node_id}/{chart}.svg`   | Charts: `cpu`, `memory`, `temperature`, `network`, `disk`, `forks` |

Request bodies are limited to 10 MiB (larger ones get 413, malformed ones
400). Errors from the API are JSON objects of the form `{"error": "..."}`;
a chart that cannot be drawn comes back as an SVG image showing the error,
with status 500. Charts cover the last 24 hours.

## Probe data format

Each reading is one `ProbeDataPoint`:

```json
{
  "node_id": "test-node",
  "timestamp": "2024-01-01T12:00:00Z",
  "probe_type": "sysinfo",
  "probe_name": "cpu_count",
  "probe_value": "8"
}
```

Every value is sent as a string. Timestamps are UTC in the
`YYYY-MM-DDTHH:MM:SSZ` form.

## Using the library

```python
from ferrview.chart_types import ChartData, TimeSeries, TimeSeriesChart
from ferrview.renderer import SvgRenderer

series = TimeSeries("cpu_core_0").with_unit("%")
series.add_point(1733650890, 12.5)
series.add_point(1733650950, 18.0)

chart = ChartData("CPU Usage").with_labels("Time", "Usage (%)")
chart.add_series(series)

svg = SvgRenderer(TimeSeriesChart(800, 400)).render_to_string(chart)
```

Other entry points: `ferrview.models` (`ProbeDataPoint`, `ProbeDataBatch`,
`validate_request_size`), `ferrview.probes` (`probe_cpu`, `probe_memory`,
`probe_disks`, `probe_networks`, `probe_temperature`, `probe_static_info`,
`probe_forks`), `ferrview.client.HttpClient`, `ferrview.db` (daily
`Database` and query functions) and `ferrview.server.HttpServer`.

## Logging

Both commands log to standard error with UTC timestamps. The level is
`INFO` unless the `LOG_LEVEL` environment variable names another one.

## Limits

- The collector has no authentication and serves plain HTTP only.
- Charts always cover a fixed 24 hours; there is no time-range option.
- The reader used for charts opens the database of the day the collector
  started, so after UTC midnight the charts keep reading that file until
  the collector is restarted, while new data goes to the new day's file.
- The web pages are plain, unstyled HTML.