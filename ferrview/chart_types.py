"""Data containers for time-series charts."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class MetricPoint:
    """A single data point: a Unix timestamp (or index) and a value."""

    timestamp: int
    value: float

    def __str__(self) -> str:
        return f"({self.timestamp}, {self.value:.2f})"


@dataclass
class TimeSeries:
    """All points of one metric, in chronological order."""

    name: str
    points: list[MetricPoint] = field(default_factory=list)
    unit: str | None = None

    def with_unit(self, unit: str) -> TimeSeries:
        """Set the unit and return the series, for chaining."""
        self.unit = unit
        return self

    def add_point(self, timestamp: int, value: float) -> None:
        self.points.append(MetricPoint(timestamp, value))

    def is_empty(self) -> bool:
        return not self.points


@dataclass
class ChartData:
    """A chart title, its axis labels and the series to plot."""

    title: str
    series: list[TimeSeries] = field(default_factory=list)
    x_label: str = "Time"
    y_label: str = "Value"

    def with_labels(self, x_label: str, y_label: str) -> ChartData:
        """Set both axis labels and return the chart data, for chaining."""
        self.x_label = x_label
        self.y_label = y_label
        return self

    def add_series(self, series: TimeSeries) -> None:
        self.series.append(series)

    def is_empty(self) -> bool:
        """True when there is no series or every series has no points."""
        return all(s.is_empty() for s in self.series)


@dataclass
class TimeSeriesChart:
    """Rendering configuration: size in pixels, grid and legend switches."""

    width: int = 800
    height: int = 400
    show_grid: bool = True
    show_legend: bool = True