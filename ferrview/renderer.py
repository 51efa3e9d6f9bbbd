"""Rendering time-series chart data to SVG."""

from __future__ import annotations

import io
import math
import sys
from datetime import datetime, timezone
from enum import Enum
from itertools import pairwise
from typing import BinaryIO
from xml.sax.saxutils import escape

from ferrview.chart_types import ChartData, TimeSeriesChart

_MARGIN = 10
_CAPTION_SIZE = 30
_X_LABEL_AREA = 40
_Y_LABEL_AREA = 60
_LABEL_FONT = 12
_X_TICKS = 6
_Y_TICKS = 8

_PALETTE = (
    (230, 25, 75), (60, 180, 75), (255, 225, 25), (0, 130, 200), (245, 130, 48),
    (145, 30, 180), (70, 240, 240), (240, 50, 230), (210, 245, 60), (250, 190, 190),
    (0, 128, 128), (230, 190, 255), (170, 110, 40), (255, 250, 200), (128, 0, 0),
    (170, 255, 195), (128, 128, 0), (255, 215, 180), (0, 0, 128), (128, 128, 128),
)


class RenderErrorKind(Enum):
    DRAWING = "Drawing error"
    DATA = "Data error"


class RenderError(Exception):
    """Rendering a chart failed."""

    def __init__(self, kind: RenderErrorKind, message: str) -> None:
        self.kind = kind
        self.message = message
        super().__init__(f"{kind.value}: {message}")


def _esc(text: str) -> str:
    return escape(text, {'"': "&quot;"})


def _num(value: float) -> str:
    return f"{value:.2f}"


def _color(idx: int) -> str:
    r, g, b = _PALETTE[idx % len(_PALETTE)]
    return f"rgb({r},{g},{b})"


def _format_x_label(x: int) -> str:
    try:
        dt = datetime.fromtimestamp(x, timezone.utc)
    except (OverflowError, OSError, ValueError):
        return str(x)
    return f"{dt.year:04d}-{dt.month:02d}-{dt.day:02d}\n{dt.hour:02d}:{dt.minute:02d}"


def _x_ticks(lo: int, hi: int) -> list[int]:
    if hi <= lo:
        return [lo]
    n = min(_X_TICKS, hi - lo + 1)
    return sorted({lo + round((hi - lo) * k / (n - 1)) for k in range(n)})


def _y_ticks(lo: float, hi: float) -> tuple[list[float], float]:
    if hi < lo:
        lo, hi = hi, lo
    span = hi - lo
    if not math.isfinite(span) or span <= 0:
        return ([lo] if math.isfinite(lo) else []), 0.0
    magnitude = 10 ** math.floor(math.log10(span / _Y_TICKS))
    step = magnitude
    for mult in (1, 2, 5, 10):
        step = mult * magnitude
        if span / step <= _Y_TICKS:
            break
    start = math.ceil(lo / step) * step
    ticks = []
    k = 0
    while (value := start + k * step) <= hi + step * 1e-9:
        ticks.append(value)
        k += 1
    return ticks, step


def _format_y_label(value: float, step: float) -> str:
    decimals = max(0, -math.floor(math.log10(step))) if step > 0 else 2
    return f"{value:.{decimals}f}"


class SvgRenderer:
    """Renders ChartData to SVG according to a TimeSeriesChart configuration."""

    def __init__(self, config: TimeSeriesChart) -> None:
        self.config = config

    def render_to_string(self, data: ChartData) -> str:
        """Render the chart and return the SVG document."""
        buffer = io.BytesIO()
        self.render_to_writer(buffer, data)
        try:
            return buffer.getvalue().decode("utf-8")
        except UnicodeDecodeError as exc:
            raise RenderError(RenderErrorKind.DATA, f"UTF-8 error: {exc}") from exc

    def render_to_writer(self, writer: BinaryIO, data: ChartData) -> None:
        """Render the chart and write the UTF-8 encoded SVG to a binary stream."""
        if data.is_empty():
            raise RenderError(RenderErrorKind.DATA, "No data available to render")
        svg = self._render(data)
        try:
            writer.write(svg.encode("utf-8"))
        except OSError as exc:
            raise RenderError(RenderErrorKind.DATA, f"Write error: {exc}") from exc

    def calculate_bounds(self, data: ChartData) -> tuple[int, int, float, float]:
        """Return (x_min, x_max, y_min, y_max) over all points, never zero-width."""
        x_min = x_max = None
        y_min = y_max = None
        for series in data.series:
            for point in series.points:
                x_min = point.timestamp if x_min is None else min(x_min, point.timestamp)
                x_max = point.timestamp if x_max is None else max(x_max, point.timestamp)
                if math.isnan(point.value):
                    continue
                y_min = point.value if y_min is None else min(y_min, point.value)
                y_max = point.value if y_max is None else max(y_max, point.value)

        if x_min is None or x_max is None or y_min is None or y_max is None:
            raise RenderError(RenderErrorKind.DATA, "No valid data points")

        if x_min == x_max:
            x_max = x_min + 1
        if abs(y_max - y_min) < sys.float_info.epsilon:
            y_max = y_min + 1.0
        return x_min, x_max, y_min, y_max

    def _render(self, data: ChartData) -> str:
        cfg = self.config
        x_min, x_max, y_lo, y_hi = self.calculate_bounds(data)

        y_margin = (y_hi - y_lo) * 0.1
        y_min = y_lo - y_margin
        if not y_min > 0.0:
            y_min = 0.0
        y_max = y_hi + y_margin

        left = _MARGIN + _Y_LABEL_AREA
        right = cfg.width - _MARGIN
        top = _MARGIN + _CAPTION_SIZE + _MARGIN
        bottom = cfg.height - _MARGIN - _X_LABEL_AREA
        if right <= left or bottom <= top:
            raise RenderError(
                RenderErrorKind.DRAWING, "Chart build error: drawing area is too small"
            )

        x_span = x_max - x_min
        y_span = y_max - y_min
        if not math.isfinite(y_span) or y_span == 0:
            y_span = 1.0

        def sx(x: float) -> float:
            return left + (x - x_min) / x_span * (right - left)

        def sy(y: float) -> float:
            return bottom - (y - y_min) / y_span * (bottom - top)

        parts = [
            f'<svg width="{cfg.width}" height="{cfg.height}" '
            f'viewBox="0 0 {cfg.width} {cfg.height}" xmlns="http://www.w3.org/2000/svg">',
            f'<rect x="0" y="0" width="{cfg.width}" height="{cfg.height}" fill="#FFFFFF"/>',
            f'<text x="{_num(cfg.width / 2)}" y="{_MARGIN + _CAPTION_SIZE}" '
            f'text-anchor="middle" font-family="sans-serif" font-size="{_CAPTION_SIZE}">'
            f"{_esc(data.title)}</text>",
        ]

        x_ticks = _x_ticks(x_min, x_max)
        y_ticks, y_step = _y_ticks(y_min, y_max)

        if cfg.show_grid:
            for x in x_ticks:
                px = _num(sx(x))
                parts.append(
                    f'<line x1="{px}" y1="{top}" x2="{px}" y2="{bottom}" '
                    'stroke="#000000" stroke-opacity="0.2"/>'
                )
            for y in y_ticks:
                py = _num(sy(y))
                parts.append(
                    f'<line x1="{left}" y1="{py}" x2="{right}" y2="{py}" '
                    'stroke="#000000" stroke-opacity="0.2"/>'
                )

        parts.append(
            f'<line x1="{left}" y1="{top}" x2="{left}" y2="{bottom}" stroke="#000000"/>'
        )
        parts.append(
            f'<line x1="{left}" y1="{bottom}" x2="{right}" y2="{bottom}" stroke="#000000"/>'
        )

        for x in x_ticks:
            px = _num(sx(x))
            parts.append(
                f'<line x1="{px}" y1="{bottom}" x2="{px}" y2="{bottom + 5}" stroke="#000000"/>'
            )
            lines = _format_x_label(x).split("\n")
            spans = "".join(
                f'<tspan x="{px}" dy="{"0" if i == 0 else "1.2em"}">{_esc(line)}</tspan>'
                for i, line in enumerate(lines)
            )
            parts.append(
                f'<text x="{px}" y="{bottom + 5 + _LABEL_FONT}" text-anchor="middle" '
                f'font-family="sans-serif" font-size="{_LABEL_FONT}">{spans}</text>'
            )

        for y in y_ticks:
            py = _num(sy(y))
            parts.append(
                f'<line x1="{left - 5}" y1="{py}" x2="{left}" y2="{py}" stroke="#000000"/>'
            )
            parts.append(
                f'<text x="{left - 8}" y="{py}" text-anchor="end" dominant-baseline="middle" '
                f'font-family="sans-serif" font-size="{_LABEL_FONT}">'
                f"{_esc(_format_y_label(y, y_step))}</text>"
            )

        parts.append(
            f'<text x="{_num((left + right) / 2)}" y="{cfg.height - _MARGIN}" '
            f'text-anchor="middle" font-family="sans-serif" font-size="{_LABEL_FONT}">'
            f"{_esc(data.x_label)}</text>"
        )
        y_desc_x = _MARGIN + _LABEL_FONT
        y_desc_y = _num((top + bottom) / 2)
        parts.append(
            f'<text x="{y_desc_x}" y="{y_desc_y}" text-anchor="middle" '
            f'transform="rotate(-90 {y_desc_x} {y_desc_y})" '
            f'font-family="sans-serif" font-size="{_LABEL_FONT}">{_esc(data.y_label)}</text>'
        )

        legend: list[tuple[str, str]] = []
        for idx, series in enumerate(data.series):
            if series.is_empty():
                continue
            color = _color(idx)
            for a, b in pairwise(series.points):
                coords = (sx(a.timestamp), sy(a.value), sx(b.timestamp), sy(b.value))
                if not all(math.isfinite(c) for c in coords):
                    continue
                x1, y1, x2, y2 = map(_num, coords)
                parts.append(
                    f'<line x1="{x1}" y1="{y1}" x2="{x2}" y2="{y2}" '
                    f'stroke="{color}" stroke-width="1"/>'
                )
            legend.append((series.name, color))

        if cfg.show_legend and len(data.series) > 1 and legend:
            parts.extend(self._legend(legend, right, top))

        parts.append("</svg>\n")
        return "\n".join(parts)

    @staticmethod
    def _legend(entries: list[tuple[str, str]], right: int, top: int) -> list[str]:
        row = 20
        box_w = 40 + max(len(name) for name, _ in entries) * 7
        box_h = row * len(entries) + 10
        x0 = right - box_w - 10
        y0 = top + 10
        parts = [
            f'<rect x="{x0}" y="{y0}" width="{box_w}" height="{box_h}" fill="#FFFFFF" '
            'fill-opacity="0.8" stroke="#000000"/>'
        ]
        for i, (name, color) in enumerate(entries):
            y = y0 + 15 + i * row
            parts.append(
                f'<line x1="{x0 + 5}" y1="{y}" x2="{x0 + 25}" y2="{y}" '
                f'stroke="{color}" stroke-width="3"/>'
            )
            parts.append(
                f'<text x="{x0 + 30}" y="{y}" dominant-baseline="middle" '
                f'font-family="sans-serif" font-size="{_LABEL_FONT}">{_esc(name)}</text>'
            )
        return parts