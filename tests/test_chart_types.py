from ferrview.chart_types import ChartData, MetricPoint, TimeSeries, TimeSeriesChart


def test_metric_point_str_uses_two_decimals():
    assert str(MetricPoint(5, 1.5)) == "(5, 1.50)"


def test_time_series_starts_empty_without_unit():
    series = TimeSeries("cpu_usage")
    assert series.is_empty()
    assert series.points == []
    assert series.unit is None


def test_with_unit_sets_unit_and_chains():
    series = TimeSeries("temp")
    returned = series.with_unit("°C")
    assert returned is series
    assert series.unit == "°C"


def test_add_point_appends_in_order():
    series = TimeSeries("m")
    series.add_point(10, 1.0)
    series.add_point(20, 2.0)
    assert not series.is_empty()
    assert series.points == [MetricPoint(10, 1.0), MetricPoint(20, 2.0)]


def test_chart_data_default_labels():
    data = ChartData("Title")
    assert data.title == "Title"
    assert (data.x_label, data.y_label) == ("Time", "Value")
    assert data.series == []


def test_chart_data_with_labels_chains():
    data = ChartData("t")
    returned = data.with_labels("Time", "Usage (%)")
    assert returned is data
    assert data.y_label == "Usage (%)"


def test_chart_data_is_empty_without_series():
    assert ChartData("t").is_empty()


def test_chart_data_is_empty_when_all_series_empty():
    data = ChartData("t")
    data.add_series(TimeSeries("a"))
    data.add_series(TimeSeries("b"))
    assert data.is_empty()


def test_chart_data_not_empty_with_one_point():
    data = ChartData("t")
    data.add_series(TimeSeries("a"))
    filled = TimeSeries("b")
    filled.add_point(1, 2.0)
    data.add_series(filled)
    assert not data.is_empty()
    assert [s.name for s in data.series] == ["a", "b"]


def test_time_series_chart_defaults():
    chart = TimeSeriesChart()
    assert (chart.width, chart.height) == (800, 400)
    assert chart.show_grid and chart.show_legend


def test_time_series_chart_custom_size_keeps_switches():
    chart = TimeSeriesChart(1200, 500)
    assert (chart.width, chart.height) == (1200, 500)
    assert chart.show_grid and chart.show_legend