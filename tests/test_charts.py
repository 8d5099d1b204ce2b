import plotly.graph_objects as go
import pytest

from delivery_reports.app import charts
from delivery_reports.app.models import (
    CANCELLED,
    DELIVERED,
    IN_TRANSIT,
    PENDING,
    MonthlyBucket,
    PerformanceSummary,
    RouteStat,
)


@pytest.fixture
def summary():
    return PerformanceSummary(
        total_consignments=10,
        on_time_deliveries=6,
        late_deliveries=2,
        on_time_rate=0.75,
        avg_delivery_time=12.25,
        status_counts={PENDING: 1, IN_TRANSIT: 1, DELIVERED: 8, CANCELLED: 0},
    )


def _bucket(year, month, rate, hours):
    return MonthlyBucket(year, month, 4, 2, 2, rate, hours)


def _route(i, rate, total):
    return RouteStat(
        route_label=f"R{i}",
        source_office=f"s{i}",
        destination_office=f"d{i}",
        total_consignments=total,
        on_time_deliveries=0,
        late_deliveries=0,
        on_time_rate=rate,
        avg_delivery_time=1.0,
    )


@pytest.mark.parametrize(
    "rate,expected",
    [(0.0, "0.0%"), (0.5, "50.0%"), (0.12345, "12.3%"), (1.0, "100.0%"), (2 / 3, "66.7%")],
)
def test_format_rate(rate, expected):
    assert charts.format_rate(rate) == expected


@pytest.mark.parametrize("hours,expected", [(0, "0.0 hrs"), (16, "16.0 hrs"), (3.14159, "3.1 hrs")])
def test_format_hours(hours, expected):
    assert charts.format_hours(hours) == expected


def test_performance_series(summary):
    series = charts.performance_series(summary)

    assert series["status"].labels == ["Pending", "In Transit", "Delivered", "Cancelled"]
    assert series["status"].values == [1, 1, 8, 0]
    assert series["performance"].labels == ["On-Time", "Late"]
    assert series["performance"].values == [6, 2]


def test_monthly_series_scales_rate_only():
    buckets = [_bucket(2023, 12, 0.25, 10.0), _bucket(2024, 1, 0.5, 30.5)]
    series = charts.monthly_series(buckets)

    assert series["on_time_rate"].labels == ["2023-12", "2024-01"]
    assert series["on_time_rate"].values == [25.0, 50.0]
    assert series["avg_delivery_time"].values == [10.0, 30.5]


def test_route_series_top_ten():
    routes = [_route(i, rate=(i % 4) / 4, total=i) for i in range(12)]
    series = charts.route_series(routes)

    assert len(series["on_time_rate"].labels) == 10
    assert series["on_time_rate"].labels[:3] == ["R3", "R7", "R11"]
    assert series["on_time_rate"].values[0] == 75.0
    assert series["volume"].labels[0] == "R11"
    assert series["volume"].values == list(range(11, 1, -1))


def test_tables_are_formatted():
    monthly = charts.monthly_table([_bucket(2024, 2, 0.5, 7.25)])
    assert monthly == [{
        "Month": "2024-02",
        "Total": 4,
        "On-Time": 2,
        "Late": 2,
        "On-Time Rate": "50.0%",
        "Avg. Time": "7.2 hrs",
    }]

    route = charts.route_table([_route(1, 0.25, 3)])[0]
    assert route["Route"] == "R1"
    assert route["Source"] == "s1"
    assert route["On-Time Rate"] == "25.0%"


def test_figures(summary):
    series = charts.performance_series(summary)
    monthly = charts.monthly_series([_bucket(2024, 1, 0.5, 3.0)])
    routes = charts.route_series([_route(1, 0.5, 2)])

    pie = charts.status_pie(series["status"])
    trend = charts.monthly_trend(monthly["on_time_rate"], monthly["avg_delivery_time"])
    bar = charts.route_bar(routes["volume"])

    assert isinstance(pie, go.Figure)
    assert list(pie.data[0].values) == [1, 1, 8, 0]
    assert len(trend.data) == 2
    assert trend.data[1].yaxis == "y2"
    assert bar.data[0].orientation == "h"
    assert isinstance(charts.on_time_bar(series["performance"]), go.Figure)
