from datetime import datetime, timedelta, timezone

import duckdb
import pandas as pd
import pytest

from delivery_reports.app.context import DateRange, FilterState
from delivery_reports.app.data_loader import (
    RECORDS_VIEW,
    LocalReportSource,
    connect_duckdb,
    load_offices,
    load_records,
    resolve_data_path,
)
from delivery_reports.app.errors import ValidationError
from delivery_reports.app.models import Office

ROWS = [
    # id, source, destination, scheduled, delivered, status
    ("c1", "A", "B", datetime(2024, 1, 5, 9), datetime(2024, 1, 5, 11), "delivered"),
    ("c2", "A", "B", datetime(2024, 1, 20, 9), datetime(2024, 1, 21, 20), "delivered"),
    ("c3", "B", "A", datetime(2024, 2, 2, 9), None, "in_transit"),
    ("c4", "A", "C", datetime(2024, 2, 10, 9), None, "cancelled"),
    ("c5", "C", "A", datetime(2024, 4, 1, 9), datetime(2024, 4, 1, 10), "delivered"),
]


def _frame():
    frame = pd.DataFrame(
        ROWS,
        columns=["id", "source_office", "destination_office", "scheduled_at", "delivered_at", "status"],
    )
    frame["scheduled_at"] = pd.to_datetime(frame["scheduled_at"])
    frame["delivered_at"] = pd.to_datetime(frame["delivered_at"])
    return frame


@pytest.fixture
def conn():
    connection = duckdb.connect(database=":memory:")
    connection.register("rows_df", _frame())
    # A real table so worker cursors can see it.
    connection.execute(f"CREATE TABLE {RECORDS_VIEW} AS SELECT * FROM rows_df")
    connection.unregister("rows_df")
    yield connection
    connection.close()


def _window(report_type="performance", **offices):
    return FilterState(
        date_range=DateRange(
            start=datetime(2024, 1, 1, tzinfo=timezone.utc),
            end=datetime(2024, 2, 29, 23, 59, 59, tzinfo=timezone.utc),
        ),
        report_type=report_type,
        **offices,
    )


def test_load_records_applies_window(conn):
    frame = load_records(conn, _window())

    assert frame["id"].tolist() == ["c1", "c2", "c3", "c4"]
    assert str(frame["scheduled_at"].dt.tz) == "UTC"
    assert frame["delivered_at"].isna().tolist() == [False, False, True, True]


def test_load_records_applies_office_filters(conn):
    assert load_records(conn, _window(source_office="A"))["id"].tolist() == ["c1", "c2", "c4"]
    assert load_records(conn, _window(source_office="A", destination_office="C"))["id"].tolist() == ["c4"]


def test_load_records_needs_complete_range(conn):
    with pytest.raises(ValidationError):
        load_records(conn, FilterState(date_range=DateRange(end=datetime(2024, 1, 1))))


def test_offices_derived_from_records(conn):
    assert load_offices(conn) == [Office("A", "A"), Office("B", "B"), Office("C", "C")]


def test_local_source_builds_routes_with_directory(conn):
    directory = pd.DataFrame({"id": ["A", "B", "C"], "name": ["Accra", "Bamako", "Conakry"]})
    conn.register("directory_df", directory)
    conn.execute("CREATE TABLE offices_raw AS SELECT * FROM directory_df")
    source = LocalReportSource(conn, timedelta(hours=24), has_directory=True)

    report = source.fetch_report(_window("routes"))

    assert report.performance is None
    assert [r.route_label for r in report.routes] == [
        "Accra → Bamako",
        "Accra → Conakry",
        "Bamako → Accra",
    ]
    a_to_b = report.routes[0]
    assert a_to_b.total_consignments == 2
    assert a_to_b.on_time_deliveries == 1
    assert a_to_b.late_deliveries == 1
    assert a_to_b.avg_delivery_time == 18.5


def test_local_source_performance(conn):
    report = LocalReportSource(conn, timedelta(hours=24)).fetch_report(_window())
    summary = report.performance

    assert summary.total_consignments == 4
    assert summary.on_time_rate == 0.5
    assert sum(summary.status_counts.values()) == 4


def test_connect_duckdb_reads_parquet(tmp_path):
    path = tmp_path / "consignments.parquet"
    writer = duckdb.connect()
    writer.register("rows_df", _frame())
    writer.execute(f"COPY (SELECT * FROM rows_df) TO '{path}' (FORMAT PARQUET)")
    writer.close()

    conn = connect_duckdb(str(path))
    try:
        frame = load_records(conn, _window(report_type="monthly"))
    finally:
        conn.close()
    assert len(frame) == 4


def test_connect_duckdb_requires_path():
    with pytest.raises(FileNotFoundError):
        connect_duckdb("")


def test_resolve_data_path_prefers_env(monkeypatch):
    monkeypatch.setenv("DATA_PATH", "/srv/data/consignments.parquet")
    assert resolve_data_path() == "/srv/data/consignments.parquet"
