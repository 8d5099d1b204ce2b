import os
from datetime import timedelta, timezone
from pathlib import Path
from typing import List, Optional

import duckdb
import pandas as pd

from .config import DATA_DIR, DEFAULT_DATA_FILENAME, ENV_DATA_PATH, ENV_OFFICES_PATH
from .context import ALL_OFFICES, FilterState
from .errors import ReferenceDataLoadError, ReportLoadError, ValidationError
from .logging import get_logger
from .metrics import build_report, normalize_frame
from .models import Office, ReportData

logger = get_logger(__name__)

RECORDS_VIEW = "consignments_raw"
OFFICES_VIEW = "offices_raw"


def _default_candidates(default_filename: str) -> list[Path]:
    here = Path(__file__).resolve().parent
    return [
        here / default_filename,
        DATA_DIR / default_filename,
        here.parent.parent / "data" / default_filename,
    ]


def resolve_data_path(default_filename: str = DEFAULT_DATA_FILENAME) -> str:
    """
    Resolve the consignment parquet path from env or common locations.
    Returns an empty string if nothing is found so callers can handle gracefully.
    """
    env_path = os.getenv(ENV_DATA_PATH, "").strip()
    if env_path:
        return env_path

    for candidate in _default_candidates(default_filename):
        if candidate.exists():
            return str(candidate)
    return ""


def resolve_offices_path() -> str:
    return os.getenv(ENV_OFFICES_PATH, "").strip()


def _sql_literal(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


def _reader(path: str) -> str:
    suffix = Path(path).suffix.lower()
    if suffix == ".json":
        return f"read_json_auto({_sql_literal(path)})"
    if suffix == ".csv":
        return f"read_csv_auto({_sql_literal(path)})"
    return f"read_parquet({_sql_literal(path)})"


def connect_duckdb(data_path: str, offices_path: str = "") -> duckdb.DuckDBPyConnection:
    """
    Create an in-memory DuckDB connection with the consignment bundle (and
    the optional office directory) mounted as views.
    """
    if not data_path:
        raise FileNotFoundError(
            "Data path is empty. Set DATA_PATH or place consignments.parquet in ./data."
        )
    conn = duckdb.connect(database=":memory:")
    conn.execute("PRAGMA threads=4;")
    conn.execute(f"CREATE OR REPLACE VIEW {RECORDS_VIEW} AS SELECT * FROM {_reader(data_path)};")
    if offices_path:
        conn.execute(f"CREATE OR REPLACE VIEW {OFFICES_VIEW} AS SELECT * FROM {_reader(offices_path)};")
    return conn


def _naive_utc(value):
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def load_records(conn: duckdb.DuckDBPyConnection, filters: FilterState) -> pd.DataFrame:
    """
    Consignments scheduled inside the filter window, narrowed by office.
    Timestamps in the bundle are UTC; the frame comes back normalized.
    """
    window = filters.date_range
    if not window.is_complete:
        raise ValidationError("A complete date range is required.")

    sql = f"""
        SELECT
            CAST(id AS VARCHAR) AS id,
            CAST(source_office AS VARCHAR) AS source_office,
            CAST(destination_office AS VARCHAR) AS destination_office,
            CAST(scheduled_at AS TIMESTAMP) AS scheduled_at,
            CAST(delivered_at AS TIMESTAMP) AS delivered_at,
            CAST(status AS VARCHAR) AS status
        FROM {RECORDS_VIEW}
        WHERE CAST(scheduled_at AS TIMESTAMP) BETWEEN ? AND ?
    """
    params: list = [_naive_utc(window.start), _naive_utc(window.end)]
    if filters.source_office != ALL_OFFICES:
        sql += " AND CAST(source_office AS VARCHAR) = ?"
        params.append(filters.source_office)
    if filters.destination_office != ALL_OFFICES:
        sql += " AND CAST(destination_office AS VARCHAR) = ?"
        params.append(filters.destination_office)
    sql += " ORDER BY scheduled_at, id"

    # One cursor per call: fetches run on worker threads.
    cursor = conn.cursor()
    try:
        frame = cursor.execute(sql, params).df()
    finally:
        cursor.close()
    return normalize_frame(frame)


def load_offices(conn: duckdb.DuckDBPyConnection, has_directory: bool = False) -> List[Office]:
    """
    Office directory ordered by name. Without a directory file the ids seen
    in the consignment bundle double as names.
    """
    if has_directory:
        sql = f"SELECT CAST(id AS VARCHAR) AS id, CAST(name AS VARCHAR) AS name FROM {OFFICES_VIEW}"
    else:
        sql = f"""
            SELECT DISTINCT office AS id, office AS name FROM (
                SELECT CAST(source_office AS VARCHAR) AS office FROM {RECORDS_VIEW}
                UNION
                SELECT CAST(destination_office AS VARCHAR) AS office FROM {RECORDS_VIEW}
            )
        """
    cursor = conn.cursor()
    try:
        rows = cursor.execute(sql + " ORDER BY name, id").fetchall()
    finally:
        cursor.close()
    return [Office(id=str(office_id), name=str(name)) for office_id, name in rows]


class LocalReportSource:
    """Record source backed by the parquet bundle; reports are aggregated here."""

    def __init__(self, conn: duckdb.DuckDBPyConnection, threshold: timedelta, has_directory: bool = False):
        self.conn = conn
        self.threshold = threshold
        self.has_directory = has_directory
        self._offices: Optional[List[Office]] = None

    def list_offices(self) -> List[Office]:
        if self._offices is None:
            try:
                self._offices = load_offices(self.conn, self.has_directory)
            except duckdb.Error as exc:
                raise ReferenceDataLoadError(f"Could not load offices: {exc}") from exc
        return self._offices

    def fetch_report(self, filters: FilterState) -> ReportData:
        try:
            frame = load_records(self.conn, filters)
        except duckdb.Error as exc:
            raise ReportLoadError(f"Could not read consignments: {exc}") from exc
        try:
            offices = self.list_offices()
        except ReferenceDataLoadError as exc:
            # Route labels fall back to office ids.
            logger.warning("office_names_unavailable", error=str(exc))
            offices = []
        return build_report(frame, filters, self.threshold, offices)
