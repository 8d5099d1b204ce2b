from datetime import timedelta
from operator import attrgetter
from typing import Dict, Iterable, List, Mapping, Sequence, Union

import pandas as pd

from .config import TOP_N_ROUTES
from .context import ALL_OFFICES, MONTHLY, PERFORMANCE, ROUTES, FilterState
from .errors import RecordSourceError, ValidationError
from .models import (
    DELIVERED,
    IN_TRANSIT,
    STATUSES,
    ConsignmentRecord,
    MonthlyBucket,
    Office,
    PerformanceSummary,
    ReportData,
    RouteStat,
)

RECORD_COLUMNS = (
    "id",
    "source_office",
    "destination_office",
    "scheduled_at",
    "delivered_at",
    "status",
)
RANKING_KEYS = ("on_time_rate", "total_consignments")

_STATUS_ALIASES = {
    "intransit": IN_TRANSIT,
    "in-transit": IN_TRANSIT,
    "in transit": IN_TRANSIT,
}

OfficeNames = Union[Iterable[Office], Mapping[str, str], None]


def frame_from_records(records: Iterable[ConsignmentRecord]) -> pd.DataFrame:
    rows = [
        {
            "id": r.id,
            "source_office": r.source_office,
            "destination_office": r.destination_office,
            "scheduled_at": r.scheduled_at,
            "delivered_at": r.delivered_at,
            "status": r.status,
        }
        for r in records
    ]
    return normalize_frame(pd.DataFrame(rows, columns=list(RECORD_COLUMNS)))


def normalize_frame(frame: pd.DataFrame) -> pd.DataFrame:
    """
    Return a copy with the canonical record columns: string ids, UTC
    timestamps and lower-case statuses. Naive timestamps are read as UTC.
    """
    missing = [c for c in RECORD_COLUMNS if c not in frame.columns]
    if missing:
        raise RecordSourceError(f"Consignment data is missing columns: {', '.join(missing)}")

    df = frame.loc[:, list(RECORD_COLUMNS)].reset_index(drop=True).copy()
    for col in ("id", "source_office", "destination_office"):
        df[col] = df[col].astype(str)
    df["scheduled_at"] = pd.to_datetime(df["scheduled_at"], utc=True)
    df["delivered_at"] = pd.to_datetime(df["delivered_at"], utc=True)
    df["status"] = df["status"].astype(str).str.strip().str.lower().replace(_STATUS_ALIASES)

    unknown = sorted(set(df["status"]) - set(STATUSES))
    if unknown:
        raise RecordSourceError(f"Unknown consignment status: {', '.join(unknown)}")
    if df["scheduled_at"].isna().any():
        raise RecordSourceError("Every consignment needs a scheduled delivery timestamp.")
    return df


def filter_frame(frame: pd.DataFrame, filters: FilterState) -> pd.DataFrame:
    """Rows scheduled inside the window (inclusive) that match the office filters."""
    window = filters.date_range
    if not window.is_complete:
        raise ValidationError("A complete date range is required.")

    df = normalize_frame(frame)
    mask = df["scheduled_at"].between(pd.Timestamp(window.start), pd.Timestamp(window.end))
    if filters.source_office != ALL_OFFICES:
        mask &= df["source_office"] == filters.source_office
    if filters.destination_office != ALL_OFFICES:
        mask &= df["destination_office"] == filters.destination_office
    return df.loc[mask].reset_index(drop=True)


def on_time_rate(on_time: int, late: int) -> float:
    """Share of on-time deliveries among judged ones; 0.0 when none were judged."""
    judged = on_time + late
    if judged <= 0:
        return 0.0
    return on_time / judged


def _annotate(frame: pd.DataFrame, threshold: timedelta) -> pd.DataFrame:
    df = normalize_frame(frame)
    delay = (df["delivered_at"] - df["scheduled_at"]).dt.total_seconds() / 3600.0
    judged = (df["status"] == DELIVERED) & df["delivered_at"].notna()
    cutoff = threshold.total_seconds() / 3600.0

    df["delay_hours"] = delay.where(judged)
    df["on_time"] = judged & (delay <= cutoff)
    df["late"] = judged & (delay > cutoff)
    return df


def _mean_hours(delays: pd.Series) -> float:
    hours = delays.dropna()
    if hours.empty:
        return 0.0
    # Plain mean; only the result is held at >= 0.
    return max(0.0, float(hours.mean()))


def _delivery_stats(df: pd.DataFrame) -> Dict[str, object]:
    on_time = int(df["on_time"].sum())
    late = int(df["late"].sum())
    return {
        "total_consignments": int(len(df)),
        "on_time_deliveries": on_time,
        "late_deliveries": late,
        "on_time_rate": on_time_rate(on_time, late),
        "avg_delivery_time": _mean_hours(df["delay_hours"]),
    }


def summarize_performance(frame: pd.DataFrame, threshold: timedelta) -> PerformanceSummary:
    df = _annotate(frame, threshold)
    counts = df["status"].value_counts()
    return PerformanceSummary(
        status_counts={s: int(counts.get(s, 0)) for s in STATUSES},
        **_delivery_stats(df),
    )


def monthly_rollup(frame: pd.DataFrame, threshold: timedelta) -> List[MonthlyBucket]:
    """
    One bucket per UTC calendar month of the scheduled timestamp, oldest first.
    Months without consignments are not emitted.
    """
    df = _annotate(frame, threshold)
    df["year"] = df["scheduled_at"].dt.year
    df["month"] = df["scheduled_at"].dt.month

    buckets = []
    for (year, month), group in df.groupby(["year", "month"], sort=True):
        buckets.append(MonthlyBucket(year=int(year), month=int(month), **_delivery_stats(group)))
    return buckets


def _office_names(offices: OfficeNames) -> Dict[str, str]:
    if offices is None:
        return {}
    if isinstance(offices, Mapping):
        return {str(k): str(v) for k, v in offices.items()}
    return {o.id: o.name for o in offices}


def route_stats(
    frame: pd.DataFrame, threshold: timedelta, offices: OfficeNames = None
) -> List[RouteStat]:
    """
    Stats per directed (source, destination) pair, ordered by office ids.
    Labels use office names where the directory knows them.
    """
    df = _annotate(frame, threshold)
    names = _office_names(offices)

    routes = []
    for (source, destination), group in df.groupby(["source_office", "destination_office"], sort=True):
        source_name = names.get(source, source)
        destination_name = names.get(destination, destination)
        routes.append(
            RouteStat(
                route_label=f"{source_name} → {destination_name}",
                source_office=source,
                destination_office=destination,
                source_name=source_name,
                destination_name=destination_name,
                **_delivery_stats(group),
            )
        )
    return routes


def top_routes(
    routes: Sequence[RouteStat], key: str = "on_time_rate", limit: int = TOP_N_ROUTES
) -> List[RouteStat]:
    """Highest ``key`` first; ties keep their incoming order."""
    if key not in RANKING_KEYS:
        raise ValueError(f"Routes cannot be ranked by {key!r}")
    return sorted(routes, key=attrgetter(key), reverse=True)[:limit]


def aggregate(
    frame: pd.DataFrame,
    filters: FilterState,
    threshold: timedelta,
    offices: OfficeNames = None,
) -> ReportData:
    """All three projections for the filtered window."""
    df = filter_frame(frame, filters)
    return ReportData(
        performance=summarize_performance(df, threshold),
        monthly=monthly_rollup(df, threshold),
        routes=route_stats(df, threshold, offices),
    )


def build_report(
    frame: pd.DataFrame,
    filters: FilterState,
    threshold: timedelta,
    offices: OfficeNames = None,
) -> ReportData:
    """The single projection the report type asks for, as served over the wire."""
    df = filter_frame(frame, filters)
    if filters.report_type == PERFORMANCE:
        return ReportData(performance=summarize_performance(df, threshold))
    if filters.report_type == MONTHLY:
        return ReportData(monthly=monthly_rollup(df, threshold))
    if filters.report_type == ROUTES:
        return ReportData(routes=route_stats(df, threshold, offices))
    raise ValidationError(f"Unknown report type: {filters.report_type!r}")
