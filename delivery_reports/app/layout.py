from datetime import date, datetime, time, timezone
from typing import List, Optional, Sequence, Tuple

import plotly.graph_objects as go
import streamlit as st

from . import charts
from .config import PLOTLY_CONFIG
from .context import ALL_OFFICES, DateRange
from .filters import PENDING_APPLY, FilterController
from .models import MonthlyBucket, Office, PerformanceSummary, RouteStat


def _day_bounds(start: date, end: date):
    # Widgets work in whole days; the window spans the full end day.
    return (
        datetime.combine(start, time.min, tzinfo=timezone.utc),
        datetime.combine(end, time(23, 59, 59, 999000), tzinfo=timezone.utc),
    )


def _window_dates(window: DateRange) -> Tuple[date, ...]:
    """Calendar days the date widget shows for a window."""
    return tuple(d.date() for d in (window.start, window.end) if d is not None)


def _office_index(options: List[str], value: str) -> int:
    try:
        return options.index(value)
    except ValueError:
        return 0


def render_filter_bar(controller: FilterController, offices: Sequence[Office]) -> bool:
    """
    Shared filter bar: date range and office pickers feed the controller's
    draft. Returns True when the user pressed Apply.
    """
    draft = controller.draft
    names = {o.id: o.name for o in offices}

    col_dates, col_source, col_dest, col_apply = st.columns([2, 2, 2, 1])

    current = draft.date_range
    default_dates = _window_dates(current)
    picked = col_dates.date_input("Date range", value=default_dates)
    if isinstance(picked, (tuple, list)) and tuple(picked) != default_dates:
        if len(picked) == 2:
            controller.set_date_range(*_day_bounds(picked[0], picked[1]))
        elif len(picked) == 1:
            controller.set_date_range(_day_bounds(picked[0], picked[0])[0], None)

    source_options = [ALL_OFFICES] + [o.id for o in offices]
    source = col_source.selectbox(
        "Source office",
        source_options,
        index=_office_index(source_options, draft.source_office),
        format_func=lambda v: "All offices" if v == ALL_OFFICES else names.get(v, v),
    )
    if source != draft.source_office:
        controller.set_source_office(source)

    dest_options = [ALL_OFFICES] + [o.id for o in controller.destination_options(offices)]
    destination = col_dest.selectbox(
        "Destination office",
        dest_options,
        index=_office_index(dest_options, controller.draft.destination_office),
        format_func=lambda v: "All offices" if v == ALL_OFFICES else names.get(v, v),
    )
    if destination != controller.draft.destination_office:
        controller.set_destination_office(destination)

    col_apply.write("")
    label = "Apply filters" if controller.state != PENDING_APPLY else "Apply filters •"
    return col_apply.button(label, use_container_width=True)


def kpi_cards(summary: PerformanceSummary) -> None:
    c1, c2, c3 = st.columns(3)
    c1.metric("Total Consignments", f"{summary.total_consignments}", help="All statuses")
    c2.metric("On-Time Rate", charts.format_rate(summary.on_time_rate), help="Delivered consignments")
    c3.metric("Avg. Delivery Time", charts.format_hours(summary.avg_delivery_time), help="In hours")


def _plot(fig: go.Figure) -> None:
    st.plotly_chart(fig, use_container_width=True, config=PLOTLY_CONFIG)


def render_performance(summary: Optional[PerformanceSummary]) -> None:
    if summary is None:
        st.info("No performance data for this window.")
        return
    kpi_cards(summary)
    series = charts.performance_series(summary)
    left, right = st.columns(2)
    with left:
        st.subheader("Consignments by Status")
        _plot(charts.status_pie(series["status"]))
    with right:
        st.subheader("On-Time vs Late")
        _plot(charts.on_time_bar(series["performance"]))


def render_monthly(buckets: Optional[List[MonthlyBucket]]) -> None:
    if not buckets:
        st.info("No monthly data for this window.")
        return
    series = charts.monthly_series(buckets)
    st.subheader("Monthly Delivery Performance")
    _plot(charts.monthly_trend(series["on_time_rate"], series["avg_delivery_time"]))
    st.subheader("Monthly Breakdown")
    st.dataframe(charts.monthly_table(buckets), use_container_width=True, hide_index=True)


def render_routes(routes: Optional[List[RouteStat]]) -> None:
    if not routes:
        st.info("No route data for this window.")
        return
    series = charts.route_series(routes)
    left, right = st.columns(2)
    with left:
        st.subheader("Top Routes by On-Time Rate")
        _plot(charts.route_bar(series["on_time_rate"]))
    with right:
        st.subheader("Top Routes by Volume")
        _plot(charts.route_bar(series["volume"], color=charts.DURATION_COLOR))
    st.subheader("Route Performance")
    st.dataframe(charts.route_table(routes), use_container_width=True, hide_index=True)
