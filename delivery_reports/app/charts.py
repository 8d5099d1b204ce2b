"""
Chart-ready series for the three delivery reports, plus the Plotly figures
built from them. The series helpers return plain lists and dicts so they can
be tested without a rendering surface.
"""

from dataclasses import dataclass
from typing import Dict, List, Sequence

import plotly.graph_objects as go

from .config import PLOTLY_CONFIG, TOP_N_ROUTES
from .metrics import top_routes
from .models import CANCELLED, DELIVERED, IN_TRANSIT, PENDING, MonthlyBucket, PerformanceSummary, RouteStat

STATUS_LABELS = {
    PENDING: "Pending",
    IN_TRANSIT: "In Transit",
    DELIVERED: "Delivered",
    CANCELLED: "Cancelled",
}
STATUS_COLORS = [
    "rgba(255, 206, 86, 0.6)",
    "rgba(54, 162, 235, 0.6)",
    "rgba(75, 192, 192, 0.6)",
    "rgba(255, 99, 132, 0.6)",
]
ON_TIME_COLOR = "rgba(75, 192, 192, 0.6)"
LATE_COLOR = "rgba(255, 99, 132, 0.6)"
DURATION_COLOR = "rgba(54, 162, 235, 0.8)"


def format_rate(rate: float) -> str:
    return f"{rate * 100:.1f}%"


def format_hours(hours: float) -> str:
    return f"{hours:.1f} hrs"


def rate_percent(rate: float) -> float:
    return rate * 100


@dataclass(frozen=True)
class Series:
    label: str
    labels: List[str]
    values: List[float]


def status_series(summary: PerformanceSummary) -> Series:
    return Series(
        label="Consignments by Status",
        labels=list(STATUS_LABELS.values()),
        values=[summary.status_counts.get(s, 0) for s in STATUS_LABELS],
    )


def on_time_series(summary: PerformanceSummary) -> Series:
    return Series(
        label="Delivery Performance",
        labels=["On-Time", "Late"],
        values=[summary.on_time_deliveries, summary.late_deliveries],
    )


def performance_series(summary: PerformanceSummary) -> Dict[str, Series]:
    return {"status": status_series(summary), "performance": on_time_series(summary)}


def monthly_series(buckets: Sequence[MonthlyBucket]) -> Dict[str, Series]:
    """Dual-axis pair: on-time rate on a 0-100 scale, delivery hours unscaled."""
    labels = [b.label for b in buckets]
    return {
        "on_time_rate": Series(
            label="On-Time Rate (%)",
            labels=labels,
            values=[rate_percent(b.on_time_rate) for b in buckets],
        ),
        "avg_delivery_time": Series(
            label="Avg. Delivery Time (hrs)",
            labels=labels,
            values=[b.avg_delivery_time for b in buckets],
        ),
    }


def route_series(routes: Sequence[RouteStat], limit: int = TOP_N_ROUTES) -> Dict[str, Series]:
    by_rate = top_routes(routes, key="on_time_rate", limit=limit)
    by_volume = top_routes(routes, key="total_consignments", limit=limit)
    return {
        "on_time_rate": Series(
            label="On-Time Rate (%)",
            labels=[r.route_label for r in by_rate],
            values=[rate_percent(r.on_time_rate) for r in by_rate],
        ),
        "volume": Series(
            label="Consignments",
            labels=[r.route_label for r in by_volume],
            values=[r.total_consignments for r in by_volume],
        ),
    }


def monthly_table(buckets: Sequence[MonthlyBucket]) -> List[Dict[str, object]]:
    return [
        {
            "Month": b.label,
            "Total": b.total_consignments,
            "On-Time": b.on_time_deliveries,
            "Late": b.late_deliveries,
            "On-Time Rate": format_rate(b.on_time_rate),
            "Avg. Time": format_hours(b.avg_delivery_time),
        }
        for b in buckets
    ]


def route_table(routes: Sequence[RouteStat]) -> List[Dict[str, object]]:
    return [
        {
            "Route": r.route_label,
            "Source": r.source_name or r.source_office,
            "Destination": r.destination_name or r.destination_office,
            "Total": r.total_consignments,
            "On-Time Rate": format_rate(r.on_time_rate),
            "Avg. Time": format_hours(r.avg_delivery_time),
        }
        for r in routes
    ]


def apply_layout(fig: go.Figure, height: int = 320, showlegend: bool = False) -> go.Figure:
    """Centralize layout tweaks for consistent styling across report tabs."""
    fig.update_layout(
        height=height,
        margin=dict(l=24, r=24, t=24, b=24),
        showlegend=showlegend,
        template="plotly_dark",
        paper_bgcolor="rgba(0,0,0,0)",
        plot_bgcolor="rgba(0,0,0,0)",
        font=dict(color="rgba(235,245,255,0.9)"),
    )
    return fig


def status_pie(series: Series) -> go.Figure:
    fig = go.Figure(
        go.Pie(labels=series.labels, values=series.values, marker=dict(colors=STATUS_COLORS), name=series.label)
    )
    return apply_layout(fig, showlegend=True)


def on_time_bar(series: Series) -> go.Figure:
    fig = go.Figure(
        go.Bar(x=series.labels, y=series.values, marker_color=[ON_TIME_COLOR, LATE_COLOR], name=series.label)
    )
    return apply_layout(fig)


def monthly_trend(rate: Series, duration: Series) -> go.Figure:
    fig = go.Figure()
    fig.add_trace(go.Scatter(x=rate.labels, y=rate.values, mode="lines+markers", name=rate.label,
                             line=dict(color=ON_TIME_COLOR, width=3)))
    fig.add_trace(go.Scatter(x=duration.labels, y=duration.values, mode="lines+markers", name=duration.label,
                             line=dict(color=DURATION_COLOR, width=3), yaxis="y2"))
    fig.update_layout(
        yaxis=dict(title=rate.label, range=[0, 100]),
        yaxis2=dict(title=duration.label, overlaying="y", side="right"),
    )
    return apply_layout(fig, height=380, showlegend=True)


def route_bar(series: Series, color: str = ON_TIME_COLOR) -> go.Figure:
    # Horizontal bars read best for long route labels; keep rank 1 on top.
    fig = go.Figure(
        go.Bar(x=series.values, y=series.labels, orientation="h", marker_color=color, name=series.label)
    )
    fig.update_layout(yaxis=dict(autorange="reversed"))
    return apply_layout(fig, height=380)


def chart_config() -> Dict[str, object]:
    return dict(PLOTLY_CONFIG)
