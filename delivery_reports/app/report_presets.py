from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from .context import MONTHLY, PERFORMANCE, ROUTES, FilterState, ReportContext


@dataclass(frozen=True)
class ReportPreset:
    label: str
    sections: Tuple[str, ...]
    description: str = ""


REPORT_PRESETS: Dict[str, ReportPreset] = {
    PERFORMANCE: ReportPreset(
        label="Performance Overview",
        sections=("kpis", "status_breakdown", "on_time_split"),
        description="On-time rate, delivery time and status mix for the window.",
    ),
    MONTHLY: ReportPreset(
        label="Monthly Trends",
        sections=("monthly_trend", "monthly_table"),
        description="On-time rate and delivery time month by month.",
    ),
    ROUTES: ReportPreset(
        label="Route Analysis",
        sections=("top_routes_on_time", "top_routes_volume", "route_table"),
        description="Best routes by on-time rate and by volume.",
    ),
}


def build_context(filters: FilterState, on_time_threshold_hours: Optional[float] = None) -> ReportContext:
    preset = REPORT_PRESETS.get(filters.report_type)
    if not preset:
        return ReportContext(filters=filters, on_time_threshold_hours=on_time_threshold_hours)
    return ReportContext(
        filters=filters,
        label=preset.label,
        sections=preset.sections,
        on_time_threshold_hours=on_time_threshold_hours,
        extra={"description": preset.description},
    )
