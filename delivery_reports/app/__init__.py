"""
Building blocks of the delivery reports page.

Aggregation, filter state, fetching and chart mapping live in separate
modules so the report math can be tested without Streamlit.
"""

from .config import (
    DEFAULT_DATA_FILENAME,
    ENV_DATA_PATH,
    ENV_REPORTS_API_URL,
)
from .context import ALL_OFFICES, DateRange, FilterState, ReportContext
from .models import ConsignmentRecord, MonthlyBucket, Office, PerformanceSummary, ReportData, RouteStat

__all__ = [
    "ALL_OFFICES",
    "DEFAULT_DATA_FILENAME",
    "ENV_DATA_PATH",
    "ENV_REPORTS_API_URL",
    "ConsignmentRecord",
    "DateRange",
    "FilterState",
    "MonthlyBucket",
    "Office",
    "PerformanceSummary",
    "ReportContext",
    "ReportData",
    "RouteStat",
]
