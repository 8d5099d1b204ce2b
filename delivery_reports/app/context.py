import hashlib
from dataclasses import dataclass, field, replace
from datetime import date, datetime, time, timedelta, timezone
from typing import Dict, List, Mapping, Optional, Tuple, Union
from urllib.parse import parse_qsl, urlencode

from .config import DEFAULT_WINDOW_DAYS
from .errors import ValidationError

ALL_OFFICES = "all"

PERFORMANCE = "performance"
MONTHLY = "monthly"
ROUTES = "routes"
REPORT_TYPES: Tuple[str, ...] = (PERFORMANCE, MONTHLY, ROUTES)
DEFAULT_REPORT_TYPE = PERFORMANCE

TimestampLike = Union[datetime, date, str]


def to_utc(value: TimestampLike) -> datetime:
    """
    Coerce a timestamp to an aware UTC datetime truncated to milliseconds.
    Naive values are read as UTC; bare dates become midnight UTC.
    """
    if isinstance(value, str):
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            value = datetime.fromisoformat(text)
        except ValueError as exc:
            raise ValidationError(f"Not an ISO-8601 timestamp: {value!r}") from exc
    elif not isinstance(value, datetime):
        value = datetime.combine(value, time.min)

    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.replace(microsecond=value.microsecond // 1000 * 1000)


def to_iso(value: datetime) -> str:
    """ISO-8601 in UTC with millisecond precision and a ``Z`` suffix."""
    return to_utc(value).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(frozen=True)
class DateRange:
    """Reporting window. Both ends are required before a report can be requested."""

    start: Optional[datetime] = None
    end: Optional[datetime] = None

    def __post_init__(self):
        start = to_utc(self.start) if self.start is not None else None
        end = to_utc(self.end) if self.end is not None else None
        if start is not None and end is not None and start > end:
            raise ValidationError("Date range start must not be after its end.")
        object.__setattr__(self, "start", start)
        object.__setattr__(self, "end", end)

    @classmethod
    def trailing(cls, days: int = DEFAULT_WINDOW_DAYS, now: Optional[datetime] = None) -> "DateRange":
        end = to_utc(now or datetime.now(timezone.utc))
        return cls(start=end - timedelta(days=days), end=end)

    @property
    def is_complete(self) -> bool:
        return self.start is not None and self.end is not None

    def contains(self, ts: datetime) -> bool:
        if not self.is_complete:
            return False
        ts = to_utc(ts)
        return self.start <= ts <= self.end


@dataclass(frozen=True)
class FilterState:
    """Canonical set of report filters shared by the page, the URL and the fetcher."""

    date_range: DateRange = field(default_factory=DateRange.trailing)
    source_office: str = ALL_OFFICES
    destination_office: str = ALL_OFFICES
    report_type: str = DEFAULT_REPORT_TYPE

    def __post_init__(self):
        if self.report_type not in REPORT_TYPES:
            raise ValidationError(f"Unknown report type: {self.report_type!r}")
        if self.source_office != ALL_OFFICES and self.source_office == self.destination_office:
            raise ValidationError("Source and destination office must differ.")

    def with_report_type(self, report_type: str) -> "FilterState":
        return replace(self, report_type=report_type)

    def to_query_params(self) -> List[Tuple[str, str]]:
        """Ordered request parameters; office filters are left out when set to all."""
        params: List[Tuple[str, str]] = []
        if self.date_range.start is not None:
            params.append(("startDate", to_iso(self.date_range.start)))
        if self.date_range.end is not None:
            params.append(("endDate", to_iso(self.date_range.end)))
        params.append(("reportType", self.report_type))
        if self.source_office != ALL_OFFICES:
            params.append(("sourceOffice", self.source_office))
        if self.destination_office != ALL_OFFICES:
            params.append(("destinationOffice", self.destination_office))
        return params

    def to_query_string(self) -> str:
        return urlencode(self.to_query_params())

    @classmethod
    def from_query_params(
        cls, params: Mapping[str, str], now: Optional[datetime] = None
    ) -> "FilterState":
        """
        Rebuild filters from a navigable query. When only one date is given
        the other end sits a default window away from it; missing, unreadable
        or inverted dates fall back to the trailing default window. An unknown
        report type falls back to the default view.
        """
        window = timedelta(days=DEFAULT_WINDOW_DAYS)
        raw_start, raw_end = params.get("startDate"), params.get("endDate")
        try:
            start = to_utc(raw_start) if raw_start else None
            end = to_utc(raw_end) if raw_end else None
            if start is not None and end is None:
                end = start + window
            elif end is not None and start is None:
                start = end - window
            date_range = DateRange(start=start, end=end) if start is not None else DateRange.trailing(now=now)
        except ValidationError:
            date_range = DateRange.trailing(now=now)

        report_type = params.get("reportType") or DEFAULT_REPORT_TYPE
        if report_type not in REPORT_TYPES:
            report_type = DEFAULT_REPORT_TYPE

        source = params.get("sourceOffice") or ALL_OFFICES
        destination = params.get("destinationOffice") or ALL_OFFICES
        if source != ALL_OFFICES and destination == source:
            destination = ALL_OFFICES

        return cls(
            date_range=date_range,
            source_office=source,
            destination_office=destination,
            report_type=report_type,
        )

    @classmethod
    def from_query_string(cls, query: str, now: Optional[datetime] = None) -> "FilterState":
        return cls.from_query_params(dict(parse_qsl(query.lstrip("?"))), now=now)

    def cache_key(self) -> str:
        """Stable identifier for caching report payloads fetched for this filter set."""
        return hashlib.sha256(self.to_query_string().encode("utf-8")).hexdigest()[:16]


@dataclass(frozen=True)
class ReportContext:
    """
    Immutable description of one report request. The fetcher tags every job
    with it so a completed result can be matched to the filters it was built from.
    """

    filters: FilterState
    label: str = ""
    sections: Tuple[str, ...] = ()
    on_time_threshold_hours: Optional[float] = None
    extra: Dict[str, str] = field(default_factory=dict)

    @property
    def report_type(self) -> str:
        return self.filters.report_type

    def cache_key(self) -> str:
        stem = f"{self.report_type}|{self.filters.cache_key()}|{self.on_time_threshold_hours}"
        return hashlib.sha256(stem.encode("utf-8")).hexdigest()[:16]
