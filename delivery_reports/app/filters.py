from dataclasses import replace
from datetime import datetime
from typing import Callable, List, Mapping, Optional, Sequence

from .context import ALL_OFFICES, REPORT_TYPES, DateRange, FilterState, TimestampLike
from .errors import ValidationError
from .logging import get_logger
from .models import Office

logger = get_logger(__name__)

IDLE = "idle"
PENDING_APPLY = "pending_apply"

FilterListener = Callable[[FilterState], None]


class FilterController:
    """
    Owns the applied FilterState for one report view.

    Tab switches take effect at once. Date and office edits collect in a
    draft until ``apply()`` commits them and returns the query string that
    mirrors the new state.
    """

    def __init__(self, initial: Optional[FilterState] = None):
        self.applied = initial or FilterState()
        self.draft = self.applied
        self.state = IDLE
        self._listeners: List[FilterListener] = []

    @classmethod
    def from_query_params(cls, params: Mapping[str, str], now: Optional[datetime] = None) -> "FilterController":
        return cls(FilterState.from_query_params(params, now=now))

    def subscribe(self, listener: FilterListener) -> None:
        self._listeners.append(listener)

    def _notify(self) -> None:
        for listener in self._listeners:
            listener(self.applied)

    def select_report_type(self, report_type: str) -> FilterState:
        if report_type not in REPORT_TYPES:
            raise ValidationError(f"Unknown report type: {report_type!r}")
        if report_type == self.applied.report_type:
            return self.applied
        self.applied = self.applied.with_report_type(report_type)
        self.draft = self.draft.with_report_type(report_type)
        self._notify()
        return self.applied

    def set_date_range(self, start: Optional[TimestampLike], end: Optional[TimestampLike]) -> FilterState:
        self.draft = replace(self.draft, date_range=DateRange(start=start, end=end))
        self.state = PENDING_APPLY
        return self.draft

    def set_source_office(self, office_id: str) -> FilterState:
        office_id = office_id or ALL_OFFICES
        destination = self.draft.destination_office
        if office_id != ALL_OFFICES and destination == office_id:
            destination = ALL_OFFICES
        self.draft = replace(self.draft, source_office=office_id, destination_office=destination)
        self.state = PENDING_APPLY
        return self.draft

    def set_destination_office(self, office_id: str) -> FilterState:
        office_id = office_id or ALL_OFFICES
        if office_id != ALL_OFFICES and office_id == self.draft.source_office:
            raise ValidationError("Destination office must differ from the source office.")
        self.draft = replace(self.draft, destination_office=office_id)
        self.state = PENDING_APPLY
        return self.draft

    def destination_options(self, offices: Sequence[Office]) -> List[Office]:
        """Offices selectable as destination; the chosen source is left out."""
        source = self.draft.source_office
        if source == ALL_OFFICES:
            return list(offices)
        return [o for o in offices if o.id != source]

    def apply(self) -> str:
        """Commit the draft and return the navigable query string for it."""
        changed = self.draft != self.applied
        self.applied = self.draft
        self.state = IDLE
        query = self.applied.to_query_string()
        logger.info("filters_applied", query=query, changed=changed)
        # Re-applying unchanged filters is how the user retries a failed load.
        self._notify()
        return query

    def reset(self) -> FilterState:
        self.draft = self.applied
        self.state = IDLE
        return self.draft

    def query_string(self) -> str:
        return self.applied.to_query_string()
