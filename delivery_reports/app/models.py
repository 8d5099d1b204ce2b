from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from .errors import ReportLoadError

PENDING = "pending"
IN_TRANSIT = "in_transit"
DELIVERED = "delivered"
CANCELLED = "cancelled"
STATUSES = (PENDING, IN_TRANSIT, DELIVERED, CANCELLED)

# Status keys as they appear in report payloads.
STATUS_WIRE_KEYS = {
    PENDING: "pending",
    IN_TRANSIT: "inTransit",
    DELIVERED: "delivered",
    CANCELLED: "cancelled",
}


@dataclass(frozen=True)
class Office:
    id: str
    name: str

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "Office":
        office_id = payload.get("id", payload.get("_id"))
        if office_id is None:
            raise KeyError("Office payload has neither 'id' nor '_id'.")
        return cls(id=str(office_id), name=str(payload.get("name") or office_id))


@dataclass(frozen=True)
class ConsignmentRecord:
    id: str
    source_office: str
    destination_office: str
    scheduled_at: datetime
    delivered_at: Optional[datetime] = None
    status: str = PENDING

    def __post_init__(self):
        if self.status not in STATUSES:
            raise ValueError(f"Unknown consignment status: {self.status!r}")


@dataclass(frozen=True)
class PerformanceSummary:
    total_consignments: int
    on_time_deliveries: int
    late_deliveries: int
    on_time_rate: float
    avg_delivery_time: float
    status_counts: Dict[str, int] = field(default_factory=dict)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "totalConsignments": self.total_consignments,
            "onTimeDeliveries": self.on_time_deliveries,
            "lateDeliveries": self.late_deliveries,
            "onTimeRate": self.on_time_rate,
            "avgDeliveryTime": self.avg_delivery_time,
            "statusCounts": {
                STATUS_WIRE_KEYS[s]: int(self.status_counts.get(s, 0)) for s in STATUSES
            },
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "PerformanceSummary":
        raw_counts = payload.get("statusCounts") or {}
        return cls(
            total_consignments=int(payload["totalConsignments"]),
            on_time_deliveries=int(payload["onTimeDeliveries"]),
            late_deliveries=int(payload["lateDeliveries"]),
            on_time_rate=float(payload["onTimeRate"]),
            avg_delivery_time=float(payload["avgDeliveryTime"]),
            status_counts={s: int(raw_counts.get(STATUS_WIRE_KEYS[s], 0)) for s in STATUSES},
        )


@dataclass(frozen=True)
class MonthlyBucket:
    year: int
    month: int
    total_consignments: int
    on_time_deliveries: int
    late_deliveries: int
    on_time_rate: float
    avg_delivery_time: float

    @property
    def label(self) -> str:
        return f"{self.year}-{self.month:02d}"

    def to_payload(self) -> Dict[str, Any]:
        return {
            "year": self.year,
            "month": self.month,
            "totalConsignments": self.total_consignments,
            "onTimeDeliveries": self.on_time_deliveries,
            "lateDeliveries": self.late_deliveries,
            "onTimeRate": self.on_time_rate,
            "avgDeliveryTime": self.avg_delivery_time,
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "MonthlyBucket":
        return cls(
            year=int(payload["year"]),
            month=int(payload["month"]),
            total_consignments=int(payload["totalConsignments"]),
            on_time_deliveries=int(payload["onTimeDeliveries"]),
            late_deliveries=int(payload["lateDeliveries"]),
            on_time_rate=float(payload["onTimeRate"]),
            avg_delivery_time=float(payload["avgDeliveryTime"]),
        )


@dataclass(frozen=True)
class RouteStat:
    route_label: str
    source_office: str
    destination_office: str
    total_consignments: int
    on_time_deliveries: int
    late_deliveries: int
    on_time_rate: float
    avg_delivery_time: float
    source_name: str = ""
    destination_name: str = ""

    @property
    def key(self):
        return (self.source_office, self.destination_office)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "route": self.route_label,
            "sourceOffice": self.source_office,
            "destinationOffice": self.destination_office,
            "sourceOfficeName": self.source_name,
            "destinationOfficeName": self.destination_name,
            "totalConsignments": self.total_consignments,
            "onTimeDeliveries": self.on_time_deliveries,
            "lateDeliveries": self.late_deliveries,
            "onTimeRate": self.on_time_rate,
            "avgDeliveryTime": self.avg_delivery_time,
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "RouteStat":
        source = str(payload["sourceOffice"])
        destination = str(payload["destinationOffice"])
        return cls(
            route_label=str(payload.get("route") or f"{source} → {destination}"),
            source_office=source,
            destination_office=destination,
            total_consignments=int(payload["totalConsignments"]),
            on_time_deliveries=int(payload["onTimeDeliveries"]),
            late_deliveries=int(payload["lateDeliveries"]),
            on_time_rate=float(payload["onTimeRate"]),
            avg_delivery_time=float(payload["avgDeliveryTime"]),
            source_name=str(payload.get("sourceOfficeName") or source),
            destination_name=str(payload.get("destinationOfficeName") or destination),
        )


@dataclass(frozen=True)
class ReportData:
    """One report response. A projection left as None means no data for that view."""

    performance: Optional[PerformanceSummary] = None
    monthly: Optional[List[MonthlyBucket]] = None
    routes: Optional[List[RouteStat]] = None

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {}
        if self.performance is not None:
            payload["performance"] = self.performance.to_payload()
        if self.monthly is not None:
            payload["monthly"] = [b.to_payload() for b in self.monthly]
        if self.routes is not None:
            payload["routes"] = [r.to_payload() for r in self.routes]
        return payload

    @classmethod
    def from_payload(cls, payload: Any) -> "ReportData":
        """
        Parse a report response body. Accepts the bare projection object or
        one wrapped in ``reportData``; a null body means no data.
        """
        if payload is None:
            return cls()
        if not isinstance(payload, Mapping):
            raise ReportLoadError("Report payload is not a JSON object.")
        if "reportData" in payload:
            return cls.from_payload(payload["reportData"])
        try:
            performance = payload.get("performance")
            monthly = payload.get("monthly")
            routes = payload.get("routes")
            return cls(
                performance=PerformanceSummary.from_payload(performance) if performance else None,
                monthly=[MonthlyBucket.from_payload(m) for m in monthly] if monthly is not None else None,
                routes=[RouteStat.from_payload(r) for r in routes] if routes is not None else None,
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise ReportLoadError(f"Malformed report payload: {exc}") from exc
