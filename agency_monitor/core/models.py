from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass(slots=True)
class Run:
    id: str
    agency_id: str | None
    created_at: datetime | str | None
    run_completed_at: datetime | str | None = None
    new_listings_count: int = 0
    total_listings: int | None = None

    @property
    def is_pending(self) -> bool:
        return self.run_completed_at is None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> Run:
        return cls(
            id=str(row.get("id") or ""),
            agency_id=row.get("agency_id"),
            created_at=row.get("created_at"),
            run_completed_at=row.get("run_completed_at"),
            new_listings_count=_to_int(row.get("new_listings_count")),
            total_listings=row.get("total_listings"),
        )


@dataclass(slots=True)
class Listing:
    id: str
    title: str | None = None
    city: str | None = None
    province: str | None = None
    price: float | None = None
    url: str | None = None
    first_seen_at: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> Listing:
        raw = row.get("raw")
        return cls(
            id=str(row.get("id") or ""),
            title=row.get("title"),
            city=row.get("city"),
            province=row.get("province"),
            price=row.get("price"),
            url=row.get("url"),
            first_seen_at=row.get("first_seen_at"),
            raw=raw if isinstance(raw, dict) else {},
        )


@dataclass(slots=True)
class WeekBucket:
    week: str  # YYYY-MM-DD, Monday UTC
    new_count: int = 0
    run_count: int = 0


@dataclass(slots=True)
class WeeklyKpi:
    new7: int = 0
    avg4w: float = 0.0
    runs: int = 0


@dataclass(slots=True)
class WeeklyReport:
    agency_id: str
    buckets: list[WeekBucket] = field(default_factory=list)
    kpi: WeeklyKpi = field(default_factory=WeeklyKpi)
    error: str = ""


@dataclass(slots=True)
class ZoneTotals:
    ok: int = 0
    pot: int = 0
    ver: int = 0
    total: int = 0


@dataclass(slots=True)
class ZoneRow:
    adv: str
    ok: int = 0
    pot: int = 0
    ver: int = 0
    total: int = 0
    ok_pct: float = 0.0
    pot_pct: float = 0.0
    ver_pct: float = 0.0
    pen_pct: float = 0.0


@dataclass(slots=True)
class ZoneReport:
    zones: list[str] = field(default_factory=list)
    zone: str = ""
    totals: ZoneTotals = field(default_factory=ZoneTotals)
    rows: list[ZoneRow] = field(default_factory=list)
    listings: list[Listing] = field(default_factory=list)
    error: str = ""


@dataclass(slots=True)
class MonthlyPrice:
    month: str  # YYYY-MM
    median_price: float
    median_eur_m2: float | None
    n: int


@dataclass(slots=True)
class AdvertiserShare:
    label: str
    value: int
    pen_pct: float


@dataclass(slots=True)
class TriggerResult:
    agency_id: str
    ok: bool
    status_code: int | None = None
    error: str = ""


def _to_int(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0
