from __future__ import annotations

import logging
import math
from typing import Any, Callable, Iterable, Literal

from agency_monitor.core.advertiser import get_advertiser_label
from agency_monitor.core.collation import ITALIAN, Collator
from agency_monitor.core.models import AdvertiserShare, Listing, MonthlyPrice, ZoneReport, ZoneRow, ZoneTotals
from agency_monitor.core.percent import median, pct
from agency_monitor.core.supabase_repo import SupabaseRepo
from agency_monitor.core.weeks import parse_timestamp


LOGGER = logging.getLogger(__name__)

Classification = Literal["ok", "pot", "ver"]
AdvertiserLabel = Callable[[Listing], str | None]

PLACEHOLDER_LABEL = "—"
OTHERS_LABEL = "Altri"
DEFAULT_ERROR_MESSAGE = "Errore monitor"
NUMERIC_SORT_KEYS = {"ok", "pot", "ver", "total", "ok_pct", "pot_pct", "ver_pct", "pen_pct"}


def macrozone_of(listing: Listing) -> str:
    analytics = listing.raw.get("analytics") or {}
    if not isinstance(analytics, dict):
        return ""
    value = analytics.get("macrozone")
    return str(value).strip() if value else ""


def derive_zones(listings: Iterable[Listing], collator: Collator = ITALIAN) -> list[str]:
    distinct = {zone for zone in (macrozone_of(listing) for listing in listings) if zone}
    return collator.sorted(distinct)


def resolve_zone(selected: str | None, zones: list[str]) -> str:
    if selected and selected in zones:
        return selected
    return zones[0] if zones else ""


def classify_listing(listing: Listing, assignments: dict[str, Any]) -> Classification:
    if not macrozone_of(listing):
        return "ver"
    if assignments.get(listing.id):
        return "ok"
    return "pot"


def build_zone_report(
    listings: Iterable[Listing | dict[str, Any]],
    assignments: dict[str, Any],
    selected_zone: str | None,
    advertiser_label: AdvertiserLabel | None = None,
    collator: Collator = ITALIAN,
) -> ZoneReport:
    label_of = advertiser_label or get_advertiser_label
    all_listings = [item if isinstance(item, Listing) else Listing.from_row(item) for item in listings]
    zones = derive_zones(all_listings, collator)
    zone = resolve_zone(selected_zone, zones)
    # No effective zone means no cohort.
    cohort = [listing for listing in all_listings if macrozone_of(listing) == zone] if zone else []

    totals = ZoneTotals()
    by_advertiser: dict[str, ZoneRow] = {}
    for listing in cohort:
        label = label_of(listing) or PLACEHOLDER_LABEL
        row = by_advertiser.setdefault(label, ZoneRow(adv=label))
        kind = classify_listing(listing, assignments)
        setattr(row, kind, getattr(row, kind) + 1)
        setattr(totals, kind, getattr(totals, kind) + 1)
        row.total += 1
    totals.total = totals.ok + totals.pot + totals.ver

    # sorted() is stable, so equal totals keep first-seen order.
    rows = sorted(by_advertiser.values(), key=lambda row: row.total, reverse=True)
    for row in rows:
        row.ok_pct = pct(row.ok, row.total)
        row.pot_pct = pct(row.pot, row.total)
        row.ver_pct = pct(row.ver, row.total)
        row.pen_pct = pct(row.total, totals.total)
    return ZoneReport(zones=zones, zone=zone, totals=totals, rows=rows, listings=cohort)


def load_zone_report(
    repo: SupabaseRepo,
    agency_id: str,
    selected_zone: str | None = None,
    advertiser_label: AdvertiserLabel | None = None,
    collator: Collator = ITALIAN,
) -> ZoneReport:
    if not agency_id:
        return ZoneReport()
    try:
        listing_ids = repo.get_agency_listing_ids(agency_id)
        if not listing_ids:
            LOGGER.info("Zone monitor agency=%s has no linked listings.", agency_id)
            return ZoneReport()
        rows = repo.get_listings_by_ids(listing_ids)
        assignments = repo.get_assignment_map(agency_id, listing_ids)
        report = build_zone_report(rows, assignments, selected_zone, advertiser_label, collator)
    except Exception as exc:  # noqa: BLE001
        LOGGER.exception("Zone monitor failed for agency=%s", agency_id)
        return ZoneReport(error=str(exc) or DEFAULT_ERROR_MESSAGE)
    LOGGER.info(
        "Zone monitor agency=%s zone=%s zones=%s ok=%s pot=%s ver=%s",
        agency_id,
        report.zone,
        len(report.zones),
        report.totals.ok,
        report.totals.pot,
        report.totals.ver,
    )
    return report


def sort_zone_rows(
    rows: list[ZoneRow],
    key: str = "total",
    direction: str = "desc",
    collator: Collator = ITALIAN,
) -> list[ZoneRow]:
    reverse = direction != "asc"
    if key == "adv":
        return sorted(rows, key=lambda row: collator.key(row.adv), reverse=reverse)
    if key not in NUMERIC_SORT_KEYS:
        key = "total"
    return sorted(rows, key=lambda row: float(getattr(row, key) or 0), reverse=reverse)


def advertiser_shares(
    rows: list[ZoneRow],
    zone_total: int,
    top_n: int = 10,
    pie_n: int = 12,
) -> tuple[list[AdvertiserShare], list[AdvertiserShare]]:
    """
    Returns (top advertisers, pie slices). Slices beyond `pie_n` collapse into
    a single "Altri" slice.
    """
    ranked = sorted(rows, key=lambda row: row.total, reverse=True)
    top = [AdvertiserShare(row.adv, row.total, pct(row.total, zone_total)) for row in ranked[:top_n]]
    slices = [AdvertiserShare(row.adv, row.total, pct(row.total, zone_total)) for row in ranked[:pie_n]]
    rest = sum(row.total for row in ranked[pie_n:])
    if rest > 0:
        slices.append(AdvertiserShare(OTHERS_LABEL, rest, pct(rest, zone_total)))
    return top, slices


def monthly_price_medians(listings: Iterable[Listing]) -> list[MonthlyPrice]:
    prices_by_month: dict[str, list[float]] = {}
    eur_m2_by_month: dict[str, list[float]] = {}
    for listing in listings:
        seen_at = parse_timestamp(listing.first_seen_at)
        if seen_at is None:
            continue
        price = _listing_price(listing)
        if price is None:
            continue
        month = seen_at.strftime("%Y-%m")
        prices_by_month.setdefault(month, []).append(price)
        eur_m2_by_month.setdefault(month, [])
        surface = _positive_float(_dig(listing.raw, "topology", "surface", "size"))
        if surface is not None:
            eur_m2_by_month[month].append(price / surface)

    out: list[MonthlyPrice] = []
    for month in sorted(prices_by_month):
        prices = prices_by_month[month]
        median_price = median(prices)
        if median_price is None:
            continue
        out.append(
            MonthlyPrice(
                month=month,
                median_price=median_price,
                median_eur_m2=median(eur_m2_by_month[month]),
                n=len(prices),
            )
        )
    return out


def _listing_price(listing: Listing) -> float | None:
    value = listing.price if listing.price is not None else _dig(listing.raw, "price", "raw")
    return _positive_float(value)


def _positive_float(value: Any) -> float | None:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number) or number <= 0:
        return None
    return number


def _dig(payload: dict[str, Any], *path: str) -> Any:
    current: Any = payload
    for part in path:
        if not isinstance(current, dict):
            return None
        current = current.get(part)
    return current
