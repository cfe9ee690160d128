from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable

from agency_monitor.core.models import Run, WeekBucket, WeeklyKpi, WeeklyReport
from agency_monitor.core.percent import round_half_up
from agency_monitor.core.supabase_repo import SupabaseRepo
from agency_monitor.core.weeks import add_weeks, week_key, week_range


LOGGER = logging.getLogger(__name__)

MONITOR_WEEKS = 12
DEFAULT_ERROR_MESSAGE = "Errore monitor"


def weekly_since(now: datetime, weeks: int = MONITOR_WEEKS) -> datetime:
    # One extra week so the oldest bucket is fully covered.
    return now - timedelta(days=weeks * 7 + 7)


def build_weekly_report(
    agency_id: str,
    runs: Iterable[Run | dict[str, Any]],
    now: datetime,
    weeks: int = MONITOR_WEEKS,
) -> WeeklyReport:
    totals: dict[str, WeekBucket] = {}
    for item in runs:
        run = item if isinstance(item, Run) else Run.from_row(item)
        key = week_key(run.created_at)
        if not key:
            continue
        bucket = totals.setdefault(key, WeekBucket(week=key))
        bucket.new_count += run.new_listings_count
        bucket.run_count += 1

    start_key = add_weeks(week_key(now), -(weeks - 1))
    buckets: list[WeekBucket] = []
    for key in week_range(start_key, weeks):
        observed = totals.get(key)
        buckets.append(
            WeekBucket(
                week=key,
                new_count=observed.new_count if observed else 0,
                run_count=observed.run_count if observed else 0,
            )
        )
    return WeeklyReport(agency_id=agency_id, buckets=buckets, kpi=compute_kpi(buckets))


def compute_kpi(buckets: list[WeekBucket]) -> WeeklyKpi:
    if not buckets:
        return WeeklyKpi()
    last_four = buckets[-4:]
    avg4w = sum(bucket.new_count for bucket in last_four) / max(1, len(last_four))
    return WeeklyKpi(
        new7=buckets[-1].new_count,
        avg4w=round_half_up(avg4w, 1),
        runs=sum(bucket.run_count for bucket in buckets),
    )


def load_weekly_report(
    repo: SupabaseRepo,
    agency_id: str,
    now: datetime | None = None,
    weeks: int = MONITOR_WEEKS,
) -> WeeklyReport:
    if not agency_id:
        return WeeklyReport(agency_id="")
    current = now or datetime.now(timezone.utc)
    try:
        rows = repo.get_runs_since(agency_id, weekly_since(current, weeks))
        report = build_weekly_report(agency_id, rows, current, weeks)
    except Exception as exc:  # noqa: BLE001
        LOGGER.exception("Weekly monitor failed for agency=%s", agency_id)
        return WeeklyReport(agency_id=agency_id, error=str(exc) or DEFAULT_ERROR_MESSAGE)
    LOGGER.info(
        "Weekly monitor agency=%s runs=%s new7=%s avg4w=%s",
        agency_id,
        report.kpi.runs,
        report.kpi.new7,
        report.kpi.avg4w,
    )
    return report
