from __future__ import annotations

import csv
import io
from pathlib import Path
from typing import Any, Iterable, Sequence

from agency_monitor.core.models import WeeklyReport, ZoneReport


WEEKLY_HEADER = ["week_start_utc", "new_listings", "runs_count"]
ZONE_HEADER = [
    "macrozone",
    "advertiser",
    "ok_assigned",
    "potenziale_unassigned",
    "da_verificare_zone_empty",
    "total",
    "penetration_pct",
]


def to_csv(rows: Iterable[Sequence[Any]]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n", quoting=csv.QUOTE_MINIMAL)
    for row in rows:
        writer.writerow([_format_field(value) for value in row])
    return buffer.getvalue()


def weekly_csv_rows(report: WeeklyReport) -> list[list[Any]]:
    body = [[bucket.week, bucket.new_count, bucket.run_count] for bucket in report.buckets]
    return [WEEKLY_HEADER, *body]


def zone_csv_rows(report: ZoneReport) -> list[list[Any]]:
    body = [[report.zone, row.adv, row.ok, row.pot, row.ver, row.total, row.pen_pct] for row in report.rows]
    return [ZONE_HEADER, *body]


def weekly_filename(agency_id: str | None) -> str:
    return f"monitor_weekly_{agency_id or 'agency'}.csv"


def zone_filename(zone: str | None) -> str:
    return f"monitor_zone_{zone or ''}.csv"


def write_csv(path: str | Path, rows: Iterable[Sequence[Any]]) -> Path:
    target = Path(path)
    target.write_text(to_csv(rows), encoding="utf-8", newline="")
    return target


def _format_field(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)
