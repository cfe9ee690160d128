from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Any


def parse_timestamp(value: Any) -> datetime | None:
    """
    Coerce a store timestamp into an aware UTC datetime.
    Naive values are read as UTC; anything unparseable gives None.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str) and value.strip():
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def start_of_week(value: Any) -> datetime | None:
    current = parse_timestamp(value)
    if current is None:
        return None
    # datetime.weekday() is already Monday=0..Sunday=6, i.e. (js_day + 6) % 7.
    monday = current - timedelta(days=current.weekday())
    return monday.replace(hour=0, minute=0, second=0, microsecond=0)


def week_key(value: Any) -> str:
    monday = start_of_week(value)
    return monday.date().isoformat() if monday else ""


def add_weeks(key: str, weeks: int) -> str:
    try:
        base = date.fromisoformat(key)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid week key: {key!r}") from exc
    return (base + timedelta(days=7 * weeks)).isoformat()


def week_range(start_key: str, count: int) -> list[str]:
    return [add_weeks(start_key, offset) for offset in range(max(0, count))]
