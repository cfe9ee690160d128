from __future__ import annotations

import math
from typing import Any, Iterable


def pct(numerator: Any, denominator: Any) -> float:
    """
    Share of `denominator` as a percentage with at most two decimals.
    Zero, missing or non-numeric denominators give 0.
    """
    num = _to_float(numerator)
    den = _to_float(denominator)
    if not den:
        return 0.0
    ratio = (num / den) * 10000
    if not math.isfinite(ratio):
        return 0.0
    return math.floor(ratio + 0.5) / 100


def round_half_up(value: float, digits: int = 0) -> float:
    # Halves round toward +inf, so -2.5 -> -2 and 2.5 -> 3.
    factor = 10**digits
    return math.floor(value * factor + 0.5) / factor


def median(values: Iterable[Any]) -> float | None:
    cleaned: list[float] = []
    for value in values or []:
        number = _to_float(value, default=math.nan)
        if math.isfinite(number):
            cleaned.append(number)
    if not cleaned:
        return None
    cleaned.sort()
    mid = len(cleaned) // 2
    if len(cleaned) % 2 == 1:
        return cleaned[mid]
    return (cleaned[mid - 1] + cleaned[mid]) / 2


def _to_float(value: Any, default: float = 0.0) -> float:
    if value is None or value == "":
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(number):
        return default
    return number
