from __future__ import annotations

import os
from dataclasses import dataclass


DEFAULT_JOB_SERVICE_URL = "https://immobiliare-backend.onrender.com"
DEFAULT_POLL_INTERVAL_MS = 5000
DEFAULT_MONITOR_WEEKS = 12
DEFAULT_TRIGGER_TIMEOUT_SECONDS = 15.0


@dataclass(frozen=True, slots=True)
class Settings:
    job_service_url: str
    poll_interval_seconds: float
    monitor_weeks: int
    trigger_timeout_seconds: float


def load_settings() -> Settings:
    job_service_url = (os.environ.get("JOB_SERVICE_URL") or DEFAULT_JOB_SERVICE_URL).strip().rstrip("/")
    poll_interval_ms = _env_int("MONITOR_POLL_INTERVAL_MS", DEFAULT_POLL_INTERVAL_MS)
    monitor_weeks = _env_int("MONITOR_WEEKS", DEFAULT_MONITOR_WEEKS)
    return Settings(
        job_service_url=job_service_url,
        poll_interval_seconds=max(1, poll_interval_ms) / 1000.0,
        monitor_weeks=max(1, monitor_weeks),
        trigger_timeout_seconds=_env_float("JOB_TRIGGER_TIMEOUT_SECONDS", DEFAULT_TRIGGER_TIMEOUT_SECONDS),
    )


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        return int(raw.strip())
    except (TypeError, ValueError):
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        value = float(raw.strip())
    except (TypeError, ValueError):
        return default
    return value if value > 0 else default
