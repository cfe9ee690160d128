import asyncio
import json
from unittest.mock import MagicMock

import httpx
import pytest

from agency_monitor.core.config import Settings
from agency_monitor.core.job_trigger import JobTriggerClient
from agency_monitor.core.poller import PollState, RunPoller
from agency_monitor.jobs import monitor
from agency_monitor.jobs.monitor import resolve_agency_id, run_start, run_weekly, run_zones, start_and_wait

SETTINGS = Settings(
    job_service_url="http://jobs.local",
    poll_interval_seconds=0.01,
    monitor_weeks=12,
    trigger_timeout_seconds=1.0,
)


def test_resolve_agency_prefers_explicit_id():
    repo = MagicMock()
    assert resolve_agency_id(repo, "a1", "u1") == "a1"
    repo.get_agency_for_user.assert_not_called()


def test_resolve_agency_from_owner():
    repo = MagicMock()
    repo.get_agency_for_user.return_value = {"id": "a9"}
    assert resolve_agency_id(repo, None, "u1") == "a9"


def test_resolve_agency_missing():
    repo = MagicMock()
    repo.get_agency_for_user.return_value = None
    with pytest.raises(ValueError):
        resolve_agency_id(repo, None, "u1")


def test_weekly_export_writes_csv(tmp_path, capsys):
    repo = MagicMock()
    repo.get_runs_since.return_value = []

    assert run_weekly(repo, SETTINGS, "a1", tmp_path) == 0

    lines = (tmp_path / "monitor_weekly_a1.csv").read_text(encoding="utf-8").splitlines()
    assert lines[0] == "week_start_utc,new_listings,runs_count"
    assert len(lines) == 13
    assert "new7=0 avg4w=0.0 runs=0" in capsys.readouterr().out


def test_zones_command_reports_store_errors():
    repo = MagicMock()
    repo.get_agency_listing_ids.side_effect = RuntimeError("boom")
    assert run_zones(repo, "a1", None) == 1


def test_zones_command_prints_shares_and_prices(capsys):
    repo = MagicMock()
    repo.get_agency_listing_ids.return_value = ["1", "2", "3"]
    repo.get_listings_by_ids.return_value = [
        {
            "id": "1",
            "price": 100000,
            "first_seen_at": "2026-01-03T10:00:00Z",
            "raw": {"analytics": {"macrozone": "Centro", "advertiser": "agenzia", "agencyName": "Casa"}},
        },
        {
            "id": "2",
            "price": 300000,
            "first_seen_at": "2026-01-10T10:00:00Z",
            "raw": {"analytics": {"macrozone": "Centro", "advertiser": "agenzia", "agencyName": "Casa"}},
        },
        {"id": "3", "raw": {"analytics": {"macrozone": "Centro"}}},
    ]
    repo.get_assignment_map.return_value = {"1": "agent"}

    assert run_zones(repo, "a1", None, sort_key="adv", direction="asc") == 0

    out = capsys.readouterr().out
    assert "zone=Centro ok=1/3 pot=2/3 ver=0/3" in out
    assert out.index("Agenzia: Casa: ok=1") < out.index("Privato: Inserzionista privato: ok=0")
    assert "top advertisers:\n  Agenzia: Casa: 2 (66.67%)" in out
    assert "2026-01  price=200000  eur_m2=-  n=2" in out


class FakeRunsRepo:
    def __init__(self):
        self.calls = 0

    def get_runs(self, agency_id):
        self.calls += 1
        completed_at = None if self.calls < 3 else "2026-03-17T10:05:00Z"
        return [{"id": "r1", "created_at": "2026-03-17T10:00:00Z", "run_completed_at": completed_at}]


def _mock_trigger_factory(status, seen):
    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(json.loads(request.content))
        return httpx.Response(status)

    def factory(base_url, timeout_seconds=15.0):
        return JobTriggerClient(base_url, timeout_seconds, transport=httpx.MockTransport(handler))

    return factory


def test_start_run_command_waits_for_completion(monkeypatch):
    seen = []
    monkeypatch.setattr(monitor, "JobTriggerClient", _mock_trigger_factory(200, seen))
    repo = FakeRunsRepo()

    assert run_start(repo, SETTINGS, "a1", timeout=2) == 0
    assert seen == [{"agency_id": "a1"}]
    assert repo.calls >= 3


def test_start_run_command_fails_when_trigger_rejected(monkeypatch):
    seen = []
    monkeypatch.setattr(monitor, "JobTriggerClient", _mock_trigger_factory(503, seen))

    assert run_start(FakeRunsRepo(), SETTINGS, "a1", timeout=2) == 1
    assert len(seen) == 1


def test_start_and_wait_stops_polling_on_timeout():
    class PendingRepo:
        def get_runs(self, agency_id):
            return [{"id": "r1", "created_at": "2026-03-17T10:00:00Z", "run_completed_at": None}]

    transport = httpx.MockTransport(lambda request: httpx.Response(200))
    poller = RunPoller(PendingRepo(), JobTriggerClient("http://jobs.local", transport=transport), poll_interval=0.01)

    result = asyncio.run(start_and_wait(poller, "a1", timeout=0.05))

    assert result.ok is True
    assert poller.is_polling is False
    assert poller.state is PollState.IDLE
