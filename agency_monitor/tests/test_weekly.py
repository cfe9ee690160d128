from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

from agency_monitor.core.models import Run
from agency_monitor.core.weekly import build_weekly_report, load_weekly_report, weekly_since
from agency_monitor.core.weeks import week_key

NOW = datetime(2026, 3, 18, 10, 0, tzinfo=timezone.utc)  # Wednesday


def test_two_consecutive_weeks_land_in_their_buckets():
    w0 = datetime(2026, 3, 2, tzinfo=timezone.utc)
    runs = [
        {"created_at": (w0 + timedelta(days=2)).isoformat(), "new_listings_count": 5},
        {"created_at": (w0 + timedelta(days=9)).isoformat(), "new_listings_count": 3},
    ]

    report = build_weekly_report("agency-1", runs, NOW, weeks=12)

    assert len(report.buckets) == 12
    by_week = {bucket.week: bucket.new_count for bucket in report.buckets}
    assert by_week[week_key(w0)] == 5
    assert by_week["2026-03-09"] == 3
    assert sum(by_week.values()) == 8
    assert report.buckets[-1].week == "2026-03-16"
    assert report.buckets[0].week == "2025-12-29"


def test_gaps_are_zero_filled_and_ordered_oldest_first():
    report = build_weekly_report("agency-1", [], NOW, weeks=12)
    weeks = [bucket.week for bucket in report.buckets]
    assert weeks == sorted(weeks)
    assert all(bucket.new_count == 0 and bucket.run_count == 0 for bucket in report.buckets)
    assert (report.kpi.new7, report.kpi.avg4w, report.kpi.runs) == (0, 0.0, 0)


def test_kpis_from_last_buckets():
    runs = [
        Run(id="r1", agency_id="a", created_at="2026-03-16T08:00:00Z", run_completed_at="x", new_listings_count=4),
        Run(id="r2", agency_id="a", created_at="2026-03-17T08:00:00Z", run_completed_at="x", new_listings_count=3),
        Run(id="r3", agency_id="a", created_at="2026-03-10T08:00:00Z", run_completed_at="x", new_listings_count=2),
        Run(id="r4", agency_id="a", created_at="2026-02-24T08:00:00Z", run_completed_at="x", new_listings_count=1),
        Run(id="r5", agency_id="a", created_at="2026-01-05T08:00:00Z", run_completed_at="x", new_listings_count=9),
    ]

    report = build_weekly_report("a", runs, NOW)

    assert report.kpi.new7 == 7
    # last four weeks: 1, 0, 2, 7
    assert report.kpi.avg4w == 2.5
    assert report.kpi.runs == 5
    assert report.buckets[-1].run_count == 2


def test_runs_with_bad_timestamps_are_skipped():
    runs = [
        {"created_at": "garbage", "new_listings_count": 10},
        {"created_at": "2026-03-17T00:00:00Z", "new_listings_count": None},
    ]
    report = build_weekly_report("a", runs, NOW)
    assert report.kpi.runs == 1
    assert report.kpi.new7 == 0


def test_runs_outside_window_are_ignored():
    runs = [{"created_at": "2025-12-20T00:00:00Z", "new_listings_count": 50}]
    report = build_weekly_report("a", runs, NOW)
    assert report.kpi.runs == 0


def test_load_weekly_report_queries_with_slack_week():
    repo = MagicMock()
    repo.get_runs_since.return_value = [{"created_at": "2026-03-17T09:00:00Z", "new_listings_count": 6}]

    report = load_weekly_report(repo, "agency-1", now=NOW)

    repo.get_runs_since.assert_called_once_with("agency-1", NOW - timedelta(days=91))
    assert report.error == ""
    assert report.kpi.new7 == 6
    assert weekly_since(NOW, 12) == NOW - timedelta(weeks=13)


def test_load_weekly_report_failure_returns_empty_state():
    repo = MagicMock()
    repo.get_runs_since.side_effect = RuntimeError("connection reset")

    report = load_weekly_report(repo, "agency-1", now=NOW)

    assert report.buckets == []
    assert (report.kpi.new7, report.kpi.avg4w, report.kpi.runs) == (0, 0.0, 0)
    assert report.error == "connection reset"


def test_load_weekly_report_without_agency_skips_store():
    repo = MagicMock()
    report = load_weekly_report(repo, "", now=NOW)
    assert report.buckets == []
    repo.get_runs_since.assert_not_called()
