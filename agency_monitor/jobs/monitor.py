from __future__ import annotations

import argparse
import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path

from agency_monitor.core.config import Settings, load_settings
from agency_monitor.core.export import weekly_csv_rows, weekly_filename, write_csv, zone_csv_rows, zone_filename
from agency_monitor.core.job_trigger import JobTriggerClient
from agency_monitor.core.models import Listing, TriggerResult
from agency_monitor.core.poller import RunPoller
from agency_monitor.core.supabase_repo import SupabaseRepo
from agency_monitor.core.weekly import load_weekly_report
from agency_monitor.core.zones import (
    NUMERIC_SORT_KEYS,
    OTHERS_LABEL,
    advertiser_shares,
    load_zone_report,
    monthly_price_medians,
    sort_zone_rows,
)


logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
LOGGER = logging.getLogger(__name__)


def run_weekly(repo: SupabaseRepo, settings: Settings, agency_id: str, export_dir: Path | None = None) -> int:
    report = load_weekly_report(repo, agency_id, now=datetime.now(timezone.utc), weeks=settings.monitor_weeks)
    if report.error:
        LOGGER.error("Weekly monitor error: %s", report.error)
        return 1
    for bucket in report.buckets:
        print(f"{bucket.week}  new={bucket.new_count:<5} runs={bucket.run_count}")
    print(f"new7={report.kpi.new7} avg4w={report.kpi.avg4w} runs={report.kpi.runs}")
    if export_dir is not None:
        path = write_csv(export_dir / weekly_filename(agency_id), weekly_csv_rows(report))
        LOGGER.info("Weekly CSV written to %s", path)
    return 0


def run_zones(
    repo: SupabaseRepo,
    agency_id: str,
    zone: str | None,
    export_dir: Path | None = None,
    sort_key: str = "total",
    direction: str = "desc",
) -> int:
    report = load_zone_report(repo, agency_id, zone)
    if report.error:
        LOGGER.error("Zone monitor error: %s", report.error)
        return 1
    if not report.zones:
        print("No zones for this agency.")
        return 0
    print(f"zones: {', '.join(report.zones)}")
    totals = report.totals
    print(f"zone={report.zone} ok={totals.ok}/{totals.total} pot={totals.pot}/{totals.total} ver={totals.ver}/{totals.total}")
    for row in sort_zone_rows(report.rows, sort_key, direction):
        print(
            f"{row.adv}: ok={row.ok} ({row.ok_pct}%) pot={row.pot} ({row.pot_pct}%) "
            f"ver={row.ver} ({row.ver_pct}%) total={row.total} pen={row.pen_pct}%"
        )

    top, slices = advertiser_shares(report.rows, totals.total)
    print("top advertisers:")
    for share in top:
        print(f"  {share.label}: {share.value} ({share.pen_pct}%)")
    others = next((share for share in slices if share.label == OTHERS_LABEL), None)
    if others is not None:
        print(f"  {others.label}: {others.value} ({others.pen_pct}%)")

    print("monthly median prices:")
    for month in monthly_price_medians(report.listings):
        eur_m2 = f"{month.median_eur_m2:.0f}" if month.median_eur_m2 is not None else "-"
        print(f"  {month.month}  price={month.median_price:.0f}  eur_m2={eur_m2}  n={month.n}")

    if export_dir is not None:
        path = write_csv(export_dir / zone_filename(report.zone), zone_csv_rows(report))
        LOGGER.info("Zone CSV written to %s", path)
    return 0


def run_runs(repo: SupabaseRepo, agency_id: str) -> int:
    for row in repo.get_runs(agency_id):
        status = "done" if row.get("run_completed_at") else "pending"
        print(f"{row.get('id')}  {row.get('created_at')}  {status}  new={row.get('new_listings_count') or 0}")
    return 0


def run_listings(repo: SupabaseRepo, run_id: str) -> int:
    for row in repo.get_run_listings(run_id):
        listing = Listing.from_row(row)
        place = ", ".join(part for part in (listing.city, listing.province) if part)
        print(f"{listing.price}  {listing.title or ''}  {place}  {listing.url or ''}")
    return 0


async def start_and_wait(poller: RunPoller, agency_id: str, timeout: float | None) -> TriggerResult:
    result = await poller.start_run(agency_id)
    settled = await poller.wait_settled(timeout)
    if not settled:
        poller.stop_polling()
        LOGGER.warning("Runs still pending for agency=%s after %ss.", agency_id, timeout)
    return result


def run_start(repo: SupabaseRepo, settings: Settings, agency_id: str, timeout: float | None) -> int:
    trigger = JobTriggerClient(settings.job_service_url, timeout_seconds=settings.trigger_timeout_seconds)
    poller = RunPoller(repo, trigger, poll_interval=settings.poll_interval_seconds)
    result = asyncio.run(start_and_wait(poller, agency_id, timeout))
    LOGGER.info("Run cycle finished agency=%s state=%s runs=%s", agency_id, poller.state.value, len(poller.runs))
    return 0 if result.ok else 1


def resolve_agency_id(repo: SupabaseRepo, agency_id: str | None, user_id: str | None) -> str:
    if agency_id:
        return agency_id
    if user_id:
        agency = repo.get_agency_for_user(user_id)
        if agency and agency.get("id"):
            return str(agency["id"])
    raise ValueError("An agency is required: pass --agency-id or --user-id.")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Agency market monitor.")
    parser.add_argument("--agency-id", help="Agency UUID.")
    parser.add_argument("--user-id", help="Resolve the agency owned by this user.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    weekly = subparsers.add_parser("weekly", help="Weekly new listings and run counts.")
    weekly.add_argument("--export", type=Path, help="Directory for the CSV export.")

    zones = subparsers.add_parser("zones", help="Per-zone advertiser breakdown.")
    zones.add_argument("--zone", help="Macrozone to inspect (defaults to the first one).")
    zones.add_argument("--export", type=Path, help="Directory for the CSV export.")
    zones.add_argument(
        "--sort",
        default="total",
        choices=sorted({"adv", *NUMERIC_SORT_KEYS}),
        help="Advertiser column to sort by.",
    )
    zones.add_argument("--direction", default="desc", choices=["asc", "desc"])

    subparsers.add_parser("runs", help="List agency runs, newest first.")

    listings = subparsers.add_parser("listings", help="Listings found by a run, cheapest first.")
    listings.add_argument("run_id")

    start = subparsers.add_parser("start-run", help="Trigger a run and wait until it completes.")
    start.add_argument("--timeout", type=float, default=None, help="Stop waiting after N seconds.")

    args = parser.parse_args(argv)
    settings = load_settings()
    repo = SupabaseRepo()

    if args.command == "listings":
        return run_listings(repo, args.run_id)

    agency_id = resolve_agency_id(repo, args.agency_id, args.user_id)
    if args.command == "weekly":
        return run_weekly(repo, settings, agency_id, args.export)
    if args.command == "zones":
        return run_zones(repo, agency_id, args.zone, args.export, args.sort, args.direction)
    if args.command == "runs":
        return run_runs(repo, agency_id)
    return run_start(repo, settings, agency_id, args.timeout)


if __name__ == "__main__":
    raise SystemExit(main())
