"""
Command-line interface for PeakLoad.

This module provides CLI commands for estimating training stress, computing
weekly fitness snapshots, backfilling history and scanning for duplicate
activities. Every command reads a JSON export (an array of activity objects)
into in-memory storage.
"""

import json
import os
import sys
from datetime import datetime, timezone
from typing import List, Optional

import click
from dateutil.parser import parse as parse_date
from pydantic import ValidationError as ModelValidationError

from peakload.analytics import estimate_stress_breakdown, get_week_start
from peakload.config import get_settings
from peakload.services import DeduplicationService, FitnessHistoryService, SnapshotService
from peakload.services.history_service import COMPARE_TARGETS, QUERY_TYPES
from peakload.storage import Activity, AthletePreferences, InMemoryStorage
from peakload.utils import setup_logging


def _load_activities(path: str, athlete: Optional[str] = None) -> List[Activity]:
    with open(path, "r", encoding="utf-8") as fh:
        payload = json.load(fh)
    if not isinstance(payload, list):
        raise click.ClickException(f"{path} must contain a JSON array of activities")

    activities = []
    for index, item in enumerate(payload):
        if athlete and "athlete_id" not in item:
            item = {**item, "athlete_id": athlete}
        try:
            activities.append(Activity.model_validate(item))
        except ModelValidationError as e:
            raise click.ClickException(f"Activity #{index} is invalid: {e}")
    return activities


def _build_storage(path: str, athlete: Optional[str], ftp: Optional[float],
                   max_hr: Optional[int]) -> InMemoryStorage:
    storage = InMemoryStorage()
    storage.add_activities(_load_activities(path, athlete))
    if athlete and (ftp or max_hr):
        storage.set_preferences(AthletePreferences(athlete_id=athlete, ftp=ftp, max_hr=max_hr))
    return storage


def _clock(as_of: Optional[str]):
    if not as_of:
        return lambda: datetime.now(timezone.utc)
    moment = parse_date(as_of)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return lambda: moment


def _echo_json(data) -> None:
    click.echo(json.dumps(data, indent=2, default=str))


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--log-format", type=click.Choice(["console", "json"]), default=None, help="Log output format")
def cli(debug: bool, log_format: Optional[str]) -> None:
    """PeakLoad training-load command-line interface."""
    if debug:
        os.environ["DEBUG"] = "true"
    logging_settings = get_settings().logging
    setup_logging(
        level="DEBUG" if debug else logging_settings.level,
        format_type=log_format or logging_settings.format,
        log_file=logging_settings.log_file,
    )


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--json", "as_json", is_flag=True, help="Print results as JSON")
def estimate(file: str, as_json: bool) -> None:
    """Estimate training stress for every activity in FILE."""
    activities = _load_activities(file, athlete="cli")
    results = []
    for activity in activities:
        breakdown = estimate_stress_breakdown(activity)
        results.append({
            "id": activity.id,
            "name": activity.name,
            "type": activity.activity_type,
            "start": activity.start_time.isoformat(),
            **breakdown.to_dict(),
        })

    if as_json:
        _echo_json(results)
        return

    click.echo(f"🧮 Training stress for {len(results)} activities:")
    for row in results:
        click.echo(f"  • {row['start'][:10]} {row['name'] or row['id']}: {row['tss']} TSS ({row['method']})")
    click.echo(f"\n✅ Total: {sum(r['tss'] for r in results)} TSS")


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--athlete", "-a", required=True, help="Athlete identifier")
@click.option("--week", "-w", required=True, help="Any date in the target week")
@click.option("--ftp", type=float, help="Athlete FTP in watts")
@click.option("--max-hr", type=int, help="Athlete maximum heart rate")
def snapshot(file: str, athlete: str, week: str, ftp: Optional[float], max_hr: Optional[int]) -> None:
    """Compute the weekly fitness snapshot for one week."""
    storage = _build_storage(file, athlete, ftp, max_hr)
    service = SnapshotService(storage, storage, storage, storage)
    try:
        result = service.compute_weekly_snapshot(athlete, get_week_start(week))
    except Exception as e:
        click.echo(f"❌ Snapshot failed: {e}", err=True)
        sys.exit(1)
    _echo_json(result.model_dump(mode="json"))


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--athlete", "-a", required=True, help="Athlete identifier")
@click.option("--weeks", default=52, show_default=True, help="Maximum weeks to backfill")
@click.option("--as-of", help="Treat this date as today")
@click.option("--ftp", type=float, help="Athlete FTP in watts")
def backfill(file: str, athlete: str, weeks: int, as_of: Optional[str], ftp: Optional[float]) -> None:
    """Backfill weekly snapshots, most recent week first."""
    storage = _build_storage(file, athlete, ftp, None)
    service = SnapshotService(storage, storage, storage, storage, clock=_clock(as_of))
    result = service.backfill_snapshots(athlete, weeks)

    if result.message:
        click.echo(f"📋 {result.message}")
    click.echo(f"✅ Created {result.snapshots_created} snapshots over {result.weeks_processed} weeks")
    for error in result.errors:
        click.echo(f"  ❌ {error['week']}: {error['error']}", err=True)

    click.echo("\n📊 Weekly load:")
    for row in storage.list_snapshots(athlete):
        click.echo(
            f"  • {row.snapshot_week.isoformat()}  CTL {row.ctl:>3}  ATL {row.atl:>3}  "
            f"TSB {row.tsb:>4}  TSS {row.weekly_tss:>4}  ({row.load_trend})"
        )


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--athlete", "-a", required=True, help="Athlete identifier")
@click.option("--weeks", default=12, show_default=True, help="Weeks of history to analyze")
@click.option("--query-type", "-q", type=click.Choice(QUERY_TYPES), default="recent_trend", show_default=True)
@click.option("--compare-to", type=click.Choice(COMPARE_TARGETS), default="last_year", show_default=True,
              help="Comparison period for compare_periods")
@click.option("--as-of", help="Treat this date as today")
def history(file: str, athlete: str, weeks: int, query_type: str, compare_to: str,
            as_of: Optional[str]) -> None:
    """Summarize fitness history, backfilling snapshots when none exist."""
    storage = _build_storage(file, athlete, None, None)
    snapshots = SnapshotService(storage, storage, storage, storage, clock=_clock(as_of))
    service = FitnessHistoryService(storage, snapshots)
    result = service.query(athlete, weeks_back=weeks, query_type=query_type, compare_to=compare_to)

    if not result.get("success"):
        click.echo(f"❌ {result.get('message')}", err=True)
        if result.get("suggestion"):
            click.echo(f"💡 {result['suggestion']}", err=True)
        sys.exit(1)
    click.echo(f"📊 {result['summary']}")


@cli.command("dedup-scan")
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--athlete", "-a", required=True, help="Athlete identifier")
def dedup_scan(file: str, athlete: str) -> None:
    """Find and mark cross-provider duplicates in FILE."""
    storage = _build_storage(file, athlete, None, None)
    service = DeduplicationService(storage)
    stats = service.find_and_mark_duplicates(athlete)

    click.echo(f"🔍 Found {stats['found']} duplicates, marked {stats['marked']}, errors {stats['errors']}")
    for activity in sorted(storage.activities.values(), key=lambda a: a.start_time):
        if activity.duplicate_of:
            click.echo(f"  • {activity.provider} {activity.provider_activity_id} → {activity.duplicate_of}")


@cli.command("config")
def show_config() -> None:
    """Show the effective configuration."""
    _echo_json(get_settings().to_dict())


if __name__ == "__main__":
    cli()
