"""CLI commands for note analytics."""

import asyncio
import csv
import json
import logging
import sys
import uuid
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path

import click
import structlog
from pydantic import SecretStr

from note_analytics import __version__
from note_analytics.fetch import FetchConfig, FetchFailedError, NoteCredentials
from note_analytics.normalize import rows_from_csv
from note_analytics.observability import bind_run_context, configure_logging
from note_analytics.report import (
    RollupPeriod,
    compare_periods,
    export_detail_csv,
    export_summary_csv,
    kpi_totals,
    rollup,
)
from note_analytics.settings import AppSettings, get_settings
from note_analytics.store import AnalyticsStore, IdentityConflictError, OperationKind
from note_analytics.sync import ImportService, OperationInProgressError, SyncService


logger = structlog.get_logger()

COMPONENT_CLI = "cli"
DATE_FORMATS = ["%Y-%m-%d"]


@dataclass
class CliContext:
    """Options shared by all commands."""

    settings: AppSettings
    db_path: Path
    json_logs: bool
    verbose: bool


def _setup(ctx: click.Context, command: str) -> tuple[CliContext, str]:
    """Configure logging and bind a run id for one command."""
    options: CliContext = ctx.obj
    run_id = str(uuid.uuid4())
    log_level = logging.DEBUG if options.verbose else logging.INFO
    configure_logging(level=log_level, json_format=options.json_logs)
    bind_run_context(run_id)
    logger.bind(component=COMPONENT_CLI, command=command).debug(
        "command_started", db_path=str(options.db_path)
    )
    return options, run_id


def _as_date(value: datetime | None) -> date | None:
    return value.date() if value is not None else None


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--db",
    "db_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Path to SQLite database (default: NOTE_ANALYTICS_DB_PATH).",
)
@click.option(
    "--json-logs/--console-logs",
    default=True,
    help="Use JSON format for logs (default: JSON).",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose logging.",
)
@click.pass_context
def cli(ctx: click.Context, db_path: Path | None, json_logs: bool, verbose: bool) -> None:
    """note.com article analytics CLI."""
    settings = get_settings()
    ctx.obj = CliContext(
        settings=settings,
        db_path=db_path or settings.db_path,
        json_logs=json_logs,
        verbose=verbose,
    )


@cli.command()
@click.option(
    "--max-pages",
    type=click.IntRange(min=1),
    default=None,
    help="Maximum pages to fetch (default: NOTE_MAX_PAGES).",
)
@click.option(
    "--date",
    "snapshot_date",
    type=click.DateTime(formats=DATE_FORMATS),
    default=None,
    help="Date to record the snapshot under (default: today).",
)
@click.pass_context
def sync(ctx: click.Context, max_pages: int | None, snapshot_date: datetime | None) -> None:
    """Fetch current stats and store them as a daily snapshot."""
    options, run_id = _setup(ctx, "sync")
    settings = options.settings

    if not settings.has_credentials:
        click.echo(
            "Error: NOTE_AUTH_TOKEN and NOTE_SESSION_TOKEN must be set.", err=True
        )
        sys.exit(1)

    credentials = NoteCredentials(
        auth_token=SecretStr(settings.note_auth_token or ""),
        session_token=SecretStr(settings.note_session_token or ""),
    )
    fetch_config = FetchConfig(
        base_url=settings.stats_base_url,
        page_delay_seconds=settings.page_delay_seconds,
    )

    with AnalyticsStore(db_path=options.db_path, run_id=run_id) as store:
        service = SyncService(store, fetch_config=fetch_config)
        try:
            result = asyncio.run(
                service.run(
                    credentials,
                    max_pages=max_pages or settings.max_pages,
                    snapshot_date=_as_date(snapshot_date),
                )
            )
        except FetchFailedError as e:
            click.echo(f"Sync failed on page {e.page} (status {e.status})", err=True)
            sys.exit(1)
        except OperationInProgressError as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)

    if not result.applied:
        click.echo(f"No records fetched; nothing stored for {result.date.isoformat()}.")
        return

    click.echo(f"Sync complete for {result.date.isoformat()}.")
    click.echo(f"  Records: {result.record_count}")
    click.echo(f"  Skipped: {result.skipped_count}")
    click.echo(f"  Pages: {result.pages_fetched} ({result.termination_reason.value})")
    click.echo(f"  Rows written: {result.rows_written}")


@cli.command("import-csv")
@click.argument(
    "csv_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option(
    "--date",
    "import_date",
    required=True,
    type=click.DateTime(formats=DATE_FORMATS),
    help="Date the cumulative totals were taken (YYYY-MM-DD).",
)
@click.option(
    "--backfill-only",
    is_flag=True,
    help="Register unknown articles as drafts.",
)
@click.option(
    "--promote-drafts",
    is_flag=True,
    help="Promote draft articles found in this file to published.",
)
@click.pass_context
def import_csv(
    ctx: click.Context,
    csv_path: Path,
    import_date: datetime,
    backfill_only: bool,
    promote_drafts: bool,
) -> None:
    """Import a cumulative export file as daily deltas."""
    options, run_id = _setup(ctx, "import-csv")
    try:
        rows = rows_from_csv(csv_path)
    except (UnicodeDecodeError, csv.Error) as e:
        click.echo(f"Error: cannot read {csv_path} as UTF-8 CSV: {e}", err=True)
        sys.exit(1)

    with AnalyticsStore(db_path=options.db_path, run_id=run_id) as store:
        try:
            result = ImportService(store).run(
                import_date.date(),
                rows,
                backfill_only=backfill_only,
                promote_drafts=promote_drafts,
            )
        except IdentityConflictError as e:
            click.echo(f"Import aborted: {e}", err=True)
            sys.exit(1)

    click.echo(f"Import complete for {result.import_date.isoformat()}.")
    click.echo(f"  Deltas written: {result.deltas_written}")
    click.echo(f"  Articles created: {result.created_count}")
    click.echo(f"  Drafts promoted: {result.promoted_count}")
    click.echo(f"  Rows skipped: {result.skipped_count}")
    for anomaly in result.anomalies:
        click.echo(
            f"  Clamped {anomaly.metric} for {anomaly.external_key}: "
            f"cumulative {anomaly.cumulative} < recorded {anomaly.prior_sum}"
        )
    if result.failures:
        for failure in result.failures:
            click.echo(f"  Failed {failure.external_key}: {failure.reason}", err=True)
        sys.exit(1)


@cli.command()
@click.option(
    "--kind",
    type=click.Choice(["detail", "summary"]),
    default="detail",
    help="Per-day rows or per-article totals.",
)
@click.option("--start", type=click.DateTime(formats=DATE_FORMATS), default=None)
@click.option("--end", type=click.DateTime(formats=DATE_FORMATS), default=None)
@click.option(
    "--output",
    "output_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write CSV to this file (UTF-8 with BOM) instead of stdout.",
)
@click.pass_context
def export(
    ctx: click.Context,
    kind: str,
    start: datetime | None,
    end: datetime | None,
    output_path: Path | None,
) -> None:
    """Export stored metrics as CSV."""
    options, run_id = _setup(ctx, "export")

    with AnalyticsStore(db_path=options.db_path, run_id=run_id) as store:
        if kind == "detail":
            content = export_detail_csv(store, _as_date(start), _as_date(end))
        else:
            content = export_summary_csv(store, _as_date(start), _as_date(end))

    if output_path is None:
        click.echo(content, nl=False)
        return

    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(content, encoding="utf-8-sig")
    click.echo(f"Exported {kind} CSV to {output_path}")


@cli.command("rollup")
@click.option(
    "--period",
    type=click.Choice([p.value for p in RollupPeriod]),
    default=RollupPeriod.DAILY.value,
    help="Aggregation bucket (weeks start on Sunday).",
)
@click.option("--start", type=click.DateTime(formats=DATE_FORMATS), default=None)
@click.option("--end", type=click.DateTime(formats=DATE_FORMATS), default=None)
@click.pass_context
def rollup_command(
    ctx: click.Context,
    period: str,
    start: datetime | None,
    end: datetime | None,
) -> None:
    """Show totals per day, week, or month."""
    options, run_id = _setup(ctx, "rollup")

    with AnalyticsStore(db_path=options.db_path, run_id=run_id) as store:
        buckets = rollup(store, RollupPeriod(period), _as_date(start), _as_date(end))

    click.echo(f"{'period':<12} {'pv':>10} {'likes':>8} {'comments':>9}")
    for bucket in buckets:
        totals = bucket.totals
        click.echo(
            f"{bucket.key:<12} {totals.pv:>10} {totals.likes:>8} {totals.comments:>9}"
        )


@cli.command()
@click.option(
    "--first",
    nargs=2,
    required=True,
    type=click.DateTime(formats=DATE_FORMATS),
    help="First range: START END.",
)
@click.option(
    "--second",
    nargs=2,
    required=True,
    type=click.DateTime(formats=DATE_FORMATS),
    help="Second range: START END.",
)
@click.pass_context
def compare(
    ctx: click.Context,
    first: tuple[datetime, datetime],
    second: tuple[datetime, datetime],
) -> None:
    """Compare totals of two date ranges."""
    options, run_id = _setup(ctx, "compare")

    with AnalyticsStore(db_path=options.db_path, run_id=run_id) as store:
        try:
            comparison = compare_periods(
                store,
                (first[0].date(), first[1].date()),
                (second[0].date(), second[1].date()),
            )
        except ValueError as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)

    for change in comparison.changes:
        sign = "+" if change.change_percent > 0 else ""
        click.echo(
            f"  {change.metric}: {change.first} -> {change.second} "
            f"({sign}{change.change_percent}%)"
        )


@cli.command()
@click.option(
    "--date",
    "stats_date",
    type=click.DateTime(formats=DATE_FORMATS),
    default=None,
    help="Day the figures belong to (default: today).",
)
@click.option("--followers", type=click.IntRange(min=0), default=None)
@click.option("--revenue", type=click.IntRange(min=0), default=None)
@click.option(
    "--list",
    "list_only",
    is_flag=True,
    help="Show recorded figures instead of saving.",
)
@click.pass_context
def stats(
    ctx: click.Context,
    stats_date: datetime | None,
    followers: int | None,
    revenue: int | None,
    list_only: bool,
) -> None:
    """Record or list account followers and revenue per day."""
    options, run_id = _setup(ctx, "stats")

    if not list_only and followers is None and revenue is None:
        click.echo("Error: give --followers and/or --revenue, or --list.", err=True)
        sys.exit(1)

    with AnalyticsStore(db_path=options.db_path, run_id=run_id) as store:
        if list_only:
            history = store.list_account_stats()
        else:
            day = _as_date(stats_date) or date.today()
            saved = store.upsert_account_stats(day, followers=followers, revenue=revenue)

    if list_only:
        click.echo(f"{'date':<12} {'followers':>10} {'revenue':>12}")
        for entry in history:
            click.echo(
                f"{entry.date.isoformat():<12} "
                f"{_format_count(entry.followers):>10} "
                f"{_format_revenue(entry.revenue):>12}"
            )
        return

    click.echo(
        f"Saved stats for {saved.date.isoformat()}: "
        f"followers {_format_count(saved.followers)}, "
        f"revenue {_format_revenue(saved.revenue)}"
    )


def _format_count(value: int | None) -> str:
    return f"{value:,}" if value is not None else "-"


def _format_revenue(value: int | None) -> str:
    return f"¥{value:,}" if value is not None else "-"


@cli.command()
@click.option(
    "--json",
    "json_output",
    is_flag=True,
    help="Output as JSON.",
)
@click.pass_context
def status(ctx: click.Context, json_output: bool) -> None:
    """Display database statistics and last successful operations."""
    options, run_id = _setup(ctx, "status")

    with AnalyticsStore(db_path=options.db_path, run_id=run_id) as store:
        stats = store.get_stats()
        schema_version = store.get_schema_version()
        last_sync = store.get_last_successful_run(OperationKind.SYNC)
        last_import = store.get_last_successful_run(OperationKind.IMPORT)
        totals = kpi_totals(store)
        account = store.get_latest_account_stats()

    last_sync_at = last_sync.finished_at if last_sync else None
    last_import_at = last_import.finished_at if last_import else None

    if json_output:
        output = {
            "schema_version": schema_version,
            "tables": stats,
            "last_successful_sync": last_sync_at.isoformat() if last_sync_at else None,
            "last_successful_import": (
                last_import_at.isoformat() if last_import_at else None
            ),
            "totals": totals.as_dict(),
            "latest_account_stats": (
                account.model_dump(mode="json") if account else None
            ),
        }
        click.echo(json.dumps(output, indent=2))
        return

    click.echo("Analytics Database Statistics")
    click.echo("=" * 40)
    click.echo(f"  Schema Version: {schema_version}")
    click.echo(f"  Last Successful Sync: {last_sync_at.isoformat() if last_sync_at else 'None'}")
    click.echo(
        f"  Last Successful Import: {last_import_at.isoformat() if last_import_at else 'None'}"
    )
    click.echo("")
    click.echo("Totals:")
    for metric, value in totals.as_dict().items():
        click.echo(f"  {metric}: {value}")
    click.echo(f"  followers: {_format_count(account.followers if account else None)}")
    click.echo(f"  revenue: {_format_revenue(account.revenue if account else None)}")
    if account is not None:
        click.echo(f"  (account stats as of {account.date.isoformat()})")
    click.echo("")
    click.echo("Table Row Counts:")
    for table, count in sorted(stats.items()):
        click.echo(f"  {table}: {count}")


if __name__ == "__main__":
    cli()
