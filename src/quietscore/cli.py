"""CLI for inspecting and feeding the quietscore summary store."""

from __future__ import annotations

import asyncio
from datetime import date, datetime

import click

from quietscore.config import DEFAULT_CONFIG, load_config
from quietscore.errors import QuietScoreError

DATE = click.DateTime(formats=["%Y-%m-%d"])


def _format_hour(hour: int | None) -> str:
    if hour is None:
        return "--"
    return f"{hour:02d}:00"


def _day_arg(value: datetime | None) -> date:
    return value.date() if value is not None else date.today()


@click.group()
@click.option("--db", default="sqlite:///quietscore.db", envvar="QUIETSCORE_DB",
              show_default=True, help="SQLAlchemy database URL.")
@click.option("--config", "config_path", type=click.Path(exists=True, dir_okay=False),
              default=None, help="JSON configuration file.")
@click.option("--interval", default=None, type=float, help="Override sample interval (seconds).")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging.")
@click.pass_context
def main(ctx: click.Context, db: str, config_path: str | None,
         interval: float | None, verbose: bool) -> None:
    """quietscore: ambient noise sampling and daily quiet scores."""
    from quietscore.diagnostics import setup_logging
    from quietscore.storage import SqlBackend, SummaryStore

    setup_logging("DEBUG" if verbose else "INFO")
    try:
        config = load_config(config_path) if config_path else DEFAULT_CONFIG
        config = config.replace(sample_interval_seconds=interval)
        store = SummaryStore(SqlBackend(db))
    except QuietScoreError as e:
        raise click.ClickException(str(e)) from e

    ctx.call_on_close(store.close)
    ctx.obj = {"config": config, "store": store}


@main.command("import")
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.pass_obj
def import_cmd(obj: dict, file: str) -> None:
    """Import a JSONL sample log and refresh the touched days."""
    from quietscore.analytics.pipeline import ingest_samples
    from quietscore.replay import read_samples

    readings, skipped = read_samples(file)
    refreshed = ingest_samples(obj["store"], readings, obj["config"])
    click.echo(f"Imported {len(readings)} samples ({skipped} skipped) "
               f"across {len(refreshed)} day(s).")
    for summary in refreshed.values():
        click.echo(f"  {summary.day.isoformat()}  score {summary.quiet_score:5.1f}  "
                   f"avg {summary.average_decibel:5.1f} dB  n={summary.sample_count}")


@main.command("day")
@click.argument("day", type=DATE, required=False)
@click.option("--json", "as_json", is_flag=True, help="Print the full view as JSON.")
@click.pass_obj
def day_cmd(obj: dict, day: datetime | None, as_json: bool) -> None:
    """Show the computed view for DAY (default: today)."""
    from quietscore.analytics.pipeline import compute_day_view

    view = compute_day_view(obj["store"], _day_arg(day), obj["config"])
    if as_json:
        click.echo(view.to_json())
        return

    click.echo(f"\n{'=' * 48}")
    click.echo(f"  Quiet score: {view.day.isoformat()}")
    click.echo(f"{'=' * 48}")
    click.echo(f"  Score:     {view.quiet_score:.0f}/100")
    click.echo(f"  Average:   {view.average_decibel:.1f} dB ({view.sample_count} samples)")
    click.echo(f"  Quiet:     {view.distribution.quiet_ratio:.0%} of exposure")
    click.echo(f"  Quietest:  {_format_hour(view.quietest_hour)}")
    click.echo(f"  Noisiest:  {_format_hour(view.noisiest_hour)}")
    for point in view.hourly_points:
        click.echo(f"    {point.hour:02d}:00  {point.average_decibel:5.1f} dB")
    click.echo(f"{'=' * 48}")


@main.command("history")
@click.option("--days", "-d", default=30, show_default=True, help="Number of days to list.")
@click.option("--until", "until", type=DATE, default=None, help="Last day of the window.")
@click.pass_obj
def history_cmd(obj: dict, days: int, until: datetime | None) -> None:
    """List stored day summaries, newest first."""
    store = obj["store"]
    summaries = store.fetch_range(days, _day_arg(until))
    if not summaries:
        click.echo("No summaries.")
        return
    for s in summaries:
        click.echo(f"  {s.day.isoformat()}  score {s.quiet_score:5.1f}  "
                   f"avg {s.average_decibel:5.1f} dB  n={s.sample_count}  "
                   f"quietest {_format_hour(s.quietest_hour)}  "
                   f"noisiest {_format_hour(s.noisiest_hour)}")


@main.command("weekly")
@click.argument("day", type=DATE, required=False)
@click.pass_obj
def weekly_cmd(obj: dict, day: datetime | None) -> None:
    """Average quiet score over the 7 days ending on DAY."""
    average = obj["store"].weekly_average(_day_arg(day))
    click.echo("--" if average is None else f"{average:.0f}")


@main.command("purge")
@click.argument("day", type=DATE)
@click.pass_obj
def purge_cmd(obj: dict, day: datetime) -> None:
    """Delete the raw samples of DAY.  Its summary is kept."""
    removed = obj["store"].delete_samples(day.date())
    click.echo(f"Deleted {removed} samples for {day.date().isoformat()}.")


@main.command("export")
@click.argument("day", type=DATE)
@click.argument("output", type=click.Path(dir_okay=False))
@click.pass_obj
def export_cmd(obj: dict, day: datetime, output: str) -> None:
    """Write the raw samples of DAY to a JSONL file."""
    from quietscore.replay import write_samples

    count = write_samples(output, obj["store"].samples_for_day(day.date()))
    click.echo(f"Wrote {count} samples to {output}")


@main.command("monitor")
@click.option("--duration", "-d", default=300.0, show_default=True,
              help="How long to run, in seconds.")
@click.option("--background-at", default=None, type=float,
              help="Switch to background sampling after this many seconds.")
@click.option("--mean-dbfs", default=-30.0, show_default=True,
              help="Mean level of the simulated microphone.")
@click.option("--seed", default=None, type=int, help="Random seed for the simulation.")
@click.pass_obj
def monitor_cmd(obj: dict, duration: float, background_at: float | None,
                mean_dbfs: float, seed: int | None) -> None:
    """Run the sampling scheduler against a simulated microphone."""
    from quietscore.analytics.pipeline import recompute_day
    from quietscore.capture import LoopRefreshScheduler, SimulatedCapture, StaticPermission
    from quietscore.scheduler import LifecyclePhase, SamplingScheduler

    store, config = obj["store"], obj["config"]
    recompute_day(store, date.today(), config)

    async def _monitor() -> None:
        refresh = LoopRefreshScheduler()
        scheduler = SamplingScheduler(
            SimulatedCapture(mean_dbfs=mean_dbfs, seed=seed),
            StaticPermission(True),
            refresh,
            store,
            config,
        )
        refresh.bind(scheduler.handle_background_refresh)
        scheduler.add_listener(
            lambda s: click.echo(f"  [{s.timestamp:%H:%M:%S}] {s.decibel:5.1f} dB")
        )

        await scheduler.start_monitoring()
        try:
            if background_at is not None and background_at < duration:
                await asyncio.sleep(background_at)
                click.echo("Entering background; sampling via refresh opportunities.")
                await scheduler.handle_lifecycle_transition(LifecyclePhase.BACKGROUND)
                await asyncio.sleep(duration - background_at)
            else:
                await asyncio.sleep(duration)
        finally:
            await scheduler.stop_monitoring()
            await refresh.shutdown()

    try:
        asyncio.run(_monitor())
    except KeyboardInterrupt:
        click.echo("\nStopped.")

    summary = store.fetch_summary(date.today())
    if summary is not None:
        click.echo(f"Today: score {summary.quiet_score:.0f}, "
                   f"{summary.sample_count} samples, avg {summary.average_decibel:.1f} dB")


if __name__ == "__main__":
    main()
