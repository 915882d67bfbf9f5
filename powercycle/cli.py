"""
Click CLI for powercycle.
"""

import json
import logging
import sys
from datetime import timedelta
from typing import Optional

import click

from .clock import local_time, parse_time, utc_now
from .config import load_config
from .errors import ConfigurationError
from .runner import run
from .schedule import WEEKDAY_ABBR, evaluate, simulate_week


def _parse_at(value: Optional[str]):
    if value is None:
        return utc_now()
    try:
        return parse_time(value)
    except ValueError as e:
        raise click.BadParameter(str(e))


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def main(verbose: bool):
    """
    powercycle - start and stop cloud resources on schedule.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@main.command("run")
@click.option("--config", "config_path", envvar="POWERCYCLE_CONFIG", required=True,
              type=click.Path(dir_okay=False), help="Configuration file (YAML or JSON)")
@click.option("--at", "at", help="Pin the run time (ISO 8601), defaults to now")
@click.option("--concurrency", type=int, help="Maximum accounts processed at once")
@click.option("--format", "output_format", type=click.Choice(["json", "human"]), default="human", help="Output format")
def run_cmd(config_path: str, at: Optional[str], concurrency: Optional[int], output_format: str):
    """
    Evaluate every account in the configuration and carry out the actions.
    """
    now = _parse_at(at)
    try:
        config = load_config(config_path)
    except ConfigurationError as e:
        click.echo(f"Configuration error: {e}", err=True)
        sys.exit(1)

    summary = run(config, now, concurrency)

    if output_format == "json":
        click.echo(json.dumps(summary, indent=2))
    else:
        for account in summary["accounts"]:
            if account["error"]:
                click.echo(f"{account['account']}: FAILED {account['error']}")
                continue
            click.echo(f"{account['account']}: {account['resources']} resources")
            for group in account["groups"]:
                click.echo(f"  {group['driver']} {group['action']} {', '.join(group['resources'])} [{group['outcome']}]")

    if summary["failed"]:
        sys.exit(1)


@main.command()
@click.argument("schedule")
@click.option("--at", "at", help="Time to evaluate at (ISO 8601), defaults to now")
@click.option("--timezone", "tz", default="utc", help="Timezone the schedule is meant for")
@click.option("--barrier-tolerance", type=float, default=15, help="Minutes a lone start/stop time keeps firing")
def check(schedule: str, at: Optional[str], tz: str, barrier_tolerance: float):
    """
    Show what a schedule decides at a given time.
    """
    now = local_time(_parse_at(at), tz)
    directive, reason = evaluate(schedule, now, timedelta(minutes=barrier_tolerance))
    click.echo(f"{directive.value}: {reason}")


@main.command()
@click.argument("schedule")
@click.option("--start", "start", help="First sample (ISO 8601), defaults to now")
@click.option("--timezone", "tz", default="utc", help="Timezone the schedule is meant for")
@click.option("--format", "output_format", type=click.Choice(["json", "human"]), default="human", help="Output format")
def simulate(schedule: str, start: Optional[str], tz: str, output_format: str):
    """
    Simulate a schedule over a week in 15 minute steps.
    """
    begin = local_time(_parse_at(start), tz)
    samples = simulate_week(schedule, begin)

    if output_format == "json":
        click.echo(json.dumps([{"time": t.isoformat(), "running": running} for t, running in samples], indent=2))
        return

    # only print the samples where the state changes
    previous = None
    for t, running in samples:
        if running != previous:
            click.echo(f"{WEEKDAY_ABBR[t.weekday()]} {t:%Y-%m-%d %H:%M} {'running' if running else 'stopped'}")
            previous = running


if __name__ == "__main__":
    main()
