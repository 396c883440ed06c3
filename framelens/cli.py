"""
Framelens Command Line Interface
Entry point for per-thread hardware counter attribution of a traced process.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

import click

from framelens import __version__
from framelens.analysis.pipeline import FrameAnalyzer
from framelens.analysis.projector import PROJECTIONS, get_projection
from framelens.core.config import load_config
from framelens.core.errors import FramelensError
from framelens.core.utils import ns_to_datetime
from framelens.counters.pcm_parse import CounterLogParser, read_counter_log
from framelens.trace.events import EventAdapter
from framelens.trace.json_source import JsonTraceSource


# Configure logging
def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%H:%M:%S",
    )


@click.group()
@click.version_option(__version__, prog_name="framelens")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """
    Framelens

    Per-thread, per-interval cache/TLB/IPC attribution from OS context-switch
    traces and hardware performance counter logs.
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    setup_logging(verbose)


@cli.command()
@click.argument("trace_path", type=click.Path(exists=True, dir_okay=False))
@click.argument("counters_path", type=click.Path(exists=True, dir_okay=False))
@click.option("--process", "-p", default=None, help="Name prefix of the process to analyze")
@click.option("--interval", "-i", type=int, default=None, help="Frame interval in milliseconds")
@click.option("--date", "day", type=click.DateTime(formats=["%Y-%m-%d"]), default=None,
              help="Date of the counter log (default: process start date)")
@click.option("--output", "-o", default=".", help="Output directory")
@click.option("--config", "-c", "config_path", default=None, help="YAML analysis config")
@click.option("--projection", type=click.Choice(sorted(PROJECTIONS)), default=None,
              help="Metric projection to apply")
@click.option("--workers", type=int, default=None, help="Worker threads (default: per core)")
def analyze(
    trace_path: str,
    counters_path: str,
    process: Optional[str],
    interval: Optional[int],
    day,
    output: str,
    config_path: Optional[str],
    projection: Optional[str],
    workers: Optional[int],
) -> None:
    """
    Analyze one process of a trace against a counter log.

    Writes the aggregate and per-thread metric tables to the output directory.
    Nothing is written if the analysis fails.
    """
    logger = logging.getLogger("framelens.cli.analyze")

    try:
        config = load_config(config_path)
    except ValueError as e:
        raise click.UsageError(f"Invalid config {config_path}: {e}") from e

    if process:
        config.process = process
    if interval is not None:
        if interval <= 0:
            raise click.BadParameter("must be positive", param_hint="--interval")
        config.interval_ms = interval
    if projection:
        config.projection = projection
    if workers:
        config.workers = workers

    if not config.process:
        raise click.UsageError("--process is required (or analysis.process in the config)")

    try:
        get_projection(config.projection)
    except KeyError as e:
        raise click.UsageError(e.args[0]) from e

    try:
        source = JsonTraceSource.from_file(trace_path)

        if day is not None:
            log_day = day.date()
        else:
            monitored = EventAdapter(source, config.trace).find_process(config.process).unwrap()
            log_day = ns_to_datetime(monitored.start_ns).date()

        logger.info(f"Reading counters from {counters_path} anchored at {log_day}")
        samples = list(read_counter_log(counters_path, log_day))

        result = FrameAnalyzer(source, samples, config).analyze()

    except FramelensError as e:
        click.echo(click.style(f"\n✗ Error: {e}", fg="red"), err=True)
        sys.exit(1)

    out_dir = Path(output)
    aggregate_path = result.output.save(out_dir / config.output.aggregate_file)
    by_thread_path = result.output.write_by_thread(out_dir / config.output.by_thread_file)

    click.echo(click.style("\n═══ Results ═══", fg="green", bold=True))
    for key, value in result.summary().items():
        if isinstance(value, float):
            value = f"{value:.1f}"
        click.echo(f"  {key:<12} {value}")

    click.echo(click.style(f"\n✓ Aggregate:  {aggregate_path}", fg="green"))
    click.echo(click.style(f"✓ By thread:  {by_thread_path}", fg="green"))


@cli.command()
@click.argument("counters_path", type=click.Path(exists=True, dir_okay=False))
@click.option("--date", "day", type=click.DateTime(formats=["%Y-%m-%d"]), default=None,
              help="Date of the counter log (default: today)")
def counters(counters_path: str, day) -> None:
    """
    Summarize a hardware counter log per core and counter kind.
    """
    try:
        parser = CounterLogParser(counters_path, day.date() if day else None)
    except FramelensError as e:
        click.echo(click.style(f"\n✗ Error: {e}", fg="red"), err=True)
        sys.exit(1)

    click.echo(click.style("\n═══ Counter Log ═══", fg="cyan", bold=True))
    click.echo(f"Samples: {len(parser.samples)}")
    click.echo(f"Cores:   {parser.core_count}")

    summary = parser.get_summary()
    if summary.empty:
        click.echo("No CACHE or TLB records found.")
        return

    click.echo("")
    click.echo(summary.to_string(index=False))


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
