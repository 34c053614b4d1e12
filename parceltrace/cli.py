"""Command-line interface for parceltrace."""

import asyncio
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from parceltrace import BatchOptions, BatchRunner, Tracker, TrackerConfig, save_csv, save_json, __version__
from parceltrace.config import LogFormat
from parceltrace.core.carrier_api import CarrierApiClient
from parceltrace.core.exporter import load_json
from parceltrace.models.summary import BatchRunSummary
from parceltrace.models.tracking import DeliveryStatus, TrackingResult
from parceltrace.sinks import create_sink

app = typer.Typer(
    name="parceltrace",
    help="Parcel delivery tracker",
    add_completion=False,
)
console = Console()

STATUS_STYLES = {
    DeliveryStatus.DELIVERED: "green",
    DeliveryStatus.IN_TRANSIT: "blue",
    DeliveryStatus.PROCESSING: "cyan",
    DeliveryStatus.NOT_FOUND: "yellow",
    DeliveryStatus.ERROR: "red",
    DeliveryStatus.UNKNOWN: "dim",
}


def version_callback(value: bool):
    if value:
        console.print(f"parceltrace version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
):
    """parceltrace - parcel delivery tracker."""
    pass


def _read_codes(codes: list[str], file: Optional[Path]) -> list[str]:
    collected = list(codes)
    if file:
        for line in file.read_text(encoding="utf-8").splitlines():
            line = line.strip()
            if line and not line.startswith("#"):
                collected.append(line)
    return collected


@app.command()
def track(
    codes: list[str] = typer.Argument(..., help="Tracking codes"),
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Output directory for JSON files"
    ),
    headless: bool = typer.Option(
        True, "--headless/--no-headless", help="Run browser in headless mode"
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="JSON logs, no tables"
    ),
):
    """Track one or more codes, one after another."""
    config = TrackerConfig(
        headless=headless,
        log_format=LogFormat.JSON if quiet else LogFormat.CONSOLE,
    )

    async def run():
        async with Tracker(config) as tracker:
            for code in codes:
                result = await tracker.track(code)
                if not quiet:
                    _print_result(result)
                if output:
                    filepath = save_json(result, output / f"{result.tracking_code}.json")
                    console.print(f"[dim]Saved to {filepath}[/dim]")

    asyncio.run(run())


@app.command()
def batch(
    codes: Optional[list[str]] = typer.Argument(None, help="Tracking codes"),
    file: Optional[Path] = typer.Option(
        None, "--file", "-f", help="File with one tracking code per line"
    ),
    csv_path: Optional[Path] = typer.Option(None, "--csv", help="Write results as CSV"),
    json_path: Optional[Path] = typer.Option(None, "--json", help="Write summary as JSON"),
    batch_size: Optional[int] = typer.Option(None, "--batch-size", "-b", min=1, help="Codes per round"),
    delay: Optional[int] = typer.Option(None, "--delay", "-d", min=0, help="Delay between rounds in ms"),
    retries: Optional[int] = typer.Option(None, "--retries", "-r", min=1, help="Attempts per code"),
    headless: bool = typer.Option(True, "--headless/--no-headless"),
):
    """Track many codes in concurrent rounds and print a summary."""
    all_codes = _read_codes(codes or [], file)
    if not all_codes:
        console.print("[red]No tracking codes given[/red]")
        raise typer.Exit(1)

    config = TrackerConfig(headless=headless)
    options = BatchOptions(
        batch_size=batch_size,
        delay_between_batches_ms=delay,
        max_retries=retries,
    )

    async def run() -> BatchRunSummary:
        async with Tracker(config) as tracker:
            runner = BatchRunner(tracker, config)
            return await runner.run(all_codes, options)

    summary = asyncio.run(run())
    _print_summary(summary)

    if csv_path:
        save_csv(summary, csv_path)
        console.print(f"[dim]CSV saved to {csv_path}[/dim]")
    if json_path:
        save_json(summary, json_path)
        console.print(f"[dim]Summary saved to {json_path}[/dim]")

    if summary.total and summary.failed == summary.total:
        raise typer.Exit(1)


@app.command()
def export(
    source: Path = typer.Argument(..., exists=True, help="Saved result or summary JSON"),
    destination: Path = typer.Argument(..., help="CSV file to write"),
):
    """Convert a saved JSON result or batch summary to CSV."""
    loaded = load_json(source)
    results = loaded if isinstance(loaded, BatchRunSummary) else [loaded]
    save_csv(results, destination)
    count = loaded.total if isinstance(loaded, BatchRunSummary) else 1
    console.print(f"[green]✓[/green] Wrote {count} row(s) to {destination}")


@app.command()
def stats(
    code: Optional[str] = typer.Option(None, "--code", "-c", help="Show recent calls for a tracking code"),
    limit: int = typer.Option(10, "--limit", "-n", min=1),
):
    """Show today's carrier API usage and recent tracking calls."""
    config = TrackerConfig()

    async def run():
        sink = create_sink(config)
        if sink is None:
            console.print("Call log is disabled")
            return
        async with sink, CarrierApiClient(config, sink) as api:
            usage = await api.usage()
            table = Table(title="Carrier API usage (today)", show_header=False)
            table.add_column("Field", style="dim")
            table.add_column("Value")
            table.add_row("Primary key calls", f"{usage.primary_key_calls} / {usage.call_limit}")
            table.add_row("Secondary key calls", f"{usage.secondary_key_calls} / {usage.call_limit}")
            table.add_row("Total", str(usage.total_calls))
            table.add_row("Current key", usage.current_key.value)
            table.add_row("Primary configured", "✓" if usage.primary_key_available else "✗")
            table.add_row("Secondary configured", "✓" if usage.secondary_key_available else "✗")
            console.print(table)

            if code:
                calls = await sink.recent_calls(code, limit)
                history = Table(title=f"Recent calls for {code}")
                for column in ("When", "Status", "Source", "Duration", "Error"):
                    history.add_column(column)
                for call in calls:
                    history.add_row(
                        call.recorded_at.strftime("%Y-%m-%d %H:%M:%S"),
                        call.status.value,
                        call.source or "-",
                        call.duration or "-",
                        call.error_message or "",
                    )
                console.print(history)

    asyncio.run(run())


def _print_result(result: TrackingResult):
    """Print a single tracking result."""
    style = STATUS_STYLES.get(result.delivery_status, "white")
    console.print(
        f"\n[bold]{result.tracking_code}[/bold] "
        f"[{style}]{result.delivery_status.value}[/{style}] "
        f"[dim]({result.source or 'no source'}, {result.processing_time_ms:.0f} ms)[/dim]"
    )
    console.print(f"  {result.duration}")
    if result.handoff_moment:
        console.print(f"  [dim]Handoff:[/dim]  {result.handoff_moment:%Y-%m-%d %H:%M} UTC")
    if result.delivery_moment:
        console.print(f"  [dim]Delivery:[/dim] {result.delivery_moment:%Y-%m-%d %H:%M} UTC")
    if result.message:
        console.print(f"  [yellow]{result.message}[/yellow]")
    for event in result.timeline_events[-5:]:
        where = f" [dim]@ {event.location}[/dim]" if event.location else ""
        console.print(f"    {event.timestamp:%d-%m %H:%M}  {event.description}{where}")


def _print_summary(summary: BatchRunSummary):
    """Print batch results as a table."""
    table = Table(title="Batch results")
    table.add_column("Code")
    table.add_column("Status")
    table.add_column("Duration")
    table.add_column("Source", style="dim")
    table.add_column("ms", justify="right", style="dim")

    for result in summary.results:
        style = STATUS_STYLES.get(result.delivery_status, "white")
        table.add_row(
            result.tracking_code,
            f"[{style}]{result.delivery_status.value}[/{style}]",
            result.duration,
            result.source or "-",
            f"{result.processing_time_ms:.0f}",
        )

    console.print(table)
    console.print(
        f"\n[bold]Tracked {summary.successful}/{summary.total} codes[/bold] "
        f"({summary.failed} failed, avg {summary.average_time_ms:.0f} ms)"
    )


if __name__ == "__main__":
    app()
