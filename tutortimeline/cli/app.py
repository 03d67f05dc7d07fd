"""
Main CLI application using Typer.
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional, Annotated

import pendulum
import typer
from pendulum import DateTime
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from ..adapters.json_snapshot import JsonSnapshotSource
from ..config import AppConfig, get_default_config_path
from ..domain.conflicts import (
    Conflict,
    ConflictResult,
    CurrentlyBusy,
    TooFarAhead,
    TooSoon,
)
from ..domain.exceptions import TimelineError
from ..domain.models import EntryType, EventStatus, TimeRange
from ..services.timeline_service import DayTimeline, TimelineService

app = typer.Typer(
    name="tutortimeline",
    help="Inspect tutor availability, free time and booking conflicts",
    add_completion=False
)

console = Console()

ConfigOption = Annotated[Optional[Path], typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml")]
SnapshotOption = Annotated[Optional[Path], typer.Option("--snapshot", "-s", help="JSON snapshot file. Overrides snapshot_file from the config.")]
NowOption = Annotated[Optional[str], typer.Option("--now", help="Pretend the current time is this ISO timestamp.")]

ENTRY_STYLES = {
    EntryType.EVENT: "bold magenta",
    EntryType.FREE: "green",
    EntryType.UNAVAILABLE: "dim",
}


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Show debug logging.")] = False,
):
    """
    Tutor availability and booking timeline engine.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _load_config(config_file: Optional[Path]) -> AppConfig:
    """Load the given config, falling back to defaults when no file exists."""
    if config_file is not None:
        return AppConfig.load_from_yaml(config_file)

    default_path = get_default_config_path()
    if default_path.exists():
        return AppConfig.load_from_yaml(default_path)
    return AppConfig()


def _build_service(config: AppConfig, snapshot: Optional[Path]) -> TimelineService:
    snapshot_path = snapshot or config.snapshot_file
    if snapshot_path is None:
        console.print("[red]Error: no snapshot file given (use --snapshot or snapshot_file in the config).[/red]")
        raise typer.Exit(1)

    source = JsonSnapshotSource(path=snapshot_path, timezone=config.timezone)
    return TimelineService(
        availability_source=source,
        event_source=source,
        invitation_source=source,
        defaults=config.defaults,
        timezone=config.timezone,
    )


def _parse_date(value: Optional[str], tz: str) -> DateTime:
    if not value:
        return pendulum.now(tz).start_of("day")
    try:
        return pendulum.from_format(value, "YYYY-MM-DD", tz=tz).start_of("day")
    except ValueError as e:
        console.print(f"[red]Error parsing date {value!r}: {e}[/red]")
        raise typer.Exit(1)


def _parse_instant(value: Optional[str], tz: str) -> DateTime:
    if not value:
        return pendulum.now(tz)
    try:
        parsed = pendulum.parse(value, tz=tz)
    except ValueError as e:
        console.print(f"[red]Error parsing time {value!r}: {e}[/red]")
        raise typer.Exit(1)
    if not isinstance(parsed, DateTime):
        console.print(f"[red]Error: {value!r} is not a date and time.[/red]")
        raise typer.Exit(1)
    return parsed


def describe_result(result: Optional[ConflictResult]) -> str:
    """Turn a conflict check outcome into a user-facing message."""
    if result is None:
        return "[green]✓ No conflicts, the time can be booked.[/green]"

    if isinstance(result, TooSoon):
        minutes = int(result.lead_time.total_seconds() // 60)
        return f"[yellow]Lessons must start more than {minutes} minutes from now.[/yellow]"

    if isinstance(result, TooFarAhead):
        return (
            "[yellow]Office hours can only be scheduled until "
            f"{result.latest_start.format('DD.MM.YYYY HH:mm')}.[/yellow]"
        )

    if isinstance(result, CurrentlyBusy):
        if result.is_current:
            return "[yellow]You are currently in a lesson/class.[/yellow]"
        plural = "" if result.minutes_until == 1 else "s"
        return f"[yellow]You have a lesson/class starting in {result.minutes_until} minute{plural}.[/yellow]"

    if isinstance(result, Conflict):
        what = result.kind.value.replace("_", " ")
        name = f" \"{result.label}\"" if result.label else ""
        return (
            f"[red]You already have a {what}{name} scheduled at {result.time_range}. "
            "Please choose a different time.[/red]"
        )

    return f"[red]Cannot book: {result}[/red]"


def _print_day(day: DayTimeline) -> None:
    table = Table(
        title=day.window.start.format("dddd, DD.MM.YYYY"),
        show_header=True,
        header_style="bold cyan"
    )
    table.add_column("Time", style="bold")
    table.add_column("Type")
    table.add_column("Details", style="dim")

    for entry in day.result.timeline:
        details = ""
        if entry.type is EntryType.EVENT:
            label = entry.metadata.get("label") or ""
            details = f"{entry.metadata.get('kind')} {label}".strip()
        table.add_row(
            f"{entry.time_range.start.format('HH:mm')} - {entry.time_range.end.format('HH:mm')}",
            f"[{ENTRY_STYLES[entry.type]}]{entry.type.value}[/]",
            details,
        )

    console.print()
    console.print(table)

    cancelled = [e for e in day.visible_events if e.status is EventStatus.CANCELLED]
    for event in cancelled:
        console.print(f"  [strike dim]{event.kind.value} {event.label} {event.time_range}[/]")

    console.print(
        f"  Free: [bold green]{day.free_hours}h[/bold green]  "
        f"Available: [bold]{day.total_availability_hours}h[/bold]\n"
    )


@app.command()
def day(
    tutor: Annotated[str, typer.Argument(help="Tutor name from the config or tutor id")],
    date: Annotated[Optional[str], typer.Option("--date", "-d", help="Day to show (YYYY-MM-DD). Defaults to today.")] = None,
    config_file: ConfigOption = None,
    snapshot: SnapshotOption = None,
):
    """
    Show a tutor's timeline for one day.
    """
    try:
        config = _load_config(config_file)
        service = _build_service(config, snapshot)
        tutor_id = config.resolve_participant(tutor)
        target = _parse_date(date, config.timezone)

        timeline = asyncio.run(service.day_timeline(tutor_id, target))
        _print_day(timeline)

    except (FileNotFoundError, ValueError, TimelineError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def week(
    tutor: Annotated[str, typer.Argument(help="Tutor name from the config or tutor id")],
    date: Annotated[Optional[str], typer.Option("--date", "-d", help="Any day of the week to show (YYYY-MM-DD).")] = None,
    config_file: ConfigOption = None,
    snapshot: SnapshotOption = None,
):
    """
    Summarize free and available hours for each day of a week.
    """
    try:
        config = _load_config(config_file)
        service = _build_service(config, snapshot)
        tutor_id = config.resolve_participant(tutor)
        reference = _parse_date(date, config.timezone)

        days = asyncio.run(service.week_timeline(tutor_id, reference))

        table = Table(title="Week overview", show_header=True, header_style="bold cyan")
        table.add_column("Day", style="bold yellow")
        table.add_column("Available", justify="right")
        table.add_column("Free", justify="right", style="green")
        table.add_column("Events", justify="right")

        for entry in days:
            table.add_row(
                entry.window.start.format("ddd DD.MM."),
                f"{entry.total_availability_hours}h",
                f"{entry.free_hours}h",
                str(len(entry.result.event_entries())),
            )

        console.print()
        console.print(table)
        console.print()

    except (FileNotFoundError, ValueError, TimelineError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def check(
    participant: Annotated[str, typer.Argument(help="Participant name from the config or participant id")],
    start: Annotated[str, typer.Option("--start", help="Proposed start (ISO timestamp)")],
    duration: Annotated[int, typer.Option("--duration", help="Lesson length in minutes")] = 50,
    now: NowOption = None,
    config_file: ConfigOption = None,
    snapshot: SnapshotOption = None,
):
    """
    Check whether a lesson can be booked at the given time.
    """
    try:
        config = _load_config(config_file)
        service = _build_service(config, snapshot)
        participant_id = config.resolve_participant(participant)

        proposed_start = _parse_instant(start, config.timezone)
        proposed = TimeRange(start=proposed_start, end=proposed_start.add(minutes=duration))
        current = _parse_instant(now, config.timezone)

        result = asyncio.run(service.check_booking(participant_id, proposed, current))
        console.print(describe_result(result))
        if result is not None:
            raise typer.Exit(2)

    except (FileNotFoundError, ValueError, TimelineError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def office_hours(
    tutor: Annotated[str, typer.Argument(help="Tutor name from the config or tutor id")],
    now: NowOption = None,
    config_file: ConfigOption = None,
    snapshot: SnapshotOption = None,
):
    """
    Check whether a tutor can switch on instant office hours.
    """
    try:
        config = _load_config(config_file)
        service = _build_service(config, snapshot)
        tutor_id = config.resolve_participant(tutor)
        current = _parse_instant(now, config.timezone)

        result = asyncio.run(service.check_office_hours(tutor_id, current))
        console.print(describe_result(result))
        if result is not None:
            raise typer.Exit(2)

    except (FileNotFoundError, ValueError, TimelineError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]tutortimeline[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
