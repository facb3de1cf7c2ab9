"""Study timer commands: Pomodoro countdowns and count-up sessions."""

import asyncio

import typer
from rich.live import Live
from rich.table import Table

from studytrack_cli.models.timer.engine import TimerEngine
from studytrack_cli.models.timer.errors import NetworkError, ValidationError
from studytrack_cli.models.timer.state import (
    TIMER_MODES,
    StartConfig,
    TimerMode,
    TimerReading,
    format_clock,
)
from studytrack_cli.models.timer.ui import MODE_TITLES, render_reading, render_stop_result
from studytrack_cli.services.timer_service import open_timer_service
from studytrack_cli.utils.typer_helpers import SuggestingGroup
from studytrack_cli.utils.ui.console import get_console
from studytrack_cli.utils.ui.formatters import (
    format_info,
    format_success,
    format_warning,
)

from .decorators import command_wrapper

console = get_console()
app = typer.Typer(cls=SuggestingGroup, help="Pomodoro and count-up study timers")

MODE_HELP = "Timer mode: countdown (Pomodoro) or count-up"


def parse_mode(value: str) -> TimerMode:
    """Accept 'count-up' as well as 'count_up'."""
    mode = value.strip().lower().replace("-", "_")
    if mode not in TIMER_MODES:
        raise ValidationError(f"Unknown timer mode '{value}'. Use countdown or count-up")
    return mode


def report_events(engine: TimerEngine) -> None:
    """Print whatever the engine published since the last call."""
    title = MODE_TITLES[engine.mode]
    for event in engine.pending_events():
        if event.kind == "completed":
            format_success(
                f"{title} session #{event.remote_session_id} saved "
                f"({format_clock(event.duration_seconds)})"
            )
        elif event.kind == "end_failed":
            format_warning(
                f"{title} session #{event.remote_session_id} finished but was not "
                f"saved: {event.error}"
            )
        elif event.kind == "persistence_failed":
            format_warning(f"{event.message}: {event.error}")


def print_reading(reading: TimerReading) -> None:
    title = MODE_TITLES[reading.mode]
    console.print(f"[bold]{title}[/bold] {reading.status}  {reading.format_clock()}")


@app.command("start")
@command_wrapper
async def start_timer(
    mode: str = typer.Option("countdown", "--mode", "-m", help=MODE_HELP),
    minutes: int | None = typer.Option(
        None, "--minutes", "-d", help="Countdown length in minutes (1-120)"
    ),
    topic: int | None = typer.Option(None, "--topic", "-t", help="Topic ID to track"),
    notes: str | None = typer.Option(None, "--notes", "-n", help="Session notes"),
):
    """Start a study session."""
    timer_mode = parse_mode(mode)
    config = StartConfig(
        topic_id=topic,
        notes=notes,
        target_duration_seconds=minutes * 60 if minutes is not None else None,
    )

    async with open_timer_service() as service:
        engine = await service.open(timer_mode)
        report_events(engine)
        reading = await engine.start(config)

    console.print(
        f"\n[bold green]{MODE_TITLES[timer_mode]} started[/bold green] "
        f"(session #{reading.remote_session_id})"
    )
    if reading.remaining_seconds is not None:
        console.print(f"Duration: {format_clock(reading.remaining_seconds)}")
    console.print("[dim]The timer keeps running after this command exits.[/dim]\n")


@app.command("pause")
@command_wrapper
async def pause_timer(
    mode: str = typer.Option("countdown", "--mode", "-m", help=MODE_HELP),
):
    """Pause a running session."""
    async with open_timer_service() as service:
        engine = await service.open(parse_mode(mode))
        report_events(engine)
        print_reading(engine.pause())


@app.command("resume")
@command_wrapper
async def resume_timer(
    mode: str = typer.Option("countdown", "--mode", "-m", help=MODE_HELP),
):
    """Resume a paused session."""
    async with open_timer_service() as service:
        engine = await service.open(parse_mode(mode))
        report_events(engine)
        print_reading(engine.resume())


@app.command("stop")
@command_wrapper
async def stop_timer(
    mode: str = typer.Option("countdown", "--mode", "-m", help=MODE_HELP),
    discard: bool = typer.Option(
        False, "--discard", help="Cancel without saving the session"
    ),
):
    """Stop the session and save it (or discard it)."""
    async with open_timer_service() as service:
        engine = await service.open(parse_mode(mode))
        report_events(engine)
        try:
            result = await engine.stop(discard=discard)
        except NetworkError as e:
            format_warning(f"Timer stopped, but the session could not be saved: {e}")
            raise typer.Exit(e.exit_code) from e

    console.print(render_stop_result(result))


@app.command("status")
@command_wrapper
async def timer_status(
    mode: str | None = typer.Option(None, "--mode", "-m", help=MODE_HELP),
):
    """Show the state of the timers."""
    modes = [parse_mode(mode)] if mode else list(TIMER_MODES)

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Timer")
    table.add_column("Status")
    table.add_column("Time", justify="right")
    table.add_column("Session", justify="right")

    async with open_timer_service() as service:
        for timer_mode in modes:
            engine = await service.open(timer_mode)
            report_events(engine)
            reading = engine.reading()
            table.add_row(
                MODE_TITLES[timer_mode],
                reading.status,
                reading.format_clock() if reading.status != "idle" else "-",
                str(reading.remote_session_id or "-"),
            )

    console.print(table)


@app.command("watch")
@command_wrapper
def watch_timer(
    mode: str = typer.Option("countdown", "--mode", "-m", help=MODE_HELP),
):
    """Follow a session live until it ends. Ctrl-C leaves it running."""
    timer_mode = parse_mode(mode)

    async def _watch() -> TimerReading:
        async with open_timer_service() as service:
            engine = await service.open(timer_mode)
            report_events(engine)
            if not engine.is_active:
                return engine.reading()

            # a completed reading arrives after the engine reset; keep the last target
            target = engine.target_duration_seconds

            def on_tick(reading: TimerReading) -> None:
                nonlocal target
                if engine.is_active:
                    target = engine.target_duration_seconds
                live.update(render_reading(reading, target))

            with Live(
                render_reading(engine.reading(), target),
                console=console,
                refresh_per_second=4,
            ) as live:
                reading = await service.run(timer_mode, on_tick)
            report_events(engine)
            return reading

    try:
        final = asyncio.run(_watch())
    except KeyboardInterrupt:
        format_info("Stopped watching. The timer is still running.")
        return

    if final.status == "idle":
        format_info(f"No {MODE_TITLES[timer_mode]} session is running.")
    elif final.status == "completed":
        console.print(f"\n[bold green]🎉 {MODE_TITLES[timer_mode]} complete![/bold green]")
        console.bell()
