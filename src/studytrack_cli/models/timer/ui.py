"""Rich rendering of timer readings."""

from rich.align import Align
from rich.console import Group
from rich.panel import Panel
from rich.text import Text

from .state import StopResult, TimerReading, format_clock

MODE_TITLES = {"countdown": "Pomodoro", "count_up": "Study timer"}

STATUS_STYLES = {
    "running": ("▶", "cyan"),
    "paused": ("⏸", "yellow"),
    "completed": ("✓", "green"),
    "idle": ("■", "dim"),
}


def _progress_bar(reading: TimerReading, target_seconds: int, width: int = 40) -> Text:
    pct = min(100, int(reading.elapsed_seconds / target_seconds * 100)) if target_seconds else 0
    filled = int(width * pct / 100)
    text = Text(justify="center")
    text.append("▓" * filled + "░" * (width - filled) + f"  {pct}%", style="dim")
    return text


def render_reading(reading: TimerReading, target_seconds: int | None = None) -> Panel:
    """Panel showing status, clock and (for countdowns) progress."""
    icon, color = STATUS_STYLES[reading.status]
    if reading.status == "running" and reading.remaining_seconds is not None:
        if reading.remaining_seconds < 60:
            color = "red"
        elif reading.remaining_seconds < 300:
            color = "yellow"

    components = [
        Text(f"{icon}  {reading.status.upper()}", style=f"bold {color}", justify="center"),
        Text(""),
        Text(reading.format_clock(), style=f"bold {color}", justify="center"),
    ]
    if target_seconds:
        components.append(Text(""))
        components.append(_progress_bar(reading, target_seconds))
    if reading.remote_session_id is not None:
        components.append(
            Text(f"session #{reading.remote_session_id}", style="dim", justify="center")
        )

    return Panel(
        Align.center(Group(*components), vertical="middle"),
        title=MODE_TITLES[reading.mode],
        border_style=color,
        padding=(1, 2),
    )


def render_stop_result(result: StopResult) -> Panel:
    """Panel summarising a closed session."""
    if not result.saved and result.error is None:
        return Panel(
            f"[yellow]Session discarded[/yellow]\n\n"
            f"Time not recorded: {format_clock(result.duration_seconds)}",
            border_style="yellow",
            padding=(1, 2),
        )
    if result.error is not None:
        return Panel(
            f"[yellow]Session stopped but not saved[/yellow]\n\n"
            f"Duration: {format_clock(result.duration_seconds)}\n"
            f"{result.error}",
            border_style="yellow",
            padding=(1, 2),
        )
    return Panel(
        f"[bold green]🎉 Session saved![/bold green]\n\n"
        f"Duration: {format_clock(result.duration_seconds)}",
        border_style="green",
        padding=(1, 2),
    )
