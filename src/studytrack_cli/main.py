"""Main entry point for StudyTrack CLI."""

import typer

from studytrack_cli import __version__
from studytrack_cli.commands import config, timer
from studytrack_cli.services.config_service import get_config_service
from studytrack_cli.utils.typer_helpers import SuggestingGroup
from studytrack_cli.utils.ui.console import get_console

app = typer.Typer(
    name="studytrack",
    cls=SuggestingGroup,
    help="Study session timers for the StudyTrack exam-prep dashboard",
    no_args_is_help=True,
)

console = get_console()

app.add_typer(timer.app, name="timer", help="Pomodoro and count-up study timers")
app.add_typer(config.app, name="config", help="Configuration management")


@app.command()
def version() -> None:
    """Show version information and the configured API endpoint."""
    console.print(f"[bold]StudyTrack CLI[/bold] version [cyan]{__version__}[/cyan]")
    console.print(f"API endpoint: {get_config_service().config.api.endpoint}")


def main() -> None:
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
