"""Configuration management commands."""

import typer
from pydantic import ValidationError as ConfigValidationError

from studytrack_cli.services.config_service import get_config_service
from studytrack_cli.utils.exit_codes import ERROR_INVALID_ARGS, ERROR_NOT_FOUND
from studytrack_cli.utils.typer_helpers import SuggestingGroup
from studytrack_cli.utils.ui.console import get_console
from studytrack_cli.utils.ui.formatters import (
    format_error,
    format_single_item,
    format_success,
)

app = typer.Typer(cls=SuggestingGroup, help="Configuration management commands")
console = get_console()


def parse_value(value: str) -> str | int | float | bool | None:
    """Convert a command-line string to the closest JSON type."""
    lowered = value.lower()
    if lowered in ("true", "false"):
        return lowered == "true"
    if lowered in ("none", "null"):
        return None
    if value.isdigit():
        return int(value)
    try:
        return float(value)
    except ValueError:
        return value


@app.command("show")
def show_config() -> None:
    """Show the current configuration."""
    config = get_config_service().config
    for section, values in config.model_dump().items():
        console.print(f"[bold]{section}[/bold]")
        format_single_item(values)


@app.command("get")
def get_config(
    key: str = typer.Argument(..., help="Configuration key (e.g., timer.credit_overrun)"),
) -> None:
    """Get a configuration value."""
    svc = get_config_service()
    if not svc.has_key(key):
        format_error(f"Configuration key '{key}' not found")
        raise typer.Exit(ERROR_NOT_FOUND)
    console.print(svc.get(key))


@app.command("set")
def set_config(
    key: str = typer.Argument(..., help="Configuration key (e.g., api.endpoint)"),
    value: str = typer.Argument(..., help="Configuration value"),
) -> None:
    """Set a configuration value."""
    parsed_value = parse_value(value)
    try:
        get_config_service().set(key, parsed_value)
    except KeyError as e:
        format_error(f"Configuration key '{key}' not found")
        raise typer.Exit(ERROR_NOT_FOUND) from e
    except ConfigValidationError as e:
        format_error(f"Invalid value for '{key}': {e.errors()[0]['msg']}")
        raise typer.Exit(ERROR_INVALID_ARGS) from e
    format_success(f"Configuration '{key}' set to '{parsed_value}'")


@app.command("reset")
def reset_config(
    key: str | None = typer.Argument(None, help="Configuration key to reset"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Reset configuration to defaults."""
    if not yes:
        msg = "entire configuration" if not key else f"'{key}'"
        if not typer.confirm(f"Are you sure you want to reset {msg}?"):
            format_error("Cancelled")
            raise typer.Exit(0)

    try:
        get_config_service().reset(key)
    except KeyError as e:
        format_error(f"Configuration key '{key}' not found")
        raise typer.Exit(ERROR_NOT_FOUND) from e

    if key:
        format_success(f"Configuration '{key}' reset to default")
    else:
        format_success("Configuration reset to defaults")
