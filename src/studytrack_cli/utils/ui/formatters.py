"""Output formatters."""

from typing import Any

from rich.table import Table

from .console import get_console


def format_single_item(item: dict[str, Any]) -> None:
    """Format a single item as key-value pairs."""
    table = Table(show_header=False, box=None)
    table.add_column("Key", style="cyan")
    table.add_column("Value", style="white")

    for key, value in item.items():
        formatted_key = key.replace("_", " ").title()
        if isinstance(value, bool):
            formatted_value = "✓" if value else "✗"
        elif isinstance(value, dict):
            formatted_value = ", ".join(f"{k}={v}" for k, v in value.items())
        elif value is None:
            formatted_value = "-"
        else:
            formatted_value = str(value)
        table.add_row(formatted_key, formatted_value)

    get_console().print(table)


def format_error(message: str) -> None:
    """Format and display an error message."""
    get_console().print(f"[bold red]Error:[/bold red] {message}")


def format_success(message: str) -> None:
    """Format and display a success message."""
    get_console().print(f"[bold green]Success:[/bold green] {message}")


def format_warning(message: str) -> None:
    """Format and display a warning message."""
    get_console().print(f"[bold yellow]Warning:[/bold yellow] {message}")


def format_info(message: str) -> None:
    """Format and display an info message."""
    get_console().print(f"[bold blue]Info:[/bold blue] {message}")
