"""Render alias collections as rich tables."""

from datetime import datetime
from typing import Any, Iterable

from rich.console import Console
from rich.table import Table

from .alias import FIELDS, Alias, field_names
from .errors import UnknownFieldError
from .timestamps import ts_to_string


def format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if isinstance(value, datetime):
        return ts_to_string(value)
    if isinstance(value, list):
        return ", ".join(value)
    return str(value)


def alias_table(
    aliases: Iterable[Alias],
    columns: list[str] | None = None,
    headers: bool = True,
    numbers: bool = True,
) -> Table:
    """Build a table of aliases.

    Args:
        columns: Field names to show, in order (default: all fields)
        headers: Show the header row
        numbers: Prefix each row with a 1-based index
    """
    columns = columns or field_names()
    for name in columns:
        if name not in FIELDS:
            raise UnknownFieldError(name)

    table = Table(show_header=headers)
    if numbers:
        table.add_column("#", justify="right", style="dim")
    for name in columns:
        style = "cyan" if name == "alias" else None
        table.add_column(FIELDS[name].column, style=style)

    for i, a in enumerate(aliases, 1):
        row = [format_value(FIELDS[name].get(a)) for name in columns]
        if numbers:
            row.insert(0, str(i))
        table.add_row(*row)
    return table


def print_aliases(
    aliases: Iterable[Alias],
    columns: list[str] | None = None,
    headers: bool = True,
    numbers: bool = True,
    title: str | None = None,
    console: Console | None = None,
) -> None:
    """Print aliases as a table to the console (stdout by default)."""
    console = console or Console()
    if title:
        console.print(title, style="bold", markup=False)
    console.print(alias_table(aliases, columns, headers=headers, numbers=numbers))
