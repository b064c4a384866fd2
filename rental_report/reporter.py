"""
Terminal rendering of the summary and detail rows using rich tables.
"""
from __future__ import annotations

import json
from typing import Optional, Sequence

from rich import box
from rich.console import Console
from rich.table import Table

from rental_report.domain.models import DetailRecord, SummaryRecord


def _fmt_ts(value) -> str:
    return value.strftime("%Y-%m-%d %H:%M") if value is not None else "-"


def print_summary(
    rows: Sequence[SummaryRecord], console: Optional[Console] = None, limit: Optional[int] = None
) -> None:
    """
    Render the ranked summary as a rich table.
    """
    console = console or Console()
    if not rows:
        console.print("[yellow]Summary is empty.[/yellow]")
        return

    shown = list(rows[:limit]) if limit else list(rows)
    table = Table(
        title="Top Customers by Rentals",
        box=box.ROUNDED,
        caption=f"{len(shown)} of {len(rows)} rows, ranked by rental count (descending)",
    )
    table.add_column("#", justify="right", style="blue")
    table.add_column("Customer", style="cyan", no_wrap=True)
    table.add_column("Email", style="magenta")
    table.add_column("Rentals", justify="right", style="bold green")

    for row in shown:
        table.add_row(str(row.rank), row.full_name or "-", row.email, f"{row.customer_count:,}")

    console.print(table)


def print_details(rows: Sequence[DetailRecord], console: Optional[Console] = None) -> None:
    """
    Render detail rows as a rich table.
    """
    console = console or Console()
    if not rows:
        console.print("[yellow]No detail rows match.[/yellow]")
        return

    table = Table(title="Rental Detail", box=box.ROUNDED)
    table.add_column("Customer", justify="right", style="cyan")
    table.add_column("Name", no_wrap=True)
    table.add_column("Email", style="magenta")
    table.add_column("Rental", justify="right", style="blue")
    table.add_column("Rented", style="green")
    table.add_column("Returned", style="yellow")

    for row in rows:
        name = " ".join(part for part in (row.first_name, row.last_name) if part) or "-"
        table.add_row(
            str(row.customer_id),
            name,
            row.email,
            str(row.rental_id),
            _fmt_ts(row.rental_date),
            _fmt_ts(row.return_date),
        )

    console.print(table)


def to_json(rows: Sequence[SummaryRecord] | Sequence[DetailRecord]) -> str:
    """Serialize rows as a JSON array."""
    return json.dumps([row.model_dump(mode="json") for row in rows], indent=2)


__all__ = ["print_details", "print_summary", "to_json"]
