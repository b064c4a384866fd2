"""
Demo data script for the rental activity report.

Generates a deterministic pseudo-random customer/rental feed, writes it as two
CSV files and loads them into the upstream tables with Postgres COPY. A share
of the rentals reference customer ids that do not exist, to exercise the
orphan filter of the extraction loader.
"""

from __future__ import annotations

import csv
import random
import sys
import tempfile
import time
from datetime import datetime, timedelta
from pathlib import Path

import psycopg
import typer
from psycopg import sql

from rental_report.infrastructure.db_factory import build_dsn
from rental_report.infrastructure.schema import ReportTables, ensure_upstream_tables

app = typer.Typer(help="Generate a synthetic customer/rental feed and load it into Postgres.")

FIRST_NAMES = ["Mary", "Patricia", "Linda", "Barbara", "Celeste", "Jared", "Austin", "Eleanor"]
LAST_NAMES = ["Smith", "Johnson", "Catala", "Hunt", "Cintron", "Ely", "Barbee", "Moore"]
CUSTOMER_HEADER = ["customer_id", "first_name", "last_name", "email"]
RENTAL_HEADER = ["rental_id", "customer_id", "rental_date", "return_date"]


def _build_dsn(dsn_override: str | None) -> str:
    if dsn_override:
        return dsn_override
    return build_dsn()


def _generate_customers_csv(csv_path: Path, customers: int, seed: int) -> None:
    rng = random.Random(seed)
    with csv_path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(CUSTOMER_HEADER)
        for customer_id in range(1, customers + 1):
            first = rng.choice(FIRST_NAMES)
            last = rng.choice(LAST_NAMES)
            email = f"{first}.{last}.{customer_id}@example.org".lower()
            writer.writerow([customer_id, first, last, email])


def _generate_rentals_csv(
    csv_path: Path, rentals: int, customers: int, orphan_ratio: float, seed: int
) -> int:
    """Write the rentals CSV and return how many rows are orphans."""
    rng = random.Random(seed + 1)
    start = datetime(2005, 5, 24, 22, 53)
    orphans = 0
    with csv_path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(RENTAL_HEADER)
        for rental_id in range(1, rentals + 1):
            if rng.random() < orphan_ratio:
                customer_id = customers + rng.randint(1, 1_000)
                orphans += 1
            else:
                # Skewed so the ranking has clear leaders.
                customer_id = min(int(rng.paretovariate(1.2)), customers)
            rented = start + timedelta(minutes=rng.randint(0, 60 * 24 * 365))
            returned = rented + timedelta(days=rng.randint(1, 10)) if rng.random() > 0.05 else None
            writer.writerow(
                [
                    rental_id,
                    customer_id,
                    rented.isoformat(sep=" "),
                    returned.isoformat(sep=" ") if returned else "",
                ]
            )
    return orphans


def _copy_into_db(
    dsn: str, customers_csv: Path, rentals_csv: Path, create_tables: bool, replace: bool
) -> None:
    tables = ReportTables.from_settings()
    with psycopg.connect(dsn) as conn:
        if create_tables:
            ensure_upstream_tables(conn, tables)
        with conn.transaction():
            with conn.cursor() as cur:
                if replace:
                    cur.execute(sql.SQL("DELETE FROM {}").format(tables.rental))
                    cur.execute(sql.SQL("DELETE FROM {}").format(tables.customer))
                for table, header, path in (
                    (tables.customer, CUSTOMER_HEADER, customers_csv),
                    (tables.rental, RENTAL_HEADER, rentals_csv),
                ):
                    statement = sql.SQL(
                        "COPY {} ({}) FROM STDIN WITH (FORMAT csv, HEADER TRUE)"
                    ).format(table, sql.SQL(", ").join(map(sql.Identifier, header)))
                    with cur.copy(statement) as copy:
                        with path.open("r", encoding="utf-8") as f:
                            for line in f:
                                copy.write(line)


@app.command()
def main(
    customers: int = typer.Option(600, "--customers", "-c", min=1, help="Number of customers."),
    rentals: int = typer.Option(16_000, "--rentals", "-r", min=0, help="Number of rentals."),
    orphan_ratio: float = typer.Option(
        0.01, "--orphan-ratio", min=0.0, max=1.0, help="Share of rentals with an unknown customer."
    ),
    seed: int = typer.Option(42, "--seed", help="Deterministic RNG seed."),
    output: Path | None = typer.Option(
        None, "--output", "-o", help="Directory for the CSV files (temp dir if omitted)."
    ),
    dsn: str | None = typer.Option(None, "--dsn", help="Optional DSN override for Postgres."),
    create_tables: bool = typer.Option(
        False, "--create-tables", help="Create minimal customer/rental tables first."
    ),
    replace: bool = typer.Option(False, "--replace", help="Delete existing upstream rows first."),
    no_load: bool = typer.Option(False, "--no-load", help="Only generate CSVs; skip loading."),
) -> None:
    """
    Generate a synthetic upstream feed and optionally load it into Postgres using COPY.
    """
    start = time.perf_counter()
    out_dir = output or Path(tempfile.mkdtemp(prefix="rental_feed_"))
    out_dir.mkdir(parents=True, exist_ok=True)
    customers_csv = out_dir / "customer.csv"
    rentals_csv = out_dir / "rental.csv"

    typer.echo(f"Generating {customers:,} customers and {rentals:,} rentals -> {out_dir} (seed={seed})")
    _generate_customers_csv(customers_csv, customers=customers, seed=seed)
    orphans = _generate_rentals_csv(
        rentals_csv, rentals=rentals, customers=customers, orphan_ratio=orphan_ratio, seed=seed
    )
    typer.echo(
        f"CSV generation completed in {time.perf_counter() - start:.2f}s ({orphans:,} orphan rentals)"
    )

    if no_load:
        typer.echo("Skipping load (no-load flag set).")
        return

    load_start = time.perf_counter()
    typer.echo("Loading CSVs into Postgres via COPY...")
    _copy_into_db(_build_dsn(dsn), customers_csv, rentals_csv, create_tables, replace)
    typer.echo(f"Load completed in {time.perf_counter() - load_start:.2f}s.")


if __name__ == "__main__":
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)
