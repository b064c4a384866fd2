from __future__ import annotations

import sys
from typing import Optional

import typer

from rental_report.config import get_settings
from rental_report.domain.models import DetailFilter
from rental_report.errors import ReportError
from rental_report.reporter import print_details, print_summary, to_json
from rental_report.service import ReportService
from rental_report.utils.logging import configure_logging, get_logger

app = typer.Typer(help="Customer rental activity report CLI.")
log = get_logger(__name__)


def _service() -> ReportService:
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)
    return ReportService.from_settings(settings)


@app.command()
def info() -> None:
    """
    Show effective configuration values.
    """
    settings = get_settings()
    typer.echo(
        f"DB={settings.db_user}@{settings.db_host}:{settings.db_port}/{settings.db_name} | "
        f"detail={settings.db_schema}.{settings.detail_table} "
        f"summary={settings.db_schema}.{settings.summary_table} | "
        f"upstream={settings.customer_table},{settings.rental_table} | "
        f"top={settings.summary_limit} append_only={settings.detail_append_only}"
    )


@app.command("init-schema")
def init_schema() -> None:
    """
    Create the detail and summary tables if they do not exist.
    """
    from rental_report.infrastructure.db_factory import get_sync_connection
    from rental_report.infrastructure.schema import ReportTables, ensure_schema

    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)
    with get_sync_connection(settings.dsn) as conn:
        ensure_schema(conn, ReportTables.from_settings(settings))
    typer.echo("Report tables ready.")


@app.command()
def refresh(
    show: bool = typer.Option(True, "--show/--no-show", help="Print the summary afterwards."),
) -> None:
    """
    Reload the detail table from upstream and rebuild the summary.
    """
    service = _service()
    result = service.refresh_all()
    typer.echo(
        f"Reloaded {result['loaded']:,} detail rows (cleared {result['cleared']:,}); "
        f"summary has {result['summary_rows']} rows ({result['duration_seconds']:.2f}s)."
    )
    if show:
        print_summary(service.get_summary())


@app.command()
def summary(
    limit: Optional[int] = typer.Option(None, "--limit", "-n", min=1, help="Show only the first N rows."),
    as_json: bool = typer.Option(False, "--json", help="Emit JSON instead of a table."),
) -> None:
    """
    Print the current top customers.
    """
    rows = _service().get_summary()
    if as_json:
        typer.echo(to_json(rows[:limit] if limit else rows))
        return
    print_summary(rows, limit=limit)


@app.command()
def detail(
    customer_id: Optional[int] = typer.Option(None, "--customer-id", "-c", help="Filter by customer."),
    email: Optional[str] = typer.Option(None, "--email", "-e", help="Filter by e-mail."),
    limit: Optional[int] = typer.Option(50, "--limit", "-n", min=1, help="Maximum rows to show."),
    as_json: bool = typer.Option(False, "--json", help="Emit JSON instead of a table."),
) -> None:
    """
    Print detail rows, mainly for verification.
    """
    rows = _service().get_detail(DetailFilter(customer_id=customer_id, email=email, limit=limit))
    if as_json:
        typer.echo(to_json(rows))
        return
    print_details(rows)


@app.command()
def recompute() -> None:
    """
    Rebuild the summary from the current detail rows.
    """
    rows = _service().recompute_summary()
    typer.echo(f"Summary rebuilt with {len(rows)} rows.")


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)
    except ReportError as exc:
        log.error("Report operation failed: %s", exc)
        typer.echo(f"Error: {exc}", err=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
