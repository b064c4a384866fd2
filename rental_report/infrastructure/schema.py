"""
Table definitions for the report and (for demos only) the upstream feed.

`ensure_schema` creates the detail and summary tables if they are missing.
The upstream `customer` / `rental` tables belong to the rental system; they
are only created by the seed script when explicitly asked.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from psycopg import Connection, sql

from rental_report.config import Settings, get_settings
from rental_report.utils.logging import get_logger

log = get_logger(__name__)


@dataclass(frozen=True)
class ReportTables:
    """Qualified identifiers of every table the report touches."""

    schema: str
    detail_name: str
    summary_name: str
    customer_name: str
    rental_name: str

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "ReportTables":
        settings = settings or get_settings()
        return cls(
            schema=settings.db_schema,
            detail_name=settings.detail_table,
            summary_name=settings.summary_table,
            customer_name=settings.customer_table,
            rental_name=settings.rental_table,
        )

    @property
    def detail(self) -> sql.Identifier:
        return sql.Identifier(self.schema, self.detail_name)

    @property
    def summary(self) -> sql.Identifier:
        return sql.Identifier(self.schema, self.summary_name)

    @property
    def customer(self) -> sql.Identifier:
        return sql.Identifier(self.schema, self.customer_name)

    @property
    def rental(self) -> sql.Identifier:
        return sql.Identifier(self.schema, self.rental_name)


_DETAIL_DDL = """
CREATE TABLE IF NOT EXISTS {detail} (
    detail_id   BIGSERIAL PRIMARY KEY,
    customer_id INTEGER NOT NULL,
    first_name  TEXT,
    last_name   TEXT,
    email       TEXT NOT NULL,
    rental_id   INTEGER NOT NULL,
    rental_date TIMESTAMP,
    return_date TIMESTAMP
)
"""

_DETAIL_INDEX_DDL = "CREATE INDEX IF NOT EXISTS {index} ON {detail} (customer_id)"

_SUMMARY_DDL = """
CREATE TABLE IF NOT EXISTS {summary} (
    rank           INTEGER PRIMARY KEY,
    full_name      TEXT NOT NULL,
    email          TEXT NOT NULL,
    customer_count INTEGER NOT NULL CHECK (customer_count > 0)
)
"""

_CUSTOMER_DDL = """
CREATE TABLE IF NOT EXISTS {customer} (
    customer_id INTEGER PRIMARY KEY,
    first_name  TEXT,
    last_name   TEXT,
    email       TEXT
)
"""

_RENTAL_DDL = """
CREATE TABLE IF NOT EXISTS {rental} (
    rental_id   INTEGER PRIMARY KEY,
    customer_id INTEGER NOT NULL,
    rental_date TIMESTAMP,
    return_date TIMESTAMP
)
"""


def ensure_schema(conn: Connection, tables: Optional[ReportTables] = None) -> None:
    """
    Create the report schema, detail table and summary table if missing.

    Commits on success. Safe to call repeatedly.
    """
    tables = tables or ReportTables.from_settings()
    with conn.transaction():
        conn.execute(
            sql.SQL("CREATE SCHEMA IF NOT EXISTS {}").format(sql.Identifier(tables.schema))
        )
        conn.execute(sql.SQL(_DETAIL_DDL).format(detail=tables.detail))
        conn.execute(
            sql.SQL(_DETAIL_INDEX_DDL).format(
                index=sql.Identifier(f"{tables.detail_name}_customer_id_idx"),
                detail=tables.detail,
            )
        )
        conn.execute(sql.SQL(_SUMMARY_DDL).format(summary=tables.summary))
    log.info(
        "Report schema ensured",
        extra={
            "schema": tables.schema,
            "detail_table": tables.detail_name,
            "summary_table": tables.summary_name,
        },
    )


def ensure_upstream_tables(conn: Connection, tables: Optional[ReportTables] = None) -> None:
    """Create minimal `customer` / `rental` tables for demo data."""
    tables = tables or ReportTables.from_settings()
    with conn.transaction():
        conn.execute(
            sql.SQL("CREATE SCHEMA IF NOT EXISTS {}").format(sql.Identifier(tables.schema))
        )
        conn.execute(sql.SQL(_CUSTOMER_DDL).format(customer=tables.customer))
        conn.execute(sql.SQL(_RENTAL_DDL).format(rental=tables.rental))
    log.info(
        "Upstream demo tables ensured",
        extra={"customer_table": tables.customer_name, "rental_table": tables.rental_name},
    )


__all__ = ["ReportTables", "ensure_schema", "ensure_upstream_tables"]
