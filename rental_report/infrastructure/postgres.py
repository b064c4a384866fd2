"""
PostgreSQL backend for the detail store, the summary store and the upstream feed.

`PostgresReportStore.transaction()` borrows a pooled connection and runs one
database transaction. Write transactions first take
`LOCK TABLE <summary> IN EXCLUSIVE MODE`: concurrent write batches queue
behind each other, while plain SELECTs keep reading the last committed summary.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Any, Iterator, List, Mapping, Optional, Sequence

from psycopg import Connection, sql
from psycopg.rows import class_row
from psycopg_pool import ConnectionPool

from rental_report.domain.models import (
    Customer,
    DetailFilter,
    DetailRecord,
    GroupCount,
    Rental,
    SummaryRecord,
)
from rental_report.infrastructure.db_factory import get_sync_pool
from rental_report.infrastructure.schema import ReportTables
from rental_report.utils.logging import get_logger

log = get_logger(__name__)

DETAIL_COLUMNS = (
    "customer_id",
    "first_name",
    "last_name",
    "email",
    "rental_id",
    "rental_date",
    "return_date",
)
SUMMARY_COLUMNS = ("rank", "full_name", "email", "customer_count")
_FILTERABLE = frozenset({"customer_id", "email", "rental_id"})
_UPDATABLE = frozenset({"first_name", "last_name", "email", "rental_date", "return_date"})


def _columns(names: Sequence[str]) -> sql.Composed:
    return sql.SQL(", ").join(map(sql.Identifier, names))


def _where(criteria: Mapping[str, Any]) -> tuple[sql.Composable, list[Any]]:
    unknown = set(criteria) - _FILTERABLE
    if unknown:
        raise ValueError(f"cannot filter detail rows on: {', '.join(sorted(unknown))}")
    if not criteria:
        return sql.SQL(""), []
    clause = sql.SQL(" WHERE ") + sql.SQL(" AND ").join(
        sql.SQL("{} = %s").format(sql.Identifier(column)) for column in criteria
    )
    return clause, list(criteria.values())


class PostgresSession:
    """Store operations bound to one open connection/transaction."""

    def __init__(self, conn: Connection, tables: ReportTables) -> None:
        self.conn = conn
        self.tables = tables

    # Detail rows

    def insert_details(self, records: Sequence[DetailRecord]) -> int:
        if not records:
            return 0
        query = sql.SQL("INSERT INTO {} ({}) VALUES ({})").format(
            self.tables.detail,
            _columns(DETAIL_COLUMNS),
            sql.SQL(", ").join(sql.Placeholder() * len(DETAIL_COLUMNS)),
        )
        with self.conn.cursor() as cur:
            cur.executemany(
                query,
                [tuple(getattr(r, column) for column in DETAIL_COLUMNS) for r in records],
            )
        return len(records)

    def delete_details(self, criteria: Mapping[str, Any]) -> int:
        where, params = _where(criteria)
        query = sql.SQL("DELETE FROM {}").format(self.tables.detail) + where
        with self.conn.cursor() as cur:
            cur.execute(query, params)
            return cur.rowcount

    def update_details(self, criteria: Mapping[str, Any], changes: Mapping[str, Any]) -> int:
        unknown = set(changes) - _UPDATABLE
        if unknown:
            raise ValueError(f"cannot update detail columns: {', '.join(sorted(unknown))}")
        if not changes:
            return 0
        assignments = sql.SQL(", ").join(
            sql.SQL("{} = %s").format(sql.Identifier(column)) for column in changes
        )
        where, params = _where(criteria)
        query = sql.SQL("UPDATE {} SET {}").format(self.tables.detail, assignments) + where
        with self.conn.cursor() as cur:
            cur.execute(query, [*changes.values(), *params])
            return cur.rowcount

    def clear_details(self) -> int:
        with self.conn.cursor() as cur:
            cur.execute(sql.SQL("DELETE FROM {}").format(self.tables.detail))
            return cur.rowcount

    def fetch_details(self, flt: DetailFilter) -> List[DetailRecord]:
        where, params = _where(flt.criteria())
        query = (
            sql.SQL("SELECT {} FROM {}").format(_columns(DETAIL_COLUMNS), self.tables.detail)
            + where
            + sql.SQL(" ORDER BY detail_id")
        )
        if flt.limit is not None:
            query += sql.SQL(" LIMIT %s")
            params.append(flt.limit)
        with self.conn.cursor(row_factory=class_row(DetailRecord)) as cur:
            cur.execute(query, params)
            return cur.fetchall()

    # Summary rows

    def count_groups(self) -> List[GroupCount]:
        query = sql.SQL(
            "SELECT customer_id, first_name, last_name, email, count(*) AS customer_count "
            "FROM {} GROUP BY customer_id, last_name, first_name, email"
        ).format(self.tables.detail)
        with self.conn.cursor(row_factory=class_row(GroupCount)) as cur:
            cur.execute(query)
            return cur.fetchall()

    def replace_summary(self, rows: Sequence[SummaryRecord]) -> None:
        with self.conn.cursor() as cur:
            cur.execute(sql.SQL("DELETE FROM {}").format(self.tables.summary))
            if rows:
                cur.executemany(
                    sql.SQL("INSERT INTO {} ({}) VALUES (%s, %s, %s, %s)").format(
                        self.tables.summary, _columns(SUMMARY_COLUMNS)
                    ),
                    [(r.rank, r.full_name, r.email, r.customer_count) for r in rows],
                )

    def fetch_summary(self) -> List[SummaryRecord]:
        query = sql.SQL("SELECT {} FROM {} ORDER BY rank").format(
            _columns(SUMMARY_COLUMNS), self.tables.summary
        )
        with self.conn.cursor(row_factory=class_row(SummaryRecord)) as cur:
            cur.execute(query)
            return cur.fetchall()


class PostgresReportStore:
    """
    Report store backed by a psycopg connection pool.

    Parameters
    ----------
    pool : ConnectionPool | None
        Pool to borrow connections from. Defaults to the process-wide pool.
    tables : ReportTables | None
        Table names; defaults to the configured ones.
    """

    def __init__(
        self, pool: Optional[ConnectionPool] = None, tables: Optional[ReportTables] = None
    ) -> None:
        self._pool = pool
        self.tables = tables or ReportTables.from_settings()

    @property
    def pool(self) -> ConnectionPool:
        if self._pool is None:
            self._pool = get_sync_pool()
        return self._pool

    @contextmanager
    def transaction(self, write: bool = True) -> Iterator[PostgresSession]:
        with self.pool.connection() as conn:
            with conn.transaction():
                if write:
                    conn.execute(
                        sql.SQL("LOCK TABLE {} IN EXCLUSIVE MODE").format(self.tables.summary)
                    )
                else:
                    conn.execute("SET TRANSACTION READ ONLY")
                yield PostgresSession(conn, self.tables)


class PostgresUpstreamFeed:
    """
    Reads the upstream `customer` and `rental` tables.

    Fetches made inside `snapshot()` share one REPEATABLE READ transaction, so
    customers and rentals come from the same database snapshot. A fetch made
    outside a snapshot runs in its own read-only transaction.
    """

    def __init__(
        self, pool: Optional[ConnectionPool] = None, tables: Optional[ReportTables] = None
    ) -> None:
        self._pool = pool
        self.tables = tables or ReportTables.from_settings()
        self._local = threading.local()

    @property
    def pool(self) -> ConnectionPool:
        if self._pool is None:
            self._pool = get_sync_pool()
        return self._pool

    @contextmanager
    def snapshot(self) -> Iterator[None]:
        with self.pool.connection() as conn:
            with conn.transaction():
                conn.execute("SET TRANSACTION ISOLATION LEVEL REPEATABLE READ, READ ONLY")
                self._local.conn = conn
                try:
                    yield
                finally:
                    self._local.conn = None

    def _select(self, row_type: type, columns: Sequence[str], table: sql.Identifier, key: str) -> list:
        query = sql.SQL("SELECT {} FROM {} ORDER BY {}").format(
            _columns(columns), table, sql.Identifier(key)
        )
        conn = getattr(self._local, "conn", None)
        if conn is not None:
            with conn.cursor(row_factory=class_row(row_type)) as cur:
                cur.execute(query)
                return cur.fetchall()
        with self.snapshot():
            return self._select(row_type, columns, table, key)

    def fetch_customers(self) -> List[Customer]:
        return self._select(
            Customer,
            ("customer_id", "first_name", "last_name", "email"),
            self.tables.customer,
            "customer_id",
        )

    def fetch_rentals(self) -> List[Rental]:
        return self._select(
            Rental,
            ("rental_id", "customer_id", "rental_date", "return_date"),
            self.tables.rental,
            "rental_id",
        )


__all__ = ["PostgresReportStore", "PostgresSession", "PostgresUpstreamFeed"]
