"""
Integration tests for the PostgreSQL report store.

These tests run against a real PostgreSQL instance, inside a throwaway schema,
and verify that:
1. The schema can be created idempotently
2. Appends, refreshes and deletes keep the summary table in sync
3. A failing summary rebuild rolls back the triggering write
4. Concurrent write batches serialize

Run with: RUN_INTEGRATION_TESTS=1 pytest tests/integration/
"""

from __future__ import annotations

import os
import threading
from datetime import datetime

import psycopg
import pytest
from psycopg import sql
from psycopg_pool import ConnectionPool

from rental_report.config import Settings
from rental_report.domain.models import DetailFilter
from rental_report.errors import AggregationFailure
from rental_report.infrastructure.postgres import PostgresReportStore, PostgresUpstreamFeed
from rental_report.infrastructure.schema import ReportTables, ensure_schema, ensure_upstream_tables
from rental_report.service import ReportService
from tests.fakes import make_detail

REPEATED_RENTALS = 50
DISTINCT_GROUPS = 150
SUMMARY_LIMIT = 100
WRITER_THREADS = 4

pytestmark = pytest.mark.skipif(
    os.getenv("RUN_INTEGRATION_TESTS", "0") != "1",
    reason="Integration tests require RUN_INTEGRATION_TESTS=1 and reachable Postgres",
)


@pytest.fixture(scope="module")
def pool(test_settings: Settings, db_connection: psycopg.Connection, report_tables: ReportTables):
    ensure_schema(db_connection, report_tables)
    ensure_upstream_tables(db_connection, report_tables)
    pool = ConnectionPool(conninfo=test_settings.dsn, min_size=1, max_size=WRITER_THREADS + 1, open=True)
    try:
        yield pool
    finally:
        pool.close()


@pytest.fixture()
def clean_tables(db_connection: psycopg.Connection, report_tables: ReportTables):
    for table in (report_tables.detail, report_tables.summary, report_tables.rental, report_tables.customer):
        db_connection.execute(sql.SQL("DELETE FROM {}").format(table))
    yield


@pytest.fixture()
def pg_service(pool: ConnectionPool, report_tables: ReportTables, clean_tables) -> ReportService:
    return ReportService(
        PostgresReportStore(pool, report_tables),
        PostgresUpstreamFeed(pool, report_tables),
    )


def _seed_upstream(conn: psycopg.Connection, tables: ReportTables) -> None:
    with conn.cursor() as cur:
        cur.executemany(
            sql.SQL("INSERT INTO {} (customer_id, first_name, last_name, email) VALUES (%s, %s, %s, %s)").format(
                tables.customer
            ),
            [
                (1, "Mary", "Smith", "mary.smith@example.org"),
                (2, "Celeste", "Catala", "cc@example.edu"),
                (3, "Jared", "Ely", "jared.ely@example.org"),
            ],
        )
        cur.executemany(
            sql.SQL("INSERT INTO {} (rental_id, customer_id, rental_date) VALUES (%s, %s, %s)").format(
                tables.rental
            ),
            [
                (1, 1, datetime(2005, 5, 24, 22, 53)),
                (2, 1, datetime(2005, 5, 24, 22, 54)),
                (3, 2, datetime(2005, 5, 24, 23, 3)),
                (4, 3, datetime(2005, 5, 24, 23, 4)),
                (5, 999, datetime(2005, 5, 24, 23, 5)),
            ],
        )


def test_ensure_schema_is_idempotent(db_connection: psycopg.Connection, report_tables: ReportTables):
    ensure_schema(db_connection, report_tables)
    ensure_schema(db_connection, report_tables)


def test_append_identical_records(pg_service: ReportService):
    record = {
        "customer_id": 2,
        "first_name": "Celeste",
        "last_name": "Catala",
        "email": "cc@example.edu",
        "rental_id": 1003,
    }

    pg_service.append_detail([record] * REPEATED_RENTALS)

    summary = pg_service.get_summary()
    assert [(r.full_name, r.email, r.customer_count) for r in summary] == [
        ("Catala Celeste", "cc@example.edu", REPEATED_RENTALS)
    ]


def test_refresh_all_from_upstream_tables(
    pg_service: ReportService, db_connection: psycopg.Connection, report_tables: ReportTables
):
    _seed_upstream(db_connection, report_tables)

    result = pg_service.refresh_all()

    assert result["loaded"] == 4
    assert len(pg_service.get_detail()) == 4
    summary = pg_service.get_summary()
    assert len(summary) == 3
    assert sum(r.customer_count for r in summary) == 4
    assert summary[0].full_name == "Smith Mary"


def test_summary_truncates_to_top_hundred(pg_service: ReportService):
    pg_service.append_detail(
        [
            make_detail(customer_id=c, rental_id=c * 1000 + r)
            for c in range(1, DISTINCT_GROUPS + 1)
            for r in range(c)
        ]
    )

    summary = pg_service.get_summary()
    assert len(summary) == SUMMARY_LIMIT
    assert [r.rank for r in summary] == list(range(1, SUMMARY_LIMIT + 1))
    assert summary[-1].customer_count == DISTINCT_GROUPS - SUMMARY_LIMIT + 1


def test_delete_and_update_recompute(pg_service: ReportService):
    pg_service.append_detail([make_detail(customer_id=1, rental_id=i) for i in range(3)])
    pg_service.append_detail([make_detail(customer_id=2, rental_id=10)])

    assert pg_service.update_detail(DetailFilter(customer_id=2), {"first_name": "Renamed"}) == 1
    assert pg_service.delete_detail(DetailFilter(customer_id=1)) == 3

    assert [(r.full_name, r.customer_count) for r in pg_service.get_summary()] == [("Last2 Renamed", 1)]


def test_aggregation_failure_rolls_back(
    pg_service: ReportService, monkeypatch: pytest.MonkeyPatch
):
    pg_service.append_detail([make_detail(customer_id=1)])

    def _broken_rank(*args, **kwargs):
        raise RuntimeError("ranking broke")

    monkeypatch.setattr("rental_report.core.aggregator.rank_groups", _broken_rank)
    with pytest.raises(AggregationFailure):
        pg_service.append_detail([make_detail(customer_id=2)])

    assert [d.customer_id for d in pg_service.get_detail()] == [1]
    assert len(pg_service.get_summary()) == 1


def test_concurrent_batches_serialize(pg_service: ReportService):
    errors = []

    def _append(customer_id: int) -> None:
        try:
            pg_service.append_detail([make_detail(customer_id=customer_id, rental_id=i) for i in range(25)])
        except Exception as exc:  # noqa: BLE001 - surfaced through the errors list
            errors.append(exc)

    threads = [threading.Thread(target=_append, args=(c,)) for c in range(1, WRITER_THREADS + 1)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    summary = pg_service.get_summary()
    assert len(summary) == WRITER_THREADS
    assert sum(r.customer_count for r in summary) == WRITER_THREADS * 25


class _WriteBetweenReadsFeed(PostgresUpstreamFeed):
    """Commits a new customer and rental right after the first customer read."""

    def __init__(self, pool: ConnectionPool, tables: ReportTables, writer: psycopg.Connection) -> None:
        super().__init__(pool, tables)
        self.writer = writer
        self.rentals_seen: list = []
        self.written = False

    def fetch_customers(self):
        customers = super().fetch_customers()
        if self.written:
            return customers
        self.written = True
        self.writer.execute(
            sql.SQL("INSERT INTO {} (customer_id, first_name, last_name, email) VALUES (%s, %s, %s, %s)").format(
                self.tables.customer
            ),
            (10, "Late", "Arrival", "late@example.org"),
        )
        self.writer.execute(
            sql.SQL("INSERT INTO {} (rental_id, customer_id, rental_date) VALUES (%s, %s, %s)").format(
                self.tables.rental
            ),
            (500, 10, datetime(2005, 5, 25, 9, 0)),
        )
        return customers

    def fetch_rentals(self):
        self.rentals_seen = super().fetch_rentals()
        return self.rentals_seen


def test_refresh_reads_customers_and_rentals_from_one_snapshot(
    pool: ConnectionPool, db_connection: psycopg.Connection, report_tables: ReportTables, clean_tables
):
    _seed_upstream(db_connection, report_tables)
    feed = _WriteBetweenReadsFeed(pool, report_tables, db_connection)
    service = ReportService(PostgresReportStore(pool, report_tables), feed)

    result = service.refresh_all()

    assert 500 not in {r.rental_id for r in feed.rentals_seen}
    assert result["loaded"] == 4

    result = service.refresh_all()

    assert result["loaded"] == 5
    assert [d.customer_id for d in service.get_detail(DetailFilter(rental_id=500))] == [10]
