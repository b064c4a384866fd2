"""
Pytest configuration for the rental activity report.

Provides fixtures for:
- An in-memory transactional report store (unit tests, no database)
- Upstream feeds and a wired ReportService
- PostgreSQL connection management for integration tests
"""

from __future__ import annotations

import os
import uuid
from datetime import datetime
from typing import Generator

import psycopg
import pytest
from psycopg import sql

from rental_report.config import Settings
from rental_report.core.extraction import InMemoryUpstreamFeed
from rental_report.domain.models import Customer, Rental
from rental_report.infrastructure.schema import ReportTables
from rental_report.service import ReportService
from tests.fakes import InMemoryReportStore


@pytest.fixture()
def memory_store() -> InMemoryReportStore:
    return InMemoryReportStore()


@pytest.fixture()
def small_feed() -> InMemoryUpstreamFeed:
    """
    Three customers and five rentals, one of which references an unknown customer.
    """
    customers = [
        Customer(customer_id=1, first_name="Mary", last_name="Smith", email="mary.smith@example.org"),
        Customer(customer_id=2, first_name="Celeste", last_name="Catala", email="cc@example.edu"),
        Customer(customer_id=3, first_name="Jared", last_name="Ely", email="jared.ely@example.org"),
    ]
    rentals = [
        Rental(rental_id=1, customer_id=1, rental_date=datetime(2005, 5, 24, 22, 53)),
        Rental(rental_id=2, customer_id=1, rental_date=datetime(2005, 5, 24, 22, 54)),
        Rental(rental_id=3, customer_id=2, rental_date=datetime(2005, 5, 24, 23, 3)),
        Rental(rental_id=4, customer_id=3, rental_date=datetime(2005, 5, 24, 23, 4)),
        Rental(rental_id=5, customer_id=999, rental_date=datetime(2005, 5, 24, 23, 5)),
    ]
    return InMemoryUpstreamFeed(customers, rentals)


@pytest.fixture()
def service(memory_store: InMemoryReportStore, small_feed: InMemoryUpstreamFeed) -> ReportService:
    return ReportService(memory_store, small_feed)


# Integration fixtures


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """
    Settings fixture with test-specific overrides.

    Each test session works in its own schema so it never touches real report tables.
    """
    return Settings(
        _env_file=None,
        db_host=os.getenv("DB_HOST", "localhost"),
        db_port=int(os.getenv("DB_PORT", "5432")),
        db_user=os.getenv("DB_USER", "postgres"),
        db_password=os.getenv("DB_PASSWORD", "postgres"),
        db_name=os.getenv("DB_NAME", "dvdrental"),
        db_schema=f"rental_report_test_{uuid.uuid4().hex[:8]}",
        log_level="DEBUG",
    )


@pytest.fixture(scope="session")
def db_connection_available(test_settings: Settings) -> bool:
    """
    Check if database is reachable.

    Used to conditionally skip integration tests when DB is not available.
    """
    try:
        with psycopg.connect(test_settings.dsn, connect_timeout=5) as conn:
            conn.execute("SELECT 1;").fetchone()
        return True
    except psycopg.Error:
        return False


@pytest.fixture(scope="session")
def db_connection(
    test_settings: Settings, db_connection_available: bool
) -> Generator[psycopg.Connection, None, None]:
    """
    Provide a session-scoped autocommit connection; drops the test schema afterwards.

    Skips tests if database is not available.
    """
    if not db_connection_available:
        pytest.skip("Database not available for integration tests")

    conn = psycopg.connect(test_settings.dsn, autocommit=True)
    try:
        yield conn
    finally:
        conn.execute(
            sql.SQL("DROP SCHEMA IF EXISTS {} CASCADE").format(
                sql.Identifier(test_settings.db_schema)
            )
        )
        conn.close()


@pytest.fixture(scope="session")
def report_tables(test_settings: Settings) -> ReportTables:
    return ReportTables.from_settings(test_settings)
