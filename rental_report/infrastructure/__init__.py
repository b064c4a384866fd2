"""
Infrastructure package for the rental activity report.

Centralizes database concerns (connection pool, schema setup, and the
PostgreSQL store and feed). Keep this layer focused on I/O and resource
management, decoupled from the aggregation logic in `rental_report.core`.
"""

from rental_report.infrastructure.db_factory import (
    PoolManager,
    build_dsn,
    close_pool,
    get_sync_connection,
    get_sync_pool,
)
from rental_report.infrastructure.postgres import (
    PostgresReportStore,
    PostgresSession,
    PostgresUpstreamFeed,
)
from rental_report.infrastructure.schema import (
    ReportTables,
    ensure_schema,
    ensure_upstream_tables,
)

__all__ = [
    "PoolManager",
    "build_dsn",
    "close_pool",
    "get_sync_connection",
    "get_sync_pool",
    "PostgresReportStore",
    "PostgresSession",
    "PostgresUpstreamFeed",
    "ReportTables",
    "ensure_schema",
    "ensure_upstream_tables",
]
