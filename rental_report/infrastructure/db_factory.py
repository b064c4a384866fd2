"""
Database connection factory utilities for the rental activity report.

Provides centralized management of the PostgreSQL connection pool used by
the report store and the upstream feed. The PoolManager singleton ensures
the pool is cleaned up on application exit.

Includes retry logic for transient connection failures using tenacity.
"""

from __future__ import annotations

import atexit
import threading
from typing import Optional

import psycopg
from psycopg import Connection
from psycopg_pool import ConnectionPool
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from rental_report.config import Settings, get_settings
from rental_report.utils.logging import get_logger

log = get_logger(__name__)


def build_dsn(settings: Optional[Settings] = None) -> str:
    """Compose a DSN string from settings."""
    return (settings or get_settings()).dsn


class PoolManager:
    """
    Thread-safe singleton owning the process-wide connection pool.

    Handles lifecycle management with automatic cleanup via atexit hook.
    """

    _instance: Optional["PoolManager"] = None
    _lock = threading.Lock()

    def __new__(cls) -> "PoolManager":
        """Create or return the singleton instance."""
        with cls._lock:
            if cls._instance is None:
                cls._instance = super().__new__(cls)
                cls._instance._pool = None
                atexit.register(cls._instance.close_all)
            return cls._instance

    def get_pool(self, settings: Optional[Settings] = None) -> ConnectionPool:
        """
        Get or create the synchronous connection pool.

        Parameters
        ----------
        settings : Settings | None
            Connection and sizing settings; defaults to the cached settings.
            Only used when the pool does not exist yet.

        Returns
        -------
        ConnectionPool
            The managed pool instance.
        """
        with self._lock:
            if self._pool is None:
                settings = settings or get_settings()
                log.info(
                    "Opening connection pool",
                    extra={
                        "host": settings.db_host,
                        "db": settings.db_name,
                        "min_size": settings.pool_min_size,
                        "max_size": settings.pool_max_size,
                    },
                )
                self._pool = ConnectionPool(
                    conninfo=build_dsn(settings),
                    min_size=settings.pool_min_size,
                    max_size=settings.pool_max_size,
                    open=True,
                )
            return self._pool

    def close_all(self) -> None:
        """
        Close the managed pool and release its connections.

        This is called automatically on exit via atexit hook.
        """
        with self._lock:
            if self._pool is not None:
                try:
                    self._pool.close()
                finally:
                    self._pool = None
                log.info("Connection pool closed")


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type((psycopg.OperationalError, psycopg.InterfaceError)),
    reraise=True,
)
def get_sync_connection(dsn: Optional[str] = None) -> Connection:
    """
    Acquire a dedicated synchronous connection with automatic retry.

    Retries up to 3 times with exponential backoff for transient connection errors.
    Use this for one-off operations such as schema setup. Prefer the pool otherwise.

    Raises
    ------
    psycopg.OperationalError
        If connection fails after all retry attempts.
    """
    return psycopg.connect(dsn or build_dsn())


def get_sync_pool(settings: Optional[Settings] = None) -> ConnectionPool:
    """Get or create the connection pool via PoolManager."""
    return PoolManager().get_pool(settings)


def close_pool() -> None:
    PoolManager().close_all()


__all__ = [
    "PoolManager",
    "build_dsn",
    "close_pool",
    "get_sync_connection",
    "get_sync_pool",
]
