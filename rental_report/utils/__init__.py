"""
Utilities package for the rental activity report.

Exports shared helpers for logging, timing, and other cross-cutting concerns.
Keep this package lightweight and free of domain-specific logic.
"""

from rental_report.utils.logging import configure_logging, get_logger
from rental_report.utils.timing import TimingStats, timed_block

__all__ = [
    "configure_logging",
    "get_logger",
    "TimingStats",
    "timed_block",
]
