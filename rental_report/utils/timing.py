"""
Lightweight timing for report maintenance operations.

`timed_block` records wall-clock duration (perf_counter) and the change in
resident memory (psutil) around a block, so refreshes and summary recomputes
can log their cost.

Usage:
    from rental_report.utils.timing import timed_block

    with timed_block("refresh_all") as stats:
        service.refresh_all()

    print(stats.duration_seconds, stats.rss_delta_bytes)
"""

from __future__ import annotations

import contextlib
import time
from dataclasses import dataclass, field
from typing import Any, Generator, Optional

import psutil


@dataclass
class TimingStats:
    """
    Container for one timed block.
    """

    label: str
    start_ts: float = field(default=0.0)
    end_ts: float = field(default=0.0)
    duration_seconds: float = field(default=0.0)
    rss_start_bytes: Optional[int] = field(default=None)
    rss_end_bytes: Optional[int] = field(default=None)
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def rss_delta_bytes(self) -> Optional[int]:
        if self.rss_start_bytes is None or self.rss_end_bytes is None:
            return None
        return self.rss_end_bytes - self.rss_start_bytes

    def as_log_fields(self) -> dict[str, Any]:
        """Flatten into `extra=` fields for a log call."""
        return {
            "label": self.label,
            "duration_seconds": round(self.duration_seconds, 4),
            "rss_delta_bytes": self.rss_delta_bytes,
            **self.extra,
        }


def _rss(process: psutil.Process) -> Optional[int]:
    try:
        return process.memory_info().rss
    except psutil.Error:
        return None


@contextlib.contextmanager
def timed_block(label: str) -> Generator[TimingStats, None, None]:
    """
    Context manager timing a block of code.

    Parameters
    ----------
    label : str
        Human-friendly label for the timed block.
    """
    stats = TimingStats(label=label)
    process = psutil.Process()
    stats.rss_start_bytes = _rss(process)
    stats.start_ts = time.perf_counter()
    try:
        yield stats
    finally:
        stats.end_ts = time.perf_counter()
        stats.duration_seconds = stats.end_ts - stats.start_ts
        stats.rss_end_bytes = _rss(process)


__all__ = ["TimingStats", "timed_block"]
