"""
Change-triggered summary refresh.

Registered as a commit hook on the detail store, so the summary is rebuilt
synchronously, once per write batch, inside the batch's transaction. A failed
rebuild fails the batch: there is no retry.
"""
from __future__ import annotations

import threading
from typing import List

from rental_report.core.aggregator import SummaryAggregator
from rental_report.core.detail_store import StoreSession
from rental_report.domain.models import SummaryRecord
from rental_report.errors import AggregationFailure
from rental_report.utils.logging import get_logger

log = get_logger(__name__)


class ChangeTriggeredRefresh:
    """Commit hook that recomputes the summary from the detail rows."""

    def __init__(self, aggregator: SummaryAggregator) -> None:
        self.aggregator = aggregator
        self.firings = 0
        self._lock = threading.Lock()

    def __call__(self, session: StoreSession) -> List[SummaryRecord]:
        with self._lock:
            self.firings += 1
        try:
            return self.aggregator.recompute(session)
        except AggregationFailure:
            raise
        except Exception as exc:
            log.error("Summary recompute failed; rolling back batch", extra={"error": str(exc)})
            raise AggregationFailure(f"summary recompute failed: {exc}") from exc


__all__ = ["ChangeTriggeredRefresh"]
