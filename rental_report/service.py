"""
Report service: the operations callers use to maintain and read the report.

Usage:
    from rental_report.service import ReportService

    service = ReportService.from_settings()
    service.refresh_all()
    for row in service.get_summary():
        print(row.rank, row.full_name, row.customer_count)

Every write goes through one detail-store batch, and the summary is rebuilt
once per batch inside the same transaction, so a write either commits
together with its summary or not at all.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterable, Iterator, List, Mapping, Optional, TypedDict, Union

from pydantic import ValidationError

from rental_report.config import Settings, get_settings
from rental_report.core.aggregator import DEFAULT_SUMMARY_LIMIT, SummaryAggregator
from rental_report.core.detail_store import DetailBatch, DetailInput, DetailStore, ReportStore
from rental_report.core.extraction import ExtractionLoader, UpstreamFeed
from rental_report.core.refresh import ChangeTriggeredRefresh
from rental_report.domain.models import DetailFilter, DetailRecord, DetailUpdate, SummaryRecord
from rental_report.errors import MalformedRecord
from rental_report.utils.logging import get_logger
from rental_report.utils.timing import timed_block

log = get_logger(__name__)


class RefreshResult(TypedDict):
    """Outcome of `ReportService.refresh_all`."""

    cleared: int
    loaded: int
    summary_rows: int
    duration_seconds: float


class ReportService:
    """
    Maintains the detail store and the top-N summary derived from it.

    Parameters
    ----------
    store : ReportStore
        Transactional storage for detail and summary rows.
    feed : UpstreamFeed
        Upstream customers and rentals used by `refresh_all`.
    summary_limit : int
        Number of customers kept in the summary.
    append_only : bool
        Reject deletes and updates of detail rows.
    """

    def __init__(
        self,
        store: ReportStore,
        feed: UpstreamFeed,
        summary_limit: int = DEFAULT_SUMMARY_LIMIT,
        append_only: bool = False,
    ) -> None:
        self.aggregator = SummaryAggregator(limit=summary_limit)
        self.refresh = ChangeTriggeredRefresh(self.aggregator)
        self.details = DetailStore(store, append_only=append_only)
        self.details.register_hook(self.refresh)
        self.loader = ExtractionLoader(feed)

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "ReportService":
        """Build a service wired to PostgreSQL using the configured tables."""
        from rental_report.infrastructure.db_factory import get_sync_pool
        from rental_report.infrastructure.postgres import PostgresReportStore, PostgresUpstreamFeed
        from rental_report.infrastructure.schema import ReportTables

        settings = settings or get_settings()
        pool = get_sync_pool(settings)
        tables = ReportTables.from_settings(settings)
        return cls(
            store=PostgresReportStore(pool, tables),
            feed=PostgresUpstreamFeed(pool, tables),
            summary_limit=settings.summary_limit,
            append_only=settings.detail_append_only,
        )

    @contextmanager
    def batch(self) -> Iterator[DetailBatch]:
        """Group several detail mutations into one unit of work and one summary rebuild."""
        with self.details.batch() as batch:
            yield batch

    def append_detail(self, records: Iterable[DetailInput]) -> int:
        """
        Append detail rows as one batch.

        Raises
        ------
        MalformedRecord
            If any record lacks a required field; nothing is written.
        AggregationFailure
            If the summary rebuild fails; nothing is written.
        """
        with self.details.batch() as batch:
            return batch.append(records)

    def delete_detail(self, flt: DetailFilter) -> int:
        with self.details.batch() as batch:
            return batch.delete(flt)

    def update_detail(
        self, flt: DetailFilter, changes: Union[DetailUpdate, Mapping[str, Any]]
    ) -> int:
        if not isinstance(changes, DetailUpdate):
            try:
                changes = DetailUpdate.model_validate(changes)
            except ValidationError as exc:
                raise MalformedRecord(f"invalid update: {exc}") from exc
        with self.details.batch() as batch:
            return batch.update(flt, changes)

    def refresh_all(self) -> RefreshResult:
        """
        Reload the detail store from the upstream feed and rebuild the summary.

        The feed is read before the write batch opens; clearing and reloading
        then happen in one batch, so the summary is rebuilt once and readers
        never see an empty detail store or summary.
        """
        log.info("Manual refresh started")
        with timed_block("refresh_all") as stats:
            details = self.loader.extract()
            with self.details.batch() as batch:
                cleared = batch.clear()
                loaded = batch.append(details)
        result = RefreshResult(
            cleared=cleared,
            loaded=loaded,
            summary_rows=len(batch.summary or []),
            duration_seconds=round(stats.duration_seconds, 4),
        )
        log.info("Manual refresh complete", extra=dict(result))
        return result

    def recompute_summary(self) -> List[SummaryRecord]:
        """Rebuild the summary from the current detail rows without changing them."""
        with self.details.backend.transaction(write=True) as session:
            self.refresh(session)
            return session.fetch_summary()

    def get_summary(self) -> List[SummaryRecord]:
        with self.details.backend.transaction(write=False) as session:
            return session.fetch_summary()

    def get_detail(self, flt: Optional[DetailFilter] = None) -> List[DetailRecord]:
        return self.details.read(flt)


__all__ = ["RefreshResult", "ReportService"]
