"""
Report maintenance core.

Holds the detail store write path, the summary aggregator, the commit hook
tying them together, and the upstream extraction loader. Storage specifics
live in `rental_report.infrastructure`.
"""

from rental_report.core.aggregator import (
    DEFAULT_SUMMARY_LIMIT,
    SummaryAggregator,
    full_name,
    group_details,
    rank_groups,
    summarize,
)
from rental_report.core.detail_store import (
    DetailBatch,
    DetailStore,
    ReportStore,
    StoreSession,
    validate_records,
)
from rental_report.core.extraction import (
    ExtractionLoader,
    InMemoryUpstreamFeed,
    UpstreamFeed,
    join_feed,
)
from rental_report.core.refresh import ChangeTriggeredRefresh

__all__ = [
    # Aggregation
    "DEFAULT_SUMMARY_LIMIT",
    "SummaryAggregator",
    "full_name",
    "group_details",
    "rank_groups",
    "summarize",
    # Detail store
    "DetailBatch",
    "DetailStore",
    "ReportStore",
    "StoreSession",
    "validate_records",
    # Extraction
    "ExtractionLoader",
    "InMemoryUpstreamFeed",
    "UpstreamFeed",
    "join_feed",
    # Refresh
    "ChangeTriggeredRefresh",
]
