"""
Rental Report - top-N customer rental activity for a DVD rental business.

Denormalizes the upstream customer and rental feeds into a detail table and
keeps a ranked summary table derived from it:

- The detail store groups writes into batches (one transaction each)
- Every committed batch rebuilds the summary once, in the same transaction
- A manual refresh reloads the detail store from upstream in a single batch

The summary is always a full recomputation of the detail rows, truncated to
the configured top-N with a deterministic tie-break.
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from rental_report.config import Settings, get_settings
from rental_report.core import (
    ChangeTriggeredRefresh,
    DetailStore,
    ExtractionLoader,
    InMemoryUpstreamFeed,
    SummaryAggregator,
    full_name,
    summarize,
)
from rental_report.domain import (
    Customer,
    DetailFilter,
    DetailRecord,
    DetailUpdate,
    Rental,
    SummaryRecord,
)
from rental_report.errors import (
    AggregationFailure,
    AppendOnlyViolation,
    MalformedRecord,
    ReportError,
    UpstreamUnavailable,
)
from rental_report.service import RefreshResult, ReportService
from rental_report.utils.logging import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "Settings",
    "get_settings",
    # Service
    "RefreshResult",
    "ReportService",
    # Core
    "ChangeTriggeredRefresh",
    "DetailStore",
    "ExtractionLoader",
    "InMemoryUpstreamFeed",
    "SummaryAggregator",
    "full_name",
    "summarize",
    # Domain
    "Customer",
    "DetailFilter",
    "DetailRecord",
    "DetailUpdate",
    "Rental",
    "SummaryRecord",
    # Errors
    "AggregationFailure",
    "AppendOnlyViolation",
    "MalformedRecord",
    "ReportError",
    "UpstreamUnavailable",
    # Logging
    "configure_logging",
    "get_logger",
]
