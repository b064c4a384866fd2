"""
Exception hierarchy for the rental activity report.

Every failure in the report core propagates synchronously to the caller of
the write operation; nothing here is retried.
"""
from __future__ import annotations

from typing import Optional


class ReportError(Exception):
    """Base class for report maintenance failures."""


class UpstreamUnavailable(ReportError):
    """Reading the upstream customer/rental feed failed; nothing was loaded."""


class AggregationFailure(ReportError):
    """The summary could not be recomputed; the triggering write was rolled back."""


class MalformedRecord(ReportError):
    """A detail record is missing a required field and was rejected at append time."""

    def __init__(self, message: str, index: Optional[int] = None) -> None:
        self.index = index
        prefix = f"record #{index}: " if index is not None else ""
        super().__init__(f"{prefix}{message}")


class AppendOnlyViolation(ReportError):
    """A delete or update was attempted while the detail store is append-only."""


__all__ = [
    "ReportError",
    "UpstreamUnavailable",
    "AggregationFailure",
    "MalformedRecord",
    "AppendOnlyViolation",
]
