"""
Summary aggregator: ranks customers by rental activity.

The summary is always recomputed from the full contents of the detail store,
never patched incrementally. Grouping can happen in the storage engine
(`StoreSession.count_groups`) or in Python (`group_details`); ranking, name
derivation, tie-breaking and top-N truncation always happen here so every
backend produces the same rows.

Ordering is `customer_count` descending, then `full_name`, `email` and
`customer_id` ascending, which makes the result reproducible for equal counts.
"""
from __future__ import annotations

from collections import Counter
from typing import Iterable, List, Optional, Tuple

from rental_report.core.detail_store import StoreSession
from rental_report.domain.models import DetailRecord, GroupCount, SummaryRecord
from rental_report.utils.logging import get_logger
from rental_report.utils.timing import timed_block

log = get_logger(__name__)

DEFAULT_SUMMARY_LIMIT = 100

GroupKey = Tuple[int, Optional[str], Optional[str], str]


def full_name(last_name: Optional[str], first_name: Optional[str]) -> str:
    """
    Join last and first name with one space, skipping absent parts.

    Both ``None`` and ``""`` count as absent, so the result never carries a
    leading, trailing or doubled space that the parts did not already have.
    """
    return " ".join(part for part in (last_name, first_name) if part)


def group_details(details: Iterable[DetailRecord]) -> List[GroupCount]:
    """Count detail rows per (customer_id, last_name, first_name, email)."""
    counts: Counter[GroupKey] = Counter(
        (d.customer_id, d.last_name, d.first_name, d.email) for d in details
    )
    return [
        GroupCount(
            customer_id=customer_id,
            last_name=last_name,
            first_name=first_name,
            email=email,
            customer_count=count,
        )
        for (customer_id, last_name, first_name, email), count in counts.items()
    ]


def _ranking_key(group: GroupCount) -> Tuple[int, str, str, int]:
    return (
        -group.customer_count,
        full_name(group.last_name, group.first_name),
        group.email,
        group.customer_id,
    )


def rank_groups(
    groups: Iterable[GroupCount], limit: int = DEFAULT_SUMMARY_LIMIT
) -> List[SummaryRecord]:
    """
    Order groups by activity and keep the first `limit` as summary rows.

    Parameters
    ----------
    groups : iterable[GroupCount]
        One entry per customer group; a group key must not repeat.
    limit : int
        Number of rows kept (top-N).

    Returns
    -------
    List[SummaryRecord]
        Ranked rows, `rank` starting at 1.
    """
    if limit < 1:
        raise ValueError(f"summary limit must be >= 1, got {limit}")
    ranked = sorted(groups, key=_ranking_key)[:limit]
    return [
        SummaryRecord(
            rank=position,
            full_name=full_name(group.last_name, group.first_name),
            email=group.email,
            customer_count=group.customer_count,
        )
        for position, group in enumerate(ranked, start=1)
    ]


def summarize(
    details: Iterable[DetailRecord], limit: int = DEFAULT_SUMMARY_LIMIT
) -> List[SummaryRecord]:
    """Group, rank and truncate detail rows in one pass."""
    return rank_groups(group_details(details), limit=limit)


class SummaryAggregator:
    """
    Recomputes the summary table inside an open store session.

    The caller owns the transaction: clearing and repopulating the summary
    happen in the same unit of work as the write that triggered it.
    """

    def __init__(self, limit: int = DEFAULT_SUMMARY_LIMIT) -> None:
        if limit < 1:
            raise ValueError(f"summary limit must be >= 1, got {limit}")
        self.limit = limit

    def recompute(self, session: StoreSession) -> List[SummaryRecord]:
        with timed_block("summary_recompute") as stats:
            groups = session.count_groups()
            rows = rank_groups(groups, limit=self.limit)
            session.replace_summary(rows)
        log.info(
            "Summary recomputed",
            extra={
                **stats.as_log_fields(),
                "groups": len(groups),
                "summary_rows": len(rows),
                "limit": self.limit,
            },
        )
        return rows


__all__ = [
    "DEFAULT_SUMMARY_LIMIT",
    "SummaryAggregator",
    "full_name",
    "group_details",
    "rank_groups",
    "summarize",
]
