"""
Extraction loader: denormalizes the upstream customer and rental feeds.

Rentals are inner-joined to customers on `customer_id`. A rental whose
customer is unknown is dropped on purpose; it is a filter, not an error.
No deduplication happens here.
"""
from __future__ import annotations

from contextlib import contextmanager
from typing import (
    ContextManager,
    Dict,
    Iterable,
    Iterator,
    List,
    Protocol,
    Sequence,
    runtime_checkable,
)

from pydantic import ValidationError

from rental_report.domain.models import Customer, DetailRecord, Rental
from rental_report.errors import MalformedRecord, UpstreamUnavailable
from rental_report.utils.logging import get_logger

log = get_logger(__name__)


@runtime_checkable
class UpstreamFeed(Protocol):
    """
    Read-only source of customers and rentals.

    Implementations may raise any exception when the source cannot be read;
    the loader reports it as `UpstreamUnavailable`. Both fetches made inside
    one `snapshot()` block must observe the same source state.
    """

    def snapshot(self) -> ContextManager[None]:
        ...

    def fetch_customers(self) -> Iterable[Customer]:
        ...

    def fetch_rentals(self) -> Iterable[Rental]:
        ...


class InMemoryUpstreamFeed:
    """Upstream feed backed by in-memory sequences."""

    def __init__(self, customers: Sequence[Customer] = (), rentals: Sequence[Rental] = ()) -> None:
        self.customers = list(customers)
        self.rentals = list(rentals)

    @contextmanager
    def snapshot(self) -> Iterator[None]:
        yield

    def fetch_customers(self) -> List[Customer]:
        return list(self.customers)

    def fetch_rentals(self) -> List[Rental]:
        return list(self.rentals)


def join_feed(customers: Iterable[Customer], rentals: Iterable[Rental]) -> List[DetailRecord]:
    """
    Produce one detail record per rental that has a matching customer.

    Rental order is preserved. If a customer_id appears twice in the customer
    feed, the last occurrence wins.

    Raises
    ------
    MalformedRecord
        When a joined pair cannot form a valid detail record (e.g. the
        customer has no e-mail address).
    """
    by_id: Dict[int, Customer] = {c.customer_id: c for c in customers}
    details: List[DetailRecord] = []
    for rental in rentals:
        customer = by_id.get(rental.customer_id)
        if customer is None:
            continue
        try:
            details.append(
                DetailRecord(
                    customer_id=customer.customer_id,
                    first_name=customer.first_name,
                    last_name=customer.last_name,
                    email=customer.email,
                    rental_id=rental.rental_id,
                    rental_date=rental.rental_date,
                    return_date=rental.return_date,
                )
            )
        except ValidationError as exc:
            raise MalformedRecord(
                f"rental {rental.rental_id} of customer {customer.customer_id}: {exc}"
            ) from exc
    return details


class ExtractionLoader:
    """
    Reads the whole upstream feed and returns the joined detail records.

    The feed is read completely before anything is written, so an unreadable
    feed never leaves a partial load behind.
    """

    def __init__(self, feed: UpstreamFeed) -> None:
        self.feed = feed

    def extract(self) -> List[DetailRecord]:
        try:
            with self.feed.snapshot():
                customers = list(self.feed.fetch_customers())
                rentals = list(self.feed.fetch_rentals())
        except Exception as exc:
            log.exception("Upstream feed read failed", extra={"feed": type(self.feed).__name__})
            raise UpstreamUnavailable(f"cannot read upstream feed: {exc}") from exc

        details = join_feed(customers, rentals)
        log.info(
            "Upstream feed extracted",
            extra={
                "customers": len(customers),
                "rentals": len(rentals),
                "details": len(details),
                "dropped_orphans": len(rentals) - len(details),
            },
        )
        return details


__all__ = ["ExtractionLoader", "InMemoryUpstreamFeed", "UpstreamFeed", "join_feed"]
