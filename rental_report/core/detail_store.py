"""
Detail store with a recompute-on-commit write path.

`DetailStore.batch()` opens one storage transaction and yields a `DetailBatch`.
Mutations made through the batch mark it dirty; when the block exits cleanly
every registered commit hook runs exactly once, inside the same transaction,
before it commits. Any exception rolls back the writes and the hook output
together.

Storage backends implement `ReportStore` / `StoreSession`; see
`rental_report.infrastructure.postgres` for the PostgreSQL one.
"""
from __future__ import annotations

from collections import Counter
from contextlib import contextmanager
from typing import (
    Any,
    Callable,
    ContextManager,
    Iterable,
    Iterator,
    List,
    Mapping,
    Optional,
    Protocol,
    Sequence,
    Union,
    runtime_checkable,
)

from pydantic import ValidationError

from rental_report.domain.models import (
    DetailFilter,
    DetailRecord,
    DetailUpdate,
    GroupCount,
    SummaryRecord,
)
from rental_report.errors import AppendOnlyViolation, MalformedRecord
from rental_report.utils.logging import get_logger

log = get_logger(__name__)

DetailInput = Union[DetailRecord, Mapping[str, Any]]


@runtime_checkable
class StoreSession(Protocol):
    """
    Operations available inside one storage transaction.
    """

    def insert_details(self, records: Sequence[DetailRecord]) -> int:
        ...

    def delete_details(self, criteria: Mapping[str, Any]) -> int:
        ...

    def update_details(self, criteria: Mapping[str, Any], changes: Mapping[str, Any]) -> int:
        ...

    def clear_details(self) -> int:
        ...

    def fetch_details(self, flt: DetailFilter) -> List[DetailRecord]:
        ...

    def count_groups(self) -> List[GroupCount]:
        ...

    def replace_summary(self, rows: Sequence[SummaryRecord]) -> None:
        ...

    def fetch_summary(self) -> List[SummaryRecord]:
        ...


@runtime_checkable
class ReportStore(Protocol):
    """
    Opens storage transactions.

    A write transaction must serialize against other write transactions and
    must roll back entirely when its block raises.
    """

    def transaction(self, write: bool = True) -> ContextManager[StoreSession]:
        ...


# A hook may return the summary rows it wrote; the batch keeps them.
CommitHook = Callable[[StoreSession], Optional[List[SummaryRecord]]]


def validate_records(records: Iterable[DetailInput]) -> List[DetailRecord]:
    """
    Coerce inputs into `DetailRecord`s, rejecting the batch on the first bad one.

    Raises
    ------
    MalformedRecord
        Carries the position of the offending input.
    """
    validated: List[DetailRecord] = []
    for index, record in enumerate(records):
        if isinstance(record, DetailRecord):
            validated.append(record)
            continue
        try:
            validated.append(DetailRecord.model_validate(record))
        except ValidationError as exc:
            fields = ", ".join(
                ".".join(str(part) for part in err["loc"]) or "<record>" for err in exc.errors()
            )
            raise MalformedRecord(f"invalid field(s): {fields}", index=index) from exc
    return validated


class DetailBatch:
    """
    Mutations grouped into one unit of work.

    Every mutating call marks the batch dirty, even when it touches no rows.
    """

    def __init__(self, session: StoreSession, append_only: bool = False) -> None:
        self.session = session
        self.append_only = append_only
        self.counts: Counter[str] = Counter()
        self.dirty = False
        self.summary: Optional[List[SummaryRecord]] = None

    def append(self, records: Iterable[DetailInput]) -> int:
        validated = validate_records(records)
        self.dirty = True
        inserted = self.session.insert_details(validated) if validated else 0
        self.counts["appended"] += inserted
        return inserted

    def delete(self, flt: DetailFilter) -> int:
        self._check_mutable("delete")
        self.dirty = True
        deleted = self.session.delete_details(flt.criteria())
        self.counts["deleted"] += deleted
        return deleted

    def update(self, flt: DetailFilter, changes: DetailUpdate) -> int:
        self._check_mutable("update")
        columns = changes.changes()
        if not columns:
            return 0
        self.dirty = True
        updated = self.session.update_details(flt.criteria(), columns)
        self.counts["updated"] += updated
        return updated

    def clear(self) -> int:
        self.dirty = True
        cleared = self.session.clear_details()
        self.counts["cleared"] += cleared
        return cleared

    def _check_mutable(self, operation: str) -> None:
        if self.append_only:
            raise AppendOnlyViolation(f"{operation} is not allowed on an append-only detail store")


class DetailStore:
    """
    Owns the detail rows and runs commit hooks once per dirty batch.
    """

    def __init__(self, backend: ReportStore, append_only: bool = False) -> None:
        self.backend = backend
        self.append_only = append_only
        self._hooks: List[CommitHook] = []

    def register_hook(self, hook: CommitHook) -> None:
        self._hooks.append(hook)

    @contextmanager
    def batch(self) -> Iterator[DetailBatch]:
        try:
            with self.backend.transaction(write=True) as session:
                batch = DetailBatch(session, append_only=self.append_only)
                yield batch
                if batch.dirty:
                    for hook in self._hooks:
                        rows = hook(session)
                        if rows is not None:
                            batch.summary = rows
        except Exception:
            log.exception("Detail batch rolled back")
            raise
        log.info("Detail batch committed", extra={"dirty": batch.dirty, **dict(batch.counts)})

    def read(self, flt: DetailFilter | None = None) -> List[DetailRecord]:
        with self.backend.transaction(write=False) as session:
            return session.fetch_details(flt or DetailFilter())


__all__ = [
    "CommitHook",
    "DetailBatch",
    "DetailInput",
    "DetailStore",
    "ReportStore",
    "StoreSession",
    "validate_records",
]
