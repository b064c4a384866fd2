"""
Domain models for the rental activity report.

Upstream feed records (`Customer`, `Rental`), the denormalized `DetailRecord`
held by the detail store, and the ranked `SummaryRecord` rows produced by the
summary aggregator. Mirrors the columns created by
`rental_report.infrastructure.schema`.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator

_FROZEN = {
    "frozen": True,
    "populate_by_name": True,
    "arbitrary_types_allowed": False,
}


class Customer(BaseModel):
    """
    A row of the upstream `customer` relation.
    """

    customer_id: int = Field(..., description="Upstream customer key.")
    first_name: Optional[str] = Field(None, description="Given name.")
    last_name: Optional[str] = Field(None, description="Family name.")
    email: Optional[str] = Field(None, description="Contact e-mail address.")

    model_config = _FROZEN


class Rental(BaseModel):
    """
    A row of the upstream `rental` relation.
    """

    rental_id: int = Field(..., description="Upstream rental key.")
    customer_id: int = Field(..., description="Renting customer; may reference no customer.")
    rental_date: Optional[datetime] = Field(None, description="When the rental started.")
    return_date: Optional[datetime] = Field(None, description="When it was returned, if ever.")

    model_config = _FROZEN


class DetailRecord(BaseModel):
    """
    One denormalized (customer, rental) pairing in the detail store.

    Duplicates are valid and each one is counted by the summary.
    """

    customer_id: int = Field(..., description="Customer key; required.")
    first_name: Optional[str] = Field(None, description="Given name.")
    last_name: Optional[str] = Field(None, description="Family name.")
    email: str = Field(..., min_length=1, description="Contact e-mail; required.")
    rental_id: int = Field(..., description="Rental key.")
    rental_date: Optional[datetime] = Field(None, description="When the rental started.")
    return_date: Optional[datetime] = Field(None, description="When it was returned.")

    model_config = _FROZEN

    @field_validator("email")
    @classmethod
    def _email_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("email must not be blank")
        return value


class DetailUpdate(BaseModel):
    """
    Column changes applied by `update_detail`. Only fields that were set are written.
    """

    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    rental_date: Optional[datetime] = None
    return_date: Optional[datetime] = None

    model_config = {"frozen": True, "extra": "forbid"}

    @field_validator("email")
    @classmethod
    def _email_not_blank(cls, value: Optional[str]) -> str:
        if value is None or not value.strip():
            raise ValueError("email must not be blank")
        return value

    def changes(self) -> Dict[str, Any]:
        """Return only the explicitly assigned columns."""
        return self.model_dump(exclude_unset=True)


class DetailFilter(BaseModel):
    """
    Equality filter over detail rows. Unset criteria match everything.
    """

    customer_id: Optional[int] = None
    email: Optional[str] = None
    rental_id: Optional[int] = None
    limit: Optional[int] = Field(None, ge=1, description="Cap on rows returned by reads.")

    model_config = {"frozen": True, "extra": "forbid"}

    def criteria(self) -> Dict[str, Any]:
        """Column/value pairs that must match; `limit` is not a criterion."""
        return {
            key: value
            for key, value in self.model_dump(exclude={"limit"}).items()
            if value is not None
        }

    def matches(self, record: DetailRecord) -> bool:
        return all(getattr(record, key) == value for key, value in self.criteria().items())


class GroupCount(BaseModel):
    """
    Rental count of one (customer_id, last_name, first_name, email) group.
    """

    customer_id: int
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: str
    customer_count: int = Field(..., ge=1)

    model_config = _FROZEN


class SummaryRecord(BaseModel):
    """
    A ranked row of the top-N customer activity summary.
    """

    rank: int = Field(..., ge=1, description="1-based position in the ranking.")
    full_name: str = Field(..., description="last_name and first_name joined by a space.")
    email: str = Field(..., description="Contact e-mail of the customer.")
    customer_count: int = Field(..., ge=1, description="Number of detail rows for the customer.")

    model_config = _FROZEN


__all__ = [
    "Customer",
    "Rental",
    "DetailRecord",
    "DetailUpdate",
    "DetailFilter",
    "GroupCount",
    "SummaryRecord",
]
