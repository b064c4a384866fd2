"""
Domain package for the rental activity report.

Exports the record types shared by the core, the storage backends and the CLI.
Keep this package focused on data definitions and validation concerns.
"""

from rental_report.domain.models import (
    Customer,
    DetailFilter,
    DetailRecord,
    DetailUpdate,
    GroupCount,
    Rental,
    SummaryRecord,
)

__all__ = [
    "Customer",
    "DetailFilter",
    "DetailRecord",
    "DetailUpdate",
    "GroupCount",
    "Rental",
    "SummaryRecord",
]
