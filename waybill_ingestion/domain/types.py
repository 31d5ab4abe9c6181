"""
waybill_ingestion.domain.types -- pure frozen dataclasses for CSV import.

ZERO I/O.  Follows the kernel DTO pattern: frozen dataclasses, enum status
fields, tuples for immutable collections.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any

from waybill_kernel.domain.status import WaybillStatus


@dataclass(frozen=True)
class WaybillRow:
    """A CSV row that passed validation, with typed values."""

    row_number: int
    waybill_number: str
    project_name: str
    supplier_name: str
    waybill_date: date
    delivery_date: date
    product_code: str
    quantity: Decimal
    unit_price: Decimal
    total_amount: Decimal
    status: WaybillStatus


@dataclass(frozen=True)
class RowClassification:
    """Outcome of validating one CSV row."""

    row_number: int
    errors: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()
    row: WaybillRow | None = None

    @property
    def accepted(self) -> bool:
        return not self.errors and self.row is not None


@dataclass(frozen=True)
class RejectedRow:
    row_number: int
    errors: tuple[str, ...]

    def to_dict(self) -> dict[str, Any]:
        return {"rowNumber": self.row_number, "errors": list(self.errors)}


@dataclass(frozen=True)
class RowWarning:
    row_number: int
    warnings: tuple[str, ...]

    def to_dict(self) -> dict[str, Any]:
        return {"rowNumber": self.row_number, "warnings": list(self.warnings)}


@dataclass(frozen=True)
class ImportResult:
    """
    Outcome of one import.

    total_rows = inserted + updated + rejected (every non-blank data row is
    exactly one of the three).
    """

    total_rows: int
    inserted_count: int
    updated_count: int
    rejected_count: int
    rejected_rows: tuple[RejectedRow, ...] = ()
    warnings: tuple[RowWarning, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalRows": self.total_rows,
            "insertedCount": self.inserted_count,
            "updatedCount": self.updated_count,
            "rejectedCount": self.rejected_count,
            "rejectedRows": [r.to_dict() for r in self.rejected_rows],
            "warnings": [w.to_dict() for w in self.warnings],
        }
