"""
Read and write DTOs for waybills.

Architecture position:
    Kernel > Domain -- pure frozen dataclasses, zero I/O.  Selectors return
    these instead of ORM rows; the gateway renders them with ``to_dict()``
    (camelCase keys, ids and dates as strings, amounts as Decimal).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from waybill_kernel.domain.status import WaybillStatus

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 200


def _iso(value: date | None) -> str | None:
    return value.isoformat() if value is not None else None


@dataclass(frozen=True)
class WaybillQuery:
    """Listing filters.  Dates are inclusive; ``search`` matches project or supplier name."""

    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE
    status: WaybillStatus | None = None
    waybill_date_from: date | None = None
    waybill_date_to: date | None = None
    delivery_date_from: date | None = None
    delivery_date_to: date | None = None
    project_id: UUID | None = None
    supplier_id: UUID | None = None
    product_code: str | None = None
    search: str | None = None

    def normalized(self) -> WaybillQuery:
        """Clamp paging and trim text filters."""
        page = self.page if self.page > 0 else 1
        page_size = (
            DEFAULT_PAGE_SIZE if self.page_size <= 0
            else min(self.page_size, MAX_PAGE_SIZE)
        )
        product_code = self.product_code.strip() if self.product_code else None
        search = self.search.strip() if self.search else None
        return WaybillQuery(
            page=page,
            page_size=page_size,
            status=self.status,
            waybill_date_from=self.waybill_date_from,
            waybill_date_to=self.waybill_date_to,
            delivery_date_from=self.delivery_date_from,
            delivery_date_to=self.delivery_date_to,
            project_id=self.project_id,
            supplier_id=self.supplier_id,
            product_code=product_code or None,
            search=search or None,
        )

    def cache_params(self) -> dict[str, str]:
        """Canonical, order-independent parameters for read-cache keys."""
        q = self.normalized()
        raw = {
            "page": q.page,
            "pageSize": q.page_size,
            "status": q.status.value if q.status else None,
            "waybillDateFrom": _iso(q.waybill_date_from),
            "waybillDateTo": _iso(q.waybill_date_to),
            "deliveryDateFrom": _iso(q.delivery_date_from),
            "deliveryDateTo": _iso(q.delivery_date_to),
            "projectId": q.project_id,
            "supplierId": q.supplier_id,
            "productCode": q.product_code,
            "search": q.search,
        }
        return {k: str(v) for k, v in raw.items() if v is not None}


@dataclass(frozen=True)
class WaybillView:
    """A waybill joined with its project and supplier names."""

    id: UUID
    waybill_number: str
    project_id: UUID
    project_name: str
    supplier_id: UUID
    supplier_name: str
    waybill_date: date
    delivery_date: date
    product_code: str
    quantity: Decimal
    unit_price: Decimal
    total_amount: Decimal
    status: WaybillStatus
    row_version: str  # base64

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "waybillNumber": self.waybill_number,
            "projectId": str(self.project_id),
            "projectName": self.project_name,
            "supplierId": str(self.supplier_id),
            "supplierName": self.supplier_name,
            "waybillDate": self.waybill_date.isoformat(),
            "deliveryDate": self.delivery_date.isoformat(),
            "productCode": self.product_code,
            "quantity": self.quantity,
            "unitPrice": self.unit_price,
            "totalAmount": self.total_amount,
            "status": self.status.value,
            "rowVersionBase64": self.row_version,
        }


@dataclass(frozen=True)
class WaybillPage:
    total_count: int
    page: int
    page_size: int
    items: tuple[WaybillView, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalCount": self.total_count,
            "page": self.page,
            "pageSize": self.page_size,
            "items": [item.to_dict() for item in self.items],
        }


@dataclass(frozen=True)
class WaybillUpdateRequest:
    """Client edit of a single waybill.  ``status`` is a status name."""

    delivery_date: date
    product_code: str
    quantity: Decimal
    unit_price: Decimal
    total_amount: Decimal
    status: str
    row_version: str | None


# =============================================================================
# Aggregates
# =============================================================================


@dataclass(frozen=True)
class StatusTotal:
    status: WaybillStatus
    total_quantity: Decimal
    total_amount: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "totalQuantity": self.total_quantity,
            "totalAmount": self.total_amount,
        }


@dataclass(frozen=True)
class MonthlyTotal:
    year: int
    month: int
    total_quantity: Decimal
    total_amount: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {
            "year": self.year,
            "month": self.month,
            "totalQuantity": self.total_quantity,
            "totalAmount": self.total_amount,
        }


@dataclass(frozen=True)
class TopSupplier:
    supplier_id: UUID
    supplier_name: str
    total_quantity: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {
            "supplierId": str(self.supplier_id),
            "supplierName": self.supplier_name,
            "totalQuantity": self.total_quantity,
        }


@dataclass(frozen=True)
class ProjectTotal:
    project_id: UUID
    project_name: str
    total_quantity: Decimal
    total_amount: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {
            "projectId": str(self.project_id),
            "projectName": self.project_name,
            "totalQuantity": self.total_quantity,
            "totalAmount": self.total_amount,
        }


@dataclass(frozen=True)
class WaybillSummary:
    status_totals: tuple[StatusTotal, ...] = ()
    monthly_totals: tuple[MonthlyTotal, ...] = ()
    top_suppliers_by_quantity: tuple[TopSupplier, ...] = ()
    project_totals: tuple[ProjectTotal, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "statusTotals": [t.to_dict() for t in self.status_totals],
            "monthlyTotals": [t.to_dict() for t in self.monthly_totals],
            "topSuppliersByQuantity": [
                t.to_dict() for t in self.top_suppliers_by_quantity
            ],
            "projectTotals": [t.to_dict() for t in self.project_totals],
        }


@dataclass(frozen=True)
class SupplierSummary:
    supplier_id: UUID
    total_quantity: Decimal
    total_amount: Decimal
    breakdown_by_status: tuple[StatusTotal, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {
            "supplierId": str(self.supplier_id),
            "totalQuantity": self.total_quantity,
            "totalAmount": self.total_amount,
            "breakdownByStatus": [t.to_dict() for t in self.breakdown_by_status],
        }
