"""
WaybillSelector -- tenant-scoped read queries over waybills.

Responsibility:
    Paged, filtered listing; single-waybill detail; per-project listing;
    supplier summary; tenant-wide summary (status, monthly, top suppliers,
    project totals).

Architecture position:
    Kernel > Selectors.  Read-only.  Results are DTOs from domain/dtos.py.

Invariants enforced:
    - tenant_id is required on every query and applied as a filter.
    - Soft-deleted rows are excluded everywhere.
    - Listing order is delivery_date DESC, then waybill_date DESC.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import Select, extract, func, select

from waybill_kernel.domain.dtos import (
    MonthlyTotal,
    ProjectTotal,
    StatusTotal,
    SupplierSummary,
    TopSupplier,
    WaybillPage,
    WaybillQuery,
    WaybillSummary,
    WaybillView,
)
from waybill_kernel.domain.row_version import encode_row_version
from waybill_kernel.domain.status import WaybillStatus
from waybill_kernel.models.reference import Project, Supplier
from waybill_kernel.models.waybill import Waybill
from waybill_kernel.selectors.base import BaseSelector

TOP_SUPPLIER_LIMIT = 5


def _dec(value: Any) -> Decimal:
    if value is None:
        return Decimal("0")
    return value if isinstance(value, Decimal) else Decimal(str(value))


def _view_columns() -> tuple:
    return (
        Waybill.id,
        Waybill.waybill_number,
        Waybill.project_id,
        Project.name.label("project_name"),
        Waybill.supplier_id,
        Supplier.name.label("supplier_name"),
        Waybill.waybill_date,
        Waybill.delivery_date,
        Waybill.product_code,
        Waybill.quantity,
        Waybill.unit_price,
        Waybill.total_amount,
        Waybill.status,
        Waybill.row_version,
    )


def _to_view(row: Any) -> WaybillView:
    return WaybillView(
        id=row.id,
        waybill_number=row.waybill_number,
        project_id=row.project_id,
        project_name=row.project_name,
        supplier_id=row.supplier_id,
        supplier_name=row.supplier_name,
        waybill_date=row.waybill_date,
        delivery_date=row.delivery_date,
        product_code=row.product_code,
        quantity=_dec(row.quantity),
        unit_price=_dec(row.unit_price),
        total_amount=_dec(row.total_amount),
        status=WaybillStatus(row.status),
        row_version=encode_row_version(row.row_version or b""),
    )


class WaybillSelector(BaseSelector):
    """Read-only queries over one tenant's waybills."""

    # -------------------------------------------------------------------------
    # Query building
    # -------------------------------------------------------------------------

    @staticmethod
    def _live(tenant_id: str) -> list:
        return [Waybill.tenant_id == tenant_id, Waybill.is_deleted.is_(False)]

    @staticmethod
    def _joined(stmt: Select) -> Select:
        return (
            stmt.select_from(Waybill)
            .join(Project, Project.id == Waybill.project_id)
            .join(Supplier, Supplier.id == Waybill.supplier_id)
        )

    @staticmethod
    def _filters(query: WaybillQuery) -> list:
        conditions: list = []
        if query.waybill_date_from is not None:
            conditions.append(Waybill.waybill_date >= query.waybill_date_from)
        if query.waybill_date_to is not None:
            conditions.append(Waybill.waybill_date <= query.waybill_date_to)
        if query.delivery_date_from is not None:
            conditions.append(Waybill.delivery_date >= query.delivery_date_from)
        if query.delivery_date_to is not None:
            conditions.append(Waybill.delivery_date <= query.delivery_date_to)
        if query.status is not None:
            conditions.append(Waybill.status == query.status.value)
        if query.project_id is not None:
            conditions.append(Waybill.project_id == query.project_id)
        if query.supplier_id is not None:
            conditions.append(Waybill.supplier_id == query.supplier_id)
        if query.product_code:
            conditions.append(Waybill.product_code == query.product_code)
        if query.search:
            term = query.search.casefold()
            conditions.append(
                Project.name_key.contains(term, autoescape=True)
                | Supplier.name_key.contains(term, autoescape=True)
            )
        return conditions

    # -------------------------------------------------------------------------
    # Listing and detail
    # -------------------------------------------------------------------------

    def list_waybills(self, tenant_id: str, query: WaybillQuery) -> WaybillPage:
        """Filtered, paged listing.  Paging is clamped to [1, 200]."""
        tenant_id = self._require_tenant(tenant_id, "list_waybills")
        query = query.normalized()
        conditions = self._live(tenant_id) + self._filters(query)

        total = self.session.execute(
            self._joined(select(func.count(Waybill.id))).where(*conditions)
        ).scalar_one()

        rows = self.session.execute(
            self._joined(select(*_view_columns()))
            .where(*conditions)
            .order_by(Waybill.delivery_date.desc(), Waybill.waybill_date.desc())
            .offset((query.page - 1) * query.page_size)
            .limit(query.page_size)
        ).all()

        return WaybillPage(
            total_count=total,
            page=query.page,
            page_size=query.page_size,
            items=tuple(_to_view(r) for r in rows),
        )

    def get_waybill(self, tenant_id: str, waybill_id: UUID) -> WaybillView | None:
        tenant_id = self._require_tenant(tenant_id, "get_waybill")
        row = self.session.execute(
            self._joined(select(*_view_columns())).where(
                Waybill.id == waybill_id, *self._live(tenant_id),
            )
        ).first()
        return _to_view(row) if row is not None else None

    def list_by_project(self, tenant_id: str, project_id: UUID) -> list[WaybillView]:
        tenant_id = self._require_tenant(tenant_id, "list_by_project")
        rows = self.session.execute(
            self._joined(select(*_view_columns()))
            .where(Waybill.project_id == project_id, *self._live(tenant_id))
            .order_by(Waybill.delivery_date.desc())
        ).all()
        return [_to_view(r) for r in rows]

    # -------------------------------------------------------------------------
    # Aggregates
    # -------------------------------------------------------------------------

    def supplier_summary(
        self, tenant_id: str, supplier_id: UUID,
    ) -> SupplierSummary | None:
        """Totals for one supplier.  None when the supplier has no live waybills."""
        tenant_id = self._require_tenant(tenant_id, "supplier_summary")
        conditions = [Waybill.supplier_id == supplier_id, *self._live(tenant_id)]

        count, total_qty, total_amount = self.session.execute(
            select(
                func.count(Waybill.id),
                func.sum(Waybill.quantity),
                func.sum(Waybill.total_amount),
            ).where(*conditions)
        ).one()
        if not count:
            return None

        return SupplierSummary(
            supplier_id=supplier_id,
            total_quantity=_dec(total_qty),
            total_amount=_dec(total_amount),
            breakdown_by_status=self._status_totals(conditions),
        )

    def summary(self, tenant_id: str) -> WaybillSummary:
        tenant_id = self._require_tenant(tenant_id, "summary")
        live = self._live(tenant_id)

        top_rows = self.session.execute(
            select(
                Waybill.supplier_id,
                Supplier.name,
                func.sum(Waybill.quantity).label("total_quantity"),
            )
            .select_from(Waybill)
            .join(Supplier, Supplier.id == Waybill.supplier_id)
            .where(*live)
            .group_by(Waybill.supplier_id, Supplier.name)
            .order_by(func.sum(Waybill.quantity).desc(), Supplier.name)
            .limit(TOP_SUPPLIER_LIMIT)
        ).all()

        project_rows = self.session.execute(
            select(
                Waybill.project_id,
                Project.name,
                func.sum(Waybill.quantity),
                func.sum(Waybill.total_amount),
            )
            .select_from(Waybill)
            .join(Project, Project.id == Waybill.project_id)
            .where(*live)
            .group_by(Waybill.project_id, Project.name)
            .order_by(func.sum(Waybill.total_amount).desc(), Project.name)
        ).all()

        return WaybillSummary(
            status_totals=self._status_totals(live),
            monthly_totals=tuple(self.monthly_totals(tenant_id)),
            top_suppliers_by_quantity=tuple(
                TopSupplier(
                    supplier_id=r[0], supplier_name=r[1], total_quantity=_dec(r[2]),
                )
                for r in top_rows
            ),
            project_totals=tuple(
                ProjectTotal(
                    project_id=r[0],
                    project_name=r[1],
                    total_quantity=_dec(r[2]),
                    total_amount=_dec(r[3]),
                )
                for r in project_rows
            ),
        )

    def monthly_totals(self, tenant_id: str) -> list[MonthlyTotal]:
        """Totals per delivery month, oldest first."""
        tenant_id = self._require_tenant(tenant_id, "monthly_totals")
        year = extract("year", Waybill.delivery_date)
        month = extract("month", Waybill.delivery_date)
        rows = self.session.execute(
            select(
                year,
                month,
                func.sum(Waybill.quantity),
                func.sum(Waybill.total_amount),
            )
            .where(*self._live(tenant_id))
            .group_by(year, month)
            .order_by(year, month)
        ).all()
        return [
            MonthlyTotal(
                year=int(r[0]),
                month=int(r[1]),
                total_quantity=_dec(r[2]),
                total_amount=_dec(r[3]),
            )
            for r in rows
        ]

    def _status_totals(self, conditions: list) -> tuple[StatusTotal, ...]:
        rows = self.session.execute(
            select(
                Waybill.status,
                func.sum(Waybill.quantity),
                func.sum(Waybill.total_amount),
            )
            .where(*conditions)
            .group_by(Waybill.status)
            .order_by(Waybill.status)
        ).all()
        return tuple(
            StatusTotal(
                status=WaybillStatus(r[0]),
                total_quantity=_dec(r[1]),
                total_amount=_dec(r[2]),
            )
            for r in rows
        )
