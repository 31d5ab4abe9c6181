"""
Module: waybill_kernel.models.waybill
Responsibility: The waybill record -- one supplier delivery document for a
    project, owned by exactly one tenant.
Architecture position: Kernel > Models.  Imports from db/base.py and
    domain/status.py only.

Invariants enforced:
    - (tenant_id, number_key) is unique.  ``number_key`` is the case-folded,
      trimmed waybill number computed in Python, so identity does not depend
      on how the database folds case.  Re-importing a number updates the
      existing row in place.
    - row_version is 16 opaque bytes, regenerated on EVERY write.  Updates
      are conditional on the caller's copy of it.
    - Rows are never hard-deleted by this system.  ``is_deleted`` is owned by
      external tooling; every read path filters it out.

Domain rules checked by services (not by the database):
    - delivery_date >= waybill_date
    - 0.5 <= quantity <= 50
    - |quantity * unit_price - total_amount| <= 0.01 (updates only; imports
      keep the supplied total and raise a warning instead)
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    Boolean,
    Date,
    ForeignKey,
    Index,
    LargeBinary,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from waybill_kernel.db.base import TenantOwnedMixin, TrackedBase, UUIDString
from waybill_kernel.domain.row_version import ROW_VERSION_LENGTH, new_row_version
from waybill_kernel.domain.status import WaybillStatus
from waybill_kernel.models.reference import Project, Supplier


def number_key(waybill_number: str) -> str:
    """Case-insensitive identity of a waybill number."""
    return waybill_number.strip().casefold()


class Waybill(TenantOwnedMixin, TrackedBase):
    """A supplier waybill."""

    __tablename__ = "waybills"

    __table_args__ = (
        UniqueConstraint(
            "tenant_id", "number_key", name="uq_waybill_tenant_number",
        ),
        Index("idx_waybill_tenant_delivery", "tenant_id", "delivery_date"),
        Index("idx_waybill_tenant_status", "tenant_id", "status"),
        Index("idx_waybill_tenant_project", "tenant_id", "project_id"),
        Index("idx_waybill_tenant_supplier", "tenant_id", "supplier_id"),
    )

    waybill_number: Mapped[str] = mapped_column(String(100), nullable=False)

    number_key: Mapped[str] = mapped_column(String(100), nullable=False)

    project_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("projects.id"), nullable=False,
    )

    supplier_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("suppliers.id"), nullable=False,
    )

    waybill_date: Mapped[date] = mapped_column(Date, nullable=False)

    delivery_date: Mapped[date] = mapped_column(Date, nullable=False)

    product_code: Mapped[str] = mapped_column(String(100), nullable=False)

    quantity: Mapped[Decimal] = mapped_column(nullable=False)

    unit_price: Mapped[Decimal] = mapped_column(nullable=False)

    total_amount: Mapped[Decimal] = mapped_column(nullable=False)

    # WaybillStatus value
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=WaybillStatus.PENDING.value,
    )

    row_version: Mapped[bytes] = mapped_column(
        LargeBinary(ROW_VERSION_LENGTH),
        nullable=False,
        default=new_row_version,
    )

    is_deleted: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )

    project: Mapped[Project] = relationship(Project, lazy="joined")

    supplier: Mapped[Supplier] = relationship(Supplier, lazy="joined")

    @property
    def status_enum(self) -> WaybillStatus:
        return WaybillStatus(self.status)

    def __repr__(self) -> str:
        return f"<Waybill {self.tenant_id}:{self.waybill_number} {self.status}>"
