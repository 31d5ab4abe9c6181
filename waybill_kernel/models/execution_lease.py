"""
Module: waybill_kernel.models.execution_lease
Responsibility: Persistent row backing a named, per-tenant, time-bounded lease.
Architecture position: Kernel > Models.  Imports from db/base.py only.

Invariants enforced:
    - At most one row per (tenant_id, lock_name).  The unique constraint is
      what makes two concurrent first acquisitions resolve to one winner.
    - A row whose expires_at is in the past is dead and may be taken over.
"""

from datetime import datetime

from sqlalchemy import DateTime, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from waybill_kernel.db.base import Base, TenantOwnedMixin


class ExecutionLease(TenantOwnedMixin, Base):
    """A held (or expired but not yet released) lease."""

    __tablename__ = "execution_leases"

    __table_args__ = (
        UniqueConstraint("tenant_id", "lock_name", name="uq_lease_tenant_name"),
    )

    lock_name: Mapped[str] = mapped_column(String(100), nullable=False)

    acquired_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False,
    )

    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False,
    )

    acquired_by: Mapped[str | None] = mapped_column(String(200), nullable=True)
