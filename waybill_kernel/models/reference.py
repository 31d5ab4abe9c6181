"""
Module: waybill_kernel.models.reference
Responsibility: Tenant-scoped project and supplier reference rows that
    waybills point at.
Architecture position: Kernel > Models.  Imports from db/base.py only.

Invariants enforced:
    - One row per (tenant_id, name_key).  ``name_key`` is the case-folded,
      trimmed display name, so "Acme" and " ACME " resolve to one supplier.
    - Rows are created lazily by CSV reconciliation and never deleted.

Failure modes:
    - IntegrityError on a concurrent first-sighting of the same name in the
      same tenant.  The losing import fails as a whole and can be retried.
"""

from sqlalchemy import String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from waybill_kernel.db.base import TenantOwnedMixin, TrackedBase


def name_key(name: str) -> str:
    """Case-insensitive identity of a reference name."""
    return name.strip().casefold()


class Project(TenantOwnedMixin, TrackedBase):
    """A construction project that receives deliveries."""

    __tablename__ = "projects"

    __table_args__ = (
        UniqueConstraint("tenant_id", "name_key", name="uq_project_tenant_name"),
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    name_key: Mapped[str] = mapped_column(String(255), nullable=False)

    def __repr__(self) -> str:
        return f"<Project {self.tenant_id}:{self.name}>"


class Supplier(TenantOwnedMixin, TrackedBase):
    """A supplier that issues waybills."""

    __tablename__ = "suppliers"

    __table_args__ = (
        UniqueConstraint("tenant_id", "name_key", name="uq_supplier_tenant_name"),
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    name_key: Mapped[str] = mapped_column(String(255), nullable=False)

    def __repr__(self) -> str:
        return f"<Supplier {self.tenant_id}:{self.name}>"
