"""
ORM model for import job persistence.

Contract:
    ImportJobModel persists one asynchronous import's lifecycle and final
    counts.  ``to_dto()`` returns the immutable ImportJob snapshot.

Architecture: waybill_batch/models.  Imports from waybill_kernel.db.base only.

Invariants enforced:
    - Jobs are never deleted.
    - tenant_id is set at creation; polling filters on it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from waybill_kernel.db.base import TenantOwnedMixin, TrackedBase

if TYPE_CHECKING:
    from waybill_batch.domain.types import ImportJob


class ImportJobModel(TenantOwnedMixin, TrackedBase):
    """Persistent import job record."""

    __tablename__ = "import_jobs"

    __table_args__ = (
        Index("ix_import_jobs_status", "status"),
        Index("ix_import_jobs_tenant_created", "tenant_id", "created_at"),
    )

    status: Mapped[str] = mapped_column(String(20), nullable=False)
    progress_percent: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_rows: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    inserted_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    updated_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    rejected_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)

    def to_dto(self) -> ImportJob:
        from waybill_batch.domain.types import ImportJob, ImportJobStatus

        return ImportJob(
            job_id=self.id,
            tenant_id=self.tenant_id,
            status=ImportJobStatus(self.status),
            progress_percent=self.progress_percent,
            total_rows=self.total_rows,
            inserted_count=self.inserted_count,
            updated_count=self.updated_count,
            rejected_count=self.rejected_count,
            error=self.error,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )
