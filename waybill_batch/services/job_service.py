"""
ImportJobService -- lifecycle bookkeeping for asynchronous imports.

Contract:
    - ``create_job()`` records a QUEUED job with progress 0.
    - ``get_job()`` is tenant-scoped polling.
    - ``mark_running()`` / ``mark_succeeded()`` / ``mark_failed()`` move a job
      along QUEUED -> RUNNING -> SUCCEEDED | FAILED.
    - ``fail_stale_jobs()`` is the operator sweep for jobs a crashed worker
      left QUEUED or RUNNING.

Architecture: waybill_batch/services.  Flush-only: the caller commits.

Invariants enforced:
    - All timestamps from the injected Clock.
    - Terminal jobs never change again (InvalidJobTransitionError).
    - A FAILED job keeps whatever counts it had; only status, progress and
      error change.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from waybill_kernel.domain.clock import Clock, SystemClock
from waybill_kernel.exceptions import (
    ImportJobNotFoundError,
    InvalidJobTransitionError,
    MissingTenantError,
)
from waybill_kernel.logging_config import get_logger

from waybill_batch.domain.types import ImportJob, ImportJobStatus, can_transition
from waybill_batch.models.import_job import ImportJobModel

logger = get_logger("batch.job_service")

STALE_JOB_ERROR = "STALE_RUNNING_JOB"


class ImportJobService:
    """Create, poll and transition import jobs."""

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()

    # -------------------------------------------------------------------------
    # Create / query
    # -------------------------------------------------------------------------

    def create_job(self, tenant_id: str) -> ImportJob:
        if not tenant_id or not tenant_id.strip():
            raise MissingTenantError("create_import_job")

        now = self._clock.now()
        model = ImportJobModel(
            id=uuid4(),
            tenant_id=tenant_id.strip(),
            status=ImportJobStatus.QUEUED.value,
            progress_percent=0,
            total_rows=0,
            inserted_count=0,
            updated_count=0,
            rejected_count=0,
            error=None,
            created_at=now,
            updated_at=now,
        )
        self._session.add(model)
        self._session.flush()

        logger.info(
            "import_job_created",
            extra={"job_id": str(model.id), "tenant_id": model.tenant_id},
        )
        return model.to_dto()

    def get_job(self, tenant_id: str, job_id: UUID) -> ImportJob:
        """
        Raises:
            ImportJobNotFoundError: unknown id, or a job of another tenant.
        """
        if not tenant_id or not tenant_id.strip():
            raise MissingTenantError("get_import_job")

        model = self._session.execute(
            select(ImportJobModel).where(
                ImportJobModel.id == job_id,
                ImportJobModel.tenant_id == tenant_id.strip(),
            )
        ).scalar_one_or_none()
        if model is None:
            raise ImportJobNotFoundError(job_id)
        return model.to_dto()

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    def mark_running(self, job_id: UUID, progress_percent: int) -> ImportJob:
        model = self._transition(job_id, ImportJobStatus.RUNNING)
        model.progress_percent = progress_percent
        model.error = None
        self._session.flush()
        logger.info(
            "import_job_started",
            extra={"job_id": str(job_id), "progress_percent": progress_percent},
        )
        return model.to_dto()

    def mark_succeeded(
        self,
        job_id: UUID,
        total_rows: int,
        inserted_count: int,
        updated_count: int,
        rejected_count: int,
    ) -> ImportJob:
        model = self._transition(job_id, ImportJobStatus.SUCCEEDED)
        model.total_rows = total_rows
        model.inserted_count = inserted_count
        model.updated_count = updated_count
        model.rejected_count = rejected_count
        model.progress_percent = 100
        model.error = None
        self._session.flush()
        logger.info(
            "import_job_succeeded",
            extra={
                "job_id": str(job_id),
                "total_rows": total_rows,
                "inserted_count": inserted_count,
                "updated_count": updated_count,
                "rejected_count": rejected_count,
            },
        )
        return model.to_dto()

    def mark_failed(self, job_id: UUID, error: str) -> ImportJob:
        model = self._transition(job_id, ImportJobStatus.FAILED)
        model.progress_percent = 100
        model.error = error
        self._session.flush()
        logger.warning(
            "import_job_failed",
            extra={"job_id": str(job_id), "error": error},
        )
        return model.to_dto()

    def fail_stale_jobs(self, older_than: datetime) -> list[UUID]:
        """
        Mark QUEUED or RUNNING jobs not touched since ``older_than`` as FAILED.

        Never invoked automatically.  Intended for an operator after a worker
        process died mid-job, since those jobs would otherwise stay RUNNING.
        """
        stale = self._session.execute(
            select(ImportJobModel)
            .where(
                ImportJobModel.status.in_(
                    [ImportJobStatus.QUEUED.value, ImportJobStatus.RUNNING.value]
                ),
                ImportJobModel.updated_at < older_than,
            )
            .order_by(ImportJobModel.created_at)
        ).scalars().all()

        now = self._clock.now()
        swept: list[UUID] = []
        for model in stale:
            model.status = ImportJobStatus.FAILED.value
            model.progress_percent = 100
            model.error = STALE_JOB_ERROR
            model.updated_at = now
            swept.append(model.id)

        self._session.flush()
        if swept:
            logger.warning(
                "stale_import_jobs_failed",
                extra={"job_ids": [str(j) for j in swept], "older_than": older_than},
            )
        return swept

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _transition(self, job_id: UUID, target: ImportJobStatus) -> ImportJobModel:
        model = self._session.get(ImportJobModel, job_id)
        if model is None:
            raise ImportJobNotFoundError(job_id)
        current = ImportJobStatus(model.status)
        if not can_transition(current, target):
            raise InvalidJobTransitionError(job_id, current.value, target.value)
        model.status = target.value
        model.updated_at = self._clock.now()
        return model
