"""
ImportPipeline -- the request-side half of asynchronous imports.

Contract:
    ``enqueue(tenant_id, payload)`` commits a QUEUED job row, then hands the
    payload to the queue and returns the job id.  The caller can poll the job
    immediately: the row exists before the worker can see the item.

Invariants enforced:
    - Job row commit happens BEFORE the queue put.
    - A bounded queue that rejects the item leaves the job FAILED with
      IMPORT_QUEUE_FULL, and the rejection propagates to the caller.
"""

from __future__ import annotations

from typing import Callable
from uuid import UUID

from sqlalchemy.orm import Session

from waybill_kernel.db.engine import session_scope
from waybill_kernel.domain.clock import Clock, SystemClock
from waybill_kernel.exceptions import ImportQueueFullError
from waybill_kernel.logging_config import get_logger

from waybill_batch.domain.types import ImportWorkItem
from waybill_batch.services.job_service import ImportJobService
from waybill_batch.services.queue import ImportJobQueue

logger = get_logger("batch.pipeline")


class ImportPipeline:
    """Durably record and queue asynchronous imports."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        job_queue: ImportJobQueue,
        clock: Clock | None = None,
    ):
        self._session_factory = session_factory
        self._queue = job_queue
        self._clock = clock or SystemClock()

    def enqueue(self, tenant_id: str, payload: bytes) -> UUID:
        with session_scope(self._session_factory) as session:
            job = ImportJobService(session, self._clock).create_job(tenant_id)

        try:
            self._queue.put(
                ImportWorkItem(job_id=job.job_id, tenant_id=job.tenant_id, payload=payload)
            )
        except ImportQueueFullError as exc:
            with session_scope(self._session_factory) as session:
                ImportJobService(session, self._clock).mark_failed(job.job_id, exc.code)
            raise

        logger.info(
            "import_job_queued",
            extra={"job_id": str(job.job_id), "payload_bytes": len(payload)},
        )
        return job.job_id
