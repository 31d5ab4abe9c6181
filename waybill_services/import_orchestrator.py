"""
WaybillImportOrchestrator -- one complete import, end to end.

Contract:
    ``run(tenant_id, payload)`` reconciles the CSV in a single transaction,
    commits, publishes one WaybillsImportedEvent and bumps the tenant's cache
    version.  The same path serves synchronous requests and the background
    import worker (which passes its job id as ``import_job_id``).

Architecture: waybill_services.  Composes waybill_ingestion (reconciler),
    waybill_kernel (cache versions, clock) and the event publisher.

Invariants enforced:
    - Publish and version bump happen only after the commit succeeded.
    - The cache version is bumped even when publishing fails, because the
      data already changed.
    - A failed reconcile leaves nothing behind: no commit, no event, no bump.
"""

from __future__ import annotations

import threading
from typing import Callable
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from waybill_kernel.db.engine import session_scope
from waybill_kernel.domain.clock import Clock, SystemClock
from waybill_kernel.exceptions import (
    EventPublishError,
    ImportPayloadError,
    MissingTenantError,
)
from waybill_kernel.logging_config import LogContext, get_logger
from waybill_kernel.services.cache_version_service import CacheVersionProvider

from waybill_ingestion.adapters.base import Payload
from waybill_ingestion.domain.types import ImportResult
from waybill_ingestion.services.reconciliation_service import WaybillReconciler

from waybill_services.events import DEFAULT_TOPIC, EventPublisher, WaybillsImportedEvent

logger = get_logger("services.import_orchestrator")

SYNC_REASON = "import-sync"


class WaybillImportOrchestrator:
    """Reconcile, commit, publish, invalidate."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        publisher: EventPublisher,
        cache_versions: CacheVersionProvider,
        clock: Clock | None = None,
    ):
        self._session_factory = session_factory
        self._publisher = publisher
        self._cache_versions = cache_versions
        self._clock = clock or SystemClock()

    def run(
        self,
        tenant_id: str,
        payload: Payload,
        import_job_id: UUID | None = None,
        cancel_event: threading.Event | None = None,
        reason: str = SYNC_REASON,
    ) -> ImportResult:
        """
        Raises:
            MissingTenantError: blank tenant.
            ImportPayloadError: empty payload.
            ImportCancelledError: cancelled before the write.
            EventPublishError: committed, but the event was not published.
        """
        if not tenant_id or not tenant_id.strip():
            raise MissingTenantError("import")
        tenant_id = tenant_id.strip()
        if payload is None or (isinstance(payload, (bytes, str)) and not payload):
            raise ImportPayloadError("file is empty")

        correlation_id = import_job_id or uuid4()
        with LogContext.bind(tenant_id=tenant_id, correlation_id=str(correlation_id)):
            logger.info("import_started", extra={"reason": reason})

            with session_scope(self._session_factory) as session:
                result = WaybillReconciler(session, self._clock).reconcile(
                    tenant_id, payload, cancel_event,
                )

            try:
                self._publish(tenant_id, correlation_id, result)
            finally:
                self._cache_versions.increment(tenant_id, reason)

            logger.info(
                "import_completed",
                extra={
                    "total_rows": result.total_rows,
                    "inserted_count": result.inserted_count,
                    "updated_count": result.updated_count,
                    "rejected_count": result.rejected_count,
                },
            )
            return result

    def _publish(self, tenant_id: str, correlation_id: UUID, result: ImportResult) -> None:
        event = WaybillsImportedEvent(
            tenant_id=tenant_id,
            import_job_id=correlation_id,
            total_rows=result.total_rows,
            inserted_count=result.inserted_count,
            updated_count=result.updated_count,
            rejected_count=result.rejected_count,
            occurred_at=self._clock.now(),
        )
        try:
            self._publisher.publish_waybills_imported(event)
        except EventPublishError:
            raise
        except Exception as exc:
            topic = getattr(self._publisher, "topic", DEFAULT_TOPIC)
            logger.error("event_publish_failed", extra={"topic": topic}, exc_info=True)
            raise EventPublishError(topic, correlation_id, str(exc)) from exc
