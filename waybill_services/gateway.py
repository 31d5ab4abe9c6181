"""
WaybillGateway -- the external boundary.

Contract:
    Every operation takes the tenant id first and returns a GatewayResponse
    (HTTP-style status plus a JSON-ready body).  Typed kernel errors map to
    client statuses; anything else is logged with its traceback and answered
    with a generic 500 that carries no internal detail.

    ========================================  ======  =======================
    Error                                     Status  Body ``error``
    ========================================  ======  =======================
    MissingTenantError                        400     TENANT_REQUIRED
    WaybillValidationError                    400     rule code
    ImportPayloadError                        400     IMPORT_PAYLOAD_INVALID
    NotFoundError (any)                       404     *_NOT_FOUND
    OptimisticLockError                       409     OPTIMISTIC_LOCK_CONFLICT
    OperationAlreadyRunningError              409     OPERATION_ALREADY_RUNNING
    ImportQueueFullError                      503     IMPORT_QUEUE_FULL
    EventPublishError                         502     EVENT_PUBLISH_FAILED
    anything else                             500     INTERNAL_ERROR
    ========================================  ======  =======================

Invariants enforced:
    - A blank tenant is rejected before any core component runs.
    - 502, 503 and 500 bodies carry only the error code; broker and database
      detail goes to the log.
    - The cache version is bumped only after an update has committed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable
from uuid import UUID

from sqlalchemy.orm import Session

from waybill_kernel.db.engine import session_scope
from waybill_kernel.domain.dtos import WaybillQuery, WaybillUpdateRequest
from waybill_kernel.exceptions import (
    EventPublishError,
    ImportPayloadError,
    ImportQueueFullError,
    MissingTenantError,
    NotFoundError,
    OperationAlreadyRunningError,
    OptimisticLockError,
    SupplierNotFoundError,
    WaybillKernelError,
    WaybillNotFoundError,
    WaybillValidationError,
)
from waybill_kernel.logging_config import LogContext, get_logger
from waybill_kernel.services.cache_version_service import CacheVersionProvider
from waybill_kernel.services.waybill_update_service import WaybillUpdateService

from waybill_batch.services.job_service import ImportJobService
from waybill_batch.services.pipeline import ImportPipeline

from waybill_services.import_audit_consumer import ImportAuditConsumer
from waybill_services.import_orchestrator import WaybillImportOrchestrator
from waybill_services.monthly_report import MonthlyReportService
from waybill_services.query_service import CachedWaybillQueries

logger = get_logger("services.gateway")

UPDATE_REASON = "waybill-update"
INTERNAL_ERROR = "INTERNAL_ERROR"

_STATUS_BY_ERROR: tuple[tuple[type[WaybillKernelError], int], ...] = (
    (MissingTenantError, 400),
    (WaybillValidationError, 400),
    (ImportPayloadError, 400),
    (NotFoundError, 404),
    (OptimisticLockError, 409),
    (OperationAlreadyRunningError, 409),
    (ImportQueueFullError, 503),
    (EventPublishError, 502),
)

# Infrastructure failures: the body carries only the code, the detail is logged.
_OPAQUE_ERRORS: tuple[type[WaybillKernelError], ...] = (
    ImportQueueFullError,
    EventPublishError,
)


@dataclass(frozen=True)
class GatewayResponse:
    status: int
    body: Any = field(default=None)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


class WaybillGateway:
    """Request handlers for every tenant-facing operation."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        orchestrator: WaybillImportOrchestrator,
        pipeline: ImportPipeline,
        queries: CachedWaybillQueries,
        cache_versions: CacheVersionProvider,
        reports: MonthlyReportService,
        audits: ImportAuditConsumer,
    ):
        self._session_factory = session_factory
        self._orchestrator = orchestrator
        self._pipeline = pipeline
        self._queries = queries
        self._cache_versions = cache_versions
        self._reports = reports
        self._audits = audits

    # -------------------------------------------------------------------------
    # Imports
    # -------------------------------------------------------------------------

    def import_csv(
        self,
        tenant_id: str,
        payload: bytes | str | None,
        async_mode: bool = False,
    ) -> GatewayResponse:
        def handle(tenant: str) -> GatewayResponse:
            if not payload:
                raise ImportPayloadError("file is required")
            if async_mode:
                data = payload.encode("utf-8") if isinstance(payload, str) else payload
                job_id = self._pipeline.enqueue(tenant, data)
                return GatewayResponse(202, {"jobId": str(job_id)})
            result = self._orchestrator.run(tenant, payload)
            return GatewayResponse(200, result.to_dict())

        return self._dispatch("import_csv", tenant_id, handle)

    def get_import_job(self, tenant_id: str, job_id: UUID) -> GatewayResponse:
        def handle(tenant: str) -> GatewayResponse:
            session = self._session_factory()
            try:
                job = ImportJobService(session).get_job(tenant, job_id)
            finally:
                session.close()
            return GatewayResponse(200, job.to_dict())

        return self._dispatch("get_import_job", tenant_id, handle)

    def list_import_audits(self, tenant_id: str) -> GatewayResponse:
        return self._dispatch(
            "list_import_audits",
            tenant_id,
            lambda tenant: GatewayResponse(
                200, [a.to_dict() for a in self._audits.latest_audits(tenant)],
            ),
        )

    # -------------------------------------------------------------------------
    # Waybills
    # -------------------------------------------------------------------------

    def list_waybills(
        self, tenant_id: str, query: WaybillQuery | None = None,
    ) -> GatewayResponse:
        query = query or WaybillQuery()
        return self._dispatch(
            "list_waybills",
            tenant_id,
            lambda tenant: GatewayResponse(
                200, self._queries.list_waybills(tenant, query).to_dict(),
            ),
        )

    def get_waybill(self, tenant_id: str, waybill_id: UUID) -> GatewayResponse:
        def handle(tenant: str) -> GatewayResponse:
            view = self._queries.get_waybill(tenant, waybill_id)
            if view is None:
                raise WaybillNotFoundError(waybill_id)
            return GatewayResponse(200, view.to_dict())

        return self._dispatch("get_waybill", tenant_id, handle)

    def update_waybill(
        self,
        tenant_id: str,
        waybill_id: UUID,
        request: WaybillUpdateRequest,
    ) -> GatewayResponse:
        def handle(tenant: str) -> GatewayResponse:
            with session_scope(self._session_factory) as session:
                view = WaybillUpdateService(session).update(tenant, waybill_id, request)
            self._cache_versions.increment(tenant, UPDATE_REASON)
            return GatewayResponse(200, view.to_dict())

        return self._dispatch("update_waybill", tenant_id, handle)

    def get_summary(self, tenant_id: str) -> GatewayResponse:
        return self._dispatch(
            "get_summary",
            tenant_id,
            lambda tenant: GatewayResponse(200, self._queries.summary(tenant).to_dict()),
        )

    def get_supplier_summary(self, tenant_id: str, supplier_id: UUID) -> GatewayResponse:
        def handle(tenant: str) -> GatewayResponse:
            summary = self._queries.supplier_summary(tenant, supplier_id)
            if summary is None:
                raise SupplierNotFoundError(supplier_id)
            return GatewayResponse(200, summary.to_dict())

        return self._dispatch("get_supplier_summary", tenant_id, handle)

    def list_project_waybills(self, tenant_id: str, project_id: UUID) -> GatewayResponse:
        return self._dispatch(
            "list_project_waybills",
            tenant_id,
            lambda tenant: GatewayResponse(
                200,
                [v.to_dict() for v in self._queries.list_by_project(tenant, project_id)],
            ),
        )

    def generate_monthly_report(self, tenant_id: str) -> GatewayResponse:
        return self._dispatch(
            "generate_monthly_report",
            tenant_id,
            lambda tenant: GatewayResponse(200, self._reports.generate(tenant).to_dict()),
        )

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _dispatch(
        self,
        operation: str,
        tenant_id: str | None,
        handler: Callable[[str], GatewayResponse],
    ) -> GatewayResponse:
        with LogContext.bind(tenant_id=tenant_id.strip() if tenant_id else None):
            try:
                if not tenant_id or not tenant_id.strip():
                    raise MissingTenantError(operation)
                return handler(tenant_id.strip())
            except WaybillKernelError as exc:
                status = _status_for(exc)
                if status is None:
                    logger.exception(
                        "gateway_unhandled_error", extra={"operation": operation},
                    )
                    return GatewayResponse(500, {"error": INTERNAL_ERROR})
                if isinstance(exc, _OPAQUE_ERRORS):
                    logger.warning(
                        "gateway_infrastructure_failure",
                        extra={
                            "operation": operation,
                            "status": status,
                            "code": exc.code,
                            "detail": str(exc),
                        },
                    )
                    return GatewayResponse(status, {"error": exc.code})
                logger.info(
                    "gateway_request_rejected",
                    extra={"operation": operation, "status": status, "code": exc.code},
                )
                return GatewayResponse(status, {"error": exc.code, "message": str(exc)})
            except Exception:
                logger.exception(
                    "gateway_unhandled_error", extra={"operation": operation},
                )
                return GatewayResponse(500, {"error": INTERNAL_ERROR})


def _status_for(exc: WaybillKernelError) -> int | None:
    for error_type, status in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status
    return None


__all__ = ["GatewayResponse", "WaybillGateway"]
