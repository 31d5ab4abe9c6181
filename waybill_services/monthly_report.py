"""
MonthlyReportService -- per-tenant monthly totals under an execution lease.

At most one report per tenant runs at a time across all processes sharing
the store; a second request while the lease is live fails fast with
OperationAlreadyRunningError instead of waiting.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable

from sqlalchemy.orm import Session

from waybill_kernel.domain.clock import Clock, SystemClock
from waybill_kernel.domain.dtos import MonthlyTotal
from waybill_kernel.exceptions import MissingTenantError
from waybill_kernel.logging_config import get_logger
from waybill_kernel.selectors.waybill_selector import WaybillSelector
from waybill_kernel.services.lease_lock_service import LeaseLockService

logger = get_logger("services.monthly_report")

LOCK_NAME = "MONTHLY_REPORT"
DEFAULT_LEASE_SECONDS = 600


@dataclass(frozen=True)
class MonthlyReport:
    tenant_id: str
    started_at: datetime
    generated_at: datetime
    months: tuple[MonthlyTotal, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "tenantId": self.tenant_id,
            "generatedAtUtc": self.generated_at.isoformat(),
            "durationSeconds": (self.generated_at - self.started_at).total_seconds(),
            "months": [m.to_dict() for m in self.months],
        }


class MonthlyReportService:
    def __init__(
        self,
        session_factory: Callable[[], Session],
        leases: LeaseLockService,
        clock: Clock | None = None,
        lease_seconds: int = DEFAULT_LEASE_SECONDS,
        holder: str | None = None,
    ):
        self._session_factory = session_factory
        self._leases = leases
        self._clock = clock or SystemClock()
        self._lease = timedelta(seconds=lease_seconds)
        self._holder = holder

    def generate(self, tenant_id: str) -> MonthlyReport:
        """
        Raises:
            MissingTenantError: blank tenant.
            OperationAlreadyRunningError: another report holds the lease.
        """
        if not tenant_id or not tenant_id.strip():
            raise MissingTenantError("generate_monthly_report")
        tenant_id = tenant_id.strip()

        with self._leases.held(tenant_id, LOCK_NAME, self._lease, self._holder):
            started_at = self._clock.now()
            session = self._session_factory()
            try:
                months = WaybillSelector(session).monthly_totals(tenant_id)
            finally:
                session.close()
            report = MonthlyReport(
                tenant_id=tenant_id,
                started_at=started_at,
                generated_at=self._clock.now(),
                months=tuple(months),
            )

        logger.info(
            "monthly_report_generated",
            extra={"tenant_id": tenant_id, "month_count": len(report.months)},
        )
        return report
