"""
CachedWaybillQueries -- read side of the boundary.

Listing and summary go through the versioned read cache; detail, project
and supplier reads always hit the store.  Each call opens and closes its own
session.
"""

from __future__ import annotations

from typing import Callable
from uuid import UUID

from sqlalchemy.orm import Session

from waybill_kernel.domain.dtos import (
    MonthlyTotal,
    SupplierSummary,
    WaybillPage,
    WaybillQuery,
    WaybillSummary,
    WaybillView,
)
from waybill_kernel.exceptions import MissingTenantError
from waybill_kernel.selectors.waybill_selector import WaybillSelector

from waybill_services.read_cache import VersionedReadCache

LIST_ENDPOINT = "waybills"
SUMMARY_ENDPOINT = "summary"


class CachedWaybillQueries:
    def __init__(
        self,
        session_factory: Callable[[], Session],
        cache: VersionedReadCache,
    ):
        self._session_factory = session_factory
        self._cache = cache

    def list_waybills(self, tenant_id: str, query: WaybillQuery) -> WaybillPage:
        tenant_id = _tenant(tenant_id, "list_waybills")
        return self._cache.get_or_compute(
            LIST_ENDPOINT,
            tenant_id,
            query.cache_params(),
            lambda: self._read(lambda s: s.list_waybills(tenant_id, query)),
        )

    def summary(self, tenant_id: str) -> WaybillSummary:
        tenant_id = _tenant(tenant_id, "summary")
        return self._cache.get_or_compute(
            SUMMARY_ENDPOINT,
            tenant_id,
            None,
            lambda: self._read(lambda s: s.summary(tenant_id)),
        )

    def get_waybill(self, tenant_id: str, waybill_id: UUID) -> WaybillView | None:
        return self._read(lambda s: s.get_waybill(tenant_id, waybill_id))

    def list_by_project(self, tenant_id: str, project_id: UUID) -> list[WaybillView]:
        return self._read(lambda s: s.list_by_project(tenant_id, project_id))

    def supplier_summary(
        self, tenant_id: str, supplier_id: UUID,
    ) -> SupplierSummary | None:
        return self._read(lambda s: s.supplier_summary(tenant_id, supplier_id))

    def monthly_totals(self, tenant_id: str) -> list[MonthlyTotal]:
        return self._read(lambda s: s.monthly_totals(tenant_id))

    def _read(self, fn):
        session = self._session_factory()
        try:
            return fn(WaybillSelector(session))
        finally:
            session.close()


def _tenant(tenant_id: str, operation: str) -> str:
    if not tenant_id or not tenant_id.strip():
        raise MissingTenantError(operation)
    return tenant_id.strip()
