"""Kernel services: cache versions, lease locks and optimistic waybill updates."""

from waybill_kernel.services.cache_version_service import (
    CacheVersionProvider,
    InMemoryCacheVersionProvider,
)
from waybill_kernel.services.lease_lock_service import LeaseLockService
from waybill_kernel.services.waybill_update_service import WaybillUpdateService

__all__ = [
    "CacheVersionProvider",
    "InMemoryCacheVersionProvider",
    "LeaseLockService",
    "WaybillUpdateService",
]
