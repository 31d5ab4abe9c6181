"""Read-only, tenant-scoped query selectors."""

from waybill_kernel.selectors.waybill_selector import WaybillSelector

__all__ = ["WaybillSelector"]
