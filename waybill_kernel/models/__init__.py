"""ORM models owned by the waybill kernel."""

from waybill_kernel.models.execution_lease import ExecutionLease
from waybill_kernel.models.reference import Project, Supplier
from waybill_kernel.models.waybill import Waybill

__all__ = [
    "ExecutionLease",
    "Project",
    "Supplier",
    "Waybill",
]
