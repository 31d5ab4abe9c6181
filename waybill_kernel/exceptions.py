"""
Typed exception hierarchy for the waybill system.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (the gateway, the import worker, tests) decide what to do with a
failure by its type and its ``code``, never by parsing the message:

    try:
        service.update(tenant_id, waybill_id, request)
    except OptimisticLockError as e:
        return conflict(code=e.code, waybill_id=e.entity_id)

Every exception carries:
  1. a TYPED class (catch by type, not message)
  2. a CODE attribute (machine-readable, API-safe)
  3. structured DATA (not just a message string)

Row-level CSV problems are NOT exceptions.  They are reported as codes in the
import result; only request-level and infrastructure failures raise.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    WaybillKernelError (base)
    |
    +-- TenantError
    |   +-- MissingTenantError
    |
    +-- NotFoundError
    |   +-- WaybillNotFoundError
    |   +-- SupplierNotFoundError
    |   +-- ImportJobNotFoundError
    |
    +-- WaybillValidationError
    |
    +-- ConcurrencyError
    |   +-- OptimisticLockError
    |
    +-- ImportFailedError
    |   +-- ImportPayloadError
    |   +-- ImportCancelledError
    |   +-- ImportQueueFullError
    |
    +-- ImportJobError
    |   +-- InvalidJobTransitionError
    |
    +-- EventPublishError
    |
    +-- LeaseError
        +-- OperationAlreadyRunningError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                          | When Raised
-------------|-------------------------------|--------------------------------------
Tenant       | TENANT_REQUIRED               | Tenant id missing or blank
-------------|-------------------------------|--------------------------------------
Not found    | WAYBILL_NOT_FOUND             | No live waybill with that id for tenant
             | SUPPLIER_NOT_FOUND            | Supplier has no waybills for tenant
             | IMPORT_JOB_NOT_FOUND          | Job id unknown for tenant
-------------|-------------------------------|--------------------------------------
Validation   | ROW_VERSION_MISSING           | Update without a concurrency token
             | ROW_VERSION_INVALID           | Token is not base64 of 16 bytes
             | QUANTITY_OUT_OF_RANGE         | Quantity outside [0.5, 50]
             | DELIVERY_DATE_BEFORE_WAYBILL  | Delivery date earlier than waybill date
             | TOTAL_MISMATCH                | |qty x price - total| > 0.01
             | PRODUCT_CODE_REQUIRED         | Blank product code
             | INVALID_STATUS                | Unknown status name
             | INVALID_STATUS_TRANSITION     | Transition not in the status table
-------------|-------------------------------|--------------------------------------
Concurrency  | OPTIMISTIC_LOCK_CONFLICT      | Token no longer matches the stored one
-------------|-------------------------------|--------------------------------------
Import       | IMPORT_PAYLOAD_INVALID        | Empty upload
             | IMPORT_CANCELLED              | Cancellation signalled mid-run
             | IMPORT_QUEUE_FULL             | Bounded job queue rejected the item
             | INVALID_JOB_TRANSITION        | Job status change not allowed
-------------|-------------------------------|--------------------------------------
Events       | EVENT_PUBLISH_FAILED          | Completion event could not be written
-------------|-------------------------------|--------------------------------------
Lease        | OPERATION_ALREADY_RUNNING     | Named lease held by someone else
"""

from uuid import UUID


class WaybillKernelError(Exception):
    """
    Base exception for all waybill errors.

    All subclasses must have a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "WAYBILL_KERNEL_ERROR"


# Tenant


class TenantError(WaybillKernelError):
    """Base exception for tenant resolution errors."""

    code: str = "TENANT_ERROR"


class MissingTenantError(TenantError):
    """Request or operation carried no tenant identifier."""

    code: str = "TENANT_REQUIRED"

    def __init__(self, operation: str | None = None):
        self.operation = operation
        detail = f" for {operation}" if operation else ""
        super().__init__(f"Tenant id is required{detail}")


# Not found


class NotFoundError(WaybillKernelError):
    """Base exception for lookups that found nothing for the tenant."""

    code: str = "NOT_FOUND"


class WaybillNotFoundError(NotFoundError):
    """Waybill does not exist, is soft-deleted, or belongs to another tenant."""

    code: str = "WAYBILL_NOT_FOUND"

    def __init__(self, waybill_id: UUID | str):
        self.waybill_id = str(waybill_id)
        super().__init__(f"Waybill not found: {waybill_id}")


class SupplierNotFoundError(NotFoundError):
    """Supplier has no waybills for the tenant."""

    code: str = "SUPPLIER_NOT_FOUND"

    def __init__(self, supplier_id: UUID | str):
        self.supplier_id = str(supplier_id)
        super().__init__(f"Supplier not found: {supplier_id}")


class ImportJobNotFoundError(NotFoundError):
    """Import job id is unknown for the tenant."""

    code: str = "IMPORT_JOB_NOT_FOUND"

    def __init__(self, job_id: UUID | str):
        self.job_id = str(job_id)
        super().__init__(f"Import job not found: {job_id}")


# Request validation


class WaybillValidationError(WaybillKernelError):
    """
    A waybill update request was rejected before touching the store.

    The instance ``code`` is the specific reason (ROW_VERSION_MISSING,
    QUANTITY_OUT_OF_RANGE, INVALID_STATUS_TRANSITION, ...).
    """

    code: str = "WAYBILL_VALIDATION_FAILED"

    def __init__(self, code: str, message: str):
        self.code = code
        super().__init__(message)


# Concurrency


class ConcurrencyError(WaybillKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """Optimistic locking conflict detected."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: UUID | str):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            "entity was modified by another transaction"
        )


# Import


class ImportFailedError(WaybillKernelError):
    """Base exception for whole-import failures."""

    code: str = "IMPORT_FAILED"


class ImportPayloadError(ImportFailedError):
    """The uploaded payload cannot be imported at all."""

    code: str = "IMPORT_PAYLOAD_INVALID"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Import payload rejected: {reason}")


class ImportCancelledError(ImportFailedError):
    """Cancellation was signalled before the batch write."""

    code: str = "IMPORT_CANCELLED"

    def __init__(self, tenant_id: str, rows_seen: int):
        self.tenant_id = tenant_id
        self.rows_seen = rows_seen
        super().__init__(
            f"Import for tenant {tenant_id} cancelled after {rows_seen} rows"
        )


class ImportQueueFullError(ImportFailedError):
    """The bounded import queue has no room for another job."""

    code: str = "IMPORT_QUEUE_FULL"

    def __init__(self, job_id: UUID | str, max_size: int):
        self.job_id = str(job_id)
        self.max_size = max_size
        super().__init__(
            f"Import queue is full ({max_size} pending); job {job_id} rejected"
        )


class ImportJobError(WaybillKernelError):
    """Base exception for import job lifecycle errors."""

    code: str = "IMPORT_JOB_ERROR"


class InvalidJobTransitionError(ImportJobError):
    """Import job status change is not allowed."""

    code: str = "INVALID_JOB_TRANSITION"

    def __init__(self, job_id: UUID | str, from_status: str, to_status: str):
        self.job_id = str(job_id)
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Import job {job_id} cannot move from {from_status} to {to_status}"
        )


# Events


class EventPublishError(WaybillKernelError):
    """The completion event could not be handed to the topic."""

    code: str = "EVENT_PUBLISH_FAILED"

    def __init__(self, topic: str, import_job_id: UUID | str, reason: str):
        self.topic = topic
        self.import_job_id = str(import_job_id)
        self.reason = reason
        super().__init__(
            f"Failed to publish to {topic} for import {import_job_id}: {reason}"
        )


# Lease


class LeaseError(WaybillKernelError):
    """Base exception for lease lock errors."""

    code: str = "LEASE_ERROR"


class OperationAlreadyRunningError(LeaseError):
    """The named per-tenant lease is held by another caller."""

    code: str = "OPERATION_ALREADY_RUNNING"

    def __init__(self, tenant_id: str, lock_name: str):
        self.tenant_id = tenant_id
        self.lock_name = lock_name
        super().__init__(
            f"Operation {lock_name} is already running for tenant {tenant_id}"
        )
