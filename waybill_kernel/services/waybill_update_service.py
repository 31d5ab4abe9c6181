"""
WaybillUpdateService -- validated, optimistically-concurrent waybill edits.

Responsibility:
    Accept a client edit carrying the row version the client last saw, check
    it against the waybill rules and the status transition table, and apply
    it with a single conditional UPDATE.

Architecture position:
    Kernel > Services.  Flush-level: the caller commits, then bumps the
    tenant's cache version.

Validation order (first failure wins):
    1. row version present and well-formed     ROW_VERSION_MISSING / ROW_VERSION_INVALID
    2. waybill exists for tenant, not deleted  WaybillNotFoundError
    3. 0.5 <= quantity <= 50                   QUANTITY_OUT_OF_RANGE
    4. delivery_date >= stored waybill_date    DELIVERY_DATE_BEFORE_WAYBILL
    5. total within 0.01 of qty x price        TOTAL_MISMATCH
    6. product code not blank                  PRODUCT_CODE_REQUIRED
    7. status name known                       INVALID_STATUS
    8. status transition allowed               INVALID_STATUS_TRANSITION

Invariants enforced:
    - The write is ``UPDATE ... WHERE id AND tenant_id AND row_version = :seen``
      and sets a fresh row_version.  Zero affected rows means someone else
      wrote first: OptimisticLockError, nothing changed, no retry.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select, update

from waybill_kernel.domain.dtos import WaybillUpdateRequest, WaybillView
from waybill_kernel.domain.row_version import decode_row_version, new_row_version
from waybill_kernel.domain.rules import (
    QUANTITY_MAX,
    QUANTITY_MIN,
    quantity_in_range,
    total_matches,
)
from waybill_kernel.domain.status import (
    WaybillStatus,
    allowed_targets,
    is_valid_transition,
    parse_status,
)
from waybill_kernel.exceptions import (
    MissingTenantError,
    OptimisticLockError,
    WaybillNotFoundError,
    WaybillValidationError,
)
from waybill_kernel.logging_config import get_logger
from waybill_kernel.models.waybill import Waybill
from waybill_kernel.selectors.waybill_selector import WaybillSelector
from waybill_kernel.services.base import BaseService

logger = get_logger("services.waybill_update")


class WaybillUpdateService(BaseService):
    """Apply one client edit to one waybill."""

    def update(
        self,
        tenant_id: str,
        waybill_id: UUID,
        request: WaybillUpdateRequest,
    ) -> WaybillView:
        """
        Validate and apply ``request``.

        Returns:
            The refreshed waybill, carrying its new row version.

        Raises:
            MissingTenantError: blank tenant.
            WaybillValidationError: a rule failed (see module docstring).
            WaybillNotFoundError: no live waybill with that id for the tenant.
            OptimisticLockError: the row changed since the client read it.
        """
        if not tenant_id or not tenant_id.strip():
            raise MissingTenantError("update_waybill")

        log_extra = {"tenant_id": tenant_id, "waybill_id": str(waybill_id)}
        logger.info("waybill_update_requested", extra=log_extra)

        try:
            seen_version = decode_row_version(request.row_version)

            current = self.session.execute(
                select(Waybill).where(
                    Waybill.id == waybill_id,
                    Waybill.tenant_id == tenant_id,
                    Waybill.is_deleted.is_(False),
                )
            ).scalar_one_or_none()
            if current is None:
                raise WaybillNotFoundError(waybill_id)

            target_status = self._validate(current, request)
        except (WaybillValidationError, WaybillNotFoundError) as exc:
            logger.warning(
                "waybill_update_rejected",
                extra={**log_extra, "code": exc.code},
            )
            raise

        result = self.session.execute(
            update(Waybill)
            .where(
                Waybill.id == waybill_id,
                Waybill.tenant_id == tenant_id,
                Waybill.row_version == seen_version,
            )
            .values(
                delivery_date=request.delivery_date,
                product_code=request.product_code.strip(),
                quantity=request.quantity,
                unit_price=request.unit_price,
                total_amount=request.total_amount,
                status=target_status.value,
                row_version=new_row_version(),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.warning("waybill_update_conflict", extra=log_extra)
            raise OptimisticLockError("Waybill", waybill_id)

        # The loaded instance is stale after a bulk UPDATE
        self.session.expire(current)

        refreshed = WaybillSelector(self.session).get_waybill(tenant_id, waybill_id)
        if refreshed is None:
            raise WaybillNotFoundError(waybill_id)

        logger.info(
            "waybill_updated",
            extra={**log_extra, "status": refreshed.status.value},
        )
        return refreshed

    @staticmethod
    def _validate(current: Waybill, request: WaybillUpdateRequest) -> WaybillStatus:
        if not quantity_in_range(request.quantity):
            raise WaybillValidationError(
                "QUANTITY_OUT_OF_RANGE",
                f"Quantity must be between {QUANTITY_MIN} and {QUANTITY_MAX}",
            )

        if request.delivery_date < current.waybill_date:
            raise WaybillValidationError(
                "DELIVERY_DATE_BEFORE_WAYBILL",
                "Delivery date cannot be earlier than waybill date",
            )

        if not total_matches(request.quantity, request.unit_price, request.total_amount):
            raise WaybillValidationError(
                "TOTAL_MISMATCH",
                "Total amount must equal quantity * unit price",
            )

        if not request.product_code or not request.product_code.strip():
            raise WaybillValidationError(
                "PRODUCT_CODE_REQUIRED", "Product code is required",
            )

        target = parse_status(request.status)
        if target is None:
            raise WaybillValidationError(
                "INVALID_STATUS", f"Unknown status: {request.status!r}",
            )

        source = current.status_enum
        if not is_valid_transition(source, target):
            allowed = ", ".join(sorted(s.value for s in allowed_targets(source)))
            raise WaybillValidationError(
                "INVALID_STATUS_TRANSITION",
                f"Cannot change status from {source.value} to {target.value} "
                f"(allowed: {allowed})",
            )

        return target
