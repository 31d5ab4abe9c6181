"""
Tests for WaybillUpdateService -- optimistic-concurrency edits.

Covers the validation order, the row-version token contract and the
conditional write that settles concurrent edits.
"""

from dataclasses import replace
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from waybill_kernel.domain.dtos import WaybillUpdateRequest
from waybill_kernel.domain.status import WaybillStatus
from waybill_kernel.exceptions import (
    MissingTenantError,
    OptimisticLockError,
    WaybillNotFoundError,
    WaybillValidationError,
)
from waybill_kernel.services.waybill_update_service import WaybillUpdateService

from tests.conftest import OTHER_TENANT, TENANT, csv_row


def _request(view, **overrides) -> WaybillUpdateRequest:
    base = WaybillUpdateRequest(
        delivery_date=date(2024, 1, 3),
        product_code="P2",
        quantity=Decimal("3"),
        unit_price=Decimal("10"),
        total_amount=Decimal("30"),
        status="DELIVERED",
        row_version=view.row_version,
    )
    return replace(base, **overrides)


def _update(session_factory, tenant_id, waybill_id, request):
    s = session_factory()
    try:
        view = WaybillUpdateService(s).update(tenant_id, waybill_id, request)
        s.commit()
        return view
    except Exception:
        s.rollback()
        raise
    finally:
        s.close()


class TestSuccessfulUpdate:
    def test_applies_fields_and_rotates_token(self, session_factory, seeded_waybill):
        updated = _update(session_factory, TENANT, seeded_waybill.id, _request(seeded_waybill))

        assert updated.status is WaybillStatus.DELIVERED
        assert updated.quantity == Decimal("3")
        assert updated.total_amount == Decimal("30")
        assert updated.product_code == "P2"
        assert updated.delivery_date == date(2024, 1, 3)
        assert updated.row_version != seeded_waybill.row_version

    def test_total_within_tolerance_is_accepted(self, session_factory, seeded_waybill):
        request = _request(seeded_waybill, total_amount=Decimal("30.01"))
        updated = _update(session_factory, TENANT, seeded_waybill.id, request)
        assert updated.total_amount == Decimal("30.01")

    def test_same_status_is_allowed(self, session_factory, seeded_waybill):
        request = _request(seeded_waybill, status="PENDING")
        updated = _update(session_factory, TENANT, seeded_waybill.id, request)
        assert updated.status is WaybillStatus.PENDING


class TestConcurrency:
    def test_stale_token_conflicts(self, session_factory, seeded_waybill):
        _update(session_factory, TENANT, seeded_waybill.id, _request(seeded_waybill))

        with pytest.raises(OptimisticLockError):
            _update(
                session_factory,
                TENANT,
                seeded_waybill.id,
                _request(seeded_waybill, quantity=Decimal("4"), total_amount=Decimal("40")),
            )

    def test_two_edits_from_same_read_exactly_one_wins(self, session_factory, seeded_waybill):
        outcomes = []
        for qty, total in ((Decimal("4"), Decimal("40")), (Decimal("5"), Decimal("50"))):
            try:
                _update(
                    session_factory,
                    TENANT,
                    seeded_waybill.id,
                    _request(seeded_waybill, quantity=qty, total_amount=total),
                )
                outcomes.append("ok")
            except OptimisticLockError:
                outcomes.append("conflict")
        assert outcomes == ["ok", "conflict"]


class TestValidation:
    @pytest.mark.parametrize(
        "overrides,code",
        [
            ({"quantity": Decimal("0.4"), "total_amount": Decimal("4")}, "QUANTITY_OUT_OF_RANGE"),
            ({"quantity": Decimal("51"), "total_amount": Decimal("510")}, "QUANTITY_OUT_OF_RANGE"),
            ({"delivery_date": date(2023, 12, 31)}, "DELIVERY_DATE_BEFORE_WAYBILL"),
            ({"total_amount": Decimal("30.02")}, "TOTAL_MISMATCH"),
            ({"product_code": "   "}, "PRODUCT_CODE_REQUIRED"),
            ({"status": "SHIPPED"}, "INVALID_STATUS"),
            ({"status": "DISPUTED"}, "INVALID_STATUS_TRANSITION"),
            ({"row_version": None}, "ROW_VERSION_MISSING"),
            ({"row_version": "%%%"}, "ROW_VERSION_INVALID"),
        ],
    )
    def test_rule_codes(self, session_factory, seeded_waybill, overrides, code):
        with pytest.raises(WaybillValidationError) as exc_info:
            _update(
                session_factory, TENANT, seeded_waybill.id,
                _request(seeded_waybill, **overrides),
            )
        assert exc_info.value.code == code

    def test_quantity_checked_before_dates(self, session_factory, seeded_waybill):
        request = _request(
            seeded_waybill,
            quantity=Decimal("60"),
            total_amount=Decimal("600"),
            delivery_date=date(2020, 1, 1),
        )
        with pytest.raises(WaybillValidationError) as exc_info:
            _update(session_factory, TENANT, seeded_waybill.id, request)
        assert exc_info.value.code == "QUANTITY_OUT_OF_RANGE"

    def test_token_checked_before_lookup(self, session_factory):
        request = WaybillUpdateRequest(
            delivery_date=date(2024, 1, 3),
            product_code="P1",
            quantity=Decimal("1"),
            unit_price=Decimal("1"),
            total_amount=Decimal("1"),
            status="PENDING",
            row_version=None,
        )
        with pytest.raises(WaybillValidationError) as exc_info:
            _update(session_factory, TENANT, uuid4(), request)
        assert exc_info.value.code == "ROW_VERSION_MISSING"

    def test_terminal_status_cannot_leave(self, session_factory, import_rows):
        (cancelled,) = import_rows(csv_row(status="CANCELLED"))
        with pytest.raises(WaybillValidationError) as exc_info:
            _update(
                session_factory, TENANT, cancelled.id,
                _request(cancelled, status="PENDING"),
            )
        assert exc_info.value.code == "INVALID_STATUS_TRANSITION"

    def test_rejection_leaves_row_untouched(self, session_factory, seeded_waybill):
        with pytest.raises(WaybillValidationError):
            _update(
                session_factory, TENANT, seeded_waybill.id,
                _request(seeded_waybill, total_amount=Decimal("99")),
            )
        # the original token still works
        updated = _update(session_factory, TENANT, seeded_waybill.id, _request(seeded_waybill))
        assert updated.status is WaybillStatus.DELIVERED


class TestScoping:
    def test_unknown_id_is_not_found(self, session_factory, seeded_waybill):
        with pytest.raises(WaybillNotFoundError):
            _update(session_factory, TENANT, uuid4(), _request(seeded_waybill))

    def test_other_tenant_is_not_found(self, session_factory, seeded_waybill):
        with pytest.raises(WaybillNotFoundError):
            _update(session_factory, OTHER_TENANT, seeded_waybill.id, _request(seeded_waybill))

    def test_blank_tenant(self, session_factory, seeded_waybill):
        with pytest.raises(MissingTenantError):
            _update(session_factory, "  ", seeded_waybill.id, _request(seeded_waybill))
