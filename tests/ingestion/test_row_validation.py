"""Tests for cell coercion and per-row classification."""

from datetime import date
from decimal import Decimal

import pytest
from hypothesis import given
from hypothesis import strategies as st

from waybill_kernel.domain.status import WaybillStatus

from waybill_ingestion.domain import validators as v
from waybill_ingestion.mapping import headers as h
from waybill_ingestion.mapping.coercion import coerce_date, coerce_decimal

TENANT = "tenant-a"


def _fields(**overrides):
    fields = {
        h.TENANT_ID: None,
        h.WAYBILL_NUMBER: "WB-1",
        h.PROJECT_NAME: "ProjA",
        h.SUPPLIER_NAME: "SupX",
        h.WAYBILL_DATE: "2024-01-01",
        h.DELIVERY_DATE: "2024-01-02",
        h.PRODUCT_CODE: "P1",
        h.QUANTITY: "2",
        h.UNIT_PRICE: "10",
        h.TOTAL_AMOUNT: "20",
        h.STATUS: "PENDING",
    }
    fields.update(overrides)
    return fields


class TestCoerceDecimal:
    @pytest.mark.parametrize(
        "raw,expected",
        [("2", "2"), ("-1.5", "-1.5"), ("1,234.50", "1234.50"), (" 7 ", "7"), (".5", "0.5")],
    )
    def test_invariant_format(self, raw, expected):
        result = coerce_decimal(raw)
        assert result.success and result.value == Decimal(expected)

    @pytest.mark.parametrize("raw", [None, "", "abc", "1.2.3", "1,23", "NaN", "Infinity", "1e5", "-"])
    def test_rejected(self, raw):
        assert not coerce_decimal(raw).success

    @given(st.decimals(min_value=-10**9, max_value=10**9, places=3, allow_nan=False))
    def test_plain_decimals_parse_exactly(self, value):
        result = coerce_decimal(f"{value:f}")
        assert result.success and result.value == value


class TestCoerceDate:
    @pytest.mark.parametrize(
        "raw",
        ["2024-03-05", "2024/03/05", "03/05/2024", "05.03.2024", "5 Mar 2024",
         "March 5, 2024", "2024-03-05T10:00:00Z"],
    )
    def test_supported_layouts(self, raw):
        result = coerce_date(raw)
        assert result.success and result.value == date(2024, 3, 5)

    @pytest.mark.parametrize("raw", [None, "", "yesterday", "2024-13-01", "31/31/2024"])
    def test_rejected(self, raw):
        assert not coerce_date(raw).success


class TestClassifyRow:
    def test_accepted_row_is_typed(self):
        result = v.classify_row(2, _fields(), TENANT)
        assert result.accepted
        assert result.row.status is WaybillStatus.PENDING
        assert result.row.quantity == Decimal("2")
        assert result.row.delivery_date == date(2024, 1, 2)

    def test_unparseable_line(self):
        result = v.classify_row(3, None, TENANT)
        assert result.errors == (v.INVALID_ROW,)

    def test_all_errors_are_accumulated(self):
        result = v.classify_row(
            2,
            _fields(**{
                h.WAYBILL_NUMBER: None,
                h.SUPPLIER_NAME: None,
                h.QUANTITY: "x",
                h.STATUS: "SHIPPED",
            }),
            TENANT,
        )
        assert not result.accepted
        assert result.errors == (
            v.WAYBILL_NUMBER_REQUIRED,
            v.SUPPLIER_NAME_REQUIRED,
            v.INVALID_QUANTITY,
            v.INVALID_STATUS,
        )

    def test_tenant_mismatch(self):
        result = v.classify_row(2, _fields(**{h.TENANT_ID: "tenant-b"}), TENANT)
        assert result.errors == (v.TENANT_MISMATCH,)

    def test_matching_tenant_column_is_case_insensitive(self):
        assert v.classify_row(2, _fields(**{h.TENANT_ID: "TENANT-A"}), TENANT).accepted

    def test_delivery_before_waybill(self):
        result = v.classify_row(2, _fields(**{h.DELIVERY_DATE: "2023-12-31"}), TENANT)
        assert result.errors == (v.DELIVERY_BEFORE_WAYBILL,)

    @pytest.mark.parametrize("qty", ["0.4", "50.01"])
    def test_quantity_bounds(self, qty):
        result = v.classify_row(2, _fields(**{h.QUANTITY: qty}), TENANT)
        assert v.QUANTITY_OUT_OF_RANGE in result.errors

    @pytest.mark.parametrize("qty", ["0.5", "50"])
    def test_quantity_bounds_are_inclusive(self, qty):
        total = str(Decimal(qty) * 10)
        fields = _fields(**{h.QUANTITY: qty, h.TOTAL_AMOUNT: total})
        assert v.classify_row(2, fields, TENANT).accepted

    def test_missing_status_is_invalid(self):
        result = v.classify_row(2, _fields(**{h.STATUS: None}), TENANT)
        assert result.errors == (v.INVALID_STATUS,)

    def test_price_discrepancy_is_only_a_warning(self):
        result = v.classify_row(2, _fields(**{h.TOTAL_AMOUNT: "25"}), TENANT)
        assert result.accepted
        assert result.warnings == (v.PRICE_DISCREPANCY,)
        assert result.row.total_amount == Decimal("25")

    def test_within_tolerance_has_no_warning(self):
        result = v.classify_row(2, _fields(**{h.TOTAL_AMOUNT: "20.01"}), TENANT)
        assert result.accepted and result.warnings == ()
