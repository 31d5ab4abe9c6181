"""
Row validators for waybill CSV import.

Each validator returns a list of error codes (empty when the row passes that
check).  ``classify_row`` runs them in a fixed order and accumulates every
code, so a rejected row reports all of its problems at once.

Architecture: waybill_ingestion/domain.  ZERO I/O.  Imports only from
waybill_kernel/domain/ and the pure mapping helpers.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from waybill_kernel.domain.rules import quantity_in_range, total_matches
from waybill_kernel.domain.status import WaybillStatus, parse_status

from waybill_ingestion.domain.types import RowClassification, WaybillRow
from waybill_ingestion.mapping import headers as h
from waybill_ingestion.mapping.coercion import coerce_date, coerce_decimal

INVALID_ROW = "INVALID_ROW"
TENANT_MISMATCH = "TENANT_MISMATCH"
WAYBILL_NUMBER_REQUIRED = "WAYBILL_NUMBER_REQUIRED"
PROJECT_NAME_REQUIRED = "PROJECT_NAME_REQUIRED"
SUPPLIER_NAME_REQUIRED = "SUPPLIER_NAME_REQUIRED"
PRODUCT_CODE_REQUIRED = "PRODUCT_CODE_REQUIRED"
INVALID_WAYBILL_DATE = "INVALID_WAYBILL_DATE"
INVALID_DELIVERY_DATE = "INVALID_DELIVERY_DATE"
DELIVERY_BEFORE_WAYBILL = "DELIVERY_BEFORE_WAYBILL"
INVALID_QUANTITY = "INVALID_QUANTITY"
QUANTITY_OUT_OF_RANGE = "QUANTITY_OUT_OF_RANGE"
INVALID_UNIT_PRICE = "INVALID_UNIT_PRICE"
INVALID_TOTAL_AMOUNT = "INVALID_TOTAL_AMOUNT"
INVALID_STATUS = "INVALID_STATUS"

PRICE_DISCREPANCY = "PRICE_DISCREPANCY"

_REQUIRED = (
    (h.WAYBILL_NUMBER, WAYBILL_NUMBER_REQUIRED),
    (h.PROJECT_NAME, PROJECT_NAME_REQUIRED),
    (h.SUPPLIER_NAME, SUPPLIER_NAME_REQUIRED),
    (h.PRODUCT_CODE, PRODUCT_CODE_REQUIRED),
)

Fields = dict[str, str | None]


# -----------------------------------------------------------------------------
# Individual checks
# -----------------------------------------------------------------------------


def validate_tenant(fields: Fields, tenant_id: str) -> list[str]:
    """A row may name its tenant; if it does, it must be the request's tenant."""
    row_tenant = fields.get(h.TENANT_ID)
    if row_tenant and row_tenant.casefold() != tenant_id.strip().casefold():
        return [TENANT_MISMATCH]
    return []


def validate_required_fields(fields: Fields) -> list[str]:
    return [code for name, code in _REQUIRED if not fields.get(name)]


def validate_dates(
    fields: Fields,
) -> tuple[list[str], date | None, date | None]:
    errors: list[str] = []
    waybill_date = coerce_date(fields.get(h.WAYBILL_DATE))
    if not waybill_date.success:
        errors.append(INVALID_WAYBILL_DATE)
    delivery_date = coerce_date(fields.get(h.DELIVERY_DATE))
    if not delivery_date.success:
        errors.append(INVALID_DELIVERY_DATE)
    if (
        waybill_date.success
        and delivery_date.success
        and delivery_date.value < waybill_date.value
    ):
        errors.append(DELIVERY_BEFORE_WAYBILL)
    return errors, waybill_date.value, delivery_date.value


def validate_amounts(
    fields: Fields,
) -> tuple[list[str], Decimal | None, Decimal | None, Decimal | None]:
    errors: list[str] = []
    quantity = coerce_decimal(fields.get(h.QUANTITY))
    if not quantity.success:
        errors.append(INVALID_QUANTITY)
    elif not quantity_in_range(quantity.value):
        errors.append(QUANTITY_OUT_OF_RANGE)

    unit_price = coerce_decimal(fields.get(h.UNIT_PRICE))
    if not unit_price.success:
        errors.append(INVALID_UNIT_PRICE)

    total = coerce_decimal(fields.get(h.TOTAL_AMOUNT))
    if not total.success:
        errors.append(INVALID_TOTAL_AMOUNT)

    return errors, quantity.value, unit_price.value, total.value


def validate_status(fields: Fields) -> tuple[list[str], WaybillStatus | None]:
    status = parse_status(fields.get(h.STATUS))
    if status is None:
        return [INVALID_STATUS], None
    return [], status


def check_price_discrepancy(
    quantity: Decimal | None,
    unit_price: Decimal | None,
    total: Decimal | None,
) -> list[str]:
    """Warning only: the supplied total is kept even when it disagrees."""
    if quantity is None or unit_price is None or total is None:
        return []
    if total_matches(quantity, unit_price, total):
        return []
    return [PRICE_DISCREPANCY]


# -----------------------------------------------------------------------------
# Row classification
# -----------------------------------------------------------------------------


def classify_row(
    row_number: int,
    fields: Fields | None,
    tenant_id: str,
) -> RowClassification:
    """
    Validate one row.  ``fields`` is None for a line the parser could not read.

    Returns a RowClassification that is either rejected (errors, no row) or
    accepted (typed row, possibly with warnings).
    """
    if fields is None:
        return RowClassification(row_number=row_number, errors=(INVALID_ROW,))

    errors: list[str] = []
    errors.extend(validate_tenant(fields, tenant_id))
    errors.extend(validate_required_fields(fields))

    date_errors, waybill_date, delivery_date = validate_dates(fields)
    errors.extend(date_errors)

    amount_errors, quantity, unit_price, total = validate_amounts(fields)
    errors.extend(amount_errors)

    status_errors, status = validate_status(fields)
    errors.extend(status_errors)

    warnings = check_price_discrepancy(quantity, unit_price, total)

    if errors:
        return RowClassification(
            row_number=row_number,
            errors=tuple(errors),
            warnings=tuple(warnings),
        )

    return RowClassification(
        row_number=row_number,
        warnings=tuple(warnings),
        row=WaybillRow(
            row_number=row_number,
            waybill_number=fields[h.WAYBILL_NUMBER],
            project_name=fields[h.PROJECT_NAME],
            supplier_name=fields[h.SUPPLIER_NAME],
            waybill_date=waybill_date,
            delivery_date=delivery_date,
            product_code=fields[h.PRODUCT_CODE],
            quantity=quantity,
            unit_price=unit_price,
            total_amount=total,
            status=status,
        ),
    )
