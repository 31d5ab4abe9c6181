"""Numeric business rules shared by CSV validation and waybill updates."""

from decimal import Decimal

QUANTITY_MIN = Decimal("0.5")
QUANTITY_MAX = Decimal("50")
TOTAL_TOLERANCE = Decimal("0.01")


def quantity_in_range(quantity: Decimal) -> bool:
    return QUANTITY_MIN <= quantity <= QUANTITY_MAX


def total_matches(quantity: Decimal, unit_price: Decimal, total_amount: Decimal) -> bool:
    """True when |quantity * unit_price - total_amount| <= 0.01."""
    return abs(quantity * unit_price - total_amount) <= TOTAL_TOLERANCE
