"""
String coercion for CSV cells: dates and decimals.  Pure, ZERO I/O.

Numbers use the invariant format: optional sign, ``,`` as thousands
separator, ``.`` as decimal point.  NaN and infinities are rejected.

Dates accept ISO ``YYYY-MM-DD``, ISO date-times (the date part is kept) and
a fixed set of common layouts.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any

_NUMBER = re.compile(r"^[+-]?(\d{1,3}(,\d{3})+|\d+)?(\.\d+)?$")

_DATE_FORMATS = (
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%m/%d/%Y",
    "%d.%m.%Y",
    "%d %b %Y",
    "%b %d %Y",
    "%d %B %Y",
    "%B %d, %Y",
    "%B %d %Y",
)


@dataclass(frozen=True)
class CoercionResult:
    """Result of coercing a string to a target type."""

    success: bool
    value: Any = None


_FAILED = CoercionResult(success=False)


def coerce_decimal(value: str | None) -> CoercionResult:
    if value is None:
        return _FAILED
    s = value.strip()
    if not s or not _NUMBER.match(s) or not any(ch.isdigit() for ch in s):
        return _FAILED
    try:
        parsed = Decimal(s.replace(",", ""))
    except InvalidOperation:
        return _FAILED
    if not parsed.is_finite():
        return _FAILED
    return CoercionResult(success=True, value=parsed)


def coerce_date(value: str | None) -> CoercionResult:
    if value is None:
        return _FAILED
    s = value.strip()
    if not s:
        return _FAILED
    for fmt in _DATE_FORMATS:
        try:
            return CoercionResult(success=True, value=datetime.strptime(s, fmt).date())
        except ValueError:
            continue
    try:
        parsed = datetime.fromisoformat(s.replace("Z", "+00:00"))
    except ValueError:
        return _FAILED
    return CoercionResult(success=True, value=parsed.date())
