"""
Header alias resolution: maps whatever column names a supplier CSV uses onto
the canonical waybill fields.

Matching ignores case, whitespace, underscores and hyphens, so
``Waybill Number``, ``waybill_number`` and ``WAYBILL-NUMBER`` are one header.
Each field has an ordered alias list; when a file carries more than one
alias for a field, the earliest alias in the list wins.  ZERO I/O.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Mapping

_SEPARATORS = re.compile(r"[\s_\-]+")

TENANT_ID = "tenant_id"
WAYBILL_NUMBER = "waybill_number"
PROJECT_NAME = "project_name"
SUPPLIER_NAME = "supplier_name"
WAYBILL_DATE = "waybill_date"
DELIVERY_DATE = "delivery_date"
PRODUCT_CODE = "product_code"
QUANTITY = "quantity"
UNIT_PRICE = "unit_price"
TOTAL_AMOUNT = "total_amount"
STATUS = "status"

FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    TENANT_ID: ("tenant_id", "tenantid", "tenant"),
    WAYBILL_NUMBER: (
        "waybill_number", "waybillNumber", "waybill_id", "waybillId", "waybill",
    ),
    PROJECT_NAME: ("project_name", "projectname", "project"),
    SUPPLIER_NAME: ("supplier_name", "suppliername", "supplier"),
    WAYBILL_DATE: ("waybill_date", "waybilldate", "waybill date"),
    DELIVERY_DATE: ("delivery_date", "deliverydate", "delivery date"),
    PRODUCT_CODE: ("product_code", "productcode", "product"),
    QUANTITY: ("quantity", "qty"),
    UNIT_PRICE: ("unit_price", "unitprice", "price"),
    TOTAL_AMOUNT: ("total_amount", "totalamount", "total"),
    STATUS: ("status", "waybill_status"),
}


def normalize_header(name: str) -> str:
    return _SEPARATORS.sub("", name).lower()


@dataclass(frozen=True)
class HeaderMap:
    """Resolved field -> source column name for one file."""

    columns: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_columns(cls, header: tuple[str, ...] | list[str]) -> HeaderMap:
        by_key: dict[str, str] = {}
        for name in header:
            by_key.setdefault(normalize_header(name), name)

        resolved: dict[str, str] = {}
        for target, aliases in FIELD_ALIASES.items():
            for alias in aliases:
                column = by_key.get(normalize_header(alias))
                if column is not None:
                    resolved[target] = column
                    break
        return cls(columns=resolved)

    def extract(self, values: Mapping[str, str]) -> dict[str, str | None]:
        """Trimmed value per canonical field; blank or absent becomes None."""
        out: dict[str, str | None] = {}
        for target in FIELD_ALIASES:
            column = self.columns.get(target)
            raw = values.get(column) if column is not None else None
            raw = raw.strip() if raw is not None else None
            out[target] = raw or None
        return out

    def missing(self) -> tuple[str, ...]:
        return tuple(t for t in FIELD_ALIASES if t not in self.columns)
