"""
Waybill status vocabulary and the allowed-transition table.

Architecture position:
    Kernel > Domain -- pure, zero I/O.  Used by CSV row validation (parse by
    name) and by the optimistic update path (transition check).

Transition table:
    PENDING   -> PENDING | DELIVERED | CANCELLED
    DELIVERED -> DELIVERED | DISPUTED
    CANCELLED -> CANCELLED            (terminal)
    DISPUTED  -> DISPUTED             (terminal)

Imports are exempt: a re-import overwrites the status whatever it was.
"""

from enum import Enum


class WaybillStatus(str, Enum):
    """Lifecycle status of a waybill."""

    PENDING = "PENDING"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"
    DISPUTED = "DISPUTED"


_ALLOWED_TRANSITIONS: dict[WaybillStatus, frozenset[WaybillStatus]] = {
    WaybillStatus.PENDING: frozenset(
        {WaybillStatus.DELIVERED, WaybillStatus.CANCELLED}
    ),
    WaybillStatus.DELIVERED: frozenset({WaybillStatus.DISPUTED}),
    WaybillStatus.CANCELLED: frozenset(),
    WaybillStatus.DISPUTED: frozenset(),
}


def parse_status(value: str | None) -> WaybillStatus | None:
    """Parse a status by name, case-insensitively.  None if unrecognized."""
    if value is None:
        return None
    key = value.strip().upper()
    try:
        return WaybillStatus[key]
    except KeyError:
        return None


def is_valid_transition(
    current: WaybillStatus,
    target: WaybillStatus,
) -> bool:
    """Same-status writes are always allowed; otherwise consult the table."""
    if current == target:
        return True
    return target in _ALLOWED_TRANSITIONS[current]


def allowed_targets(current: WaybillStatus) -> frozenset[WaybillStatus]:
    return _ALLOWED_TRANSITIONS[current] | {current}
