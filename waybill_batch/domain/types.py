"""
waybill_batch.domain.types -- pure frozen dataclasses for import jobs.

ZERO I/O.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID


class ImportJobStatus(str, Enum):
    """Import job lifecycle status."""

    QUEUED = "QUEUED"  # Recorded, waiting in the queue
    RUNNING = "RUNNING"  # Picked up by the worker
    SUCCEEDED = "SUCCEEDED"  # Import committed and announced
    FAILED = "FAILED"  # Import or bookkeeping failed; see error


VALID_JOB_TRANSITIONS: dict[ImportJobStatus, frozenset[ImportJobStatus]] = {
    ImportJobStatus.QUEUED: frozenset(
        {ImportJobStatus.RUNNING, ImportJobStatus.FAILED}
    ),
    ImportJobStatus.RUNNING: frozenset(
        {ImportJobStatus.SUCCEEDED, ImportJobStatus.FAILED}
    ),
    ImportJobStatus.SUCCEEDED: frozenset(),
    ImportJobStatus.FAILED: frozenset(),
}

TERMINAL_STATUSES = frozenset({ImportJobStatus.SUCCEEDED, ImportJobStatus.FAILED})


def can_transition(current: ImportJobStatus, target: ImportJobStatus) -> bool:
    return target in VALID_JOB_TRANSITIONS[current]


@dataclass(frozen=True)
class ImportWorkItem:
    """What the queue carries: enough to run the import without a DB read."""

    job_id: UUID
    tenant_id: str
    payload: bytes


@dataclass(frozen=True)
class ImportJob:
    """Immutable snapshot of an import job, as polled by clients."""

    job_id: UUID
    tenant_id: str
    status: ImportJobStatus
    progress_percent: int = 0
    total_rows: int = 0
    inserted_count: int = 0
    updated_count: int = 0
    rejected_count: int = 0
    error: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.job_id),
            "status": self.status.value,
            "progressPercent": self.progress_percent,
            "totalRows": self.total_rows,
            "insertedCount": self.inserted_count,
            "updatedCount": self.updated_count,
            "rejectedCount": self.rejected_count,
            "error": self.error,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }
