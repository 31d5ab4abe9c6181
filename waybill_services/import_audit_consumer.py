"""
ImportAuditConsumer -- drains the import topic into the audit trail.

Contract:
    ``drain(batch_size)`` delivers pending ``event_outbox`` messages of one
    topic in sequence order.  Each message is handled in its own transaction:
    write an ``ImportAudit`` row, mark the message delivered, commit.

Invariants enforced:
    - Idempotent: a message whose audit row already exists is only marked
      delivered.  Redelivery never duplicates an audit entry.
    - In order: the first failing message stops the batch and stays pending,
      so later messages are not delivered ahead of it.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from waybill_kernel.domain.clock import Clock, SystemClock
from waybill_kernel.exceptions import MissingTenantError
from waybill_kernel.logging_config import LogContext, get_logger

from waybill_services.events import DEFAULT_TOPIC, WaybillsImportedEvent
from waybill_services.models import ImportAudit, OutboxMessage

logger = get_logger("services.import_audit_consumer")

DEFAULT_BATCH_SIZE = 10
DEFAULT_AUDIT_LIMIT = 20


@dataclass(frozen=True)
class ImportAuditView:
    audit_id: UUID
    tenant_id: str
    import_job_id: UUID
    total_rows: int
    inserted_count: int
    updated_count: int
    rejected_count: int
    received_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.audit_id),
            "tenantId": self.tenant_id,
            "importJobId": str(self.import_job_id),
            "totalRows": self.total_rows,
            "insertedCount": self.inserted_count,
            "updatedCount": self.updated_count,
            "rejectedCount": self.rejected_count,
            "receivedAtUtc": self.received_at.isoformat(),
        }


class ImportAuditConsumer:
    """Pull consumer for the import completion topic."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        clock: Clock | None = None,
        topic: str = DEFAULT_TOPIC,
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._topic = topic

    def drain(self, batch_size: int = DEFAULT_BATCH_SIZE) -> int:
        """Deliver up to ``batch_size`` pending messages.  Returns how many."""
        pending = self._pending_ids(batch_size)
        delivered = 0
        for message_id in pending:
            try:
                self._deliver(message_id)
            except Exception:
                logger.error(
                    "import_audit_delivery_failed",
                    extra={"message_id": str(message_id)},
                    exc_info=True,
                )
                break
            delivered += 1
        return delivered

    def latest_audits(
        self, tenant_id: str, limit: int = DEFAULT_AUDIT_LIMIT,
    ) -> list[ImportAuditView]:
        if not tenant_id or not tenant_id.strip():
            raise MissingTenantError("list_import_audits")

        session = self._session_factory()
        try:
            rows = session.execute(
                select(ImportAudit)
                .where(ImportAudit.tenant_id == tenant_id.strip())
                .order_by(ImportAudit.received_at.desc(), ImportAudit.created_at.desc())
                .limit(limit)
            ).scalars().all()
            return [
                ImportAuditView(
                    audit_id=row.id,
                    tenant_id=row.tenant_id,
                    import_job_id=row.import_job_id,
                    total_rows=row.total_rows,
                    inserted_count=row.inserted_count,
                    updated_count=row.updated_count,
                    rejected_count=row.rejected_count,
                    received_at=row.received_at,
                )
                for row in rows
            ]
        finally:
            session.close()

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _pending_ids(self, batch_size: int) -> list[UUID]:
        session = self._session_factory()
        try:
            return list(
                session.execute(
                    select(OutboxMessage.id)
                    .where(
                        OutboxMessage.topic == self._topic,
                        OutboxMessage.delivered_at.is_(None),
                    )
                    .order_by(OutboxMessage.sequence)
                    .limit(batch_size)
                ).scalars()
            )
        finally:
            session.close()

    def _deliver(self, message_id: UUID) -> None:
        session = self._session_factory()
        try:
            message = session.get(OutboxMessage, message_id)
            if message is None or message.delivered_at is not None:
                session.rollback()
                return

            event = WaybillsImportedEvent.from_payload(message.payload)
            with LogContext.bind(
                tenant_id=event.tenant_id,
                correlation_id=str(event.import_job_id),
            ):
                logger.info("import_audit_consume_started")

                already = session.execute(
                    select(ImportAudit.id).where(ImportAudit.message_id == message.id)
                ).scalar_one_or_none()
                now = self._clock.now()
                if already is None:
                    session.add(
                        ImportAudit(
                            id=uuid4(),
                            tenant_id=event.tenant_id,
                            message_id=message.id,
                            import_job_id=event.import_job_id,
                            total_rows=event.total_rows,
                            inserted_count=event.inserted_count,
                            updated_count=event.updated_count,
                            rejected_count=event.rejected_count,
                            received_at=now,
                            created_at=now,
                            updated_at=now,
                        )
                    )
                else:
                    logger.info(
                        "import_audit_redelivery_skipped",
                        extra={"message_id": str(message.id)},
                    )

                message.delivered_at = now
                message.updated_at = now
                session.commit()
                logger.info("import_audit_consume_completed")
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()
