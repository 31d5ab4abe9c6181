"""
Import completion events and their publishers.

Contract:
    One ``WaybillsImportedEvent`` is published per successful import, after
    the import's writes have committed.  Publishers implement
    ``publish_waybills_imported(event)``.

Architecture: waybill_services.  ``OutboxEventPublisher`` is the durable
    topic: each event becomes one row of ``event_outbox`` committed in its own
    transaction.  ``ImportAuditConsumer`` drains that table.

Invariants enforced:
    - Outbox sequence numbers come from a locked counter and are strictly
      increasing; consumers see events in publish order.
    - A publisher failure is never silent: it is logged and surfaces as
      EventPublishError.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Protocol, runtime_checkable
from uuid import UUID, uuid4

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from waybill_kernel.domain.clock import Clock, SystemClock
from waybill_kernel.exceptions import EventPublishError
from waybill_kernel.logging_config import get_logger
from waybill_kernel.services.sequence_service import SequenceService

from waybill_services.models import OutboxMessage

logger = get_logger("services.events")

DEFAULT_TOPIC = "waybills.imported"
_SEQUENCE_ATTEMPTS = 3


@dataclass(frozen=True)
class WaybillsImportedEvent:
    """Integration event emitted when an import finishes."""

    tenant_id: str
    import_job_id: UUID
    total_rows: int
    inserted_count: int
    updated_count: int
    rejected_count: int
    occurred_at: datetime

    def to_payload(self) -> dict[str, Any]:
        return {
            "tenantId": self.tenant_id,
            "importJobId": str(self.import_job_id),
            "totalRows": self.total_rows,
            "insertedCount": self.inserted_count,
            "updatedCount": self.updated_count,
            "rejectedCount": self.rejected_count,
            "occurredAtUtc": self.occurred_at.isoformat(),
        }

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> WaybillsImportedEvent:
        """
        Raises:
            KeyError: a required key is missing.
            ValueError: the job id or timestamp is malformed.
        """
        return cls(
            tenant_id=payload["tenantId"],
            import_job_id=UUID(str(payload["importJobId"])),
            total_rows=int(payload["totalRows"]),
            inserted_count=int(payload["insertedCount"]),
            updated_count=int(payload["updatedCount"]),
            rejected_count=int(payload["rejectedCount"]),
            occurred_at=datetime.fromisoformat(payload["occurredAtUtc"]),
        )


@runtime_checkable
class EventPublisher(Protocol):
    def publish_waybills_imported(self, event: WaybillsImportedEvent) -> None:
        ...


class OutboxEventPublisher:
    """Writes events to the ``event_outbox`` table, one commit per event."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        clock: Clock | None = None,
        topic: str = DEFAULT_TOPIC,
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._topic = topic

    @property
    def topic(self) -> str:
        return self._topic

    def publish_waybills_imported(self, event: WaybillsImportedEvent) -> None:
        """
        Raises:
            EventPublishError: the message could not be committed.
        """
        try:
            message_id = self._append(event)
        except SQLAlchemyError as exc:
            logger.error(
                "event_publish_failed",
                extra={"topic": self._topic, "import_job_id": str(event.import_job_id)},
                exc_info=True,
            )
            raise EventPublishError(self._topic, event.import_job_id, str(exc)) from exc

        logger.info(
            "event_published",
            extra={
                "topic": self._topic,
                "message_id": str(message_id),
                "import_job_id": str(event.import_job_id),
            },
        )

    def _append(self, event: WaybillsImportedEvent) -> UUID:
        # Two first publishers can both create the sequence counter; the
        # unique constraint rejects the loser, which retries.
        attempt = 0
        while True:
            attempt += 1
            session = self._session_factory()
            try:
                sequence = SequenceService(session).next_value(
                    SequenceService.OUTBOX_MESSAGE,
                )
                now = self._clock.now()
                message = OutboxMessage(
                    id=uuid4(),
                    tenant_id=event.tenant_id,
                    sequence=sequence,
                    topic=self._topic,
                    correlation_id=event.import_job_id,
                    payload=event.to_payload(),
                    published_at=now,
                    delivered_at=None,
                    created_at=now,
                    updated_at=now,
                )
                session.add(message)
                session.commit()
                return message.id
            except IntegrityError:
                session.rollback()
                if attempt >= _SEQUENCE_ATTEMPTS:
                    raise
                logger.debug("outbox_sequence_retry", extra={"attempt": attempt})
            except Exception:
                session.rollback()
                raise
            finally:
                session.close()


class InMemoryEventPublisher:
    """Keeps published events in a list.  For tests and single-process use."""

    def __init__(self) -> None:
        self._events: list[WaybillsImportedEvent] = []
        self._lock = threading.Lock()

    def publish_waybills_imported(self, event: WaybillsImportedEvent) -> None:
        with self._lock:
            self._events.append(event)
        logger.info(
            "event_published",
            extra={"topic": "memory", "import_job_id": str(event.import_job_id)},
        )

    @property
    def events(self) -> list[WaybillsImportedEvent]:
        with self._lock:
            return list(self._events)
