"""
SQLAlchemy ORM persistence models for the services layer.

Responsibility
--------------
``OutboxMessage`` is the durable topic: one row per published integration
event, delivered to consumers in insertion order.  ``ImportAudit`` is the
consumer-side record of each completed import.

Architecture position
---------------------
**Services layer** -- ORM models consumed by ``OutboxEventPublisher`` and
``ImportAuditConsumer``.  Inherit from the kernel db base classes.

Invariants enforced
-------------------
* An outbox row is never modified after insert except to set
  ``delivered_at``.
* ``ImportAudit.message_id`` is unique: redelivering a message cannot produce
  a second audit row.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, BigInteger, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from waybill_kernel.db.base import TenantOwnedMixin, TrackedBase, UUIDString

# ---------------------------------------------------------------------------
# OutboxMessage
# ---------------------------------------------------------------------------


class OutboxMessage(TenantOwnedMixin, TrackedBase):
    """
    One message on a durable topic.

    ``sequence`` orders delivery; ``delivered_at`` is NULL until a consumer
    has processed the message.
    """

    __tablename__ = "event_outbox"

    __table_args__ = (
        Index("ix_event_outbox_topic_pending", "topic", "delivered_at"),
    )

    sequence: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"),
        nullable=False,
        unique=True,
    )
    topic: Mapped[str] = mapped_column(String(200), nullable=False)
    correlation_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    published_at: Mapped[datetime] = mapped_column(nullable=False)
    delivered_at: Mapped[datetime | None] = mapped_column(nullable=True)


# ---------------------------------------------------------------------------
# ImportAudit
# ---------------------------------------------------------------------------


class ImportAudit(TenantOwnedMixin, TrackedBase):
    """Audit trail entry written once per delivered import event."""

    __tablename__ = "import_audits"

    __table_args__ = (
        Index("ix_import_audits_tenant_received", "tenant_id", "received_at"),
    )

    message_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False, unique=True)
    import_job_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    total_rows: Mapped[int] = mapped_column(Integer, nullable=False)
    inserted_count: Mapped[int] = mapped_column(Integer, nullable=False)
    updated_count: Mapped[int] = mapped_column(Integer, nullable=False)
    rejected_count: Mapped[int] = mapped_column(Integer, nullable=False)
    received_at: Mapped[datetime] = mapped_column(nullable=False)
