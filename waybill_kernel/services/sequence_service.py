"""
SequenceService -- monotonic numbering from locked counter rows.

Responsibility:
    Hands out strictly increasing integers per named sequence.  The event
    outbox numbers its messages with it so consumers can deliver in publish
    order.

Architecture position:
    Kernel > Services.  Flush-only: the value is consumed when the caller's
    transaction commits and returned to the pool if it rolls back.

Invariants enforced:
    - The next value always comes from the counter row, read under
      ``SELECT ... FOR UPDATE``.  Aggregating MAX(sequence) + 1 over the
      numbered table is never used.
    - First use of a name inserts the counter row.  Two first uses racing
      each other surface as IntegrityError; the caller retries its
      transaction.
"""

from sqlalchemy import BigInteger, String, select
from sqlalchemy.orm import Mapped, Session, mapped_column

from waybill_kernel.db.base import Base
from waybill_kernel.logging_config import get_logger

logger = get_logger("services.sequence")


class SequenceCounter(Base):
    """Current value of one named sequence."""

    __tablename__ = "sequence_counters"

    name: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    current_value: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)


class SequenceService:
    OUTBOX_MESSAGE = "outbox_message"

    def __init__(self, session: Session):
        self._session = session

    def next_value(self, sequence_name: str) -> int:
        """Allocate the next value (always > 0) of ``sequence_name``."""
        counter = self._locked(sequence_name)
        if counter is None:
            self._session.add(SequenceCounter(name=sequence_name, current_value=1))
            self._session.flush()
            logger.debug(
                "sequence_counter_created",
                extra={"sequence_name": sequence_name},
            )
            return 1

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value

    def current_value(self, sequence_name: str) -> int | None:
        return self._session.execute(
            select(SequenceCounter.current_value).where(
                SequenceCounter.name == sequence_name
            )
        ).scalar_one_or_none()

    def _locked(self, sequence_name: str) -> SequenceCounter | None:
        return self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
