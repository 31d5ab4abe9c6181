"""
LeaseLockService -- named, per-tenant, time-bounded mutual exclusion.

Responsibility:
    Guards long-running tenant operations (the monthly report) so that at most
    one caller runs each one per tenant at a time, across processes that
    share the relational store.

Architecture position:
    Kernel > Services.  Unlike session-bound services it owns its sessions:
    every acquire and release is its own short transaction, so the lease is
    visible to other callers as soon as the call returns.

Invariants enforced:
    - First acquisition is an INSERT guarded by UNIQUE(tenant_id, lock_name);
      a concurrent loser sees IntegrityError and gets False.
    - Takeover of an expired lease is one conditional UPDATE
      (``... WHERE expires_at < now``).  Of two callers racing for the same
      expired lease, exactly one sees rowcount 1.
    - A live lease is never granted twice.
    - Release is idempotent.

Non-goals:
    - No fencing tokens, no ownership check on release, no renewal.  A holder
      that outlives its duration may overlap with the next holder.
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import timedelta
from typing import Callable, Iterator

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from waybill_kernel.domain.clock import Clock, SystemClock
from waybill_kernel.exceptions import OperationAlreadyRunningError
from waybill_kernel.logging_config import get_logger
from waybill_kernel.models.execution_lease import ExecutionLease

logger = get_logger("services.lease_lock")


class LeaseLockService:
    """Acquire and release execution leases stored in ``execution_leases``."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        clock: Clock | None = None,
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()

    def try_acquire(
        self,
        tenant_id: str,
        lock_name: str,
        duration: timedelta,
        holder: str | None = None,
    ) -> bool:
        """Return True if the caller now holds the lease until now + duration."""
        now = self._clock.now()
        expires_at = now + duration
        log_extra = {"tenant_id": tenant_id, "lock_name": lock_name, "holder": holder}

        session = self._session_factory()
        try:
            existing = session.execute(
                select(ExecutionLease.id).where(
                    ExecutionLease.tenant_id == tenant_id,
                    ExecutionLease.lock_name == lock_name,
                )
            ).scalar_one_or_none()

            if existing is None:
                session.add(
                    ExecutionLease(
                        tenant_id=tenant_id,
                        lock_name=lock_name,
                        acquired_at=now,
                        expires_at=expires_at,
                        acquired_by=holder,
                    )
                )
                session.commit()
                logger.info(
                    "lease_acquired",
                    extra={**log_extra, "expires_at": expires_at},
                )
                return True

            result = session.execute(
                update(ExecutionLease)
                .where(
                    ExecutionLease.tenant_id == tenant_id,
                    ExecutionLease.lock_name == lock_name,
                    ExecutionLease.expires_at < now,
                )
                .values(acquired_at=now, expires_at=expires_at, acquired_by=holder)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 1:
                session.commit()
                logger.info(
                    "lease_taken_over_after_expiry",
                    extra={**log_extra, "expires_at": expires_at},
                )
                return True

            session.rollback()
            logger.info("lease_contended", extra=log_extra)
            return False

        except IntegrityError:
            session.rollback()
            logger.info("lease_lost_insert_race", extra=log_extra)
            return False
        finally:
            session.close()

    def release(self, tenant_id: str, lock_name: str) -> None:
        """Delete the lease row if present.  Releasing a free lease is a no-op."""
        session = self._session_factory()
        try:
            result = session.execute(
                delete(ExecutionLease)
                .where(
                    ExecutionLease.tenant_id == tenant_id,
                    ExecutionLease.lock_name == lock_name,
                )
                .execution_options(synchronize_session=False)
            )
            session.commit()
            if result.rowcount:
                logger.info(
                    "lease_released",
                    extra={"tenant_id": tenant_id, "lock_name": lock_name},
                )
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    @contextmanager
    def held(
        self,
        tenant_id: str,
        lock_name: str,
        duration: timedelta,
        holder: str | None = None,
    ) -> Iterator[None]:
        """
        Run a block under the lease.

        Raises:
            OperationAlreadyRunningError: if the lease is live elsewhere.
        """
        if not self.try_acquire(tenant_id, lock_name, duration, holder):
            raise OperationAlreadyRunningError(tenant_id, lock_name)
        try:
            yield
        finally:
            self.release(tenant_id, lock_name)
