"""
ImportJobWorker -- the single background consumer of the import queue.

Contract:
    Takes one work item at a time, in arrival order, and drives its job row
    through RUNNING to SUCCEEDED or FAILED around a call to the injected
    import runner.

Architecture: waybill_batch/services.  The runner is anything with
    ``run(tenant_id, payload, import_job_id=..., reason=...)`` returning an
    object with total_rows / inserted_count / updated_count / rejected_count
    (the services-layer import orchestrator in production).

Invariants enforced:
    - All timestamps from the injected Clock.
    - One job at a time: there is exactly one consumer thread.
    - Failure bookkeeping happens in a FRESH session, so a poisoned import
      session cannot block the FAILED write.  If even that write fails the
      job is left RUNNING and ``import_job_stuck`` is logged at error level.
    - Graceful shutdown: ``stop()`` is observed between items; the in-flight
      job always runs to completion.
"""

from __future__ import annotations

import threading
from typing import Any, Callable, Protocol

from sqlalchemy.orm import Session

from waybill_kernel.domain.clock import Clock, SystemClock
from waybill_kernel.exceptions import (
    ImportJobNotFoundError,
    InvalidJobTransitionError,
)
from waybill_kernel.logging_config import LogContext, get_logger

from waybill_batch.domain.types import ImportWorkItem
from waybill_batch.services.job_service import ImportJobService
from waybill_batch.services.queue import ImportJobQueue

logger = get_logger("batch.worker")

DEFAULT_PROGRESS_MARKER = 10
IMPORT_REASON = "import-async"


class ImportRunner(Protocol):
    def run(
        self,
        tenant_id: str,
        payload: bytes,
        import_job_id: Any = None,
        cancel_event: threading.Event | None = None,
        reason: str = ...,
    ) -> Any:
        ...


class ImportJobWorker:
    """Background thread that drains an ImportJobQueue.

    Contract:
        - ``process_next()`` handles at most one item (public for testing).
        - ``start()`` / ``stop()`` for background thread operation.

    Non-goals:
        - No retries: a failed job stays FAILED; the client re-submits.
        - No cancellation of dequeued jobs.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        job_queue: ImportJobQueue,
        runner: ImportRunner,
        clock: Clock | None = None,
        progress_marker: int = DEFAULT_PROGRESS_MARKER,
        poll_interval_seconds: float = 1.0,
    ):
        self._session_factory = session_factory
        self._queue = job_queue
        self._runner = runner
        self._clock = clock or SystemClock()
        self._progress_marker = progress_marker
        self._poll_interval = poll_interval_seconds
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def process_next(self, timeout: float | None = 0) -> bool:
        """Process one queued item if any arrives within ``timeout``.

        Returns True if an item was taken off the queue.
        """
        item = self._queue.get(timeout=timeout)
        if item is None:
            return False
        try:
            with LogContext.bind(
                tenant_id=item.tenant_id,
                job_id=str(item.job_id),
                correlation_id=str(item.job_id),
            ):
                self._process(item)
        finally:
            self._queue.task_done()
        return True

    def start(self) -> None:
        """Start the worker in a background thread."""
        if self._thread is not None and self._thread.is_alive():
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run_loop,
            name="import-job-worker",
            daemon=True,
        )
        self._thread.start()
        logger.info("import_worker_started")

    def stop(self, timeout: float = 30.0) -> None:
        """Signal stop and wait for the in-flight item to finish.

        Args:
            timeout: Max seconds to wait for the thread to finish.
        """
        self._stop_event.set()
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=timeout)
        logger.info("import_worker_stopped")

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _run_loop(self) -> None:
        """Drain loop.  Exits when stop_event is set."""
        while not self._stop_event.is_set():
            try:
                self.process_next(timeout=self._poll_interval)
            except Exception:
                logger.exception("import_worker_loop_exception")

    def _process(self, item: ImportWorkItem) -> None:
        try:
            if not self._mark_running(item):
                return

            result = self._runner.run(
                item.tenant_id,
                item.payload,
                import_job_id=item.job_id,
                reason=IMPORT_REASON,
            )

            session = self._session_factory()
            try:
                ImportJobService(session, self._clock).mark_succeeded(
                    item.job_id,
                    total_rows=result.total_rows,
                    inserted_count=result.inserted_count,
                    updated_count=result.updated_count,
                    rejected_count=result.rejected_count,
                )
                session.commit()
            except Exception:
                session.rollback()
                raise
            finally:
                session.close()

        except Exception as exc:
            logger.exception("import_job_processing_failed")
            self._record_failure(item, exc)

    def _mark_running(self, item: ImportWorkItem) -> bool:
        session = self._session_factory()
        try:
            ImportJobService(session, self._clock).mark_running(
                item.job_id, self._progress_marker,
            )
            session.commit()
            return True
        except ImportJobNotFoundError:
            session.rollback()
            logger.warning("import_job_missing_skipped")
            return False
        except InvalidJobTransitionError as exc:
            session.rollback()
            logger.warning(
                "import_job_not_runnable_skipped",
                extra={"from_status": exc.from_status},
            )
            return False
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def _record_failure(self, item: ImportWorkItem, exc: Exception) -> None:
        session = self._session_factory()
        try:
            ImportJobService(session, self._clock).mark_failed(
                item.job_id, str(exc) or type(exc).__name__,
            )
            session.commit()
        except Exception:
            session.rollback()
            logger.error("import_job_stuck", exc_info=True)
        finally:
            session.close()
