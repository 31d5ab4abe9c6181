"""
ImportJobQueue -- in-process FIFO channel between request threads and the
import worker.

Contract:
    - ``put()`` never blocks.  When the queue is bounded and full it raises
      ImportQueueFullError; with ``max_size=0`` it is unbounded.
    - ``get(timeout)`` returns the oldest item, or None when nothing arrived
      within the timeout.

Non-goals:
    - Not durable.  Items queued when the process dies are lost; their job
      rows stay QUEUED and are visible to ``ImportJobService.fail_stale_jobs``.
"""

from __future__ import annotations

import queue

from waybill_kernel.exceptions import ImportQueueFullError
from waybill_kernel.logging_config import get_logger

from waybill_batch.domain.types import ImportWorkItem

logger = get_logger("batch.queue")


class ImportJobQueue:
    """Thread-safe FIFO of ImportWorkItem."""

    def __init__(self, max_size: int = 0):
        self._max_size = max_size
        self._queue: queue.Queue[ImportWorkItem] = queue.Queue(maxsize=max_size)

    @property
    def max_size(self) -> int:
        return self._max_size

    def put(self, item: ImportWorkItem) -> None:
        try:
            self._queue.put_nowait(item)
        except queue.Full:
            logger.warning(
                "import_queue_full",
                extra={"job_id": str(item.job_id), "max_size": self._max_size},
            )
            raise ImportQueueFullError(item.job_id, self._max_size) from None
        logger.debug(
            "import_job_enqueued",
            extra={"job_id": str(item.job_id), "depth": self._queue.qsize()},
        )

    def get(self, timeout: float | None = None) -> ImportWorkItem | None:
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def task_done(self) -> None:
        self._queue.task_done()

    def __len__(self) -> int:
        return self._queue.qsize()
