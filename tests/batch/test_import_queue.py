"""Tests for the in-process import job queue."""

from uuid import uuid4

import pytest

from waybill_kernel.exceptions import ImportQueueFullError

from waybill_batch.domain.types import ImportWorkItem
from waybill_batch.services.queue import ImportJobQueue


def _item(payload: bytes = b"x") -> ImportWorkItem:
    return ImportWorkItem(job_id=uuid4(), tenant_id="tenant-a", payload=payload)


class TestImportJobQueue:
    def test_fifo_order(self):
        q = ImportJobQueue()
        first, second = _item(b"1"), _item(b"2")
        q.put(first)
        q.put(second)
        assert len(q) == 2
        assert q.get(timeout=0) == first
        assert q.get(timeout=0) == second

    def test_get_times_out_with_none(self):
        assert ImportJobQueue().get(timeout=0.01) is None

    def test_unbounded_by_default(self):
        q = ImportJobQueue()
        for _ in range(1000):
            q.put(_item())
        assert len(q) == 1000
        assert q.max_size == 0

    def test_bounded_queue_rejects_when_full(self):
        q = ImportJobQueue(max_size=1)
        q.put(_item())
        rejected = _item()
        with pytest.raises(ImportQueueFullError) as exc_info:
            q.put(rejected)
        assert exc_info.value.code == "IMPORT_QUEUE_FULL"
        assert len(q) == 1

    def test_space_frees_after_get(self):
        q = ImportJobQueue(max_size=1)
        q.put(_item())
        q.get(timeout=0)
        q.task_done()
        q.put(_item())
        assert len(q) == 1
