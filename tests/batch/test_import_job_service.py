"""Tests for ImportJobService: create, poll, transitions and the stale sweep."""

from uuid import uuid4

import pytest

from waybill_kernel.exceptions import (
    ImportJobNotFoundError,
    InvalidJobTransitionError,
    MissingTenantError,
)

from waybill_batch.domain.types import ImportJobStatus, can_transition
from waybill_batch.services.job_service import STALE_JOB_ERROR, ImportJobService

from tests.conftest import OTHER_TENANT, TENANT


@pytest.fixture
def jobs(session, clock) -> ImportJobService:
    return ImportJobService(session, clock)


class TestTransitionTable:
    @pytest.mark.parametrize(
        "current,target,allowed",
        [
            (ImportJobStatus.QUEUED, ImportJobStatus.RUNNING, True),
            (ImportJobStatus.QUEUED, ImportJobStatus.FAILED, True),
            (ImportJobStatus.QUEUED, ImportJobStatus.SUCCEEDED, False),
            (ImportJobStatus.RUNNING, ImportJobStatus.SUCCEEDED, True),
            (ImportJobStatus.RUNNING, ImportJobStatus.FAILED, True),
            (ImportJobStatus.RUNNING, ImportJobStatus.QUEUED, False),
            (ImportJobStatus.SUCCEEDED, ImportJobStatus.FAILED, False),
            (ImportJobStatus.FAILED, ImportJobStatus.RUNNING, False),
        ],
    )
    def test_can_transition(self, current, target, allowed):
        assert can_transition(current, target) is allowed


class TestCreateAndPoll:
    def test_new_job_is_queued(self, jobs):
        job = jobs.create_job(TENANT)
        assert job.status is ImportJobStatus.QUEUED
        assert job.progress_percent == 0
        assert job.error is None
        assert not job.is_terminal

        polled = jobs.get_job(TENANT, job.job_id)
        assert polled.job_id == job.job_id
        assert polled.to_dict()["status"] == "QUEUED"

    def test_blank_tenant_rejected(self, jobs):
        with pytest.raises(MissingTenantError):
            jobs.create_job(" ")

    def test_other_tenant_cannot_see_job(self, jobs):
        job = jobs.create_job(TENANT)
        with pytest.raises(ImportJobNotFoundError):
            jobs.get_job(OTHER_TENANT, job.job_id)

    def test_unknown_job(self, jobs):
        with pytest.raises(ImportJobNotFoundError) as exc_info:
            jobs.get_job(TENANT, uuid4())
        assert exc_info.value.code == "IMPORT_JOB_NOT_FOUND"


class TestTransitions:
    def test_happy_path(self, jobs, clock):
        job = jobs.create_job(TENANT)
        running = jobs.mark_running(job.job_id, 10)
        assert running.status is ImportJobStatus.RUNNING
        assert running.progress_percent == 10

        clock.advance(5)
        done = jobs.mark_succeeded(
            job.job_id, total_rows=3, inserted_count=1, updated_count=1, rejected_count=1,
        )
        assert done.status is ImportJobStatus.SUCCEEDED
        assert done.progress_percent == 100
        assert (done.total_rows, done.inserted_count, done.updated_count, done.rejected_count) == (3, 1, 1, 1)
        assert done.is_terminal

    def test_failure_records_error(self, jobs):
        job = jobs.create_job(TENANT)
        jobs.mark_running(job.job_id, 10)
        failed = jobs.mark_failed(job.job_id, "boom")
        assert failed.status is ImportJobStatus.FAILED
        assert failed.progress_percent == 100
        assert failed.error == "boom"
        assert failed.total_rows == 0

    def test_queued_job_can_fail_directly(self, jobs):
        job = jobs.create_job(TENANT)
        assert jobs.mark_failed(job.job_id, "IMPORT_QUEUE_FULL").status is ImportJobStatus.FAILED

    def test_terminal_jobs_never_change(self, jobs):
        job = jobs.create_job(TENANT)
        jobs.mark_running(job.job_id, 10)
        jobs.mark_succeeded(job.job_id, 1, 1, 0, 0)
        with pytest.raises(InvalidJobTransitionError) as exc_info:
            jobs.mark_failed(job.job_id, "late")
        assert exc_info.value.code == "INVALID_JOB_TRANSITION"

    def test_cannot_succeed_without_running(self, jobs):
        job = jobs.create_job(TENANT)
        with pytest.raises(InvalidJobTransitionError):
            jobs.mark_succeeded(job.job_id, 0, 0, 0, 0)

    def test_transition_of_unknown_job(self, jobs):
        with pytest.raises(ImportJobNotFoundError):
            jobs.mark_running(uuid4(), 10)


class TestStaleSweep:
    def test_only_old_unfinished_jobs_are_failed(self, jobs, clock):
        stuck_running = jobs.create_job(TENANT)
        jobs.mark_running(stuck_running.job_id, 10)
        stuck_queued = jobs.create_job(TENANT)
        finished = jobs.create_job(TENANT)
        jobs.mark_running(finished.job_id, 10)
        jobs.mark_succeeded(finished.job_id, 0, 0, 0, 0)

        clock.advance(3600)
        fresh = jobs.create_job(TENANT)
        cutoff = clock.now()
        clock.advance(1)

        swept = jobs.fail_stale_jobs(cutoff)

        assert set(swept) == {stuck_running.job_id, stuck_queued.job_id}
        assert jobs.get_job(TENANT, stuck_running.job_id).error == STALE_JOB_ERROR
        assert jobs.get_job(TENANT, fresh.job_id).status is ImportJobStatus.QUEUED
        assert jobs.get_job(TENANT, finished.job_id).status is ImportJobStatus.SUCCEEDED

    def test_nothing_to_sweep(self, jobs, clock):
        assert jobs.fail_stale_jobs(clock.now()) == []
