"""Tests for LeaseLockService -- per-tenant execution leases."""

from datetime import timedelta

import pytest

from waybill_kernel.exceptions import OperationAlreadyRunningError
from waybill_kernel.services.lease_lock_service import LeaseLockService

TEN_MINUTES = timedelta(minutes=10)


@pytest.fixture
def leases(session_factory, clock) -> LeaseLockService:
    return LeaseLockService(session_factory, clock)


class TestTryAcquire:
    def test_free_lease_is_acquired(self, leases):
        assert leases.try_acquire("t1", "MONTHLY_REPORT", TEN_MINUTES, holder="a")

    def test_live_lease_is_contended(self, leases):
        assert leases.try_acquire("t1", "MONTHLY_REPORT", TEN_MINUTES)
        assert not leases.try_acquire("t1", "MONTHLY_REPORT", TEN_MINUTES)

    def test_leases_are_per_tenant_and_name(self, leases):
        assert leases.try_acquire("t1", "MONTHLY_REPORT", TEN_MINUTES)
        assert leases.try_acquire("t2", "MONTHLY_REPORT", TEN_MINUTES)
        assert leases.try_acquire("t1", "OTHER", TEN_MINUTES)

    def test_expired_lease_is_taken_over(self, leases, clock, captured_logs):
        assert leases.try_acquire("t1", "MONTHLY_REPORT", TEN_MINUTES, holder="a")
        clock.advance(TEN_MINUTES.total_seconds() + 1)
        assert leases.try_acquire("t1", "MONTHLY_REPORT", TEN_MINUTES, holder="b")
        assert any(
            r["message"] == "lease_taken_over_after_expiry" for r in captured_logs()
        )

    def test_lease_exactly_at_expiry_is_still_held(self, leases, clock):
        assert leases.try_acquire("t1", "MONTHLY_REPORT", TEN_MINUTES)
        clock.advance(TEN_MINUTES.total_seconds())
        assert not leases.try_acquire("t1", "MONTHLY_REPORT", TEN_MINUTES)

    def test_only_one_of_two_takeovers_wins(self, leases, clock):
        assert leases.try_acquire("t1", "MONTHLY_REPORT", TEN_MINUTES)
        clock.advance(TEN_MINUTES.total_seconds() + 1)
        first = leases.try_acquire("t1", "MONTHLY_REPORT", TEN_MINUTES)
        second = leases.try_acquire("t1", "MONTHLY_REPORT", TEN_MINUTES)
        assert (first, second) == (True, False)


class TestRelease:
    def test_release_frees_the_lease(self, leases):
        assert leases.try_acquire("t1", "MONTHLY_REPORT", TEN_MINUTES)
        leases.release("t1", "MONTHLY_REPORT")
        assert leases.try_acquire("t1", "MONTHLY_REPORT", TEN_MINUTES)

    def test_release_is_idempotent(self, leases):
        leases.release("t1", "MONTHLY_REPORT")
        leases.release("t1", "MONTHLY_REPORT")


class TestHeld:
    def test_held_releases_on_exit(self, leases):
        with leases.held("t1", "MONTHLY_REPORT", TEN_MINUTES):
            assert not leases.try_acquire("t1", "MONTHLY_REPORT", TEN_MINUTES)
        assert leases.try_acquire("t1", "MONTHLY_REPORT", TEN_MINUTES)

    def test_held_releases_on_error(self, leases):
        with pytest.raises(RuntimeError):
            with leases.held("t1", "MONTHLY_REPORT", TEN_MINUTES):
                raise RuntimeError("boom")
        assert leases.try_acquire("t1", "MONTHLY_REPORT", TEN_MINUTES)

    def test_held_raises_on_contention(self, leases):
        assert leases.try_acquire("t1", "MONTHLY_REPORT", TEN_MINUTES)
        with pytest.raises(OperationAlreadyRunningError) as exc_info:
            with leases.held("t1", "MONTHLY_REPORT", TEN_MINUTES):
                pass
        assert exc_info.value.lock_name == "MONTHLY_REPORT"
