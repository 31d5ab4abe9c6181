"""Tests for the versioned read cache and the cached query facade."""

import pytest

from waybill_kernel.domain.dtos import WaybillQuery
from waybill_kernel.domain.status import WaybillStatus
from waybill_kernel.exceptions import MissingTenantError

from waybill_services.query_service import CachedWaybillQueries
from waybill_services.read_cache import VersionedReadCache, canonical_params

from tests.conftest import OTHER_TENANT, TENANT, csv_row


class Counter:
    def __init__(self):
        self.calls = 0

    def __call__(self):
        self.calls += 1
        return self.calls


@pytest.fixture
def cache(cache_versions, clock) -> VersionedReadCache:
    return VersionedReadCache(cache_versions, clock, ttl_seconds=60)


class TestCanonicalParams:
    def test_order_and_none_values(self):
        assert canonical_params({"b": 2, "a": "x", "c": None}) == (("a", "x"), ("b", "2"))
        assert canonical_params(None) == ()
        assert canonical_params({"a": 1, "b": 2}) == canonical_params({"b": 2, "a": 1})


class TestVersionedReadCache:
    def test_hit_within_ttl(self, cache):
        compute = Counter()
        assert cache.get_or_compute("waybills", TENANT, {"page": 1}, compute) == 1
        assert cache.get_or_compute("waybills", TENANT, {"page": 1}, compute) == 1
        assert compute.calls == 1

    def test_expiry(self, cache, clock):
        compute = Counter()
        cache.get_or_compute("summary", TENANT, None, compute)
        clock.advance(60)
        assert cache.get_or_compute("summary", TENANT, None, compute) == 2

    def test_version_bump_invalidates(self, cache, cache_versions):
        compute = Counter()
        cache.get_or_compute("summary", TENANT, None, compute)
        cache_versions.increment(TENANT, "import-sync")
        assert cache.get_or_compute("summary", TENANT, None, compute) == 2

    def test_keys_are_tenant_and_param_scoped(self, cache, cache_versions):
        compute = Counter()
        cache.get_or_compute("waybills", TENANT, {"page": 1}, compute)
        cache.get_or_compute("waybills", OTHER_TENANT, {"page": 1}, compute)
        cache.get_or_compute("waybills", TENANT, {"page": 2}, compute)
        cache.get_or_compute("summary", TENANT, {"page": 1}, compute)
        assert compute.calls == 4

        cache_versions.increment(OTHER_TENANT, "import-sync")
        assert cache.get_or_compute("waybills", TENANT, {"page": 1}, compute) == 1

    def test_expired_entries_are_evicted_on_store(self, cache, clock):
        cache.get_or_compute("summary", TENANT, None, Counter())
        clock.advance(120)
        cache.get_or_compute("summary", OTHER_TENANT, None, Counter())
        assert len(cache) == 1
        cache.clear()
        assert len(cache) == 0

    def test_compute_errors_are_not_cached(self, cache):
        def boom():
            raise RuntimeError("db down")

        with pytest.raises(RuntimeError):
            cache.get_or_compute("summary", TENANT, None, boom)
        assert len(cache) == 0


class TestCachedWaybillQueries:
    def test_listing_is_cached_until_bump(
        self, session_factory, cache, cache_versions, import_rows,
    ):
        import_rows(csv_row(number="WB-1"))
        queries = CachedWaybillQueries(session_factory, cache)

        assert queries.list_waybills(TENANT, WaybillQuery()).total_count == 1

        import_rows(csv_row(number="WB-2"))
        assert queries.list_waybills(TENANT, WaybillQuery()).total_count == 1

        cache_versions.increment(TENANT, "import-sync")
        assert queries.list_waybills(TENANT, WaybillQuery()).total_count == 2

    def test_filters_are_part_of_the_key(self, session_factory, cache, import_rows):
        import_rows(csv_row(number="WB-1"), csv_row(number="WB-2", status="DELIVERED"))
        queries = CachedWaybillQueries(session_factory, cache)

        assert queries.list_waybills(TENANT, WaybillQuery()).total_count == 2
        delivered = queries.list_waybills(TENANT, WaybillQuery(status=WaybillStatus.DELIVERED))
        assert delivered.total_count == 1

    def test_summary_is_cached(self, session_factory, cache, cache_versions, import_rows):
        queries = CachedWaybillQueries(session_factory, cache)
        assert queries.summary(TENANT).status_totals == ()

        import_rows(csv_row())
        assert queries.summary(TENANT).status_totals == ()
        cache_versions.increment(TENANT, "import-sync")
        assert len(queries.summary(TENANT).status_totals) == 1

    def test_detail_is_never_cached(self, session_factory, cache, seeded_waybill):
        queries = CachedWaybillQueries(session_factory, cache)
        assert queries.get_waybill(TENANT, seeded_waybill.id).waybill_number == "WB-1"
        assert queries.get_waybill(OTHER_TENANT, seeded_waybill.id) is None
        assert len(cache) == 0

    def test_blank_tenant(self, session_factory, cache):
        queries = CachedWaybillQueries(session_factory, cache)
        with pytest.raises(MissingTenantError):
            queries.list_waybills(" ", WaybillQuery())
        with pytest.raises(MissingTenantError):
            queries.summary("")
