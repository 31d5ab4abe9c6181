"""
VersionedReadCache -- fixed-TTL cache for tenant read models.

Every key embeds the tenant's current cache version, so a committed write
that bumps the version makes older entries unreachable at once.  They are
then dropped when they expire.  The cache is never authoritative: a miss
always recomputes from the store.
"""

from __future__ import annotations

import threading
from datetime import datetime, timedelta
from typing import Any, Callable, Mapping, TypeVar

from waybill_kernel.domain.clock import Clock, SystemClock
from waybill_kernel.logging_config import get_logger
from waybill_kernel.services.cache_version_service import CacheVersionProvider

logger = get_logger("services.read_cache")

DEFAULT_TTL_SECONDS = 60

T = TypeVar("T")

CacheKey = tuple[str, str, int, tuple[tuple[str, str], ...]]


def canonical_params(params: Mapping[str, Any] | None) -> tuple[tuple[str, str], ...]:
    """Sorted (name, value) pairs; None values are dropped."""
    if not params:
        return ()
    return tuple(
        sorted((str(k), str(v)) for k, v in params.items() if v is not None)
    )


class VersionedReadCache:
    def __init__(
        self,
        versions: CacheVersionProvider,
        clock: Clock | None = None,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
    ):
        self._versions = versions
        self._clock = clock or SystemClock()
        self._ttl = timedelta(seconds=ttl_seconds)
        self._lock = threading.Lock()
        self._entries: dict[CacheKey, tuple[datetime, Any]] = {}

    def key_for(
        self, endpoint: str, tenant_id: str, params: Mapping[str, Any] | None = None,
    ) -> CacheKey:
        return (
            endpoint,
            tenant_id,
            self._versions.get_version(tenant_id),
            canonical_params(params),
        )

    def get_or_compute(
        self,
        endpoint: str,
        tenant_id: str,
        params: Mapping[str, Any] | None,
        compute: Callable[[], T],
    ) -> T:
        key = self.key_for(endpoint, tenant_id, params)
        now = self._clock.now()

        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and entry[0] > now:
                logger.debug(
                    "cache_hit",
                    extra={"endpoint": endpoint, "cache_version": key[2]},
                )
                return entry[1]

        logger.debug(
            "cache_miss",
            extra={"endpoint": endpoint, "cache_version": key[2]},
        )
        # Computed outside the lock; two concurrent misses both compute and
        # the later store wins.
        value = compute()

        with self._lock:
            self._evict_expired(now)
            self._entries[key] = (now + self._ttl, value)
        return value

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def _evict_expired(self, now: datetime) -> None:
        expired = [k for k, (expires_at, _) in self._entries.items() if expires_at <= now]
        for k in expired:
            del self._entries[k]
