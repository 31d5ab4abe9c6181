"""
Per-tenant cache version counters.

Responsibility:
    Hands out a monotonically increasing integer per tenant that is baked
    into every read-cache key.  Bumping it after a committed write makes all
    earlier cached entries for that tenant unreachable without enumerating
    or deleting them.

Invariants enforced:
    - An unknown tenant, or one whose counter sat idle past the idle
      lifetime, reads as 1.
    - ``increment`` is atomic per process: two concurrent increments from N
      produce N+1 and N+2, never N+1 twice.
    - Every read or increment slides the idle lifetime forward.

Non-goals:
    - Not shared across processes.  A multi-node deployment swaps in a
      distributed implementation behind the same CacheVersionProvider protocol.
"""

from __future__ import annotations

import threading
from datetime import datetime, timedelta
from typing import Protocol, runtime_checkable

from waybill_kernel.domain.clock import Clock, SystemClock
from waybill_kernel.logging_config import get_logger

logger = get_logger("services.cache_version")

INITIAL_VERSION = 1
DEFAULT_IDLE_SECONDS = 6 * 60 * 60


@runtime_checkable
class CacheVersionProvider(Protocol):
    """Source of per-tenant cache versions."""

    def get_version(self, tenant_id: str) -> int:
        ...

    def increment(self, tenant_id: str, reason: str) -> int:
        ...


class InMemoryCacheVersionProvider:
    """Process-local, lock-protected version map with sliding idle expiry."""

    def __init__(
        self,
        clock: Clock | None = None,
        idle_seconds: int = DEFAULT_IDLE_SECONDS,
    ):
        self._clock = clock or SystemClock()
        self._idle = timedelta(seconds=idle_seconds)
        self._lock = threading.Lock()
        self._versions: dict[str, tuple[int, datetime]] = {}

    def get_version(self, tenant_id: str) -> int:
        with self._lock:
            now = self._clock.now()
            version = self._current(tenant_id, now)
            self._versions[tenant_id] = (version, now)
            return version

    def increment(self, tenant_id: str, reason: str) -> int:
        with self._lock:
            now = self._clock.now()
            version = self._current(tenant_id, now) + 1
            self._versions[tenant_id] = (version, now)

        logger.info(
            "cache_version_incremented",
            extra={"tenant_id": tenant_id, "version": version, "reason": reason},
        )
        return version

    def _current(self, tenant_id: str, now: datetime) -> int:
        entry = self._versions.get(tenant_id)
        if entry is None:
            return INITIAL_VERSION
        version, touched = entry
        if now - touched > self._idle:
            return INITIAL_VERSION
        return version
