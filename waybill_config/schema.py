"""
WaybillSettings schema.

Typed, frozen view of the runtime configuration.  YAML documents are parsed
into these types by the loader; nothing else in the system reads YAML or the
environment directly.
"""

from __future__ import annotations

from dataclasses import dataclass, field

# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DatabaseSettings:
    """Connection settings handed to ``init_engine_from_url``."""

    url: str
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10


@dataclass(frozen=True)
class CacheSettings:
    default_ttl_seconds: int = 60
    version_idle_seconds: int = 21600  # 6h without a touch resets to 1


@dataclass(frozen=True)
class ImportSettings:
    queue_max_size: int = 0  # 0 = unbounded
    progress_start_marker: int = 10
    stale_job_after_seconds: int = 3600


@dataclass(frozen=True)
class LockSettings:
    monthly_report_seconds: int = 600


@dataclass(frozen=True)
class EventSettings:
    topic: str = "waybills.imported"
    exchange: str = "waybills"


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class WaybillSettings:
    """Complete runtime configuration."""

    database: DatabaseSettings
    cache: CacheSettings = field(default_factory=CacheSettings)
    imports: ImportSettings = field(default_factory=ImportSettings)
    locks: LockSettings = field(default_factory=LockSettings)
    events: EventSettings = field(default_factory=EventSettings)
