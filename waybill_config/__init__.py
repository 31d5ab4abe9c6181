"""
waybill_config -- single entrypoint for runtime settings.

``load_settings()`` is the only way components obtain configuration.  No
service reads YAML files or environment variables on its own; the runtime
composition root loads settings once and passes the relevant values down.
"""

from waybill_config.loader import load_settings
from waybill_config.schema import (
    CacheSettings,
    DatabaseSettings,
    EventSettings,
    ImportSettings,
    LockSettings,
    WaybillSettings,
)

__all__ = [
    "CacheSettings",
    "DatabaseSettings",
    "EventSettings",
    "ImportSettings",
    "LockSettings",
    "WaybillSettings",
    "load_settings",
]
