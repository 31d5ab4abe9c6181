"""
Configuration Loader (``waybill_config.loader``).

Responsibility
--------------
Loads a YAML settings document and parses it into the frozen
``waybill_config.schema`` dataclasses, then applies the small set of
supported environment overrides.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing ``database.url``  -> ``KeyError``.
* Non-integer numeric setting (file or environment)  -> ``ValueError``.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Mapping

import yaml

from waybill_config.schema import (
    CacheSettings,
    DatabaseSettings,
    EventSettings,
    ImportSettings,
    LockSettings,
    WaybillSettings,
)

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"

ENV_DATABASE_URL = "WAYBILL_DATABASE_URL"
ENV_DATABASE_URL_FALLBACK = "DATABASE_URL"
ENV_CACHE_TTL = "WAYBILL_CACHE_TTL_SECONDS"
ENV_QUEUE_MAX_SIZE = "WAYBILL_IMPORT_QUEUE_MAX_SIZE"


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_int(value: Any, key: str) -> int:
    """Parse an integer setting; booleans and fractions are rejected."""
    if isinstance(value, bool):
        raise ValueError(f"{key}: expected an integer, got {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            raise ValueError(f"{key}: expected an integer, got {value!r}") from None
    raise ValueError(f"{key}: expected an integer, got {value!r}")


def parse_bool(value: Any, key: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "1", "yes"):
        return True
    if isinstance(value, str) and value.strip().lower() in ("false", "0", "no"):
        return False
    raise ValueError(f"{key}: expected a boolean, got {value!r}")


def parse_settings(data: dict[str, Any]) -> WaybillSettings:
    """
    Parse a ``WaybillSettings`` from a dict.

    Only ``database.url`` is required; every other key falls back to the
    schema default.

    Raises:
        KeyError: if ``database`` or ``database.url`` is missing.
        ValueError: if a numeric or boolean field cannot be parsed.
    """
    db = data["database"]
    cache = data.get("cache") or {}
    imports = data.get("imports") or {}
    locks = data.get("locks") or {}
    events = data.get("events") or {}

    cache_defaults = CacheSettings()
    import_defaults = ImportSettings()
    lock_defaults = LockSettings()
    event_defaults = EventSettings()

    return WaybillSettings(
        database=DatabaseSettings(
            url=db["url"],
            echo=parse_bool(db.get("echo", False), "database.echo"),
            pool_size=parse_int(db.get("pool_size", 20), "database.pool_size"),
            max_overflow=parse_int(db.get("max_overflow", 10), "database.max_overflow"),
        ),
        cache=CacheSettings(
            default_ttl_seconds=parse_int(
                cache.get("default_ttl_seconds", cache_defaults.default_ttl_seconds),
                "cache.default_ttl_seconds",
            ),
            version_idle_seconds=parse_int(
                cache.get("version_idle_seconds", cache_defaults.version_idle_seconds),
                "cache.version_idle_seconds",
            ),
        ),
        imports=ImportSettings(
            queue_max_size=parse_int(
                imports.get("queue_max_size", import_defaults.queue_max_size),
                "imports.queue_max_size",
            ),
            progress_start_marker=parse_int(
                imports.get("progress_start_marker", import_defaults.progress_start_marker),
                "imports.progress_start_marker",
            ),
            stale_job_after_seconds=parse_int(
                imports.get("stale_job_after_seconds", import_defaults.stale_job_after_seconds),
                "imports.stale_job_after_seconds",
            ),
        ),
        locks=LockSettings(
            monthly_report_seconds=parse_int(
                locks.get("monthly_report_seconds", lock_defaults.monthly_report_seconds),
                "locks.monthly_report_seconds",
            ),
        ),
        events=EventSettings(
            topic=str(events.get("topic", event_defaults.topic)),
            exchange=str(events.get("exchange", event_defaults.exchange)),
        ),
    )


def apply_env_overrides(data: dict[str, Any], env: Mapping[str, str]) -> dict[str, Any]:
    """Return a copy of ``data`` with supported environment overrides applied."""
    merged = {key: dict(value or {}) for key, value in data.items()}

    url = env.get(ENV_DATABASE_URL) or env.get(ENV_DATABASE_URL_FALLBACK)
    if url:
        merged.setdefault("database", {})["url"] = url
    if env.get(ENV_CACHE_TTL):
        merged.setdefault("cache", {})["default_ttl_seconds"] = parse_int(
            env[ENV_CACHE_TTL], ENV_CACHE_TTL,
        )
    if env.get(ENV_QUEUE_MAX_SIZE):
        merged.setdefault("imports", {})["queue_max_size"] = parse_int(
            env[ENV_QUEUE_MAX_SIZE], ENV_QUEUE_MAX_SIZE,
        )
    return merged


def load_settings(
    path: Path | str | None = None,
    env: Mapping[str, str] | None = None,
) -> WaybillSettings:
    """
    Load settings from ``path`` (packaged defaults when None), then apply
    environment overrides from ``env`` (``os.environ`` when None).
    """
    data = load_yaml_file(Path(path) if path is not None else DEFAULTS_PATH)
    data = apply_env_overrides(data, os.environ if env is None else env)
    return parse_settings(data)
