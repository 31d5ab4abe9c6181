"""
Pytest fixtures for the waybill test suite.

Provides:
- A file-backed SQLite database per test (threads share it, so the import
  worker runs against the same store as the test body)
- Session factory, deterministic clock, cache versions, in-memory publisher
- CSV payload builder and a captured structured-log reader

Environment Variables:
- WAYBILL_TEST_DATABASE_URL: run the suite against another database (for
  example PostgreSQL).  Tables are created and dropped around each test.
"""

import json
import logging
import os
from datetime import date
from decimal import Decimal
from io import StringIO
from typing import Callable, Generator

import pytest
from sqlalchemy.orm import Session, sessionmaker

from waybill_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from waybill_kernel.domain.clock import DeterministicClock
from waybill_kernel.domain.dtos import WaybillQuery, WaybillView
from waybill_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from waybill_kernel.selectors.waybill_selector import WaybillSelector
from waybill_kernel.services.cache_version_service import InMemoryCacheVersionProvider

from waybill_ingestion.services.reconciliation_service import WaybillReconciler

from waybill_services.events import InMemoryEventPublisher

TENANT = "tenant-a"
OTHER_TENANT = "tenant-b"

CSV_HEADER = (
    "waybill_number,project,supplier,waybill_date,delivery_date,"
    "product,qty,price,total,status"
)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture waybill_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs):
            ...
            logs = captured_logs()
            assert any(r["message"] == "lease_acquired" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("waybill_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def engine(tmp_path):
    reset_engine()
    url = os.environ.get(
        "WAYBILL_TEST_DATABASE_URL", f"sqlite:///{tmp_path / 'waybills.db'}",
    )
    eng = init_engine_from_url(url)
    create_tables()
    yield eng
    drop_tables()
    reset_engine()


@pytest.fixture
def session_factory(engine) -> sessionmaker[Session]:
    return get_session_factory()


@pytest.fixture
def session(session_factory) -> Generator[Session, None, None]:
    s = session_factory()
    yield s
    s.rollback()
    s.close()


# =============================================================================
# Service fixtures
# =============================================================================


@pytest.fixture
def clock() -> DeterministicClock:
    return DeterministicClock()


@pytest.fixture
def cache_versions(clock) -> InMemoryCacheVersionProvider:
    return InMemoryCacheVersionProvider(clock)


@pytest.fixture
def publisher() -> InMemoryEventPublisher:
    return InMemoryEventPublisher()


# =============================================================================
# Data builders
# =============================================================================


def csv_row(
    number: str = "WB-1",
    project: str = "ProjA",
    supplier: str = "SupX",
    waybill_date: str = "2024-01-01",
    delivery_date: str = "2024-01-02",
    product: str = "P1",
    qty: str = "2",
    price: str = "10",
    total: str = "20",
    status: str = "PENDING",
) -> str:
    return ",".join(
        [number, project, supplier, waybill_date, delivery_date,
         product, qty, price, total, status]
    )


@pytest.fixture
def make_csv() -> Callable[..., bytes]:
    """Build a CSV payload: ``make_csv(csv_row(...), csv_row(...))``."""

    def _make(*rows: str, header: str = CSV_HEADER) -> bytes:
        return ("\n".join([header, *rows]) + "\n").encode("utf-8")

    return _make


@pytest.fixture
def import_rows(session_factory, clock, make_csv) -> Callable[..., list[WaybillView]]:
    """Import rows for a tenant and commit; returns the tenant's live waybills."""

    def _import(*rows: str, tenant_id: str = TENANT) -> list[WaybillView]:
        s = session_factory()
        try:
            WaybillReconciler(s, clock).reconcile(tenant_id, make_csv(*rows))
            s.commit()
            page = WaybillSelector(s).list_waybills(tenant_id, WaybillQuery(page_size=200))
            return list(page.items)
        finally:
            s.close()

    return _import


@pytest.fixture
def seeded_waybill(import_rows) -> WaybillView:
    """One PENDING waybill: WB-1, qty 2 x 10 = 20, dates 2024-01-01 / 01-02."""
    (view,) = import_rows(csv_row())
    assert view.quantity == Decimal("2")
    assert view.waybill_date == date(2024, 1, 1)
    return view
