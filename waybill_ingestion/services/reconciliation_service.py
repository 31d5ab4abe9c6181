"""
WaybillReconciler -- classify CSV rows and upsert accepted ones in one batch.

Contract:
    ``reconcile(tenant_id, payload)`` reads the CSV, classifies every row,
    resolves projects/suppliers (creating missing ones), inserts new waybills
    and overwrites existing ones, then flushes ONCE.  The caller commits.

Architecture: waybill_ingestion/services.  Imports from waybill_kernel
    (models, clock, logging, exceptions) and waybill_ingestion domain/mapping.

Invariants enforced:
    - Tenant isolation: every lookup filters on tenant_id; every created row
      carries it.
    - Set-based lookups: distinct project names, supplier names and waybill
      numbers are each fetched with one IN query (chunked), never per row.
    - Case-insensitive identity: "WB-1" and "wb-1" are the same waybill;
      "Acme" and "ACME" are the same supplier.
    - Later rows win: a number repeated within the file is applied as an
      update of the earlier row (one insert + one update).
    - Soft-deleted waybills still own their number.  A re-import updates
      them in place and leaves the deletion flag alone.
    - Cancellation is checked between rows and before the flush.  Nothing is
      flushed from a cancelled run.
"""

from __future__ import annotations

import threading
from datetime import datetime
from typing import Iterable, Iterator, Sequence, TypeVar

from sqlalchemy import select
from sqlalchemy.orm import Session

from waybill_kernel.domain.clock import Clock, SystemClock
from waybill_kernel.domain.row_version import new_row_version
from waybill_kernel.exceptions import ImportCancelledError, MissingTenantError
from waybill_kernel.logging_config import LogContext, get_logger
from waybill_kernel.models.reference import Project, Supplier, name_key
from waybill_kernel.models.waybill import Waybill, number_key

from waybill_ingestion.adapters.base import Payload, SourceAdapter
from waybill_ingestion.adapters.csv_adapter import CsvSourceAdapter, read_text
from waybill_ingestion.domain.types import (
    ImportResult,
    RejectedRow,
    RowClassification,
    RowWarning,
    WaybillRow,
)
from waybill_ingestion.domain.validators import classify_row
from waybill_ingestion.mapping.headers import HeaderMap

logger = get_logger("ingestion.reconciliation")

_IN_CHUNK = 500

T = TypeVar("T")


def _chunks(items: Sequence[T], size: int = _IN_CHUNK) -> Iterator[Sequence[T]]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


class WaybillReconciler:
    """Turns one CSV payload into one atomic set of waybill writes."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        adapter: SourceAdapter | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._adapter = adapter or CsvSourceAdapter()

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def reconcile(
        self,
        tenant_id: str,
        payload: Payload,
        cancel_event: threading.Event | None = None,
    ) -> ImportResult:
        """
        Validate and upsert every row of ``payload`` for ``tenant_id``.

        Raises:
            MissingTenantError: blank tenant.
            ImportCancelledError: ``cancel_event`` was set before the flush.
            sqlalchemy.exc.SQLAlchemyError: the batch write failed.
        """
        if not tenant_id or not tenant_id.strip():
            raise MissingTenantError("import")
        tenant_id = tenant_id.strip()

        with LogContext.bind(tenant_id=tenant_id):
            classifications = self._classify(tenant_id, payload, cancel_event)

            accepted = [c.row for c in classifications if c.accepted]
            rejected = tuple(
                RejectedRow(row_number=c.row_number, errors=c.errors)
                for c in classifications
                if not c.accepted
            )
            warnings = tuple(
                RowWarning(row_number=c.row_number, warnings=c.warnings)
                for c in classifications
                if c.accepted and c.warnings
            )

            inserted, updated = self._upsert(tenant_id, accepted, cancel_event)

            result = ImportResult(
                total_rows=len(classifications),
                inserted_count=inserted,
                updated_count=updated,
                rejected_count=len(rejected),
                rejected_rows=rejected,
                warnings=warnings,
            )

            logger.info(
                "reconciliation_completed",
                extra={
                    "total_rows": result.total_rows,
                    "inserted_count": result.inserted_count,
                    "updated_count": result.updated_count,
                    "rejected_count": result.rejected_count,
                    "warning_count": len(warnings),
                },
            )
            return result

    # -------------------------------------------------------------------------
    # Classification
    # -------------------------------------------------------------------------

    def _classify(
        self,
        tenant_id: str,
        payload: Payload,
        cancel_event: threading.Event | None,
    ) -> list[RowClassification]:
        text = read_text(payload)
        header_map = HeaderMap.from_columns(self._adapter.columns(text))
        if header_map.missing():
            logger.info(
                "import_headers_unmapped",
                extra={"missing_fields": list(header_map.missing())},
            )

        classifications: list[RowClassification] = []
        for source_row in self._adapter.read(text):
            self._check_cancelled(tenant_id, cancel_event, len(classifications))

            fields = (
                header_map.extract(source_row.values)
                if source_row.values is not None
                else None
            )
            classification = classify_row(source_row.row_number, fields, tenant_id)
            classifications.append(classification)

            if not classification.accepted:
                logger.warning(
                    "import_row_rejected",
                    extra={
                        "row_number": classification.row_number,
                        "errors": list(classification.errors),
                    },
                )
            elif classification.warnings:
                logger.warning(
                    "import_row_warning",
                    extra={
                        "row_number": classification.row_number,
                        "warnings": list(classification.warnings),
                    },
                )
        return classifications

    # -------------------------------------------------------------------------
    # Reconciliation against the store
    # -------------------------------------------------------------------------

    def _upsert(
        self,
        tenant_id: str,
        rows: list[WaybillRow],
        cancel_event: threading.Event | None,
    ) -> tuple[int, int]:
        if not rows:
            return 0, 0

        projects = self._load_by_key(
            Project, tenant_id, {name_key(r.project_name) for r in rows},
        )
        suppliers = self._load_by_key(
            Supplier, tenant_id, {name_key(r.supplier_name) for r in rows},
        )
        waybills = self._load_waybills(
            tenant_id, {number_key(r.waybill_number) for r in rows},
        )

        now = self._clock.now()
        inserted = 0
        updated = 0
        seen_in_batch: set[str] = set()

        for index, row in enumerate(rows):
            self._check_cancelled(tenant_id, cancel_event, index)

            project = self._resolve(Project, projects, tenant_id, row.project_name, now)
            supplier = self._resolve(Supplier, suppliers, tenant_id, row.supplier_name, now)

            key = number_key(row.waybill_number)
            if key in seen_in_batch:
                logger.warning(
                    "duplicate_waybill_in_batch",
                    extra={
                        "row_number": row.row_number,
                        "waybill_number": row.waybill_number,
                    },
                )
            seen_in_batch.add(key)

            existing = waybills.get(key)
            if existing is not None:
                existing.project = project
                existing.supplier = supplier
                existing.waybill_date = row.waybill_date
                existing.delivery_date = row.delivery_date
                existing.product_code = row.product_code
                existing.quantity = row.quantity
                existing.unit_price = row.unit_price
                existing.total_amount = row.total_amount
                existing.status = row.status.value
                existing.row_version = new_row_version()
                existing.updated_at = now
                updated += 1
                logger.debug(
                    "waybill_overwritten",
                    extra={
                        "row_number": row.row_number,
                        "waybill_number": existing.waybill_number,
                    },
                )
                continue

            waybill = Waybill(
                tenant_id=tenant_id,
                waybill_number=row.waybill_number,
                number_key=key,
                project=project,
                supplier=supplier,
                waybill_date=row.waybill_date,
                delivery_date=row.delivery_date,
                product_code=row.product_code,
                quantity=row.quantity,
                unit_price=row.unit_price,
                total_amount=row.total_amount,
                status=row.status.value,
                row_version=new_row_version(),
                is_deleted=False,
                created_at=now,
                updated_at=now,
            )
            self._session.add(waybill)
            waybills[key] = waybill
            inserted += 1

        self._check_cancelled(tenant_id, cancel_event, len(rows))
        self._session.flush()
        return inserted, updated

    def _load_by_key(
        self,
        model: type[Project] | type[Supplier],
        tenant_id: str,
        keys: Iterable[str],
    ) -> dict[str, Project | Supplier]:
        found: dict[str, Project | Supplier] = {}
        for chunk in _chunks(sorted(keys)):
            for entity in self._session.execute(
                select(model).where(
                    model.tenant_id == tenant_id,
                    model.name_key.in_(chunk),
                )
            ).scalars():
                found[entity.name_key] = entity
        return found

    def _load_waybills(
        self, tenant_id: str, keys: Iterable[str],
    ) -> dict[str, Waybill]:
        found: dict[str, Waybill] = {}
        for chunk in _chunks(sorted(keys)):
            for waybill in self._session.execute(
                select(Waybill).where(
                    Waybill.tenant_id == tenant_id,
                    Waybill.number_key.in_(chunk),
                )
            ).unique().scalars():
                found[waybill.number_key] = waybill
        return found

    def _resolve(
        self,
        model: type[Project] | type[Supplier],
        lookup: dict[str, Project | Supplier],
        tenant_id: str,
        name: str,
        now: datetime,
    ) -> Project | Supplier:
        key = name_key(name)
        entity = lookup.get(key)
        if entity is None:
            entity = model(
                tenant_id=tenant_id,
                name=name.strip(),
                name_key=key,
                created_at=now,
                updated_at=now,
            )
            self._session.add(entity)
            lookup[key] = entity
            logger.info(
                "reference_created",
                extra={"table": model.__tablename__, "reference_name": entity.name},
            )
        return entity

    @staticmethod
    def _check_cancelled(
        tenant_id: str,
        cancel_event: threading.Event | None,
        rows_seen: int,
    ) -> None:
        if cancel_event is not None and cancel_event.is_set():
            logger.warning("import_cancelled", extra={"rows_seen": rows_seen})
            raise ImportCancelledError(tenant_id, rows_seen)
