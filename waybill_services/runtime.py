"""
Composition root.

``build_runtime(settings)`` wires every component from one WaybillSettings:
engine and session factory, cache versions, read cache, publisher, import
orchestrator, job queue, pipeline, worker, lease lock, reports, audit
consumer and the gateway.  ``start()`` / ``stop()`` own the worker thread.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from uuid import UUID

from sqlalchemy.orm import Session, sessionmaker

from waybill_kernel.db.engine import (
    create_tables,
    get_session_factory,
    init_engine_from_url,
    session_scope,
)
from waybill_kernel.domain.clock import Clock, SystemClock
from waybill_kernel.logging_config import get_logger
from waybill_kernel.services.cache_version_service import InMemoryCacheVersionProvider
from waybill_kernel.services.lease_lock_service import LeaseLockService

from waybill_batch.services.job_service import ImportJobService
from waybill_batch.services.pipeline import ImportPipeline
from waybill_batch.services.queue import ImportJobQueue
from waybill_batch.services.worker import ImportJobWorker

from waybill_config import WaybillSettings, load_settings

from waybill_services.events import EventPublisher, OutboxEventPublisher
from waybill_services.gateway import WaybillGateway
from waybill_services.import_audit_consumer import ImportAuditConsumer
from waybill_services.import_orchestrator import WaybillImportOrchestrator
from waybill_services.monthly_report import MonthlyReportService
from waybill_services.query_service import CachedWaybillQueries
from waybill_services.read_cache import VersionedReadCache

logger = get_logger("services.runtime")


@dataclass
class WaybillRuntime:
    settings: WaybillSettings
    clock: Clock
    session_factory: sessionmaker[Session]
    cache_versions: InMemoryCacheVersionProvider
    publisher: EventPublisher
    orchestrator: WaybillImportOrchestrator
    job_queue: ImportJobQueue
    pipeline: ImportPipeline
    worker: ImportJobWorker
    leases: LeaseLockService
    audits: ImportAuditConsumer
    gateway: WaybillGateway

    def start(self) -> None:
        self.worker.start()

    def stop(self, timeout: float = 30.0) -> None:
        self.worker.stop(timeout)

    def fail_stale_jobs(self) -> list[UUID]:
        """Operator sweep: fail jobs untouched for ``stale_job_after_seconds``."""
        cutoff = self.clock.now() - timedelta(
            seconds=self.settings.imports.stale_job_after_seconds,
        )
        with session_scope(self.session_factory) as session:
            return ImportJobService(session, self.clock).fail_stale_jobs(cutoff)


def build_runtime(
    settings: WaybillSettings | None = None,
    clock: Clock | None = None,
    publisher: EventPublisher | None = None,
    create_schema: bool = False,
) -> WaybillRuntime:
    settings = settings or load_settings()
    clock = clock or SystemClock()

    init_engine_from_url(
        settings.database.url,
        echo=settings.database.echo,
        pool_size=settings.database.pool_size,
        max_overflow=settings.database.max_overflow,
    )
    if create_schema:
        create_tables()
    session_factory = get_session_factory()

    cache_versions = InMemoryCacheVersionProvider(
        clock, idle_seconds=settings.cache.version_idle_seconds,
    )
    publisher = publisher or OutboxEventPublisher(
        session_factory, clock, topic=settings.events.topic,
    )
    orchestrator = WaybillImportOrchestrator(
        session_factory, publisher, cache_versions, clock,
    )
    job_queue = ImportJobQueue(max_size=settings.imports.queue_max_size)
    pipeline = ImportPipeline(session_factory, job_queue, clock)
    worker = ImportJobWorker(
        session_factory,
        job_queue,
        orchestrator,
        clock,
        progress_marker=settings.imports.progress_start_marker,
    )
    leases = LeaseLockService(session_factory, clock)
    reports = MonthlyReportService(
        session_factory,
        leases,
        clock,
        lease_seconds=settings.locks.monthly_report_seconds,
    )
    read_cache = VersionedReadCache(
        cache_versions, clock, ttl_seconds=settings.cache.default_ttl_seconds,
    )
    queries = CachedWaybillQueries(session_factory, read_cache)
    audits = ImportAuditConsumer(session_factory, clock, topic=settings.events.topic)

    gateway = WaybillGateway(
        session_factory,
        orchestrator,
        pipeline,
        queries,
        cache_versions,
        reports,
        audits,
    )

    logger.info(
        "runtime_built",
        extra={
            "queue_max_size": settings.imports.queue_max_size,
            "cache_ttl_seconds": settings.cache.default_ttl_seconds,
            "topic": settings.events.topic,
        },
    )
    return WaybillRuntime(
        settings=settings,
        clock=clock,
        session_factory=session_factory,
        cache_versions=cache_versions,
        publisher=publisher,
        orchestrator=orchestrator,
        job_queue=job_queue,
        pipeline=pipeline,
        worker=worker,
        leases=leases,
        audits=audits,
        gateway=gateway,
    )
