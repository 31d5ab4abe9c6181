"""
waybill_services -- orchestration and the external boundary.

Composes waybill_kernel, waybill_ingestion and waybill_batch into the
operations a tenant-facing API exposes: synchronous and queued imports,
cached listings and summaries, optimistic updates, leased reports, and the
import event topic with its audit consumer.
"""

from waybill_services.events import (
    EventPublisher,
    InMemoryEventPublisher,
    OutboxEventPublisher,
    WaybillsImportedEvent,
)
from waybill_services.gateway import GatewayResponse, WaybillGateway
from waybill_services.import_audit_consumer import ImportAuditConsumer
from waybill_services.import_orchestrator import WaybillImportOrchestrator
from waybill_services.monthly_report import MonthlyReportService
from waybill_services.query_service import CachedWaybillQueries
from waybill_services.read_cache import VersionedReadCache

__all__ = [
    "CachedWaybillQueries",
    "EventPublisher",
    "GatewayResponse",
    "ImportAuditConsumer",
    "InMemoryEventPublisher",
    "MonthlyReportService",
    "OutboxEventPublisher",
    "VersionedReadCache",
    "WaybillGateway",
    "WaybillImportOrchestrator",
    "WaybillsImportedEvent",
]
