from waybill_ingestion.services.reconciliation_service import WaybillReconciler

__all__ = ["WaybillReconciler"]
