"""
waybill_ingestion -- CSV waybill import.

Reads a supplier CSV, maps its headers onto waybill fields, classifies every
row (rejected / accepted with warnings / accepted), and reconciles accepted
rows against the tenant's stored waybills, projects and suppliers in one
batch write.

Architecture:
    waybill_ingestion/ is a top-level package.  It imports from
    waybill_kernel only; nothing in the kernel imports from ingestion.
"""
