"""
Waybill Kernel

Tenant-scoped persistence and consistency core for supplier waybills:
- Relational store plumbing (engine, session scope, ORM base)
- Waybill, project, supplier and execution-lease models
- Tenant-scoped read selectors
- Per-tenant cache versions, lease locks and optimistic updates
"""

__version__ = "0.1.0"
