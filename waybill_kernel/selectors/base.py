"""
Module: waybill_kernel.selectors.base
Responsibility: Abstract base class for all read-only query selectors.
Architecture position: Kernel > Selectors.  May import from db/, models/ and
    domain/.  MUST NOT import from services/ or outer layers.

Invariants enforced:
    - Read-only access: selectors accept a Session from the caller but MUST NOT
      add, delete, flush or commit.
    - Tenant scoping: every public query takes ``tenant_id`` as an explicit
      argument and filters on it.  A blank tenant raises MissingTenantError
      instead of silently reading across tenants.
    - Soft delete: rows flagged ``is_deleted`` never appear in results.
    - DTO return convention: selectors return frozen dataclasses, not ORM rows.
"""

from abc import ABC

from sqlalchemy.orm import Session

from waybill_kernel.exceptions import MissingTenantError


class BaseSelector(ABC):
    """
    Abstract base class for all selectors.

    Contract:
        Selectors accept a Session from the caller, perform read-only queries,
        and return DTOs or computed results.  They MUST NOT mutate any data.
    """

    def __init__(self, session: Session):
        self.session = session

    @staticmethod
    def _require_tenant(tenant_id: str | None, operation: str) -> str:
        if tenant_id is None or not tenant_id.strip():
            raise MissingTenantError(operation)
        return tenant_id.strip()
