"""
BaseService -- abstract base for kernel services that write through a
caller-owned Session.

Invariants enforced:
    - The service uses ``session.flush()`` (or a single statement) and never
      ``session.commit()``.  The caller controls transaction boundaries and
      runs post-commit side effects (cache invalidation, events) itself.
"""

from abc import ABC

from sqlalchemy.orm import Session


class BaseService(ABC):
    """
    Abstract base class for session-bound kernel services.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT provide read-only queries -- those belong in selectors/.
    """

    def __init__(self, session: Session):
        self.session = session
