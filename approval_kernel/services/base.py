"""
BaseService -- abstract base for kernel services that write.

Responsibility:
    Common constructor and session contract: a service receives the
    caller's SQLAlchemy ``Session`` and persists with ``session.flush()``,
    never ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    - Transaction boundaries belong to the caller
      (``approval_services.approval_engine`` via ``session_scope``); a
      decision's claim update, history row and audit events commit
      together or not at all.
"""

from abc import ABC

from sqlalchemy.orm import Session

from approval_kernel.domain.clock import Clock, SystemClock
from approval_kernel.services.auditor_service import AuditorService


class BaseService(ABC):
    """
    Abstract base class for kernel services.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Read-only list queries belong in ``approval_kernel/selectors/``.
    """

    def __init__(
        self,
        session: Session,
        auditor: AuditorService | None = None,
        clock: Clock | None = None,
    ):
        self.session = session
        self._clock = clock or SystemClock()
        self._auditor = auditor or AuditorService(session, self._clock)
