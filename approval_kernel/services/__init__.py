"""Services for the approval kernel (write side)."""

from approval_kernel.services.auditor_service import (
    AuditorService,
    AuditTrace,
    AuditTraceEntry,
)
from approval_kernel.services.claim_service import ClaimService
from approval_kernel.services.sequence_service import SequenceCounter, SequenceService
from approval_kernel.services.workflow_service import WorkflowService

__all__ = [
    "AuditorService",
    "AuditTrace",
    "AuditTraceEntry",
    "ClaimService",
    "SequenceCounter",
    "SequenceService",
    "WorkflowService",
]
