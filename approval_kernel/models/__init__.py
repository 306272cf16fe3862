"""ORM models for the approval kernel."""

from approval_kernel.models.audit_event import AuditAction, AuditEvent
from approval_kernel.models.claim import (
    ClaimModel,
    DecisionRecordModel,
    StageBallotModel,
)
from approval_kernel.models.workflow import WorkflowDefinitionModel, WorkflowStageModel

__all__ = [
    "AuditAction",
    "AuditEvent",
    "ClaimModel",
    "StageBallotModel",
    "DecisionRecordModel",
    "WorkflowDefinitionModel",
    "WorkflowStageModel",
]
