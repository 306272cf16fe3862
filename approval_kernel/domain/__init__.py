"""
Pure domain layer.

Value objects and protocols with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- Wall-clock time (except SystemClock)
- I/O

All domain objects are immutable and deterministic.
"""

from approval_kernel.domain.claim import (
    GATE_STEP_NAME,
    PENDING_STEP_GATE,
    PENDING_STEP_STAGE,
    ActionableClaim,
    Claim,
    ClaimStatus,
    DecisionRecord,
    StageBallot,
    StageOutcome,
    Verdict,
)
from approval_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from approval_kernel.domain.directory import Actor, OrgDirectory
from approval_kernel.domain.workflow import (
    AggregationPolicy,
    AllRequired,
    AnyOne,
    ApproverSelector,
    ByCapability,
    Conditional,
    ConditionalRule,
    DesignatedOverride,
    DynamicManager,
    FixedSet,
    Hybrid,
    PercentageThreshold,
    Stage,
    WorkflowDefinition,
    definition_hash,
    workflow_from_snapshot,
    workflow_to_snapshot,
)

__all__ = [
    # Workflow definition
    "WorkflowDefinition",
    "Stage",
    "ApproverSelector",
    "DynamicManager",
    "FixedSet",
    "ByCapability",
    "AggregationPolicy",
    "AnyOne",
    "AllRequired",
    "Conditional",
    "ConditionalRule",
    "PercentageThreshold",
    "DesignatedOverride",
    "Hybrid",
    "definition_hash",
    "workflow_to_snapshot",
    "workflow_from_snapshot",
    # Claim
    "Claim",
    "ClaimStatus",
    "Verdict",
    "StageOutcome",
    "StageBallot",
    "DecisionRecord",
    "ActionableClaim",
    "PENDING_STEP_GATE",
    "PENDING_STEP_STAGE",
    "GATE_STEP_NAME",
    # Directory
    "Actor",
    "OrgDirectory",
    # Clock
    "Clock",
    "SystemClock",
    "DeterministicClock",
]
