"""
Claim domain types (``approval_kernel.domain.claim``).

Responsibility
--------------
Pure value objects for a claim moving through its approval chain: the
claim itself, one ballot per stage, the append-only decision history and
the pending-work projection returned to approvers.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* A claim is terminal once its status leaves PENDING.
* ``history`` is append-only; ``sequence`` is the 1-based position.
* ``ballots`` has exactly one entry per workflow stage, same order.
* ``current_stage_index`` is 0-based and equals the stage count once the
  claim is APPROVED through its last stage.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from approval_kernel.domain.workflow import Stage, WorkflowDefinition


class ClaimStatus(str, Enum):
    """Claim lifecycle states."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self is not ClaimStatus.PENDING


class Verdict(str, Enum):
    """What an actor decides on a claim."""

    APPROVE = "approve"
    REJECT = "reject"


class StageOutcome(str, Enum):
    UNRESOLVED = "unresolved"
    RESOLVED_APPROVED = "resolved_approved"
    RESOLVED_REJECTED = "resolved_rejected"


PENDING_STEP_GATE = "gate"
PENDING_STEP_STAGE = "stage"
GATE_STEP_NAME = "Manager Pre-Approval"


@dataclass(frozen=True)
class StageBallot:
    """Per-stage voting state.

    ``resolved_at`` is set once, when the stage resolves either way.
    """

    level: int
    votes_for: tuple[UUID, ...] = ()
    rejected_by: UUID | None = None
    resolved: bool = False
    resolved_at: datetime | None = None

    def has_voted(self, actor_id: UUID) -> bool:
        return actor_id in self.votes_for or self.rejected_by == actor_id

    def with_vote(self, actor_id: UUID) -> StageBallot:
        return replace(self, votes_for=self.votes_for + (actor_id,))

    def with_rejection(self, actor_id: UUID, at: datetime) -> StageBallot:
        return replace(self, rejected_by=actor_id, resolved=True, resolved_at=at)

    def resolve(self, at: datetime) -> StageBallot:
        if self.resolved:
            return self
        return replace(self, resolved=True, resolved_at=at)


@dataclass(frozen=True)
class DecisionRecord:
    """One accepted decision. Immutable.

    ``stage_level`` is None for a gate decision.
    """

    decision_id: UUID
    claim_id: UUID
    sequence: int
    actor_id: UUID
    actor_name: str
    verdict: Verdict
    comment: str = ""
    stage_level: int | None = None
    is_gate: bool = False
    decided_at: datetime | None = None


@dataclass(frozen=True)
class Claim:
    """Immutable snapshot of a claim and its approval progress.

    The payload fields (description through receipt_ref) are carried for
    callers and never interpreted by the engine.
    """

    claim_id: UUID
    organization_id: UUID
    submitter_id: UUID
    workflow: WorkflowDefinition
    status: ClaimStatus = ClaimStatus.PENDING
    current_stage_index: int = 0
    gate_satisfied: bool = True
    ballots: tuple[StageBallot, ...] = ()
    history: tuple[DecisionRecord, ...] = ()
    description: str = ""
    category: str = "General"
    amount: Decimal | None = None
    currency: str | None = None
    converted_amount: Decimal | None = None
    company_currency: str | None = None
    receipt_ref: str | None = None
    version: int = 0
    created_at: datetime | None = None
    resolved_at: datetime | None = None

    @property
    def is_pending(self) -> bool:
        return self.status is ClaimStatus.PENDING

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def at_gate(self) -> bool:
        return self.is_pending and not self.gate_satisfied

    @property
    def current_stage(self) -> Stage | None:
        """The open stage, or None at the gate, when terminal, or past the end."""
        if not self.is_pending or not self.gate_satisfied:
            return None
        if self.current_stage_index >= len(self.workflow.stages):
            return None
        return self.workflow.stages[self.current_stage_index]

    @property
    def current_ballot(self) -> StageBallot | None:
        if self.current_stage is None:
            return None
        return self.ballots[self.current_stage_index]

    @property
    def next_sequence(self) -> int:
        return len(self.history) + 1


@dataclass(frozen=True)
class ActionableClaim:
    """A claim the querying actor may act on right now.

    ``pending_step_type`` is ``"gate"`` or ``"stage"``;
    ``pending_stage_level`` is None for the gate.
    """

    claim: Claim
    pending_step_type: str
    pending_step_name: str
    pending_stage_level: int | None = None
