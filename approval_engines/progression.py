"""
approval_engines.progression -- Claim progression state machine.

Responsibility:
    Build a new claim at its first open step, and apply one actor's
    verdict to a claim: record the decision, update the gate or the open
    stage's ballot, and advance, approve or reject the claim.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Persistence of the
    returned claim and record is ``approval_kernel.services.claim_service``.

States::

    Pending@gate --approve--> Pending@stage[0] | Approved (no stages)
    Pending@gate --reject---> Rejected
    Pending@stage[i] --approve, unresolved--> Pending@stage[i]
    Pending@stage[i] --approve, resolved----> Pending@stage[i+1] | Approved
    Pending@stage[i] --reject---------------> Rejected

Invariants enforced:
    - Checks run in a fixed order and fail before any state change:
      AlreadyFinalized, then NoEligibleApprovers / Unauthorized, then
      DuplicateVote.
    - Exactly one DecisionRecord is appended per accepted decision.
    - A ballot's ``resolved_at`` is set once, when it resolves.
    - Stages after a rejection are never evaluated.
    - Inputs are never mutated; a new frozen Claim is returned.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from approval_engines.aggregation import StageEvaluation, evaluate_stage
from approval_engines.authorization import (
    ApprovalContext,
    eligible_approver_count,
    require_authorized,
)
from approval_engines.tracer import traced_engine
from approval_kernel.domain.claim import (
    Claim,
    ClaimStatus,
    DecisionRecord,
    StageBallot,
    Verdict,
)
from approval_kernel.domain.workflow import WorkflowDefinition
from approval_kernel.exceptions import AlreadyFinalizedError, DuplicateVoteError


@dataclass(frozen=True)
class ProgressionResult:
    """Outcome of one accepted decision.

    ``evaluation`` is None for gate decisions.  ``advanced`` means the
    claim moved past the gate or a stage; ``finalized`` means it left
    PENDING.
    """

    claim: Claim
    record: DecisionRecord
    evaluation: StageEvaluation | None
    advanced: bool
    finalized: bool


def open_claim(
    *,
    claim_id: UUID,
    organization_id: UUID,
    submitter_id: UUID,
    workflow: WorkflowDefinition,
    created_at: datetime | None = None,
    description: str = "",
    category: str = "General",
    amount: Decimal | None = None,
    currency: str | None = None,
    converted_amount: Decimal | None = None,
    company_currency: str | None = None,
    receipt_ref: str | None = None,
) -> Claim:
    """A new PENDING claim with one empty ballot per stage."""
    return Claim(
        claim_id=claim_id,
        organization_id=organization_id,
        submitter_id=submitter_id,
        workflow=workflow,
        status=ClaimStatus.PENDING,
        current_stage_index=0,
        gate_satisfied=not workflow.requires_pre_approval_gate,
        ballots=tuple(StageBallot(level=stage.level) for stage in workflow.stages),
        history=(),
        description=description,
        category=category or "General",
        amount=amount,
        currency=currency,
        converted_amount=converted_amount,
        company_currency=company_currency,
        receipt_ref=receipt_ref,
        created_at=created_at,
    )


@traced_engine("claim_progression", "1.0", fingerprint_fields=("verdict", "decision_id"))
def apply_decision(
    claim: Claim,
    context: ApprovalContext,
    *,
    verdict: Verdict,
    decided_at: datetime,
    decision_id: UUID,
    comment: str = "",
) -> ProgressionResult:
    """Apply one verdict from ``context.actor_id`` to ``claim``."""
    verdict = Verdict(verdict)

    if claim.is_terminal:
        raise AlreadyFinalizedError(str(claim.claim_id), claim.status.value)

    stage = require_authorized(claim, context)

    if stage is not None:
        ballot = claim.ballots[claim.current_stage_index]
        if ballot.has_voted(context.actor_id):
            raise DuplicateVoteError(str(claim.claim_id), str(context.actor_id), stage.level)

    record = DecisionRecord(
        decision_id=decision_id,
        claim_id=claim.claim_id,
        sequence=claim.next_sequence,
        actor_id=context.actor_id,
        actor_name=context.actor_name,
        verdict=verdict,
        comment=comment or "",
        stage_level=stage.level if stage is not None else None,
        is_gate=stage is None,
        decided_at=decided_at,
    )
    history = claim.history + (record,)

    if stage is None:
        return _apply_gate(claim, record, history, verdict, decided_at)

    index = claim.current_stage_index
    ballot = claim.ballots[index]
    eligible = eligible_approver_count(stage, context)

    if verdict is Verdict.REJECT:
        ballot = ballot.with_rejection(context.actor_id, decided_at)
    else:
        ballot = ballot.with_vote(context.actor_id)
    evaluation = evaluate_stage(stage, ballot, eligible)

    if evaluation.is_approved:
        ballot = ballot.resolve(decided_at)
    ballots = claim.ballots[:index] + (ballot,) + claim.ballots[index + 1:]

    if verdict is Verdict.REJECT:
        rejected = replace(
            claim,
            ballots=ballots,
            history=history,
            status=ClaimStatus.REJECTED,
            resolved_at=decided_at,
        )
        return ProgressionResult(rejected, record, evaluation, advanced=False, finalized=True)

    if not evaluation.is_approved:
        waiting = replace(claim, ballots=ballots, history=history)
        return ProgressionResult(waiting, record, evaluation, advanced=False, finalized=False)

    next_index = index + 1
    if next_index >= len(claim.workflow.stages):
        approved = replace(
            claim,
            ballots=ballots,
            history=history,
            current_stage_index=next_index,
            status=ClaimStatus.APPROVED,
            resolved_at=decided_at,
        )
        return ProgressionResult(approved, record, evaluation, advanced=True, finalized=True)

    advanced = replace(claim, ballots=ballots, history=history, current_stage_index=next_index)
    return ProgressionResult(advanced, record, evaluation, advanced=True, finalized=False)


def _apply_gate(
    claim: Claim,
    record: DecisionRecord,
    history: tuple[DecisionRecord, ...],
    verdict: Verdict,
    decided_at: datetime,
) -> ProgressionResult:
    if verdict is Verdict.REJECT:
        rejected = replace(
            claim,
            history=history,
            status=ClaimStatus.REJECTED,
            resolved_at=decided_at,
        )
        return ProgressionResult(rejected, record, None, advanced=False, finalized=True)

    if not claim.workflow.stages:
        approved = replace(
            claim,
            history=history,
            gate_satisfied=True,
            status=ClaimStatus.APPROVED,
            resolved_at=decided_at,
        )
        return ProgressionResult(approved, record, None, advanced=True, finalized=True)

    opened = replace(claim, history=history, gate_satisfied=True)
    return ProgressionResult(opened, record, None, advanced=True, finalized=False)
