"""
approval_kernel.services.claim_service -- Claim persistence and decisions.

Responsibility:
    Creates claims bound to a workflow snapshot and records decisions on
    them.  Delegates every routing decision to the pure progression engine
    (``approval_engines.progression``) and persists what it returns:
    claim state, the changed ballot, one history row and audit events.

Architecture position:
    Kernel > Services.  May import from domain/, models/, db/ and the
    pure engines.

Invariants enforced:
    - One accepted decision = one claim UPDATE (version bump) + at most
      one ballot UPDATE + one DecisionRecordModel INSERT, flushed in the
      caller's transaction.
    - A stale claim row (another writer got there first) surfaces as
      ConflictError, never as a silent overwrite.
    - Terminal claims are never written (engine check, plus ORM listener).

Failure modes:
    - ClaimNotFoundError if claim_id is unknown.
    - Everything ``apply_decision`` raises (AlreadyFinalized,
      NoEligibleApprovers, Unauthorized, DuplicateVote), before any write.
    - ConflictError on optimistic version mismatch or duplicate sequence.
"""

from __future__ import annotations

from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from approval_engines.authorization import ApprovalContext
from approval_engines.progression import ProgressionResult, apply_decision
from approval_kernel.domain.claim import Claim, StageOutcome, Verdict
from approval_kernel.exceptions import ClaimNotFoundError, ConflictError
from approval_kernel.logging_config import get_logger
from approval_kernel.models.claim import ClaimModel, DecisionRecordModel
from approval_kernel.services.base import BaseService

logger = get_logger("services.claim")


class ClaimService(BaseService):
    """Claim lifecycle: creation and decision recording."""

    def _load(self, claim_id: UUID, for_update: bool = False) -> ClaimModel:
        stmt = select(ClaimModel).where(ClaimModel.claim_id == claim_id)
        if for_update:
            stmt = stmt.with_for_update()
        model = self.session.execute(stmt).scalar_one_or_none()
        if model is None:
            raise ClaimNotFoundError(str(claim_id))
        return model

    def create_claim(self, claim: Claim) -> Claim:
        """Persist a freshly opened claim together with its empty ballots."""
        model = ClaimModel.from_dto(claim)
        self.session.add(model)
        self.session.flush()

        self._auditor.record_claim_created(
            claim_id=claim.claim_id,
            workflow_id=claim.workflow.workflow_id,
            workflow_hash=model.workflow_hash,
            actor_id=claim.submitter_id,
        )

        logger.info(
            "claim_created",
            extra={
                "claim_id": str(claim.claim_id),
                "workflow_id": str(claim.workflow.workflow_id),
                "submitter_id": str(claim.submitter_id),
                "stage_count": claim.workflow.stage_count,
                "gate": claim.workflow.requires_pre_approval_gate,
            },
        )
        return model.to_dto()

    def get_claim(self, claim_id: UUID) -> Claim:
        return self._load(claim_id).to_dto()

    def submit_decision(
        self,
        claim_id: UUID,
        context: ApprovalContext,
        verdict: Verdict,
        comment: str = "",
        lock_row: bool = False,
    ) -> ProgressionResult:
        """Apply and persist one decision.

        Args:
            claim_id: Claim to decide on.
            context: Resolved authorization context for the acting actor.
            verdict: APPROVE or REJECT.
            comment: Free text stored on the decision record.
            lock_row: Read the claim row FOR UPDATE (PostgreSQL).

        Returns:
            The ProgressionResult, whose ``claim`` reflects the stored state.
        """
        model = self._load(claim_id, for_update=lock_row)
        claim = model.to_dto()

        result = apply_decision(
            claim,
            context,
            verdict=Verdict(verdict),
            decided_at=self._clock.now(),
            decision_id=uuid4(),
            comment=comment,
        )

        self._persist(model, result)
        stored = model.to_dto()
        self._audit(result)
        self._log(result)
        return ProgressionResult(
            claim=stored,
            record=result.record,
            evaluation=result.evaluation,
            advanced=result.advanced,
            finalized=result.finalized,
        )

    def _persist(self, model: ClaimModel, result: ProgressionResult) -> None:
        claim = result.claim
        model.status = claim.status.value
        model.current_stage_index = claim.current_stage_index
        model.gate_satisfied = claim.gate_satisfied
        model.resolved_at = claim.resolved_at
        # Always changes, so the versioned UPDATE always runs
        model.decision_count = len(claim.history)

        for ballot_model, ballot in zip(model.ballots, claim.ballots):
            ballot_model.apply(ballot)

        model.decisions.append(DecisionRecordModel.from_dto(result.record))

        try:
            self.session.flush()
        except StaleDataError as exc:
            raise ConflictError(str(claim.claim_id)) from exc
        except IntegrityError as exc:
            raise ConflictError(
                str(claim.claim_id),
                reason=f"decision sequence {result.record.sequence} already taken",
            ) from exc

    def _audit(self, result: ProgressionResult) -> None:
        record = result.record
        claim = result.claim
        self._auditor.record_decision(
            claim_id=claim.claim_id,
            decision_id=record.decision_id,
            sequence=record.sequence,
            verdict=record.verdict.value,
            stage_level=record.stage_level,
            actor_id=record.actor_id,
        )
        evaluation = result.evaluation
        if evaluation is not None and evaluation.outcome is StageOutcome.RESOLVED_APPROVED:
            self._auditor.record_stage_resolved(
                claim_id=claim.claim_id,
                stage_level=record.stage_level,
                outcome=evaluation.outcome.value,
                votes=evaluation.votes,
                eligible=evaluation.eligible,
                actor_id=record.actor_id,
            )
        if result.finalized:
            self._auditor.record_claim_finalized(
                claim_id=claim.claim_id,
                status=claim.status.value,
                decision_count=len(claim.history),
                actor_id=record.actor_id,
            )

    @staticmethod
    def _log(result: ProgressionResult) -> None:
        record = result.record
        claim = result.claim
        logger.info(
            "decision_recorded",
            extra={
                "decision_id": str(record.decision_id),
                "sequence": record.sequence,
                "verdict": record.verdict.value,
                "stage_level": record.stage_level,
                "is_gate": record.is_gate,
            },
        )
        if result.evaluation is not None and result.evaluation.is_approved:
            logger.info(
                "stage_resolved",
                extra={
                    "stage_level": record.stage_level,
                    "votes": result.evaluation.votes,
                    "eligible": result.evaluation.eligible,
                    "reason": result.evaluation.reason,
                },
            )
        if result.finalized:
            logger.info(
                "claim_finalized",
                extra={
                    "status": claim.status.value,
                    "decision_count": len(claim.history),
                },
            )
