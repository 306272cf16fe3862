"""
Tests for ClaimService.

Tests cover:
- create_claim: snapshot binding, empty ballots, audit
- submit_decision: persisted state, history, ballots, version bump
- Audit events per decision, stage resolution and finalization
- Terminal claims and rejected decisions leave no trace
- Snapshot isolation from later workflow changes
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from approval_engines.authorization import resolve_context
from approval_engines.progression import open_claim
from approval_kernel.domain.claim import ClaimStatus, Verdict
from approval_kernel.domain.workflow import AnyOne, ByCapability, DynamicManager, Stage
from approval_kernel.exceptions import (
    AlreadyFinalizedError,
    ClaimNotFoundError,
    DuplicateVoteError,
    UnauthorizedError,
)
from approval_kernel.models.audit_event import AuditAction
from tests.factories import make_workflow


@pytest.fixture
def open_new(claim_service, cast, clock):
    def _open(workflow, **payload):
        return claim_service.create_claim(
            open_claim(
                claim_id=uuid4(),
                organization_id=cast.organization_id,
                submitter_id=cast.employee,
                workflow=workflow,
                created_at=clock.now(),
                **payload,
            )
        )

    return _open


@pytest.fixture
def decide(claim_service, directory, clock):
    def _decide(claim_id, actor_id, verdict=Verdict.APPROVE, comment=""):
        clock.advance(60)
        current = claim_service.get_claim(claim_id)
        context = resolve_context(current, actor_id, directory)
        return claim_service.submit_decision(claim_id, context, verdict, comment=comment)

    return _decide


class TestCreateClaim:
    def test_persisted(self, open_new, claim_service, gated_all_required_workflow):
        created = open_new(
            gated_all_required_workflow,
            description="Taxi to airport",
            category="Travel",
            amount=Decimal("42.50"),
            currency="EUR",
        )
        loaded = claim_service.get_claim(created.claim_id)
        assert loaded.status is ClaimStatus.PENDING
        assert loaded.at_gate
        assert loaded.workflow == gated_all_required_workflow
        assert len(loaded.ballots) == 1 and not loaded.ballots[0].resolved
        assert loaded.description == "Taxi to airport"
        assert loaded.amount == Decimal("42.50")
        assert loaded.version == 1

    def test_audited(self, open_new, auditor_service, manager_workflow, cast):
        created = open_new(manager_workflow)
        [entry] = auditor_service.get_trace("Claim", created.claim_id).entries
        assert entry.action is AuditAction.CLAIM_CREATED
        assert entry.actor_id == cast.employee
        assert entry.payload["workflow_hash"] == manager_workflow.definition_hash

    def test_get_unknown(self, claim_service):
        with pytest.raises(ClaimNotFoundError):
            claim_service.get_claim(uuid4())


class TestSubmitDecision:
    def test_gate_then_all_required(self, open_new, decide, claim_service, gated_all_required_workflow, cast):
        claim = open_new(gated_all_required_workflow)

        after_gate = decide(claim.claim_id, cast.manager).claim
        assert after_gate.gate_satisfied and after_gate.is_pending

        waiting = decide(claim.claim_id, cast.approver_a).claim
        assert waiting.is_pending
        assert waiting.ballots[0].votes_for == (cast.approver_a,)

        result = decide(claim.claim_id, cast.approver_b, comment="ok")
        assert result.finalized
        stored = claim_service.get_claim(claim.claim_id)
        assert stored.status is ClaimStatus.APPROVED
        assert stored.ballots[0].resolved
        assert stored.resolved_at is not None
        assert [d.sequence for d in stored.history] == [1, 2, 3]
        assert stored.history[0].is_gate
        assert stored.history[2].comment == "ok"
        assert stored.version == 4

    def test_audit_events(self, open_new, decide, auditor_service, manager_workflow, cast):
        claim = open_new(manager_workflow)
        decide(claim.claim_id, cast.manager)
        assert auditor_service.get_trace("Claim", claim.claim_id).actions == (
            AuditAction.CLAIM_CREATED,
            AuditAction.DECISION_RECORDED,
            AuditAction.STAGE_RESOLVED,
            AuditAction.CLAIM_APPROVED,
        )
        assert auditor_service.validate_chain()

    def test_rejection(self, open_new, decide, auditor_service, manager_workflow, cast):
        claim = open_new(manager_workflow)
        result = decide(claim.claim_id, cast.manager, Verdict.REJECT, "duplicate receipt")
        assert result.claim.status is ClaimStatus.REJECTED
        assert result.claim.ballots[0].rejected_by == cast.manager
        actions = auditor_service.get_trace("Claim", claim.claim_id).actions
        assert actions[-1] is AuditAction.CLAIM_REJECTED
        assert AuditAction.STAGE_RESOLVED not in actions

    def test_finalized_claim_refuses(self, open_new, decide, claim_service, manager_workflow, cast):
        claim = open_new(manager_workflow)
        decide(claim.claim_id, cast.manager)
        with pytest.raises(AlreadyFinalizedError):
            decide(claim.claim_id, cast.manager)
        assert len(claim_service.get_claim(claim.claim_id).history) == 1

    def test_refused_decision_writes_nothing(self, open_new, decide, claim_service, auditor_service, gated_all_required_workflow, cast):
        claim = open_new(gated_all_required_workflow)
        decide(claim.claim_id, cast.manager)
        decide(claim.claim_id, cast.approver_a)
        with pytest.raises(DuplicateVoteError):
            decide(claim.claim_id, cast.approver_a)
        with pytest.raises(UnauthorizedError):
            decide(claim.claim_id, cast.approver_c)
        stored = claim_service.get_claim(claim.claim_id)
        assert len(stored.history) == 2
        assert stored.version == 3
        assert len(auditor_service.get_trace("Claim", claim.claim_id).entries) == 3

    def test_logs(self, open_new, decide, manager_workflow, cast, captured_logs):
        claim = open_new(manager_workflow)
        decide(claim.claim_id, cast.manager)
        messages = [r["message"] for r in captured_logs()]
        for expected in ("claim_created", "decision_recorded", "stage_resolved", "claim_finalized"):
            assert expected in messages
        finalized = next(r for r in captured_logs() if r["message"] == "claim_finalized")
        assert finalized["status"] == "approved"


class TestSnapshotIsolation:
    def test_claim_keeps_original_stages(self, open_new, decide, claim_service, workflow_service, cast):
        original = workflow_service.create(
            make_workflow(
                cast.organization_id,
                (Stage(level=1, approvers=DynamicManager(), policy=AnyOne()),),
            ),
            cast.admin,
        )
        claim = open_new(original)
        workflow_service.set_active(original.workflow_id, False, cast.admin)
        workflow_service.create(
            make_workflow(
                cast.organization_id,
                (Stage(level=1, approvers=ByCapability("finance"), policy=AnyOne()),),
            ),
            cast.admin,
        )
        # still routed to the manager, not finance
        with pytest.raises(UnauthorizedError):
            decide(claim.claim_id, cast.approver_a)
        assert decide(claim.claim_id, cast.manager).claim.status is ClaimStatus.APPROVED
        assert claim_service.get_claim(claim.claim_id).workflow.workflow_id == original.workflow_id
