"""
Tests for the pending-action projection.

Tests cover:
- Gate claims visible only to the submitter's manager
- Stage approvers hidden while the gate is open
- Voted, resolved and terminal claims excluded
- Zero-eligible stages excluded
- Cross-organization actors see nothing
- De-duplication and input order
"""

from uuid import uuid4

from approval_engines.authorization import resolve_context
from approval_engines.pending import actionable_step, find_actionable
from approval_engines.progression import apply_decision, open_claim
from approval_kernel.domain.claim import GATE_STEP_NAME, PENDING_STEP_GATE, PENDING_STEP_STAGE, Verdict
from approval_kernel.domain.workflow import (
    AllRequired,
    AnyOne,
    ByCapability,
    FixedSet,
    Stage,
)
from tests.factories import make_workflow


def _claim(cast, stages, gate=False):
    return open_claim(
        claim_id=uuid4(),
        organization_id=cast.organization_id,
        submitter_id=cast.employee,
        workflow=make_workflow(cast.organization_id, stages, gate=gate),
    )


def _decide(claim, actor_id, directory, verdict=Verdict.APPROVE):
    return apply_decision(
        claim,
        resolve_context(claim, actor_id, directory),
        verdict=verdict,
        decided_at=None,
        decision_id=uuid4(),
    ).claim


def _actionable(claims, actor_id, directory):
    return find_actionable(claims, lambda c: resolve_context(c, actor_id, directory))


FINANCE = Stage(level=1, approvers=ByCapability("finance"), policy=AnyOne(), name="Finance")


class TestGate:
    def test_manager_sees_gate(self, cast, directory):
        claim = _claim(cast, (FINANCE,), gate=True)
        [entry] = _actionable([claim], cast.manager, directory)
        assert entry.pending_step_type == PENDING_STEP_GATE
        assert entry.pending_step_name == GATE_STEP_NAME
        assert entry.pending_stage_level is None

    def test_stage_approvers_hidden_until_gate_clears(self, cast, directory):
        claim = _claim(cast, (FINANCE,), gate=True)
        assert _actionable([claim], cast.approver_a, directory) == []

        claim = _decide(claim, cast.manager, directory)
        [entry] = _actionable([claim], cast.approver_a, directory)
        assert entry.pending_step_type == PENDING_STEP_STAGE
        assert entry.pending_step_name == "Finance"
        assert entry.pending_stage_level == 1
        assert _actionable([claim], cast.manager, directory) == []


class TestStage:
    def test_voted_actor_excluded(self, cast, directory):
        stage = Stage(level=1, approvers=FixedSet((cast.approver_a, cast.approver_b)), policy=AllRequired())
        claim = _decide(_claim(cast, (stage,)), cast.approver_a, directory)
        assert _actionable([claim], cast.approver_a, directory) == []
        assert len(_actionable([claim], cast.approver_b, directory)) == 1

    def test_terminal_claims_excluded(self, cast, directory):
        approved = _decide(_claim(cast, (FINANCE,)), cast.approver_a, directory)
        rejected = _decide(_claim(cast, (FINANCE,)), cast.approver_a, directory, Verdict.REJECT)
        assert _actionable([approved, rejected], cast.approver_b, directory) == []
        assert actionable_step(approved, resolve_context(approved, cast.approver_b, directory)) is None

    def test_zero_eligible_stage_excluded(self, cast, directory):
        stage = Stage(level=1, approvers=ByCapability("legal"), policy=AnyOne())
        claim = _claim(cast, (stage,))
        directory.grant(cast.admin, "legal")
        assert len(_actionable([claim], cast.admin, directory)) == 1
        directory.revoke(cast.admin, "legal")
        assert _actionable([claim], cast.admin, directory) == []

    def test_other_organization_sees_nothing(self, cast, directory):
        claim = _claim(cast, (FINANCE,))
        assert _actionable([claim], cast.outsider, directory) == []

    def test_unknown_actor_sees_nothing(self, cast, directory):
        claim = _claim(cast, (FINANCE,))
        assert _actionable([claim], uuid4(), directory) == []


class TestFindActionable:
    def test_dedup_and_order(self, cast, directory):
        first = _claim(cast, (FINANCE,))
        second = _claim(cast, (FINANCE,))
        entries = _actionable([first, second, first], cast.approver_c, directory)
        assert [e.claim.claim_id for e in entries] == [first.claim_id, second.claim_id]
