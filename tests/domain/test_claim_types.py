"""Tests for claim value objects: ballots, status and derived properties."""

from datetime import datetime, timezone
from uuid import uuid4

from approval_engines.progression import open_claim
from approval_kernel.domain.claim import ClaimStatus, StageBallot
from approval_kernel.domain.workflow import AnyOne, DynamicManager, Stage
from tests.factories import make_workflow

AT = datetime(2024, 1, 1, tzinfo=timezone.utc)


class TestStageBallot:
    def test_vote_appends_in_order(self):
        a, b = uuid4(), uuid4()
        ballot = StageBallot(level=1).with_vote(a).with_vote(b)
        assert ballot.votes_for == (a, b)
        assert ballot.has_voted(a) and ballot.has_voted(b)

    def test_rejection_resolves(self):
        a = uuid4()
        ballot = StageBallot(level=1).with_rejection(a, AT)
        assert ballot.resolved
        assert ballot.resolved_at == AT
        assert ballot.has_voted(a)

    def test_resolved_at_set_once(self):
        later = datetime(2025, 1, 1, tzinfo=timezone.utc)
        ballot = StageBallot(level=1).resolve(AT).resolve(later)
        assert ballot.resolved_at == AT


class TestClaimStatus:
    def test_terminal(self):
        assert not ClaimStatus.PENDING.is_terminal
        assert ClaimStatus.APPROVED.is_terminal
        assert ClaimStatus.REJECTED.is_terminal


class TestClaimProperties:
    def _claim(self, gate: bool):
        org = uuid4()
        workflow = make_workflow(
            org,
            (Stage(level=1, approvers=DynamicManager(), policy=AnyOne()),),
            gate=gate,
        )
        return open_claim(
            claim_id=uuid4(),
            organization_id=org,
            submitter_id=uuid4(),
            workflow=workflow,
        )

    def test_gated_claim_starts_at_gate(self):
        claim = self._claim(gate=True)
        assert claim.at_gate
        assert claim.current_stage is None
        assert claim.current_ballot is None

    def test_ungated_claim_starts_at_first_stage(self):
        claim = self._claim(gate=False)
        assert not claim.at_gate
        assert claim.current_stage.level == 1
        assert claim.current_ballot == StageBallot(level=1)
        assert claim.next_sequence == 1
        assert claim.category == "General"
