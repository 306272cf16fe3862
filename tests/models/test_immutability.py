"""
ORM-level immutability of decided claims and their records.

Tests cover:
- Terminal claims cannot be updated or deleted
- Resolved ballots cannot be modified
- Decision records cannot be modified or deleted
- Pending claims and open ballots stay writable
"""

from uuid import uuid4

import pytest
from sqlalchemy import select

from approval_engines.authorization import resolve_context
from approval_engines.progression import open_claim
from approval_kernel.db.immutability import immutability_listeners_registered
from approval_kernel.domain.claim import Verdict
from approval_kernel.exceptions import ImmutabilityViolationError
from approval_kernel.models.claim import ClaimModel, DecisionRecordModel


@pytest.fixture
def decided_claim(claim_service, directory, manager_workflow, cast, clock):
    claim = claim_service.create_claim(
        open_claim(
            claim_id=uuid4(),
            organization_id=cast.organization_id,
            submitter_id=cast.employee,
            workflow=manager_workflow,
            created_at=clock.now(),
        )
    )
    context = resolve_context(claim, cast.manager, directory)
    claim_service.submit_decision(claim.claim_id, context, Verdict.APPROVE)
    return claim.claim_id


def _model(session, claim_id) -> ClaimModel:
    return session.execute(select(ClaimModel).where(ClaimModel.claim_id == claim_id)).scalar_one()


def test_listeners_registered(db_engine):
    assert immutability_listeners_registered()


class TestTerminalClaim:
    def test_update_blocked(self, session, decided_claim):
        model = _model(session, decided_claim)
        model.status = "pending"
        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()
        assert exc_info.value.code == "IMMUTABILITY_VIOLATION"

    def test_payload_update_blocked(self, session, decided_claim):
        model = _model(session, decided_claim)
        model.description = "edited after approval"
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_delete_blocked(self, session, decided_claim):
        session.delete(_model(session, decided_claim))
        with pytest.raises(ImmutabilityViolationError):
            session.flush()


class TestBallotsAndDecisions:
    def test_resolved_ballot_blocked(self, session, decided_claim):
        ballot = _model(session, decided_claim).ballots[0]
        ballot.votes_for = []
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_decision_update_blocked(self, session, decided_claim):
        record = session.execute(
            select(DecisionRecordModel).where(DecisionRecordModel.claim_id == decided_claim)
        ).scalar_one()
        record.comment = "rewritten"
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_decision_delete_blocked(self, session, decided_claim):
        record = session.execute(
            select(DecisionRecordModel).where(DecisionRecordModel.claim_id == decided_claim)
        ).scalar_one()
        session.delete(record)
        with pytest.raises(ImmutabilityViolationError):
            session.flush()


class TestPendingClaim:
    def test_pending_claim_writable(self, session, claim_service, manager_workflow, cast, clock):
        claim = claim_service.create_claim(
            open_claim(
                claim_id=uuid4(),
                organization_id=cast.organization_id,
                submitter_id=cast.employee,
                workflow=manager_workflow,
                created_at=clock.now(),
            )
        )
        model = _model(session, claim.claim_id)
        model.description = "fixed typo"
        session.flush()
        assert _model(session, claim.claim_id).description == "fixed typo"
