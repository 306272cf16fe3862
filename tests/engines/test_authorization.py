"""
Tests for the stage authorization resolver.

Tests cover:
- resolve_context: directory lookups, capability refresh, holder counts
- is_authorized per selector variant
- eligible counts
- require_authorized: error precedence and gate handling
"""

from uuid import uuid4

import pytest

from approval_engines.authorization import (
    ApprovalContext,
    eligible_approver_count,
    is_authorized,
    is_gate_authorized,
    require_authorized,
    resolve_context,
)
from approval_engines.progression import open_claim
from approval_kernel.domain.workflow import (
    AllRequired,
    AnyOne,
    ByCapability,
    DynamicManager,
    FixedSet,
    Stage,
)
from approval_kernel.exceptions import NoEligibleApproversError, UnauthorizedError
from approval_services.directory import InMemoryOrgDirectory
from tests.factories import make_workflow

FINANCE_STAGE = Stage(level=1, approvers=ByCapability("finance"), policy=AnyOne())

def _claim(cast, stages, gate=False):
    return open_claim(
        claim_id=uuid4(),
        organization_id=cast.organization_id,
        submitter_id=cast.employee,
        workflow=make_workflow(cast.organization_id, stages, gate=gate),
    )


class TestResolveContext:
    def test_context_fields(self, cast, directory):
        claim = _claim(cast, (Stage(level=1, approvers=ByCapability("finance"), policy=AnyOne()),))
        context = resolve_context(claim, cast.approver_a, directory)

        assert context.actor.display_name == "Avery Finance"
        assert context.actor_name == "Avery Finance"
        assert context.submitter_manager_id == cast.manager
        assert context.in_organization
        assert context.capability_holders["finance"] == frozenset(
            {cast.approver_a, cast.approver_b, cast.approver_c}
        )

    def test_outsider_not_counted_as_holder(self, cast, directory):
        claim = _claim(cast, (Stage(level=1, approvers=ByCapability("finance"), policy=AnyOne()),))
        context = resolve_context(claim, cast.outsider, directory)
        assert cast.outsider not in context.capability_holders["finance"]
        assert not context.in_organization

    def test_unknown_actor(self, cast, directory):
        claim = _claim(cast, (Stage(level=1, approvers=DynamicManager(), policy=AnyOne()),))
        stranger = uuid4()
        context = resolve_context(claim, stranger, directory)
        assert context.actor is None
        assert context.actor_name == str(stranger)

    def test_capabilities_refreshed(self, cast, directory):
        claim = _claim(cast, (Stage(level=1, approvers=ByCapability("audit"), policy=AnyOne()),))
        directory.grant(cast.approver_a, "audit")
        context = resolve_context(claim, cast.approver_a, directory)
        assert context.actor.has_capability("audit")


class TestIsAuthorized:
    def test_dynamic_manager(self, cast, directory):
        stage = Stage(level=1, approvers=DynamicManager(), policy=AnyOne())
        claim = _claim(cast, (stage,))
        assert is_authorized(stage, resolve_context(claim, cast.manager, directory))
        assert not is_authorized(stage, resolve_context(claim, cast.approver_a, directory))

    def test_fixed_set(self, cast, directory):
        stage = Stage(level=1, approvers=FixedSet((cast.approver_a,)), policy=AnyOne())
        claim = _claim(cast, (stage,))
        assert is_authorized(stage, resolve_context(claim, cast.approver_a, directory))
        assert not is_authorized(stage, resolve_context(claim, cast.approver_b, directory))

    def test_removed_fixed_set_member_keeps_authorization(self, cast, directory):
        stage = Stage(level=1, approvers=FixedSet((cast.approver_a,)), policy=AnyOne())
        claim = _claim(cast, (stage,))
        directory.remove_actor(cast.approver_a)
        assert is_authorized(stage, resolve_context(claim, cast.approver_a, directory))

    def test_by_capability_requires_same_organization(self, cast, directory):
        stage = Stage(level=1, approvers=ByCapability("finance"), policy=AnyOne())
        claim = _claim(cast, (stage,))
        assert is_authorized(stage, resolve_context(claim, cast.approver_b, directory))
        assert not is_authorized(stage, resolve_context(claim, cast.outsider, directory))
        assert not is_authorized(stage, resolve_context(claim, cast.manager, directory))

    def test_gate(self, cast, directory):
        claim = _claim(cast, (FINANCE_STAGE,), gate=True)
        assert is_gate_authorized(resolve_context(claim, cast.manager, directory))
        assert not is_gate_authorized(resolve_context(claim, cast.admin, directory))


class TestEligibleCount:
    def test_counts_per_selector(self, cast, directory):
        stages = (
            Stage(level=1, approvers=FixedSet((cast.approver_a, cast.approver_b)), policy=AllRequired()),
            Stage(level=2, approvers=DynamicManager(), policy=AnyOne()),
            Stage(level=3, approvers=ByCapability("finance"), policy=AllRequired()),
            Stage(level=4, approvers=ByCapability("legal"), policy=AnyOne()),
        )
        claim = _claim(cast, stages)
        context = resolve_context(claim, cast.admin, directory)
        assert [eligible_approver_count(s, context) for s in stages] == [2, 1, 3, 0]

    def test_manager_missing(self):
        stage = Stage(level=1, approvers=DynamicManager(), policy=AnyOne())
        context = ApprovalContext(actor_id=uuid4(), organization_id=uuid4())
        assert eligible_approver_count(stage, context) == 0


class TestRequireAuthorized:
    def test_returns_open_stage(self, cast, directory):
        stage = Stage(level=1, approvers=ByCapability("finance"), policy=AnyOne())
        claim = _claim(cast, (stage,))
        assert require_authorized(claim, resolve_context(claim, cast.approver_c, directory)) == stage

    def test_gate_returns_none(self, cast, directory):
        claim = _claim(cast, (FINANCE_STAGE,), gate=True)
        assert require_authorized(claim, resolve_context(claim, cast.manager, directory)) is None

    def test_unauthorized(self, cast, directory):
        claim = _claim(cast, (Stage(level=1, approvers=ByCapability("finance"), policy=AnyOne()),))
        with pytest.raises(UnauthorizedError) as exc_info:
            require_authorized(claim, resolve_context(claim, cast.manager, directory))
        assert exc_info.value.stage_level == 1
        assert not isinstance(exc_info.value, NoEligibleApproversError)

    def test_no_eligible_wins_over_unauthorized(self, cast, directory):
        claim = _claim(cast, (Stage(level=1, approvers=ByCapability("legal"), policy=AnyOne()),))
        with pytest.raises(NoEligibleApproversError):
            require_authorized(claim, resolve_context(claim, cast.manager, directory))

    def test_gate_without_manager(self):
        directory = InMemoryOrgDirectory()
        org = uuid4()
        submitter = directory.add_actor("No Boss", org)
        claim = open_claim(
            claim_id=uuid4(),
            organization_id=org,
            submitter_id=submitter.actor_id,
            workflow=make_workflow(org, (FINANCE_STAGE,), gate=True),
        )
        with pytest.raises(NoEligibleApproversError) as exc_info:
            require_authorized(claim, resolve_context(claim, submitter.actor_id, directory))
        assert exc_info.value.stage_level is None
