"""
approval_engines.authorization -- Who may act at a claim's open gate or stage.

Responsibility:
    Given a stage (or the pre-approval gate) and a resolved
    ``ApprovalContext``, decide whether the acting actor is an authorized
    approver, and how many approvers are eligible at all.

Architecture position:
    Engines -- pure calculation layer, zero I/O once the context exists.
    ``resolve_context`` is the only function touching the directory and
    must run before the per-claim critical section.

Invariants enforced:
    - DynamicManager: only the submitter's direct manager; nobody when
      the submitter has no manager.
    - FixedSet: membership in the snapshotted set.  An approver later
      removed from the organization keeps authorization on claims already
      bound to the snapshot.
    - ByCapability: the actor belongs to the claim's organization and
      holds the capability.
    - Gate: only the submitter's direct manager.

Failure modes:
    - NoEligibleApproversError when the gate or stage resolves to zero
      eligible approvers (checked before the actor's own authorization).
    - UnauthorizedError when the actor fails the check.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from uuid import UUID

from approval_kernel.domain.claim import Claim
from approval_kernel.domain.directory import Actor, OrgDirectory
from approval_kernel.domain.workflow import (
    ByCapability,
    DynamicManager,
    FixedSet,
    Stage,
)
from approval_kernel.exceptions import NoEligibleApproversError, UnauthorizedError


@dataclass(frozen=True)
class ApprovalContext:
    """Everything the resolver needs about one actor acting on one claim.

    ``actor`` is None when the directory does not know ``actor_id``.
    ``capability_holders`` maps each capability named by the claim's
    workflow to the organization members holding it.
    """

    actor_id: UUID
    organization_id: UUID
    actor: Actor | None = None
    submitter_manager_id: UUID | None = None
    capability_holders: Mapping[str, frozenset[UUID]] = field(default_factory=dict)

    @property
    def actor_name(self) -> str:
        return self.actor.display_name if self.actor is not None else str(self.actor_id)

    @property
    def in_organization(self) -> bool:
        return self.actor is not None and self.actor.organization_id == self.organization_id


def resolve_context(claim: Claim, actor_id: UUID, directory: OrgDirectory) -> ApprovalContext:
    """Run every directory lookup needed to judge ``actor_id`` on ``claim``."""
    actor = directory.get_actor(actor_id)
    if actor is not None:
        capabilities = directory.actor_capabilities(actor_id)
        if capabilities != actor.capabilities:
            actor = Actor(
                actor_id=actor.actor_id,
                display_name=actor.display_name,
                organization_id=actor.organization_id,
                capabilities=frozenset(capabilities),
                manager_id=actor.manager_id,
            )
    holders = {
        stage.approvers.capability: frozenset(
            directory.capability_holders(claim.organization_id, stage.approvers.capability)
        )
        for stage in claim.workflow.stages
        if isinstance(stage.approvers, ByCapability)
    }
    return ApprovalContext(
        actor_id=actor_id,
        organization_id=claim.organization_id,
        actor=actor,
        submitter_manager_id=directory.resolve_manager(claim.submitter_id),
        capability_holders=holders,
    )


def is_gate_authorized(context: ApprovalContext) -> bool:
    return (
        context.submitter_manager_id is not None
        and context.actor_id == context.submitter_manager_id
    )


def is_authorized(stage: Stage, context: ApprovalContext) -> bool:
    """Whether the context's actor is an approver for ``stage``."""
    selector = stage.approvers
    if isinstance(selector, DynamicManager):
        return is_gate_authorized(context)
    if isinstance(selector, FixedSet):
        return context.actor_id in selector
    if isinstance(selector, ByCapability):
        return (
            context.in_organization
            and context.actor is not None
            and context.actor.has_capability(selector.capability)
        )
    return False


def gate_eligible_count(context: ApprovalContext) -> int:
    return 1 if context.submitter_manager_id is not None else 0


def eligible_approver_count(stage: Stage, context: ApprovalContext) -> int:
    """Number of distinct actors who could vote at ``stage``."""
    selector = stage.approvers
    if isinstance(selector, FixedSet):
        return len(selector.approver_ids)
    if isinstance(selector, DynamicManager):
        return gate_eligible_count(context)
    if isinstance(selector, ByCapability):
        return len(context.capability_holders.get(selector.capability, frozenset()))
    return 0


def require_authorized(claim: Claim, context: ApprovalContext) -> Stage | None:
    """Raise unless the actor may act at the claim's open gate or stage.

    Returns the open stage, or None when the claim sits at the gate.
    """
    claim_id = str(claim.claim_id)
    actor_id = str(context.actor_id)
    if claim.at_gate:
        if gate_eligible_count(context) < 1:
            raise NoEligibleApproversError(claim_id, actor_id, None)
        if not is_gate_authorized(context):
            raise UnauthorizedError(
                claim_id, actor_id, None, reason="only the submitter's manager may pre-approve"
            )
        return None

    stage = claim.current_stage
    if stage is None:
        raise UnauthorizedError(claim_id, actor_id, None, reason="claim has no open stage")
    if eligible_approver_count(stage, context) < 1:
        raise NoEligibleApproversError(claim_id, actor_id, stage.level)
    if not is_authorized(stage, context):
        raise UnauthorizedError(claim_id, actor_id, stage.level)
    return stage
