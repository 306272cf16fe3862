"""
approval_engines.pending -- Which claims an actor can act on right now.

Responsibility:
    Project a set of claims onto the single step (gate or stage) the
    querying actor could decide, if any.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  The claims come from
    ``approval_kernel.selectors.claim_selector``; the per-claim contexts
    from ``approval_engines.authorization.resolve_context``.

Invariants enforced:
    - A claim appears at most once.
    - While the gate is open only the gate is offered; stage approvers
      do not see the claim until the gate clears.
    - Stages already voted on by the actor, resolved ballots and stages
      with zero eligible approvers are never offered.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable

from approval_engines.authorization import (
    ApprovalContext,
    eligible_approver_count,
    is_authorized,
    is_gate_authorized,
)
from approval_kernel.domain.claim import (
    GATE_STEP_NAME,
    PENDING_STEP_GATE,
    PENDING_STEP_STAGE,
    ActionableClaim,
    Claim,
)


def actionable_step(claim: Claim, context: ApprovalContext) -> ActionableClaim | None:
    """The step of ``claim`` the context's actor may decide, or None."""
    if not claim.is_pending:
        return None
    if context.actor is not None and context.actor.organization_id != claim.organization_id:
        return None

    if claim.at_gate:
        if is_gate_authorized(context):
            return ActionableClaim(claim, PENDING_STEP_GATE, GATE_STEP_NAME, None)
        return None

    stage = claim.current_stage
    ballot = claim.current_ballot
    if stage is None or ballot is None or ballot.resolved:
        return None
    if eligible_approver_count(stage, context) < 1:
        return None
    if not is_authorized(stage, context) or ballot.has_voted(context.actor_id):
        return None
    return ActionableClaim(claim, PENDING_STEP_STAGE, stage.name, stage.level)


def find_actionable(
    claims: Iterable[Claim],
    context_for: Callable[[Claim], ApprovalContext],
) -> list[ActionableClaim]:
    """Actionable entries for ``claims``, in input order."""
    seen = set()
    result: list[ActionableClaim] = []
    for claim in claims:
        if claim.claim_id in seen or not claim.is_pending:
            continue
        seen.add(claim.claim_id)
        entry = actionable_step(claim, context_for(claim))
        if entry is not None:
            result.append(entry)
    return result
