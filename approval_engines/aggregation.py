"""
approval_engines.aggregation -- Combine a stage's votes into an outcome.

Responsibility:
    Evaluate one stage ballot against the stage's aggregation policy and
    the number of eligible approvers.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import approval_kernel domain types and exceptions.

Invariants enforced:
    - A recorded rejection resolves the stage as rejected under every
      policy; rejection is fail-fast.
    - Percentage thresholds use exact Decimal division, never integer
      floor: 3 of 5 is 60%, 2 of 3 is 66.67% and misses 67%.
    - Purity: no clock access, no I/O, no database.

Failure modes:
    - NoEligibleApproversError when ``eligible_count < 1``; an empty
      stage never auto-approves.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from approval_kernel.domain.claim import StageBallot, StageOutcome
from approval_kernel.domain.workflow import (
    AllRequired,
    AnyOne,
    Conditional,
    DesignatedOverride,
    Hybrid,
    PercentageThreshold,
    Stage,
)
from approval_kernel.exceptions import NoEligibleApproversError

_HUNDRED = Decimal(100)


@dataclass(frozen=True)
class StageEvaluation:
    """Result of evaluating a stage ballot."""

    outcome: StageOutcome
    votes: int
    eligible: int
    reason: str = ""

    @property
    def is_resolved(self) -> bool:
        return self.outcome is not StageOutcome.UNRESOLVED

    @property
    def is_approved(self) -> bool:
        return self.outcome is StageOutcome.RESOLVED_APPROVED


def approval_percentage(votes: int, eligible: int) -> Decimal:
    return _HUNDRED * Decimal(votes) / Decimal(eligible)


def _meets_percentage(votes: int, eligible: int, percentage: int) -> bool:
    return approval_percentage(votes, eligible) >= Decimal(percentage)


def evaluate_stage(stage: Stage, ballot: StageBallot, eligible_count: int) -> StageEvaluation:
    """Decide whether ``ballot`` resolves ``stage``.

    Args:
        stage: The stage whose policy applies.
        ballot: Votes recorded so far at this stage.
        eligible_count: Distinct actors who could vote here (from the
            authorization resolver).

    Returns:
        StageEvaluation with the outcome and the counts behind it.
    """
    if eligible_count < 1:
        raise NoEligibleApproversError(stage_level=stage.level)

    votes = len(ballot.votes_for)

    if ballot.rejected_by is not None:
        return StageEvaluation(
            StageOutcome.RESOLVED_REJECTED,
            votes,
            eligible_count,
            f"Rejected by {ballot.rejected_by}",
        )

    policy = stage.policy
    if isinstance(policy, AnyOne):
        approved = votes >= 1
        reason = "Approved by first approver" if approved else "Awaiting first approval"
    elif isinstance(policy, AllRequired):
        approved = votes >= eligible_count
        reason = f"{votes}/{eligible_count} approvals"
    elif isinstance(policy, Conditional):
        approved, reason = _evaluate_rule(policy, ballot, votes, eligible_count)
    else:
        approved, reason = False, f"Unknown policy {policy!r}"

    outcome = StageOutcome.RESOLVED_APPROVED if approved else StageOutcome.UNRESOLVED
    return StageEvaluation(outcome, votes, eligible_count, reason)


def _evaluate_rule(
    policy: Conditional,
    ballot: StageBallot,
    votes: int,
    eligible: int,
) -> tuple[bool, str]:
    rule = policy.rule
    if isinstance(rule, PercentageThreshold):
        met = _meets_percentage(votes, eligible, rule.percentage)
        return met, f"{votes}/{eligible} approvals against {rule.percentage}% threshold"
    if isinstance(rule, DesignatedOverride):
        met = rule.actor_id in ballot.votes_for
        return met, "Designated approver approved" if met else "Awaiting designated approver"
    if isinstance(rule, Hybrid):
        if rule.actor_id in ballot.votes_for:
            return True, "Designated approver approved"
        met = _meets_percentage(votes, eligible, rule.percentage)
        return met, f"{votes}/{eligible} approvals against {rule.percentage}% threshold"
    return False, f"Unknown rule {rule!r}"
