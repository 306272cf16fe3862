"""
Module: approval_engines
Responsibility:
    Package entrypoint re-exporting the pure approval engines: stage
    authorization, vote aggregation, claim progression and the
    pending-work projection.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import approval_kernel domain types and exceptions.
    MUST NOT import approval_services or approval_config.

Invariants enforced:
    - Purity: engines NEVER call ``datetime.now()``.  Decision timestamps
      and identifiers are passed in by the caller.
    - Determinism: identical inputs always produce identical outputs.

Usage:
    from approval_engines import apply_decision, evaluate_stage
    from approval_engines.authorization import resolve_context
"""

from approval_engines.aggregation import (
    StageEvaluation,
    approval_percentage,
    evaluate_stage,
)
from approval_engines.authorization import (
    ApprovalContext,
    eligible_approver_count,
    gate_eligible_count,
    is_authorized,
    is_gate_authorized,
    require_authorized,
    resolve_context,
)
from approval_engines.pending import actionable_step, find_actionable
from approval_engines.progression import ProgressionResult, apply_decision, open_claim
from approval_engines.tracer import traced_engine

__all__ = [
    "ApprovalContext",
    "resolve_context",
    "is_authorized",
    "is_gate_authorized",
    "eligible_approver_count",
    "gate_eligible_count",
    "require_authorized",
    "StageEvaluation",
    "evaluate_stage",
    "approval_percentage",
    "ProgressionResult",
    "open_claim",
    "apply_decision",
    "actionable_step",
    "find_actionable",
    "traced_engine",
]
