"""
Workflow definition types (``approval_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects describing an organization's approval chain: the
ordered stages, who may approve at each stage (approver selectors), and
how the votes of several approvers combine (aggregation policies).

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``services/``, ``selectors/``, or outer layers.

Invariants enforced
-------------------
* Every definition is validated at construction; a malformed one can
  never exist, so decision-time code never re-validates.
* Stage levels are unique and strictly ascending.
* Every definition has at least one stage; the gate alone is not a workflow.
* A designated override actor on a fixed-set stage is a member of the set.
* Definitions are frozen and round-trip through ``workflow_to_snapshot``
  / ``workflow_from_snapshot``; claims store the snapshot, never a
  reference to the live row.

Failure modes
-------------
* ``WorkflowValidationError`` on any malformed selector, policy, stage or
  definition.  ``errors`` lists every problem found at that level.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Union
from uuid import UUID

from approval_kernel.exceptions import WorkflowValidationError
from approval_kernel.utils.hashing import hash_payload


# =========================================================================
# Approver selectors
# =========================================================================


@dataclass(frozen=True)
class DynamicManager:
    """The claim submitter's direct manager, resolved at decision time."""


@dataclass(frozen=True)
class FixedSet:
    """An explicit list of approvers.

    Duplicates are dropped keeping first-seen order.
    """

    approver_ids: tuple[UUID, ...]

    def __post_init__(self) -> None:
        ids = tuple(dict.fromkeys(self.approver_ids))
        if not ids:
            raise WorkflowValidationError(["fixed approver set must not be empty"])
        object.__setattr__(self, "approver_ids", ids)

    def __contains__(self, actor_id: object) -> bool:
        return actor_id in self.approver_ids


@dataclass(frozen=True)
class ByCapability:
    """Any actor in the organization holding ``capability``."""

    capability: str

    def __post_init__(self) -> None:
        if not isinstance(self.capability, str) or not self.capability.strip():
            raise WorkflowValidationError(["capability selector requires a capability name"])
        object.__setattr__(self, "capability", self.capability.strip())


ApproverSelector = Union[DynamicManager, FixedSet, ByCapability]


# =========================================================================
# Aggregation policies
# =========================================================================


def _check_percentage(value: Any) -> list[str]:
    if isinstance(value, bool) or not isinstance(value, int):
        return [f"percentage must be an integer, got {value!r}"]
    if not 1 <= value <= 100:
        return [f"percentage must be within 1..100, got {value}"]
    return []


def _check_actor(value: Any) -> list[str]:
    if not isinstance(value, UUID):
        return [f"designated actor must be a UUID, got {value!r}"]
    return []


@dataclass(frozen=True)
class PercentageThreshold:
    percentage: int

    def __post_init__(self) -> None:
        errors = _check_percentage(self.percentage)
        if errors:
            raise WorkflowValidationError(errors)


@dataclass(frozen=True)
class DesignatedOverride:
    actor_id: UUID

    def __post_init__(self) -> None:
        errors = _check_actor(self.actor_id)
        if errors:
            raise WorkflowValidationError(errors)


@dataclass(frozen=True)
class Hybrid:
    """Either the percentage test or the designated actor's vote suffices."""

    percentage: int
    actor_id: UUID

    def __post_init__(self) -> None:
        errors = _check_percentage(self.percentage) + _check_actor(self.actor_id)
        if errors:
            raise WorkflowValidationError(errors)


ConditionalRule = Union[PercentageThreshold, DesignatedOverride, Hybrid]


@dataclass(frozen=True)
class AnyOne:
    """First approval resolves the stage."""


@dataclass(frozen=True)
class AllRequired:
    """Every eligible approver must approve."""


@dataclass(frozen=True)
class Conditional:
    rule: ConditionalRule

    def __post_init__(self) -> None:
        if not isinstance(self.rule, (PercentageThreshold, DesignatedOverride, Hybrid)):
            raise WorkflowValidationError(
                [f"conditional policy requires a rule, got {self.rule!r}"]
            )

    @property
    def override_actor(self) -> UUID | None:
        if isinstance(self.rule, (DesignatedOverride, Hybrid)):
            return self.rule.actor_id
        return None


AggregationPolicy = Union[AnyOne, AllRequired, Conditional]


# =========================================================================
# Stage and workflow definition
# =========================================================================


@dataclass(frozen=True)
class Stage:
    """One level of the approval chain.

    ``name`` is display-only and defaults to ``"Step {level}"``.
    """

    level: int
    approvers: ApproverSelector
    policy: AggregationPolicy
    name: str = ""

    def __post_init__(self) -> None:
        errors: list[str] = []
        if isinstance(self.level, bool) or not isinstance(self.level, int) or self.level < 1:
            errors.append(f"stage level must be a positive integer, got {self.level!r}")
        if not isinstance(self.approvers, (DynamicManager, FixedSet, ByCapability)):
            errors.append(f"stage {self.level}: unknown approver selector {self.approvers!r}")
        if not isinstance(self.policy, (AnyOne, AllRequired, Conditional)):
            errors.append(f"stage {self.level}: unknown aggregation policy {self.policy!r}")
        elif (
            isinstance(self.policy, Conditional)
            and isinstance(self.approvers, FixedSet)
            and self.policy.override_actor is not None
            and self.policy.override_actor not in self.approvers
        ):
            errors.append(
                f"stage {self.level}: designated approver {self.policy.override_actor} "
                "is not in the stage's approver set"
            )
        if errors:
            raise WorkflowValidationError(errors)
        if not self.name or not self.name.strip():
            object.__setattr__(self, "name", f"Step {self.level}")


@dataclass(frozen=True)
class WorkflowDefinition:
    """An organization's approval chain.

    Immutable. A claim binds to the snapshot of the definition that was
    active when it was created.
    """

    workflow_id: UUID
    organization_id: UUID
    name: str
    stages: tuple[Stage, ...] = ()
    requires_pre_approval_gate: bool = False
    is_active: bool = True
    description: str = ""
    version: int = 1
    created_by: UUID | None = None
    created_at: datetime | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "stages", tuple(self.stages))
        errors: list[str] = []
        if not self.name or not self.name.strip():
            errors.append("workflow name must not be blank")
        if not self.stages:
            errors.append("workflow must have at least one stage")
        for stage in self.stages:
            if not isinstance(stage, Stage):
                errors.append(f"not a stage: {stage!r}")
        levels = [s.level for s in self.stages if isinstance(s, Stage)]
        if len(set(levels)) != len(levels):
            errors.append(f"stage levels must be unique, got {levels}")
        elif levels != sorted(levels):
            errors.append(f"stage levels must be ascending, got {levels}")
        if errors:
            raise WorkflowValidationError(errors, workflow_name=self.name or None)

    @property
    def stage_count(self) -> int:
        return len(self.stages)

    @property
    def definition_hash(self) -> str:
        """SHA-256 over the approval-relevant parts of the snapshot."""
        return definition_hash(self)


# =========================================================================
# Snapshot (de)serialization
# =========================================================================


def _selector_to_dict(selector: ApproverSelector) -> dict[str, Any]:
    if isinstance(selector, FixedSet):
        return {"type": "fixed_set", "approver_ids": [str(a) for a in selector.approver_ids]}
    if isinstance(selector, ByCapability):
        return {"type": "by_capability", "capability": selector.capability}
    return {"type": "dynamic_manager"}


def _selector_from_dict(data: dict[str, Any]) -> ApproverSelector:
    kind = data.get("type")
    if kind == "dynamic_manager":
        return DynamicManager()
    if kind == "fixed_set":
        return FixedSet(tuple(UUID(str(a)) for a in data.get("approver_ids") or ()))
    if kind == "by_capability":
        return ByCapability(data.get("capability", ""))
    raise WorkflowValidationError([f"unknown approver selector type: {kind!r}"])


def _rule_to_dict(rule: ConditionalRule) -> dict[str, Any]:
    if isinstance(rule, PercentageThreshold):
        return {"type": "percentage", "percentage": rule.percentage}
    if isinstance(rule, DesignatedOverride):
        return {"type": "designated_override", "actor_id": str(rule.actor_id)}
    return {"type": "hybrid", "percentage": rule.percentage, "actor_id": str(rule.actor_id)}


def _rule_from_dict(data: dict[str, Any]) -> ConditionalRule:
    kind = data.get("type")
    if kind == "percentage":
        return PercentageThreshold(data.get("percentage"))
    if kind == "designated_override":
        return DesignatedOverride(UUID(str(data.get("actor_id"))))
    if kind == "hybrid":
        return Hybrid(data.get("percentage"), UUID(str(data.get("actor_id"))))
    raise WorkflowValidationError([f"unknown conditional rule type: {kind!r}"])


def _policy_to_dict(policy: AggregationPolicy) -> dict[str, Any]:
    if isinstance(policy, AllRequired):
        return {"type": "all_required"}
    if isinstance(policy, Conditional):
        return {"type": "conditional", "rule": _rule_to_dict(policy.rule)}
    return {"type": "any_one"}


def _policy_from_dict(data: dict[str, Any]) -> AggregationPolicy:
    kind = data.get("type")
    if kind == "any_one":
        return AnyOne()
    if kind == "all_required":
        return AllRequired()
    if kind == "conditional":
        return Conditional(_rule_from_dict(data.get("rule") or {}))
    raise WorkflowValidationError([f"unknown aggregation policy type: {kind!r}"])


def stage_to_dict(stage: Stage) -> dict[str, Any]:
    return {
        "level": stage.level,
        "name": stage.name,
        "approvers": _selector_to_dict(stage.approvers),
        "policy": _policy_to_dict(stage.policy),
    }


def stage_from_dict(data: dict[str, Any]) -> Stage:
    return Stage(
        level=data["level"],
        name=data.get("name", ""),
        approvers=_selector_from_dict(data.get("approvers") or {}),
        policy=_policy_from_dict(data.get("policy") or {}),
    )


def workflow_to_snapshot(workflow: WorkflowDefinition) -> dict[str, Any]:
    """Canonical JSON-ready dict of a workflow definition."""
    return {
        "workflow_id": str(workflow.workflow_id),
        "organization_id": str(workflow.organization_id),
        "name": workflow.name,
        "description": workflow.description,
        "version": workflow.version,
        "requires_pre_approval_gate": workflow.requires_pre_approval_gate,
        "is_active": workflow.is_active,
        "created_by": str(workflow.created_by) if workflow.created_by else None,
        "created_at": workflow.created_at.isoformat() if workflow.created_at else None,
        "stages": [stage_to_dict(s) for s in workflow.stages],
    }


def workflow_from_snapshot(data: dict[str, Any]) -> WorkflowDefinition:
    """Rebuild a definition from ``workflow_to_snapshot`` output."""
    created_at = data.get("created_at")
    created_by = data.get("created_by")
    return WorkflowDefinition(
        workflow_id=UUID(str(data["workflow_id"])),
        organization_id=UUID(str(data["organization_id"])),
        name=data["name"],
        description=data.get("description", ""),
        version=data.get("version", 1),
        requires_pre_approval_gate=bool(data.get("requires_pre_approval_gate", False)),
        is_active=bool(data.get("is_active", True)),
        created_by=UUID(str(created_by)) if created_by else None,
        created_at=datetime.fromisoformat(created_at) if created_at else None,
        stages=tuple(stage_from_dict(s) for s in data.get("stages", ())),
    )


def definition_hash(workflow: WorkflowDefinition) -> str:
    """Fingerprint of the routing rules.

    Excludes ``is_active`` and audit fields so toggling a definition does
    not change its hash.
    """
    snapshot = workflow_to_snapshot(workflow)
    for volatile in ("is_active", "created_at", "created_by"):
        snapshot.pop(volatile, None)
    return hash_payload(snapshot)
