"""
Config -> Kernel Bridges.

Functions that convert schema definitions into kernel
``WorkflowDefinition`` objects.  These live in approval_config (the
producer) because the kernel must NEVER import approval_config.

Usage:
    from approval_config.bridges import build_workflow

    workflow = build_workflow(workflow_def, organization_id=org_id)
"""

from __future__ import annotations

from uuid import UUID, uuid5

from approval_config.schema import StageDef, WorkflowDef
from approval_kernel.domain.workflow import (
    AggregationPolicy,
    AllRequired,
    AnyOne,
    ApproverSelector,
    ByCapability,
    Conditional,
    ConditionalRule,
    DesignatedOverride,
    DynamicManager,
    FixedSet,
    Hybrid,
    PercentageThreshold,
    Stage,
    WorkflowDefinition,
)
from approval_kernel.exceptions import WorkflowValidationError

# Fixed namespace for deterministic workflow ids of YAML-authored workflows.
_WORKFLOW_UUID_NAMESPACE = UUID("5b0f3c1e-8d2a-4c47-9f61-2e7d4a9b0c13")


def parse_uuid(value: str | None, what: str) -> UUID:
    try:
        return UUID(str(value))
    except ValueError as exc:
        raise WorkflowValidationError([f"{what} is not a valid UUID: {value!r}"]) from exc


def derive_workflow_id(organization_id: UUID, name: str, version: int) -> UUID:
    """Same organization, name and version always yield the same id."""
    return uuid5(_WORKFLOW_UUID_NAMESPACE, f"{organization_id}:{name}:{version}")


def build_selector(stage: StageDef) -> ApproverSelector:
    if stage.approver_type == "dynamic_manager":
        return DynamicManager()
    if stage.approver_type == "fixed_set":
        return FixedSet(
            tuple(
                parse_uuid(a, f"stage {stage.level} approver") for a in stage.approver_ids
            )
        )
    if stage.approver_type == "by_capability":
        return ByCapability(stage.capability or "")
    raise WorkflowValidationError(
        [f"stage {stage.level}: unknown approver type {stage.approver_type!r}"]
    )


def build_rule(stage: StageDef) -> ConditionalRule:
    if stage.rule_type == "percentage":
        return PercentageThreshold(stage.percentage)
    if stage.rule_type == "designated_override":
        return DesignatedOverride(
            parse_uuid(stage.override_actor, f"stage {stage.level} designated approver")
        )
    if stage.rule_type == "hybrid":
        return Hybrid(
            stage.percentage,
            parse_uuid(stage.override_actor, f"stage {stage.level} designated approver"),
        )
    raise WorkflowValidationError(
        [f"stage {stage.level}: unknown conditional rule {stage.rule_type!r}"]
    )


def build_policy(stage: StageDef) -> AggregationPolicy:
    if stage.policy == "any_one":
        return AnyOne()
    if stage.policy == "all_required":
        return AllRequired()
    if stage.policy == "conditional":
        return Conditional(build_rule(stage))
    raise WorkflowValidationError([f"stage {stage.level}: unknown policy {stage.policy!r}"])


def build_stage(stage: StageDef) -> Stage:
    return Stage(
        level=stage.level,
        name=stage.name,
        approvers=build_selector(stage),
        policy=build_policy(stage),
    )


def build_workflow(
    definition: WorkflowDef,
    organization_id: UUID | None = None,
    created_by: UUID | None = None,
) -> WorkflowDefinition:
    """Build a kernel definition from a schema definition.

    Args:
        definition: Parsed YAML workflow.
        organization_id: Overrides the document's organization.
        created_by: Recorded as the author of the definition.

    Raises:
        WorkflowValidationError: The definition is malformed.
    """
    if organization_id is None:
        if definition.organization_id is None:
            raise WorkflowValidationError(
                ["workflow has no organization_id"], workflow_name=definition.name
            )
        organization_id = parse_uuid(definition.organization_id, "organization_id")

    if definition.workflow_id is not None:
        workflow_id = parse_uuid(definition.workflow_id, "workflow_id")
    else:
        workflow_id = derive_workflow_id(organization_id, definition.name, definition.version)

    return WorkflowDefinition(
        workflow_id=workflow_id,
        organization_id=organization_id,
        name=definition.name,
        description=definition.description,
        version=definition.version,
        requires_pre_approval_gate=definition.requires_pre_approval_gate,
        is_active=definition.is_active,
        created_by=created_by,
        stages=tuple(build_stage(s) for s in definition.stages),
    )
