"""
Workflow Configuration Validator (``approval_config.validator``).

Responsibility
--------------
Validates a ``WorkflowSetDef`` before any of its workflows reaches the
kernel, collecting every problem instead of stopping at the first.

Architecture position
---------------------
**Config layer** -- load-time validation.  Called by
``approval_config.load_workflow_set`` after parsing and before the
bridge.  Uses the bridge to run the kernel's own construction checks.

Invariants enforced
-------------------
* Vocabulary -- approver types, policies and rule types are known.
* Workflow name uniqueness per organization and version.
* Every workflow builds into a kernel ``WorkflowDefinition``.
* More than one active workflow per organization is a warning: claims
  bind to the most recently created one.

Failure modes
-------------
* Validation errors (``WorkflowValidationResult.errors``)  -> the set
  MUST NOT be loaded.
* Validation warnings (``WorkflowValidationResult.warnings``)  -> the
  set loads but should be reviewed.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from uuid import UUID

from approval_config.bridges import build_workflow
from approval_config.schema import (
    APPROVER_TYPES,
    POLICY_TYPES,
    RULE_TYPES,
    WorkflowDef,
    WorkflowSetDef,
)
from approval_kernel.exceptions import WorkflowValidationError


@dataclass
class WorkflowValidationResult:
    """
    Result of workflow set validation.

    ``is_valid`` is ``True`` only when ``errors`` is empty.
    """

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)


def validate_workflow_set(
    workflow_set: WorkflowSetDef,
    organization_id: UUID | None = None,
) -> WorkflowValidationResult:
    """
    Validate a parsed workflow set.

    Args:
        workflow_set: Output of the loader.
        organization_id: When given, overrides every workflow's organization.
    """
    result = WorkflowValidationResult()

    if not workflow_set.workflows:
        result.add_warning(f"workflow set {workflow_set.name!r} contains no workflows")

    for workflow in workflow_set.workflows:
        _validate_vocabulary(workflow, result)
        _validate_buildable(workflow, organization_id, result)

    _validate_name_uniqueness(workflow_set, organization_id, result)
    _validate_single_active(workflow_set, organization_id, result)
    return result


def _org_key(workflow: WorkflowDef, organization_id: UUID | None) -> str:
    if organization_id is not None:
        return str(organization_id)
    return workflow.organization_id or "<none>"


def _validate_vocabulary(workflow: WorkflowDef, result: WorkflowValidationResult) -> None:
    for stage in workflow.stages:
        where = f"workflow {workflow.name!r} stage {stage.level}"
        if stage.approver_type not in APPROVER_TYPES:
            result.add_error(f"{where}: unknown approver type {stage.approver_type!r}")
        if stage.policy not in POLICY_TYPES:
            result.add_error(f"{where}: unknown policy {stage.policy!r}")
        elif stage.policy == "conditional" and stage.rule_type not in RULE_TYPES:
            result.add_error(f"{where}: unknown conditional rule {stage.rule_type!r}")
        if stage.approver_type != "fixed_set" and stage.approver_ids:
            result.add_warning(f"{where}: approver_ids ignored for {stage.approver_type}")


def _validate_buildable(
    workflow: WorkflowDef,
    organization_id: UUID | None,
    result: WorkflowValidationResult,
) -> None:
    try:
        build_workflow(workflow, organization_id=organization_id)
    except WorkflowValidationError as exc:
        for error in exc.errors:
            result.add_error(f"workflow {workflow.name!r}: {error}")


def _validate_name_uniqueness(
    workflow_set: WorkflowSetDef,
    organization_id: UUID | None,
    result: WorkflowValidationResult,
) -> None:
    counts = Counter(
        (_org_key(w, organization_id), w.name, w.version) for w in workflow_set.workflows
    )
    for (org, name, version), count in counts.items():
        if count > 1:
            result.add_error(
                f"duplicate workflow {name!r} v{version} for organization {org} "
                f"appears {count} times"
            )


def _validate_single_active(
    workflow_set: WorkflowSetDef,
    organization_id: UUID | None,
    result: WorkflowValidationResult,
) -> None:
    active = Counter(
        _org_key(w, organization_id) for w in workflow_set.workflows if w.is_active
    )
    for org, count in active.items():
        if count > 1:
            result.add_warning(
                f"organization {org} has {count} active workflows; "
                "new claims use the most recently created one"
            )
