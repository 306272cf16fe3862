"""
Workflow configuration schema.

Defines the human-authored, reviewable source artifact for approval
workflows.  YAML documents are normalized by the migration step, parsed
into these types by the loader, checked by the validator, and turned into
kernel ``WorkflowDefinition`` objects by the bridges.

Key distinction:
  WorkflowSetDef      = source artifact (human-authored, string-typed)
  WorkflowDefinition  = runtime artifact (kernel domain, fully validated)

Identifiers stay strings here; the validator reports the ones that do not
parse, the bridges convert them.
"""

from __future__ import annotations

from dataclasses import dataclass

# ---------------------------------------------------------------------------
# Vocabulary
# ---------------------------------------------------------------------------

APPROVER_TYPES = ("dynamic_manager", "fixed_set", "by_capability")
POLICY_TYPES = ("any_one", "all_required", "conditional")
RULE_TYPES = ("percentage", "designated_override", "hybrid")


# ---------------------------------------------------------------------------
# Stage
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StageDef:
    """One stage as written in YAML."""

    level: int
    approver_type: str
    policy: str = "any_one"
    name: str = ""
    approver_ids: tuple[str, ...] = ()
    capability: str | None = None
    rule_type: str | None = None
    percentage: int | None = None
    override_actor: str | None = None


# ---------------------------------------------------------------------------
# Workflow
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class WorkflowDef:
    """One workflow as written in YAML.

    ``workflow_id`` is optional; the bridge derives a stable id from the
    organization, name and version when it is absent.
    """

    name: str
    organization_id: str | None = None
    workflow_id: str | None = None
    description: str = ""
    version: int = 1
    requires_pre_approval_gate: bool = False
    is_active: bool = True
    stages: tuple[StageDef, ...] = ()


@dataclass(frozen=True)
class WorkflowSetDef:
    """A YAML document: a named, versioned group of workflows."""

    name: str
    version: int = 1
    workflows: tuple[WorkflowDef, ...] = ()
    checksum: str = ""
    source_path: str | None = None
    migrated_from_legacy: bool = False
