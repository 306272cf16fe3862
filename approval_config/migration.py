"""
Legacy workflow document migration (``approval_config.migration``).

Responsibility
--------------
Normalizes workflow documents written in the historical camelCase shape
into the current snake_case shape before parsing, so the loader and every
later stage see exactly one document format.

Historical shape::

    name: Travel
    companyId: ...
    requireManagerApproval: true
    isActive: true
    steps:
      - level: 1
        stepName: Finance
        approverType: Specific          # Manager | Specific | Role
        specificApproverId: ...         # single id (oldest records)
        specificApproverIds: [...]      # list of ids
        approverRole: Admin             # Manager | Admin (Role only)
        approvalRequirement: conditional  # all | any | conditional
        conditionalRule:
          ruleType: hybrid              # percentage | specific_approver | hybrid
          percentageRequired: 60
          specificApproverId: ...
          hybridPercentage: 60
          hybridSpecificApproverId: ...

Invariants enforced
-------------------
* A single ``specificApproverId`` and a ``specificApproverIds`` list are
  merged into one fixed approver set (list order first, duplicates
  dropped later by the domain).
* The historical default requirement is ``all``.
* Documents already in the current shape pass through unchanged.

Failure modes
-------------
* Unknown legacy enum values are carried through as-is; the validator
  reports them.
"""

from __future__ import annotations

from typing import Any

_APPROVER_TYPES = {
    "Manager": "dynamic_manager",
    "Specific": "fixed_set",
    "Role": "by_capability",
}

_REQUIREMENTS = {
    "all": "all_required",
    "any": "any_one",
    "conditional": "conditional",
}

_RULE_TYPES = {
    "percentage": "percentage",
    "specific_approver": "designated_override",
    "hybrid": "hybrid",
}

_LEGACY_WORKFLOW_KEYS = frozenset({"steps", "companyId", "requireManagerApproval", "isActive"})
_LEGACY_STAGE_KEYS = frozenset({"approverType", "stepName", "approvalRequirement"})


def is_legacy_workflow(data: dict[str, Any]) -> bool:
    if _LEGACY_WORKFLOW_KEYS & data.keys():
        return True
    return any(
        isinstance(step, dict) and _LEGACY_STAGE_KEYS & step.keys()
        for step in data.get("stages") or ()
    )


def _legacy_approver_ids(step: dict[str, Any]) -> list[str]:
    ids = [str(a) for a in step.get("specificApproverIds") or ()]
    single = step.get("specificApproverId")
    if single:
        ids.append(str(single))
    return ids


def migrate_rule(rule: dict[str, Any]) -> dict[str, Any]:
    rule_type = rule.get("ruleType")
    migrated: dict[str, Any] = {"type": _RULE_TYPES.get(rule_type, rule_type)}
    if rule_type == "percentage":
        migrated["percentage"] = rule.get("percentageRequired")
    elif rule_type == "specific_approver":
        migrated["actor_id"] = rule.get("specificApproverId")
    elif rule_type == "hybrid":
        migrated["percentage"] = rule.get("hybridPercentage", rule.get("percentageRequired"))
        migrated["actor_id"] = rule.get(
            "hybridSpecificApproverId", rule.get("specificApproverId")
        )
    return migrated


def migrate_stage(step: dict[str, Any]) -> dict[str, Any]:
    """Convert one historical step into the current stage shape."""
    if not _LEGACY_STAGE_KEYS & step.keys():
        return dict(step)

    approver_type = step.get("approverType")
    approvers: dict[str, Any] = {"type": _APPROVER_TYPES.get(approver_type, approver_type)}
    if approver_type == "Specific":
        approvers["approver_ids"] = _legacy_approver_ids(step)
    elif approver_type == "Role":
        approvers["capability"] = str(step.get("approverRole") or "").lower()

    requirement = step.get("approvalRequirement") or "all"
    policy: dict[str, Any] = {"type": _REQUIREMENTS.get(requirement, requirement)}
    if requirement == "conditional":
        policy["rule"] = migrate_rule(step.get("conditionalRule") or {})

    return {
        "level": step.get("level"),
        "name": step.get("stepName") or "",
        "approvers": approvers,
        "policy": policy,
    }


def migrate_workflow(data: dict[str, Any]) -> dict[str, Any]:
    """Convert one historical workflow document into the current shape."""
    if not is_legacy_workflow(data):
        return dict(data)

    stages = data.get("stages", data.get("steps")) or []
    migrated = {
        "name": data.get("name"),
        "organization_id": data.get("organization_id", data.get("companyId")),
        "description": data.get("description", ""),
        "requires_pre_approval_gate": bool(
            data.get("requires_pre_approval_gate", data.get("requireManagerApproval", False))
        ),
        "is_active": bool(data.get("is_active", data.get("isActive", True))),
        "stages": [migrate_stage(s) for s in stages],
    }
    for key in ("workflow_id", "version"):
        if key in data:
            migrated[key] = data[key]
    return migrated


def migrate_document(data: dict[str, Any]) -> tuple[dict[str, Any], bool]:
    """Normalize a whole YAML document.

    Returns:
        The normalized document and whether any workflow was migrated.
    """
    workflows = data.get("workflows") or []
    migrated_any = any(isinstance(w, dict) and is_legacy_workflow(w) for w in workflows)
    document = dict(data)
    document["workflows"] = [
        migrate_workflow(w) if isinstance(w, dict) else w for w in workflows
    ]
    return document, migrated_any
