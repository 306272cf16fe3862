"""
Workflow Configuration Loader (``approval_config.loader``).

Responsibility
--------------
Loads YAML workflow documents and parses them into typed
``approval_config.schema`` dataclass instances.  Callers normally go
through ``approval_config.load_workflow_set()``, which adds migration,
validation and the kernel bridge.

Architecture position
---------------------
**Config layer** -- infrastructure tooling.  No dependency on the kernel;
this module only produces schema objects.

Invariants enforced
-------------------
* Required keys missing from the document raise ``KeyError``; no silent
  defaults for ``name`` or stage ``level``.
* Every parsed object is a frozen dataclass from ``schema.py``.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the raw
  document for change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from approval_config.migration import migrate_document
from approval_config.schema import StageDef, WorkflowDef, WorkflowSetDef


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def _optional_str(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


def parse_stage(data: dict[str, Any]) -> StageDef:
    """Parse a ``StageDef`` from a current-shape stage dict."""
    approvers = data.get("approvers") or {}
    policy = data.get("policy") or {}
    if isinstance(policy, str):
        policy = {"type": policy}
    rule = policy.get("rule") or {}

    return StageDef(
        level=data["level"],
        name=str(data.get("name") or ""),
        approver_type=str(approvers.get("type", "")),
        approver_ids=tuple(str(a) for a in approvers.get("approver_ids") or ()),
        capability=_optional_str(approvers.get("capability")),
        policy=str(policy.get("type", "any_one")),
        rule_type=_optional_str(rule.get("type")),
        percentage=rule.get("percentage"),
        override_actor=_optional_str(rule.get("actor_id")),
    )


def parse_workflow(data: dict[str, Any]) -> WorkflowDef:
    return WorkflowDef(
        name=data["name"],
        organization_id=_optional_str(data.get("organization_id")),
        workflow_id=_optional_str(data.get("workflow_id")),
        description=str(data.get("description") or ""),
        version=data.get("version", 1),
        requires_pre_approval_gate=bool(data.get("requires_pre_approval_gate", False)),
        is_active=bool(data.get("is_active", True)),
        stages=tuple(parse_stage(s) for s in data.get("stages") or ()),
    )


def parse_workflow_set(
    data: dict[str, Any],
    source_path: str | None = None,
) -> WorkflowSetDef:
    """
    Parse a whole document, migrating legacy workflows first.

    The checksum covers the document as written, before migration.
    """
    checksum = compute_checksum(data)
    document, migrated = migrate_document(data)
    header = document.get("workflow_set") or {}
    return WorkflowSetDef(
        name=str(header.get("name") or (Path(source_path).stem if source_path else "workflows")),
        version=header.get("version", 1),
        workflows=tuple(parse_workflow(w) for w in document.get("workflows") or ()),
        checksum=checksum,
        source_path=source_path,
        migrated_from_legacy=migrated,
    )


def load_workflow_set_def(path: Path) -> WorkflowSetDef:
    path = Path(path)
    return parse_workflow_set(load_yaml_file(path), source_path=str(path))


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
