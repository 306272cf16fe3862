#!/usr/bin/env python3
"""
Validate a YAML workflow document and (unless --validate-only) register
its workflows.

Documents in the historical camelCase shape (steps / approverType /
approvalRequirement / conditionalRule) are migrated on load.

Usage:
    python3 scripts/load_workflows.py <path.yaml> [--organization-id <uuid>] [--validate-only]
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from uuid import UUID, uuid4

# Project root on sys.path
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Validate and register approval workflows from YAML.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("path", type=Path, help="YAML workflow document.")
    parser.add_argument(
        "--organization-id",
        type=UUID,
        default=None,
        help="Assign every workflow to this organization (overrides the document).",
    )
    parser.add_argument(
        "--actor-id",
        type=UUID,
        default=None,
        help="Actor recorded as the workflow author (default: random id).",
    )
    parser.add_argument(
        "--validate-only",
        action="store_true",
        help="Report validation errors and warnings without touching the database.",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    from approval_config import EngineSettings, validate_workflow_set
    from approval_config.loader import load_workflow_set_def
    from approval_services import ApprovalEngine, InMemoryOrgDirectory

    workflow_set = load_workflow_set_def(args.path)
    result = validate_workflow_set(workflow_set, organization_id=args.organization_id)
    for warning in result.warnings:
        print(f"WARNING: {warning}")
    for error in result.errors:
        print(f"ERROR: {error}")
    if not result.is_valid:
        return 1

    print(
        f"{workflow_set.name} v{workflow_set.version}: "
        f"{len(workflow_set.workflows)} workflow(s), checksum {workflow_set.checksum[:12]}"
        + (" (migrated from legacy format)" if workflow_set.migrated_from_legacy else "")
    )
    if args.validate_only:
        return 0

    engine = ApprovalEngine.from_settings(EngineSettings.from_env(), InMemoryOrgDirectory())
    registered = engine.load_workflows(
        args.path,
        actor_id=args.actor_id or uuid4(),
        organization_id=args.organization_id,
    )
    for workflow in registered:
        state = "active" if workflow.is_active else "inactive"
        print(f"  {workflow.workflow_id}  {workflow.name} ({workflow.stage_count} stages, {state})")
    return 0


if __name__ == "__main__":
    sys.exit(main())
