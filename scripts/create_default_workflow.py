#!/usr/bin/env python3
"""
Register the default single-step manager approval workflow for every
organization given that has no workflow yet.

Reads the database location from APPROVAL_DATABASE_URL (default
sqlite:///approval.db) and creates the tables if needed.

Usage:
    python3 scripts/create_default_workflow.py --organization-id <uuid> [--organization-id <uuid> ...]

Examples:
    python3 scripts/create_default_workflow.py \\
        --organization-id 6f1c... --actor-id 0d2e...
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
        description="Create the default approval workflow for organizations without one.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--organization-id",
        dest="organization_ids",
        action="append",
        required=True,
        type=UUID,
        help="Organization to provision (repeatable).",
    )
    parser.add_argument(
        "--actor-id",
        type=UUID,
        default=None,
        help="Actor recorded as the workflow author (default: random id).",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    from approval_config import EngineSettings
    from approval_services import ApprovalEngine, InMemoryOrgDirectory

    engine = ApprovalEngine.from_settings(EngineSettings.from_env(), InMemoryOrgDirectory())
    actor_id = args.actor_id or uuid4()

    for organization_id in args.organization_ids:
        workflow = engine.ensure_default_workflow(organization_id, actor_id)
        if workflow is None:
            print(f"Workflow already exists for organization: {organization_id}")
        else:
            print(f"Created default workflow for organization: {organization_id}")
            print(f"  Workflow ID: {workflow.workflow_id}")

    print("\nDefault workflows checked.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
