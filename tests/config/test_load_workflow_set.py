"""
Tests for approval_config.load_workflow_set, the config pipeline entrypoint.

Tests cover:
- Bundled default workflow
- Deterministic ids and checksums
- Validation failure aborts with every error listed
- Warnings carried and logged
- APPROVAL_CONFIG_TRACE emitted
- Legacy documents loaded end to end
"""

from uuid import UUID, uuid4

import pytest
import yaml

from approval_config import DEFAULT_WORKFLOW_FILE, load_workflow_set
from approval_config.bridges import derive_workflow_id
from approval_kernel.domain.workflow import (
    AllRequired,
    ByCapability,
    Conditional,
    DynamicManager,
    FixedSet,
    Hybrid,
)
from approval_kernel.exceptions import WorkflowValidationError

A = UUID("3f9a4c1e-0b7d-4e2a-9c55-1d2e3f405a01")
B = UUID("3f9a4c1e-0b7d-4e2a-9c55-1d2e3f405a02")


def _write(tmp_path, data, name="workflows.yaml"):
    path = tmp_path / name
    path.write_text(yaml.safe_dump(data))
    return path


class TestDefaultWorkflow:
    def test_bundled_file(self):
        org = uuid4()
        loaded = load_workflow_set(DEFAULT_WORKFLOW_FILE, organization_id=org)
        [workflow] = loaded.workflows
        assert loaded.name == "default"
        assert workflow.organization_id == org
        assert workflow.stages[0].approvers == DynamicManager()
        assert workflow.stages[0].name == "Manager Approval"
        assert not workflow.requires_pre_approval_gate

    def test_requires_organization(self):
        with pytest.raises(WorkflowValidationError) as exc_info:
            load_workflow_set(DEFAULT_WORKFLOW_FILE)
        assert any("no organization_id" in e for e in exc_info.value.errors)


class TestDeterminism:
    def test_same_document_same_ids(self):
        org = uuid4()
        first = load_workflow_set(DEFAULT_WORKFLOW_FILE, organization_id=org)
        second = load_workflow_set(DEFAULT_WORKFLOW_FILE, organization_id=org)
        assert first.checksum == second.checksum
        assert first.workflows[0].workflow_id == second.workflows[0].workflow_id
        assert first.workflows[0].workflow_id == derive_workflow_id(org, "Default Approval Workflow", 1)

    def test_explicit_workflow_id_kept(self, tmp_path):
        wid = uuid4()
        path = _write(
            tmp_path,
            {
                "workflows": [
                    {
                        "name": "Pinned",
                        "workflow_id": str(wid),
                        "organization_id": str(uuid4()),
                        "stages": [{"level": 1, "approvers": {"type": "dynamic_manager"}}],
                    }
                ]
            },
        )
        assert load_workflow_set(path).workflows[0].workflow_id == wid


class TestValidationFailure:
    def test_all_errors_reported(self, tmp_path, captured_logs):
        path = _write(
            tmp_path,
            {
                "workflow_set": {"name": "broken"},
                "workflows": [
                    {
                        "name": "Broken",
                        "organization_id": str(uuid4()),
                        "stages": [
                            {"level": 1, "approvers": {"type": "committee"}},
                            {"level": 2, "approvers": {"type": "fixed_set"}, "policy": "any_one"},
                        ],
                    }
                ],
            },
        )
        with pytest.raises(WorkflowValidationError) as exc_info:
            load_workflow_set(path)
        assert exc_info.value.workflow_name == "broken"
        assert len(exc_info.value.errors) >= 2
        assert any(r["message"] == "workflow_set_invalid" for r in captured_logs())


class TestWarningsAndTrace:
    def test_multiple_active_warning(self, tmp_path, captured_logs):
        org = str(uuid4())
        stage = {"level": 1, "approvers": {"type": "dynamic_manager"}}
        path = _write(
            tmp_path,
            {"workflows": [{"name": "One", "organization_id": org, "stages": [stage]}, {"name": "Two", "organization_id": org, "stages": [stage]}]},
        )
        loaded = load_workflow_set(path)
        assert len(loaded.workflows) == 2
        assert any("2 active workflows" in w for w in loaded.warnings)
        assert any(r["message"] == "workflow_set_warning" for r in captured_logs())

    def test_config_trace(self, captured_logs):
        loaded = load_workflow_set(DEFAULT_WORKFLOW_FILE, organization_id=uuid4())
        [trace] = [r for r in captured_logs() if r["message"] == "APPROVAL_CONFIG_TRACE"]
        assert trace["workflow_set"] == "default"
        assert trace["checksum"] == loaded.checksum
        assert trace["workflow_count"] == 1


class TestLegacyDocument:
    def test_legacy_loaded(self, tmp_path):
        org = uuid4()
        path = _write(
            tmp_path,
            {
                "workflows": [
                    {
                        "name": "Legacy travel",
                        "companyId": str(org),
                        "requireManagerApproval": True,
                        "steps": [
                            {"level": 1, "stepName": "Admins", "approverType": "Role", "approverRole": "Admin"},
                            {
                                "level": 2,
                                "approverType": "Specific",
                                "specificApproverId": str(B),
                                "specificApproverIds": [str(A)],
                                "approvalRequirement": "conditional",
                                "conditionalRule": {
                                    "ruleType": "hybrid",
                                    "hybridPercentage": 50,
                                    "hybridSpecificApproverId": str(B),
                                },
                            },
                        ],
                    }
                ]
            },
        )
        loaded = load_workflow_set(path, created_by=A)
        [workflow] = loaded.workflows
        assert loaded.migrated_from_legacy
        assert workflow.organization_id == org
        assert workflow.requires_pre_approval_gate
        assert workflow.created_by == A
        first, second = workflow.stages
        assert first.name == "Admins"
        assert first.approvers == ByCapability("admin")
        assert first.policy == AllRequired()
        assert second.approvers == FixedSet((A, B))
        assert second.policy == Conditional(Hybrid(50, B))
