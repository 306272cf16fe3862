"""
Tests for workflow set validation.

Tests cover:
- Unknown vocabulary collected as errors
- Kernel construction errors surfaced (empty fixed set, bad percentage)
- Missing organization
- Duplicate names per organization and version
- Multiple active workflows as a warning
"""

from uuid import uuid4

from approval_config.schema import StageDef, WorkflowDef, WorkflowSetDef
from approval_config.validator import validate_workflow_set

ORG = str(uuid4())


def _set(*workflows):
    return WorkflowSetDef(name="test", workflows=tuple(workflows))


def _manager_stage(level=1):
    return StageDef(level=level, approver_type="dynamic_manager")


class TestValidWorkflowSet:
    def test_valid(self):
        result = validate_workflow_set(_set(WorkflowDef(name="Expenses", organization_id=ORG, stages=(_manager_stage(),))))
        assert result.is_valid
        assert result.warnings == []

    def test_empty_set_warns(self):
        result = validate_workflow_set(_set())
        assert result.is_valid
        assert len(result.warnings) == 1


class TestErrors:
    def test_unknown_vocabulary(self):
        stage = StageDef(level=1, approver_type="committee", policy="majority")
        result = validate_workflow_set(_set(WorkflowDef(name="Bad", organization_id=ORG, stages=(stage,))))
        assert not result.is_valid
        assert any("unknown approver type 'committee'" in e for e in result.errors)
        assert any("unknown policy 'majority'" in e for e in result.errors)

    def test_unknown_rule(self):
        stage = StageDef(level=1, approver_type="dynamic_manager", policy="conditional", rule_type="coin_flip")
        result = validate_workflow_set(_set(WorkflowDef(name="Bad", organization_id=ORG, stages=(stage,))))
        assert any("unknown conditional rule" in e for e in result.errors)

    def test_percentage_out_of_range(self):
        stage = StageDef(
            level=1,
            approver_type="by_capability",
            capability="finance",
            policy="conditional",
            rule_type="percentage",
            percentage=150,
        )
        result = validate_workflow_set(_set(WorkflowDef(name="Bad", organization_id=ORG, stages=(stage,))))
        assert any("1..100" in e for e in result.errors)

    def test_empty_fixed_set(self):
        stage = StageDef(level=1, approver_type="fixed_set")
        result = validate_workflow_set(_set(WorkflowDef(name="Bad", organization_id=ORG, stages=(stage,))))
        assert any("must not be empty" in e for e in result.errors)

    def test_missing_organization(self):
        result = validate_workflow_set(_set(WorkflowDef(name="Orphan", stages=(_manager_stage(),))))
        assert any("no organization_id" in e for e in result.errors)

    def test_organization_override_fixes_missing(self):
        result = validate_workflow_set(_set(WorkflowDef(name="Orphan", stages=(_manager_stage(),))), organization_id=uuid4())
        assert result.is_valid

    def test_no_stages_no_gate(self):
        result = validate_workflow_set(_set(WorkflowDef(name="Empty", organization_id=ORG)))
        assert any("at least one stage" in e for e in result.errors)

    def test_gate_without_stages(self):
        gated = WorkflowDef(name="Gate only", organization_id=ORG, requires_pre_approval_gate=True)
        result = validate_workflow_set(_set(gated))
        assert result.errors == ["workflow 'Gate only': workflow must have at least one stage"]

    def test_duplicate_name_version(self):
        wf = WorkflowDef(name="Expenses", organization_id=ORG, stages=(_manager_stage(),), is_active=False)
        result = validate_workflow_set(_set(wf, wf))
        assert any("duplicate workflow 'Expenses' v1" in e for e in result.errors)

    def test_same_name_new_version_ok(self):
        v1 = WorkflowDef(name="Expenses", organization_id=ORG, stages=(_manager_stage(),), is_active=False)
        v2 = WorkflowDef(name="Expenses", organization_id=ORG, version=2, stages=(_manager_stage(),))
        assert validate_workflow_set(_set(v1, v2)).is_valid


class TestWarnings:
    def test_multiple_active(self):
        a = WorkflowDef(name="A", organization_id=ORG, stages=(_manager_stage(),))
        b = WorkflowDef(name="B", organization_id=ORG, stages=(_manager_stage(),))
        result = validate_workflow_set(_set(a, b))
        assert result.is_valid
        assert any("2 active workflows" in w for w in result.warnings)

    def test_ignored_approver_ids(self):
        stage = StageDef(level=1, approver_type="dynamic_manager", approver_ids=(str(uuid4()),))
        result = validate_workflow_set(_set(WorkflowDef(name="A", organization_id=ORG, stages=(stage,))))
        assert result.is_valid
        assert any("approver_ids ignored" in w for w in result.warnings)
