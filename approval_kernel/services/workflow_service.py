"""
approval_kernel.services.workflow_service -- Workflow definition registry.

Responsibility:
    Persists validated workflow definitions, toggles their active flag and
    picks the definition a new claim binds to.

Architecture position:
    Kernel > Services.  May import from domain/, models/, db/.

Invariants enforced:
    - Only validated definitions reach the database (validation happens
      when the domain object is constructed).
    - Routing content is write-once; ``set_active`` changes only the flag.
    - Every registration and activation change is audited.

Failure modes:
    - WorkflowNotFoundError if workflow_id is unknown.
    - NoActiveWorkflowError if an organization has no active definition.

Open question handling:
    Several active definitions per organization are tolerated.  The most
    recently created one wins and a ``multiple_active_workflows`` warning
    is logged.
"""

from __future__ import annotations

from dataclasses import replace
from uuid import UUID

from sqlalchemy import select

from approval_kernel.domain.workflow import WorkflowDefinition
from approval_kernel.exceptions import NoActiveWorkflowError, WorkflowNotFoundError
from approval_kernel.logging_config import get_logger
from approval_kernel.models.workflow import WorkflowDefinitionModel
from approval_kernel.services.base import BaseService

logger = get_logger("services.workflow")


class WorkflowService(BaseService):
    """Registers and looks up workflow definitions."""

    def _load(self, workflow_id: UUID) -> WorkflowDefinitionModel:
        model = self.session.execute(
            select(WorkflowDefinitionModel).where(
                WorkflowDefinitionModel.workflow_id == workflow_id
            )
        ).scalar_one_or_none()
        if model is None:
            raise WorkflowNotFoundError(str(workflow_id))
        return model

    def _active_models(self, organization_id: UUID) -> list[WorkflowDefinitionModel]:
        return list(
            self.session.execute(
                select(WorkflowDefinitionModel)
                .where(
                    WorkflowDefinitionModel.organization_id == organization_id,
                    WorkflowDefinitionModel.is_active.is_(True),
                )
                .order_by(
                    WorkflowDefinitionModel.created_at.desc(),
                    WorkflowDefinitionModel.version.desc(),
                )
            ).scalars().all()
        )

    def create(self, workflow: WorkflowDefinition, actor_id: UUID) -> WorkflowDefinition:
        """Persist a new definition and audit it."""
        now = self._clock.now()
        if workflow.created_at is None or workflow.created_by is None:
            workflow = replace(
                workflow,
                created_at=workflow.created_at or now,
                created_by=workflow.created_by or actor_id,
            )

        model = WorkflowDefinitionModel.from_dto(workflow, created_at=now)
        self.session.add(model)
        self.session.flush()

        self._auditor.record_workflow_defined(
            workflow_id=workflow.workflow_id,
            name=workflow.name,
            definition_hash=model.definition_hash,
            stage_count=workflow.stage_count,
            actor_id=actor_id,
        )

        logger.info(
            "workflow_defined",
            extra={
                "workflow_id": str(workflow.workflow_id),
                "organization_id": str(workflow.organization_id),
                "workflow_name": workflow.name,
                "stage_count": workflow.stage_count,
                "requires_pre_approval_gate": workflow.requires_pre_approval_gate,
                "is_active": workflow.is_active,
            },
        )
        if workflow.is_active:
            self._warn_if_multiple_active(workflow.organization_id)
        return model.to_dto()

    def get(self, workflow_id: UUID) -> WorkflowDefinition:
        return self._load(workflow_id).to_dto()

    def list_for_organization(
        self,
        organization_id: UUID,
        active_only: bool = False,
    ) -> list[WorkflowDefinition]:
        """Definitions of an organization, newest first."""
        stmt = select(WorkflowDefinitionModel).where(
            WorkflowDefinitionModel.organization_id == organization_id
        )
        if active_only:
            stmt = stmt.where(WorkflowDefinitionModel.is_active.is_(True))
        stmt = stmt.order_by(WorkflowDefinitionModel.created_at.desc())
        return [m.to_dto() for m in self.session.execute(stmt).scalars().all()]

    def set_active(self, workflow_id: UUID, is_active: bool, actor_id: UUID) -> WorkflowDefinition:
        """Toggle the active flag; in-flight claims keep their snapshot."""
        model = self._load(workflow_id)
        if model.is_active == is_active:
            return model.to_dto()

        model.is_active = is_active
        model.updated_at = self._clock.now()
        self.session.flush()

        self._auditor.record_workflow_status(
            workflow_id=workflow_id,
            is_active=is_active,
            actor_id=actor_id,
        )
        logger.info(
            "workflow_activated" if is_active else "workflow_deactivated",
            extra={
                "workflow_id": str(workflow_id),
                "organization_id": str(model.organization_id),
            },
        )
        if is_active:
            self._warn_if_multiple_active(model.organization_id)
        return model.to_dto()

    def get_active(self, organization_id: UUID) -> WorkflowDefinition:
        """The definition a new claim binds to.

        Raises:
            NoActiveWorkflowError: No active definition exists.
        """
        models = self._active_models(organization_id)
        if not models:
            raise NoActiveWorkflowError(str(organization_id))
        if len(models) > 1:
            self._log_multiple_active(organization_id, models)
        return models[0].to_dto()

    def has_any(self, organization_id: UUID) -> bool:
        return (
            self.session.execute(
                select(WorkflowDefinitionModel.id)
                .where(WorkflowDefinitionModel.organization_id == organization_id)
                .limit(1)
            ).first()
            is not None
        )

    def _warn_if_multiple_active(self, organization_id: UUID) -> None:
        models = self._active_models(organization_id)
        if len(models) > 1:
            self._log_multiple_active(organization_id, models)

    @staticmethod
    def _log_multiple_active(
        organization_id: UUID,
        models: list[WorkflowDefinitionModel],
    ) -> None:
        logger.warning(
            "multiple_active_workflows",
            extra={
                "organization_id": str(organization_id),
                "active_count": len(models),
                "selected_workflow_id": str(models[0].workflow_id),
                "active_workflow_ids": [str(m.workflow_id) for m in models],
            },
        )
