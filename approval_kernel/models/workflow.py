"""
Module: approval_kernel.models.workflow
Responsibility: ORM persistence for approval workflow definitions and their
    stages.
Architecture position: Kernel > Models.  May import from db/base.py and the
    domain layer only.

Invariants enforced:
    - Stage levels are unique per workflow (UNIQUE(workflow_id, level)).
    - Routing content (stages, gate flag) is write-once; only ``is_active``
      and ``updated_at`` change after creation.  A changed chain is a new
      definition.
    - ``definition_hash`` fingerprints the routing rules for change
      detection against claim snapshots.

Failure modes:
    - IntegrityError on duplicate workflow_id or duplicate stage level.
    - WorkflowValidationError from ``to_dto`` if a stored row is malformed.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, Boolean, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from approval_kernel.db.base import Base, UUIDString
from approval_kernel.domain.workflow import (
    WorkflowDefinition,
    stage_from_dict,
    stage_to_dict,
)


class WorkflowDefinitionModel(Base):
    """Persistent workflow definition."""

    __tablename__ = "approval_workflows"

    __table_args__ = (
        Index("ix_approval_workflows_org_active", "organization_id", "is_active", "created_at"),
    )

    workflow_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False, unique=True)
    organization_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="", nullable=False)
    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    requires_pre_approval_gate: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    definition_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    created_by: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    created_at: Mapped[datetime] = mapped_column(nullable=False)
    updated_at: Mapped[datetime | None] = mapped_column(nullable=True)

    stages: Mapped[list["WorkflowStageModel"]] = relationship(
        "WorkflowStageModel",
        back_populates="workflow",
        primaryjoin="WorkflowDefinitionModel.workflow_id == WorkflowStageModel.workflow_id",
        order_by="WorkflowStageModel.level",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return (
            f"<WorkflowDefinition {self.workflow_id} '{self.name}' "
            f"stages={len(self.stages)} active={self.is_active}>"
        )

    def to_dto(self) -> WorkflowDefinition:
        """Convert ORM model to frozen domain definition."""
        return WorkflowDefinition(
            workflow_id=self.workflow_id,
            organization_id=self.organization_id,
            name=self.name,
            description=self.description,
            version=self.version,
            requires_pre_approval_gate=self.requires_pre_approval_gate,
            is_active=self.is_active,
            created_by=self.created_by,
            created_at=self.created_at,
            stages=tuple(stage.to_dto() for stage in self.stages),
        )

    @classmethod
    def from_dto(cls, dto: WorkflowDefinition, created_at: datetime) -> WorkflowDefinitionModel:
        model = cls(
            workflow_id=dto.workflow_id,
            organization_id=dto.organization_id,
            name=dto.name,
            description=dto.description,
            version=dto.version,
            requires_pre_approval_gate=dto.requires_pre_approval_gate,
            is_active=dto.is_active,
            definition_hash=dto.definition_hash,
            created_by=dto.created_by,
            created_at=dto.created_at or created_at,
        )
        model.stages = [WorkflowStageModel.from_dto(dto.workflow_id, s) for s in dto.stages]
        return model


class WorkflowStageModel(Base):
    """One stage row of a workflow definition.

    ``approvers`` and ``policy`` hold the tagged-variant dicts produced by
    ``approval_kernel.domain.workflow.stage_to_dict``.
    """

    __tablename__ = "approval_workflow_stages"

    __table_args__ = (
        UniqueConstraint("workflow_id", "level", name="uq_approval_workflow_stage_level"),
    )

    workflow_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("approval_workflows.workflow_id"),
        nullable=False,
    )
    level: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    approver_type: Mapped[str] = mapped_column(String(30), nullable=False)
    approvers: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    policy: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)

    workflow: Mapped["WorkflowDefinitionModel"] = relationship(
        "WorkflowDefinitionModel",
        back_populates="stages",
        foreign_keys=[workflow_id],
        primaryjoin="WorkflowStageModel.workflow_id == WorkflowDefinitionModel.workflow_id",
    )

    def __repr__(self) -> str:
        return f"<WorkflowStage {self.level} '{self.name}' {self.approver_type}>"

    def to_dto(self):
        return stage_from_dict(
            {
                "level": self.level,
                "name": self.name,
                "approvers": self.approvers,
                "policy": self.policy,
            }
        )

    @classmethod
    def from_dto(cls, workflow_id: UUID, stage) -> WorkflowStageModel:
        data = stage_to_dict(stage)
        return cls(
            workflow_id=workflow_id,
            level=data["level"],
            name=data["name"],
            approver_type=data["approvers"]["type"],
            approvers=data["approvers"],
            policy=data["policy"],
        )
