"""
Module: approval_kernel.models.claim
Responsibility: ORM persistence for expense claims, their per-stage ballots
    and the append-only decision history.

Architecture position: Kernel > Models.  May import from db/base.py and the
    domain layer only.

Invariants enforced:
    - ``workflow_snapshot`` is written once at creation; decisions are
      always evaluated against it, never against the live definition.
    - Optimistic locking: ``version`` is the mapper's ``version_id_col``.
      Every accepted decision bumps ``decision_count`` so the claim row is
      always part of the UPDATE and a stale writer fails with
      StaleDataError.
    - UNIQUE(claim_id, sequence) on decisions and UNIQUE(claim_id, level)
      on ballots.
    - Terminal claims, resolved ballots and decision records are guarded
      by ORM listeners (see db/immutability.py).

Failure modes:
    - StaleDataError on flush when another transaction advanced the claim.
    - IntegrityError on duplicate decision sequence.
    - ImmutabilityViolationError on forbidden UPDATE/DELETE.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from approval_kernel.db.base import Base, UUIDString
from approval_kernel.domain.claim import (
    Claim,
    ClaimStatus,
    DecisionRecord,
    StageBallot,
    Verdict,
)
from approval_kernel.domain.workflow import workflow_from_snapshot, workflow_to_snapshot


class ClaimModel(Base):
    """Persistent expense claim."""

    __tablename__ = "expense_claims"

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected')",
            name="ck_expense_claims_valid_status",
        ),
        Index("ix_expense_claims_org_status", "organization_id", "status", "created_at"),
        Index("ix_expense_claims_submitter", "submitter_id", "created_at"),
    )

    claim_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False, unique=True)
    organization_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    submitter_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    workflow_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    workflow_snapshot: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    workflow_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    current_stage_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    gate_satisfied: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    decision_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    category: Mapped[str] = mapped_column(String(100), nullable=False, default="General")
    amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    currency: Mapped[str | None] = mapped_column(String(3), nullable=True)
    converted_amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    company_currency: Mapped[str | None] = mapped_column(String(3), nullable=True)
    receipt_ref: Mapped[str | None] = mapped_column(String(500), nullable=True)

    created_at: Mapped[datetime] = mapped_column(nullable=False)
    resolved_at: Mapped[datetime | None] = mapped_column(nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    ballots: Mapped[list["StageBallotModel"]] = relationship(
        "StageBallotModel",
        back_populates="claim",
        primaryjoin="ClaimModel.claim_id == StageBallotModel.claim_id",
        order_by="StageBallotModel.level",
        cascade="all",
        lazy="selectin",
    )

    decisions: Mapped[list["DecisionRecordModel"]] = relationship(
        "DecisionRecordModel",
        back_populates="claim",
        primaryjoin="ClaimModel.claim_id == DecisionRecordModel.claim_id",
        order_by="DecisionRecordModel.sequence",
        cascade="save-update, merge",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return (
            f"<Claim {self.claim_id} status={self.status} "
            f"stage={self.current_stage_index} gate={self.gate_satisfied}>"
        )

    @property
    def is_terminal(self) -> bool:
        return self.status != ClaimStatus.PENDING.value

    def to_dto(self) -> Claim:
        """Convert ORM model to frozen domain claim."""
        return Claim(
            claim_id=self.claim_id,
            organization_id=self.organization_id,
            submitter_id=self.submitter_id,
            workflow=workflow_from_snapshot(self.workflow_snapshot),
            status=ClaimStatus(self.status),
            current_stage_index=self.current_stage_index,
            gate_satisfied=self.gate_satisfied,
            ballots=tuple(b.to_dto() for b in self.ballots),
            history=tuple(d.to_dto() for d in self.decisions),
            description=self.description,
            category=self.category,
            amount=self.amount,
            currency=self.currency,
            converted_amount=self.converted_amount,
            company_currency=self.company_currency,
            receipt_ref=self.receipt_ref,
            version=self.version,
            created_at=self.created_at,
            resolved_at=self.resolved_at,
        )

    @classmethod
    def from_dto(cls, dto: Claim) -> ClaimModel:
        """New row (plus ballots) for a freshly opened claim."""
        model = cls(
            claim_id=dto.claim_id,
            organization_id=dto.organization_id,
            submitter_id=dto.submitter_id,
            workflow_id=dto.workflow.workflow_id,
            workflow_snapshot=workflow_to_snapshot(dto.workflow),
            workflow_hash=dto.workflow.definition_hash,
            status=dto.status.value,
            current_stage_index=dto.current_stage_index,
            gate_satisfied=dto.gate_satisfied,
            decision_count=len(dto.history),
            description=dto.description,
            category=dto.category,
            amount=dto.amount,
            currency=dto.currency,
            converted_amount=dto.converted_amount,
            company_currency=dto.company_currency,
            receipt_ref=dto.receipt_ref,
            created_at=dto.created_at,
            resolved_at=dto.resolved_at,
        )
        model.ballots = [StageBallotModel.from_dto(dto.claim_id, b) for b in dto.ballots]
        return model


class StageBallotModel(Base):
    """Voting state of one stage of one claim.

    ``votes_for`` is a JSON list of actor id strings in vote order; it is
    always reassigned, never mutated in place.
    """

    __tablename__ = "claim_stage_ballots"

    __table_args__ = (
        UniqueConstraint("claim_id", "level", name="uq_claim_stage_ballot_level"),
    )

    claim_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("expense_claims.claim_id"),
        nullable=False,
    )
    level: Mapped[int] = mapped_column(Integer, nullable=False)
    votes_for: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    rejected_by: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    resolved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    resolved_at: Mapped[datetime | None] = mapped_column(nullable=True)

    claim: Mapped["ClaimModel"] = relationship(
        "ClaimModel",
        back_populates="ballots",
        foreign_keys=[claim_id],
        primaryjoin="StageBallotModel.claim_id == ClaimModel.claim_id",
    )

    def __repr__(self) -> str:
        return f"<StageBallot claim={self.claim_id} level={self.level} resolved={self.resolved}>"

    def to_dto(self) -> StageBallot:
        return StageBallot(
            level=self.level,
            votes_for=tuple(UUID(v) for v in self.votes_for or ()),
            rejected_by=self.rejected_by,
            resolved=self.resolved,
            resolved_at=self.resolved_at,
        )

    @classmethod
    def from_dto(cls, claim_id: UUID, dto: StageBallot) -> StageBallotModel:
        return cls(
            claim_id=claim_id,
            level=dto.level,
            votes_for=[str(v) for v in dto.votes_for],
            rejected_by=dto.rejected_by,
            resolved=dto.resolved,
            resolved_at=dto.resolved_at,
        )

    def apply(self, dto: StageBallot) -> None:
        """Copy changed fields from ``dto``; untouched columns stay clean."""
        votes = [str(v) for v in dto.votes_for]
        if votes != list(self.votes_for or ()):
            self.votes_for = votes
        if dto.rejected_by != self.rejected_by:
            self.rejected_by = dto.rejected_by
        if dto.resolved != self.resolved:
            self.resolved = dto.resolved
        if dto.resolved_at != self.resolved_at:
            self.resolved_at = dto.resolved_at


class DecisionRecordModel(Base):
    """One accepted decision. Append-only."""

    __tablename__ = "claim_decisions"

    __table_args__ = (
        UniqueConstraint("claim_id", "sequence", name="uq_claim_decision_sequence"),
        Index("ix_claim_decisions_actor", "actor_id"),
    )

    decision_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False, unique=True)
    claim_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("expense_claims.claim_id"),
        nullable=False,
    )
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    actor_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    actor_name: Mapped[str] = mapped_column(String(200), nullable=False)
    verdict: Mapped[str] = mapped_column(String(20), nullable=False)
    comment: Mapped[str] = mapped_column(Text, nullable=False, default="")
    stage_level: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_gate: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    decided_at: Mapped[datetime] = mapped_column(nullable=False)

    claim: Mapped["ClaimModel"] = relationship(
        "ClaimModel",
        back_populates="decisions",
        foreign_keys=[claim_id],
        primaryjoin="DecisionRecordModel.claim_id == ClaimModel.claim_id",
    )

    def __repr__(self) -> str:
        where = "gate" if self.is_gate else f"stage {self.stage_level}"
        return f"<ClaimDecision #{self.sequence} {self.verdict} at {where} by {self.actor_id}>"

    def to_dto(self) -> DecisionRecord:
        return DecisionRecord(
            decision_id=self.decision_id,
            claim_id=self.claim_id,
            sequence=self.sequence,
            actor_id=self.actor_id,
            actor_name=self.actor_name,
            verdict=Verdict(self.verdict),
            comment=self.comment,
            stage_level=self.stage_level,
            is_gate=self.is_gate,
            decided_at=self.decided_at,
        )

    @classmethod
    def from_dto(cls, dto: DecisionRecord) -> DecisionRecordModel:
        return cls(
            decision_id=dto.decision_id,
            claim_id=dto.claim_id,
            sequence=dto.sequence,
            actor_id=dto.actor_id,
            actor_name=dto.actor_name,
            verdict=dto.verdict.value,
            comment=dto.comment,
            stage_level=dto.stage_level,
            is_gate=dto.is_gate,
            decided_at=dto.decided_at,
        )
