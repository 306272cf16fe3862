"""
Module: approval_kernel.selectors.claim_selector
Responsibility: Read-only query access to claims and their decision history.
    Converts ORM models to frozen domain claims for clean layer separation.
Architecture position: Kernel > Selectors.  May import from models/, domain/
    and selectors/base.py.  MUST NOT import from services/ or outer layers.

Invariants enforced:
    - Read-only: No mutations performed on any queried data.
    - DTO convention: Public methods return Claim / DecisionRecord, never
      raw ORM models.
    - Deterministic ordering: claim lists sort by created_at (ties broken
      by row id); history sorts by sequence.

Failure modes:
    - Returns None or an empty list when nothing matches (never raises on
      absence of data).
"""

from uuid import UUID

from sqlalchemy import select

from approval_kernel.domain.claim import Claim, ClaimStatus, DecisionRecord
from approval_kernel.models.claim import ClaimModel, DecisionRecordModel
from approval_kernel.selectors.base import BaseSelector


class ClaimSelector(BaseSelector):
    """Selector for querying claims."""

    def get(self, claim_id: UUID) -> Claim | None:
        model = self.session.execute(
            select(ClaimModel).where(ClaimModel.claim_id == claim_id)
        ).scalar_one_or_none()
        return model.to_dto() if model is not None else None

    def pending_for_organization(self, organization_id: UUID) -> list[Claim]:
        """Pending claims of an organization, oldest first.

        This is the candidate set for the actionable-claims query; the
        per-actor filtering happens in ``approval_engines.pending``.
        """
        models = self.session.execute(
            select(ClaimModel)
            .where(
                ClaimModel.organization_id == organization_id,
                ClaimModel.status == ClaimStatus.PENDING.value,
            )
            .order_by(ClaimModel.created_at, ClaimModel.id)
        ).scalars().all()
        return [m.to_dto() for m in models]

    def submitted_by(self, submitter_id: UUID) -> list[Claim]:
        """Claims an actor submitted, newest first."""
        models = self.session.execute(
            select(ClaimModel)
            .where(ClaimModel.submitter_id == submitter_id)
            .order_by(ClaimModel.created_at.desc(), ClaimModel.id)
        ).scalars().all()
        return [m.to_dto() for m in models]

    def for_organization(
        self,
        organization_id: UUID,
        status: ClaimStatus | None = None,
    ) -> list[Claim]:
        """All claims of an organization, newest first, optionally by status."""
        stmt = select(ClaimModel).where(ClaimModel.organization_id == organization_id)
        if status is not None:
            stmt = stmt.where(ClaimModel.status == ClaimStatus(status).value)
        stmt = stmt.order_by(ClaimModel.created_at.desc(), ClaimModel.id)
        return [m.to_dto() for m in self.session.execute(stmt).scalars().all()]

    def decision_history(self, claim_id: UUID) -> list[DecisionRecord]:
        models = self.session.execute(
            select(DecisionRecordModel)
            .where(DecisionRecordModel.claim_id == claim_id)
            .order_by(DecisionRecordModel.sequence)
        ).scalars().all()
        return [m.to_dto() for m in models]

    def count_by_status(self, organization_id: UUID) -> dict[ClaimStatus, int]:
        counts = {status: 0 for status in ClaimStatus}
        rows = self.session.execute(
            select(ClaimModel.status).where(ClaimModel.organization_id == organization_id)
        ).scalars().all()
        for value in rows:
            counts[ClaimStatus(value)] += 1
        return counts
