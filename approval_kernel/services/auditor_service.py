"""
AuditorService -- tamper-evident audit trail and hash chain maintenance.

Responsibility:
    Creates immutable, hash-chained audit events for every workflow and
    claim state change.  Provides chain validation for tamper detection
    and per-entity trace queries.

Architecture position:
    Kernel > Services -- imperative shell, called by WorkflowService and
    ClaimService inside the caller's transaction.

Invariants enforced:
    - Sequence monotonicity via SequenceService.
    - Chain integrity: ``hash = H(entity_type | entity_id | action |
      payload_hash | prev_hash)``; every event links to its predecessor.
    - Append-only: audit events are never modified or deleted (ORM
      listeners on AuditEvent).

Failure modes:
    - AuditChainBrokenError: a recomputed hash does not match, or a
      ``prev_hash`` does not match its predecessor.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from approval_kernel.domain.clock import Clock, SystemClock
from approval_kernel.exceptions import AuditChainBrokenError
from approval_kernel.logging_config import get_logger
from approval_kernel.models.audit_event import AuditAction, AuditEvent
from approval_kernel.services.sequence_service import SequenceService
from approval_kernel.utils.hashing import hash_audit_event, hash_payload

logger = get_logger("services.auditor")


@dataclass(frozen=True)
class AuditTraceEntry:
    """A single entry in an audit trace."""

    seq: int
    action: AuditAction
    occurred_at: datetime
    actor_id: UUID
    payload: dict[str, Any]
    hash: str


@dataclass(frozen=True)
class AuditTrace:
    """All audit events of one entity, oldest first."""

    entity_type: str
    entity_id: UUID
    entries: tuple[AuditTraceEntry, ...]

    @property
    def is_empty(self) -> bool:
        return len(self.entries) == 0

    @property
    def actions(self) -> tuple[AuditAction, ...]:
        return tuple(e.action for e in self.entries)


class AuditorService:
    """
    Creates and validates hash-chained audit events.

    Does NOT call ``session.commit()``; the caller controls boundaries.
    """

    WORKFLOW = "Workflow"
    CLAIM = "Claim"

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()
        self._sequences = SequenceService(session)

    def _chain_tip(self) -> str | None:
        return self._session.scalars(
            select(AuditEvent.hash).order_by(AuditEvent.seq.desc()).limit(1)
        ).first()

    def _append(
        self,
        entity_type: str,
        entity_id: UUID,
        action: AuditAction,
        actor_id: UUID,
        payload: dict[str, Any],
    ) -> AuditEvent:
        # Allocate first: the counter UPDATE serializes the chain tip read
        seq = self._sequences.next_value(SequenceService.AUDIT_EVENT)
        prev_hash = self._chain_tip()
        payload_hash = hash_payload(payload)

        event = AuditEvent(
            seq=seq,
            entity_type=entity_type,
            entity_id=entity_id,
            action=action.value,
            actor_id=actor_id,
            occurred_at=self._clock.now(),
            payload=payload,
            payload_hash=payload_hash,
            prev_hash=prev_hash,
            hash=hash_audit_event(
                entity_type, str(entity_id), action.value, payload_hash, prev_hash
            ),
        )
        self._session.add(event)
        self._session.flush()

        logger.info(
            "audit_event_created",
            extra={"entity_type": entity_type, "action": action.value, "seq": seq},
        )
        return event

    # Workflow lifecycle

    def record_workflow_defined(
        self,
        workflow_id: UUID,
        name: str,
        definition_hash: str,
        stage_count: int,
        actor_id: UUID,
    ) -> AuditEvent:
        return self._append(
            self.WORKFLOW, workflow_id, AuditAction.WORKFLOW_DEFINED, actor_id,
            {"name": name, "definition_hash": definition_hash, "stage_count": stage_count},
        )

    def record_workflow_status(self, workflow_id: UUID, is_active: bool, actor_id: UUID) -> AuditEvent:
        """Record activation or deactivation of a workflow."""
        action = AuditAction.WORKFLOW_ACTIVATED if is_active else AuditAction.WORKFLOW_DEACTIVATED
        return self._append(self.WORKFLOW, workflow_id, action, actor_id, {"is_active": is_active})

    # Claim lifecycle

    def record_claim_created(
        self,
        claim_id: UUID,
        workflow_id: UUID,
        workflow_hash: str,
        actor_id: UUID,
    ) -> AuditEvent:
        return self._append(
            self.CLAIM, claim_id, AuditAction.CLAIM_CREATED, actor_id,
            {"workflow_id": str(workflow_id), "workflow_hash": workflow_hash},
        )

    def record_decision(
        self,
        claim_id: UUID,
        decision_id: UUID,
        sequence: int,
        verdict: str,
        stage_level: int | None,
        actor_id: UUID,
    ) -> AuditEvent:
        return self._append(
            self.CLAIM, claim_id, AuditAction.DECISION_RECORDED, actor_id,
            {
                "decision_id": str(decision_id),
                "sequence": sequence,
                "verdict": verdict,
                "stage_level": stage_level,
                "is_gate": stage_level is None,
            },
        )

    def record_stage_resolved(
        self,
        claim_id: UUID,
        stage_level: int,
        outcome: str,
        votes: int,
        eligible: int,
        actor_id: UUID,
    ) -> AuditEvent:
        return self._append(
            self.CLAIM, claim_id, AuditAction.STAGE_RESOLVED, actor_id,
            {"stage_level": stage_level, "outcome": outcome, "votes": votes, "eligible": eligible},
        )

    def record_claim_finalized(
        self,
        claim_id: UUID,
        status: str,
        decision_count: int,
        actor_id: UUID,
    ) -> AuditEvent:
        """Record that a claim reached APPROVED or REJECTED."""
        action = AuditAction.CLAIM_APPROVED if status == "approved" else AuditAction.CLAIM_REJECTED
        return self._append(
            self.CLAIM, claim_id, action, actor_id,
            {"status": status, "decision_count": decision_count},
        )

    # Validation and queries

    def validate_chain(self) -> bool:
        """
        Walk the chain in sequence order, recomputing every link.

        Raises:
            AuditChainBrokenError: on the first event whose ``prev_hash``,
                payload hash or event hash does not verify.
        """
        tip: str | None = None
        for event in self._session.scalars(select(AuditEvent).order_by(AuditEvent.seq)):
            if event.prev_hash != tip:
                logger.critical("audit_chain_broken", extra={"seq": event.seq, "check": "prev_hash"})
                raise AuditChainBrokenError(str(event.id), tip or "None", event.prev_hash or "None")

            recomputed = hash_audit_event(
                event.entity_type,
                str(event.entity_id),
                event.action,
                event.payload_hash,
                event.prev_hash,
            )
            payload_ok = event.payload_hash == hash_payload(event.payload or {})
            if event.hash != recomputed or not payload_ok:
                logger.critical("audit_chain_broken", extra={"seq": event.seq, "check": "hash"})
                raise AuditChainBrokenError(str(event.id), recomputed, event.hash)
            tip = event.hash

        return True

    def get_trace(self, entity_type: str, entity_id: UUID) -> AuditTrace:
        events = self._session.scalars(
            select(AuditEvent)
            .where(AuditEvent.entity_type == entity_type, AuditEvent.entity_id == entity_id)
            .order_by(AuditEvent.seq)
        )
        entries = tuple(
            AuditTraceEntry(
                seq=event.seq,
                action=AuditAction(event.action),
                occurred_at=event.occurred_at,
                actor_id=event.actor_id,
                payload=event.payload or {},
                hash=event.hash,
            )
            for event in events
        )
        return AuditTrace(entity_type, entity_id, entries)
