"""
ORM-Level Immutability Enforcement.

===============================================================================
WHY THIS EXISTS
===============================================================================

An approval trail is only worth something if nobody can quietly rewrite it.
Once a claim is Approved or Rejected it is a closed record, and the decision
history that led there must stay exactly as it was written.

The services already refuse to touch finalized claims.  These listeners are
the layer underneath: they catch modifications made through any
Python/SQLAlchemy code path, BEFORE the SQL is sent to the database.

===============================================================================
HOW IT WORKS
===============================================================================

    session.flush()
         |
         v
    [before_update event] --> _check_*() --> ImmutabilityViolationError
         |                                          ^
         v                                          |
    [before_delete event] --> _check_*_delete() ----+
         |
         v
    SQL sent to database (only if checks pass)

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity              | When Immutable                     | Why
--------------------|------------------------------------|------------------------------
ClaimModel          | After status leaves 'pending'      | Final outcome is a record
StageBallotModel    | After resolved = True              | Stage outcome is a record
DecisionRecordModel | ALWAYS (from creation)             | History is append-only
AuditEvent          | ALWAYS (from creation)             | Audit trail is append-only

The transition INTO a terminal status (or a ballot INTO resolved) is the
write that finalizes the record, so it is allowed; SQLAlchemy attribute
history tells the two apart.

===============================================================================
USAGE
===============================================================================

Registered by ``init_engine_from_url`` (idempotent):

    from approval_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()
    ...
    register_immutability_listeners()

===============================================================================
"""

from sqlalchemy import event
from sqlalchemy.orm.attributes import get_history

from approval_kernel.exceptions import ImmutabilityViolationError
from approval_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_TERMINAL_STATUSES = frozenset({"approved", "rejected"})


def _value_before_update(target, attribute: str):
    """The attribute's value as loaded from the database."""
    hist = get_history(target, attribute)
    if hist.deleted:
        return hist.deleted[0]
    if hist.unchanged:
        return hist.unchanged[0]
    return getattr(target, attribute)


def _status_value(status) -> str:
    return getattr(status, "value", status)


def _blocked(entity_type: str, entity_id, operation: str, reason: str) -> ImmutabilityViolationError:
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "operation": operation,
            "reason": reason,
        },
    )
    return ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(entity_id),
        reason=reason,
    )


def _check_claim_immutability(mapper, connection, target):
    """Block every change to a claim that was already terminal."""
    previous = _status_value(_value_before_update(target, "status"))
    if previous in _TERMINAL_STATUSES:
        raise _blocked(
            "Claim",
            target.claim_id,
            "UPDATE",
            f"claim is already {previous}",
        )


def _check_claim_delete(mapper, connection, target):
    if _status_value(target.status) in _TERMINAL_STATUSES or target.decision_count:
        raise _blocked(
            "Claim",
            target.claim_id,
            "DELETE",
            "claims with decisions cannot be deleted",
        )


def _check_ballot_immutability(mapper, connection, target):
    """Block every change to a ballot that was already resolved."""
    if _value_before_update(target, "resolved"):
        raise _blocked(
            "StageBallot",
            f"{target.claim_id}/{target.level}",
            "UPDATE",
            "resolved stage ballots cannot be modified",
        )


def _check_ballot_delete(mapper, connection, target):
    raise _blocked(
        "StageBallot",
        f"{target.claim_id}/{target.level}",
        "DELETE",
        "stage ballots cannot be deleted",
    )


def _check_decision_immutability(mapper, connection, target):
    raise _blocked(
        "ClaimDecision",
        target.decision_id,
        "UPDATE",
        "decision records are immutable",
    )


def _check_decision_delete(mapper, connection, target):
    raise _blocked(
        "ClaimDecision",
        target.decision_id,
        "DELETE",
        "decision records cannot be deleted",
    )


def _check_audit_event_immutability(mapper, connection, target):
    raise _blocked(
        "AuditEvent",
        target.id,
        "UPDATE",
        "audit events are immutable and cannot be modified",
    )


def _check_audit_event_delete(mapper, connection, target):
    raise _blocked(
        "AuditEvent",
        target.id,
        "DELETE",
        "audit events cannot be deleted",
    )


def _listeners():
    from approval_kernel.models.audit_event import AuditEvent
    from approval_kernel.models.claim import (
        ClaimModel,
        DecisionRecordModel,
        StageBallotModel,
    )

    return (
        (ClaimModel, "before_update", _check_claim_immutability),
        (ClaimModel, "before_delete", _check_claim_delete),
        (StageBallotModel, "before_update", _check_ballot_immutability),
        (StageBallotModel, "before_delete", _check_ballot_delete),
        (DecisionRecordModel, "before_update", _check_decision_immutability),
        (DecisionRecordModel, "before_delete", _check_decision_delete),
        (AuditEvent, "before_update", _check_audit_event_immutability),
        (AuditEvent, "before_delete", _check_audit_event_delete),
    )


def register_immutability_listeners() -> None:
    """Register all immutability listeners. Safe to call repeatedly."""
    for target, identifier, fn in _listeners():
        if not event.contains(target, identifier, fn):
            event.listen(target, identifier, fn)


def unregister_immutability_listeners() -> None:
    """
    Remove immutability listeners.

    WARNING: Only use this in tests that deliberately violate the rules.
    """
    for target, identifier, fn in _listeners():
        if event.contains(target, identifier, fn):
            event.remove(target, identifier, fn)


def immutability_listeners_registered() -> bool:
    return all(event.contains(t, i, fn) for t, i, fn in _listeners())
