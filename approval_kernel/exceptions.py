"""
Typed Exception Hierarchy for the Approval Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the approval engine (an HTTP layer, a CLI, a batch job) must map
every failure to a precise response: "you are not an approver here" is a 403,
"this claim is already closed" is a 409, "your workflow has no stages" is a
422.  Parsing exception messages for that is fragile, so:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example - WRONG way to handle errors:
    try:
        engine.submit_decision(claim_id, actor_id, Verdict.APPROVE)
    except Exception as e:
        if "already voted" in str(e):  # FRAGILE - message might change
            ...

Example - RIGHT way (what this module enables):
    try:
        engine.submit_decision(claim_id, actor_id, Verdict.APPROVE)
    except DuplicateVoteError as e:
        api_response(code=e.code, stage=e.stage_level)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from ApprovalKernelError:

    ApprovalKernelError (base)
    |
    +-- WorkflowError
    |   +-- WorkflowValidationError
    |   +-- WorkflowNotFoundError
    |   +-- NoActiveWorkflowError
    |
    +-- ClaimError
    |   +-- ClaimNotFoundError
    |   +-- AlreadyFinalizedError
    |   +-- DuplicateVoteError
    |
    +-- AuthorizationError
    |   +-- UnauthorizedError
    |   |   +-- NoEligibleApproversError
    |   +-- CapabilityRequiredError
    |
    +-- ConcurrencyError
    |   +-- ConflictError
    |
    +-- ImmutabilityError
    |   +-- ImmutabilityViolationError
    |
    +-- AuditError
        +-- AuditChainBrokenError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Workflow        | WORKFLOW_VALIDATION_FAILED  | Malformed definition (definition time only)
                | WORKFLOW_NOT_FOUND          | Workflow ID doesn't exist
                | NO_ACTIVE_WORKFLOW          | Organization has no active workflow
----------------|-----------------------------|-----------------------------------------
Claim           | CLAIM_NOT_FOUND             | Claim ID doesn't exist
                | ALREADY_FINALIZED           | Claim is Approved or Rejected
                | DUPLICATE_VOTE              | Actor already voted at the open stage
----------------|-----------------------------|-----------------------------------------
Authorization   | UNAUTHORIZED                | Actor may not act at the gate/stage
                | NO_ELIGIBLE_APPROVERS       | Gate/stage resolves to nobody
                | CAPABILITY_REQUIRED         | Actor lacks a required capability
----------------|-----------------------------|-----------------------------------------
Concurrency     | CONFLICT                    | Claim lock/version contention (retry once)
----------------|-----------------------------|-----------------------------------------
Immutability    | IMMUTABILITY_VIOLATION      | Modifying a finalized claim or history
----------------|-----------------------------|-----------------------------------------
Audit           | AUDIT_CHAIN_BROKEN          | Hash chain validation failed

===============================================================================
HANDLING PATTERNS
===============================================================================

1. CATCH SPECIFIC EXCEPTIONS (not base classes):

    try:
        engine.submit_decision(...)
    except NoEligibleApproversError as e:
        notify_admin(f"Stage {e.stage_level} has nobody to approve it")
    except UnauthorizedError as e:
        return forbidden(e.code)

2. RETRY ONLY CONFLICTS:

    try:
        engine.submit_decision(...)
    except ConflictError:
        engine.submit_decision(...)  # once; a second conflict is reported

===============================================================================
"""


class ApprovalKernelError(Exception):
    """
    Base exception for all approval kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "APPROVAL_KERNEL_ERROR"


# Workflow definition exceptions


class WorkflowError(ApprovalKernelError):
    """Base exception for workflow definition errors."""

    code: str = "WORKFLOW_ERROR"


class WorkflowValidationError(WorkflowError):
    """
    Workflow definition is malformed.

    Raised at definition-creation time only (domain construction, YAML
    loading, workflow registration), never while a decision is processed.
    """

    code: str = "WORKFLOW_VALIDATION_FAILED"

    def __init__(self, errors: list[str] | tuple[str, ...], workflow_name: str | None = None):
        self.errors = tuple(errors)
        self.workflow_name = workflow_name
        prefix = f"Invalid workflow '{workflow_name}'" if workflow_name else "Invalid workflow"
        super().__init__(f"{prefix}: " + "; ".join(self.errors))


class WorkflowNotFoundError(WorkflowError):
    """Workflow definition with given ID was not found."""

    code: str = "WORKFLOW_NOT_FOUND"

    def __init__(self, workflow_id: str):
        self.workflow_id = workflow_id
        super().__init__(f"Workflow not found: {workflow_id}")


class NoActiveWorkflowError(WorkflowError):
    """The organization has no active workflow to bind a new claim to."""

    code: str = "NO_ACTIVE_WORKFLOW"

    def __init__(self, organization_id: str):
        self.organization_id = organization_id
        super().__init__(
            f"No active approval workflow for organization {organization_id}"
        )


# Claim exceptions


class ClaimError(ApprovalKernelError):
    """Base exception for claim lifecycle errors."""

    code: str = "CLAIM_ERROR"


class ClaimNotFoundError(ClaimError):
    """Claim with given ID was not found."""

    code: str = "CLAIM_NOT_FOUND"

    def __init__(self, claim_id: str):
        self.claim_id = claim_id
        super().__init__(f"Claim not found: {claim_id}")


class AlreadyFinalizedError(ClaimError):
    """Claim has left Pending; it accepts no further decisions."""

    code: str = "ALREADY_FINALIZED"

    def __init__(self, claim_id: str, status: str):
        self.claim_id = claim_id
        self.status = status
        super().__init__(f"Claim {claim_id} is already {status}")


class DuplicateVoteError(ClaimError):
    """The actor already voted at the currently open stage."""

    code: str = "DUPLICATE_VOTE"

    def __init__(self, claim_id: str, actor_id: str, stage_level: int):
        self.claim_id = claim_id
        self.actor_id = actor_id
        self.stage_level = stage_level
        super().__init__(
            f"Actor {actor_id} already voted on claim {claim_id} "
            f"at stage {stage_level}"
        )


# Authorization exceptions


class AuthorizationError(ApprovalKernelError):
    """Base exception for authorization failures."""

    code: str = "AUTHORIZATION_ERROR"


class UnauthorizedError(AuthorizationError):
    """Actor is not permitted to act at the claim's current gate or stage."""

    code: str = "UNAUTHORIZED"

    def __init__(
        self,
        claim_id: str,
        actor_id: str,
        stage_level: int | None = None,
        reason: str = "",
    ):
        self.claim_id = claim_id
        self.actor_id = actor_id
        self.stage_level = stage_level
        self.reason = reason
        where = "pre-approval gate" if stage_level is None else f"stage {stage_level}"
        message = f"Actor {actor_id} is not authorized at the {where} of claim {claim_id}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class NoEligibleApproversError(UnauthorizedError):
    """
    The gate or stage resolves to zero eligible approvers.

    Unauthorized-for-everyone: the stage can never be satisfied, so every
    attempt fails rather than auto-approving.
    """

    code: str = "NO_ELIGIBLE_APPROVERS"

    def __init__(
        self,
        claim_id: str | None = None,
        actor_id: str | None = None,
        stage_level: int | None = None,
    ):
        self.claim_id = claim_id
        self.actor_id = actor_id
        self.stage_level = stage_level
        self.reason = "no eligible approvers"
        where = "pre-approval gate" if stage_level is None else f"stage {stage_level}"
        target = f" of claim {claim_id}" if claim_id else ""
        AuthorizationError.__init__(self, f"No eligible approvers at the {where}{target}")


class CapabilityRequiredError(AuthorizationError):
    """Actor lacks the capability an operation requires (e.g. ``admin``)."""

    code: str = "CAPABILITY_REQUIRED"

    def __init__(self, actor_id: str, capability: str):
        self.actor_id = actor_id
        self.capability = capability
        super().__init__(f"Actor {actor_id} requires capability '{capability}'")


# Concurrency exceptions


class ConcurrencyError(ApprovalKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class ConflictError(ConcurrencyError):
    """
    Another decision on the same claim won the race.

    The only error callers are expected to retry, and only once.
    """

    code: str = "CONFLICT"

    def __init__(self, claim_id: str, reason: str = "claim was modified concurrently"):
        self.claim_id = claim_id
        self.reason = reason
        super().__init__(f"Conflict on claim {claim_id}: {reason}")


# Immutability exceptions


class ImmutabilityError(ApprovalKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an immutable record.

    Decision records and audit events are immutable from creation; claims
    are immutable once Approved or Rejected.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Cannot modify {entity_type} {entity_id}: {reason}"
        )


# Audit exceptions


class AuditError(ApprovalKernelError):
    """Base exception for audit-related errors."""

    code: str = "AUDIT_ERROR"


class AuditChainBrokenError(AuditError):
    """Audit hash chain validation failed."""

    code: str = "AUDIT_CHAIN_BROKEN"

    def __init__(self, audit_event_id: str, expected_hash: str, actual_hash: str):
        self.audit_event_id = audit_event_id
        self.expected_hash = expected_hash
        self.actual_hash = actual_hash
        super().__init__(
            f"Audit chain broken at event {audit_event_id}: "
            f"expected {expected_hash}, got {actual_hash}"
        )
