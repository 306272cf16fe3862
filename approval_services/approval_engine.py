"""
approval_services.approval_engine -- Caller-facing approval operations.

Responsibility:
    The one object an application talks to: creates claims, records
    decisions, answers "what can I approve right now", and manages
    workflow definitions.  Thin coordinator -- routing rules live in the
    pure engines (``approval_engines``), persistence in the kernel
    services, directory lookups behind ``OrgDirectory``.

Architecture position:
    Services layer.  May import from approval_engines/, approval_kernel/
    and approval_config/.  Owns sessions and transaction boundaries
    (``session_scope``); kernel services below only flush.

Invariants enforced:
    - Directory resolution happens before the per-claim critical section.
    - A decision runs inside the claim's lock and one transaction: claim
      state, ballot, history row and audit events commit together or not
      at all.
    - Every operation binds ``claim_id`` / ``actor_id`` / ``workflow_id``
      into the structured log context.

Failure modes:
    Everything the engines and kernel services raise, unchanged.
    ``ConflictError`` is the only one callers should retry (once).
"""

from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal
from pathlib import Path
from uuid import UUID, uuid4

from sqlalchemy.orm import Session, sessionmaker

from approval_config import DEFAULT_WORKFLOW_FILE, EngineSettings, load_workflow_set
from approval_engines.authorization import resolve_context
from approval_engines.pending import find_actionable
from approval_engines.progression import open_claim
from approval_kernel.db.engine import (
    create_tables,
    get_session_factory,
    init_engine_from_url,
    is_postgres,
    session_scope,
)
from approval_kernel.domain.claim import ActionableClaim, Claim, ClaimStatus, DecisionRecord, Verdict
from approval_kernel.domain.clock import Clock, SystemClock
from approval_kernel.domain.directory import Actor, OrgDirectory
from approval_kernel.domain.workflow import Stage, WorkflowDefinition
from approval_kernel.exceptions import (
    ApprovalKernelError,
    CapabilityRequiredError,
    ClaimNotFoundError,
    UnauthorizedError,
    WorkflowNotFoundError,
)
from approval_kernel.logging_config import LogContext, configure_logging, get_logger
from approval_kernel.selectors.claim_selector import ClaimSelector
from approval_kernel.services.auditor_service import AuditorService, AuditTrace
from approval_kernel.services.claim_service import ClaimService
from approval_kernel.services.workflow_service import WorkflowService
from approval_services.claim_locks import DEFAULT_LOCK_TIMEOUT_SECONDS, ClaimLockRegistry

logger = get_logger("services.approval_engine")

ADMIN_CAPABILITY = "admin"


class ApprovalEngine:
    """Approval workflow engine facade.

    Args:
        session_factory: Produces sessions bound to the approval database.
        directory: Organization directory (actors, managers, capabilities).
        clock: Time source for timestamps; injected for tests.
        locks: Per-claim lock registry; share one across engines that
            serve the same database in one process.
        lock_timeout: Seconds to wait for a claim's lock.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        directory: OrgDirectory,
        clock: Clock | None = None,
        locks: ClaimLockRegistry | None = None,
        lock_timeout: float = DEFAULT_LOCK_TIMEOUT_SECONDS,
    ):
        self._session_factory = session_factory
        self._directory = directory
        self._clock = clock or SystemClock()
        self._locks = locks or ClaimLockRegistry()
        self._lock_timeout = lock_timeout

    @classmethod
    def from_settings(
        cls,
        settings: EngineSettings,
        directory: OrgDirectory,
        clock: Clock | None = None,
    ) -> ApprovalEngine:
        """Initialize the database from ``settings`` and build an engine."""
        configure_logging(level=settings.log_level)
        engine = init_engine_from_url(settings.database_url, echo=settings.sql_echo)
        create_tables(engine)
        return cls(
            get_session_factory(),
            directory,
            clock=clock,
            lock_timeout=settings.lock_timeout_seconds,
        )

    def _scope(self):
        return session_scope(self._session_factory)

    # ------------------------------------------------------------------
    # Workflows
    # ------------------------------------------------------------------

    def register_workflow(self, workflow: WorkflowDefinition, actor_id: UUID) -> WorkflowDefinition:
        """Persist an already-built definition."""
        with LogContext.bind(workflow_id=workflow.workflow_id, actor_id=actor_id):
            with self._scope() as session:
                return WorkflowService(session, clock=self._clock).create(workflow, actor_id)

    def define_workflow(
        self,
        organization_id: UUID,
        name: str,
        stages: Iterable[Stage],
        actor_id: UUID,
        *,
        requires_pre_approval_gate: bool = False,
        description: str = "",
        is_active: bool = True,
        version: int = 1,
        workflow_id: UUID | None = None,
    ) -> WorkflowDefinition:
        """Validate and register a new workflow definition.

        Raises:
            WorkflowValidationError: The definition is malformed.
        """
        workflow = WorkflowDefinition(
            workflow_id=workflow_id or uuid4(),
            organization_id=organization_id,
            name=name,
            stages=tuple(stages),
            requires_pre_approval_gate=requires_pre_approval_gate,
            is_active=is_active,
            description=description,
            version=version,
            created_by=actor_id,
        )
        return self.register_workflow(workflow, actor_id)

    def load_workflows(
        self,
        path: Path | str,
        actor_id: UUID,
        organization_id: UUID | None = None,
    ) -> list[WorkflowDefinition]:
        """Register every workflow of a YAML document in one transaction."""
        loaded = load_workflow_set(path, organization_id=organization_id, created_by=actor_id)
        with LogContext.bind(actor_id=actor_id):
            with self._scope() as session:
                service = WorkflowService(session, clock=self._clock)
                return [service.create(w, actor_id) for w in loaded.workflows]

    def list_workflows(
        self,
        organization_id: UUID,
        active_only: bool = False,
    ) -> list[WorkflowDefinition]:
        with self._scope() as session:
            return WorkflowService(session, clock=self._clock).list_for_organization(
                organization_id, active_only=active_only
            )

    def get_workflow(self, workflow_id: UUID) -> WorkflowDefinition:
        with self._scope() as session:
            return WorkflowService(session, clock=self._clock).get(workflow_id)

    def activate_workflow(self, workflow_id: UUID, actor_id: UUID) -> WorkflowDefinition:
        return self._set_active(workflow_id, True, actor_id)

    def deactivate_workflow(self, workflow_id: UUID, actor_id: UUID) -> WorkflowDefinition:
        """Deactivate; claims already bound to the definition are unaffected."""
        return self._set_active(workflow_id, False, actor_id)

    def _set_active(self, workflow_id: UUID, is_active: bool, actor_id: UUID) -> WorkflowDefinition:
        with LogContext.bind(workflow_id=workflow_id, actor_id=actor_id):
            with self._scope() as session:
                return WorkflowService(session, clock=self._clock).set_active(
                    workflow_id, is_active, actor_id
                )

    def ensure_default_workflow(
        self,
        organization_id: UUID,
        actor_id: UUID,
    ) -> WorkflowDefinition | None:
        """Register the bundled single-step manager workflow if the
        organization has no workflow at all.

        Returns:
            The new definition, or None when the organization already had one.
        """
        loaded = load_workflow_set(
            DEFAULT_WORKFLOW_FILE, organization_id=organization_id, created_by=actor_id
        )
        with LogContext.bind(actor_id=actor_id):
            with self._scope() as session:
                service = WorkflowService(session, clock=self._clock)
                if service.has_any(organization_id):
                    logger.info(
                        "default_workflow_exists",
                        extra={"organization_id": str(organization_id)},
                    )
                    return None
                return service.create(loaded.workflows[0], actor_id)

    # ------------------------------------------------------------------
    # Claims
    # ------------------------------------------------------------------

    def create_claim(
        self,
        submitter_id: UUID,
        workflow_id: UUID | None = None,
        *,
        description: str = "",
        category: str = "General",
        amount: Decimal | None = None,
        currency: str | None = None,
        converted_amount: Decimal | None = None,
        company_currency: str | None = None,
        receipt_ref: str | None = None,
        claim_id: UUID | None = None,
    ) -> Claim:
        """Create a claim bound to a snapshot of its workflow.

        ``workflow_id=None`` binds the organization's active definition.
        An explicit ``workflow_id`` must belong to the submitter's
        organization and be active.

        Raises:
            UnauthorizedError: The submitter is unknown to the directory.
            NoActiveWorkflowError: The organization has no active workflow.
            WorkflowNotFoundError: ``workflow_id`` is unknown, inactive, or
                belongs to another organization.
        """
        claim_id = claim_id or uuid4()
        with LogContext.bind(claim_id=claim_id, actor_id=submitter_id):
            submitter = self._directory.get_actor(submitter_id)
            if submitter is None:
                raise UnauthorizedError(
                    str(claim_id), str(submitter_id), reason="submitter is not in the directory"
                )

            with self._scope() as session:
                workflows = WorkflowService(session, clock=self._clock)
                if workflow_id is None:
                    workflow = workflows.get_active(submitter.organization_id)
                else:
                    workflow = workflows.get(workflow_id)
                    if (
                        workflow.organization_id != submitter.organization_id
                        or not workflow.is_active
                    ):
                        raise WorkflowNotFoundError(str(workflow_id))

                claim = open_claim(
                    claim_id=claim_id,
                    organization_id=submitter.organization_id,
                    submitter_id=submitter_id,
                    workflow=workflow,
                    created_at=self._clock.now(),
                    description=description,
                    category=category,
                    amount=amount,
                    currency=currency,
                    converted_amount=converted_amount,
                    company_currency=company_currency,
                    receipt_ref=receipt_ref,
                )
                with LogContext.bind(workflow_id=workflow.workflow_id):
                    return ClaimService(session, clock=self._clock).create_claim(claim)

    def submit_decision(
        self,
        claim_id: UUID,
        actor_id: UUID,
        verdict: Verdict | str,
        comment: str = "",
    ) -> Claim:
        """Record one decision and return the updated claim.

        Raises:
            ClaimNotFoundError, AlreadyFinalizedError, NoEligibleApproversError,
            UnauthorizedError, DuplicateVoteError, ConflictError.
        """
        verdict = Verdict(verdict)
        with LogContext.bind(claim_id=claim_id, actor_id=actor_id):
            try:
                with self._scope() as session:
                    current = ClaimService(session, clock=self._clock).get_claim(claim_id)
                context = resolve_context(current, actor_id, self._directory)

                with self._locks.hold(claim_id, timeout=self._lock_timeout):
                    with self._scope() as session:
                        result = ClaimService(session, clock=self._clock).submit_decision(
                            claim_id,
                            context,
                            verdict,
                            comment=comment,
                            lock_row=is_postgres(session.get_bind()),
                        )
            except ApprovalKernelError as exc:
                logger.info(
                    "decision_rejected",
                    extra={
                        "verdict": verdict.value,
                        "error_code": exc.code,
                        "error": str(exc),
                    },
                )
                raise
            return result.claim

    def find_actionable(self, actor_id: UUID) -> list[ActionableClaim]:
        """Pending claims ``actor_id`` may decide right now, oldest first.

        Reads committed state without taking claim locks.
        """
        actor = self._directory.get_actor(actor_id)
        if actor is None:
            return []
        with self._scope() as session:
            claims = ClaimSelector(session).pending_for_organization(actor.organization_id)
        actionable = find_actionable(
            claims, lambda claim: resolve_context(claim, actor_id, self._directory)
        )
        logger.debug(
            "actionable_claims_listed",
            extra={
                "actor_id": str(actor_id),
                "pending": len(claims),
                "actionable": len(actionable),
            },
        )
        return actionable

    def get_claim(self, claim_id: UUID) -> Claim:
        with self._scope() as session:
            return ClaimService(session, clock=self._clock).get_claim(claim_id)

    def claims_submitted_by(self, submitter_id: UUID) -> list[Claim]:
        """The submitter's own claims, newest first."""
        with self._scope() as session:
            return ClaimSelector(session).submitted_by(submitter_id)

    def _require_admin(self, actor_id: UUID) -> Actor:
        actor = self._directory.get_actor(actor_id)
        if actor is None or ADMIN_CAPABILITY not in self._directory.actor_capabilities(actor_id):
            raise CapabilityRequiredError(str(actor_id), ADMIN_CAPABILITY)
        return actor

    def claims_for_organization(
        self,
        actor_id: UUID,
        status: ClaimStatus | None = None,
    ) -> list[Claim]:
        """Every claim of the actor's organization (admin view).

        Raises:
            CapabilityRequiredError: The actor does not hold ``admin``.
        """
        actor = self._require_admin(actor_id)
        with self._scope() as session:
            return ClaimSelector(session).for_organization(actor.organization_id, status=status)

    def claim_status_counts(self, actor_id: UUID) -> dict[ClaimStatus, int]:
        """Pending / approved / rejected totals for the admin dashboard.

        Raises:
            CapabilityRequiredError: The actor does not hold ``admin``.
        """
        actor = self._require_admin(actor_id)
        with self._scope() as session:
            return ClaimSelector(session).count_by_status(actor.organization_id)

    def decision_history(self, claim_id: UUID) -> list[DecisionRecord]:
        """Accepted decisions of a claim in order.

        Raises:
            ClaimNotFoundError: The claim does not exist.
        """
        with self._scope() as session:
            selector = ClaimSelector(session)
            if selector.get(claim_id) is None:
                raise ClaimNotFoundError(str(claim_id))
            return selector.decision_history(claim_id)

    # ------------------------------------------------------------------
    # Audit
    # ------------------------------------------------------------------

    def audit_trail(self, claim_id: UUID) -> AuditTrace:
        with self._scope() as session:
            return AuditorService(session, self._clock).get_trace("Claim", claim_id)

    def verify_audit_chain(self) -> bool:
        """
        Raises:
            AuditChainBrokenError: A hash or link fails to verify.
        """
        with self._scope() as session:
            return AuditorService(session, self._clock).validate_chain()
