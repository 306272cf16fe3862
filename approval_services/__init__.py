"""
approval_services -- caller-facing layer of the approval engine.

Usage:
    from approval_services import ApprovalEngine, InMemoryOrgDirectory

    engine = ApprovalEngine(session_factory, directory)
    claim = engine.create_claim(submitter_id, description="Taxi")
    engine.submit_decision(claim.claim_id, manager_id, Verdict.APPROVE)
"""

from approval_services.approval_engine import ADMIN_CAPABILITY, ApprovalEngine
from approval_services.claim_locks import DEFAULT_LOCK_TIMEOUT_SECONDS, ClaimLockRegistry
from approval_services.directory import InMemoryOrgDirectory

__all__ = [
    "ADMIN_CAPABILITY",
    "ApprovalEngine",
    "ClaimLockRegistry",
    "DEFAULT_LOCK_TIMEOUT_SECONDS",
    "InMemoryOrgDirectory",
]
