"""Selectors for the approval kernel (read side)."""

from approval_kernel.selectors.claim_selector import ClaimSelector

__all__ = [
    "ClaimSelector",
]
