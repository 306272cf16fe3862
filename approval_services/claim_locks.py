"""
approval_services.claim_locks -- Per-claim critical sections.

Responsibility:
    Serializes decisions on the same claim inside one process while
    letting decisions on different claims run in parallel.

Architecture position:
    Services layer.  Used by ``ApprovalEngine.submit_decision``; the
    database (optimistic version column, FOR UPDATE on PostgreSQL) covers
    writers in other processes.

Invariants enforced:
    - At most one holder per claim id at a time.
    - Entries disappear once no thread holds or waits on them (weak
      values), so the registry does not grow with the number of claims.

Failure modes:
    - ConflictError when the lock is not acquired within ``timeout``.
"""

from __future__ import annotations

import threading
import weakref
from collections.abc import Iterator
from contextlib import contextmanager
from uuid import UUID

from approval_kernel.exceptions import ConflictError
from approval_kernel.logging_config import get_logger

logger = get_logger("services.claim_locks")

DEFAULT_LOCK_TIMEOUT_SECONDS = 5.0


class _ClaimLock:
    """Weak-referenceable holder for one claim's lock."""

    __slots__ = ("lock", "__weakref__")

    def __init__(self) -> None:
        self.lock = threading.Lock()


class ClaimLockRegistry:
    """One lock per claim id."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: weakref.WeakValueDictionary[UUID, _ClaimLock] = weakref.WeakValueDictionary()

    def _entry(self, claim_id: UUID) -> _ClaimLock:
        with self._guard:
            entry = self._locks.get(claim_id)
            if entry is None:
                entry = _ClaimLock()
                self._locks[claim_id] = entry
            return entry

    @contextmanager
    def hold(
        self,
        claim_id: UUID,
        timeout: float = DEFAULT_LOCK_TIMEOUT_SECONDS,
    ) -> Iterator[None]:
        """Hold the claim's lock for the duration of the block.

        Raises:
            ConflictError: The lock was not acquired within ``timeout``.
        """
        entry = self._entry(claim_id)
        if not entry.lock.acquire(timeout=timeout):
            logger.warning(
                "claim_lock_timeout",
                extra={"claim_id": str(claim_id), "timeout": timeout},
            )
            raise ConflictError(
                str(claim_id),
                reason=f"timed out after {timeout}s waiting for the claim lock",
            )
        try:
            yield
        finally:
            entry.lock.release()

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
