"""
Organization directory port (``approval_kernel.domain.directory``).

Responsibility
--------------
The read-only view of people, reporting lines and capabilities that the
approval engine consumes.  Implemented outside the kernel (an HR system,
an identity provider, or ``approval_services.directory`` in-memory).

Architecture position
---------------------
**Kernel domain layer** -- protocol and value object only.  ZERO I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable
from uuid import UUID


@dataclass(frozen=True)
class Actor:
    """A person known to the directory."""

    actor_id: UUID
    display_name: str
    organization_id: UUID
    capabilities: frozenset[str] = field(default_factory=frozenset)
    manager_id: UUID | None = None

    def has_capability(self, capability: str) -> bool:
        return capability in self.capabilities


@runtime_checkable
class OrgDirectory(Protocol):
    """Directory lookups used before the per-claim critical section."""

    def get_actor(self, actor_id: UUID) -> Actor | None:
        ...

    def resolve_manager(self, submitter_id: UUID) -> UUID | None:
        """Direct manager of ``submitter_id``, or None."""
        ...

    def actor_capabilities(self, actor_id: UUID) -> frozenset[str]:
        ...

    def capability_holders(self, organization_id: UUID, capability: str) -> frozenset[UUID]:
        """Actors in the organization holding ``capability``."""
        ...
