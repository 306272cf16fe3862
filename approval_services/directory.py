"""
approval_services.directory -- In-memory organization directory.

Responsibility:
    A thread-safe ``OrgDirectory`` implementation for tests, scripts and
    embedding applications that keep their user list in memory.  Real
    deployments plug in an adapter over their own user store.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable
from dataclasses import replace
from uuid import UUID, uuid4

from approval_kernel.domain.directory import Actor


class InMemoryOrgDirectory:
    """Actors keyed by id; capabilities are lowercase role names."""

    def __init__(self, actors: Iterable[Actor] = ()) -> None:
        self._lock = threading.RLock()
        self._actors: dict[UUID, Actor] = {}
        for actor in actors:
            self.put(actor)

    def put(self, actor: Actor) -> Actor:
        with self._lock:
            self._actors[actor.actor_id] = actor
        return actor

    def add_actor(
        self,
        display_name: str,
        organization_id: UUID,
        capabilities: Iterable[str] = (),
        manager_id: UUID | None = None,
        actor_id: UUID | None = None,
    ) -> Actor:
        return self.put(
            Actor(
                actor_id=actor_id or uuid4(),
                display_name=display_name,
                organization_id=organization_id,
                capabilities=frozenset(capabilities),
                manager_id=manager_id,
            )
        )

    def remove_actor(self, actor_id: UUID) -> None:
        with self._lock:
            self._actors.pop(actor_id, None)

    def set_manager(self, actor_id: UUID, manager_id: UUID | None) -> Actor:
        with self._lock:
            actor = replace(self._actors[actor_id], manager_id=manager_id)
            self._actors[actor_id] = actor
        return actor

    def grant(self, actor_id: UUID, capability: str) -> Actor:
        with self._lock:
            current = self._actors[actor_id]
            actor = replace(current, capabilities=current.capabilities | {capability})
            self._actors[actor_id] = actor
        return actor

    def revoke(self, actor_id: UUID, capability: str) -> Actor:
        with self._lock:
            current = self._actors[actor_id]
            actor = replace(current, capabilities=current.capabilities - {capability})
            self._actors[actor_id] = actor
        return actor

    # OrgDirectory

    def get_actor(self, actor_id: UUID) -> Actor | None:
        with self._lock:
            return self._actors.get(actor_id)

    def resolve_manager(self, submitter_id: UUID) -> UUID | None:
        actor = self.get_actor(submitter_id)
        return actor.manager_id if actor is not None else None

    def actor_capabilities(self, actor_id: UUID) -> frozenset[str]:
        actor = self.get_actor(actor_id)
        return actor.capabilities if actor is not None else frozenset()

    def capability_holders(self, organization_id: UUID, capability: str) -> frozenset[UUID]:
        with self._lock:
            return frozenset(
                a.actor_id
                for a in self._actors.values()
                if a.organization_id == organization_id and capability in a.capabilities
            )
