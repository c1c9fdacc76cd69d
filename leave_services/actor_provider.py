"""
Static Actor/Role provider.

Dict-backed implementation of ``leave_kernel.domain.dtos.ActorProvider``:
role code, manager link and active flag per actor.  Can be replaced with
a directory- or database-backed implementation without touching the kernel.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable
from dataclasses import replace
from uuid import UUID

from leave_kernel.domain.dtos import ActorProfile
from leave_kernel.logging_config import get_logger

logger = get_logger("services.actor_provider")


class StaticActorProvider:
    """In-memory actor directory."""

    def __init__(self, profiles: Iterable[ActorProfile] = ()) -> None:
        self._profiles: dict[UUID, ActorProfile] = {p.actor_id: p for p in profiles}
        self._lock = threading.Lock()

    def add(self, profile: ActorProfile) -> ActorProfile:
        with self._lock:
            self._profiles[profile.actor_id] = profile
        return profile

    def deactivate(self, actor_id: UUID) -> ActorProfile:
        """Mark an actor inactive. Raises KeyError for unknown actors."""
        with self._lock:
            profile = replace(self._profiles[actor_id], is_active=False)
            self._profiles[actor_id] = profile
        return profile

    def get_actor(self, actor_id: UUID) -> ActorProfile | None:
        return self._profiles.get(actor_id)

    def get_management_chain(self, employee_id: UUID) -> tuple[UUID, ...]:
        """Managers of ``employee_id``, nearest first.

        Stops at the first unknown manager or at a cycle in the links.
        """
        chain: list[UUID] = []
        seen = {employee_id}
        profile = self._profiles.get(employee_id)
        while profile is not None and profile.manager_id is not None:
            manager_id = profile.manager_id
            if manager_id in seen:
                logger.warning(
                    "management_chain_cycle",
                    extra={"employee_id": str(employee_id), "manager_id": str(manager_id)},
                )
                break
            chain.append(manager_id)
            seen.add(manager_id)
            profile = self._profiles.get(manager_id)
        return tuple(chain)
