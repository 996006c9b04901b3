"""
Collaborator contracts (``registry_kernel.domain.collaborators``).

Responsibility
--------------
The narrow interfaces the workflow core consumes from systems it does
not own: document storage, the payment gateway, notification delivery
and identity/role lookup.  Implementations live outside the kernel
(``registry_services`` ships database- and log-backed defaults); tests
substitute fakes.

Architecture position
---------------------
**Kernel domain layer** -- Protocols only.  ZERO I/O.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable
from uuid import UUID

from registry_kernel.domain.events import DomainEvent


@runtime_checkable
class DocumentStore(Protocol):
    """Preconditions for submission.  Upload policy lives in the store."""

    def has_required_documents(self, application_id: UUID) -> bool: ...

    def photo_count(self, application_id: UUID) -> int: ...


@runtime_checkable
class PaymentGateway(Protocol):
    """Gates ``verified_for_payment -> approved``."""

    def payment_confirmed(self, application_id: UUID) -> bool: ...


@runtime_checkable
class NotificationDispatcher(Protocol):
    """Turns domain events into email/SMS; the core never sees channels."""

    def dispatch(self, event: DomainEvent) -> None: ...


@dataclass(frozen=True)
class ActorProfile:
    """Who is acting: their roles and, for district officers, their district."""

    actor_id: UUID
    roles: tuple[str, ...] = ()
    district: str | None = None


@runtime_checkable
class RoleProvider(Protocol):
    def get_actor_profile(self, actor_id: UUID) -> ActorProfile: ...
