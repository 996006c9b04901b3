"""
registry_services.rbac_authority -- Runtime RBAC enforcement at the workflow boundary.

Responsibility:
    Decide whether an actor (roles and district from the role provider)
    may use a capability on a given application.  The capability table
    says which roles grant it; ownership and district scoping narrow it
    to the applications the actor is responsible for.

Architecture position:
    Services layer.  Consumes ``RbacTable`` (kernel domain, overridable
    from configuration).  Called by WorkflowEngine before a transition.

Invariants:
    - Owner capabilities granted through the property owner role only
      apply to the actor's own applications.
    - District-scoped officer roles only act within their district.
    - The kernel stays actor-agnostic; identity comes from the caller's
      RoleProvider.
"""

from __future__ import annotations

from uuid import UUID

from registry_kernel.domain.collaborators import ActorProfile
from registry_kernel.domain.rbac import (
    DISTRICT_SCOPED_ROLES,
    OWNER_CAPABILITIES,
    Capability,
    RbacTable,
    Role,
)


def districts_match(left: str | None, right: str | None) -> bool:
    """Case- and whitespace-insensitive district comparison."""
    if not left or not right:
        return False
    return " ".join(left.split()).lower() == " ".join(right.split()).lower()


def check_capability(
    rbac: RbacTable,
    profile: ActorProfile,
    capability: Capability,
    owner_user_id: UUID,
    district: str,
    enforce_district: bool = True,
) -> tuple[bool, str]:
    """Check whether the actor may use ``capability`` on the application.

    Args:
        rbac: Role -> capability table.
        profile: Actor identity, roles and district.
        capability: Capability named by the transition.
        owner_user_id: Owner of the target application.
        district: District of the target application.
        enforce_district: When False, district-scoped roles act anywhere.

    Returns:
        (allowed, reason). reason is empty when allowed, or a short
        message when denied.
    """
    granting = rbac.roles_granting(profile.roles, capability)
    if not granting:
        return (False, f"RBAC: capability '{capability.value}' not granted to actor")

    denial = ""
    for role in granting:
        if role is Role.PROPERTY_OWNER and capability in OWNER_CAPABILITIES:
            if profile.actor_id == owner_user_id:
                return (True, "")
            denial = "RBAC: actor is not the owner of this application"
            continue
        if role in DISTRICT_SCOPED_ROLES and enforce_district:
            if districts_match(profile.district, district):
                return (True, "")
            denial = (
                f"RBAC: application district '{district}' is outside actor "
                f"district '{profile.district or '-'}'"
            )
            continue
        return (True, "")

    return (False, denial)


class StaticRoleProvider:
    """Default RoleProvider backed by a dict.

    Satisfies the RoleProvider protocol from domain/collaborators.py.
    Can be replaced with a database- or directory-backed implementation.
    Unknown actors hold no roles.
    """

    def __init__(self, profiles: dict[UUID, ActorProfile] | None = None) -> None:
        self._profiles: dict[UUID, ActorProfile] = dict(profiles or {})

    def add(self, actor_id: UUID, *roles: Role | str, district: str | None = None) -> ActorProfile:
        profile = ActorProfile(
            actor_id=actor_id,
            roles=tuple(Role(r).value for r in roles),
            district=district,
        )
        self._profiles[actor_id] = profile
        return profile

    def get_actor_profile(self, actor_id: UUID) -> ActorProfile:
        return self._profiles.get(actor_id, ActorProfile(actor_id=actor_id))
