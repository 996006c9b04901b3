"""
RBAC capability table (``registry_kernel.domain.rbac``).

Responsibility
--------------
One table maps each role to the set of capabilities it holds.  Every
transition in the workflow names exactly one capability; the workflow
engine consults this table once per action instead of repeating role
lists at each call site.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  The table can
be overridden from configuration (``registry_config.bridges``).

Invariants enforced
-------------------
* Capabilities in ``OWNER_CAPABILITIES`` granted through the owner role
  are only usable on the actor's own applications.
* Roles in ``DISTRICT_SCOPED_ROLES`` only act on applications in their
  district.
* ``Capability.SYSTEM_TRANSITION`` is never granted to a human role.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Iterable, Mapping


class Role(str, Enum):
    PROPERTY_OWNER = "property_owner"
    DEALING_ASSISTANT = "dealing_assistant"
    DISTRICT_TOURISM_OFFICER = "district_tourism_officer"
    DISTRICT_OFFICER = "district_officer"
    STATE_OFFICER = "state_officer"
    SYSTEM = "system"


class Capability(str, Enum):
    APPLICATION_SUBMIT = "application.submit"
    APPLICATION_SCRUTINIZE = "application.scrutinize"
    APPLICATION_DECIDE = "application.decide"
    INSPECTION_SCHEDULE = "inspection.schedule"
    INSPECTION_ACKNOWLEDGE = "inspection.acknowledge"
    INSPECTION_CONDUCT = "inspection.conduct"
    CERTIFICATE_ISSUE = "certificate.issue"
    LEGACY_VERIFY = "application.verify_legacy"
    SYSTEM_TRANSITION = "system.transition"


OWNER_CAPABILITIES: frozenset[Capability] = frozenset({
    Capability.APPLICATION_SUBMIT,
    Capability.INSPECTION_ACKNOWLEDGE,
})

DISTRICT_SCOPED_ROLES: frozenset[Role] = frozenset({
    Role.DEALING_ASSISTANT,
    Role.DISTRICT_TOURISM_OFFICER,
    Role.DISTRICT_OFFICER,
})


DEFAULT_ROLE_CAPABILITIES: Mapping[Role, frozenset[Capability]] = MappingProxyType({
    Role.PROPERTY_OWNER: frozenset({
        Capability.APPLICATION_SUBMIT,
        Capability.INSPECTION_ACKNOWLEDGE,
    }),
    Role.DEALING_ASSISTANT: frozenset({
        Capability.APPLICATION_SCRUTINIZE,
        Capability.LEGACY_VERIFY,
        Capability.INSPECTION_ACKNOWLEDGE,
        Capability.INSPECTION_CONDUCT,
    }),
    Role.DISTRICT_TOURISM_OFFICER: frozenset({
        Capability.APPLICATION_DECIDE,
        Capability.INSPECTION_SCHEDULE,
        Capability.LEGACY_VERIFY,
        Capability.INSPECTION_ACKNOWLEDGE,
        Capability.INSPECTION_CONDUCT,
        Capability.CERTIFICATE_ISSUE,
    }),
    Role.DISTRICT_OFFICER: frozenset({
        Capability.APPLICATION_DECIDE,
        Capability.INSPECTION_SCHEDULE,
        Capability.LEGACY_VERIFY,
        Capability.INSPECTION_ACKNOWLEDGE,
        Capability.INSPECTION_CONDUCT,
        Capability.CERTIFICATE_ISSUE,
    }),
    Role.STATE_OFFICER: frozenset({
        Capability.APPLICATION_DECIDE,
        Capability.CERTIFICATE_ISSUE,
    }),
    Role.SYSTEM: frozenset({
        Capability.SYSTEM_TRANSITION,
    }),
})


@dataclass(frozen=True)
class RbacTable:
    """Role -> capabilities lookup.

    Contract: frozen; unknown role names hold no capabilities.
    """

    role_capabilities: Mapping[Role, frozenset[Capability]] = field(
        default_factory=lambda: DEFAULT_ROLE_CAPABILITIES
    )

    def capabilities_for(self, roles: Iterable[Role | str]) -> frozenset[Capability]:
        caps: set[Capability] = set()
        for role in roles:
            try:
                key = Role(role)
            except ValueError:
                continue
            caps |= self.role_capabilities.get(key, frozenset())
        return frozenset(caps)

    def roles_granting(
        self, roles: Iterable[Role | str], capability: Capability
    ) -> tuple[Role, ...]:
        """Which of ``roles`` grant ``capability`` (stable order)."""
        granting = []
        for role in roles:
            try:
                key = Role(role)
            except ValueError:
                continue
            if capability in self.role_capabilities.get(key, frozenset()):
                granting.append(key)
        return tuple(granting)

    def with_overrides(
        self, overrides: Mapping[str, Iterable[str]]
    ) -> RbacTable:
        """Return a table where each overridden role gets exactly the listed capabilities."""
        merged: dict[Role, frozenset[Capability]] = dict(self.role_capabilities)
        for role_name, cap_names in overrides.items():
            role = Role(role_name)
            caps = frozenset(Capability(c) for c in cap_names)
            if Capability.SYSTEM_TRANSITION in caps and role is not Role.SYSTEM:
                raise ValueError(
                    f"Role '{role_name}' cannot hold {Capability.SYSTEM_TRANSITION.value}"
                )
            merged[role] = caps
        return RbacTable(role_capabilities=MappingProxyType(merged))


DEFAULT_RBAC = RbacTable()
