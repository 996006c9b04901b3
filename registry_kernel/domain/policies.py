"""
Kernel policy objects.

Frozen settings the kernel services and coordinators are constructed
with.  They are produced from the YAML configuration by
``registry_config.bridges``; the kernel never reads configuration files
itself.  Defaults match the shipped configuration set.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

from registry_kernel.domain.statuses import ApplicationKind

_STANDARD_DOCUMENTS = frozenset({
    "revenue_papers",
    "affidavit_section_29",
    "undertaking_form_c",
})

DEFAULT_REQUIRED_DOCUMENTS: Mapping[ApplicationKind, frozenset[str]] = MappingProxyType({
    ApplicationKind.NEW_REGISTRATION: _STANDARD_DOCUMENTS,
    ApplicationKind.LEGACY_RC: _STANDARD_DOCUMENTS,
    ApplicationKind.ADD_ROOMS: frozenset({"undertaking_form_c"}),
    ApplicationKind.DELETE_ROOMS: frozenset({"undertaking_form_c"}),
    ApplicationKind.RENEWAL: frozenset({"undertaking_form_c"}),
    ApplicationKind.CANCELLATION: frozenset(),
})


@dataclass(frozen=True)
class AllocationPolicy:
    max_attempts: int = 5

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")


@dataclass(frozen=True)
class WorkflowPolicy:
    """Correction loop and approval behaviour.

    ``max_reverts``: an officer revert issued once ``revert_count`` has
    reached this value rejects the application instead (None disables).
    ``correction_resubmit_target``: ``"origin"`` re-enters the status the
    application was reverted from; ``"dtdo"`` sends DA-level corrections
    straight to the DTDO.
    """

    max_reverts: int | None = 1
    correction_resubmit_target: str = "origin"
    issue_on_verification_when_prepaid: bool = True
    enforce_district: bool = True

    def __post_init__(self) -> None:
        if self.max_reverts is not None and self.max_reverts < 0:
            raise ValueError("max_reverts must be >= 0 or None")
        if self.correction_resubmit_target not in ("origin", "dtdo"):
            raise ValueError(
                f"Unknown correction_resubmit_target: {self.correction_resubmit_target}"
            )


@dataclass(frozen=True)
class InspectionPolicy:
    early_override_window_days: int = 7
    min_override_reason_length: int = 15


@dataclass(frozen=True)
class CertificatePolicy:
    validity_years: int = 1


@dataclass(frozen=True)
class DocumentRequirements:
    required_types: Mapping[ApplicationKind, frozenset[str]] = field(
        default_factory=lambda: DEFAULT_REQUIRED_DOCUMENTS
    )
    min_photos: int = 2

    def required_for(self, kind: ApplicationKind) -> frozenset[str]:
        return self.required_types.get(kind, frozenset())


@dataclass(frozen=True)
class DraftPolicy:
    single_open_service_request: bool = True
    abandoned_after_days: int = 180
