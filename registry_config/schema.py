"""
RegistryConfig schema.

The human-authored configuration set, parsed from YAML into frozen
dataclasses by the loader.  Mapping-valued settings are stored as sorted
tuples of pairs so the whole set stays hashable; ``as_dict()`` helpers
give them back as dicts.  Kernel policy objects are built from this by
``registry_config.bridges``.
"""

from __future__ import annotations

from dataclasses import dataclass, field


def _pairs_to_dict(pairs: tuple[tuple[str, object], ...]) -> dict:
    return {k: v for k, v in pairs}


@dataclass(frozen=True)
class NumberingConfig:
    """Tokens around allocated serials."""

    kind_codes: tuple[tuple[str, str], ...] = ()
    district_codes: tuple[tuple[str, str], ...] = ()
    certificate_prefix: str = "HP-HST"

    def kind_codes_dict(self) -> dict[str, str]:
        return _pairs_to_dict(self.kind_codes)

    def district_codes_dict(self) -> dict[str, str]:
        return _pairs_to_dict(self.district_codes)


@dataclass(frozen=True)
class AllocationConfig:
    max_attempts: int = 5


@dataclass(frozen=True)
class WorkflowConfig:
    max_reverts: int | None = 1
    correction_resubmit_target: str = "origin"  # origin | dtdo
    issue_on_verification_when_prepaid: bool = True
    enforce_district: bool = True


@dataclass(frozen=True)
class InspectionConfig:
    early_override_window_days: int = 7
    min_override_reason_length: int = 15


@dataclass(frozen=True)
class CertificateConfig:
    validity_years: int = 1


@dataclass(frozen=True)
class DocumentsConfig:
    required_types: tuple[tuple[str, tuple[str, ...]], ...] = ()
    min_photos: int = 2

    def required_types_dict(self) -> dict[str, tuple[str, ...]]:
        return _pairs_to_dict(self.required_types)


@dataclass(frozen=True)
class RbacConfig:
    """Per-role capability overrides; roles not listed keep the defaults."""

    role_capabilities: tuple[tuple[str, tuple[str, ...]], ...] = ()

    def overrides_dict(self) -> dict[str, tuple[str, ...]]:
        return _pairs_to_dict(self.role_capabilities)


@dataclass(frozen=True)
class DraftsConfig:
    single_open_service_request: bool = True
    abandoned_after_days: int = 180


@dataclass(frozen=True)
class RegistryConfig:
    """One complete configuration set."""

    config_id: str
    version: int
    description: str = ""
    numbering: NumberingConfig = field(default_factory=NumberingConfig)
    allocation: AllocationConfig = field(default_factory=AllocationConfig)
    workflow: WorkflowConfig = field(default_factory=WorkflowConfig)
    inspection: InspectionConfig = field(default_factory=InspectionConfig)
    certificate: CertificateConfig = field(default_factory=CertificateConfig)
    documents: DocumentsConfig = field(default_factory=DocumentsConfig)
    rbac: RbacConfig = field(default_factory=RbacConfig)
    drafts: DraftsConfig = field(default_factory=DraftsConfig)
    checksum: str = ""
