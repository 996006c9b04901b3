"""
Config -> kernel bridges.

Functions that turn a ``RegistryConfig`` into the kernel's policy
objects.  They live here because the kernel never imports
``registry_config``.

Usage:
    from registry_config.bridges import build_kernel_policies

    config = get_active_config()
    policies = build_kernel_policies(config)
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType

from registry_config.schema import RegistryConfig
from registry_kernel.domain.numbering import (
    DEFAULT_DISTRICT_CODES,
    DEFAULT_KIND_CODES,
    DefaultNumberFormatter,
)
from registry_kernel.domain.policies import (
    DEFAULT_REQUIRED_DOCUMENTS,
    AllocationPolicy,
    CertificatePolicy,
    DocumentRequirements,
    DraftPolicy,
    InspectionPolicy,
    WorkflowPolicy,
)
from registry_kernel.domain.rbac import DEFAULT_RBAC, RbacTable
from registry_kernel.domain.statuses import ApplicationKind


def build_number_formatter(config: RegistryConfig) -> DefaultNumberFormatter:
    """Formatter with configured codes layered over the built-in tables."""
    kind_codes = dict(DEFAULT_KIND_CODES)
    kind_codes.update({ApplicationKind(k): v for k, v in config.numbering.kind_codes})
    district_codes = dict(DEFAULT_DISTRICT_CODES)
    district_codes.update(config.numbering.district_codes_dict())
    return DefaultNumberFormatter(
        kind_codes=kind_codes,
        district_codes=district_codes,
        certificate_prefix=config.numbering.certificate_prefix,
    )


def build_rbac_table(config: RegistryConfig) -> RbacTable:
    overrides = config.rbac.overrides_dict()
    if not overrides:
        return DEFAULT_RBAC
    return DEFAULT_RBAC.with_overrides(overrides)


def build_document_requirements(config: RegistryConfig) -> DocumentRequirements:
    required = dict(DEFAULT_REQUIRED_DOCUMENTS)
    for kind, types in config.documents.required_types:
        required[ApplicationKind(kind)] = frozenset(types)
    return DocumentRequirements(
        required_types=MappingProxyType(required),
        min_photos=config.documents.min_photos,
    )


def build_workflow_policy(config: RegistryConfig) -> WorkflowPolicy:
    wf = config.workflow
    return WorkflowPolicy(
        max_reverts=wf.max_reverts,
        correction_resubmit_target=wf.correction_resubmit_target,
        issue_on_verification_when_prepaid=wf.issue_on_verification_when_prepaid,
        enforce_district=wf.enforce_district,
    )


@dataclass(frozen=True)
class KernelPolicies:
    """Everything the kernel and coordinators are configured with."""

    allocation: AllocationPolicy
    workflow: WorkflowPolicy
    inspection: InspectionPolicy
    certificate: CertificatePolicy
    documents: DocumentRequirements
    drafts: DraftPolicy
    rbac: RbacTable
    formatter: DefaultNumberFormatter


def build_kernel_policies(config: RegistryConfig) -> KernelPolicies:
    return KernelPolicies(
        allocation=AllocationPolicy(max_attempts=config.allocation.max_attempts),
        workflow=build_workflow_policy(config),
        inspection=InspectionPolicy(
            early_override_window_days=config.inspection.early_override_window_days,
            min_override_reason_length=config.inspection.min_override_reason_length,
        ),
        certificate=CertificatePolicy(validity_years=config.certificate.validity_years),
        documents=build_document_requirements(config),
        drafts=DraftPolicy(
            single_open_service_request=config.drafts.single_open_service_request,
            abandoned_after_days=config.drafts.abandoned_after_days,
        ),
        rbac=build_rbac_table(config),
        formatter=build_number_formatter(config),
    )
