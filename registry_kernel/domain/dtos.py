"""
Data transfer objects for the registration kernel.

Frozen dataclasses returned by services and selectors.  ORM rows never
leave the kernel; ``to_dto()`` on each model produces one of these.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Mapping
from uuid import UUID

from registry_kernel.domain.statuses import (
    ActionKind,
    ApplicationKind,
    ApplicationStatus,
    InspectionOrderStatus,
    Recommendation,
    WorkflowAction,
)
from registry_kernel.exceptions import RegistryKernelError


@dataclass(frozen=True)
class ApplicationInfo:
    id: UUID
    application_number: str
    kind: ApplicationKind
    status: ApplicationStatus
    owner_user_id: UUID
    district: str
    parent_application_id: UUID | None = None
    tehsil: str | None = None
    current_page: int = 1
    property_name: str | None = None
    owner_name: str | None = None
    category: str | None = None
    total_rooms: int | None = None
    submitted_at: datetime | None = None
    updated_at: datetime | None = None
    assigned_dealing_assistant_id: UUID | None = None
    dtdo_id: UUID | None = None
    correction_notes: str | None = None
    issues_found: tuple[str, ...] = ()
    reverted_from_status: ApplicationStatus | None = None
    revert_count: int = 0
    correction_submission_count: int = 0
    inspection_date: date | None = None
    payment_status: str | None = None
    certificate_number: str | None = None
    certificate_issued_date: date | None = None
    is_legacy_import: bool = False
    version: int = 1


@dataclass(frozen=True)
class ActionRecord:
    id: UUID
    application_id: UUID
    entry_no: int
    actor_id: UUID
    command: str
    action_kind: ActionKind
    previous_status: ApplicationStatus | None
    new_status: ApplicationStatus
    feedback: str | None
    issues_found: tuple[str, ...]
    details: Mapping[str, Any]
    created_at: datetime
    idempotency_key: str | None = None


@dataclass(frozen=True)
class InspectionOrderInfo:
    id: UUID
    application_id: UUID
    sequence: int
    scheduled_by: UUID
    assigned_to: UUID
    scheduled_date: date
    inspection_date: date
    inspection_address: str
    special_instructions: str | None
    status: InspectionOrderStatus


@dataclass(frozen=True)
class InspectionReportInput:
    """What the inspecting officer submits."""

    actual_inspection_date: date
    room_count_verified: bool
    category_meets_standards: bool
    overall_satisfactory: bool
    recommendation: Recommendation
    detailed_findings: str
    remarks: str | None = None
    early_inspection_override: bool = False
    early_inspection_reason: str | None = None

    def issues_from_findings(self) -> list[str]:
        """Failed boolean checks phrased for the owner."""
        issues = []
        if not self.room_count_verified:
            issues.append("Room count could not be verified")
        if not self.category_meets_standards:
            issues.append("Category does not meet standards")
        if not self.overall_satisfactory:
            issues.append("Overall inspection not satisfactory")
        return issues


@dataclass(frozen=True)
class InspectionReportInfo:
    id: UUID
    inspection_order_id: UUID
    application_id: UUID
    submitted_by: UUID
    submitted_at: datetime
    actual_inspection_date: date
    room_count_verified: bool
    category_meets_standards: bool
    overall_satisfactory: bool
    recommendation: Recommendation
    detailed_findings: str
    remarks: str | None
    early_inspection_override: bool


@dataclass(frozen=True)
class CertificateRecord:
    id: UUID
    application_id: UUID
    certificate_number: str
    serial: int
    issued_by: UUID
    issued_at: datetime
    valid_from: date
    valid_upto: date
    property_name: str | None
    owner_name: str | None
    district: str
    category: str | None
    total_rooms: int | None
    snapshot: Mapping[str, Any]


@dataclass(frozen=True)
class TransitionResult:
    """Outcome of ``WorkflowEngine.apply``.

    Contract: exactly one of ``new_status`` (success) or ``error``
    (failure) is meaningful.  ``replayed`` marks an idempotent retry that
    applied nothing.
    """

    success: bool
    application_id: UUID
    action: WorkflowAction
    previous_status: ApplicationStatus | None = None
    new_status: ApplicationStatus | None = None
    replayed: bool = False
    error: RegistryKernelError | None = None
    issues_found: tuple[str, ...] = ()
    correction_notes: str | None = None
    action_id: UUID | None = None
    details: Mapping[str, Any] = field(default_factory=dict)

    @property
    def error_code(self) -> str | None:
        return self.error.code if self.error is not None else None

    def raise_for_error(self) -> TransitionResult:
        """Re-raise the typed error of a failed result; return self otherwise."""
        if self.error is not None:
            raise self.error
        return self

    @classmethod
    def failed(
        cls,
        application_id: UUID,
        action: WorkflowAction,
        error: RegistryKernelError,
        previous_status: ApplicationStatus | None = None,
    ) -> TransitionResult:
        return cls(
            success=False,
            application_id=application_id,
            action=action,
            previous_status=previous_status,
            error=error,
            issues_found=tuple(getattr(error, "issues_found", ()) or ()),
            correction_notes=getattr(error, "correction_notes", None),
        )
