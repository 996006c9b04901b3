"""
Closed vocabularies for the registration workflow
(``registry_kernel.domain.statuses``).

Responsibility
--------------
Every status, application kind, workflow action and logged action kind is
a member of a ``str`` Enum defined here.  Nothing outside this module
compares against raw status strings; the database stores the enum value
and a CHECK constraint rejects anything else.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.
"""

from __future__ import annotations

from enum import Enum


class ApplicationStatus(str, Enum):
    """Application lifecycle states."""

    DRAFT = "draft"
    SUBMITTED = "submitted"
    UNDER_SCRUTINY = "under_scrutiny"
    FORWARDED_TO_DTDO = "forwarded_to_dtdo"
    INSPECTION_SCHEDULED = "inspection_scheduled"
    INSPECTION_COMPLETED = "inspection_completed"
    VERIFIED_FOR_PAYMENT = "verified_for_payment"
    APPROVED = "approved"

    # Correction branch
    SENT_BACK_FOR_CORRECTIONS = "sent_back_for_corrections"
    REVERTED_BY_DTDO = "reverted_by_dtdo"
    OBJECTION_RAISED = "objection_raised"

    REJECTED = "rejected"
    CERTIFICATE_CANCELLED = "certificate_cancelled"
    SUPERSEDED = "superseded"


# Owner is expected to fix and resubmit.
CORRECTION_STATUSES: frozenset[ApplicationStatus] = frozenset({
    ApplicationStatus.SENT_BACK_FOR_CORRECTIONS,
    ApplicationStatus.REVERTED_BY_DTDO,
    ApplicationStatus.OBJECTION_RAISED,
})

# End of the review lifecycle.  APPROVED only leaves through system edges
# driven by a later cancellation or amendment.
TERMINAL_STATUSES: frozenset[ApplicationStatus] = frozenset({
    ApplicationStatus.APPROVED,
    ApplicationStatus.REJECTED,
    ApplicationStatus.CERTIFICATE_CANCELLED,
    ApplicationStatus.SUPERSEDED,
})

# Not "active" for the one-active-application-per-(owner, kind, parent) rule.
CLOSED_STATUSES: frozenset[ApplicationStatus] = TERMINAL_STATUSES

# Owner may edit content.
EDITABLE_STATUSES: frozenset[ApplicationStatus] = (
    frozenset({ApplicationStatus.DRAFT}) | CORRECTION_STATUSES
)


class ApplicationKind(str, Enum):
    """What the application asks the department to do."""

    NEW_REGISTRATION = "new_registration"
    ADD_ROOMS = "add_rooms"
    DELETE_ROOMS = "delete_rooms"
    RENEWAL = "renewal"
    CANCELLATION = "cancellation"
    LEGACY_RC = "legacy_rc"


# Kinds that act on an earlier approved application.
PARENT_REQUIRED_KINDS: frozenset[ApplicationKind] = frozenset({
    ApplicationKind.ADD_ROOMS,
    ApplicationKind.DELETE_ROOMS,
    ApplicationKind.RENEWAL,
    ApplicationKind.CANCELLATION,
})

# Approval of these supersedes the parent application.
AMENDMENT_KINDS: frozenset[ApplicationKind] = frozenset({
    ApplicationKind.ADD_ROOMS,
    ApplicationKind.DELETE_ROOMS,
    ApplicationKind.RENEWAL,
})

# Certificates issued before the online registry; an officer checks the
# papers and approves without inspection or fee.
LEGACY_KINDS: frozenset[ApplicationKind] = frozenset({
    ApplicationKind.LEGACY_RC,
})

# No document intake, no site inspection.
INSPECTION_EXEMPT_KINDS: frozenset[ApplicationKind] = frozenset({
    ApplicationKind.CANCELLATION,
})


class WorkflowAction(str, Enum):
    """Commands a role-holder (or the system) issues against an application."""

    SUBMIT = "submit"
    START_SCRUTINY = "start_scrutiny"
    VERIFY_DOCUMENT = "verify_document"
    SEND_BACK = "send_back"
    FORWARD_TO_DTDO = "forward_to_dtdo"
    SCHEDULE_INSPECTION = "schedule_inspection"
    ACKNOWLEDGE_INSPECTION = "acknowledge_inspection"
    START_INSPECTION = "start_inspection"
    COMPLETE_INSPECTION = "complete_inspection"
    RAISE_OBJECTIONS = "raise_objections"
    VERIFY_FOR_PAYMENT = "verify_for_payment"
    APPROVE = "approve"
    REVERT = "revert"
    REJECT = "reject"
    APPROVE_CANCELLATION = "approve_cancellation"
    VERIFY_LEGACY = "verify_legacy"
    RESUBMIT_CORRECTIONS = "resubmit_corrections"

    # System-originated
    AUTO_REJECT = "auto_reject"
    SUPERSEDE = "supersede"
    REVOKE_CERTIFICATE = "revoke_certificate"


class ActionKind(str, Enum):
    """What the action log records for each applied action."""

    CREATED = "created"
    SUBMITTED = "submitted"
    SCRUTINY_STARTED = "scrutiny_started"
    DOCUMENT_VERIFIED = "document_verified"
    SENT_BACK_FOR_CORRECTIONS = "sent_back_for_corrections"
    FORWARDED_TO_DTDO = "forwarded_to_dtdo"
    SITE_INSPECTION_SCHEDULED = "site_inspection_scheduled"
    INSPECTION_ACKNOWLEDGED = "inspection_acknowledged"
    INSPECTION_STARTED = "inspection_started"
    INSPECTION_COMPLETED = "inspection_completed"
    OBJECTION_RAISED = "objection_raised"
    VERIFIED_FOR_PAYMENT = "verified_for_payment"
    APPROVED = "approved"
    REVERTED_BY_DTDO = "reverted_by_dtdo"
    REJECTED = "rejected"
    AUTO_REJECTED = "auto_rejected"
    CANCELLATION_APPROVED = "cancellation_approved"
    LEGACY_RC_VERIFIED = "legacy_rc_verified"
    CORRECTION_RESUBMITTED = "correction_resubmitted"
    SUPERSEDED = "superseded"
    CERTIFICATE_REVOKED = "certificate_revoked"


class InspectionOrderStatus(str, Enum):
    SCHEDULED = "scheduled"
    ACKNOWLEDGED = "acknowledged"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


ACTIVE_ORDER_STATUSES: frozenset[InspectionOrderStatus] = frozenset({
    InspectionOrderStatus.SCHEDULED,
    InspectionOrderStatus.ACKNOWLEDGED,
    InspectionOrderStatus.IN_PROGRESS,
})


class Recommendation(str, Enum):
    """Inspecting officer's recommendation on a report."""

    APPROVE = "approve"
    RAISE_OBJECTIONS = "raise_objections"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
