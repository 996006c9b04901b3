"""
Domain events emitted to the Notification Dispatcher.

The core only names what happened; delivery channel and templates belong
to the dispatcher.  Event names keep the camelCase spelling the
notification templates are keyed on.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID


class NotificationEvent(str, Enum):
    APPLICATION_SUBMITTED = "applicationSubmitted"
    SENT_BACK_FOR_CORRECTIONS = "sentBackForCorrections"
    FORWARDED_TO_DTDO = "forwardedToDtdo"
    INSPECTION_SCHEDULED = "inspectionScheduled"
    OBJECTION_RAISED = "objectionRaised"
    VERIFIED_FOR_PAYMENT = "verifiedForPayment"
    CORRECTION_RESUBMITTED = "correctionResubmitted"
    APPROVED = "approved"
    REJECTED = "rejected"
    CERTIFICATE_CANCELLED = "certificateCancelled"


@dataclass(frozen=True)
class DomainEvent:
    """One notification-worthy fact about an application."""

    name: NotificationEvent
    application_id: UUID
    application_number: str
    owner_user_id: UUID
    status: str
    occurred_at: datetime
    details: dict[str, Any] = field(default_factory=dict)
