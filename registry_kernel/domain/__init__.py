"""
Pure domain layer.

Value objects, vocabularies, the workflow table, policies and
collaborator contracts.  No dependencies on the ORM, the database or I/O
(the system clock excepted).
"""

from registry_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from registry_kernel.domain.collaborators import (
    ActorProfile,
    DocumentStore,
    NotificationDispatcher,
    PaymentGateway,
    RoleProvider,
)
from registry_kernel.domain.documents import (
    DocumentInfo,
    DocumentRef,
    InlineDocument,
    StructuredDocument,
)
from registry_kernel.domain.dtos import (
    ActionRecord,
    ApplicationInfo,
    CertificateRecord,
    InspectionOrderInfo,
    InspectionReportInfo,
    InspectionReportInput,
    TransitionResult,
)
from registry_kernel.domain.events import DomainEvent, NotificationEvent
from registry_kernel.domain.rbac import Capability, RbacTable, Role
from registry_kernel.domain.statuses import (
    ActionKind,
    ApplicationKind,
    ApplicationStatus,
    InspectionOrderStatus,
    PaymentStatus,
    Recommendation,
    WorkflowAction,
)
from registry_kernel.domain.workflow import REGISTRATION_WORKFLOW, Transition, Workflow

__all__ = [
    "ActionKind",
    "ActionRecord",
    "ActorProfile",
    "ApplicationInfo",
    "ApplicationKind",
    "ApplicationStatus",
    "Capability",
    "CertificateRecord",
    "Clock",
    "DeterministicClock",
    "DocumentInfo",
    "DocumentRef",
    "DocumentStore",
    "DomainEvent",
    "InlineDocument",
    "InspectionOrderInfo",
    "InspectionOrderStatus",
    "InspectionReportInfo",
    "InspectionReportInput",
    "NotificationDispatcher",
    "NotificationEvent",
    "PaymentGateway",
    "PaymentStatus",
    "REGISTRATION_WORKFLOW",
    "RbacTable",
    "Recommendation",
    "Role",
    "RoleProvider",
    "StructuredDocument",
    "SystemClock",
    "Transition",
    "TransitionResult",
    "Workflow",
    "WorkflowAction",
]
