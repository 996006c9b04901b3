"""
registry_services -- Coordinators over the registry kernel.

The workflow engine (the application state machine), capability checks,
the inspection subsystem, the certificate issuer and the default
collaborators.  ``build_registry`` wires them for a session.
"""

from registry_services.certificate_issuer import CertificateIssuer
from registry_services.inspection_service import InspectionService
from registry_services.notifications import (
    LoggingNotificationDispatcher,
    RecordingNotificationDispatcher,
)
from registry_services.payments import ApplicationPaymentStatusGateway
from registry_services.rbac_authority import StaticRoleProvider, check_capability
from registry_services.wiring import Registry, build_registry
from registry_services.workflow_engine import (
    SYSTEM_ACTOR_ID,
    GuardExecutor,
    SideEffectContext,
    WorkflowEngine,
    default_guard_executor,
)

__all__ = [
    "ApplicationPaymentStatusGateway",
    "CertificateIssuer",
    "GuardExecutor",
    "InspectionService",
    "LoggingNotificationDispatcher",
    "RecordingNotificationDispatcher",
    "Registry",
    "SYSTEM_ACTOR_ID",
    "SideEffectContext",
    "StaticRoleProvider",
    "WorkflowEngine",
    "build_registry",
    "check_capability",
    "default_guard_executor",
]
