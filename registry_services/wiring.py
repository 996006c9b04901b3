"""
registry_services.wiring -- Assemble the registry for one session.

Builds the kernel services and the coordinators from a configuration
set and registers the cross-component side effects, so API handlers and
scripts only do::

    registry = build_registry(session, get_active_config(), role_provider)
    registry.engine.apply(app_id, WorkflowAction.SUBMIT, owner_id)
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.orm import Session

from registry_config import get_active_config
from registry_config.bridges import KernelPolicies, build_kernel_policies
from registry_config.schema import RegistryConfig
from registry_kernel.domain.clock import Clock, SystemClock
from registry_kernel.domain.collaborators import (
    DocumentStore,
    NotificationDispatcher,
    PaymentGateway,
    RoleProvider,
)
from registry_kernel.domain.statuses import WorkflowAction
from registry_kernel.selectors.application_selector import ApplicationSelector
from registry_kernel.selectors.inspection_selector import InspectionSelector
from registry_kernel.services.action_log import ActionLog
from registry_kernel.services.application_store import ApplicationStore
from registry_kernel.services.document_service import DocumentService
from registry_kernel.services.draft_maintenance import DraftMaintenanceService
from registry_kernel.services.sequence_allocator import SequenceAllocator
from registry_kernel.services.settings_service import SettingsService
from registry_services.certificate_issuer import CertificateIssuer
from registry_services.inspection_service import InspectionService
from registry_services.rbac_authority import StaticRoleProvider
from registry_services.workflow_engine import SideEffectContext, WorkflowEngine


@dataclass(frozen=True)
class Registry:
    """The services of one session, wired together."""

    session: Session
    config: RegistryConfig
    policies: KernelPolicies
    clock: Clock
    settings: SettingsService
    allocator: SequenceAllocator
    action_log: ActionLog
    store: ApplicationStore
    documents: DocumentService
    engine: WorkflowEngine
    inspections: InspectionService
    certificates: CertificateIssuer
    drafts: DraftMaintenanceService
    applications: ApplicationSelector
    inspection_queries: InspectionSelector


def build_registry(
    session: Session,
    config: RegistryConfig | None = None,
    role_provider: RoleProvider | None = None,
    *,
    document_store: DocumentStore | None = None,
    payment_gateway: PaymentGateway | None = None,
    dispatcher: NotificationDispatcher | None = None,
    clock: Clock | None = None,
) -> Registry:
    """Wire the registry services for ``session``.

    ``document_store`` replaces the database-backed document
    preconditions; ``payment_gateway`` and ``dispatcher`` default to the
    application payment status and log-only notifications.
    """
    config = config or get_active_config()
    policies = build_kernel_policies(config)
    clock = clock or SystemClock()

    settings = SettingsService(session, clock)
    allocator = SequenceAllocator(session, settings, policies.allocation, clock)
    action_log = ActionLog(session, clock)
    store = ApplicationStore(
        session,
        allocator=allocator,
        action_log=action_log,
        formatter=policies.formatter,
        draft_policy=policies.drafts,
        clock=clock,
    )
    documents = DocumentService(session, policies.documents, clock)
    engine = WorkflowEngine(
        session,
        role_provider=role_provider or StaticRoleProvider(),
        document_store=document_store or documents,
        payment_gateway=payment_gateway,
        dispatcher=dispatcher,
        rbac=policies.rbac,
        policy=policies.workflow,
        document_requirements=policies.documents,
        store=store,
        action_log=action_log,
        clock=clock,
    )

    def mark_documents_verified(ctx: SideEffectContext) -> None:
        documents.mark_verified(ctx.application.id, ctx.actor_id)

    engine.register_side_effect(
        WorkflowAction.VERIFY_DOCUMENT, mark_documents_verified, "mark_documents_verified",
    )

    inspections = InspectionService(session, engine, policies.inspection, clock)
    certificates = CertificateIssuer(
        session,
        engine,
        allocator=allocator,
        formatter=policies.formatter,
        policy=policies.certificate,
        clock=clock,
    )
    drafts = DraftMaintenanceService(session, store, policies.drafts, clock)

    return Registry(
        session=session,
        config=config,
        policies=policies,
        clock=clock,
        settings=settings,
        allocator=allocator,
        action_log=action_log,
        store=store,
        documents=documents,
        engine=engine,
        inspections=inspections,
        certificates=certificates,
        drafts=drafts,
        applications=ApplicationSelector(session),
        inspection_queries=InspectionSelector(session),
    )
