"""
registry_services.inspection_service -- Site inspection scheduling and reports.

Responsibility:
    Schedules inspection orders, moves them through
    scheduled -> acknowledged -> in_progress -> completed, accepts the
    single report per order and feeds its recommendation back into the
    workflow engine.

Architecture position:
    Services layer.  Every status change goes through ``WorkflowEngine``;
    this module only owns the order and report rows.  Order creation is a
    side effect of the ``schedule_inspection`` action so it commits or
    rolls back with the status change.

Invariants enforced:
    - At most one active (non-completed) order per application
      (pre-check plus the ``uq_inspection_orders_active`` constraint).
    - Exactly one report per order; a second one is rejected, never
      overwritten.
    - Report, order completion and the resulting workflow actions share
      one savepoint.

Failure modes:
    - DuplicateActiveOrderError, InspectionOrderNotFoundError,
      ReportAlreadySubmittedError, InvalidInspectionReportError.
    - Any failed workflow action is re-raised as its typed error.
"""

from __future__ import annotations

from datetime import date
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from registry_kernel.domain.clock import Clock
from registry_kernel.domain.dtos import (
    InspectionOrderInfo,
    InspectionReportInfo,
    InspectionReportInput,
)
from registry_kernel.domain.policies import InspectionPolicy
from registry_kernel.domain.statuses import (
    InspectionOrderStatus,
    Recommendation,
    WorkflowAction,
)
from registry_kernel.exceptions import (
    ActionNotAllowedError,
    DuplicateActiveOrderError,
    InspectionOrderNotFoundError,
    InvalidInspectionReportError,
    PreconditionNotMetError,
    ReportAlreadySubmittedError,
    UnauthorizedActorError,
)
from registry_kernel.logging_config import get_logger
from registry_kernel.models.application import Application
from registry_kernel.models.inspection import InspectionOrder, InspectionReport
from registry_kernel.selectors.inspection_selector import InspectionSelector
from registry_services.workflow_engine import SideEffectContext, WorkflowEngine

logger = get_logger("services.inspections")


def _as_uuid(value: Any) -> UUID | None:
    if value is None or isinstance(value, UUID):
        return value
    return UUID(str(value))


def _as_date(value: Any) -> date | None:
    if value is None or isinstance(value, date):
        return value
    return date.fromisoformat(str(value))


class InspectionService:
    """Inspection orders and reports for one session.

    Constructing the service registers the order-creating side effect
    on ``engine``; build one per engine.
    """

    def __init__(
        self,
        session: Session,
        engine: WorkflowEngine,
        policy: InspectionPolicy | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.session = session
        self._engine = engine
        self._clock = clock or engine.clock
        self._policy = policy or InspectionPolicy()
        self._selector = InspectionSelector(session)
        engine.register_side_effect(
            WorkflowAction.SCHEDULE_INSPECTION,
            self._create_order,
            "create_inspection_order",
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def active_order(self, application_id: UUID) -> InspectionOrderInfo | None:
        return self._selector.active_order(application_id)

    def orders_for(self, application_id: UUID) -> list[InspectionOrderInfo]:
        return self._selector.orders_for(application_id)

    def latest_report(self, application_id: UUID) -> InspectionReportInfo | None:
        return self._selector.latest_report(application_id)

    def report_for_order(self, order_id: UUID) -> InspectionReportInfo | None:
        return self._selector.report_for_order(order_id)

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def schedule(
        self,
        application_id: UUID,
        assigned_to: UUID,
        inspection_date: date,
        address: str | None,
        instructions: str | None,
        scheduled_by: UUID,
        idempotency_key: str | None = None,
    ) -> InspectionOrderInfo:
        """
        Open an inspection order and move the application to
        ``inspection_scheduled``.

        ``address`` defaults to the application's address.  A retry with
        the same ``idempotency_key`` returns the order that key created,
        even after later re-inspections.
        """
        if idempotency_key is not None:
            recorded = self._engine.action_log.find_by_idempotency_key(
                application_id, WorkflowAction.SCHEDULE_INSPECTION.value, idempotency_key,
            )
            if recorded is not None:
                replayed = self._selector.order_opened_by(application_id, recorded.id)
                if replayed is not None:
                    return replayed

        existing = self._selector.active_order(application_id)
        if existing is not None:
            logger.warning(
                "duplicate_active_order_rejected",
                extra={"application_id": str(application_id), "order_id": str(existing.id)},
            )
            raise DuplicateActiveOrderError(
                str(application_id), str(existing.id), existing.status.value,
            )

        payload = {
            "assigned_to": str(assigned_to),
            "inspection_date": inspection_date.isoformat(),
            "inspection_address": address,
            "special_instructions": instructions,
        }
        result = self._engine.apply(
            application_id,
            WorkflowAction.SCHEDULE_INSPECTION,
            scheduled_by,
            payload,
            idempotency_key=idempotency_key,
        ).raise_for_error()
        return self._selector.order_opened_by(application_id, result.action_id)

    def _create_order(self, ctx: SideEffectContext) -> None:
        application = ctx.application
        assigned_to = _as_uuid(ctx.payload.get("assigned_to"))
        inspection_date = _as_date(ctx.payload.get("inspection_date"))
        if assigned_to is None or inspection_date is None:
            raise PreconditionNotMetError(
                str(application.id),
                "inspection_order_details",
                "assigned_to and inspection_date are required to schedule an inspection",
            )
        address = ctx.payload.get("inspection_address") or application.address
        if not address:
            raise PreconditionNotMetError(
                str(application.id),
                "inspection_order_details",
                "No inspection address given and the application has none",
            )

        order = InspectionOrder(
            application_id=application.id,
            sequence=self._selector.next_sequence(application.id),
            scheduling_action_id=ctx.action.id,
            scheduled_by=ctx.actor_id,
            assigned_to=assigned_to,
            scheduled_date=ctx.now.date(),
            inspection_date=inspection_date,
            inspection_address=address,
            special_instructions=ctx.payload.get("special_instructions"),
            created_at=ctx.now,
        )
        order.mark_status(InspectionOrderStatus.SCHEDULED)
        try:
            with self.session.begin_nested():
                self.session.add(order)
                self.session.flush()
        except IntegrityError as exc:
            message = str(exc.orig)
            if "active_for_application_id" not in message and "uq_inspection_orders_active" not in message:
                raise
            current = self._selector.active_order(application.id)
            raise DuplicateActiveOrderError(
                str(application.id),
                str(current.id) if current else "unknown",
                current.status.value if current else "unknown",
            ) from exc

        application.inspection_date = inspection_date
        logger.info(
            "inspection_scheduled",
            extra={
                "order_id": str(order.id),
                "assigned_to": str(assigned_to),
                "inspection_date": inspection_date.isoformat(),
            },
        )

    # ------------------------------------------------------------------
    # Order progress
    # ------------------------------------------------------------------

    def _order_for_update(self, order_id: UUID) -> InspectionOrder:
        order = self.session.execute(
            select(InspectionOrder)
            .where(InspectionOrder.id == order_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if order is None:
            raise InspectionOrderNotFoundError(str(order_id))
        return order

    def _application(self, order: InspectionOrder) -> Application:
        return self.session.get(Application, order.application_id)

    def _require_order_status(
        self,
        order: InspectionOrder,
        action: WorkflowAction,
        *allowed: InspectionOrderStatus,
    ) -> None:
        if order.status_enum not in allowed:
            raise ActionNotAllowedError(
                str(order.application_id),
                self._application(order).status,
                action.value,
                f"Inspection order {order.id} is {order.status}",
            )

    def acknowledge(self, order_id: UUID, actor_id: UUID) -> InspectionOrderInfo:
        """Owner or assigned officer confirms the visit."""
        order = self._order_for_update(order_id)
        self._require_order_status(
            order, WorkflowAction.ACKNOWLEDGE_INSPECTION, InspectionOrderStatus.SCHEDULED,
        )
        application = self._application(order)
        if actor_id not in (application.owner_user_id, order.assigned_to):
            raise UnauthorizedActorError(
                str(application.id), application.status,
                WorkflowAction.ACKNOWLEDGE_INSPECTION.value, str(actor_id),
                "Only the owner or the assigned officer may acknowledge the inspection",
            )

        with self._engine.batch(), self.session.begin_nested():
            self._engine.apply(
                order.application_id,
                WorkflowAction.ACKNOWLEDGE_INSPECTION,
                actor_id,
                {"inspection_order_id": str(order.id)},
            ).raise_for_error()
            order.mark_status(InspectionOrderStatus.ACKNOWLEDGED)
            order.acknowledged_at = self._clock.now()
            self.session.flush()
        return order.to_dto()

    def start(self, order_id: UUID, actor_id: UUID) -> InspectionOrderInfo:
        order = self._order_for_update(order_id)
        self._require_order_status(
            order, WorkflowAction.START_INSPECTION, InspectionOrderStatus.ACKNOWLEDGED,
        )
        if actor_id != order.assigned_to:
            application = self._application(order)
            raise UnauthorizedActorError(
                str(application.id), application.status,
                WorkflowAction.START_INSPECTION.value, str(actor_id),
                "Only the assigned officer may start the inspection",
            )

        with self._engine.batch(), self.session.begin_nested():
            self._engine.apply(
                order.application_id,
                WorkflowAction.START_INSPECTION,
                actor_id,
                {"inspection_order_id": str(order.id)},
            ).raise_for_error()
            order.mark_status(InspectionOrderStatus.IN_PROGRESS)
            order.started_at = self._clock.now()
            self.session.flush()
        return order.to_dto()

    # ------------------------------------------------------------------
    # Report
    # ------------------------------------------------------------------

    def _validate_report(self, order: InspectionOrder, report: InspectionReportInput) -> None:
        def invalid(reason: str) -> InvalidInspectionReportError:
            return InvalidInspectionReportError(str(order.application_id), str(order.id), reason)

        actual = report.actual_inspection_date
        if actual > self._clock.today():
            raise invalid("Actual inspection date cannot be in the future")

        if actual < order.inspection_date:
            if not report.early_inspection_override:
                raise invalid(
                    f"Actual inspection date {actual.isoformat()} is before the scheduled "
                    f"date {order.inspection_date.isoformat()}; an early-inspection "
                    "override is required"
                )
            window = self._policy.early_override_window_days
            if (order.inspection_date - actual).days > window:
                raise invalid(
                    f"Early inspection may be at most {window} days before the scheduled date"
                )
            reason = (report.early_inspection_reason or "").strip()
            if len(reason) < self._policy.min_override_reason_length:
                raise invalid(
                    "Early-inspection reason must be at least "
                    f"{self._policy.min_override_reason_length} characters"
                )

        if not report.detailed_findings or not report.detailed_findings.strip():
            raise invalid("Detailed findings are required")

    def submit_report(
        self,
        order_id: UUID,
        report: InspectionReportInput,
        actor_id: UUID,
    ) -> InspectionReportInfo:
        """
        Record the report for ``order_id`` and advance the application.

        ``approve`` leaves the application in ``inspection_completed`` for
        the DTDO's decision; ``raise_objections`` continues into
        ``objection_raised`` with the findings as correction notes.
        """
        order = self._order_for_update(order_id)
        existing = self._selector.report_for_order(order_id)
        if existing is not None:
            raise ReportAlreadySubmittedError(str(order_id), str(existing.id))
        application = self._application(order)
        if actor_id != order.assigned_to:
            raise UnauthorizedActorError(
                str(application.id), application.status, "submit_report", str(actor_id),
                "Only the assigned officer may submit the inspection report",
            )
        self._require_order_status(
            order,
            WorkflowAction.COMPLETE_INSPECTION,
            InspectionOrderStatus.SCHEDULED,
            InspectionOrderStatus.ACKNOWLEDGED,
            InspectionOrderStatus.IN_PROGRESS,
        )
        self._validate_report(order, report)

        now = self._clock.now()
        recommendation = Recommendation(report.recommendation)
        with self._engine.batch(), self.session.begin_nested():
            if order.status_enum is InspectionOrderStatus.SCHEDULED:
                self._engine.apply_as_system(
                    order.application_id,
                    WorkflowAction.ACKNOWLEDGE_INSPECTION,
                    {"inspection_order_id": str(order.id), "auto_acknowledged": True},
                    actor_id=actor_id,
                ).raise_for_error()
                order.mark_status(InspectionOrderStatus.ACKNOWLEDGED)
                order.acknowledged_at = now
                logger.info("inspection_auto_acknowledged", extra={"order_id": str(order.id)})

            row = InspectionReport(
                inspection_order_id=order.id,
                application_id=order.application_id,
                submitted_by=actor_id,
                submitted_at=now,
                actual_inspection_date=report.actual_inspection_date,
                room_count_verified=report.room_count_verified,
                category_meets_standards=report.category_meets_standards,
                overall_satisfactory=report.overall_satisfactory,
                recommendation=recommendation.value,
                detailed_findings=report.detailed_findings.strip(),
                remarks=report.remarks,
                early_inspection_override=report.early_inspection_override,
                early_inspection_reason=report.early_inspection_reason,
            )
            try:
                with self.session.begin_nested():
                    self.session.add(row)
                    self.session.flush()
            except IntegrityError as exc:
                message = str(exc.orig)
                if "inspection_order_id" not in message and "uq_inspection_reports_order" not in message:
                    raise
                raise ReportAlreadySubmittedError(str(order_id), "unknown") from exc

            order.mark_status(InspectionOrderStatus.COMPLETED)
            order.completed_at = now
            self.session.flush()

            self._engine.apply(
                order.application_id,
                WorkflowAction.COMPLETE_INSPECTION,
                actor_id,
                {
                    "remarks": report.remarks,
                    "inspection_order_id": str(order.id),
                    "inspection_report_id": str(row.id),
                    "recommendation": recommendation.value,
                    "overall_satisfactory": report.overall_satisfactory,
                },
            ).raise_for_error()

            if recommendation is Recommendation.RAISE_OBJECTIONS:
                self._engine.apply_as_system(
                    order.application_id,
                    WorkflowAction.RAISE_OBJECTIONS,
                    {
                        "remarks": row.detailed_findings,
                        "issues_found": report.issues_from_findings(),
                        "inspection_report_id": str(row.id),
                    },
                    actor_id=actor_id,
                ).raise_for_error()

        logger.info(
            "inspection_report_submitted",
            extra={
                "order_id": str(order.id),
                "report_id": str(row.id),
                "recommendation": recommendation.value,
                "overall_satisfactory": report.overall_satisfactory,
            },
        )
        return row.to_dto()
