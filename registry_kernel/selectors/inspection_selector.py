"""
InspectionSelector -- read-only inspection order and report queries.

Shared by the workflow engine (satisfactory-inspection guard) and the
inspection subsystem.  Orders are ranked by their per-application
``sequence``; a report ranks with the order it belongs to, so "latest"
never depends on two timestamps being different.
"""

from uuid import UUID

from sqlalchemy import func, select

from registry_kernel.domain.dtos import InspectionOrderInfo, InspectionReportInfo
from registry_kernel.models.inspection import InspectionOrder, InspectionReport
from registry_kernel.selectors.base import BaseSelector


class InspectionSelector(BaseSelector[InspectionOrder]):

    def get_order(self, order_id: UUID) -> InspectionOrderInfo | None:
        row = self.session.get(InspectionOrder, order_id)
        return row.to_dto() if row is not None else None

    def active_order(self, application_id: UUID) -> InspectionOrderInfo | None:
        row = self.session.execute(
            select(InspectionOrder).where(
                InspectionOrder.active_for_application_id == application_id
            )
        ).scalar_one_or_none()
        return row.to_dto() if row is not None else None

    def orders_for(self, application_id: UUID) -> list[InspectionOrderInfo]:
        """Every order of the application, oldest first."""
        rows = self.session.execute(
            select(InspectionOrder)
            .where(InspectionOrder.application_id == application_id)
            .order_by(InspectionOrder.sequence)
        ).scalars().all()
        return [row.to_dto() for row in rows]

    def order_opened_by(self, application_id: UUID, action_id: UUID) -> InspectionOrderInfo | None:
        """The order created by a given schedule_inspection action row."""
        row = self.session.execute(
            select(InspectionOrder).where(
                InspectionOrder.application_id == application_id,
                InspectionOrder.scheduling_action_id == action_id,
            )
        ).scalar_one_or_none()
        return row.to_dto() if row is not None else None

    def next_sequence(self, application_id: UUID) -> int:
        current = self.session.execute(
            select(func.max(InspectionOrder.sequence))
            .where(InspectionOrder.application_id == application_id)
        ).scalar_one()
        return (current or 0) + 1

    def report_for_order(self, order_id: UUID) -> InspectionReportInfo | None:
        row = self.session.execute(
            select(InspectionReport).where(InspectionReport.inspection_order_id == order_id)
        ).scalar_one_or_none()
        return row.to_dto() if row is not None else None

    def latest_report(self, application_id: UUID) -> InspectionReportInfo | None:
        """Report of the most recent order that has one."""
        row = self.session.execute(
            select(InspectionReport)
            .join(InspectionOrder, InspectionOrder.id == InspectionReport.inspection_order_id)
            .where(InspectionReport.application_id == application_id)
            .order_by(InspectionOrder.sequence.desc())
            .limit(1)
        ).scalar_one_or_none()
        return row.to_dto() if row is not None else None
