"""
Module: registry_kernel.models.inspection
Responsibility: ORM persistence for inspection orders and reports.

Architecture position: Kernel > Models.

Invariants enforced:
    - One active order per application: ``active_for_application_id``
      equals ``application_id`` while the order is not completed and is
      NULL afterwards; its UNIQUE constraint backs DuplicateActiveOrderError
      under concurrent scheduling.
    - Orders are numbered 1, 2, ... per application (UNIQUE per
      application); "latest" always means the highest sequence.
    - One report per order: UNIQUE(inspection_order_id).
    - Reports are immutable (db/immutability.py).
"""

from __future__ import annotations

from datetime import date, datetime
from uuid import UUID

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from registry_kernel.db.base import Base, UUIDString
from registry_kernel.domain.clock import ensure_utc
from registry_kernel.domain.dtos import InspectionOrderInfo, InspectionReportInfo
from registry_kernel.domain.statuses import (
    ACTIVE_ORDER_STATUSES,
    InspectionOrderStatus,
    Recommendation,
)


class InspectionOrder(Base):
    """Scheduled site visit for an application."""

    __tablename__ = "inspection_orders"

    __table_args__ = (
        CheckConstraint(
            "status IN ('scheduled', 'acknowledged', 'in_progress', 'completed')",
            name="ck_inspection_orders_valid_status",
        ),
        UniqueConstraint(
            "active_for_application_id", name="uq_inspection_orders_active",
        ),
        UniqueConstraint(
            "application_id", "sequence", name="uq_inspection_orders_sequence",
        ),
    )

    application_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("applications.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # 1, 2, ... per application; re-inspections get the next number.
    sequence: Mapped[int] = mapped_column(BigInteger, nullable=False)
    # The schedule_inspection action row that opened this order.
    scheduling_action_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    active_for_application_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    scheduled_by: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    assigned_to: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    scheduled_date: Mapped[date] = mapped_column(Date, nullable=False)
    inspection_date: Mapped[date] = mapped_column(Date, nullable=False)
    inspection_address: Mapped[str] = mapped_column(Text, nullable=False)
    special_instructions: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=InspectionOrderStatus.SCHEDULED.value,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    acknowledged_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    @property
    def status_enum(self) -> InspectionOrderStatus:
        return InspectionOrderStatus(self.status)

    @property
    def is_active(self) -> bool:
        return self.status_enum in ACTIVE_ORDER_STATUSES

    def mark_status(self, status: InspectionOrderStatus) -> None:
        self.status = status.value
        self.active_for_application_id = (
            self.application_id if status in ACTIVE_ORDER_STATUSES else None
        )

    def to_dto(self) -> InspectionOrderInfo:
        return InspectionOrderInfo(
            id=self.id,
            application_id=self.application_id,
            sequence=self.sequence,
            scheduled_by=self.scheduled_by,
            assigned_to=self.assigned_to,
            scheduled_date=self.scheduled_date,
            inspection_date=self.inspection_date,
            inspection_address=self.inspection_address,
            special_instructions=self.special_instructions,
            status=InspectionOrderStatus(self.status),
        )


class InspectionReport(Base):
    """Findings of a completed inspection.  Immutable."""

    __tablename__ = "inspection_reports"

    __table_args__ = (
        CheckConstraint(
            "recommendation IN ('approve', 'raise_objections')",
            name="ck_inspection_reports_valid_recommendation",
        ),
        UniqueConstraint("inspection_order_id", name="uq_inspection_reports_order"),
    )

    inspection_order_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("inspection_orders.id", ondelete="CASCADE"),
        nullable=False,
    )
    application_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("applications.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    submitted_by: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    submitted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    actual_inspection_date: Mapped[date] = mapped_column(Date, nullable=False)
    room_count_verified: Mapped[bool] = mapped_column(Boolean, nullable=False)
    category_meets_standards: Mapped[bool] = mapped_column(Boolean, nullable=False)
    overall_satisfactory: Mapped[bool] = mapped_column(Boolean, nullable=False)
    recommendation: Mapped[str] = mapped_column(String(20), nullable=False)
    detailed_findings: Mapped[str] = mapped_column(Text, nullable=False)
    remarks: Mapped[str | None] = mapped_column(Text, nullable=True)
    early_inspection_override: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    early_inspection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    def to_dto(self) -> InspectionReportInfo:
        return InspectionReportInfo(
            id=self.id,
            inspection_order_id=self.inspection_order_id,
            application_id=self.application_id,
            submitted_by=self.submitted_by,
            submitted_at=ensure_utc(self.submitted_at),
            actual_inspection_date=self.actual_inspection_date,
            room_count_verified=self.room_count_verified,
            category_meets_standards=self.category_meets_standards,
            overall_satisfactory=self.overall_satisfactory,
            recommendation=Recommendation(self.recommendation),
            detailed_findings=self.detailed_findings,
            remarks=self.remarks,
            early_inspection_override=self.early_inspection_override,
        )
