"""
Module: registry_kernel.models.application
Responsibility: ORM persistence for the Application entity, the central
    record every other component reads and writes through.

Architecture position: Kernel > Models.  May import from db/base.py and
    domain value objects only.

Invariants enforced:
    - One active application per owner/kind/parent: the
      ``active_slot`` column holds ``owner:kind:parent`` while the
      application is active and NULL once it is closed.  Its UNIQUE
      constraint is the storage-level guard that decides concurrent
      creations; the service-level pre-check only produces the nicer error.
    - Number assigned once, globally unique:
      ``application_number`` and ``application_serial`` are UNIQUE and
      NOT NULL, written on INSERT by the serial allocator.
    - Status only changes via the state machine: CHECK constraint
      limits status values to ``ApplicationStatus``; the store refuses
      content edits that touch workflow-managed columns.
    - Optimistic concurrency: ``version`` is the mapper's
      ``version_id_col``; a stale UPDATE raises StaleDataError.

Failure modes:
    - IntegrityError on duplicate number/serial (allocator retries).
    - IntegrityError on duplicate active_slot (DuplicateActiveDraftError).
    - StaleDataError on concurrent modification (OptimisticLockError).

Audit relevance:
    Every status change of this row has exactly one ApplicationAction row.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any
from uuid import UUID

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from registry_kernel.db.base import TrackedBase, UUIDString
from registry_kernel.domain.clock import ensure_utc
from registry_kernel.domain.dtos import ApplicationInfo
from registry_kernel.domain.statuses import (
    CLOSED_STATUSES,
    ApplicationKind,
    ApplicationStatus,
)


def _in_clause(column: str, values) -> str:
    return f"{column} IN (" + ", ".join(f"'{v.value}'" for v in values) + ")"


def active_slot_for(owner_user_id: UUID, kind: ApplicationKind | str, parent_id: UUID | None) -> str:
    """Active-slot key for (owner, kind, parent)."""
    return f"{owner_user_id}:{ApplicationKind(kind).value}:{parent_id or '-'}"


class Application(TrackedBase):
    """Persistent application record.

    Contract:
        ``status`` is only assigned by the workflow engine (and the store's
        bootstrap write of ``draft``).  ``active_slot`` must be kept in sync
        with the status through ``mark_status()``.

    Guarantees:
        - application_number never changes after INSERT.
        - version increments on every UPDATE.
    """

    __tablename__ = "applications"

    __table_args__ = (
        CheckConstraint(
            _in_clause("status", ApplicationStatus),
            name="ck_applications_valid_status",
        ),
        CheckConstraint(
            _in_clause("kind", ApplicationKind),
            name="ck_applications_valid_kind",
        ),
        UniqueConstraint("application_number", name="uq_applications_application_number"),
        UniqueConstraint("application_serial", name="uq_applications_application_serial"),
        UniqueConstraint("active_slot", name="uq_applications_active_slot"),
        Index("ix_applications_owner_kind_parent", "owner_user_id", "kind", "parent_application_id"),
        Index("ix_applications_district_status", "district", "status"),
    )

    application_number: Mapped[str] = mapped_column(String(40), nullable=False)
    application_serial: Mapped[int] = mapped_column(BigInteger, nullable=False)
    kind: Mapped[str] = mapped_column(String(30), nullable=False)
    status: Mapped[str] = mapped_column(
        String(40), nullable=False, default=ApplicationStatus.DRAFT.value,
    )
    active_slot: Mapped[str | None] = mapped_column(String(120), nullable=True)

    owner_user_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    parent_application_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("applications.id"), nullable=True,
    )
    district: Mapped[str] = mapped_column(String(100), nullable=False)
    tehsil: Mapped[str | None] = mapped_column(String(100), nullable=True)
    current_page: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    # Property and owner facts
    property_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    owner_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    owner_mobile: Mapped[str | None] = mapped_column(String(20), nullable=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[str | None] = mapped_column(String(20), nullable=True)
    total_rooms: Mapped[int | None] = mapped_column(Integer, nullable=True)
    form_data: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    inline_documents: Mapped[list[dict[str, Any]] | None] = mapped_column(JSON, nullable=True)

    # Lifecycle
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Review state
    assigned_dealing_assistant_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    dtdo_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    correction_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    issues_found: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    reverted_from_status: Mapped[str | None] = mapped_column(String(40), nullable=True)
    revert_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    correction_submission_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    inspection_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    # Payment (written by the payment collaborator through the store)
    payment_status: Mapped[str | None] = mapped_column(String(20), nullable=True)
    payment_reference: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # Certificate summary
    certificate_number: Mapped[str | None] = mapped_column(String(40), nullable=True)
    certificate_issued_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    certificate_expiry_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    is_legacy_import: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    @property
    def status_enum(self) -> ApplicationStatus:
        return ApplicationStatus(self.status)

    @property
    def kind_enum(self) -> ApplicationKind:
        return ApplicationKind(self.kind)

    @property
    def is_active(self) -> bool:
        return self.status_enum not in CLOSED_STATUSES

    def mark_status(self, status: ApplicationStatus) -> None:
        """Set status and keep the active slot consistent with it."""
        self.status = status.value
        if status in CLOSED_STATUSES:
            self.active_slot = None
        else:
            self.active_slot = active_slot_for(
                self.owner_user_id, self.kind, self.parent_application_id,
            )

    def to_dto(self) -> ApplicationInfo:
        return ApplicationInfo(
            id=self.id,
            application_number=self.application_number,
            kind=ApplicationKind(self.kind),
            status=ApplicationStatus(self.status),
            owner_user_id=self.owner_user_id,
            district=self.district,
            parent_application_id=self.parent_application_id,
            tehsil=self.tehsil,
            current_page=self.current_page,
            property_name=self.property_name,
            owner_name=self.owner_name,
            category=self.category,
            total_rooms=self.total_rooms,
            submitted_at=ensure_utc(self.submitted_at),
            updated_at=ensure_utc(self.updated_at),
            assigned_dealing_assistant_id=self.assigned_dealing_assistant_id,
            dtdo_id=self.dtdo_id,
            correction_notes=self.correction_notes,
            issues_found=tuple(self.issues_found or ()),
            reverted_from_status=(
                ApplicationStatus(self.reverted_from_status)
                if self.reverted_from_status else None
            ),
            revert_count=self.revert_count,
            correction_submission_count=self.correction_submission_count,
            inspection_date=self.inspection_date,
            payment_status=self.payment_status,
            certificate_number=self.certificate_number,
            certificate_issued_date=self.certificate_issued_date,
            is_legacy_import=self.is_legacy_import,
            version=self.version,
        )

    def __repr__(self) -> str:
        return f"<Application {self.application_number} {self.status}>"
