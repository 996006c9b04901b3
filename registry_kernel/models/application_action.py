"""
Module: registry_kernel.models.application_action
Responsibility: ORM persistence for the append-only action log.

Architecture position: Kernel > Models.  May import from db/base.py and
    domain value objects only.

Invariants enforced:
    - Append-only: ORM listeners (db/immutability.py) reject UPDATE and
      DELETE.  Rows disappear only with their parent draft (bulk delete in
      ApplicationStore.delete_draft, FK ON DELETE CASCADE).
    - Ordering: ``entry_no`` is strictly increasing per application; it is
      allocated while the application row is locked.
    - Idempotency: UNIQUE(application_id, command, idempotency_key).

Audit relevance:
    The history an officer sees is exactly these rows, newest first.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import (
    JSON,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from registry_kernel.db.base import Base, UUIDString
from registry_kernel.domain.clock import ensure_utc
from registry_kernel.domain.dtos import ActionRecord
from registry_kernel.domain.statuses import ActionKind, ApplicationStatus


class ApplicationAction(Base):
    """One lifecycle event of an application."""

    __tablename__ = "application_actions"

    __table_args__ = (
        UniqueConstraint("application_id", "entry_no", name="uq_application_actions_entry"),
        UniqueConstraint(
            "application_id", "command", "idempotency_key",
            name="uq_application_actions_idempotency",
        ),
    )

    application_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("applications.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    entry_no: Mapped[int] = mapped_column(Integer, nullable=False)
    actor_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    command: Mapped[str] = mapped_column(String(40), nullable=False)
    action_kind: Mapped[str] = mapped_column(String(40), nullable=False)
    previous_status: Mapped[str | None] = mapped_column(String(40), nullable=True)
    new_status: Mapped[str] = mapped_column(String(40), nullable=False)
    feedback: Mapped[str | None] = mapped_column(Text, nullable=True)
    issues_found: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    details: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    idempotency_key: Mapped[str | None] = mapped_column(String(120), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def to_dto(self) -> ActionRecord:
        return ActionRecord(
            id=self.id,
            application_id=self.application_id,
            entry_no=self.entry_no,
            actor_id=self.actor_id,
            command=self.command,
            action_kind=ActionKind(self.action_kind),
            previous_status=(
                ApplicationStatus(self.previous_status) if self.previous_status else None
            ),
            new_status=ApplicationStatus(self.new_status),
            feedback=self.feedback,
            issues_found=tuple(self.issues_found or ()),
            details=dict(self.details or {}),
            created_at=ensure_utc(self.created_at),
            idempotency_key=self.idempotency_key,
        )

    def __repr__(self) -> str:
        return f"<ApplicationAction #{self.entry_no} {self.action_kind}>"
