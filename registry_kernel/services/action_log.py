"""
ActionLog -- append-only history of application lifecycle events.

Responsibility:
    Writes one ``ApplicationAction`` row per applied workflow action and
    answers history queries.  Only the workflow engine and its subsystems
    append; nothing ever updates a row (db/immutability.py).

Invariants enforced:
    - Every appended row references an existing application.
    - ``entry_no`` is strictly increasing per application.  Callers append
      while holding the application's row lock, so max+1 is safe here;
      the UNIQUE(application_id, entry_no) constraint backs it.
    - History is returned newest first (``entry_no`` descending).

Failure modes:
    - ApplicationNotFoundError when appending for an unknown id.
"""

from datetime import datetime
from typing import Any, Mapping, Sequence
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from registry_kernel.domain.clock import Clock
from registry_kernel.domain.dtos import ActionRecord
from registry_kernel.domain.statuses import ActionKind, ApplicationStatus
from registry_kernel.exceptions import ApplicationNotFoundError
from registry_kernel.logging_config import get_logger
from registry_kernel.models.application import Application
from registry_kernel.models.application_action import ApplicationAction
from registry_kernel.services.base import BaseService

logger = get_logger("services.action_log")


class ActionLog(BaseService[ApplicationAction]):
    """Append and read the per-application action history."""

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session, clock)

    def append(
        self,
        application_id: UUID,
        actor_id: UUID,
        command: str,
        action_kind: ActionKind,
        previous_status: ApplicationStatus | None,
        new_status: ApplicationStatus,
        feedback: str | None = None,
        issues_found: Sequence[str] | None = None,
        details: Mapping[str, Any] | None = None,
        idempotency_key: str | None = None,
        created_at: datetime | None = None,
    ) -> ActionRecord:
        """
        Append one entry.

        Preconditions: the application exists and the caller holds its
            row lock (or is creating it in the same transaction).
        Postconditions: the entry is flushed; ``entry_no`` is one more
            than the previous entry for the application.
        """
        exists = self.session.execute(
            select(Application.id).where(Application.id == application_id)
        ).scalar_one_or_none()
        if exists is None:
            raise ApplicationNotFoundError(str(application_id))

        last_entry = self.session.execute(
            select(func.max(ApplicationAction.entry_no))
            .where(ApplicationAction.application_id == application_id)
        ).scalar()

        row = ApplicationAction(
            application_id=application_id,
            entry_no=(last_entry or 0) + 1,
            actor_id=actor_id,
            command=str(getattr(command, "value", command)),
            action_kind=ActionKind(action_kind).value,
            previous_status=(
                ApplicationStatus(previous_status).value if previous_status else None
            ),
            new_status=ApplicationStatus(new_status).value,
            feedback=feedback,
            issues_found=list(issues_found or []),
            details=dict(details or {}),
            idempotency_key=idempotency_key,
            created_at=created_at or self._clock.now(),
        )
        self.session.add(row)
        self.session.flush()

        logger.debug(
            "action_appended",
            extra={
                "application_id": str(application_id),
                "entry_no": row.entry_no,
                "action_kind": row.action_kind,
                "new_status": row.new_status,
            },
        )
        return row.to_dto()

    def find_by_idempotency_key(
        self, application_id: UUID, command: str, idempotency_key: str
    ) -> ActionRecord | None:
        row = self.session.execute(
            select(ApplicationAction).where(
                ApplicationAction.application_id == application_id,
                ApplicationAction.command == str(getattr(command, "value", command)),
                ApplicationAction.idempotency_key == idempotency_key,
            )
        ).scalar_one_or_none()
        return row.to_dto() if row is not None else None

    def history(self, application_id: UUID) -> list[ActionRecord]:
        """All entries for the application, newest first."""
        rows = self.session.execute(
            select(ApplicationAction)
            .where(ApplicationAction.application_id == application_id)
            .order_by(ApplicationAction.entry_no.desc())
        ).scalars().all()
        return [row.to_dto() for row in rows]

    def latest(
        self, application_id: UUID, action_kind: ActionKind | None = None
    ) -> ActionRecord | None:
        query = select(ApplicationAction).where(
            ApplicationAction.application_id == application_id
        )
        if action_kind is not None:
            query = query.where(ApplicationAction.action_kind == ActionKind(action_kind).value)
        row = self.session.execute(
            query.order_by(ApplicationAction.entry_no.desc()).limit(1)
        ).scalar_one_or_none()
        return row.to_dto() if row is not None else None

    def count(self, application_id: UUID) -> int:
        return self.session.execute(
            select(func.count(ApplicationAction.id))
            .where(ApplicationAction.application_id == application_id)
        ).scalar_one()
