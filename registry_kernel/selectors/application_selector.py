"""
ApplicationSelector -- read-only application queries.

Owner dashboards, officer queues and the draft retention report read
through here.  Every method returns ``ApplicationInfo`` DTOs.
"""

from datetime import datetime
from typing import Iterable
from uuid import UUID

from sqlalchemy import select

from registry_kernel.domain.dtos import ApplicationInfo
from registry_kernel.domain.statuses import ApplicationKind, ApplicationStatus
from registry_kernel.models.application import Application, active_slot_for
from registry_kernel.selectors.base import BaseSelector


class ApplicationSelector(BaseSelector[Application]):

    def get(self, application_id: UUID) -> ApplicationInfo | None:
        row = self.session.get(Application, application_id)
        return row.to_dto() if row is not None else None

    def get_by_number(self, application_number: str) -> ApplicationInfo | None:
        row = self.session.execute(
            select(Application).where(Application.application_number == application_number)
        ).scalar_one_or_none()
        return row.to_dto() if row is not None else None

    def find_active(
        self,
        owner_user_id: UUID,
        kind: ApplicationKind,
        parent_id: UUID | None = None,
    ) -> ApplicationInfo | None:
        """The active application occupying (owner, kind, parent), if any."""
        row = self.session.execute(
            select(Application).where(
                Application.active_slot == active_slot_for(owner_user_id, kind, parent_id)
            )
        ).scalar_one_or_none()
        return row.to_dto() if row is not None else None

    def open_children(self, parent_id: UUID) -> list[ApplicationInfo]:
        """Active service requests filed against ``parent_id``."""
        rows = self.session.execute(
            select(Application)
            .where(
                Application.parent_application_id == parent_id,
                Application.active_slot.is_not(None),
            )
            .order_by(Application.created_at)
        ).scalars().all()
        return [row.to_dto() for row in rows]

    def list_for_owner(self, owner_user_id: UUID) -> list[ApplicationInfo]:
        rows = self.session.execute(
            select(Application)
            .where(Application.owner_user_id == owner_user_id)
            .order_by(Application.created_at.desc())
        ).scalars().all()
        return [row.to_dto() for row in rows]

    def queue(
        self,
        district: str,
        statuses: Iterable[ApplicationStatus],
    ) -> list[ApplicationInfo]:
        """Officer work queue: applications in ``district`` with one of ``statuses``, oldest first."""
        values = [ApplicationStatus(s).value for s in statuses]
        rows = self.session.execute(
            select(Application)
            .where(Application.district == district, Application.status.in_(values))
            .order_by(Application.submitted_at, Application.created_at)
        ).scalars().all()
        return [row.to_dto() for row in rows]

    def drafts_untouched_since(self, cutoff: datetime) -> list[ApplicationInfo]:
        rows = self.session.execute(
            select(Application)
            .where(
                Application.status == ApplicationStatus.DRAFT.value,
                Application.updated_at < cutoff,
            )
            .order_by(Application.updated_at)
        ).scalars().all()
        return [row.to_dto() for row in rows]
