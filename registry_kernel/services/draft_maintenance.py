"""
DraftMaintenanceService -- audited operator cleanup of abandoned drafts.

Drafts are kept indefinitely.  An operator may purge drafts nobody has
touched for a given number of days; each purge leaves one immutable
``DraftPurgeRecord`` since the draft and its history are deleted.
``dry_run`` (the default) only reports what would go.
"""

from dataclasses import dataclass
from datetime import timedelta
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from registry_kernel.domain.clock import Clock
from registry_kernel.domain.dtos import ApplicationInfo
from registry_kernel.domain.policies import DraftPolicy
from registry_kernel.domain.statuses import ApplicationStatus
from registry_kernel.logging_config import get_logger
from registry_kernel.models.application import Application
from registry_kernel.models.draft_purge import DraftPurgeRecord
from registry_kernel.services.application_store import ApplicationStore
from registry_kernel.services.base import BaseService

logger = get_logger("services.draft_maintenance")


@dataclass(frozen=True)
class DraftPurgeReport:
    dry_run: bool
    older_than_days: int
    candidates: tuple[ApplicationInfo, ...]
    purged: int


class DraftMaintenanceService(BaseService[DraftPurgeRecord]):

    def __init__(
        self,
        session: Session,
        store: ApplicationStore | None = None,
        policy: DraftPolicy | None = None,
        clock: Clock | None = None,
    ):
        super().__init__(session, clock)
        self._store = store or ApplicationStore(session, clock=clock)
        self._policy = policy or DraftPolicy()

    def purge_abandoned_drafts(
        self,
        operator_id: UUID,
        older_than_days: int | None = None,
        dry_run: bool = True,
    ) -> DraftPurgeReport:
        """
        Delete drafts whose ``updated_at`` is older than the threshold.

        Args:
            operator_id: Who ordered the purge; recorded on each record.
            older_than_days: Age threshold; defaults to the configured
                ``abandoned_after_days``.
            dry_run: Report candidates without deleting anything.
        """
        days = older_than_days if older_than_days is not None else self._policy.abandoned_after_days
        if days < 1:
            raise ValueError(f"older_than_days must be >= 1, got {days}")

        now = self._clock.now()
        cutoff = now - timedelta(days=days)
        rows = list(self.session.execute(
            select(Application)
            .where(
                Application.status == ApplicationStatus.DRAFT.value,
                Application.updated_at < cutoff,
            )
            .order_by(Application.updated_at)
            .with_for_update()
        ).scalars())
        candidates = tuple(row.to_dto() for row in rows)

        if dry_run:
            logger.info(
                "draft_purge_dry_run",
                extra={"older_than_days": days, "candidate_count": len(candidates)},
            )
            return DraftPurgeReport(True, days, candidates, 0)

        for row in rows:
            self.session.add(DraftPurgeRecord(
                application_id=row.id,
                application_number=row.application_number,
                owner_user_id=row.owner_user_id,
                kind=row.kind,
                draft_created_at=row.created_at,
                draft_updated_at=row.updated_at,
                purged_by=operator_id,
                purged_at=now,
                reason=f"Draft untouched for more than {days} days",
            ))
            self._store.remove_draft_rows(row)

        self.session.flush()
        logger.warning(
            "drafts_purged",
            extra={
                "older_than_days": days,
                "purged_count": len(rows),
                "operator_id": str(operator_id),
            },
        )
        return DraftPurgeReport(False, days, candidates, len(rows))
