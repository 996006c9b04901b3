"""
ApplicationStore -- persistence of application records outside the workflow.

Responsibility:
    Creates applications (number allocation, one-active-application rule,
    parent checks), edits draft content, deletes drafts and records
    payment state reported by the payment collaborator.  Status changes
    after creation belong to the workflow engine; the store never writes
    ``status`` except the initial ``draft``.

Architecture position:
    Kernel > Services.  Uses SequenceAllocator (APPLICATION_SCOPE) and
    ActionLog.

Invariants enforced:
    - One active application per (owner, kind, parent): a pre-check gives
      the friendly error; the UNIQUE ``active_slot`` column decides races.
    - Application numbers are assigned once, inside the INSERT.
    - Workflow-managed columns are never written through ``update_draft``.
    - Service-request kinds need an approved parent owned by the same user.

Failure modes:
    - DuplicateActiveDraftError (409) with the resume-or-discard payload.
    - PreconditionNotMetError for a missing or unsuitable parent.
    - ProtectedFieldError / ActionNotAllowedError / UnauthorizedActorError
      on illegal edits.
    - OptimisticLockError when a concurrent writer got there first.

Audit relevance:
    Creation appends the ``created`` action; deletion and payment updates
    are logged.
"""

from typing import Any, Mapping
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from registry_kernel.domain.clock import Clock
from registry_kernel.domain.dtos import ApplicationInfo
from registry_kernel.domain.numbering import DefaultNumberFormatter, NumberFormatter
from registry_kernel.domain.policies import DraftPolicy
from registry_kernel.domain.statuses import (
    EDITABLE_STATUSES,
    PARENT_REQUIRED_KINDS,
    ActionKind,
    ApplicationKind,
    ApplicationStatus,
    PaymentStatus,
)
from registry_kernel.exceptions import (
    ActionNotAllowedError,
    ApplicationNotFoundError,
    DuplicateActiveDraftError,
    OptimisticLockError,
    PreconditionNotMetError,
    ProtectedFieldError,
    UnauthorizedActorError,
)
from registry_kernel.logging_config import get_logger
from registry_kernel.models.application import Application, active_slot_for
from registry_kernel.models.application_action import ApplicationAction
from registry_kernel.models.document import Document
from registry_kernel.services.action_log import ActionLog
from registry_kernel.services.base import BaseService
from registry_kernel.services.sequence_allocator import APPLICATION_SCOPE, SequenceAllocator

logger = get_logger("services.application_store")

CREATE_COMMAND = "create"

# Owner-editable content.  Everything else on the row is managed by the
# workflow, the allocator or a collaborator.
EDITABLE_FIELDS = frozenset({
    "tehsil",
    "property_name",
    "owner_name",
    "owner_mobile",
    "address",
    "category",
    "total_rooms",
    "form_data",
    "inline_documents",
})

# Facts a service request inherits from its approved parent.
INHERITED_FIELDS = (
    "property_name",
    "owner_name",
    "owner_mobile",
    "address",
    "category",
    "total_rooms",
    "tehsil",
)


class ApplicationStore(BaseService[Application]):
    """
    Create, read and edit application records.

    Contract:
        Returns ``ApplicationInfo`` DTOs from public reads and writes.
        ``get_for_update`` is the one method returning the ORM row; it is
        for the workflow engine and its subsystems.

    Non-goals:
        - Does NOT change status after creation.
        - Does NOT commit.
    """

    def __init__(
        self,
        session: Session,
        allocator: SequenceAllocator | None = None,
        action_log: ActionLog | None = None,
        formatter: NumberFormatter | None = None,
        draft_policy: DraftPolicy | None = None,
        clock: Clock | None = None,
    ):
        super().__init__(session, clock)
        self._allocator = allocator or SequenceAllocator(session, clock=clock)
        self._action_log = action_log or ActionLog(session, clock)
        self._formatter = formatter or DefaultNumberFormatter()
        self._draft_policy = draft_policy or DraftPolicy()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, application_id: UUID) -> ApplicationInfo:
        row = self.session.get(Application, application_id)
        if row is None:
            raise ApplicationNotFoundError(str(application_id))
        return row.to_dto()

    def get_for_update(self, application_id: UUID) -> Application:
        """Load the row with ``SELECT ... FOR UPDATE`` and fresh attribute values."""
        row = self.session.execute(
            select(Application)
            .where(Application.id == application_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if row is None:
            raise ApplicationNotFoundError(str(application_id))
        return row

    def find_active(
        self, owner_user_id: UUID, kind: ApplicationKind, parent_id: UUID | None
    ) -> Application | None:
        return self.session.execute(
            select(Application).where(
                Application.active_slot == active_slot_for(owner_user_id, kind, parent_id)
            )
        ).scalar_one_or_none()

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_application(
        self,
        owner_user_id: UUID,
        kind: ApplicationKind | str,
        district: str,
        *,
        parent_id: UUID | None = None,
        tehsil: str | None = None,
        property_name: str | None = None,
        owner_name: str | None = None,
        owner_mobile: str | None = None,
        address: str | None = None,
        category: str | None = None,
        total_rooms: int | None = None,
        form_data: Mapping[str, Any] | None = None,
        inline_documents: list[dict[str, Any]] | None = None,
        is_legacy_import: bool = False,
    ) -> ApplicationInfo:
        """
        Create a draft with a freshly allocated application number.

        Preconditions:
            - Service-request kinds name an approved parent owned by
              ``owner_user_id``; other kinds name none.
            - No active application occupies (owner, kind, parent).

        Postconditions:
            - The row exists in ``draft`` with a unique number and its
              ``created`` action row.

        Raises:
            DuplicateActiveDraftError, PreconditionNotMetError,
            ApplicationNotFoundError (unknown parent),
            AllocationExhaustedError.
        """
        kind = ApplicationKind(kind)
        facts: dict[str, Any] = {
            "tehsil": tehsil,
            "property_name": property_name,
            "owner_name": owner_name,
            "owner_mobile": owner_mobile,
            "address": address,
            "category": category,
            "total_rooms": total_rooms,
        }

        if kind in PARENT_REQUIRED_KINDS:
            parent = self._require_parent(owner_user_id, kind, parent_id)
            for name in INHERITED_FIELDS:
                if facts[name] is None:
                    facts[name] = getattr(parent, name)
        elif parent_id is not None:
            raise PreconditionNotMetError(
                str(parent_id),
                "parent_application",
                f"{kind.value} applications do not take a parent application",
            )

        existing = self.find_active(owner_user_id, kind, parent_id)
        if existing is not None:
            self._log_duplicate(existing, owner_user_id)
            raise DuplicateActiveDraftError(
                str(existing.id), existing.kind, existing.status,
            )

        if parent_id is not None and self._draft_policy.single_open_service_request:
            other = self.session.execute(
                select(Application).where(
                    Application.parent_application_id == parent_id,
                    Application.active_slot.is_not(None),
                )
            ).scalars().first()
            if other is not None:
                self._log_duplicate(other, owner_user_id)
                raise DuplicateActiveDraftError(str(other.id), other.kind, other.status)

        now = self._clock.now()
        year = self._clock.today().year
        slot = active_slot_for(owner_user_id, kind, parent_id)

        def build_row(serial: int) -> Application:
            return Application(
                application_number=self._formatter.application_number(
                    serial, kind, district, year,
                ),
                application_serial=serial,
                kind=kind.value,
                status=ApplicationStatus.DRAFT.value,
                active_slot=slot,
                owner_user_id=owner_user_id,
                parent_application_id=parent_id,
                district=district,
                form_data=dict(form_data or {}),
                inline_documents=list(inline_documents) if inline_documents is not None else None,
                is_legacy_import=is_legacy_import,
                created_at=now,
                updated_at=now,
                created_by_id=owner_user_id,
                **facts,
            )

        try:
            row = self._allocator.insert_with_serial(APPLICATION_SCOPE, build_row)
        except IntegrityError as exc:
            if "active_slot" not in str(exc.orig):
                raise
            winner = self.find_active(owner_user_id, kind, parent_id)
            if winner is None:
                raise
            self._log_duplicate(winner, owner_user_id)
            raise DuplicateActiveDraftError(
                str(winner.id), winner.kind, winner.status,
            ) from exc

        self._action_log.append(
            application_id=row.id,
            actor_id=owner_user_id,
            command=CREATE_COMMAND,
            action_kind=ActionKind.CREATED,
            previous_status=None,
            new_status=ApplicationStatus.DRAFT,
            details={"application_number": row.application_number},
            created_at=now,
        )

        logger.info(
            "application_created",
            extra={
                "application_id": str(row.id),
                "application_number": row.application_number,
                "kind": kind.value,
                "district": district,
                "parent_application_id": str(parent_id) if parent_id else None,
            },
        )
        return row.to_dto()

    def _require_parent(
        self, owner_user_id: UUID, kind: ApplicationKind, parent_id: UUID | None
    ) -> Application:
        if parent_id is None:
            raise PreconditionNotMetError(
                "-",
                "parent_application",
                f"{kind.value} applications must reference an approved application",
            )
        parent = self.session.get(Application, parent_id)
        if parent is None:
            raise ApplicationNotFoundError(str(parent_id))
        if parent.owner_user_id != owner_user_id:
            raise PreconditionNotMetError(
                str(parent_id),
                "parent_application",
                "Parent application belongs to a different owner",
            )
        if parent.status_enum is not ApplicationStatus.APPROVED:
            raise PreconditionNotMetError(
                str(parent_id),
                "parent_application",
                f"Parent application is '{parent.status}', not approved",
            )
        return parent

    def _log_duplicate(self, existing: Application, owner_user_id: UUID) -> None:
        logger.info(
            "duplicate_active_application_blocked",
            extra={
                "existing_application_id": str(existing.id),
                "kind": existing.kind,
                "status": existing.status,
                "owner_user_id": str(owner_user_id),
            },
        )

    # ------------------------------------------------------------------
    # Draft content
    # ------------------------------------------------------------------

    def update_draft(
        self,
        application_id: UUID,
        actor_id: UUID,
        changes: Mapping[str, Any],
        current_page: int | None = None,
    ) -> ApplicationInfo:
        """
        Apply owner edits to a draft or to an application in correction.

        Raises:
            UnauthorizedActorError: actor is not the owner.
            ActionNotAllowedError: content is locked in the current status.
            ProtectedFieldError: ``changes`` names a non-editable field.
        """
        row = self.get_for_update(application_id)
        self._require_owner(row, actor_id, "update_draft")
        if row.status_enum not in EDITABLE_STATUSES:
            raise ActionNotAllowedError(
                str(row.id), row.status, "update_draft",
                "Application content is locked while under review",
            )

        protected = [name for name in changes if name not in EDITABLE_FIELDS]
        if protected:
            logger.warning(
                "protected_field_write_blocked",
                extra={"application_id": str(row.id), "fields": sorted(protected)},
            )
            raise ProtectedFieldError(str(row.id), row.status, protected)

        for name, value in changes.items():
            setattr(row, name, value)
        if current_page is not None:
            row.current_page = current_page
        row.updated_at = self._clock.now()
        row.updated_by_id = actor_id
        self._flush(row)

        logger.info(
            "draft_updated",
            extra={
                "application_id": str(row.id),
                "fields": sorted(changes),
                "current_page": row.current_page,
            },
        )
        return row.to_dto()

    def delete_draft(self, application_id: UUID, actor_id: UUID) -> None:
        """Owner discards a draft; its actions and documents go with it."""
        row = self.get_for_update(application_id)
        self._require_owner(row, actor_id, "delete_draft")
        if row.status_enum is not ApplicationStatus.DRAFT:
            raise ActionNotAllowedError(
                str(row.id), row.status, "delete_draft",
                "Only drafts can be deleted",
            )
        number = row.application_number
        self.remove_draft_rows(row)
        logger.info(
            "draft_deleted",
            extra={
                "application_id": str(application_id),
                "application_number": number,
                "deleted_by": str(actor_id),
            },
        )

    def remove_draft_rows(self, row: Application) -> None:
        """
        Delete a draft and its dependent rows.

        The action rows are removed with a bulk DELETE so the append-only
        listeners (which guard ORM deletes) are not involved.
        """
        self.session.execute(
            delete(ApplicationAction)
            .where(ApplicationAction.application_id == row.id)
            .execution_options(synchronize_session="fetch")
        )
        self.session.execute(
            delete(Document)
            .where(Document.application_id == row.id)
            .execution_options(synchronize_session="fetch")
        )
        self.session.delete(row)
        self._flush(row)

    # ------------------------------------------------------------------
    # Payment
    # ------------------------------------------------------------------

    def record_payment(
        self,
        application_id: UUID,
        status: PaymentStatus | str,
        reference: str | None = None,
    ) -> ApplicationInfo:
        """Record what the payment gateway reported.  Never touches status."""
        row = self.get_for_update(application_id)
        row.payment_status = PaymentStatus(status).value
        if reference is not None:
            row.payment_reference = reference
        row.updated_at = self._clock.now()
        self._flush(row)
        logger.info(
            "payment_recorded",
            extra={
                "application_id": str(row.id),
                "payment_status": row.payment_status,
                "payment_reference": row.payment_reference,
            },
        )
        return row.to_dto()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require_owner(self, row: Application, actor_id: UUID, operation: str) -> None:
        if row.owner_user_id != actor_id:
            raise UnauthorizedActorError(
                str(row.id), row.status, operation, str(actor_id),
                "Only the property owner may do this",
            )

    def _flush(self, row: Application) -> None:
        try:
            self.session.flush()
        except StaleDataError as exc:
            raise OptimisticLockError("Application", str(row.id)) from exc
