"""
registry_services.certificate_issuer -- Registration certificates.

Responsibility:
    Writes the certificate when an application is approved, numbering it
    through the SequenceAllocator and freezing the property and owner
    facts as they stood at approval.  Amendments supersede their parent;
    an approved cancellation revokes the parent's registration.

Architecture position:
    Services layer.  The certificate write is a side effect of the
    ``approve`` (or ``verify_legacy``) action, so certificate, status and
    action row commit or roll back together.

Invariants enforced:
    - At most one certificate per application (UNIQUE application_id);
      ``issue`` on an approved application returns the existing one.
    - Certificate numbers are unique (CERTIFICATE_SCOPE serials).
    - Certificates are never mutated; revocation changes the parent
      application's status and expiry only.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Mapping
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from registry_kernel.domain.clock import Clock
from registry_kernel.domain.dtos import CertificateRecord
from registry_kernel.domain.numbering import DefaultNumberFormatter, NumberFormatter
from registry_kernel.domain.policies import CertificatePolicy
from registry_kernel.domain.statuses import AMENDMENT_KINDS, WorkflowAction
from registry_kernel.exceptions import CertificateNotFoundError, PreconditionNotMetError
from registry_kernel.logging_config import get_logger
from registry_kernel.models.application import Application
from registry_kernel.models.certificate import Certificate
from registry_kernel.services.sequence_allocator import CERTIFICATE_SCOPE, SequenceAllocator
from registry_services.workflow_engine import SideEffectContext, WorkflowEngine

logger = get_logger("services.certificates")


def add_years(start: date, years: int) -> date:
    """Same calendar day ``years`` later; 29 February falls back to the 28th."""
    try:
        return start.replace(year=start.year + years)
    except ValueError:
        return start.replace(year=start.year + years, day=28)


def property_snapshot(application: Application) -> dict[str, Any]:
    return {
        "application_number": application.application_number,
        "kind": application.kind,
        "property_name": application.property_name,
        "owner_name": application.owner_name,
        "owner_mobile": application.owner_mobile,
        "address": application.address,
        "district": application.district,
        "tehsil": application.tehsil,
        "category": application.category,
        "total_rooms": application.total_rooms,
        "parent_application_id": (
            str(application.parent_application_id)
            if application.parent_application_id else None
        ),
    }


class CertificateIssuer:
    """Issues, supersedes and revokes registrations.

    Constructing the issuer registers its side effects on ``engine``.
    """

    def __init__(
        self,
        session: Session,
        engine: WorkflowEngine,
        allocator: SequenceAllocator | None = None,
        formatter: NumberFormatter | None = None,
        policy: CertificatePolicy | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.session = session
        self._engine = engine
        self._clock = clock or engine.clock
        self._allocator = allocator or SequenceAllocator(session, clock=self._clock)
        self._formatter = formatter or DefaultNumberFormatter()
        self._policy = policy or CertificatePolicy()
        engine.register_side_effect(
            WorkflowAction.APPROVE, self._write_certificate, "write_certificate",
        )
        engine.register_side_effect(
            WorkflowAction.APPROVE_CANCELLATION, self._revoke_parent, "revoke_parent_certificate",
        )
        engine.register_side_effect(
            WorkflowAction.VERIFY_LEGACY, self._record_legacy_certificate, "record_legacy_certificate",
        )

    def certificate_for(self, application_id: UUID) -> CertificateRecord | None:
        row = self.session.execute(
            select(Certificate).where(Certificate.application_id == application_id)
        ).scalar_one_or_none()
        return row.to_dto() if row is not None else None

    def get_certificate(self, application_id: UUID) -> CertificateRecord:
        record = self.certificate_for(application_id)
        if record is None:
            raise CertificateNotFoundError(str(application_id))
        return record

    def issue(
        self,
        application_id: UUID,
        issued_by: UUID,
        idempotency_key: str | None = None,
        payload: Mapping[str, Any] | None = None,
    ) -> CertificateRecord:
        """
        Approve the application and return its certificate.

        Idempotent: an application that already holds a certificate gets
        it back without a new action.

        Raises:
            The typed error of the failed ``approve`` action, e.g.
            PreconditionNotMetError when payment is not confirmed.
        """
        existing = self.certificate_for(application_id)
        if existing is not None:
            logger.info(
                "certificate_already_issued",
                extra={
                    "application_id": str(application_id),
                    "certificate_number": existing.certificate_number,
                },
            )
            return existing

        self._engine.apply(
            application_id,
            WorkflowAction.APPROVE,
            issued_by,
            payload,
            idempotency_key=idempotency_key,
        ).raise_for_error()
        return self.get_certificate(application_id)

    # ------------------------------------------------------------------
    # Side effects
    # ------------------------------------------------------------------

    def _write_certificate(self, ctx: SideEffectContext) -> None:
        application = ctx.application
        issued_on = self._clock.today()
        valid_upto = add_years(issued_on, self._policy.validity_years)
        snapshot = property_snapshot(application)

        def build_row(serial: int) -> Certificate:
            return Certificate(
                application_id=application.id,
                certificate_number=self._formatter.certificate_number(serial, issued_on.year),
                serial=serial,
                issued_by=ctx.actor_id,
                issued_at=ctx.now,
                valid_from=issued_on,
                valid_upto=valid_upto,
                property_name=application.property_name,
                owner_name=application.owner_name,
                district=application.district,
                category=application.category,
                total_rooms=application.total_rooms,
                snapshot=snapshot,
            )

        certificate = self._allocator.insert_with_serial(CERTIFICATE_SCOPE, build_row)
        application.certificate_number = certificate.certificate_number
        application.certificate_issued_date = issued_on
        application.certificate_expiry_date = valid_upto

        logger.info(
            "certificate_issued",
            extra={
                "certificate_id": str(certificate.id),
                "certificate_number": certificate.certificate_number,
                "valid_upto": valid_upto.isoformat(),
            },
        )

        if application.kind_enum in AMENDMENT_KINDS and application.parent_application_id:
            ctx.engine.apply_as_system(
                application.parent_application_id,
                WorkflowAction.SUPERSEDE,
                {
                    "remarks": f"Superseded by {application.application_number}",
                    "superseded_by": str(application.id),
                },
            ).raise_for_error()

    def _record_legacy_certificate(self, ctx: SideEffectContext) -> None:
        """
        A verified legacy RC gets a registry certificate snapshot, unless the
        row was bulk-imported from the old register: those keep the paper
        certificate and only gain an issue date (and its number, if given).
        """
        application = ctx.application
        if not application.is_legacy_import:
            self._write_certificate(ctx)
            return

        legacy_number = ctx.payload.get("legacy_certificate_number")
        if legacy_number and not application.certificate_number:
            application.certificate_number = str(legacy_number).strip()
        if application.certificate_issued_date is None:
            application.certificate_issued_date = self._clock.today()
        self.session.flush()
        logger.info(
            "legacy_certificate_kept",
            extra={"certificate_number": application.certificate_number},
        )

    def _revoke_parent(self, ctx: SideEffectContext) -> None:
        application = ctx.application
        parent_id = application.parent_application_id
        if parent_id is None:
            raise PreconditionNotMetError(
                str(application.id),
                "parent_application",
                "A cancellation must reference the registration it cancels",
            )

        ctx.engine.apply_as_system(
            parent_id,
            WorkflowAction.REVOKE_CERTIFICATE,
            {
                "remarks": f"Registration cancelled by {application.application_number}",
                "cancelled_by": str(application.id),
            },
        ).raise_for_error()

        parent = self.session.get(Application, parent_id)
        parent.certificate_expiry_date = self._clock.today()
        parent.updated_at = ctx.now
        self.session.flush()
        logger.info(
            "certificate_revoked",
            extra={
                "parent_application_id": str(parent_id),
                "certificate_number": parent.certificate_number,
            },
        )
