"""
End-to-end registration scenarios.

Each test walks one application (or a pair) through the public service
calls an API handler would make, then checks status, history and the
rows left behind.
"""

from datetime import date, datetime, timezone
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from registry_kernel.domain.statuses import (
    ActionKind,
    ApplicationKind,
    ApplicationStatus,
    Recommendation,
    WorkflowAction,
)
from registry_kernel.exceptions import DuplicateActiveDraftError
from registry_kernel.models.certificate import Certificate
from registry_kernel.services.sequence_allocator import APPLICATION_SCOPE

S = ApplicationStatus
A = WorkflowAction


class TestCorrectionRoundTrip:

    def test_send_back_and_resubmit_returns_to_scrutiny(self, driver, registry, owner_id, da_id, dispatcher):
        app = driver.create()
        assert app.status is S.DRAFT
        driver.add_documents(app.id)
        driver.apply(app.id, A.SUBMIT, owner_id)
        driver.apply(app.id, A.START_SCRUTINY, da_id)
        assert driver.status(app.id) is S.UNDER_SCRUTINY

        driver.apply(
            app.id, A.SEND_BACK, da_id,
            {"remarks": "Upload a photo of the rooms", "issues_found": ["missing photo"]},
        )
        info = registry.store.get(app.id)
        assert info.status is S.SENT_BACK_FOR_CORRECTIONS
        assert info.issues_found == ("missing photo",)

        driver.apply(app.id, A.RESUBMIT_CORRECTIONS, owner_id, {"remarks": "Photo added"})

        info = registry.store.get(app.id)
        assert info.status is S.UNDER_SCRUTINY
        assert info.issues_found == ()
        assert info.correction_submission_count == 1
        kinds = [h.action_kind for h in registry.action_log.history(app.id)]
        assert kinds[:2] == [ActionKind.CORRECTION_RESUBMITTED, ActionKind.SENT_BACK_FOR_CORRECTIONS]
        assert "sentBackForCorrections" in dispatcher.names()


class TestInspectionObjection:

    def test_objection_copies_findings_to_correction_notes(self, driver, registry, dtdo_id, deterministic_clock):
        app, order = driver.scheduled(inspection_date=date(2025, 12, 30))
        assert driver.status(app.id) is S.INSPECTION_SCHEDULED
        assert order.inspection_date == date(2025, 12, 30)

        deterministic_clock.set_time(datetime(2025, 12, 30, 11, 0, tzinfo=timezone.utc))
        registry.inspections.submit_report(
            order.id,
            driver.report(
                recommendation=Recommendation.RAISE_OBJECTIONS,
                satisfactory=False,
                detailed_findings="Fire safety equipment absent in all rooms",
            ),
            dtdo_id,
        )

        info = registry.store.get(app.id)
        assert info.status is S.OBJECTION_RAISED
        assert info.correction_notes == "Fire safety equipment absent in all rooms"


class TestApprovalAndCertificate:

    def test_verified_application_is_certified_once(self, driver, registry, session, dtdo_id):
        app = driver.inspected()
        assert driver.status(app.id) is S.INSPECTION_COMPLETED
        driver.apply(app.id, A.VERIFY_FOR_PAYMENT, dtdo_id, {"remarks": "Fit for registration"})
        driver.pay(app.id)
        assert driver.status(app.id) is S.VERIFIED_FOR_PAYMENT

        cert = registry.certificates.issue(app.id, dtdo_id)
        again = registry.certificates.issue(app.id, dtdo_id)

        info = registry.store.get(app.id)
        assert info.status is S.APPROVED
        assert info.certificate_issued_date == date(2025, 12, 1)
        assert again.certificate_number == cert.certificate_number
        count = session.execute(
            select(func.count()).select_from(Certificate).where(Certificate.application_id == app.id)
        ).scalar_one()
        assert count == 1

    def test_prepaid_verification_issues_certificate(self, driver, registry, dtdo_id):
        app = driver.inspected()
        driver.pay(app.id)

        driver.apply(app.id, A.VERIFY_FOR_PAYMENT, dtdo_id, {"remarks": "Fit for registration"})

        assert driver.status(app.id) is S.APPROVED
        cert = registry.certificates.issue(app.id, dtdo_id)
        assert cert.application_id == app.id


class TestServiceRequestConflict:

    def test_second_add_rooms_request_gets_conflict_payload(self, driver, owner_id):
        parent = driver.approved()
        first = driver.create(kind=ApplicationKind.ADD_ROOMS, parent_id=parent.id, total_rooms=6)

        with pytest.raises(DuplicateActiveDraftError) as exc_info:
            driver.create(kind=ApplicationKind.ADD_ROOMS, parent_id=parent.id, total_rooms=7)

        assert exc_info.value.conflict_payload() == {
            "existingApplicationId": str(first.id),
            "kind": "add_rooms",
            "status": "draft",
        }


class TestSeedOverride:

    def test_first_serial_follows_seed(self, driver, registry):
        registry.settings.set_serial_seed(APPLICATION_SCOPE, 500, uuid4())

        app = driver.create(district="Kullu")

        assert app.application_number == "HP-HS-2025-KLU-000500"
        assert driver.create(kind=ApplicationKind.LEGACY_RC).application_number.endswith("000501")
