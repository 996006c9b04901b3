"""
Tests for the legacy RC verification path: an officer confirms an existing
registration certificate and the application is approved without an
inspection or payment.
"""

from datetime import date

import pytest

from registry_kernel.domain.statuses import (
    ActionKind,
    ApplicationKind,
    ApplicationStatus,
    WorkflowAction,
)
from registry_kernel.exceptions import (
    ActionNotAllowedError,
    CertificateNotFoundError,
    PreconditionNotMetError,
    UnauthorizedActorError,
)

S = ApplicationStatus
A = WorkflowAction
LEGACY = ApplicationKind.LEGACY_RC

REMARKS = {"remarks": "Old RC checked against the district register"}


class TestVerifyLegacy:

    def test_assistant_approves_straight_from_submitted(self, driver, registry, da_id, dispatcher):
        app = driver.submitted(kind=LEGACY)

        result = registry.engine.apply(app.id, A.VERIFY_LEGACY, da_id, REMARKS)

        assert result.success
        assert result.new_status is S.APPROVED
        entry = registry.action_log.latest(app.id)
        assert entry.action_kind is ActionKind.LEGACY_RC_VERIFIED
        assert entry.previous_status is S.SUBMITTED
        assert entry.feedback == REMARKS["remarks"]
        assert dispatcher.names()[-1] == "approved"

    def test_no_inspection_or_payment_needed(self, driver, registry, da_id):
        app = driver.submitted(kind=LEGACY)

        driver.apply(app.id, A.VERIFY_LEGACY, da_id, REMARKS)

        assert registry.inspections.orders_for(app.id) == []
        info = registry.store.get(app.id)
        assert info.status is S.APPROVED
        assert info.payment_status != "paid"

    def test_dtdo_verifies_forwarded_application(self, driver, registry, da_id, dtdo_id):
        app = driver.forwarded(kind=LEGACY)

        driver.apply(app.id, A.VERIFY_LEGACY, dtdo_id, REMARKS)

        info = registry.store.get(app.id)
        assert info.status is S.APPROVED
        assert info.dtdo_id == dtdo_id
        assert info.assigned_dealing_assistant_id == da_id

    def test_assistant_is_recorded_as_dealing_assistant(self, driver, registry, da_id):
        app = driver.submitted(kind=LEGACY)

        driver.apply(app.id, A.VERIFY_LEGACY, da_id, REMARKS)

        info = registry.store.get(app.id)
        assert info.assigned_dealing_assistant_id == da_id
        assert info.dtdo_id is None

    def test_remarks_are_required(self, driver, registry, da_id):
        app = driver.under_scrutiny(kind=LEGACY)

        result = registry.engine.apply(app.id, A.VERIFY_LEGACY, da_id, {"remarks": "  "})

        assert not result.success
        assert isinstance(result.error, PreconditionNotMetError)
        assert result.error.precondition == "remarks_provided"
        assert driver.status(app.id) is S.UNDER_SCRUTINY

    def test_new_registration_cannot_skip_inspection(self, driver, registry, da_id):
        app = driver.submitted()

        result = registry.engine.apply(app.id, A.VERIFY_LEGACY, da_id, REMARKS)

        assert isinstance(result.error, ActionNotAllowedError)
        assert driver.status(app.id) is S.SUBMITTED

    def test_owner_cannot_verify(self, driver, registry, owner_id):
        app = driver.submitted(kind=LEGACY)

        result = registry.engine.apply(app.id, A.VERIFY_LEGACY, owner_id, REMARKS)

        assert isinstance(result.error, UnauthorizedActorError)
        assert driver.status(app.id) is S.SUBMITTED

    def test_not_offered_from_draft(self, driver, registry, da_id):
        app = driver.create(kind=LEGACY)

        result = registry.engine.apply(app.id, A.VERIFY_LEGACY, da_id, REMARKS)

        assert isinstance(result.error, ActionNotAllowedError)
        assert driver.status(app.id) is S.DRAFT

    def test_verification_after_correction_loop(self, driver, registry, owner_id, da_id):
        app = driver.submitted(kind=LEGACY)
        driver.apply(app.id, A.SEND_BACK, da_id, {"remarks": "Upload the old RC scan"})
        driver.apply(app.id, A.RESUBMIT_CORRECTIONS, owner_id)
        assert driver.status(app.id) is S.SUBMITTED

        driver.apply(app.id, A.VERIFY_LEGACY, da_id, REMARKS)

        info = registry.store.get(app.id)
        assert info.status is S.APPROVED
        assert info.revert_count == 1


class TestLegacyCertificate:

    def test_registry_certificate_is_written(self, driver, registry, da_id):
        app = driver.submitted(kind=LEGACY)

        driver.apply(app.id, A.VERIFY_LEGACY, da_id, REMARKS)

        cert = registry.certificates.get_certificate(app.id)
        assert cert.certificate_number == "HP-HST-2025-000001"
        assert cert.valid_from == date(2025, 12, 1)
        assert cert.issued_by == da_id
        assert registry.store.get(app.id).certificate_number == cert.certificate_number

    def test_imported_row_keeps_paper_certificate(self, driver, registry, da_id, captured_logs):
        app = driver.submitted(kind=LEGACY, is_legacy_import=True)
        assert app.is_legacy_import

        driver.apply(
            app.id, A.VERIFY_LEGACY, da_id,
            {**REMARKS, "legacy_certificate_number": " SML/HS/2011/042 "},
        )

        with pytest.raises(CertificateNotFoundError):
            registry.certificates.get_certificate(app.id)
        info = registry.store.get(app.id)
        assert info.certificate_number == "SML/HS/2011/042"
        assert info.certificate_issued_date == date(2025, 12, 1)
        assert any(r["message"] == "legacy_certificate_kept" for r in captured_logs())

    def test_imported_row_without_number(self, driver, registry, da_id):
        app = driver.submitted(kind=LEGACY, is_legacy_import=True)

        driver.apply(app.id, A.VERIFY_LEGACY, da_id, REMARKS)

        info = registry.store.get(app.id)
        assert info.certificate_number is None
        assert info.certificate_issued_date == date(2025, 12, 1)
        assert registry.certificates.certificate_for(app.id) is None
