"""
Append-only persistence tests.

Verifies:
- Action log rows cannot be updated or deleted
- Certificates and inspection reports are final once written
- Application identity fields are fixed after INSERT
- The active slot follows the status
"""

import pytest
from sqlalchemy import select

from registry_kernel.db.immutability import (
    register_immutability_listeners,
    unregister_immutability_listeners,
)
from registry_kernel.domain.statuses import ApplicationStatus
from registry_kernel.exceptions import ImmutabilityViolationError
from registry_kernel.models.application import Application, active_slot_for
from registry_kernel.models.application_action import ApplicationAction
from registry_kernel.models.certificate import Certificate
from registry_kernel.models.inspection import InspectionReport


def _first_action(session, application_id) -> ApplicationAction:
    return session.execute(
        select(ApplicationAction)
        .where(ApplicationAction.application_id == application_id)
        .order_by(ApplicationAction.entry_no)
        .limit(1)
    ).scalar_one()


class TestActionLogImmutability:

    def test_update_blocked(self, driver, session):
        app = driver.submitted()
        row = _first_action(session, app.id)

        with pytest.raises(ImmutabilityViolationError) as exc_info:
            with session.begin_nested():
                row.feedback = "rewritten"
                session.flush()

        assert exc_info.value.entity_type == "ApplicationAction"

    def test_delete_blocked(self, driver, session):
        app = driver.submitted()
        row = _first_action(session, app.id)

        with pytest.raises(ImmutabilityViolationError):
            with session.begin_nested():
                session.delete(row)
                session.flush()

    def test_listeners_can_be_lifted_for_repair(self, driver, session):
        app = driver.submitted()
        row = _first_action(session, app.id)

        unregister_immutability_listeners()
        try:
            with session.begin_nested():
                row.feedback = "repaired"
                session.flush()
        finally:
            register_immutability_listeners()

        assert _first_action(session, app.id).feedback == "repaired"


class TestIssuedRecords:

    def test_certificate_update_blocked(self, driver, session):
        app = driver.approved()
        cert = session.execute(
            select(Certificate).where(Certificate.application_id == app.id)
        ).scalar_one()

        with pytest.raises(ImmutabilityViolationError) as exc_info:
            with session.begin_nested():
                cert.total_rooms = 12
                session.flush()

        assert exc_info.value.entity_type == "Certificate"

    def test_report_update_blocked(self, driver, session):
        app = driver.inspected()
        report = session.execute(
            select(InspectionReport).where(InspectionReport.application_id == app.id)
        ).scalar_one()

        with pytest.raises(ImmutabilityViolationError):
            with session.begin_nested():
                report.detailed_findings = "Changed afterwards"
                session.flush()


class TestApplicationIdentity:

    def test_number_cannot_change(self, driver, session):
        app = driver.create()
        row = session.get(Application, app.id)

        with pytest.raises(ImmutabilityViolationError, match="application_number"):
            with session.begin_nested():
                row.application_number = "HP-HS-2025-SML-999999"
                session.flush()

    def test_content_fields_can_change(self, driver, session):
        app = driver.create()
        row = session.get(Application, app.id)

        with session.begin_nested():
            row.property_name = "Cedar Homestay"
            session.flush()

        assert row.version == app.version + 1

    def test_mark_status_tracks_active_slot(self, driver, session, owner_id):
        app = driver.create()
        row = session.get(Application, app.id)
        assert row.active_slot == active_slot_for(owner_id, row.kind, None)

        row.mark_status(ApplicationStatus.REJECTED)
        assert row.active_slot is None
        assert not row.is_active

        row.mark_status(ApplicationStatus.SUBMITTED)
        assert row.active_slot == f"{owner_id}:new_registration:-"
