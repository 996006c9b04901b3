"""
Tests for WorkflowEngine.apply: edges, capabilities, guards, the
correction loop, idempotency, optimistic locking, side-effect rollback
and event dispatch.
"""

from uuid import uuid4

import pytest

from registry_kernel.domain.statuses import (
    ActionKind,
    ApplicationKind,
    ApplicationStatus,
    WorkflowAction,
)
from registry_kernel.domain.workflow import Guard
from registry_kernel.exceptions import PreconditionNotMetError
from registry_services.workflow_engine import (
    SYSTEM_ACTOR_ID,
    GuardContext,
    GuardExecutor,
)

S = ApplicationStatus
A = WorkflowAction


class TestSubmit:

    def test_submit_moves_to_submitted(self, driver, registry, owner_id):
        app = driver.create()
        driver.add_documents(app.id)

        result = registry.engine.apply(app.id, A.SUBMIT, owner_id)

        assert result.success
        assert result.previous_status is S.DRAFT
        assert result.new_status is S.SUBMITTED
        info = registry.store.get(app.id)
        assert info.status is S.SUBMITTED
        assert info.submitted_at is not None
        assert registry.action_log.latest(app.id).id == result.action_id

    def test_missing_documents(self, driver, registry, owner_id):
        app = driver.create()

        result = registry.engine.apply(app.id, A.SUBMIT, owner_id)

        assert not result.success
        assert result.error_code == "PRECONDITION_NOT_MET"
        assert result.error.precondition == "required_documents_present"
        assert driver.status(app.id) is S.DRAFT
        assert registry.action_log.count(app.id) == 1

    def test_too_few_photos(self, driver, registry, owner_id):
        app = driver.create()
        driver.add_documents(app.id, photos=1)
        result = registry.engine.apply(app.id, A.SUBMIT, owner_id)
        assert result.error_code == "PRECONDITION_NOT_MET"

    def test_only_owner_submits(self, driver, registry, other_owner_id):
        app = driver.create()
        driver.add_documents(app.id)

        result = registry.engine.apply(app.id, A.SUBMIT, other_owner_id)

        assert result.error_code == "UNAUTHORIZED_ACTOR"
        assert driver.status(app.id) is S.DRAFT

    def test_cancellation_needs_no_documents(self, driver, registry, owner_id):
        parent = driver.approved()
        cancel = driver.create(kind=ApplicationKind.CANCELLATION, parent_id=parent.id)
        result = registry.engine.apply(cancel.id, A.SUBMIT, owner_id)
        assert result.success

    def test_unknown_application(self, registry, owner_id):
        result = registry.engine.apply(uuid4(), A.SUBMIT, owner_id)
        assert result.error_code == "APPLICATION_NOT_FOUND"
        assert result.previous_status is None

    def test_raise_for_error_surfaces_typed_error(self, driver, registry, owner_id):
        app = driver.create()
        with pytest.raises(PreconditionNotMetError):
            registry.engine.apply(app.id, A.SUBMIT, owner_id).raise_for_error()


class TestEdgesAndCapabilities:

    def test_no_edge(self, driver, registry, dtdo_id):
        app = driver.create()

        result = registry.engine.apply(app.id, A.APPROVE, dtdo_id)

        assert result.error_code == "ACTION_NOT_ALLOWED"
        assert "draft" in str(result.error)

    def test_scrutiny_records_dealing_assistant(self, driver, registry, da_id):
        app = driver.under_scrutiny()
        assert registry.store.get(app.id).assigned_dealing_assistant_id == da_id

    def test_owner_cannot_scrutinize(self, driver, registry, owner_id):
        app = driver.submitted()
        result = registry.engine.apply(app.id, A.START_SCRUTINY, owner_id)
        assert result.error_code == "UNAUTHORIZED_ACTOR"

    def test_officer_outside_district(self, driver, registry, outside_dtdo_id):
        app = driver.forwarded()

        result = registry.engine.apply(app.id, A.REJECT, outside_dtdo_id, {"remarks": "Not eligible"})

        assert result.error_code == "UNAUTHORIZED_ACTOR"
        assert "outside actor district 'Kangra'" in str(result.error)
        assert driver.status(app.id) is S.FORWARDED_TO_DTDO

    def test_district_not_enforced(self, make_registry, driver, outside_dtdo_id):
        app = driver.forwarded()
        relaxed = make_registry(enforce_district=False)
        result = relaxed.engine.apply(app.id, A.REJECT, outside_dtdo_id, {"remarks": "Not eligible"})
        assert result.success

    def test_system_edges_refuse_humans(self, driver, registry, dtdo_id):
        app = driver.forwarded()
        result = registry.engine.apply(app.id, A.AUTO_REJECT, dtdo_id)
        assert result.error_code == "UNAUTHORIZED_ACTOR"

    def test_system_may_apply_system_edges(self, driver, registry):
        app = driver.forwarded()

        result = registry.engine.apply_as_system(app.id, A.AUTO_REJECT)

        assert result.success
        entry = registry.action_log.latest(app.id)
        assert entry.actor_id == SYSTEM_ACTOR_ID
        assert entry.action_kind is ActionKind.AUTO_REJECTED

    def test_cancellation_cannot_be_inspected(self, driver, registry, dtdo_id):
        parent = driver.approved()
        cancel = driver.forwarded(kind=ApplicationKind.CANCELLATION, parent_id=parent.id)

        result = registry.engine.apply(cancel.id, A.SCHEDULE_INSPECTION, dtdo_id)

        assert result.error_code == "ACTION_NOT_ALLOWED"
        assert "cancellation" in str(result.error)

    def test_forward_requires_remarks(self, driver, registry, da_id):
        app = driver.under_scrutiny()
        for payload in (None, {"remarks": "   "}):
            result = registry.engine.apply(app.id, A.FORWARD_TO_DTDO, da_id, payload)
            assert result.error_code == "PRECONDITION_NOT_MET"
            assert result.error.precondition == "remarks_provided"

    def test_reject_by_dtdo_is_terminal(self, driver, registry, dtdo_id):
        app = driver.forwarded()
        driver.apply(app.id, A.REJECT, dtdo_id, {"remarks": "Commercial hotel, not a homestay"})

        assert driver.status(app.id) is S.REJECTED
        assert registry.engine.allowed_actions(app.id, dtdo_id) == []


class TestAllowedActions:

    def test_owner_on_draft(self, driver, registry, owner_id):
        app = driver.create()
        assert registry.engine.allowed_actions(app.id, owner_id) == [A.SUBMIT]

    def test_dealing_assistant_on_submitted(self, driver, registry, da_id):
        app = driver.submitted()
        assert set(registry.engine.allowed_actions(app.id, da_id)) == {A.START_SCRUTINY, A.SEND_BACK}

    def test_dtdo_on_forwarded_excludes_system_edges(self, driver, registry, dtdo_id):
        app = driver.forwarded()
        allowed = registry.engine.allowed_actions(app.id, dtdo_id)
        assert A.AUTO_REJECT not in allowed
        assert A.APPROVE_CANCELLATION not in allowed
        assert {A.SCHEDULE_INSPECTION, A.REVERT, A.REJECT} <= set(allowed)

    def test_outsider_gets_nothing(self, driver, registry, outside_dtdo_id):
        app = driver.forwarded()
        assert registry.engine.allowed_actions(app.id, outside_dtdo_id) == []


class TestCorrectionLoop:

    def test_send_back_opens_correction(self, driver, registry, da_id):
        app = driver.under_scrutiny()

        result = driver.apply(
            app.id, A.SEND_BACK, da_id,
            {"remarks": "Affidavit not notarised", "issues_found": ["affidavit_section_29"]},
        )

        info = registry.store.get(app.id)
        assert info.status is S.SENT_BACK_FOR_CORRECTIONS
        assert info.correction_notes == "Affidavit not notarised"
        assert info.issues_found == ("affidavit_section_29",)
        assert info.reverted_from_status is S.UNDER_SCRUTINY
        assert info.revert_count == 1
        assert result.issues_found == ("affidavit_section_29",)
        entry = registry.action_log.latest(app.id)
        assert entry.feedback == "Affidavit not notarised"
        assert entry.issues_found == ("affidavit_section_29",)

    def test_actions_in_correction_report_the_notes(self, driver, registry, da_id, dtdo_id):
        app = driver.under_scrutiny()
        driver.apply(app.id, A.SEND_BACK, da_id, {"remarks": "Photo blurred", "issues_found": ["photo"]})

        result = registry.engine.apply(app.id, A.APPROVE, dtdo_id)

        assert result.error_code == "ACTION_NOT_ALLOWED"
        assert result.issues_found == ("photo",)
        assert result.correction_notes == "Photo blurred"

    def test_resubmit_returns_to_origin(self, driver, registry, owner_id, da_id):
        app = driver.under_scrutiny()
        driver.apply(app.id, A.SEND_BACK, da_id, {"remarks": "Photo blurred"})

        result = driver.apply(app.id, A.RESUBMIT_CORRECTIONS, owner_id, {"remarks": "New photo uploaded"})

        assert result.new_status is S.UNDER_SCRUTINY
        info = registry.store.get(app.id)
        assert info.correction_notes is None
        assert info.issues_found == ()
        assert info.reverted_from_status is None
        assert info.correction_submission_count == 1
        assert info.revert_count == 1
        entry = registry.action_log.latest(app.id)
        assert entry.action_kind is ActionKind.CORRECTION_RESUBMITTED
        assert entry.feedback == "New photo uploaded (cycle 1)"
        assert entry.details["cycle"] == 1

    def test_resubmit_without_remarks(self, driver, registry, owner_id, da_id):
        app = driver.submitted()
        driver.apply(app.id, A.SEND_BACK, da_id, {"remarks": "Wrong district"})
        result = driver.apply(app.id, A.RESUBMIT_CORRECTIONS, owner_id)
        assert result.new_status is S.SUBMITTED
        assert registry.action_log.latest(app.id).feedback == "Corrections resubmitted (cycle 1)"

    def test_dtdo_revert_returns_to_dtdo(self, driver, registry, owner_id, dtdo_id):
        app = driver.forwarded()
        driver.apply(app.id, A.REVERT, dtdo_id, {"remarks": "Tehsil missing"})
        assert driver.status(app.id) is S.REVERTED_BY_DTDO

        result = driver.apply(app.id, A.RESUBMIT_CORRECTIONS, owner_id)

        assert result.new_status is S.FORWARDED_TO_DTDO

    def test_second_revert_auto_rejects(self, driver, registry, owner_id, da_id, captured_logs):
        app = driver.under_scrutiny()
        driver.apply(app.id, A.SEND_BACK, da_id, {"remarks": "Photo blurred"})
        driver.apply(app.id, A.RESUBMIT_CORRECTIONS, owner_id)

        result = driver.apply(app.id, A.SEND_BACK, da_id, {"remarks": "Still blurred"})

        assert result.new_status is S.REJECTED
        entry = registry.action_log.latest(app.id)
        assert entry.action_kind is ActionKind.AUTO_REJECTED
        assert entry.command == "send_back"
        assert entry.details["requested_action"] == "send_back"
        assert entry.details["max_reverts"] == 1
        assert entry.feedback == "Still blurred"
        assert any(r["message"] == "auto_rejected" for r in captured_logs())

    def test_auto_reject_spans_da_and_dtdo_reverts(self, driver, registry, owner_id, da_id, dtdo_id):
        app = driver.under_scrutiny()
        driver.apply(app.id, A.SEND_BACK, da_id, {"remarks": "Photo blurred"})
        driver.apply(app.id, A.RESUBMIT_CORRECTIONS, owner_id)
        driver.apply(app.id, A.FORWARD_TO_DTDO, da_id, {"remarks": "Corrected"})

        result = driver.apply(app.id, A.REVERT, dtdo_id, {"remarks": "Affidavit expired"})

        assert result.new_status is S.REJECTED

    def test_revert_limit_disabled(self, make_registry, make_driver, owner_id, da_id):
        registry = make_registry(max_reverts=None)
        driver = make_driver(registry)
        app = driver.under_scrutiny()
        for _ in range(3):
            driver.apply(app.id, A.SEND_BACK, da_id, {"remarks": "Photo blurred"})
            driver.apply(app.id, A.RESUBMIT_CORRECTIONS, owner_id)

        info = registry.store.get(app.id)
        assert info.status is S.UNDER_SCRUTINY
        assert info.revert_count == 3
        assert info.correction_submission_count == 3

    def test_resubmit_to_dtdo_policy(self, make_registry, make_driver, owner_id, da_id):
        driver = make_driver(make_registry(correction_resubmit_target="dtdo"))
        app = driver.under_scrutiny()
        driver.apply(app.id, A.SEND_BACK, da_id, {"remarks": "Photo blurred"})

        result = driver.apply(app.id, A.RESUBMIT_CORRECTIONS, owner_id)

        assert result.new_status is S.FORWARDED_TO_DTDO

    def test_only_owner_resubmits(self, driver, registry, other_owner_id, da_id):
        app = driver.under_scrutiny()
        driver.apply(app.id, A.SEND_BACK, da_id, {"remarks": "Photo blurred"})
        result = registry.engine.apply(app.id, A.RESUBMIT_CORRECTIONS, other_owner_id)
        assert result.error_code == "UNAUTHORIZED_ACTOR"


class TestIdempotencyAndVersioning:

    def test_replay_returns_recorded_result(self, driver, registry, owner_id, dispatcher):
        app = driver.create()
        driver.add_documents(app.id)

        first = registry.engine.apply(app.id, A.SUBMIT, owner_id, idempotency_key="submit-1")
        second = registry.engine.apply(app.id, A.SUBMIT, owner_id, idempotency_key="submit-1")

        assert first.success and second.success
        assert second.replayed
        assert second.action_id == first.action_id
        assert second.new_status is S.SUBMITTED
        assert registry.action_log.count(app.id) == 2
        assert dispatcher.names().count("applicationSubmitted") == 1

    def test_new_key_is_a_new_request(self, driver, registry, owner_id):
        app = driver.create()
        driver.add_documents(app.id)
        registry.engine.apply(app.id, A.SUBMIT, owner_id, idempotency_key="submit-1")

        result = registry.engine.apply(app.id, A.SUBMIT, owner_id, idempotency_key="submit-2")

        assert result.error_code == "ACTION_NOT_ALLOWED"

    def test_stale_version_is_rejected(self, driver, registry, owner_id):
        app = driver.create()
        driver.add_documents(app.id)
        registry.store.update_draft(app.id, owner_id, {"category": "silver"})

        result = registry.engine.apply(app.id, A.SUBMIT, owner_id, expected_version=app.version)

        assert result.error_code == "CONCURRENT_MODIFICATION"
        assert driver.status(app.id) is S.DRAFT

    def test_current_version_is_accepted(self, driver, registry, owner_id):
        app = driver.create()
        driver.add_documents(app.id)
        current = registry.store.get(app.id).version

        result = registry.engine.apply(app.id, A.SUBMIT, owner_id, expected_version=current)

        assert result.success
        assert registry.store.get(app.id).version == current + 1


class TestSideEffects:

    def test_failing_side_effect_rolls_back(self, driver, registry, da_id, captured_logs):
        def boom(ctx):
            raise RuntimeError("queue unavailable")

        registry.engine.register_side_effect(A.START_SCRUTINY, boom, "notify_queue")
        app = driver.submitted()
        before = registry.action_log.count(app.id)

        result = registry.engine.apply(app.id, A.START_SCRUTINY, da_id)

        assert result.error_code == "SIDE_EFFECT_FAILED"
        assert result.error.side_effect == "notify_queue"
        assert driver.status(app.id) is S.SUBMITTED
        assert registry.action_log.count(app.id) == before
        assert registry.store.get(app.id).assigned_dealing_assistant_id is None
        assert any(r["message"] == "side_effect_failed" for r in captured_logs())

    def test_kernel_error_from_side_effect_keeps_its_type(self, driver, registry, da_id):
        def refuse(ctx):
            raise PreconditionNotMetError(str(ctx.application.id), "external_check", "Blocked")

        registry.engine.register_side_effect(A.START_SCRUTINY, refuse)
        app = driver.submitted()

        result = registry.engine.apply(app.id, A.START_SCRUTINY, da_id)

        assert result.error_code == "PRECONDITION_NOT_MET"
        assert result.error.precondition == "external_check"
        assert driver.status(app.id) is S.SUBMITTED

    def test_side_effect_sees_written_state(self, driver, registry, da_id):
        seen = []

        def capture(ctx):
            seen.append((ctx.previous_status, ctx.new_status, ctx.application.status, ctx.action.entry_no))

        registry.engine.register_side_effect(A.START_SCRUTINY, capture)
        driver.under_scrutiny()

        assert seen == [(S.SUBMITTED, S.UNDER_SCRUTINY, "under_scrutiny", 3)]


class TestEvents:

    def test_events_in_order(self, driver, dispatcher):
        driver.forwarded()
        assert dispatcher.names() == ["applicationSubmitted", "forwardedToDtdo"]

    def test_event_payload(self, driver, dispatcher, da_id):
        app = driver.under_scrutiny()
        driver.apply(app.id, A.SEND_BACK, da_id, {"remarks": "Photo blurred"})

        event = dispatcher.events[-1]
        assert event.name.value == "sentBackForCorrections"
        assert event.application_id == app.id
        assert event.application_number == app.application_number
        assert event.status == "sent_back_for_corrections"
        assert event.details["remarks"] == "Photo blurred"

    def test_failed_action_emits_nothing(self, driver, registry, dispatcher, owner_id):
        app = driver.create()
        registry.engine.apply(app.id, A.SUBMIT, owner_id)
        assert dispatcher.names() == []

    def test_dispatch_failure_does_not_undo_action(self, make_registry, make_driver, owner_id,
                                                   captured_logs):
        class BrokenDispatcher:
            def dispatch(self, event):
                raise ConnectionError("smtp down")

        registry = make_registry(notification_dispatcher=BrokenDispatcher())
        driver = make_driver(registry)
        app = driver.create()
        driver.add_documents(app.id)

        result = registry.engine.apply(app.id, A.SUBMIT, owner_id)

        assert result.success
        assert driver.status(app.id) is S.SUBMITTED
        assert any(r["message"] == "notification_dispatch_failed" for r in captured_logs())

    def test_batch_holds_events_until_exit(self, driver, registry, dispatcher, owner_id, da_id):
        app = driver.create()
        driver.add_documents(app.id)

        with registry.engine.batch():
            driver.apply(app.id, A.SUBMIT, owner_id)
            driver.apply(app.id, A.START_SCRUTINY, da_id)
            driver.apply(app.id, A.FORWARD_TO_DTDO, da_id, {"remarks": "Documents in order"})
            assert dispatcher.names() == []

        assert dispatcher.names() == ["applicationSubmitted", "forwardedToDtdo"]

    def test_batch_drops_events_when_block_raises(self, driver, registry, session, dispatcher, owner_id):
        app = driver.create()
        driver.add_documents(app.id)

        with pytest.raises(RuntimeError):
            with registry.engine.batch(), session.begin_nested():
                driver.apply(app.id, A.SUBMIT, owner_id)
                raise RuntimeError("caller failed after submitting")

        assert dispatcher.names() == []
        assert driver.status(app.id) is S.DRAFT

    def test_nested_batches_release_at_outermost(self, driver, registry, dispatcher, owner_id):
        app = driver.create()
        driver.add_documents(app.id)

        with registry.engine.batch():
            with registry.engine.batch():
                driver.apply(app.id, A.SUBMIT, owner_id)
            assert dispatcher.names() == []

        assert dispatcher.names() == ["applicationSubmitted"]


class TestPrepaidApproval:

    def test_verification_of_paid_application_approves(self, driver, registry, dispatcher, dtdo_id):
        app = driver.inspected()
        driver.pay(app.id)

        result = driver.apply(app.id, A.VERIFY_FOR_PAYMENT, dtdo_id, {"remarks": "Fit for registration"})

        assert result.new_status is S.VERIFIED_FOR_PAYMENT
        assert result.details["chained_action"] == "approve"
        assert result.details["chained_status"] == "approved"
        assert driver.status(app.id) is S.APPROVED
        assert registry.certificates.certificate_for(app.id) is not None
        assert dispatcher.names()[-2:] == ["verifiedForPayment", "approved"]

    def test_unpaid_verification_waits_for_payment(self, driver, registry, dtdo_id):
        app = driver.verified()
        assert driver.status(app.id) is S.VERIFIED_FOR_PAYMENT
        assert registry.certificates.certificate_for(app.id) is None

    def test_chaining_disabled(self, make_registry, make_driver, dtdo_id):
        driver = make_driver(make_registry(issue_on_verification_when_prepaid=False))
        app = driver.inspected()
        driver.pay(app.id)
        result = driver.apply(app.id, A.VERIFY_FOR_PAYMENT, dtdo_id, {"remarks": "Fit"})

        assert "chained_action" not in result.details
        assert driver.status(app.id) is S.VERIFIED_FOR_PAYMENT


class TestSatisfactoryInspectionGuard:

    def test_unsatisfactory_report_blocks_verification(self, driver, registry, dtdo_id):
        app, order = driver.scheduled()
        registry.inspections.submit_report(
            order.id, driver.report(satisfactory=False), dtdo_id,
        )

        result = registry.engine.apply(app.id, A.VERIFY_FOR_PAYMENT, dtdo_id, {"remarks": "ok"})

        assert result.error_code == "PRECONDITION_NOT_MET"
        assert result.error.precondition == "satisfactory_inspection_or_override"

    def test_override_at_verification_carries_to_approval(self, driver, registry, dtdo_id):
        app, order = driver.scheduled()
        registry.inspections.submit_report(order.id, driver.report(satisfactory=False), dtdo_id)
        driver.apply(
            app.id, A.VERIFY_FOR_PAYMENT, dtdo_id,
            {"remarks": "Minor issue", "override": True, "override_reason": "Fixed on site"},
        )
        driver.pay(app.id)

        certificate = registry.certificates.issue(app.id, dtdo_id)

        assert certificate.application_id == app.id
        assert driver.status(app.id) is S.APPROVED


class TestGuardExecutor:

    def test_unknown_guard_fails_closed(self, captured_logs):
        executor = GuardExecutor()
        ctx = GuardContext(application=None, action=A.SUBMIT, payload={})

        assert executor.evaluate(Guard(name="unheard_of", description=""), ctx) is False
        assert any(r["message"] == "guard_no_evaluator" for r in captured_logs())

    def test_registered_evaluator(self):
        executor = GuardExecutor()
        executor.register("has_flag", lambda ctx: ctx.payload.get("flag"))
        ctx = GuardContext(application=None, action=A.SUBMIT, payload={"flag": 1})
        assert executor.evaluate(Guard(name="has_flag", description=""), ctx) is True


class TestTrace:

    def test_success_trace(self, driver, captured_logs, owner_id):
        app = driver.submitted()

        traces = [r for r in captured_logs() if r["message"] == "workflow_transition"]

        assert traces[-1]["outcome"] == "success"
        assert traces[-1]["from_state"] == "draft"
        assert traces[-1]["to_state"] == "submitted"
        assert traces[-1]["entity_id"] == str(app.id)
        assert traces[-1]["application_id"] == str(app.id)
        assert traces[-1]["actor_id"] == str(owner_id)
        assert traces[-1]["action"] == "submit"

    def test_failure_trace_has_error_code(self, driver, registry, captured_logs, owner_id):
        app = driver.create()
        registry.engine.apply(app.id, A.SUBMIT, owner_id)

        trace = [r for r in captured_logs() if r["message"] == "workflow_transition"][-1]

        assert trace["outcome"] == "guard_failed"
        assert trace["error_code"] == "PRECONDITION_NOT_MET"
        assert "to_state" not in trace
