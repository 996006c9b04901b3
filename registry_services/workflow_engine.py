"""
registry_services.workflow_engine -- Application status state machine.

Responsibility:
    Applies workflow actions to applications: validates the edge, the
    actor's capability and the guards, writes the status and exactly one
    action log row, runs the registered side effects and emits the domain
    event.  Thin coordinator -- the transition table lives in
    ``registry_kernel.domain.workflow``, capability checks in
    ``rbac_authority``, persistence in the kernel services.

Architecture position:
    Services layer.  May import from registry_kernel (domain, models,
    services, selectors).

Invariants enforced:
    - Status only changes through an edge of the transition table.
    - Every applied action writes exactly one action row; a failed action
      writes none and leaves the status untouched (savepoint).
    - Transitions on one application are serialised: the row is loaded
      ``FOR UPDATE`` and carries a version column.
    - An idempotency key replays the recorded result instead of applying
      the action again.

Validation order:
    1. lock the row (ApplicationNotFoundError)
    2. idempotent replay
    3. expected_version (OptimisticLockError)
    4. edge lookup (ActionNotAllowedError)
    5. capability, ownership, district (UnauthorizedActorError)
    6. application kind restrictions (ActionNotAllowedError)
    7. guards (PreconditionNotMetError)
    8. write + side effects inside a savepoint (SideEffectFailedError)
    9. domain event to the notification dispatcher once the outermost
       action or ``batch()`` completes (failures only logged)
"""

from __future__ import annotations

import time
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Callable
from uuid import UUID

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from registry_kernel.domain.clock import Clock, SystemClock
from registry_kernel.domain.collaborators import (
    ActorProfile,
    DocumentStore,
    NotificationDispatcher,
    PaymentGateway,
    RoleProvider,
)
from registry_kernel.domain.dtos import ActionRecord, TransitionResult
from registry_kernel.domain.events import DomainEvent
from registry_kernel.domain.policies import DocumentRequirements, WorkflowPolicy
from registry_kernel.domain.rbac import DEFAULT_RBAC, Capability, RbacTable
from registry_kernel.domain.statuses import (
    CORRECTION_STATUSES,
    INSPECTION_EXEMPT_KINDS,
    ActionKind,
    ApplicationStatus,
    WorkflowAction,
)
from registry_kernel.domain.workflow import (
    PAYMENT_CONFIRMED,
    REGISTRATION_WORKFLOW,
    REMARKS_PROVIDED,
    REQUIRED_DOCUMENTS,
    REVERT_ACTIONS,
    SATISFACTORY_INSPECTION,
    Guard,
    Transition,
    Workflow,
)
from registry_kernel.exceptions import (
    ActionNotAllowedError,
    ApplicationNotFoundError,
    OptimisticLockError,
    PreconditionNotMetError,
    RegistryKernelError,
    SideEffectFailedError,
    UnauthorizedActorError,
)
from registry_kernel.logging_config import LogContext, get_logger
from registry_kernel.models.application import Application
from registry_kernel.selectors.inspection_selector import InspectionSelector
from registry_kernel.services.action_log import ActionLog
from registry_kernel.services.application_store import ApplicationStore
from registry_kernel.services.document_service import DocumentService
from registry_kernel.utils.idempotency import derived_key
from registry_services.notifications import LoggingNotificationDispatcher
from registry_services.payments import ApplicationPaymentStatusGateway
from registry_services.rbac_authority import StaticRoleProvider, check_capability

logger = get_logger("services.workflow_engine")

SYSTEM_ACTOR_ID = UUID(int=0)

OUTCOME_SUCCESS = "success"
OUTCOME_REPLAYED = "replayed"
OUTCOME_NOT_FOUND = "not_found"
OUTCOME_VERSION_CONFLICT = "version_conflict"
OUTCOME_NO_TRANSITION = "no_transition"
OUTCOME_UNAUTHORIZED = "unauthorized"
OUTCOME_GUARD_FAILED = "guard_failed"
OUTCOME_SIDE_EFFECT_FAILED = "side_effect_failed"

# Officer fields written when these capabilities are exercised.
_DA_CAPABILITIES = frozenset({Capability.APPLICATION_SCRUTINIZE})
_DTDO_CAPABILITIES = frozenset({
    Capability.APPLICATION_DECIDE,
    Capability.INSPECTION_SCHEDULE,
    Capability.CERTIFICATE_ISSUE,
})

# Payload keys stored in dedicated action columns rather than ``details``.
_COLUMN_PAYLOAD_KEYS = frozenset({"remarks", "issues_found"})


def _emit_workflow_trace(
    action: str,
    application_id: UUID,
    from_state: str | None,
    outcome: str,
    reason: str,
    duration_ms: float,
    to_state: str | None = None,
    error_code: str | None = None,
) -> None:
    """Structured record of one workflow outcome."""
    record: dict[str, Any] = {
        "workflow": REGISTRATION_WORKFLOW.name,
        "requested_action": action,
        "entity_id": str(application_id),
        "from_state": from_state,
        "outcome": outcome,
        "reason": reason,
        "duration_ms": round(duration_ms, 3),
    }
    if to_state is not None:
        record["to_state"] = to_state
    if error_code is not None:
        record["error_code"] = error_code
    logger.info("workflow_transition", extra=record)


def _jsonable(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Mapping):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_jsonable(v) for v in value]
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value


def _text(payload: Mapping[str, Any], key: str) -> str | None:
    value = payload.get(key)
    if value is None:
        return None
    value = str(value).strip()
    return value or None


# ---------------------------------------------------------------------------
# Guard evaluation
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class GuardContext:
    application: Application
    action: WorkflowAction
    payload: Mapping[str, Any]


class GuardExecutor:
    """Evaluates workflow guards.

    Guards are declared on transitions (name + description).  This
    executor holds the evaluation logic per guard name.
    """

    def __init__(self) -> None:
        self._evaluators: dict[str, Callable[[GuardContext], bool]] = {}

    def register(self, guard_name: str, evaluator: Callable[[GuardContext], bool]) -> None:
        self._evaluators[guard_name] = evaluator

    def evaluate(self, guard: Guard, context: GuardContext) -> bool:
        fn = self._evaluators.get(guard.name)
        if fn is None:
            logger.warning("guard_no_evaluator", extra={"guard_name": guard.name})
            return False
        return bool(fn(context))


def default_guard_executor(
    documents: DocumentStore,
    payments: PaymentGateway,
    requirements: DocumentRequirements,
    inspections: InspectionSelector,
    action_log: ActionLog,
) -> GuardExecutor:
    """GuardExecutor with the registration guards bound to their collaborators."""

    def required_documents(ctx: GuardContext) -> bool:
        if ctx.application.kind_enum in INSPECTION_EXEMPT_KINDS:
            return True
        app_id = ctx.application.id
        return (
            documents.has_required_documents(app_id)
            and documents.photo_count(app_id) >= requirements.min_photos
        )

    def remarks_provided(ctx: GuardContext) -> bool:
        return _text(ctx.payload, "remarks") is not None

    def satisfactory_inspection(ctx: GuardContext) -> bool:
        if ctx.payload.get("override") is True and _text(ctx.payload, "override_reason"):
            return True
        report = inspections.latest_report(ctx.application.id)
        if report is not None and report.overall_satisfactory:
            return True
        if ctx.action is WorkflowAction.APPROVE:
            # An override given at verification carries over to approval.
            verified = action_log.latest(ctx.application.id, ActionKind.VERIFIED_FOR_PAYMENT)
            return bool(verified and verified.details.get("override"))
        return False

    def payment_confirmed(ctx: GuardContext) -> bool:
        return payments.payment_confirmed(ctx.application.id)

    ex = GuardExecutor()
    ex.register(REQUIRED_DOCUMENTS.name, required_documents)
    ex.register(REMARKS_PROVIDED.name, remarks_provided)
    ex.register(SATISFACTORY_INSPECTION.name, satisfactory_inspection)
    ex.register(PAYMENT_CONFIRMED.name, payment_confirmed)
    return ex


# ---------------------------------------------------------------------------
# Side effects
# ---------------------------------------------------------------------------


@dataclass
class SideEffectContext:
    """What a side effect sees while its transition is being applied.

    Side effects run inside the transition's savepoint after the status
    and the action row are written.  Raising aborts the transition.
    """

    engine: WorkflowEngine
    session: Session
    application: Application
    transition: Transition
    requested_action: WorkflowAction
    actor_id: UUID
    payload: Mapping[str, Any]
    previous_status: ApplicationStatus
    new_status: ApplicationStatus
    action: ActionRecord
    now: datetime
    details: dict[str, Any] = field(default_factory=dict)


SideEffect = Callable[[SideEffectContext], None]


# ---------------------------------------------------------------------------
# WorkflowEngine
# ---------------------------------------------------------------------------


class WorkflowEngine:
    """Applies workflow actions to applications.

    Contract:
        ``apply`` never raises for expected business failures; it returns
        a ``TransitionResult`` carrying the typed error.  Infrastructure
        errors (database down, programming errors outside side effects)
        propagate.

    Non-goals:
        - Does NOT commit; the caller owns the transaction.
        - Does NOT deliver notifications; the dispatcher does.
    """

    def __init__(
        self,
        session: Session,
        *,
        role_provider: RoleProvider | None = None,
        document_store: DocumentStore | None = None,
        payment_gateway: PaymentGateway | None = None,
        dispatcher: NotificationDispatcher | None = None,
        rbac: RbacTable | None = None,
        policy: WorkflowPolicy | None = None,
        document_requirements: DocumentRequirements | None = None,
        workflow: Workflow = REGISTRATION_WORKFLOW,
        store: ApplicationStore | None = None,
        action_log: ActionLog | None = None,
        guard_executor: GuardExecutor | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.session = session
        self._clock = clock or SystemClock()
        self._roles = role_provider or StaticRoleProvider()
        requirements = document_requirements or DocumentRequirements()
        self._documents = document_store or DocumentService(session, requirements, self._clock)
        self._payments = payment_gateway or ApplicationPaymentStatusGateway(session)
        self._dispatcher = dispatcher or LoggingNotificationDispatcher()
        self._rbac = rbac or DEFAULT_RBAC
        self._policy = policy or WorkflowPolicy()
        self._workflow = workflow
        self._action_log = action_log or ActionLog(session, self._clock)
        self._store = store or ApplicationStore(
            session, action_log=self._action_log, clock=self._clock,
        )
        self._guards = guard_executor or default_guard_executor(
            self._documents,
            self._payments,
            requirements,
            InspectionSelector(session),
            self._action_log,
        )
        self._side_effects: dict[WorkflowAction, list[tuple[str, SideEffect]]] = {}
        self._depth = 0
        self._pending_events: list[DomainEvent] = []

    @property
    def clock(self) -> Clock:
        return self._clock

    @property
    def workflow(self) -> Workflow:
        return self._workflow

    @property
    def policy(self) -> WorkflowPolicy:
        return self._policy

    @property
    def action_log(self) -> ActionLog:
        return self._action_log

    @property
    def store(self) -> ApplicationStore:
        return self._store

    def register_side_effect(
        self, action: WorkflowAction, fn: SideEffect, name: str | None = None
    ) -> None:
        """Run ``fn`` whenever an edge for ``action`` is applied."""
        effects = self._side_effects.setdefault(WorkflowAction(action), [])
        effects.append((name or getattr(fn, "__name__", "side_effect"), fn))

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def apply(
        self,
        application_id: UUID,
        action: WorkflowAction | str,
        actor_id: UUID,
        payload: Mapping[str, Any] | None = None,
        *,
        idempotency_key: str | None = None,
        expected_version: int | None = None,
    ) -> TransitionResult:
        """Apply ``action`` to the application on behalf of ``actor_id``."""
        action = WorkflowAction(action)
        with LogContext.bind(
            application_id=str(application_id),
            actor_id=str(actor_id),
            action=action.value,
        ):
            return self._execute(
                application_id, action, actor_id, payload or {},
                idempotency_key, expected_version, system=False,
            )

    def apply_as_system(
        self,
        application_id: UUID,
        action: WorkflowAction | str,
        payload: Mapping[str, Any] | None = None,
        *,
        actor_id: UUID = SYSTEM_ACTOR_ID,
        idempotency_key: str | None = None,
    ) -> TransitionResult:
        """
        Apply an action the system itself originates.

        Capability checks are skipped; the edge, kind restrictions and
        guards still apply.  ``actor_id`` records on whose behalf the
        system acted (defaults to the system actor).
        """
        action = WorkflowAction(action)
        with LogContext.bind(application_id=str(application_id), action=action.value):
            return self._execute(
                application_id, action, actor_id, payload or {},
                idempotency_key, None, system=True,
            )

    def allowed_actions(self, application_id: UUID, actor_id: UUID) -> list[WorkflowAction]:
        """Actions the actor may attempt now (guards not evaluated)."""
        row = self._store.get_for_update(application_id)
        profile = self._roles.get_actor_profile(actor_id)
        allowed = []
        for action in self._workflow.actions_from(row.status_enum):
            transition = self._workflow.find(row.status_enum, action)
            if transition.is_system or not transition.applies_to(row.kind_enum):
                continue
            ok, _ = check_capability(
                self._rbac, profile, transition.capability,
                row.owner_user_id, row.district, self._policy.enforce_district,
            )
            if ok:
                allowed.append(action)
        return allowed

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def _execute(
        self,
        application_id: UUID,
        action: WorkflowAction,
        actor_id: UUID,
        payload: Mapping[str, Any],
        idempotency_key: str | None,
        expected_version: int | None,
        system: bool,
    ) -> TransitionResult:
        mark = len(self._pending_events)
        self._depth += 1
        result: TransitionResult | None = None
        try:
            result = self._apply_locked(
                application_id, action, actor_id, payload,
                idempotency_key, expected_version, system,
            )
        finally:
            self._depth -= 1
            if result is None or not result.success:
                del self._pending_events[mark:]
            self._release_events()
        return result

    @contextmanager
    def batch(self) -> Iterator[None]:
        """
        Hold back domain events of every action applied inside the block.

        Use it around a caller-owned savepoint that spans several actions:
        the events go out when the outermost block exits normally and are
        dropped if it raises.
        """
        mark = len(self._pending_events)
        self._depth += 1
        completed = False
        try:
            yield
            completed = True
        finally:
            self._depth -= 1
            if not completed:
                del self._pending_events[mark:]
            self._release_events()

    def _release_events(self) -> None:
        if self._depth != 0:
            return
        events, self._pending_events = self._pending_events, []
        for event in events:
            self._dispatch(event)

    def _apply_locked(
        self,
        application_id: UUID,
        action: WorkflowAction,
        actor_id: UUID,
        payload: Mapping[str, Any],
        idempotency_key: str | None,
        expected_version: int | None,
        system: bool,
    ) -> TransitionResult:
        t0 = time.monotonic()

        def fail(
            error: RegistryKernelError,
            outcome: str,
            current: ApplicationStatus | None,
        ) -> TransitionResult:
            _emit_workflow_trace(
                action.value, application_id,
                current.value if current else None,
                outcome, str(error), (time.monotonic() - t0) * 1000,
                error_code=error.code,
            )
            return TransitionResult.failed(application_id, action, error, current)

        # 1. Lock
        try:
            row = self._store.get_for_update(application_id)
        except ApplicationNotFoundError as exc:
            return fail(exc, OUTCOME_NOT_FOUND, None)
        current = row.status_enum

        # 2. Idempotent replay
        if idempotency_key is not None:
            recorded = self._action_log.find_by_idempotency_key(
                application_id, action.value, idempotency_key,
            )
            if recorded is not None:
                _emit_workflow_trace(
                    action.value, application_id, current.value, OUTCOME_REPLAYED,
                    "Idempotency key already applied",
                    (time.monotonic() - t0) * 1000,
                    to_state=recorded.new_status.value,
                )
                return TransitionResult(
                    success=True,
                    application_id=application_id,
                    action=action,
                    previous_status=recorded.previous_status,
                    new_status=recorded.new_status,
                    replayed=True,
                    action_id=recorded.id,
                    details=dict(recorded.details),
                )

        # 3. Compare-and-swap
        if expected_version is not None and row.version != expected_version:
            return fail(
                OptimisticLockError(
                    "Application", str(application_id), expected_version, row.version,
                ),
                OUTCOME_VERSION_CONFLICT,
                current,
            )

        # 4. Edge
        transition = self._workflow.find(current, action)
        if transition is None:
            in_correction = current in CORRECTION_STATUSES
            return fail(
                ActionNotAllowedError(
                    str(application_id), current.value, action.value,
                    f"No '{action.value}' action from status '{current.value}'",
                    issues_found=list(row.issues_found or []) if in_correction else None,
                    correction_notes=row.correction_notes if in_correction else None,
                ),
                OUTCOME_NO_TRANSITION,
                current,
            )

        # 5. Capability
        profile = None
        if not system:
            profile = self._roles.get_actor_profile(actor_id)
            allowed, reason = check_capability(
                self._rbac, profile, transition.capability,
                row.owner_user_id, row.district, self._policy.enforce_district,
            )
            if not allowed:
                logger.warning(
                    "transition_unauthorized",
                    extra={"capability": transition.capability.value, "reason": reason},
                )
                return fail(
                    UnauthorizedActorError(
                        str(application_id), current.value, action.value,
                        str(actor_id), reason,
                    ),
                    OUTCOME_UNAUTHORIZED,
                    current,
                )

        # 6. Kind restriction
        if not transition.applies_to(row.kind_enum):
            return fail(
                ActionNotAllowedError(
                    str(application_id), current.value, action.value,
                    f"'{action.value}' does not apply to {row.kind} applications",
                ),
                OUTCOME_NO_TRANSITION,
                current,
            )

        # 7. Guards
        ctx = GuardContext(application=row, action=action, payload=payload)
        for guard in transition.guards:
            if not self._guards.evaluate(guard, ctx):
                return fail(
                    PreconditionNotMetError(str(application_id), guard.name, guard.description),
                    OUTCOME_GUARD_FAILED,
                    current,
                )

        effective, extra_details = self._effective_transition(row, transition, action)
        target = self._target_status(row, effective)
        now = self._clock.now()

        # 8. Write + side effects
        try:
            with self.session.begin_nested():
                record, details = self._write(
                    row, effective, action, actor_id, payload, idempotency_key,
                    current, target, now, profile, extra_details,
                )
        except StaleDataError:
            return fail(
                OptimisticLockError("Application", str(application_id)),
                OUTCOME_VERSION_CONFLICT,
                current,
            )
        except RegistryKernelError as exc:
            return fail(exc, OUTCOME_SIDE_EFFECT_FAILED, current)

        if effective.log_kind is ActionKind.AUTO_REJECTED:
            logger.warning(
                "auto_rejected",
                extra={"revert_count": row.revert_count, "max_reverts": self._policy.max_reverts},
            )

        # 9. Event (dispatched once the outermost action completes)
        if effective.event is not None:
            self._pending_events.append(DomainEvent(
                name=effective.event,
                application_id=row.id,
                application_number=row.application_number,
                owner_user_id=row.owner_user_id,
                status=target.value,
                occurred_at=now,
                details={
                    **details,
                    "action": action.value,
                    "remarks": _text(payload, "remarks"),
                },
            ))

        _emit_workflow_trace(
            action.value, application_id, current.value, OUTCOME_SUCCESS,
            f"Applied {effective.log_kind.value}",
            (time.monotonic() - t0) * 1000,
            to_state=target.value,
        )

        result_details = dict(details)
        if (
            effective.action is WorkflowAction.VERIFY_FOR_PAYMENT
            and self._policy.issue_on_verification_when_prepaid
            and self._payments.payment_confirmed(application_id)
        ):
            chained = self._execute(
                application_id, WorkflowAction.APPROVE, actor_id, payload,
                derived_key(idempotency_key, WorkflowAction.APPROVE.value), None, system,
            )
            result_details["chained_action"] = WorkflowAction.APPROVE.value
            result_details["chained_status"] = (
                chained.new_status.value if chained.new_status else None
            )
            if not chained.success:
                logger.warning(
                    "prepaid_approval_failed",
                    extra={"error_code": chained.error_code, "reason": str(chained.error)},
                )

        return TransitionResult(
            success=True,
            application_id=application_id,
            action=action,
            previous_status=current,
            new_status=target,
            action_id=record.id,
            issues_found=tuple(row.issues_found or ()),
            correction_notes=row.correction_notes,
            details=result_details,
        )

    def _effective_transition(
        self, row: Application, transition: Transition, action: WorkflowAction
    ) -> tuple[Transition, dict[str, Any]]:
        """Swap an officer revert for auto-reject once the revert limit is reached."""
        limit = self._policy.max_reverts
        if action in REVERT_ACTIONS and limit is not None and row.revert_count >= limit:
            auto = self._workflow.find(row.status_enum, WorkflowAction.AUTO_REJECT)
            if auto is not None:
                return auto, {
                    "requested_action": action.value,
                    "revert_count": row.revert_count,
                    "max_reverts": limit,
                }
        return transition, {}

    def _target_status(self, row: Application, transition: Transition) -> ApplicationStatus:
        if transition.to_state is not None:
            return transition.to_state
        origin = (
            ApplicationStatus(row.reverted_from_status)
            if row.reverted_from_status
            else ApplicationStatus.SUBMITTED
        )
        if self._policy.correction_resubmit_target == "dtdo" and origin in (
            ApplicationStatus.SUBMITTED,
            ApplicationStatus.UNDER_SCRUTINY,
        ):
            return ApplicationStatus.FORWARDED_TO_DTDO
        return origin

    def _write(
        self,
        row: Application,
        transition: Transition,
        action: WorkflowAction,
        actor_id: UUID,
        payload: Mapping[str, Any],
        idempotency_key: str | None,
        previous: ApplicationStatus,
        target: ApplicationStatus,
        now: datetime,
        profile: ActorProfile | None,
        extra_details: dict[str, Any],
    ) -> tuple[ActionRecord, dict[str, Any]]:
        remarks = _text(payload, "remarks")
        issues = [str(i) for i in (payload.get("issues_found") or [])]
        details = _jsonable({k: v for k, v in payload.items() if k not in _COLUMN_PAYLOAD_KEYS})
        details.update(extra_details)
        feedback = remarks

        if transition.changes_status:
            row.mark_status(target)

        if profile is not None:
            self._record_officer(row, transition.capability, profile)

        if action is WorkflowAction.SUBMIT and row.submitted_at is None:
            row.submitted_at = now

        if transition.opens_correction:
            row.reverted_from_status = previous.value
            row.correction_notes = remarks
            row.issues_found = issues
            if action in REVERT_ACTIONS:
                row.revert_count = (row.revert_count or 0) + 1
        elif transition.to_state is None:
            cycle = (row.correction_submission_count or 0) + 1
            row.correction_submission_count = cycle
            row.correction_notes = None
            row.issues_found = None
            row.reverted_from_status = None
            feedback = f"{remarks or 'Corrections resubmitted'} (cycle {cycle})"
            details["cycle"] = cycle

        row.updated_at = now
        row.updated_by_id = None if actor_id == SYSTEM_ACTOR_ID else actor_id
        self.session.flush()

        record = self._action_log.append(
            application_id=row.id,
            actor_id=actor_id,
            command=action.value,
            action_kind=transition.log_kind,
            previous_status=previous,
            new_status=target,
            feedback=feedback,
            issues_found=issues,
            details=details,
            idempotency_key=idempotency_key,
            created_at=now,
        )

        ctx = SideEffectContext(
            engine=self,
            session=self.session,
            application=row,
            transition=transition,
            requested_action=action,
            actor_id=actor_id,
            payload=payload,
            previous_status=previous,
            new_status=target,
            action=record,
            now=now,
            details=details,
        )
        for name, fn in self._side_effects.get(transition.action, ()):
            try:
                fn(ctx)
            except RegistryKernelError:
                raise
            except StaleDataError:
                raise
            except Exception as exc:
                logger.error(
                    "side_effect_failed",
                    extra={"side_effect": name},
                    exc_info=True,
                )
                raise SideEffectFailedError(
                    str(row.id), action.value, name, str(exc),
                ) from exc
        self.session.flush()
        return record, details

    def _record_officer(self, row: Application, capability: Capability, profile: ActorProfile) -> None:
        if capability is Capability.LEGACY_VERIFY:
            # Either officer may verify; the field follows the role that did.
            decides = self._rbac.roles_granting(profile.roles, Capability.APPLICATION_DECIDE)
            capability = (
                Capability.APPLICATION_DECIDE if decides else Capability.APPLICATION_SCRUTINIZE
            )
        if capability in _DA_CAPABILITIES:
            row.assigned_dealing_assistant_id = profile.actor_id
        elif capability in _DTDO_CAPABILITIES:
            row.dtdo_id = profile.actor_id

    def _dispatch(self, event: DomainEvent) -> None:
        try:
            self._dispatcher.dispatch(event)
        except Exception:  # noqa: BLE001
            logger.warning(
                "notification_dispatch_failed",
                extra={"event_name": event.name.value, "entity_id": str(event.application_id)},
                exc_info=True,
            )
