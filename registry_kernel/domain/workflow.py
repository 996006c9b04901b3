"""
Registration workflow definition (``registry_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for the application state machine, and the single
transition table ``REGISTRATION_WORKFLOW`` keyed by
``(current status, action)``.  Each edge names the capability required,
the next status, the guards that must pass and the action kind that the
action log records.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``services/``, ``selectors/``, or outer layers.

Invariants enforced
-------------------
* Transitions reference only statuses in ``Workflow.states``.
* At most one edge per ``(from_state, action)``.
* An edge with ``to_state=None`` returns to the status recorded when the
  application was sent into correction; only correction statuses have
  such edges.
* Human actions never leave ``TERMINAL_STATUSES``; only
  ``Capability.SYSTEM_TRANSITION`` edges do.
"""

from __future__ import annotations

from dataclasses import dataclass

from registry_kernel.domain.events import NotificationEvent
from registry_kernel.domain.rbac import Capability
from registry_kernel.domain.statuses import (
    CORRECTION_STATUSES,
    INSPECTION_EXEMPT_KINDS,
    LEGACY_KINDS,
    TERMINAL_STATUSES,
    ActionKind,
    ApplicationKind,
    ApplicationStatus,
    WorkflowAction,
)


@dataclass(frozen=True)
class Guard:
    """A condition that must be satisfied before a transition fires.

    Contract: frozen, descriptive only.
    Non-goals: does not evaluate the condition -- the workflow engine does.
    """
    name: str
    description: str


REQUIRED_DOCUMENTS = Guard(
    "required_documents_present",
    "Required documents uploaded and minimum property photos present",
)
REMARKS_PROVIDED = Guard(
    "remarks_provided",
    "Officer remarks are mandatory for this action",
)
SATISFACTORY_INSPECTION = Guard(
    "satisfactory_inspection_or_override",
    "Latest inspection report is overall satisfactory, or an officer override is given",
)
PAYMENT_CONFIRMED = Guard(
    "payment_confirmed",
    "Payment gateway confirms the registration fee was paid",
)


@dataclass(frozen=True)
class Transition:
    """One edge of the workflow.

    ``to_state`` of None means "the status the application was reverted
    from".  ``opens_correction`` marks edges into the correction branch;
    the engine records ``reverted_from_status`` and correction notes for
    them.  ``excluded_kinds``/``only_kinds`` restrict the edge by
    application kind.
    """
    from_state: ApplicationStatus
    action: WorkflowAction
    to_state: ApplicationStatus | None
    capability: Capability
    log_kind: ActionKind
    guards: tuple[Guard, ...] = ()
    opens_correction: bool = False
    excluded_kinds: frozenset[ApplicationKind] = frozenset()
    only_kinds: frozenset[ApplicationKind] | None = None
    event: NotificationEvent | None = None

    @property
    def changes_status(self) -> bool:
        return self.to_state is None or self.to_state != self.from_state

    @property
    def is_system(self) -> bool:
        return self.capability is Capability.SYSTEM_TRANSITION

    def applies_to(self, kind: ApplicationKind) -> bool:
        if kind in self.excluded_kinds:
            return False
        return self.only_kinds is None or kind in self.only_kinds


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for the application lifecycle.

    Contract: frozen; ``transitions`` reference only states in ``states``.
    Guarantees: ``initial_state`` is a member of ``states``.
    """
    name: str
    description: str
    initial_state: ApplicationStatus
    states: tuple[ApplicationStatus, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[ApplicationStatus, ...] = ()

    def __post_init__(self) -> None:
        if self.initial_state not in self.states:
            raise ValueError(f"Initial state {self.initial_state} not in states")
        seen: set[tuple[ApplicationStatus, WorkflowAction]] = set()
        for t in self.transitions:
            if t.from_state not in self.states:
                raise ValueError(f"Unknown from_state {t.from_state} on {t.action}")
            if t.to_state is not None and t.to_state not in self.states:
                raise ValueError(f"Unknown to_state {t.to_state} on {t.action}")
            if t.to_state is None and t.from_state not in CORRECTION_STATUSES:
                raise ValueError(
                    f"Return edge {t.action} must start from a correction status"
                )
            if t.from_state in self.terminal_states and not t.is_system:
                raise ValueError(
                    f"Human action {t.action} leaves terminal status {t.from_state}"
                )
            key = (t.from_state, t.action)
            if key in seen:
                raise ValueError(f"Duplicate edge {key}")
            seen.add(key)

    def find(
        self, from_state: ApplicationStatus, action: WorkflowAction
    ) -> Transition | None:
        for t in self.transitions:
            if t.from_state == from_state and t.action == action:
                return t
        return None

    def actions_from(self, state: ApplicationStatus) -> tuple[WorkflowAction, ...]:
        return tuple(t.action for t in self.transitions if t.from_state == state)

    def successors(self, state: ApplicationStatus) -> frozenset[ApplicationStatus]:
        """Statuses directly reachable from ``state``.

        Return edges can reach any status that has an edge into the
        correction status, so they are expanded here.
        """
        out: set[ApplicationStatus] = set()
        for t in self.transitions:
            if t.from_state != state:
                continue
            if t.to_state is None:
                out |= {
                    o.from_state for o in self.transitions
                    if o.opens_correction and o.to_state == state
                }
            else:
                out.add(t.to_state)
        return frozenset(out)

    def reachable_states(self) -> frozenset[ApplicationStatus]:
        seen = {self.initial_state}
        frontier = [self.initial_state]
        while frontier:
            state = frontier.pop()
            for nxt in self.successors(state):
                if nxt not in seen:
                    seen.add(nxt)
                    frontier.append(nxt)
        return frozenset(seen)


S = ApplicationStatus
A = WorkflowAction
K = ActionKind
C = Capability

_NO_INSPECTION = INSPECTION_EXEMPT_KINDS
_CORRECTION_ORIGINS = (
    S.SUBMITTED,
    S.UNDER_SCRUTINY,
    S.FORWARDED_TO_DTDO,
    S.INSPECTION_COMPLETED,
)

# Where an officer may pick up a legacy certificate for verification.
_LEGACY_VERIFY_ORIGINS = (
    S.SUBMITTED,
    S.UNDER_SCRUTINY,
    S.FORWARDED_TO_DTDO,
)


def _build_transitions() -> tuple[Transition, ...]:
    edges: list[Transition] = [
        Transition(
            S.DRAFT, A.SUBMIT, S.SUBMITTED, C.APPLICATION_SUBMIT, K.SUBMITTED,
            guards=(REQUIRED_DOCUMENTS,),
            event=NotificationEvent.APPLICATION_SUBMITTED,
        ),
        Transition(
            S.SUBMITTED, A.START_SCRUTINY, S.UNDER_SCRUTINY,
            C.APPLICATION_SCRUTINIZE, K.SCRUTINY_STARTED,
        ),
        Transition(
            S.UNDER_SCRUTINY, A.VERIFY_DOCUMENT, S.UNDER_SCRUTINY,
            C.APPLICATION_SCRUTINIZE, K.DOCUMENT_VERIFIED,
        ),
        Transition(
            S.UNDER_SCRUTINY, A.FORWARD_TO_DTDO, S.FORWARDED_TO_DTDO,
            C.APPLICATION_SCRUTINIZE, K.FORWARDED_TO_DTDO,
            guards=(REMARKS_PROVIDED,),
            event=NotificationEvent.FORWARDED_TO_DTDO,
        ),
        Transition(
            S.FORWARDED_TO_DTDO, A.SCHEDULE_INSPECTION, S.INSPECTION_SCHEDULED,
            C.INSPECTION_SCHEDULE, K.SITE_INSPECTION_SCHEDULED,
            excluded_kinds=_NO_INSPECTION,
            event=NotificationEvent.INSPECTION_SCHEDULED,
        ),
        Transition(
            S.INSPECTION_COMPLETED, A.SCHEDULE_INSPECTION, S.INSPECTION_SCHEDULED,
            C.INSPECTION_SCHEDULE, K.SITE_INSPECTION_SCHEDULED,
            excluded_kinds=_NO_INSPECTION,
            event=NotificationEvent.INSPECTION_SCHEDULED,
        ),
        Transition(
            S.INSPECTION_SCHEDULED, A.ACKNOWLEDGE_INSPECTION, S.INSPECTION_SCHEDULED,
            C.INSPECTION_ACKNOWLEDGE, K.INSPECTION_ACKNOWLEDGED,
        ),
        Transition(
            S.INSPECTION_SCHEDULED, A.START_INSPECTION, S.INSPECTION_SCHEDULED,
            C.INSPECTION_CONDUCT, K.INSPECTION_STARTED,
        ),
        Transition(
            S.INSPECTION_SCHEDULED, A.COMPLETE_INSPECTION, S.INSPECTION_COMPLETED,
            C.INSPECTION_CONDUCT, K.INSPECTION_COMPLETED,
        ),
        Transition(
            S.INSPECTION_COMPLETED, A.RAISE_OBJECTIONS, S.OBJECTION_RAISED,
            C.APPLICATION_DECIDE, K.OBJECTION_RAISED,
            guards=(REMARKS_PROVIDED,),
            opens_correction=True,
            event=NotificationEvent.OBJECTION_RAISED,
        ),
        Transition(
            S.INSPECTION_COMPLETED, A.VERIFY_FOR_PAYMENT, S.VERIFIED_FOR_PAYMENT,
            C.APPLICATION_DECIDE, K.VERIFIED_FOR_PAYMENT,
            guards=(SATISFACTORY_INSPECTION,),
            excluded_kinds=_NO_INSPECTION,
            event=NotificationEvent.VERIFIED_FOR_PAYMENT,
        ),
        Transition(
            S.VERIFIED_FOR_PAYMENT, A.APPROVE, S.APPROVED,
            C.CERTIFICATE_ISSUE, K.APPROVED,
            guards=(SATISFACTORY_INSPECTION, PAYMENT_CONFIRMED),
            event=NotificationEvent.APPROVED,
        ),
        Transition(
            S.FORWARDED_TO_DTDO, A.APPROVE_CANCELLATION, S.CERTIFICATE_CANCELLED,
            C.APPLICATION_DECIDE, K.CANCELLATION_APPROVED,
            guards=(REMARKS_PROVIDED,),
            only_kinds=_NO_INSPECTION,
            event=NotificationEvent.CERTIFICATE_CANCELLED,
        ),
    ]

    for origin in _LEGACY_VERIFY_ORIGINS:
        edges.append(Transition(
            origin, A.VERIFY_LEGACY, S.APPROVED,
            C.LEGACY_VERIFY, K.LEGACY_RC_VERIFIED,
            guards=(REMARKS_PROVIDED,),
            only_kinds=LEGACY_KINDS,
            event=NotificationEvent.APPROVED,
        ))

    for origin in (S.SUBMITTED, S.UNDER_SCRUTINY):
        edges.append(Transition(
            origin, A.SEND_BACK, S.SENT_BACK_FOR_CORRECTIONS,
            C.APPLICATION_SCRUTINIZE, K.SENT_BACK_FOR_CORRECTIONS,
            guards=(REMARKS_PROVIDED,),
            opens_correction=True,
            event=NotificationEvent.SENT_BACK_FOR_CORRECTIONS,
        ))

    for origin in (S.FORWARDED_TO_DTDO, S.INSPECTION_COMPLETED):
        edges.append(Transition(
            origin, A.REVERT, S.REVERTED_BY_DTDO,
            C.APPLICATION_DECIDE, K.REVERTED_BY_DTDO,
            guards=(REMARKS_PROVIDED,),
            opens_correction=True,
            event=NotificationEvent.SENT_BACK_FOR_CORRECTIONS,
        ))
        edges.append(Transition(
            origin, A.REJECT, S.REJECTED,
            C.APPLICATION_DECIDE, K.REJECTED,
            guards=(REMARKS_PROVIDED,),
            event=NotificationEvent.REJECTED,
        ))

    for origin in _CORRECTION_ORIGINS:
        edges.append(Transition(
            origin, A.AUTO_REJECT, S.REJECTED,
            C.SYSTEM_TRANSITION, K.AUTO_REJECTED,
            event=NotificationEvent.REJECTED,
        ))

    for correction in sorted(CORRECTION_STATUSES, key=lambda s: s.value):
        edges.append(Transition(
            correction, A.RESUBMIT_CORRECTIONS, None,
            C.APPLICATION_SUBMIT, K.CORRECTION_RESUBMITTED,
            event=NotificationEvent.CORRECTION_RESUBMITTED,
        ))

    edges.append(Transition(
        S.APPROVED, A.SUPERSEDE, S.SUPERSEDED,
        C.SYSTEM_TRANSITION, K.SUPERSEDED,
    ))
    edges.append(Transition(
        S.APPROVED, A.REVOKE_CERTIFICATE, S.CERTIFICATE_CANCELLED,
        C.SYSTEM_TRANSITION, K.CERTIFICATE_REVOKED,
        event=NotificationEvent.CERTIFICATE_CANCELLED,
    ))
    return tuple(edges)


REGISTRATION_WORKFLOW = Workflow(
    name="registration",
    description="Homestay and tourism unit registration lifecycle",
    initial_state=S.DRAFT,
    states=tuple(ApplicationStatus),
    transitions=_build_transitions(),
    terminal_states=tuple(sorted(TERMINAL_STATUSES, key=lambda s: s.value)),
)

# Officer reverts count toward the auto-reject limit.  Objections raised
# from an inspection report open a correction without counting.
REVERT_ACTIONS: frozenset[WorkflowAction] = frozenset({
    A.SEND_BACK,
    A.REVERT,
})
