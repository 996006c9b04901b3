"""
Typed Exception Hierarchy for the Registration Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

The workflow is driven by officers and applicants through an API layer
that has to tell them exactly what went wrong.  Generic exceptions like
ValueError force callers to parse messages, which is fragile and
untestable.  Every error raised by the kernel therefore:

  1. Has a TYPED exception class (catch by type, not message)
  2. Has a CODE attribute (machine-readable, API-safe)
  3. Has an HTTP_STATUS attribute (what the API layer answers with)
  4. Carries structured DATA (not just a message string)

Example - WRONG way to handle errors:
    try:
        store.create_application(...)
    except Exception as e:
        if "already exists" in str(e):  # FRAGILE
            ...

Example - RIGHT way:
    try:
        store.create_application(...)
    except DuplicateActiveDraftError as e:
        return 409, e.conflict_payload()

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    RegistryKernelError (base)
    |
    +-- WorkflowError
    |   +-- InvalidTransitionError
    |   |   +-- ActionNotAllowedError
    |   |   +-- UnauthorizedActorError
    |   |   +-- ProtectedFieldError
    |   +-- PreconditionNotMetError
    |   |   +-- InvalidInspectionReportError
    |   +-- SideEffectFailedError
    |
    +-- ApplicationError
    |   +-- ApplicationNotFoundError
    |   +-- DuplicateActiveDraftError
    |
    +-- InspectionError
    |   +-- DuplicateActiveOrderError
    |   +-- InspectionOrderNotFoundError
    |   +-- ReportAlreadySubmittedError
    |
    +-- CertificateError
    |   +-- CertificateNotFoundError
    |
    +-- AllocationError
    |   +-- AllocationExhaustedError
    |
    +-- ConcurrencyError
    |   +-- OptimisticLockError
    |
    +-- ImmutabilityError
    |   +-- ImmutabilityViolationError
    |
    +-- ConfigurationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                        | HTTP | When Raised
-------------|-----------------------------|------|------------------------------
Workflow     | INVALID_TRANSITION          | 400  | No edge / actor not permitted
             | ACTION_NOT_ALLOWED          | 400  | Current state has no edge
             | UNAUTHORIZED_ACTOR          | 400  | Role, owner or district check
             | PROTECTED_FIELD             | 400  | Content edit touches status etc.
             | PRECONDITION_NOT_MET        | 422  | Guard failed (docs, report, pay)
             | INVALID_INSPECTION_REPORT   | 422  | Report dates / override invalid
             | SIDE_EFFECT_FAILED          | 500  | Side effect failed, rolled back
-------------|-----------------------------|------|------------------------------
Application  | APPLICATION_NOT_FOUND       | 404  | Unknown application id
             | DUPLICATE_ACTIVE_DRAFT      | 409  | Active application exists
-------------|-----------------------------|------|------------------------------
Inspection   | DUPLICATE_ACTIVE_ORDER      | 409  | Outstanding order exists
             | INSPECTION_ORDER_NOT_FOUND  | 404  | Unknown order id
             | REPORT_ALREADY_SUBMITTED    | 409  | Second report for an order
-------------|-----------------------------|------|------------------------------
Certificate  | CERTIFICATE_NOT_FOUND       | 404  | No certificate for application
-------------|-----------------------------|------|------------------------------
Allocation   | ALLOCATION_EXHAUSTED        | 503  | Serial retry budget exceeded
-------------|-----------------------------|------|------------------------------
Concurrency  | CONCURRENT_MODIFICATION     | 409  | Stale version on transition
-------------|-----------------------------|------|------------------------------
Immutability | IMMUTABILITY_VIOLATION      | 500  | Modifying an append-only record
-------------|-----------------------------|------|------------------------------
Config       | CONFIGURATION_ERROR         | 500  | Invalid configuration set

===============================================================================
HANDLING PATTERNS
===============================================================================

1. CORRECTION ERRORS CARRY WHAT TO FIX:

    result = engine.apply(app_id, WorkflowAction.SUBMIT, owner_id)
    if not result.success and result.issues_found:
        show_owner(result.correction_notes, result.issues_found)

2. IDEMPOTENT RETRIES ARE NOT ERRORS:

    Re-sending the same (application, action, idempotency_key) returns a
    successful TransitionResult with replayed=True.

3. ALLOCATION EXHAUSTION IS FATAL:

    except AllocationExhaustedError as e:
        page_operators(e.scope, e.attempts)

===============================================================================
"""

from typing import Any


class RegistryKernelError(Exception):
    """
    Base exception for all registration kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification and an `http_status` for the API layer.
    """

    code: str = "REGISTRY_KERNEL_ERROR"
    http_status: int = 500


# Workflow-related exceptions


class WorkflowError(RegistryKernelError):
    """Base exception for state machine errors."""

    code: str = "WORKFLOW_ERROR"
    http_status: int = 400


class InvalidTransitionError(WorkflowError):
    """Action not permitted from the current state or by the current actor.

    When the application sits in a correction state the error carries the
    outstanding ``correction_notes`` and ``issues_found`` so the owner can
    see what has to be fixed.
    """

    code: str = "INVALID_TRANSITION"
    http_status: int = 400

    def __init__(
        self,
        application_id: str,
        current_status: str,
        action: str,
        reason: str,
        issues_found: list[str] | None = None,
        correction_notes: str | None = None,
    ):
        self.application_id = application_id
        self.current_status = current_status
        self.action = action
        self.reason = reason
        self.issues_found = list(issues_found or [])
        self.correction_notes = correction_notes
        super().__init__(
            f"Cannot apply '{action}' to application {application_id} "
            f"in status '{current_status}': {reason}"
        )


class ActionNotAllowedError(InvalidTransitionError):
    """The current state has no edge for the requested action."""

    code: str = "ACTION_NOT_ALLOWED"


class UnauthorizedActorError(InvalidTransitionError):
    """The actor's roles, ownership or district do not permit the action."""

    code: str = "UNAUTHORIZED_ACTOR"

    def __init__(
        self,
        application_id: str,
        current_status: str,
        action: str,
        actor_id: str,
        reason: str,
    ):
        self.actor_id = actor_id
        super().__init__(application_id, current_status, action, reason)


class ProtectedFieldError(InvalidTransitionError):
    """A content edit tried to write a field only the workflow may set."""

    code: str = "PROTECTED_FIELD"

    def __init__(self, application_id: str, current_status: str, fields: list[str]):
        self.fields = sorted(fields)
        super().__init__(
            application_id,
            current_status,
            "update_draft",
            f"Fields are managed by the workflow: {', '.join(self.fields)}",
        )


class PreconditionNotMetError(WorkflowError):
    """A guard on the transition was not satisfied."""

    code: str = "PRECONDITION_NOT_MET"
    http_status: int = 422

    def __init__(self, application_id: str, precondition: str, reason: str):
        self.application_id = application_id
        self.precondition = precondition
        self.reason = reason
        super().__init__(
            f"Precondition '{precondition}' not met for application "
            f"{application_id}: {reason}"
        )


class InvalidInspectionReportError(PreconditionNotMetError):
    """Inspection report dates or early-inspection override are invalid."""

    code: str = "INVALID_INSPECTION_REPORT"

    def __init__(self, application_id: str, order_id: str, reason: str):
        self.order_id = order_id
        super().__init__(application_id, "valid_inspection_report", reason)


class SideEffectFailedError(WorkflowError):
    """A side effect failed inside a transition; the transition was rolled back."""

    code: str = "SIDE_EFFECT_FAILED"
    http_status: int = 500

    def __init__(self, application_id: str, action: str, side_effect: str, cause: str):
        self.application_id = application_id
        self.action = action
        self.side_effect = side_effect
        self.cause = cause
        super().__init__(
            f"Side effect '{side_effect}' failed while applying '{action}' "
            f"to application {application_id}: {cause}"
        )


# Application-related exceptions


class ApplicationError(RegistryKernelError):
    """Base exception for application record errors."""

    code: str = "APPLICATION_ERROR"
    http_status: int = 400


class ApplicationNotFoundError(ApplicationError):
    """Application with given ID was not found."""

    code: str = "APPLICATION_NOT_FOUND"
    http_status: int = 404

    def __init__(self, application_id: str):
        self.application_id = application_id
        super().__init__(f"Application not found: {application_id}")


class DuplicateActiveDraftError(ApplicationError):
    """An active application already exists for (owner, kind, parent)."""

    code: str = "DUPLICATE_ACTIVE_DRAFT"
    http_status: int = 409

    def __init__(self, existing_application_id: str, kind: str, status: str):
        self.existing_application_id = existing_application_id
        self.kind = kind
        self.status = status
        super().__init__(
            f"An active {kind} application already exists "
            f"({existing_application_id}, status '{status}')"
        )

    def conflict_payload(self) -> dict[str, str]:
        """The resume-or-discard payload the client depends on."""
        return {
            "existingApplicationId": self.existing_application_id,
            "kind": self.kind,
            "status": self.status,
        }


# Inspection-related exceptions


class InspectionError(RegistryKernelError):
    """Base exception for inspection errors."""

    code: str = "INSPECTION_ERROR"
    http_status: int = 400


class DuplicateActiveOrderError(InspectionError):
    """An inspection order is still outstanding for the application."""

    code: str = "DUPLICATE_ACTIVE_ORDER"
    http_status: int = 409

    def __init__(self, application_id: str, existing_order_id: str, order_status: str):
        self.application_id = application_id
        self.existing_order_id = existing_order_id
        self.order_status = order_status
        super().__init__(
            f"Application {application_id} already has an active inspection "
            f"order {existing_order_id} ({order_status})"
        )


class InspectionOrderNotFoundError(InspectionError):
    """Inspection order with given ID was not found."""

    code: str = "INSPECTION_ORDER_NOT_FOUND"
    http_status: int = 404

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Inspection order not found: {order_id}")


class ReportAlreadySubmittedError(InspectionError):
    """A report already exists for the inspection order."""

    code: str = "REPORT_ALREADY_SUBMITTED"
    http_status: int = 409

    def __init__(self, order_id: str, report_id: str):
        self.order_id = order_id
        self.report_id = report_id
        super().__init__(
            f"Inspection order {order_id} already has report {report_id}"
        )


# Certificate-related exceptions


class CertificateError(RegistryKernelError):
    """Base exception for certificate errors."""

    code: str = "CERTIFICATE_ERROR"
    http_status: int = 400


class CertificateNotFoundError(CertificateError):
    """No certificate exists for the application."""

    code: str = "CERTIFICATE_NOT_FOUND"
    http_status: int = 404

    def __init__(self, application_id: str):
        self.application_id = application_id
        super().__init__(f"No certificate issued for application {application_id}")


# Allocation-related exceptions


class AllocationError(RegistryKernelError):
    """Base exception for serial allocation errors."""

    code: str = "ALLOCATION_ERROR"
    http_status: int = 503


class AllocationExhaustedError(AllocationError):
    """
    Serial allocation retry budget exceeded.

    Fatal: indicates systemic contention or corrupted numbering data.
    Operators must be alerted.
    """

    code: str = "ALLOCATION_EXHAUSTED"
    http_status: int = 503

    def __init__(self, scope: str, attempts: int, last_candidate: int):
        self.scope = scope
        self.attempts = attempts
        self.last_candidate = last_candidate
        super().__init__(
            f"Unable to allocate a unique {scope} serial after {attempts} "
            f"attempts (last candidate {last_candidate})"
        )


# Concurrency-related exceptions


class ConcurrencyError(RegistryKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"
    http_status: int = 409


class OptimisticLockError(ConcurrencyError):
    """Another transaction modified the entity first."""

    code: str = "CONCURRENT_MODIFICATION"
    http_status: int = 409

    def __init__(
        self,
        entity_type: str,
        entity_id: str,
        expected_version: int | None = None,
        actual_version: int | None = None,
    ):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            "entity was modified by another transaction"
        )


# Immutability-related exceptions


class ImmutabilityError(RegistryKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an immutable record.

    ApplicationAction, InspectionReport, Certificate and DraftPurgeRecord
    are immutable from creation.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


# Configuration exceptions


class ConfigurationError(RegistryKernelError):
    """The configuration set failed validation."""

    code: str = "CONFIGURATION_ERROR"

    def __init__(self, errors: list[str], source: str | None = None):
        self.errors = list(errors)
        self.source = source
        where = f" in {source}" if source else ""
        super().__init__(
            f"Invalid configuration{where}: " + "; ".join(self.errors)
        )


def http_status_for(error: BaseException) -> int:
    """HTTP status the API layer answers with for ``error``."""
    if isinstance(error, RegistryKernelError):
        return error.http_status
    return 500


def error_body(error: RegistryKernelError) -> dict[str, Any]:
    """Structured response body for a kernel error."""
    body: dict[str, Any] = {"code": error.code, "message": str(error)}
    if isinstance(error, DuplicateActiveDraftError):
        body.update(error.conflict_payload())
    if isinstance(error, InvalidTransitionError):
        if error.issues_found:
            body["issuesFound"] = list(error.issues_found)
        if error.correction_notes:
            body["correctionNotes"] = error.correction_notes
    return body
