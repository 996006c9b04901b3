"""
ORM-level immutability enforcement for the registration records.

SQLAlchemy fires mapper events before UPDATE/DELETE statements reach the
database.  The listeners here intercept them and raise
ImmutabilityViolationError, which aborts the flush:

    session.flush()
         |
         v
    [before_update] --> _check_*_update() --> ImmutabilityViolationError
         |
    [before_delete] --> _check_*_delete() --> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

Protected entities
------------------

Entity              | When immutable                 | Notes
--------------------|--------------------------------|-------------------------------
ApplicationAction   | Always (from creation)         | Removed only with its draft by
                    |                                | a bulk delete, never ORM delete
InspectionReport    | Always                         | One per order
Certificate         | Always                         | Revocation lives on the parent
DraftPurgeRecord    | Always                         | The only trace of a purged draft
Application         | Identity fields after INSERT   | number, serial, kind, owner,
                    |                                | parent

Bulk ``delete()`` statements bypass mapper events.  That is the one path
ApplicationStore.delete_draft uses to remove a draft's action rows.

Usage:

    from registry_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # once at startup

Tests that must violate a rule on purpose can call
``unregister_immutability_listeners()`` and register again afterwards.
"""

from sqlalchemy import event, inspect

from registry_kernel.exceptions import ImmutabilityViolationError
from registry_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

APPLICATION_IDENTITY_FIELDS = frozenset({
    "application_number",
    "application_serial",
    "kind",
    "owner_user_id",
    "parent_application_id",
})


def _block(entity_type: str, target, operation: str, reason: str) -> None:
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": operation,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=reason,
    )


def _check_action_update(mapper, connection, target):
    _block("ApplicationAction", target, "UPDATE", "Action log entries are append-only")


def _check_action_delete(mapper, connection, target):
    _block("ApplicationAction", target, "DELETE", "Action log entries cannot be deleted")


def _check_report_update(mapper, connection, target):
    _block("InspectionReport", target, "UPDATE", "Submitted inspection reports are final")


def _check_report_delete(mapper, connection, target):
    _block("InspectionReport", target, "DELETE", "Submitted inspection reports cannot be deleted")


def _check_certificate_update(mapper, connection, target):
    _block("Certificate", target, "UPDATE", "Issued certificates cannot be modified")


def _check_certificate_delete(mapper, connection, target):
    _block("Certificate", target, "DELETE", "Issued certificates cannot be deleted")


def _check_purge_record_update(mapper, connection, target):
    _block("DraftPurgeRecord", target, "UPDATE", "Purge records cannot be modified")


def _check_purge_record_delete(mapper, connection, target):
    _block("DraftPurgeRecord", target, "DELETE", "Purge records cannot be deleted")


def _check_application_identity(mapper, connection, target):
    """Number, serial, kind, owner and parent are fixed at creation."""
    state = inspect(target)
    changed = sorted(
        name for name in APPLICATION_IDENTITY_FIELDS
        if state.attrs[name].history.deleted
    )
    if changed:
        _block(
            "Application",
            target,
            "UPDATE",
            f"Identity fields cannot change after creation: {', '.join(changed)}",
        )


def _listener_table():
    from registry_kernel.models.application import Application
    from registry_kernel.models.application_action import ApplicationAction
    from registry_kernel.models.certificate import Certificate
    from registry_kernel.models.draft_purge import DraftPurgeRecord
    from registry_kernel.models.inspection import InspectionReport

    return [
        (ApplicationAction, "before_update", _check_action_update),
        (ApplicationAction, "before_delete", _check_action_delete),
        (InspectionReport, "before_update", _check_report_update),
        (InspectionReport, "before_delete", _check_report_delete),
        (Certificate, "before_update", _check_certificate_update),
        (Certificate, "before_delete", _check_certificate_delete),
        (DraftPurgeRecord, "before_update", _check_purge_record_update),
        (DraftPurgeRecord, "before_delete", _check_purge_record_delete),
        (Application, "before_update", _check_application_identity),
    ]


def register_immutability_listeners():
    """
    Register all immutability listeners.  Safe to call more than once.

    Call after the models are importable and before any database
    operations begin.
    """
    for target, event_name, listener_fn in _listener_table():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def _safe_remove_listener(target, event_name, listener_fn):
    """Remove an event listener, ignoring it if it was never registered."""
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove the immutability listeners.

    WARNING: Only use this in tests that must violate a rule on purpose.
    """
    for target, event_name, listener_fn in _listener_table():
        _safe_remove_listener(target, event_name, listener_fn)
