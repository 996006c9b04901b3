"""
Notification dispatcher defaults.

The workflow engine hands each domain event to a ``NotificationDispatcher``
once the action that produced it has been applied.  Delivery (email, SMS,
templates) belongs to the integrating system; the defaults here only log
or collect events.
"""

from registry_kernel.domain.events import DomainEvent
from registry_kernel.logging_config import get_logger

logger = get_logger("services.notifications")


class LoggingNotificationDispatcher:
    """Writes every event to the structured log."""

    def dispatch(self, event: DomainEvent) -> None:
        logger.info(
            "notification_event",
            extra={
                "event_name": event.name.value,
                "entity_id": str(event.application_id),
                "application_number": event.application_number,
                "status": event.status,
            },
        )


class RecordingNotificationDispatcher:
    """Keeps dispatched events in memory, in order."""

    def __init__(self) -> None:
        self.events: list[DomainEvent] = []

    def dispatch(self, event: DomainEvent) -> None:
        self.events.append(event)

    def names(self) -> list[str]:
        return [e.name.value for e in self.events]

    def clear(self) -> None:
        self.events.clear()
