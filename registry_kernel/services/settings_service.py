"""
SettingsService -- operator-controlled system settings.

Responsibility:
    Reads and writes rows of ``system_settings``.  The serial allocator
    reads its seeds here (``application_serial_seed``,
    ``certificate_serial_seed``) so operators can start a year or a
    migration at a chosen serial without touching code.

Failure modes:
    - ValueError from ``set_serial_seed`` when the seed is below 1.

Audit relevance:
    Every write is logged as ``system_setting_updated`` with the actor.
"""

from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from registry_kernel.domain.clock import Clock
from registry_kernel.logging_config import get_logger
from registry_kernel.models.system_setting import SystemSetting
from registry_kernel.services.base import BaseService

logger = get_logger("services.settings")


class SettingsService(BaseService[SystemSetting]):
    """Key/value settings with typed accessors for serial seeds."""

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session, clock)

    def get_value(self, key: str, default: Any = None) -> Any:
        row = self.session.execute(
            select(SystemSetting).where(SystemSetting.key == key)
        ).scalar_one_or_none()
        if row is None or row.value is None:
            return default
        return row.value

    def set_value(
        self,
        key: str,
        value: Any,
        actor_id: UUID | None,
        description: str | None = None,
    ) -> SystemSetting:
        row = self.session.execute(
            select(SystemSetting).where(SystemSetting.key == key).with_for_update()
        ).scalar_one_or_none()
        previous = row.value if row is not None else None
        if row is None:
            row = SystemSetting(key=key)
            self.session.add(row)
        row.value = value
        row.updated_by = actor_id
        row.updated_at = self._clock.now()
        if description is not None:
            row.description = description
        self.session.flush()

        logger.info(
            "system_setting_updated",
            extra={
                "setting_key": key,
                "previous_value": previous,
                "new_value": value,
                "actor_id": str(actor_id) if actor_id else None,
            },
        )
        return row

    def serial_seed(self, scope) -> int | None:
        """Configured seed for ``scope``, or None when unset or unusable."""
        raw = self.get_value(scope.setting_key)
        if raw is None:
            return None
        try:
            seed = int(raw)
        except (TypeError, ValueError):
            logger.warning(
                "serial_seed_unparseable",
                extra={"setting_key": scope.setting_key, "raw_value": raw},
            )
            return None
        return seed if seed > 0 else None

    def set_serial_seed(self, scope, seed: int, actor_id: UUID) -> SystemSetting:
        """
        Make the next allocation in ``scope`` start at ``seed`` or above.

        Preconditions: ``seed >= 1``.
        Postconditions: the allocator's baseline is at least ``seed - 1``.
            A seed below existing serials has no effect on allocation.
        """
        if int(seed) < 1:
            raise ValueError(f"Serial seed must be >= 1, got {seed}")
        return self.set_value(
            scope.setting_key,
            int(seed),
            actor_id,
            description=f"First serial for {scope.name} numbers",
        )
