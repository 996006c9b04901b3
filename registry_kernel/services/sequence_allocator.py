"""
SequenceAllocator -- collision-safe serial allocation for human-readable numbers.

Responsibility:
    Allocates the serial embedded in application numbers and certificate
    numbers.  The serial is written together with the row that carries
    it: the caller supplies ``build_row(serial)`` and the allocator inserts
    the row inside a savepoint, retrying with the next candidate when the
    database reports a duplicate.

Architecture position:
    Kernel > Services.  Called by ApplicationStore (APPLICATION_SCOPE) and
    by the certificate issuer (CERTIFICATE_SCOPE).

Invariants enforced:
    - Number assigned once, globally unique: the UNIQUE constraints on the
      serial and number columns are the arbiter.  The max-scan only picks
      a starting candidate; it is never trusted under concurrency.
    - Monotonic per scope under normal operation.  Gaps are allowed.
    - Seed floor: the first candidate is at least the configured seed.

Failure modes:
    - AllocationExhaustedError after ``max_attempts`` collisions (logged
      at CRITICAL; systemic contention or corrupted numbering data).
    - Integrity errors that do not name the scope's columns propagate
      unchanged so callers can translate them (e.g. the active-slot guard).

Audit relevance:
    Allocation is logged at DEBUG with scope and serial; each collision
    retry at INFO.
"""

from dataclasses import dataclass
from typing import Callable, TypeVar

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from registry_kernel.db.base import Base
from registry_kernel.domain.clock import Clock
from registry_kernel.domain.policies import AllocationPolicy
from registry_kernel.exceptions import AllocationExhaustedError
from registry_kernel.logging_config import get_logger
from registry_kernel.models.application import Application
from registry_kernel.models.certificate import Certificate
from registry_kernel.services.base import BaseService
from registry_kernel.services.settings_service import SettingsService

logger = get_logger("services.sequence")

RowType = TypeVar("RowType", bound=Base)


@dataclass(frozen=True)
class SerialScope:
    """
    One numbering space.

    ``collision_markers`` are substrings that identify the scope's unique
    constraints in a driver error message.  SQLite names the columns
    (``applications.application_serial``); PostgreSQL names the constraint
    (``uq_applications_application_serial``).
    """

    name: str
    model: type
    column: str
    setting_key: str
    collision_markers: tuple[str, ...]

    def is_collision(self, exc: IntegrityError) -> bool:
        message = str(exc.orig) if exc.orig is not None else str(exc)
        return any(marker in message for marker in self.collision_markers)


APPLICATION_SCOPE = SerialScope(
    name="application",
    model=Application,
    column="application_serial",
    setting_key="application_serial_seed",
    collision_markers=("application_serial", "application_number"),
)

CERTIFICATE_SCOPE = SerialScope(
    name="certificate",
    model=Certificate,
    column="serial",
    setting_key="certificate_serial_seed",
    collision_markers=("certificates.serial", "uq_certificates_serial", "certificate_number"),
)


class SequenceAllocator(BaseService[Base]):
    """
    Allocate-and-insert with retry on collision.

    Contract:
        ``insert_with_serial(scope, build_row)`` returns the persisted row
        whose serial is unique in ``scope``.  ``build_row`` must be pure:
        it may be called once per attempt.

    Guarantees:
        - A failed attempt leaves the session as it was before the
          attempt; only the savepoint is rolled back.
        - At most ``policy.max_attempts`` inserts are tried.

    Non-goals:
        - Does NOT guarantee gap-free numbering.
        - Does NOT commit.
    """

    def __init__(
        self,
        session: Session,
        settings: SettingsService | None = None,
        policy: AllocationPolicy | None = None,
        clock: Clock | None = None,
    ):
        super().__init__(session, clock)
        self._settings = settings or SettingsService(session, clock)
        self._policy = policy or AllocationPolicy()

    @property
    def policy(self) -> AllocationPolicy:
        return self._policy

    def baseline(self, scope: SerialScope) -> int:
        """Highest serial in use, floored at ``seed - 1``."""
        column = getattr(scope.model, scope.column)
        current_max = self.session.execute(select(func.max(column))).scalar() or 0
        seed = self._settings.serial_seed(scope)
        if seed is not None:
            return max(int(current_max), seed - 1)
        return int(current_max)

    def peek_next(self, scope: SerialScope) -> int:
        """The candidate the next allocation would try first."""
        return self.baseline(scope) + 1

    def insert_with_serial(
        self,
        scope: SerialScope,
        build_row: Callable[[int], RowType],
    ) -> RowType:
        """
        Build, insert and flush a row carrying a fresh serial.

        Preconditions:
            - The caller is inside a transaction.
            - ``build_row(serial)`` returns a new, unattached ORM object.

        Raises:
            AllocationExhaustedError: every attempt collided.
            IntegrityError: a constraint unrelated to ``scope`` failed.
        """
        # Pending work is flushed outside the savepoint so a rolled-back
        # attempt cannot take it along.
        self.session.flush()

        candidate = self.baseline(scope) + 1
        max_attempts = self._policy.max_attempts

        for attempt in range(1, max_attempts + 1):
            row = build_row(candidate)
            try:
                with self.session.begin_nested():
                    self.session.add(row)
                    self.session.flush()
            except IntegrityError as exc:
                if not scope.is_collision(exc):
                    raise
                logger.info(
                    "serial_collision_retry",
                    extra={
                        "scope": scope.name,
                        "candidate": candidate,
                        "attempt": attempt,
                    },
                )
                candidate += 1
                continue

            logger.debug(
                "serial_allocated",
                extra={"scope": scope.name, "serial": candidate, "attempt": attempt},
            )
            return row

        logger.critical(
            "serial_allocation_exhausted",
            extra={
                "scope": scope.name,
                "attempts": max_attempts,
                "last_candidate": candidate - 1,
            },
        )
        raise AllocationExhaustedError(scope.name, max_attempts, candidate - 1)
