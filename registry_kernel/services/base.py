"""
BaseService -- abstract base for the kernel's write-side services.

Responsibility:
    Common constructor and session-handling contract.  Every concrete
    service receives the caller's SQLAlchemy ``Session`` and persists with
    ``session.flush()`` -- never ``session.commit()``.

Invariants enforced:
    Services flush within the caller's transaction and never commit or
    roll back the outer transaction.  They may open savepoints
    (``session.begin_nested()``) to isolate a retry or a transition.

Failure modes:
    - A subclass that commits breaks the atomicity of a transition and its
      action log row.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from registry_kernel.db.base import Base
from registry_kernel.domain.clock import Clock, SystemClock

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for kernel services.

    Contract:
        Accepts a ``Session`` and an optional ``Clock``.  Timestamps the
        service writes come from the clock, never from ``datetime.now()``.

    Non-goals:
        - Does NOT manage the transaction lifecycle.
        - Read-only queries belong in ``registry_kernel/selectors/``.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self._clock = clock or SystemClock()

    @property
    def clock(self) -> Clock:
        return self._clock
