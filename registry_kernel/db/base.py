"""
Module: registry_kernel.db.base
Responsibility: declarative base, the portable UUID column type and the
    TrackedBase mixin for rows that are edited over time.
Architecture position: Kernel > DB.  Lowest import target in the kernel;
    every model file imports from here and nothing here imports back.

Invariants enforced:
    - Row identity is an opaque uuid4.  Human-readable application and
      certificate numbers are separate allocated columns.
    - ``int`` columns are BIGINT, so serials and counters never overflow.
    - Timestamps are declared timezone-aware.  SQLite hands them back
      naive; readers normalise with ``domain.clock.ensure_utc``.
"""

from datetime import date, datetime
from typing import ClassVar
from uuid import UUID, uuid4

from sqlalchemy import BigInteger, Date, DateTime, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """UUID stored as its 36-character text form (same on SQLite and PostgreSQL)."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else UUID(value)


class Base(DeclarativeBase):
    type_annotation_map: ClassVar[dict] = {
        UUID: UUIDString(),
        datetime: DateTime(timezone=True),
        date: Date(),
        int: BigInteger,
    }

    id: Mapped[UUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)


class TrackedBase(Base):
    """
    Mixin for mutable rows: who created the row and who last touched it.

    Services stamp ``updated_at`` from their injected clock so tests can
    age rows; the server defaults only cover rows written outside them.
    ``updated_by_id`` stays NULL for system-driven changes.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(),
    )
    created_by_id: Mapped[UUID]
    updated_by_id: Mapped[UUID | None]
