"""
Module: registry_kernel.models.draft_purge
Responsibility: Audit record of an operator purging an abandoned draft.

The draft and its action log are gone after a purge; this row is what
remains.  Immutable from creation (db/immutability.py).
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from registry_kernel.db.base import Base, UUIDString


class DraftPurgeRecord(Base):
    __tablename__ = "draft_purge_records"

    application_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False, unique=True)
    application_number: Mapped[str] = mapped_column(String(40), nullable=False)
    owner_user_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    kind: Mapped[str] = mapped_column(String(30), nullable=False)
    draft_created_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    draft_updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    purged_by: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    purged_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
