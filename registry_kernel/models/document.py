"""
Module: registry_kernel.models.document
Responsibility: Structured document rows attached to an application.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import BigInteger, Boolean, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from registry_kernel.db.base import Base, UUIDString
from registry_kernel.domain.documents import StructuredDocument


class Document(Base):
    __tablename__ = "documents"

    application_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("applications.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    document_type: Mapped[str] = mapped_column(String(60), nullable=False)
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    file_path: Mapped[str] = mapped_column(Text, nullable=False)
    file_size: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    mime_type: Mapped[str] = mapped_column(String(100), nullable=False)
    is_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    verified_by: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    # "upload" or "inline_sync"
    source: Mapped[str] = mapped_column(String(20), nullable=False, default="upload")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def to_ref(self) -> StructuredDocument:
        return StructuredDocument(
            document_id=self.id,
            document_type=self.document_type,
            file_name=self.file_name,
            file_path=self.file_path,
            file_size=self.file_size,
            mime_type=self.mime_type,
            is_verified=self.is_verified,
        )
