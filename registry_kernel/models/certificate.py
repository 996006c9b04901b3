"""
Module: registry_kernel.models.certificate
Responsibility: ORM persistence for registration certificates.

Invariants enforced:
    - One certificate per application: UNIQUE(application_id).
    - Certificate numbers and serials are UNIQUE; the serial allocator
      retries on collision.
    - Immutable from creation (db/immutability.py).  Cancellation and
      supersession are recorded on the parent application's status.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, BigInteger, Date, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from registry_kernel.db.base import Base, UUIDString
from registry_kernel.domain.clock import ensure_utc
from registry_kernel.domain.dtos import CertificateRecord


class Certificate(Base):
    """Registration certificate with a snapshot of the facts it certifies."""

    __tablename__ = "certificates"

    __table_args__ = (
        UniqueConstraint("application_id", name="uq_certificates_application"),
        UniqueConstraint("certificate_number", name="uq_certificates_certificate_number"),
        UniqueConstraint("serial", name="uq_certificates_serial"),
    )

    application_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("applications.id"), nullable=False,
    )
    certificate_number: Mapped[str] = mapped_column(String(40), nullable=False)
    serial: Mapped[int] = mapped_column(BigInteger, nullable=False)
    issued_by: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    issued_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    valid_from: Mapped[date] = mapped_column(Date, nullable=False)
    valid_upto: Mapped[date] = mapped_column(Date, nullable=False)
    property_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    owner_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    district: Mapped[str] = mapped_column(String(100), nullable=False)
    category: Mapped[str | None] = mapped_column(String(20), nullable=True)
    total_rooms: Mapped[int | None] = mapped_column(Integer, nullable=True)
    snapshot: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    def to_dto(self) -> CertificateRecord:
        return CertificateRecord(
            id=self.id,
            application_id=self.application_id,
            certificate_number=self.certificate_number,
            serial=self.serial,
            issued_by=self.issued_by,
            issued_at=ensure_utc(self.issued_at),
            valid_from=self.valid_from,
            valid_upto=self.valid_upto,
            property_name=self.property_name,
            owner_name=self.owner_name,
            district=self.district,
            category=self.category,
            total_rooms=self.total_rooms,
            snapshot=dict(self.snapshot or {}),
        )
