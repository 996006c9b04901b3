"""
Payment gateway default.

Reads the payment status the payment integration records on the
application (``ApplicationStore.record_payment``).  Only ``paid`` counts
as confirmed.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from registry_kernel.domain.statuses import PaymentStatus
from registry_kernel.models.application import Application


class ApplicationPaymentStatusGateway:

    def __init__(self, session: Session) -> None:
        self.session = session

    def payment_confirmed(self, application_id: UUID) -> bool:
        status = self.session.execute(
            select(Application.payment_status).where(Application.id == application_id)
        ).scalar_one_or_none()
        return status == PaymentStatus.PAID.value
