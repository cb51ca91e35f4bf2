"""Payment entity — revenue record attached to a served ticket."""

from dataclasses import dataclass
from datetime import datetime

from queue_dispatch.domain.value_objects.enums import PaymentStatus


@dataclass
class Payment:
    id: int | None
    ticket_id: int
    amount: float
    status: PaymentStatus = PaymentStatus.PAID
    paid_at: datetime | None = None

    def is_settled(self) -> bool:
        return self.status == PaymentStatus.PAID
