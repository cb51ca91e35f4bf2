"""Port interface for payment records."""

from abc import ABC, abstractmethod

from queue_dispatch.domain.entities.payment import Payment


class PaymentRepository(ABC):
    @abstractmethod
    async def get_for_tickets(self, ticket_ids: list[int]) -> dict[int, list[Payment]]:
        """Payments grouped by ticket id; tickets without payments are absent."""
        ...
