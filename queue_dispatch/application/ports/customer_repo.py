"""Port interface for customer contact lookup."""

from abc import ABC, abstractmethod

from queue_dispatch.domain.entities.customer import Customer


class CustomerRepository(ABC):
    @abstractmethod
    async def get_by_id(self, customer_id: int) -> Customer | None:
        ...
