"""Port interface for reacting to ticket lifecycle changes."""

from abc import ABC, abstractmethod

from queue_dispatch.domain.entities.ticket import Ticket
from queue_dispatch.domain.value_objects.enums import TicketEvent, TicketStatus


class TicketEventListener(ABC):
    @abstractmethod
    async def on_status_changed(self, ticket: Ticket, previous: TicketStatus) -> None:
        ...

    @abstractmethod
    async def on_event(self, ticket: Ticket, event: TicketEvent) -> None:
        ...


class NullEventListener(TicketEventListener):
    async def on_status_changed(self, ticket: Ticket, previous: TicketStatus) -> None:
        return None

    async def on_event(self, ticket: Ticket, event: TicketEvent) -> None:
        return None
