"""Port interface for ticket persistence."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, datetime

from queue_dispatch.domain.entities.ticket import Ticket
from queue_dispatch.domain.value_objects.enums import TicketPriority, TicketStatus


@dataclass
class TicketFilters:
    shop_id: int
    statuses: list[TicketStatus] = field(default_factory=list)
    priorities: list[TicketPriority] = field(default_factory=list)
    department_id: int | None = None
    assigned_staff_id: int | None = None
    ticket_ids: list[int] = field(default_factory=list)
    created_from: datetime | None = None
    created_to: datetime | None = None


@dataclass
class TicketPage:
    items: list[Ticket]
    page: int
    limit: int
    total: int

    @property
    def has_next(self) -> bool:
        return self.page * self.limit < self.total


class TicketRepository(ABC):
    @abstractmethod
    async def get_by_id(self, ticket_id: int) -> Ticket | None:
        ...

    @abstractmethod
    async def get_paginated(self, filters: TicketFilters, page: int = 1, limit: int = 50) -> TicketPage:
        """Tickets matching ``filters`` ordered by created_at, id; ``page`` is 1-based."""
        ...

    @abstractmethod
    async def create(self, ticket: Ticket) -> Ticket:
        ...

    @abstractmethod
    async def update(self, ticket: Ticket) -> Ticket:
        ...

    @abstractmethod
    async def update_if(
        self,
        ticket: Ticket,
        expected_status: TicketStatus,
        expected_assignee_id: int | None,
    ) -> bool:
        """Write ``ticket`` only if the stored row still has the expected status and assignee.

        Check and write must be one atomic statement. Returns False when another
        writer got there first.
        """
        ...

    @abstractmethod
    async def delete(self, ticket_id: int) -> None:
        ...

    @abstractmethod
    async def next_queue_number(self, shop_id: int, day: date) -> int:
        """Next per-shop, per-day queue number, starting at 1."""
        ...
