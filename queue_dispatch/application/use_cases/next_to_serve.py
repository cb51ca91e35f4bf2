"""GetNextToServeUseCase / GetQueuePositionUseCase — read-side queue decisions."""

from __future__ import annotations

import logging

from queue_dispatch.application.collaborator import DEFAULT_TIMEOUT_SECONDS, guarded
from queue_dispatch.application.ports.ticket_repo import TicketFilters, TicketRepository
from queue_dispatch.application.scoping import load_ticket
from queue_dispatch.domain.entities.ticket import Ticket
from queue_dispatch.domain.errors import validation_error
from queue_dispatch.domain.policies.next_to_serve import (
    PRIORITY_ONLY_BUCKETS,
    QueuePosition,
    position_in_line,
    select_next,
)
from queue_dispatch.domain.value_objects.enums import TicketStatus

logger = logging.getLogger(__name__)


async def _all_waiting(
    tickets: TicketRepository,
    op: str,
    filters: TicketFilters,
    page_size: int,
    timeout: float | None,
) -> list[Ticket]:
    if page_size <= 0:
        raise validation_error(op, "Page size must be positive")
    result: list[Ticket] = []
    page = 1
    while True:
        batch = await guarded(op, tickets.get_paginated(filters, page, page_size), timeout)
        result.extend(batch.items)
        if not batch.has_next or not batch.items:
            return result
        page += 1


class GetNextToServeUseCase:
    def __init__(
        self,
        ticket_repo: TicketRepository,
        page_size: int = 200,
        timeout: float | None = DEFAULT_TIMEOUT_SECONDS,
    ):
        self._tickets = ticket_repo
        self._page_size = page_size
        self._timeout = timeout

    async def execute(
        self,
        shop_id: int,
        staff_id: int | None = None,
        department_id: int | None = None,
        priority_only: bool = False,
    ) -> Ticket | None:
        """The ticket to call next, or None when nothing is eligible."""
        filters = TicketFilters(
            shop_id=shop_id,
            statuses=[TicketStatus.WAITING],
            priorities=sorted(PRIORITY_ONLY_BUCKETS, key=lambda p: p.rank) if priority_only else [],
        )
        candidates = await _all_waiting(
            self._tickets, "get_next_to_serve", filters, self._page_size, self._timeout
        )
        ticket = select_next(candidates, staff_id, department_id, priority_only)

        if ticket is None:
            logger.info("Shop %s: no ticket eligible to serve (staff=%s)", shop_id, staff_id)
        else:
            logger.info("Shop %s: next ticket %s (%s)", shop_id, ticket.id, ticket.priority.value)
        return ticket


class GetQueuePositionUseCase:
    def __init__(
        self,
        ticket_repo: TicketRepository,
        page_size: int = 200,
        timeout: float | None = DEFAULT_TIMEOUT_SECONDS,
    ):
        self._tickets = ticket_repo
        self._page_size = page_size
        self._timeout = timeout

    async def execute(self, shop_id: int, ticket_id: int) -> QueuePosition:
        op = "get_queue_position"
        ticket = await load_ticket(self._tickets, op, shop_id, ticket_id, self._timeout)
        if ticket.status != TicketStatus.WAITING:
            return position_in_line(ticket, [])

        filters = TicketFilters(shop_id=shop_id, statuses=[TicketStatus.WAITING])
        waiting = await _all_waiting(self._tickets, op, filters, self._page_size, self._timeout)
        return position_in_line(ticket, waiting)
