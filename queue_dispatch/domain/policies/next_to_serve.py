"""NextToServePolicy — admission control over the waiting line."""

from __future__ import annotations

from dataclasses import dataclass

from queue_dispatch.domain.entities.ticket import Ticket
from queue_dispatch.domain.value_objects.enums import TicketPriority, TicketStatus

PRIORITY_ONLY_BUCKETS = frozenset({TicketPriority.URGENT, TicketPriority.HIGH})

# Share of the summed estimate added on top as slack.
WAIT_BUFFER_RATIO = 0.1


@dataclass(frozen=True)
class QueuePosition:
    ticket_id: int
    status: TicketStatus
    position: int
    total_ahead: int
    estimated_wait_minutes: int


def serving_order_key(ticket: Ticket) -> tuple:
    created = ticket.created_at.timestamp() if ticket.created_at else float("inf")
    return (ticket.priority.rank, created, ticket.id or 0)


def eligible_tickets(
    tickets: list[Ticket],
    staff_id: int | None = None,
    department_id: int | None = None,
    priority_only: bool = False,
) -> list[Ticket]:
    """Filter the candidate set.

    - only WAITING tickets are candidates;
    - tickets already assigned to a *different* staff member are dropped;
    - department-scoped callers see their department plus unscoped tickets;
    - priority-only keeps urgent/high.
    """
    result = []
    for t in tickets:
        if t.status != TicketStatus.WAITING:
            continue
        if t.is_assigned_to_other(staff_id):
            continue
        if department_id is not None and t.department_id not in (None, department_id):
            continue
        if priority_only and t.priority not in PRIORITY_ONLY_BUCKETS:
            continue
        result.append(t)
    return result


def order_for_serving(tickets: list[Ticket]) -> list[Ticket]:
    """Lowest priority rank first, then earliest creation."""
    return sorted(tickets, key=serving_order_key)


def select_next(
    tickets: list[Ticket],
    staff_id: int | None = None,
    department_id: int | None = None,
    priority_only: bool = False,
) -> Ticket | None:
    """Return the single ticket to serve next, or None if nothing is eligible.

    Total: never raises for an empty candidate set.
    """
    candidates = eligible_tickets(tickets, staff_id, department_id, priority_only)
    if not candidates:
        return None
    return min(candidates, key=serving_order_key)


def position_in_line(target: Ticket, waiting: list[Ticket]) -> QueuePosition:
    """Where ``target`` stands among ``waiting`` tickets in serving order."""
    if target.status != TicketStatus.WAITING:
        return QueuePosition(target.id, target.status, 0, 0, 0)

    ordered = order_for_serving([t for t in waiting if t.status == TicketStatus.WAITING])
    ids = [t.id for t in ordered]
    if target.id not in ids:
        return QueuePosition(target.id, target.status, 0, 0, 0)

    index = ids.index(target.id)
    base = target.estimated_wait_minutes or 0
    total = sum(
        t.estimated_wait_minutes if t.estimated_wait_minutes is not None else base
        for t in ordered[:index]
    )
    buffer = round(total * WAIT_BUFFER_RATIO)

    return QueuePosition(
        ticket_id=target.id,
        status=target.status,
        position=index + 1,
        total_ahead=index,
        estimated_wait_minutes=total + buffer,
    )
