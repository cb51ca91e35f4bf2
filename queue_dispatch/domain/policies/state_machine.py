"""TicketStateMachine — the only legal ticket status transitions."""

from __future__ import annotations

from datetime import datetime

from queue_dispatch.domain.entities.ticket import Ticket
from queue_dispatch.domain.errors import validation_error
from queue_dispatch.domain.value_objects.enums import TicketStatus

# SERVING → SERVING is a reassignment to another staff member.
TRANSITIONS: dict[TicketStatus, frozenset[TicketStatus]] = {
    TicketStatus.WAITING: frozenset(
        {
            TicketStatus.CONFIRMED,
            TicketStatus.SERVING,
            TicketStatus.CANCELLED,
            TicketStatus.NO_SHOW,
        }
    ),
    TicketStatus.CONFIRMED: frozenset({TicketStatus.SERVING, TicketStatus.CANCELLED}),
    TicketStatus.SERVING: frozenset(
        {TicketStatus.SERVING, TicketStatus.COMPLETED, TicketStatus.CANCELLED}
    ),
    TicketStatus.COMPLETED: frozenset(),
    TicketStatus.CANCELLED: frozenset(),
    TicketStatus.NO_SHOW: frozenset(),
}


def can_transition(current: TicketStatus, target: TicketStatus) -> bool:
    return target in TRANSITIONS[current]


def ensure_transition(
    current: TicketStatus, target: TicketStatus, operation: str, ticket_id: int | None = None
) -> None:
    """Raise VALIDATION_ERROR unless ``current → target`` is a legal edge."""
    if not can_transition(current, target):
        raise validation_error(
            operation,
            f"Cannot transition from {current.value} to {target.value}",
            ticket_id=ticket_id,
            current_status=current.value,
            target_status=target.value,
        )


def apply_transition(
    ticket: Ticket,
    target: TicketStatus,
    now: datetime,
    operation: str,
    staff_id: int | None = None,
) -> Ticket:
    """Move ``ticket`` to ``target`` in place, stamping the lifecycle fields.

    The caller is expected to persist the ticket with a conditional update
    against the status it observed before calling this.
    """
    ensure_transition(ticket.status, target, operation, ticket.id)

    if target == TicketStatus.SERVING:
        if staff_id is None:
            raise validation_error(operation, "A staff member is required to serve a ticket", ticket_id=ticket.id)
        ticket.assigned_staff_id = staff_id
        ticket.served_by_staff_id = staff_id
        # Reassignment keeps the original call time
        if ticket.status != TicketStatus.SERVING or ticket.called_at is None:
            ticket.called_at = now
    elif target == TicketStatus.COMPLETED:
        ticket.completed_at = now
        if ticket.called_at and ticket.created_at:
            ticket.actual_wait_minutes = round(
                (ticket.called_at - ticket.created_at).total_seconds() / 60
            )
    elif target in (TicketStatus.CANCELLED, TicketStatus.NO_SHOW):
        ticket.completed_at = now

    ticket.status = target

    # The active assignment only lives while WAITING or SERVING.
    if not ticket.is_assignable():
        ticket.assigned_staff_id = None

    return ticket
