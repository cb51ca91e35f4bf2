"""Existence and shop-scope checks shared by the use cases."""

from __future__ import annotations

from queue_dispatch.application.collaborator import guarded
from queue_dispatch.application.ports.staff_directory import StaffDirectory
from queue_dispatch.application.ports.ticket_repo import TicketRepository
from queue_dispatch.domain.entities.staff import StaffMember
from queue_dispatch.domain.entities.ticket import Ticket
from queue_dispatch.domain.errors import not_found, unauthorized, validation_error


async def load_ticket(
    tickets: TicketRepository,
    operation: str,
    shop_id: int,
    ticket_id: int,
    timeout: float | None,
) -> Ticket:
    """NOT_FOUND if missing, UNAUTHORIZED if it belongs to another shop."""
    ticket = await guarded(operation, tickets.get_by_id(ticket_id), timeout, ticket_id=ticket_id)
    if ticket is None:
        raise not_found(operation, f"Ticket {ticket_id} not found", ticket_id=ticket_id)
    if ticket.shop_id != shop_id:
        raise unauthorized(
            operation,
            f"Ticket {ticket_id} does not belong to shop {shop_id}",
            ticket_id=ticket_id,
            shop_id=shop_id,
        )
    return ticket


async def load_staff(
    directory: StaffDirectory,
    operation: str,
    shop_id: int,
    staff_id: int,
    timeout: float | None,
    require_on_duty: bool = True,
) -> StaffMember:
    staff = await guarded(operation, directory.get_by_id(staff_id), timeout, staff_id=staff_id)
    if staff is None:
        raise not_found(operation, f"Staff member {staff_id} not found", staff_id=staff_id)
    if staff.shop_id != shop_id:
        raise unauthorized(
            operation,
            f"Staff member {staff_id} does not belong to shop {shop_id}",
            staff_id=staff_id,
            shop_id=shop_id,
        )
    if require_on_duty and not staff.on_duty:
        raise validation_error(operation, f"Staff member {staff_id} is not on duty", staff_id=staff_id)
    return staff
