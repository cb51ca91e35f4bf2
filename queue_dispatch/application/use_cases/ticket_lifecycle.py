"""TicketLifecycleUseCase — create tickets and drive them through the state machine."""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import timezone, tzinfo

from queue_dispatch.application.clock import Clock, utc_now
from queue_dispatch.application.collaborator import (
    DEFAULT_TIMEOUT_SECONDS,
    guarded,
    wrap_unexpected,
)
from queue_dispatch.application.ports.event_listener import NullEventListener, TicketEventListener
from queue_dispatch.application.ports.staff_directory import StaffDirectory
from queue_dispatch.application.ports.ticket_repo import TicketRepository
from queue_dispatch.application.scoping import load_staff, load_ticket
from queue_dispatch.domain.entities.assignment import Assignment
from queue_dispatch.domain.entities.staff import StaffMember
from queue_dispatch.domain.entities.ticket import ServiceLineItem, Ticket
from queue_dispatch.domain.errors import QueueError, validation_error
from queue_dispatch.domain.policies.state_machine import apply_transition
from queue_dispatch.domain.value_objects.enums import (
    AssignmentStrategy,
    CustomerTier,
    TicketEvent,
    TicketPriority,
    TicketStatus,
)

logger = logging.getLogger(__name__)

_TRANSITION_EVENTS = {
    TicketStatus.CONFIRMED: TicketEvent.CONFIRMED,
    TicketStatus.SERVING: TicketEvent.ASSIGNED,
    TicketStatus.COMPLETED: TicketEvent.COMPLETED,
    TicketStatus.CANCELLED: TicketEvent.CANCELLED,
    TicketStatus.NO_SHOW: TicketEvent.NO_SHOW,
}


class TicketLifecycleUseCase:
    """Every write goes through a conditional update against the status observed on read."""

    def __init__(
        self,
        ticket_repo: TicketRepository,
        staff_directory: StaffDirectory,
        listener: TicketEventListener | None = None,
        clock: Clock = utc_now,
        timeout: float | None = DEFAULT_TIMEOUT_SECONDS,
        tz: tzinfo = timezone.utc,
    ):
        self._tickets = ticket_repo
        self._staff = staff_directory
        self._listener = listener or NullEventListener()
        self._clock = clock
        self._tz = tz
        self._timeout = timeout

    def set_listener(self, listener: TicketEventListener) -> None:
        self._listener = listener

    # ─── Reads ───────────────────────────────────────────────────────

    async def get(self, shop_id: int, ticket_id: int) -> Ticket:
        return await load_ticket(self._tickets, "get_ticket", shop_id, ticket_id, self._timeout)

    # ─── Create ──────────────────────────────────────────────────────

    async def create(
        self,
        shop_id: int,
        customer_id: int,
        services: list[ServiceLineItem],
        priority: TicketPriority = TicketPriority.NORMAL,
        customer_tier: CustomerTier | None = None,
        department_id: int | None = None,
        estimated_wait_minutes: int | None = None,
        notes: str | None = None,
    ) -> Ticket:
        op = "create_ticket"
        if not services:
            raise validation_error(op, "A ticket needs at least one service", shop_id=shop_id)
        for item in services:
            if item.quantity <= 0:
                raise validation_error(op, f"Quantity for service {item.service_id} must be positive")
            if item.unit_price < 0:
                raise validation_error(op, f"Price for service {item.service_id} must not be negative")
        if estimated_wait_minutes is not None and estimated_wait_minutes < 0:
            raise validation_error(op, "Estimated wait must not be negative")

        try:
            now = self._clock()
            # Numbering restarts at local midnight in the shop timezone.
            day = now.astimezone(self._tz).date()
            number = await guarded(
                op, self._tickets.next_queue_number(shop_id, day), self._timeout, shop_id=shop_id
            )
            ticket = Ticket(
                id=None,
                shop_id=shop_id,
                customer_id=customer_id,
                queue_number=number,
                services=list(services),
                priority=priority,
                customer_tier=customer_tier,
                department_id=department_id,
                estimated_wait_minutes=estimated_wait_minutes,
                notes=notes,
                created_at=now,
                service_day=day,
            )
            ticket = await guarded(op, self._tickets.create(ticket), self._timeout, shop_id=shop_id)
        except QueueError:
            raise
        except Exception as e:
            raise wrap_unexpected(op, e, shop_id=shop_id) from e

        logger.info("Ticket %s created for shop %s as #%s", ticket.id, shop_id, ticket.queue_number)
        await self._notify_event(ticket, TicketEvent.CREATED)
        return ticket

    # ─── Transitions ─────────────────────────────────────────────────

    async def confirm(self, shop_id: int, ticket_id: int) -> Ticket:
        return await self._transition("confirm_ticket", shop_id, ticket_id, TicketStatus.CONFIRMED)

    async def start_service(self, shop_id: int, ticket_id: int, staff_id: int) -> Ticket:
        op = "start_service"
        ticket = await load_ticket(self._tickets, op, shop_id, ticket_id, self._timeout)
        if ticket.status != TicketStatus.CONFIRMED:
            raise validation_error(
                op,
                f"Only confirmed tickets can start service (ticket is {ticket.status.value})",
                ticket_id=ticket_id,
            )
        staff = await load_staff(self._staff, op, shop_id, staff_id, self._timeout)
        return await self._apply(op, ticket, TicketStatus.SERVING, staff.id)

    async def complete(self, shop_id: int, ticket_id: int) -> Ticket:
        return await self._transition("complete_ticket", shop_id, ticket_id, TicketStatus.COMPLETED)

    async def cancel(self, shop_id: int, ticket_id: int) -> Ticket:
        return await self._transition("cancel_ticket", shop_id, ticket_id, TicketStatus.CANCELLED)

    async def mark_no_show(self, shop_id: int, ticket_id: int) -> Ticket:
        return await self._transition("mark_no_show", shop_id, ticket_id, TicketStatus.NO_SHOW)

    async def assign(
        self,
        shop_id: int,
        ticket_id: int,
        staff_id: int,
        strategy: AssignmentStrategy | None = None,
        reason: str | None = None,
    ) -> Assignment:
        """Direct assignment: WAITING or SERVING → SERVING with ``staff_id``."""
        op = "assign_ticket"
        ticket = await load_ticket(self._tickets, op, shop_id, ticket_id, self._timeout)
        ensure_assignable(ticket, op)
        staff = await load_staff(self._staff, op, shop_id, staff_id, self._timeout)
        return await self.assign_loaded(ticket, staff, strategy, reason or f"Assigned directly to {staff.name}")

    async def assign_loaded(
        self,
        ticket: Ticket,
        staff: StaffMember,
        strategy: AssignmentStrategy | None,
        reason: str,
        operation: str = "assign_ticket",
    ) -> Assignment:
        """Assign an already loaded and scope-checked ticket to a vetted staff member."""
        ensure_assignable(ticket, operation)
        previous = ticket.assigned_staff_id
        updated = await self._apply(operation, ticket, TicketStatus.SERVING, staff.id)

        assignment = Assignment(
            ticket_id=updated.id,
            shop_id=updated.shop_id,
            staff_id=staff.id,
            staff_name=staff.name,
            strategy=strategy,
            reason=reason,
            previous_staff_id=previous,
        )
        if assignment.is_reassignment:
            logger.info("Ticket %s reassigned from staff %s to %s", updated.id, previous, staff.id)
        return assignment

    # ─── Internals ───────────────────────────────────────────────────

    async def _transition(self, op: str, shop_id: int, ticket_id: int, target: TicketStatus) -> Ticket:
        ticket = await load_ticket(self._tickets, op, shop_id, ticket_id, self._timeout)
        return await self._apply(op, ticket, target)

    async def _apply(
        self, op: str, ticket: Ticket, target: TicketStatus, staff_id: int | None = None
    ) -> Ticket:
        previous_status = ticket.status
        previous_assignee = ticket.assigned_staff_id

        # Work on a copy so a rejected transition leaves the caller's ticket untouched
        updated = apply_transition(replace(ticket), target, self._clock(), op, staff_id)

        try:
            written = await guarded(
                op,
                self._tickets.update_if(updated, previous_status, previous_assignee),
                self._timeout,
                ticket_id=ticket.id,
            )
        except QueueError:
            raise
        except Exception as e:
            raise wrap_unexpected(op, e, ticket_id=ticket.id) from e

        if not written:
            raise validation_error(
                op,
                f"Ticket {ticket.id} was modified concurrently; reload and retry",
                ticket_id=ticket.id,
                expected_status=previous_status.value,
                expected_assignee_id=previous_assignee,
            )

        logger.info(
            "Ticket %s: %s → %s%s",
            ticket.id,
            previous_status.value,
            target.value,
            f" (staff {staff_id})" if staff_id is not None else "",
        )
        if previous_status != target:
            await self._notify_status(updated, previous_status)
        await self._notify_event(updated, _TRANSITION_EVENTS[target])
        return updated

    async def _notify_status(self, ticket: Ticket, previous: TicketStatus) -> None:
        try:
            await self._listener.on_status_changed(ticket, previous)
        except Exception:
            logger.exception("Status listener failed for ticket %s", ticket.id)

    async def _notify_event(self, ticket: Ticket, event: TicketEvent) -> None:
        try:
            await self._listener.on_event(ticket, event)
        except Exception:
            logger.exception("Event listener failed for ticket %s (%s)", ticket.id, event.value)


def ensure_assignable(ticket: Ticket, operation: str) -> None:
    if not ticket.is_assignable():
        raise validation_error(
            operation,
            f"Ticket {ticket.id} cannot be assigned while {ticket.status.value}",
            ticket_id=ticket.id,
            status=ticket.status.value,
        )
