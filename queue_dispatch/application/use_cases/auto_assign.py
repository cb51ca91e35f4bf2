"""AutoAssignUseCase — route a ticket to a staff member by explicit id or strategy."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from queue_dispatch.application.collaborator import (
    DEFAULT_TIMEOUT_SECONDS,
    guarded,
    wrap_unexpected,
)
from queue_dispatch.application.ports.round_robin_repo import RoundRobinRepository
from queue_dispatch.application.ports.staff_directory import StaffDirectory
from queue_dispatch.application.ports.ticket_repo import TicketRepository
from queue_dispatch.application.scoping import load_staff, load_ticket
from queue_dispatch.application.use_cases.ticket_lifecycle import (
    TicketLifecycleUseCase,
    ensure_assignable,
)
from queue_dispatch.domain.entities.assignment import Assignment
from queue_dispatch.domain.errors import QueueError, not_found, parse_enum, validation_error
from queue_dispatch.domain.policies.assignment_strategies import select_staff
from queue_dispatch.domain.policies.eligibility import StaffRequirement, filter_eligible
from queue_dispatch.domain.policies.round_robin import rotation_key
from queue_dispatch.domain.value_objects.enums import AssignmentStrategy, TicketPriority

logger = logging.getLogger(__name__)


class AutoAssignUseCase:
    """Exposed ``Assign(shopId, ticketId, staffId, strategy)`` operation.

    Pipeline:
    1. Load the ticket, check shop scope and assignable status
    2. Explicit staff id → direct assignment
    3. Otherwise filter on-duty staff by department / skills
    4. Advance the rotation cursor (round-robin only)
    5. Pick via the strategy and write through the lifecycle
    """

    def __init__(
        self,
        ticket_repo: TicketRepository,
        staff_directory: StaffDirectory,
        rr_repo: RoundRobinRepository,
        lifecycle: TicketLifecycleUseCase,
        timeout: float | None = DEFAULT_TIMEOUT_SECONDS,
    ):
        self._tickets = ticket_repo
        self._staff = staff_directory
        self._rr = rr_repo
        self._lifecycle = lifecycle
        self._timeout = timeout

    async def execute(
        self,
        shop_id: int,
        ticket_id: int,
        staff_id: int | None = None,
        strategy: AssignmentStrategy | str | None = None,
        department_id: int | None = None,
        required_skills: set[str] | frozenset[str] = frozenset(),
        priority_hint: TicketPriority | str | None = None,
    ) -> Assignment:
        op = "assign"
        parsed = parse_enum(AssignmentStrategy, strategy, op, "strategy") if strategy is not None else None
        hint = parse_enum(TicketPriority, priority_hint, op, "priority") if priority_hint is not None else None

        ticket = await load_ticket(self._tickets, op, shop_id, ticket_id, self._timeout)
        ensure_assignable(ticket, op)

        try:
            if staff_id is not None:
                staff = await load_staff(self._staff, op, shop_id, staff_id, self._timeout)
                return await self._lifecycle.assign_loaded(
                    ticket, staff, parsed, f"Assigned directly to {staff.name}", op
                )

            if parsed is None:
                raise validation_error(op, "Either a staff id or a strategy is required", ticket_id=ticket_id)

            department = department_id if department_id is not None else ticket.department_id
            skills = frozenset(required_skills)
            roster = await guarded(
                op,
                self._staff.find(shop_id, department_id=department, on_duty=True),
                self._timeout,
                shop_id=shop_id,
            )
            candidates = filter_eligible(
                roster, StaffRequirement(department_id=department, required_skills=skills)
            )
            if not candidates:
                logger.warning(
                    "Ticket %s: no eligible staff (dept=%s, skills=%s)", ticket_id, department, sorted(skills)
                )
                raise not_found(
                    op,
                    "No staff member satisfies the assignment filter",
                    ticket_id=ticket_id,
                    department_id=department,
                    required_skills=sorted(skills),
                )

            counter = None
            if parsed == AssignmentStrategy.ROUND_ROBIN:
                counter = await guarded(
                    op, self._rr.increment_counter(rotation_key(shop_id, department)), self._timeout
                )

            choice = select_staff(
                parsed,
                ticket,
                candidates,
                counter=counter,
                required_skills=skills,
                priority_hint=hint,
            )
            logger.info("Ticket %s: %s", ticket_id, choice.reason)
            return await self._lifecycle.assign_loaded(ticket, choice.staff, parsed, choice.reason, op)
        except QueueError:
            raise
        except Exception as e:
            raise wrap_unexpected(op, e, ticket_id=ticket_id) from e


@dataclass
class ReassignItem:
    ticket_id: int
    success: bool
    assignment: Assignment | None = None
    error: str | None = None


@dataclass
class BulkReassignResult:
    staff_id: int
    items: list[ReassignItem] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.items)

    @property
    def succeeded(self) -> int:
        return sum(1 for i in self.items if i.success)

    @property
    def failed(self) -> int:
        return self.total - self.succeeded


class BulkReassignUseCase:
    """Move many tickets to one staff member, reporting each ticket separately."""

    def __init__(
        self,
        staff_directory: StaffDirectory,
        lifecycle: TicketLifecycleUseCase,
        bulk_limit: int = 100,
        timeout: float | None = DEFAULT_TIMEOUT_SECONDS,
    ):
        self._staff = staff_directory
        self._lifecycle = lifecycle
        self._bulk_limit = bulk_limit
        self._timeout = timeout

    async def execute(self, shop_id: int, ticket_ids: list[int], staff_id: int) -> BulkReassignResult:
        op = "bulk_reassign"
        if not ticket_ids:
            raise validation_error(op, "At least one ticket id is required")
        if len(ticket_ids) > self._bulk_limit:
            raise validation_error(
                op, f"At most {self._bulk_limit} tickets per request", requested=len(ticket_ids)
            )

        staff = await load_staff(self._staff, op, shop_id, staff_id, self._timeout)
        result = BulkReassignResult(staff_id=staff.id)

        for ticket_id in dict.fromkeys(ticket_ids):
            try:
                assignment = await self._lifecycle.assign(
                    shop_id, ticket_id, staff.id, reason=f"Bulk reassignment to {staff.name}"
                )
                result.items.append(ReassignItem(ticket_id=ticket_id, success=True, assignment=assignment))
            except QueueError as e:
                logger.warning("Bulk reassign: ticket %s failed: %s", ticket_id, e)
                result.items.append(ReassignItem(ticket_id=ticket_id, success=False, error=str(e)))

        logger.info(
            "Bulk reassign to staff %s: %d/%d succeeded", staff.id, result.succeeded, result.total
        )
        return result
