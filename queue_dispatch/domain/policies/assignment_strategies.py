"""Assignment strategies — pure (ticket, eligible staff) → chosen staff + reason."""

from __future__ import annotations

from dataclasses import dataclass

from queue_dispatch.domain.entities.staff import StaffMember
from queue_dispatch.domain.entities.ticket import Ticket
from queue_dispatch.domain.policies.round_robin import pick_next
from queue_dispatch.domain.value_objects.enums import AssignmentStrategy, TicketPriority


@dataclass(frozen=True)
class StaffChoice:
    staff: StaffMember
    reason: str


def _least_loaded(candidates: list[StaffMember]) -> StaffMember:
    # Ties broken by id ascending
    return min(candidates, key=lambda s: (s.current_load, s.id))


def select_by_load(candidates: list[StaffMember]) -> StaffChoice:
    chosen = _least_loaded(candidates)
    return StaffChoice(
        staff=chosen,
        reason=f"Least loaded: {chosen.name} ({chosen.current_load} active tickets)",
    )


def select_by_round_robin(candidates: list[StaffMember], counter: int) -> StaffChoice:
    chosen, _ = pick_next(candidates, counter)
    return StaffChoice(
        staff=chosen,
        reason=f"Round-robin: {chosen.name} (position {counter % len(candidates) + 1} of {len(candidates)})",
    )


def select_by_skills(candidates: list[StaffMember], required_skills: frozenset[str]) -> StaffChoice:
    """Candidates are already skill-filtered; fall back to the load tie-break."""
    chosen = _least_loaded(candidates)
    skills = ", ".join(sorted(required_skills)) or "none required"
    return StaffChoice(
        staff=chosen,
        reason=f"Skills match ({skills}): {chosen.name} ({chosen.current_load} active tickets)",
    )


def select_by_priority(candidates: list[StaffMember], priority: TicketPriority) -> StaffChoice:
    """Urgent tickets go to the most senior staff member, even if busier."""
    if priority != TicketPriority.URGENT:
        choice = select_by_load(candidates)
        return StaffChoice(staff=choice.staff, reason=f"{priority.value} ticket → {choice.reason}")

    chosen = min(candidates, key=lambda s: (-s.seniority, s.current_load, s.id))
    return StaffChoice(
        staff=chosen,
        reason=f"Urgent ticket → most senior available: {chosen.name} (seniority {chosen.seniority})",
    )


def select_staff(
    strategy: AssignmentStrategy,
    ticket: Ticket,
    candidates: list[StaffMember],
    *,
    counter: int | None = None,
    required_skills: frozenset[str] = frozenset(),
    priority_hint: TicketPriority | None = None,
) -> StaffChoice:
    """Dispatch to the strategy implementation.

    Args:
        strategy: closed strategy variant.
        ticket: the ticket being assigned.
        candidates: non-empty, already eligibility-filtered staff.
        counter: rotation cursor; required for round-robin.
        required_skills: skills the candidates were filtered on.
        priority_hint: overrides the ticket's own priority for the priority strategy.

    Raises:
        ValueError: if candidates is empty or round-robin has no counter.
    """
    if not candidates:
        raise ValueError("Cannot select from an empty candidate list")

    match strategy:
        case AssignmentStrategy.LOAD_BALANCING:
            return select_by_load(candidates)
        case AssignmentStrategy.ROUND_ROBIN:
            if counter is None:
                raise ValueError("Round-robin selection requires a rotation counter")
            return select_by_round_robin(candidates, counter)
        case AssignmentStrategy.SKILLS:
            return select_by_skills(candidates, required_skills)
        case AssignmentStrategy.PRIORITY:
            return select_by_priority(candidates, priority_hint or ticket.priority)
        case _:
            raise ValueError(f"Unsupported assignment strategy: {strategy}")
