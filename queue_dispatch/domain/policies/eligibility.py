"""EligibilityPolicy — which staff members may serve a ticket at all."""

from __future__ import annotations

from dataclasses import dataclass, field

from queue_dispatch.domain.entities.staff import StaffMember


@dataclass(frozen=True)
class StaffRequirement:
    """Result of combining the ticket with the caller's filters."""

    department_id: int | None = None
    required_skills: frozenset[str] = field(default_factory=frozenset)
    on_duty_only: bool = True


def staff_satisfies(staff: StaffMember, requirement: StaffRequirement) -> bool:
    """Check whether a staff member meets the requirement.

    Rules are *additive*: department, duty and skills must all hold.
    """
    if requirement.on_duty_only and not staff.on_duty:
        return False

    if requirement.department_id is not None and staff.department_id != requirement.department_id:
        return False

    # Skill set must be a superset of the required skills
    return staff.has_skills(requirement.required_skills)


def filter_eligible(staff: list[StaffMember], requirement: StaffRequirement) -> list[StaffMember]:
    return [s for s in staff if staff_satisfies(s, requirement)]
