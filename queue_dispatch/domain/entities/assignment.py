"""Assignment result — the outcome of routing a ticket to a staff member."""

from dataclasses import dataclass

from queue_dispatch.domain.value_objects.enums import AssignmentStrategy


@dataclass
class Assignment:
    ticket_id: int
    shop_id: int
    staff_id: int
    staff_name: str
    strategy: AssignmentStrategy | None
    reason: str
    previous_staff_id: int | None = None

    @property
    def is_reassignment(self) -> bool:
        return self.previous_staff_id is not None and self.previous_staff_id != self.staff_id
