"""Ticket entity — one customer's service request and its lifecycle record."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime

from queue_dispatch.domain.value_objects.enums import (
    CustomerTier,
    TicketPriority,
    TicketStatus,
)

TERMINAL_STATUSES = frozenset(
    {TicketStatus.COMPLETED, TicketStatus.CANCELLED, TicketStatus.NO_SHOW}
)
ASSIGNABLE_STATUSES = frozenset({TicketStatus.WAITING, TicketStatus.SERVING})


@dataclass
class ServiceLineItem:
    service_id: int
    name: str
    quantity: int
    unit_price: float

    @property
    def line_total(self) -> float:
        return self.quantity * self.unit_price


@dataclass
class Ticket:
    id: int | None
    shop_id: int
    customer_id: int
    queue_number: int | None = None
    services: list[ServiceLineItem] = field(default_factory=list)
    status: TicketStatus = TicketStatus.WAITING
    priority: TicketPriority = TicketPriority.NORMAL
    customer_tier: CustomerTier | None = None
    department_id: int | None = None
    estimated_wait_minutes: int | None = None
    actual_wait_minutes: int | None = None
    assigned_staff_id: int | None = None
    served_by_staff_id: int | None = None
    notes: str | None = None
    created_at: datetime | None = None
    service_day: date | None = None
    called_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def total_amount(self) -> float:
        return sum(item.line_total for item in self.services)

    @property
    def total_quantity(self) -> int:
        return sum(item.quantity for item in self.services)

    @property
    def distinct_service_count(self) -> int:
        return len({item.service_id for item in self.services})

    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def is_assignable(self) -> bool:
        return self.status in ASSIGNABLE_STATUSES

    def is_assigned_to_other(self, staff_id: int | None) -> bool:
        return self.assigned_staff_id is not None and self.assigned_staff_id != staff_id

    def minutes_waiting(self, now: datetime) -> float:
        if self.created_at is None:
            return 0.0
        return max(0.0, (now - self.created_at).total_seconds() / 60)

    def service_minutes(self) -> float | None:
        """Minutes between being called and completion, if both are known."""
        if self.called_at is None or self.completed_at is None:
            return None
        return max(0.0, (self.completed_at - self.called_at).total_seconds() / 60)

    def as_context(self) -> dict:
        """Flat field view used by notification rule conditions and templates."""
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "customer_id": self.customer_id,
            "queue_number": self.queue_number,
            "status": self.status.value,
            "priority": self.priority.value,
            "customer_tier": self.customer_tier.value if self.customer_tier else None,
            "department_id": self.department_id,
            "estimated_wait_minutes": self.estimated_wait_minutes,
            "actual_wait_minutes": self.actual_wait_minutes,
            "assigned_staff_id": self.assigned_staff_id,
            "total_amount": self.total_amount,
            "total_quantity": self.total_quantity,
            "service_names": [item.name for item in self.services],
            "notes": self.notes,
        }
