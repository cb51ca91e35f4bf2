"""Pytest configuration and shared fixtures — in-memory fakes for every port."""

from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime, timedelta, timezone

import pytest

from queue_dispatch.application.ports.channel_sender import ChannelSender
from queue_dispatch.application.ports.customer_repo import CustomerRepository
from queue_dispatch.application.ports.event_listener import TicketEventListener
from queue_dispatch.application.ports.notification_repo import NotificationRepository
from queue_dispatch.application.ports.payment_repo import PaymentRepository
from queue_dispatch.application.ports.round_robin_repo import RoundRobinRepository
from queue_dispatch.application.ports.staff_directory import StaffDirectory
from queue_dispatch.application.ports.ticket_repo import TicketFilters, TicketPage, TicketRepository
from queue_dispatch.application.use_cases.ticket_lifecycle import TicketLifecycleUseCase
from queue_dispatch.domain.entities.customer import Customer
from queue_dispatch.domain.entities.notification import SendReceipt
from queue_dispatch.domain.entities.staff import StaffMember
from queue_dispatch.domain.entities.ticket import ServiceLineItem, Ticket
from queue_dispatch.domain.value_objects.enums import Channel

# Monday
NOW = datetime(2026, 3, 2, 10, 0, tzinfo=timezone.utc)


# ─── In-memory fakes ────────────────────────────────────────────────


class FakeClock:
    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, minutes: float) -> None:
        self.now += timedelta(minutes=minutes)


def _copy(ticket: Ticket) -> Ticket:
    return replace(ticket, services=[replace(s) for s in ticket.services])


def _service_day(ticket: Ticket) -> date | None:
    if ticket.service_day is not None:
        return ticket.service_day
    return ticket.created_at.date() if ticket.created_at else None


class FakeTicketRepo(TicketRepository):
    """Stores copies so callers only see what was actually written."""

    def __init__(self):
        self.tickets: dict[int, Ticket] = {}
        self.lose_races = False
        self.conditional_writes = 0

    def add(self, ticket: Ticket) -> Ticket:
        if ticket.id is None:
            ticket.id = max(self.tickets, default=0) + 1
        self.tickets[ticket.id] = _copy(ticket)
        return ticket

    async def get_by_id(self, ticket_id):
        stored = self.tickets.get(ticket_id)
        return _copy(stored) if stored else None

    async def get_paginated(self, filters: TicketFilters, page=1, limit=50):
        def keep(t: Ticket) -> bool:
            if t.shop_id != filters.shop_id:
                return False
            if filters.statuses and t.status not in filters.statuses:
                return False
            if filters.priorities and t.priority not in filters.priorities:
                return False
            if filters.department_id is not None and t.department_id != filters.department_id:
                return False
            if filters.assigned_staff_id is not None and t.assigned_staff_id != filters.assigned_staff_id:
                return False
            if filters.ticket_ids and t.id not in filters.ticket_ids:
                return False
            if filters.created_from and (t.created_at is None or t.created_at < filters.created_from):
                return False
            if filters.created_to and (t.created_at is None or t.created_at >= filters.created_to):
                return False
            return True

        matched = sorted((t for t in self.tickets.values() if keep(t)), key=lambda t: (t.created_at, t.id))
        start = (page - 1) * limit
        return TicketPage(
            items=[_copy(t) for t in matched[start : start + limit]],
            page=page,
            limit=limit,
            total=len(matched),
        )

    async def create(self, ticket):
        return self.add(_copy(ticket))

    async def update(self, ticket):
        self.tickets[ticket.id] = _copy(ticket)
        return ticket

    async def update_if(self, ticket, expected_status, expected_assignee_id):
        self.conditional_writes += 1
        stored = self.tickets.get(ticket.id)
        if self.lose_races or stored is None:
            return False
        if stored.status != expected_status or stored.assigned_staff_id != expected_assignee_id:
            return False
        self.tickets[ticket.id] = _copy(ticket)
        return True

    async def delete(self, ticket_id):
        self.tickets.pop(ticket_id, None)

    async def next_queue_number(self, shop_id, day: date):
        numbers = [
            t.queue_number or 0
            for t in self.tickets.values()
            if t.shop_id == shop_id and _service_day(t) == day
        ]
        return max(numbers, default=0) + 1


class FakeStaffDirectory(StaffDirectory):
    def __init__(self, staff: list[StaffMember] | None = None):
        self.staff = {s.id: s for s in staff or []}

    def add(self, *members: StaffMember) -> None:
        for m in members:
            self.staff[m.id] = m

    async def get_by_id(self, staff_id):
        return self.staff.get(staff_id)

    async def find(self, shop_id, department_id=None, on_duty=None):
        return [
            s
            for s in self.staff.values()
            if s.shop_id == shop_id
            and (department_id is None or s.department_id == department_id)
            and (on_duty is None or s.on_duty == on_duty)
        ]


class FakeRoundRobinRepo(RoundRobinRepository):
    def __init__(self):
        self.counters: dict[str, int] = {}

    async def increment_counter(self, rr_key):
        old = self.counters.get(rr_key, 0)
        self.counters[rr_key] = old + 1
        return old


class FakeCustomerRepo(CustomerRepository):
    def __init__(self, customers: list[Customer] | None = None):
        self.customers = {c.id: c for c in customers or []}

    async def get_by_id(self, customer_id):
        return self.customers.get(customer_id)


class FakePaymentRepo(PaymentRepository):
    def __init__(self):
        self.payments = []

    async def get_for_tickets(self, ticket_ids):
        grouped = {}
        for p in self.payments:
            if p.ticket_id in ticket_ids:
                grouped.setdefault(p.ticket_id, []).append(p)
        return grouped


class FakeNotificationRepo(NotificationRepository):
    def __init__(self):
        self.rules = []
        self.schedules: list[tuple[int, list]] = []
        self.deliveries = []
        self.fail_record = False

    async def get_rules(self, shop_id, active_only=True):
        return [r for r in self.rules if r.shop_id == shop_id and (r.active or not active_only)]

    async def save_schedule(self, shop_id, entries):
        self.schedules.append((shop_id, list(entries)))
        return f"schedule-{len(self.schedules)}"

    async def record_delivery(self, shop_id, outcome):
        if self.fail_record:
            raise RuntimeError("delivery log unavailable")
        self.deliveries.append((shop_id, outcome))


class FakeSender(ChannelSender):
    def __init__(self, channel: Channel, reject: bool = False, raises: Exception | None = None):
        self._channel = channel
        self.reject = reject
        self.raises = raises
        self.sent: list[tuple[str, str]] = []

    @property
    def channel(self):
        return self._channel

    async def send(self, recipient, message, priority):
        if self.raises is not None:
            raise self.raises
        if self.reject:
            return SendReceipt(success=False, error="rejected by gateway")
        self.sent.append((recipient, message))
        return SendReceipt(success=True, message_id=f"{self._channel.value}-{len(self.sent)}")


class RecordingListener(TicketEventListener):
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.status_changes = []
        self.events = []

    async def on_status_changed(self, ticket, previous):
        if self.fail:
            raise RuntimeError("listener down")
        self.status_changes.append((ticket.id, previous, ticket.status))

    async def on_event(self, ticket, event):
        if self.fail:
            raise RuntimeError("listener down")
        self.events.append((ticket.id, event))


# ─── Fixtures ───────────────────────────────────────────────────────


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def ticket_repo():
    return FakeTicketRepo()


@pytest.fixture
def staff_directory():
    return FakeStaffDirectory()


@pytest.fixture
def rr_repo():
    return FakeRoundRobinRepo()


@pytest.fixture
def customer_repo():
    return FakeCustomerRepo(
        [
            Customer(id=1, name="Alice", phone="+15550001", email="alice@example.com", push_token="tok-1"),
            Customer(id=2, name="Bob", phone="+15550002"),
        ]
    )


@pytest.fixture
def payment_repo():
    return FakePaymentRepo()


@pytest.fixture
def notification_repo():
    return FakeNotificationRepo()


@pytest.fixture
def listener():
    return RecordingListener()


@pytest.fixture
def sender_factory():
    return FakeSender


@pytest.fixture
def lifecycle(ticket_repo, staff_directory, listener, clock):
    return TicketLifecycleUseCase(ticket_repo, staff_directory, listener=listener, clock=clock, timeout=1.0)


@pytest.fixture
def make_ticket():
    """Factory for tickets of shop 1 created at ``NOW - minutes_ago``."""

    def _make(
        ticket_id: int | None = None,
        minutes_ago: float = 0,
        shop_id: int = 1,
        customer_id: int = 1,
        services: list[ServiceLineItem] | None = None,
        **overrides,
    ) -> Ticket:
        return Ticket(
            id=ticket_id,
            shop_id=shop_id,
            customer_id=customer_id,
            queue_number=ticket_id,
            services=services if services is not None else [ServiceLineItem(1, "Haircut", 1, 20.0)],
            created_at=NOW - timedelta(minutes=minutes_ago),
            **overrides,
        )

    return _make


@pytest.fixture
def make_staff():
    def _make(staff_id: int, shop_id: int = 1, **overrides) -> StaffMember:
        overrides.setdefault("name", f"S{staff_id}")
        return StaffMember(id=staff_id, shop_id=shop_id, **overrides)

    return _make
