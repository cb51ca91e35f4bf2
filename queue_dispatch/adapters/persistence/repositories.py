"""SQLAlchemy repository implementations."""

from __future__ import annotations

import asyncio
import functools
import uuid
from datetime import date

from sqlalchemy import and_, delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from queue_dispatch.adapters.persistence.models import (
    CustomerModel,
    NotificationDeliveryModel,
    NotificationRuleModel,
    PaymentModel,
    RoundRobinStateModel,
    ScheduledNotificationModel,
    StaffModel,
    TicketModel,
    TicketServiceModel,
)
from queue_dispatch.application.ports.customer_repo import CustomerRepository
from queue_dispatch.application.ports.notification_repo import NotificationRepository
from queue_dispatch.application.ports.payment_repo import PaymentRepository
from queue_dispatch.application.ports.round_robin_repo import RoundRobinRepository
from queue_dispatch.application.ports.staff_directory import StaffDirectory
from queue_dispatch.application.ports.ticket_repo import TicketFilters, TicketPage, TicketRepository
from queue_dispatch.domain.entities.customer import Customer
from queue_dispatch.domain.entities.notification import (
    NotificationOutcome,
    NotificationRule,
    RuleCondition,
    RuleTrigger,
    ScheduledNotification,
)
from queue_dispatch.domain.entities.payment import Payment
from queue_dispatch.domain.entities.staff import StaffMember
from queue_dispatch.domain.entities.ticket import ServiceLineItem, Ticket
from queue_dispatch.domain.value_objects.enums import (
    Channel,
    ConditionOperator,
    CustomerTier,
    NotificationPriority,
    NotificationType,
    PaymentStatus,
    Recurrence,
    RuleKind,
    TicketPriority,
    TicketStatus,
)

ACTIVE_STATUSES = (TicketStatus.WAITING.value, TicketStatus.SERVING.value)

# ─── Mappers ─────────────────────────────────────────────────────────


def _ticket_to_domain(m: TicketModel) -> Ticket:
    return Ticket(
        id=m.id,
        shop_id=m.shop_id,
        customer_id=m.customer_id,
        queue_number=m.queue_number,
        services=[
            ServiceLineItem(
                service_id=s.service_id, name=s.name, quantity=s.quantity, unit_price=s.unit_price
            )
            for s in m.services
        ],
        status=TicketStatus(m.status),
        priority=TicketPriority(m.priority),
        customer_tier=CustomerTier(m.customer_tier) if m.customer_tier else None,
        department_id=m.department_id,
        estimated_wait_minutes=m.estimated_wait_minutes,
        actual_wait_minutes=m.actual_wait_minutes,
        assigned_staff_id=m.assigned_staff_id,
        served_by_staff_id=m.served_by_staff_id,
        notes=m.notes,
        created_at=m.created_at,
        service_day=m.service_day,
        called_at=m.called_at,
        completed_at=m.completed_at,
    )


def _ticket_values(ticket: Ticket) -> dict:
    """Mutable columns written on update."""
    return {
        "status": ticket.status.value,
        "priority": ticket.priority.value,
        "customer_tier": ticket.customer_tier.value if ticket.customer_tier else None,
        "department_id": ticket.department_id,
        "estimated_wait_minutes": ticket.estimated_wait_minutes,
        "actual_wait_minutes": ticket.actual_wait_minutes,
        "assigned_staff_id": ticket.assigned_staff_id,
        "served_by_staff_id": ticket.served_by_staff_id,
        "notes": ticket.notes,
        "called_at": ticket.called_at,
        "completed_at": ticket.completed_at,
    }


def _staff_to_domain(m: StaffModel, load: int = 0) -> StaffMember:
    return StaffMember(
        id=m.id,
        shop_id=m.shop_id,
        name=m.name,
        department_id=m.department_id,
        skills=set(m.skills) if m.skills else set(),
        current_load=load,
        on_duty=m.on_duty,
        seniority=m.seniority,
    )


def _rule_to_domain(m: NotificationRuleModel) -> NotificationRule:
    t = m.trigger or {}
    return NotificationRule(
        id=m.id,
        shop_id=m.shop_id,
        name=m.name,
        kind=RuleKind(m.kind),
        trigger=RuleTrigger(
            time=t.get("time"),
            recurrence=Recurrence(t["recurrence"]) if t.get("recurrence") else None,
            weekday=t.get("weekday"),
            day_of_month=t.get("day_of_month"),
            status=TicketStatus(t["status"]) if t.get("status") else None,
            event=t.get("event"),
            delay_minutes=t.get("delay_minutes", 0),
        ),
        channels=[Channel(c) for c in m.channels],
        conditions=[
            RuleCondition(field=c["field"], operator=ConditionOperator(c["operator"]), value=c.get("value"))
            for c in m.conditions or []
        ],
        template=m.template,
        active=m.active,
        priority=NotificationPriority(m.priority),
        notification_type=NotificationType(m.notification_type),
    )


# ─── Repositories ────────────────────────────────────────────────────


def serialized(method):
    """Run one repository call at a time per session.

    An AsyncSession does not allow concurrent operations, and notification
    fanout awaits several collaborators at once.
    """

    @functools.wraps(method)
    async def wrapper(self, *args, **kwargs):
        async with self._lock:
            return await method(self, *args, **kwargs)

    return wrapper


class _SessionBound:
    def __init__(self, session: AsyncSession):
        self._s = session
        self._lock: asyncio.Lock = session.info.setdefault("queue_dispatch.lock", asyncio.Lock())


class SqlTicketRepository(_SessionBound, TicketRepository):
    def _where(self, f: TicketFilters) -> list:
        clauses = [TicketModel.shop_id == f.shop_id]
        if f.statuses:
            clauses.append(TicketModel.status.in_([s.value for s in f.statuses]))
        if f.priorities:
            clauses.append(TicketModel.priority.in_([p.value for p in f.priorities]))
        if f.department_id is not None:
            clauses.append(TicketModel.department_id == f.department_id)
        if f.assigned_staff_id is not None:
            clauses.append(TicketModel.assigned_staff_id == f.assigned_staff_id)
        if f.ticket_ids:
            clauses.append(TicketModel.id.in_(f.ticket_ids))
        if f.created_from is not None:
            clauses.append(TicketModel.created_at >= f.created_from)
        if f.created_to is not None:
            clauses.append(TicketModel.created_at < f.created_to)
        return clauses

    @serialized
    async def get_by_id(self, ticket_id: int) -> Ticket | None:
        result = await self._s.execute(
            select(TicketModel)
            .options(selectinload(TicketModel.services))
            .where(TicketModel.id == ticket_id)
        )
        m = result.scalar_one_or_none()
        return _ticket_to_domain(m) if m else None

    @serialized
    async def get_paginated(self, filters: TicketFilters, page: int = 1, limit: int = 50) -> TicketPage:
        where = and_(*self._where(filters))
        total = await self._s.scalar(select(func.count()).select_from(TicketModel).where(where))
        result = await self._s.execute(
            select(TicketModel)
            .options(selectinload(TicketModel.services))
            .where(where)
            .order_by(TicketModel.created_at, TicketModel.id)
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return TicketPage(
            items=[_ticket_to_domain(m) for m in result.scalars()],
            page=page,
            limit=limit,
            total=total or 0,
        )

    @serialized
    async def create(self, ticket: Ticket) -> Ticket:
        m = TicketModel(
            shop_id=ticket.shop_id,
            customer_id=ticket.customer_id,
            queue_number=ticket.queue_number,
            service_day=ticket.service_day or ticket.created_at.date(),
            created_at=ticket.created_at,
            services=[
                TicketServiceModel(
                    service_id=s.service_id, name=s.name, quantity=s.quantity, unit_price=s.unit_price
                )
                for s in ticket.services
            ],
            **_ticket_values(ticket),
        )
        self._s.add(m)
        await self._s.flush()
        ticket.id = m.id
        return ticket

    @serialized
    async def update(self, ticket: Ticket) -> Ticket:
        await self._s.execute(
            update(TicketModel).where(TicketModel.id == ticket.id).values(**_ticket_values(ticket))
        )
        await self._s.flush()
        return ticket

    @serialized
    async def update_if(
        self,
        ticket: Ticket,
        expected_status: TicketStatus,
        expected_assignee_id: int | None,
    ) -> bool:
        # Single conditional UPDATE: the row only changes if nobody moved it since it was read
        result = await self._s.execute(
            update(TicketModel)
            .where(
                TicketModel.id == ticket.id,
                TicketModel.status == expected_status.value,
                TicketModel.assigned_staff_id.is_not_distinct_from(expected_assignee_id),
            )
            .values(**_ticket_values(ticket))
            .execution_options(synchronize_session=False)
        )
        await self._s.flush()
        return result.rowcount == 1

    @serialized
    async def delete(self, ticket_id: int) -> None:
        await self._s.execute(delete(TicketModel).where(TicketModel.id == ticket_id))
        await self._s.flush()

    @serialized
    async def next_queue_number(self, shop_id: int, day: date) -> int:
        current = await self._s.scalar(
            select(func.coalesce(func.max(TicketModel.queue_number), 0)).where(
                TicketModel.shop_id == shop_id, TicketModel.service_day == day
            )
        )
        return (current or 0) + 1


class SqlStaffDirectory(_SessionBound, StaffDirectory):
    """Load is derived from tickets actively assigned to each staff member."""

    def _with_load(self):
        load = (
            select(func.count(TicketModel.id))
            .where(
                TicketModel.assigned_staff_id == StaffModel.id,
                TicketModel.status.in_(ACTIVE_STATUSES),
            )
            .correlate(StaffModel)
            .scalar_subquery()
        )
        return select(StaffModel, load.label("load"))

    @serialized
    async def get_by_id(self, staff_id: int) -> StaffMember | None:
        result = await self._s.execute(self._with_load().where(StaffModel.id == staff_id))
        row = result.one_or_none()
        return _staff_to_domain(row[0], row[1]) if row else None

    @serialized
    async def find(
        self,
        shop_id: int,
        department_id: int | None = None,
        on_duty: bool | None = None,
    ) -> list[StaffMember]:
        query = self._with_load().where(StaffModel.shop_id == shop_id)
        if department_id is not None:
            query = query.where(StaffModel.department_id == department_id)
        if on_duty is not None:
            query = query.where(StaffModel.on_duty == on_duty)
        result = await self._s.execute(query.order_by(StaffModel.id))
        return [_staff_to_domain(m, load) for m, load in result.all()]


class SqlCustomerRepository(_SessionBound, CustomerRepository):
    @serialized
    async def get_by_id(self, customer_id: int) -> Customer | None:
        m = await self._s.get(CustomerModel, customer_id)
        if m is None:
            return None
        return Customer(id=m.id, name=m.name, phone=m.phone, email=m.email, push_token=m.push_token)


class SqlPaymentRepository(_SessionBound, PaymentRepository):
    @serialized
    async def get_for_tickets(self, ticket_ids: list[int]) -> dict[int, list[Payment]]:
        if not ticket_ids:
            return {}
        result = await self._s.execute(
            select(PaymentModel).where(PaymentModel.ticket_id.in_(ticket_ids)).order_by(PaymentModel.id)
        )
        grouped: dict[int, list[Payment]] = {}
        for m in result.scalars():
            grouped.setdefault(m.ticket_id, []).append(
                Payment(
                    id=m.id,
                    ticket_id=m.ticket_id,
                    amount=m.amount,
                    status=PaymentStatus(m.status),
                    paid_at=m.paid_at,
                )
            )
        return grouped


class SqlNotificationRepository(_SessionBound, NotificationRepository):
    @serialized
    async def get_rules(self, shop_id: int, active_only: bool = True) -> list[NotificationRule]:
        query = select(NotificationRuleModel).where(NotificationRuleModel.shop_id == shop_id)
        if active_only:
            query = query.where(NotificationRuleModel.active.is_(True))
        result = await self._s.execute(query.order_by(NotificationRuleModel.id))
        return [_rule_to_domain(m) for m in result.scalars()]

    @serialized
    async def save_schedule(self, shop_id: int, entries: list[ScheduledNotification]) -> str:
        schedule_id = uuid.uuid4().hex
        self._s.add_all(
            [
                ScheduledNotificationModel(
                    schedule_id=schedule_id,
                    shop_id=shop_id,
                    rule_id=e.rule_id,
                    rule_name=e.rule_name,
                    kind=e.kind.value,
                    channels=[c.value for c in e.channels],
                    priority=e.priority.value,
                    scheduled_at=e.scheduled_at,
                    ticket_id=e.ticket_id,
                    message=e.message,
                )
                for e in entries
            ]
        )
        await self._s.flush()
        return schedule_id

    @serialized
    async def record_delivery(self, shop_id: int, outcome: NotificationOutcome) -> None:
        self._s.add_all(
            [
                NotificationDeliveryModel(
                    shop_id=shop_id,
                    ticket_id=outcome.ticket_id,
                    notification_type=outcome.notification_type.value,
                    channel=r.channel.value,
                    success=r.success,
                    message_id=r.message_id,
                    error=r.error,
                    message=outcome.message,
                )
                for r in outcome.channel_results
            ]
        )
        await self._s.flush()


class SqlRoundRobinRepository(_SessionBound, RoundRobinRepository):
    @serialized
    async def increment_counter(self, rr_key: str) -> int:
        result = await self._s.execute(
            select(RoundRobinStateModel)
            .where(RoundRobinStateModel.rr_key == rr_key)
            .with_for_update()
        )
        m = result.scalar_one_or_none()
        if m is None:
            m = RoundRobinStateModel(rr_key=rr_key, counter=1)
            self._s.add(m)
            await self._s.flush()
            return 0
        old_value = m.counter
        m.counter += 1
        await self._s.flush()
        return old_value
