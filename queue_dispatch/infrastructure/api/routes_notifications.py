"""Notification endpoints — schedule rules, send one, send bulk."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from queue_dispatch.application.use_cases.notifications import (
    ScheduleNotificationsUseCase,
    SendBulkNotificationsUseCase,
    SendNotificationUseCase,
)
from queue_dispatch.domain.entities.notification import NotificationRule, RuleCondition, RuleTrigger
from queue_dispatch.domain.errors import parse_enum
from queue_dispatch.domain.value_objects.enums import (
    Channel,
    ConditionOperator,
    NotificationPriority,
    NotificationType,
    Recurrence,
    RuleKind,
    TicketStatus,
)
from queue_dispatch.infrastructure.api.dependencies import (
    get_bulk_notifications_uc,
    get_schedule_uc,
    get_send_notification_uc,
    get_shop_id,
)
from queue_dispatch.infrastructure.api.serializers import (
    serialize_bulk,
    serialize_outcome,
    serialize_schedule,
)

router = APIRouter(prefix="/notifications", tags=["notifications"])


class ConditionIn(BaseModel):
    field: str
    operator: str
    value: Any = None


class TriggerIn(BaseModel):
    time: str | None = None
    recurrence: str | None = None
    weekday: int | None = None
    day_of_month: int | None = None
    status: str | None = None
    event: str | None = None
    delay_minutes: int = 0


class RuleIn(BaseModel):
    id: int | None = None
    name: str
    kind: str
    trigger: TriggerIn = Field(default_factory=TriggerIn)
    channels: list[str] = Field(default_factory=list)
    conditions: list[ConditionIn] = Field(default_factory=list)
    template: str | None = None
    active: bool = True
    priority: str = NotificationPriority.MEDIUM.value
    notification_type: str = NotificationType.STATUS_UPDATE.value


class ScheduleRequest(BaseModel):
    rules: list[RuleIn] | None = None
    horizon_days: int | None = None
    timezone: str | None = None


class SendRequest(BaseModel):
    ticket_id: int
    type: str
    channels: list[str] | None = None
    priority: str = NotificationPriority.MEDIUM.value
    message: str | None = None


class BulkRequest(BaseModel):
    ticket_ids: list[int]
    type: str
    channels: list[str] | None = None
    batch_size: int | None = None
    priority: str = NotificationPriority.MEDIUM.value


def _to_rule(shop_id: int, index: int, rule: RuleIn) -> NotificationRule:
    op = "schedule_notifications"
    label = f"rule {index + 1}"
    t = rule.trigger
    return NotificationRule(
        id=rule.id,
        shop_id=shop_id,
        name=rule.name,
        kind=parse_enum(RuleKind, rule.kind, op, f"{label} kind"),
        trigger=RuleTrigger(
            time=t.time,
            recurrence=parse_enum(Recurrence, t.recurrence, op, f"{label} recurrence") if t.recurrence else None,
            weekday=t.weekday,
            day_of_month=t.day_of_month,
            status=parse_enum(TicketStatus, t.status, op, f"{label} status") if t.status else None,
            event=t.event,
            delay_minutes=t.delay_minutes,
        ),
        channels=[parse_enum(Channel, c, op, f"{label} channel") for c in rule.channels],
        conditions=[
            RuleCondition(
                field=c.field,
                operator=parse_enum(ConditionOperator, c.operator, op, f"{label} condition operator"),
                value=c.value,
            )
            for c in rule.conditions
        ],
        template=rule.template,
        active=rule.active,
        priority=parse_enum(NotificationPriority, rule.priority, op, f"{label} priority"),
        notification_type=parse_enum(NotificationType, rule.notification_type, op, f"{label} type"),
    )


@router.post("/schedule", status_code=201)
async def schedule_notifications(
    body: ScheduleRequest,
    shop_id: int = Depends(get_shop_id),
    uc: ScheduleNotificationsUseCase = Depends(get_schedule_uc),
):
    """Expand rules into a schedule; without ``rules`` the shop's stored rules are used."""
    rules = (
        [_to_rule(shop_id, i, r) for i, r in enumerate(body.rules)] if body.rules is not None else None
    )
    result = await uc.execute(shop_id, rules=rules, horizon_days=body.horizon_days, tz_name=body.timezone)
    return serialize_schedule(result)


@router.post("/send")
async def send_notification(
    body: SendRequest,
    shop_id: int = Depends(get_shop_id),
    uc: SendNotificationUseCase = Depends(get_send_notification_uc),
):
    outcome = await uc.execute(
        shop_id=shop_id,
        ticket_id=body.ticket_id,
        notification_type=body.type,
        channels=body.channels,
        priority=body.priority,
        message=body.message,
    )
    return serialize_outcome(outcome)


@router.post("/bulk")
async def send_bulk(
    body: BulkRequest,
    shop_id: int = Depends(get_shop_id),
    uc: SendBulkNotificationsUseCase = Depends(get_bulk_notifications_uc),
):
    summary = await uc.execute(
        shop_id=shop_id,
        ticket_ids=body.ticket_ids,
        notification_type=body.type,
        channels=body.channels,
        batch_size=body.batch_size,
        priority=body.priority,
    )
    return serialize_bulk(summary)
