"""Notification rule and delivery entities."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from queue_dispatch.domain.value_objects.enums import (
    Channel,
    ConditionOperator,
    NotificationPriority,
    NotificationType,
    Recurrence,
    RuleKind,
    TicketStatus,
)


@dataclass(frozen=True)
class RuleCondition:
    field: str
    operator: ConditionOperator
    value: Any


@dataclass(frozen=True)
class RuleTrigger:
    """Trigger definition; which fields matter depends on the rule kind.

    time-based:   time ("HH:MM") + recurrence, optional weekday (0=Mon) / day_of_month
    status-based: status
    event-based:  event
    delay_minutes applies to the reactive kinds.
    """

    time: str | None = None
    recurrence: Recurrence | None = None
    weekday: int | None = None
    day_of_month: int | None = None
    status: TicketStatus | None = None
    event: str | None = None
    delay_minutes: int = 0


@dataclass
class NotificationRule:
    id: int | None
    shop_id: int
    name: str
    kind: RuleKind
    trigger: RuleTrigger
    channels: list[Channel]
    conditions: list[RuleCondition] = field(default_factory=list)
    template: str | None = None
    active: bool = True
    priority: NotificationPriority = NotificationPriority.MEDIUM
    notification_type: NotificationType = NotificationType.STATUS_UPDATE


@dataclass
class ScheduledNotification:
    """A concrete notification instance produced by the scheduler.

    ``scheduled_at`` is None for reactive rules that fire on a status change or
    event rather than at a fixed time.
    """

    rule_id: int | None
    rule_name: str
    kind: RuleKind
    channels: list[Channel]
    priority: NotificationPriority
    scheduled_at: datetime | None
    ticket_id: int | None = None
    message: str | None = None


@dataclass(frozen=True)
class SendReceipt:
    """What a channel sender returns for one message."""

    success: bool
    message_id: str | None = None
    error: str | None = None


@dataclass
class ChannelResult:
    channel: Channel
    success: bool
    message_id: str | None = None
    error: str | None = None


@dataclass
class NotificationOutcome:
    """Per-ticket fanout result; each channel is tracked independently."""

    ticket_id: int
    notification_type: NotificationType
    message: str | None
    channel_results: list[ChannelResult] = field(default_factory=list)
    error: str | None = None

    @property
    def total_channels(self) -> int:
        return len(self.channel_results)

    @property
    def successful_channels(self) -> int:
        return sum(1 for r in self.channel_results if r.success)

    @property
    def failed_channels(self) -> int:
        return sum(1 for r in self.channel_results if not r.success)

    @property
    def success(self) -> bool:
        return self.error is None and self.successful_channels > 0
