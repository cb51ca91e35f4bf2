"""NotificationRulePolicy — rule validation, condition matching, schedule expansion.

Also owns the per-type message templates and the rules about which notification
types may be sent to a ticket in a given status.
"""

from __future__ import annotations

import re
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Any

from queue_dispatch.domain.entities.notification import (
    NotificationRule,
    RuleCondition,
    ScheduledNotification,
)
from queue_dispatch.domain.entities.ticket import Ticket
from queue_dispatch.domain.errors import QueueError, validation_error
from queue_dispatch.domain.value_objects.enums import (
    ConditionOperator,
    NotificationType,
    Recurrence,
    RuleKind,
    TicketStatus,
)

_TIME_RE = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")

# Rough per-rule daily volume used for capacity estimates.
DAILY_VOLUME_PER_KIND = {
    RuleKind.TIME_BASED: 1,
    RuleKind.STATUS_BASED: 5,
    RuleKind.EVENT_BASED: 3,
}

DEFAULT_ESTIMATED_WAIT = 15

STATUS_LABELS = {
    TicketStatus.WAITING: "Waiting",
    TicketStatus.CONFIRMED: "Confirmed",
    TicketStatus.SERVING: "In Progress",
    TicketStatus.COMPLETED: "Completed",
    TicketStatus.CANCELLED: "Cancelled",
    TicketStatus.NO_SHOW: "No Show",
}


# ─── Conditions ──────────────────────────────────────────────────────


def _as_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _equals(actual: Any, expected: Any) -> bool:
    if actual == expected:
        return True
    a, b = _as_number(actual), _as_number(expected)
    if a is not None and b is not None:
        return a == b
    return str(actual).lower() == str(expected).lower()


def evaluate_condition(condition: RuleCondition, context: dict[str, Any]) -> bool:
    """A condition on a missing field never holds."""
    if condition.field not in context or context[condition.field] is None:
        return False
    actual = context[condition.field]
    expected = condition.value

    match condition.operator:
        case ConditionOperator.EQUALS:
            return _equals(actual, expected)
        case ConditionOperator.NOT_EQUALS:
            return not _equals(actual, expected)
        case ConditionOperator.GREATER_THAN | ConditionOperator.LESS_THAN:
            a, b = _as_number(actual), _as_number(expected)
            if a is None or b is None:
                return False
            return a > b if condition.operator == ConditionOperator.GREATER_THAN else a < b
        case ConditionOperator.CONTAINS:
            if isinstance(actual, (list, tuple, set, frozenset)):
                return any(_equals(item, expected) for item in actual)
            return str(expected).lower() in str(actual).lower()
        case _:
            raise ValueError(f"Unsupported condition operator: {condition.operator}")


def rule_matches(rule: NotificationRule, context: dict[str, Any]) -> bool:
    """All conditions must hold; a rule without conditions always matches."""
    return all(evaluate_condition(c, context) for c in rule.conditions)


def fires_on_status(rule: NotificationRule, status: TicketStatus) -> bool:
    return rule.active and rule.kind == RuleKind.STATUS_BASED and rule.trigger.status == status


def fires_on_event(rule: NotificationRule, event: str) -> bool:
    return rule.active and rule.kind == RuleKind.EVENT_BASED and rule.trigger.event == event


# ─── Validation ──────────────────────────────────────────────────────


def parse_clock(value: str) -> time:
    match = _TIME_RE.match(value)
    if not match:
        raise ValueError(f"Invalid time '{value}', expected HH:MM")
    return time(int(match.group(1)), int(match.group(2)))


def validate_rule(rule: NotificationRule, index: int, operation: str) -> None:
    """Raise VALIDATION_ERROR naming the offending rule by position."""

    def fail(message: str):
        return validation_error(operation, f"Rule {index + 1}: {message}", rule_index=index)

    if not rule.name or not rule.name.strip():
        raise fail("name is required")
    if not rule.channels:
        raise fail("at least one channel is required")

    trigger = rule.trigger
    match rule.kind:
        case RuleKind.TIME_BASED:
            if not trigger.time:
                raise fail("time-based rules require a trigger time")
            try:
                parse_clock(trigger.time)
            except ValueError as e:
                raise fail(str(e)) from e
            if trigger.recurrence is None:
                raise fail("time-based rules require a recurrence")
            if trigger.weekday is not None and not 0 <= trigger.weekday <= 6:
                raise fail("weekday must be between 0 (Monday) and 6 (Sunday)")
            if trigger.day_of_month is not None and not 1 <= trigger.day_of_month <= 31:
                raise fail("day of month must be between 1 and 31")
        case RuleKind.STATUS_BASED:
            if trigger.status is None:
                raise fail("status-based rules require a trigger status")
        case RuleKind.EVENT_BASED:
            if not trigger.event:
                raise fail("event-based rules require a trigger event")
        case _:
            raise fail(f"unsupported rule kind {rule.kind}")

    if trigger.delay_minutes < 0:
        raise fail("delay must not be negative")
    if rule.template is not None:
        try:
            render_template(rule.template, {}, operation)
        except QueueError as e:
            raise fail(e.message) from e


# ─── Expansion ───────────────────────────────────────────────────────


def _runs_on(day: date, recurrence: Recurrence, weekday: int, day_of_month: int) -> bool:
    match recurrence:
        case Recurrence.DAILY:
            return True
        case Recurrence.WEEKLY:
            return day.weekday() == weekday
        case Recurrence.MONTHLY:
            return day.day == day_of_month
        case _:
            raise ValueError(f"Unsupported recurrence: {recurrence}")


def expand_time_rule(
    rule: NotificationRule,
    now: datetime,
    horizon_days: int,
    tz: tzinfo = timezone.utc,
) -> list[ScheduledNotification]:
    """Concrete fire times for a time-based rule over ``horizon_days`` from today.

    Wall-clock times are interpreted in ``tz`` and returned in UTC. A fire time
    earlier than ``now`` today is skipped. Weekly and monthly rules without an
    explicit day default to today's weekday / day of month.
    """
    trigger = rule.trigger
    at = parse_clock(trigger.time)
    local_now = now.astimezone(tz)
    today = local_now.date()
    weekday = trigger.weekday if trigger.weekday is not None else today.weekday()
    day_of_month = trigger.day_of_month if trigger.day_of_month is not None else today.day

    entries = []
    for offset in range(horizon_days):
        day = today + timedelta(days=offset)
        if not _runs_on(day, trigger.recurrence, weekday, day_of_month):
            continue
        fire_at = datetime.combine(day, at, tzinfo=tz)
        if fire_at < local_now:
            continue
        entries.append(
            ScheduledNotification(
                rule_id=rule.id,
                rule_name=rule.name,
                kind=rule.kind,
                channels=list(rule.channels),
                priority=rule.priority,
                scheduled_at=fire_at.astimezone(timezone.utc),
                message=rule.template,
            )
        )
    return entries


def reactive_entry(rule: NotificationRule) -> ScheduledNotification:
    return ScheduledNotification(
        rule_id=rule.id,
        rule_name=rule.name,
        kind=rule.kind,
        channels=list(rule.channels),
        priority=rule.priority,
        scheduled_at=None,
        message=rule.template,
    )


def estimated_daily_notifications(rules: list[NotificationRule]) -> int:
    return sum(DAILY_VOLUME_PER_KIND[r.kind] for r in rules if r.active)


# ─── Messages ────────────────────────────────────────────────────────


def check_type_allowed(ticket: Ticket, notification_type: NotificationType, operation: str) -> None:
    status = ticket.status
    if status == TicketStatus.CANCELLED:
        raise validation_error(
            operation, "Cannot send notifications for cancelled tickets", ticket_id=ticket.id
        )
    if status == TicketStatus.COMPLETED and notification_type != NotificationType.FEEDBACK:
        raise validation_error(
            operation,
            "Completed tickets only accept feedback notifications",
            ticket_id=ticket.id,
            notification_type=notification_type.value,
        )
    if status == TicketStatus.NO_SHOW and notification_type != NotificationType.REMINDER:
        raise validation_error(
            operation,
            "No-show tickets only accept reminder notifications",
            ticket_id=ticket.id,
            notification_type=notification_type.value,
        )


class _Blank(dict):
    def __missing__(self, key):
        return ""


def render_template(template: str, context: dict[str, Any], operation: str = "render_template") -> str:
    """Fill ``{field}`` placeholders; unknown fields render empty.

    A malformed template (unbalanced braces, positional or attribute fields)
    raises VALIDATION_ERROR.
    """
    try:
        return template.format_map(_Blank({k: "" if v is None else v for k, v in context.items()}))
    except (ValueError, IndexError, KeyError, AttributeError, TypeError) as e:
        raise validation_error(operation, f"Invalid template: {e}", template=template) from e


def compose_message(
    ticket: Ticket,
    notification_type: NotificationType,
    customer_name: str | None = None,
) -> str:
    name = customer_name or "Customer"
    number = f"#{ticket.queue_number}" if ticket.queue_number is not None else f"#{ticket.id}"

    match notification_type:
        case NotificationType.REMINDER:
            wait = ticket.estimated_wait_minutes or DEFAULT_ESTIMATED_WAIT
            return (
                f"Hi {name}, this is a reminder for your ticket {number}. "
                f"Your estimated wait time is {wait} minutes."
            )
        case NotificationType.STATUS_UPDATE:
            return (
                f"Hi {name}, your ticket {number} status has been updated to: "
                f"{STATUS_LABELS[ticket.status]}."
            )
        case NotificationType.READY_TO_SERVE:
            return f"Hi {name}, your ticket {number} is ready! Please proceed to the counter."
        case NotificationType.DELAY_NOTIFICATION:
            wait = ticket.actual_wait_minutes or ticket.estimated_wait_minutes or 2 * DEFAULT_ESTIMATED_WAIT
            return (
                f"Hi {name}, there's a delay with your ticket {number}. "
                f"New estimated wait time: {wait} minutes."
            )
        case NotificationType.FEEDBACK:
            return (
                f"Hi {name}, thank you for visiting! "
                "We'd appreciate your feedback about your experience."
            )
        case _:
            raise ValueError(f"Unsupported notification type: {notification_type}")
