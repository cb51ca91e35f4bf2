"""Tests for NotificationRulePolicy."""

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from queue_dispatch.domain.entities.notification import NotificationRule, RuleCondition, RuleTrigger
from queue_dispatch.domain.entities.ticket import ServiceLineItem, Ticket
from queue_dispatch.domain.errors import ErrorKind, QueueError
from queue_dispatch.domain.policies.notification_rules import (
    check_type_allowed,
    compose_message,
    estimated_daily_notifications,
    evaluate_condition,
    expand_time_rule,
    fires_on_event,
    fires_on_status,
    render_template,
    rule_matches,
    validate_rule,
)
from queue_dispatch.domain.value_objects.enums import (
    Channel,
    ConditionOperator,
    CustomerTier,
    NotificationType,
    Recurrence,
    RuleKind,
    TicketStatus,
)

# Monday, 10:00 UTC
NOW = datetime(2026, 3, 2, 10, 0, tzinfo=timezone.utc)


def _rule(kind=RuleKind.TIME_BASED, trigger=None, conditions=(), **kw) -> NotificationRule:
    kw.setdefault("channels", [Channel.SMS])
    return NotificationRule(
        id=1, shop_id=1, name="Rule", kind=kind,
        trigger=trigger or RuleTrigger(time="18:00", recurrence=Recurrence.DAILY),
        conditions=list(conditions), **kw,
    )


def _ticket(status=TicketStatus.WAITING, **kw) -> Ticket:
    return Ticket(
        id=4, shop_id=1, customer_id=1, queue_number=12, status=status,
        services=[ServiceLineItem(1, "Haircut", 1, 30.0)], **kw,
    )


# ─── Conditions ──────────────────────────────────────────────────────


def _cond(field, op, value):
    return RuleCondition(field=field, operator=op, value=value)


def test_condition_on_missing_field_is_false():
    assert not evaluate_condition(_cond("nope", ConditionOperator.EQUALS, 1), {})
    assert not evaluate_condition(_cond("x", ConditionOperator.NOT_EQUALS, 1), {"x": None})


def test_equals_is_case_insensitive_and_numeric():
    ctx = {"customer_tier": "Gold", "estimated_wait_minutes": 30}
    assert evaluate_condition(_cond("customer_tier", ConditionOperator.EQUALS, "gold"), ctx)
    assert evaluate_condition(_cond("estimated_wait_minutes", ConditionOperator.EQUALS, "30"), ctx)
    assert evaluate_condition(_cond("customer_tier", ConditionOperator.NOT_EQUALS, "Silver"), ctx)


def test_numeric_comparisons():
    ctx = {"total_amount": 120.0, "notes": "vip"}
    assert evaluate_condition(_cond("total_amount", ConditionOperator.GREATER_THAN, 100), ctx)
    assert not evaluate_condition(_cond("total_amount", ConditionOperator.LESS_THAN, 100), ctx)
    assert not evaluate_condition(_cond("notes", ConditionOperator.GREATER_THAN, 1), ctx)


def test_contains_on_lists_and_strings():
    ctx = {"service_names": ["Haircut", "Wash"], "notes": "Prefers Ann"}
    assert evaluate_condition(_cond("service_names", ConditionOperator.CONTAINS, "wash"), ctx)
    assert evaluate_condition(_cond("notes", ConditionOperator.CONTAINS, "ann"), ctx)
    assert not evaluate_condition(_cond("service_names", ConditionOperator.CONTAINS, "Color"), ctx)


def test_rule_matches_requires_all_conditions():
    ctx = _ticket(customer_tier=CustomerTier.GOLD).as_context()
    rule = _rule(
        conditions=[
            _cond("customer_tier", ConditionOperator.EQUALS, "Gold"),
            _cond("total_amount", ConditionOperator.GREATER_THAN, 50),
        ]
    )
    assert not rule_matches(rule, ctx)
    assert rule_matches(_rule(), ctx)


def test_fires_on_status_and_event():
    status_rule = _rule(RuleKind.STATUS_BASED, RuleTrigger(status=TicketStatus.SERVING))
    event_rule = _rule(RuleKind.EVENT_BASED, RuleTrigger(event="ticket_created"))
    assert fires_on_status(status_rule, TicketStatus.SERVING)
    assert not fires_on_status(status_rule, TicketStatus.COMPLETED)
    assert fires_on_event(event_rule, "ticket_created")
    assert not fires_on_event(status_rule, "ticket_created")
    event_rule.active = False
    assert not fires_on_event(event_rule, "ticket_created")


# ─── Validation ──────────────────────────────────────────────────────


def test_validate_rule_names_position():
    bad = _rule(trigger=RuleTrigger(time="25:00", recurrence=Recurrence.DAILY))
    with pytest.raises(QueueError) as exc:
        validate_rule(bad, 1, "schedule")
    assert exc.value.kind == ErrorKind.VALIDATION_ERROR
    assert exc.value.message.startswith("Rule 2:")
    assert exc.value.context["rule_index"] == 1


@pytest.mark.parametrize(
    "rule",
    [
        _rule(channels=[]),
        _rule(trigger=RuleTrigger(time="09:00")),
        _rule(RuleKind.STATUS_BASED, RuleTrigger()),
        _rule(RuleKind.EVENT_BASED, RuleTrigger()),
        _rule(RuleKind.EVENT_BASED, RuleTrigger(event="ticket_created", delay_minutes=-1)),
        _rule(trigger=RuleTrigger(time="09:00", recurrence=Recurrence.WEEKLY, weekday=7)),
    ],
)
def test_invalid_rules_rejected(rule):
    with pytest.raises(QueueError):
        validate_rule(rule, 0, "schedule")


# ─── Expansion ───────────────────────────────────────────────────────


def test_daily_rule_skips_past_time_today():
    morning = _rule(trigger=RuleTrigger(time="09:00", recurrence=Recurrence.DAILY))
    evening = _rule(trigger=RuleTrigger(time="18:00", recurrence=Recurrence.DAILY))
    assert len(expand_time_rule(morning, NOW, 3)) == 2
    entries = expand_time_rule(evening, NOW, 3)
    assert len(entries) == 3
    assert entries[0].scheduled_at == datetime(2026, 3, 2, 18, 0, tzinfo=timezone.utc)


def test_weekly_rule_defaults_to_today():
    rule = _rule(trigger=RuleTrigger(time="18:00", recurrence=Recurrence.WEEKLY))
    entries = expand_time_rule(rule, NOW, 14)
    assert [e.scheduled_at.day for e in entries] == [2, 9]


def test_monthly_rule_on_given_day():
    rule = _rule(trigger=RuleTrigger(time="08:00", recurrence=Recurrence.MONTHLY, day_of_month=5))
    entries = expand_time_rule(rule, NOW, 7)
    assert [e.scheduled_at.day for e in entries] == [5]


def test_wall_clock_interpreted_in_shop_timezone():
    rule = _rule(trigger=RuleTrigger(time="09:00", recurrence=Recurrence.DAILY))
    entries = expand_time_rule(rule, NOW, 2, ZoneInfo("Asia/Tokyo"))
    assert [e.scheduled_at for e in entries] == [datetime(2026, 3, 3, 0, 0, tzinfo=timezone.utc)]


def test_estimated_daily_notifications_counts_active_rules():
    rules = [
        _rule(),
        _rule(RuleKind.STATUS_BASED, RuleTrigger(status=TicketStatus.SERVING)),
        _rule(RuleKind.EVENT_BASED, RuleTrigger(event="ticket_created"), active=False),
    ]
    assert estimated_daily_notifications(rules) == 6


# ─── Messages ────────────────────────────────────────────────────────


def test_cancelled_tickets_get_nothing():
    with pytest.raises(QueueError):
        check_type_allowed(_ticket(TicketStatus.CANCELLED), NotificationType.FEEDBACK, "send")


def test_completed_tickets_only_get_feedback():
    check_type_allowed(_ticket(TicketStatus.COMPLETED), NotificationType.FEEDBACK, "send")
    with pytest.raises(QueueError):
        check_type_allowed(_ticket(TicketStatus.COMPLETED), NotificationType.REMINDER, "send")


def test_no_show_tickets_only_get_reminders():
    check_type_allowed(_ticket(TicketStatus.NO_SHOW), NotificationType.REMINDER, "send")
    with pytest.raises(QueueError):
        check_type_allowed(_ticket(TicketStatus.NO_SHOW), NotificationType.STATUS_UPDATE, "send")


def test_render_template_blanks_unknown_fields():
    text = render_template("Ticket #{queue_number} {missing}for {notes}", _ticket().as_context())
    assert text == "Ticket #12 for "


@pytest.mark.parametrize("template", ["Hi {", "{0}", "{id.x}", "{notes!z}"])
def test_render_template_rejects_malformed(template):
    with pytest.raises(QueueError) as exc:
        render_template(template, _ticket().as_context(), "send")
    assert exc.value.kind == ErrorKind.VALIDATION_ERROR
    assert exc.value.operation == "send"


def test_compose_reminder_uses_default_wait():
    text = compose_message(_ticket(), NotificationType.REMINDER, "Ann")
    assert text.startswith("Hi Ann, this is a reminder for your ticket #12.")
    assert "15 minutes" in text


def test_compose_status_update_uses_label():
    text = compose_message(_ticket(TicketStatus.SERVING), NotificationType.STATUS_UPDATE)
    assert text == "Hi Customer, your ticket #12 status has been updated to: In Progress."
