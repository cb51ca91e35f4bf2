"""Tests for scheduling, reactive dispatch and single / bulk notification sends."""

from __future__ import annotations

import pytest

from queue_dispatch.application.use_cases.notifications import (
    ChannelFanout,
    NotificationDispatcher,
    ScheduleNotificationsUseCase,
    SendBulkNotificationsUseCase,
    SendNotificationUseCase,
)
from queue_dispatch.application.use_cases.ticket_lifecycle import TicketLifecycleUseCase
from queue_dispatch.domain.entities.notification import (
    NotificationRule,
    RuleCondition,
    RuleTrigger,
)
from queue_dispatch.domain.errors import ErrorKind, QueueError
from queue_dispatch.domain.value_objects.enums import (
    Channel,
    ConditionOperator,
    NotificationType,
    Recurrence,
    RuleKind,
    TicketStatus,
)


@pytest.fixture
def sms(sender_factory):
    return sender_factory(Channel.SMS)


@pytest.fixture
def email(sender_factory):
    return sender_factory(Channel.EMAIL)


@pytest.fixture
def fanout(sms, email, customer_repo, notification_repo):
    return ChannelFanout([sms, email], customer_repo, notification_repo, timeout=1.0)


@pytest.fixture
def sender(ticket_repo, fanout):
    return SendNotificationUseCase(ticket_repo, fanout, timeout=1.0)


@pytest.fixture
def tickets(ticket_repo, make_ticket):
    ticket_repo.add(make_ticket(1, customer_id=1, estimated_wait_minutes=20))
    ticket_repo.add(make_ticket(2, customer_id=2))
    ticket_repo.add(make_ticket(3, status=TicketStatus.CANCELLED))
    ticket_repo.add(make_ticket(4, customer_id=404))
    ticket_repo.add(make_ticket(5, customer_id=1, status=TicketStatus.COMPLETED))
    return ticket_repo


def _rule(kind, trigger, channels=(Channel.SMS,), shop_id=1, **kw) -> NotificationRule:
    return NotificationRule(
        id=kw.pop("id", 1), shop_id=shop_id, name=kw.pop("name", "Rule"), kind=kind,
        trigger=trigger, channels=list(channels), **kw,
    )


# ─── Single send ─────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_send_on_every_channel(sender, tickets, sms, email, notification_repo):
    outcome = await sender.execute(1, 1, "reminder", channels=["sms", "email"])

    assert outcome.success
    assert outcome.successful_channels == 2
    assert sms.sent[0][0] == "+15550001"
    assert email.sent[0][0] == "alice@example.com"
    assert "20 minutes" in outcome.message
    assert notification_repo.deliveries[0][1] is outcome


@pytest.mark.asyncio
async def test_default_channel_is_sms(sender, tickets, sms, email):
    outcome = await sender.execute(1, 1, NotificationType.READY_TO_SERVE)
    assert [r.channel for r in outcome.channel_results] == [Channel.SMS]
    assert email.sent == []


@pytest.mark.asyncio
async def test_missing_contact_fails_only_that_channel(sender, tickets):
    outcome = await sender.execute(1, 2, "status-update", channels=["sms", "email"])
    results = {r.channel: r for r in outcome.channel_results}
    assert results[Channel.SMS].success
    assert not results[Channel.EMAIL].success
    assert "email address" in results[Channel.EMAIL].error
    assert outcome.success


@pytest.mark.asyncio
async def test_channel_exception_is_isolated(sender, tickets, email):
    email.raises = ConnectionError("smtp down")
    outcome = await sender.execute(1, 1, "reminder", channels=["sms", "email"])
    results = {r.channel: r for r in outcome.channel_results}
    assert results[Channel.SMS].success
    assert not results[Channel.EMAIL].success
    assert "smtp down" in results[Channel.EMAIL].error


@pytest.mark.asyncio
async def test_rejected_message_is_a_failed_channel(sender, tickets, sms):
    sms.reject = True
    outcome = await sender.execute(1, 1, "reminder")
    assert not outcome.success
    assert outcome.failed_channels == 1


@pytest.mark.asyncio
async def test_channel_without_sender(sender, tickets):
    outcome = await sender.execute(1, 1, "reminder", channels=["push"])
    assert not outcome.success
    assert "No sender configured" in outcome.channel_results[0].error


@pytest.mark.asyncio
async def test_delivery_log_failure_does_not_fail_send(sender, tickets, notification_repo):
    notification_repo.fail_record = True
    outcome = await sender.execute(1, 1, "reminder")
    assert outcome.success


@pytest.mark.asyncio
async def test_custom_message_overrides_template(sender, tickets, sms):
    await sender.execute(1, 1, "reminder", message="Come back at 3pm")
    assert sms.sent[0][1] == "Come back at 3pm"


@pytest.mark.asyncio
async def test_cancelled_ticket_rejected(sender, tickets):
    with pytest.raises(QueueError) as exc:
        await sender.execute(1, 3, "reminder")
    assert exc.value.kind == ErrorKind.VALIDATION_ERROR


@pytest.mark.asyncio
async def test_completed_ticket_accepts_feedback_only(sender, tickets):
    assert (await sender.execute(1, 5, "feedback")).success
    with pytest.raises(QueueError):
        await sender.execute(1, 5, "reminder")


@pytest.mark.asyncio
async def test_unknown_customer(sender, tickets):
    with pytest.raises(QueueError) as exc:
        await sender.execute(1, 4, "reminder")
    assert exc.value.kind == ErrorKind.NOT_FOUND


@pytest.mark.asyncio
async def test_unknown_type_and_channel(sender, tickets):
    with pytest.raises(QueueError):
        await sender.execute(1, 1, "telegram-blast")
    with pytest.raises(QueueError):
        await sender.execute(1, 1, "reminder", channels=["fax"])


# ─── Bulk send ───────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_bulk_send_accounts_for_every_ticket(ticket_repo, sender, tickets):
    uc = SendBulkNotificationsUseCase(ticket_repo, sender, default_batch_size=2, timeout=1.0)
    summary = await uc.execute(1, [1, 2, 3, 4, 999, 1], "status-update", channels=["sms", "email"])

    assert summary.total == 5
    assert summary.successful == 2
    assert summary.failed == 3
    assert summary.successful + summary.failed == summary.total
    assert summary.success_rate == 0.4
    assert summary.by_channel[Channel.SMS].sent == 2
    assert summary.by_channel[Channel.EMAIL].sent == 1
    assert summary.by_channel[Channel.EMAIL].failed == 1

    errors = {o.ticket_id: o.error for o in summary.outcomes}
    assert errors[1] is None
    assert errors[999] is not None


@pytest.mark.asyncio
async def test_bulk_limits(ticket_repo, sender, tickets):
    uc = SendBulkNotificationsUseCase(ticket_repo, sender, bulk_limit=3, timeout=1.0)
    with pytest.raises(QueueError):
        await uc.execute(1, [1, 2, 3, 4], "reminder")
    with pytest.raises(QueueError):
        await uc.execute(1, [], "reminder")
    with pytest.raises(QueueError):
        await uc.execute(1, [1], "reminder", batch_size=0)


# ─── Scheduling ──────────────────────────────────────────────────────


@pytest.fixture
def scheduler(notification_repo, clock):
    return ScheduleNotificationsUseCase(notification_repo, clock=clock, timeout=1.0)


@pytest.mark.asyncio
async def test_schedule_expands_rules(scheduler, notification_repo):
    rules = [
        _rule(RuleKind.STATUS_BASED, RuleTrigger(status=TicketStatus.SERVING), id=2),
        _rule(RuleKind.TIME_BASED, RuleTrigger(time="18:00", recurrence=Recurrence.DAILY), id=1),
        _rule(RuleKind.EVENT_BASED, RuleTrigger(event="ticket_created"), id=3, active=False),
    ]
    result = await scheduler.execute(1, rules, horizon_days=3)

    assert result.schedule_id == "schedule-1"
    assert result.total_rules == 3
    assert result.active_rules == 2
    assert result.estimated_daily_notifications == 6
    assert len(result.entries) == 4
    assert [e.scheduled_at is None for e in result.entries] == [False, False, False, True]
    assert notification_repo.schedules[0][1] == result.entries


@pytest.mark.asyncio
async def test_schedule_uses_stored_rules(scheduler, notification_repo):
    notification_repo.rules.append(
        _rule(RuleKind.TIME_BASED, RuleTrigger(time="18:00", recurrence=Recurrence.DAILY))
    )
    result = await scheduler.execute(1)
    assert result.horizon_days == 7
    assert len(result.entries) == 7


@pytest.mark.asyncio
async def test_schedule_without_rules(scheduler):
    with pytest.raises(QueueError) as exc:
        await scheduler.execute(1)
    assert exc.value.kind == ErrorKind.VALIDATION_ERROR


@pytest.mark.asyncio
async def test_schedule_rejects_foreign_rule(scheduler):
    rule = _rule(RuleKind.EVENT_BASED, RuleTrigger(event="ticket_created"), shop_id=2)
    with pytest.raises(QueueError) as exc:
        await scheduler.execute(1, [rule])
    assert exc.value.kind == ErrorKind.UNAUTHORIZED


@pytest.mark.asyncio
async def test_schedule_rejects_invalid_rule(scheduler):
    good = _rule(RuleKind.EVENT_BASED, RuleTrigger(event="ticket_created"))
    bad = _rule(RuleKind.TIME_BASED, RuleTrigger(time="7pm", recurrence=Recurrence.DAILY))
    with pytest.raises(QueueError) as exc:
        await scheduler.execute(1, [good, bad])
    assert exc.value.message.startswith("Rule 2:")


@pytest.mark.asyncio
@pytest.mark.parametrize("horizon", [0, 91])
async def test_schedule_horizon_bounds(scheduler, horizon):
    rule = _rule(RuleKind.EVENT_BASED, RuleTrigger(event="ticket_created"))
    with pytest.raises(QueueError):
        await scheduler.execute(1, [rule], horizon_days=horizon)


@pytest.mark.asyncio
async def test_schedule_unknown_timezone(scheduler):
    rule = _rule(RuleKind.EVENT_BASED, RuleTrigger(event="ticket_created"))
    with pytest.raises(QueueError):
        await scheduler.execute(1, [rule], tz_name="Mars/Olympus")


# ─── Reactive dispatch ───────────────────────────────────────────────


@pytest.fixture
def wired_lifecycle(ticket_repo, staff_directory, notification_repo, fanout, clock, make_staff):
    staff_directory.add(make_staff(10, name="Ann"))
    dispatcher = NotificationDispatcher(notification_repo, fanout, clock=clock, timeout=1.0)
    return TicketLifecycleUseCase(ticket_repo, staff_directory, listener=dispatcher, clock=clock, timeout=1.0)


@pytest.mark.asyncio
async def test_status_rule_fires_on_transition(wired_lifecycle, tickets, notification_repo, sms):
    notification_repo.rules.append(
        _rule(
            RuleKind.STATUS_BASED,
            RuleTrigger(status=TicketStatus.SERVING),
            template="Ticket #{queue_number}: please come to the counter",
            notification_type=NotificationType.READY_TO_SERVE,
        )
    )
    await wired_lifecycle.assign(1, 1, 10)
    assert sms.sent == [("+15550001", "Ticket #1: please come to the counter")]


@pytest.mark.asyncio
async def test_conditions_filter_reactive_rules(wired_lifecycle, tickets, notification_repo, sms):
    notification_repo.rules.append(
        _rule(
            RuleKind.EVENT_BASED,
            RuleTrigger(event="ticket_confirmed"),
            conditions=[RuleCondition("customer_tier", ConditionOperator.EQUALS, "Gold")],
        )
    )
    await wired_lifecycle.confirm(1, 1)
    assert sms.sent == []


@pytest.mark.asyncio
async def test_delayed_rule_is_deferred(wired_lifecycle, tickets, notification_repo, sms, clock):
    notification_repo.rules.append(
        _rule(RuleKind.EVENT_BASED, RuleTrigger(event="ticket_no_show", delay_minutes=30),
              notification_type=NotificationType.REMINDER)
    )
    await wired_lifecycle.mark_no_show(1, 1)

    assert sms.sent == []
    shop_id, entries = notification_repo.schedules[0]
    assert entries[0].ticket_id == 1
    assert (entries[0].scheduled_at - clock.now).total_seconds() == 30 * 60


@pytest.mark.asyncio
async def test_failing_rule_does_not_break_lifecycle(wired_lifecycle, tickets, notification_repo):
    notification_repo.rules.append(
        _rule(RuleKind.EVENT_BASED, RuleTrigger(event="ticket_confirmed"))
    )
    # customer 404 does not exist
    confirmed = await wired_lifecycle.confirm(1, 4)
    assert confirmed.status == TicketStatus.CONFIRMED


@pytest.mark.asyncio
async def test_broken_template_does_not_block_other_rules(wired_lifecycle, tickets, notification_repo, sms):
    notification_repo.rules.extend(
        [
            _rule(RuleKind.EVENT_BASED, RuleTrigger(event="ticket_confirmed"), id=1, template="Hi {"),
            _rule(RuleKind.EVENT_BASED, RuleTrigger(event="ticket_confirmed"), id=2, template="ok"),
        ]
    )
    await wired_lifecycle.confirm(1, 1)
    assert sms.sent == [("+15550001", "ok")]


@pytest.mark.asyncio
@pytest.mark.parametrize("template", ["Hi {", "Hi {0}", "{id.x}"])
async def test_schedule_rejects_malformed_template(scheduler, template):
    rule = _rule(RuleKind.EVENT_BASED, RuleTrigger(event="ticket_created"), template=template)
    with pytest.raises(QueueError) as exc:
        await scheduler.execute(1, [rule])
    assert exc.value.kind == ErrorKind.VALIDATION_ERROR
    assert exc.value.message.startswith("Rule 1: Invalid template")
