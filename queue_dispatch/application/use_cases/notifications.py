"""Notification use cases — schedule rules, react to ticket changes, send single / bulk."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import timedelta
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from queue_dispatch.application.clock import Clock, utc_now
from queue_dispatch.application.collaborator import (
    DEFAULT_TIMEOUT_SECONDS,
    guarded,
    wrap_unexpected,
)
from queue_dispatch.application.ports.channel_sender import ChannelSender
from queue_dispatch.application.ports.customer_repo import CustomerRepository
from queue_dispatch.application.ports.event_listener import TicketEventListener
from queue_dispatch.application.ports.notification_repo import NotificationRepository
from queue_dispatch.application.ports.ticket_repo import TicketRepository
from queue_dispatch.application.scoping import load_ticket
from queue_dispatch.domain.entities.customer import Customer
from queue_dispatch.domain.entities.notification import (
    ChannelResult,
    NotificationOutcome,
    NotificationRule,
    ScheduledNotification,
)
from queue_dispatch.domain.entities.ticket import Ticket
from queue_dispatch.domain.errors import QueueError, not_found, parse_enum, unauthorized, validation_error
from queue_dispatch.domain.policies.notification_rules import (
    check_type_allowed,
    compose_message,
    estimated_daily_notifications,
    expand_time_rule,
    fires_on_event,
    fires_on_status,
    reactive_entry,
    render_template,
    rule_matches,
    validate_rule,
)
from queue_dispatch.domain.value_objects.enums import (
    Channel,
    NotificationPriority,
    NotificationType,
    RuleKind,
    TicketEvent,
    TicketStatus,
)

logger = logging.getLogger(__name__)

MAX_HORIZON_DAYS = 90

_CONTACT_LABELS = {
    Channel.SMS: "phone number",
    Channel.EMAIL: "email address",
    Channel.PUSH: "push token",
}


def _parse_channels(raw: list[Channel | str], operation: str) -> list[Channel]:
    if not raw:
        raise validation_error(operation, "At least one channel is required")
    channels = [parse_enum(Channel, c, operation, "channel") for c in raw]
    return list(dict.fromkeys(channels))


# ─── Delivery ────────────────────────────────────────────────────────


class ChannelFanout:
    """Concurrent per-channel delivery; one channel failing never affects the others."""

    def __init__(
        self,
        senders: list[ChannelSender],
        customer_repo: CustomerRepository,
        notification_repo: NotificationRepository,
        timeout: float | None = DEFAULT_TIMEOUT_SECONDS,
    ):
        self._senders = {s.channel: s for s in senders}
        self._customers = customer_repo
        self._notifications = notification_repo
        self._timeout = timeout

    async def load_customer(self, operation: str, ticket: Ticket) -> Customer:
        customer = await guarded(
            operation, self._customers.get_by_id(ticket.customer_id), self._timeout, ticket_id=ticket.id
        )
        if customer is None:
            raise not_found(
                operation,
                f"Customer {ticket.customer_id} not found",
                ticket_id=ticket.id,
                customer_id=ticket.customer_id,
            )
        return customer

    async def deliver(
        self,
        ticket: Ticket,
        customer: Customer,
        notification_type: NotificationType,
        channels: list[Channel],
        priority: NotificationPriority,
        message: str,
    ) -> NotificationOutcome:
        results = await asyncio.gather(
            *(self._send_one(ticket, channel, customer, message, priority) for channel in channels)
        )
        outcome = NotificationOutcome(
            ticket_id=ticket.id,
            notification_type=notification_type,
            message=message,
            channel_results=list(results),
        )

        try:
            await guarded(
                "record_delivery",
                self._notifications.record_delivery(ticket.shop_id, outcome),
                self._timeout,
                ticket_id=ticket.id,
            )
        except QueueError as e:
            # Messages are already out; a missing delivery record must not turn them into failures
            logger.warning("Ticket %s: delivery record not saved: %s", ticket.id, e)

        logger.info(
            "Ticket %s: %s sent on %d/%d channels",
            ticket.id,
            notification_type.value,
            outcome.successful_channels,
            outcome.total_channels,
        )
        return outcome

    async def _send_one(
        self,
        ticket: Ticket,
        channel: Channel,
        customer: Customer,
        message: str,
        priority: NotificationPriority,
    ) -> ChannelResult:
        sender = self._senders.get(channel)
        if sender is None:
            return ChannelResult(channel=channel, success=False, error=f"No sender configured for {channel.value}")

        recipient = customer.recipient_for(channel)
        if not recipient:
            return ChannelResult(
                channel=channel,
                success=False,
                error=f"Customer has no {_CONTACT_LABELS[channel]}",
            )

        try:
            receipt = await guarded(
                "send_notification",
                sender.send(recipient, message, priority),
                self._timeout,
                ticket_id=ticket.id,
                channel=channel.value,
            )
        except QueueError as e:
            logger.warning("Ticket %s: %s delivery failed: %s", ticket.id, channel.value, e.message)
            return ChannelResult(channel=channel, success=False, error=e.message)

        if not receipt.success:
            logger.warning("Ticket %s: %s delivery rejected: %s", ticket.id, channel.value, receipt.error)
        return ChannelResult(
            channel=channel,
            success=receipt.success,
            message_id=receipt.message_id,
            error=receipt.error,
        )


# ─── Scheduling ──────────────────────────────────────────────────────


@dataclass
class ScheduleResult:
    schedule_id: str
    entries: list[ScheduledNotification]
    active_rules: int
    total_rules: int
    estimated_daily_notifications: int
    horizon_days: int
    timezone: str


class ScheduleNotificationsUseCase:
    def __init__(
        self,
        notification_repo: NotificationRepository,
        clock: Clock = utc_now,
        default_horizon_days: int = 7,
        default_timezone: str = "UTC",
        timeout: float | None = DEFAULT_TIMEOUT_SECONDS,
    ):
        self._notifications = notification_repo
        self._clock = clock
        self._default_horizon = default_horizon_days
        self._default_tz = default_timezone
        self._timeout = timeout

    async def execute(
        self,
        shop_id: int,
        rules: list[NotificationRule] | None = None,
        horizon_days: int | None = None,
        tz_name: str | None = None,
    ) -> ScheduleResult:
        """Expand rules into concrete schedule entries.

        Without explicit ``rules`` the shop's stored active rules are used.
        Time-based rules expand into one entry per fire time inside the horizon;
        status- and event-based rules produce one entry without a fixed time.
        """
        op = "schedule_notifications"
        horizon = horizon_days if horizon_days is not None else self._default_horizon
        if not 1 <= horizon <= MAX_HORIZON_DAYS:
            raise validation_error(
                op, f"Horizon must be between 1 and {MAX_HORIZON_DAYS} days", horizon_days=horizon
            )
        zone_name = tz_name or self._default_tz
        try:
            tz = ZoneInfo(zone_name)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise validation_error(op, f"Unknown timezone '{zone_name}'", timezone=zone_name) from e

        if rules is None:
            rules = await guarded(
                op, self._notifications.get_rules(shop_id, active_only=True), self._timeout, shop_id=shop_id
            )
        if not rules:
            raise validation_error(op, "Notification rules are required", shop_id=shop_id)

        for index, rule in enumerate(rules):
            if rule.shop_id != shop_id:
                raise unauthorized(
                    op, f"Rule {index + 1} belongs to another shop", rule_index=index, shop_id=shop_id
                )
            validate_rule(rule, index, op)

        now = self._clock()
        active = [r for r in rules if r.active]
        entries: list[ScheduledNotification] = []
        for rule in active:
            if rule.kind == RuleKind.TIME_BASED:
                entries.extend(expand_time_rule(rule, now, horizon, tz))
            else:
                entries.append(reactive_entry(rule))
        entries.sort(key=lambda e: (e.scheduled_at is None, e.scheduled_at or now))

        try:
            schedule_id = await guarded(
                op, self._notifications.save_schedule(shop_id, entries), self._timeout, shop_id=shop_id
            )
        except QueueError:
            raise
        except Exception as e:
            raise wrap_unexpected(op, e, shop_id=shop_id) from e

        logger.info(
            "Shop %s: scheduled %d notifications from %d active rules over %d days",
            shop_id,
            len(entries),
            len(active),
            horizon,
        )
        return ScheduleResult(
            schedule_id=schedule_id,
            entries=entries,
            active_rules=len(active),
            total_rules=len(rules),
            estimated_daily_notifications=estimated_daily_notifications(rules),
            horizon_days=horizon,
            timezone=zone_name,
        )


# ─── Reactive dispatch ───────────────────────────────────────────────


class NotificationDispatcher(TicketEventListener):
    """Fires status- and event-based rules when the ticket lifecycle reports a change."""

    def __init__(
        self,
        notification_repo: NotificationRepository,
        fanout: ChannelFanout,
        clock: Clock = utc_now,
        timeout: float | None = DEFAULT_TIMEOUT_SECONDS,
    ):
        self._notifications = notification_repo
        self._fanout = fanout
        self._clock = clock
        self._timeout = timeout

    async def on_status_changed(self, ticket: Ticket, previous: TicketStatus) -> None:
        await self._fire(ticket, lambda rule: fires_on_status(rule, ticket.status), f"status {ticket.status.value}")

    async def on_event(self, ticket: Ticket, event: TicketEvent) -> None:
        await self._fire(ticket, lambda rule: fires_on_event(rule, event.value), f"event {event.value}")

    async def _fire(self, ticket: Ticket, triggered, trigger_label: str) -> None:
        op = "dispatch_notifications"
        rules = await guarded(
            op, self._notifications.get_rules(ticket.shop_id, active_only=True), self._timeout
        )
        context = ticket.as_context()
        matching = [r for r in rules if triggered(r) and rule_matches(r, context)]
        if not matching:
            return

        customer: Customer | None = None
        for rule in matching:
            try:
                message = self._message_for(rule, ticket, context)
                if rule.trigger.delay_minutes > 0:
                    await self._defer(op, rule, ticket, message)
                    continue
                if customer is None:
                    customer = await self._fanout.load_customer(op, ticket)
                await self._fanout.deliver(
                    ticket, customer, rule.notification_type, rule.channels, rule.priority, message
                )
            except QueueError as e:
                logger.warning("Rule '%s' on %s for ticket %s failed: %s", rule.name, trigger_label, ticket.id, e)

    def _message_for(self, rule: NotificationRule, ticket: Ticket, context: dict) -> str:
        if rule.template:
            return render_template(rule.template, context, "dispatch_notifications")
        return compose_message(ticket, rule.notification_type)

    async def _defer(self, op: str, rule: NotificationRule, ticket: Ticket, message: str) -> None:
        entry = ScheduledNotification(
            rule_id=rule.id,
            rule_name=rule.name,
            kind=rule.kind,
            channels=list(rule.channels),
            priority=rule.priority,
            scheduled_at=self._clock() + timedelta(minutes=rule.trigger.delay_minutes),
            ticket_id=ticket.id,
            message=message,
        )
        await guarded(op, self._notifications.save_schedule(ticket.shop_id, [entry]), self._timeout)
        logger.info(
            "Rule '%s' for ticket %s deferred by %d minutes", rule.name, ticket.id, rule.trigger.delay_minutes
        )


# ─── Direct sends ────────────────────────────────────────────────────


class SendNotificationUseCase:
    def __init__(
        self,
        ticket_repo: TicketRepository,
        fanout: ChannelFanout,
        timeout: float | None = DEFAULT_TIMEOUT_SECONDS,
    ):
        self._tickets = ticket_repo
        self._fanout = fanout
        self._timeout = timeout

    async def execute(
        self,
        shop_id: int,
        ticket_id: int,
        notification_type: NotificationType | str,
        channels: list[Channel | str] | None = None,
        priority: NotificationPriority | str = NotificationPriority.MEDIUM,
        message: str | None = None,
    ) -> NotificationOutcome:
        op = "send_notification"
        parsed_type = parse_enum(NotificationType, notification_type, op, "notification type")
        parsed_channels = _parse_channels(channels or [Channel.SMS], op)
        parsed_priority = parse_enum(NotificationPriority, priority, op, "priority")

        ticket = await load_ticket(self._tickets, op, shop_id, ticket_id, self._timeout)
        return await self.send_loaded(op, ticket, parsed_type, parsed_channels, parsed_priority, message)

    async def send_loaded(
        self,
        op: str,
        ticket: Ticket,
        notification_type: NotificationType,
        channels: list[Channel],
        priority: NotificationPriority,
        message: str | None = None,
    ) -> NotificationOutcome:
        check_type_allowed(ticket, notification_type, op)
        customer = await self._fanout.load_customer(op, ticket)
        text = message or compose_message(ticket, notification_type, customer.name)
        try:
            return await self._fanout.deliver(ticket, customer, notification_type, channels, priority, text)
        except QueueError:
            raise
        except Exception as e:
            raise wrap_unexpected(op, e, ticket_id=ticket.id) from e


@dataclass
class ChannelBreakdown:
    sent: int = 0
    failed: int = 0


@dataclass
class BulkNotificationSummary:
    notification_type: NotificationType
    outcomes: list[NotificationOutcome] = field(default_factory=list)
    by_channel: dict[Channel, ChannelBreakdown] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def successful(self) -> int:
        return sum(1 for o in self.outcomes if o.success)

    @property
    def failed(self) -> int:
        return self.total - self.successful

    @property
    def success_rate(self) -> float:
        return round(self.successful / self.total, 4) if self.total else 0.0

    @property
    def total_channels(self) -> int:
        return sum(o.total_channels for o in self.outcomes)

    @property
    def successful_channels(self) -> int:
        return sum(o.successful_channels for o in self.outcomes)

    @property
    def failed_channels(self) -> int:
        return sum(o.failed_channels for o in self.outcomes)


class SendBulkNotificationsUseCase:
    """Many tickets × one notification type, processed in bounded batches."""

    def __init__(
        self,
        ticket_repo: TicketRepository,
        sender: SendNotificationUseCase,
        default_batch_size: int = 10,
        bulk_limit: int = 100,
        timeout: float | None = DEFAULT_TIMEOUT_SECONDS,
    ):
        self._tickets = ticket_repo
        self._sender = sender
        self._default_batch_size = default_batch_size
        self._bulk_limit = bulk_limit
        self._timeout = timeout

    async def execute(
        self,
        shop_id: int,
        ticket_ids: list[int],
        notification_type: NotificationType | str,
        channels: list[Channel | str] | None = None,
        batch_size: int | None = None,
        priority: NotificationPriority | str = NotificationPriority.MEDIUM,
    ) -> BulkNotificationSummary:
        op = "send_bulk_notifications"
        if not ticket_ids:
            raise validation_error(op, "Ticket ids are required")
        if len(ticket_ids) > self._bulk_limit:
            raise validation_error(
                op,
                f"Cannot send notifications to more than {self._bulk_limit} tickets at once",
                requested=len(ticket_ids),
            )
        size = batch_size if batch_size is not None else self._default_batch_size
        if size <= 0:
            raise validation_error(op, "Batch size must be positive", batch_size=size)

        parsed_type = parse_enum(NotificationType, notification_type, op, "notification type")
        parsed_channels = _parse_channels(channels or [Channel.SMS], op)
        parsed_priority = parse_enum(NotificationPriority, priority, op, "priority")

        unique_ids = list(dict.fromkeys(ticket_ids))
        summary = BulkNotificationSummary(
            notification_type=parsed_type,
            by_channel={c: ChannelBreakdown() for c in parsed_channels},
        )

        for start in range(0, len(unique_ids), size):
            batch = unique_ids[start : start + size]
            outcomes = await asyncio.gather(
                *(
                    self._send_isolated(op, shop_id, ticket_id, parsed_type, parsed_channels, parsed_priority)
                    for ticket_id in batch
                )
            )
            summary.outcomes.extend(outcomes)
            logger.info("Bulk %s: batch of %d processed", parsed_type.value, len(batch))

        for outcome in summary.outcomes:
            for r in outcome.channel_results:
                breakdown = summary.by_channel.setdefault(r.channel, ChannelBreakdown())
                if r.success:
                    breakdown.sent += 1
                else:
                    breakdown.failed += 1

        logger.info(
            "Bulk %s for shop %s: %d/%d tickets succeeded",
            parsed_type.value,
            shop_id,
            summary.successful,
            summary.total,
        )
        return summary

    async def _send_isolated(
        self,
        op: str,
        shop_id: int,
        ticket_id: int,
        notification_type: NotificationType,
        channels: list[Channel],
        priority: NotificationPriority,
    ) -> NotificationOutcome:
        try:
            ticket = await load_ticket(self._tickets, op, shop_id, ticket_id, self._timeout)
            return await self._sender.send_loaded(op, ticket, notification_type, channels, priority)
        except QueueError as e:
            logger.warning("Bulk %s: ticket %s failed: %s", notification_type.value, ticket_id, e)
            return NotificationOutcome(
                ticket_id=ticket_id,
                notification_type=notification_type,
                message=None,
                error=e.message,
            )
