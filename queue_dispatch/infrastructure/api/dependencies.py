"""FastAPI dependency injection — wires adapters into use cases."""

from __future__ import annotations

import logging
from zoneinfo import ZoneInfo

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from queue_dispatch.adapters.channels.http_sender import HttpChannelSender
from queue_dispatch.adapters.persistence.database import get_session
from queue_dispatch.adapters.persistence.repositories import (
    SqlCustomerRepository,
    SqlNotificationRepository,
    SqlPaymentRepository,
    SqlRoundRobinRepository,
    SqlStaffDirectory,
    SqlTicketRepository,
)
from queue_dispatch.application.ports.channel_sender import ChannelSender
from queue_dispatch.application.use_cases.auto_assign import AutoAssignUseCase, BulkReassignUseCase
from queue_dispatch.application.use_cases.next_to_serve import (
    GetNextToServeUseCase,
    GetQueuePositionUseCase,
)
from queue_dispatch.application.use_cases.notifications import (
    ChannelFanout,
    NotificationDispatcher,
    ScheduleNotificationsUseCase,
    SendBulkNotificationsUseCase,
    SendNotificationUseCase,
)
from queue_dispatch.application.use_cases.optimize_flow import OptimizeFlowUseCase
from queue_dispatch.application.use_cases.prioritize import PrioritizeUseCase
from queue_dispatch.application.use_cases.ticket_lifecycle import TicketLifecycleUseCase
from queue_dispatch.config import settings
from queue_dispatch.domain.value_objects.enums import Channel

logger = logging.getLogger(__name__)

# Re-export session dependency
get_db_session = get_session

_TIMEOUT = settings.collaborator_timeout_seconds


def _build_senders() -> list[ChannelSender]:
    """One HTTP sender per channel whose gateway URL is configured."""
    urls = {
        Channel.SMS: settings.sms_gateway_url,
        Channel.EMAIL: settings.email_gateway_url,
        Channel.PUSH: settings.push_gateway_url,
    }
    senders: list[ChannelSender] = []
    for channel, url in urls.items():
        if url:
            senders.append(HttpChannelSender(channel, url, api_key=settings.channel_api_key))
        else:
            logger.info("No gateway configured for %s notifications", channel.value)
    return senders


# Singleton adapters (stateless)
_channel_senders = _build_senders()


def get_shop_id(x_shop_id: int = Header(..., alias="X-Shop-Id")) -> int:
    """Caller's shop scope."""
    return x_shop_id


def get_fanout(session: AsyncSession = Depends(get_session)) -> ChannelFanout:
    return ChannelFanout(
        senders=_channel_senders,
        customer_repo=SqlCustomerRepository(session),
        notification_repo=SqlNotificationRepository(session),
        timeout=_TIMEOUT,
    )


def get_lifecycle_uc(
    session: AsyncSession = Depends(get_session),
    fanout: ChannelFanout = Depends(get_fanout),
) -> TicketLifecycleUseCase:
    return TicketLifecycleUseCase(
        ticket_repo=SqlTicketRepository(session),
        staff_directory=SqlStaffDirectory(session),
        listener=NotificationDispatcher(SqlNotificationRepository(session), fanout, timeout=_TIMEOUT),
        timeout=_TIMEOUT,
        tz=ZoneInfo(settings.shop_timezone),
    )


def get_auto_assign_uc(
    session: AsyncSession = Depends(get_session),
    lifecycle: TicketLifecycleUseCase = Depends(get_lifecycle_uc),
) -> AutoAssignUseCase:
    return AutoAssignUseCase(
        ticket_repo=SqlTicketRepository(session),
        staff_directory=SqlStaffDirectory(session),
        rr_repo=SqlRoundRobinRepository(session),
        lifecycle=lifecycle,
        timeout=_TIMEOUT,
    )


def get_bulk_reassign_uc(
    session: AsyncSession = Depends(get_session),
    lifecycle: TicketLifecycleUseCase = Depends(get_lifecycle_uc),
) -> BulkReassignUseCase:
    return BulkReassignUseCase(
        staff_directory=SqlStaffDirectory(session),
        lifecycle=lifecycle,
        bulk_limit=settings.notification_bulk_limit,
        timeout=_TIMEOUT,
    )


def get_prioritize_uc(session: AsyncSession = Depends(get_session)) -> PrioritizeUseCase:
    return PrioritizeUseCase(
        ticket_repo=SqlTicketRepository(session),
        config=settings.scoring_config(),
        page_size=settings.history_page_size,
        timeout=_TIMEOUT,
    )


def get_next_to_serve_uc(session: AsyncSession = Depends(get_session)) -> GetNextToServeUseCase:
    return GetNextToServeUseCase(
        SqlTicketRepository(session), page_size=settings.history_page_size, timeout=_TIMEOUT
    )


def get_queue_position_uc(session: AsyncSession = Depends(get_session)) -> GetQueuePositionUseCase:
    return GetQueuePositionUseCase(
        SqlTicketRepository(session), page_size=settings.history_page_size, timeout=_TIMEOUT
    )


def get_optimize_flow_uc(session: AsyncSession = Depends(get_session)) -> OptimizeFlowUseCase:
    return OptimizeFlowUseCase(
        ticket_repo=SqlTicketRepository(session),
        payment_repo=SqlPaymentRepository(session),
        staff_directory=SqlStaffDirectory(session),
        thresholds=settings.flow_thresholds(),
        tz=ZoneInfo(settings.shop_timezone),
        page_size=settings.history_page_size,
        timeout=_TIMEOUT,
    )


def get_schedule_uc(session: AsyncSession = Depends(get_session)) -> ScheduleNotificationsUseCase:
    return ScheduleNotificationsUseCase(
        notification_repo=SqlNotificationRepository(session),
        default_horizon_days=settings.notification_horizon_days,
        default_timezone=settings.shop_timezone,
        timeout=_TIMEOUT,
    )


def get_send_notification_uc(
    session: AsyncSession = Depends(get_session),
    fanout: ChannelFanout = Depends(get_fanout),
) -> SendNotificationUseCase:
    return SendNotificationUseCase(SqlTicketRepository(session), fanout, timeout=_TIMEOUT)


def get_bulk_notifications_uc(
    session: AsyncSession = Depends(get_session),
    sender: SendNotificationUseCase = Depends(get_send_notification_uc),
) -> SendBulkNotificationsUseCase:
    return SendBulkNotificationsUseCase(
        ticket_repo=SqlTicketRepository(session),
        sender=sender,
        default_batch_size=settings.notification_batch_size,
        bulk_limit=settings.notification_bulk_limit,
        timeout=_TIMEOUT,
    )


def configured_channels() -> list[str]:
    return [s.channel.value for s in _channel_senders]
