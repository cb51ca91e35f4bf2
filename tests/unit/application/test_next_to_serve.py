"""Tests for GetNextToServeUseCase and GetQueuePositionUseCase."""

from __future__ import annotations

import pytest

from queue_dispatch.application.use_cases.next_to_serve import (
    GetNextToServeUseCase,
    GetQueuePositionUseCase,
)
from queue_dispatch.domain.errors import ErrorKind, QueueError
from queue_dispatch.domain.value_objects.enums import TicketPriority, TicketStatus


@pytest.fixture
def line(ticket_repo, make_ticket):
    ticket_repo.add(make_ticket(1, minutes_ago=30, estimated_wait_minutes=10))
    ticket_repo.add(make_ticket(2, minutes_ago=10, priority=TicketPriority.URGENT, estimated_wait_minutes=20))
    ticket_repo.add(make_ticket(3, minutes_ago=20, priority=TicketPriority.HIGH, estimated_wait_minutes=10))
    ticket_repo.add(make_ticket(4, minutes_ago=90, status=TicketStatus.SERVING, assigned_staff_id=7))
    ticket_repo.add(make_ticket(5, minutes_ago=95, shop_id=2, priority=TicketPriority.URGENT))
    return ticket_repo


@pytest.mark.asyncio
async def test_next_to_serve_prefers_urgent(line):
    ticket = await GetNextToServeUseCase(line, timeout=1.0).execute(1)
    assert ticket.id == 2


@pytest.mark.asyncio
async def test_next_to_serve_skips_tickets_held_by_others(line):
    line.tickets[2].assigned_staff_id = 8
    ticket = await GetNextToServeUseCase(line, timeout=1.0).execute(1, staff_id=7)
    assert ticket.id == 3


@pytest.mark.asyncio
async def test_next_to_serve_priority_only(ticket_repo, make_ticket):
    ticket_repo.add(make_ticket(1, minutes_ago=30))
    uc = GetNextToServeUseCase(ticket_repo, timeout=1.0)
    assert await uc.execute(1, priority_only=True) is None
    assert (await uc.execute(1)).id == 1


@pytest.mark.asyncio
async def test_next_to_serve_empty_shop(ticket_repo):
    assert await GetNextToServeUseCase(ticket_repo, timeout=1.0).execute(1) is None


@pytest.mark.asyncio
async def test_queue_position(line):
    uc = GetQueuePositionUseCase(line, timeout=1.0)
    pos = await uc.execute(1, 1)
    assert pos.position == 3
    assert pos.total_ahead == 2
    assert pos.estimated_wait_minutes == 33

    first = await uc.execute(1, 2)
    assert first.position == 1


@pytest.mark.asyncio
async def test_queue_position_of_serving_ticket(line):
    pos = await GetQueuePositionUseCase(line, timeout=1.0).execute(1, 4)
    assert pos.position == 0
    assert pos.status == TicketStatus.SERVING


@pytest.mark.asyncio
async def test_queue_position_scoped_to_shop(line):
    with pytest.raises(QueueError) as exc:
        await GetQueuePositionUseCase(line, timeout=1.0).execute(1, 5)
    assert exc.value.kind == ErrorKind.UNAUTHORIZED


@pytest.mark.asyncio
async def test_small_pages_still_see_the_whole_line(line):
    # The urgent ticket is the newest, so it sits on the last page.
    ticket = await GetNextToServeUseCase(line, page_size=1, timeout=1.0).execute(1)
    assert ticket.id == 2

    pos = await GetQueuePositionUseCase(line, page_size=1, timeout=1.0).execute(1, 1)
    assert pos.position == 3


@pytest.mark.asyncio
async def test_non_positive_page_size_rejected(line):
    with pytest.raises(QueueError) as exc:
        await GetNextToServeUseCase(line, page_size=0, timeout=1.0).execute(1)
    assert exc.value.kind == ErrorKind.VALIDATION_ERROR
