"""Tests for NextToServePolicy."""

from datetime import datetime, timedelta, timezone

from queue_dispatch.domain.entities.ticket import Ticket
from queue_dispatch.domain.policies.next_to_serve import position_in_line, select_next
from queue_dispatch.domain.value_objects.enums import TicketPriority, TicketStatus

NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


def _ticket(tid, minutes_ago, priority=TicketPriority.NORMAL, **kw) -> Ticket:
    return Ticket(
        id=tid, shop_id=1, customer_id=1, priority=priority,
        created_at=NOW - timedelta(minutes=minutes_ago), **kw,
    )


def _line():
    # Q1 normal (oldest), Q2 urgent, Q3 high
    return [
        _ticket(1, 30),
        _ticket(2, 10, TicketPriority.URGENT),
        _ticket(3, 20, TicketPriority.HIGH),
    ]


def test_urgent_served_before_older_tickets():
    assert select_next(_line()).id == 2


def test_serving_order_within_same_priority_is_fifo():
    line = [_ticket(1, 5), _ticket(2, 15), _ticket(3, 10)]
    assert select_next(line).id == 2


def test_empty_line_returns_none():
    assert select_next([]) is None
    assert select_next([_ticket(1, 5, status=TicketStatus.SERVING)]) is None


def test_priority_only_ignores_normal_tickets():
    line = [_ticket(1, 30), _ticket(3, 20, TicketPriority.HIGH)]
    assert select_next(line, priority_only=True).id == 3
    assert select_next([_ticket(1, 30)], priority_only=True) is None


def test_tickets_assigned_to_someone_else_are_skipped():
    line = [_ticket(2, 10, TicketPriority.URGENT, assigned_staff_id=9), _ticket(1, 30)]
    assert select_next(line, staff_id=4).id == 1
    assert select_next(line, staff_id=9).id == 2


def test_department_sees_own_and_unscoped_tickets():
    line = [_ticket(1, 30, department_id=5), _ticket(2, 20, department_id=6), _ticket(3, 10)]
    assert select_next(line, department_id=6).id == 2
    assert select_next(line, department_id=7).id == 3


def test_position_in_line_counts_tickets_ahead():
    line = [
        _ticket(1, 30, estimated_wait_minutes=10),
        _ticket(2, 10, TicketPriority.URGENT, estimated_wait_minutes=20),
        _ticket(3, 20, TicketPriority.HIGH, estimated_wait_minutes=10),
    ]
    pos = position_in_line(line[0], line)
    assert pos.position == 3
    assert pos.total_ahead == 2
    # 20 + 10 ahead, plus 10% slack
    assert pos.estimated_wait_minutes == 33


def test_position_of_first_ticket():
    line = _line()
    pos = position_in_line(line[1], line)
    assert (pos.position, pos.total_ahead, pos.estimated_wait_minutes) == (1, 0, 0)


def test_position_of_ticket_not_waiting_is_zero():
    t = _ticket(1, 30, status=TicketStatus.SERVING)
    pos = position_in_line(t, [t])
    assert (pos.position, pos.total_ahead) == (0, 0)
    assert pos.status == TicketStatus.SERVING
