"""Tests for the ticket state machine."""

from datetime import datetime, timedelta, timezone

import pytest

from queue_dispatch.domain.entities.ticket import Ticket
from queue_dispatch.domain.errors import ErrorKind, QueueError
from queue_dispatch.domain.policies.state_machine import apply_transition, can_transition
from queue_dispatch.domain.value_objects.enums import TicketStatus

T0 = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


def _ticket(status=TicketStatus.WAITING, **kw) -> Ticket:
    return Ticket(id=7, shop_id=1, customer_id=1, status=status, created_at=T0, **kw)


@pytest.mark.parametrize(
    "current,target",
    [
        (TicketStatus.WAITING, TicketStatus.CONFIRMED),
        (TicketStatus.WAITING, TicketStatus.SERVING),
        (TicketStatus.WAITING, TicketStatus.CANCELLED),
        (TicketStatus.WAITING, TicketStatus.NO_SHOW),
        (TicketStatus.CONFIRMED, TicketStatus.SERVING),
        (TicketStatus.CONFIRMED, TicketStatus.CANCELLED),
        (TicketStatus.SERVING, TicketStatus.SERVING),
        (TicketStatus.SERVING, TicketStatus.COMPLETED),
        (TicketStatus.SERVING, TicketStatus.CANCELLED),
    ],
)
def test_legal_edges(current, target):
    assert can_transition(current, target)


@pytest.mark.parametrize(
    "current,target",
    [
        (TicketStatus.WAITING, TicketStatus.COMPLETED),
        (TicketStatus.CONFIRMED, TicketStatus.NO_SHOW),
        (TicketStatus.SERVING, TicketStatus.WAITING),
        (TicketStatus.COMPLETED, TicketStatus.SERVING),
        (TicketStatus.CANCELLED, TicketStatus.WAITING),
        (TicketStatus.NO_SHOW, TicketStatus.SERVING),
    ],
)
def test_illegal_edges(current, target):
    assert not can_transition(current, target)


def test_illegal_transition_raises_validation_error():
    with pytest.raises(QueueError) as exc:
        apply_transition(_ticket(TicketStatus.COMPLETED), TicketStatus.SERVING, T0, "assign", staff_id=1)
    assert exc.value.kind == ErrorKind.VALIDATION_ERROR
    assert exc.value.context["current_status"] == "completed"


def test_serving_stamps_staff_and_call_time():
    now = T0 + timedelta(minutes=20)
    t = apply_transition(_ticket(), TicketStatus.SERVING, now, "assign", staff_id=3)
    assert t.status == TicketStatus.SERVING
    assert t.assigned_staff_id == 3
    assert t.served_by_staff_id == 3
    assert t.called_at == now


def test_serving_requires_staff():
    with pytest.raises(QueueError) as exc:
        apply_transition(_ticket(), TicketStatus.SERVING, T0, "assign")
    assert exc.value.kind == ErrorKind.VALIDATION_ERROR


def test_reassignment_keeps_original_call_time():
    called = T0 + timedelta(minutes=5)
    t = _ticket(TicketStatus.SERVING, assigned_staff_id=1, served_by_staff_id=1, called_at=called)
    apply_transition(t, TicketStatus.SERVING, T0 + timedelta(minutes=30), "assign", staff_id=2)
    assert t.assigned_staff_id == 2
    assert t.called_at == called


def test_complete_records_actual_wait_and_clears_assignment():
    t = _ticket(
        TicketStatus.SERVING,
        assigned_staff_id=4,
        served_by_staff_id=4,
        called_at=T0 + timedelta(minutes=30),
    )
    done = T0 + timedelta(minutes=50)
    apply_transition(t, TicketStatus.COMPLETED, done, "complete")
    assert t.actual_wait_minutes == 30
    assert t.completed_at == done
    assert t.assigned_staff_id is None
    assert t.served_by_staff_id == 4


@pytest.mark.parametrize("target", [TicketStatus.CANCELLED, TicketStatus.NO_SHOW])
def test_closing_a_waiting_ticket(target):
    t = apply_transition(_ticket(assigned_staff_id=2), target, T0, "close")
    assert t.status == target
    assert t.completed_at == T0
    assert t.assigned_staff_id is None
