"""Tests for OptimizeFlowUseCase."""

from __future__ import annotations

from datetime import timedelta

import pytest

from queue_dispatch.application.use_cases.optimize_flow import OptimizeFlowUseCase
from queue_dispatch.domain.entities.payment import Payment
from queue_dispatch.domain.errors import ErrorKind, QueueError
from queue_dispatch.domain.value_objects.date_range import DateRange
from queue_dispatch.domain.value_objects.enums import (
    BottleneckType,
    OptimizationGoal,
    TicketStatus,
)


@pytest.fixture
def period(clock):
    return DateRange(clock.now - timedelta(days=1), clock.now + timedelta(minutes=1))


@pytest.fixture
def history(ticket_repo, payment_repo, staff_directory, make_ticket, make_staff, clock):
    staff_directory.add(make_staff(10, name="Ann"), make_staff(11, name="Ben"))
    for tid in range(1, 7):
        t = make_ticket(tid, minutes_ago=120, status=TicketStatus.COMPLETED, served_by_staff_id=10)
        t.called_at = t.created_at + timedelta(minutes=10)
        t.completed_at = t.called_at + timedelta(minutes=24)
        t.actual_wait_minutes = 10
        ticket_repo.add(t)
        payment_repo.payments.append(Payment(id=tid, ticket_id=tid, amount=40.0))
    for tid in range(7, 10):
        ticket_repo.add(make_ticket(tid, minutes_ago=60, status=TicketStatus.CANCELLED))
    ticket_repo.add(make_ticket(10, minutes_ago=30, status=TicketStatus.NO_SHOW))
    # outside the period and another shop
    ticket_repo.add(make_ticket(50, minutes_ago=3 * 24 * 60, status=TicketStatus.COMPLETED))
    ticket_repo.add(make_ticket(51, minutes_ago=10, shop_id=2, status=TicketStatus.CANCELLED))
    return ticket_repo


@pytest.fixture
def use_case(ticket_repo, payment_repo, staff_directory):
    return OptimizeFlowUseCase(ticket_repo, payment_repo, staff_directory, page_size=3, timeout=1.0)


@pytest.mark.asyncio
async def test_report_metrics(use_case, history, period):
    report = await use_case.execute(1, period)
    m = report.metrics

    assert m.total == 10
    assert m.completed == 6
    assert m.completion_rate == 0.6
    assert m.cancellation_rate == 0.3
    assert m.no_show_rate == 0.1
    assert m.average_wait_minutes == 10.0
    assert m.average_service_minutes == 24.0
    assert m.total_revenue == 240.0
    assert m.average_ticket_value == 40.0

    util = {u.staff_id: u for u in m.staff_utilization}
    # 144 service minutes over two days of 480-minute shifts
    assert util[10].utilization_rate == 0.15
    assert util[11].utilization_rate == 0.0


@pytest.mark.asyncio
async def test_report_bottlenecks_and_recommendations(use_case, history, period):
    report = await use_case.execute(1, period)
    types = {b.type for b in report.bottlenecks}

    assert BottleneckType.LOW_COMPLETION_RATE in types
    assert BottleneckType.UNDERUTILIZED_STAFF in types
    assert len(report.recommendations) == len(report.bottlenecks)
    assert report.summary.total == len(report.recommendations)
    assert report.optimization.current_efficiency == 0.6
    assert report.optimization.potential_improvement == 50.0


@pytest.mark.asyncio
async def test_goals_put_matching_recommendations_first(use_case, history, period):
    report = await use_case.execute(1, period, goals=["balance-workload"])
    assert report.recommendations[0].goal == OptimizationGoal.BALANCE_WORKLOAD


@pytest.mark.asyncio
async def test_empty_period(use_case, clock):
    period = DateRange(clock.now - timedelta(days=1), clock.now)
    report = await use_case.execute(1, period)
    assert report.metrics.total == 0
    assert report.bottlenecks == []
    assert report.recommendations == []
    assert report.peak_hours == []


@pytest.mark.asyncio
async def test_unknown_goal(use_case, period):
    with pytest.raises(QueueError) as exc:
        await use_case.execute(1, period, goals=["world-peace"])
    assert exc.value.kind == ErrorKind.VALIDATION_ERROR


@pytest.mark.asyncio
async def test_payment_store_failure(use_case, history, period, payment_repo, monkeypatch):
    async def broken(ticket_ids):
        raise ConnectionError("payments offline")

    monkeypatch.setattr(payment_repo, "get_for_tickets", broken)
    with pytest.raises(QueueError) as exc:
        await use_case.execute(1, period)
    assert exc.value.kind == ErrorKind.OPERATION_FAILED
