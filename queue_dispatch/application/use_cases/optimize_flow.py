"""OptimizeFlowUseCase — analyse a date range of history and recommend changes."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timezone, tzinfo

from queue_dispatch.application.collaborator import (
    DEFAULT_TIMEOUT_SECONDS,
    guarded,
    wrap_unexpected,
)
from queue_dispatch.application.ports.payment_repo import PaymentRepository
from queue_dispatch.application.ports.staff_directory import StaffDirectory
from queue_dispatch.application.ports.ticket_repo import TicketFilters, TicketRepository
from queue_dispatch.domain.errors import QueueError, parse_enum, validation_error
from queue_dispatch.domain.policies.flow_analysis import (
    Bottleneck,
    FlowAccumulator,
    FlowMetrics,
    FlowThresholds,
    HourlyStats,
    OptimizationMetrics,
    Recommendation,
    RecommendationSummary,
    detect_bottlenecks,
    generate_recommendations,
    optimization_metrics,
    peak_and_quiet_hours,
    summarize,
)
from queue_dispatch.domain.value_objects.date_range import DateRange
from queue_dispatch.domain.value_objects.enums import OptimizationGoal

logger = logging.getLogger(__name__)


@dataclass
class FlowReport:
    shop_id: int
    department_id: int | None
    period: DateRange
    metrics: FlowMetrics
    peak_hours: list[HourlyStats]
    quiet_hours: list[HourlyStats]
    bottlenecks: list[Bottleneck]
    recommendations: list[Recommendation]
    optimization: OptimizationMetrics
    summary: RecommendationSummary


class OptimizeFlowUseCase:
    """History is read page by page; only aggregates are kept in memory."""

    def __init__(
        self,
        ticket_repo: TicketRepository,
        payment_repo: PaymentRepository,
        staff_directory: StaffDirectory,
        thresholds: FlowThresholds | None = None,
        tz: tzinfo = timezone.utc,
        page_size: int = 200,
        timeout: float | None = DEFAULT_TIMEOUT_SECONDS,
    ):
        self._tickets = ticket_repo
        self._payments = payment_repo
        self._staff = staff_directory
        self._thresholds = thresholds or FlowThresholds()
        self._tz = tz
        self._page_size = page_size
        self._timeout = timeout

    async def execute(
        self,
        shop_id: int,
        period: DateRange,
        department_id: int | None = None,
        goals: list[OptimizationGoal | str] | None = None,
    ) -> FlowReport:
        op = "optimize_flow"
        parsed_goals = frozenset(parse_enum(OptimizationGoal, g, op, "goal") for g in goals or [])
        if self._page_size <= 0:
            raise validation_error(op, "Page size must be positive")

        try:
            accumulator = FlowAccumulator(self._tz, self._thresholds.high_wait_factor)
            filters = TicketFilters(
                shop_id=shop_id,
                department_id=department_id,
                created_from=period.start,
                created_to=period.end,
            )
            page = 1
            while True:
                batch = await guarded(
                    op,
                    self._tickets.get_paginated(filters, page, self._page_size),
                    self._timeout,
                    shop_id=shop_id,
                    page=page,
                )
                if batch.items:
                    payments = await guarded(
                        op,
                        self._payments.get_for_tickets([t.id for t in batch.items]),
                        self._timeout,
                        shop_id=shop_id,
                    )
                    for ticket in batch.items:
                        accumulator.add(ticket, payments.get(ticket.id, []))
                if not batch.has_next or not batch.items:
                    break
                page += 1

            staff = await guarded(
                op, self._staff.find(shop_id, department_id=department_id), self._timeout, shop_id=shop_id
            )
        except QueueError:
            raise
        except Exception as e:
            raise wrap_unexpected(op, e, shop_id=shop_id) from e

        shift_minutes = period.days * self._thresholds.shift_minutes_per_day
        metrics = accumulator.finalize(staff, shift_minutes)
        peak, quiet = peak_and_quiet_hours(metrics.hourly)
        bottlenecks = detect_bottlenecks(metrics, self._thresholds)
        recommendations = generate_recommendations(bottlenecks, metrics, self._thresholds, parsed_goals)
        optimization = optimization_metrics(metrics, self._thresholds)

        logger.info(
            "Flow analysis for shop %s: %d tickets over %d days, %d bottlenecks",
            shop_id,
            metrics.total,
            period.days,
            len(bottlenecks),
        )
        return FlowReport(
            shop_id=shop_id,
            department_id=department_id,
            period=period,
            metrics=metrics,
            peak_hours=peak,
            quiet_hours=quiet,
            bottlenecks=bottlenecks,
            recommendations=recommendations,
            optimization=optimization,
            summary=summarize(recommendations, optimization),
        )
