"""FlowAnalysisPolicy — aggregate ticket history, detect bottlenecks, recommend.

History is folded one ticket at a time through ``FlowAccumulator`` so callers can
stream arbitrarily long ranges page by page without holding them in memory.
"""

from __future__ import annotations

import math
from collections import Counter
from dataclasses import dataclass, field
from datetime import timezone, tzinfo

from queue_dispatch.domain.entities.payment import Payment
from queue_dispatch.domain.entities.staff import StaffMember
from queue_dispatch.domain.entities.ticket import Ticket
from queue_dispatch.domain.value_objects.enums import (
    BottleneckType,
    OptimizationGoal,
    RecommendationCategory,
    Severity,
    TicketStatus,
)

PEAK_HOUR_SHARE = 0.3

_SEVERITY_RANK = {Severity.HIGH: 0, Severity.MEDIUM: 1, Severity.LOW: 2}


@dataclass(frozen=True)
class FlowThresholds:
    target_completion_rate: float = 0.8
    target_efficiency: float = 0.9
    shift_minutes_per_day: float = 480.0
    underutilization_factor: float = 0.5
    overutilization_factor: float = 1.5
    peak_hour_factor: float = 1.5
    high_wait_factor: float = 1.5
    max_wait_minutes: float = 45.0
    no_show_threshold: float = 0.1


# ─── Aggregates ──────────────────────────────────────────────────────


@dataclass
class HourlyStats:
    hour: int
    ticket_count: int = 0
    completed_count: int = 0
    total_wait_minutes: float = 0.0
    wait_samples: int = 0
    staff_ids: set[int] = field(default_factory=set)

    @property
    def completion_rate(self) -> float:
        return self.completed_count / self.ticket_count if self.ticket_count else 0.0

    @property
    def average_wait_minutes(self) -> float:
        return self.total_wait_minutes / self.wait_samples if self.wait_samples else 0.0

    @property
    def staff_count(self) -> int:
        return len(self.staff_ids)

    @property
    def tickets_per_staff(self) -> float:
        return self.ticket_count / max(self.staff_count, 1)


@dataclass
class StaffUtilization:
    staff_id: int
    staff_name: str | None
    served_count: int = 0
    total_service_minutes: float = 0.0
    utilization_rate: float = 0.0


@dataclass
class FlowMetrics:
    total: int
    completed: int
    cancelled: int
    no_show: int
    completion_rate: float
    cancellation_rate: float
    no_show_rate: float
    average_wait_minutes: float
    max_wait_minutes: float
    high_wait_count: int
    wait_samples: int
    average_service_minutes: float
    max_service_minutes: float
    total_revenue: float
    average_ticket_value: float
    hourly: list[HourlyStats]
    staff_utilization: list[StaffUtilization]


class FlowAccumulator:
    """Single-pass fold over historical tickets and their payments."""

    def __init__(self, tz: tzinfo = timezone.utc, high_wait_factor: float = 1.5):
        self._tz = tz
        self._high_wait_factor = high_wait_factor
        self._status_counts: Counter[TicketStatus] = Counter()
        self._waits: Counter[int] = Counter()
        self._service_total = 0.0
        self._service_samples = 0
        self._service_max = 0.0
        self._revenue = 0.0
        self._paid_tickets = 0
        self._hourly: dict[int, HourlyStats] = {}
        self._staff: dict[int, StaffUtilization] = {}

    @property
    def total(self) -> int:
        return sum(self._status_counts.values())

    def add(self, ticket: Ticket, payments: list[Payment] | None = None) -> None:
        self._status_counts[ticket.status] += 1

        if ticket.actual_wait_minutes is not None and ticket.actual_wait_minutes > 0:
            self._waits[ticket.actual_wait_minutes] += 1

        if ticket.created_at is not None:
            hour = ticket.created_at.astimezone(self._tz).hour
            stats = self._hourly.setdefault(hour, HourlyStats(hour=hour))
            stats.ticket_count += 1
            if ticket.status == TicketStatus.COMPLETED:
                stats.completed_count += 1
            if ticket.actual_wait_minutes is not None:
                stats.total_wait_minutes += ticket.actual_wait_minutes
                stats.wait_samples += 1
            if ticket.served_by_staff_id is not None:
                stats.staff_ids.add(ticket.served_by_staff_id)

        service = ticket.service_minutes()
        if service is not None and ticket.status == TicketStatus.COMPLETED:
            self._service_total += service
            self._service_samples += 1
            self._service_max = max(self._service_max, service)
            if ticket.served_by_staff_id is not None:
                util = self._staff.setdefault(
                    ticket.served_by_staff_id,
                    StaffUtilization(staff_id=ticket.served_by_staff_id, staff_name=None),
                )
                util.served_count += 1
                util.total_service_minutes += service

        settled = [p.amount for p in payments or [] if p.is_settled()]
        if settled:
            self._revenue += sum(settled)
            self._paid_tickets += 1

    def finalize(self, staff: list[StaffMember], shift_minutes: float) -> FlowMetrics:
        """Produce metrics; ``shift_minutes`` is the per-staff capacity of the range."""
        total = self.total
        completed = self._status_counts[TicketStatus.COMPLETED]
        cancelled = self._status_counts[TicketStatus.CANCELLED]
        no_show = self._status_counts[TicketStatus.NO_SHOW]

        wait_samples = sum(self._waits.values())
        wait_sum = sum(minutes * n for minutes, n in self._waits.items())
        average_wait = wait_sum / wait_samples if wait_samples else 0.0
        high_wait_count = sum(
            n for minutes, n in self._waits.items() if minutes > average_wait * self._high_wait_factor
        )

        for member in staff:
            util = self._staff.setdefault(
                member.id, StaffUtilization(staff_id=member.id, staff_name=member.name)
            )
            util.staff_name = member.name
        for util in self._staff.values():
            util.total_service_minutes = round(util.total_service_minutes, 2)
            util.utilization_rate = (
                round(util.total_service_minutes / shift_minutes, 4) if shift_minutes > 0 else 0.0
            )

        return FlowMetrics(
            total=total,
            completed=completed,
            cancelled=cancelled,
            no_show=no_show,
            completion_rate=_rate(completed, total),
            cancellation_rate=_rate(cancelled, total),
            no_show_rate=_rate(no_show, total),
            average_wait_minutes=round(average_wait, 2),
            max_wait_minutes=float(max(self._waits, default=0)),
            high_wait_count=high_wait_count,
            wait_samples=wait_samples,
            average_service_minutes=(
                round(self._service_total / self._service_samples, 2) if self._service_samples else 0.0
            ),
            max_service_minutes=round(self._service_max, 2),
            total_revenue=round(self._revenue, 2),
            average_ticket_value=(
                round(self._revenue / self._paid_tickets, 2) if self._paid_tickets else 0.0
            ),
            hourly=[self._hourly[h] for h in sorted(self._hourly)],
            staff_utilization=sorted(self._staff.values(), key=lambda u: u.staff_id),
        )


def _rate(part: int, whole: int) -> float:
    return round(part / whole, 4) if whole else 0.0


def peak_and_quiet_hours(hourly: list[HourlyStats]) -> tuple[list[HourlyStats], list[HourlyStats]]:
    """Top and bottom 30% of active hours by volume."""
    active = [h for h in hourly if h.ticket_count > 0]
    if not active:
        return [], []
    k = max(1, math.floor(len(active) * PEAK_HOUR_SHARE))
    by_volume = sorted(active, key=lambda h: (-h.ticket_count, h.hour))
    quiet = sorted(active, key=lambda h: (h.ticket_count, h.hour))[:k]
    return by_volume[:k], quiet


# ─── Bottlenecks ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class Bottleneck:
    type: BottleneckType
    severity: Severity
    description: str
    affected_tickets: int = 0
    affected_staff: int = 0
    affected_hours: tuple[int, ...] = ()


def _share_severity(share: float, high: float, medium: float) -> Severity:
    if share >= high:
        return Severity.HIGH
    if share >= medium:
        return Severity.MEDIUM
    return Severity.LOW


def detect_bottlenecks(metrics: FlowMetrics, thresholds: FlowThresholds) -> list[Bottleneck]:
    bottlenecks: list[Bottleneck] = []
    if metrics.total == 0:
        return bottlenecks

    # Completion rate below target; severity scales with the shortfall
    shortfall = thresholds.target_completion_rate - metrics.completion_rate
    if shortfall > 0:
        bottlenecks.append(
            Bottleneck(
                type=BottleneckType.LOW_COMPLETION_RATE,
                severity=_share_severity(shortfall, 0.2, 0.1),
                description=(
                    f"Completion rate is {metrics.completion_rate:.0%} "
                    f"(below {thresholds.target_completion_rate:.0%} target)"
                ),
                affected_tickets=metrics.total - metrics.completed,
            )
        )

    if metrics.high_wait_count > 0 and metrics.wait_samples > 0:
        bottlenecks.append(
            Bottleneck(
                type=BottleneckType.HIGH_WAIT_TIME,
                severity=_share_severity(metrics.high_wait_count / metrics.wait_samples, 0.25, 0.1),
                description=(
                    f"{metrics.high_wait_count} tickets waited more than "
                    f"{thresholds.high_wait_factor:.1f}x the {metrics.average_wait_minutes:.0f} minute average"
                ),
                affected_tickets=metrics.high_wait_count,
            )
        )

    if metrics.max_wait_minutes > thresholds.max_wait_minutes:
        bottlenecks.append(
            Bottleneck(
                type=BottleneckType.LONG_MAX_WAIT,
                severity=Severity.MEDIUM,
                description=(
                    f"Maximum wait time {metrics.max_wait_minutes:.0f} minutes exceeds "
                    f"{thresholds.max_wait_minutes:.0f} minutes"
                ),
                affected_tickets=1,
            )
        )

    if metrics.no_show_rate > thresholds.no_show_threshold:
        bottlenecks.append(
            Bottleneck(
                type=BottleneckType.HIGH_NO_SHOW_RATE,
                severity=(
                    Severity.HIGH
                    if metrics.no_show_rate >= thresholds.no_show_threshold * 2
                    else Severity.MEDIUM
                ),
                description=f"No-show rate is {metrics.no_show_rate:.0%}",
                affected_tickets=metrics.no_show,
            )
        )

    bottlenecks.extend(_utilization_bottlenecks(metrics.staff_utilization, thresholds))

    understaffed = _understaffed_hours(metrics.hourly, thresholds)
    if understaffed:
        bottlenecks.append(understaffed)

    return bottlenecks


def _utilization_bottlenecks(
    utilization: list[StaffUtilization], thresholds: FlowThresholds
) -> list[Bottleneck]:
    if not utilization:
        return []
    average = sum(u.utilization_rate for u in utilization) / len(utilization)
    if average <= 0:
        return []

    result = []
    under = [u for u in utilization if u.utilization_rate < average * thresholds.underutilization_factor]
    over = [u for u in utilization if u.utilization_rate > average * thresholds.overutilization_factor]

    if under:
        result.append(
            Bottleneck(
                type=BottleneckType.UNDERUTILIZED_STAFF,
                severity=_share_severity(len(under) / len(utilization), 0.5, 0.25),
                description=(
                    f"{len(under)} staff members are far below the "
                    f"{average:.0%} average utilization"
                ),
                affected_staff=len(under),
            )
        )
    if over:
        result.append(
            Bottleneck(
                type=BottleneckType.OVERUTILIZED_STAFF,
                severity=_share_severity(len(over) / len(utilization), 0.5, 0.25),
                description=(
                    f"{len(over)} staff members are far above the "
                    f"{average:.0%} average utilization"
                ),
                affected_staff=len(over),
            )
        )
    return result


def _understaffed_hours(hourly: list[HourlyStats], thresholds: FlowThresholds) -> Bottleneck | None:
    active = [h for h in hourly if h.ticket_count > 0]
    if len(active) < 2:
        return None
    average_load = sum(h.tickets_per_staff for h in active) / len(active)
    flagged = [h for h in active if h.tickets_per_staff > average_load * thresholds.peak_hour_factor]
    if not flagged:
        return None

    worst = max(h.tickets_per_staff for h in flagged)
    hours = tuple(h.hour for h in flagged)
    return Bottleneck(
        type=BottleneckType.UNDERSTAFFED_HOURS,
        severity=Severity.HIGH if worst > average_load * 2 else Severity.MEDIUM,
        description=(
            f"{len(flagged)} hours have disproportionately high volume per staff member "
            f"(hours: {', '.join(f'{h:02d}:00' for h in hours)})"
        ),
        affected_tickets=sum(h.ticket_count for h in flagged),
        affected_hours=hours,
    )


# ─── Recommendations ─────────────────────────────────────────────────


@dataclass(frozen=True)
class Recommendation:
    category: RecommendationCategory
    priority: Severity
    title: str
    description: str
    action: str
    estimated_impact: str
    goal: OptimizationGoal
    source: BottleneckType


def _recommend(b: Bottleneck, metrics: FlowMetrics, thresholds: FlowThresholds) -> Recommendation:
    match b.type:
        case BottleneckType.LOW_COMPLETION_RATE:
            gap = max(0.0, thresholds.target_completion_rate - metrics.completion_rate)
            return Recommendation(
                category=RecommendationCategory.PROCESS,
                priority=Severity.HIGH if b.severity != Severity.LOW else Severity.MEDIUM,
                title="Improve Ticket Completion Rate",
                description=b.description,
                action="Tighten queue management practices and follow up on abandoned tickets",
                estimated_impact=f"Increase completion rate by up to {gap:.0%}",
                goal=OptimizationGoal.IMPROVE_COMPLETION,
                source=b.type,
            )
        case BottleneckType.HIGH_WAIT_TIME:
            return Recommendation(
                category=RecommendationCategory.STAFFING,
                priority=Severity.HIGH,
                title="Increase Staff During Busy Periods",
                description=b.description,
                action="Add 1-2 additional staff members while waits run long",
                estimated_impact="Reduce wait time by 30-40%",
                goal=OptimizationGoal.REDUCE_WAIT_TIME,
                source=b.type,
            )
        case BottleneckType.UNDERSTAFFED_HOURS:
            hours = ", ".join(f"{h:02d}:00" for h in b.affected_hours)
            return Recommendation(
                category=RecommendationCategory.STAFFING,
                priority=b.severity,
                title="Rebalance Shifts Toward Peak Hours",
                description=b.description,
                action=f"Schedule additional staff for {hours}",
                estimated_impact="Reduce peak-hour wait time by 20-30%",
                goal=OptimizationGoal.REDUCE_WAIT_TIME,
                source=b.type,
            )
        case BottleneckType.UNDERUTILIZED_STAFF:
            return Recommendation(
                category=RecommendationCategory.UTILIZATION,
                priority=Severity.MEDIUM,
                title="Optimize Staff Utilization",
                description=b.description,
                action="Redistribute tickets or cross-train to balance workload",
                estimated_impact="Improve overall efficiency by 15-20%",
                goal=OptimizationGoal.BALANCE_WORKLOAD,
                source=b.type,
            )
        case BottleneckType.OVERUTILIZED_STAFF:
            return Recommendation(
                category=RecommendationCategory.TRAINING,
                priority=Severity.LOW,
                title="Provide Additional Training",
                description=b.description,
                action="Provide efficiency training and share load with less busy colleagues",
                estimated_impact="Improve service time by 10-15%",
                goal=OptimizationGoal.BALANCE_WORKLOAD,
                source=b.type,
            )
        case BottleneckType.LONG_MAX_WAIT:
            return Recommendation(
                category=RecommendationCategory.TECHNOLOGY,
                priority=Severity.MEDIUM,
                title="Notify Customers About Their Turn",
                description=b.description,
                action="Enable ready-to-serve SMS notifications so customers can wait elsewhere",
                estimated_impact="Reduce maximum wait time by 25-35%",
                goal=OptimizationGoal.REDUCE_WAIT_TIME,
                source=b.type,
            )
        case BottleneckType.HIGH_NO_SHOW_RATE:
            return Recommendation(
                category=RecommendationCategory.TECHNOLOGY,
                priority=b.severity,
                title="Send Reminders Before the Customer's Turn",
                description=b.description,
                action="Schedule reminder notifications for waiting customers",
                estimated_impact="Cut no-shows by 20-30%",
                goal=OptimizationGoal.IMPROVE_COMPLETION,
                source=b.type,
            )
        case _:
            raise ValueError(f"Unsupported bottleneck type: {b.type}")


def generate_recommendations(
    bottlenecks: list[Bottleneck],
    metrics: FlowMetrics,
    thresholds: FlowThresholds,
    goals: frozenset[OptimizationGoal] = frozenset(),
) -> list[Recommendation]:
    """One recommendation per bottleneck; goal matches first, then by priority."""
    recs = [_recommend(b, metrics, thresholds) for b in bottlenecks]
    return sorted(recs, key=lambda r: (bool(goals) and r.goal not in goals, _SEVERITY_RANK[r.priority]))


# ─── Optimization metrics ────────────────────────────────────────────


@dataclass(frozen=True)
class OptimizationMetrics:
    current_efficiency: float
    target_efficiency: float
    potential_improvement: float
    current_revenue: float
    potential_revenue: float
    potential_revenue_increase: float


def optimization_metrics(metrics: FlowMetrics, thresholds: FlowThresholds) -> OptimizationMetrics:
    current = metrics.completion_rate
    target = thresholds.target_efficiency

    if current > 0:
        improvement = max(0.0, round((target - current) / current * 100, 1))
    elif metrics.total > 0:
        improvement = 100.0
    else:
        improvement = 0.0

    potential_revenue = round(metrics.total * target * metrics.average_ticket_value, 2)
    return OptimizationMetrics(
        current_efficiency=current,
        target_efficiency=target,
        potential_improvement=improvement,
        current_revenue=metrics.total_revenue,
        potential_revenue=potential_revenue,
        potential_revenue_increase=max(0.0, round(potential_revenue - metrics.total_revenue, 2)),
    )


@dataclass(frozen=True)
class RecommendationSummary:
    total: int
    high: int
    medium: int
    low: int
    potential_improvement: float


def summarize(recs: list[Recommendation], optimization: OptimizationMetrics) -> RecommendationSummary:
    return RecommendationSummary(
        total=len(recs),
        high=sum(1 for r in recs if r.priority == Severity.HIGH),
        medium=sum(1 for r in recs if r.priority == Severity.MEDIUM),
        low=sum(1 for r in recs if r.priority == Severity.LOW),
        potential_improvement=optimization.potential_improvement,
    )
