"""PrioritizationPolicy — urgency score and bucket for waiting tickets."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from queue_dispatch.domain.entities.ticket import Ticket
from queue_dispatch.domain.value_objects.enums import PrioritizationStrategy, TicketPriority

MAX_COMPONENT = 100.0


@dataclass(frozen=True)
class CombinedWeights:
    wait: float = 0.4
    tier: float = 0.3
    revenue: float = 0.2
    complexity: float = 0.1

    @property
    def total(self) -> float:
        return self.wait + self.tier + self.revenue + self.complexity

    def validate(self) -> None:
        if min(self.wait, self.tier, self.revenue, self.complexity) < 0:
            raise ValueError("Combined weights must not be negative")
        if self.total <= 0:
            raise ValueError("Combined weights must not all be zero")


@dataclass(frozen=True)
class ScoringConfig:
    """Thresholds and normalisation caps; all of these are product decisions."""

    urgent_threshold: float = 75.0
    high_threshold: float = 50.0
    revenue_cap: float = 1000.0
    wait_cap_minutes: float = 60.0
    weights: CombinedWeights = CombinedWeights()

    def validate(self) -> None:
        if self.high_threshold > self.urgent_threshold:
            raise ValueError("High threshold must not exceed the urgent threshold")
        if self.revenue_cap <= 0:
            raise ValueError("Revenue cap must be positive")
        if self.wait_cap_minutes <= 0:
            raise ValueError("Wait cap must be positive")
        self.weights.validate()


@dataclass(frozen=True)
class PriorityScore:
    ticket_id: int
    score: float
    bucket: TicketPriority
    reason: str
    strategy: PrioritizationStrategy
    created_at: datetime | None = None


# ─── Components ──────────────────────────────────────────────────────


def wait_time_score(ticket: Ticket, now: datetime) -> float:
    return round(ticket.minutes_waiting(now), 2)


def tier_score(ticket: Ticket) -> float:
    if ticket.customer_tier is None:
        return 0.0
    return float(ticket.customer_tier.weight * 25)


def complexity_score(ticket: Ticket) -> float:
    return float(ticket.total_quantity * 5 + ticket.distinct_service_count * 10)


def revenue_score(ticket: Ticket, revenue_cap: float) -> float:
    return round(min(ticket.total_amount / revenue_cap, 1.0) * MAX_COMPONENT, 2)


def _normalise(value: float, cap: float) -> float:
    return min(value / cap, 1.0) * MAX_COMPONENT


def combined_score(ticket: Ticket, now: datetime, config: ScoringConfig) -> float:
    """Weighted blend of the four components, each on a 0–100 scale.

    Dividing by the weight total keeps the result on the same scale as the
    thresholds when the caller's weights do not sum to 1.
    """
    w = config.weights
    blended = (
        w.wait * _normalise(wait_time_score(ticket, now), config.wait_cap_minutes)
        + w.tier * tier_score(ticket)
        + w.revenue * revenue_score(ticket, config.revenue_cap)
        + w.complexity * min(complexity_score(ticket), MAX_COMPONENT)
    )
    return round(blended / w.total, 2)


# ─── Buckets ─────────────────────────────────────────────────────────


def bucket_for(score: float, config: ScoringConfig) -> TicketPriority:
    if score >= config.urgent_threshold:
        return TicketPriority.URGENT
    if score >= config.high_threshold:
        return TicketPriority.HIGH
    return TicketPriority.NORMAL


def _reason(strategy: PrioritizationStrategy, ticket: Ticket, score: float, now: datetime) -> str:
    match strategy:
        case PrioritizationStrategy.WAIT_TIME:
            return f"Waiting {ticket.minutes_waiting(now):.0f} minutes"
        case PrioritizationStrategy.CUSTOMER_TIER:
            tier = ticket.customer_tier.value if ticket.customer_tier else "no tier"
            return f"Customer tier: {tier}"
        case PrioritizationStrategy.SERVICE_COMPLEXITY:
            return (
                f"{ticket.total_quantity} items across "
                f"{ticket.distinct_service_count} services"
            )
        case PrioritizationStrategy.REVENUE:
            return f"Ticket value {ticket.total_amount:.2f}"
        case PrioritizationStrategy.COMBINED:
            return f"Combined score {score:.0f}"
        case _:
            raise ValueError(f"Unsupported prioritization strategy: {strategy}")


def score_ticket(
    ticket: Ticket,
    strategy: PrioritizationStrategy,
    now: datetime,
    config: ScoringConfig,
) -> PriorityScore:
    match strategy:
        case PrioritizationStrategy.WAIT_TIME:
            score = wait_time_score(ticket, now)
        case PrioritizationStrategy.CUSTOMER_TIER:
            score = tier_score(ticket)
        case PrioritizationStrategy.SERVICE_COMPLEXITY:
            score = complexity_score(ticket)
        case PrioritizationStrategy.REVENUE:
            score = revenue_score(ticket, config.revenue_cap)
        case PrioritizationStrategy.COMBINED:
            score = combined_score(ticket, now, config)
        case _:
            raise ValueError(f"Unsupported prioritization strategy: {strategy}")

    bucket = bucket_for(score, config)
    return PriorityScore(
        ticket_id=ticket.id,
        score=score,
        bucket=bucket,
        reason=f"{bucket.value}: {_reason(strategy, ticket, score, now)}",
        strategy=strategy,
        created_at=ticket.created_at,
    )


def rank_scores(scores: list[PriorityScore]) -> list[PriorityScore]:
    """Highest score first; equal scores go to the earlier ticket."""
    return sorted(
        scores,
        key=lambda s: (
            -s.score,
            s.created_at is None,
            s.created_at.timestamp() if s.created_at else 0.0,
            s.ticket_id,
        ),
    )


def bucket_counts(scores: list[PriorityScore]) -> dict[TicketPriority, int]:
    counts = {bucket: 0 for bucket in TicketPriority}
    for s in scores:
        counts[s.bucket] += 1
    return counts
