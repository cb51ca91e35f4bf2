"""Domain enums — pure Python, no external dependencies."""

from enum import Enum


class TicketStatus(str, Enum):
    WAITING = "waiting"
    CONFIRMED = "confirmed"
    SERVING = "serving"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


class TicketPriority(str, Enum):
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"

    @property
    def rank(self) -> int:
        """Serving order rank: lower is served first."""
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {
    TicketPriority.URGENT: 0,
    TicketPriority.HIGH: 1,
    TicketPriority.NORMAL: 2,
}


class CustomerTier(str, Enum):
    BRONZE = "Bronze"
    SILVER = "Silver"
    GOLD = "Gold"
    PLATINUM = "Platinum"

    @property
    def weight(self) -> int:
        return _TIER_WEIGHT[self]


_TIER_WEIGHT = {
    CustomerTier.BRONZE: 1,
    CustomerTier.SILVER: 2,
    CustomerTier.GOLD: 3,
    CustomerTier.PLATINUM: 4,
}


class AssignmentStrategy(str, Enum):
    LOAD_BALANCING = "load-balancing"
    ROUND_ROBIN = "round-robin"
    SKILLS = "skills"
    PRIORITY = "priority"


class PrioritizationStrategy(str, Enum):
    WAIT_TIME = "wait-time"
    CUSTOMER_TIER = "customer-tier"
    SERVICE_COMPLEXITY = "service-complexity"
    REVENUE = "revenue"
    COMBINED = "combined"


class PaymentStatus(str, Enum):
    PAID = "paid"
    PENDING = "pending"
    REFUNDED = "refunded"


class RuleKind(str, Enum):
    TIME_BASED = "time-based"
    STATUS_BASED = "status-based"
    EVENT_BASED = "event-based"


class Recurrence(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class ConditionOperator(str, Enum):
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    CONTAINS = "contains"


class Channel(str, Enum):
    SMS = "sms"
    EMAIL = "email"
    PUSH = "push"


class NotificationType(str, Enum):
    REMINDER = "reminder"
    STATUS_UPDATE = "status-update"
    READY_TO_SERVE = "ready-to-serve"
    DELAY_NOTIFICATION = "delay-notification"
    FEEDBACK = "feedback"


class NotificationPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class TicketEvent(str, Enum):
    CREATED = "ticket_created"
    CONFIRMED = "ticket_confirmed"
    ASSIGNED = "ticket_assigned"
    COMPLETED = "ticket_completed"
    CANCELLED = "ticket_cancelled"
    NO_SHOW = "ticket_no_show"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class RecommendationCategory(str, Enum):
    STAFFING = "staffing"
    UTILIZATION = "utilization"
    PROCESS = "process"
    TECHNOLOGY = "technology"
    TRAINING = "training"


class OptimizationGoal(str, Enum):
    REDUCE_WAIT_TIME = "reduce-wait-time"
    IMPROVE_COMPLETION = "improve-completion"
    BALANCE_WORKLOAD = "balance-workload"
    INCREASE_REVENUE = "increase-revenue"


class BottleneckType(str, Enum):
    LOW_COMPLETION_RATE = "low_completion_rate"
    HIGH_WAIT_TIME = "high_wait_time"
    LONG_MAX_WAIT = "long_max_wait"
    HIGH_NO_SHOW_RATE = "high_no_show_rate"
    UNDERUTILIZED_STAFF = "underutilized_staff"
    OVERUTILIZED_STAFF = "overutilized_staff"
    UNDERSTAFFED_HOURS = "understaffed_hours"
