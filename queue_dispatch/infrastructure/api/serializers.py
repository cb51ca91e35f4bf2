"""Domain object → API response dict converters shared by the routers."""

from __future__ import annotations

from datetime import datetime

from queue_dispatch.application.use_cases.auto_assign import BulkReassignResult
from queue_dispatch.application.use_cases.notifications import (
    BulkNotificationSummary,
    ScheduleResult,
)
from queue_dispatch.application.use_cases.optimize_flow import FlowReport
from queue_dispatch.application.use_cases.prioritize import PrioritizationResult
from queue_dispatch.domain.entities.assignment import Assignment
from queue_dispatch.domain.entities.notification import NotificationOutcome, ScheduledNotification
from queue_dispatch.domain.entities.ticket import Ticket
from queue_dispatch.domain.policies.flow_analysis import HourlyStats
from queue_dispatch.domain.policies.next_to_serve import QueuePosition


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def serialize_ticket(t: Ticket) -> dict:
    return {
        "id": t.id,
        "shop_id": t.shop_id,
        "customer_id": t.customer_id,
        "queue_number": t.queue_number,
        "status": t.status.value,
        "priority": t.priority.value,
        "customer_tier": t.customer_tier.value if t.customer_tier else None,
        "department_id": t.department_id,
        "services": [
            {
                "service_id": s.service_id,
                "name": s.name,
                "quantity": s.quantity,
                "unit_price": s.unit_price,
                "line_total": s.line_total,
            }
            for s in t.services
        ],
        "total_amount": t.total_amount,
        "estimated_wait_minutes": t.estimated_wait_minutes,
        "actual_wait_minutes": t.actual_wait_minutes,
        "assigned_staff_id": t.assigned_staff_id,
        "served_by_staff_id": t.served_by_staff_id,
        "notes": t.notes,
        "created_at": _iso(t.created_at),
        "called_at": _iso(t.called_at),
        "completed_at": _iso(t.completed_at),
    }


def serialize_assignment(a: Assignment) -> dict:
    return {
        "ticket_id": a.ticket_id,
        "staff_id": a.staff_id,
        "staff_name": a.staff_name,
        "strategy": a.strategy.value if a.strategy else None,
        "reason": a.reason,
        "previous_assignment": (
            {"staff_id": a.previous_staff_id} if a.is_reassignment else None
        ),
    }


def serialize_reassign(result: BulkReassignResult) -> dict:
    return {
        "staff_id": result.staff_id,
        "total": result.total,
        "succeeded": result.succeeded,
        "failed": result.failed,
        "results": [
            {
                "ticket_id": i.ticket_id,
                "success": i.success,
                "assignment": serialize_assignment(i.assignment) if i.assignment else None,
                "error": i.error,
            }
            for i in result.items
        ],
    }


def serialize_position(p: QueuePosition) -> dict:
    return {
        "ticket_id": p.ticket_id,
        "status": p.status.value,
        "position": p.position,
        "total_ahead": p.total_ahead,
        "estimated_wait_minutes": p.estimated_wait_minutes,
    }


def serialize_prioritization(result: PrioritizationResult) -> dict:
    return {
        "strategy": result.strategy.value,
        "total": result.total,
        "counts": {bucket.value: n for bucket, n in result.counts.items()},
        "updated": result.updated,
        "skipped": result.skipped,
        "scores": [
            {
                "ticket_id": s.ticket_id,
                "score": s.score,
                "priority": s.bucket.value,
                "reason": s.reason,
            }
            for s in result.scores
        ],
    }


def _hour(h: HourlyStats) -> dict:
    return {
        "hour": h.hour,
        "ticket_count": h.ticket_count,
        "completed_count": h.completed_count,
        "completion_rate": round(h.completion_rate, 4),
        "average_wait_minutes": round(h.average_wait_minutes, 2),
        "staff_count": h.staff_count,
    }


def serialize_flow_report(r: FlowReport) -> dict:
    m = r.metrics
    return {
        "shop_id": r.shop_id,
        "department_id": r.department_id,
        "period": {"start": _iso(r.period.start), "end": _iso(r.period.end), "days": r.period.days},
        "metrics": {
            "total": m.total,
            "completed": m.completed,
            "cancelled": m.cancelled,
            "no_show": m.no_show,
            "completion_rate": m.completion_rate,
            "cancellation_rate": m.cancellation_rate,
            "no_show_rate": m.no_show_rate,
            "average_wait_minutes": m.average_wait_minutes,
            "max_wait_minutes": m.max_wait_minutes,
            "average_service_minutes": m.average_service_minutes,
            "max_service_minutes": m.max_service_minutes,
            "total_revenue": m.total_revenue,
            "average_ticket_value": m.average_ticket_value,
            "hourly": [_hour(h) for h in m.hourly],
            "staff_utilization": [
                {
                    "staff_id": u.staff_id,
                    "staff_name": u.staff_name,
                    "served_count": u.served_count,
                    "total_service_minutes": u.total_service_minutes,
                    "utilization_rate": u.utilization_rate,
                }
                for u in m.staff_utilization
            ],
        },
        "peak_hours": [_hour(h) for h in r.peak_hours],
        "quiet_hours": [_hour(h) for h in r.quiet_hours],
        "bottlenecks": [
            {
                "type": b.type.value,
                "severity": b.severity.value,
                "description": b.description,
                "affected_tickets": b.affected_tickets,
                "affected_staff": b.affected_staff,
                "affected_hours": list(b.affected_hours),
            }
            for b in r.bottlenecks
        ],
        "recommendations": [
            {
                "category": rec.category.value,
                "priority": rec.priority.value,
                "title": rec.title,
                "description": rec.description,
                "action": rec.action,
                "estimated_impact": rec.estimated_impact,
                "goal": rec.goal.value,
            }
            for rec in r.recommendations
        ],
        "optimization": {
            "current_efficiency": r.optimization.current_efficiency,
            "target_efficiency": r.optimization.target_efficiency,
            "potential_improvement": r.optimization.potential_improvement,
            "current_revenue": r.optimization.current_revenue,
            "potential_revenue": r.optimization.potential_revenue,
            "potential_revenue_increase": r.optimization.potential_revenue_increase,
        },
        "summary": {
            "total": r.summary.total,
            "high": r.summary.high,
            "medium": r.summary.medium,
            "low": r.summary.low,
            "potential_improvement": r.summary.potential_improvement,
        },
    }


def _entry(e: ScheduledNotification) -> dict:
    return {
        "rule_id": e.rule_id,
        "rule_name": e.rule_name,
        "kind": e.kind.value,
        "channels": [c.value for c in e.channels],
        "priority": e.priority.value,
        "scheduled_at": _iso(e.scheduled_at),
        "ticket_id": e.ticket_id,
    }


def serialize_schedule(r: ScheduleResult) -> dict:
    return {
        "schedule_id": r.schedule_id,
        "horizon_days": r.horizon_days,
        "timezone": r.timezone,
        "summary": {
            "total_rules": r.total_rules,
            "active_rules": r.active_rules,
            "scheduled": len(r.entries),
            "estimated_daily_notifications": r.estimated_daily_notifications,
        },
        "entries": [_entry(e) for e in r.entries],
    }


def serialize_outcome(o: NotificationOutcome) -> dict:
    return {
        "ticket_id": o.ticket_id,
        "type": o.notification_type.value,
        "success": o.success,
        "message": o.message,
        "error": o.error,
        "total_channels": o.total_channels,
        "successful_channels": o.successful_channels,
        "failed_channels": o.failed_channels,
        "channels": [
            {
                "channel": r.channel.value,
                "success": r.success,
                "message_id": r.message_id,
                "error": r.error,
            }
            for r in o.channel_results
        ],
    }


def serialize_bulk(s: BulkNotificationSummary) -> dict:
    return {
        "type": s.notification_type.value,
        "total": s.total,
        "successful": s.successful,
        "failed": s.failed,
        "success_rate": s.success_rate,
        "total_channels": s.total_channels,
        "successful_channels": s.successful_channels,
        "failed_channels": s.failed_channels,
        "by_channel": {c.value: {"sent": b.sent, "failed": b.failed} for c, b in s.by_channel.items()},
        "results": [serialize_outcome(o) for o in s.outcomes],
    }
