"""Analytics endpoints — queue flow report with bottlenecks and recommendations."""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from queue_dispatch.application.clock import utc_now
from queue_dispatch.application.use_cases.optimize_flow import OptimizeFlowUseCase
from queue_dispatch.domain.errors import validation_error
from queue_dispatch.domain.value_objects.date_range import DateRange
from queue_dispatch.infrastructure.api.dependencies import get_optimize_flow_uc, get_shop_id
from queue_dispatch.infrastructure.api.serializers import serialize_flow_report

router = APIRouter(prefix="/analytics", tags=["analytics"])


class OptimizeRequest(BaseModel):
    start: datetime | None = None
    end: datetime | None = None
    days: int = Field(default=30, gt=0, le=366)
    department_id: int | None = None
    goals: list[str] = Field(default_factory=list)


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def _period(body: OptimizeRequest) -> DateRange:
    op = "optimize_flow"
    if body.start is None and body.end is None:
        return DateRange.last_days(utc_now(), body.days)
    if body.start is None or body.end is None:
        raise validation_error(op, "Both start and end are required for an explicit period")
    try:
        return DateRange(_aware(body.start), _aware(body.end))
    except ValueError as e:
        raise validation_error(op, str(e), start=body.start.isoformat(), end=body.end.isoformat()) from e


@router.post("/optimize")
async def optimize_flow(
    body: OptimizeRequest,
    shop_id: int = Depends(get_shop_id),
    uc: OptimizeFlowUseCase = Depends(get_optimize_flow_uc),
):
    """Flow metrics for a period; without start/end the last ``days`` days are analysed."""
    report = await uc.execute(
        shop_id=shop_id,
        period=_period(body),
        department_id=body.department_id,
        goals=body.goals,
    )
    return serialize_flow_report(report)
