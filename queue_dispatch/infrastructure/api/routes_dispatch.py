"""Dispatch endpoints — strategy assignment, bulk reassignment, prioritization."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from queue_dispatch.application.use_cases.auto_assign import AutoAssignUseCase, BulkReassignUseCase
from queue_dispatch.application.use_cases.prioritize import PrioritizeUseCase
from queue_dispatch.domain.policies.prioritization import CombinedWeights
from queue_dispatch.infrastructure.api.dependencies import (
    get_auto_assign_uc,
    get_bulk_reassign_uc,
    get_prioritize_uc,
    get_shop_id,
)
from queue_dispatch.infrastructure.api.serializers import (
    serialize_assignment,
    serialize_prioritization,
    serialize_reassign,
)

router = APIRouter(prefix="/dispatch", tags=["dispatch"])


class AssignRequest(BaseModel):
    ticket_id: int
    staff_id: int | None = None
    strategy: str | None = "load-balancing"
    department_id: int | None = None
    required_skills: list[str] = Field(default_factory=list)
    priority: str | None = None


class ReassignRequest(BaseModel):
    ticket_ids: list[int]
    staff_id: int


class WeightsIn(BaseModel):
    wait: float = 0.4
    tier: float = 0.3
    revenue: float = 0.2
    complexity: float = 0.1


class PrioritizeRequest(BaseModel):
    ticket_ids: list[int] = Field(default_factory=list)
    strategy: str = "combined"
    department_id: int | None = None
    weights: WeightsIn | None = None
    revenue_cap: float | None = None
    apply: bool = True


@router.post("/assign")
async def assign(
    body: AssignRequest,
    shop_id: int = Depends(get_shop_id),
    uc: AutoAssignUseCase = Depends(get_auto_assign_uc),
):
    """Assign to an explicit staff member, or pick one with the given strategy."""
    assignment = await uc.execute(
        shop_id=shop_id,
        ticket_id=body.ticket_id,
        staff_id=body.staff_id,
        strategy=body.strategy,
        department_id=body.department_id,
        required_skills=set(body.required_skills),
        priority_hint=body.priority,
    )
    return serialize_assignment(assignment)


@router.post("/reassign")
async def reassign(
    body: ReassignRequest,
    shop_id: int = Depends(get_shop_id),
    uc: BulkReassignUseCase = Depends(get_bulk_reassign_uc),
):
    return serialize_reassign(await uc.execute(shop_id, body.ticket_ids, body.staff_id))


@router.post("/prioritize")
async def prioritize(
    body: PrioritizeRequest,
    shop_id: int = Depends(get_shop_id),
    uc: PrioritizeUseCase = Depends(get_prioritize_uc),
):
    """Score tickets; an empty ``ticket_ids`` scores the whole waiting line."""
    weights = CombinedWeights(**body.weights.model_dump()) if body.weights else None
    result = await uc.execute(
        shop_id=shop_id,
        ticket_ids=body.ticket_ids,
        strategy=body.strategy,
        department_id=body.department_id,
        weights=weights,
        apply=body.apply,
        revenue_cap=body.revenue_cap,
    )
    return serialize_prioritization(result)
