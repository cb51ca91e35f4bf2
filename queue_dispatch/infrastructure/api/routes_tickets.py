"""Ticket endpoints — create, lifecycle transitions, next-to-serve and queue position."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from queue_dispatch.application.use_cases.next_to_serve import (
    GetNextToServeUseCase,
    GetQueuePositionUseCase,
)
from queue_dispatch.application.use_cases.ticket_lifecycle import TicketLifecycleUseCase
from queue_dispatch.domain.entities.ticket import ServiceLineItem
from queue_dispatch.domain.errors import parse_enum
from queue_dispatch.domain.value_objects.enums import CustomerTier, TicketPriority
from queue_dispatch.infrastructure.api.dependencies import (
    get_lifecycle_uc,
    get_next_to_serve_uc,
    get_queue_position_uc,
    get_shop_id,
)
from queue_dispatch.infrastructure.api.serializers import (
    serialize_assignment,
    serialize_position,
    serialize_ticket,
)

router = APIRouter(prefix="/tickets", tags=["tickets"])


class ServiceItemIn(BaseModel):
    service_id: int
    name: str
    quantity: int = Field(default=1, gt=0)
    unit_price: float = Field(default=0.0, ge=0)


class CreateTicketRequest(BaseModel):
    customer_id: int
    services: list[ServiceItemIn]
    priority: str = TicketPriority.NORMAL.value
    customer_tier: str | None = None
    department_id: int | None = None
    estimated_wait_minutes: int | None = None
    notes: str | None = None


class StaffRequest(BaseModel):
    staff_id: int


@router.post("", status_code=201)
async def create_ticket(
    body: CreateTicketRequest,
    shop_id: int = Depends(get_shop_id),
    uc: TicketLifecycleUseCase = Depends(get_lifecycle_uc),
):
    """Open a new WAITING ticket with the next queue number of the day."""
    op = "create_ticket"
    ticket = await uc.create(
        shop_id=shop_id,
        customer_id=body.customer_id,
        services=[
            ServiceLineItem(
                service_id=s.service_id, name=s.name, quantity=s.quantity, unit_price=s.unit_price
            )
            for s in body.services
        ],
        priority=parse_enum(TicketPriority, body.priority, op, "priority"),
        customer_tier=(
            parse_enum(CustomerTier, body.customer_tier, op, "customer tier") if body.customer_tier else None
        ),
        department_id=body.department_id,
        estimated_wait_minutes=body.estimated_wait_minutes,
        notes=body.notes,
    )
    return serialize_ticket(ticket)


@router.get("/next")
async def next_to_serve(
    staff_id: int | None = None,
    department_id: int | None = None,
    priority_only: bool = False,
    shop_id: int = Depends(get_shop_id),
    uc: GetNextToServeUseCase = Depends(get_next_to_serve_uc),
):
    """The single ticket to call next; ``ticket`` is null when the line is empty."""
    ticket = await uc.execute(shop_id, staff_id, department_id, priority_only)
    return {"ticket": serialize_ticket(ticket) if ticket else None}


@router.get("/{ticket_id}")
async def get_ticket(
    ticket_id: int,
    shop_id: int = Depends(get_shop_id),
    uc: TicketLifecycleUseCase = Depends(get_lifecycle_uc),
):
    return serialize_ticket(await uc.get(shop_id, ticket_id))


@router.get("/{ticket_id}/position")
async def queue_position(
    ticket_id: int,
    shop_id: int = Depends(get_shop_id),
    uc: GetQueuePositionUseCase = Depends(get_queue_position_uc),
):
    return serialize_position(await uc.execute(shop_id, ticket_id))


@router.post("/{ticket_id}/confirm")
async def confirm_ticket(
    ticket_id: int,
    shop_id: int = Depends(get_shop_id),
    uc: TicketLifecycleUseCase = Depends(get_lifecycle_uc),
):
    return serialize_ticket(await uc.confirm(shop_id, ticket_id))


@router.post("/{ticket_id}/assign")
async def assign_ticket(
    ticket_id: int,
    body: StaffRequest,
    shop_id: int = Depends(get_shop_id),
    uc: TicketLifecycleUseCase = Depends(get_lifecycle_uc),
):
    return serialize_assignment(await uc.assign(shop_id, ticket_id, body.staff_id))


@router.post("/{ticket_id}/start")
async def start_service(
    ticket_id: int,
    body: StaffRequest,
    shop_id: int = Depends(get_shop_id),
    uc: TicketLifecycleUseCase = Depends(get_lifecycle_uc),
):
    return serialize_ticket(await uc.start_service(shop_id, ticket_id, body.staff_id))


@router.post("/{ticket_id}/complete")
async def complete_ticket(
    ticket_id: int,
    shop_id: int = Depends(get_shop_id),
    uc: TicketLifecycleUseCase = Depends(get_lifecycle_uc),
):
    return serialize_ticket(await uc.complete(shop_id, ticket_id))


@router.post("/{ticket_id}/cancel")
async def cancel_ticket(
    ticket_id: int,
    shop_id: int = Depends(get_shop_id),
    uc: TicketLifecycleUseCase = Depends(get_lifecycle_uc),
):
    return serialize_ticket(await uc.cancel(shop_id, ticket_id))


@router.post("/{ticket_id}/no-show")
async def mark_no_show(
    ticket_id: int,
    shop_id: int = Depends(get_shop_id),
    uc: TicketLifecycleUseCase = Depends(get_lifecycle_uc),
):
    return serialize_ticket(await uc.mark_no_show(shop_id, ticket_id))
