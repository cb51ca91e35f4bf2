"""Health check endpoint."""

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from queue_dispatch.adapters.persistence.database import get_session
from queue_dispatch.infrastructure.api.dependencies import configured_channels

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(session: AsyncSession = Depends(get_session)):
    """Database connectivity plus the notification channels that have a gateway."""
    try:
        await session.execute(text("SELECT 1"))
        db_status = "connected"
    except Exception as e:
        db_status = f"error: {e}"

    return {
        "status": "ok" if db_status == "connected" else "degraded",
        "database": db_status,
        "channels": configured_channels(),
        "service": "Queue Dispatch & Prioritization Engine",
    }
