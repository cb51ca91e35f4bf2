"""Queue dispatch service — FastAPI application factory."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from queue_dispatch.adapters.persistence.database import engine
from queue_dispatch.config import settings
from queue_dispatch.infrastructure.api.errors import register_error_handlers
from queue_dispatch.infrastructure.api.routes_analytics import router as analytics_router
from queue_dispatch.infrastructure.api.routes_dispatch import router as dispatch_router
from queue_dispatch.infrastructure.api.routes_health import router as health_router
from queue_dispatch.infrastructure.api.routes_notifications import router as notifications_router
from queue_dispatch.infrastructure.api.routes_tickets import router as tickets_router

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    try:
        async with engine.begin():
            pass  # Connection pool warmed up
        logger.info("Database connection established")
    except Exception as e:
        logger.warning("Database not available on startup: %s", e)
    yield
    await engine.dispose()


def create_app() -> FastAPI:
    app = FastAPI(
        title="Queue Dispatch & Prioritization Engine",
        description="Walk-in queue tickets: assignment, prioritization, flow analytics and notifications",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_error_handlers(app)

    # Register routers
    app.include_router(health_router, prefix="/api")
    app.include_router(tickets_router, prefix="/api")
    app.include_router(dispatch_router, prefix="/api")
    app.include_router(analytics_router, prefix="/api")
    app.include_router(notifications_router, prefix="/api")

    return app


app = create_app()
