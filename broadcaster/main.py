"""
Broadcaster API - FastAPI application entry point.
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from .config import get_settings
from .database import engine, Base, get_session_factory
from .delivery.store import BroadcastStore
from .dependencies import build_reconciler
from .limiter import limiter
from .logging_config import api_logger
from .middleware import SecurityHeadersMiddleware, RequestLoggingMiddleware
from .responses import ApiException, api_exception_handler
from .routes import (
    auth_router,
    cron_router,
    broadcasts_router,
    subscribers_router,
    broadcast_groups_router,
    webhooks_router,
)
from .worker.supervisor import TaskSupervisor

settings = get_settings()

# Create tables (in production, use Alembic migrations instead)
Base.metadata.create_all(bind=engine)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle - startup and shutdown"""
    supervisor = TaskSupervisor()
    app.state.supervisor = supervisor

    if settings.auto_reconcile:
        reconciler = build_reconciler(BroadcastStore(get_session_factory()), settings)
        supervisor.spawn(
            reconciler.run_forever(settings.reconcile_interval_seconds),
            name="stuck-sending-reconciler",
        )
        api_logger.info(
            "Started stuck-sending reconciler",
            interval_seconds=settings.reconcile_interval_seconds,
            grace_minutes=settings.stuck_sending_grace_minutes,
        )

    yield  # App is running

    await supervisor.shutdown()


app = FastAPI(
    title="Broadcaster API",
    description="Broadcast email campaigns: drafts, scheduling and delivery",
    version="1.0.0",
    docs_url="/api/docs" if settings.debug else None,
    redoc_url="/api/redoc" if settings.debug else None,
    lifespan=lifespan,
)

# Add rate limiter to app state
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_exception_handler(ApiException, api_exception_handler)

# Security headers middleware
app.add_middleware(SecurityHeadersMiddleware)

# Request logging middleware (only in debug mode)
if settings.debug:
    app.add_middleware(RequestLoggingMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "Accept", "Origin"],
    max_age=3600,
)

# Routes. The cron router must precede the broadcast router's /{broadcast_id}.
app.include_router(auth_router)
app.include_router(cron_router)
app.include_router(broadcasts_router)
app.include_router(subscribers_router)
app.include_router(broadcast_groups_router)
app.include_router(webhooks_router)


@app.get("/api/health")
def health_check():
    """Health check endpoint for load balancers and monitoring."""
    return {
        "status": "healthy",
        "environment": settings.environment,
        "version": "1.0.0",
    }
