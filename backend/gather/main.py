"""
Gather Registration API - Main Application Entry Point

Event registration backend demonstrating:
- Capacity-safe registration with per-event serialization
- FIFO waitlist with automatic promotion on cancellation or capacity increase
- Fire-and-forget email notifications that never block a decision
- Structured logging with request correlation and Prometheus metrics
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from gather.core.config import get_settings
from gather.core.logging import setup_logging, get_logger
from gather.core.metrics import metrics_endpoint
from gather.api.router import api_router
from gather.api.errors import register_exception_handlers
from gather.api.middleware import RequestLoggingMiddleware
from gather.infrastructure.redis_client import close_redis
from gather.services.strategy_factory import get_event_locks, get_notifier, shutdown_notifier

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle: startup and shutdown hooks."""
    setup_logging()
    logger = get_logger(__name__)

    locks = get_event_locks()
    get_notifier()
    logger.info(
        "application_starting",
        app=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
        lock_backend=locks.backend,
        notification_backend=settings.NOTIFICATION_BACKEND,
    )

    yield

    await shutdown_notifier()
    if settings.LOCK_BACKEND == "redis":
        await close_redis()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Event registration API with capacity-safe allocation and waitlists",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(RequestLoggingMiddleware)
register_exception_handlers(app)

app.include_router(api_router)


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for Docker and load balancers."""
    notifier = get_notifier()
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "lock_backend": get_event_locks().backend,
        "notifications_pending": notifier.pending,
    }


@app.get("/metrics", tags=["Health"], include_in_schema=False)
async def metrics():
    return metrics_endpoint()


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }
