"""
Room Chat AI - FastAPI Application

Main entry point for the backend API.
Provides chat rooms with asynchronous AI replies and Stripe subscriptions.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from roomchat.api.dependencies import get_job_queue
from roomchat.config.settings import settings
from roomchat.infrastructure.exceptions import (
    RoomChatError,
    ValidationError,
    NotFoundError,
    UnauthorizedError,
    QuotaExceededError,
    QueueUnavailableError,
    StoreUnavailableError,
    ProviderError,
)
from roomchat.infrastructure.queue.job_queue import JobQueue

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    # Startup
    logger.info(f"Room Chat AI Backend starting in {settings.environment} mode...")

    from roomchat.infrastructure.cache.redis_client import init_redis, close_redis
    from roomchat.infrastructure.db.database import init_db, close_db

    if settings.database_url:
        await init_db()
        logger.info("SQLModel database connection pool initialized")
    else:
        logger.warning("DATABASE_URL not set; database-backed routes will fail")

    try:
        await init_redis()
    except Exception as e:
        logger.warning(f"Redis not reachable at startup: {e}")

    yield

    # Shutdown
    await close_redis()
    if settings.database_url:
        await close_db()
        logger.info("SQLModel database connection pool closed")

    logger.info("Room Chat AI Backend shutting down...")


app = FastAPI(
    title="Room Chat AI",
    description="Chat rooms with queued Gemini replies and tiered daily quotas",
    version="1.0.0",
    lifespan=lifespan,
    debug=settings.debug,
)


# ============================================================================
# Exception Handlers
# ============================================================================

def _error_response(status_code: int, exc: RoomChatError) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=exc.to_dict())


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    """Handle validation errors."""
    return _error_response(400, exc)


@app.exception_handler(UnauthorizedError)
async def unauthorized_error_handler(request: Request, exc: UnauthorizedError):
    """Handle authentication failures."""
    response = _error_response(401, exc)
    response.headers["WWW-Authenticate"] = "Bearer"
    return response


@app.exception_handler(NotFoundError)
async def not_found_error_handler(request: Request, exc: NotFoundError):
    """Handle not found errors."""
    return _error_response(404, exc)


@app.exception_handler(QuotaExceededError)
async def quota_exceeded_error_handler(request: Request, exc: QuotaExceededError):
    """Handle exhausted daily prompt quota."""
    return _error_response(429, exc)


@app.exception_handler(QueueUnavailableError)
@app.exception_handler(StoreUnavailableError)
async def unavailable_error_handler(request: Request, exc: RoomChatError):
    """Handle Redis or database outages."""
    logger.error(f"Infrastructure unavailable: {exc}")
    return _error_response(503, exc)


@app.exception_handler(ProviderError)
async def provider_error_handler(request: Request, exc: ProviderError):
    """Handle failures of Gemini or Stripe."""
    logger.error(f"Provider error: {exc}")
    return _error_response(502, exc)


@app.exception_handler(RoomChatError)
async def general_error_handler(request: Request, exc: RoomChatError):
    """Handle all other application errors."""
    logger.error(f"Unhandled application error: {exc}")
    return _error_response(500, exc)


# ============================================================================
# Health Check
# ============================================================================

@app.get("/healthz")
async def health_check(queue: JobQueue = Depends(get_job_queue)):
    """Health check endpoint, reporting the Gemini queue depth."""
    try:
        depth = await queue.length()
    except QueueUnavailableError as e:
        logger.warning(f"Health check could not reach the queue: {e}")
        return {"status": "degraded", "service": "room-chat-ai", "queue_depth": None}
    return {"status": "healthy", "service": "room-chat-ai", "queue_depth": depth}


# ============================================================================
# Import and register routers
# ============================================================================

from roomchat.api.routes import chatrooms, subscriptions, webhooks  # noqa: E402

app.include_router(chatrooms.router, prefix="/api/v1", tags=["Chatrooms"])
app.include_router(subscriptions.router, prefix="/api/v1", tags=["Subscriptions"])
app.include_router(webhooks.router, prefix="/api/v1", tags=["Webhooks"])
