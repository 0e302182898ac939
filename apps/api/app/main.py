"""FastAPI application entry point."""
import asyncio
import logging
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from app.core.config import settings
from app.core.redis_client import get_redis_url
from app.core.structured_logging import build_log_context, configure_logging
from app.core.websocket import relay_changes_to_websockets
from app.db.session import engine
from app.services import change_feed, live_view

configure_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

# ============================================================================
# Sentry Integration (optional, for production error tracking)
# ============================================================================

if settings.SENTRY_DSN and settings.ENV != "dev":
    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.ENV,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            SqlalchemyIntegration(),
        ],
        traces_sample_rate=0.1,  # 10% of requests for performance monitoring
        send_default_pii=False,  # Don't send PII to Sentry
    )
    logger.info("Sentry initialized for error tracking")

# ============================================================================
# Rate Limiting
# ============================================================================

from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from app.core.rate_limit import limiter

# Every committed change is published to the change feed
change_feed.install_change_capture()


# ============================================================================
# Lifespan: WebSocket relay, Redis backplane listener, performance snapshot
# ============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    loop = asyncio.get_running_loop()
    relay = relay_changes_to_websockets(change_feed.feed, loop)
    listener = None
    if get_redis_url():
        listener = asyncio.create_task(change_feed.run_backplane_listener())
    app.state.performance_view = None
    try:
        if settings.STAFF_PERFORMANCE_SNAPSHOT:
            view = live_view.staff_performance_view(change_feed.feed)
            app.state.performance_view = view
            await view.mount()
        yield
    finally:
        change_feed.feed.unsubscribe(relay)
        if app.state.performance_view is not None:
            await app.state.performance_view.unmount()
            app.state.performance_view = None
        if listener is not None:
            listener.cancel()
            try:
                await listener
            except asyncio.CancelledError:
                pass


# ============================================================================
# FastAPI App
# ============================================================================

app = FastAPI(
    title="Gram Panchayat Portal API",
    description="Citizen services: document requests, announcements and staff management",
    version=settings.VERSION,
    docs_url="/docs" if settings.ENV == "dev" else None,
    redoc_url="/redoc" if settings.ENV == "dev" else None,
    lifespan=lifespan,
)

# Add rate limiter
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# CORS middleware - must be added before routers
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,  # Required for cookies
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
    expose_headers=["X-Request-ID"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
    started = time.perf_counter()
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    logger.info(
        "request completed in %.1fms",
        (time.perf_counter() - started) * 1000,
        extra=build_log_context(
            request_id=request_id,
            route=request.url.path,
            method=request.method,
            status_code=response.status_code,
        ),
    )
    return response


# ============================================================================
# Routers
# ============================================================================

from app.routers import announcements, documents, staff, uploads
from app.routers import websocket as ws_router

app.include_router(documents.router, prefix="/documents", tags=["documents"])
app.include_router(announcements.router, prefix="/announcements", tags=["announcements"])
app.include_router(staff.router, prefix="/staff", tags=["staff"])
app.include_router(uploads.router, prefix="/uploads", tags=["uploads"])

# WebSocket for realtime change notifications
app.include_router(ws_router.router)


# ============================================================================
# Health Check
# ============================================================================

@app.get("/health")
def health():
    """
    Health check endpoint.

    Verifies database connectivity and returns environment info.
    """
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    return {
        "status": "ok",
        "env": settings.ENV,
        "version": settings.VERSION,
        "panchayat": settings.PANCHAYAT_NAME,
    }
