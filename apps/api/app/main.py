"""FastAPI application entry point."""
import asyncio
import logging
import uuid
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import settings
from app.core.structured_logging import build_log_context
from app.db.session import engine

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
    logging.info("Sentry initialized for error tracking")

# ============================================================================
# Rate Limiting
# ============================================================================

from slowapi.errors import RateLimitExceeded
from app.core.rate_limit import limiter

logger = logging.getLogger(__name__)


# ============================================================================
# Lifespan (realtime backplane)
# ============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Run the Redis ticket-event listener for the lifetime of the process."""
    from app.services.notification_service import run_backplane_listener

    stop = asyncio.Event()
    listener = asyncio.create_task(run_backplane_listener(stop))
    try:
        yield
    finally:
        stop.set()
        with suppress(Exception):
            await asyncio.wait_for(listener, timeout=5)


# ============================================================================
# FastAPI App
# ============================================================================

app = FastAPI(
    title="wrrk API",
    description="Multi-tenant customer support API",
    version=settings.VERSION,
    docs_url="/docs" if settings.ENV == "dev" else None,
    redoc_url="/redoc" if settings.ENV == "dev" else None,
    lifespan=lifespan,
)

app.state.limiter = limiter

# ============================================================================
# Error envelope: every failure renders as {"error": ...}
# ============================================================================


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"loc": list(error.get("loc", [])), "msg": error.get("msg", "")}
        for error in exc.errors()
    ]
    return JSONResponse(status_code=422, content={"error": errors})


@app.exception_handler(RateLimitExceeded)
async def rate_limit_exception_handler(request: Request, exc: RateLimitExceeded):
    return JSONResponse(status_code=429, content={"error": f"Rate limit exceeded: {exc.detail}"})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(
        f"Unhandled error on {request.method} {request.url.path}",
        extra=build_log_context(
            request_id=getattr(request.state, "request_id", None),
            route=request.url.path,
        ),
    )
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


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
async def request_id_middleware(request: Request, call_next):
    """Echo the caller's X-Request-ID, or mint one, for log correlation."""
    request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
    request.state.request_id = request_id
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response

# ============================================================================
# Routers
# ============================================================================

from app.routers import auth, audit, customers, inbound, invites, tickets, users

# Auth router (always mounted)
app.include_router(auth.router, prefix="/auth", tags=["auth"])

# Directory (hierarchy-scoped)
app.include_router(users.router)
app.include_router(invites.router)

# Support desk
app.include_router(customers.router)
app.include_router(tickets.router)

# Customer-originated messages (email webhook + public widget)
app.include_router(inbound.router)

# Audit Trail (Owners)
app.include_router(audit.router)

# WebSocket for real-time ticket updates
from app.routers import websocket as ws_router
app.include_router(ws_router.router)

# Dev router (ONLY mounted in dev mode)
if settings.ENV == "dev":
    from app.routers import dev
    app.include_router(dev.router, prefix="/dev", tags=["dev"])


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
    return {"status": "ok", "env": settings.ENV, "version": settings.VERSION}
