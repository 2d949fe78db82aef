"""
TableTalk API

TableTalk Order Desk - multi-tenant restaurant ordering with a
conversational ordering agent.

Endpoints:
    - POST /api/chat: Guest chat turn
    - GET /api/chat: Session transcript
    - POST /api/chat/session: Table QR session link
    - GET/POST/PATCH /api/orders: Dashboard order board
    - GET/POST /api/payments: Payment records
    - GET/POST/PATCH /api/tables: Table management
    - GET /health: dependency probes
"""

import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

import redis
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

# psycopg async needs the selector loop on Windows
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

from tabletalk.core.config import get_settings, setup_logging
from tabletalk.core.exceptions import TableTalkError
from tabletalk.database import engine, get_db, init_db
from tabletalk.routers import chat, orders, payments, tables
from tabletalk.schemas import ErrorResponse, HealthResponse
from tabletalk.services.oracle import BaseOracle, get_oracle

# Settings and logging come first
settings = get_settings()
setup_logging()
logger = logging.getLogger(__name__)


# =============================================================================
# APPLICATION LIFECYCLE
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Create tables on startup and dispose the engine on shutdown.
    """
    # Startup
    logger.info("=" * 60)
    logger.info(f"🚀 Starting {settings.app_name}")
    logger.info(f"   Version: {settings.app_version}")
    logger.info(f"   Environment: {settings.env_mode.value}")
    logger.info(f"   Debug: {settings.debug}")
    logger.info("=" * 60)

    await init_db()
    logger.info("✅ Database initialized")

    oracle = get_oracle()
    logger.info(f"✅ Oracle: {oracle.provider_name}")
    logger.info(f"✅ Realtime events: {'on' if settings.realtime_events_enabled else 'off'}")

    if settings.is_production:
        missing = settings.validate_production_config()
        if missing:
            logger.warning(f"⚠️ Missing production config: {missing}")

    logger.info("=" * 60)
    logger.info("✅ Application ready!")
    logger.info("=" * 60)

    yield  # Application runs

    # Shutdown
    logger.info("Shutting down...")
    await oracle.aclose()
    await engine.dispose()
    logger.info("✅ Cleanup complete")


# =============================================================================
# APPLICATION INSTANCE
# =============================================================================

app = FastAPI(
    title=settings.app_name,
    description=(
        "Multi-tenant restaurant order desk with a conversational ordering agent. "
        "Guests order by chat; staff run the order board, payments and tables."
    ),
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(chat.router)
app.include_router(orders.router)
app.include_router(payments.router)
app.include_router(tables.router)


# =============================================================================
# EXCEPTION HANDLERS
# =============================================================================

def _error_body(error: str, detail: Any = None) -> dict[str, Any]:
    return jsonable_encoder(ErrorResponse(error=error, detail=detail))


@app.exception_handler(TableTalkError)
async def tabletalk_exception_handler(request: Request, exc: TableTalkError):
    """Typed domain failures carry their own HTTP status."""
    if exc.status_code >= 500:
        logger.error(f"❌ {request.method} {request.url.path}: {exc.detail}")
    else:
        logger.info(f"{request.method} {request.url.path} → {exc.status_code}: {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc.error, exc.detail),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed requests are rejected before anything is persisted."""
    return JSONResponse(
        status_code=400,
        content=_error_body("Validation failed", [
            {k: v for k, v in error.items() if k != "ctx"} for error in exc.errors()
        ]),
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle uncaught exceptions."""
    logger.exception(f"Unhandled error: {exc}")
    return JSONResponse(
        status_code=500,
        content=_error_body(
            "Internal server error",
            str(exc) if settings.debug else None,
        ),
    )


# =============================================================================
# ROOT & HEALTH ENDPOINTS
# =============================================================================

@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """Service name and where to look next."""
    return {
        "message": f"🍽️ Welcome to {settings.app_name}",
        "version": settings.app_version,
        "environment": settings.env_mode.value,
        "documentation": "/docs",
        "health": "/health",
    }


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["Health"],
    summary="Health probes",
)
async def health_check(
    db: AsyncSession = Depends(get_db),
    oracle: BaseOracle = Depends(get_oracle),
) -> HealthResponse:
    """Probe the database, Redis and the oracle."""

    # Check database
    db_status = "healthy"
    try:
        await db.execute(text("SELECT 1"))
    except Exception as e:
        db_status = f"unhealthy: {str(e)}"
        logger.error(f"Database health check failed: {e}")

    # Check Redis
    redis_status = "healthy"
    if settings.realtime_events_enabled:
        try:
            r = redis.Redis.from_url(settings.redis_url, socket_timeout=2)
            await asyncio.to_thread(r.ping)
            r.close()
        except redis.RedisError as e:
            redis_status = f"unhealthy: {str(e)}"
            logger.error(f"Redis health check failed: {e}")
    else:
        redis_status = "disabled"

    # Check oracle
    oracle_healthy = await oracle.health_check()
    oracle_status = f"{oracle.provider_name}: {'healthy' if oracle_healthy else 'unhealthy'}"

    overall = "operational" if (
        db_status == "healthy" and redis_status in ("healthy", "disabled") and oracle_healthy
    ) else "degraded"

    return HealthResponse(
        status=overall,
        database=db_status,
        redis=redis_status,
        oracle=oracle_status,
        timestamp=datetime.now(timezone.utc),
    )


# =============================================================================
# MAIN ENTRY POINT
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "tabletalk.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.is_development,
        log_level="debug" if settings.debug else "info",
    )
