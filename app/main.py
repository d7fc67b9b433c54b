"""
DealBridge Marketplace API — Application entry-point.

Initializes the FastAPI application, registers middleware, exception handlers,
routers, and manages the application lifecycle (DB table creation, the
outbound delivery worker and shared HTTP clients).
"""

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.openapi.docs import get_redoc_html
from sqlalchemy import text
from sqlmodel import SQLModel

from app.api.v1.api import api_router
from app.core.auth import get_identity_client
from app.core.config import settings
from app.core.email import get_email_client
from app.core.exceptions import add_exception_handlers
from app.core.logging import setup_logging
from app.core.outbox import delivery_queue
from app.core.resilience import db_circuit_breaker, email_circuit_breaker
from app.db.session import AsyncSessionLocal, engine
from app.middleware import RequestIDMiddleware, RequestTimingMiddleware

setup_logging()
logger = logging.getLogger(__name__)

VERSION = "1.0.0"


# ────────────────────────────────────────────────────────────────────────────
# Application lifespan
# ────────────────────────────────────────────────────────────────────────────


async def _create_tables(max_retries: int = 5, retry_delay: float = 2) -> bool:
    """Create tables, retrying with exponential back-off.  ``False`` → degraded mode."""
    for attempt in range(1, max_retries + 1):
        try:
            logger.info("Connecting to database (attempt %d/%d)…", attempt, max_retries)
            async with engine.begin() as conn:
                await conn.run_sync(SQLModel.metadata.create_all)
            logger.info("Database tables ready")
            return True
        except Exception as exc:
            if attempt < max_retries:
                logger.warning(
                    "Database connection failed (attempt %d/%d): %s — retrying in %ss…",
                    attempt,
                    max_retries,
                    exc,
                    retry_delay,
                )
                await asyncio.sleep(retry_delay)
                retry_delay *= 2
            else:
                logger.error(
                    "Could not connect to database after %d attempts. "
                    "The application will start in DEGRADED mode. Last error: %s",
                    max_retries,
                    exc,
                )
    return False


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Startup:
      - Creates tables (retrying; degraded mode if the database stays down).
      - Starts the outbound delivery worker.

    Shutdown:
      - Drains and stops the delivery worker.
      - Closes the identity and email HTTP clients and the connection pool.
    """
    import app.models  # noqa: F401  (populates SQLModel.metadata)

    await _create_tables()
    await delivery_queue.start()

    yield

    logger.info("Shutting down — draining delivery queue")
    await delivery_queue.stop()
    await get_identity_client().close()
    await get_email_client().close()
    await engine.dispose()


# ────────────────────────────────────────────────────────────────────────────
# FastAPI application instance
# ────────────────────────────────────────────────────────────────────────────

app = FastAPI(
    title=settings.PROJECT_NAME,
    version=VERSION,
    description=(
        "Private-deal marketplace: deal listings, introductions, commitments "
        "funded through escrow, KYC and account verification."
    ),
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    redoc_url=None,
    lifespan=lifespan,
)


@app.get("/redoc", include_in_schema=False)
async def custom_redoc_html():
    """Serve ReDoc using the unpkg CDN which has proper CORS headers."""
    return get_redoc_html(
        openapi_url=app.openapi_url or f"{settings.API_V1_STR}/openapi.json",
        title=f"{settings.PROJECT_NAME} — ReDoc",
        redoc_js_url="https://unpkg.com/redoc@latest/bundles/redoc.standalone.js",
    )


# ── Middleware (order matters: outermost = first to execute) ──
app.add_middleware(GZipMiddleware, minimum_size=500)
app.add_middleware(RequestIDMiddleware)
app.add_middleware(RequestTimingMiddleware)
# Credentials are required: browser sessions travel in a cookie.
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

add_exception_handlers(app)

app.include_router(api_router, prefix=settings.API_V1_STR)


# ── Health check ──


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Liveness / readiness check.

    Runs ``SELECT 1`` against the database and reports both circuit breakers
    and the delivery queue (depth, counters, recent dead letters).
    """
    db_healthy = True
    try:
        async with AsyncSessionLocal() as session:
            await session.execute(text("SELECT 1"))
    except Exception:
        logger.exception("Health check: database unreachable")
        db_healthy = False

    return {
        "status": "ok" if db_healthy else "degraded",
        "version": VERSION,
        "database": db_healthy,
        "circuit_breakers": {
            "database": db_circuit_breaker.get_status(),
            "email": email_circuit_breaker.get_status(),
        },
        "delivery_queue": delivery_queue.get_stats(),
    }
