"""
Tripsee Catalog Service -- FastAPI Application
Destination package catalogs, browse sessions and itinerary admin over the
upstream admin API.
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging
import logging.config
from datetime import datetime
import time
import asyncio
from typing import Any, Dict

from slowapi.errors import RateLimitExceeded

from tripsee.core.config import settings
from tripsee.core.rate_limiting import limiter, rate_limit_handler
from tripsee.db.database import SessionLocal, init_db
from tripsee.db.repositories import CityFilterRepository
from tripsee.api import health, routes_admin, routes_browse, routes_city_filters, routes_packages
from tripsee.api.dependencies import get_store
from tripsee.services.package_store import PackageStore

# Configure logging
logging_config = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "default": {
            "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        },
        "detailed": {
            "format": "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s"
        },
        "json": {
            "()": "tripsee.core.monitoring.JSONFormatter",
        },
    },
    "handlers": {
        "default": {
            "formatter": "json" if settings.log_format == "json" else "detailed",
            "class": "logging.StreamHandler",
            "stream": "ext://sys.stdout",
        },
    },
    "loggers": {
        "tripsee": {"handlers": ["default"], "level": settings.log_level},
        "uvicorn": {"handlers": ["default"], "level": "INFO"},
        "sqlalchemy": {"handlers": ["default"], "level": "WARNING"},
    },
}

logging.config.dictConfig(logging_config)
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Background tasks
# ---------------------------------------------------------------------------
async def _refresh_once(store: PackageStore) -> Dict[str, bool]:
    """One poll of every destination; failed ones keep their cached packages."""
    results = await store.refresh_all()
    failed = [slug for slug, ok in results.items() if not ok]
    if failed:
        logger.warning(f"Package refresh kept cached data for: {', '.join(failed)}")
    return results


def _evict_expired(sessions: Dict[str, Dict[str, Any]], now: float, ttl_seconds: float) -> int:
    """Drop browse sessions idle for longer than the TTL. Returns how many went."""
    expired = [
        sid for sid, s in sessions.items()
        if now - s.get("_ts", 0) > ttl_seconds
    ]
    for sid in expired:
        del sessions[sid]
    if expired:
        logger.info(f"Session cleanup: evicted {len(expired)} expired browse sessions, "
                    f"{len(sessions)} active")
    return len(expired)


async def _package_refresh_task():
    """Poll the upstream so every destination cache stays fresh."""
    store = get_store()
    while True:
        await asyncio.sleep(settings.refresh_interval_seconds)
        try:
            await _refresh_once(store)
        except Exception as e:
            logger.warning(f"Package refresh error: {e}")


async def _session_cleanup_task():
    """Periodically evict expired browse sessions to prevent memory leaks."""
    ttl_seconds = settings.browse_session_ttl_minutes * 60
    while True:
        await asyncio.sleep(120)  # Check every 2 minutes
        try:
            _evict_expired(routes_browse.browse_sessions, time.time(), ttl_seconds)
        except Exception as e:
            logger.warning(f"Session cleanup error: {e}")


def _seed_city_filters() -> None:
    db = SessionLocal()
    try:
        CityFilterRepository(db).seed_defaults()
    finally:
        db.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup/shutdown."""
    # Startup
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Environment: {settings.environment} | Upstream: {settings.upstream_base_url}")

    # Retry DB init up to 3 times for resilience
    for attempt in range(1, 4):
        try:
            init_db()
            _seed_city_filters()
            logger.info("Database initialized successfully")
            break
        except Exception as e:
            if attempt < 3:
                logger.warning(f"Database init attempt {attempt}/3 failed: {e}, retrying in 2s...")
                await asyncio.sleep(2)
            else:
                raise

    # Warm the package caches for instant first responses
    if settings.refresh_on_startup:
        results = await get_store().refresh_all()
        loaded = sum(1 for ok in results.values() if ok)
        logger.info(f"Cache warming complete: {loaded}/{len(results)} destinations loaded")

    refresh_task = asyncio.create_task(_package_refresh_task())
    cleanup_task = asyncio.create_task(_session_cleanup_task())
    logger.info(f"Refresh every {settings.refresh_interval_seconds}s | "
                f"Browse session TTL: {settings.browse_session_ttl_minutes}m | "
                f"Max sessions: {settings.max_browse_sessions}")
    logger.info("Application startup complete -- ready to serve")

    yield

    # Shutdown
    refresh_task.cancel()
    cleanup_task.cancel()
    logger.info("Application shutting down")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Destination package catalogs and itinerary administration.",
    docs_url="/docs" if settings.debug else None,
    redoc_url=None,
    openapi_url="/openapi.json" if settings.debug else None,
    lifespan=lifespan,
)

# Rate limiter
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_handler)

# GZip compression (min 500 bytes)
app.add_middleware(GZipMiddleware, minimum_size=500)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)


@app.middleware("http")
async def request_middleware(request: Request, call_next):
    """Log requests with timing, set no-store on catalog data and basic security headers."""
    start = time.perf_counter()
    request_id = request.headers.get("X-Request-ID", "")

    response = await call_next(request)

    elapsed = time.perf_counter() - start
    response.headers["X-Process-Time"] = f"{elapsed:.3f}"
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    # Catalog data changes under the client; never let a proxy serve it stale
    if request.url.path.startswith(settings.api_prefix):
        response.headers["Cache-Control"] = "no-store"

    if request_id:
        response.headers["X-Request-ID"] = request_id

    logger.info(
        f"{request.method} {request.url.path} -> {response.status_code} in {elapsed:.3f}s"
    )

    return response


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle uncaught exceptions gracefully."""
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal Server Error",
            "detail": str(exc) if settings.debug else "An unexpected error occurred",
            "timestamp": datetime.utcnow().isoformat(),
        },
    )


# Include routers
app.include_router(health.router, prefix=settings.api_prefix)
app.include_router(routes_packages.router, prefix=settings.api_prefix)
app.include_router(routes_browse.router, prefix=settings.api_prefix)
app.include_router(routes_city_filters.router, prefix=settings.api_prefix)
app.include_router(routes_admin.router, prefix=settings.api_prefix)


# Root endpoint
@app.get("/")
async def root():
    """Root -- API information."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "status": "running",
        "health": f"{settings.api_prefix}/health",
        "contact_prompt_interval_seconds": settings.contact_prompt_interval_seconds,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "tripsee.main:app",
        host=settings.api_host,
        port=settings.api_port,
        workers=settings.api_workers,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
