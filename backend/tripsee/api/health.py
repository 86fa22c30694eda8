"""
Health check routes.
Probes for load-balancer readiness plus the package cache status.
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
from sqlalchemy import text
from datetime import datetime
import time
import logging

from tripsee.api.dependencies import get_store
from tripsee.db.database import get_db
from tripsee.core.rate_limiting import limiter, HEALTH_LIMIT
from tripsee.services.package_store import PackageStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["health"])

# Track startup time for uptime reporting
_STARTUP_TIME = time.time()


@router.get("/")
@limiter.limit(HEALTH_LIMIT)
async def health_check(
    request: Request,
    db: Session = Depends(get_db),
    store: PackageStore = Depends(get_store),
):
    """
    Database connectivity, city filter count, per-destination cache state.
    Degraded when the database is down or a destination's last refresh failed.
    """
    uptime_s = int(time.time() - _STARTUP_TIME)
    destinations = store.status()
    health = {
        "status": "healthy",
        "database": "unavailable",
        "city_filters": 0,
        "destinations": destinations,
        "uptime_seconds": uptime_s,
        "timestamp": datetime.utcnow().isoformat(),
    }

    try:
        result = db.execute(text("SELECT COUNT(*) FROM city_filters")).scalar()
        health["database"] = "available"
        health["city_filters"] = result or 0
    except Exception as e:
        logger.error(f"Database health check failed: {str(e)}")
        health["status"] = "degraded"

    if any(d["last_error"] for d in destinations.values()):
        health["status"] = "degraded"

    return health


@router.get("/ready")
@limiter.limit(HEALTH_LIMIT)
async def readiness_check(request: Request, db: Session = Depends(get_db)):
    """Returns ready only when the database is accessible."""
    try:
        db.execute(text("SELECT 1"))
        return {"ready": True, "timestamp": datetime.utcnow().isoformat()}
    except Exception as e:
        logger.error(f"Readiness check failed: {str(e)}")
        return {"ready": False, "error": str(e)}


@router.get("/live")
async def liveness_check():
    """Liveness probe. Returns 200 if service is running."""
    return {"alive": True, "uptime_seconds": int(time.time() - _STARTUP_TIME), "timestamp": datetime.utcnow().isoformat()}
