"""
Health check endpoints.
"""

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from redis import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from shared.config.settings import settings
from shared.infrastructure.db import SessionLocal
from shared.infrastructure.events import get_redis_sync_client


router = APIRouter(prefix="/api/health", tags=["health"])


@router.get("")
def health_check():
    """Basic health check endpoint."""
    return {
        "status": "healthy",
        "service": "tableside-core",
        "environment": settings.environment,
    }


@router.get("/detailed")
def detailed_health_check():
    """
    Verifies connectivity to PostgreSQL and Redis.
    Returns 503 if either is down.
    """
    checks = {
        "service": "tableside-core",
        "environment": settings.environment,
        "dependencies": {},
    }
    all_healthy = True

    try:
        with SessionLocal() as db:
            db.execute(text("SELECT 1"))
        checks["dependencies"]["database"] = {"status": "healthy"}
    except SQLAlchemyError as e:
        checks["dependencies"]["database"] = {"status": "unhealthy", "error": str(e)}
        all_healthy = False

    try:
        get_redis_sync_client().ping()
        checks["dependencies"]["redis"] = {"status": "healthy"}
    except RedisError as e:
        checks["dependencies"]["redis"] = {"status": "unhealthy", "error": str(e)}
        all_healthy = False

    checks["status"] = "healthy" if all_healthy else "degraded"
    if not all_healthy:
        return JSONResponse(content=checks, status_code=503)
    return checks
