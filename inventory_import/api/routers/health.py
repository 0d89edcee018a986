"""Simple health and readiness endpoints."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, HTTPException, status
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from inventory_import.core.config import get_settings
from inventory_import.db.session import get_engine
from inventory_import.utils.redis_client import create_redis_client

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/health", tags=["health"])


@router.get("/live", summary="Liveness probe")
def live() -> dict[str, str]:
    """Indicates the API process is running."""
    return {"status": "ok", "service": "inventory-importer-api"}


@router.get("/ready", summary="Readiness probe")
def ready() -> dict[str, Any]:
    """Check that the database and Redis (job records, cache, broker) answer."""
    checks: dict[str, Any] = {}

    try:
        with get_engine().connect() as conn:
            conn.execute(text("SELECT 1"))
        checks["database"] = {"status": "healthy"}
    except SQLAlchemyError as e:
        logger.error(f"Database health check failed: {e}", exc_info=True)
        checks["database"] = {"status": "unhealthy", "message": str(e)}

    settings = get_settings()
    try:
        client = create_redis_client(settings.redis_url, socket_connect_timeout=2)
        client.ping()
        client.close()
        checks["redis"] = {"status": "healthy"}
    except RedisError as e:
        logger.error(f"Redis health check failed: {e}", exc_info=True)
        checks["redis"] = {"status": "unhealthy", "message": str(e)}

    if any(check["status"] != "healthy" for check in checks.values()):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"status": "unhealthy", "checks": checks},
        )
    return {"status": "ok", "service": "inventory-importer-api", "checks": checks}
