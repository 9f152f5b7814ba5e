from fastapi import APIRouter
from pathlib import Path
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
import redis

from app.config import get_settings
from app.utils.cache import redis_client
from app.database import engine

router = APIRouter(prefix="/health", tags=["Health"])


@router.get(
    "/",
    summary="Health check",
    description="Basic health check endpoint."
)
def health_check():
    """Simple health check."""
    return {"status": "healthy"}


@router.get(
    "/ready",
    summary="Readiness check",
    description="Check if the configured store and Redis are reachable."
)
def readiness_check():
    """
    Readiness check for all dependencies.

    Returns status of:
    - Storage backend (database connection, or JSON file directory)
    - Redis connection (cache; the service still works without it)
    """
    settings = get_settings()
    checks = {
        "store": False,
        "redis": False
    }

    if settings.STORE_BACKEND == "json":
        products_dir = Path(settings.PRODUCTS_FILE).resolve().parent
        checks["store"] = products_dir.is_dir()
        if not checks["store"]:
            checks["store_error"] = f"Directory {products_dir} does not exist"
    else:
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
                checks["store"] = True
        except SQLAlchemyError as e:
            checks["store_error"] = str(e)

    try:
        redis_client.ping()
        checks["redis"] = True
    except redis.RedisError as e:
        checks["redis_error"] = str(e)

    return {
        "status": "ready" if checks["store"] else "not_ready",
        "backend": settings.STORE_BACKEND,
        "checks": checks
    }


@router.get(
    "/cache/stats",
    summary="Cache statistics",
    description="Get Redis cache statistics."
)
def cache_stats():
    """Get cache statistics."""
    try:
        info = redis_client.info()
        return {
            "connected_clients": info.get("connected_clients"),
            "used_memory": info.get("used_memory_human"),
            "total_keys": redis_client.dbsize(),
            "uptime_seconds": info.get("uptime_in_seconds")
        }
    except redis.RedisError as e:
        return {"error": str(e)}
