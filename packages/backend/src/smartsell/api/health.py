"""Health check endpoint.

The database is required; Redis only backs rate limiting, so a missing
Redis makes the service "degraded" rather than down. The live
subscription count comes from this process's hub.
"""

from fastapi import APIRouter, Depends
from sqlalchemy import text

from smartsell import __version__
from smartsell.api.metrics import get_metrics_hub
from smartsell.cache import RedisUnavailableError, get_redis
from smartsell.db.engine import engine
from smartsell.realtime.hub import MetricsHub

router = APIRouter()


async def _database_status() -> str:
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        return f"error: {e}"
    return "ok"


async def _redis_status() -> str:
    try:
        await get_redis().ping()
    except RedisUnavailableError:
        return "disabled"
    except Exception as e:
        return f"error: {e}"
    return "ok"


@router.get("/health")
async def health_check(hub: MetricsHub = Depends(get_metrics_hub)):
    database = await _database_status()
    redis = await _redis_status()

    if database != "ok":
        status = "unhealthy"
    elif redis != "ok":
        status = "degraded"
    else:
        status = "healthy"

    return {
        "status": status,
        "server": "ok",
        "version": __version__,
        "database": database,
        "redis": redis,
        "subscribers": hub.subscriber_count(),
    }
