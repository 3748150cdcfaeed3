"""Health check endpoint.

Learn: Simple GET endpoint that verifies the server is running and the
database behind the auth store is reachable. Redis only backs rate
limiting, so it is reported but doesn't make the service unhealthy.
"""

from fastapi import APIRouter
from sqlalchemy import text

from accountgate import __version__
from accountgate.cache import get_redis
from accountgate.db.engine import get_engine

router = APIRouter()


@router.get("/health")
async def health_check():
    """Check server health and dependency connectivity."""
    checks = {"server": "ok", "version": __version__}

    try:
        async with get_engine().connect() as conn:
            await conn.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except Exception as e:
        checks["database"] = f"error: {e}"

    try:
        await get_redis().ping()
        checks["redis"] = "ok"
    except Exception as e:
        checks["redis"] = f"unavailable: {e}"

    status = "healthy" if checks["database"] == "ok" else "degraded"
    return {"status": status, **checks}
