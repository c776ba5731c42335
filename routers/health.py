import time

from fastapi import APIRouter, Depends

from backend import SessionRegistry
from routers.games import get_registry
from schemas.games import HealthQuery

health_router = APIRouter(prefix="/api", tags=["health"])


@health_router.get("/am_i_healthy")
async def am_i_healthy(query: HealthQuery = Depends(), registry: SessionRegistry = Depends(get_registry)):
    """Server uptime, room counts, traffic summary and resource usage.

    ``span`` is the series bucket width in milliseconds; ``earliest`` and
    ``latest`` bound the series and are clamped server side.
    """
    earliest = query.earliest.timestamp() if query.earliest else 0
    latest = query.latest.timestamp() if query.latest else time.time()
    return registry.get_health_data(earliest, query.span / 1000, latest)
