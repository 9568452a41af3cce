"""Health check endpoint.

Learn: Reports whether the credential database answers and, when the
Redis rate-limit backend is in use, whether Redis does. Login is useless
without the database, so a failing one makes the service "degraded". A
failing Redis degrades too, even though requests keep flowing (the
rate-limit middleware lets them through unthrottled).
"""

from fastapi import APIRouter, Request
from redis.exceptions import RedisError

from collabspec import __version__
from collabspec.auth.rate_limit import RedisRateLimitStore

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """Check server health and dependency connectivity."""
    state = request.app.state
    dependencies = {}

    try:
        await state.credential_store.ping()
        dependencies["database"] = "ok"
    except Exception as e:
        dependencies["database"] = f"error: {e}"

    limiter_store = state.rate_limiter.store
    if isinstance(limiter_store, RedisRateLimitStore):
        try:
            await limiter_store.redis.ping()
            dependencies["redis"] = "ok"
        except RedisError as e:
            dependencies["redis"] = f"error: {e}"

    status = "healthy" if all(v == "ok" for v in dependencies.values()) else "degraded"

    return {
        "status": status,
        "server": "ok",
        "version": __version__,
        "rateLimitBackend": state.settings.rate_limit_backend,
        **dependencies,
    }
