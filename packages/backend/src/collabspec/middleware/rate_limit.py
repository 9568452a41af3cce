"""Rate limiting middleware for the auth endpoints.

Learn: Every request under /api/auth counts as one attempt for the
client IP (login, register, refresh, me — brute force can target any of
them). The counting itself lives in collabspec.auth.rate_limit; this
middleware only maps requests to client ids and turns a RateLimitError
into a 429 with a Retry-After header.

If the Redis backend is unreachable the request is let through.
"""

import structlog
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from collabspec.api.responses import error_response
from collabspec.errors import RateLimitError

logger = structlog.get_logger()


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Per-IP attempt window in front of the auth routes."""

    def __init__(self, app, auth_prefix: str = "/api/auth"):
        super().__init__(app)
        self.auth_prefix = auth_prefix

    async def dispatch(self, request: Request, call_next) -> Response:
        if not request.url.path.startswith(self.auth_prefix):
            return await call_next(request)

        limiter = request.app.state.rate_limiter
        client_id = request.client.host if request.client else "unknown"

        try:
            await limiter.check(client_id)
        except RateLimitError as e:
            response = error_response(e)
            response.headers["Retry-After"] = str(e.retry_after)
            return response
        except RedisError as e:
            logger.warning("auth.rate_limit_unavailable", error=str(e))

        return await call_next(request)
