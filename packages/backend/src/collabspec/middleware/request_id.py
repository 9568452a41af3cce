"""Request ID middleware — correlate auth log entries per request.

Learn: Every request gets an ID, either from the incoming X-Request-ID
header (for distributed tracing) or a fresh UUID. An incoming ID is only
trusted if it is short and plain (letters, digits, ".", "_", "-"), since
it is copied into every log line and echoed back to the client.

The ID, client IP and path are bound to structlog's contextvars, so
events like auth.login_failed or auth.rate_limit_exceeded say who and
where without each call site passing them along.
"""

import re
import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

_TRUSTED_ID = re.compile(r"^[A-Za-z0-9._-]{1,64}$")


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Assign, bind and echo a request ID."""

    async def dispatch(self, request: Request, call_next) -> Response:
        incoming = request.headers.get("X-Request-ID", "")
        request_id = incoming if _TRUSTED_ID.match(incoming) else str(uuid.uuid4())

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            client_ip=request.client.host if request.client else None,
            path=request.url.path,
        )

        response: Response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response
