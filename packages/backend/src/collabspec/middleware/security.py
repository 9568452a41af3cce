"""Security headers middleware.

Learn: Every response gets the baseline headers below. Responses under
/api/auth carry access and refresh tokens in their bodies, so they are
also marked uncacheable for browsers and intermediaries alike:
- X-Content-Type-Options: prevents MIME-type sniffing
- X-Frame-Options: prevents clickjacking
- Referrer-Policy: limits referrer info leakage
- Cache-Control / Pragma: keep token bodies out of any cache (auth routes)
- Strict-Transport-Security: forces HTTPS (only on HTTPS connections)
"""

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

BASELINE_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}

NO_STORE_HEADERS = {
    "Cache-Control": "no-store",
    "Pragma": "no-cache",
}


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Baseline headers everywhere, no-store on token-bearing routes."""

    def __init__(
        self,
        app,
        auth_prefix: str = "/api/auth",
        hsts_max_age: int = 31536000,
    ):
        super().__init__(app)
        self.auth_prefix = auth_prefix
        self.hsts = f"max-age={hsts_max_age}; includeSubDomains"

    async def dispatch(self, request: Request, call_next) -> Response:
        response: Response = await call_next(request)
        response.headers.update(BASELINE_HEADERS)
        if request.url.path.startswith(self.auth_prefix):
            response.headers.update(NO_STORE_HEADERS)
        if request.url.scheme == "https":
            response.headers["Strict-Transport-Security"] = self.hsts
        return response
