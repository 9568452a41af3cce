"""FastAPI application factory.

Learn: App factory pattern — create_app(settings) returns a configured
FastAPI instance with its own engine, credential store, AuthService and
rate limiter on app.state. Nothing is a module-level singleton, so tests
can build several apps with different settings side by side.

Run with: uvicorn collabspec.main:create_app --factory
"""

from contextlib import asynccontextmanager
from typing import Optional

import redis.asyncio as aioredis
import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from collabspec import __version__
from collabspec.api import api_router
from collabspec.api.responses import error_body, error_response
from collabspec.auth.rate_limit import (
    MemoryRateLimitStore,
    RateLimiter,
    RedisRateLimitStore,
)
from collabspec.auth.store import CredentialStore, SqlCredentialStore
from collabspec.config import Settings, get_settings
from collabspec.db.engine import build_engine, build_session_factory
from collabspec.errors import AuthError, ErrorKind, RateLimitError, TokenError
from collabspec.services.auth_service import AuthService

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle.

    Learn: Anything before `yield` runs at startup, after `yield` runs at
    shutdown. The Redis rate-limit store is attached here because it
    needs a live connection; until then the in-memory store is used.
    """
    settings: Settings = app.state.settings
    logger.info(
        "collabspec.starting",
        version=__version__,
        environment=settings.environment,
        port=settings.port,
        rate_limit_backend=settings.rate_limit_backend,
    )

    redis = None
    if settings.rate_limit_backend == "redis":
        redis = aioredis.from_url(
            settings.redis_url, encoding="utf-8", decode_responses=True
        )
        await redis.ping()
        app.state.rate_limiter.store = RedisRateLimitStore(redis)
        logger.info("collabspec.redis_connected", url=settings.redis_url)

    yield

    logger.info("collabspec.shutdown")
    if redis is not None:
        await redis.aclose()
    engine = getattr(app.state, "engine", None)
    if engine is not None:
        await engine.dispose()


def _register_exception_handlers(app: FastAPI, settings: Settings) -> None:
    @app.exception_handler(AuthError)
    async def handle_auth_error(request: Request, exc: AuthError):
        response = error_response(exc)
        if isinstance(exc, TokenError):
            response.headers["WWW-Authenticate"] = "Bearer"
        if isinstance(exc, RateLimitError):
            response.headers["Retry-After"] = str(exc.retry_after)
        return response

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        details = [
            {
                "field": ".".join(str(part) for part in err["loc"] if part != "body"),
                "message": err["msg"],
            }
            for err in exc.errors()
        ]
        return JSONResponse(
            status_code=400,
            content=error_body(
                ErrorKind.VALIDATION_ERROR, "Invalid request data", details=details
            ),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        logger.exception("collabspec.unhandled_error", path=request.url.path)
        message = "Internal server error"
        if settings.is_development:
            message = f"{message}: {exc}"
        return JSONResponse(
            status_code=500,
            content=error_body(ErrorKind.INTERNAL_ERROR, message),
        )


def create_app(
    settings: Optional[Settings] = None,
    credential_store: Optional[CredentialStore] = None,
) -> FastAPI:
    """Build and return the FastAPI application.

    `credential_store` replaces the SQL store (tests pass an in-memory one).
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="CollabSpec Auth",
        description="Authentication and authorization for CollabSpec teams",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings

    if credential_store is None:
        engine = build_engine(settings)
        app.state.engine = engine
        credential_store = SqlCredentialStore(build_session_factory(engine))
    app.state.credential_store = credential_store
    app.state.auth_service = AuthService.from_settings(settings, credential_store)
    app.state.rate_limiter = RateLimiter(
        MemoryRateLimitStore(),
        max_attempts=settings.rate_limit_max_attempts,
        window=settings.rate_limit_window,
    )

    # ── Middleware stack ──────────────────────────────────────
    # Note: Starlette middleware executes in reverse order of registration.
    # Request flow: RequestId → Security → RateLimit → CORS → handler

    from collabspec.middleware.rate_limit import RateLimitMiddleware
    from collabspec.middleware.request_id import RequestIdMiddleware
    from collabspec.middleware.security import SecurityHeadersMiddleware

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RateLimitMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestIdMiddleware)

    _register_exception_handlers(app, settings)
    app.include_router(api_router)

    return app
