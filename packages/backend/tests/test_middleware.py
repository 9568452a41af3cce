"""Tests for the middleware stack — security headers, request IDs, rate limit.

Learn: Rate limiting in most tests runs on the in-memory store with a
high ceiling (see conftest.py); the tests here swap in a store that
raises RedisError to check the limiter fails open.
"""

import pytest
from httpx import ASGITransport, AsyncClient
from redis.exceptions import ConnectionError as RedisConnectionError


@pytest.mark.asyncio
async def test_security_headers_on_health(client):
    """Health endpoint returns security headers."""
    r = await client.get("/api/health")
    assert r.status_code == 200
    assert r.headers["X-Content-Type-Options"] == "nosniff"
    assert r.headers["X-Frame-Options"] == "DENY"
    assert r.headers["Referrer-Policy"] == "strict-origin-when-cross-origin"
    assert "Cache-Control" not in r.headers


@pytest.mark.asyncio
async def test_auth_responses_not_cached(client, registration):
    """Responses carrying tokens are marked no-store, errors included."""
    r = await client.post("/api/auth/register", json=registration())
    assert r.headers["Cache-Control"] == "no-store"

    r = await client.get("/api/auth/me")
    assert r.status_code == 401
    assert r.headers["Cache-Control"] == "no-store"
    assert r.headers["Pragma"] == "no-cache"


@pytest.mark.asyncio
async def test_request_id_generated(client):
    """Each request gets a unique X-Request-ID header."""
    r1 = await client.get("/api/health")
    r2 = await client.get("/api/health")
    assert "X-Request-ID" in r1.headers
    assert "X-Request-ID" in r2.headers
    # Each request gets a unique ID
    assert r1.headers["X-Request-ID"] != r2.headers["X-Request-ID"]


@pytest.mark.asyncio
async def test_request_id_propagated(client):
    """Incoming X-Request-ID is propagated through the response."""
    custom_id = "test-trace-12345"
    r = await client.get(
        "/api/health",
        headers={"X-Request-ID": custom_id},
    )
    assert r.headers["X-Request-ID"] == custom_id


@pytest.mark.asyncio
@pytest.mark.parametrize("incoming", ["x" * 65, "bad id with spaces", "line\tbreak"])
async def test_untrusted_request_id_replaced(client, incoming):
    r = await client.get("/api/health", headers={"X-Request-ID": incoming})
    assert r.headers["X-Request-ID"] != incoming
    assert len(r.headers["X-Request-ID"]) == 36


@pytest.mark.asyncio
async def test_request_id_on_rate_limited_response(make_settings, make_client, store):
    from collabspec.main import create_app

    app = create_app(make_settings(rate_limit_max_attempts=1), credential_store=store)
    async with make_client(app) as client:
        await client.get("/api/auth/me")
        r = await client.get("/api/auth/me", headers={"X-Request-ID": "limited-1"})
    assert r.status_code == 429
    assert r.headers["X-Request-ID"] == "limited-1"
    assert r.headers["X-Content-Type-Options"] == "nosniff"


@pytest.mark.asyncio
async def test_no_hsts_on_http(client):
    """HSTS header is NOT set on HTTP connections (only HTTPS)."""
    r = await client.get("/api/health")
    assert "Strict-Transport-Security" not in r.headers


@pytest.mark.asyncio
async def test_hsts_on_https(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="https://test") as ac:
        r = await ac.get("/api/health")
    assert r.headers["Strict-Transport-Security"] == "max-age=31536000; includeSubDomains"


@pytest.mark.asyncio
async def test_rate_limit_fails_open_when_redis_down(app, client, registration):
    class DownStore:
        async def hit(self, key, window):
            raise RedisConnectionError("connection refused")

    app.state.rate_limiter.store = DownStore()
    r = await client.post("/api/auth/register", json=registration())
    assert r.status_code == 201


@pytest.mark.asyncio
async def test_cors_preflight(client):
    r = await client.options(
        "/api/auth/login",
        headers={
            "Origin": "http://localhost:5173",
            "Access-Control-Request-Method": "POST",
        },
    )
    assert r.status_code == 200
    assert r.headers["access-control-allow-origin"] == "http://localhost:5173"
