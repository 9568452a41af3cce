"""CollabSpec CLI — run the auth service and poke at it.

Usage:
    collabspec serve                                  # Run the API with uvicorn
    collabspec init-db                                # Create the users table
    collabspec hash-password                          # bcrypt a password (prompted)
    collabspec register alice@example.com -n Alice    # POST /api/auth/register
    collabspec login alice@example.com                # POST /api/auth/login
    collabspec refresh <refresh-token>                # POST /api/auth/refresh
    collabspec me <access-token>                      # GET  /api/auth/me
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import json
import os
import sys
from typing import Optional

import click
import httpx

from collabspec import __version__

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

DEFAULT_API_URL = "http://localhost:8000"


def _api_url() -> str:
    return os.environ.get("COLLABSPEC_API_URL", DEFAULT_API_URL).rstrip("/")


def _client() -> httpx.AsyncClient:
    """Build an async HTTP client pointed at the CollabSpec backend."""
    return httpx.AsyncClient(base_url=_api_url(), timeout=30.0)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(coro):
    """Run an async coroutine from a synchronous Click handler.

    Handles nested event loops (e.g. when invoked via Click CliRunner
    inside an existing async context like tests) by offloading to a thread.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            return pool.submit(asyncio.run, coro).result()


def _pretty_json(data: dict | list) -> str:
    return json.dumps(data, indent=2, default=str)


def _report(r: httpx.Response) -> None:
    """Print a response body; exit 1 with the error code on failure."""
    body = r.json()
    if r.is_success:
        click.echo(_pretty_json(body.get("data", body)))
        return
    error = body.get("error", {})
    click.secho(
        f"{r.status_code} {error.get('code', 'ERROR')}: {error.get('message', '')}",
        fg="red",
        err=True,
    )
    sys.exit(1)


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="collabspec")
def main():
    """CollabSpec — authentication service for distributed spec teams."""


# ---------------------------------------------------------------------------
# Local commands
# ---------------------------------------------------------------------------


@main.command()
@click.option("--host", default=None, help="Bind address (default: COLLABSPEC_HOST)")
@click.option("--port", type=int, default=None, help="Port (default: COLLABSPEC_PORT)")
def serve(host: Optional[str], port: Optional[int]):
    """Run the API server with uvicorn."""
    import uvicorn

    from collabspec.config import get_settings

    settings = get_settings()
    uvicorn.run(
        "collabspec.main:create_app",
        factory=True,
        host=host or settings.host,
        port=port or settings.port,
    )


@main.command("init-db")
def init_db():
    """Create database tables (idempotent)."""
    from collabspec.config import get_settings
    from collabspec.db.engine import build_engine, create_schema

    async def _init():
        engine = build_engine(get_settings())
        try:
            await create_schema(engine)
        finally:
            await engine.dispose()

    _run(_init())
    click.secho("Schema ready.", fg="green")


@main.command("hash-password")
@click.password_option(help="Password to hash (prompted if omitted)")
@click.option("--rounds", type=click.IntRange(4, 31), default=12, show_default=True)
def hash_password(password: str, rounds: int):
    """Print a bcrypt hash, e.g. to seed an account by hand."""
    from collabspec.auth.password import PasswordHasher

    click.echo(PasswordHasher(rounds=rounds).hash(password))


# ---------------------------------------------------------------------------
# API commands
# ---------------------------------------------------------------------------


@main.command()
@click.argument("email")
@click.option("--name", "-n", required=True, help="Display name")
@click.option("--role", "-r", default="developer", show_default=True,
              type=click.Choice(["stakeholder", "product-manager", "designer", "developer"]))
@click.option("--timezone", "-z", default="UTC", show_default=True, help="IANA timezone")
@click.password_option()
def register(email: str, name: str, role: str, timezone: str, password: str):
    """Register a new account."""
    _run(_post("/api/auth/register", {
        "name": name,
        "email": email,
        "password": password,
        "role": role,
        "timezone": timezone,
    }))


@main.command()
@click.argument("email")
@click.option("--timezone", "-z", default=None, help="Update stored timezone")
@click.option("--remember-me", is_flag=True, help="30-day refresh token")
@click.option("--password", prompt=True, hide_input=True)
def login(email: str, timezone: Optional[str], remember_me: bool, password: str):
    """Log in and print the user and token pair."""
    body = {"email": email, "password": password, "rememberMe": remember_me}
    if timezone:
        body["timezone"] = timezone
    _run(_post("/api/auth/login", body))


@main.command()
@click.argument("refresh_token")
def refresh(refresh_token: str):
    """Rotate a token pair."""
    _run(_post("/api/auth/refresh", {"refreshToken": refresh_token}))


@main.command()
@click.argument("access_token")
def me(access_token: str):
    """Show the profile behind an access token."""

    async def _me():
        async with _client() as c:
            r = await c.get(
                "/api/auth/me", headers={"Authorization": f"Bearer {access_token}"}
            )
            _report(r)

    _run(_me())


async def _post(path: str, body: dict) -> None:
    async with _client() as c:
        r = await c.post(path, json=body)
        _report(r)


if __name__ == "__main__":
    main()
