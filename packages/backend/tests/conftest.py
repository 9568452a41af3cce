"""Test fixtures — in-memory credential store, fast bcrypt, ASGI client.

Learn: Testing pattern for the auth service:

1. Settings are built explicitly per test (bcrypt cost 4 keeps hashing
   fast; the rate limit is raised so ordinary tests never hit it).
2. The credential store is a dict-backed fake with the same five async
   methods as SqlCredentialStore, so no database is needed. The SQL
   store itself is covered in test_credential_store.py against SQLite.
3. The HTTP client talks to the app in-process via httpx's ASGITransport.
"""

import uuid
from dataclasses import replace
from typing import Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from collabspec.auth.store import UPDATABLE_FIELDS, Credential, NewCredential
from collabspec.config import Settings
from collabspec.db.models import utcnow
from collabspec.errors import ConflictError
from collabspec.main import create_app
from collabspec.services.auth_service import AuthService

ACCESS_SECRET = "test-jwt-secret-key"
REFRESH_SECRET = "test-refresh-secret-key"


class InMemoryCredentialStore:
    """Dict-backed CredentialStore for tests."""

    def __init__(self):
        self.users: dict[str, Credential] = {}
        self.last_seen_calls: list[str] = []
        self.healthy = True

    async def find_by_email(self, email: str) -> Optional[Credential]:
        for user in self.users.values():
            if user.email == email.lower():
                return replace(user)
        return None

    async def find_by_id(self, user_id: str) -> Optional[Credential]:
        user = self.users.get(user_id)
        return replace(user) if user else None

    async def create(self, new: NewCredential) -> Credential:
        if any(u.email == new.email.lower() for u in self.users.values()):
            raise ConflictError()
        now = utcnow()
        user = Credential(
            id=str(uuid.uuid4()),
            name=new.name,
            email=new.email.lower(),
            password_hash=new.password_hash,
            role=new.role,
            timezone=new.timezone,
            created_at=now,
            updated_at=now,
        )
        self.users[user.id] = user
        return replace(user)

    async def update_by_id(self, user_id: str, **changes) -> Optional[Credential]:
        assert set(changes) <= UPDATABLE_FIELDS
        user = self.users.get(user_id)
        if user is None:
            return None
        updated = replace(user, updated_at=utcnow(), **changes)
        self.users[user_id] = updated
        return replace(updated)

    async def update_last_seen(self, user_id: str) -> None:
        self.last_seen_calls.append(user_id)
        user = self.users.get(user_id)
        if user and user.is_active:
            self.users[user_id] = replace(user, last_seen=utcnow())

    async def ping(self) -> None:
        if not self.healthy:
            raise ConnectionError("database unreachable")


def make_settings(**overrides) -> Settings:
    values = {
        "jwt_secret": ACCESS_SECRET,
        "jwt_refresh_secret": REFRESH_SECRET,
        "bcrypt_rounds": 4,
        "rate_limit_max_attempts": 1000,
        "environment": "development",
    }
    values.update(overrides)
    return Settings(**values)


@pytest.fixture()
def settings() -> Settings:
    return make_settings()


@pytest.fixture()
def store() -> InMemoryCredentialStore:
    return InMemoryCredentialStore()


@pytest.fixture()
def service(settings, store) -> AuthService:
    return AuthService.from_settings(settings, store)


@pytest.fixture()
def app(settings, store):
    return create_app(settings, credential_store=store)


@pytest_asyncio.fixture()
async def client(app):
    """HTTP client wired straight into the app (no network, no lifespan)."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


def registration(email: Optional[str] = None, **overrides) -> dict:
    """A valid /register body with a unique email."""
    body = {
        "name": "Test User",
        "email": email or f"user-{uuid.uuid4().hex[:8]}@example.com",
        "password": "SecurePassword123!",
        "role": "developer",
        "timezone": "America/New_York",
    }
    body.update(overrides)
    return body


@pytest.fixture(name="registration")
def registration_fixture():
    return registration


@pytest.fixture(name="make_settings")
def make_settings_fixture():
    return make_settings


@pytest.fixture(name="make_client")
def make_client_fixture():
    """Build a client for an app with custom settings."""

    def _make(app, raise_app_exceptions: bool = True) -> AsyncClient:
        transport = ASGITransport(app=app, raise_app_exceptions=raise_app_exceptions)
        return AsyncClient(transport=transport, base_url="http://test")

    return _make
