"""Credential store — where AuthService reads and writes identities.

Learn: AuthService only talks to the CredentialStore protocol, so the
SQL implementation below can be swapped for anything with the same five
async methods (tests use an in-memory dict). Route and service code
never touch SQL directly; rows are mapped to plain Credential
dataclasses on the way out.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional, Protocol

from sqlalchemy import select, text, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from collabspec.auth.roles import Role
from collabspec.db.models import User, utcnow
from collabspec.errors import ConflictError

# Fields update_by_id() is allowed to change.
UPDATABLE_FIELDS = frozenset(
    {"name", "role", "timezone", "is_active", "email_verified", "password_hash"}
)


@dataclass
class Credential:
    id: str
    name: str
    email: str
    password_hash: str
    role: Role
    timezone: str = "UTC"
    is_active: bool = True
    email_verified: bool = False
    last_seen: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class NewCredential:
    name: str
    email: str
    password_hash: str
    role: Role = Role.DEVELOPER
    timezone: str = "UTC"


class CredentialStore(Protocol):
    async def find_by_email(self, email: str) -> Optional[Credential]: ...

    async def find_by_id(self, user_id: str) -> Optional[Credential]: ...

    async def create(self, new: NewCredential) -> Credential:
        """Persist a credential. Raises ConflictError on a duplicate email."""
        ...

    async def update_by_id(self, user_id: str, **changes: Any) -> Optional[Credential]: ...

    async def update_last_seen(self, user_id: str) -> None: ...


def _to_credential(user: User) -> Credential:
    return Credential(
        id=str(user.id),
        name=user.name,
        email=user.email,
        password_hash=user.password_hash,
        role=Role(user.role),
        timezone=user.timezone,
        is_active=user.is_active,
        email_verified=user.email_verified,
        last_seen=user.last_seen,
        created_at=user.created_at,
        updated_at=user.updated_at,
    )


def _parse_id(user_id: str) -> Optional[uuid.UUID]:
    try:
        return uuid.UUID(str(user_id))
    except ValueError:
        return None


class SqlCredentialStore:
    """CredentialStore backed by the `users` table.

    Each call opens its own short-lived session, so nothing is held
    open between the awaits of one auth operation.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def find_by_email(self, email: str) -> Optional[Credential]:
        """Look up by email, case-insensitively. Inactive users are returned too."""
        async with self._session_factory() as db:
            result = await db.execute(select(User).where(User.email == email.lower()))
            user = result.scalars().first()
            return _to_credential(user) if user else None

    async def find_by_id(self, user_id: str) -> Optional[Credential]:
        uid = _parse_id(user_id)
        if uid is None:
            return None
        async with self._session_factory() as db:
            user = await db.get(User, uid)
            return _to_credential(user) if user else None

    async def create(self, new: NewCredential) -> Credential:
        async with self._session_factory() as db:
            user = User(
                name=new.name,
                email=new.email.lower(),
                password_hash=new.password_hash,
                role=Role(new.role).value,
                timezone=new.timezone,
            )
            db.add(user)
            try:
                await db.commit()
            except IntegrityError:
                # Lost a race with a concurrent registration of the same email
                await db.rollback()
                raise ConflictError()
            await db.refresh(user)
            return _to_credential(user)

    async def update_by_id(self, user_id: str, **changes: Any) -> Optional[Credential]:
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"cannot update fields: {sorted(unknown)}")
        uid = _parse_id(user_id)
        if uid is None:
            return None
        async with self._session_factory() as db:
            user = await db.get(User, uid)
            if not user:
                return None
            for field, value in changes.items():
                if isinstance(value, Role):
                    value = value.value
                setattr(user, field, value)
            await db.commit()
            await db.refresh(user)
            return _to_credential(user)

    async def update_last_seen(self, user_id: str) -> None:
        """Stamp presence. Deactivated users are left alone."""
        uid = _parse_id(user_id)
        if uid is None:
            return
        async with self._session_factory() as db:
            await db.execute(
                update(User)
                .where(User.id == uid, User.is_active.is_(True))
                .values(last_seen=utcnow())
            )
            await db.commit()

    async def ping(self) -> None:
        """Round-trip to the database (health checks)."""
        async with self._session_factory() as db:
            await db.execute(text("SELECT 1"))
