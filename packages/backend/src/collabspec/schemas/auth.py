"""Pydantic schemas for the auth API.

Learn: The wire format is camelCase (refreshToken, rememberMe), Python
code is snake_case. alias_generator=to_camel bridges the two: request
bodies are parsed by alias, responses are dumped with by_alias=True.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from collabspec.auth.roles import Role
from collabspec.auth.sessions import TokenPair
from collabspec.auth.store import Credential

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ─── Requests ─────────────────────────────────────────────


class RegisterRequest(CamelModel):
    name: str = Field(min_length=1, max_length=100)
    email: str = Field(max_length=254, pattern=EMAIL_PATTERN)
    password: str = Field(min_length=8, max_length=128)
    role: Role = Role.DEVELOPER
    timezone: str = "UTC"


class LoginRequest(CamelModel):
    email: str = Field(max_length=254, pattern=EMAIL_PATTERN)
    password: str = Field(min_length=1)
    timezone: Optional[str] = None
    remember_me: bool = False


class RefreshRequest(CamelModel):
    refresh_token: str = Field(min_length=1)


class ProfileUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    timezone: Optional[str] = None


# ─── Responses ────────────────────────────────────────────


class UserRead(CamelModel):
    """Public view of a user — never includes the password hash."""

    id: str
    name: str
    email: str
    role: Role
    timezone: str
    is_active: bool
    email_verified: bool
    last_seen: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_credential(cls, user: Credential) -> "UserRead":
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            role=user.role,
            timezone=user.timezone,
            is_active=user.is_active,
            email_verified=user.email_verified,
            last_seen=user.last_seen,
            created_at=user.created_at,
        )


class TokensRead(CamelModel):
    access_token: str
    refresh_token: str
    expires_in: int
    token_type: str = "Bearer"

    @classmethod
    def from_pair(cls, pair: TokenPair) -> "TokensRead":
        return cls(
            access_token=pair.access_token,
            refresh_token=pair.refresh_token,
            expires_in=pair.expires_in,
            token_type=pair.token_type,
        )
