"""Session ids and token pairs.

Learn: A "session" here is nothing more than a UUID shared by every
token pair minted from one register/login. Nothing is stored server
side. The chain looks like:

    login      → session S, refresh token v1
    refresh v1 → session S, refresh token v2
    refresh v2 → session S, refresh token v3 ...

and ends when the newest refresh token expires. tokenVersion counts the
rotations, so two refresh tokens of the same session never collide even
when minted within the same second.
"""

import uuid
from dataclasses import dataclass
from datetime import timedelta

from collabspec.auth.jwt import (
    AccessPayload,
    RefreshPayload,
    RefreshTokenClaims,
    TokenCodec,
)
from collabspec.auth.store import Credential


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    expires_in: int  # seconds until the access token expires
    token_type: str = "Bearer"


@dataclass(frozen=True)
class IssuedSession:
    session_id: str
    token_version: int
    tokens: TokenPair


class SessionIssuer:
    """Starts sessions and rotates their token pairs."""

    def __init__(
        self,
        codec: TokenCodec,
        access_ttl: timedelta = timedelta(minutes=15),
        refresh_ttl: timedelta = timedelta(days=7),
        remember_me_refresh_ttl: timedelta = timedelta(days=30),
    ):
        self.codec = codec
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl
        self.remember_me_refresh_ttl = remember_me_refresh_ttl

    def start(self, credential: Credential, remember_me: bool = False) -> IssuedSession:
        """Open a new session (fresh session id, token version 1)."""
        refresh_ttl = self.remember_me_refresh_ttl if remember_me else self.refresh_ttl
        return self._issue(credential, str(uuid.uuid4()), 1, refresh_ttl)

    def rotate(
        self, credential: Credential, claims: RefreshTokenClaims
    ) -> IssuedSession:
        """Mint the next pair of an existing session.

        The caller must have verified `claims` already. A chain started
        with "remember me" keeps the long refresh lifetime.
        """
        lifetime = timedelta(seconds=claims.exp - claims.iat)
        refresh_ttl = (
            self.remember_me_refresh_ttl
            if lifetime > self.refresh_ttl
            else self.refresh_ttl
        )
        return self._issue(
            credential, claims.session_id, claims.token_version + 1, refresh_ttl
        )

    def _issue(
        self,
        credential: Credential,
        session_id: str,
        token_version: int,
        refresh_ttl: timedelta,
    ) -> IssuedSession:
        access_token = self.codec.issue_access(
            AccessPayload(
                user_id=credential.id,
                email=credential.email,
                role=credential.role,
                timezone=credential.timezone,
                session_id=session_id,
            ),
            self.access_ttl,
        )
        refresh_token = self.codec.issue_refresh(
            RefreshPayload(
                user_id=credential.id,
                session_id=session_id,
                token_version=token_version,
            ),
            refresh_ttl,
        )
        return IssuedSession(
            session_id=session_id,
            token_version=token_version,
            tokens=TokenPair(
                access_token=access_token,
                refresh_token=refresh_token,
                expires_in=int(self.access_ttl.total_seconds()),
            ),
        )
