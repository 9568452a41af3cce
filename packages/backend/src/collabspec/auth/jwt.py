"""JWT token creation and verification.

Learn: JWT (JSON Web Token) provides stateless authentication.
- Access token: short-lived (15min), sent on every API call
- Refresh token: long-lived (7 days, 30 with "remember me"), only used
  to mint a new pair

The two kinds are signed with different secrets, so a leaked access
secret cannot forge refresh tokens. A valid signature is not enough
either: the decoded payload must match the expected claim set exactly,
which also stops one kind of token being replayed as the other.
"""

import time
import uuid
from datetime import timedelta
from typing import Annotated, Callable, TypeVar

import jwt
import structlog
from pydantic import AfterValidator, BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from collabspec.auth.roles import Role
from collabspec.errors import TokenExpired, TokenInvalid

logger = structlog.get_logger()


def _check_uuid(value: str) -> str:
    uuid.UUID(value)
    return value


UUIDStr = Annotated[str, AfterValidator(_check_uuid)]


class _Claims(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
        frozen=True,
    )


class AccessPayload(_Claims):
    """What an access token says about its bearer."""

    user_id: UUIDStr
    email: str
    role: Role
    timezone: str
    session_id: UUIDStr


class AccessTokenClaims(AccessPayload):
    iat: int
    exp: int


class RefreshPayload(_Claims):
    user_id: UUIDStr
    session_id: UUIDStr
    token_version: int


class RefreshTokenClaims(RefreshPayload):
    iat: int
    exp: int


ClaimsT = TypeVar("ClaimsT", bound=_Claims)


class TokenCodec:
    """Signs and verifies access and refresh tokens."""

    def __init__(
        self,
        access_secret: str,
        refresh_secret: str,
        algorithm: str = "HS256",
        clock: Callable[[], float] = time.time,
    ):
        self.access_secret = access_secret
        self.refresh_secret = refresh_secret
        self.algorithm = algorithm
        self._clock = clock

    def issue_access(self, payload: AccessPayload, ttl: timedelta) -> str:
        """Create a signed access token."""
        return self._encode(payload, ttl, self.access_secret)

    def issue_refresh(self, payload: RefreshPayload, ttl: timedelta) -> str:
        """Create a signed refresh token."""
        return self._encode(payload, ttl, self.refresh_secret)

    def verify_access(self, token: str) -> AccessTokenClaims:
        """Verify and decode an access token.

        Raises TokenExpired or TokenInvalid.
        """
        return self._decode(token, self.access_secret, AccessTokenClaims)

    def verify_refresh(self, token: str) -> RefreshTokenClaims:
        """Verify and decode a refresh token.

        Raises TokenExpired or TokenInvalid.
        """
        return self._decode(token, self.refresh_secret, RefreshTokenClaims)

    def _encode(self, payload: _Claims, ttl: timedelta, secret: str) -> str:
        now = int(self._clock())
        claims = payload.model_dump(by_alias=True, mode="json")
        claims["iat"] = now
        claims["exp"] = now + int(ttl.total_seconds())
        return jwt.encode(claims, secret, algorithm=self.algorithm)

    def _decode(self, token: str, secret: str, model: type[ClaimsT]) -> ClaimsT:
        try:
            raw = jwt.decode(
                token,
                secret,
                algorithms=[self.algorithm],
                options={"require": ["exp", "iat"]},
            )
        except jwt.ExpiredSignatureError:
            raise TokenExpired()
        except jwt.InvalidTokenError as e:
            # The reason stays in the log; callers only ever see the
            # generic message.
            logger.debug("auth.token_rejected", reason=str(e))
            raise TokenInvalid()

        try:
            return model.model_validate(raw)
        except PydanticValidationError as e:
            logger.debug("auth.token_claims_rejected", errors=e.error_count())
            raise TokenInvalid()
