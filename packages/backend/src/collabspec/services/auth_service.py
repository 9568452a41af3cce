"""Auth service — business logic for register/login/refresh/verify.

Learn: Service layer separates business logic from HTTP routing.
API routes call the service, the service calls the credential store.
This makes the code testable (test the service without HTTP) and keeps
every security decision in one place.

bcrypt is deliberately slow (~250ms at cost 12), so every hash/verify
runs in a worker thread via asyncio.to_thread — the event loop keeps
serving other requests meanwhile. Store calls are the only other awaits.
"""

import asyncio
from dataclasses import dataclass
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import structlog

from collabspec.auth.jwt import AccessTokenClaims, TokenCodec
from collabspec.auth.password import PasswordHasher
from collabspec.auth.roles import Role, RoleAuthorizer
from collabspec.auth.sessions import SessionIssuer, TokenPair
from collabspec.auth.store import Credential, CredentialStore, NewCredential
from collabspec.config import Settings
from collabspec.errors import (
    AuthenticationError,
    ConflictError,
    ErrorKind,
    NotFoundError,
    TokenError,
    ValidationError,
)

logger = structlog.get_logger()


def check_timezone(tz: str) -> str:
    """Return `tz` if it is a known IANA zone, else raise INVALID_TIMEZONE."""
    try:
        ZoneInfo(tz)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValidationError(
            "Invalid timezone identifier",
            kind=ErrorKind.INVALID_TIMEZONE,
            providedTimezone=tz,
        )
    return tz


@dataclass(frozen=True)
class AuthResult:
    """A user plus the token pair just issued for them."""

    user: Credential
    tokens: TokenPair
    session_id: str


class AuthService:
    """Register, login, refresh and verify — over a CredentialStore."""

    def __init__(
        self,
        store: CredentialStore,
        hasher: PasswordHasher,
        codec: TokenCodec,
        issuer: SessionIssuer,
        authorizer: Optional[RoleAuthorizer] = None,
    ):
        self.store = store
        self.hasher = hasher
        self.codec = codec
        self.issuer = issuer
        self.authorizer = authorizer or RoleAuthorizer()
        # Session ids with a refresh in flight in this process
        self._refreshing: set[str] = set()

    @classmethod
    def from_settings(cls, settings: Settings, store: CredentialStore) -> "AuthService":
        codec = TokenCodec(
            access_secret=settings.jwt_secret,
            refresh_secret=settings.jwt_refresh_secret,
            algorithm=settings.jwt_algorithm,
        )
        issuer = SessionIssuer(
            codec,
            access_ttl=settings.access_token_ttl,
            refresh_ttl=settings.refresh_token_ttl,
            remember_me_refresh_ttl=settings.remember_me_refresh_ttl,
        )
        return cls(
            store=store,
            hasher=PasswordHasher(rounds=settings.bcrypt_rounds),
            codec=codec,
            issuer=issuer,
        )

    # ─── Register ───────────────────────────────────────

    async def register(
        self,
        name: str,
        email: str,
        password: str,
        role: Role = Role.DEVELOPER,
        timezone: str = "UTC",
    ) -> AuthResult:
        """Create an account and open its first session.

        Any existing record for the email blocks registration, active or
        not. The unique email index would refuse it anyway.
        """
        email = email.strip().lower()
        check_timezone(timezone)
        try:
            role = Role(role)
        except ValueError:
            raise ValidationError(f"Unknown role: {role}")

        if await self.store.find_by_email(email):
            logger.info("auth.register_rejected", reason="email_exists")
            raise ConflictError()

        password_hash = await asyncio.to_thread(self.hasher.hash, password)
        user = await self.store.create(
            NewCredential(
                name=name,
                email=email,
                password_hash=password_hash,
                role=role,
                timezone=timezone,
            )
        )

        issued = self.issuer.start(user)
        await self.store.update_last_seen(user.id)

        logger.info(
            "auth.registered",
            user_id=user.id,
            role=user.role.value,
            session_id=issued.session_id,
        )
        return AuthResult(user=user, tokens=issued.tokens, session_id=issued.session_id)

    # ─── Login ──────────────────────────────────────────

    async def login(
        self,
        email: str,
        password: str,
        timezone: Optional[str] = None,
        remember_me: bool = False,
    ) -> AuthResult:
        """Check credentials and open a new session.

        Unknown email, deactivated account and wrong password all raise
        the same AuthenticationError, and all cost one bcrypt check.
        """
        email = email.strip().lower()
        if timezone:
            check_timezone(timezone)

        user = await self.store.find_by_email(email)
        if user is None:
            await asyncio.to_thread(self.hasher.dummy_verify, password)
            logger.info("auth.login_failed", reason="unknown_email")
            raise AuthenticationError()

        password_ok = await asyncio.to_thread(
            self.hasher.verify, password, user.password_hash
        )
        if not user.is_active:
            logger.info("auth.login_failed", reason="inactive", user_id=user.id)
            raise AuthenticationError()
        if not password_ok:
            logger.info("auth.login_failed", reason="bad_password", user_id=user.id)
            raise AuthenticationError()

        # Travelling users log in from a new zone
        if timezone and timezone != user.timezone:
            user = await self.store.update_by_id(user.id, timezone=timezone) or user

        issued = self.issuer.start(user, remember_me=remember_me)
        await self.store.update_last_seen(user.id)

        logger.info(
            "auth.login_succeeded",
            user_id=user.id,
            timezone=user.timezone,
            session_id=issued.session_id,
            remember_me=remember_me,
        )
        return AuthResult(user=user, tokens=issued.tokens, session_id=issued.session_id)

    # ─── Refresh ────────────────────────────────────────

    async def refresh(self, refresh_token: str) -> AuthResult:
        """Rotate a session's token pair without re-authenticating.

        Learn: Rotation keeps the session id and bumps tokenVersion.
        Two refreshes of one session racing in this process are not
        supported: the second is refused and logged. Across replicas the
        race goes undetected since nothing is stored server side.
        """
        try:
            claims = self.codec.verify_refresh(refresh_token)
        except TokenError:
            logger.info("auth.refresh_failed", reason="bad_token")
            raise AuthenticationError(
                "Invalid or expired refresh token",
                kind=ErrorKind.INVALID_REFRESH_TOKEN,
            )

        if claims.session_id in self._refreshing:
            logger.warning(
                "auth.refresh_race", session_id=claims.session_id, user_id=claims.user_id
            )
            raise AuthenticationError(
                "Invalid or expired refresh token",
                kind=ErrorKind.INVALID_REFRESH_TOKEN,
            )

        self._refreshing.add(claims.session_id)
        try:
            user = await self.store.find_by_id(claims.user_id)
            if user is None or not user.is_active:
                logger.info("auth.refresh_failed", reason="user_unavailable", user_id=claims.user_id)
                raise AuthenticationError(
                    "Invalid or expired refresh token",
                    kind=ErrorKind.INVALID_REFRESH_TOKEN,
                )

            issued = self.issuer.rotate(user, claims)
            await self.store.update_last_seen(user.id)
        finally:
            self._refreshing.discard(claims.session_id)

        logger.info(
            "auth.token_refreshed",
            user_id=user.id,
            session_id=issued.session_id,
            token_version=issued.token_version,
        )
        return AuthResult(user=user, tokens=issued.tokens, session_id=issued.session_id)

    # ─── Verify / session ───────────────────────────────

    def verify_access(self, token: str) -> AccessTokenClaims:
        """Decode an access token. Raises TokenError (INVALID_TOKEN)."""
        return self.codec.verify_access(token)

    async def validate_session(self, user_id: str) -> Credential:
        """Make sure a token's user still exists and is active; stamp presence."""
        user = await self.store.find_by_id(user_id)
        if user is None or not user.is_active:
            logger.warning("auth.session_invalid", user_id=user_id)
            raise AuthenticationError(
                "Session is no longer valid", kind=ErrorKind.INVALID_SESSION
            )
        await self.store.update_last_seen(user.id)
        return user

    async def logout(self, claims: AccessTokenClaims) -> None:
        """Acknowledge a logout.

        Tokens are not revoked: both stay valid until they expire, and
        clients are expected to drop them.
        """
        logger.info("auth.logout", user_id=claims.user_id, session_id=claims.session_id)

    # ─── Profile ────────────────────────────────────────

    async def get_profile(self, user_id: str) -> Credential:
        user = await self.store.find_by_id(user_id)
        if user is None:
            raise NotFoundError()
        return user

    async def update_profile(
        self,
        user_id: str,
        name: Optional[str] = None,
        timezone: Optional[str] = None,
    ) -> Credential:
        changes = {}
        if name is not None:
            changes["name"] = name
        if timezone is not None:
            changes["timezone"] = check_timezone(timezone)
        if not changes:
            return await self.get_profile(user_id)

        user = await self.store.update_by_id(user_id, **changes)
        if user is None:
            raise NotFoundError("User not found")
        logger.info("auth.profile_updated", user_id=user_id, fields=sorted(changes))
        return user
