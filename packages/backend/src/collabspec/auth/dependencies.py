"""FastAPI auth dependencies.

Learn: These are used as Depends() in route handlers to extract and
validate the current user from the request:

    get_current_user            Bearer token → CurrentIdentity (or 401)
    get_current_user_optional   same, but None when absent/invalid
    get_validated_user          also checks the user is still active
    require_role(role)          403 unless the user's role ranks high enough
    require_ownership_or_role   403 unless owner, or role ranks high enough

They raise collabspec.errors exceptions; main.py turns those into the
JSON error bodies.
"""

import inspect
from typing import Awaitable, Callable, Optional, Union

import structlog
from fastapi import Depends, Header, Request

from collabspec.auth.jwt import AccessTokenClaims
from collabspec.auth.roles import Role
from collabspec.errors import AuthorizationError, ErrorKind, TokenError
from collabspec.services.auth_service import AuthService

logger = structlog.get_logger()


class CurrentIdentity:
    """The authenticated user making the request, as stated by the access token."""

    def __init__(
        self,
        user_id: str,
        email: str,
        role: Role,
        timezone: str,
        session_id: str,
        claims: Optional[AccessTokenClaims] = None,
    ):
        self.user_id = user_id
        self.email = email
        self.role = role
        self.timezone = timezone
        self.session_id = session_id
        self.claims = claims

    @classmethod
    def from_claims(cls, claims: AccessTokenClaims) -> "CurrentIdentity":
        return cls(
            user_id=claims.user_id,
            email=claims.email,
            role=claims.role,
            timezone=claims.timezone,
            session_id=claims.session_id,
            claims=claims,
        )


def get_auth_service(request: Request) -> AuthService:
    """The AuthService built by create_app()."""
    return request.app.state.auth_service


def extract_token(authorization: Optional[str]) -> Optional[str]:
    """Pull the token out of an Authorization header.

    Accepts "Bearer <token>" and, for older clients, a bare token.
    """
    if not authorization:
        return None
    if authorization.startswith("Bearer "):
        authorization = authorization[7:]
    return authorization.strip() or None


async def get_current_user_optional(
    authorization: Optional[str] = Header(None),
    service: AuthService = Depends(get_auth_service),
) -> Optional[CurrentIdentity]:
    """Extract current identity (optional — returns None if no usable token).

    Learn: This is the "soft" auth dependency. Used for endpoints that
    work both authenticated and anonymously.
    """
    token = extract_token(authorization)
    if not token:
        return None
    try:
        return CurrentIdentity.from_claims(service.verify_access(token))
    except TokenError:
        logger.info("auth.optional_token_ignored")
        return None


async def get_current_user(
    authorization: Optional[str] = Header(None),
    service: AuthService = Depends(get_auth_service),
) -> CurrentIdentity:
    """Extract current identity (required — 401 if no valid token).

    Learn: This is the "hard" auth dependency. A missing token and a bad
    one get different codes (MISSING_TOKEN vs INVALID_TOKEN); an expired
    token and a tampered one do not.
    """
    token = extract_token(authorization)
    if not token:
        raise TokenError(
            "Authentication token is required", kind=ErrorKind.MISSING_TOKEN
        )
    claims = service.verify_access(token)
    logger.debug("auth.authenticated", user_id=claims.user_id, role=claims.role.value)
    return CurrentIdentity.from_claims(claims)


async def get_validated_user(
    identity: CurrentIdentity = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
) -> CurrentIdentity:
    """Hard auth plus a store lookup: 401 INVALID_SESSION if the user was
    deleted or deactivated after the token was issued."""
    await service.validate_session(identity.user_id)
    return identity


def require_role(required_role: Role):
    """Dependency factory: the caller's role must rank at or above `required_role`."""

    async def dependency(
        identity: CurrentIdentity = Depends(get_current_user),
        service: AuthService = Depends(get_auth_service),
    ) -> CurrentIdentity:
        if not service.authorizer.has_permission(identity.role, required_role):
            logger.warning(
                "auth.access_denied",
                user_id=identity.user_id,
                user_role=identity.role.value,
                required_role=required_role.value,
            )
            raise AuthorizationError(
                f"This action requires {required_role.value} role or higher",
                userRole=identity.role.value,
                requiredRole=required_role.value,
            )
        return identity

    return dependency


OwnerLookup = Callable[[Request], Union[str, Awaitable[str]]]


def require_ownership_or_role(
    get_resource_owner_id: OwnerLookup,
    fallback_role: Optional[Role] = None,
):
    """Dependency factory: owner of the resource, or `fallback_role` and above.

    `get_resource_owner_id` receives the request (path params, etc.) and
    may be sync or async.
    """

    async def dependency(
        request: Request,
        identity: CurrentIdentity = Depends(get_current_user),
        service: AuthService = Depends(get_auth_service),
    ) -> CurrentIdentity:
        owner_id = get_resource_owner_id(request)
        if inspect.isawaitable(owner_id):
            owner_id = await owner_id

        if not service.authorizer.can_access_resource(
            identity.role, identity.user_id, owner_id, fallback_role
        ):
            logger.warning(
                "auth.resource_access_denied",
                user_id=identity.user_id,
                owner_id=owner_id,
            )
            raise AuthorizationError(
                "You do not have permission to access this resource",
                kind=ErrorKind.RESOURCE_ACCESS_DENIED,
            )
        return identity

    return dependency
