"""Auth API — registration, login, token refresh, profile.

Learn: Routes for the user authentication lifecycle:
- POST /auth/register → create an account, returns user + tokens
- POST /auth/login → email/password → user + tokens
- POST /auth/refresh → refresh token → rotated token pair
- POST /auth/logout → acknowledgment (tokens expire naturally)
- GET /auth/me → current user profile
- PUT /auth/profile → update name / timezone

Handlers stay thin: parse the body, call AuthService, wrap the result
in the success envelope. Errors are raised as collabspec.errors
exceptions and rendered by the handlers registered in main.py.
"""

from fastapi import APIRouter, Depends

from collabspec.api.responses import envelope
from collabspec.auth.dependencies import (
    CurrentIdentity,
    get_auth_service,
    get_validated_user,
)
from collabspec.schemas.auth import (
    LoginRequest,
    ProfileUpdate,
    RefreshRequest,
    RegisterRequest,
    TokensRead,
    UserRead,
)
from collabspec.services.auth_service import AuthResult, AuthService

router = APIRouter(prefix="/auth")


def _user_and_tokens(result: AuthResult) -> dict:
    return {
        "user": UserRead.from_credential(result.user).model_dump(by_alias=True, mode="json"),
        "tokens": TokensRead.from_pair(result.tokens).model_dump(by_alias=True, mode="json"),
    }


def _user(user) -> dict:
    return {"user": UserRead.from_credential(user).model_dump(by_alias=True, mode="json")}


# ─── Register ────────────────────────────────────────────


@router.post("/register", status_code=201)
async def register(
    body: RegisterRequest,
    service: AuthService = Depends(get_auth_service),
):
    """Create a new user account and start its first session."""
    result = await service.register(
        name=body.name,
        email=body.email,
        password=body.password,
        role=body.role,
        timezone=body.timezone,
    )
    return envelope(_user_and_tokens(result), "User registered successfully")


# ─── Login ───────────────────────────────────────────────


@router.post("/login")
async def login(
    body: LoginRequest,
    service: AuthService = Depends(get_auth_service),
):
    """Login with email and password → user + JWT tokens."""
    result = await service.login(
        email=body.email,
        password=body.password,
        timezone=body.timezone,
        remember_me=body.remember_me,
    )
    return envelope(_user_and_tokens(result), "Login successful")


# ─── Refresh ────────────────────────────────────────────


@router.post("/refresh")
async def refresh(
    body: RefreshRequest,
    service: AuthService = Depends(get_auth_service),
):
    """Exchange a refresh token for a new token pair in the same session."""
    result = await service.refresh(body.refresh_token)
    tokens = TokensRead.from_pair(result.tokens).model_dump(by_alias=True, mode="json")
    return envelope({"tokens": tokens}, "Token refreshed successfully")


# ─── Logout ─────────────────────────────────────────────


@router.post("/logout")
async def logout(
    identity: CurrentIdentity = Depends(get_validated_user),
    service: AuthService = Depends(get_auth_service),
):
    """Acknowledge logout. The client discards its tokens."""
    await service.logout(identity.claims)
    return envelope(message="Logout successful")


# ─── Current user ───────────────────────────────────────


@router.get("/me")
async def get_me(
    identity: CurrentIdentity = Depends(get_validated_user),
    service: AuthService = Depends(get_auth_service),
):
    """Get the current authenticated user's profile."""
    user = await service.get_profile(identity.user_id)
    return envelope(_user(user))


@router.put("/profile")
async def update_profile(
    body: ProfileUpdate,
    identity: CurrentIdentity = Depends(get_validated_user),
    service: AuthService = Depends(get_auth_service),
):
    """Update the current user's name and/or timezone."""
    user = await service.update_profile(
        identity.user_id, name=body.name, timezone=body.timezone
    )
    return envelope(_user(user), "Profile updated successfully")
