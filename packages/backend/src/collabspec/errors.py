"""Error taxonomy for the auth subsystem.

Learn: Every error carries an ErrorKind — the stable wire code the HTTP
layer puts in the response body. Callers branch on `exc.kind` (or on the
exception class), never on the human-readable message, so messages can
be reworded without breaking anyone.

The HTTP status for each kind lives in HTTP_STATUS; the FastAPI
exception handlers in main.py are the only place that reads it.
"""

from enum import Enum
from typing import Any, Optional


class ErrorKind(str, Enum):
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_TIMEZONE = "INVALID_TIMEZONE"
    AUTHENTICATION_FAILED = "AUTHENTICATION_FAILED"
    INVALID_REFRESH_TOKEN = "INVALID_REFRESH_TOKEN"
    INVALID_SESSION = "INVALID_SESSION"
    MISSING_TOKEN = "MISSING_TOKEN"
    INVALID_TOKEN = "INVALID_TOKEN"
    INSUFFICIENT_PERMISSIONS = "INSUFFICIENT_PERMISSIONS"
    RESOURCE_ACCESS_DENIED = "RESOURCE_ACCESS_DENIED"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    EMAIL_EXISTS = "EMAIL_EXISTS"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    INTERNAL_ERROR = "INTERNAL_ERROR"


HTTP_STATUS: dict[ErrorKind, int] = {
    ErrorKind.VALIDATION_ERROR: 400,
    ErrorKind.INVALID_TIMEZONE: 400,
    ErrorKind.AUTHENTICATION_FAILED: 401,
    ErrorKind.INVALID_REFRESH_TOKEN: 401,
    ErrorKind.INVALID_SESSION: 401,
    ErrorKind.MISSING_TOKEN: 401,
    ErrorKind.INVALID_TOKEN: 401,
    ErrorKind.INSUFFICIENT_PERMISSIONS: 403,
    ErrorKind.RESOURCE_ACCESS_DENIED: 403,
    ErrorKind.USER_NOT_FOUND: 404,
    ErrorKind.EMAIL_EXISTS: 409,
    ErrorKind.RATE_LIMIT_EXCEEDED: 429,
    ErrorKind.INTERNAL_ERROR: 500,
}


class AuthError(Exception):
    """Base class for all auth errors.

    `details` holds extra fields rendered next to code/message in the
    error body (e.g. userRole/requiredRole, retryAfter).
    """

    default_kind = ErrorKind.INTERNAL_ERROR
    default_message = "Internal server error"

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        kind: Optional[ErrorKind] = None,
        **details: Any,
    ):
        self.kind = kind or self.default_kind
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    @property
    def status_code(self) -> int:
        return HTTP_STATUS[self.kind]


class ValidationError(AuthError):
    default_kind = ErrorKind.VALIDATION_ERROR
    default_message = "Invalid request data"


class AuthenticationError(AuthError):
    """Bad credentials, inactive account, unusable refresh token or session.

    The message for AUTHENTICATION_FAILED is deliberately the same for
    every cause.
    """

    default_kind = ErrorKind.AUTHENTICATION_FAILED
    default_message = "Invalid email or password"


class TokenError(AuthError):
    default_kind = ErrorKind.INVALID_TOKEN
    default_message = "Invalid or expired authentication token"


class TokenInvalid(TokenError):
    """Bad signature, malformed token, or unexpected claim set."""


class TokenExpired(TokenError):
    """Signature is valid but `exp` has passed.

    Shares the INVALID_TOKEN wire code with TokenInvalid so clients
    cannot tell an expired token from a tampered one.
    """


class AuthorizationError(AuthError):
    default_kind = ErrorKind.INSUFFICIENT_PERMISSIONS
    default_message = "You do not have permission to perform this action"


class NotFoundError(AuthError):
    default_kind = ErrorKind.USER_NOT_FOUND
    default_message = "User profile not found"


class ConflictError(AuthError):
    default_kind = ErrorKind.EMAIL_EXISTS
    default_message = "An account with this email already exists"


class RateLimitError(AuthError):
    default_kind = ErrorKind.RATE_LIMIT_EXCEEDED
    default_message = "Too many authentication attempts. Please try again later."

    def __init__(self, retry_after: int, message: Optional[str] = None):
        super().__init__(message, retryAfter=retry_after)
        self.retry_after = retry_after
