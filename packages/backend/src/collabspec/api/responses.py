"""Response envelopes shared by routes, handlers and middleware.

Success:  {"success": true, "message": ..., "data": {...}, "timestamp": ...}
Error:    {"error": {"code": ..., "message": ..., "timestamp": ..., ...extra}}
"""

from datetime import datetime, timezone
from typing import Any, Optional

from fastapi.responses import JSONResponse

from collabspec.errors import AuthError, ErrorKind, HTTP_STATUS


def utc_timestamp() -> str:
    """ISO-8601 UTC with milliseconds and a Z suffix."""
    now = datetime.now(timezone.utc).isoformat(timespec="milliseconds")
    return now.replace("+00:00", "Z")


def envelope(data: Optional[dict] = None, message: Optional[str] = None) -> dict:
    body: dict[str, Any] = {"success": True}
    if message:
        body["message"] = message
    if data is not None:
        body["data"] = data
    body["timestamp"] = utc_timestamp()
    return body


def error_body(kind: ErrorKind, message: str, **extra: Any) -> dict:
    return {
        "error": {
            "code": kind.value,
            "message": message,
            "timestamp": utc_timestamp(),
            **extra,
        }
    }


def error_response(exc: AuthError) -> JSONResponse:
    return JSONResponse(
        status_code=HTTP_STATUS[exc.kind],
        content=error_body(exc.kind, exc.message, **exc.details),
    )
