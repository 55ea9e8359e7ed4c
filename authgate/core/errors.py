"""
Structured API error responses.

Every error body has the same shape so the frontend can branch on ``code``:
{error, code, message, details?, timestamp, suggestion?}
"""

import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded

logger = logging.getLogger(__name__)

AUTH_MISSING_TOKENS = "AUTH_MISSING_TOKENS"
AUTH_INVALID_TOKEN = "AUTH_INVALID_TOKEN"
AUTH_SESSION_EXPIRED = "AUTH_SESSION_EXPIRED"
AUTH_RATE_LIMITED = "AUTH_RATE_LIMITED"
AUTH_CONFIRMATION_FAILED = "AUTH_CONFIRMATION_FAILED"
VALIDATION_MISSING_FIELD = "VALIDATION_MISSING_FIELD"
VALIDATION_INVALID_EMAIL = "VALIDATION_INVALID_EMAIL"
VALIDATION_EMAIL_ALREADY_CONFIRMED = "VALIDATION_EMAIL_ALREADY_CONFIRMED"
SERVER_ERROR = "SERVER_ERROR"

SUGGESTIONS: Dict[str, str] = {
    AUTH_MISSING_TOKENS: "Ensure both access_token and refresh_token are provided in the request body.",
    AUTH_INVALID_TOKEN: "Check that your authentication tokens are valid and not expired.",
    AUTH_SESSION_EXPIRED: "Please log in again to obtain fresh authentication tokens.",
    AUTH_RATE_LIMITED: "Wait for the specified time before attempting authentication again.",
    AUTH_CONFIRMATION_FAILED: "Verify that the confirmation link is valid and not expired.",
    VALIDATION_MISSING_FIELD: "Check that all required fields are included in your request.",
    VALIDATION_INVALID_EMAIL: "Ensure the email address follows the correct format (example@domain.com).",
    VALIDATION_EMAIL_ALREADY_CONFIRMED: "This email is already confirmed. You can sign in now.",
    SERVER_ERROR: "This is an internal server error. Please try again later or contact support if the problem persists.",
}

_ERROR_TITLES = {
    "AUTH": "Authentication Error",
    "VALIDATION": "Validation Error",
    "SERVER": "Server Error",
}


def error_body(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {
        "error": _ERROR_TITLES.get(code.split("_", 1)[0], "Error"),
        "code": code,
        "message": message,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    if code == AUTH_RATE_LIMITED:
        body["error"] = "Rate Limit Exceeded"
    if details:
        body["details"] = details
    if code in SUGGESTIONS:
        body["suggestion"] = SUGGESTIONS[code]
    return body


def error_response(
    code: str,
    message: str,
    status_code: int = 400,
    details: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=error_body(code, message, details), headers=headers)


def format_wait(retry_after: int) -> str:
    """Human wait hint, e.g. 'Please wait 2 minutes and 5 seconds.'"""
    minutes, seconds = divmod(max(retry_after, 0), 60)
    second_part = f"{seconds} second{'s' if seconds != 1 else ''}"
    if minutes > 0:
        return f"Please wait {minutes} minute{'s' if minutes > 1 else ''} and {second_part}."
    return f"Please wait {second_part}."


def rate_limited_response(message: str, retry_after: int) -> JSONResponse:
    return error_response(
        AUTH_RATE_LIMITED,
        f"{message} {format_wait(retry_after)}",
        status_code=429,
        details={
            "retryAfter": retry_after,
            "resetTime": int((time.time() + retry_after) * 1000),
        },
        headers={"Retry-After": str(retry_after)},
    )


def _retry_after_seconds(request: Request) -> int:
    view_limit = getattr(request.state, "view_rate_limit", None)
    limiter = getattr(request.app.state, "limiter", None)
    if view_limit is None or limiter is None:
        return 60
    try:
        reset_at, _ = limiter.limiter.get_window_stats(view_limit[0], *view_limit[1])
    except Exception as e:
        logger.warning("Could not read rate limit window: %s", e)
        return 60
    return max(1, int(reset_at - time.time()) + 1)


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    retry_after = _retry_after_seconds(request)
    logger.warning("Rate limit exceeded on %s (%s)", request.url.path, exc.detail)
    return rate_limited_response("Too many requests, please try again later.", retry_after)
