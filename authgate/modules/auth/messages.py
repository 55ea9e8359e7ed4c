"""
Redirect message codes.

Failures in the auth flows end on the login page with ``?message=<code>``
(confirmation outcomes) or ``?reason=<code>`` (forced logouts). The login
banner renders the human text below.
"""

from typing import Optional
from urllib.parse import urlencode

from authgate.config import settings

LOGIN_PATH = "/auth/login"
RESET_PASSWORD_PATH = "/auth/reset-password"
CONFIRM_PATH = "/auth/confirm"
APP_ROOT = "/"

EMAIL_CONFIRMED = "email_confirmed"
CONFIRMATION_FAILED = "confirmation_failed"
INVALID_LINK = "invalid_link"
LINK_EXPIRED = "link_expired"
INVALID_CONFIRMATION_LINK = "invalid_confirmation_link"
RATE_LIMITED = "rate_limited"
SESSION_EXPIRED = "session_expired"
SESSION_TIMEOUT = "session_timeout"
INVALID_SESSION_ON_START = "invalid_session_on_start"
FORCE_LOGOUT_ON_START = "force_logout_on_start"
INACTIVITY_TIMEOUT = "inactivity_timeout"
MAX_DURATION_EXCEEDED = "max_duration_exceeded"
USER_INITIATED_LOGOUT = "user_initiated_logout"

MESSAGES = {
    EMAIL_CONFIRMED: "Email confirmed successfully! You can now sign in to your account.",
    CONFIRMATION_FAILED: "Email confirmation failed. Please try again or contact support.",
    INVALID_LINK: "Invalid confirmation link. Please check your email for the correct link.",
    LINK_EXPIRED: "Your confirmation link has expired. Request a new confirmation email.",
    INVALID_CONFIRMATION_LINK: "The confirmation link appears to be invalid or incomplete.",
    RATE_LIMITED: "Too many attempts. Please wait before trying again.",
    SESSION_EXPIRED: "Your session has expired. Please sign in again.",
    SESSION_TIMEOUT: "You were signed out after a period of inactivity.",
    INVALID_SESSION_ON_START: "Your previous session is no longer valid. Please sign in again.",
    FORCE_LOGOUT_ON_START: "Please sign in again to continue.",
    INACTIVITY_TIMEOUT: "You were signed out after a period of inactivity.",
    MAX_DURATION_EXCEEDED: "Your session reached its maximum duration. Please sign in again.",
    USER_INITIATED_LOGOUT: "You have been signed out.",
}


def describe(code: Optional[str]) -> Optional[str]:
    if not code:
        return None
    return MESSAGES.get(code)


def site_url(path: str, **params: str) -> str:
    query = {k: v for k, v in params.items() if v is not None}
    url = settings.site_path(path)
    return f"{url}?{urlencode(query)}" if query else url


def login_url(message: Optional[str] = None, reason: Optional[str] = None) -> str:
    return site_url(LOGIN_PATH, message=message, reason=reason)
