"""
Cookie adapter for Supabase sessions.

Tokens are written as HTTP-only cookies so the next server-side request can
read them; the activity cookies feed the session timeout policy.
"""

from datetime import datetime, timezone
from typing import Mapping, Optional, Tuple

from fastapi import Response

from authgate.config import settings

ACCESS_TOKEN_COOKIE = "sb-access-token"
REFRESH_TOKEN_COOKIE = "sb-refresh-token"
LAST_ACTIVITY_COOKIE = "lastActivity"
SESSION_START_COOKIE = "sessionStart"
SESSION_WARNING_COOKIE = "sessionWarningShown"

TRACKING_COOKIES = (LAST_ACTIVITY_COOKIE, SESSION_START_COOKIE, SESSION_WARNING_COOKIE)

# Refresh tokens outlive access tokens; keep the cookie for the max session duration.
_DEFAULT_ACCESS_MAX_AGE = 60 * 60


def _set(response: Response, name: str, value: str, max_age: int) -> None:
    response.set_cookie(
        key=name,
        value=value,
        max_age=max_age,
        httponly=True,
        secure=settings.use_secure_cookies,
        samesite=settings.cookie_samesite,
        path="/",
    )


def iso_now(now: Optional[datetime] = None) -> str:
    return (now or datetime.now(timezone.utc)).isoformat()


def set_session_cookies(
    response: Response,
    access_token: str,
    refresh_token: str,
    expires_in: Optional[int] = None,
    start_tracking: bool = True,
    now: Optional[datetime] = None,
) -> None:
    max_session = settings.max_session_duration_seconds
    _set(response, ACCESS_TOKEN_COOKIE, access_token, expires_in or _DEFAULT_ACCESS_MAX_AGE)
    _set(response, REFRESH_TOKEN_COOKIE, refresh_token, max_session)
    if start_tracking:
        stamp = iso_now(now)
        _set(response, SESSION_START_COOKIE, stamp, max_session)
        _set(response, LAST_ACTIVITY_COOKIE, stamp, max_session)
        response.delete_cookie(SESSION_WARNING_COOKIE, path="/")


def set_tracking_cookie(response: Response, name: str, value: str) -> None:
    _set(response, name, value, settings.max_session_duration_seconds)


def touch_activity(response: Response, now: Optional[datetime] = None) -> None:
    set_tracking_cookie(response, LAST_ACTIVITY_COOKIE, iso_now(now))


def is_auth_cookie(name: str) -> bool:
    return name.startswith("sb-") or "supabase" in name or "auth" in name


def clear_session_cookies(response: Response, request_cookies: Optional[Mapping[str, str]] = None) -> None:
    names = {ACCESS_TOKEN_COOKIE, REFRESH_TOKEN_COOKIE, *TRACKING_COOKIES}
    if request_cookies:
        names.update(name for name in request_cookies if is_auth_cookie(name))
    for name in sorted(names):
        response.delete_cookie(name, path="/")


def read_session_tokens(cookies: Mapping[str, str]) -> Tuple[Optional[str], Optional[str]]:
    return cookies.get(ACCESS_TOKEN_COOKIE), cookies.get(REFRESH_TOKEN_COOKIE)
