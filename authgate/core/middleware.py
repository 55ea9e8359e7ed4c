"""
HTTP middleware: security headers and server-side session timeout enforcement.
"""

import logging

from fastapi import Request, status
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from authgate.core import errors
from authgate.core.cookies import ACCESS_TOKEN_COOKIE, clear_session_cookies, touch_activity
from authgate.modules.auth import messages
from authgate.modules.sessions.store import CookieSessionStore
from authgate.modules.sessions.timeout import SessionState, evaluate_store, utc_now

logger = logging.getLogger(__name__)

# Paths that must work with an expired session (sign-in/out, email links, probes)
EXEMPT_PREFIXES = (
    "/auth/",
    "/api/auth/",
    "/api/v1/auth/login",
    "/api/v1/auth/signup",
    "/api/v1/auth/logout",
    "/api/v1/auth/force-logout",
    "/api/v1/auth/forgot-password",
    "/health",
    "/ready",
    "/docs",
    "/redoc",
    "/openapi.json",
)

# Checked, but not counted as user activity
PASSIVE_PATHS = ("/api/v1/session/status", "/api/v1/session/activity")


class SecurityHeadersMiddleware:
    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        async def send_with_headers(message):
            if message["type"] == "http.response.start":
                message.setdefault("headers", [])
                message["headers"].extend([
                    (b"X-Content-Type-Options", b"nosniff"),
                    (b"X-Frame-Options", b"DENY"),
                    (b"X-XSS-Protection", b"1; mode=block"),
                ])
            await send(message)

        await self.app(scope, receive, send_with_headers)


class SessionTimeoutMiddleware(BaseHTTPMiddleware):
    """
    Applies the inactivity and maximum-duration policy to cookie sessions.

    An expired session gets a 401 AUTH_SESSION_EXPIRED body pointing at the
    login page with the reason, and all session cookies are cleared. Any other
    request refreshes the lastActivity cookie.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        path = request.url.path
        if (
            request.method == "OPTIONS"
            or path == "/"
            or path.startswith(EXEMPT_PREFIXES)
            or ACCESS_TOKEN_COOKIE not in request.cookies
        ):
            return await call_next(request)

        now = utc_now()
        session = evaluate_store(CookieSessionStore(request.cookies), now)
        if session.state is SessionState.EXPIRED:
            logger.info("Session expired on %s (%s)", path, session.reason)
            response = errors.error_response(
                errors.AUTH_SESSION_EXPIRED,
                messages.describe(session.reason) or "Your session has expired.",
                status_code=status.HTTP_401_UNAUTHORIZED,
                details={"reason": session.reason, "redirect_to": messages.login_url(reason=session.reason)},
            )
            clear_session_cookies(response, request.cookies)
            return response

        response = await call_next(request)
        if path not in PASSIVE_PATHS and response.status_code < 400:
            touch_activity(response, now)
        return response
