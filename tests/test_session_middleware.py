"""
Tests for server-side session timeout enforcement and the session endpoints.

Run: pytest tests/test_session_middleware.py -v
"""

from datetime import timedelta

from authgate.core.cookies import (
    ACCESS_TOKEN_COOKIE,
    LAST_ACTIVITY_COOKIE,
    REFRESH_TOKEN_COOKIE,
    SESSION_START_COOKIE,
    iso_now,
)
from authgate.modules.auth import messages
from authgate.modules.sessions.timeout import STRICT_SESSION_MODE_KEY, utc_now


def session_cookie(idle=timedelta(0), age=timedelta(hours=1), **extra):
    now = utc_now()
    cookies = {
        ACCESS_TOKEN_COOKIE: "token-123",
        REFRESH_TOKEN_COOKIE: "refresh-123",
        LAST_ACTIVITY_COOKIE: iso_now(now - idle),
        SESSION_START_COOKIE: iso_now(now - age),
        **extra,
    }
    return "; ".join(f"{name}={value}" for name, value in cookies.items())


def set_cookie_names(response):
    return {header.split("=", 1)[0] for header in response.headers.get_list("set-cookie")}


# ==================== Middleware ====================

async def test_idle_session_is_rejected(client, signed_in):
    signed_in()

    response = await client.get("/api/v1/auth/me", headers={"Cookie": session_cookie(idle=timedelta(minutes=31))})

    assert response.status_code == 401
    body = response.json()
    assert body["code"] == "AUTH_SESSION_EXPIRED"
    assert body["details"]["reason"] == messages.INACTIVITY_TIMEOUT
    assert body["details"]["redirect_to"] == messages.login_url(reason=messages.INACTIVITY_TIMEOUT)
    assert {ACCESS_TOKEN_COOKIE, REFRESH_TOKEN_COOKIE, LAST_ACTIVITY_COOKIE} <= set_cookie_names(response)


async def test_session_past_max_duration_is_rejected(client, signed_in):
    signed_in()

    response = await client.get("/api/v1/auth/me", headers={"Cookie": session_cookie(age=timedelta(hours=25))})

    assert response.status_code == 401
    assert response.json()["details"]["reason"] == messages.MAX_DURATION_EXCEEDED


async def test_active_request_refreshes_last_activity(client, signed_in):
    signed_in()

    response = await client.get("/api/v1/auth/me", headers={"Cookie": session_cookie(idle=timedelta(minutes=10))})

    assert response.status_code == 200
    assert LAST_ACTIVITY_COOKIE in set_cookie_names(response)


async def test_auth_endpoints_are_exempt(client, mock_request_supabase):
    response = await client.post(
        "/api/v1/auth/logout",
        headers={"Cookie": session_cookie(idle=timedelta(hours=3))},
    )

    assert response.status_code == 200
    mock_request_supabase.auth.sign_out.assert_called_once()


async def test_bearer_only_requests_are_not_checked(client, signed_in):
    headers = signed_in()

    response = await client.get("/api/v1/auth/me", headers=headers)

    assert response.status_code == 200
    assert LAST_ACTIVITY_COOKIE not in set_cookie_names(response)


async def test_strict_mode_cookie_shortens_timeout(client, signed_in):
    signed_in()

    response = await client.get(
        "/api/v1/auth/me",
        headers={"Cookie": session_cookie(idle=timedelta(minutes=20), **{STRICT_SESSION_MODE_KEY: "true"})},
    )

    assert response.status_code == 401


async def test_security_headers(client):
    response = await client.get("/health")

    assert response.headers["x-content-type-options"] == "nosniff"
    assert response.headers["x-frame-options"] == "DENY"


# ==================== Session endpoints ====================

async def test_status_reports_warning_without_touching_activity(client, signed_in):
    signed_in()

    response = await client.get(
        "/api/v1/session/status",
        headers={"Cookie": session_cookie(idle=timedelta(minutes=29, seconds=30))},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["state"] == "warning"
    assert body["warning"] is True
    assert body["strict_mode"] is False
    assert 0 < body["remaining_seconds"] <= 30
    assert LAST_ACTIVITY_COOKIE not in set_cookie_names(response)


async def test_activity_endpoint_resets_idle_time(client, signed_in):
    signed_in()

    response = await client.post(
        "/api/v1/session/activity",
        headers={"Cookie": session_cookie(idle=timedelta(minutes=29, seconds=30))},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["status"]["state"] == "active"
    assert body["status"]["inactive_seconds"] == 0
    assert LAST_ACTIVITY_COOKIE in set_cookie_names(response)


async def test_status_requires_authentication(client):
    response = await client.get("/api/v1/session/status")

    assert response.status_code == 401
