"""
Tests for role-based route access (authgate.config.access_config) and the
role resolution dependency.

Run: pytest tests/test_access_control.py -v
"""

from unittest.mock import MagicMock

import pytest

from authgate.config.access_config import (
    LOGIN_ROUTE,
    ROLES,
    get_accessible_routes,
    get_fallback_route,
    has_route_access,
    requires_redirect,
    validate_route_access,
)
from authgate.core.dependencies import get_user_role


# ==================== Route matching ====================

@pytest.mark.parametrize("role, route, allowed", [
    ("admin", "/", True),
    ("admin", "/users", True),
    ("admin", "/users/42/edit", True),
    ("admin", "/settings", True),
    ("manager", "/settings/email", True),
    ("manager", "/users", False),
    ("user", "/", True),
    ("user", "/settings", False),
    ("user", "/anything-else", False),
    (None, "/", False),
    ("ghost", "/", False),
])
def test_has_route_access(role, route, allowed):
    assert has_route_access(role, route) is allowed


def test_root_entry_only_matches_root():
    assert not has_route_access("user", "/users")


def test_prefix_match_is_plain():
    # Prefix matching does not stop at path segments.
    assert has_route_access("manager", "/settingsx")


def test_accessible_routes_is_a_copy():
    routes = get_accessible_routes("admin")
    routes.append("/hacked")

    assert "/hacked" not in get_accessible_routes("admin")
    assert get_accessible_routes(None) == []


def test_fallback_route():
    assert get_fallback_route("user") == "/"
    assert get_fallback_route(None) == LOGIN_ROUTE
    assert get_fallback_route("ghost") == LOGIN_ROUTE


def test_validate_route_access():
    assert validate_route_access("admin", "/users") is None
    assert validate_route_access("user", "/users") == "/"
    assert validate_route_access(None, "/users") == LOGIN_ROUTE


def test_requires_redirect_after_role_change():
    assert requires_redirect("/users", "admin", "user") == "/"
    assert requires_redirect("/settings", "admin", "manager") is None
    assert requires_redirect("/users", "admin", "admin") is None
    assert requires_redirect("/", "user", None) == LOGIN_ROUTE


# ==================== Role resolution ====================

def supabase_with_profile(data=None, rpc_data=None):
    supabase = MagicMock()
    table_query = supabase.table.return_value.select.return_value.eq.return_value.maybe_single.return_value
    table_query.execute.return_value = MagicMock(data=data)
    supabase.rpc.return_value.execute.return_value = MagicMock(data=rpc_data)
    return supabase


def test_role_from_profile_join():
    supabase = supabase_with_profile({"role_id": "r1", "roles": {"name": "manager"}})

    assert get_user_role("user-1", supabase) == "manager"
    supabase.rpc.assert_not_called()


def test_role_falls_back_to_rpc():
    supabase = supabase_with_profile(None, rpc_data="admin")

    assert get_user_role("user-1", supabase) == "admin"
    supabase.rpc.assert_called_once_with("get_user_role", {"user_id": "user-1"})


def test_unknown_role_defaults_to_user():
    supabase = supabase_with_profile({"roles": [{"name": "superuser"}]})

    assert get_user_role("user-1", supabase) == "user"


def test_lookup_errors_default_to_user():
    supabase = MagicMock()
    supabase.table.side_effect = RuntimeError("db down")
    supabase.rpc.side_effect = RuntimeError("db down")

    assert get_user_role("user-1", supabase) == "user"


def test_role_is_cached_per_request():
    supabase = supabase_with_profile({"roles": {"name": "admin"}})
    cache = {}

    assert get_user_role("user-1", supabase, cache) == "admin"
    assert get_user_role("user-1", supabase, cache) == "admin"
    assert supabase.table.call_count == 1
    assert cache == {"role": "admin"}


def test_roles_list():
    assert ROLES == ["admin", "manager", "user"]


# ==================== Role-gated endpoints ====================

async def test_user_role_cannot_reach_admin_endpoints(client, signed_in):
    headers = signed_in(role="user")

    response = await client.get("/api/v1/users", headers=headers)

    assert response.status_code == 403
    assert "admin" in response.json()["detail"]
