"""
Tests for the dashboard statistics (/api/v1/dashboard).

Run: pytest tests/test_dashboard.py -v
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

from authgate.modules.dashboard.service import DashboardService

NOW = datetime(2025, 6, 1, 12, 0, 0, tzinfo=timezone.utc)

FILTERS = ("select", "eq", "gte", "gt", "is_", "order", "limit")


def query(count=None, data=None):
    """A query builder whose filters all chain back to itself."""
    builder = MagicMock()
    for name in FILTERS:
        getattr(builder, name).return_value = builder
    builder.execute.return_value = MagicMock(count=count, data=data)
    return builder


def supabase_with(**tables):
    supabase = MagicMock()
    supabase.table.side_effect = lambda name: tables[name]
    return supabase


def counts(*values):
    return [value if isinstance(value, Exception) else MagicMock(count=value) for value in values]


# ==================== Stats ====================

def test_stats_counts_each_figure():
    profiles = query()
    profiles.execute.side_effect = counts(10, 4, 2, 3)
    roles = query(count=3)
    resets = query(count=1)
    service = DashboardService(supabase_with(user_profiles=profiles, roles=roles, password_resets=resets), clock=lambda: NOW)

    stats = service.get_stats()

    assert stats.model_dump() == {
        "total_users": 10,
        "active_users": 4,
        "admin_users": 2,
        "recent_signups": 3,
        "total_roles": 3,
        "pending_password_resets": 1,
    }
    profiles.select.assert_any_call("id, roles!inner(name)", count="exact", head=True)
    profiles.eq.assert_any_call("is_active", True)
    profiles.eq.assert_any_call("roles.name", "admin")
    profiles.gte.assert_any_call("last_login", (NOW - timedelta(days=30)).isoformat())
    profiles.gte.assert_any_call("created_at", (NOW - timedelta(days=7)).isoformat())
    resets.is_.assert_called_once_with("used_at", "null")
    resets.gt.assert_called_once_with("expires_at", NOW.isoformat())


def test_failing_count_is_zero_and_logged(caplog):
    profiles = query()
    profiles.execute.side_effect = counts(10, RuntimeError("permission denied"), 2, 3)
    resets = query()
    resets.execute.side_effect = RuntimeError('relation "password_resets" does not exist')
    service = DashboardService(
        supabase_with(user_profiles=profiles, roles=query(count=3), password_resets=resets), clock=lambda: NOW
    )

    stats = service.get_stats()

    assert stats.total_users == 10
    assert stats.active_users == 0
    assert stats.admin_users == 2
    assert stats.pending_password_resets == 0
    assert "Error fetching active users" in caplog.text
    assert "Error fetching pending password resets" in caplog.text


def test_missing_count_is_zero():
    service = DashboardService(
        supabase_with(user_profiles=query(count=None), roles=query(count=None), password_resets=query(count=None)),
        clock=lambda: NOW,
    )

    assert service.get_stats().total_roles == 0


# ==================== Charts and activity ====================

def test_user_growth_groups_signups_by_day():
    profiles = query(data=[
        {"created_at": "2025-05-20T08:00:00+00:00"},
        {"created_at": "2025-05-18T23:59:00+00:00"},
        {"created_at": "2025-05-20T17:30:00+00:00"},
        {"created_at": None},
    ])
    service = DashboardService(supabase_with(user_profiles=profiles), clock=lambda: NOW)

    growth = service.get_user_growth()

    assert [point.model_dump() for point in growth] == [
        {"date": "2025-05-18", "users": 1},
        {"date": "2025-05-20", "users": 2},
    ]
    profiles.gte.assert_called_once_with("created_at", (NOW - timedelta(days=30)).isoformat())


def test_role_distribution_defaults_missing_role_to_user():
    profiles = query(data=[
        {"roles": {"name": "admin"}},
        {"roles": None},
        {"roles": {"name": "user"}},
        {"roles": [{"name": "admin"}]},
    ])
    service = DashboardService(supabase_with(user_profiles=profiles))

    distribution = service.get_role_distribution()

    assert [entry.model_dump() for entry in distribution] == [
        {"role": "admin", "count": 2},
        {"role": "user", "count": 2},
    ]


def test_recent_activity_orders_by_last_login():
    profiles = query(data=[
        {
            "id": "user-2",
            "email": "bob@example.com",
            "first_name": "Bob",
            "last_name": "Stone",
            "last_login": "2025-05-31T09:00:00+00:00",
            "created_at": "2025-01-01T00:00:00+00:00",
            "roles": {"name": "manager"},
        },
    ])
    service = DashboardService(supabase_with(user_profiles=profiles))

    activity = service.get_recent_activity(limit=5)

    assert activity[0].id == "user-2"
    assert activity[0].role == "manager"
    profiles.order.assert_called_once_with("last_login", desc=True, nullsfirst=False)
    profiles.limit.assert_called_once_with(5)


def test_chart_queries_fail_to_empty_lists(caplog):
    profiles = query()
    profiles.execute.side_effect = RuntimeError("timeout")
    service = DashboardService(supabase_with(user_profiles=profiles), clock=lambda: NOW)

    assert service.get_user_growth() == []
    assert service.get_role_distribution() == []
    assert service.get_recent_activity() == []
    assert "Error fetching role distribution" in caplog.text


# ==================== Routes ====================

async def test_manager_reads_stats(client, mock_supabase, signed_in):
    headers = signed_in(role="manager")
    tables = {"user_profiles": query(count=5), "roles": query(count=3), "password_resets": query(count=0)}
    mock_supabase.table.side_effect = lambda name: tables[name]

    response = await client.get("/api/v1/dashboard/stats", headers=headers)

    assert response.status_code == 200
    body = response.json()
    assert body["total_users"] == 5
    assert body["total_roles"] == 3
    assert body["pending_password_resets"] == 0


async def test_regular_user_cannot_read_stats(client, mock_supabase, signed_in):
    response = await client.get("/api/v1/dashboard/stats", headers=signed_in(role="user"))

    assert response.status_code == 403
    mock_supabase.table.assert_not_called()


async def test_recent_activity_limit_is_bounded(client, signed_in):
    response = await client.get(
        "/api/v1/dashboard/recent-activity", params={"limit": 500}, headers=signed_in(role="admin")
    )

    assert response.status_code == 422
