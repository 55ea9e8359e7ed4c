import logging
from collections import Counter
from datetime import datetime, timedelta, timezone
from supabase import Client
from authgate.config.access_config import ADMIN, DEFAULT_ROLE
from authgate.modules.dashboard.schemas import DashboardStats, GrowthPoint, RoleCount, UserActivity
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

ACTIVE_WINDOW = timedelta(days=30)
SIGNUP_WINDOW = timedelta(days=7)
GROWTH_WINDOW = timedelta(days=30)


def _role_name(row: Dict[str, Any]) -> str:
    roles = row.get("roles")
    if isinstance(roles, list):
        roles = roles[0] if roles else None
    if isinstance(roles, dict) and roles.get("name"):
        return roles["name"]
    return DEFAULT_ROLE


class DashboardService:
    """
    Read-only statistics for the dashboard home page.

    Every figure is computed independently; a failing query is logged and
    reported as zero, or an empty list.
    """

    def __init__(self, supabase: Client, clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc)):
        self.supabase = supabase
        self.clock = clock

    def _count(self, label: str, build_query) -> int:
        try:
            result = build_query().execute()
            return result.count or 0
        except Exception as e:
            logger.error("Error fetching %s: %s", label, e)
            return 0

    def _profiles(self, columns: str = "id"):
        return self.supabase.table("user_profiles").select(columns, count="exact", head=True)

    def get_stats(self) -> DashboardStats:
        now = self.clock()
        active_since = (now - ACTIVE_WINDOW).isoformat()
        signups_since = (now - SIGNUP_WINDOW).isoformat()

        return DashboardStats(
            total_users=self._count("total users", lambda: self._profiles()),
            active_users=self._count(
                "active users",
                lambda: self._profiles().eq("is_active", True).gte("last_login", active_since),
            ),
            admin_users=self._count(
                "admin users",
                lambda: self._profiles("id, roles!inner(name)").eq("roles.name", ADMIN),
            ),
            recent_signups=self._count(
                "recent signups",
                lambda: self._profiles().gte("created_at", signups_since),
            ),
            total_roles=self._count(
                "total roles",
                lambda: self.supabase.table("roles").select("id", count="exact", head=True),
            ),
            pending_password_resets=self._count(
                "pending password resets",
                lambda: self.supabase.table("password_resets")
                .select("id", count="exact", head=True)
                .is_("used_at", "null")
                .gt("expires_at", now.isoformat()),
            ),
        )

    def get_user_growth(self) -> List[GrowthPoint]:
        """Signups per day over the last 30 days, oldest first"""
        since = (self.clock() - GROWTH_WINDOW).isoformat()
        try:
            result = self.supabase.table("user_profiles")\
                .select("created_at")\
                .gte("created_at", since)\
                .order("created_at")\
                .execute()
        except Exception as e:
            logger.error("Error fetching user growth data: %s", e)
            return []

        per_day = Counter(row["created_at"][:10] for row in result.data or [] if row.get("created_at"))
        return [GrowthPoint(date=day, users=count) for day, count in sorted(per_day.items())]

    def get_role_distribution(self) -> List[RoleCount]:
        """Number of users per role; profiles without a role count as the default role"""
        try:
            result = self.supabase.table("user_profiles")\
                .select("roles(name)")\
                .execute()
        except Exception as e:
            logger.error("Error fetching role distribution: %s", e)
            return []

        counts = Counter(_role_name(row) for row in result.data or [])
        return [RoleCount(role=role, count=count) for role, count in counts.most_common()]

    def get_recent_activity(self, limit: int = 10) -> List[UserActivity]:
        """Most recent logins first; users who never logged in come last"""
        try:
            result = self.supabase.table("user_profiles")\
                .select("id, first_name, last_name, email, last_login, created_at, roles(name)")\
                .order("last_login", desc=True, nullsfirst=False)\
                .limit(limit)\
                .execute()
        except Exception as e:
            logger.error("Error fetching recent user activity: %s", e)
            return []

        activity = []
        for row in result.data or []:
            data = {key: value for key, value in row.items() if key != "roles"}
            activity.append(UserActivity(role=_role_name(row), **data))
        return activity
