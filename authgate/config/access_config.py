"""
Role-based route access.

Single source of truth for which frontend routes each role may open, used by
the /me endpoint and by role-gated API dependencies.
"""

from typing import Dict, List, Optional

ADMIN = "admin"
MANAGER = "manager"
USER = "user"

ROLES: List[str] = [ADMIN, MANAGER, USER]

ROLE_DESCRIPTIONS: Dict[str, str] = {
    ADMIN: "Full access to every page, including user management",
    MANAGER: "Access to the dashboard and site settings",
    USER: "Access to the dashboard only",
}

# Route prefixes per role. "/" only matches the root itself.
ROLE_ACCESS: Dict[str, List[str]] = {
    ADMIN: ["/", "/settings", "/users"],
    MANAGER: ["/", "/settings"],
    USER: ["/"],
}

DEFAULT_ROLE = USER
LOGIN_ROUTE = "/auth/login"
FALLBACK_ROUTE = "/"


def _matches(route: str, allowed: str) -> bool:
    if allowed == "/":
        return route == "/"
    return route.startswith(allowed)


def has_route_access(role: Optional[str], route: str) -> bool:
    if not role or role not in ROLE_ACCESS:
        return False
    return any(_matches(route, allowed) for allowed in ROLE_ACCESS[role])


def get_accessible_routes(role: Optional[str]) -> List[str]:
    return list(ROLE_ACCESS.get(role or "", []))


def get_fallback_route(role: Optional[str]) -> str:
    """Where to send a user who cannot open the requested page."""
    if not role or role not in ROLE_ACCESS:
        return LOGIN_ROUTE
    return FALLBACK_ROUTE


def validate_route_access(role: Optional[str], route: str) -> Optional[str]:
    """Return None when access is allowed, otherwise the redirect target."""
    if has_route_access(role, route):
        return None
    return get_fallback_route(role)


def requires_redirect(current_route: str, old_role: Optional[str], new_role: Optional[str]) -> Optional[str]:
    """Redirect target when a role change removed access to the current page, else None."""
    if old_role == new_role:
        return None
    return validate_route_access(new_role, current_route)
