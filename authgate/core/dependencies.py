"""
Core dependencies for route protection and role checking
"""

from fastapi import Depends, HTTPException, Request, Security, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from authgate.config.access_config import DEFAULT_ROLE, ROLES
from authgate.core.cookies import ACCESS_TOKEN_COOKIE
from authgate.database.supabase_client import get_supabase
from authgate.modules.auth.service import AuthService
from supabase import Client
from typing import Optional, Dict, Any
import logging

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def _get_request_cache(request: Request) -> Dict[str, Any]:
    """Return request-scoped cache for access data (role name)."""
    if not hasattr(request.state, "access_cache"):
        request.state.access_cache = {}
    return request.state.access_cache


def get_auth_service(supabase: Client = Depends(get_supabase)) -> AuthService:
    return AuthService(supabase)


def get_optional_token(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security),
) -> Optional[str]:
    """Bearer token from the Authorization header, else the session cookie."""
    if credentials and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(ACCESS_TOKEN_COOKIE)


def get_current_token(token: Optional[str] = Depends(get_optional_token)) -> str:
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return token


def get_current_user(
    token: str = Depends(get_current_token),
    auth_service: AuthService = Depends(get_auth_service)
) -> dict:
    """Resolve the current user from the access token"""
    return auth_service.get_current_user(token)


def _role_from_profile(row: Optional[Dict[str, Any]]) -> Optional[str]:
    if not row:
        return None
    roles = row.get("roles")
    if isinstance(roles, list):
        roles = roles[0] if roles else None
    if isinstance(roles, dict):
        return roles.get("name")
    return None


def get_user_role(user_id: str, supabase: Client, cache: Optional[Dict[str, Any]] = None) -> str:
    """Resolve the role name: user_profiles.role_id -> roles.name, then the get_user_role RPC, then 'user'."""
    if cache is not None and "role" in cache:
        return cache["role"]
    role = None
    try:
        result = supabase.table("user_profiles")\
            .select("role_id, roles(name)")\
            .eq("id", user_id)\
            .maybe_single()\
            .execute()
        role = _role_from_profile(result.data if result else None)
    except Exception as e:
        logger.error(f"Error fetching user role from profile: {e}")
    if not role:
        try:
            rpc_result = supabase.rpc("get_user_role", {"user_id": user_id}).execute()
            if isinstance(rpc_result.data, str):
                role = rpc_result.data
        except Exception as e:
            logger.error(f"Error calling get_user_role: {e}")
    if role not in ROLES:
        role = DEFAULT_ROLE
    if cache is not None:
        cache["role"] = role
    return role


def get_current_role(
    request: Request,
    user_data: dict = Depends(get_current_user),
    supabase: Client = Depends(get_supabase)
) -> str:
    return get_user_role(user_data["id"], supabase, _get_request_cache(request))


def require_role(*allowed_roles: str):
    """Factory function to create a role check dependency"""
    def check_role(
        request: Request,
        user_data: dict = Depends(get_current_user),
        supabase: Client = Depends(get_supabase)
    ) -> dict:
        role = get_user_role(user_data["id"], supabase, _get_request_cache(request))
        if role not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Insufficient permissions. Required role: {' or '.join(allowed_roles)}"
            )
        return {**user_data, "role": role}
    return check_role
