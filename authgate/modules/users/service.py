import logging
import re
from datetime import datetime, timezone
from supabase import Client
from authgate.config.access_config import DEFAULT_ROLE
from authgate.modules.users.schemas import ProfileUpdate, UserCreate, UserUpdate, UserResponse, UserListResponse
from typing import Any, Dict, Optional, Union
from fastapi import HTTPException

logger = logging.getLogger(__name__)

USER_COLUMNS = "*, roles(id, name)"

# Values the frontend sends for an empty search box
_EMPTY_SEARCH = {"", "undefined", "null"}

# Characters with meaning inside a PostgREST or=() filter or an ilike pattern
_FILTER_CHARS = re.compile(r"[,()\"\\%*]")


def _to_user(row: Dict[str, Any]) -> UserResponse:
    data = dict(row)
    roles = data.get("roles")
    if isinstance(roles, list):
        roles = roles[0] if roles else None
    data["roles"] = roles if isinstance(roles, dict) and roles.get("name") else {"name": DEFAULT_ROLE}
    return UserResponse(**data)


class UserService:
    def __init__(self, supabase: Client, admin_client: Optional[Client] = None):
        self.supabase = supabase
        self.admin_client = admin_client or supabase

    def get_user_by_id(self, user_id: str) -> UserResponse:
        """Get user profile by ID"""
        try:
            result = self.supabase.table("user_profiles")\
                .select(USER_COLUMNS)\
                .eq("id", user_id)\
                .maybe_single()\
                .execute()

            if not result or not result.data:
                raise HTTPException(status_code=404, detail="User not found")

            return _to_user(result.data)
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def list_users(self, search: Optional[str] = None, limit: int = 10, offset: int = 0) -> UserListResponse:
        """List users newest first, filtered by first name, last name or email"""
        try:
            query = self.supabase.table("user_profiles")\
                .select(USER_COLUMNS, count="exact")\
                .order("created_at", desc=True)
            term = " ".join(_FILTER_CHARS.sub(" ", search or "").split())
            if term not in _EMPTY_SEARCH:
                query = query.or_(f"first_name.ilike.%{term}%,last_name.ilike.%{term}%,email.ilike.%{term}%")
            result = query.range(offset, offset + limit - 1).execute()
            users = [_to_user(user) for user in result.data or []]
            return UserListResponse(users=users, total_count=result.count or 0)
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def _role_id(self, role_name: str) -> Optional[str]:
        result = self.supabase.table("roles")\
            .select("id")\
            .eq("name", role_name)\
            .limit(1)\
            .execute()
        return result.data[0]["id"] if result.data else None

    def create_user(self, user_data: UserCreate) -> UserResponse:
        """Create an auth user (pre-confirmed) and its profile"""
        try:
            auth_response = self.admin_client.auth.admin.create_user({
                "email": user_data.email,
                "password": user_data.password,
                "email_confirm": True,
                "user_metadata": {
                    "first_name": user_data.first_name,
                    "last_name": user_data.last_name,
                },
            })
            if not auth_response.user:
                raise HTTPException(status_code=400, detail="Failed to create user")
            user_id = auth_response.user.id

            role_id = user_data.role_id or self._role_id(DEFAULT_ROLE)
            profile = {
                "id": user_id,
                "email": user_data.email,
                "first_name": user_data.first_name,
                "last_name": user_data.last_name,
                "role_id": role_id,
                "is_active": True,
                "profile": user_data.profile,
            }
            result = self.admin_client.table("user_profiles")\
                .upsert(profile)\
                .execute()
            if not result.data:
                raise HTTPException(status_code=500, detail="Failed to create user profile")
            logger.info("Created user %s", user_data.email)
            return self.get_user_by_id(user_id)
        except HTTPException:
            raise
        except Exception as e:
            message = str(e)
            if "already" in message.lower():
                raise HTTPException(status_code=400, detail="User already exists")
            raise HTTPException(status_code=500, detail=message)

    def update_user(self, user_id: str, user_data: Union[UserUpdate, ProfileUpdate]) -> UserResponse:
        """Update user profile"""
        try:
            update_data = user_data.model_dump(exclude_none=True)
            update_data["updated_at"] = datetime.now(timezone.utc).isoformat()

            result = self.supabase.table("user_profiles")\
                .update(update_data)\
                .eq("id", user_id)\
                .execute()

            if not result.data:
                raise HTTPException(status_code=404, detail="User not found")

            return self.get_user_by_id(user_id)
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def delete_user(self, user_id: str) -> bool:
        """Delete user profile and auth user"""
        try:
            result = self.supabase.table("user_profiles")\
                .delete()\
                .eq("id", user_id)\
                .execute()
            if not result.data:
                return False
            self.admin_client.auth.admin.delete_user(user_id)
            return True
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
