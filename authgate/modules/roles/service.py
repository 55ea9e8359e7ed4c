from datetime import datetime, timezone
from supabase import Client
from authgate.modules.roles.schemas import RoleCreate, RoleUpdate, RoleResponse, RoleListResponse
from typing import Optional
from fastapi import HTTPException


class RoleService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def create_role(self, role_data: RoleCreate) -> RoleResponse:
        """Create a new role"""
        try:
            if self.get_role_by_name(role_data.name):
                raise HTTPException(status_code=400, detail="Role already exists")

            result = self.supabase.table("roles").insert({
                "name": role_data.name,
                "description": role_data.description
            }).execute()

            if not result.data:
                raise HTTPException(status_code=500, detail="Failed to create role")

            return RoleResponse(**result.data[0])
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def get_role_by_id(self, role_id: str) -> RoleResponse:
        """Get role by ID"""
        try:
            result = self.supabase.table("roles")\
                .select("*")\
                .eq("id", role_id)\
                .maybe_single()\
                .execute()

            if not result or not result.data:
                raise HTTPException(status_code=404, detail="Role not found")

            return RoleResponse(**result.data)
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def get_role_by_name(self, name: str) -> Optional[RoleResponse]:
        result = self.supabase.table("roles")\
            .select("*")\
            .eq("name", name)\
            .limit(1)\
            .execute()
        return RoleResponse(**result.data[0]) if result.data else None

    def update_role(self, role_id: str, role_data: RoleUpdate) -> RoleResponse:
        """Update role"""
        try:
            update_data = {"updated_at": datetime.now(timezone.utc).isoformat()}
            if role_data.name:
                update_data["name"] = role_data.name
            if role_data.description is not None:
                update_data["description"] = role_data.description

            result = self.supabase.table("roles")\
                .update(update_data)\
                .eq("id", role_id)\
                .execute()

            if not result.data:
                raise HTTPException(status_code=404, detail="Role not found")

            return RoleResponse(**result.data[0])
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def list_roles(self, limit: int = 100, offset: int = 0) -> RoleListResponse:
        """List roles ordered by name"""
        try:
            result = self.supabase.table("roles")\
                .select("*", count="exact")\
                .order("name")\
                .range(offset, offset + limit - 1)\
                .execute()
            roles = [RoleResponse(**role) for role in result.data or []]
            return RoleListResponse(roles=roles, total=result.count or len(roles))
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def count_role_users(self, role_id: str) -> int:
        result = self.supabase.table("user_profiles")\
            .select("id", count="exact")\
            .eq("role_id", role_id)\
            .execute()
        return result.count or len(result.data or [])

    def delete_role(self, role_id: str) -> bool:
        """Delete role; refused while users still hold it"""
        try:
            holders = self.count_role_users(role_id)
            if holders:
                raise HTTPException(
                    status_code=409,
                    detail=f"Role is assigned to {holders} user(s); reassign them before deleting it"
                )

            result = self.supabase.table("roles")\
                .delete()\
                .eq("id", role_id)\
                .execute()

            return len(result.data) > 0
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
