from fastapi import APIRouter, Depends, HTTPException, Query, status
from authgate.config.access_config import ADMIN, MANAGER
from authgate.database.supabase_client import get_supabase
from authgate.modules.roles.schemas import RoleCreate, RoleUpdate, RoleResponse, RoleListResponse
from authgate.modules.roles.service import RoleService
from authgate.core.dependencies import require_role
from supabase import Client
from typing import Dict

router = APIRouter(prefix="/roles", tags=["roles"])


def get_role_service(supabase: Client = Depends(get_supabase)) -> RoleService:
    return RoleService(supabase)


@router.post("", response_model=RoleResponse, status_code=201)
async def create_role(
    role_data: RoleCreate,
    user_data: Dict = Depends(require_role(ADMIN)),
    service: RoleService = Depends(get_role_service)
):
    """Create a new role"""
    return service.create_role(role_data)


@router.get("", response_model=RoleListResponse)
async def list_roles(
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    user_data: Dict = Depends(require_role(ADMIN, MANAGER)),
    service: RoleService = Depends(get_role_service)
):
    """List roles ordered by name"""
    return service.list_roles(limit=limit, offset=offset)


@router.get("/{role_id}", response_model=RoleResponse)
async def get_role(
    role_id: str,
    user_data: Dict = Depends(require_role(ADMIN, MANAGER)),
    service: RoleService = Depends(get_role_service)
):
    """Get role by ID"""
    return service.get_role_by_id(role_id)


@router.put("/{role_id}", response_model=RoleResponse)
async def update_role(
    role_id: str,
    role_data: RoleUpdate,
    user_data: Dict = Depends(require_role(ADMIN)),
    service: RoleService = Depends(get_role_service)
):
    """Update role"""
    return service.update_role(role_id, role_data)


@router.delete("/{role_id}", status_code=204)
async def delete_role(
    role_id: str,
    user_data: Dict = Depends(require_role(ADMIN)),
    service: RoleService = Depends(get_role_service)
):
    """Delete role"""
    if not service.delete_role(role_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Role not found")
    return None
