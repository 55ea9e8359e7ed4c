from fastapi import APIRouter, Depends, HTTPException, Query, status
from authgate.config.access_config import ADMIN
from authgate.database.supabase_client import get_supabase, get_service_supabase
from authgate.modules.users.schemas import ProfileUpdate, UserCreate, UserUpdate, UserResponse, UserListResponse
from authgate.modules.users.service import UserService
from authgate.core.dependencies import get_current_user, require_role
from supabase import Client
from typing import Dict, Optional

router = APIRouter(prefix="/users", tags=["users"])


def get_user_service(
    supabase: Client = Depends(get_supabase),
    admin_client: Client = Depends(get_service_supabase),
) -> UserService:
    return UserService(supabase, admin_client)


@router.get("", response_model=UserListResponse)
async def list_users(
    search: Optional[str] = None,
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user_data: Dict = Depends(require_role(ADMIN)),
    service: UserService = Depends(get_user_service)
):
    """List users with search and pagination (admin only)"""
    return service.list_users(search=search, limit=limit, offset=offset)


@router.post("", response_model=UserResponse, status_code=201)
async def create_user(
    user_data_body: UserCreate,
    user_data: Dict = Depends(require_role(ADMIN)),
    service: UserService = Depends(get_user_service)
):
    """Create a user with a role (admin only)"""
    return service.create_user(user_data_body)


@router.get("/me", response_model=UserResponse)
async def get_own_profile(
    current_user: Dict = Depends(get_current_user),
    service: UserService = Depends(get_user_service)
):
    """Profile of the signed-in user"""
    return service.get_user_by_id(current_user["id"])


@router.put("/me", response_model=UserResponse)
async def update_own_profile(
    profile_data: ProfileUpdate,
    current_user: Dict = Depends(get_current_user),
    service: UserService = Depends(get_user_service)
):
    """Update the signed-in user's name and avatar; role and status stay admin-only"""
    return service.update_user(current_user["id"], profile_data)


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: str,
    user_data: Dict = Depends(require_role(ADMIN)),
    service: UserService = Depends(get_user_service)
):
    """Get user by ID"""
    return service.get_user_by_id(user_id)


@router.put("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: str,
    user_data_body: UserUpdate,
    user_data: Dict = Depends(require_role(ADMIN)),
    service: UserService = Depends(get_user_service)
):
    """Update user profile or role"""
    return service.update_user(user_id, user_data_body)


@router.delete("/{user_id}", status_code=204)
async def delete_user(
    user_id: str,
    user_data: Dict = Depends(require_role(ADMIN)),
    service: UserService = Depends(get_user_service)
):
    """Delete user (admins cannot delete themselves)"""
    if user_id == user_data["id"]:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot delete your own account")
    if not service.delete_user(user_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return None
