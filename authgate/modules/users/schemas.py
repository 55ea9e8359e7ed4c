from pydantic import BaseModel, EmailStr, Field
from typing import Optional, List
from datetime import datetime


class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6)
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role_id: Optional[str] = None
    profile: Optional[str] = None


class UserUpdate(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[EmailStr] = None
    role_id: Optional[str] = None
    is_active: Optional[bool] = None
    profile: Optional[str] = None


class ProfileUpdate(BaseModel):
    """Fields a user may change on their own profile."""
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    profile: Optional[str] = None


class UserRoleRef(BaseModel):
    id: Optional[str] = None
    name: str = "user"


class UserResponse(BaseModel):
    id: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role_id: Optional[str] = None
    roles: UserRoleRef = UserRoleRef()
    is_active: bool = True
    profile: Optional[str] = None
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class UserListResponse(BaseModel):
    users: List[UserResponse]
    total_count: int
