from pydantic import BaseModel
from typing import Optional
from datetime import datetime


class DashboardStats(BaseModel):
    total_users: int = 0
    active_users: int = 0
    admin_users: int = 0
    recent_signups: int = 0
    total_roles: int = 0
    pending_password_resets: int = 0


class GrowthPoint(BaseModel):
    date: str
    users: int


class RoleCount(BaseModel):
    role: str
    count: int


class UserActivity(BaseModel):
    id: str
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: str = "user"
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None
