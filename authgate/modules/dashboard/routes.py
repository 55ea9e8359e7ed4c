from fastapi import APIRouter, Depends, Query
from authgate.config.access_config import ADMIN, MANAGER
from authgate.database.supabase_client import get_supabase
from authgate.modules.dashboard.schemas import DashboardStats, GrowthPoint, RoleCount, UserActivity
from authgate.modules.dashboard.service import DashboardService
from authgate.core.dependencies import require_role
from supabase import Client
from typing import Dict, List

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


def get_dashboard_service(supabase: Client = Depends(get_supabase)) -> DashboardService:
    return DashboardService(supabase)


@router.get("/stats", response_model=DashboardStats)
async def get_stats(
    user_data: Dict = Depends(require_role(ADMIN, MANAGER)),
    service: DashboardService = Depends(get_dashboard_service)
):
    """User, role and password reset counts for the dashboard cards"""
    return service.get_stats()


@router.get("/user-growth", response_model=List[GrowthPoint])
async def get_user_growth(
    user_data: Dict = Depends(require_role(ADMIN, MANAGER)),
    service: DashboardService = Depends(get_dashboard_service)
):
    return service.get_user_growth()


@router.get("/role-distribution", response_model=List[RoleCount])
async def get_role_distribution(
    user_data: Dict = Depends(require_role(ADMIN, MANAGER)),
    service: DashboardService = Depends(get_dashboard_service)
):
    return service.get_role_distribution()


@router.get("/recent-activity", response_model=List[UserActivity])
async def get_recent_activity(
    limit: int = Query(10, ge=1, le=100),
    user_data: Dict = Depends(require_role(ADMIN, MANAGER)),
    service: DashboardService = Depends(get_dashboard_service)
):
    """Latest logins (admin and manager)"""
    return service.get_recent_activity(limit=limit)
