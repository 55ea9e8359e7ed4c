from fastapi import APIRouter, Depends
from authgate.config.access_config import ADMIN, MANAGER
from authgate.database.supabase_client import get_supabase
from authgate.modules.site_settings.schemas import SiteSettingsUpdate, SiteSettingsResponse
from authgate.modules.site_settings.service import SiteSettingsService
from authgate.core.dependencies import require_role
from supabase import Client
from typing import Dict

router = APIRouter(prefix="/settings", tags=["settings"])


def get_site_settings_service(supabase: Client = Depends(get_supabase)) -> SiteSettingsService:
    return SiteSettingsService(supabase)


@router.get("", response_model=SiteSettingsResponse)
async def get_settings(
    user_data: Dict = Depends(require_role(ADMIN, MANAGER)),
    service: SiteSettingsService = Depends(get_site_settings_service)
):
    """Get site settings"""
    return service.get_settings()


@router.put("", response_model=SiteSettingsResponse)
async def update_settings(
    settings_data: SiteSettingsUpdate,
    user_data: Dict = Depends(require_role(ADMIN, MANAGER)),
    service: SiteSettingsService = Depends(get_site_settings_service)
):
    """Update site settings"""
    return service.update_settings(settings_data)
