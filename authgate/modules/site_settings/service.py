import logging
from datetime import datetime, timezone
from supabase import Client
from authgate.modules.site_settings.schemas import SiteSettingsUpdate, SiteSettingsResponse
from fastapi import HTTPException

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS = {
    "site_name": "Starter Kit",
    "site_description": "A modern application starter kit",
    "primary_color": "#0070f3",
    "secondary_color": "#00ff88",
    "favicon_url": "/favicon.ico",
    "logo_setting": "square",
    "appearance_theme": "light",
}


class SiteSettingsService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def get_settings(self) -> SiteSettingsResponse:
        """First settings row, or the defaults when the table is empty or unreadable"""
        try:
            result = self.supabase.table("settings")\
                .select("*")\
                .order("created_at")\
                .limit(1)\
                .execute()
        except Exception as e:
            logger.warning("Settings table unavailable, using defaults: %s", e)
            return SiteSettingsResponse(**DEFAULT_SETTINGS)
        if not result.data:
            return SiteSettingsResponse(**DEFAULT_SETTINGS)
        return SiteSettingsResponse(**result.data[0])

    def update_settings(self, settings_data: SiteSettingsUpdate) -> SiteSettingsResponse:
        """Update the settings row, inserting it on first save"""
        try:
            update_data = settings_data.model_dump(exclude_none=True)
            update_data["updated_at"] = datetime.now(timezone.utc).isoformat()

            current = self.supabase.table("settings")\
                .select("id")\
                .order("created_at")\
                .limit(1)\
                .execute()
            if current.data:
                result = self.supabase.table("settings")\
                    .update(update_data)\
                    .eq("id", current.data[0]["id"])\
                    .execute()
            else:
                result = self.supabase.table("settings")\
                    .insert({**DEFAULT_SETTINGS, **update_data})\
                    .execute()

            if not result.data:
                raise HTTPException(status_code=500, detail="Failed to save settings")

            return SiteSettingsResponse(**result.data[0])
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
