from pydantic import BaseModel
from typing import Any, Optional
from datetime import datetime


class SiteSettingsUpdate(BaseModel):
    site_name: Optional[str] = None
    site_description: Optional[str] = None
    site_image: Optional[str] = None
    appearance_theme: Optional[str] = None
    primary_color: Optional[str] = None
    secondary_color: Optional[str] = None
    logo_url: Optional[str] = None
    logo_horizontal_url: Optional[str] = None
    logo_setting: Optional[str] = None
    favicon_url: Optional[str] = None
    meta_keywords: Optional[str] = None
    meta_description: Optional[str] = None
    contact_email: Optional[str] = None
    social_links: Optional[Any] = None


class SiteSettingsResponse(SiteSettingsUpdate):
    id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
