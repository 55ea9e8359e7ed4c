from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional, List


class Settings(BaseSettings):
    # Supabase (NEXT_PUBLIC_* names are shared with the frontend's .env)
    supabase_url: str = Field(
        default="",
        validation_alias=AliasChoices("supabase_url", "next_public_supabase_url"),
    )
    supabase_key: str = Field(
        default="",
        validation_alias=AliasChoices("supabase_key", "next_public_supabase_anon_key"),
    )
    supabase_service_role_key: Optional[str] = None  # Required for admin user creation/deletion

    # Frontend origin used to build redirect targets and email links
    site_url: str = Field(
        default="http://localhost:3000",
        validation_alias=AliasChoices("site_url", "next_public_site_url"),
    )

    # App
    app_name: str = "authgate"
    debug: bool = False
    environment: str = "development"  # development | staging | production
    log_level: str = "INFO"
    cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000"

    # Rate limits (slowapi format)
    rate_limit: str = "100/minute"
    auth_rate_limit: str = "5/15minutes"
    resend_rate_limit: str = "3/hour"
    password_reset_rate_limit: str = "3/hour"

    # Session policy
    session_timeout_seconds: int = 30 * 60
    session_warning_seconds: int = 60
    session_check_interval_seconds: int = 60
    max_session_duration_seconds: int = 24 * 60 * 60
    strict_session_timeout_seconds: int = 15 * 60
    strict_session_warning_seconds: int = 2 * 60

    # Cookies
    cookie_secure: Optional[bool] = None  # None -> secure only in production
    cookie_samesite: str = "lax"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def use_secure_cookies(self) -> bool:
        if self.cookie_secure is not None:
            return self.cookie_secure
        return self.is_production

    def get_cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    def site_path(self, path: str) -> str:
        """Absolute frontend URL for a path such as /auth/login."""
        return f"{self.site_url.rstrip('/')}{path}"

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        env_prefix="",
        extra="ignore",
        populate_by_name=True,
    )


settings = Settings()
