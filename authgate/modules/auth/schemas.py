from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Any, List, Optional


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    expires_at: Optional[int] = None
    token_type: str = "bearer"
    user_id: str
    email: str


class SignupRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6)
    first_name: Optional[str] = None
    last_name: Optional[str] = None


class SignupResponse(BaseModel):
    user_id: str
    email: str
    confirmation_required: bool = True
    message: str


def _present(value: Any) -> Optional[str]:
    """Blank or non-string values count as missing."""
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


class SessionTokens(BaseModel):
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None

    @field_validator("access_token", "refresh_token", mode="before")
    @classmethod
    def blank_as_missing(cls, value: Any) -> Optional[str]:
        return _present(value)


class BootstrapResponse(BaseModel):
    ok: bool
    error: Optional[str] = None
    code: Optional[str] = None


class ResendConfirmationRequest(BaseModel):
    email: Optional[str] = None

    @field_validator("email", mode="before")
    @classmethod
    def blank_as_missing(cls, value: Any) -> Optional[str]:
        return _present(value)


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    password: str = Field(min_length=6)


class ForceLogoutRequest(BaseModel):
    reason: str = "session_expired"


class LogoutResponse(BaseModel):
    message: str
    redirect_to: str


class MessageResponse(BaseModel):
    success: bool = True
    message: str


class CurrentUserResponse(BaseModel):
    id: str
    email: Optional[str] = None
    role: str
    accessible_routes: List[str]
    user_metadata: dict = {}
