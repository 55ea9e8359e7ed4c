from pydantic import BaseModel
from typing import Optional


class SessionStatusResponse(BaseModel):
    state: str
    reason: Optional[str] = None
    inactive_seconds: Optional[float] = None
    remaining_seconds: Optional[float] = None
    session_age_seconds: Optional[float] = None
    warning: bool = False
    strict_mode: bool = False


class ActivityResponse(BaseModel):
    last_activity: str
    status: SessionStatusResponse
