from datetime import datetime
from typing import Dict

from fastapi import APIRouter, Depends, Request, Response

from authgate.core.cookies import iso_now
from authgate.core.dependencies import get_current_user
from authgate.modules.sessions.schemas import ActivityResponse, SessionStatusResponse
from authgate.modules.sessions.store import CookieSessionStore
from authgate.modules.sessions.timeout import (
    LAST_ACTIVITY_KEY, STRICT_SESSION_MODE_KEY, SessionStatus, evaluate_store, utc_now,
)

router = APIRouter(prefix="/session", tags=["session"])


def _status_response(store: CookieSessionStore, status: SessionStatus) -> SessionStatusResponse:
    return SessionStatusResponse(
        state=status.state.value,
        reason=status.reason,
        inactive_seconds=status.inactive_seconds,
        remaining_seconds=status.remaining_seconds,
        session_age_seconds=status.session_age_seconds,
        warning=status.warning,
        strict_mode=store.get(STRICT_SESSION_MODE_KEY) == "true",
    )


@router.get("/status", response_model=SessionStatusResponse)
async def session_status(request: Request, current_user: Dict = Depends(get_current_user)):
    """Timeout state of the current session. Polling this does not count as activity."""
    store = CookieSessionStore(request.cookies)
    return _status_response(store, evaluate_store(store))


@router.post("/activity", response_model=ActivityResponse)
async def record_activity(
    request: Request,
    response: Response,
    current_user: Dict = Depends(get_current_user),
):
    """Record user activity for the current session"""
    now: datetime = utc_now()
    store = CookieSessionStore(request.cookies)
    store.set(LAST_ACTIVITY_KEY, iso_now(now))
    store.apply(response)
    return ActivityResponse(last_activity=iso_now(now), status=_status_response(store, evaluate_store(store, now)))
