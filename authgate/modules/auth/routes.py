import logging
from typing import Dict, Mapping, Optional

from email_validator import EmailNotValidError, validate_email
from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse, RedirectResponse
from supabase import Client

from authgate.config import settings
from authgate.config.access_config import get_accessible_routes
from authgate.core import errors
from authgate.core.cookies import clear_session_cookies, read_session_tokens, set_session_cookies
from authgate.core.dependencies import get_current_role, get_current_token, get_current_user, get_optional_token
from authgate.core.rate_limit import limiter
from authgate.database.supabase_client import get_request_supabase
from authgate.modules.auth import messages
from authgate.modules.auth.confirmation import ConfirmationParams, ConfirmationService
from authgate.modules.auth.errors import AuthProviderError, ProviderErrorKind
from authgate.modules.auth.schemas import (
    LoginRequest, SignupRequest, TokenResponse, SignupResponse, BootstrapResponse,
    ForgotPasswordRequest, ResetPasswordRequest, ForceLogoutRequest, LogoutResponse,
    MessageResponse, CurrentUserResponse, SessionTokens, ResendConfirmationRequest,
)
from authgate.modules.auth.service import AuthService

logger = logging.getLogger(__name__)

# Bare paths shared with the frontend (email links, browser bridge)
confirm_router = APIRouter(tags=["auth"])
router = APIRouter(prefix="/auth", tags=["auth"])

CODE_VERIFIER_SUFFIX = "-code-verifier"


def get_request_auth_service(supabase: Client = Depends(get_request_supabase)) -> AuthService:
    return AuthService(supabase)


def find_code_verifier(cookies: Mapping[str, str]) -> Optional[str]:
    """PKCE verifier stored by the browser client (sb-<ref>-auth-token-code-verifier)."""
    for name, value in cookies.items():
        if name.endswith(CODE_VERIFIER_SUFFIX) and value:
            return value.strip('"')
    return None


@confirm_router.get("/auth/confirm")
@confirm_router.get("/api/auth/confirm")
async def confirm_email(request: Request, supabase: Client = Depends(get_request_supabase)):
    """Reconcile an email link and redirect exactly once."""
    params = ConfirmationParams.from_query(request.query_params)
    service = ConfirmationService(supabase, code_verifier=find_code_verifier(request.cookies))
    outcome = service.reconcile(params)

    response = RedirectResponse(outcome.redirect_to, status_code=303)
    if outcome.session is not None:
        set_session_cookies(
            response,
            outcome.session.access_token,
            outcome.session.refresh_token,
            expires_in=getattr(outcome.session, "expires_in", None),
        )
    for name in request.cookies:
        if name.endswith(CODE_VERIFIER_SUFFIX):
            response.delete_cookie(name, path="/")
    return response


@confirm_router.post("/api/auth/confirm", response_model=BootstrapResponse)
async def bootstrap_session(
    payload: Optional[SessionTokens] = None,
    service: AuthService = Depends(get_request_auth_service)
):
    """Persist a browser-obtained token pair into HTTP-only cookies."""
    tokens = payload or SessionTokens()
    access_token, refresh_token = tokens.access_token, tokens.refresh_token
    if not access_token or not refresh_token:
        return JSONResponse(
            status_code=400,
            content={"ok": False, "error": "Missing tokens", "code": errors.AUTH_MISSING_TOKENS},
        )

    try:
        session = service.bootstrap_session(access_token, refresh_token)
    except AuthProviderError as e:
        logger.warning("Session bootstrap rejected: %s", e.message)
        return JSONResponse(
            status_code=400,
            content={"ok": False, "error": e.message, "code": errors.AUTH_INVALID_TOKEN},
        )
    except Exception as e:
        logger.exception("Session bootstrap failed: %s", e)
        return JSONResponse(
            status_code=500,
            content={"ok": False, "error": "Internal server error", "code": errors.SERVER_ERROR},
        )

    response = JSONResponse(content={"ok": True})
    set_session_cookies(
        response,
        session.access_token,
        session.refresh_token,
        expires_in=getattr(session, "expires_in", None),
    )
    return response


@confirm_router.post("/api/auth/resend-confirmation")
@limiter.limit(settings.resend_rate_limit)
async def resend_confirmation(
    request: Request,
    payload: Optional[ResendConfirmationRequest] = None,
    service: AuthService = Depends(get_request_auth_service)
):
    """Resend the signup confirmation email"""
    email = (payload or ResendConfirmationRequest()).email
    if not email:
        return errors.error_response(
            errors.VALIDATION_MISSING_FIELD,
            "Email is required",
            details={"field": "email"},
        )
    try:
        email = validate_email(email, check_deliverability=False).normalized
    except EmailNotValidError:
        return errors.error_response(
            errors.VALIDATION_INVALID_EMAIL,
            "Invalid email format",
            details={"field": "email"},
        )

    try:
        service.resend_confirmation(email)
    except AuthProviderError as e:
        logger.warning("Resend confirmation failed for %s: %s", email, e.message)
        if e.kind is ProviderErrorKind.RATE_LIMITED:
            return errors.rate_limited_response("Too many confirmation emails requested.", e.retry_after)
        if e.kind is ProviderErrorKind.ALREADY_CONFIRMED:
            return errors.error_response(errors.VALIDATION_EMAIL_ALREADY_CONFIRMED, "Email is already confirmed")
        return errors.error_response(
            errors.AUTH_CONFIRMATION_FAILED,
            e.message or "Failed to resend confirmation email",
        )
    return MessageResponse(message="Confirmation email sent successfully")


@router.post("/signup", response_model=SignupResponse, status_code=201)
@limiter.limit(settings.auth_rate_limit)
async def signup(
    request: Request,
    signup_data: SignupRequest,
    service: AuthService = Depends(get_request_auth_service)
):
    """Register a new user and send the confirmation email"""
    return service.signup(signup_data)


@router.post("/login", response_model=TokenResponse)
@limiter.limit(settings.auth_rate_limit)
async def login(
    request: Request,
    response: Response,
    login_data: LoginRequest,
    service: AuthService = Depends(get_request_auth_service)
):
    """Login, set the session cookies and return the token pair"""
    tokens = service.login(login_data)
    set_session_cookies(response, tokens.access_token, tokens.refresh_token)
    return tokens


def _sign_out(request: Request, service: AuthService, token: Optional[str]) -> None:
    access_token, refresh_token = read_session_tokens(request.cookies)
    service.logout(access_token or token, refresh_token)


@router.post("/logout", response_model=LogoutResponse)
async def logout(
    request: Request,
    response: Response,
    token: Optional[str] = Depends(get_optional_token),
    service: AuthService = Depends(get_request_auth_service)
):
    """Logout, revoke the session and clear all session cookies"""
    _sign_out(request, service, token)
    clear_session_cookies(response, request.cookies)
    return LogoutResponse(message="Logged out successfully", redirect_to=messages.login_url())


@router.post("/force-logout", response_model=LogoutResponse)
async def force_logout(
    request: Request,
    response: Response,
    payload: Optional[ForceLogoutRequest] = None,
    token: Optional[str] = Depends(get_optional_token),
    service: AuthService = Depends(get_request_auth_service)
):
    """Logout triggered by the session policy; the reason is shown on the login page"""
    reason = (payload or ForceLogoutRequest()).reason
    logger.info("Force logout (%s)", reason)
    _sign_out(request, service, token)
    clear_session_cookies(response, request.cookies)
    return LogoutResponse(
        message=messages.describe(reason) or "Logged out",
        redirect_to=messages.login_url(reason=reason),
    )


@router.post("/forgot-password", response_model=MessageResponse)
@limiter.limit(settings.password_reset_rate_limit)
async def forgot_password(
    request: Request,
    data: ForgotPasswordRequest,
    service: AuthService = Depends(get_request_auth_service)
):
    """Send a password recovery email"""
    try:
        service.request_password_reset(data.email)
    except AuthProviderError as e:
        return errors.rate_limited_response("Too many password reset attempts.", e.retry_after)
    return MessageResponse(message="If an account with that email exists, a password reset link has been sent.")


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(
    request: Request,
    data: ResetPasswordRequest,
    token: str = Depends(get_current_token),
    current_user: Dict = Depends(get_current_user),
    service: AuthService = Depends(get_request_auth_service)
):
    """Set a new password for the signed-in (or recovering) user"""
    _, refresh_token = read_session_tokens(request.cookies)
    service.update_password(current_user["id"], data.password, access_token=token, refresh_token=refresh_token)
    return MessageResponse(message="Password updated successfully")


@router.get("/me", response_model=CurrentUserResponse)
async def get_me(
    current_user: Dict = Depends(get_current_user),
    role: str = Depends(get_current_role),
):
    """Get current authenticated user with role and accessible routes (for frontend UI)."""
    return CurrentUserResponse(
        id=current_user["id"],
        email=current_user.get("email"),
        role=role,
        accessible_routes=get_accessible_routes(role),
        user_metadata=current_user.get("user_metadata") or {},
    )
