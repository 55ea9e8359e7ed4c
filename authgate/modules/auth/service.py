import hashlib
import logging
import time
from datetime import datetime, timezone
from supabase import Client
from authgate.modules.auth.schemas import LoginRequest, SignupRequest, TokenResponse, SignupResponse
from authgate.modules.auth.errors import AuthProviderError, ProviderErrorKind
from authgate.modules.auth import messages
from authgate.database.supabase_client import get_service_supabase
from fastapi import HTTPException
from typing import Dict, Any, Optional

logger = logging.getLogger(__name__)

# In-memory cache for get_current_user to reduce Supabase auth calls (e.g. many parallel requests with same token)
_AUTH_USER_CACHE: Dict[str, tuple] = {}
_AUTH_CACHE_TTL_SEC = 60
_AUTH_CACHE_MAX_SIZE = 500


def clear_user_cache() -> None:
    _AUTH_USER_CACHE.clear()


class AuthService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def signup(self, signup_data: SignupRequest) -> SignupResponse:
        """Register a new user; Supabase sends the confirmation email."""
        user_metadata = {}
        if signup_data.first_name:
            user_metadata["first_name"] = signup_data.first_name
        if signup_data.last_name:
            user_metadata["last_name"] = signup_data.last_name
        try:
            auth_response = self.supabase.auth.sign_up({
                "email": signup_data.email,
                "password": signup_data.password,
                "options": {
                    "email_redirect_to": messages.site_url(messages.CONFIRM_PATH),
                    "data": user_metadata,
                },
            })
        except Exception as e:
            error = AuthProviderError.from_exception(e)
            if error.kind is ProviderErrorKind.ALREADY_REGISTERED:
                raise HTTPException(status_code=400, detail="User already exists")
            if error.kind is ProviderErrorKind.RATE_LIMITED:
                raise HTTPException(status_code=429, detail="Too many signup attempts, please try again later")
            raise HTTPException(status_code=500, detail=f"Registration failed: {error.message}")

        if not auth_response.user:
            raise HTTPException(status_code=400, detail="Failed to register user")

        confirmation_required = auth_response.session is None
        return SignupResponse(
            user_id=auth_response.user.id,
            email=auth_response.user.email or signup_data.email,
            confirmation_required=confirmation_required,
            message=(
                "Check your email to confirm your account"
                if confirmation_required
                else "User registered successfully"
            ),
        )

    def login(self, login_data: LoginRequest) -> TokenResponse:
        """Authenticate user using Supabase Auth"""
        try:
            auth_response = self.supabase.auth.sign_in_with_password({
                "email": login_data.email,
                "password": login_data.password
            })
        except Exception as e:
            error = AuthProviderError.from_exception(e)
            logger.info("Login failed for %s: %s", login_data.email, error.kind.value)
            if error.kind is ProviderErrorKind.EMAIL_NOT_CONFIRMED:
                raise HTTPException(status_code=403, detail="Please verify your email first")
            if error.kind is ProviderErrorKind.RATE_LIMITED:
                raise HTTPException(status_code=429, detail="Too many authentication attempts, please try again later")
            if error.kind is ProviderErrorKind.NETWORK:
                raise HTTPException(status_code=503, detail="Connection failed. Please try again.")
            raise HTTPException(status_code=401, detail="Invalid email or password")

        if not auth_response.user or not auth_response.session:
            raise HTTPException(status_code=401, detail="Invalid credentials")

        session = auth_response.session
        self._stamp_last_login(auth_response.user.id)
        return TokenResponse(
            access_token=session.access_token,
            refresh_token=session.refresh_token,
            expires_at=getattr(session, "expires_at", None),
            token_type="bearer",
            user_id=auth_response.user.id,
            email=auth_response.user.email or login_data.email
        )

    def _stamp_last_login(self, user_id: str) -> None:
        try:
            self.supabase.table("user_profiles")\
                .update({"last_login": datetime.now(timezone.utc).isoformat()})\
                .eq("id", user_id)\
                .execute()
        except Exception as e:
            logger.warning("Failed to update last login for %s: %s", user_id, e)

    def get_current_user(self, token: str) -> Dict[str, Any]:
        """Get current user details from Supabase Auth token. Uses short TTL cache to reduce auth API calls."""
        try:
            cache_key = hashlib.sha256(token.encode()).hexdigest()
            now = time.monotonic()
            if cache_key in _AUTH_USER_CACHE:
                user_data, expiry = _AUTH_USER_CACHE[cache_key]
                if now < expiry:
                    return user_data
                del _AUTH_USER_CACHE[cache_key]
            user_response = self.supabase.auth.get_user(jwt=token)
            if not user_response or not user_response.user:
                raise HTTPException(status_code=401, detail="Invalid or expired token")
            user = user_response.user
            user_data = {
                "id": user.id,
                "email": user.email,
                "user_metadata": user.user_metadata or {},
                "app_metadata": user.app_metadata or {},
                "created_at": user.created_at,
                "updated_at": user.updated_at
            }
            if len(_AUTH_USER_CACHE) < _AUTH_CACHE_MAX_SIZE:
                _AUTH_USER_CACHE[cache_key] = (user_data, now + _AUTH_CACHE_TTL_SEC)
            return user_data
        except HTTPException:
            raise
        except Exception as e:
            error_msg = str(e)
            if "JWT" in error_msg or "expired" in error_msg.lower() or "invalid" in error_msg.lower():
                raise HTTPException(status_code=401, detail="Invalid or expired token")
            raise HTTPException(status_code=401, detail="Authentication failed")

    def bootstrap_session(self, access_token: str, refresh_token: str):
        """Adopt a token pair obtained in the browser. Returns the provider session."""
        try:
            response = self.supabase.auth.set_session(access_token, refresh_token)
        except Exception as e:
            raise AuthProviderError.from_exception(e) from e
        session = getattr(response, "session", None)
        if session is None:
            raise AuthProviderError("Session could not be established", kind=ProviderErrorKind.UNKNOWN)
        return session

    def logout(self, access_token: Optional[str] = None, refresh_token: Optional[str] = None) -> bool:
        """Revoke the session behind the given tokens. Failures are logged, never raised."""
        try:
            if access_token and refresh_token:
                self.supabase.auth.set_session(access_token, refresh_token)
            self.supabase.auth.sign_out()
            return True
        except Exception as e:
            logger.error("Error signing out: %s", e)
            return False

    def resend_confirmation(self, email: str) -> None:
        try:
            self.supabase.auth.resend({
                "type": "signup",
                "email": email,
                "options": {"email_redirect_to": messages.site_url(messages.CONFIRM_PATH)},
            })
        except Exception as e:
            raise AuthProviderError.from_exception(e) from e

    def request_password_reset(self, email: str) -> None:
        """Send a recovery link. Unknown addresses are not revealed to the caller."""
        try:
            self.supabase.auth.reset_password_for_email(
                email,
                {"redirect_to": messages.site_url(messages.CONFIRM_PATH, type="recovery")},
            )
        except Exception as e:
            error = AuthProviderError.from_exception(e)
            if error.kind is ProviderErrorKind.RATE_LIMITED:
                raise error from e
            logger.error("Password reset request failed for %s: %s", email, error.message)

    def update_password(
        self,
        user_id: str,
        password: str,
        access_token: Optional[str] = None,
        refresh_token: Optional[str] = None,
    ) -> None:
        """Set a new password for the session owner.

        With a full token pair the user's own session performs the update;
        a bearer-only caller falls back to the admin API.
        """
        try:
            if access_token and refresh_token:
                self.supabase.auth.set_session(access_token, refresh_token)
                self.supabase.auth.update_user({"password": password})
                return
            admin_client = get_service_supabase()
            response = admin_client.auth.admin.update_user_by_id(user_id, {"password": password})
            if not response.user:
                raise HTTPException(status_code=404, detail="User not found")
        except HTTPException:
            raise
        except Exception as e:
            error = AuthProviderError.from_exception(e)
            logger.warning("Password update failed for %s: %s", user_id, error.message)
            raise HTTPException(status_code=400, detail=f"Failed to update password: {error.message}")
