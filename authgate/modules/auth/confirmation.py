"""
Email confirmation reconciliation.

A confirmation link arrives with one of: provider error params, a PKCE
``code`` (optionally ``type=recovery``), or a legacy ``token_hash`` + ``type``.
``classify`` picks exactly one branch and ``ConfirmationService.reconcile``
performs at most one provider call for it, always ending in a single redirect.

Precedence: error > recovery code > token_hash > code > invalid.

A plain ``code`` that exchanges successfully is treated as confirm-then-sign-in:
the fresh session is dropped and the user lands on the login page with
``email_confirmed``. ``token_hash`` and recovery links keep their session.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional

from supabase import Client

from authgate.modules.auth import messages
from authgate.modules.auth.errors import AuthProviderError, ProviderErrorKind

logger = logging.getLogger(__name__)

_EXPIRED_CODES = {"otp_expired"}
_INVALID_CODES = {"otp_invalid", "bad_code_verifier", "validation_failed", "flow_state_not_found"}


class ConfirmationKind(str, Enum):
    ERROR = "error"
    RECOVERY = "recovery"
    TOKEN_HASH = "token_hash"
    CODE = "code"
    INVALID = "invalid"


@dataclass(frozen=True)
class ConfirmationParams:
    code: Optional[str] = None
    token_hash: Optional[str] = None
    type: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    error_description: Optional[str] = None

    @classmethod
    def from_query(cls, query: Mapping[str, str]) -> "ConfirmationParams":
        def pick(name: str) -> Optional[str]:
            value = query.get(name)
            if value is None:
                return None
            value = value.strip()
            return value or None

        return cls(
            code=pick("code"),
            token_hash=pick("token_hash"),
            type=pick("type"),
            error=pick("error"),
            error_code=pick("error_code"),
            error_description=pick("error_description"),
        )


@dataclass
class ConfirmationOutcome:
    kind: ConfirmationKind
    redirect_to: str
    message: Optional[str] = None
    session: Optional[Any] = None

    @property
    def ok(self) -> bool:
        return self.message in (None, messages.EMAIL_CONFIRMED)


def classify(params: ConfirmationParams) -> ConfirmationKind:
    if params.error or params.error_code:
        return ConfirmationKind.ERROR
    if params.type == "recovery" and params.code:
        return ConfirmationKind.RECOVERY
    if params.token_hash and params.type:
        return ConfirmationKind.TOKEN_HASH
    if params.code:
        return ConfirmationKind.CODE
    return ConfirmationKind.INVALID


def classify_link_error(params: ConfirmationParams) -> str:
    """Map provider error params to a login message code."""
    code = (params.error_code or "").lower()
    description = (params.error_description or "").lower()
    if code in _EXPIRED_CODES or "expired" in description:
        return messages.LINK_EXPIRED
    if code in _INVALID_CODES or params.error == "access_denied" or "invalid" in description:
        return messages.INVALID_CONFIRMATION_LINK
    return messages.CONFIRMATION_FAILED


def normalize_verify_type(link_type: str) -> str:
    return "signup" if link_type == "signup" else "email"


class ConfirmationService:
    def __init__(self, supabase: Client, code_verifier: Optional[str] = None):
        self.supabase = supabase
        self.code_verifier = code_verifier

    def reconcile(self, params: ConfirmationParams) -> ConfirmationOutcome:
        kind = classify(params)
        logger.info("Email confirmation request classified as %s", kind.value)
        try:
            if kind is ConfirmationKind.ERROR:
                return self._fail(kind, classify_link_error(params))
            if kind is ConfirmationKind.RECOVERY:
                return self._confirm_recovery(params.code)
            if kind is ConfirmationKind.TOKEN_HASH:
                return self._confirm_token_hash(params.token_hash, params.type)
            if kind is ConfirmationKind.CODE:
                return self._confirm_code(params.code)
            return self._fail(kind, messages.INVALID_LINK)
        except Exception as e:
            logger.exception("Unexpected error during email confirmation: %s", e)
            return self._fail(kind, messages.CONFIRMATION_FAILED)

    def _exchange(self, code: str):
        payload = {"auth_code": code}
        if self.code_verifier:
            payload["code_verifier"] = self.code_verifier
        try:
            return self.supabase.auth.exchange_code_for_session(payload)
        except Exception as e:
            raise AuthProviderError.from_exception(e) from e

    def _confirm_recovery(self, code: str) -> ConfirmationOutcome:
        try:
            response = self._exchange(code)
        except AuthProviderError as e:
            logger.warning("Recovery code exchange failed: %s", e.message)
            if e.kind is ProviderErrorKind.LINK_EXPIRED:
                return self._fail(ConfirmationKind.RECOVERY, messages.LINK_EXPIRED)
            return self._fail(ConfirmationKind.RECOVERY, messages.CONFIRMATION_FAILED)
        if not getattr(response, "session", None):
            return self._fail(ConfirmationKind.RECOVERY, messages.CONFIRMATION_FAILED)
        return ConfirmationOutcome(
            kind=ConfirmationKind.RECOVERY,
            redirect_to=messages.site_url(messages.RESET_PASSWORD_PATH),
            session=response.session,
        )

    def _confirm_token_hash(self, token_hash: str, link_type: str) -> ConfirmationOutcome:
        verify_type = normalize_verify_type(link_type)
        try:
            response = self.supabase.auth.verify_otp({"token_hash": token_hash, "type": verify_type})
        except Exception as e:
            logger.warning("OTP verification (%s) failed: %s", verify_type, e)
            return self._fail(ConfirmationKind.TOKEN_HASH, messages.CONFIRMATION_FAILED)
        user = getattr(response, "user", None)
        if not user:
            return self._fail(ConfirmationKind.TOKEN_HASH, messages.CONFIRMATION_FAILED)
        logger.info("Email confirmed via token_hash for user %s", getattr(user, "email", None))
        return ConfirmationOutcome(
            kind=ConfirmationKind.TOKEN_HASH,
            redirect_to=messages.site_url(messages.APP_ROOT),
            session=getattr(response, "session", None),
        )

    def _confirm_code(self, code: str) -> ConfirmationOutcome:
        try:
            response = self._exchange(code)
        except AuthProviderError as e:
            if e.kind is ProviderErrorKind.MISSING_VERIFIER:
                # Confirmed by the provider, but the verifier lives in another browser.
                logger.info("Code exchange without verifier; treating email as confirmed")
                return self._confirmed()
            logger.warning("Code exchange failed: %s", e.message)
            return self._fail(ConfirmationKind.CODE, messages.CONFIRMATION_FAILED)
        user = getattr(response, "user", None)
        if not user:
            return self._fail(ConfirmationKind.CODE, messages.CONFIRMATION_FAILED)
        logger.info("Email confirmed via code for user %s", getattr(user, "email", None))
        try:
            self.supabase.auth.sign_out({"scope": "local"})
        except Exception as e:
            logger.warning("Local sign-out after confirmation failed: %s", e)
        return self._confirmed()

    def _confirmed(self) -> ConfirmationOutcome:
        return ConfirmationOutcome(
            kind=ConfirmationKind.CODE,
            redirect_to=messages.login_url(message=messages.EMAIL_CONFIRMED),
            message=messages.EMAIL_CONFIRMED,
        )

    @staticmethod
    def _fail(kind: ConfirmationKind, message: str) -> ConfirmationOutcome:
        return ConfirmationOutcome(kind=kind, redirect_to=messages.login_url(message=message), message=message)
