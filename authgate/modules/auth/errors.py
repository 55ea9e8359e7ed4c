"""Classification of Supabase Auth errors into the cases the flows branch on."""

import re
from enum import Enum
from typing import Optional, Union


class ProviderErrorKind(str, Enum):
    MISSING_VERIFIER = "missing_verifier"
    LINK_EXPIRED = "link_expired"
    INVALID_LINK = "invalid_link"
    RATE_LIMITED = "rate_limited"
    INVALID_CREDENTIALS = "invalid_credentials"
    EMAIL_NOT_CONFIRMED = "email_not_confirmed"
    ALREADY_REGISTERED = "already_registered"
    ALREADY_CONFIRMED = "already_confirmed"
    NETWORK = "network"
    UNKNOWN = "unknown"


class AuthProviderError(Exception):
    """A failed identity provider call, carrying the provider's message."""

    def __init__(self, message: str, kind: Optional[ProviderErrorKind] = None, status: Optional[int] = None, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.status = status
        self.code = code
        self.kind = kind or classify_provider_error(message, code=code, status=status)

    @classmethod
    def from_exception(cls, exc: Exception) -> "AuthProviderError":
        if isinstance(exc, AuthProviderError):
            return exc
        message = getattr(exc, "message", None) or str(exc) or exc.__class__.__name__
        return cls(
            message,
            status=getattr(exc, "status", None),
            code=getattr(exc, "code", None),
        )

    @property
    def retry_after(self) -> int:
        return parse_retry_after(self.message)


def classify_provider_error(
    error: Union[str, Exception],
    code: Optional[str] = None,
    status: Optional[int] = None,
) -> ProviderErrorKind:
    if isinstance(error, Exception):
        code = code or getattr(error, "code", None)
        status = status or getattr(error, "status", None)
        error = getattr(error, "message", None) or str(error)
    message = (error or "").lower()
    code = (code or "").lower()

    if "code verifier" in message or "invalid grant" in message or "invalid_grant" in message or code == "bad_code_verifier":
        return ProviderErrorKind.MISSING_VERIFIER
    if status == 429 or "rate limit" in message or "too many" in message or code.startswith("over_"):
        return ProviderErrorKind.RATE_LIMITED
    if code == "otp_expired" or "expired" in message:
        return ProviderErrorKind.LINK_EXPIRED
    if code == "invalid_credentials" or "invalid login credentials" in message:
        return ProviderErrorKind.INVALID_CREDENTIALS
    if code == "email_not_confirmed" or "email not confirmed" in message:
        return ProviderErrorKind.EMAIL_NOT_CONFIRMED
    if code in ("user_already_exists", "email_exists") or "already registered" in message or "already exists" in message:
        return ProviderErrorKind.ALREADY_REGISTERED
    if "already confirmed" in message:
        return ProviderErrorKind.ALREADY_CONFIRMED
    if code == "otp_invalid" or ("invalid" in message and any(w in message for w in ("link", "token", "otp", "flow state"))):
        return ProviderErrorKind.INVALID_LINK
    if any(w in message for w in ("network", "fetch", "connection", "timed out", "timeout")):
        return ProviderErrorKind.NETWORK
    return ProviderErrorKind.UNKNOWN


_SECONDS = re.compile(r"(\d+)\s*seconds?")


def parse_retry_after(message: str, default: int = 60) -> int:
    match = _SECONDS.search(message or "")
    return int(match.group(1)) if match else default
