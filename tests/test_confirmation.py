"""
Tests for email confirmation reconciliation (authgate.modules.auth.confirmation).

Run: pytest tests/test_confirmation.py -v
"""

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from authgate.modules.auth import messages
from authgate.modules.auth.confirmation import (
    ConfirmationKind,
    ConfirmationParams,
    ConfirmationService,
    classify,
    classify_link_error,
    normalize_verify_type,
)
from tests.conftest import ProviderError, make_session, make_user


def reconcile(supabase, code_verifier=None, **query):
    return ConfirmationService(supabase, code_verifier=code_verifier).reconcile(ConfirmationParams.from_query(query))


# ==================== Classification ====================

class TestClassify:

    @pytest.mark.parametrize("query, expected", [
        ({"error": "access_denied", "code": "abc"}, ConfirmationKind.ERROR),
        ({"error_code": "otp_expired", "token_hash": "h", "type": "signup"}, ConfirmationKind.ERROR),
        ({"code": "abc", "type": "recovery"}, ConfirmationKind.RECOVERY),
        ({"token_hash": "h", "type": "signup", "code": "abc"}, ConfirmationKind.TOKEN_HASH),
        ({"code": "abc"}, ConfirmationKind.CODE),
        ({"token_hash": "h"}, ConfirmationKind.INVALID),
        ({}, ConfirmationKind.INVALID),
    ])
    def test_priority_order(self, query, expected):
        assert classify(ConfirmationParams.from_query(query)) is expected

    def test_blank_values_count_as_absent(self):
        params = ConfirmationParams.from_query({"code": "  ", "error": ""})
        assert params.code is None
        assert params.error is None
        assert classify(params) is ConfirmationKind.INVALID

    @pytest.mark.parametrize("query, expected", [
        ({"error_code": "otp_expired"}, messages.LINK_EXPIRED),
        ({"error": "server_error", "error_description": "Email link has expired"}, messages.LINK_EXPIRED),
        ({"error": "access_denied"}, messages.INVALID_CONFIRMATION_LINK),
        ({"error_code": "bad_code_verifier"}, messages.INVALID_CONFIRMATION_LINK),
        ({"error": "server_error", "error_description": "Something broke"}, messages.CONFIRMATION_FAILED),
    ])
    def test_link_error_codes(self, query, expected):
        assert classify_link_error(ConfirmationParams.from_query(query)) == expected

    def test_verify_type_normalisation(self):
        assert normalize_verify_type("signup") == "signup"
        assert normalize_verify_type("email") == "email"
        assert normalize_verify_type("magiclink") == "email"


# ==================== Reconciliation ====================

class TestReconcile:

    def test_error_params_make_no_provider_calls(self):
        supabase = MagicMock()
        outcome = reconcile(supabase, error="access_denied", error_code="otp_expired", code="abc")

        assert supabase.auth.method_calls == []
        assert outcome.redirect_to == messages.login_url(message=messages.LINK_EXPIRED)
        assert outcome.session is None

    def test_recovery_success_goes_to_reset_password_with_session(self):
        supabase = MagicMock()
        session = make_session()
        supabase.auth.exchange_code_for_session.return_value = SimpleNamespace(user=make_user(), session=session)

        outcome = reconcile(supabase, code_verifier="verifier-1", code="abc", type="recovery")

        supabase.auth.exchange_code_for_session.assert_called_once_with(
            {"auth_code": "abc", "code_verifier": "verifier-1"}
        )
        assert outcome.kind is ConfirmationKind.RECOVERY
        assert outcome.redirect_to == messages.site_url(messages.RESET_PASSWORD_PATH)
        assert outcome.session is session
        assert outcome.ok

    def test_recovery_expired(self):
        supabase = MagicMock()
        supabase.auth.exchange_code_for_session.side_effect = ProviderError("Email link is invalid or has expired", code="otp_expired")

        outcome = reconcile(supabase, code="abc", type="recovery")

        assert outcome.redirect_to == messages.login_url(message=messages.LINK_EXPIRED)
        assert not outcome.ok

    def test_token_hash_success_lands_on_app_root(self):
        supabase = MagicMock()
        session = make_session()
        supabase.auth.verify_otp.return_value = SimpleNamespace(user=make_user(), session=session)

        outcome = reconcile(supabase, token_hash="hash-1", type="signup")

        supabase.auth.verify_otp.assert_called_once_with({"token_hash": "hash-1", "type": "signup"})
        supabase.auth.exchange_code_for_session.assert_not_called()
        assert outcome.redirect_to == messages.site_url(messages.APP_ROOT)
        assert outcome.session is session

    def test_token_hash_failure(self):
        supabase = MagicMock()
        supabase.auth.verify_otp.side_effect = ProviderError("Token has expired or is invalid")

        outcome = reconcile(supabase, token_hash="hash-1", type="email")

        assert outcome.redirect_to == messages.login_url(message=messages.CONFIRMATION_FAILED)

    def test_code_success_signs_out_locally_without_session(self):
        supabase = MagicMock()
        supabase.auth.exchange_code_for_session.return_value = SimpleNamespace(user=make_user(), session=make_session())

        outcome = reconcile(supabase, code="abc")

        supabase.auth.sign_out.assert_called_once_with({"scope": "local"})
        assert outcome.redirect_to == messages.login_url(message=messages.EMAIL_CONFIRMED)
        assert outcome.session is None
        assert outcome.ok

    def test_code_without_verifier_counts_as_confirmed(self):
        supabase = MagicMock()
        supabase.auth.exchange_code_for_session.side_effect = ProviderError(
            "invalid request: both auth code and code verifier should be non-empty"
        )

        outcome = reconcile(supabase, code="abc")

        assert outcome.message == messages.EMAIL_CONFIRMED
        supabase.auth.sign_out.assert_not_called()

    def test_code_other_failure(self):
        supabase = MagicMock()
        supabase.auth.exchange_code_for_session.side_effect = ProviderError("Database error", status=500)

        outcome = reconcile(supabase, code="abc")

        assert outcome.redirect_to == messages.login_url(message=messages.CONFIRMATION_FAILED)

    def test_missing_params_is_invalid_link(self):
        supabase = MagicMock()
        outcome = reconcile(supabase)

        assert outcome.kind is ConfirmationKind.INVALID
        assert outcome.redirect_to == messages.login_url(message=messages.INVALID_LINK)
        assert supabase.auth.method_calls == []

    def test_replaying_a_consumed_link_ends_on_login(self):
        supabase = MagicMock()
        supabase.auth.verify_otp.side_effect = [
            SimpleNamespace(user=make_user(), session=make_session()),
            ProviderError("Email link is invalid or has expired", code="otp_expired"),
        ]

        first = reconcile(supabase, token_hash="hash-1", type="signup")
        second = reconcile(supabase, token_hash="hash-1", type="signup")

        assert first.ok
        assert second.redirect_to.startswith(messages.site_url(messages.LOGIN_PATH))
        assert second.session is None

    def test_unexpected_exception_is_not_raised(self, monkeypatch):
        supabase = MagicMock()

        def boom(self, code):
            raise RuntimeError("unexpected")

        monkeypatch.setattr(ConfirmationService, "_confirm_code", boom)

        outcome = reconcile(supabase, code="abc")

        assert outcome.redirect_to == messages.login_url(message=messages.CONFIRMATION_FAILED)
