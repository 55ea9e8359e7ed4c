# Supabase Auth
# This module uses Supabase's built-in authentication system.
# No custom tables are required for sign-in itself; Supabase Auth handles:
# - User registration and email confirmation (auth.users table)
# - PKCE code / token_hash verification
# - Access/refresh token issuance and refresh

"""
Supabase Auth operations used by this service:
- auth.sign_up() / auth.resend() - Register users and (re)send confirmation mail
- auth.exchange_code_for_session() / auth.verify_otp() - Confirm email links
- auth.sign_in_with_password() - Authenticate users
- auth.set_session() - Adopt a token pair produced in the browser
- auth.reset_password_for_email() / auth.update_user() - Password recovery
- auth.get_user() - Resolve the user behind an access token
- auth.sign_out() - Revoke a session

Session tokens are mirrored into HTTP-only cookies (sb-access-token,
sb-refresh-token) together with the lastActivity/sessionStart timestamps
read by the session timeout policy.
"""
