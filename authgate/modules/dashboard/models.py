# Supabase tables read by the dashboard
# Counts only; nothing here is written by this module

"""
Expected Supabase table structure (in addition to user_profiles and roles):

password_resets:
- id: uuid (primary key)
- user_id: uuid (references user_profiles.id)
- expires_at: timestamp (not null)
- used_at: timestamp (nullable) - set once the reset link has been used
- created_at: timestamp (default: now())

A reset is pending while used_at is null and expires_at is in the future.
user_profiles.last_login is stamped on every password login.
"""
