# Supabase tables: user_profiles, auth.users
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py
# Authentication is handled by Supabase Auth (auth.users table)

"""
Expected Supabase table structure:

user_profiles:
- id: uuid (primary key, references auth.users.id on delete cascade)
- email: text (unique, not null)
- role_id: uuid (references roles.id; defaults to the 'user' role)
- first_name: text (nullable)
- last_name: text (nullable)
- is_active: boolean (default: true)
- last_login: timestamptz (nullable)
- profile: text (nullable)
- created_at: timestamptz (default: now())
- updated_at: timestamptz (default: now())

RPC get_user_role(user_id uuid) returns text: role name fallback used when
the profile join yields nothing.

Note: Authentication data (password, tokens) is stored in auth.users table
managed by Supabase Auth. Creating and deleting auth users needs the
service_role key.
"""
