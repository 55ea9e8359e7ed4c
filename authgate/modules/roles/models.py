# Supabase table: roles
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:

roles:
- id: uuid (primary key)
- name: text (not null, unique) - "admin", "manager" or "user"
- description: text (nullable)
- created_at: timestamp (default: now())
- updated_at: timestamp (nullable)

user_profiles.role_id references roles.id. A role cannot be deleted while
any profile still points at it.
"""
