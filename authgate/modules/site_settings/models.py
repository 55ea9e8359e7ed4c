# Supabase table: settings
# This file documents the expected database schema

"""
Expected Supabase table structure:

settings (single row):
- id: bigint (primary key)
- site_name, site_description, site_image: text (nullable)
- appearance_theme, primary_color, secondary_color: text (nullable)
- logo_url, logo_horizontal_url, logo_setting, favicon_url: text (nullable)
- meta_keywords, meta_description, contact_email: text (nullable)
- social_links: jsonb (nullable)
- created_at: timestamp (default: now())
- updated_at: timestamp (nullable)
"""
