"""
Seed Roles Script
Populates the roles table with the admin, manager and user roles from the
access config. Safe to re-run: existing roles get their description updated.

Usage: python -m authgate.scripts.seed_roles
"""

import sys
import logging

from authgate.config.access_config import ROLES, ROLE_DESCRIPTIONS
from authgate.database.supabase_client import get_service_supabase
from supabase import Client

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def seed_roles(supabase: Client) -> int:
    """Seed roles from config"""
    logger.info("Seeding roles...")

    created_count = 0
    updated_count = 0

    for name in ROLES:
        description = ROLE_DESCRIPTIONS.get(name)
        try:
            existing = supabase.table("roles")\
                .select("id")\
                .eq("name", name)\
                .execute()

            if existing.data:
                supabase.table("roles")\
                    .update({"description": description})\
                    .eq("name", name)\
                    .execute()
                updated_count += 1
                logger.debug(f"Updated role: {name}")
            else:
                supabase.table("roles").insert({
                    "name": name,
                    "description": description
                }).execute()
                created_count += 1
                logger.debug(f"Created role: {name}")
        except Exception as e:
            logger.error(f"Error processing role {name}: {e}")

    logger.info(f"Roles seeded: {created_count} created, {updated_count} updated")
    return created_count + updated_count


def main():
    """Main function to seed roles"""
    try:
        supabase = get_service_supabase()
        role_count = seed_roles(supabase)
        logger.info(f"Seeding completed: {role_count} roles processed")
    except Exception as e:
        logger.error(f"Error during seeding: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
