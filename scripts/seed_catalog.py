#!/usr/bin/env python
"""Script to seed a starter service catalog and an admin account.

Usage:
    python scripts/seed_catalog.py --admin-phone 0901234567 --admin-name "Shop Owner"

Requirements:
    - SUPABASE_URL and SUPABASE_SECRET_KEY environment variables must be set

Note:
    - Services that already exist (same name and category) are skipped
    - An existing user with the admin phone is promoted to admin
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Add the project root to the path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.core.supabase import get_supabase_client
from src.models.user import UserRole, UserStatus
from src.services.catalog_service import ServiceCatalogService
from src.services.user_service import UserService

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Prices in VND
STARTER_CATALOG = [
    {"name": "Wash & fold", "category": "Washing", "unit": "kg", "price": 15000},
    {"name": "Express wash", "category": "Washing", "unit": "kg", "price": 25000},
    {"name": "Blanket wash", "category": "Washing", "unit": "piece", "price": 50000},
    {"name": "Shirt dry cleaning", "category": "Dry cleaning", "unit": "piece", "price": 35000},
    {"name": "Suit dry cleaning", "category": "Dry cleaning", "unit": "set", "price": 120000},
    {"name": "Ironing", "category": "Ironing", "unit": "piece", "price": 10000},
    {"name": "Shoe cleaning", "category": "Specialty", "unit": "pair", "price": 60000},
]


async def seed_services(catalog: ServiceCatalogService) -> int:
    """Insert starter services that are not present yet.

    Returns:
        int: Number of services created.
    """
    existing = await catalog.list_services(active_only=False)
    present = {(s["name"], s["category"]) for s in existing}

    created = 0
    for entry in STARTER_CATALOG:
        if (entry["name"], entry["category"]) in present:
            logger.info("Skipping existing service: %s", entry["name"])
            continue
        await catalog.create_service({**entry, "active": True})
        created += 1
    return created


async def seed_admin(users: UserService, phone: str, name: str) -> None:
    """Create the admin account or promote an existing user."""
    user = await users.find_by_phone(phone)
    if user:
        if user["role"] != UserRole.ADMIN.value:
            users.supabase.table("users").update({"role": UserRole.ADMIN.value}).eq("id", user["id"]).execute()
            logger.info("Promoted %s to admin", user["id"])
        else:
            logger.info("Admin %s already exists", user["id"])
        return

    response = (
        users.supabase.table("users")
        .insert(
            {
                "phone": users.normalize(phone),
                "name": name,
                "role": UserRole.ADMIN.value,
                "status": UserStatus.ACTIVE.value,
                "is_verified": True,
            }
        )
        .execute()
    )
    logger.info("Created admin %s", response.data[0]["id"])


async def main() -> int:
    parser = argparse.ArgumentParser(description="Seed the laundry service catalog")
    parser.add_argument("--admin-phone", help="Phone number of the admin account")
    parser.add_argument("--admin-name", default="Admin", help="Display name of the admin account")
    args = parser.parse_args()

    client = get_supabase_client()

    created = await seed_services(ServiceCatalogService(client))
    logger.info("Created %d services", created)

    if args.admin_phone:
        await seed_admin(UserService(client), args.admin_phone, args.admin_name)

    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
