#!/usr/bin/env python3
"""
Legacy role backfill.

Copies the old singular `users.role` value into the canonical `users.roles`
collection for every profile whose `roles` is NULL. Run it once per
database; afterwards only `roles` is read or written.

The account used must be allowed by RLS to update every profile (an admin).

Usage:
    python scripts/migrate_legacy_roles.py --email admin@example.com --password ...
    MIGRATION_EMAIL=... MIGRATION_PASSWORD=... python scripts/migrate_legacy_roles.py
"""

import argparse
import asyncio
import logging
import os
import sys

# Add the project root to the path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from reembolso.db.client import create_backend_client
from reembolso.services.profile_service import backfill_legacy_roles

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


async def run(email: str, password: str) -> int:
    client = await create_backend_client()
    await client.auth.sign_in_with_password({"email": email, "password": password})
    try:
        return await backfill_legacy_roles(client)
    finally:
        await client.auth.sign_out()


def main() -> None:
    parser = argparse.ArgumentParser(description="Backfill users.roles from the legacy users.role column")
    parser.add_argument("--email", default=os.getenv("MIGRATION_EMAIL"), help="Admin account email")
    parser.add_argument("--password", default=os.getenv("MIGRATION_PASSWORD"), help="Admin account password")
    args = parser.parse_args()

    if not args.email or not args.password:
        parser.error("--email and --password (or MIGRATION_EMAIL / MIGRATION_PASSWORD) are required")

    updated = asyncio.run(run(args.email, args.password))
    logger.info(f"Done: {updated} profiles migrated")


if __name__ == "__main__":
    main()
