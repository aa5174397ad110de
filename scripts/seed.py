#!/usr/bin/env python
"""
Seed the document store with the default catalog and demo users.
"""

import argparse
import asyncio
import sys


# Add src to path for imports
sys.path.insert(0, "src")

from marketplace.core.auth import create_access_token
from marketplace.core.database import DocumentStore, async_session_factory, create_schema
from marketplace.core.permissions.catalog import ROLE_SUPER_ADMIN, seed_catalog
from marketplace.core.permissions.models import (
    UserDocument,
    UserProfile,
    UserRoleRef,
)
from marketplace.modules.users.repos import UserRepository


DEMO_USERS = [
    ("user_demo_dealer", "Demo Dealer", ["role_dealer"], []),
    ("user_demo_staff", "Demo Dealer Staff", ["role_dealer_staff"], ["perm_publish_listings"]),
    ("user_demo_buyer", "Demo Buyer", ["role_buyer"], []),
    ("user_demo_moderator", "Demo Moderator", ["role_moderator"], []),
]


async def ensure_user(
    store: DocumentStore,
    user_id: str,
    display_name: str,
    role_ids: list[str],
    custom_permissions: list[str],
) -> None:
    """Create a user unless one with the same id exists."""
    repo = UserRepository(store)
    if await repo.get_by_id(user_id) is not None:
        print(f"User already exists: {user_id}")
        return

    user = UserDocument(
        id=user_id,
        profile=UserProfile(display_name=display_name),
        roles=[UserRoleRef(role_id=role_id) for role_id in role_ids],
        custom_permissions=custom_permissions,
    )
    await repo.create(user)
    print(f"Created user: {user_id} ({', '.join(role_ids)})")


async def main(scenario: str, admin_id: str | None, print_token: bool) -> None:
    """Run the seeding based on scenario."""
    if scenario not in ("catalog", "demo"):
        print(f"Unknown scenario: {scenario}")
        print("Available scenarios: catalog, demo")
        sys.exit(1)

    await create_schema()

    async with async_session_factory() as session, session.begin():
        store = DocumentStore(session)
        created = await seed_catalog(store)
        print(f"Catalog seeded: {created}")

        if admin_id:
            await ensure_user(store, admin_id, "Administrator", [ROLE_SUPER_ADMIN], [])

        if scenario == "demo":
            for user_id, display_name, role_ids, custom_permissions in DEMO_USERS:
                await ensure_user(store, user_id, display_name, role_ids, custom_permissions)

    if admin_id and print_token:
        print(f"Access token for {admin_id}: {create_access_token(admin_id)}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed the default RBAC catalog")
    parser.add_argument(
        "--scenario",
        "-s",
        default="catalog",
        help="Seed scenario to run (catalog, demo)",
    )
    parser.add_argument(
        "--admin-id",
        default=None,
        help="Create a super admin user with this id",
    )
    parser.add_argument(
        "--print-token",
        action="store_true",
        help="Print an access token for the admin user",
    )
    args = parser.parse_args()

    asyncio.run(main(args.scenario, args.admin_id, args.print_token))
