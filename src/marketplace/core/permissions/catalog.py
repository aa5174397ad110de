"""Default permission and role catalog.

The service ships with the catalog the marketplace launched with.
``seed_catalog`` writes whatever is missing; existing documents are
left alone so administrative edits survive restarts.
"""

from typing import Any

import structlog

from marketplace.core.constants import PERMISSIONS_CONTAINER, ROLES_CONTAINER
from marketplace.core.database import DocumentStore
from marketplace.core.permissions.models import (
    PermissionDocument,
    RoleDocument,
    RolePermission,
)


logger = structlog.get_logger()

# Permissions referenced by the service's own routes
PERM_MANAGE_USERS = "perm_manage_users"
PERM_VIEW_USERS = "perm_view_users"
PERM_ASSIGN_ROLES = "perm_assign_roles"

# Built-in roles that cannot be deleted
ROLE_SUPER_ADMIN = "role_super_admin"
ROLE_ADMIN = "role_admin"
PROTECTED_ROLES = frozenset({ROLE_SUPER_ADMIN, ROLE_ADMIN})

# (id, name, description, category)
DEFAULT_PERMISSIONS: list[tuple[str, str, str, str]] = [
    # Users
    (PERM_MANAGE_USERS, "Manage Users", "Create, update, and delete users", "users"),
    (PERM_VIEW_USERS, "View Users", "View user profiles and information", "users"),
    (PERM_ASSIGN_ROLES, "Assign Roles", "Assign and modify user roles", "users"),
    # Sellers
    ("perm_manage_sellers", "Manage Sellers", "Create, update, and manage sellers", "sellers"),
    ("perm_verify_sellers", "Verify Sellers", "Verify and approve seller applications", "sellers"),
    ("perm_view_sellers", "View Sellers", "View seller profiles and information", "sellers"),
    # Listings
    ("perm_manage_listings", "Manage Listings", "Create, update, and delete vehicle listings", "listings"),
    ("perm_publish_listings", "Publish Listings", "Publish and unpublish vehicle listings", "listings"),
    ("perm_view_listings", "View Listings", "View vehicle listings", "listings"),
    ("perm_feature_listings", "Feature Listings", "Mark listings as featured", "listings"),
    # Orders
    ("perm_manage_orders", "Manage Orders", "Create, update, and manage orders", "orders"),
    ("perm_view_orders", "View Orders", "View order information", "orders"),
    ("perm_process_refunds", "Process Refunds", "Process order refunds", "orders"),
    # Payments
    ("perm_manage_payments", "Manage Payments", "Manage payment settings and subscriptions", "payments"),
    ("perm_view_payments", "View Payments", "View payment information", "payments"),
    # Reviews
    ("perm_moderate_reviews", "Moderate Reviews", "Approve, reject, or flag reviews", "reviews"),
    ("perm_view_reviews", "View Reviews", "View seller reviews", "reviews"),
    # Analytics
    ("perm_view_analytics", "View Analytics", "Access analytics and reports", "analytics"),
    ("perm_export_data", "Export Data", "Export system data", "analytics"),
    # System
    ("perm_manage_taxonomies", "Manage Taxonomies", "Manage vehicle classifications and taxonomies", "system"),
    ("perm_manage_settings", "Manage Settings", "Manage system settings", "system"),
    ("perm_view_logs", "View Logs", "View system logs and audit trails", "system"),
]

_LISTING_SELLER_PERMISSIONS = [
    "perm_manage_listings",
    "perm_view_listings",
    "perm_view_orders",
]

# (id, name, description, permission ids)
DEFAULT_ROLES: list[tuple[str, str, str, list[str]]] = [
    (
        ROLE_SUPER_ADMIN,
        "Super Admin",
        "Full system access with all permissions",
        [perm_id for perm_id, *_ in DEFAULT_PERMISSIONS],
    ),
    (
        ROLE_ADMIN,
        "Admin",
        "Administrative access to most features",
        [
            PERM_MANAGE_USERS,
            PERM_VIEW_USERS,
            "perm_manage_sellers",
            "perm_verify_sellers",
            "perm_view_sellers",
            "perm_manage_listings",
            "perm_view_listings",
            "perm_manage_orders",
            "perm_view_orders",
            "perm_moderate_reviews",
            "perm_view_reviews",
            "perm_view_analytics",
            "perm_manage_taxonomies",
            "perm_manage_settings",
            "perm_view_logs",
        ],
    ),
    (
        "role_dealer",
        "Dealer",
        "Dealer seller with listing management",
        [
            "perm_manage_listings",
            "perm_publish_listings",
            "perm_view_listings",
            "perm_view_orders",
            "perm_view_reviews",
        ],
    ),
    (
        "role_dealer_staff",
        "Dealer Staff",
        "Dealer staff member with limited access",
        list(_LISTING_SELLER_PERMISSIONS),
    ),
    (
        "role_private_seller",
        "Private Seller",
        "Private seller with basic listing management",
        list(_LISTING_SELLER_PERMISSIONS),
    ),
    (
        "role_buyer",
        "Buyer",
        "Regular buyer with view access",
        ["perm_view_listings", "perm_view_sellers"],
    ),
    (
        "role_moderator",
        "Moderator",
        "Content moderator for reviews and listings",
        [
            "perm_view_listings",
            "perm_moderate_reviews",
            "perm_view_reviews",
            "perm_view_sellers",
            "perm_view_users",
        ],
    ),
]


def default_permission_documents() -> list[PermissionDocument]:
    """The default permissions as documents."""
    return [
        PermissionDocument(id=perm_id, name=name, description=description, category=category)
        for perm_id, name, description, category in DEFAULT_PERMISSIONS
    ]


def default_role_documents() -> list[RoleDocument]:
    """The default roles as documents, with cached permission descriptions."""
    descriptions = {perm_id: description for perm_id, _, description, _ in DEFAULT_PERMISSIONS}
    return [
        RoleDocument(
            id=role_id,
            name=name,
            description=description,
            permissions=[
                RolePermission(key=perm_id, description=descriptions.get(perm_id))
                for perm_id in permission_ids
            ],
        )
        for role_id, name, description, permission_ids in DEFAULT_ROLES
    ]


async def seed_catalog(store: DocumentStore) -> dict[str, Any]:
    """Insert the default permissions and roles that don't exist yet.

    Returns:
        Counts of created documents per container
    """
    created = {PERMISSIONS_CONTAINER: 0, ROLES_CONTAINER: 0}

    for permission in default_permission_documents():
        if await store.read_item(PERMISSIONS_CONTAINER, permission.id) is None:
            await store.create_item(PERMISSIONS_CONTAINER, permission.to_document())
            created[PERMISSIONS_CONTAINER] += 1

    for role in default_role_documents():
        if await store.read_item(ROLES_CONTAINER, role.id) is None:
            await store.create_item(ROLES_CONTAINER, role.to_document())
            created[ROLES_CONTAINER] += 1

    logger.info(
        "catalog_seeded",
        permissions_created=created[PERMISSIONS_CONTAINER],
        roles_created=created[ROLES_CONTAINER],
    )
    return created
