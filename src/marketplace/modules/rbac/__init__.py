"""Role and permission catalog administration and permission checks."""

from fastapi import APIRouter


router = APIRouter(prefix="/rbac", tags=["rbac"])

# Import routes to register them (must be after router is defined)
from marketplace.modules.rbac import routes  # noqa: F401, E402
