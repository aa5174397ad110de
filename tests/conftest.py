"""Pytest configuration and shared fixtures."""

import os


# Settings are read at import time; point them at an in-memory store first
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ.setdefault("SECRET_KEY", "test-secret-key-that-is-long-enough-0123456789")
os.environ.setdefault("SEED_CATALOG", "false")

from collections.abc import AsyncGenerator, Awaitable, Callable  # noqa: E402

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool  # noqa: E402

from marketplace.core.constants import (  # noqa: E402
    PERMISSIONS_CONTAINER,
    ROLES_CONTAINER,
    USERS_CONTAINER,
)
from marketplace.core.database import DocumentStore, create_schema, get_db  # noqa: E402
from marketplace.core.permissions.catalog import seed_catalog  # noqa: E402
from marketplace.core.permissions.models import (  # noqa: E402
    PermissionDocument,
    RoleDocument,
    RolePermission,
    UserDocument,
    UserRoleRef,
)
from marketplace.main import create_app  # noqa: E402
from tests.factories import (  # noqa: E402
    PermissionDocumentFactory,
    RoleDocumentFactory,
    UserDocumentFactory,
)
from tests.helpers import auth_headers_for  # noqa: E402


TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
async def engine():
    """Create a fresh in-memory database with the documents table."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await create_schema(engine)

    yield engine

    await engine.dispose()


@pytest.fixture
async def db(engine) -> AsyncGenerator[AsyncSession, None]:
    """Provide a database session that is rolled back after the test."""
    session_factory = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def store(db: AsyncSession) -> DocumentStore:
    """Document store over the test session."""
    return DocumentStore(db)


@pytest.fixture
async def app(db: AsyncSession):
    """Create test application instance sharing the test session."""
    application = create_app()

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db

    application.dependency_overrides[get_db] = override_get_db

    yield application

    application.dependency_overrides.clear()


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Provide async HTTP client for API testing."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client


@pytest.fixture
async def seeded(store: DocumentStore) -> DocumentStore:
    """Store populated with the default permission and role catalog."""
    await seed_catalog(store)
    return store


# ============================================================
# Document builders
# ============================================================


@pytest.fixture
def make_permission(store: DocumentStore) -> Callable[..., Awaitable[PermissionDocument]]:
    """Persist a permission built by the factory."""

    async def _make(**overrides) -> PermissionDocument:
        permission = PermissionDocumentFactory.build(**overrides)
        item = await store.create_item(PERMISSIONS_CONTAINER, permission.to_document())
        return PermissionDocument.from_document(item)

    return _make


@pytest.fixture
def make_role(store: DocumentStore) -> Callable[..., Awaitable[RoleDocument]]:
    """Persist a role granting ``grants`` (permission ids)."""

    async def _make(grants: list[str] | None = None, **overrides) -> RoleDocument:
        if grants is not None:
            overrides["permissions"] = [RolePermission(key=key) for key in grants]
        role = RoleDocumentFactory.build(**overrides)
        item = await store.create_item(ROLES_CONTAINER, role.to_document())
        return RoleDocument.from_document(item)

    return _make


@pytest.fixture
def make_user(store: DocumentStore) -> Callable[..., Awaitable[UserDocument]]:
    """Persist a user with the given role ids and direct grants."""

    async def _make(
        roles: list[str] | None = None,
        custom_permissions: list[str] | None = None,
        **overrides,
    ) -> UserDocument:
        user = UserDocumentFactory.build(
            roles=[UserRoleRef(role_id=role_id) for role_id in roles or []],
            custom_permissions=list(custom_permissions or []),
            **overrides,
        )
        item = await store.create_item(USERS_CONTAINER, user.to_document())
        return UserDocument.from_document(item)

    return _make


@pytest.fixture
async def admin(seeded: DocumentStore, make_user) -> UserDocument:
    """User holding the super admin role (every default permission)."""
    return await make_user(roles=["role_super_admin"])


@pytest.fixture
async def buyer(seeded: DocumentStore, make_user) -> UserDocument:
    """User holding only the buyer role."""
    return await make_user(roles=["role_buyer"])


@pytest.fixture
def admin_headers(admin: UserDocument) -> dict[str, str]:
    return auth_headers_for(admin.id)


@pytest.fixture
def buyer_headers(buyer: UserDocument) -> dict[str, str]:
    return auth_headers_for(buyer.id)
