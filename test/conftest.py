"""
Test configuration and fixtures for SafeScope.
Provides an in-memory database, an HTTP client bound to it, and factories
for the organization hierarchy and its users.
"""
import pytest
import uuid
from typing import AsyncGenerator
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from main import app
from app.database import Base, get_async_session
from app.models import Organization, User
from app.roles import UserRole, management_flags
from app.schemas import Identity
from app.security import create_identity_token
from app.services.user_service import UserService

# Test database URL
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Create test engine
test_engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    poolclass=StaticPool,
    connect_args={"check_same_thread": False}
)

# Create test session factory
TestSessionLocal = async_sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False
)


@pytest.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionLocal() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create a test client with database session override."""
    async def get_test_session():
        yield db_session

    app.dependency_overrides[get_async_session] = get_test_session

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def make_organization(db_session: AsyncSession):
    """Factory inserting organizations directly, bypassing hierarchy checks."""
    async def _make(name: str = None, parent: Organization = None, **fields) -> Organization:
        level = fields.pop("organization_level", "subsidiary" if parent else "company")
        organization = Organization(
            name=name or f"Org {uuid.uuid4().hex[:8]}",
            parent_organization_id=parent.id if parent else None,
            organization_level=level,
            **fields
        )
        db_session.add(organization)
        await db_session.commit()
        await db_session.refresh(organization)
        return organization

    return _make


@pytest.fixture
def make_user(db_session: AsyncSession):
    """Factory inserting users with role-derived flags."""
    async def _make(
        role: UserRole = UserRole.INSPECTOR,
        organization: Organization = None,
        managed_organization: Organization = None,
        **fields
    ) -> User:
        can_manage, can_create = management_flags(role)
        if role is UserRole.ORG_ADMIN and managed_organization is None:
            managed_organization = organization
        user_id = fields.pop("id", f"user-{uuid.uuid4().hex[:8]}")
        user = User(
            id=user_id,
            email=fields.pop("email", generate_unique_email()),
            name=fields.pop("name", user_id),
            role=role.value,
            can_manage_users=can_manage,
            can_create_organizations=can_create,
            organization_id=organization.id if organization else None,
            managed_organization_id=managed_organization.id if managed_organization else None,
            **fields
        )
        db_session.add(user)
        await db_session.commit()
        await db_session.refresh(user)
        return user

    return _make


@pytest.fixture
def auth_headers():
    """Build bearer headers for a user or a bare identity."""
    def _headers(principal) -> dict:
        name = getattr(principal, "name", None)
        token = create_identity_token(principal.id, principal.email, name)
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
async def hierarchy(make_organization) -> dict:
    """
    Two unrelated tenant trees:

    master -> child_a, child_b -> grandchild (inserted directly)
    other -> other_child
    """
    master = await make_organization("Master Co", max_subsidiaries=2, max_users=10)
    child_a = await make_organization("Child A", parent=master)
    child_b = await make_organization("Child B", parent=master)
    grandchild = await make_organization("Grandchild", parent=child_a)
    other = await make_organization("Other Co", max_subsidiaries=5)
    other_child = await make_organization("Other Child", parent=other)
    return {
        "master": master,
        "child_a": child_a,
        "child_b": child_b,
        "grandchild": grandchild,
        "other": other,
        "other_child": other_child,
    }


@pytest.fixture
async def system_admin(make_user) -> User:
    return await make_user(UserRole.SYSTEM_ADMIN, email="root@example.com")


@pytest.fixture
async def org_admin(make_user, hierarchy) -> User:
    return await make_user(UserRole.ORG_ADMIN, organization=hierarchy["master"], email="admin@master.example.com")


@pytest.fixture
async def inspector(make_user, hierarchy) -> User:
    return await make_user(UserRole.INSPECTOR, organization=hierarchy["master"], email="inspector@master.example.com")


def generate_unique_email():
    """Generate a unique email for testing."""
    return f"test_{uuid.uuid4().hex[:8]}@example.com"


@pytest.fixture
def new_identity():
    """Factory for identities of never-before-seen principals."""
    def _identity(email: str = None, name: str = None) -> Identity:
        return Identity(id=f"ext-{uuid.uuid4().hex[:8]}", email=email or generate_unique_email(), name=name)

    return _identity


@pytest.fixture
def stale_user_lookup(monkeypatch):
    """
    Make the first profile lookup miss, as if a concurrent request inserted
    the row between the lookup and our own insert.
    """
    original = UserService.get_user_by_id
    calls = []

    async def lookup(self, user_id):
        calls.append(user_id)
        if len(calls) == 1:
            return None
        return await original(self, user_id)

    monkeypatch.setattr(UserService, "get_user_by_id", lookup)
    return calls
