"""Test configuration and fixtures."""
import os

# Settings are read at import time; provide test values before importing the app
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-pytest")

from typing import AsyncGenerator, Dict

import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from crm_app.main import app
from crm_app.core.database import Base, get_db
from crm_app.core.dependencies import get_session_factory
from crm_app.core.enums import UserRole
from crm_app.models.plan import Plan
from crm_app.models.tenant import Tenant
from crm_app.models.user import User
from crm_app.services.limit_guard import AtomicLimitGuard, KeyedLocks
from crm_app.services.permissions import PermissionResolver
from crm_app.services.plans import ensure_default_plans
from crm_app.services.store import EntitlementStore

from factories import make_tenant, make_user, headers_for


# Test database URL (use SQLite for tests)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """One in-memory database per test, shared by every session of that test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def session_factory(test_engine) -> async_sessionmaker:
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create database session for tests."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession, session_factory) -> AsyncGenerator[AsyncClient, None]:
    """Create test client with database overrides."""
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def resolver() -> PermissionResolver:
    return PermissionResolver(EntitlementStore(), near_limit_threshold=0.8)


@pytest_asyncio.fixture
async def guard(resolver: PermissionResolver, session_factory) -> AtomicLimitGuard:
    return AtomicLimitGuard(resolver=resolver, session_factory=session_factory, locks=KeyedLocks())


@pytest_asyncio.fixture
async def plans(db_session: AsyncSession) -> Dict[str, Plan]:
    """Default plan catalog: Starter (no CRM), Standard (5 users, 100 contacts), Enterprise."""
    rows = await ensure_default_plans(db_session)
    await db_session.commit()
    return {p.name: p for p in rows}


@pytest_asyncio.fixture
async def test_tenant(db_session: AsyncSession, plans: Dict[str, Plan]) -> Tenant:
    """Tenant on the Standard plan."""
    return await make_tenant(db_session, plans["Standard"])


@pytest_asyncio.fixture
async def starter_tenant(db_session: AsyncSession, plans: Dict[str, Plan]) -> Tenant:
    """Tenant on the Starter plan, which does not include CRM."""
    return await make_tenant(db_session, plans["Starter"], name="Starter Tenant")


@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession, test_tenant: Tenant) -> User:
    """Business administrator of the test tenant."""
    return await make_user(db_session, test_tenant, UserRole.BUSINESS_ADMIN, email="test@example.com")


@pytest_asyncio.fixture
async def member_user(db_session: AsyncSession, test_tenant: Tenant) -> User:
    """Ordinary member of the test tenant."""
    return await make_user(db_session, test_tenant, UserRole.USER, email="member@example.com")


@pytest_asyncio.fixture
async def super_admin(db_session: AsyncSession, plans: Dict[str, Plan]) -> User:
    return await make_user(db_session, None, UserRole.SUPER_ADMIN, email="root@example.com")


@pytest_asyncio.fixture
async def auth_headers(test_user: User) -> dict:
    """Create authorization headers with valid token."""
    return headers_for(test_user)


@pytest_asyncio.fixture
async def member_headers(member_user: User) -> dict:
    return headers_for(member_user)


@pytest_asyncio.fixture
async def super_headers(super_admin: User) -> dict:
    return headers_for(super_admin)
