# tests/conftest.py — Shared test fixtures
import os
import uuid

import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

# Use SQLite for tests
TEST_DB_URL = "sqlite+aiosqlite:///./test.db"
os.environ["DATABASE_URL"] = TEST_DB_URL
os.environ["JWT_SECRET_KEY"] = "test-secret-key-for-unit-tests-only-min-32-chars"
os.environ["ENVIRONMENT"] = "test"

from models import Base, User, UserRole
from activity import ActivityRecorder
from auth import AuthService
from database import enable_sqlite_foreign_keys, get_db_session, get_session_factory
from main import app
from services.admin import AdminService
from services.boards import BoardService
from services.cards import CardService
from services.checklists import ChecklistService
from services.lists import ListService
from services.members import MemberService
from services.organizations import OrganizationService

TEST_PASSWORD = "TestPassword123!"


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    engine = create_async_engine(TEST_DB_URL, echo=False)
    enable_sqlite_foreign_keys(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def client(session_factory):
    """HTTP test client with overridden DB dependencies"""

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db_session] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


# --- Services wired to the test store ---

@pytest_asyncio.fixture
async def recorder(session_factory):
    return ActivityRecorder(session_factory)


@pytest_asyncio.fixture
async def board_service(db_session, recorder):
    return BoardService(db_session, recorder)


@pytest_asyncio.fixture
async def list_service(db_session, recorder):
    return ListService(db_session, recorder)


@pytest_asyncio.fixture
async def card_service(db_session, recorder):
    return CardService(db_session, recorder)


@pytest_asyncio.fixture
async def checklist_service(db_session, recorder):
    return ChecklistService(db_session, recorder)


@pytest_asyncio.fixture
async def org_service(db_session, recorder):
    return OrganizationService(db_session, recorder)


@pytest_asyncio.fixture
async def member_service(db_session, recorder):
    return MemberService(db_session, recorder)


@pytest_asyncio.fixture
async def admin_service(db_session):
    return AdminService(db_session)


# --- Users ---

async def make_user(db_session, username: str, email: str, role: UserRole = UserRole.USER, **fields) -> User:
    user = User(
        id=str(uuid.uuid4()),
        username=username,
        email=email,
        password_hash=AuthService.hash_password(TEST_PASSWORD),
        role=role,
        **fields,
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest_asyncio.fixture
async def test_user(db_session):
    """Create a regular user"""
    return await make_user(db_session, "testuser", "testuser@taskboard.dev")


@pytest_asyncio.fixture
async def other_user(db_session):
    """A second regular user with no access to test_user's boards"""
    return await make_user(db_session, "otheruser", "other@taskboard.dev")


@pytest_asyncio.fixture
async def admin_user(db_session):
    """Create a platform admin"""
    return await make_user(db_session, "admin", "admin@taskboard.dev", UserRole.ADMIN)


@pytest_asyncio.fixture
async def super_admin(db_session):
    """Create a super admin user"""
    return await make_user(db_session, "superadmin", "superadmin@taskboard.dev", UserRole.SUPER_ADMIN)


def get_auth_headers(user: User) -> dict:
    """Generate auth headers for a user"""
    token = AuthService.create_access_token(AuthService.token_claims(user))
    return {"Authorization": f"Bearer {token}"}
