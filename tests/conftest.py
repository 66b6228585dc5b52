import os
from collections.abc import AsyncGenerator, Awaitable, Callable

# Settings are read at import time; point the app at SQLite before importing it
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from codema.core.auth.models import User, UserRole
from codema.core.auth.service import AuthService
from codema.core.config import settings
from codema.core.database import get_db
from codema.core.database.base import Base
from codema.main import app

# In-memory SQLite; one shared connection so every session sees the same data
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
async def test_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create tables before each test and drop after."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def db_session(test_engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Get test database session."""
    session_factory = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest.fixture(autouse=True)
def storage_dir(tmp_path, monkeypatch):
    """Uploaded files go to a per-test folder."""
    monkeypatch.setattr(settings, "storage_path", str(tmp_path / "uploads"))
    return tmp_path / "uploads"


@pytest.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Get test HTTP client with overridden database dependency."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client

    app.dependency_overrides.clear()


UserFactory = Callable[..., Awaitable[User]]

DEFAULT_PASSWORD = "Password123"


@pytest.fixture
def make_user(db_session: AsyncSession) -> UserFactory:
    """Create and commit a user; the email is derived from the name."""

    async def _make(
        full_name: str = "Test User",
        role: UserRole = UserRole.ADMIN,
        password: str | None = DEFAULT_PASSWORD,
        represented_entity: str | None = None,
    ) -> User:
        email = f"{full_name.lower().replace(' ', '.')}@codema.org.br"
        user = await AuthService(db_session).create_user(
            email=email,
            password=password,
            full_name=full_name,
            role=role,
            represented_entity=represented_entity,
        )
        await db_session.commit()
        return user

    return _make


@pytest.fixture
def auth_headers(db_session: AsyncSession) -> Callable[[User], Awaitable[dict[str, str]]]:
    """Log a user in and return the Authorization header."""

    async def _headers(user: User) -> dict[str, str]:
        _, token, _ = await AuthService(db_session).authenticate(user.email, DEFAULT_PASSWORD)
        await db_session.commit()
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
async def super_admin(make_user: UserFactory) -> User:
    return await make_user("Sofia Super", UserRole.SUPER_ADMIN)


@pytest.fixture
async def admin(make_user: UserFactory) -> User:
    return await make_user("Ana Admin", UserRole.ADMIN)


@pytest.fixture
async def secretary(make_user: UserFactory) -> User:
    return await make_user("Sergio Secretario", UserRole.SECRETARY)


@pytest.fixture
async def inspector(make_user: UserFactory) -> User:
    return await make_user("Igor Inspetor", UserRole.INSPECTOR)


@pytest.fixture
async def citizen(make_user: UserFactory) -> User:
    return await make_user("Carla Cidada", UserRole.CITIZEN)


@pytest.fixture
async def councillors(make_user: UserFactory) -> list[User]:
    return [
        await make_user("Bruno Conselheiro", UserRole.COUNCILLOR, represented_entity="SEMA"),
        await make_user("Alice Conselheira", UserRole.COUNCILLOR, represented_entity="OAB"),
        await make_user("Diego Conselheiro", UserRole.COUNCILLOR),
    ]
