import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from codema.core.auth.models import UserRole
from codema.core.auth.service import AuthService
from codema.core.exceptions import AuthenticationError, DuplicateError


class TestAuthService:
    """Tests for AuthService."""

    async def test_create_user(self, db_session: AsyncSession):
        """Test creating a new user."""
        auth_service = AuthService(db_session)

        user = await auth_service.create_user(
            email="Secretaria@Codema.org.br",
            password="Password123",
            full_name="Test User",
            role=UserRole.SECRETARY,
        )

        assert user.id is not None
        assert user.email == "secretaria@codema.org.br"
        assert user.full_name == "Test User"
        assert user.role == "Secretary"
        assert user.is_active is True
        assert user.password_hash != "Password123"  # Password should be hashed

    async def test_create_user_duplicate_email(self, db_session: AsyncSession):
        """Test that duplicate email raises error."""
        auth_service = AuthService(db_session)

        await auth_service.create_user(
            email="test@codema.org.br",
            password="Password123",
            full_name="Test User",
            role=UserRole.ADMIN,
        )

        with pytest.raises(DuplicateError) as exc_info:
            await auth_service.create_user(
                email="TEST@codema.org.br",
                password="AnotherPass123",
                full_name="Another User",
                role=UserRole.CITIZEN,
            )

        assert "already exists" in str(exc_info.value)

    async def test_authenticate_success(self, db_session: AsyncSession):
        """Test successful authentication."""
        auth_service = AuthService(db_session)

        await auth_service.create_user(
            email="test@codema.org.br",
            password="Password123",
            full_name="Test User",
            role=UserRole.ADMIN,
        )

        user, access_token, refresh_token = await auth_service.authenticate(
            email="test@codema.org.br",
            password="Password123",
        )

        assert user.email == "test@codema.org.br"
        assert user.last_login_at is not None
        assert access_token is not None
        assert refresh_token is not None

    async def test_authenticate_wrong_password(self, db_session: AsyncSession):
        """Test authentication with wrong password."""
        auth_service = AuthService(db_session)

        await auth_service.create_user(
            email="test@codema.org.br",
            password="Password123",
            full_name="Test User",
            role=UserRole.ADMIN,
        )

        with pytest.raises(AuthenticationError):
            await auth_service.authenticate(
                email="test@codema.org.br",
                password="WrongPassword",
            )

    async def test_authenticate_inactive_user(self, db_session: AsyncSession):
        """Test authentication with inactive user."""
        auth_service = AuthService(db_session)

        user = await auth_service.create_user(
            email="test@codema.org.br",
            password="Password123",
            full_name="Test User",
            role=UserRole.ADMIN,
        )
        user.is_active = False
        await db_session.flush()

        with pytest.raises(AuthenticationError) as exc_info:
            await auth_service.authenticate(
                email="test@codema.org.br",
                password="Password123",
            )

        assert "deactivated" in str(exc_info.value)

    async def test_user_without_password_cannot_login(self, db_session: AsyncSession):
        """Councillors registered without a password exist only as attendance records."""
        auth_service = AuthService(db_session)

        await auth_service.create_user(
            email="conselheiro@codema.org.br",
            password=None,
            full_name="Conselheiro Sem Acesso",
            role=UserRole.COUNCILLOR,
        )

        with pytest.raises(AuthenticationError) as exc_info:
            await auth_service.authenticate(
                email="conselheiro@codema.org.br",
                password="anything",
            )

        assert "system access" in str(exc_info.value)

    async def test_refresh_tokens(self, db_session: AsyncSession):
        """A refresh token yields a new token pair; an access token does not."""
        auth_service = AuthService(db_session)
        await auth_service.create_user(
            email="test@codema.org.br",
            password="Password123",
            full_name="Test User",
            role=UserRole.ADMIN,
        )
        _, access_token, refresh_token = await auth_service.authenticate(
            "test@codema.org.br", "Password123"
        )

        new_access, new_refresh = await auth_service.refresh_tokens(refresh_token)
        assert new_access
        assert new_refresh

        with pytest.raises(AuthenticationError):
            await auth_service.refresh_tokens(access_token)


class TestAuthEndpoints:
    """Tests for auth API endpoints."""

    async def test_login_success(self, client: AsyncClient, db_session: AsyncSession):
        """Test login endpoint."""
        auth_service = AuthService(db_session)
        await auth_service.create_user(
            email="test@codema.org.br",
            password="Password123",
            full_name="Test User",
            role=UserRole.ADMIN,
        )
        await db_session.commit()

        response = await client.post(
            "/api/v1/auth/login",
            json={"email": "test@codema.org.br", "password": "Password123"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert "access_token" in data["data"]
        assert "refresh_token" in data["data"]
        assert data["data"]["user"]["email"] == "test@codema.org.br"

    async def test_login_wrong_credentials(self, client: AsyncClient):
        """Test login with wrong credentials."""
        response = await client.post(
            "/api/v1/auth/login",
            json={"email": "wrong@codema.org.br", "password": "WrongPass"},
        )

        assert response.status_code == 401
        assert response.json()["success"] is False

    async def test_get_me_unauthorized(self, client: AsyncClient):
        """Test /me endpoint without token."""
        response = await client.get("/api/v1/auth/me")
        assert response.status_code == 401

    async def test_get_me_authorized(self, client: AsyncClient, db_session: AsyncSession):
        """Test /me endpoint with valid token."""
        auth_service = AuthService(db_session)
        await auth_service.create_user(
            email="test@codema.org.br",
            password="Password123",
            full_name="Test User",
            role=UserRole.COUNCILLOR,
            represented_entity="Associação de Moradores",
        )
        await db_session.commit()

        login_response = await client.post(
            "/api/v1/auth/login",
            json={"email": "test@codema.org.br", "password": "Password123"},
        )
        access_token = login_response.json()["data"]["access_token"]

        response = await client.get(
            "/api/v1/auth/me",
            headers={"Authorization": f"Bearer {access_token}"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["data"]["email"] == "test@codema.org.br"
        assert data["data"]["represented_entity"] == "Associação de Moradores"

    async def test_refresh_endpoint(self, client: AsyncClient, db_session: AsyncSession):
        """Test /refresh issues a new pair."""
        auth_service = AuthService(db_session)
        await auth_service.create_user(
            email="test@codema.org.br",
            password="Password123",
            full_name="Test User",
            role=UserRole.ADMIN,
        )
        await db_session.commit()
        login = await client.post(
            "/api/v1/auth/login",
            json={"email": "test@codema.org.br", "password": "Password123"},
        )

        response = await client.post(
            "/api/v1/auth/refresh",
            json={"refresh_token": login.json()["data"]["refresh_token"]},
        )

        assert response.status_code == 200
        assert response.json()["data"]["token_type"] == "bearer"
