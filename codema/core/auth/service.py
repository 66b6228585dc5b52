from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from codema.core.auth.jwt import REFRESH_TOKEN, create_access_token, create_refresh_token, decode_token
from codema.core.auth.models import User, UserRole
from codema.core.auth.password import hash_password, verify_password
from codema.core.audit import AuditAction, create_audit_log
from codema.core.exceptions import AuthenticationError, DuplicateError


class AuthService:
    """Service for authentication operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_user_by_email(self, email: str) -> User | None:
        """Get user by email."""
        stmt = select(User).where(User.email == email.lower())
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_user_by_id(self, user_id: int) -> User | None:
        """Get user by ID."""
        stmt = select(User).where(User.id == user_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def create_user(
        self,
        email: str,
        password: str | None,
        full_name: str,
        role: UserRole,
        phone: str | None = None,
        represented_entity: str | None = None,
        created_by_id: int | None = None,
    ) -> User:
        """Create a new user. Email is stored lower-cased."""
        email = email.lower()
        existing = await self.get_user_by_email(email)
        if existing:
            raise DuplicateError("User", "email", email)

        user = User(
            email=email,
            password_hash=hash_password(password) if password else None,
            full_name=full_name,
            phone=phone,
            role=role.value,
            represented_entity=represented_entity,
            is_active=True,
        )

        self.session.add(user)
        await self.session.flush()

        await create_audit_log(
            session=self.session,
            action=AuditAction.CREATE,
            entity_type="User",
            entity_id=user.id,
            user_id=created_by_id,
            entity_identifier=user.email,
            new_values={"email": user.email, "role": user.role, "full_name": user.full_name},
        )

        await self.session.refresh(user)
        return user

    async def authenticate(
        self, email: str, password: str, ip_address: str | None = None
    ) -> tuple[User, str, str]:
        """
        Authenticate user and return tokens.

        Returns:
            Tuple of (user, access_token, refresh_token)

        Raises:
            AuthenticationError: If credentials are invalid
        """
        user = await self.get_user_by_email(email)

        if not user:
            raise AuthenticationError("Invalid email or password")

        if not user.can_login:
            raise AuthenticationError("User does not have system access")

        if not verify_password(password, user.password_hash):
            raise AuthenticationError("Invalid email or password")

        if not user.is_active:
            raise AuthenticationError("User account is deactivated")

        user.last_login_at = datetime.now(timezone.utc)
        await self.session.flush()

        access_token = create_access_token(user.id, user.role)
        refresh_token = create_refresh_token(user.id)

        await create_audit_log(
            session=self.session,
            action=AuditAction.LOGIN,
            entity_type="User",
            entity_id=user.id,
            user_id=user.id,
            entity_identifier=user.email,
            ip_address=ip_address,
        )

        return user, access_token, refresh_token

    async def refresh_tokens(self, refresh_token: str) -> tuple[str, str]:
        """
        Issue a new token pair from a valid refresh token.

        Raises:
            AuthenticationError: If refresh token is invalid or the user is gone
        """
        payload = decode_token(refresh_token, token_type=REFRESH_TOKEN)

        user = await self.get_user_by_id(int(payload["sub"]))

        if not user:
            raise AuthenticationError("User not found")

        if not user.is_active:
            raise AuthenticationError("User account is deactivated")

        return create_access_token(user.id, user.role), create_refresh_token(user.id)
