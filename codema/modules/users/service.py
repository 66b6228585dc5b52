from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from codema.core.audit import AuditAction, create_audit_log
from codema.core.auth.models import User, UserRole
from codema.core.auth.password import hash_password, verify_password
from codema.core.auth.service import AuthService
from codema.core.exceptions import AuthenticationError, DuplicateError, NotFoundError, ValidationError
from codema.modules.users.schemas import UserCreate, UserListFilters, UserUpdate

_PROFILE_FIELDS = (
    "email",
    "full_name",
    "phone",
    "role",
    "represented_entity",
    "mandate_start",
    "mandate_end",
)


class UserService:
    """Service for user and councillor management."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, user_id: int) -> User:
        stmt = select(User).where(User.id == user_id).execution_options(populate_existing=True)
        user = (await self.session.execute(stmt)).scalar_one_or_none()
        if not user:
            raise NotFoundError("User", user_id)
        return user

    async def list_users(self, filters: UserListFilters) -> tuple[list[User], int]:
        """
        List users with filters and pagination.

        Returns:
            Tuple of (users list, total count)
        """
        conditions = []
        if filters.role:
            conditions.append(User.role == filters.role.value)
        if filters.is_active is not None:
            conditions.append(User.is_active == filters.is_active)
        if filters.search:
            search_term = f"%{filters.search}%"
            conditions.append(
                or_(
                    User.full_name.ilike(search_term),
                    User.email.ilike(search_term),
                    User.represented_entity.ilike(search_term),
                )
            )

        total = (
            await self.session.execute(select(func.count(User.id)).where(*conditions))
        ).scalar_one()

        offset = (filters.page - 1) * filters.limit
        stmt = (
            select(User)
            .where(*conditions)
            .order_by(User.full_name)
            .offset(offset)
            .limit(filters.limit)
        )
        users = list((await self.session.execute(stmt)).scalars().all())
        return users, total

    async def list_active_councillors(self) -> list[User]:
        stmt = (
            select(User)
            .where(User.role == UserRole.COUNCILLOR.value, User.is_active.is_(True))
            .order_by(User.full_name)
        )
        return list((await self.session.execute(stmt)).scalars().all())

    async def create(self, data: UserCreate, created_by_id: int) -> User:
        """Create a user; councillor fields are kept only for councillors."""
        is_councillor = data.role == UserRole.COUNCILLOR
        user = await AuthService(self.session).create_user(
            email=data.email,
            password=data.password,
            full_name=data.full_name,
            role=data.role,
            phone=data.phone,
            represented_entity=data.represented_entity if is_councillor else None,
            created_by_id=created_by_id,
        )
        if is_councillor and (data.mandate_start or data.mandate_end):
            user.mandate_start = data.mandate_start
            user.mandate_end = data.mandate_end
            await self.session.flush()
        return await self.get_by_id(user.id)

    async def update(self, user_id: int, data: UserUpdate, updated_by_id: int) -> User:
        user = await self.get_by_id(user_id)
        old_values = user.snapshot(*_PROFILE_FIELDS)

        if data.email and data.email.lower() != user.email:
            if await AuthService(self.session).get_user_by_email(data.email):
                raise DuplicateError("User", "email", data.email)
            user.email = data.email.lower()

        for name in ("full_name", "phone", "represented_entity", "mandate_start", "mandate_end"):
            value = getattr(data, name)
            if value is not None:
                setattr(user, name, value)
        if data.role is not None:
            user.role = data.role.value

        start, end = user.mandate_start, user.mandate_end
        if start and end and end < start:
            raise ValidationError("Mandate end must not be before mandate start", field="mandate_end")

        await self.session.flush()
        await create_audit_log(
            session=self.session,
            action=AuditAction.UPDATE,
            entity_type="User",
            entity_id=user.id,
            user_id=updated_by_id,
            entity_identifier=user.email,
            old_values=old_values,
            new_values=user.snapshot(*_PROFILE_FIELDS),
        )
        return await self.get_by_id(user_id)

    async def set_active(self, user_id: int, active: bool, changed_by_id: int) -> User:
        """Activate or deactivate. Inactive councillors are not convoked."""
        user = await self.get_by_id(user_id)
        if user.is_active == active:
            raise ValidationError(f"User is already {'active' if active else 'deactivated'}")
        if not active and user.id == changed_by_id:
            raise ValidationError("You cannot deactivate your own account")

        user.is_active = active
        await self.session.flush()
        await create_audit_log(
            session=self.session,
            action=AuditAction.UPDATE,
            entity_type="User",
            entity_id=user.id,
            user_id=changed_by_id,
            entity_identifier=user.email,
            old_values={"is_active": not active},
            new_values={"is_active": active},
            comment="User activated" if active else "User deactivated",
        )
        return await self.get_by_id(user_id)

    async def set_password(self, user_id: int, new_password: str, set_by_id: int) -> User:
        """Set or reset user password (by admin)."""
        user = await self.get_by_id(user_id)
        had_password = user.can_login
        user.password_hash = hash_password(new_password)
        await self.session.flush()

        await create_audit_log(
            session=self.session,
            action=AuditAction.UPDATE,
            entity_type="User",
            entity_id=user.id,
            user_id=set_by_id,
            entity_identifier=user.email,
            old_values={"can_login": had_password},
            new_values={"can_login": True},
            comment="Password set by admin",
        )
        return await self.get_by_id(user_id)

    async def change_own_password(self, user_id: int, current_password: str, new_password: str) -> User:
        """Change own password (requires current password)."""
        user = await self.get_by_id(user_id)
        if not user.can_login:
            raise ValidationError("User does not have system access")
        if not verify_password(current_password, user.password_hash):
            raise AuthenticationError("Current password is incorrect")

        user.password_hash = hash_password(new_password)
        await self.session.flush()

        await create_audit_log(
            session=self.session,
            action=AuditAction.UPDATE,
            entity_type="User",
            entity_id=user.id,
            user_id=user.id,
            entity_identifier=user.email,
            comment="Password changed by user",
        )
        return await self.get_by_id(user_id)
