from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from codema.core.auth.dependencies import AdminUser, CurrentUser, StaffUser
from codema.core.auth.models import UserRole
from codema.core.database import get_db
from codema.modules.users.schemas import (
    ChangeOwnPassword,
    CouncillorResponse,
    SetPassword,
    UserCreate,
    UserListFilters,
    UserResponse,
    UserUpdate,
)
from codema.modules.users.service import UserService
from codema.shared.schemas import ApiResponse, PaginatedResponse

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("", response_model=ApiResponse[PaginatedResponse[UserResponse]])
async def list_users(
    current_user: StaffUser,
    role: UserRole | None = Query(None),
    is_active: bool | None = Query(None),
    search: str | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
):
    """List users. Staff only."""
    filters = UserListFilters(role=role, is_active=is_active, search=search, page=page, limit=limit)
    users, total = await UserService(db).list_users(filters)
    return ApiResponse(
        data=PaginatedResponse.create(
            items=[UserResponse.model_validate(u) for u in users],
            total=total,
            page=page,
            limit=limit,
        ),
    )


@router.get("/councillors", response_model=ApiResponse[list[CouncillorResponse]])
async def list_councillors(current_user: CurrentUser, db: AsyncSession = Depends(get_db)):
    """Active councillors and the entities they represent."""
    councillors = await UserService(db).list_active_councillors()
    return ApiResponse(data=[CouncillorResponse.model_validate(c) for c in councillors])


@router.post("/me/password", response_model=ApiResponse[UserResponse])
async def change_own_password(
    data: ChangeOwnPassword,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db),
):
    user = await UserService(db).change_own_password(
        current_user.id, data.current_password, data.new_password
    )
    return ApiResponse(data=UserResponse.model_validate(user), message="Password changed")


@router.get("/{user_id}", response_model=ApiResponse[UserResponse])
async def get_user(user_id: int, current_user: StaffUser, db: AsyncSession = Depends(get_db)):
    user = await UserService(db).get_by_id(user_id)
    return ApiResponse(data=UserResponse.model_validate(user))


@router.post("", response_model=ApiResponse[UserResponse], status_code=status.HTTP_201_CREATED)
async def create_user(data: UserCreate, current_user: AdminUser, db: AsyncSession = Depends(get_db)):
    """Create a user or councillor. Admin only."""
    user = await UserService(db).create(data, created_by_id=current_user.id)
    return ApiResponse(data=UserResponse.model_validate(user), message="User created")


@router.patch("/{user_id}", response_model=ApiResponse[UserResponse])
async def update_user(
    user_id: int,
    data: UserUpdate,
    current_user: AdminUser,
    db: AsyncSession = Depends(get_db),
):
    user = await UserService(db).update(user_id, data, updated_by_id=current_user.id)
    return ApiResponse(data=UserResponse.model_validate(user), message="User updated")


@router.post("/{user_id}/deactivate", response_model=ApiResponse[UserResponse])
async def deactivate_user(user_id: int, current_user: AdminUser, db: AsyncSession = Depends(get_db)):
    user = await UserService(db).set_active(user_id, False, current_user.id)
    return ApiResponse(data=UserResponse.model_validate(user), message="User deactivated")


@router.post("/{user_id}/activate", response_model=ApiResponse[UserResponse])
async def activate_user(user_id: int, current_user: AdminUser, db: AsyncSession = Depends(get_db)):
    user = await UserService(db).set_active(user_id, True, current_user.id)
    return ApiResponse(data=UserResponse.model_validate(user), message="User activated")


@router.post("/{user_id}/password", response_model=ApiResponse[UserResponse])
async def set_password(
    user_id: int,
    data: SetPassword,
    current_user: AdminUser,
    db: AsyncSession = Depends(get_db),
):
    user = await UserService(db).set_password(user_id, data.password, current_user.id)
    return ApiResponse(data=UserResponse.model_validate(user), message="Password set")
