from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from codema.core.auth.dependencies import CurrentUser
from codema.core.auth.schemas import (
    LoginRequest,
    LoginResponse,
    RefreshRequest,
    TokenResponse,
    UserResponse,
)
from codema.core.auth.service import AuthService
from codema.core.database import get_db
from codema.shared.schemas import ApiResponse

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/login", response_model=ApiResponse[LoginResponse])
async def login(
    request: Request,
    data: LoginRequest,
    db: AsyncSession = Depends(get_db),
):
    """Authenticate user and return tokens."""
    ip_address = request.client.host if request.client else None

    user, access_token, refresh_token = await AuthService(db).authenticate(
        email=data.email,
        password=data.password,
        ip_address=ip_address,
    )

    return ApiResponse(
        data=LoginResponse(
            user=UserResponse.model_validate(user),
            access_token=access_token,
            refresh_token=refresh_token,
        ),
        message="Login successful",
    )


@router.post("/refresh", response_model=ApiResponse[TokenResponse])
async def refresh_tokens(
    data: RefreshRequest,
    db: AsyncSession = Depends(get_db),
):
    """Refresh access token using refresh token."""
    access_token, refresh_token = await AuthService(db).refresh_tokens(data.refresh_token)

    return ApiResponse(
        data=TokenResponse(access_token=access_token, refresh_token=refresh_token),
        message="Tokens refreshed",
    )


@router.get("/me", response_model=ApiResponse[UserResponse])
async def get_current_user_info(current_user: CurrentUser):
    """Get current authenticated user info."""
    return ApiResponse(
        data=UserResponse.model_validate(current_user),
        message="User info retrieved",
    )
