from codema.core.auth.models import STAFF_ROLES, User, UserRole
from codema.core.auth.service import AuthService
from codema.core.auth.jwt import create_access_token, create_refresh_token, decode_token
from codema.core.auth.dependencies import get_current_user, require_roles

__all__ = [
    "STAFF_ROLES",
    "User",
    "UserRole",
    "AuthService",
    "create_access_token",
    "create_refresh_token",
    "decode_token",
    "get_current_user",
    "require_roles",
]
