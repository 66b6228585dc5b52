from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt

from codema.core.config import settings
from codema.core.exceptions import AuthenticationError

ACCESS_TOKEN = "access"
REFRESH_TOKEN = "refresh"


def _encode(claims: dict[str, Any], lifetime: timedelta) -> str:
    issued_at = datetime.now(timezone.utc)
    payload = {**claims, "iat": issued_at, "exp": issued_at + lifetime}
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def create_access_token(user_id: int, role: str) -> str:
    """Create JWT access token carrying the user's role."""
    return _encode(
        {"sub": str(user_id), "role": role, "type": ACCESS_TOKEN},
        timedelta(minutes=settings.access_token_expire_minutes),
    )


def create_refresh_token(user_id: int) -> str:
    """Create JWT refresh token."""
    return _encode(
        {"sub": str(user_id), "type": REFRESH_TOKEN},
        timedelta(days=settings.refresh_token_expire_days),
    )


def decode_token(token: str, token_type: str = ACCESS_TOKEN) -> dict[str, Any]:
    """
    Decode and validate JWT token.

    Raises:
        AuthenticationError: If token is invalid, expired or of the wrong type
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError as e:
        raise AuthenticationError(f"Invalid token: {e!s}") from e

    if payload.get("type") != token_type:
        raise AuthenticationError(f"Invalid token type, expected {token_type}")

    return payload
