"""Security utilities: caller roles and JWT helpers."""

from datetime import datetime, timedelta, timezone
from enum import StrEnum

from jose import jwt

from app.core.config import get_settings

settings = get_settings()


class UserRole(StrEnum):
    VIEWER = "viewer"
    USER = "user"
    MANAGER = "manager"
    ADMIN = "admin"


ROLE_RANK: dict[UserRole, int] = {
    UserRole.VIEWER: 0,
    UserRole.USER: 1,
    UserRole.MANAGER: 2,
    UserRole.ADMIN: 3,
}


def role_satisfies(role: UserRole, minimum: UserRole) -> bool:
    """True if ``role`` is at or above ``minimum`` in the hierarchy."""
    return ROLE_RANK[role] >= ROLE_RANK[minimum]


# ── JWT ───────────────────────────────────────────────────────

def create_access_token(
    user_id: int, role: UserRole | str, expires_delta: timedelta | None = None
) -> str:
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.jwt_expire_minutes)
    )
    payload = {
        "sub": str(user_id),
        "role": str(role),
        "exp": expire,
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> dict:
    """Decode and verify a JWT. Raises jose.JWTError on failure."""
    return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
