"""FastAPI dependencies for caller identity, role gating and path checks."""

import re
from collections.abc import Awaitable, Callable
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError

from app.core.security import UserRole, decode_access_token, role_satisfies

# auto_error=False so a missing header is a 401, not FastAPI's default.
bearer_scheme = HTTPBearer(auto_error=False)

CODE_PATH_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")
PATH_PARAM_MAX_LENGTH = 255
STATUS_VALUES = {"true": True, "1": True, "false": False, "0": False}


class AuthContext:
    """Resolved identity carried through a request."""

    __slots__ = ("user_id", "role")

    def __init__(self, user_id: int, role: UserRole) -> None:
        self.user_id = user_id
        self.role = role


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_auth_context(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> AuthContext:
    """Decode the bearer JWT into an AuthContext."""
    if credentials is None:
        raise _unauthorized("Authentication required")

    try:
        payload = decode_access_token(credentials.credentials)
    except JWTError as exc:
        raise _unauthorized("Invalid or expired token") from exc

    try:
        return AuthContext(user_id=int(payload["sub"]), role=UserRole(payload["role"]))
    except (KeyError, TypeError, ValueError) as exc:
        raise _unauthorized("Malformed token payload") from exc


Auth = Annotated[AuthContext, Depends(get_auth_context)]


def require_role(minimum: UserRole) -> Callable[..., Awaitable[AuthContext]]:
    """Dependency factory: the caller, if their role is at least ``minimum``."""

    async def dependency(auth: Auth) -> AuthContext:
        if not role_satisfies(auth.role, minimum):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Insufficient permissions: requires {minimum} role",
            )
        return auth

    return dependency


# ── Path parameters ──────────────────────────────────────────

def valid_code_path(code: str) -> str:
    if not code or not code.strip():
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "Code parameter is required")
    if not CODE_PATH_PATTERN.match(code):
        raise HTTPException(
            status.HTTP_400_BAD_REQUEST,
            "Invalid code format. Use only letters, numbers, underscores, and hyphens.",
        )
    return code


def _text_param(label: str, value: str) -> str:
    if not value or not value.strip():
        raise HTTPException(status.HTTP_400_BAD_REQUEST, f"{label} parameter is required")
    if len(value) > PATH_PARAM_MAX_LENGTH:
        raise HTTPException(
            status.HTTP_400_BAD_REQUEST,
            f"{label} parameter is too long (max {PATH_PARAM_MAX_LENGTH} characters)",
        )
    return value.strip()


def valid_name_path(name: str) -> str:
    return _text_param("Name", name)


def valid_pattern_path(pattern: str) -> str:
    return _text_param("Pattern", pattern)


def valid_status_path(status_value: str) -> bool:
    try:
        return STATUS_VALUES[status_value.strip().lower()]
    except KeyError:
        raise HTTPException(
            status.HTTP_400_BAD_REQUEST,
            "Status must be one of: true, false, 1, 0",
        ) from None


CodePath = Annotated[str, Depends(valid_code_path)]
NamePath = Annotated[str, Depends(valid_name_path)]
PatternPath = Annotated[str, Depends(valid_pattern_path)]
StatusPath = Annotated[bool, Depends(valid_status_path)]
