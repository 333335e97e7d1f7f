"""
Authentication and Authorization Module

Provides authentication dependencies for FastAPI endpoints.
This module validates JWT bearer tokens and enforces role-based access
using the security utilities defined in security.py.

SECURITY NOTE:
- Development mode test tokens are ONLY accepted when PYTHON_ENV=development
- Production environments MUST set PYTHON_ENV=production to disable them
"""

import logging
import os
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from kys_portal.core.config import settings
from kys_portal.core.security import decode_token
from kys_portal.modules.users.models import REVIEWER_ROLES, UserRole

logger = logging.getLogger(__name__)

# Security scheme for OpenAPI documentation
security = HTTPBearer(
    auto_error=True,
    description="JWT Bearer token for authentication",
)


@dataclass
class CurrentUser:
    """
    Represents an authenticated portal user.

    Populated from JWT claims after token validation.

    Attributes:
        id: User's unique identifier
        email: User's email address
        role: Portal role
        name: Display name (optional)
        country: Country jurisdiction claim (reviewers)
        state: State jurisdiction claim (reviewers)
        lga: LGA jurisdiction claim (local reviewers)
    """

    id: UUID
    email: str
    role: UserRole
    name: str | None = None
    country: str | None = None
    state: str | None = None
    lga: str | None = None

    @property
    def is_reviewer(self) -> bool:
        return self.role in REVIEWER_ROLES

    def __str__(self) -> str:
        return f"CurrentUser(id={self.id}, role={self.role.value})"


def _is_dev_mode_safe() -> bool:
    """
    Check if development test tokens may be accepted.

    Requires PYTHON_ENV=development in both the settings and the raw
    environment, and never production or staging.
    """
    env_var = os.getenv("PYTHON_ENV", "development").lower()

    is_safe = (
        settings.is_development
        and not settings.is_production
        and env_var not in ("production", "staging")
    )

    if is_safe:
        logger.warning(
            "SECURITY: Development auth mode is ENABLED. This MUST NOT be used in production!"
        )

    return is_safe


_DEVELOPMENT_MODE = _is_dev_mode_safe()

# Development users keyed by test token, one per role
_DEV_USERS: dict[str, CurrentUser] = {
    f"dev-{role.value}": CurrentUser(
        id=UUID(int=index + 1),
        email=f"{role.value}@kys.dev",
        role=role,
        name=f"Development {role.value}",
    )
    for index, role in enumerate(UserRole)
}


def _unauthorized(error: str, message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"error": error, "message": message},
        headers={"WWW-Authenticate": "Bearer"},
    )


async def _validate_jwt_token(token: str) -> CurrentUser:
    """
    Validate a JWT token and extract user claims.

    Args:
        token: JWT token string from the Authorization header

    Returns:
        CurrentUser built from the token claims

    Raises:
        HTTPException 401: If the token is invalid, expired or malformed
    """
    if _DEVELOPMENT_MODE and token in _DEV_USERS:
        logger.debug("Development mode: using test token")
        return _DEV_USERS[token]

    payload = decode_token(token)

    if payload is None:
        logger.warning("Invalid or expired JWT token")
        raise _unauthorized("INVALID_TOKEN", "Invalid or expired authentication token.")

    if payload.get("type", "access") != "access":
        logger.warning(f"Invalid token type: {payload.get('type')}")
        raise _unauthorized("INVALID_TOKEN_TYPE", "This endpoint requires an access token.")

    try:
        user_id_str = payload.get("sub")
        if not user_id_str:
            raise ValueError("Missing 'sub' claim in token")

        return CurrentUser(
            id=UUID(user_id_str),
            email=payload.get("email", ""),
            role=UserRole(payload.get("role", "")),
            name=payload.get("name"),
            country=payload.get("country"),
            state=payload.get("state"),
            lga=payload.get("lga"),
        )
    except ValueError as e:
        logger.warning(f"Invalid token claims: {e}")
        raise _unauthorized(
            "INVALID_TOKEN_CLAIMS", "Token contains invalid or missing claims."
        ) from e


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> CurrentUser:
    """
    FastAPI dependency that validates the bearer token and returns the user.

    Raises:
        HTTPException 401: If the token is missing, invalid, or expired
    """
    user = await _validate_jwt_token(credentials.credentials)
    logger.debug(f"Authenticated user: {user.id} ({user.role.value})")
    return user


def require_roles(*roles: UserRole) -> Callable[..., Awaitable[CurrentUser]]:
    """
    Build a dependency that only admits users holding one of the given roles.

    Usage:
        @router.get("/reviews")
        async def queue(user: CurrentUser = Depends(require_roles(UserRole.COUNTRY_ADMIN))):
            ...

    Raises:
        HTTPException 403: If the user's role is not allowed
    """
    allowed = frozenset(roles)

    async def _dependency(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if user.role not in allowed:
            logger.warning(
                f"Access denied: user {user.id} has role '{user.role.value}', "
                f"required one of {sorted(role.value for role in allowed)}"
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={
                    "error": "ROLE_NOT_ALLOWED",
                    "message": "Your role does not have access to this endpoint.",
                },
            )
        return user

    return _dependency


get_current_reviewer = require_roles(*REVIEWER_ROLES)
get_current_school_admin = require_roles(UserRole.SCHOOL_ADMIN)
get_current_global_admin = require_roles(UserRole.GLOBAL_ADMIN)


__all__ = [
    "CurrentUser",
    "get_current_user",
    "require_roles",
    "get_current_reviewer",
    "get_current_school_admin",
    "get_current_global_admin",
]
