"""Authentication module."""

from kys_portal.modules.auth.router import router
from kys_portal.modules.auth.schemas import LoginRequest, LoginResponse

__all__ = ["router", "LoginRequest", "LoginResponse"]
