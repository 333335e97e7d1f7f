"""Authentication router."""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from kys_portal.core.database import get_db
from kys_portal.core.security import create_access_token, create_refresh_token, verify_password
from kys_portal.modules.audit import repository as audit_repository
from kys_portal.modules.audit.models import AuditAction, AuditCategory, AuditSeverity
from kys_portal.modules.auth.schemas import LoginRequest, LoginResponse, UserResponse
from kys_portal.modules.users.repository import UserRepository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])

_INVALID_CREDENTIALS = {
    "error": "INVALID_CREDENTIALS",
    "message": "Invalid email or password.",
}


@router.post("/login", response_model=LoginResponse)
async def login(
    credentials: LoginRequest,
    db: AsyncSession = Depends(get_db),
) -> LoginResponse:
    """
    Authenticate a portal user and return JWT tokens.

    The access token carries the role and jurisdiction claims used by the
    review workflow.

    Raises:
        HTTPException 401: Invalid credentials
        HTTPException 403: Account inactive
    """
    user = await UserRepository.get_by_email(db, credentials.email)

    if not user or not verify_password(credentials.password, user.password_hash):
        logger.warning(f"Failed login attempt for: {credentials.email}")
        audit_repository.record(
            db,
            action=AuditAction.USER_LOGIN_FAILED.value,
            resource="user",
            resource_id=user.id if user else None,
            details=f"Failed login for {credentials.email}",
            severity=AuditSeverity.MEDIUM,
            category=AuditCategory.AUTH,
        )
        await db.commit()
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=_INVALID_CREDENTIALS,
        )

    if not user.is_active:
        logger.warning(f"Login attempt for inactive account: {credentials.email}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "error": "ACCOUNT_INACTIVE",
                "message": "Your account has been deactivated.",
            },
        )

    additional_claims = {
        "email": user.email,
        "role": user.role.value,
        "name": user.full_name,
        "country": user.country,
        "state": user.state,
        "lga": user.lga,
    }

    access_token = create_access_token(
        subject=str(user.id),
        additional_claims=additional_claims,
    )
    refresh_token = create_refresh_token(subject=str(user.id))

    audit_repository.record(
        db,
        action=AuditAction.USER_LOGIN.value,
        resource="user",
        resource_id=user.id,
        actor_id=user.id,
        actor_role=user.role.value,
        category=AuditCategory.AUTH,
    )
    await db.commit()

    logger.info(f"User logged in: {user.id} (role: {user.role.value})")

    return LoginResponse(
        access_token=access_token,
        refresh_token=refresh_token,
        token_type="bearer",
        user=UserResponse(
            id=str(user.id),
            email=user.email,
            full_name=user.full_name,
            role=user.role.value,
            country=user.country,
            state=user.state,
            lga=user.lga,
            is_active=user.is_active,
        ),
    )
