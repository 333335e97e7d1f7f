"""
Audit Log Router

Read-only audit trail for global administrators.
"""

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from kys_portal.core.auth import CurrentUser, get_current_global_admin
from kys_portal.core.database import get_db

from . import repository
from .models import AuditCategory, AuditSeverity
from .schemas import AuditLogEntry, AuditLogListResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/audit-logs", tags=["Audit"])


@router.get(
    "",
    response_model=AuditLogListResponse,
    summary="List audit log entries",
    responses={
        200: {"description": "Audit entries, newest first"},
        401: {"description": "Not authenticated"},
        403: {"description": "Not a global admin"},
    },
)
async def list_audit_logs(
    category: AuditCategory | None = Query(None, description="Filter by category"),
    severity: AuditSeverity | None = Query(None, description="Filter by severity"),
    resource_id: str | None = Query(None, description="Filter by resource ID"),
    search: str | None = Query(None, max_length=100, description="Search action or details"),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    user: CurrentUser = Depends(get_current_global_admin),
    db: AsyncSession = Depends(get_db),
) -> AuditLogListResponse:
    logger.info(f"Audit log requested by {user.id}: category={category}, severity={severity}")

    logs, total = await repository.list_logs(
        db,
        category=category,
        severity=severity,
        resource_id=resource_id,
        search=search,
        skip=skip,
        limit=limit,
    )
    return AuditLogListResponse(
        logs=[AuditLogEntry.model_validate(log) for log in logs],
        total=total,
        skip=skip,
        limit=limit,
    )
