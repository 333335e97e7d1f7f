"""
Audit Log Repository

record() only adds the entry to the session; it is committed together
with the change it describes.
"""

from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import AuditCategory, AuditLog, AuditSeverity


def record(
    db: AsyncSession,
    *,
    action: str,
    resource: str,
    resource_id: UUID | str | None = None,
    actor_id: UUID | None = None,
    actor_role: str | None = None,
    details: str | None = None,
    extra: dict | None = None,
    severity: AuditSeverity = AuditSeverity.LOW,
    category: AuditCategory = AuditCategory.DATA,
) -> AuditLog:
    """Add an audit entry to the current session."""
    entry = AuditLog(
        actor_id=actor_id,
        actor_role=actor_role,
        action=action,
        resource=resource,
        resource_id=str(resource_id) if resource_id is not None else None,
        details=details,
        extra=extra,
        severity=severity,
        category=category,
    )
    db.add(entry)
    return entry


async def list_logs(
    db: AsyncSession,
    *,
    category: AuditCategory | None = None,
    severity: AuditSeverity | None = None,
    resource_id: str | None = None,
    search: str | None = None,
    skip: int = 0,
    limit: int = 50,
) -> tuple[list[AuditLog], int]:
    """
    List audit entries, newest first.

    Returns:
        Tuple of (entries, total count matching filters)
    """
    query = select(AuditLog)

    if category:
        query = query.where(AuditLog.category == category)
    if severity:
        query = query.where(AuditLog.severity == severity)
    if resource_id:
        query = query.where(AuditLog.resource_id == resource_id)
    if search:
        search_pattern = f"%{search}%"
        query = query.where(
            or_(
                AuditLog.action.ilike(search_pattern),
                AuditLog.details.ilike(search_pattern),
                AuditLog.actor_role.ilike(search_pattern),
            )
        )

    count_query = select(func.count()).select_from(query.subquery())
    total = (await db.execute(count_query)).scalar() or 0

    query = query.order_by(AuditLog.created_at.desc()).offset(skip).limit(limit)
    result = await db.execute(query)
    return list(result.scalars().all()), total
