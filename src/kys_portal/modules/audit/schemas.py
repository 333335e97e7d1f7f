"""Audit log response schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from .models import AuditCategory, AuditSeverity


class AuditLogEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    actor_id: UUID | None = None
    actor_role: str | None = None
    action: str
    resource: str
    resource_id: str | None = None
    details: str | None = None
    extra: dict | None = None
    severity: AuditSeverity
    category: AuditCategory
    created_at: datetime


class AuditLogListResponse(BaseModel):
    """Paginated audit log."""

    logs: list[AuditLogEntry]
    total: int = Field(..., ge=0)
    skip: int = Field(..., ge=0)
    limit: int = Field(..., ge=1, le=200)
