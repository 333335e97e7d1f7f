"""
Audit Log Models

Append-only record of workflow and administrative actions.
"""

import enum
import uuid

from sqlalchemy import Enum, Index, String, Text
from sqlalchemy.dialects.postgresql import JSON, UUID
from sqlalchemy.orm import Mapped, mapped_column

from kys_portal.modules.shared import BaseModel


def _enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    return [member.value for member in enum_cls]


class AuditSeverity(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class AuditCategory(str, enum.Enum):
    AUTH = "auth"
    ADMIN = "admin"
    DATA = "data"
    SYSTEM = "system"


class AuditAction(str, enum.Enum):
    """Actions recorded in the audit log."""

    APPLICATION_SUBMITTED = "application.submitted"
    REVIEW_STARTED = "application.review_started"
    STAGE_APPROVED = "application.stage_approved"
    STAGE_REJECTED = "application.stage_rejected"
    USER_LOGIN = "auth.login"
    USER_LOGIN_FAILED = "auth.login_failed"
    DRAFTS_PURGED = "system.drafts_purged"


class AuditLog(BaseModel):
    """
    A single audit entry.

    actor_id is NULL for system actions (background jobs).
    """

    __tablename__ = "audit_logs"

    actor_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    actor_role: Mapped[str | None] = mapped_column(String(50), nullable=True)
    action: Mapped[str] = mapped_column(String(100), nullable=False)
    resource: Mapped[str] = mapped_column(String(100), nullable=False)
    resource_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    details: Mapped[str | None] = mapped_column(Text, nullable=True)
    extra: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    severity: Mapped[AuditSeverity] = mapped_column(
        Enum(AuditSeverity, name="audit_severity", values_callable=_enum_values),
        nullable=False,
        default=AuditSeverity.LOW,
    )
    category: Mapped[AuditCategory] = mapped_column(
        Enum(AuditCategory, name="audit_category", values_callable=_enum_values),
        nullable=False,
        default=AuditCategory.DATA,
    )

    __table_args__ = (
        Index("ix_audit_logs_resource", "resource", "resource_id"),
        Index("ix_audit_logs_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<AuditLog(action={self.action}, resource={self.resource}:{self.resource_id})>"
