"""
KYS Application Models

Database model for "Know Your School" registration applications.
Descriptive fields are nullable so a draft can hold partial wizard data.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import DateTime, Enum, Index, Integer, String, Text, func
from sqlalchemy.dialects.postgresql import JSON, UUID
from sqlalchemy.orm import Mapped, mapped_column

from kys_portal.core.database import Base


def _enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    return [member.value for member in enum_cls]


class ApplicationStatus(str, enum.Enum):
    """Aggregate position of an application in the approval pipeline."""

    DRAFT = "draft"
    SUBMITTED = "submitted"
    COUNTRY_REVIEW = "country-review"
    STATE_REVIEW = "state-review"
    LOCAL_VERIFICATION = "local-verification"
    APPROVED = "approved"
    REJECTED = "rejected"


class ReviewStage(str, enum.Enum):
    """Approval stages, evaluated strictly in declaration order."""

    COUNTRY = "country"
    STATE = "state"
    LOCAL = "local"


class StageStatus(str, enum.Enum):
    """Status of a single approval stage."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class SchoolApplication(Base):
    """
    School registration (KYS) application.

    The three approval sub-records are JSON objects of the form
    {status, reviewed_by, review_date, comments} and stay NULL until
    the pipeline reaches that stage.
    """

    __tablename__ = "school_applications"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    # Step 1 - basic information
    school_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    established_year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    country: Mapped[str | None] = mapped_column(String(100), nullable=True)
    state: Mapped[str | None] = mapped_column(String(100), nullable=True)
    location: Mapped[str | None] = mapped_column(String(200), nullable=True)

    # Step 2 - contact & leadership
    principal_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(30), nullable=True)
    student_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    teacher_count: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Step 3 - academic information
    curriculum: Mapped[str | None] = mapped_column(Text, nullable=True)
    facilities: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    # Step 4 - documents
    documents: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    # Pipeline
    status: Mapped[ApplicationStatus] = mapped_column(
        Enum(ApplicationStatus, name="kys_application_status", values_callable=_enum_values),
        nullable=False,
        default=ApplicationStatus.DRAFT,
    )
    current_step: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    country_approval: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    state_approval: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    local_verification: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    submitted_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Owning school admin
    created_by: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)

    # Optimistic concurrency counter, bumped by SQLAlchemy on every UPDATE
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("ix_school_applications_status", "status"),
        Index("ix_school_applications_country_state", "country", "state"),
        Index("ix_school_applications_created_by", "created_by"),
    )

    def __repr__(self) -> str:
        return f"<SchoolApplication(id={self.id}, status={self.status})>"
