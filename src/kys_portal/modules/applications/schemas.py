"""
KYS Application Schemas

Pydantic schemas for request validation and response serialization.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

from kys_portal.modules.applications.models import ApplicationStatus, ReviewStage, StageStatus
from kys_portal.modules.applications.wizard import (
    FACILITY_OPTIONS,
    SUPPORTED_COUNTRIES,
    canonical_choice,
)


def _check_established_year(year: int | None) -> None:
    current_year = datetime.now().year
    if year is not None and year > current_year:
        raise ValueError(f"established_year cannot be in the future (max: {current_year})")


def _clean_names(values: list[str]) -> list[str]:
    """Strip names, drop blanks and duplicates while keeping order."""
    cleaned: list[str] = []
    for value in values:
        value = value.strip()
        if value and value not in cleaned:
            cleaned.append(value)
    return cleaned


# ============================================
# Wizard Sections
# ============================================


class BasicInfo(BaseModel):
    """Step 1 - basic information."""

    school_name: str = Field(..., min_length=1, max_length=200)
    established_year: int = Field(..., ge=1000)
    country: str = Field(..., min_length=1, max_length=100)
    state: str = Field(..., min_length=1, max_length=100)
    location: str = Field(..., min_length=1, max_length=200)

    @field_validator("country")
    @classmethod
    def validate_country(cls, value: str) -> str:
        return canonical_choice(value, SUPPORTED_COUNTRIES, "country")


class ContactInfo(BaseModel):
    """Step 2 - contact and leadership."""

    principal_name: str = Field(..., min_length=1, max_length=200)
    email: EmailStr
    phone: str = Field(..., min_length=1, max_length=30)
    student_count: int = Field(..., ge=0)
    teacher_count: int = Field(..., ge=0)


class AcademicInfo(BaseModel):
    """Step 3 - academic information."""

    curriculum: str = Field(..., min_length=1, max_length=5000)
    facilities: list[str] = Field(default_factory=list)

    @field_validator("facilities")
    @classmethod
    def validate_facilities(cls, values: list[str]) -> list[str]:
        return _clean_names(
            [canonical_choice(value, FACILITY_OPTIONS, "facility") for value in values]
        )


class DocumentsInfo(BaseModel):
    """Step 4 - uploaded document names."""

    documents: list[str] = Field(..., min_length=1)

    @field_validator("documents")
    @classmethod
    def validate_documents(cls, values: list[str]) -> list[str]:
        cleaned = _clean_names(values)
        if not cleaned:
            raise ValueError("At least one document is required")
        return cleaned


class SchoolApplicationCreate(BaseModel):
    """Request body for POST /applications (complete application, submitted at once)."""

    basic: BasicInfo
    contact: ContactInfo
    academic: AcademicInfo
    documents: DocumentsInfo

    @model_validator(mode="after")
    def validate_application(self) -> "SchoolApplicationCreate":
        _check_established_year(self.basic.established_year)
        return self


# ============================================
# Draft Schemas (partial wizard data)
# ============================================


class BasicInfoDraft(BaseModel):
    school_name: str | None = Field(None, max_length=200)
    established_year: int | None = Field(None, ge=1000)
    country: str | None = Field(None, max_length=100)
    state: str | None = Field(None, max_length=100)
    location: str | None = Field(None, max_length=200)

    @field_validator("country")
    @classmethod
    def validate_country(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return value
        return canonical_choice(value, SUPPORTED_COUNTRIES, "country")


class ContactInfoDraft(BaseModel):
    principal_name: str | None = Field(None, max_length=200)
    email: EmailStr | None = None
    phone: str | None = Field(None, max_length=30)
    student_count: int | None = Field(None, ge=0)
    teacher_count: int | None = Field(None, ge=0)


class AcademicInfoDraft(BaseModel):
    curriculum: str | None = Field(None, max_length=5000)
    facilities: list[str] | None = None

    @field_validator("facilities")
    @classmethod
    def validate_facilities(cls, values: list[str] | None) -> list[str] | None:
        if values is None:
            return None
        return _clean_names(
            [canonical_choice(value, FACILITY_OPTIONS, "facility") for value in values]
        )


class DocumentsInfoDraft(BaseModel):
    documents: list[str] | None = None

    @field_validator("documents")
    @classmethod
    def validate_documents(cls, values: list[str] | None) -> list[str] | None:
        return None if values is None else _clean_names(values)


class ApplicationDraftUpdate(BaseModel):
    """
    Partial wizard data for "Save Draft".

    Only fields that are explicitly sent are written.
    """

    basic: BasicInfoDraft | None = None
    contact: ContactInfoDraft | None = None
    academic: AcademicInfoDraft | None = None
    documents: DocumentsInfoDraft | None = None

    @model_validator(mode="after")
    def validate_draft(self) -> "ApplicationDraftUpdate":
        if self.basic is not None:
            _check_established_year(self.basic.established_year)
        return self

    def to_fields(self) -> dict:
        """Flatten the sent sections into model field values."""
        fields: dict = {}
        for section in (self.basic, self.contact, self.academic, self.documents):
            if section is not None:
                fields.update(section.model_dump(exclude_unset=True))
        return fields


# ============================================
# Responses
# ============================================


class StageReview(BaseModel):
    """Decision record of one approval stage."""

    status: StageStatus
    reviewed_by: UUID | None = None
    review_date: datetime | None = None
    comments: str | None = None


class SchoolApplicationResponse(BaseModel):
    """Response after submitting a complete application."""

    id: UUID
    status: ApplicationStatus
    message: str = "Application submitted for country review."


class ApplicationListItem(BaseModel):
    """Application summary for queue and list views."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID = Field(..., description="Application UUID")
    school_name: str | None = Field(None, description="School name")
    country: str | None = Field(None, description="Country")
    state: str | None = Field(None, description="State or province")
    location: str | None = Field(None, description="City or location")
    status: ApplicationStatus = Field(..., description="Pipeline status")
    progress: int = Field(..., ge=0, le=100, description="Verification progress in percent")
    pending_stage: ReviewStage | None = Field(None, description="Stage awaiting a decision")
    submitted_date: datetime | None = Field(None, description="When the application was submitted")
    version: int = Field(..., description="Concurrency version")


class ApplicationListResponse(BaseModel):
    """Paginated list of applications."""

    applications: list[ApplicationListItem]
    total: int = Field(..., ge=0, description="Total number of applications matching filters")
    skip: int = Field(..., ge=0)
    limit: int = Field(..., ge=1, le=100)


class ApplicationDetailResponse(BaseModel):
    """Complete application including wizard state and stage decisions."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID

    school_name: str | None = None
    established_year: int | None = None
    country: str | None = None
    state: str | None = None
    location: str | None = None

    principal_name: str | None = None
    email: str | None = None
    phone: str | None = None
    student_count: int | None = None
    teacher_count: int | None = None

    curriculum: str | None = None
    facilities: list[str] = Field(default_factory=list)
    documents: list[str] = Field(default_factory=list)

    status: ApplicationStatus
    current_step: int
    country_approval: StageReview | None = None
    state_approval: StageReview | None = None
    local_verification: StageReview | None = None
    submitted_date: datetime | None = None

    progress: int = Field(..., ge=0, le=100)
    pending_stage: ReviewStage | None = None
    created_by: UUID
    version: int
    created_at: datetime | None = None
    updated_at: datetime | None = None


class WizardStepInfo(BaseModel):
    number: int
    name: str
    required_fields: list[str]
    optional_fields: list[str]


class CatalogueResponse(BaseModel):
    """Static wizard configuration for the registration form."""

    steps: list[WizardStepInfo]
    countries: list[str]
    facilities: list[str]
    documents: list[str]


# ============================================
# Reviewer Schemas
# ============================================


class StageDecisionRequest(BaseModel):
    """Request body for approving or rejecting a stage."""

    stage: ReviewStage = Field(..., description="Stage being decided (country, state, local)")
    comments: str | None = Field(
        None,
        max_length=1000,
        description="Reviewer comments",
        json_schema_extra={"example": "Registration certificate verified with the ministry."},
    )
    expected_version: int | None = Field(
        None,
        ge=1,
        description="Version the reviewer acted on; stale versions are refused",
    )


class StartReviewRequest(BaseModel):
    expected_version: int | None = Field(None, ge=1)


class PipelineStats(BaseModel):
    """Counts of applications per pipeline position."""

    submitted: int = Field(..., ge=0)
    country_review: int = Field(..., ge=0)
    state_review: int = Field(..., ge=0)
    local_verification: int = Field(..., ge=0)
    approved: int = Field(..., ge=0)
    rejected: int = Field(..., ge=0)
    approved_this_week: int = Field(..., ge=0)
    average_progress: float | None = Field(
        None, ge=0, le=100, description="Average progress of applications still in review"
    )
