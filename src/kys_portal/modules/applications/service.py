"""
KYS Application Service Layer

Business logic for KYS school registration applications.
Orchestrates the wizard, the approval workflow, persistence, the audit
trail and email notifications.

This module implements:
1. Registration Wizard:
   - Create and save drafts (partial data)
   - Advance / go back one step, validating the required fields of the
     step being left
   - Submit a complete draft, or submit a complete payload in one call

2. Approval Pipeline:
   - Country admin picks up a submitted application (start review)
   - Approve / reject the pending stage, strictly in order
     country -> state -> local
   - Role authority and jurisdiction checks per stage

3. Review Queue and Statistics:
   - Queue filtered to the stages the reviewer has authority over
   - Pipeline counts and average progress

Concurrency:
- Decisions read the row FOR UPDATE
- The version column is checked against the caller's expected_version and
  by SQLAlchemy on UPDATE; either mismatch is a ConcurrentModificationError
"""

import logging
import uuid
from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from kys_portal.core.auth import CurrentUser
from kys_portal.core.email import (
    send_application_approved,
    send_application_received,
    send_application_rejected,
    send_stage_approved,
)
from kys_portal.modules.applications import repository, workflow
from kys_portal.modules.applications.helpers import (
    application_to_detail,
    application_to_list_item,
)
from kys_portal.modules.applications.models import (
    ApplicationStatus,
    ReviewStage,
    SchoolApplication,
    StageStatus,
)
from kys_portal.modules.applications.schemas import (
    ApplicationDetailResponse,
    ApplicationDraftUpdate,
    ApplicationListItem,
    ApplicationListResponse,
    CatalogueResponse,
    PipelineStats,
    SchoolApplicationCreate,
    SchoolApplicationResponse,
    WizardStepInfo,
)
from kys_portal.modules.applications.wizard import (
    DOCUMENT_TYPES,
    FACILITY_OPTIONS,
    FIRST_STEP,
    LAST_STEP,
    SUPPORTED_COUNTRIES,
    WIZARD_STEPS,
    missing_fields,
    missing_fields_up_to,
)
from kys_portal.modules.audit import repository as audit_repository
from kys_portal.modules.audit.models import AuditAction, AuditCategory, AuditSeverity
from kys_portal.modules.users.models import UserRole

logger = logging.getLogger(__name__)

AUDIT_RESOURCE = "school_application"


class ApplicationServiceError(Exception):
    """Base exception for application service errors."""

    def __init__(self, message: str, error_code: str, status_code: int = 400):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        super().__init__(message)


class ApplicationValidationError(ApplicationServiceError):
    """Raised when required wizard fields are missing."""

    def __init__(self, message: str, missing: dict[int, list[str]] | None = None):
        self.missing = missing or {}
        super().__init__(
            message=message,
            error_code="VALIDATION_ERROR",
            status_code=422,
        )


class StageOrderViolationError(ApplicationServiceError):
    """Raised when a stage is acted on out of order or after the pipeline ended."""

    def __init__(self, message: str):
        super().__init__(
            message=message,
            error_code="STAGE_ORDER_VIOLATION",
            status_code=409,
        )


class ApplicationNotFoundError(ApplicationServiceError):
    """Raised when an application is not found."""

    def __init__(self, application_id: UUID | None = None):
        message = (
            f"Application {application_id} not found" if application_id else "Application not found"
        )
        super().__init__(
            message=message,
            error_code="APPLICATION_NOT_FOUND",
            status_code=404,
        )


class UnauthorizedReviewerError(ApplicationServiceError):
    """Raised when a reviewer lacks authority over a stage or jurisdiction."""

    def __init__(self, message: str):
        super().__init__(
            message=message,
            error_code="UNAUTHORIZED",
            status_code=403,
        )


class ApplicationNotEditableError(ApplicationServiceError):
    """Raised when a non-draft application is edited."""

    def __init__(self, current_status: str):
        self.current_status = current_status
        super().__init__(
            message=(
                f"Application can only be edited while in draft. Current status: {current_status}"
            ),
            error_code="APPLICATION_NOT_EDITABLE",
            status_code=409,
        )


class ConcurrentModificationError(ApplicationServiceError):
    """Raised when the application changed since the caller read it."""

    def __init__(self, application_id: UUID, expected: int | None = None, actual: int | None = None):
        if expected is not None and actual is not None:
            message = (
                f"Application {application_id} was modified by someone else "
                f"(expected version {expected}, current version {actual}). Reload and retry."
            )
        else:
            message = f"Application {application_id} was modified concurrently. Reload and retry."
        super().__init__(
            message=message,
            error_code="CONCURRENT_MODIFICATION",
            status_code=409,
        )


def _now() -> datetime:
    return datetime.now(UTC)


def _same_place(claim: str, value: str | None) -> bool:
    return value is not None and claim.strip().casefold() == value.strip().casefold()


def _check_jurisdiction(reviewer: CurrentUser, application: SchoolApplication) -> None:
    """
    Reviewers carrying a country or state claim may only act inside it.

    Reviewers without claims (e.g. development users) are not restricted.
    """
    if reviewer.country and not _same_place(reviewer.country, application.country):
        logger.warning(
            f"Reviewer {reviewer.id} ({reviewer.country}) outside jurisdiction of "
            f"application {application.id} ({application.country})"
        )
        raise UnauthorizedReviewerError(
            f"Application is outside your country jurisdiction ({reviewer.country})."
        )

    if reviewer.state and not _same_place(reviewer.state, application.state):
        logger.warning(
            f"Reviewer {reviewer.id} ({reviewer.state}) outside jurisdiction of "
            f"application {application.id} ({application.state})"
        )
        raise UnauthorizedReviewerError(
            f"Application is outside your state jurisdiction ({reviewer.state})."
        )


def _check_reviewer_authority(
    reviewer: CurrentUser,
    stage: ReviewStage,
    application: SchoolApplication,
) -> None:
    """
    Only the role mapped to a stage may decide it.

    Raises:
        UnauthorizedReviewerError: On role mismatch or outside jurisdiction
    """
    required_role = workflow.stage_authority(stage)
    if reviewer.role != required_role:
        logger.warning(
            f"Reviewer {reviewer.id} with role '{reviewer.role.value}' tried to decide "
            f"the {stage.value} stage of application {application.id}"
        )
        raise UnauthorizedReviewerError(
            f"Role '{reviewer.role.value}' cannot decide the {stage.value} stage. "
            f"Required role: '{required_role.value}'."
        )
    _check_jurisdiction(reviewer, application)


def _check_expected_version(application: SchoolApplication, expected_version: int | None) -> None:
    if expected_version is not None and application.version != expected_version:
        logger.warning(
            f"Stale version for application {application.id}: "
            f"expected={expected_version}, current={application.version}"
        )
        raise ConcurrentModificationError(application.id, expected_version, application.version)


async def _save(db: AsyncSession, application: SchoolApplication) -> SchoolApplication:
    """Persist an application, mapping a lost version race to ConcurrentModificationError."""
    try:
        return await repository.save(db, application)
    except StaleDataError as e:
        await db.rollback()
        logger.warning(f"Concurrent update detected for application {application.id}: {e}")
        raise ConcurrentModificationError(application.id) from e


# ============================================
# Registration Wizard
# ============================================


def get_catalogue() -> CatalogueResponse:
    """Wizard steps and the option lists used by the registration form."""
    return CatalogueResponse(
        steps=[
            WizardStepInfo(
                number=step.number,
                name=step.name,
                required_fields=list(step.required_fields),
                optional_fields=list(step.optional_fields),
            )
            for step in WIZARD_STEPS
        ],
        countries=list(SUPPORTED_COUNTRIES),
        facilities=list(FACILITY_OPTIONS),
        documents=list(DOCUMENT_TYPES),
    )


async def _get_owned_application(
    db: AsyncSession,
    application_id: UUID,
    owner: CurrentUser,
) -> SchoolApplication:
    """
    Load an application owned by the given school admin.

    Applications of other users are reported as not found so their
    existence is not disclosed.
    """
    application = await repository.get_by_id(db, application_id)

    if not application or application.created_by != owner.id:
        logger.warning(f"Application not found for owner {owner.id}: {application_id}")
        raise ApplicationNotFoundError(application_id)

    return application


async def _get_owned_draft(
    db: AsyncSession,
    application_id: UUID,
    owner: CurrentUser,
) -> SchoolApplication:
    application = await _get_owned_application(db, application_id, owner)

    if application.status != ApplicationStatus.DRAFT:
        logger.warning(
            f"Refusing to edit application {application_id}: status={application.status.value}"
        )
        raise ApplicationNotEditableError(application.status.value)

    return application


async def create_draft(
    db: AsyncSession,
    owner: CurrentUser,
    data: ApplicationDraftUpdate | None = None,
) -> ApplicationDetailResponse:
    """Start a new registration wizard, optionally with initial data."""
    fields = data.to_fields() if data else {}
    application = await repository.create_draft(db, owner.id, fields)
    logger.info(f"Draft application {application.id} created by {owner.id}")
    return application_to_detail(application)


async def save_draft(
    db: AsyncSession,
    application_id: UUID,
    owner: CurrentUser,
    data: ApplicationDraftUpdate,
) -> ApplicationDetailResponse:
    """
    Save partial wizard data ("Save Draft").

    Only fields present in the request are written; the wizard step is
    not changed.

    Raises:
        ApplicationNotFoundError: If the application doesn't exist or isn't owned
        ApplicationNotEditableError: If the application is no longer a draft
    """
    application = await _get_owned_draft(db, application_id, owner)

    fields = data.to_fields()
    for key, value in fields.items():
        setattr(application, key, value)

    application = await _save(db, application)
    logger.info(f"Draft {application_id} saved: fields={sorted(fields)}")
    return application_to_detail(application)


async def advance_step(
    db: AsyncSession,
    application_id: UUID,
    owner: CurrentUser,
) -> ApplicationDetailResponse:
    """
    Move the wizard forward one step.

    The required fields of the current step must be filled in first.
    Already at the last step, the step stays unchanged.

    Raises:
        ApplicationValidationError: If required fields of the current step are empty
    """
    application = await _get_owned_draft(db, application_id, owner)
    step = application.current_step

    missing = missing_fields(application, step)
    if missing:
        logger.info(f"Draft {application_id} cannot leave step {step}: missing={missing}")
        raise ApplicationValidationError(
            f"Please fill in all required fields: {', '.join(missing)}",
            {step: missing},
        )

    if step < LAST_STEP:
        application.current_step = step + 1
        application = await _save(db, application)
        logger.info(f"Draft {application_id} advanced to step {application.current_step}")

    return application_to_detail(application)


async def previous_step(
    db: AsyncSession,
    application_id: UUID,
    owner: CurrentUser,
) -> ApplicationDetailResponse:
    """Move the wizard back one step. No validation; never below step 1."""
    application = await _get_owned_draft(db, application_id, owner)

    if application.current_step > FIRST_STEP:
        application.current_step -= 1
        application = await _save(db, application)
        logger.info(f"Draft {application_id} back to step {application.current_step}")

    return application_to_detail(application)


async def _notify_received(application: SchoolApplication) -> None:
    # Non-blocking: email failures never fail the request
    try:
        await send_application_received(
            to_email=application.email,
            principal_name=application.principal_name,
            school_name=application.school_name,
            application_id=str(application.id),
        )
    except Exception as e:
        logger.error(f"Failed to send submission email: {e}", exc_info=True)


def _record_submitted(db: AsyncSession, application: SchoolApplication, owner: CurrentUser) -> None:
    audit_repository.record(
        db,
        action=AuditAction.APPLICATION_SUBMITTED.value,
        resource=AUDIT_RESOURCE,
        resource_id=application.id,
        actor_id=owner.id,
        actor_role=owner.role.value,
        details=f"{application.school_name} submitted for country review",
        extra={"country": application.country, "state": application.state},
        severity=AuditSeverity.LOW,
        category=AuditCategory.DATA,
    )


async def submit_draft(
    db: AsyncSession,
    application_id: UUID,
    owner: CurrentUser,
) -> ApplicationDetailResponse:
    """
    Submit a completed draft.

    Every step's required fields must be filled in. The application moves
    to 'submitted', submitted_date is stamped and the country stage opens
    as pending.

    Raises:
        ApplicationValidationError: If any step is incomplete
        ApplicationNotEditableError: If already submitted
    """
    application = await _get_owned_draft(db, application_id, owner)

    missing = missing_fields_up_to(application, LAST_STEP)
    if missing:
        logger.info(f"Draft {application_id} cannot be submitted: missing={missing}")
        first_step = min(missing)
        raise ApplicationValidationError(
            f"Please fill in all required fields of step {first_step}: "
            f"{', '.join(missing[first_step])}",
            missing,
        )

    try:
        workflow.mark_submitted(application, _now())
    except workflow.InvalidStatusTransitionError as e:
        logger.error(f"Status transition error: {e}")
        raise ApplicationNotEditableError(application.status.value) from e

    application.current_step = LAST_STEP
    _record_submitted(db, application, owner)
    application = await _save(db, application)
    logger.info(f"Application {application_id} submitted by {owner.id}")

    await _notify_received(application)

    return application_to_detail(application)


async def submit_application(
    db: AsyncSession,
    data: SchoolApplicationCreate,
    owner: CurrentUser,
) -> SchoolApplicationResponse:
    """
    Create and submit a complete application in one call.

    The payload has already been validated by the schema; the application
    is stored directly in 'submitted' with the country stage pending.
    """
    application = SchoolApplication(
        id=uuid.uuid4(),
        created_by=owner.id,
        status=ApplicationStatus.DRAFT,
        current_step=LAST_STEP,
        # Step 1
        school_name=data.basic.school_name,
        established_year=data.basic.established_year,
        country=data.basic.country,
        state=data.basic.state,
        location=data.basic.location,
        # Step 2
        principal_name=data.contact.principal_name,
        email=data.contact.email,
        phone=data.contact.phone,
        student_count=data.contact.student_count,
        teacher_count=data.contact.teacher_count,
        # Step 3
        curriculum=data.academic.curriculum,
        facilities=list(data.academic.facilities),
        # Step 4
        documents=list(data.documents.documents),
    )
    workflow.mark_submitted(application, _now())

    _record_submitted(db, application, owner)
    application = await repository.add(db, application)
    logger.info(f"Application {application.id} created and submitted by {owner.id}")

    await _notify_received(application)

    return SchoolApplicationResponse(id=application.id, status=application.status)


async def list_my_applications(db: AsyncSession, owner: CurrentUser) -> list[ApplicationListItem]:
    """Applications created by the school admin, with progress."""
    applications = await repository.list_for_owner(db, owner.id)
    return [application_to_list_item(application) for application in applications]


async def get_application(
    db: AsyncSession,
    application_id: UUID,
    user: CurrentUser,
) -> ApplicationDetailResponse:
    """
    Application detail for its owner or for a reviewer.

    Reviewers never see drafts.

    Raises:
        ApplicationNotFoundError: If missing, not visible to the user
    """
    application = await repository.get_by_id(db, application_id)

    if not application:
        logger.warning(f"Application not found: {application_id}")
        raise ApplicationNotFoundError(application_id)

    if user.is_reviewer:
        if application.status == ApplicationStatus.DRAFT:
            raise ApplicationNotFoundError(application_id)
    elif application.created_by != user.id:
        raise ApplicationNotFoundError(application_id)

    return application_to_detail(application)


# ============================================
# Approval Pipeline
# ============================================


async def _load_for_decision(db: AsyncSession, application_id: UUID) -> SchoolApplication:
    application = await repository.get_for_update(db, application_id)

    if not application or application.status == ApplicationStatus.DRAFT:
        logger.warning(f"Application not found for review: {application_id}")
        raise ApplicationNotFoundError(application_id)

    return application


async def start_review(
    db: AsyncSession,
    application_id: UUID,
    reviewer: CurrentUser,
    expected_version: int | None = None,
) -> ApplicationDetailResponse:
    """
    Country admin picks up a submitted application.

    Moves 'submitted' to 'country-review'. The country stage stays pending.

    Raises:
        ApplicationNotFoundError: If application doesn't exist
        UnauthorizedReviewerError: If the reviewer has no authority over the country stage
        StageOrderViolationError: If the application is not 'submitted'
        ConcurrentModificationError: On a stale expected_version
    """
    logger.info(f"Reviewer {reviewer.id} starting review of application {application_id}")

    application = await _load_for_decision(db, application_id)
    _check_reviewer_authority(reviewer, ReviewStage.COUNTRY, application)
    _check_expected_version(application, expected_version)

    try:
        workflow.mark_country_review(application)
    except workflow.InvalidStatusTransitionError as e:
        logger.warning(f"Cannot start review of {application_id}: {e}")
        raise StageOrderViolationError(
            f"Review can only be started on a submitted application. "
            f"Current status: {application.status.value}"
        ) from e

    audit_repository.record(
        db,
        action=AuditAction.REVIEW_STARTED.value,
        resource=AUDIT_RESOURCE,
        resource_id=application.id,
        actor_id=reviewer.id,
        actor_role=reviewer.role.value,
        details="Country review started",
        category=AuditCategory.ADMIN,
    )
    application = await _save(db, application)
    logger.info(f"Application {application_id} now in country review")

    return application_to_detail(application)


async def _decide(
    db: AsyncSession,
    application_id: UUID,
    reviewer: CurrentUser,
    stage: ReviewStage,
    decision: StageStatus,
    comments: str | None,
    expected_version: int | None,
) -> SchoolApplication:
    """
    Shared approve/reject path.

    Checks run before any mutation: existence, role authority,
    jurisdiction, expected version, then stage order.
    """
    application = await _load_for_decision(db, application_id)
    _check_reviewer_authority(reviewer, stage, application)
    _check_expected_version(application, expected_version)

    previous_status = application.status
    try:
        new_status = workflow.decide_stage(
            application,
            stage,
            decision,
            reviewer_id=reviewer.id,
            decided_at=_now(),
            comments=comments,
        )
    except workflow.StageTransitionError as e:
        logger.warning(f"Stage order violation on application {application_id}: {e}")
        raise StageOrderViolationError(str(e)) from e
    except workflow.InvalidStatusTransitionError as e:
        logger.error(f"Status transition error: {e}")
        raise StageOrderViolationError(str(e)) from e

    approved = decision == StageStatus.APPROVED
    audit_repository.record(
        db,
        action=(AuditAction.STAGE_APPROVED if approved else AuditAction.STAGE_REJECTED).value,
        resource=AUDIT_RESOURCE,
        resource_id=application.id,
        actor_id=reviewer.id,
        actor_role=reviewer.role.value,
        details=f"{stage.value} stage {decision.value}: {previous_status.value} -> {new_status.value}",
        extra={"stage": stage.value, "comments": comments},
        severity=AuditSeverity.MEDIUM if approved else AuditSeverity.HIGH,
        category=AuditCategory.ADMIN,
    )

    application = await _save(db, application)
    logger.info(
        f"Application {application_id}: {stage.value} stage {decision.value} by {reviewer.id}, "
        f"status {previous_status.value} -> {new_status.value}"
    )
    return application


async def approve_stage(
    db: AsyncSession,
    application_id: UUID,
    reviewer: CurrentUser,
    stage: ReviewStage,
    comments: str | None = None,
    expected_version: int | None = None,
) -> ApplicationDetailResponse:
    """
    Approve the pending stage.

    Opens the next stage, or makes the application 'approved' after local
    verification. Sends a progress or approval email (non-blocking).

    Raises:
        ApplicationNotFoundError: If application doesn't exist
        UnauthorizedReviewerError: If the reviewer has no authority over the stage
        StageOrderViolationError: If the stage is not the pending one
        ConcurrentModificationError: On a stale version
    """
    application = await _decide(
        db,
        application_id,
        reviewer,
        stage,
        StageStatus.APPROVED,
        comments,
        expected_version,
    )

    try:
        if application.status == ApplicationStatus.APPROVED:
            await send_application_approved(
                to_email=application.email,
                principal_name=application.principal_name,
                school_name=application.school_name,
            )
        else:
            await send_stage_approved(
                to_email=application.email,
                principal_name=application.principal_name,
                school_name=application.school_name,
                stage=stage.value,
                progress=workflow.compute_progress(application),
            )
    except Exception as e:
        logger.error(f"Failed to send approval email: {e}", exc_info=True)

    return application_to_detail(application)


async def reject_stage(
    db: AsyncSession,
    application_id: UUID,
    reviewer: CurrentUser,
    stage: ReviewStage,
    comments: str | None = None,
    expected_version: int | None = None,
) -> ApplicationDetailResponse:
    """
    Reject the pending stage, ending the pipeline.

    Later stages are never evaluated.

    Raises:
        Same as approve_stage
    """
    application = await _decide(
        db,
        application_id,
        reviewer,
        stage,
        StageStatus.REJECTED,
        comments,
        expected_version,
    )

    try:
        await send_application_rejected(
            to_email=application.email,
            principal_name=application.principal_name,
            school_name=application.school_name,
            stage=stage.value,
            comments=comments,
        )
    except Exception as e:
        logger.error(f"Failed to send rejection email: {e}", exc_info=True)

    return application_to_detail(application)


# ============================================
# Review Queue
# ============================================


def _queue_statuses(
    reviewer: CurrentUser,
    status: ApplicationStatus | None,
    stage: ReviewStage | None,
) -> list[ApplicationStatus] | None:
    """
    Statuses visible in a reviewer's queue.

    Stage reviewers default to the statuses in which their stage is
    pending. An explicit status or stage filter narrows that further.
    A stage filter outside the reviewer's own stages matches nothing.
    Global admins see everything that has been submitted.
    """
    if (
        stage is not None
        and reviewer.role != UserRole.GLOBAL_ADMIN
        and stage not in workflow.stages_for_role(reviewer.role)
    ):
        return []

    if stage is not None:
        stage_statuses = (
            set(workflow.COUNTRY_PENDING_STATUSES)
            if stage is ReviewStage.COUNTRY
            else {workflow.STAGE_REVIEW_STATUS[stage]}
        )
    else:
        stage_statuses = None

    if reviewer.role != UserRole.GLOBAL_ADMIN and status is None and stage is None:
        own_stages = workflow.stages_for_role(reviewer.role)
        stage_statuses = set()
        for own_stage in own_stages:
            if own_stage is ReviewStage.COUNTRY:
                stage_statuses |= workflow.COUNTRY_PENDING_STATUSES
            else:
                stage_statuses.add(workflow.STAGE_REVIEW_STATUS[own_stage])

    if status is not None:
        if stage_statuses is not None and status not in stage_statuses:
            return []
        return [status]

    return sorted(stage_statuses, key=lambda s: s.value) if stage_statuses is not None else None


async def get_review_queue(
    db: AsyncSession,
    reviewer: CurrentUser,
    *,
    status: ApplicationStatus | None = None,
    stage: ReviewStage | None = None,
    country: str | None = None,
    search: str | None = None,
    skip: int = 0,
    limit: int = 20,
) -> ApplicationListResponse:
    """
    Paginated review queue for a reviewer.

    Restricted to the reviewer's jurisdiction claims. Without filters a
    stage reviewer sees the applications waiting on their stage.
    """
    logger.info(
        f"Review queue for {reviewer.id} ({reviewer.role.value}): status={status}, "
        f"stage={stage}, country={country}, search={search}, skip={skip}, limit={limit}"
    )

    limit = min(max(1, limit), 100)
    skip = max(0, skip)

    statuses = _queue_statuses(reviewer, status, stage)
    if statuses == []:
        return ApplicationListResponse(applications=[], total=0, skip=skip, limit=limit)

    # Jurisdiction claims override the requested filter
    country_filter = reviewer.country or country
    state_filter = reviewer.state

    applications, total = await repository.list_for_review(
        db,
        statuses=statuses,
        country=country_filter,
        state=state_filter,
        search=search,
        skip=skip,
        limit=limit,
    )

    logger.info(f"Found {total} applications, returning {len(applications)}")

    return ApplicationListResponse(
        applications=[application_to_list_item(application) for application in applications],
        total=total,
        skip=skip,
        limit=limit,
    )


async def get_pipeline_stats(db: AsyncSession) -> PipelineStats:
    """Aggregated counts for the reviewer dashboard."""
    logger.info("Getting pipeline stats")
    stats = await repository.get_pipeline_stats(db)
    logger.info(f"Pipeline stats: {stats}")
    return PipelineStats(**stats)
