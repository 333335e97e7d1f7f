"""
KYS Approval Workflow

Pure state-machine logic for the three-stage approval pipeline
(country -> state -> local). Nothing here touches the database; the
service layer loads an application, calls into this module to validate
and apply a transition, then persists the result.

Invariants enforced here:
- Stages are decided strictly in order; a later stage is never approved
  while an earlier one is not.
- A rejection at any stage ends the pipeline; later stages stay empty.
- The overall status always matches the most advanced sub-record.
- Every mutation is validated first, so a refused transition leaves the
  application untouched.
"""

from datetime import datetime
from uuid import UUID

from kys_portal.core.config import settings
from kys_portal.modules.applications.models import (
    ApplicationStatus,
    ReviewStage,
    SchoolApplication,
    StageStatus,
)
from kys_portal.modules.users.models import UserRole

STAGE_ORDER: tuple[ReviewStage, ...] = (
    ReviewStage.COUNTRY,
    ReviewStage.STATE,
    ReviewStage.LOCAL,
)

# Model attribute holding each stage's sub-record
STAGE_FIELDS: dict[ReviewStage, str] = {
    ReviewStage.COUNTRY: "country_approval",
    ReviewStage.STATE: "state_approval",
    ReviewStage.LOCAL: "local_verification",
}

# Progress contributed by each approved stage (sums to 100)
STAGE_WEIGHTS: dict[ReviewStage, int] = {
    ReviewStage.COUNTRY: 33,
    ReviewStage.STATE: 33,
    ReviewStage.LOCAL: 34,
}

# Overall status while a stage is the one awaiting a decision
STAGE_REVIEW_STATUS: dict[ReviewStage, ApplicationStatus] = {
    ReviewStage.COUNTRY: ApplicationStatus.COUNTRY_REVIEW,
    ReviewStage.STATE: ApplicationStatus.STATE_REVIEW,
    ReviewStage.LOCAL: ApplicationStatus.LOCAL_VERIFICATION,
}

TERMINAL_STATUSES = frozenset({ApplicationStatus.APPROVED, ApplicationStatus.REJECTED})

# Statuses in which the country stage is the pending one
COUNTRY_PENDING_STATUSES = frozenset(
    {ApplicationStatus.SUBMITTED, ApplicationStatus.COUNTRY_REVIEW}
)

VALID_STATUS_TRANSITIONS: dict[ApplicationStatus, set[ApplicationStatus]] = {
    ApplicationStatus.DRAFT: {
        ApplicationStatus.SUBMITTED,  # Final wizard submit
    },
    ApplicationStatus.SUBMITTED: {
        ApplicationStatus.COUNTRY_REVIEW,  # Country admin picked it up
        ApplicationStatus.STATE_REVIEW,  # Country stage approved without explicit pickup
        ApplicationStatus.REJECTED,
    },
    ApplicationStatus.COUNTRY_REVIEW: {
        ApplicationStatus.STATE_REVIEW,
        ApplicationStatus.REJECTED,
    },
    ApplicationStatus.STATE_REVIEW: {
        ApplicationStatus.LOCAL_VERIFICATION,
        ApplicationStatus.REJECTED,
    },
    ApplicationStatus.LOCAL_VERIFICATION: {
        ApplicationStatus.APPROVED,
        ApplicationStatus.REJECTED,
    },
    # Terminal states - no transitions allowed
    ApplicationStatus.APPROVED: set(),
    ApplicationStatus.REJECTED: set(),
}


class InvalidStatusTransitionError(ValueError):
    """Raised when an invalid status transition is attempted."""

    def __init__(self, current_status: ApplicationStatus, new_status: ApplicationStatus):
        self.current_status = current_status
        self.new_status = new_status
        valid_transitions = VALID_STATUS_TRANSITIONS.get(current_status, set())
        super().__init__(
            f"Invalid status transition: {current_status.value} -> {new_status.value}. "
            f"Valid transitions: {sorted(s.value for s in valid_transitions)}"
        )


class StageTransitionError(ValueError):
    """Raised when a stage is decided out of order or after the pipeline ended."""

    def __init__(
        self,
        stage: ReviewStage,
        expected_stage: ReviewStage | None,
        current_status: ApplicationStatus,
    ):
        self.stage = stage
        self.expected_stage = expected_stage
        self.current_status = current_status
        if expected_stage is None:
            message = (
                f"Stage '{stage.value}' cannot be decided: application is "
                f"'{current_status.value}' and has no pending stage."
            )
        else:
            message = (
                f"Stage '{stage.value}' is not the pending stage. "
                f"Pending stage: '{expected_stage.value}'."
            )
        super().__init__(message)


def stage_authority(stage: ReviewStage) -> UserRole:
    """Return the role allowed to decide a stage."""
    if stage is ReviewStage.COUNTRY:
        return UserRole.COUNTRY_ADMIN
    if stage is ReviewStage.STATE:
        return UserRole.STATE_ADMIN
    return UserRole(settings.local_verification_role)


def stages_for_role(role: UserRole) -> list[ReviewStage]:
    """Return the stages a role has authority over."""
    return [stage for stage in STAGE_ORDER if stage_authority(stage) == role]


def get_stage_review(application: SchoolApplication, stage: ReviewStage) -> dict | None:
    """Return a stage's sub-record, or None if the pipeline has not reached it."""
    return getattr(application, STAGE_FIELDS[stage])


def get_stage_status(application: SchoolApplication, stage: ReviewStage) -> StageStatus | None:
    review = get_stage_review(application, stage)
    if not review:
        return None
    return StageStatus(review["status"])


def compute_progress(application: SchoolApplication) -> int:
    """
    Verification progress in percent (0-100).

    Each approved stage contributes its weight: 33, 33, 34.
    """
    return sum(
        STAGE_WEIGHTS[stage]
        for stage in STAGE_ORDER
        if get_stage_status(application, stage) == StageStatus.APPROVED
    )


def derive_status(application: SchoolApplication) -> ApplicationStatus:
    """
    Derive the overall status from the three sub-records.

    The stored status is only used to tell 'submitted' from 'country-review',
    which share the same sub-record state.
    """
    statuses = [get_stage_status(application, stage) for stage in STAGE_ORDER]

    if StageStatus.REJECTED in statuses:
        return ApplicationStatus.REJECTED

    if all(status == StageStatus.APPROVED for status in statuses):
        return ApplicationStatus.APPROVED

    for index, stage in enumerate(STAGE_ORDER):
        if statuses[index] != StageStatus.APPROVED:
            if stage is ReviewStage.COUNTRY:
                if statuses[index] is None:
                    return ApplicationStatus.DRAFT
                if application.status == ApplicationStatus.COUNTRY_REVIEW:
                    return ApplicationStatus.COUNTRY_REVIEW
                return ApplicationStatus.SUBMITTED
            return STAGE_REVIEW_STATUS[stage]

    return ApplicationStatus.APPROVED  # pragma: no cover - loop always returns


def is_consistent(application: SchoolApplication) -> bool:
    """
    Check the application's invariants.

    - No stage is approved while an earlier stage is not approved.
    - No stage has a record after a rejected stage.
    - The stored status equals the derived status.
    """
    earlier_approved = True
    pipeline_ended = False
    for stage in STAGE_ORDER:
        status = get_stage_status(application, stage)
        if pipeline_ended and status is not None:
            return False
        if status == StageStatus.APPROVED and not earlier_approved:
            return False
        if status != StageStatus.APPROVED:
            earlier_approved = False
        if status == StageStatus.REJECTED:
            pipeline_ended = True

    return application.status == derive_status(application)


def next_pending_stage(application: SchoolApplication) -> ReviewStage | None:
    """
    Return the stage currently awaiting a decision.

    None for drafts and for applications in a terminal state.
    """
    if application.status == ApplicationStatus.DRAFT or application.status in TERMINAL_STATUSES:
        return None

    for stage in STAGE_ORDER:
        status = get_stage_status(application, stage)
        if status == StageStatus.REJECTED:
            return None
        if status != StageStatus.APPROVED:
            return stage

    return None


def check_transition(current: ApplicationStatus, new: ApplicationStatus) -> None:
    """Raise InvalidStatusTransitionError unless current -> new is an edge of the state machine."""
    if new not in VALID_STATUS_TRANSITIONS.get(current, set()):
        raise InvalidStatusTransitionError(current, new)


def mark_submitted(application: SchoolApplication, submitted_at: datetime) -> None:
    """Move a draft to 'submitted' and open the country stage."""
    check_transition(application.status, ApplicationStatus.SUBMITTED)

    application.status = ApplicationStatus.SUBMITTED
    application.submitted_date = submitted_at
    application.country_approval = {"status": StageStatus.PENDING.value}


def mark_country_review(application: SchoolApplication) -> None:
    """Move a 'submitted' application into country review."""
    check_transition(application.status, ApplicationStatus.COUNTRY_REVIEW)
    application.status = ApplicationStatus.COUNTRY_REVIEW


def decide_stage(
    application: SchoolApplication,
    stage: ReviewStage,
    decision: StageStatus,
    reviewer_id: UUID,
    decided_at: datetime,
    comments: str | None = None,
) -> ApplicationStatus:
    """
    Approve or reject a stage.

    Approving opens the next stage (sub-record set to pending) and advances
    the overall status; approving the last stage makes the application
    'approved'. Rejecting makes it 'rejected' and leaves later stages empty.

    Args:
        application: The application to update in place
        stage: Stage being decided
        decision: StageStatus.APPROVED or StageStatus.REJECTED
        reviewer_id: Reviewer recorded on the sub-record
        decided_at: Review timestamp recorded on the sub-record
        comments: Optional reviewer comments

    Returns:
        The new overall status

    Raises:
        StageTransitionError: If the stage is not the pending one
        InvalidStatusTransitionError: If the resulting status change is not allowed
        ValueError: If decision is not approved/rejected
    """
    if decision == StageStatus.PENDING:
        raise ValueError("A stage decision must be 'approved' or 'rejected'")

    expected = next_pending_stage(application)
    if expected is None or stage != expected:
        raise StageTransitionError(stage, expected, application.status)

    stage_index = STAGE_ORDER.index(stage)
    following = STAGE_ORDER[stage_index + 1] if stage_index + 1 < len(STAGE_ORDER) else None

    if decision == StageStatus.REJECTED:
        new_status = ApplicationStatus.REJECTED
    elif following is None:
        new_status = ApplicationStatus.APPROVED
    else:
        new_status = STAGE_REVIEW_STATUS[following]

    check_transition(application.status, new_status)

    # Fresh dicts so SQLAlchemy detects the JSON change
    setattr(
        application,
        STAGE_FIELDS[stage],
        {
            "status": decision.value,
            "reviewed_by": str(reviewer_id),
            "review_date": decided_at.isoformat(),
            "comments": comments,
        },
    )
    if decision == StageStatus.APPROVED and following is not None:
        setattr(application, STAGE_FIELDS[following], {"status": StageStatus.PENDING.value})

    application.status = new_status
    return new_status
