"""
KYS Review Router

API endpoints for reviewers working the three-stage approval pipeline.
All endpoints require a reviewer role (global, country, state or the
configured local verification role).

Endpoints:
- GET /reviews/applications - Review queue with filters and pagination
- GET /reviews/stats - Pipeline statistics
- POST /reviews/applications/{id}/start-review - Country admin picks up an application
- POST /reviews/applications/{id}/approve - Approve the pending stage
- POST /reviews/applications/{id}/reject - Reject the pending stage

Security:
- Each stage can only be decided by its authority role, inside the
  reviewer's jurisdiction
- Rate limiting on action endpoints to prevent mass operations
- Every decision is written to the audit log
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from kys_portal.core.auth import CurrentUser, get_current_reviewer
from kys_portal.core.database import get_db
from kys_portal.core.rate_limit import RateLimitExceeded, check_rate_limit
from kys_portal.modules.applications import service
from kys_portal.modules.applications.models import ApplicationStatus, ReviewStage
from kys_portal.modules.applications.router import handle_service_error, handle_unexpected_error
from kys_portal.modules.applications.schemas import (
    ApplicationDetailResponse,
    ApplicationListResponse,
    PipelineStats,
    StageDecisionRequest,
    StartReviewRequest,
)
from kys_portal.modules.applications.service import ApplicationServiceError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reviews", tags=["KYS Reviews"])


# ============================================
# Rate Limiting Configuration
# ============================================

RATE_LIMIT_APPROVE = (30, 60)  # 30 approvals per minute
RATE_LIMIT_REJECT = (30, 60)  # 30 rejections per minute
RATE_LIMIT_START_REVIEW = (60, 60)  # 60 review starts per minute


async def _check_reviewer_rate_limit(
    reviewer: CurrentUser,
    action: str,
    limit: int,
    window_seconds: int,
) -> None:
    """
    Check rate limit for a reviewer action.

    Raises:
        RateLimitExceeded: If rate limit is exceeded
    """
    key = f"review:{action}:{reviewer.id}"
    allowed = await check_rate_limit(key, limit, window_seconds)

    if not allowed:
        logger.warning(
            f"Rate limit exceeded for reviewer {reviewer.id} on action '{action}': "
            f"{limit}/{window_seconds}s"
        )
        raise RateLimitExceeded(limit, window_seconds)


_DECISION_RESPONSES = {
    200: {"description": "Updated application"},
    401: {"description": "Not authenticated"},
    403: {"description": "Role or jurisdiction does not allow this stage"},
    404: {"description": "Application not found"},
    409: {"description": "Stage is not currently pending, or the application changed"},
    429: {"description": "Rate limit exceeded"},
}


# ============================================
# Queue & Stats
# ============================================


@router.get(
    "/applications",
    response_model=ApplicationListResponse,
    summary="Review Queue",
    description="""
Applications awaiting review.

Without filters, stage reviewers see the applications waiting on the stage
they have authority over; global admins see every submitted application.
Reviewers with a jurisdiction claim only see applications inside it.
""",
)
async def list_review_queue(
    application_status: ApplicationStatus | None = Query(
        None, alias="status", description="Filter by pipeline status"
    ),
    stage: ReviewStage | None = Query(None, description="Filter by pending stage"),
    country: str | None = Query(None, max_length=100, description="Filter by country"),
    search: str | None = Query(None, max_length=100, description="Search school, location, email"),
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    reviewer: CurrentUser = Depends(get_current_reviewer),
) -> ApplicationListResponse:
    try:
        return await service.get_review_queue(
            db,
            reviewer,
            status=application_status,
            stage=stage,
            country=country,
            search=search,
            skip=skip,
            limit=limit,
        )
    except ApplicationServiceError as e:
        handle_service_error(e)
    except Exception as e:
        handle_unexpected_error("listing review queue", e)


@router.get(
    "/stats",
    response_model=PipelineStats,
    summary="Pipeline Statistics",
)
async def get_stats(
    db: AsyncSession = Depends(get_db),
    reviewer: CurrentUser = Depends(get_current_reviewer),
) -> PipelineStats:
    """Counts per pipeline status, approvals this week and average progress."""
    return await service.get_pipeline_stats(db)


# ============================================
# Stage Actions
# ============================================


@router.post(
    "/applications/{application_id}/start-review",
    response_model=ApplicationDetailResponse,
    summary="Start Country Review",
    responses=_DECISION_RESPONSES,
)
async def start_review(
    application_id: UUID,
    data: StartReviewRequest | None = None,
    db: AsyncSession = Depends(get_db),
    reviewer: CurrentUser = Depends(get_current_reviewer),
) -> ApplicationDetailResponse:
    """Move a submitted application into country review."""
    await _check_reviewer_rate_limit(reviewer, "start_review", *RATE_LIMIT_START_REVIEW)

    try:
        return await service.start_review(
            db,
            application_id,
            reviewer,
            expected_version=data.expected_version if data else None,
        )
    except ApplicationServiceError as e:
        handle_service_error(e)
    except Exception as e:
        handle_unexpected_error("starting review", e)


@router.post(
    "/applications/{application_id}/approve",
    response_model=ApplicationDetailResponse,
    status_code=status.HTTP_200_OK,
    summary="Approve Stage",
    description="""
Approve the pending stage of an application.

**Requirements:**
- `stage` is the stage currently pending (country, then state, then local)
- The reviewer's role is the authority for that stage
- `expected_version`, when sent, matches the application's version

**Effects:**
- The stage is recorded as `approved` with reviewer and date
- The next stage opens as `pending`, or the application becomes `approved`
""",
    responses=_DECISION_RESPONSES,
)
async def approve_stage(
    application_id: UUID,
    data: StageDecisionRequest,
    db: AsyncSession = Depends(get_db),
    reviewer: CurrentUser = Depends(get_current_reviewer),
) -> ApplicationDetailResponse:
    await _check_reviewer_rate_limit(reviewer, "approve", *RATE_LIMIT_APPROVE)

    try:
        return await service.approve_stage(
            db,
            application_id,
            reviewer,
            data.stage,
            comments=data.comments,
            expected_version=data.expected_version,
        )
    except ApplicationServiceError as e:
        handle_service_error(e)
    except Exception as e:
        handle_unexpected_error("approving stage", e)


@router.post(
    "/applications/{application_id}/reject",
    response_model=ApplicationDetailResponse,
    summary="Reject Stage",
    description="""
Reject the pending stage of an application.

The application becomes `rejected` and no later stage is evaluated.
""",
    responses=_DECISION_RESPONSES,
)
async def reject_stage(
    application_id: UUID,
    data: StageDecisionRequest,
    db: AsyncSession = Depends(get_db),
    reviewer: CurrentUser = Depends(get_current_reviewer),
) -> ApplicationDetailResponse:
    await _check_reviewer_rate_limit(reviewer, "reject", *RATE_LIMIT_REJECT)

    try:
        return await service.reject_stage(
            db,
            application_id,
            reviewer,
            data.stage,
            comments=data.comments,
            expected_version=data.expected_version,
        )
    except ApplicationServiceError as e:
        handle_service_error(e)
    except Exception as e:
        handle_unexpected_error("rejecting stage", e)
