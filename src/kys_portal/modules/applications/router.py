"""
KYS Applications Router

API endpoints for school administrators filling in the KYS registration
wizard and tracking their applications.

Endpoints:
- POST /applications - Submit a complete application in one call
- GET /applications/catalogue - Wizard steps, countries, facilities, documents
- POST /applications/drafts - Start a new draft
- GET /applications/mine - Own applications with progress
- PATCH /applications/{id} - Save draft
- POST /applications/{id}/next-step - Validate current step and move forward
- POST /applications/{id}/previous-step - Move back one step
- POST /applications/{id}/submit - Submit a completed draft
- GET /applications/{id} - Application detail (owner or reviewer)

Security:
- All endpoints require a valid JWT; write endpoints require school-admin
- Drafts are only visible to and editable by their owner
- Input validation via Pydantic schemas
"""

import logging
from typing import NoReturn
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from kys_portal.core.auth import CurrentUser, get_current_school_admin, get_current_user
from kys_portal.core.database import get_db
from kys_portal.modules.applications import service
from kys_portal.modules.applications.schemas import (
    ApplicationDetailResponse,
    ApplicationDraftUpdate,
    ApplicationListItem,
    CatalogueResponse,
    SchoolApplicationCreate,
    SchoolApplicationResponse,
)
from kys_portal.modules.applications.service import (
    ApplicationServiceError,
    ApplicationValidationError,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/applications", tags=["KYS Applications"])


def handle_service_error(e: ApplicationServiceError) -> NoReturn:
    """Convert service errors to HTTPExceptions."""
    detail: dict = {
        "error": e.error_code,
        "message": e.message,
    }
    if isinstance(e, ApplicationValidationError) and e.missing:
        detail["missing_fields"] = {str(step): fields for step, fields in e.missing.items()}
    raise HTTPException(status_code=e.status_code, detail=detail) from e


def handle_unexpected_error(action: str, e: Exception) -> NoReturn:
    """Log an unexpected failure and raise a generic 500."""
    logger.exception(f"Error {action}: {e}")
    raise HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={
            "error": "INTERNAL_ERROR",
            "message": "An unexpected error occurred.",
        },
    ) from e


@router.post(
    "",
    response_model=SchoolApplicationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit KYS Application",
    description="""
Submit a complete KYS registration application in one call.

The application is stored as `submitted` with the country stage pending
and a confirmation email is sent to the school contact.
""",
    responses={
        201: {"description": "Application submitted"},
        401: {"description": "Not authenticated"},
        403: {"description": "Not a school admin"},
        422: {"description": "Validation error"},
    },
)
async def submit_application(
    data: SchoolApplicationCreate,
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(get_current_school_admin),
) -> SchoolApplicationResponse:
    try:
        return await service.submit_application(db, data, user)
    except ApplicationServiceError as e:
        handle_service_error(e)
    except Exception as e:
        handle_unexpected_error("submitting application", e)


@router.get(
    "/catalogue",
    response_model=CatalogueResponse,
    summary="Registration Wizard Catalogue",
)
async def get_catalogue(
    user: CurrentUser = Depends(get_current_user),
) -> CatalogueResponse:
    """Wizard steps with their required fields, and the option lists."""
    return service.get_catalogue()


@router.post(
    "/drafts",
    response_model=ApplicationDetailResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Start Draft",
)
async def create_draft(
    data: ApplicationDraftUpdate | None = None,
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(get_current_school_admin),
) -> ApplicationDetailResponse:
    """Start a new registration wizard at step 1."""
    try:
        return await service.create_draft(db, user, data)
    except ApplicationServiceError as e:
        handle_service_error(e)
    except Exception as e:
        handle_unexpected_error("creating draft", e)


@router.get(
    "/mine",
    response_model=list[ApplicationListItem],
    summary="My Applications",
)
async def list_my_applications(
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(get_current_school_admin),
) -> list[ApplicationListItem]:
    return await service.list_my_applications(db, user)


@router.patch(
    "/{application_id}",
    response_model=ApplicationDetailResponse,
    summary="Save Draft",
    responses={
        404: {"description": "Application not found"},
        409: {"description": "Application is no longer a draft"},
    },
)
async def save_draft(
    application_id: UUID,
    data: ApplicationDraftUpdate,
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(get_current_school_admin),
) -> ApplicationDetailResponse:
    """Save partial wizard data. Only the sections sent are written."""
    try:
        return await service.save_draft(db, application_id, user, data)
    except ApplicationServiceError as e:
        handle_service_error(e)
    except Exception as e:
        handle_unexpected_error("saving draft", e)


@router.post(
    "/{application_id}/next-step",
    response_model=ApplicationDetailResponse,
    summary="Next Wizard Step",
    responses={
        404: {"description": "Application not found"},
        409: {"description": "Application is no longer a draft"},
        422: {"description": "Required fields of the current step are empty"},
    },
)
async def next_step(
    application_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(get_current_school_admin),
) -> ApplicationDetailResponse:
    try:
        return await service.advance_step(db, application_id, user)
    except ApplicationServiceError as e:
        handle_service_error(e)
    except Exception as e:
        handle_unexpected_error("advancing wizard step", e)


@router.post(
    "/{application_id}/previous-step",
    response_model=ApplicationDetailResponse,
    summary="Previous Wizard Step",
)
async def previous_step(
    application_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(get_current_school_admin),
) -> ApplicationDetailResponse:
    try:
        return await service.previous_step(db, application_id, user)
    except ApplicationServiceError as e:
        handle_service_error(e)
    except Exception as e:
        handle_unexpected_error("going back a wizard step", e)


@router.post(
    "/{application_id}/submit",
    response_model=ApplicationDetailResponse,
    summary="Submit Draft",
    description="""
Submit a completed draft for review.

**Requirements:**
- All four wizard steps have their required fields filled in
- Application is still a draft

**Effects:**
- Status changes to `submitted` and `submitted_date` is set
- Country approval opens as `pending`
""",
    responses={
        404: {"description": "Application not found"},
        409: {"description": "Application already submitted"},
        422: {"description": "Incomplete wizard steps"},
    },
)
async def submit_draft(
    application_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(get_current_school_admin),
) -> ApplicationDetailResponse:
    try:
        return await service.submit_draft(db, application_id, user)
    except ApplicationServiceError as e:
        handle_service_error(e)
    except Exception as e:
        handle_unexpected_error("submitting draft", e)


@router.get(
    "/{application_id}",
    response_model=ApplicationDetailResponse,
    summary="Application Detail",
    responses={404: {"description": "Application not found"}},
)
async def get_application(
    application_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
) -> ApplicationDetailResponse:
    """Full application with progress and stage decisions."""
    try:
        return await service.get_application(db, application_id, user)
    except ApplicationServiceError as e:
        handle_service_error(e)
