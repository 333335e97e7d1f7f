"""
KYS Application Shared Helpers

Conversions from the ORM model to response schemas, shared by both
routers and the service layer.
"""

from kys_portal.modules.applications.models import SchoolApplication
from kys_portal.modules.applications.schemas import (
    ApplicationDetailResponse,
    ApplicationListItem,
)
from kys_portal.modules.applications.workflow import compute_progress, next_pending_stage


def application_to_detail(application: SchoolApplication) -> ApplicationDetailResponse:
    """
    Build the detail response for an application.

    Progress and the pending stage are derived, never stored.
    """
    return ApplicationDetailResponse(
        id=application.id,
        school_name=application.school_name,
        established_year=application.established_year,
        country=application.country,
        state=application.state,
        location=application.location,
        principal_name=application.principal_name,
        email=application.email,
        phone=application.phone,
        student_count=application.student_count,
        teacher_count=application.teacher_count,
        curriculum=application.curriculum,
        facilities=list(application.facilities or []),
        documents=list(application.documents or []),
        status=application.status,
        current_step=application.current_step,
        country_approval=application.country_approval,
        state_approval=application.state_approval,
        local_verification=application.local_verification,
        submitted_date=application.submitted_date,
        progress=compute_progress(application),
        pending_stage=next_pending_stage(application),
        created_by=application.created_by,
        version=application.version,
        created_at=application.created_at,
        updated_at=application.updated_at,
    )


def application_to_list_item(application: SchoolApplication) -> ApplicationListItem:
    return ApplicationListItem(
        id=application.id,
        school_name=application.school_name,
        country=application.country,
        state=application.state,
        location=application.location,
        status=application.status,
        progress=compute_progress(application),
        pending_stage=next_pending_stage(application),
        submitted_date=application.submitted_date,
        version=application.version,
    )
