"""
Fixtures for KYS application tests.
"""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock
from uuid import UUID, uuid4

import pytest

from kys_portal.core.auth import CurrentUser
from kys_portal.modules.applications.models import (
    ApplicationStatus,
    SchoolApplication,
    StageStatus,
)
from kys_portal.modules.applications.schemas import (
    AcademicInfo,
    BasicInfo,
    ContactInfo,
    DocumentsInfo,
    SchoolApplicationCreate,
)
from kys_portal.modules.users.models import UserRole

OWNER_ID = UUID("00000000-0000-0000-0000-0000000000a1")
REVIEWER_ID = UUID("00000000-0000-0000-0000-0000000000b1")


@pytest.fixture
def mock_db():
    """Create a mock database session."""
    db = AsyncMock()
    db.commit = AsyncMock()
    db.refresh = AsyncMock()
    db.rollback = AsyncMock()
    db.get = AsyncMock()
    db.execute = AsyncMock()
    db.add = MagicMock()
    return db


@pytest.fixture
def school_admin():
    return CurrentUser(id=OWNER_ID, email="principal@alnoor.edu.ng", role=UserRole.SCHOOL_ADMIN)


@pytest.fixture
def other_school_admin():
    return CurrentUser(id=uuid4(), email="other@school.test", role=UserRole.SCHOOL_ADMIN)


@pytest.fixture
def country_admin():
    return CurrentUser(
        id=REVIEWER_ID,
        email="nigeria@kys.test",
        role=UserRole.COUNTRY_ADMIN,
        country="Nigeria",
    )


@pytest.fixture
def state_admin():
    return CurrentUser(
        id=uuid4(),
        email="lagos@kys.test",
        role=UserRole.STATE_ADMIN,
        country="Nigeria",
        state="Lagos",
    )


@pytest.fixture
def lga_admin():
    return CurrentUser(
        id=uuid4(),
        email="ikeja@kys.test",
        role=UserRole.LGA_ADMIN,
        country="Nigeria",
        state="Lagos",
        lga="Ikeja",
    )


@pytest.fixture
def global_admin():
    return CurrentUser(id=uuid4(), email="global@kys.test", role=UserRole.GLOBAL_ADMIN)


def _approved_record(days_ago: int = 1) -> dict:
    return {
        "status": StageStatus.APPROVED.value,
        "reviewed_by": str(REVIEWER_ID),
        "review_date": (datetime.now(UTC) - timedelta(days=days_ago)).isoformat(),
        "comments": None,
    }


def build_application(position: ApplicationStatus = ApplicationStatus.DRAFT, **overrides):
    """
    Build a complete application positioned at the given pipeline status.

    Stage records are filled in to match the position, so the result is
    consistent unless overrides say otherwise. Pass ``status=`` to store a
    different status than the one the stage records describe.
    """
    application = SchoolApplication(
        id=uuid4(),
        school_name="Al-Noor Islamic Academy",
        established_year=2010,
        country="Nigeria",
        state="Lagos",
        location="Ikeja",
        principal_name="Dr. Ahmad Hassan",
        email="principal@alnoor.edu.ng",
        phone="+234 801 234 5678",
        student_count=450,
        teacher_count=28,
        curriculum="Nigerian national curriculum with Islamic studies",
        facilities=["Library", "Mosque"],
        documents=["School Registration Certificate"],
        status=ApplicationStatus.DRAFT,
        current_step=4,
        country_approval=None,
        state_approval=None,
        local_verification=None,
        submitted_date=None,
        created_by=OWNER_ID,
        version=1,
    )

    pending = {"status": StageStatus.PENDING.value}
    if position != ApplicationStatus.DRAFT:
        application.submitted_date = datetime.now(UTC) - timedelta(days=3)
        application.country_approval = dict(pending)

    if position in (
        ApplicationStatus.STATE_REVIEW,
        ApplicationStatus.LOCAL_VERIFICATION,
        ApplicationStatus.APPROVED,
    ):
        application.country_approval = _approved_record(2)
        application.state_approval = dict(pending)

    if position in (ApplicationStatus.LOCAL_VERIFICATION, ApplicationStatus.APPROVED):
        application.state_approval = _approved_record(1)
        application.local_verification = dict(pending)

    if position == ApplicationStatus.APPROVED:
        application.local_verification = _approved_record(0)

    if position == ApplicationStatus.REJECTED:
        application.country_approval = {
            "status": StageStatus.REJECTED.value,
            "reviewed_by": str(REVIEWER_ID),
            "review_date": datetime.now(UTC).isoformat(),
            "comments": "Registration certificate could not be verified",
        }

    application.status = position
    for key, value in overrides.items():
        setattr(application, key, value)
    return application


@pytest.fixture
def make_application():
    """Factory fixture for applications at a given status."""
    return build_application


@pytest.fixture
def draft_application():
    return build_application(ApplicationStatus.DRAFT, current_step=1)


@pytest.fixture
def submitted_application():
    return build_application(ApplicationStatus.SUBMITTED)


@pytest.fixture
def sample_application_create():
    """A complete one-shot application payload."""
    return SchoolApplicationCreate(
        basic=BasicInfo(
            school_name="Al-Noor Islamic Academy",
            established_year=2010,
            country="nigeria",
            state="Lagos",
            location="Ikeja",
        ),
        contact=ContactInfo(
            principal_name="Dr. Ahmad Hassan",
            email="principal@alnoor.edu.ng",
            phone="+234 801 234 5678",
            student_count=450,
            teacher_count=28,
        ),
        academic=AcademicInfo(
            curriculum="Nigerian national curriculum with Islamic studies",
            facilities=["library", "Computer Lab"],
        ),
        documents=DocumentsInfo(
            documents=["School Registration Certificate", "Tax Clearance Certificate"],
        ),
    )
