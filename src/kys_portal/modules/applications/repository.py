"""
KYS Application Repository

Database operations for school registration applications.
All operations are async and contain no business rules: the service layer
decides what may change, this module reads and persists it.

Design Principles:
- All queries are parameterized (no SQL injection)
- Decisions read the row FOR UPDATE so concurrent reviewers serialize
- Timezone-aware datetime handling (UTC)
"""

from datetime import UTC, datetime, timedelta
from uuid import UUID

from sqlalchemy import and_, case, delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import ApplicationStatus, SchoolApplication

# Statuses of applications still moving through the approval stages
OPEN_STATUSES = (
    ApplicationStatus.SUBMITTED,
    ApplicationStatus.COUNTRY_REVIEW,
    ApplicationStatus.STATE_REVIEW,
    ApplicationStatus.LOCAL_VERIFICATION,
)


async def create_draft(
    db: AsyncSession,
    created_by: UUID,
    fields: dict | None = None,
) -> SchoolApplication:
    """Create a new application in draft at wizard step 1."""

    new_application = SchoolApplication(
        created_by=created_by,
        status=ApplicationStatus.DRAFT,
        current_step=1,
        facilities=[],
        documents=[],
    )
    for key, value in (fields or {}).items():
        setattr(new_application, key, value)

    db.add(new_application)
    await db.commit()
    await db.refresh(new_application)

    return new_application


async def add(db: AsyncSession, application: SchoolApplication) -> SchoolApplication:
    """Insert a fully built application (one-shot submission)."""
    db.add(application)
    await db.commit()
    await db.refresh(application)
    return application


async def get_by_id(db: AsyncSession, id: UUID) -> SchoolApplication | None:
    """Get application by ID."""
    return await db.get(SchoolApplication, id)


async def get_for_update(db: AsyncSession, id: UUID) -> SchoolApplication | None:
    """
    Get application by ID with a row lock.

    The lock is held until the session commits or rolls back, so two
    reviewers deciding the same application are applied one after the other.
    """
    result = await db.execute(
        select(SchoolApplication)
        .where(SchoolApplication.id == id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def save(db: AsyncSession, application: SchoolApplication) -> SchoolApplication:
    """
    Commit pending changes to an application.

    Raises:
        sqlalchemy.orm.exc.StaleDataError: If the row's version changed since it was read
    """
    db.add(application)
    await db.commit()
    await db.refresh(application)
    return application


async def list_for_owner(db: AsyncSession, owner_id: UUID) -> list[SchoolApplication]:
    """All applications created by a school admin, newest first."""
    result = await db.execute(
        select(SchoolApplication)
        .where(SchoolApplication.created_by == owner_id)
        .order_by(SchoolApplication.created_at.desc())
    )
    return list(result.scalars().all())


async def list_for_review(
    db: AsyncSession,
    *,
    statuses: list[ApplicationStatus] | None = None,
    country: str | None = None,
    state: str | None = None,
    search: str | None = None,
    skip: int = 0,
    limit: int = 20,
) -> tuple[list[SchoolApplication], int]:
    """
    Get submitted applications with filters and pagination for the review queue.

    Drafts are never returned. Oldest submissions come first so the queue is
    worked in arrival order.

    Args:
        db: Database session
        statuses: Restrict to these statuses (optional, defaults to all non-draft)
        country: Filter by country, case-insensitive (optional)
        state: Filter by state, case-insensitive (optional)
        search: Search term for school name, location and contact email (optional)
        skip: Number of records to skip for pagination
        limit: Maximum records to return

    Returns:
        Tuple of (list of applications, total count matching filters)
    """
    query = select(SchoolApplication).where(SchoolApplication.status != ApplicationStatus.DRAFT)

    if statuses:
        query = query.where(SchoolApplication.status.in_(statuses))

    if country:
        query = query.where(func.lower(SchoolApplication.country) == country.lower())

    if state:
        query = query.where(func.lower(SchoolApplication.state) == state.lower())

    if search:
        search_pattern = f"%{search}%"
        query = query.where(
            or_(
                SchoolApplication.school_name.ilike(search_pattern),
                SchoolApplication.location.ilike(search_pattern),
                SchoolApplication.email.ilike(search_pattern),
            )
        )

    count_query = select(func.count()).select_from(query.subquery())
    total_result = await db.execute(count_query)
    total = total_result.scalar() or 0

    query = (
        query.order_by(SchoolApplication.submitted_date.asc(), SchoolApplication.id)
        .offset(skip)
        .limit(limit)
    )

    result = await db.execute(query)
    applications = list(result.scalars().all())

    return applications, total


async def get_pipeline_stats(db: AsyncSession) -> dict:
    """
    Aggregated pipeline statistics.

    Returns:
        Dict with a count per non-draft status, approved_this_week and
        average_progress (mean progress of open applications, None if none).

    Note:
        Approved is terminal, so updated_at of an approved application is
        the time of its final approval.
    """
    week_ago = datetime.now(UTC) - timedelta(days=7)

    counts_result = await db.execute(
        select(SchoolApplication.status, func.count())
        .where(SchoolApplication.status != ApplicationStatus.DRAFT)
        .group_by(SchoolApplication.status)
    )
    counts = {status: count for status, count in counts_result.all()}

    approved_this_week = (
        await db.execute(
            select(func.count()).where(
                and_(
                    SchoolApplication.status == ApplicationStatus.APPROVED,
                    SchoolApplication.updated_at >= week_ago,
                )
            )
        )
    ).scalar() or 0

    # Progress of an open application follows from its status
    progress_expr = case(
        (SchoolApplication.status == ApplicationStatus.STATE_REVIEW, 33),
        (SchoolApplication.status == ApplicationStatus.LOCAL_VERIFICATION, 66),
        else_=0,
    )
    average_progress = (
        await db.execute(
            select(func.avg(progress_expr)).where(SchoolApplication.status.in_(OPEN_STATUSES))
        )
    ).scalar()

    return {
        "submitted": counts.get(ApplicationStatus.SUBMITTED, 0),
        "country_review": counts.get(ApplicationStatus.COUNTRY_REVIEW, 0),
        "state_review": counts.get(ApplicationStatus.STATE_REVIEW, 0),
        "local_verification": counts.get(ApplicationStatus.LOCAL_VERIFICATION, 0),
        "approved": counts.get(ApplicationStatus.APPROVED, 0),
        "rejected": counts.get(ApplicationStatus.REJECTED, 0),
        "approved_this_week": approved_this_week,
        "average_progress": (
            round(float(average_progress), 1) if average_progress is not None else None
        ),
    }


# ============================================
# Background Job Repository Methods
# ============================================


async def delete_stale_drafts(db: AsyncSession, updated_before: datetime) -> int:
    """
    Delete drafts that have not been touched since the given datetime.

    Only rows still in draft are removed; submitted applications are never
    deleted. Idempotent.

    Returns:
        Number of deleted drafts
    """
    result = await db.execute(
        delete(SchoolApplication).where(
            SchoolApplication.status == ApplicationStatus.DRAFT,
            SchoolApplication.updated_at < updated_before,
        )
    )
    await db.commit()
    return result.rowcount or 0
