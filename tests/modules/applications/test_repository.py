"""
Unit tests for the applications repository.

The session is mocked; these tests check what the repository returns
from query results and how it persists.
"""

from datetime import UTC, datetime
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from kys_portal.modules.applications import repository
from kys_portal.modules.applications.models import ApplicationStatus


def _result(*, scalar=None, rows=None, scalars=None, rowcount=None):
    result = MagicMock()
    result.scalar.return_value = scalar
    result.all.return_value = rows or []
    result.scalars.return_value.all.return_value = scalars or []
    result.rowcount = rowcount
    return result


@pytest.mark.asyncio
async def test_create_draft_starts_at_step_one(mock_db, school_admin):
    application = await repository.create_draft(
        mock_db, school_admin.id, {"school_name": "Al-Noor Islamic Academy"}
    )

    assert application.status == ApplicationStatus.DRAFT
    assert application.current_step == 1
    assert application.created_by == school_admin.id
    assert application.school_name == "Al-Noor Islamic Academy"
    assert application.facilities == []
    mock_db.add.assert_called_once_with(application)
    mock_db.commit.assert_awaited_once()


@pytest.mark.asyncio
async def test_list_for_review_returns_page_and_total(mock_db, make_application):
    applications = [make_application(ApplicationStatus.SUBMITTED) for _ in range(2)]
    mock_db.execute.side_effect = [_result(scalar=7), _result(scalars=applications)]

    page, total = await repository.list_for_review(
        mock_db,
        statuses=[ApplicationStatus.SUBMITTED],
        country="nigeria",
        search="noor",
        skip=5,
        limit=2,
    )

    assert total == 7
    assert page == applications
    assert mock_db.execute.await_count == 2


@pytest.mark.asyncio
async def test_pipeline_stats(mock_db):
    mock_db.execute.side_effect = [
        _result(
            rows=[
                (ApplicationStatus.SUBMITTED, 4),
                (ApplicationStatus.STATE_REVIEW, 2),
                (ApplicationStatus.APPROVED, 9),
            ]
        ),
        _result(scalar=3),
        _result(scalar=Decimal("11.0")),
    ]

    stats = await repository.get_pipeline_stats(mock_db)

    assert stats == {
        "submitted": 4,
        "country_review": 0,
        "state_review": 2,
        "local_verification": 0,
        "approved": 9,
        "rejected": 0,
        "approved_this_week": 3,
        "average_progress": 11.0,
    }


@pytest.mark.asyncio
async def test_pipeline_stats_without_open_applications(mock_db):
    mock_db.execute.side_effect = [_result(), _result(scalar=0), _result(scalar=None)]

    stats = await repository.get_pipeline_stats(mock_db)

    assert stats["average_progress"] is None
    assert stats["approved_this_week"] == 0


@pytest.mark.asyncio
async def test_delete_stale_drafts_returns_rowcount(mock_db):
    mock_db.execute.return_value = _result(rowcount=5)

    deleted = await repository.delete_stale_drafts(mock_db, datetime.now(UTC))

    assert deleted == 5
    mock_db.commit.assert_awaited_once()
