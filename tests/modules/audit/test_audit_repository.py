"""
Tests for the audit log repository and router.
"""

from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from kys_portal.core.auth import CurrentUser, get_current_user
from kys_portal.core.database import get_db
from kys_portal.modules.audit import repository
from kys_portal.modules.audit.models import AuditCategory, AuditLog, AuditSeverity
from kys_portal.modules.audit.router import router
from kys_portal.modules.users.models import UserRole


@pytest.fixture
def mock_db():
    db = AsyncMock()
    db.add = MagicMock()
    return db


def _entry(**overrides) -> AuditLog:
    values = {
        "id": uuid4(),
        "actor_id": uuid4(),
        "actor_role": "country-admin",
        "action": "application.stage_approved",
        "resource": "school_application",
        "resource_id": str(uuid4()),
        "details": "country stage approved: submitted -> state-review",
        "extra": {"stage": "country", "comments": None},
        "severity": AuditSeverity.MEDIUM,
        "category": AuditCategory.ADMIN,
        "created_at": datetime.now(UTC),
    }
    values.update(overrides)
    return AuditLog(**values)


class TestRecord:
    def test_record_adds_entry_to_session(self, mock_db):
        application_id = uuid4()

        entry = repository.record(
            mock_db,
            action="application.submitted",
            resource="school_application",
            resource_id=application_id,
            details="Al-Noor submitted",
        )

        mock_db.add.assert_called_once_with(entry)
        assert entry.resource_id == str(application_id)
        assert entry.severity == AuditSeverity.LOW
        assert entry.category == AuditCategory.DATA
        mock_db.commit.assert_not_called()

    def test_record_without_resource_id(self, mock_db):
        entry = repository.record(
            mock_db, action="system.drafts_purged", resource="school_application"
        )

        assert entry.resource_id is None
        assert entry.actor_id is None


@pytest.mark.asyncio
async def test_list_logs_returns_entries_and_total(mock_db):
    entries = [_entry(), _entry()]
    count_result = MagicMock()
    count_result.scalar.return_value = 12
    page_result = MagicMock()
    page_result.scalars.return_value.all.return_value = entries
    mock_db.execute.side_effect = [count_result, page_result]

    logs, total = await repository.list_logs(
        mock_db, category=AuditCategory.ADMIN, search="approved", skip=0, limit=2
    )

    assert logs == entries
    assert total == 12


class TestAuditRouter:
    @pytest.fixture
    def app(self, mock_db):
        app = FastAPI()
        app.include_router(router)

        async def _db():
            yield mock_db

        app.dependency_overrides[get_db] = _db
        return app

    def test_global_admin_lists_logs(self, app):
        app.dependency_overrides[get_current_user] = lambda: CurrentUser(
            id=uuid4(), email="global@kys.dev", role=UserRole.GLOBAL_ADMIN
        )
        entry = _entry()

        with patch(
            "kys_portal.modules.audit.router.repository.list_logs", new_callable=AsyncMock
        ) as list_logs:
            list_logs.return_value = ([entry], 1)
            response = TestClient(app).get(
                "/audit-logs", params={"category": "admin", "limit": 10}
            )

        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 1
        assert body["logs"][0]["action"] == "application.stage_approved"
        assert body["logs"][0]["severity"] == "medium"
        assert list_logs.call_args.kwargs["category"] == AuditCategory.ADMIN

    def test_other_roles_forbidden(self, app):
        app.dependency_overrides[get_current_user] = lambda: CurrentUser(
            id=uuid4(), email="nigeria@kys.dev", role=UserRole.COUNTRY_ADMIN
        )

        response = TestClient(app).get("/audit-logs")

        assert response.status_code == 403
