"""
Tests for the applications and reviews routers.

The service layer is patched; these tests cover role guards, request
validation, error mapping and rate limiting at the HTTP boundary.
"""

from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from kys_portal.core.auth import get_current_user
from kys_portal.core.database import get_db
from kys_portal.core.rate_limit import reset_memory_store
from kys_portal.modules.applications.helpers import application_to_detail
from kys_portal.modules.applications.models import ApplicationStatus
from kys_portal.modules.applications.review_router import router as review_router
from kys_portal.modules.applications.router import router
from kys_portal.modules.applications.service import (
    ApplicationNotFoundError,
    ApplicationValidationError,
    ConcurrentModificationError,
    StageOrderViolationError,
    UnauthorizedReviewerError,
)

SERVICE = "kys_portal.modules.applications.service"
REVIEW_ROUTER = "kys_portal.modules.applications.review_router"


@pytest.fixture
def app():
    app = FastAPI()
    app.include_router(router)
    app.include_router(review_router)

    async def _db():
        yield MagicMock()

    app.dependency_overrides[get_db] = _db
    reset_memory_store()
    yield app
    reset_memory_store()


def _client_for(app, user) -> TestClient:
    app.dependency_overrides[get_current_user] = lambda: user
    return TestClient(app)


# ============================================
# Applications router
# ============================================


class TestSubmitApplication:
    def test_submit_success(self, app, school_admin, sample_application_create):
        client = _client_for(app, school_admin)
        application_id = uuid4()

        with patch(f"{SERVICE}.submit_application", new_callable=AsyncMock) as mock_submit:
            mock_submit.return_value = {
                "id": application_id,
                "status": ApplicationStatus.SUBMITTED,
            }
            response = client.post(
                "/applications", json=sample_application_create.model_dump(mode="json")
            )

        assert response.status_code == 201
        body = response.json()
        assert body["id"] == str(application_id)
        assert body["status"] == "submitted"
        assert body["message"] == "Application submitted for country review."

    def test_reviewer_cannot_submit(self, app, country_admin, sample_application_create):
        client = _client_for(app, country_admin)

        response = client.post(
            "/applications", json=sample_application_create.model_dump(mode="json")
        )

        assert response.status_code == 403
        assert response.json()["detail"]["error"] == "ROLE_NOT_ALLOWED"

    def test_invalid_payload(self, app, school_admin, sample_application_create):
        client = _client_for(app, school_admin)
        payload = sample_application_create.model_dump(mode="json")
        payload["contact"]["email"] = "not-an-email"

        response = client.post("/applications", json=payload)

        assert response.status_code == 422


class TestDraftEndpoints:
    def test_create_draft_without_body(self, app, school_admin, draft_application):
        client = _client_for(app, school_admin)

        with patch(f"{SERVICE}.create_draft", new_callable=AsyncMock) as mock_create:
            mock_create.return_value = application_to_detail(draft_application)
            response = client.post("/applications/drafts")

        assert response.status_code == 201
        assert response.json()["current_step"] == 1
        assert mock_create.call_args.args[2] is None

    def test_next_step_reports_missing_fields(self, app, school_admin):
        client = _client_for(app, school_admin)

        with patch(f"{SERVICE}.advance_step", new_callable=AsyncMock) as mock_advance:
            mock_advance.side_effect = ApplicationValidationError(
                "Please fill in all required fields: school_name",
                {1: ["school_name"]},
            )
            response = client.post(f"/applications/{uuid4()}/next-step")

        assert response.status_code == 422
        detail = response.json()["detail"]
        assert detail["error"] == "VALIDATION_ERROR"
        assert detail["missing_fields"] == {"1": ["school_name"]}

    def test_save_draft_not_found(self, app, school_admin):
        client = _client_for(app, school_admin)

        with patch(f"{SERVICE}.save_draft", new_callable=AsyncMock) as mock_save:
            mock_save.side_effect = ApplicationNotFoundError()
            response = client.patch(
                f"/applications/{uuid4()}", json={"basic": {"school_name": "Al-Noor"}}
            )

        assert response.status_code == 404
        assert response.json()["detail"]["error"] == "APPLICATION_NOT_FOUND"

    def test_unexpected_error_is_500(self, app, school_admin):
        client = _client_for(app, school_admin)

        with patch(f"{SERVICE}.submit_draft", new_callable=AsyncMock) as mock_submit:
            mock_submit.side_effect = RuntimeError("database went away")
            response = client.post(f"/applications/{uuid4()}/submit")

        assert response.status_code == 500
        assert response.json()["detail"]["error"] == "INTERNAL_ERROR"
        assert "database" not in response.json()["detail"]["message"]

    def test_catalogue_available_to_any_user(self, app, lga_admin):
        client = _client_for(app, lga_admin)

        response = client.get("/applications/catalogue")

        assert response.status_code == 200
        assert len(response.json()["steps"]) == 4


# ============================================
# Reviews router
# ============================================


class TestReviewEndpoints:
    def test_school_admin_cannot_review(self, app, school_admin):
        client = _client_for(app, school_admin)

        response = client.get("/reviews/applications")

        assert response.status_code == 403

    def test_queue_passes_filters(self, app, country_admin):
        client = _client_for(app, country_admin)

        with patch(f"{SERVICE}.get_review_queue", new_callable=AsyncMock) as mock_queue:
            mock_queue.return_value = {"applications": [], "total": 0, "skip": 10, "limit": 5}
            response = client.get(
                "/reviews/applications",
                params={"status": "submitted", "search": "noor", "skip": 10, "limit": 5},
            )

        assert response.status_code == 200
        kwargs = mock_queue.call_args.kwargs
        assert kwargs["status"] == ApplicationStatus.SUBMITTED
        assert kwargs["search"] == "noor"
        assert kwargs["skip"] == 10

    def test_approve_success(self, app, country_admin, submitted_application):
        client = _client_for(app, country_admin)
        submitted_application.status = ApplicationStatus.STATE_REVIEW

        with patch(f"{SERVICE}.approve_stage", new_callable=AsyncMock) as mock_approve:
            mock_approve.return_value = application_to_detail(submitted_application)
            response = client.post(
                f"/reviews/applications/{submitted_application.id}/approve",
                json={"stage": "country", "comments": "Verified", "expected_version": 1},
            )

        assert response.status_code == 200
        assert mock_approve.call_args.kwargs == {"comments": "Verified", "expected_version": 1}

    @pytest.mark.parametrize(
        ("error", "status_code", "code"),
        [
            (StageOrderViolationError("Stage is not pending"), 409, "STAGE_ORDER_VIOLATION"),
            (UnauthorizedReviewerError("Role cannot decide"), 403, "UNAUTHORIZED"),
            (ConcurrentModificationError(uuid4(), 1, 2), 409, "CONCURRENT_MODIFICATION"),
            (ApplicationNotFoundError(), 404, "APPLICATION_NOT_FOUND"),
        ],
    )
    def test_reject_error_mapping(self, app, state_admin, error, status_code, code):
        client = _client_for(app, state_admin)

        with patch(f"{SERVICE}.reject_stage", new_callable=AsyncMock) as mock_reject:
            mock_reject.side_effect = error
            response = client.post(
                f"/reviews/applications/{uuid4()}/reject",
                json={"stage": "state", "comments": "Facilities not as described"},
            )

        assert response.status_code == status_code
        assert response.json()["detail"]["error"] == code

    def test_invalid_stage_rejected(self, app, country_admin):
        client = _client_for(app, country_admin)

        response = client.post(
            f"/reviews/applications/{uuid4()}/approve", json={"stage": "federal"}
        )

        assert response.status_code == 422

    def test_approve_rate_limited(self, app, country_admin):
        client = _client_for(app, country_admin)

        with (
            patch(f"{SERVICE}.approve_stage", new_callable=AsyncMock) as mock_approve,
            patch(f"{REVIEW_ROUTER}.RATE_LIMIT_APPROVE", (2, 60)),
        ):
            mock_approve.side_effect = ApplicationNotFoundError()
            statuses = [
                client.post(
                    f"/reviews/applications/{uuid4()}/approve", json={"stage": "country"}
                ).status_code
                for _ in range(3)
            ]

        assert statuses == [404, 404, 429]
        assert mock_approve.call_count == 2

    def test_stats(self, app, global_admin):
        client = _client_for(app, global_admin)
        stats = {
            "submitted": 1,
            "country_review": 0,
            "state_review": 2,
            "local_verification": 0,
            "approved": 5,
            "rejected": 1,
            "approved_this_week": 2,
            "average_progress": 22.0,
        }

        with patch(f"{SERVICE}.get_pipeline_stats", new_callable=AsyncMock) as mock_stats:
            mock_stats.return_value = stats
            response = client.get("/reviews/stats")

        assert response.status_code == 200
        assert response.json() == stats
