"""
Tests for the login endpoint.
"""

from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from kys_portal.core.database import get_db
from kys_portal.core.security import decode_token, hash_password
from kys_portal.modules.audit.models import AuditAction
from kys_portal.modules.auth.router import router
from kys_portal.modules.users.models import User, UserRole

AUTH_ROUTER = "kys_portal.modules.auth.router"
PASSWORD = "correct horse battery staple"


@pytest.fixture(scope="module")
def password_hash():
    return hash_password(PASSWORD)


@pytest.fixture
def mock_db():
    db = AsyncMock()
    db.add = MagicMock()
    return db


@pytest.fixture
def client(mock_db):
    app = FastAPI()
    app.include_router(router)

    async def _db():
        yield mock_db

    app.dependency_overrides[get_db] = _db
    return TestClient(app)


@pytest.fixture
def state_reviewer(password_hash):
    return User(
        id=uuid4(),
        email="lagos@kys-network.org",
        password_hash=password_hash,
        full_name="Lagos State Reviewer",
        role=UserRole.STATE_ADMIN,
        country="Nigeria",
        state="Lagos",
        lga=None,
        is_active=True,
    )


def test_login_returns_jurisdiction_claims(client, mock_db, state_reviewer):
    with (
        patch(f"{AUTH_ROUTER}.UserRepository.get_by_email", new_callable=AsyncMock) as get_user,
        patch(f"{AUTH_ROUTER}.audit_repository") as mock_audit,
    ):
        get_user.return_value = state_reviewer
        response = client.post(
            "/auth/login", json={"email": "lagos@kys-network.org", "password": PASSWORD}
        )

    assert response.status_code == 200
    body = response.json()
    assert body["token_type"] == "bearer"
    assert body["user"]["role"] == "state-admin"

    claims = decode_token(body["access_token"])
    assert claims["sub"] == str(state_reviewer.id)
    assert claims["role"] == "state-admin"
    assert claims["country"] == "Nigeria"
    assert claims["state"] == "Lagos"
    assert claims["lga"] is None

    assert mock_audit.record.call_args.kwargs["action"] == AuditAction.USER_LOGIN.value
    mock_db.commit.assert_awaited_once()


def test_wrong_password(client, mock_db, state_reviewer):
    with (
        patch(f"{AUTH_ROUTER}.UserRepository.get_by_email", new_callable=AsyncMock) as get_user,
        patch(f"{AUTH_ROUTER}.audit_repository") as mock_audit,
    ):
        get_user.return_value = state_reviewer
        response = client.post(
            "/auth/login", json={"email": "lagos@kys-network.org", "password": "wrong"}
        )

    assert response.status_code == 401
    assert response.json()["detail"]["error"] == "INVALID_CREDENTIALS"
    assert mock_audit.record.call_args.kwargs["action"] == AuditAction.USER_LOGIN_FAILED.value


def test_unknown_user_gets_same_error(client):
    with (
        patch(f"{AUTH_ROUTER}.UserRepository.get_by_email", new_callable=AsyncMock) as get_user,
        patch(f"{AUTH_ROUTER}.audit_repository"),
    ):
        get_user.return_value = None
        response = client.post(
            "/auth/login", json={"email": "nobody@kys-network.org", "password": PASSWORD}
        )

    assert response.status_code == 401
    assert response.json()["detail"]["error"] == "INVALID_CREDENTIALS"


def test_inactive_account(client, state_reviewer):
    state_reviewer.is_active = False

    with (
        patch(f"{AUTH_ROUTER}.UserRepository.get_by_email", new_callable=AsyncMock) as get_user,
        patch(f"{AUTH_ROUTER}.audit_repository"),
    ):
        get_user.return_value = state_reviewer
        response = client.post(
            "/auth/login", json={"email": "lagos@kys-network.org", "password": PASSWORD}
        )

    assert response.status_code == 403
    assert response.json()["detail"]["error"] == "ACCOUNT_INACTIVE"
