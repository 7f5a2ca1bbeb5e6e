"""Tests for session validation, login lock-out and the key-authenticated scoring API.

The database is replaced by an ``AsyncMock`` session through dependency
overrides, so no server or Postgres instance is needed.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials
from fastapi.testclient import TestClient

from app.api import auth as auth_api
from app.auth_utils import (
    ApiClient,
    create_access_token,
    get_api_client,
    get_current_user,
    hash_password,
)
from app.database import get_db
from app.main import app
from app.models.api_log import ApiLog
from app.models.session import LoginAttempt
from app.models.user import User, UserRole
from app.services.scorecard_builder.assembler import Preferences, assemble_scorecard
from app.services.scorecard_builder.sources import SourceRegistry


# ────────────────────────────────────────────────────────────────────
# Fixtures
# ────────────────────────────────────────────────────────────────────

def _make_db(get=None, scalar=None, rowcount: int = 1) -> AsyncMock:
    db = AsyncMock()
    db.add = MagicMock()
    db.get = AsyncMock(return_value=get)
    result = MagicMock()
    result.scalar_one_or_none.return_value = scalar
    result.rowcount = rowcount
    db.execute = AsyncMock(return_value=result)
    return db


def _override_db(db):
    async def _get_db():
        yield db
    return _get_db


def _make_user(**overrides) -> User:
    values = dict(
        id=7,
        name="Lockout Tester",
        email="tester@finiq-demo.com",
        hashed_password=hash_password("Right@123"),
        role=UserRole.DSA.value,
        organization_id=1,
        is_active=True,
        failed_login_attempts=0,
        locked_until=None,
    )
    values.update(overrides)
    return User(**values)


def _make_scorecard(organization_id: int, status: str = "Active") -> SimpleNamespace:
    config = assemble_scorecard(
        ["bureau", "application"],
        {"bureau": 60, "application": 40},
        Preferences(institution_name="Acme", products=["Personal Loan"]),
        SourceRegistry(),
    ).to_dict()
    return SimpleNamespace(id=10, organization_id=organization_id, status=status, config_json=config)


@pytest.fixture
def client():
    auth_api.limiter.reset()
    with patch("app.middleware.error_capture.log_error_standalone", new=AsyncMock()):
        yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def api_log_session():
    """Stand-in for the middleware's own session; yields the mock it writes to."""
    log_db = MagicMock()
    log_db.commit = AsyncMock()

    @asynccontextmanager
    async def _session():
        yield log_db

    with patch("app.database.async_session", _session):
        yield log_db


# ────────────────────────────────────────────────────────────────────
# Session validation
# ────────────────────────────────────────────────────────────────────

class TestGetCurrentUser:

    @pytest.mark.asyncio
    async def test_expired_session_rejected(self):
        """No live session row (revoked or past expires_at) means 401."""
        token = create_access_token({"sub": "5"}, jti="expired-jti")
        db = _make_db(rowcount=0)
        with pytest.raises(HTTPException) as exc_info:
            await get_current_user(HTTPAuthorizationCredentials(scheme="Bearer", credentials=token), db)
        assert exc_info.value.status_code == 401

        statement = str(db.execute.await_args_list[0].args[0])
        assert "user_sessions.expires_at >" in statement
        assert "user_sessions.token_jti" in statement
        assert db.execute.await_count == 1

    @pytest.mark.asyncio
    async def test_live_session_returns_user(self):
        user = _make_user(id=5)
        token = create_access_token({"sub": "5"}, jti="live-jti")
        db = _make_db(scalar=user, rowcount=1)
        result = await get_current_user(HTTPAuthorizationCredentials(scheme="Bearer", credentials=token), db)
        assert result is user

    @pytest.mark.asyncio
    async def test_deactivated_user_forbidden(self):
        token = create_access_token({"sub": "5"}, jti="live-jti")
        db = _make_db(scalar=_make_user(id=5, is_active=False), rowcount=1)
        with pytest.raises(HTTPException) as exc_info:
            await get_current_user(HTTPAuthorizationCredentials(scheme="Bearer", credentials=token), db)
        assert exc_info.value.status_code == 403


# ────────────────────────────────────────────────────────────────────
# Login lock-out
# ────────────────────────────────────────────────────────────────────

class TestLoginLockout:

    def test_fifth_failure_locks_account(self, client):
        user = _make_user(failed_login_attempts=4)
        db = _make_db(scalar=user)
        app.dependency_overrides[get_db] = _override_db(db)

        resp = client.post("/api/auth/login", json={"email": user.email, "password": "Wrong@123"})
        assert resp.status_code == 401
        assert user.failed_login_attempts == 5
        assert user.locked_until is not None
        assert user.locked_until > datetime.now(timezone.utc)
        db.commit.assert_awaited()

        resp = client.post("/api/auth/login", json={"email": user.email, "password": "Right@123"})
        assert resp.status_code == 403
        assert "locked" in resp.json()["detail"].lower()
        attempts = [c.args[0] for c in db.add.call_args_list if isinstance(c.args[0], LoginAttempt)]
        assert [a.failure_reason for a in attempts] == ["bad_password", "account_locked"]

    def test_fourth_failure_does_not_lock(self, client):
        user = _make_user(failed_login_attempts=3)
        app.dependency_overrides[get_db] = _override_db(_make_db(scalar=user))

        resp = client.post("/api/auth/login", json={"email": user.email, "password": "Wrong@123"})
        assert resp.status_code == 401
        assert user.failed_login_attempts == 4
        assert user.locked_until is None


# ────────────────────────────────────────────────────────────────────
# Public scoring API
# ────────────────────────────────────────────────────────────────────

class TestPublicScoring:

    def _call(self, client, scorecard, organization_id: int = 2):
        app.dependency_overrides[get_api_client] = lambda: ApiClient(api_key_id=3, organization_id=organization_id)
        app.dependency_overrides[get_db] = _override_db(_make_db(get=scorecard))
        return client.post("/api/v1/score", json={"scorecard_id": 10, "data": {"cibil_score": 780, "age": 35}})

    def test_other_organization_is_not_found(self, client, api_log_session):
        resp = self._call(client, _make_scorecard(organization_id=1), organization_id=2)
        assert resp.status_code == 404

    def test_missing_scorecard_is_not_found(self, client, api_log_session):
        resp = self._call(client, None)
        assert resp.status_code == 404

    def test_draft_scorecard_rejected(self, client, api_log_session):
        resp = self._call(client, _make_scorecard(organization_id=2, status="Draft"))
        assert resp.status_code == 409

    def test_own_active_scorecard_scores(self, client, api_log_session):
        resp = self._call(client, _make_scorecard(organization_id=2))
        assert resp.status_code == 200
        body = resp.json()
        assert body["scorecard_id"] == 10
        assert body["bucket"] in {"A", "B", "C", "D"}
        assert 0 <= body["score"] <= 1000

    def test_call_is_logged(self, client, api_log_session):
        resp = self._call(client, _make_scorecard(organization_id=1), organization_id=2)
        assert resp.headers["X-Response-Time"].endswith("ms")

        entry = api_log_session.add.call_args.args[0]
        assert isinstance(entry, ApiLog)
        assert entry.endpoint == "/api/v1/score"
        assert entry.method == "POST"
        assert entry.status_code == 404
        assert len(entry.payload_hash) == 64
        api_log_session.commit.assert_awaited()

    def test_non_public_path_not_logged(self, client, api_log_session):
        client.get("/api/health")
        api_log_session.add.assert_not_called()
