"""Tests for the forgot-password OTP flow using a mocked session."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from app.config import settings
from app.models.session import PasswordResetOTP
from app.services.password_reset import consume_reset_token, issue_otp, verify_otp


def _make_db(found=None) -> AsyncMock:
    db = AsyncMock()
    db.add = MagicMock()
    result = MagicMock()
    result.scalars.return_value.first.return_value = found
    result.scalar_one_or_none.return_value = found
    db.execute = AsyncMock(return_value=result)
    return db


def _make_otp(code: str = "123456", attempts: int = 0, **kwargs) -> PasswordResetOTP:
    return PasswordResetOTP(
        email="user@example.com",
        code=code,
        attempts=attempts,
        verified=kwargs.get("verified", False),
        used=kwargs.get("used", False),
        reset_token=kwargs.get("reset_token"),
        expires_at=datetime.now(timezone.utc) + timedelta(minutes=10),
    )


class TestIssueOtp:

    @pytest.mark.asyncio
    async def test_development_returns_code(self, monkeypatch):
        monkeypatch.setattr(settings, "environment", "development")
        db = _make_db()
        result = await issue_otp("user@example.com", db)
        assert result["sent"] is True
        assert len(result["code"]) == 6 and result["code"].isdigit()
        otp = db.add.call_args.args[0]
        assert otp.email == "user@example.com"
        assert otp.code == result["code"]
        db.flush.assert_awaited()

    @pytest.mark.asyncio
    async def test_production_hides_code(self, monkeypatch):
        monkeypatch.setattr(settings, "environment", "production")
        result = await issue_otp("user@example.com", _make_db())
        assert result == {"sent": True}


class TestVerifyOtp:

    @pytest.mark.asyncio
    async def test_no_pending_code(self):
        result = await verify_otp("user@example.com", "123456", _make_db(None))
        assert result["verified"] is False
        assert "request a new one" in result["message"]

    @pytest.mark.asyncio
    async def test_correct_code_issues_token(self):
        otp = _make_otp()
        result = await verify_otp("user@example.com", "123456", _make_db(otp))
        assert result["verified"] is True
        assert result["reset_token"] == otp.reset_token
        assert otp.verified is True

    @pytest.mark.asyncio
    async def test_wrong_code_counts_attempt(self, monkeypatch):
        monkeypatch.setattr(settings, "password_reset_max_attempts", 5)
        otp = _make_otp()
        result = await verify_otp("user@example.com", "000000", _make_db(otp))
        assert result["verified"] is False
        assert otp.attempts == 1
        assert "4 attempt(s) remaining" in result["message"]

    @pytest.mark.asyncio
    async def test_locked_after_max_attempts(self, monkeypatch):
        monkeypatch.setattr(settings, "password_reset_max_attempts", 5)
        otp = _make_otp(attempts=5)
        result = await verify_otp("user@example.com", "123456", _make_db(otp))
        assert result["verified"] is False
        assert "Too many" in result["message"]
        assert otp.verified is False


class TestConsumeResetToken:

    @pytest.mark.asyncio
    async def test_valid_token(self):
        otp = _make_otp(verified=True, reset_token="tok")
        email = await consume_reset_token("tok", _make_db(otp))
        assert email == "user@example.com"
        assert otp.used is True

    @pytest.mark.asyncio
    async def test_invalid_token(self):
        assert await consume_reset_token("nope", _make_db(None)) is None
