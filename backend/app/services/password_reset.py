"""Forgot-password flow: emailed OTP, verification, one-shot reset token.

In development mode the OTP code is returned in the API response; other
environments only log that a code was issued.
"""

import logging
import secrets
from datetime import datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.session import PasswordResetOTP

logger = logging.getLogger(__name__)

OTP_LENGTH = 6


def _generate_code() -> str:
    return "".join(secrets.choice("0123456789") for _ in range(OTP_LENGTH))


async def issue_otp(email: str, db: AsyncSession) -> dict:
    """Create a reset code for ``email``. Callers must not reveal whether the
    address exists, so this is invoked only for known users."""
    now = datetime.now(timezone.utc)
    code = _generate_code()
    db.add(PasswordResetOTP(
        email=email,
        code=code,
        expires_at=now + timedelta(minutes=settings.password_reset_otp_minutes),
    ))
    await db.flush()
    logger.info("Password reset code issued for %s", email)

    result: dict = {"sent": True}
    if settings.environment == "development":
        result["code"] = code
    return result


async def verify_otp(email: str, code: str, db: AsyncSession) -> dict:
    """Check a code; on success returns a reset token valid until the OTP expires."""
    now = datetime.now(timezone.utc)
    result = await db.execute(
        select(PasswordResetOTP).where(
            PasswordResetOTP.email == email,
            PasswordResetOTP.verified.is_(False),
            PasswordResetOTP.expires_at > now,
        ).order_by(PasswordResetOTP.created_at.desc())
    )
    otp = result.scalars().first()

    if not otp:
        return {"verified": False, "message": "No valid code found. Please request a new one."}

    if otp.attempts >= settings.password_reset_max_attempts:
        return {"verified": False, "message": "Too many incorrect attempts. Please request a new code."}

    if not secrets.compare_digest(otp.code, code):
        otp.attempts += 1
        await db.flush()
        remaining = settings.password_reset_max_attempts - otp.attempts
        if remaining <= 0:
            return {"verified": False, "message": "Too many incorrect attempts. Please request a new code."}
        return {"verified": False, "message": f"Incorrect code. {remaining} attempt(s) remaining."}

    otp.verified = True
    otp.reset_token = secrets.token_urlsafe(32)
    await db.flush()
    return {"verified": True, "reset_token": otp.reset_token, "message": "Code verified."}


async def consume_reset_token(token: str, db: AsyncSession) -> str | None:
    """Mark a reset token used and return its email, or None if invalid."""
    now = datetime.now(timezone.utc)
    result = await db.execute(
        select(PasswordResetOTP).where(
            PasswordResetOTP.reset_token == token,
            PasswordResetOTP.verified.is_(True),
            PasswordResetOTP.used.is_(False),
            PasswordResetOTP.expires_at > now,
        )
    )
    otp = result.scalar_one_or_none()
    if otp is None:
        return None
    otp.used = True
    await db.flush()
    return otp.email
