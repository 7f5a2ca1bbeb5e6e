"""Authentication endpoints: login, logout, me, password reset and change."""

import logging
from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials
from jose import JWTError
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth_utils import (
    _generate_jti,
    create_access_token,
    decode_token,
    get_current_user,
    hash_password,
    security,
    validate_password_strength,
    verify_password,
)
from app.config import settings
from app.database import get_db
from app.models.organization import Organization
from app.models.session import LoginAttempt, UserSession
from app.models.user import User
from app.schemas import (
    ChangePasswordRequest,
    ForgotPasswordRequest,
    LoginRequest,
    OrganizationResponse,
    ResetPasswordRequest,
    TokenResponse,
    UserResponse,
    VerifyOtpRequest,
)
from app.services import password_reset
from app.services.audit_trail import record_audit
from app.services.error_logger import log_error

logger = logging.getLogger(__name__)
router = APIRouter()
limiter = Limiter(key_func=get_remote_address)


def _client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def _user_agent(request: Request) -> str:
    return request.headers.get("user-agent", "")[:500]


async def _record_login_attempt(
    db: AsyncSession,
    *,
    email: str,
    user_id: int | None,
    request: Request,
    success: bool,
    failure_reason: str | None = None,
) -> None:
    db.add(LoginAttempt(
        email=email,
        user_id=user_id,
        ip_address=_client_ip(request),
        user_agent=_user_agent(request),
        success=success,
        failure_reason=failure_reason,
    ))


# ── Login ────────────────────────────────────────────────────


@router.post("/login", response_model=TokenResponse)
@limiter.limit(settings.login_rate_limit)
async def login(
    data: LoginRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    try:
        ip = _client_ip(request)
        now = datetime.now(timezone.utc)
        result = await db.execute(select(User).where(User.email == data.email))
        user = result.scalar_one_or_none()

        if not user:
            await _record_login_attempt(
                db, email=data.email, user_id=None, request=request,
                success=False, failure_reason="user_not_found",
            )
            await db.commit()
            raise HTTPException(status_code=401, detail="Invalid email or password")

        if user.locked_until and user.locked_until > now:
            remaining = int((user.locked_until - now).total_seconds() / 60) + 1
            await _record_login_attempt(
                db, email=data.email, user_id=user.id, request=request,
                success=False, failure_reason="account_locked",
            )
            await db.commit()
            raise HTTPException(
                status_code=403,
                detail=f"Account locked. Try again in {remaining} minutes.",
            )

        if not user.is_active:
            await _record_login_attempt(
                db, email=data.email, user_id=user.id, request=request,
                success=False, failure_reason="deactivated",
            )
            await db.commit()
            raise HTTPException(status_code=403, detail="Account is deactivated")

        if not verify_password(data.password, user.hashed_password):
            user.failed_login_attempts += 1
            locked = user.failed_login_attempts >= settings.max_failed_logins
            if locked:
                user.locked_until = now + timedelta(minutes=settings.lockout_minutes)
            await _record_login_attempt(
                db, email=data.email, user_id=user.id, request=request,
                success=False, failure_reason="bad_password",
            )
            await record_audit(
                db, action="LOGIN_FAILED_LOCKED" if locked else "LOGIN_FAILED",
                entity_type="auth", entity_id=user.id, user_id=user.id,
                organization_id=user.organization_id, ip_address=ip,
                description=f"Failed login for {data.email} (attempt {user.failed_login_attempts})",
            )
            await db.commit()
            raise HTTPException(status_code=401, detail="Invalid email or password")

        user.failed_login_attempts = 0
        user.locked_until = None
        user.last_login_at = now

        jti = _generate_jti()
        expires_at = now + timedelta(minutes=settings.access_token_expire_minutes)
        access_token = create_access_token(
            {"sub": str(user.id), "role": user.role, "org": user.organization_id},
            expires_delta=expires_at - now,
            jti=jti,
        )
        db.add(UserSession(
            user_id=user.id,
            token_jti=jti,
            ip_address=ip,
            user_agent=_user_agent(request)[:255],
            expires_at=expires_at,
        ))
        await _record_login_attempt(
            db, email=data.email, user_id=user.id, request=request, success=True,
        )
        await record_audit(
            db, action="LOGIN", entity_type="auth", entity_id=user.id, user_id=user.id,
            organization_id=user.organization_id, ip_address=ip,
            description=f"Login successful: {user.email}",
        )
        await db.flush()
        return TokenResponse(
            access_token=access_token,
            expires_at=expires_at,
            user=UserResponse.model_validate(user),
        )
    except HTTPException:
        raise
    except Exception as e:
        await log_error(e, db=db, module="api.auth", function_name="login")
        raise


@router.post("/logout")
async def logout(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        jti = decode_token(credentials.credentials).get("jti")
    except JWTError:
        raise HTTPException(status_code=401, detail="Could not validate credentials")
    await db.execute(
        update(UserSession)
        .where(UserSession.token_jti == jti, UserSession.user_id == current_user.id)
        .values(is_active=False)
    )
    await record_audit(
        db, action="LOGOUT", entity_type="auth", entity_id=current_user.id,
        user_id=current_user.id, organization_id=current_user.organization_id,
    )
    return {"message": "Logged out"}


@router.get("/me")
async def me(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    organization = None
    if current_user.organization_id:
        organization = await db.get(Organization, current_user.organization_id)
    return {
        "user": UserResponse.model_validate(current_user),
        "organization": OrganizationResponse.model_validate(organization) if organization else None,
    }


# ── Password reset ───────────────────────────────────────────


@router.post("/forgot-password")
@limiter.limit("5/minute")
async def forgot_password(
    data: ForgotPasswordRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(select(User).where(User.email == data.email, User.is_active.is_(True)))
    user = result.scalar_one_or_none()
    response = {"message": "If the email is registered, a reset code has been sent."}
    if user is not None:
        issued = await password_reset.issue_otp(user.email, db)
        if "code" in issued:
            response["code"] = issued["code"]
    return response


@router.post("/verify-otp")
@limiter.limit("10/minute")
async def verify_otp(
    data: VerifyOtpRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    outcome = await password_reset.verify_otp(data.email, data.code, db)
    if not outcome["verified"]:
        await db.commit()
        raise HTTPException(status_code=400, detail=outcome["message"])
    return {"reset_token": outcome["reset_token"], "message": outcome["message"]}


@router.post("/reset-password")
async def reset_password(
    data: ResetPasswordRequest,
    db: AsyncSession = Depends(get_db),
):
    error = validate_password_strength(data.new_password)
    if error:
        raise HTTPException(status_code=400, detail=error)

    email = await password_reset.consume_reset_token(data.reset_token, db)
    if email is None:
        raise HTTPException(status_code=400, detail="Invalid or expired reset token")

    result = await db.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()
    if user is None:
        raise HTTPException(status_code=400, detail="Invalid or expired reset token")

    user.hashed_password = hash_password(data.new_password)
    user.password_changed_at = datetime.now(timezone.utc)
    user.failed_login_attempts = 0
    user.locked_until = None
    # Existing sessions die with the old password
    await db.execute(
        update(UserSession).where(UserSession.user_id == user.id).values(is_active=False)
    )
    await record_audit(
        db, action="PASSWORD_RESET", entity_type="user", entity_id=user.id,
        user_id=user.id, organization_id=user.organization_id,
        description="Password reset via emailed code",
    )
    return {"message": "Password has been reset"}


@router.post("/change-password")
async def change_password(
    data: ChangePasswordRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if not verify_password(data.current_password, current_user.hashed_password):
        raise HTTPException(status_code=400, detail="Current password is incorrect")
    error = validate_password_strength(data.new_password)
    if error:
        raise HTTPException(status_code=400, detail=error)
    if verify_password(data.new_password, current_user.hashed_password):
        raise HTTPException(status_code=400, detail="New password must differ from the current one")

    current_user.hashed_password = hash_password(data.new_password)
    current_user.password_changed_at = datetime.now(timezone.utc)
    await record_audit(
        db, action="PASSWORD_CHANGED", entity_type="user", entity_id=current_user.id,
        user_id=current_user.id, organization_id=current_user.organization_id,
    )
    return {"message": "Password changed"}
