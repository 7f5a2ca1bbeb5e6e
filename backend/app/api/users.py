"""User management: CRUD, activation and access matrices."""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth_utils import (
    get_current_user,
    hash_password,
    require_roles,
    validate_password_strength,
)
from app.database import get_db
from app.models.organization import Organization
from app.models.session import UserSession
from app.models.user import User, UserRole
from app.schemas import AdminPasswordReset, AdminUserCreate, AdminUserUpdate, UserResponse
from app.services.access_matrix import generate_access_matrix
from app.services.audit_trail import record_audit
from app.services.error_logger import log_error

logger = logging.getLogger(__name__)
router = APIRouter()

_managers = require_roles(UserRole.ADMIN, UserRole.POWER_USER)


def _snapshot(user: User) -> dict:
    return UserResponse.model_validate(user).model_dump(
        mode="json", exclude={"created_at", "last_login_at", "access_matrix"},
    )


async def _get_visible_user(db: AsyncSession, user_id: int, current_user: User) -> User:
    """Admins see every user; Power Users only their own organization."""
    user = await db.get(User, user_id)
    if user is None or (not current_user.is_admin and user.organization_id != current_user.organization_id):
        raise HTTPException(status_code=404, detail="User not found")
    return user


async def _revoke_sessions(db: AsyncSession, user_id: int) -> None:
    await db.execute(
        update(UserSession).where(UserSession.user_id == user_id).values(is_active=False)
    )


@router.get("/access-matrix/{role}")
async def get_access_matrix(
    role: UserRole,
    current_user: User = Depends(get_current_user),
):
    return generate_access_matrix(role.value)


@router.get("/", response_model=list[UserResponse])
async def list_users(
    search: Optional[str] = Query(None),
    role: Optional[UserRole] = Query(None),
    organization_id: Optional[int] = Query(None),
    is_active: Optional[bool] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    current_user: User = Depends(_managers),
    db: AsyncSession = Depends(get_db),
):
    query = select(User)
    if not current_user.is_admin:
        query = query.where(User.organization_id == current_user.organization_id)
    elif organization_id is not None:
        query = query.where(User.organization_id == organization_id)
    if search:
        pattern = f"%{search}%"
        query = query.where(or_(User.name.ilike(pattern), User.email.ilike(pattern)))
    if role:
        query = query.where(User.role == role.value)
    if is_active is not None:
        query = query.where(User.is_active.is_(is_active))
    result = await db.execute(query.order_by(User.name).offset(offset).limit(limit))
    return result.scalars().all()


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: int,
    current_user: User = Depends(_managers),
    db: AsyncSession = Depends(get_db),
):
    return await _get_visible_user(db, user_id, current_user)


@router.post("/", response_model=UserResponse, status_code=201)
async def create_user(
    data: AdminUserCreate,
    current_user: User = Depends(_managers),
    db: AsyncSession = Depends(get_db),
):
    try:
        error = validate_password_strength(data.password)
        if error:
            raise HTTPException(status_code=400, detail=error)

        existing = await db.execute(select(User.id).where(User.email == data.email))
        if existing.scalar_one_or_none() is not None:
            raise HTTPException(status_code=400, detail="Email already registered")

        organization_id = data.organization_id
        if not current_user.is_admin:
            if data.role == UserRole.ADMIN:
                raise HTTPException(status_code=403, detail="Only admins can create admin users")
            organization_id = current_user.organization_id
        if organization_id is not None and await db.get(Organization, organization_id) is None:
            raise HTTPException(status_code=400, detail="Organization not found")

        user = User(
            name=data.name,
            email=data.email,
            hashed_password=hash_password(data.password),
            role=data.role.value,
            organization_id=organization_id,
            default_module=data.default_module,
            access_matrix=generate_access_matrix(data.role.value),
            password_changed_at=datetime.now(timezone.utc),
        )
        db.add(user)
        await db.flush()
        await db.refresh(user)

        await record_audit(
            db, action="CREATE", entity_type="user", entity_id=user.id,
            user_id=current_user.id, organization_id=user.organization_id,
            new_values=_snapshot(user), description=f"Created user {user.email}",
        )
        return user
    except HTTPException:
        raise
    except Exception as e:
        await log_error(e, db=db, module="api.users", function_name="create_user")
        raise


@router.put("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: int,
    data: AdminUserUpdate,
    current_user: User = Depends(_managers),
    db: AsyncSession = Depends(get_db),
):
    try:
        user = await _get_visible_user(db, user_id, current_user)
        old_values = _snapshot(user)
        changes = data.model_dump(exclude_unset=True)

        if "email" in changes and changes["email"] != user.email:
            clash = await db.execute(select(User.id).where(User.email == changes["email"]))
            if clash.scalar_one_or_none() is not None:
                raise HTTPException(status_code=400, detail="Email already registered")
        if not current_user.is_admin:
            if changes.get("role") == UserRole.ADMIN:
                raise HTTPException(status_code=403, detail="Only admins can grant the Admin role")
            changes.pop("organization_id", None)

        role = changes.pop("role", None)
        if role is not None:
            user.role = role.value
            if "access_matrix" not in changes:
                user.access_matrix = generate_access_matrix(role.value)
        for field, value in changes.items():
            setattr(user, field, value)
        await db.flush()
        await db.refresh(user)

        await record_audit(
            db, action="UPDATE", entity_type="user", entity_id=user.id,
            user_id=current_user.id, organization_id=user.organization_id,
            old_values=old_values, new_values=_snapshot(user),
        )
        return user
    except HTTPException:
        raise
    except Exception as e:
        await log_error(e, db=db, module="api.users", function_name="update_user")
        raise


async def _set_active(db: AsyncSession, user_id: int, current_user: User, active: bool) -> User:
    user = await _get_visible_user(db, user_id, current_user)
    if user.id == current_user.id and not active:
        raise HTTPException(status_code=400, detail="You cannot deactivate your own account")
    user.is_active = active
    if not active:
        await _revoke_sessions(db, user.id)
    await record_audit(
        db, action="ACTIVATE" if active else "DEACTIVATE", entity_type="user",
        entity_id=user.id, user_id=current_user.id, organization_id=user.organization_id,
    )
    await db.flush()
    await db.refresh(user)
    return user


@router.post("/{user_id}/activate", response_model=UserResponse)
async def activate_user(
    user_id: int,
    current_user: User = Depends(_managers),
    db: AsyncSession = Depends(get_db),
):
    return await _set_active(db, user_id, current_user, True)


@router.post("/{user_id}/deactivate", response_model=UserResponse)
async def deactivate_user(
    user_id: int,
    current_user: User = Depends(_managers),
    db: AsyncSession = Depends(get_db),
):
    return await _set_active(db, user_id, current_user, False)


@router.post("/{user_id}/reset-password")
async def admin_reset_password(
    user_id: int,
    data: AdminPasswordReset,
    current_user: User = Depends(_managers),
    db: AsyncSession = Depends(get_db),
):
    user = await _get_visible_user(db, user_id, current_user)
    error = validate_password_strength(data.new_password)
    if error:
        raise HTTPException(status_code=400, detail=error)
    user.hashed_password = hash_password(data.new_password)
    user.password_changed_at = datetime.now(timezone.utc)
    user.failed_login_attempts = 0
    user.locked_until = None
    await _revoke_sessions(db, user.id)
    await record_audit(
        db, action="PASSWORD_RESET", entity_type="user", entity_id=user.id,
        user_id=current_user.id, organization_id=user.organization_id,
        description="Password reset by administrator",
    )
    return {"message": "Password reset"}


@router.delete("/{user_id}")
async def delete_user(
    user_id: int,
    current_user: User = Depends(_managers),
    db: AsyncSession = Depends(get_db),
):
    if user_id == current_user.id:
        raise HTTPException(status_code=400, detail="You cannot delete your own account")
    user = await _get_visible_user(db, user_id, current_user)
    old_values = _snapshot(user)
    await db.delete(user)
    await record_audit(
        db, action="DELETE", entity_type="user", entity_id=user_id,
        user_id=current_user.id, organization_id=old_values.get("organization_id"),
        old_values=old_values,
    )
    return {"message": "User deleted"}
