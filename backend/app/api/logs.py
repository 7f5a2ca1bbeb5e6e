"""Log viewers: API calls, audit trail and application errors."""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth_utils import require_module, require_roles
from app.database import get_db
from app.models.api_log import ApiLog
from app.models.audit import AuditLog
from app.models.error_log import ErrorLog, ErrorSeverity
from app.models.user import User, UserRole

router = APIRouter()


async def _page(db: AsyncSession, model, filters: list, offset: int, limit: int, serialize) -> dict:
    total = (await db.execute(select(func.count(model.id)).where(*filters))).scalar() or 0
    rows = (await db.execute(
        select(model).where(*filters).order_by(model.created_at.desc()).offset(offset).limit(limit)
    )).scalars().all()
    return {"total": total, "offset": offset, "limit": limit, "items": [serialize(r) for r in rows]}


def _org_filter(model, user: User, organization_id: Optional[int]) -> list:
    if not user.is_admin:
        return [model.organization_id == user.organization_id]
    if organization_id is not None:
        return [model.organization_id == organization_id]
    return []


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@router.get("/api")
async def list_api_logs(
    organization_id: Optional[int] = Query(None),
    status_code: Optional[int] = Query(None),
    offset: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=500),
    current_user: User = Depends(require_module("apiManagement")),
    db: AsyncSession = Depends(get_db),
):
    filters = _org_filter(ApiLog, current_user, organization_id)
    if status_code is not None:
        filters.append(ApiLog.status_code == status_code)
    return await _page(db, ApiLog, filters, offset, limit, lambda r: {
        "id": r.id,
        "organization_id": r.organization_id,
        "endpoint": r.endpoint,
        "method": r.method,
        "status_code": r.status_code,
        "response_time_ms": r.response_time_ms,
        "payload_hash": r.payload_hash,
        "ip_address": r.ip_address,
        "created_at": _iso(r.created_at),
    })


@router.get("/audit")
async def list_audit_trail(
    organization_id: Optional[int] = Query(None),
    entity_type: Optional[str] = Query(None),
    action: Optional[str] = Query(None),
    user_id: Optional[int] = Query(None),
    offset: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=500),
    current_user: User = Depends(require_module("auditTrail")),
    db: AsyncSession = Depends(get_db),
):
    filters = _org_filter(AuditLog, current_user, organization_id)
    if entity_type:
        filters.append(AuditLog.entity_type == entity_type)
    if action:
        filters.append(AuditLog.action == action)
    if user_id is not None:
        filters.append(AuditLog.user_id == user_id)
    return await _page(db, AuditLog, filters, offset, limit, lambda r: {
        "id": r.id,
        "organization_id": r.organization_id,
        "user_id": r.user_id,
        "action": r.action,
        "entity_type": r.entity_type,
        "entity_id": r.entity_id,
        "old_values": r.old_values,
        "new_values": r.new_values,
        "description": r.description,
        "ip_address": r.ip_address,
        "created_at": _iso(r.created_at),
    })


@router.get("/errors")
async def list_error_logs(
    severity: Optional[ErrorSeverity] = Query(None),
    resolved: Optional[bool] = Query(None),
    offset: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=500),
    current_user: User = Depends(require_roles(UserRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    filters = []
    if severity:
        filters.append(ErrorLog.severity == severity)
    if resolved is not None:
        filters.append(ErrorLog.resolved.is_(resolved))
    return await _page(db, ErrorLog, filters, offset, limit, lambda r: {
        "id": r.id,
        "severity": r.severity.value if r.severity else None,
        "error_type": r.error_type,
        "message": r.message,
        "module": r.module,
        "function_name": r.function_name,
        "request_method": r.request_method,
        "request_path": r.request_path,
        "status_code": r.status_code,
        "user_id": r.user_id,
        "resolved": r.resolved,
        "created_at": _iso(r.created_at),
    })
