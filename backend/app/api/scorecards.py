"""Scorecard management: CRUD, lifecycle status, upload template and exports."""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth_utils import require_module, require_roles
from app.database import get_db
from app.models.scorecard import Scorecard, ScorecardStatus
from app.models.user import User, UserRole
from app.schemas import (
    ScorecardCreate,
    ScorecardResponse,
    ScorecardStatusUpdate,
    ScorecardUpdate,
)
from app.services.audit_trail import record_audit
from app.services.error_logger import log_error
from app.services.scorecard_export import build_template, export_scorecard, template_csv

logger = logging.getLogger(__name__)
router = APIRouter()

_viewer = require_module("scorecardConfig", "testingEngine", "bulkProcessing", "abTesting")
_editor = require_roles(UserRole.ADMIN, UserRole.POWER_USER)


# ── Helpers ──────────────────────────────────────────────────


async def get_scorecard_for_user(db: AsyncSession, scorecard_id: int, user: User) -> Scorecard:
    """Load a scorecard the user may see (admins: any; others: own organization)."""
    scorecard = await db.get(Scorecard, scorecard_id)
    if scorecard is None or (not user.is_admin and scorecard.organization_id != user.organization_id):
        raise HTTPException(status_code=404, detail="Scorecard not found")
    return scorecard


def resolve_organization(user: User, organization_id: Optional[int]) -> int:
    """Organization a new record belongs to; only admins may pick another one."""
    if user.is_admin and organization_id is not None:
        return organization_id
    if user.organization_id is None:
        raise HTTPException(status_code=400, detail="organization_id is required")
    return user.organization_id


def _snapshot(scorecard: Scorecard) -> dict:
    return {
        "name": scorecard.name,
        "product": scorecard.product,
        "segment": scorecard.segment,
        "version": scorecard.version,
        "status": scorecard.status,
        "config_json": scorecard.config_json,
    }


def scorecard_as_dict(scorecard: Scorecard) -> dict:
    return {"id": scorecard.id, **_snapshot(scorecard)}


# ── Endpoints ────────────────────────────────────────────────


@router.get("/", response_model=list[ScorecardResponse])
async def list_scorecards(
    product: Optional[str] = Query(None),
    segment: Optional[str] = Query(None),
    status: Optional[ScorecardStatus] = Query(None),
    organization_id: Optional[int] = Query(None),
    current_user: User = Depends(_viewer),
    db: AsyncSession = Depends(get_db),
):
    query = select(Scorecard)
    if not current_user.is_admin:
        query = query.where(Scorecard.organization_id == current_user.organization_id)
    elif organization_id is not None:
        query = query.where(Scorecard.organization_id == organization_id)
    if product:
        query = query.where(Scorecard.product == product)
    if segment:
        query = query.where(Scorecard.segment == segment)
    if status:
        query = query.where(Scorecard.status == status.value)
    result = await db.execute(query.order_by(Scorecard.updated_at.desc()))
    return result.scalars().all()


@router.get("/{scorecard_id}", response_model=ScorecardResponse)
async def get_scorecard(
    scorecard_id: int,
    current_user: User = Depends(_viewer),
    db: AsyncSession = Depends(get_db),
):
    return await get_scorecard_for_user(db, scorecard_id, current_user)


@router.post("/", response_model=ScorecardResponse, status_code=201)
async def create_scorecard(
    data: ScorecardCreate,
    organization_id: Optional[int] = Query(None),
    current_user: User = Depends(_editor),
    db: AsyncSession = Depends(get_db),
):
    try:
        scorecard = Scorecard(
            organization_id=resolve_organization(current_user, organization_id),
            name=data.name,
            product=data.product,
            segment=data.segment,
            version=data.version,
            config_json=data.config_json,
            status=data.status.value,
            created_by=current_user.id,
        )
        db.add(scorecard)
        await db.flush()
        await db.refresh(scorecard)

        await record_audit(
            db, action="CREATE", entity_type="scorecard", entity_id=scorecard.id,
            user_id=current_user.id, organization_id=scorecard.organization_id,
            new_values=_snapshot(scorecard), description=f"Created scorecard {scorecard.name}",
        )
        return scorecard
    except HTTPException:
        raise
    except Exception as e:
        await log_error(e, db=db, module="api.scorecards", function_name="create_scorecard")
        raise


@router.put("/{scorecard_id}", response_model=ScorecardResponse)
async def update_scorecard(
    scorecard_id: int,
    data: ScorecardUpdate,
    current_user: User = Depends(_editor),
    db: AsyncSession = Depends(get_db),
):
    try:
        scorecard = await get_scorecard_for_user(db, scorecard_id, current_user)
        if scorecard.status == ScorecardStatus.ARCHIVED.value:
            raise HTTPException(status_code=400, detail="Archived scorecards cannot be edited")
        old_values = _snapshot(scorecard)
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(scorecard, field, value)
        await db.flush()
        await db.refresh(scorecard)

        await record_audit(
            db, action="UPDATE", entity_type="scorecard", entity_id=scorecard.id,
            user_id=current_user.id, organization_id=scorecard.organization_id,
            old_values=old_values, new_values=_snapshot(scorecard),
        )
        return scorecard
    except HTTPException:
        raise
    except Exception as e:
        await log_error(e, db=db, module="api.scorecards", function_name="update_scorecard")
        raise


@router.patch("/{scorecard_id}/status", response_model=ScorecardResponse)
async def change_status(
    scorecard_id: int,
    data: ScorecardStatusUpdate,
    current_user: User = Depends(require_module("scorecardConfig", "approvals")),
    db: AsyncSession = Depends(get_db),
):
    scorecard = await get_scorecard_for_user(db, scorecard_id, current_user)
    old_status = scorecard.status
    if data.status == ScorecardStatus.ACTIVE:
        if current_user.role not in (UserRole.ADMIN.value, UserRole.APPROVER.value):
            raise HTTPException(status_code=403, detail="Only approvers can activate a scorecard")
        scorecard.approved_by = current_user.id
        scorecard.approved_at = datetime.now(timezone.utc)
    scorecard.status = data.status.value
    await record_audit(
        db, action="STATUS_CHANGE", entity_type="scorecard", entity_id=scorecard.id,
        user_id=current_user.id, organization_id=scorecard.organization_id,
        old_values={"status": old_status}, new_values={"status": scorecard.status},
    )
    await db.flush()
    await db.refresh(scorecard)
    return scorecard


@router.delete("/{scorecard_id}")
async def delete_scorecard(
    scorecard_id: int,
    current_user: User = Depends(_editor),
    db: AsyncSession = Depends(get_db),
):
    scorecard = await get_scorecard_for_user(db, scorecard_id, current_user)
    if scorecard.status not in (ScorecardStatus.DRAFT.value, ScorecardStatus.DRAFT_BY_AI.value):
        raise HTTPException(status_code=409, detail="Only draft scorecards can be deleted; archive it instead")
    old_values = _snapshot(scorecard)
    await db.delete(scorecard)
    await record_audit(
        db, action="DELETE", entity_type="scorecard", entity_id=scorecard_id,
        user_id=current_user.id, organization_id=scorecard.organization_id, old_values=old_values,
    )
    return {"message": "Scorecard deleted"}


@router.get("/{scorecard_id}/template")
async def download_template(
    scorecard_id: int,
    format: str = Query("json", pattern="^(json|csv)$"),
    current_user: User = Depends(_viewer),
    db: AsyncSession = Depends(get_db),
):
    scorecard = await get_scorecard_for_user(db, scorecard_id, current_user)
    template = build_template(scorecard.config_json or {})
    if format == "csv":
        return Response(
            content=template_csv(template),
            media_type="text/csv",
            headers={"Content-Disposition": f'attachment; filename="scorecard_{scorecard.id}_template.csv"'},
        )
    return template


@router.get("/{scorecard_id}/export")
async def export(
    scorecard_id: int,
    format: str = Query("excel", pattern="^(excel|pdf|json)$"),
    current_user: User = Depends(_viewer),
    db: AsyncSession = Depends(get_db),
):
    scorecard = await get_scorecard_for_user(db, scorecard_id, current_user)
    try:
        content, media_type, filename = export_scorecard(
            scorecard_as_dict(scorecard), scorecard.config_json or {}, format,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    await record_audit(
        db, action="EXPORT", entity_type="scorecard", entity_id=scorecard.id,
        user_id=current_user.id, organization_id=scorecard.organization_id,
        description=f"Exported as {format}",
    )
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
