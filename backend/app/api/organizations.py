"""Organization (tenant) administration. Admin only."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth_utils import require_roles
from app.database import get_db
from app.models.organization import Organization
from app.models.user import User, UserRole
from app.schemas import OrganizationCreate, OrganizationResponse, OrganizationUpdate
from app.services.audit_trail import record_audit
from app.services.error_logger import log_error

logger = logging.getLogger(__name__)
router = APIRouter()

_admin = require_roles(UserRole.ADMIN)


async def _get_org(db: AsyncSession, org_id: int) -> Organization:
    org = await db.get(Organization, org_id)
    if org is None:
        raise HTTPException(status_code=404, detail="Organization not found")
    return org


def _snapshot(org: Organization) -> dict:
    return OrganizationResponse.model_validate(org).model_dump(mode="json", exclude={"created_at"})


@router.get("/", response_model=list[OrganizationResponse])
async def list_organizations(
    search: Optional[str] = Query(None),
    type: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    current_user: User = Depends(_admin),
    db: AsyncSession = Depends(get_db),
):
    query = select(Organization)
    if search:
        pattern = f"%{search}%"
        query = query.where(or_(Organization.name.ilike(pattern), Organization.code.ilike(pattern)))
    if type:
        query = query.where(Organization.type == type)
    if status:
        query = query.where(Organization.status == status)
    result = await db.execute(query.order_by(Organization.name))
    return result.scalars().all()


@router.get("/{org_id}", response_model=OrganizationResponse)
async def get_organization(
    org_id: int,
    current_user: User = Depends(_admin),
    db: AsyncSession = Depends(get_db),
):
    return await _get_org(db, org_id)


@router.post("/", response_model=OrganizationResponse, status_code=201)
async def create_organization(
    data: OrganizationCreate,
    current_user: User = Depends(_admin),
    db: AsyncSession = Depends(get_db),
):
    try:
        code = data.code.upper()
        existing = await db.execute(select(Organization.id).where(Organization.code == code))
        if existing.scalar_one_or_none() is not None:
            raise HTTPException(status_code=400, detail=f"Organization code '{code}' already exists")

        values = data.model_dump()
        values["code"] = code
        values["type"] = data.type.value
        org = Organization(**values)
        db.add(org)
        await db.flush()
        await db.refresh(org)

        await record_audit(
            db, action="CREATE", entity_type="organization", entity_id=org.id,
            user_id=current_user.id, organization_id=org.id,
            new_values=_snapshot(org), description=f"Created organization {org.name}",
        )
        return org
    except HTTPException:
        raise
    except Exception as e:
        await log_error(e, db=db, module="api.organizations", function_name="create_organization")
        raise


@router.put("/{org_id}", response_model=OrganizationResponse)
async def update_organization(
    org_id: int,
    data: OrganizationUpdate,
    current_user: User = Depends(_admin),
    db: AsyncSession = Depends(get_db),
):
    try:
        org = await _get_org(db, org_id)
        old_values = _snapshot(org)
        for field, value in data.model_dump(exclude_unset=True).items():
            if field == "type" and value is not None:
                value = value.value if hasattr(value, "value") else value
            setattr(org, field, value)
        await db.flush()
        await db.refresh(org)

        await record_audit(
            db, action="UPDATE", entity_type="organization", entity_id=org.id,
            user_id=current_user.id, organization_id=org.id,
            old_values=old_values, new_values=_snapshot(org),
        )
        return org
    except HTTPException:
        raise
    except Exception as e:
        await log_error(e, db=db, module="api.organizations", function_name="update_organization")
        raise


@router.delete("/{org_id}")
async def delete_organization(
    org_id: int,
    current_user: User = Depends(_admin),
    db: AsyncSession = Depends(get_db),
):
    org = await _get_org(db, org_id)
    user_count = (await db.execute(
        select(func.count(User.id)).where(User.organization_id == org_id)
    )).scalar() or 0
    if user_count:
        raise HTTPException(
            status_code=409,
            detail=f"Organization still has {user_count} user(s); reassign or delete them first",
        )
    old_values = _snapshot(org)
    await db.delete(org)
    await record_audit(
        db, action="DELETE", entity_type="organization", entity_id=org_id,
        user_id=current_user.id, organization_id=org_id, old_values=old_values,
    )
    return {"message": "Organization deleted"}
