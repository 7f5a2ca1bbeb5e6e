"""Organization API keys for the public scoring endpoint."""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.scorecards import resolve_organization
from app.auth_utils import generate_api_key, hash_api_key, require_module
from app.database import get_db
from app.models.api_key import ApiKey
from app.models.organization import Organization
from app.models.user import User
from app.schemas import ApiKeyCreate, ApiKeyCreated, ApiKeyResponse
from app.services.audit_trail import record_audit

logger = logging.getLogger(__name__)
router = APIRouter()

_manage = require_module("apiManagement")


@router.get("/", response_model=list[ApiKeyResponse])
async def list_keys(
    organization_id: Optional[int] = Query(None),
    current_user: User = Depends(_manage),
    db: AsyncSession = Depends(get_db),
):
    org_id = resolve_organization(current_user, organization_id)
    result = await db.execute(
        select(ApiKey).where(ApiKey.organization_id == org_id).order_by(ApiKey.created_at.desc())
    )
    return result.scalars().all()


@router.post("/", response_model=ApiKeyCreated, status_code=201)
async def create_key(
    data: ApiKeyCreate,
    organization_id: Optional[int] = Query(None),
    current_user: User = Depends(_manage),
    db: AsyncSession = Depends(get_db),
):
    org_id = resolve_organization(current_user, organization_id)
    organization = await db.get(Organization, org_id)
    if organization is None:
        raise HTTPException(status_code=404, detail="Organization not found")

    plain = generate_api_key(organization.code)
    key = ApiKey(
        organization_id=org_id,
        name=data.name,
        key_prefix=plain[: plain.rfind("_") + 5],
        key_hash=hash_api_key(plain),
        created_by=current_user.id,
    )
    db.add(key)
    await db.flush()
    await db.refresh(key)

    await record_audit(
        db, action="CREATE", entity_type="api_key", entity_id=key.id,
        user_id=current_user.id, organization_id=org_id,
        new_values={"name": key.name, "prefix": key.key_prefix},
    )
    logger.info("API key %s created for organization %s", key.key_prefix, org_id)
    return ApiKeyCreated(**ApiKeyResponse.model_validate(key).model_dump(), api_key=plain)


@router.delete("/{key_id}", response_model=ApiKeyResponse)
async def revoke_key(
    key_id: int,
    current_user: User = Depends(_manage),
    db: AsyncSession = Depends(get_db),
):
    key = await db.get(ApiKey, key_id)
    if key is None or (not current_user.is_admin and key.organization_id != current_user.organization_id):
        raise HTTPException(status_code=404, detail="API key not found")
    if not key.is_active:
        raise HTTPException(status_code=409, detail="API key already revoked")
    key.is_active = False
    key.revoked_at = datetime.now(timezone.utc)
    await record_audit(
        db, action="REVOKE", entity_type="api_key", entity_id=key.id,
        user_id=current_user.id, organization_id=key.organization_id,
    )
    await db.flush()
    await db.refresh(key)
    return key
