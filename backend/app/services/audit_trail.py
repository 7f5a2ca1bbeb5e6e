"""Audit trail helper shared by the API routers."""

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.audit import AuditLog


async def record_audit(
    db: AsyncSession,
    *,
    action: str,
    entity_type: str,
    entity_id: int | None,
    user_id: int | None,
    organization_id: int | None = None,
    old_values: dict | None = None,
    new_values: dict | None = None,
    description: str | None = None,
    ip_address: str | None = None,
) -> None:
    db.add(AuditLog(
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        user_id=user_id,
        organization_id=organization_id,
        old_values=old_values,
        new_values=new_values,
        description=description,
        ip_address=ip_address,
    ))
