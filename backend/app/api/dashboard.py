"""Dashboard summary metrics."""

from fastapi import APIRouter, Depends
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth_utils import get_current_user
from app.database import get_db
from app.models.ab_test import ABTest
from app.models.scorecard import Scorecard, ScorecardStatus, SimulationRecord
from app.models.user import User
from app.services.scorecard_builder.policy import DEFAULT_POLICY

router = APIRouter()


@router.get("/metrics")
async def metrics(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    org_scoped = not current_user.is_admin

    def scoped(query, model):
        if org_scoped:
            return query.where(model.organization_id == current_user.organization_id)
        return query

    active = (await db.execute(scoped(
        select(func.count(Scorecard.id)).where(Scorecard.status == ScorecardStatus.ACTIVE.value),
        Scorecard,
    ))).scalar() or 0

    records_query = select(SimulationRecord.bucket, func.count(SimulationRecord.id)).join(
        Scorecard, Scorecard.id == SimulationRecord.scorecard_id,
    )
    bucket_counts = dict((await db.execute(
        scoped(records_query, Scorecard).group_by(SimulationRecord.bucket)
    )).all())
    scored = sum(bucket_counts.values())
    approved = sum(bucket_counts.get(b.label, 0) for b in DEFAULT_POLICY.buckets if b.approved)

    ab_tests = (await db.execute(scoped(select(func.count(ABTest.id)), ABTest))).scalar() or 0

    recent = (await db.execute(
        scoped(select(Scorecard), Scorecard).order_by(Scorecard.updated_at.desc()).limit(5)
    )).scalars().all()

    return {
        "activeScoreCards": active,
        "applicationsScored": scored,
        "approvalRate": round(approved / scored * 100, 1) if scored else 0,
        "abTests": ab_tests,
        "bucketDistribution": bucket_counts,
        "recentScorecards": [
            {"id": s.id, "name": s.name, "product": s.product, "status": s.status, "version": s.version}
            for s in recent
        ],
    }
