"""Approval-rate simulation and bulk record scoring."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.scorecards import get_scorecard_for_user
from app.auth_utils import require_module
from app.config import settings
from app.database import get_db
from app.models.scorecard import SimulationRecord
from app.models.user import User
from app.schemas import ApprovalSimulationRequest, BulkSimulationRequest
from app.services.audit_trail import record_audit
from app.services.error_logger import log_error
from app.services.scorecard_builder.policy import ScorecardPolicy
from app.services.scorecard_builder.record_scoring import score_record
from app.services.scorecard_builder.simulation import simulate_approval

logger = logging.getLogger(__name__)
router = APIRouter()


def bucket_distribution(buckets: list[str], labels: list[str]) -> dict[str, int]:
    distribution = {label: 0 for label in labels}
    for bucket in buckets:
        distribution[bucket] = distribution.get(bucket, 0) + 1
    return distribution


def approved_labels(policy: ScorecardPolicy) -> set[str]:
    return {b.label for b in policy.buckets if b.approved}


@router.post("/approval")
async def simulate(
    data: ApprovalSimulationRequest,
    current_user: User = Depends(require_module("testingEngine")),
    db: AsyncSession = Depends(get_db),
):
    """Allocate a sample across buckets from a scorecard's (or explicit) approval rates."""
    policy = ScorecardPolicy.from_settings(settings)
    achieved = data.achieved_approval_rate
    target = data.target_approval_rate
    if data.scorecard_id is not None:
        scorecard = await get_scorecard_for_user(db, data.scorecard_id, current_user)
        metadata = (scorecard.config_json or {}).get("metadata", {})
        target = target if target is not None else metadata.get("targetApprovalRate")
        achieved = achieved if achieved is not None else metadata.get("achievedApprovalRate", target)
        if achieved is None:
            raise HTTPException(status_code=400, detail="Scorecard has no approval-rate metadata")
    if target is None:
        target = achieved

    sample_size = data.sample_size if data.sample_size is not None else settings.default_sample_size
    return simulate_approval(achieved, target, sample_size, policy).to_dict()


@router.post("/bulk")
async def bulk_process(
    data: BulkSimulationRequest,
    current_user: User = Depends(require_module("bulkProcessing")),
    db: AsyncSession = Depends(get_db),
):
    """Score every uploaded record against a scorecard and store the results."""
    if len(data.records) > settings.max_bulk_records:
        raise HTTPException(
            status_code=400,
            detail=f"At most {settings.max_bulk_records} records per upload",
        )
    try:
        scorecard = await get_scorecard_for_user(db, data.scorecard_id, current_user)
        config = scorecard.config_json or {}
        policy = ScorecardPolicy.from_settings(settings)

        results = []
        for index, record in enumerate(data.records, 1):
            record_id = record.get("application_id") or record.get("id") or f"REC{index:04d}"
            scored = score_record(config, record, record_id=record_id, policy=policy)
            results.append(scored)
            db.add(SimulationRecord(
                scorecard_id=scorecard.id,
                record_id=scored.record_id,
                score=scored.score,
                bucket=scored.bucket,
                reason_codes=scored.reason_codes,
                input_data=record,
            ))
        await db.flush()

        labels = list(config.get("bucketMapping") or policy.bucket_mapping())
        distribution = bucket_distribution([r.bucket for r in results], labels)
        approved = sum(distribution.get(label, 0) for label in approved_labels(policy))
        summary = {
            "totalRecords": len(results),
            "approved": approved,
            "declined": len(results) - approved,
            "approvalRate": round(approved / len(results) * 100, 1),
            "averageScore": round(sum(r.score for r in results) / len(results), 1),
        }

        await record_audit(
            db, action="BULK_PROCESS", entity_type="scorecard", entity_id=scorecard.id,
            user_id=current_user.id, organization_id=scorecard.organization_id,
            new_values={"distribution": distribution, **summary},
            description=f"Bulk processed {len(results)} records",
        )
        return {
            "scorecardId": scorecard.id,
            "results": [r.to_dict() for r in results],
            "distribution": distribution,
            "summary": summary,
        }
    except HTTPException:
        raise
    except Exception as e:
        await log_error(e, db=db, module="api.simulation", function_name="bulk_process")
        raise


@router.get("/results/{scorecard_id}")
async def list_results(
    scorecard_id: int,
    bucket: Optional[str] = Query(None, max_length=5),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    current_user: User = Depends(require_module("bulkProcessing", "testingEngine")),
    db: AsyncSession = Depends(get_db),
):
    scorecard = await get_scorecard_for_user(db, scorecard_id, current_user)
    query = select(SimulationRecord).where(SimulationRecord.scorecard_id == scorecard.id)
    count_query = select(func.count(SimulationRecord.id)).where(SimulationRecord.scorecard_id == scorecard.id)
    if bucket:
        query = query.where(SimulationRecord.bucket == bucket)
        count_query = count_query.where(SimulationRecord.bucket == bucket)
    total = (await db.execute(count_query)).scalar() or 0
    rows = (await db.execute(
        query.order_by(SimulationRecord.created_at.desc()).offset(offset).limit(limit)
    )).scalars().all()
    return {
        "total": total,
        "offset": offset,
        "limit": limit,
        "items": [
            {
                "id": r.id,
                "record_id": r.record_id,
                "score": r.score,
                "bucket": r.bucket,
                "reason_codes": r.reason_codes or [],
                "created_at": r.created_at.isoformat() if r.created_at else None,
            }
            for r in rows
        ],
    }
