"""A/B tests between two scorecards."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.scorecards import get_scorecard_for_user
from app.auth_utils import require_module
from app.config import settings
from app.database import get_db
from app.models.ab_test import ABTest, ABTestStatus
from app.models.user import User
from app.schemas import ABTestCreate, ABTestResponse
from app.services.ab_testing import compare_scorecards
from app.services.audit_trail import record_audit
from app.services.error_logger import log_error
from app.services.scorecard_builder.policy import ScorecardPolicy

logger = logging.getLogger(__name__)
router = APIRouter()

_ab = require_module("abTesting")


async def _get_test(db: AsyncSession, test_id: int, user: User) -> ABTest:
    test = await db.get(ABTest, test_id)
    if test is None or (not user.is_admin and test.organization_id != user.organization_id):
        raise HTTPException(status_code=404, detail="A/B test not found")
    return test


@router.get("/", response_model=list[ABTestResponse])
async def list_tests(
    current_user: User = Depends(_ab),
    db: AsyncSession = Depends(get_db),
):
    query = select(ABTest)
    if not current_user.is_admin:
        query = query.where(ABTest.organization_id == current_user.organization_id)
    result = await db.execute(query.order_by(ABTest.created_at.desc()))
    return result.scalars().all()


@router.get("/{test_id}", response_model=ABTestResponse)
async def get_test(
    test_id: int,
    current_user: User = Depends(_ab),
    db: AsyncSession = Depends(get_db),
):
    return await _get_test(db, test_id, current_user)


@router.post("/", response_model=ABTestResponse, status_code=201)
async def create_test(
    data: ABTestCreate,
    current_user: User = Depends(_ab),
    db: AsyncSession = Depends(get_db),
):
    try:
        scorecard_a = await get_scorecard_for_user(db, data.scorecard_a_id, current_user)
        scorecard_b = await get_scorecard_for_user(db, data.scorecard_b_id, current_user)
        if scorecard_a.organization_id != scorecard_b.organization_id:
            raise HTTPException(status_code=400, detail="Both scorecards must belong to the same organization")

        test = ABTest(
            name=data.name,
            organization_id=scorecard_a.organization_id,
            scorecard_a_id=scorecard_a.id,
            scorecard_b_id=scorecard_b.id,
            status=ABTestStatus.RUNNING.value,
            created_by=current_user.id,
        )
        db.add(test)
        await db.flush()
        await db.refresh(test)

        await record_audit(
            db, action="CREATE", entity_type="ab_test", entity_id=test.id,
            user_id=current_user.id, organization_id=test.organization_id,
            new_values={"name": test.name, "scorecardA": scorecard_a.id, "scorecardB": scorecard_b.id},
        )
        return test
    except HTTPException:
        raise
    except Exception as e:
        await log_error(e, db=db, module="api.ab_tests", function_name="create_test")
        raise


@router.post("/{test_id}/pause", response_model=ABTestResponse)
async def pause_test(
    test_id: int,
    current_user: User = Depends(_ab),
    db: AsyncSession = Depends(get_db),
):
    test = await _get_test(db, test_id, current_user)
    if test.status != ABTestStatus.RUNNING.value:
        raise HTTPException(status_code=409, detail=f"Test is {test.status}")
    test.status = ABTestStatus.PAUSED.value
    await record_audit(
        db, action="PAUSE", entity_type="ab_test", entity_id=test.id,
        user_id=current_user.id, organization_id=test.organization_id,
    )
    await db.flush()
    await db.refresh(test)
    return test


@router.post("/{test_id}/complete", response_model=ABTestResponse)
async def complete_test(
    test_id: int,
    current_user: User = Depends(_ab),
    db: AsyncSession = Depends(get_db),
):
    test = await _get_test(db, test_id, current_user)
    if test.status == ABTestStatus.COMPLETED.value:
        raise HTTPException(status_code=409, detail="Test already completed")
    scorecard_a = await get_scorecard_for_user(db, test.scorecard_a_id, current_user)
    scorecard_b = await get_scorecard_for_user(db, test.scorecard_b_id, current_user)

    metrics = compare_scorecards(
        scorecard_a.id, scorecard_a.config_json or {},
        scorecard_b.id, scorecard_b.config_json or {},
        sample_size=settings.default_sample_size,
        policy=ScorecardPolicy.from_settings(settings),
    )
    test.result_metrics = metrics
    test.winner_id = metrics["winnerId"]
    test.status = ABTestStatus.COMPLETED.value
    test.completed_at = datetime.now(timezone.utc)

    await record_audit(
        db, action="COMPLETE", entity_type="ab_test", entity_id=test.id,
        user_id=current_user.id, organization_id=test.organization_id,
        new_values={"winnerId": test.winner_id, "lift": metrics["lift"]},
    )
    await db.flush()
    await db.refresh(test)
    return test
