"""Public scoring API, authenticated with an organization API key."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth_utils import ApiClient, get_api_client
from app.config import settings
from app.database import get_db
from app.models.scorecard import Scorecard, ScorecardStatus
from app.schemas import ScoreRequest, ScoreResponse
from app.services.scorecard_builder.policy import ScorecardPolicy
from app.services.scorecard_builder.record_scoring import score_record

logger = logging.getLogger(__name__)
router = APIRouter()

_SCOREABLE = {ScorecardStatus.ACTIVE.value, ScorecardStatus.TESTING.value}


@router.post("/score", response_model=ScoreResponse)
async def score(
    data: ScoreRequest,
    client: ApiClient = Depends(get_api_client),
    db: AsyncSession = Depends(get_db),
):
    scorecard = await db.get(Scorecard, data.scorecard_id)
    if scorecard is None or scorecard.organization_id != client.organization_id:
        raise HTTPException(status_code=404, detail="Scorecard not found")
    if scorecard.status not in _SCOREABLE:
        raise HTTPException(status_code=409, detail=f"Scorecard is {scorecard.status}")

    result = score_record(
        scorecard.config_json or {},
        data.data,
        policy=ScorecardPolicy.from_settings(settings),
    )
    return ScoreResponse(
        scorecard_id=scorecard.id,
        score=result.score,
        bucket=result.bucket,
        probability=result.probability,
        reason_codes=result.reason_codes,
    )
