"""Scorecard generator: data-source catalogue, weight helpers, preview and generate."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth_utils import require_module
from app.config import settings
from app.database import get_db
from app.models.scorecard import Scorecard, ScorecardStatus
from app.models.user import User
from app.schemas import GenerateScorecardRequest, NormalizeWeightsRequest, ScorecardResponse
from app.api.scorecards import resolve_organization
from app.services.audit_trail import record_audit
from app.services.error_logger import log_error
from app.services.scorecard_builder.assembler import CustomSource, Preferences, assemble_scorecard
from app.services.scorecard_builder.policy import ScorecardPolicy
from app.services.scorecard_builder.simulation import simulate_approval
from app.services.scorecard_builder.sources import get_registry
from app.services.scorecard_builder.weights import equal_weights, normalize_weights, validate_weights

logger = logging.getLogger(__name__)
router = APIRouter()

_generator = require_module("aiGenerator")


def build_scorecard(data: GenerateScorecardRequest):
    """Validate a generator request and assemble the scorecard document."""
    registry = get_registry()
    custom_ids = {c.id for c in data.custom_sources}
    unknown = [s for s in data.data_sources if s not in registry and s not in custom_ids]
    if unknown:
        raise HTTPException(status_code=400, detail=f"Unknown data sources: {', '.join(unknown)}")

    # Categories are keyed by display name, so two selected sources may not share one
    custom_names = {c.id: c.name for c in data.custom_sources}
    seen: set[str] = set()
    for source_id in data.data_sources:
        name = custom_names.get(source_id) or registry.get(source_id).name
        if name in seen:
            raise HTTPException(status_code=400, detail=f"Duplicate category name: {name}")
        seen.add(name)

    defaults = registry.default_weights()
    defaults.update({c.id: c.weight for c in data.custom_sources})
    weights = {s: data.weights.get(s, defaults.get(s, 0)) for s in data.data_sources}
    problems = validate_weights(weights)
    if problems:
        raise HTTPException(status_code=400, detail="; ".join(problems))

    custom_sources = [
        CustomSource(
            id=c.id,
            name=c.name,
            weight=c.weight,
            description=c.description,
            variables=[
                {"name": v.name, "totalScore": v.total_score, "type": v.type, "kind": v.kind}
                for v in c.variables
            ],
        )
        for c in data.custom_sources
    ]
    preferences = Preferences(
        institution_name=data.institution_name,
        products=data.products,
        segment=data.segment,
        risk_appetite=data.risk_appetite,
        target_approval_rate=data.target_approval_rate,
    )
    policy = ScorecardPolicy.from_settings(settings)
    return assemble_scorecard(
        data.data_sources, weights, preferences,
        registry=registry, custom_sources=custom_sources, policy=policy,
    ), policy


@router.get("/sources")
async def list_sources(current_user: User = Depends(_generator)):
    registry = get_registry()
    return {
        "sources": [s.to_dict() for s in registry.all()],
        "defaultWeights": registry.default_weights(),
    }


@router.post("/normalize-weights")
async def normalize(
    data: NormalizeWeightsRequest,
    current_user: User = Depends(_generator),
):
    """Rescale weights to 100, or spread 100 evenly over ``sources`` when given."""
    if data.sources is not None:
        weights = equal_weights(data.sources)
    else:
        weights = normalize_weights(data.weights)
    return {"weights": weights, "total": sum(weights.values())}


@router.post("/preview")
async def preview(
    data: GenerateScorecardRequest,
    current_user: User = Depends(_generator),
):
    scorecard, policy = build_scorecard(data)
    simulation = simulate_approval(
        scorecard.achieved_approval_rate, scorecard.target_approval_rate,
        settings.default_sample_size, policy,
    )
    return {"scorecard": scorecard.to_dict(), "simulation": simulation.to_dict()}


@router.post("/generate", response_model=ScorecardResponse, status_code=201)
async def generate(
    data: GenerateScorecardRequest,
    organization_id: Optional[int] = Query(None),
    current_user: User = Depends(_generator),
    db: AsyncSession = Depends(get_db),
):
    try:
        scorecard, _ = build_scorecard(data)
        row = Scorecard(
            organization_id=resolve_organization(current_user, organization_id),
            name=scorecard.name,
            product=scorecard.product,
            segment=scorecard.segment,
            version=scorecard.version,
            config_json=scorecard.to_dict(),
            status=ScorecardStatus.DRAFT_BY_AI.value,
            created_by=current_user.id,
        )
        db.add(row)
        await db.flush()
        await db.refresh(row)

        await record_audit(
            db, action="AI_GENERATE", entity_type="scorecard", entity_id=row.id,
            user_id=current_user.id, organization_id=row.organization_id,
            new_values={"name": row.name, "dataSources": scorecard.data_sources},
            description=scorecard.explainability["summary"],
        )
        logger.info("Generated scorecard %s for organization %s", row.id, row.organization_id)
        return row
    except HTTPException:
        raise
    except Exception as e:
        await log_error(e, db=db, module="api.generator", function_name="generate")
        raise
