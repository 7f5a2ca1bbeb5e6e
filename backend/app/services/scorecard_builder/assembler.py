"""Scorecard assembly.

Turns a source selection, a weight configuration and the generator
preferences into a complete scorecard document: categories with banded
variables, the bucket map, approval-rate metadata and an explanation block.
"""

import logging
from dataclasses import dataclass, field

from app.services.scorecard_builder.bands import (
    VariableBand,
    VariableKind,
    classify_variable,
    generate_bands,
)
from app.services.scorecard_builder.policy import (
    BUCKET_RATIONALE,
    DEFAULT_POLICY,
    ScorecardPolicy,
)
from app.services.scorecard_builder.sources import SourceRegistry, get_registry

logger = logging.getLogger(__name__)


@dataclass
class Preferences:
    institution_name: str = "Institution"
    products: list[str] = field(default_factory=list)
    segment: str = "General"
    risk_appetite: str = "moderate"
    target_approval_rate: float = 70


@dataclass
class CustomSource:
    """A caller-defined source with its own name, weight and variables."""
    id: str
    name: str
    weight: float
    variables: list[dict]
    description: str = "Custom data source"


@dataclass
class Variable:
    name: str
    total_score: float
    type: str
    kind: VariableKind
    bands: list[VariableBand]

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "totalScore": self.total_score,
            "type": self.type,
            "kind": self.kind.value,
            "bands": [b.to_dict() for b in self.bands],
        }


@dataclass
class CategoryData:
    weight: float
    variables: list[Variable]
    description: str

    def to_dict(self) -> dict:
        return {
            "weight": self.weight,
            "variables": [v.to_dict() for v in self.variables],
            "description": self.description,
        }


@dataclass
class Scorecard:
    name: str
    product: str
    segment: str
    version: str
    status: str
    categories: dict[str, CategoryData]
    bucket_mapping: dict[str, dict]
    target_approval_rate: float
    achieved_approval_rate: float
    score_range: tuple[int, int]
    data_sources: list[str]
    explainability: dict

    def to_dict(self) -> dict:
        """JSON document stored in ``scorecards.config_json``."""
        return {
            "name": self.name,
            "product": self.product,
            "segment": self.segment,
            "version": self.version,
            "status": self.status,
            "categories": {name: c.to_dict() for name, c in self.categories.items()},
            "bucketMapping": self.bucket_mapping,
            "metadata": {
                "targetApprovalRate": self.target_approval_rate,
                "achievedApprovalRate": self.achieved_approval_rate,
                "scoreRange": list(self.score_range),
            },
            "dataSources": list(self.data_sources),
            "explainability": self.explainability,
        }


def _build_variables(templates) -> list[Variable]:
    variables = []
    for t in templates:
        kind = t.resolved_kind()
        variables.append(
            Variable(
                name=t.name,
                total_score=t.total_score,
                type=t.type,
                kind=kind,
                bands=generate_bands(t.name, t.total_score, kind),
            )
        )
    return variables


def _custom_variables(raw_variables: list[dict]) -> list[Variable]:
    variables = []
    for raw in raw_variables:
        name = raw["name"]
        total = raw.get("totalScore", raw.get("total_score", 0))
        kind_value = raw.get("kind")
        kind = VariableKind(kind_value) if kind_value else classify_variable(name)
        variables.append(
            Variable(
                name=name,
                total_score=total,
                type=raw.get("type", "continuous"),
                kind=kind,
                bands=generate_bands(name, total, kind),
            )
        )
    return variables


def scoring_logic(categories: dict[str, CategoryData]) -> str:
    parts = [f"{name}({cat.weight:g}%)" for name, cat in categories.items()]
    return f"Score = {' + '.join(parts)} = Total Score"


def assemble_scorecard(
    selected_sources: list[str],
    weights: dict[str, float],
    preferences: Preferences,
    registry: SourceRegistry | None = None,
    custom_sources: list[CustomSource] | None = None,
    policy: ScorecardPolicy = DEFAULT_POLICY,
) -> Scorecard:
    """Build a scorecard from the selected sources.

    Sources are resolved against ``custom_sources`` first, then the registry.
    Weight-sum and minimum-selection checks are the caller's job; an empty
    selection yields a scorecard with no categories.
    """
    registry = registry or get_registry()
    custom = {c.id: c for c in custom_sources or []}

    categories: dict[str, CategoryData] = {}
    for source_id in selected_sources:
        if source_id in custom:
            source = custom[source_id]
            categories[source.name] = CategoryData(
                weight=weights.get(source_id, source.weight),
                variables=_custom_variables(source.variables),
                description=source.description,
            )
            continue

        template = registry.get(source_id)
        if template is None:
            logger.warning("Skipping unknown data source %r", source_id)
            continue
        categories[template.name] = CategoryData(
            weight=weights.get(source_id, template.default_weight),
            variables=_build_variables(template.variables),
            description=template.description,
        )

    target = preferences.target_approval_rate
    achieved = policy.achieved_approval_rate(target, preferences.risk_appetite)
    products = ", ".join(preferences.products) or "General"
    summary = (
        f"This scorecard uses {len(categories)} data sources with "
        f"{preferences.risk_appetite} risk appetite, targeting {target:g}% "
        f"approval rate for {products} products."
    )

    return Scorecard(
        name=f"{preferences.institution_name} Scorecard v1.0",
        product=preferences.products[0] if preferences.products else "General",
        segment=preferences.segment,
        version="1.0",
        status="Draft by AI",
        categories=categories,
        bucket_mapping=policy.bucket_mapping(),
        target_approval_rate=target,
        achieved_approval_rate=achieved,
        score_range=(policy.score_min, policy.score_max),
        data_sources=list(selected_sources),
        explainability={
            "scoringLogic": scoring_logic(categories),
            "bucketRationale": BUCKET_RATIONALE,
            "summary": summary,
        },
    )
