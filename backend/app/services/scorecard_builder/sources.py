"""Data-source registry.

Maps a source id to the variables it contributes. The built-in templates can
be replaced by a JSON file (``SCORECARD_SOURCES_FILE``) of the form::

    {"bureau": {"name": "Credit Bureau Data", "category": "Traditional",
                "description": "...", "default_weight": 30,
                "variables": [{"name": "CIBIL Score", "total_score": 35,
                               "type": "continuous"}]}}
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path

from app.services.scorecard_builder.bands import VariableKind, classify_variable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VariableTemplate:
    name: str
    total_score: float
    type: str = "continuous"
    kind: VariableKind | None = None

    def resolved_kind(self) -> VariableKind:
        return self.kind or classify_variable(self.name)


@dataclass(frozen=True)
class SourceTemplate:
    id: str
    name: str
    category: str
    description: str
    default_weight: int
    variables: tuple[VariableTemplate, ...] = field(default_factory=tuple)
    quality: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "description": self.description,
            "defaultWeight": self.default_weight,
            "quality": dict(self.quality),
            "variables": [
                {
                    "name": v.name,
                    "totalScore": v.total_score,
                    "type": v.type,
                    "kind": v.resolved_kind().value,
                }
                for v in self.variables
            ],
        }


DEFAULT_SOURCES: dict[str, SourceTemplate] = {
    "bureau": SourceTemplate(
        id="bureau",
        name="Credit Bureau Data",
        category="Traditional",
        description="CIBIL, Experian, Equifax credit reports",
        default_weight=30,
        variables=(
            VariableTemplate("CIBIL Score", 35),
            VariableTemplate("Credit History Length", 15),
            VariableTemplate("Payment Defaults", 20, "categorical"),
        ),
        quality={"completeness": 95, "accuracy": 98, "timeliness": 90},
    ),
    "banking": SourceTemplate(
        id="banking",
        name="Banking Data",
        category="Traditional",
        description="Bank statements, transaction analysis",
        default_weight=20,
        variables=(
            VariableTemplate("Average Monthly Balance", 25),
            VariableTemplate("Transaction Regularity", 15, "categorical"),
            VariableTemplate("Overdraft Frequency", 10),
        ),
        quality={"completeness": 88, "accuracy": 92, "timeliness": 85},
    ),
    "mobile": SourceTemplate(
        id="mobile",
        name="Mobile Signals",
        category="Alternative",
        description="Call patterns, SMS activity, data usage",
        default_weight=15,
        variables=(
            VariableTemplate("Call Pattern Stability", 20, "categorical"),
            VariableTemplate("Data Usage Consistency", 15, "categorical"),
        ),
        quality={"completeness": 75, "accuracy": 82, "timeliness": 95},
    ),
    "employment": SourceTemplate(
        id="employment",
        name="Employment Data",
        category="Traditional",
        description="Salary slips, employment verification",
        default_weight=10,
        variables=(
            VariableTemplate("Monthly Salary", 30),
            VariableTemplate("Employment Tenure", 20),
        ),
        quality={"completeness": 82, "accuracy": 90, "timeliness": 78},
    ),
    "application": SourceTemplate(
        id="application",
        name="Application Form",
        category="Internal",
        description="Customer provided information",
        default_weight=25,
        variables=(
            VariableTemplate("Age", 15),
            VariableTemplate("Loan Amount", 20),
            VariableTemplate("Existing Obligations", 15),
        ),
        quality={"completeness": 100, "accuracy": 85, "timeliness": 100},
    ),
}


def _parse_variable(raw: dict) -> VariableTemplate:
    kind = raw.get("kind")
    return VariableTemplate(
        name=raw["name"],
        total_score=raw.get("total_score", raw.get("totalScore", 0)),
        type=raw.get("type", "continuous"),
        kind=VariableKind(kind) if kind else None,
    )


def parse_sources(data: dict) -> dict[str, SourceTemplate]:
    """Build source templates from a JSON-compatible mapping."""
    sources: dict[str, SourceTemplate] = {}
    for source_id, raw in data.items():
        sources[source_id] = SourceTemplate(
            id=source_id,
            name=raw.get("name", source_id),
            category=raw.get("category", "Custom"),
            description=raw.get("description", ""),
            default_weight=int(raw.get("default_weight", raw.get("defaultWeight", 0))),
            variables=tuple(_parse_variable(v) for v in raw.get("variables", [])),
            quality=raw.get("quality", {}),
        )
    return sources


class SourceRegistry:
    """Lookup table from source id to its template."""

    def __init__(self, sources: dict[str, SourceTemplate] | None = None):
        self._sources = dict(DEFAULT_SOURCES if sources is None else sources)

    @classmethod
    def from_file(cls, path: str | Path) -> "SourceRegistry":
        with open(path, encoding="utf-8") as fh:
            data = json.load(fh)
        sources = parse_sources(data)
        logger.info("Loaded %d data-source templates from %s", len(sources), path)
        return cls(sources)

    def get(self, source_id: str) -> SourceTemplate | None:
        return self._sources.get(source_id)

    def __contains__(self, source_id: str) -> bool:
        return source_id in self._sources

    def __len__(self) -> int:
        return len(self._sources)

    def ids(self) -> list[str]:
        return list(self._sources)

    def all(self) -> list[SourceTemplate]:
        return list(self._sources.values())

    def default_weights(self) -> dict[str, int]:
        return {s.id: s.default_weight for s in self._sources.values()}


_registry: SourceRegistry | None = None


def get_registry() -> SourceRegistry:
    """Process-wide registry, loaded from settings on first use."""
    global _registry
    if _registry is None:
        from app.config import settings

        path = settings.scorecard_sources_file
        if path and Path(path).exists():
            _registry = SourceRegistry.from_file(path)
        else:
            _registry = SourceRegistry()
    return _registry
