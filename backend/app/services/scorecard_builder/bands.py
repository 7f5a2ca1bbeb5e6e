"""Score band generation.

A variable's kind is resolved once from its name (or declared explicitly in
the source registry) and each kind owns a fixed curve of
(condition, fraction of total score, description) entries.
"""

import enum
import math
from dataclasses import dataclass


class VariableKind(str, enum.Enum):
    AGE = "age"
    INCOME = "income"
    CREDIT_SCORE = "credit_score"
    GENERIC = "generic"


@dataclass(frozen=True)
class BandTemplate:
    condition: str
    fraction: float
    description: str


@dataclass
class VariableBand:
    condition: str
    score: float
    description: str

    def to_dict(self) -> dict:
        return {"condition": self.condition, "score": self.score, "description": self.description}


CURVES: dict[VariableKind, tuple[BandTemplate, ...]] = {
    VariableKind.AGE: (
        BandTemplate("< 18", 0.0, "Below minimum age"),
        BandTemplate("18-30", 0.6, "Young adult"),
        BandTemplate("31-50", 1.0, "Prime working age"),
        BandTemplate("51-65", 0.8, "Mature professional"),
        BandTemplate("> 65", 0.4, "Senior citizen"),
    ),
    VariableKind.INCOME: (
        BandTemplate("< ₹25K", 0.2, "Low income"),
        BandTemplate("₹25K-50K", 0.5, "Lower middle income"),
        BandTemplate("₹50K-100K", 0.8, "Middle income"),
        BandTemplate("₹100K-250K", 1.0, "Upper middle income"),
        BandTemplate("> ₹250K", 1.0, "High income"),
    ),
    VariableKind.CREDIT_SCORE: (
        BandTemplate("< 600", 0.0, "Poor credit"),
        BandTemplate("600-650", 0.3, "Fair credit"),
        BandTemplate("650-750", 0.7, "Good credit"),
        BandTemplate("750-800", 0.9, "Very good credit"),
        BandTemplate("> 800", 1.0, "Excellent credit"),
    ),
    VariableKind.GENERIC: (
        BandTemplate("Poor", 0.0, "Below standard"),
        BandTemplate("Fair", 0.4, "Meets minimum criteria"),
        BandTemplate("Good", 0.7, "Above average"),
        BandTemplate("Excellent", 1.0, "Outstanding performance"),
    ),
}

# Checked in order; first match wins.
_KEYWORDS: tuple[tuple[VariableKind, tuple[str, ...]], ...] = (
    (VariableKind.AGE, ("age",)),
    (VariableKind.INCOME, ("income", "salary")),
    (VariableKind.CREDIT_SCORE, ("credit", "cibil")),
)


def classify_variable(name: str) -> VariableKind:
    """Resolve a variable's kind from keywords in its name."""
    lowered = name.lower()
    for kind, keywords in _KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return kind
    return VariableKind.GENERIC


def band_score(fraction: float, total_score: float) -> float:
    if fraction == 1.0:
        return total_score
    return math.floor(fraction * total_score)


def generate_bands(
    variable_name: str,
    total_score: float,
    kind: VariableKind | None = None,
) -> list[VariableBand]:
    """Build the ordered band list for one variable.

    ``kind`` overrides the keyword classification. Never fails: unknown
    names fall through to the generic Poor/Fair/Good/Excellent curve.
    """
    if kind is None:
        kind = classify_variable(variable_name)
    return [
        VariableBand(t.condition, band_score(t.fraction, total_score), t.description)
        for t in CURVES[kind]
    ]
