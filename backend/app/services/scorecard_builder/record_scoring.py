"""Per-record scoring against a stored scorecard document.

Used by the bulk-processing upload and the public scoring endpoint. Each
variable value is turned into a 0-100 ratio of its points, categories are
combined by weight and the result is scaled onto the scorecard's score range.
"""

import math
import re
from dataclasses import dataclass, field

from app.services.scorecard_builder.bands import VariableKind, classify_variable
from app.services.scorecard_builder.policy import DEFAULT_POLICY, ScorecardPolicy

GENERIC_FALLBACK_RATIO = 40.0
MAX_REASON_CODES = 3

_KIND_ALIASES = {
    VariableKind.AGE: ("age",),
    VariableKind.INCOME: ("income", "monthly_income", "salary"),
    VariableKind.CREDIT_SCORE: ("credit_score", "cibil_score", "cibil"),
}


@dataclass
class RecordScore:
    record_id: str
    score: int
    bucket: str
    probability: float
    reason_codes: list[str] = field(default_factory=list)
    breakdown: dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "record_id": self.record_id,
            "score": self.score,
            "bucket": self.bucket,
            "probability": self.probability,
            "reason_codes": list(self.reason_codes),
            "breakdown": dict(self.breakdown),
        }


def field_key(name: str) -> str:
    """'CIBIL Score' -> 'cibil_score'."""
    return re.sub(r"[^a-z0-9]+", "_", str(name).lower()).strip("_")


def _to_number(value) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else None
    try:
        number = float(str(value).replace(",", "").strip())
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def _lookup(record: dict, variable_name: str, kind: VariableKind):
    normalized = {field_key(k): v for k, v in record.items()}
    for key in (field_key(variable_name),) + _KIND_ALIASES.get(kind, ()):
        value = normalized.get(key)
        if value is not None and value != "":
            return value
    return None


def continuous_ratio(kind: VariableKind, value: float) -> float:
    if kind is VariableKind.CREDIT_SCORE:
        return min(value / 8.5, 100.0)
    if kind is VariableKind.INCOME:
        return min(value / 1500, 100.0)
    if kind is VariableKind.AGE:
        return 80.0 if 25 <= value <= 55 else 60.0
    return max(0.0, min(value, 100.0))


def _band_ratio(variable: dict, text: str) -> float | None:
    total = variable.get("totalScore") or 0
    wanted = text.strip().lower()
    for band in variable.get("bands", []):
        if wanted in (str(band.get("condition", "")).lower(), str(band.get("description", "")).lower()):
            return band.get("score", 0) / total * 100 if total else 0.0
    return None


def variable_ratio(variable: dict, value) -> float:
    """0-100 ratio of the variable's points earned by ``value``."""
    if value is None:
        return 0.0
    name = variable.get("name", "")
    kind_value = variable.get("kind")
    kind = VariableKind(kind_value) if kind_value else classify_variable(name)

    if isinstance(value, str) and _to_number(value) is None:
        matched = _band_ratio(variable, value)
        return GENERIC_FALLBACK_RATIO if matched is None else matched

    number = _to_number(value)
    if number is None:
        return GENERIC_FALLBACK_RATIO
    if variable.get("type") == "categorical":
        return max(0.0, min(number, 100.0))
    return continuous_ratio(kind, number)


def _bucket_for(score: int, bucket_mapping: dict, policy: ScorecardPolicy) -> tuple[str, float]:
    if not bucket_mapping:
        bucket = policy.bucket_for(score)
        return bucket.label, bucket.approval_rate
    for label, bucket in bucket_mapping.items():
        if bucket.get("min", 0) <= score <= bucket.get("max", 0):
            return label, bucket.get("approvalRate", 0)
    label = list(bucket_mapping)[-1]
    return label, bucket_mapping[label].get("approvalRate", 0)


def score_record(
    config: dict,
    record: dict,
    record_id: str | None = None,
    policy: ScorecardPolicy = DEFAULT_POLICY,
) -> RecordScore:
    """Score one input record against a scorecard document."""
    categories = config.get("categories", {})
    metadata = config.get("metadata", {})
    low, high = metadata.get("scoreRange", [policy.score_min, policy.score_max])

    weighted = 0.0
    weight_total = 0.0
    breakdown: dict[str, float] = {}
    shortfalls: list[tuple[float, str]] = []

    for category_name, category in categories.items():
        weight = category.get("weight", 0) or 0
        earned = 0.0
        available = 0.0
        for variable in category.get("variables", []):
            name = variable.get("name", "")
            total = variable.get("totalScore", 0) or 0
            kind_value = variable.get("kind")
            kind = VariableKind(kind_value) if kind_value else classify_variable(name)
            points = variable_ratio(variable, _lookup(record, name, kind)) * total / 100
            earned += points
            available += total
            shortfalls.append((total - points, name))
        ratio = earned / available if available else 0.0
        breakdown[category_name] = round(ratio * 100, 1)
        weighted += weight * ratio
        weight_total += weight

    overall = weighted / weight_total if weight_total else 0.0
    score = round(low + overall * (high - low))
    bucket, approval_rate = _bucket_for(score, config.get("bucketMapping", {}), policy)

    shortfalls.sort(key=lambda item: item[0], reverse=True)
    reason_codes = [
        f"{field_key(name).upper()}: Low {name}"
        for gap, name in shortfalls[:MAX_REASON_CODES]
        if gap > 0
    ]

    return RecordScore(
        record_id=str(record_id if record_id is not None else record.get("application_id", "")),
        score=score,
        bucket=bucket,
        probability=round(approval_rate / 100, 2),
        reason_codes=reason_codes,
        breakdown=breakdown,
    )
