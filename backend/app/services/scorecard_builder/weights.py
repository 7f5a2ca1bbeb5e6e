"""Category weight handling for scorecards.

Weights are integer percentages keyed by source/category id. The generator
keeps them summing to 100; validation happens before a scorecard is built.
"""

import math
from collections.abc import Iterable, Mapping

MIN_SOURCES = 2
WEIGHT_TOLERANCE = 0.1


def normalize_weights(weights: Mapping[str, float]) -> dict[str, float]:
    """Scale weights so they sum to exactly 100.

    Each value is scaled by ``100 / total`` and rounded half up; whatever rounding
    residual remains is added to the first key in iteration order. A zero
    total (including an empty mapping) returns the input unchanged.
    Inputs are assumed non-negative.
    """
    total = sum(weights.values())
    if total == 0:
        return dict(weights)

    normalized = {key: math.floor(value / total * 100 + 0.5) for key, value in weights.items()}
    residual = 100 - sum(normalized.values())
    if residual:
        first = next(iter(normalized))
        normalized[first] += residual
    return normalized


def equal_weights(keys: Iterable[str]) -> dict[str, int]:
    """Split 100 evenly across ``keys``; the remainder goes to the first key."""
    keys = list(keys)
    if not keys:
        return {}
    share, remainder = divmod(100, len(keys))
    weights = {key: share for key in keys}
    weights[keys[0]] += remainder
    return weights


def validate_weights(
    weights: Mapping[str, float],
    min_sources: int = MIN_SOURCES,
    tolerance: float = WEIGHT_TOLERANCE,
) -> list[str]:
    """Return a list of human-readable problems; empty means valid."""
    problems: list[str] = []
    if len(weights) < min_sources:
        problems.append(f"Select at least {min_sources} data sources")
    for key, value in weights.items():
        if value < 0 or value > 100:
            problems.append(f"Weight for '{key}' must be between 0 and 100, got {value}")
    total = sum(weights.values())
    if weights and abs(total - 100) > tolerance:
        problems.append(f"Weights must total 100%, got {total:g}%")
    return problems
