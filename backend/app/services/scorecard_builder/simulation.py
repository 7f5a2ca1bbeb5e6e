"""Bulk classification of a sample population across the four buckets.

This is a deterministic allocator driven by the scorecard's achieved
approval rate; it does not score individual records.
"""

import math
from dataclasses import dataclass

from app.services.scorecard_builder.policy import DEFAULT_POLICY, ScorecardPolicy

ALIGNED = "Aligned"
ADJUSTED = "Adjusted for Risk"


@dataclass
class SimulationResult:
    sample_size: int
    distribution: dict[str, int]
    approval_rate: str
    target_approval_rate: float
    total_approved: int
    total_declined: int
    alignment_status: str

    def to_dict(self) -> dict:
        return {
            "sampleSize": self.sample_size,
            "distribution": dict(self.distribution),
            "approvalRate": self.approval_rate,
            "targetApprovalRate": self.target_approval_rate,
            "summary": {
                "totalApproved": self.total_approved,
                "totalDeclined": self.total_declined,
                "alignmentStatus": self.alignment_status,
            },
        }


def simulate_approval(
    achieved_approval_rate: float,
    target_approval_rate: float,
    sample_size: int = 1000,
    policy: ScorecardPolicy = DEFAULT_POLICY,
) -> SimulationResult:
    """Split ``sample_size`` records into buckets A-D.

    Approvals go A/B by ``policy.approval_split_a`` (remainder to B) and
    declines go C/D by ``policy.decline_split_c`` (remainder to D), so the
    four counts always sum to ``sample_size``.
    """
    approvals = math.floor(sample_size * achieved_approval_rate / 100)
    declines = sample_size - approvals

    a = math.floor(approvals * policy.approval_split_a)
    c = math.floor(declines * policy.decline_split_c)
    distribution = {"A": a, "B": approvals - a, "C": c, "D": declines - c}

    aligned = abs(achieved_approval_rate - target_approval_rate) <= policy.alignment_tolerance
    return SimulationResult(
        sample_size=sample_size,
        distribution=distribution,
        approval_rate=f"{achieved_approval_rate:.1f}",
        target_approval_rate=target_approval_rate,
        total_approved=approvals,
        total_declined=declines,
        alignment_status=ALIGNED if aligned else ADJUSTED,
    )
