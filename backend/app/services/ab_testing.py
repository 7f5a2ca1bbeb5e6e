"""A/B test comparison between two scorecards.

Each arm is projected with the bulk classifier from its scorecard's
achieved/target approval rates; the winner is the arm with the higher
expected approvals once each bucket's approval rate is applied.
"""

from dataclasses import dataclass

from app.services.scorecard_builder.policy import DEFAULT_POLICY, ScorecardPolicy
from app.services.scorecard_builder.simulation import simulate_approval


@dataclass
class ArmMetrics:
    scorecard_id: int
    approval_rate: float
    expected_approvals: float
    distribution: dict[str, int]
    alignment_status: str

    def to_dict(self) -> dict:
        return {
            "scorecardId": self.scorecard_id,
            "approvalRate": self.approval_rate,
            "expectedApprovals": self.expected_approvals,
            "distribution": dict(self.distribution),
            "alignmentStatus": self.alignment_status,
        }


def _arm(scorecard_id: int, config: dict, sample_size: int, policy: ScorecardPolicy) -> ArmMetrics:
    metadata = config.get("metadata", {})
    target = metadata.get("targetApprovalRate", 0)
    achieved = metadata.get("achievedApprovalRate", target)
    result = simulate_approval(achieved, target, sample_size, policy)
    rates = {label: bucket.get("approvalRate", 0) for label, bucket in config.get("bucketMapping", policy.bucket_mapping()).items()}
    expected = sum(count * rates.get(label, 0) / 100 for label, count in result.distribution.items())
    return ArmMetrics(
        scorecard_id=scorecard_id,
        approval_rate=float(result.approval_rate),
        expected_approvals=round(expected, 1),
        distribution=result.distribution,
        alignment_status=result.alignment_status,
    )


def compare_scorecards(
    scorecard_a_id: int,
    config_a: dict,
    scorecard_b_id: int,
    config_b: dict,
    sample_size: int = 1000,
    policy: ScorecardPolicy = DEFAULT_POLICY,
) -> dict:
    """Metrics for both arms plus the winning scorecard id (A on a tie)."""
    arm_a = _arm(scorecard_a_id, config_a, sample_size, policy)
    arm_b = _arm(scorecard_b_id, config_b, sample_size, policy)
    winner = arm_b if arm_b.expected_approvals > arm_a.expected_approvals else arm_a
    return {
        "sampleSize": sample_size,
        "scorecardA": arm_a.to_dict(),
        "scorecardB": arm_b.to_dict(),
        "lift": round(arm_b.expected_approvals - arm_a.expected_approvals, 1),
        "winnerId": winner.scorecard_id,
    }
