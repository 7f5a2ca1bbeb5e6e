"""Static scorecard policy: score domain, bucket table, rate clamps and splits."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class BucketDefinition:
    label: str
    min_score: int
    max_score: int
    description: str
    approval_rate: float
    approved: bool

    def contains(self, score: float) -> bool:
        return self.min_score <= score <= self.max_score

    def to_dict(self) -> dict:
        return {
            "min": self.min_score,
            "max": self.max_score,
            "description": self.description,
            "approvalRate": self.approval_rate,
        }


DEFAULT_BUCKETS: tuple[BucketDefinition, ...] = (
    BucketDefinition("A", 750, 1000, "Excellent - Auto Approve", 95, True),
    BucketDefinition("B", 650, 749, "Good - Approve with conditions", 80, True),
    BucketDefinition("C", 550, 649, "Fair - Manual review required", 40, False),
    BucketDefinition("D", 0, 549, "Poor - Decline", 5, False),
)

BUCKET_RATIONALE = (
    "A Grade (750+): Excellent profile → Auto Approve | "
    "B Grade (650-749): Good profile → Approve with conditions | "
    "C Grade (550-649): Moderate risk → Manual review | "
    "D Grade (<550): High risk → Decline"
)


@dataclass(frozen=True)
class ScorecardPolicy:
    score_min: int = 0
    score_max: int = 1000
    buckets: tuple[BucketDefinition, ...] = field(default=DEFAULT_BUCKETS)
    conservative_rate_offset: float = 10
    conservative_rate_floor: float = 20
    aggressive_rate_offset: float = 15
    aggressive_rate_cap: float = 85
    approval_split_a: float = 0.25
    decline_split_c: float = 0.70
    alignment_tolerance: float = 5

    def achieved_approval_rate(self, target: float, risk_appetite: str) -> float:
        appetite = (risk_appetite or "moderate").lower()
        if appetite == "conservative":
            return max(target - self.conservative_rate_offset, self.conservative_rate_floor)
        if appetite == "aggressive":
            return min(target + self.aggressive_rate_offset, self.aggressive_rate_cap)
        return target

    def bucket_for(self, score: float) -> BucketDefinition:
        for bucket in self.buckets:
            if bucket.contains(score):
                return bucket
        return self.buckets[-1]

    def bucket_mapping(self) -> dict[str, dict]:
        return {bucket.label: bucket.to_dict() for bucket in self.buckets}

    @classmethod
    def from_settings(cls, settings) -> "ScorecardPolicy":
        return cls(
            score_min=settings.score_min,
            score_max=settings.score_max,
            conservative_rate_offset=settings.conservative_rate_offset,
            conservative_rate_floor=settings.conservative_rate_floor,
            aggressive_rate_offset=settings.aggressive_rate_offset,
            aggressive_rate_cap=settings.aggressive_rate_cap,
            approval_split_a=settings.approval_split_a,
            decline_split_c=settings.decline_split_c,
            alignment_tolerance=settings.alignment_tolerance,
        )


DEFAULT_POLICY = ScorecardPolicy()
