"""Tests for the bucket-distribution approval simulation."""

import pytest

from app.services.scorecard_builder.policy import ScorecardPolicy
from app.services.scorecard_builder.simulation import ADJUSTED, ALIGNED, simulate_approval


class TestSimulateApproval:

    def test_distribution(self):
        result = simulate_approval(60, 60, 1000)
        assert result.distribution == {"A": 150, "B": 450, "C": 280, "D": 120}
        assert result.total_approved == 600
        assert result.total_declined == 400

    @pytest.mark.parametrize("rate", [0, 12.5, 33.3, 70, 85, 100])
    @pytest.mark.parametrize("n", [1, 7, 999, 1000])
    def test_counts_sum_to_sample(self, rate, n):
        result = simulate_approval(rate, rate, n)
        assert sum(result.distribution.values()) == n
        assert all(count >= 0 for count in result.distribution.values())

    def test_within_tolerance_is_aligned(self):
        assert simulate_approval(70, 65).alignment_status == ALIGNED

    def test_outside_tolerance_is_adjusted(self):
        assert simulate_approval(85, 65).alignment_status == ADJUSTED

    def test_zero_sample(self):
        result = simulate_approval(70, 70, 0)
        assert result.distribution == {"A": 0, "B": 0, "C": 0, "D": 0}

    def test_approval_rate_string(self):
        assert simulate_approval(72.25, 70).approval_rate == "72.2"
        assert simulate_approval(70, 70).approval_rate == "70.0"

    def test_to_dict(self):
        doc = simulate_approval(60, 70, 1000).to_dict()
        assert doc["sampleSize"] == 1000
        assert doc["targetApprovalRate"] == 70
        assert doc["summary"] == {
            "totalApproved": 600,
            "totalDeclined": 400,
            "alignmentStatus": ADJUSTED,
        }

    def test_custom_splits(self):
        policy = ScorecardPolicy(approval_split_a=0.5, decline_split_c=0.5)
        result = simulate_approval(50, 50, 100, policy)
        assert result.distribution == {"A": 25, "B": 25, "C": 25, "D": 25}
