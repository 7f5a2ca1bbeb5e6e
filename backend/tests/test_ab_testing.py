"""Tests for A/B comparison between two scorecards."""

from app.services.ab_testing import compare_scorecards
from app.services.scorecard_builder.assembler import Preferences, assemble_scorecard
from app.services.scorecard_builder.sources import SourceRegistry


def _make_config(risk_appetite: str, target: float = 70) -> dict:
    return assemble_scorecard(
        ["bureau", "banking"],
        {"bureau": 50, "banking": 50},
        Preferences(risk_appetite=risk_appetite, target_approval_rate=target),
        SourceRegistry(),
    ).to_dict()


class TestCompareScorecards:

    def test_higher_approval_arm_wins(self):
        result = compare_scorecards(1, _make_config("conservative"), 2, _make_config("aggressive"))
        assert result["winnerId"] == 2
        assert result["lift"] > 0
        assert result["scorecardA"]["approvalRate"] == 60.0
        assert result["scorecardB"]["approvalRate"] == 85.0

    def test_tie_goes_to_a(self):
        config = _make_config("moderate")
        result = compare_scorecards(1, config, 2, config)
        assert result["winnerId"] == 1
        assert result["lift"] == 0

    def test_distributions_sum_to_sample(self):
        result = compare_scorecards(1, _make_config("moderate"), 2, _make_config("aggressive"), sample_size=250)
        assert result["sampleSize"] == 250
        assert sum(result["scorecardA"]["distribution"].values()) == 250
        assert sum(result["scorecardB"]["distribution"].values()) == 250

    def test_missing_metadata(self):
        result = compare_scorecards(1, {}, 2, _make_config("moderate"))
        assert result["scorecardA"]["approvalRate"] == 0.0
        assert result["winnerId"] == 2
