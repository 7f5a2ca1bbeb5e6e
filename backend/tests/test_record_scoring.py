"""Tests for scoring individual records against a scorecard document."""

import pytest

from app.services.scorecard_builder.assembler import Preferences, assemble_scorecard
from app.services.scorecard_builder.bands import VariableKind
from app.services.scorecard_builder.policy import DEFAULT_POLICY
from app.services.scorecard_builder.record_scoring import (
    continuous_ratio,
    field_key,
    score_record,
    variable_ratio,
)
from app.services.scorecard_builder.sources import SourceRegistry


@pytest.fixture
def config():
    sc = assemble_scorecard(
        ["bureau", "application"],
        {"bureau": 60, "application": 40},
        Preferences(institution_name="Acme", products=["Personal Loan"]),
        SourceRegistry(),
    )
    return sc.to_dict()


STRONG_RECORD = {
    "application_id": "APP001",
    "CIBIL Score": 850,
    "credit_history_length": 900,
    "payment_defaults": "Excellent",
    "age": 30,
    "loan_amount": "Excellent",
    "existing_obligations": "Excellent",
}


class TestFieldKey:

    @pytest.mark.parametrize("name, key", [
        ("CIBIL Score", "cibil_score"),
        ("Average Monthly Balance", "average_monthly_balance"),
        ("  Loan-Amount (INR) ", "loan_amount_inr"),
    ])
    def test_normalizes(self, name, key):
        assert field_key(name) == key


class TestContinuousRatio:

    def test_credit_score(self):
        assert continuous_ratio(VariableKind.CREDIT_SCORE, 425) == pytest.approx(50)
        assert continuous_ratio(VariableKind.CREDIT_SCORE, 900) == 100

    def test_income(self):
        assert continuous_ratio(VariableKind.INCOME, 75000) == pytest.approx(50)
        assert continuous_ratio(VariableKind.INCOME, 500000) == 100

    @pytest.mark.parametrize("age, ratio", [(24, 60), (25, 80), (55, 80), (56, 60)])
    def test_age(self, age, ratio):
        assert continuous_ratio(VariableKind.AGE, age) == ratio

    def test_generic_is_clamped(self):
        assert continuous_ratio(VariableKind.GENERIC, -5) == 0
        assert continuous_ratio(VariableKind.GENERIC, 42) == 42
        assert continuous_ratio(VariableKind.GENERIC, 140) == 100


class TestVariableRatio:

    def test_missing_value(self, config):
        variable = config["categories"]["Credit Bureau Data"]["variables"][0]
        assert variable_ratio(variable, None) == 0

    def test_band_label_match(self, config):
        defaults = config["categories"]["Credit Bureau Data"]["variables"][2]
        assert variable_ratio(defaults, "Excellent") == 100
        assert variable_ratio(defaults, "fair") == pytest.approx(40)

    def test_unmatched_label_falls_back(self, config):
        defaults = config["categories"]["Credit Bureau Data"]["variables"][2]
        assert variable_ratio(defaults, "unknown") == 40

    def test_numeric_string(self, config):
        cibil = config["categories"]["Credit Bureau Data"]["variables"][0]
        assert variable_ratio(cibil, "425") == pytest.approx(50)


class TestScoreRecord:

    def test_strong_record(self, config):
        result = score_record(config, STRONG_RECORD)
        assert result.record_id == "APP001"
        assert result.score == 976
        assert result.bucket == "A"
        assert result.probability == 0.95
        assert result.breakdown == {"Credit Bureau Data": 100.0, "Application Form": 94.0}
        assert result.reason_codes == ["AGE: Low Age"]

    def test_empty_record(self, config):
        result = score_record(config, {}, record_id="R1")
        assert result.record_id == "R1"
        assert result.score == 0
        assert result.bucket == "D"
        assert result.probability == 0.05
        assert result.reason_codes == [
            "CIBIL_SCORE: Low CIBIL Score",
            "PAYMENT_DEFAULTS: Low Payment Defaults",
            "LOAN_AMOUNT: Low Loan Amount",
        ]

    def test_deterministic(self, config):
        record = {"cibil_score": 700, "age": 40, "loan_amount": "Good"}
        assert score_record(config, record).to_dict() == score_record(config, record).to_dict()

    @pytest.mark.parametrize("cibil", [300, 550, 650, 720, 800, 850])
    def test_bucket_contains_score(self, config, cibil):
        result = score_record(config, {"cibil_score": cibil, "age": 35, "payment_defaults": "Good"})
        bucket = config["bucketMapping"][result.bucket]
        assert bucket["min"] <= result.score <= bucket["max"]
        assert 0 <= result.score <= 1000

    def test_empty_config_uses_policy_buckets(self):
        result = score_record({}, {"x": 1}, policy=DEFAULT_POLICY)
        assert result.score == 0
        assert result.bucket == "D"


class TestNonFiniteValues:

    @pytest.mark.parametrize("raw", ["NaN", "nan", "inf", "-inf", float("nan"), float("inf")])
    def test_non_finite_takes_fallback(self, config, raw):
        cibil = config["categories"]["Credit Bureau Data"]["variables"][0]
        assert variable_ratio(cibil, raw) == 40

    @pytest.mark.parametrize("raw", ["NaN", "inf", float("nan")])
    def test_record_with_non_finite_cell_still_scores(self, config, raw):
        result = score_record(config, {"cibil_score": raw, "age": 30})
        plain = score_record(config, {"cibil_score": "unknown", "age": 30})
        assert result.score == plain.score
        assert 0 <= result.score <= 1000
        bucket = config["bucketMapping"][result.bucket]
        assert bucket["min"] <= result.score <= bucket["max"]
