"""Tests for scorecard assembly from a source selection and preferences."""

import pytest

from app.services.scorecard_builder.assembler import (
    CustomSource,
    Preferences,
    assemble_scorecard,
)
from app.services.scorecard_builder.bands import VariableKind
from app.services.scorecard_builder.policy import DEFAULT_POLICY, ScorecardPolicy
from app.services.scorecard_builder.sources import SourceRegistry, SourceTemplate, VariableTemplate


def _make_prefs(**overrides) -> Preferences:
    defaults = dict(
        institution_name="Acme Finance",
        products=["Personal Loan"],
        segment="Salaried",
        risk_appetite="moderate",
        target_approval_rate=70,
    )
    defaults.update(overrides)
    return Preferences(**defaults)


@pytest.fixture
def registry():
    return SourceRegistry()


class TestAssembleScorecard:

    def test_two_source_scorecard(self, registry):
        sc = assemble_scorecard(["bureau", "application"], {"bureau": 60, "application": 40}, _make_prefs(), registry)
        assert list(sc.categories) == ["Credit Bureau Data", "Application Form"]
        assert sc.categories["Credit Bureau Data"].weight == 60
        assert sc.categories["Application Form"].weight == 40
        assert sc.name == "Acme Finance Scorecard v1.0"
        assert sc.product == "Personal Loan"
        assert sc.status == "Draft by AI"
        assert sc.version == "1.0"

    def test_variables_carry_bands(self, registry):
        sc = assemble_scorecard(["bureau", "application"], {"bureau": 60, "application": 40}, _make_prefs(), registry)
        cibil = sc.categories["Credit Bureau Data"].variables[0]
        assert cibil.name == "CIBIL Score"
        assert [b.score for b in cibil.bands] == [0, 10, 24, 31, 35]

    def test_bucket_mapping(self, registry):
        doc = assemble_scorecard(["bureau", "application"], {}, _make_prefs(), registry).to_dict()
        assert list(doc["bucketMapping"]) == ["A", "B", "C", "D"]
        assert doc["bucketMapping"]["A"]["min"] == 750
        assert doc["bucketMapping"]["A"]["max"] == 1000
        assert doc["bucketMapping"]["D"] == {
            "min": 0, "max": 549, "description": "Poor - Decline", "approvalRate": 5,
        }

    def test_missing_weight_uses_default(self, registry):
        sc = assemble_scorecard(["bureau", "mobile"], {"bureau": 85}, _make_prefs(), registry)
        assert sc.categories["Mobile Signals"].weight == 15

    def test_empty_selection(self, registry):
        sc = assemble_scorecard([], {}, _make_prefs(), registry)
        assert sc.categories == {}
        assert "uses 0 data sources" in sc.explainability["summary"]

    def test_unknown_source_is_skipped(self, registry):
        sc = assemble_scorecard(["bureau", "astrology"], {}, _make_prefs(), registry)
        assert list(sc.categories) == ["Credit Bureau Data"]
        assert sc.data_sources == ["bureau", "astrology"]

    def test_no_products_defaults_to_general(self, registry):
        sc = assemble_scorecard(["bureau"], {}, _make_prefs(products=[]), registry)
        assert sc.product == "General"
        assert sc.explainability["summary"].endswith("for General products.")

    def test_summary_text(self, registry):
        sc = assemble_scorecard(
            ["bureau", "application"], {"bureau": 60, "application": 40},
            _make_prefs(products=["Personal Loan", "Credit Card"]), registry,
        )
        assert sc.explainability["summary"] == (
            "This scorecard uses 2 data sources with moderate risk appetite, "
            "targeting 70% approval rate for Personal Loan, Credit Card products."
        )
        assert sc.explainability["scoringLogic"] == (
            "Score = Credit Bureau Data(60%) + Application Form(40%) = Total Score"
        )

    def test_custom_source(self, registry):
        custom = CustomSource(
            id="gst",
            name="GST Filings",
            weight=30,
            variables=[{"name": "Filing Regularity", "totalScore": 20, "type": "categorical"}],
        )
        sc = assemble_scorecard(["bureau", "gst"], {"bureau": 70}, _make_prefs(), registry, custom_sources=[custom])
        gst = sc.categories["GST Filings"]
        assert gst.weight == 30
        assert [b.condition for b in gst.variables[0].bands] == ["Poor", "Fair", "Good", "Excellent"]

    def test_to_dict_metadata(self, registry):
        doc = assemble_scorecard(["bureau"], {}, _make_prefs(risk_appetite="aggressive"), registry).to_dict()
        assert doc["metadata"] == {
            "targetApprovalRate": 70,
            "achievedApprovalRate": 85,
            "scoreRange": [0, 1000],
        }
        assert doc["categories"]["Credit Bureau Data"]["variables"][0]["kind"] == "credit_score"


class TestAchievedApprovalRate:

    @pytest.mark.parametrize("appetite, target, expected", [
        ("moderate", 70, 70),
        ("conservative", 70, 60),
        ("conservative", 25, 20),
        ("aggressive", 60, 75),
        ("aggressive", 80, 85),
        ("Aggressive", 60, 75),
        ("unknown", 55, 55),
    ])
    def test_rate_adjustment(self, appetite, target, expected):
        assert DEFAULT_POLICY.achieved_approval_rate(target, appetite) == expected

    def test_custom_policy(self):
        policy = ScorecardPolicy(aggressive_rate_offset=5, aggressive_rate_cap=90)
        assert policy.achieved_approval_rate(84, "aggressive") == 89


class TestBucketFor:

    @pytest.mark.parametrize("score, label", [
        (1000, "A"), (750, "A"), (749, "B"), (650, "B"),
        (649, "C"), (550, "C"), (549, "D"), (0, "D"),
    ])
    def test_boundaries(self, score, label):
        assert DEFAULT_POLICY.bucket_for(score).label == label


class TestBuiltInBands:

    def test_mobile_data_usage_uses_age_curve(self, registry):
        sc = assemble_scorecard(["mobile", "bureau"], {"mobile": 50, "bureau": 50}, _make_prefs(), registry)
        usage = sc.categories["Mobile Signals"].variables[1]
        assert usage.name == "Data Usage Consistency"
        assert [b.score for b in usage.bands] == [0, 9, 15, 12, 6]

    def test_custom_registry_kind_overrides_name(self):
        registry = SourceRegistry({
            "mobile": SourceTemplate(
                id="mobile",
                name="Mobile Signals",
                category="Alternative",
                description="Call patterns, SMS activity, data usage",
                default_weight=50,
                variables=(VariableTemplate("Data Usage Consistency", 15, "categorical", VariableKind.GENERIC),),
            ),
        })
        sc = assemble_scorecard(["mobile"], {}, _make_prefs(), registry)
        usage = sc.categories["Mobile Signals"].variables[0]
        assert usage.kind == VariableKind.GENERIC
        assert [b.score for b in usage.bands] == [0, 6, 10, 15]

    def test_bucket_rationale(self, registry):
        sc = assemble_scorecard(["bureau"], {}, _make_prefs(), registry)
        assert sc.explainability["bucketRationale"] == (
            "A Grade (750+): Excellent profile → Auto Approve | "
            "B Grade (650-749): Good profile → Approve with conditions | "
            "C Grade (550-649): Moderate risk → Manual review | "
            "D Grade (<550): High risk → Decline"
        )
