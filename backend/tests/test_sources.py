"""Tests for the data-source registry."""

import json

import pytest

from app.services.scorecard_builder.bands import VariableKind
from app.services.scorecard_builder.sources import (
    DEFAULT_SOURCES,
    SourceRegistry,
    parse_sources,
)


class TestDefaultRegistry:

    def test_built_in_sources(self):
        registry = SourceRegistry()
        assert registry.ids() == ["bureau", "banking", "mobile", "employment", "application"]
        assert len(registry) == 5

    def test_default_weights_sum_to_100(self):
        weights = SourceRegistry().default_weights()
        assert weights == {"bureau": 30, "banking": 20, "mobile": 15, "employment": 10, "application": 25}
        assert sum(weights.values()) == 100

    def test_lookup(self):
        registry = SourceRegistry()
        assert "bureau" in registry
        assert "social" not in registry
        assert registry.get("social") is None
        assert registry.get("bureau").name == "Credit Bureau Data"

    def test_bureau_variables(self):
        bureau = DEFAULT_SOURCES["bureau"]
        assert [(v.name, v.total_score) for v in bureau.variables] == [
            ("CIBIL Score", 35),
            ("Credit History Length", 15),
            ("Payment Defaults", 20),
        ]

    def test_data_usage_follows_keyword_rule(self):
        """The built-in template does not pin a kind, so "Usage" resolves to the age curve."""
        usage = DEFAULT_SOURCES["mobile"].variables[1]
        assert usage.name == "Data Usage Consistency"
        assert usage.kind is None
        assert usage.resolved_kind() == VariableKind.AGE

    def test_to_dict_is_camel_case(self):
        data = DEFAULT_SOURCES["application"].to_dict()
        assert data["defaultWeight"] == 25
        assert data["variables"][0] == {"name": "Age", "totalScore": 15, "type": "continuous", "kind": "age"}


class TestRegistryFromFile:

    def test_loads_json_file(self, tmp_path):
        path = tmp_path / "sources.json"
        path.write_text(json.dumps({
            "telco": {
                "name": "Telco Data",
                "category": "Alternative",
                "default_weight": 40,
                "variables": [
                    {"name": "Recharge Frequency", "total_score": 25, "type": "categorical"},
                    {"name": "Subscriber Age", "total_score": 10, "kind": "generic"},
                ],
            },
            "bureau": {"name": "Bureau", "default_weight": 60, "variables": [{"name": "CIBIL Score", "total_score": 50}]},
        }))
        registry = SourceRegistry.from_file(path)
        assert registry.ids() == ["telco", "bureau"]
        telco = registry.get("telco")
        assert telco.default_weight == 40
        assert telco.variables[0].type == "categorical"
        assert telco.variables[1].resolved_kind() == VariableKind.GENERIC
        assert registry.default_weights() == {"telco": 40, "bureau": 60}

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            SourceRegistry.from_file(tmp_path / "missing.json")

    def test_parse_defaults(self):
        sources = parse_sources({"x": {"variables": [{"name": "Score"}]}})
        assert sources["x"].name == "x"
        assert sources["x"].category == "Custom"
        assert sources["x"].variables[0].total_score == 0
