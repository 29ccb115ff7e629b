"""
Tests for configuration loading, country rules and guarded arithmetic.
"""

import logging
import math

import pytest

from retirement_core.country_rules import get_country_rules, load_country_rules
from retirement_core.utils import PlannerConfigError, load_yaml
from retirement_core.utils.env_tools import DEFAULT_CONFIG, env_flag, get_planner_config, load_config
from retirement_core.utils.safe_math import clamp_score, interpolate, safe_divide, safe_parse_float


def test_shipped_config_matches_documented_defaults():
    cfg = get_planner_config()
    d = cfg["defaults"]
    assert d["return_pct"] == 7.0
    assert d["pension_employee_rate"] + d["pension_employer_rate"] == pytest.approx(17.5)
    assert d["effective_tax_rate"] == 25.0
    assert sum(cfg["health_score"]["weights"].values()) == pytest.approx(1.0)


def test_missing_config_file_yields_defaults(tmp_path):
    cfg = load_config(tmp_path / "missing.yaml")
    assert cfg["defaults"] == DEFAULT_CONFIG["defaults"]
    assert cfg["withdrawal_rates"]["training_fund"] == 5.0


def test_partial_config_is_backfilled(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("defaults:\n  inflation_rate: 3.0\n")
    cfg = load_config(path)
    assert cfg["defaults"]["inflation_rate"] == 3.0
    assert cfg["defaults"]["return_pct"] == 7.0
    assert "readiness" in cfg


def test_backfill_does_not_share_default_objects(tmp_path):
    cfg = load_config(tmp_path / "missing.yaml")
    cfg["readiness"]["thresholds"].append([0.1, 10])
    assert [0.1, 10] not in DEFAULT_CONFIG["readiness"]["thresholds"]


def test_non_mapping_yaml_raises(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("- a\n- b\n")
    with pytest.raises(PlannerConfigError):
        load_yaml(path)


def test_env_flag(monkeypatch):
    monkeypatch.setenv("PLANNER_TEST_FLAG", "yes")
    assert env_flag("PLANNER_TEST_FLAG") is True
    monkeypatch.setenv("PLANNER_TEST_FLAG", "0")
    assert env_flag("PLANNER_TEST_FLAG") is False
    monkeypatch.delenv("PLANNER_TEST_FLAG")
    assert env_flag("PLANNER_TEST_FLAG", default=True) is True


def test_country_lookup_by_key_and_alias():
    assert "default" in load_country_rules()
    assert get_country_rules("IL").name == "Israel"
    assert get_country_rules("usa").key == "usa"
    assert get_country_rules("GB").key == "uk"
    assert get_country_rules("narnia").key == "default"
    assert get_country_rules(None).key == "default"


def test_take_home_bands():
    israel = get_country_rules("israel")
    assert israel.take_home_for(10000) == 0.75
    assert israel.take_home_for(20000) == 0.65
    assert israel.pension_tax == 0.15


@pytest.mark.parametrize(
    "value,expected",
    [("1,200", 1200.0), ("₪ 5000", 5000.0), ("7%", 7.0), ("-250", -250.0), (3, 3.0), ("", 0.0), (None, 0.0), ("abc", 0.0), (math.inf, 0.0), (True, 0.0)],
)
def test_safe_parse_float(value, expected):
    assert safe_parse_float(value) == expected


@pytest.mark.parametrize(
    "value,expected",
    [("1,200,000.50", 1200000.5), ("-1,500", -1500.0), ("€ 12,345", 12345.0)],
)
def test_thousands_separators_are_stripped(value, expected):
    assert safe_parse_float(value) == expected


@pytest.mark.parametrize("value", ["3,5", "1,2345", "12,34,567", ",500"])
def test_decimal_comma_is_rejected_with_warning(value, caplog):
    with caplog.at_level(logging.WARNING):
        assert safe_parse_float(value, default=-1.0, field="inflationRate") == -1.0
    assert any("Ambiguous" in rec.getMessage() and "inflationRate" in rec.getMessage() for rec in caplog.records)


def test_safe_divide_and_clamp():
    assert safe_divide(10, 0) == 0.0
    assert safe_divide(10, 0, default=-1.0) == -1.0
    assert safe_divide(math.nan, 2) == 0.0
    assert safe_divide(9, 3) == 3.0
    assert clamp_score(math.nan) == 0.0
    assert clamp_score(150) == 100.0
    assert clamp_score(-5) == 0.0
    assert interpolate(15, 10, 20) == 0.5
    assert interpolate(5, 10, 10) == 0.0


def test_get_logger_returns_named_logger(monkeypatch):
    from retirement_core.utils import get_logger

    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    logger = get_logger("retirement_core.test")
    assert logger.name == "retirement_core.test"
