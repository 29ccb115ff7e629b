import logging

import pytest

from retirement_core.scenarios import (
    ASSET_CLASSES,
    MarketScenario,
    SCENARIO_RETURNS,
    adjust_for_time_horizon,
    calculate_dynamic_return,
    calculate_weighted_return,
    match_scenario,
    net_return,
    parse_scenario,
    resolve_returns,
    return_recommendations,
    risk_adjusted_return,
    time_horizon_factor,
    validate_return,
)


def test_every_named_scenario_has_a_full_table():
    for scenario in MarketScenario:
        if scenario is MarketScenario.CUSTOM:
            assert scenario not in SCENARIO_RETURNS
            continue
        assert set(SCENARIO_RETURNS[scenario]) == set(ASSET_CLASSES)


@pytest.mark.parametrize(
    "key,expected",
    [
        ("conservative", {"pension": 5.5, "training_fund": 5.0, "personal_portfolio": 6.5, "real_estate": 4.5, "crypto": 10.0}),
        ("moderate", {"pension": 7.0, "training_fund": 6.5, "personal_portfolio": 8.0, "real_estate": 6.0, "crypto": 15.0}),
        ("aggressive", {"pension": 8.5, "training_fund": 8.0, "personal_portfolio": 10.0, "real_estate": 7.5, "crypto": 20.0}),
    ],
)
def test_named_scenarios(key, expected):
    r = resolve_returns(key)
    assert r.scenario == MarketScenario(key)
    assert r.as_dict() == expected
    assert r.warnings == ()
    assert r.horizon_factor == 1.0


def test_unknown_scenario_falls_back_to_moderate(caplog):
    with caplog.at_level(logging.WARNING):
        r = resolve_returns("yolo")
    assert r.scenario is MarketScenario.MODERATE
    assert r.pension == 7.0
    assert any("yolo" in rec.getMessage() for rec in caplog.records)


def test_parse_scenario_accepts_enum_and_mixed_case():
    assert parse_scenario(MarketScenario.AGGRESSIVE) is MarketScenario.AGGRESSIVE
    assert parse_scenario(" Conservative ") is MarketScenario.CONSERVATIVE
    assert parse_scenario(None) is MarketScenario.MODERATE


def test_overrides_make_a_custom_scenario():
    r = resolve_returns({"pension": 6.0, "personalPortfolio": 9.0})
    assert r.scenario is MarketScenario.CUSTOM
    assert r.pension == 6.0
    assert r.personal_portfolio == 9.0
    # Missing assets fall back to moderate
    assert r.training_fund == 6.5
    assert r.crypto == 15.0


def test_custom_overrides_are_warned_not_rejected():
    r = resolve_returns({"personal_portfolio": 13.0})
    assert r.personal_portfolio == 13.0
    messages = [w.message for w in r.warnings if w.asset == "personal_portfolio"]
    assert any("Exceptionally high" in m for m in messages)
    assert any("optimistic" in m for m in messages)


def test_unknown_override_asset_is_ignored():
    r = resolve_returns({"gold": 4.0, "pension": 6.5})
    assert r.pension == 6.5


def test_validate_return():
    assert validate_return("pension", 7.0) == []
    low = validate_return("pension", 0.5)
    assert {w.message.split(" ")[0] for w in low} == {"Below"}
    assert len(low) == 2
    crypto = validate_return("crypto", 60.0)
    assert len(crypto) == 1 and "maximum" in crypto[0].message
    # Crypto is exempt from the >12% and inflation checks
    assert validate_return("crypto", 0.5) == []


@pytest.mark.parametrize(
    "years,factor",
    [(40, 1.0), (30, 1.0), (25, 0.95), (20, 0.95), (12, 0.90), (5, 0.85), (4, 0.80), (0, 0.80)],
)
def test_time_horizon_factor(years, factor):
    assert time_horizon_factor(years) == factor


def test_horizon_adjustment_respects_floors_and_skips_crypto():
    adjusted = adjust_for_time_horizon(
        {"pension": 3.2, "training_fund": 6.5, "personal_portfolio": 8.0, "real_estate": 6.0, "crypto": 15.0},
        years_to_retirement=2,
    )
    assert adjusted["pension"] == 3.0
    assert adjusted["training_fund"] == pytest.approx(5.2)
    assert adjusted["personal_portfolio"] == pytest.approx(6.4)
    assert adjusted["real_estate"] == pytest.approx(4.8)
    assert adjusted["crypto"] == 15.0


def test_resolve_returns_with_horizon():
    r = resolve_returns("moderate", years_to_retirement=15)
    assert r.horizon_factor == 0.90
    assert r.pension == pytest.approx(6.3)
    assert r.crypto == 15.0


def test_weighted_return():
    allocations = [{"percentage": 60, "return": 8}, {"percentage": 40, "return": 4}]
    assert calculate_weighted_return(allocations) == pytest.approx(6.4)
    # Weights are normalized when they do not sum to 100
    assert calculate_weighted_return([{"weight": 1, "return": 10}, {"weight": 1, "return": 0}]) == 5.0
    assert calculate_weighted_return([]) == 0.0
    assert calculate_weighted_return(None) == 0.0
    assert calculate_weighted_return([{"allocation": 0, "expectedReturn": 9}]) == 0.0


def test_blended_return_uses_scenario_returns_for_assets():
    r = resolve_returns("moderate", [{"asset": "pension", "percentage": 50}, {"asset": "crypto", "percentage": 50}])
    assert r.blended_return == pytest.approx(11.0)
    assert resolve_returns("moderate").blended_return == 7.0


def test_dynamic_return():
    mix = {"stocks": 60, "bonds": 40}
    assert calculate_dynamic_return(mix, 20) == pytest.approx(6.4 * 1.1)
    assert calculate_dynamic_return(mix, 3) == pytest.approx(6.4 * 0.9)
    assert calculate_dynamic_return(mix, 7) == pytest.approx(6.4)
    assert calculate_dynamic_return({}, 7) == 0.0


def test_net_and_risk_adjusted_returns():
    assert net_return(7.0, 0.5) == pytest.approx(6.5)
    assert risk_adjusted_return(10.0, "aggressive") == pytest.approx(11.5)
    assert risk_adjusted_return(10.0, "veryConservative") == pytest.approx(7.0)
    assert risk_adjusted_return(10.0, "unknown") == 10.0


def test_match_scenario():
    assert match_scenario(SCENARIO_RETURNS[MarketScenario.AGGRESSIVE]) is MarketScenario.AGGRESSIVE
    assert match_scenario({"pension": 7.3, "training_fund": 6.2, "personal_portfolio": 8.9}) is MarketScenario.MODERATE
    assert match_scenario({"pension": 12.0}) is MarketScenario.CUSTOM


def test_return_recommendations():
    young = return_recommendations(30, 37, "moderate")
    assert any("aggressive" in n for n in young)
    late = return_recommendations(55, 10, "aggressive")
    assert len(late) == 2
    mismatch = return_recommendations(45, 20, "conservative", portfolio_return=8.0)
    assert any("conservative risk profile" in n for n in mismatch)
    assert return_recommendations(45, 20, "moderate") == []
