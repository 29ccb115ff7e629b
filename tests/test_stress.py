"""
Tests for deterministic stress scenarios.

Validates that:
1. A crash lands exactly once, at the end of its year, on the assets it names
2. Shocks scheduled at or after retirement change nothing
3. Stressed outcomes compare against the baseline in the expected direction
4. Income cuts and inflation changes reach the stressed inputs
"""

import pandas as pd
import pytest

from retirement_core.projection import project_balance, project_retirement
from retirement_core.scenarios import ASSET_CLASSES
from retirement_core.stress import (
    STRESS_RECOMMENDATIONS,
    STRESS_SCENARIOS,
    apply_stress,
    compare_stress_scenarios,
    get_stress_scenario,
    run_stress_test,
)


def make_inputs(**overrides):
    raw = {
        "currentAge": 39,
        "retirementAge": 67,
        "currentMonthlySalary": 20000,
        "currentMonthlyExpenses": 15000,
        "currentSavings": 250000,
        "currentTrainingFund": 80000,
        "currentPersonalPortfolio": 60000,
        "personalPortfolioMonthly": 1500,
        "currentRealEstate": 900000,
        "currentCrypto": 20000,
    }
    raw.update(overrides)
    return raw


def test_scenario_table_is_well_formed():
    for key, s in STRESS_SCENARIOS.items():
        assert s.key == key
        assert set(s.returns) <= set(ASSET_CLASSES)
        assert set(s.shock_losses) <= set(ASSET_CLASSES)
        assert all(0 < v < 100 for v in s.shock_losses.values())
        assert 0 <= s.income_reduction < 100


def test_project_balance_applies_shock_once_at_year_end():
    assert project_balance(1000.0, 0.0, 0.0, 0.0, 3, shock_year=2, shock_pct=50.0) == [1000.0, 1000.0, 500.0, 500.0]
    # Contribution and growth for the year come before the loss
    path = project_balance(1000.0, 100.0, 10.0, 0.0, 1, shock_year=1, shock_pct=50.0)
    assert path[-1] == pytest.approx(1100.0 * 1.1 * 0.5)


def test_shock_past_horizon_is_ignored():
    assert project_balance(1000.0, 100.0, 7.0, 0.5, 3, shock_year=5, shock_pct=40.0) == project_balance(
        1000.0, 100.0, 7.0, 0.5, 3
    )


def test_market_crash_hits_market_assets_in_year_ten():
    raw = make_inputs()
    result = run_stress_test(raw, "market_crash")
    assert result.shock_applied
    stressed_inputs, stressed_returns = apply_stress(raw, "market_crash")
    no_crash = project_retirement(stressed_inputs, stressed_returns).schedule
    crashed = result.stressed.schedule
    crash_age = 39 + 10
    for asset in ("pension", "training_fund", "personal_portfolio", "crypto"):
        assert crashed.loc[crash_age - 1, asset] == pytest.approx(no_crash.loc[crash_age - 1, asset])
        assert crashed.loc[crash_age, asset] == pytest.approx(no_crash.loc[crash_age, asset] * 0.65)
    pd.testing.assert_series_equal(crashed["real_estate"], no_crash["real_estate"])
    assert result.stressed.total_savings < no_crash["total"].iloc[-1]


def test_crash_after_retirement_has_no_effect():
    raw = make_inputs(currentAge=62)
    result = run_stress_test(raw, "market_crash")
    assert not result.shock_applied
    stressed_inputs, stressed_returns = apply_stress(raw, "market_crash")
    assert result.stressed.total_savings == pytest.approx(
        project_retirement(stressed_inputs, stressed_returns).total_savings
    )


@pytest.mark.parametrize(
    "key",
    ["conservative", "economic_stagnation", "financial_crisis_2008", "covid_pandemic"],
)
def test_adverse_scenarios_fall_below_baseline(key):
    result = run_stress_test(make_inputs(), key, "moderate")
    assert result.savings_change < 0
    assert result.savings_change_pct < 0
    assert result.recommendations == STRESS_RECOMMENDATIONS


def test_optimistic_scenario_beats_baseline():
    result = run_stress_test(make_inputs(), "optimistic", "moderate")
    assert result.savings_change > 0
    assert result.recommendations == ()
    assert result.stressed.total_savings == pytest.approx(
        result.baseline.total_savings + result.savings_change
    )


def test_financial_crisis_cuts_income_and_raises_inflation():
    stressed, returns = apply_stress(make_inputs(inflationRate=3), "financial_crisis_2008")
    assert stressed.primary.monthly_salary == pytest.approx(20000 * 0.85)
    assert stressed.primary.portfolio_monthly == pytest.approx(1500 * 0.85)
    assert stressed.inflation_rate == pytest.approx(4.0)
    # No return overrides: baseline returns carry over
    assert returns.pension == 7.0


def test_scenario_returns_and_macro_overrides():
    stressed, returns = apply_stress(make_inputs(salaryGrowthRate=2), "conservative")
    assert returns.pension == 4.5
    assert returns.crypto == 8.0
    assert stressed.inflation_rate == 5.5
    assert stressed.salary_growth_rate == 1.5


def test_couple_stress_stays_additive():
    raw = {
        "planningType": "couple",
        "currentAge": 40,
        "retirementAge": 67,
        "partner1Salary": 22000,
        "partner2Salary": 16000,
        "partner1CurrentPension": 300000,
        "partner2CurrentPension": 180000,
    }
    result = run_stress_test(raw, "covid_pandemic")
    p1, p2 = result.stressed.partners
    assert result.stressed.total_savings == pytest.approx(p1.total_savings + p2.total_savings)
    assert result.savings_change < 0


@pytest.mark.parametrize("key", ["market_crash", "marketCrash", "Market Crash", "MARKET-CRASH"])
def test_scenario_key_spellings(key):
    assert get_stress_scenario(key) is STRESS_SCENARIOS["market_crash"]


def test_unknown_scenario_raises():
    with pytest.raises(ValueError, match="Unknown stress scenario"):
        run_stress_test(make_inputs(), "alien_invasion")


def test_stress_test_is_deterministic():
    assert run_stress_test(make_inputs(), "covid_pandemic") == run_stress_test(make_inputs(), "covid_pandemic")


def test_comparison_frame():
    frame = compare_stress_scenarios(make_inputs())
    assert list(frame.index) == ["baseline"] + list(STRESS_SCENARIOS)
    assert frame.loc["baseline", "savings_change"] == 0.0
    assert frame.loc["optimistic", "savings_change"] > 0
    assert frame.loc["market_crash", "shock_applied"]
    summary = run_stress_test(make_inputs(), "market_crash").summary(decimals=0)
    assert summary["scenario"] == "market_crash"
    assert summary["savingsChange"] == pytest.approx(
        summary["stressed"]["totalSavings"] - summary["baseline"]["totalSavings"], abs=1
    )
