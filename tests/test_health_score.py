"""
Tests for the financial health scorer.

Validates that:
1. Sub-scores follow their threshold curves
2. Every score stays finite and inside [0, 100], even with degenerate inputs
3. The overall score is the fixed-weight combination of the core sub-scores
4. Recommendations are produced by the rule table
"""

import math

import pytest

from retirement_core.health_score import (
    BENCHMARKS,
    CORE_FACTORS,
    KEEP_IT_UP,
    calculate_debt_management_score,
    calculate_expense_ratio_score,
    calculate_retirement_readiness_score,
    calculate_savings_rate_score,
    core_weights,
    get_peer_comparison,
    health_label,
    score_financial_health,
    staged_score,
)
from retirement_core.inputs import normalize_inputs
from retirement_core.projection import project_retirement


def all_scores(hs):
    return list(hs.sub_scores.values()) + list(hs.factors.values()) + [hs.overall_score]


def assert_bounded(hs):
    for s in all_scores(hs):
        assert math.isfinite(s), f"non-finite score: {s}"
        assert 0.0 <= s <= 100.0, f"score out of range: {s}"


@pytest.mark.parametrize(
    "value,expected",
    [(25, 100.0), (20, 100.0), (17.5, 87.5), (15, 75.0), (12.5, 62.5), (10, 50.0), (5, 25.0), (2.5, 12.5), (0, 0.0), (-3, 0.0)],
)
def test_staged_score_savings_curve(value, expected):
    assert staged_score(value, BENCHMARKS["savings_rate"]) == pytest.approx(expected)


def test_weights_sum_to_one():
    weights = core_weights()
    assert set(weights) == set(CORE_FACTORS)
    assert sum(weights.values()) == pytest.approx(1.0)


def test_overall_is_weighted_combination():
    hs = score_financial_health({
        "currentAge": 40,
        "currentMonthlySalary": 18000,
        "currentMonthlyExpenses": 11000,
        "monthlyDebtPayments": 3000,
        "currentSavings": 200000,
    })
    expected = sum(hs.weights[k] * v for k, v in hs.sub_scores.items())
    assert hs.overall_score == pytest.approx(expected)
    assert_bounded(hs)


def test_savings_rate_score():
    c = normalize_inputs({
        "currentMonthlySalary": 10000,
        "employeePensionRate": 5,
        "employerPensionRate": 5,
        "trainingFundEmployeeRate": 0,
        "trainingFundEmployerRate": 0,
    })
    score, rate = calculate_savings_rate_score(c)
    assert rate == pytest.approx(10.0)
    assert score == pytest.approx(50.0)


def test_savings_rate_bonus_above_thirty_percent():
    c = normalize_inputs({"currentMonthlySalary": 10000, "personalPortfolioMonthly": 1000})
    score, rate = calculate_savings_rate_score(c)
    assert rate == pytest.approx(37.5)
    assert score == 100.0


def test_zero_income_scores_zero_not_nan():
    c = normalize_inputs({"currentMonthlySalary": 0, "currentMonthlyExpenses": 5000, "monthlyDebtPayments": 500})
    assert calculate_savings_rate_score(c) == (0.0, 0.0)
    assert calculate_expense_ratio_score(c) == (0.0, 0.0)
    assert calculate_debt_management_score(c) == (0.0, 0.0)
    hs = score_financial_health(c)
    assert hs.savings_rate_score == 0.0
    assert_bounded(hs)


@pytest.mark.parametrize(
    "raw",
    [
        {},
        {"currentMonthlySalary": 0, "currentMonthlyExpenses": 0},
        {"currentMonthlySalary": 1, "monthlyDebtPayments": 1e9, "highInterestDebt": 1e12},
        {"currentMonthlySalary": 50000, "currentMonthlyExpenses": 1e9, "emergencyFund": 1e9},
        {"currentAge": 80, "retirementAge": 60, "currentSavings": "not a number"},
        {"currentMonthlySalary": float("nan"), "currentMonthlyExpenses": float("inf")},
    ],
)
def test_scores_always_bounded(raw):
    assert_bounded(score_financial_health(raw))


def test_no_debt_scores_full_marks():
    c = normalize_inputs({"currentMonthlySalary": 10000})
    assert calculate_debt_management_score(c) == (100.0, 0.0)


def test_debt_to_income_curve_and_high_interest_penalty():
    c = normalize_inputs({"currentMonthlySalary": 10000, "monthlyDebtPayments": 3000})
    score, ratio = calculate_debt_management_score(c)
    assert ratio == pytest.approx(0.3)
    assert score == pytest.approx(50.0)
    c = normalize_inputs({"currentMonthlySalary": 10000, "monthlyDebtPayments": 3000, "highInterestDebt": 10000})
    assert calculate_debt_management_score(c)[0] == pytest.approx(40.0)


@pytest.mark.parametrize(
    "expenses,expected",
    [(3750, 100.0), (7500, 20.0), (15000, 0.0), (0, 50.0)],
)
def test_expense_ratio_score(expenses, expected):
    # Israel take-home 75% of 10,000 gross = 7,500 net
    c = normalize_inputs({"currentMonthlySalary": 10000, "currentMonthlyExpenses": expenses})
    assert calculate_expense_ratio_score(c)[0] == pytest.approx(expected)


def test_readiness_without_projection_uses_age_targets():
    c = normalize_inputs({"currentAge": 40, "currentMonthlySalary": 10000, "currentSavings": 360000})
    score, ratio = calculate_retirement_readiness_score(c)
    assert ratio == pytest.approx(1.0)
    assert score == pytest.approx(75.0)
    young = normalize_inputs({"currentAge": 30, "currentMonthlySalary": 10000, "currentSavings": 120000})
    assert calculate_retirement_readiness_score(young)[0] == pytest.approx(80.0)


def test_readiness_with_projection_uses_projected_income():
    raw = {"currentAge": 39, "retirementAge": 67, "currentMonthlySalary": 20000, "currentMonthlyExpenses": 12000}
    projection = project_retirement(raw, "moderate")
    c = normalize_inputs(raw)
    score, ratio = calculate_retirement_readiness_score(c, projection)
    assert ratio == pytest.approx(projection.monthly_income / projection.target_monthly_income)
    hs = score_financial_health(c, projection)
    assert hs.retirement_readiness_score == score
    assert_bounded(hs)


def test_scenario_three_couple_with_net_salaries_only():
    hs = score_financial_health({
        "planningType": "couple",
        "currentAge": 40,
        "retirementAge": 67,
        "partner1NetSalary": 15000,
        "partner2NetSalary": 12000,
    })
    assert hs.savings_rate_score > 0
    assert hs.savingsRateScore == hs.savings_rate_score
    assert hs.details["monthly_gross_income"] == pytest.approx(15000 / 0.75 + 12000 / 0.75)


@pytest.mark.parametrize(
    "score,label",
    [(100, "excellent"), (85, "excellent"), (84.9, "good"), (70, "good"), (50, "fair"), (49.9, "needs work"), (0, "needs work")],
)
def test_health_label(score, label):
    assert health_label(score) == label


def test_recommendations_target_weak_areas():
    hs = score_financial_health({
        "currentAge": 45,
        "currentMonthlySalary": 10000,
        "employeePensionRate": 2,
        "employerPensionRate": 2,
        "trainingFundEmployeeRate": 0,
        "trainingFundEmployerRate": 0,
        "currentMonthlyExpenses": 9000,
        "monthlyDebtPayments": 4500,
    })
    factors = [r.factor for r in hs.recommendations]
    assert 1 <= len(hs.recommendations) <= 3
    assert "savings_rate" in factors
    assert "debt_management" in factors
    for r in hs.recommendations:
        assert r.priority in {"high", "medium", "low"}
        assert r.message
    assert hs.category == "needs work"


def test_strong_profile_gets_encouragement():
    hs = score_financial_health({
        "currentAge": 40,
        "currentMonthlySalary": 20000,
        "currentMonthlyExpenses": 5000,
        "currentSavings": 3000000,
    })
    assert hs.overall_score == pytest.approx(100.0)
    assert hs.category == "excellent"
    assert [r.message for r in hs.recommendations] == [KEEP_IT_UP]


def test_peer_comparison():
    assert get_peer_comparison(35, 55).percentile == pytest.approx(50.0)
    assert get_peer_comparison(35, 75).percentile == pytest.approx(75.0)
    assert get_peer_comparison(35, 100).percentile == pytest.approx(100.0)
    assert get_peer_comparison(35, 0).percentile == 0.0
    assert get_peer_comparison(22, 50).age_group == "20-29"
    assert get_peer_comparison(70, 50).age_group == "60+"


def test_scoring_is_deterministic():
    raw = {"currentAge": 39, "currentMonthlySalary": 20000, "currentMonthlyExpenses": 15000, "totalDebt": 50000}
    assert score_financial_health(raw) == score_financial_health(raw)


def test_supplementary_factors():
    hs = score_financial_health({
        "currentAge": 30,
        "retirementAge": 67,
        "riskTolerance": "aggressive",
        "currentSavings": 100000,
        "currentTrainingFund": 20000,
        "currentPersonalPortfolio": 20000,
        "currentCrypto": 5000,
        "currentMonthlyExpenses": 10000,
        "emergencyFund": 80000,
        "jobStability": "contract",
    })
    assert hs.factors["time_horizon"] == 100.0
    assert hs.factors["risk_alignment"] == 100.0
    assert hs.factors["diversification"] == 100.0
    assert hs.factors["emergency_fund"] == 90.0
