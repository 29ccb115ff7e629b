from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union
import logging

from .inputs import CanonicalInputs, normalize_inputs
from .projection import ProjectionResult
from .utils.env_tools import get_planner_config
from .utils.safe_math import clamp, clamp_score, interpolate, safe_divide

_log = logging.getLogger(__name__)

__all__ = [
    "CORE_FACTORS",
    "BENCHMARKS",
    "AGE_BASED_TARGETS",
    "RISK_PROFILE_EQUITY_BANDS",
    "PEER_BENCHMARKS",
    "Recommendation",
    "PeerComparison",
    "HealthScore",
    "staged_score",
    "calculate_savings_rate_score",
    "calculate_retirement_readiness_score",
    "calculate_debt_management_score",
    "calculate_expense_ratio_score",
    "calculate_time_horizon_score",
    "calculate_risk_alignment_score",
    "calculate_diversification_score",
    "calculate_tax_efficiency_score",
    "calculate_emergency_fund_score",
    "health_label",
    "get_peer_comparison",
    "generate_recommendations",
    "core_weights",
    "score_financial_health",
]


# ============================================================================
# Benchmarks
# ============================================================================

CORE_FACTORS: Tuple[str, ...] = ("savings_rate", "retirement_readiness", "debt_management", "expense_ratio")

# (excellent, good, fair, poor) thresholds; higher is better
BENCHMARKS: Dict[str, Tuple[float, float, float, float]] = {
    "savings_rate": (20.0, 15.0, 10.0, 5.0),          # % of gross income
    "retirement_readiness": (1.5, 1.0, 0.7, 0.4),     # projected / target
    "time_horizon": (30.0, 20.0, 10.0, 5.0),          # years
    "diversification": (4.0, 3.0, 2.0, 1.0),          # asset classes held
    "tax_efficiency": (90.0, 75.0, 60.0, 40.0),       # % tax-advantaged
    "emergency_fund": (8.0, 6.0, 3.0, 1.0),           # months of expenses
}

# Savings as a multiple of annual income expected by age
AGE_BASED_TARGETS: Tuple[Tuple[int, float], ...] = (
    (25, 0.5), (30, 1.0), (35, 2.0), (40, 3.0), (45, 4.0),
    (50, 5.0), (55, 7.0), (60, 9.0), (65, 11.0),
)
UNDER_25_TARGET = 0.25

RISK_PROFILE_EQUITY_BANDS: Dict[str, Tuple[float, float]] = {
    "conservative": (20.0, 40.0),
    "moderate": (40.0, 60.0),
    "aggressive": (60.0, 80.0),
    "veryaggressive": (80.0, 95.0),
}

# age group -> (average, top quartile) overall score
PEER_BENCHMARKS: Dict[str, Tuple[float, float]] = {
    "20-29": (45.0, 65.0),
    "30-39": (55.0, 75.0),
    "40-49": (65.0, 80.0),
    "50-59": (70.0, 85.0),
    "60+": (75.0, 90.0),
}

_MESSAGES: Dict[str, str] = {
    "savings_rate": (
        "Savings rate is {savings_rate_pct:.1f}% of gross income: consider increasing "
        "pension or portfolio contributions toward at least 15%."
    ),
    "retirement_readiness": (
        "Projected retirement income covers {readiness_pct:.0f}% of your target: increase "
        "contributions or consider a later retirement age."
    ),
    "debt_management": (
        "Debt payments absorb {debt_to_income_pct:.0f}% of income: pay down high-interest "
        "debt first."
    ),
    "expense_ratio": (
        "Expenses consume {expense_ratio_pct:.0f}% of net income: review fixed and "
        "discretionary spending."
    ),
}

KEEP_IT_UP = "Your finances are on track across the board. Keep up the excellent work!"


# ============================================================================
# Result containers
# ============================================================================

@dataclass(frozen=True)
class Recommendation:
    factor: str
    priority: str
    message: str


@dataclass(frozen=True)
class PeerComparison:
    age_group: str
    average: float
    top_quartile: float
    percentile: float


@dataclass(frozen=True)
class HealthScore:
    """
    Composite 0-100 financial health score.

    The overall score is a fixed-weight linear combination of the four core
    sub-scores (savings rate, retirement readiness, debt management, expense
    ratio). `factors` carries supplementary diagnostics that are reported but
    do not enter the overall score. `details` holds the raw ratios behind the
    sub-scores.
    """
    overall_score: float
    category: str
    savings_rate_score: float
    retirement_readiness_score: float
    debt_management_score: float
    expense_ratio_score: float
    factors: Dict[str, float]
    details: Dict[str, float]
    recommendations: Tuple[Recommendation, ...]
    peer_comparison: PeerComparison
    weights: Dict[str, float] = field(default_factory=dict)

    @property
    def sub_scores(self) -> Dict[str, float]:
        return {
            "savings_rate": self.savings_rate_score,
            "retirement_readiness": self.retirement_readiness_score,
            "debt_management": self.debt_management_score,
            "expense_ratio": self.expense_ratio_score,
        }

    # ---- Backward compatibility read-only aliases ----
    @property
    def overallScore(self) -> float:
        return self.overall_score

    @property
    def savingsRateScore(self) -> float:
        return self.savings_rate_score

    @property
    def retirementReadinessScore(self) -> float:
        return self.retirement_readiness_score

    @property
    def debtManagementScore(self) -> float:
        return self.debt_management_score


# ============================================================================
# Scoring curves
# ============================================================================

def staged_score(value: float, benchmarks: Tuple[float, float, float, float]) -> float:
    """
    Piecewise-linear score for a "higher is better" metric.

    >= excellent -> 100; between bands the score interpolates 75-100, 50-75
    and 25-50; below `poor` it scales linearly from 0 to 25.

    Example:
        >>> staged_score(17.5, BENCHMARKS["savings_rate"])
        87.5
    """
    excellent, good, fair, poor = benchmarks
    if value >= excellent:
        score = 100.0
    elif value >= good:
        score = 75.0 + interpolate(value, good, excellent) * 25.0
    elif value >= fair:
        score = 50.0 + interpolate(value, fair, good) * 25.0
    elif value >= poor:
        score = 25.0 + interpolate(value, poor, fair) * 25.0
    elif value > 0:
        score = safe_divide(value, poor) * 25.0
    else:
        score = 0.0
    return clamp_score(score)


def _monthly_net_income(canonical: CanonicalInputs) -> float:
    rules = canonical.country_rules
    total = 0.0
    for p in canonical.partners:
        if p.net_salary > 0:
            total += p.net_salary + (p.monthly_gross_income - p.monthly_salary) * rules.take_home_fraction
        else:
            total += p.monthly_gross_income * rules.take_home_fraction
    return total


def calculate_savings_rate_score(canonical: CanonicalInputs) -> Tuple[float, float]:
    """
    Score monthly retirement contributions against monthly gross income.

    Returns:
        (score, savings rate in percent). Zero income scores 0.
    """
    income = canonical.monthly_gross_income
    if income <= 0:
        return 0.0, 0.0
    rate = safe_divide(canonical.monthly_retirement_contributions, income) * 100.0
    score = staged_score(rate, BENCHMARKS["savings_rate"])
    if rate > 30:
        score = min(100.0, score + 5.0)
    return clamp_score(score), rate


def _age_target_multiple(age: float) -> float:
    if age < AGE_BASED_TARGETS[0][0]:
        return UNDER_25_TARGET
    multiple = AGE_BASED_TARGETS[0][1]
    for threshold, value in AGE_BASED_TARGETS:
        if age >= threshold:
            multiple = value
    return multiple


def calculate_retirement_readiness_score(
    canonical: CanonicalInputs,
    projection: Optional[ProjectionResult] = None,
) -> Tuple[float, float]:
    """
    Score progress toward retirement.

    With a projection: projected monthly income / target monthly income.
    Without: current savings / (age-based multiple x annual income).
    Savers younger than 35 get a +5 bonus for time on their side.

    Returns:
        (score, ratio)
    """
    if projection is not None:
        if projection.target_monthly_income <= 0:
            return float(get_planner_config()["readiness"]["no_target_score"]), 0.0
        ratio = safe_divide(projection.monthly_income, projection.target_monthly_income)
    else:
        annual_income = canonical.monthly_gross_income * 12.0
        target_savings = annual_income * _age_target_multiple(canonical.current_age)
        if target_savings <= 0:
            return 0.0, 0.0
        ratio = safe_divide(canonical.current_total_savings, target_savings)
    score = staged_score(ratio, BENCHMARKS["retirement_readiness"])
    if canonical.current_age < 35:
        score = min(100.0, score + 5.0)
    return clamp_score(score), ratio


def calculate_debt_management_score(canonical: CanonicalInputs) -> Tuple[float, float]:
    """
    Inverse score of debt-to-income (monthly payments / monthly gross income),
    less a penalty for high-interest debt. No debt scores 100.

    Returns:
        (score, debt-to-income ratio)
    """
    payments = canonical.monthly_debt_payments
    if payments <= 0 and canonical.total_debt <= 0 and canonical.high_interest_debt <= 0:
        return 100.0, 0.0
    income = canonical.monthly_gross_income
    if income <= 0:
        return 0.0, 0.0
    ratio = safe_divide(payments, income)
    if ratio <= 0.1:
        score = 100.0
    elif ratio <= 0.2:
        score = 90.0 - interpolate(ratio, 0.1, 0.2) * 15.0
    elif ratio <= 0.3:
        score = 75.0 - interpolate(ratio, 0.2, 0.3) * 25.0
    elif ratio <= 0.5:
        score = 50.0 - interpolate(ratio, 0.3, 0.5) * 25.0
    else:
        score = max(0.0, 25.0 - (ratio - 0.5) * 50.0)
    penalty = min(30.0, safe_divide(canonical.high_interest_debt, income) * 10.0)
    return clamp_score(score - penalty), ratio


def calculate_expense_ratio_score(canonical: CanonicalInputs) -> Tuple[float, float]:
    """
    Inverse score of monthly expenses / monthly net income.

    No income scores 0; no recorded expenses is treated as unknown (50).

    Returns:
        (score, expense ratio)
    """
    net = _monthly_net_income(canonical)
    if net <= 0:
        return 0.0, 0.0
    if canonical.monthly_expenses <= 0:
        return 50.0, 0.0
    ratio = safe_divide(canonical.monthly_expenses, net)
    if ratio <= 0.5:
        score = 100.0
    elif ratio <= 0.7:
        score = 100.0 - interpolate(ratio, 0.5, 0.7) * 25.0
    elif ratio <= 0.9:
        score = 75.0 - interpolate(ratio, 0.7, 0.9) * 35.0
    elif ratio <= 1.0:
        score = 40.0 - interpolate(ratio, 0.9, 1.0) * 20.0
    else:
        score = max(0.0, 20.0 - (ratio - 1.0) * 40.0)
    return clamp_score(score), ratio


# ---- Supplementary factors (reported, not part of the overall score) ----

def calculate_time_horizon_score(canonical: CanonicalInputs) -> float:
    return staged_score(canonical.years_to_retirement, BENCHMARKS["time_horizon"])


def calculate_risk_alignment_score(canonical: CanonicalInputs) -> float:
    """How well the stated risk tolerance fits an age-based equity share (max(20, 100 - age))."""
    recommended = clamp(max(20.0, 100.0 - canonical.current_age), 0.0, 100.0)
    key = canonical.risk_tolerance.lower().replace("_", "").replace(" ", "")
    lo, hi = RISK_PROFILE_EQUITY_BANDS.get(key, RISK_PROFILE_EQUITY_BANDS["moderate"])
    if lo <= recommended <= hi:
        diff = 0.0
    else:
        diff = min(abs(recommended - lo), abs(recommended - hi))
    return clamp_score(100.0 - diff * 2.0)


def calculate_diversification_score(canonical: CanonicalInputs) -> float:
    held = sum(1 for value in canonical.current_balances.values() if value > 0)
    score = staged_score(held, BENCHMARKS["diversification"])
    if canonical.international_allocation > 20:
        score = min(100.0, score + 5.0)
    return clamp_score(score)


def calculate_tax_efficiency_score(canonical: CanonicalInputs) -> float:
    """Share of savings in tax-advantaged vehicles, plus country and max-contribution bonuses."""
    balances = canonical.current_balances
    advantaged = balances["pension"] + balances["training_fund"]
    share = safe_divide(advantaged, advantaged + balances["personal_portfolio"]) * 100.0
    score = staged_score(share, BENCHMARKS["tax_efficiency"])
    score += canonical.country_rules.tax_advantage_bonus
    if all(p.pension_rate_total >= 15 and p.training_fund_rate_total >= 7.5 for p in canonical.partners):
        score += 5.0
    return clamp_score(score)


def calculate_emergency_fund_score(canonical: CanonicalInputs) -> float:
    months = safe_divide(canonical.emergency_fund, canonical.monthly_expenses)
    score = staged_score(months, BENCHMARKS["emergency_fund"])
    stability = canonical.job_stability.lower().replace("_", "").replace(" ", "")
    if stability in ("unstable", "contract"):
        score -= 10.0
    elif stability in ("verystable", "government"):
        score += 5.0
    return clamp_score(score)


# ============================================================================
# Labels, peers, recommendations
# ============================================================================

def health_label(score: float) -> str:
    if score >= 85:
        return "excellent"
    elif score >= 70:
        return "good"
    elif score >= 50:
        return "fair"
    else:
        return "needs work"


def _age_group(age: float) -> str:
    if age < 30:
        return "20-29"
    elif age < 40:
        return "30-39"
    elif age < 50:
        return "40-49"
    elif age < 60:
        return "50-59"
    return "60+"


def get_peer_comparison(age: float, score: float) -> PeerComparison:
    """Estimated percentile of `score` among peers of the same age group."""
    group = _age_group(age)
    average, top = PEER_BENCHMARKS[group]
    if score >= top:
        percentile = 75.0 + interpolate(score, top, 100.0) * 25.0
    elif score >= average:
        percentile = 50.0 + interpolate(score, average, top) * 25.0
    else:
        percentile = safe_divide(score, average) * 50.0
    return PeerComparison(group, average, top, clamp(percentile, 0.0, 100.0))


def _priority(score: float) -> str:
    if score < 25:
        return "high"
    elif score < 50:
        return "medium"
    return "low"


def generate_recommendations(
    sub_scores: Mapping[str, float],
    weights: Mapping[str, float],
    details: Mapping[str, float],
) -> List[Recommendation]:
    """
    Rule table over the core sub-scores.

    Sub-scores below the configured threshold are ranked by weighted gap
    ((100 - score) x weight) and the top few are turned into messages.
    When nothing qualifies a single encouragement is returned.
    """
    cfg = get_planner_config()["health_score"]
    threshold = float(cfg["recommendation_threshold"])
    limit = int(cfg["max_recommendations"])

    gaps = [
        ((100.0 - score) * weights.get(name, 0.0), name, score)
        for name, score in sub_scores.items()
        if score < threshold
    ]
    gaps.sort(key=lambda g: (-g[0], g[1]))

    out = []
    for _, name, score in gaps[:limit]:
        template = _MESSAGES.get(name, "Improve your {factor} score.")
        out.append(Recommendation(name, _priority(score), template.format(factor=name, **details)))
    if not out:
        out.append(Recommendation("overall", "low", KEEP_IT_UP))
    return out


def core_weights() -> Dict[str, float]:
    """Configured sub-score weights, renormalized to sum to 1.0 if needed."""
    raw = get_planner_config()["health_score"]["weights"]
    weights = {name: max(0.0, float(raw.get(name, 0.0))) for name in CORE_FACTORS}
    total = sum(weights.values())
    if total <= 0:
        return {name: 1.0 / len(CORE_FACTORS) for name in CORE_FACTORS}
    if abs(total - 1.0) > 1e-9:
        _log.warning("Health score weights sum to %.4f; renormalizing to 1.0", total)
        weights = {name: w / total for name, w in weights.items()}
    return weights


# ============================================================================
# Public API
# ============================================================================

def score_financial_health(
    canonical: Union[CanonicalInputs, Mapping[str, Any]],
    projection: Optional[ProjectionResult] = None,
) -> HealthScore:
    """
    Compute the composite financial health score.

    Args:
        canonical: CanonicalInputs (a raw mapping is normalized first)
        projection: optional ProjectionResult; when given, retirement
            readiness compares projected to target income instead of using
            age-based savings multiples

    Returns:
        HealthScore with every score finite and within [0, 100]

    Example:
        >>> hs = score_financial_health({"currentAge": 40, "currentMonthlySalary": 20000,
        ...                              "currentMonthlyExpenses": 9000})
        >>> 0 <= hs.overall_score <= 100
        True
    """
    canonical = normalize_inputs(canonical)
    weights = core_weights()

    savings_score, savings_rate = calculate_savings_rate_score(canonical)
    readiness_score, readiness_ratio = calculate_retirement_readiness_score(canonical, projection)
    debt_score, debt_ratio = calculate_debt_management_score(canonical)
    expense_score, expense_ratio = calculate_expense_ratio_score(canonical)

    sub_scores = {
        "savings_rate": savings_score,
        "retirement_readiness": readiness_score,
        "debt_management": debt_score,
        "expense_ratio": expense_score,
    }
    overall = clamp_score(sum(weights[name] * sub_scores[name] for name in CORE_FACTORS))

    details = {
        "savings_rate_pct": savings_rate,
        "readiness_ratio": readiness_ratio,
        "readiness_pct": readiness_ratio * 100.0,
        "debt_to_income": debt_ratio,
        "debt_to_income_pct": debt_ratio * 100.0,
        "expense_ratio": expense_ratio,
        "expense_ratio_pct": expense_ratio * 100.0,
        "monthly_gross_income": canonical.monthly_gross_income,
        "monthly_net_income": _monthly_net_income(canonical),
    }
    factors = {
        "time_horizon": calculate_time_horizon_score(canonical),
        "risk_alignment": calculate_risk_alignment_score(canonical),
        "diversification": calculate_diversification_score(canonical),
        "tax_efficiency": calculate_tax_efficiency_score(canonical),
        "emergency_fund": calculate_emergency_fund_score(canonical),
    }

    _log.debug("Health sub-scores %s -> overall %.1f", sub_scores, overall)
    return HealthScore(
        overall_score=overall,
        category=health_label(overall),
        savings_rate_score=savings_score,
        retirement_readiness_score=readiness_score,
        debt_management_score=debt_score,
        expense_ratio_score=expense_score,
        factors=factors,
        details=details,
        recommendations=tuple(generate_recommendations(sub_scores, weights, details)),
        peer_comparison=get_peer_comparison(canonical.current_age, overall),
        weights=weights,
    )
