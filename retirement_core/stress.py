"""
Stress Tests - deterministic what-if scenarios on the projection engine

A StressScenario replaces return and macro assumptions, may cut earned
income, and may take a one-time loss out of some asset classes in a given
year. run_stress_test projects the same household with and without the
stress so the two outcomes can be compared side by side.

Scenarios:
  - conservative / optimistic / economic_stagnation / high_inflation:
    whole-horizon return, inflation and salary-growth assumptions
  - market_crash: baseline returns with a 35% loss on market assets in year 10
  - financial_crisis_2008 / covid_pandemic / inflation_spike: an immediate
    shock with lower income and higher inflation for the rest of the horizon
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple, Union
import logging

import pandas as pd

from .inputs import CanonicalInputs, PartnerInputs, normalize_inputs
from .projection import ProjectionResult, coerce_returns, project_retirement
from .scenarios import ASSET_CLASSES, MarketScenario, ReturnAssumptions, resolve_returns
from .utils.safe_math import clamp, safe_divide

_log = logging.getLogger(__name__)

__all__ = [
    "StressScenario",
    "StressTestResult",
    "STRESS_SCENARIOS",
    "STRESS_RECOMMENDATIONS",
    "get_stress_scenario",
    "apply_stress",
    "run_stress_test",
    "compare_stress_scenarios",
]


# ============================================================================
# Scenario table
# ============================================================================

@dataclass(frozen=True)
class StressScenario:
    """
    One deterministic stress case.

    `returns` replaces per-asset returns (percent); assets it omits keep the
    baseline. `inflation_rate` and `salary_growth_rate` replace the household
    values when set, and `inflation_increase` is added on top. Salaries and
    voluntary contributions drop by `income_reduction` percent for the whole
    horizon. `shock_losses` (asset -> percent) hit once at the end of
    `shock_year`, counted from today.
    """
    key: str
    name: str
    description: str
    returns: Mapping[str, float] = field(default_factory=dict)
    inflation_rate: Optional[float] = None
    inflation_increase: float = 0.0
    salary_growth_rate: Optional[float] = None
    income_reduction: float = 0.0
    shock_year: Optional[int] = None
    shock_losses: Mapping[str, float] = field(default_factory=dict)

    @property
    def has_shock(self) -> bool:
        return bool(self.shock_year) and any(v > 0 for v in self.shock_losses.values())


def _market_loss(pct: float) -> Dict[str, float]:
    # Real estate is not marked to market
    return {"pension": pct, "training_fund": pct, "personal_portfolio": pct, "crypto": pct}


STRESS_SCENARIOS: Dict[str, StressScenario] = {s.key: s for s in (
    StressScenario(
        key="conservative",
        name="Conservative Scenario",
        description="Low returns, high inflation and slow salary growth",
        returns={"pension": 4.5, "training_fund": 4.0, "personal_portfolio": 5.5,
                 "real_estate": 3.5, "crypto": 8.0},
        inflation_rate=5.5,
        salary_growth_rate=1.5,
    ),
    StressScenario(
        key="optimistic",
        name="Optimistic Scenario",
        description="Strong growth with controlled inflation",
        returns={"pension": 9.5, "training_fund": 9.0, "personal_portfolio": 10.5,
                 "real_estate": 8.5, "crypto": 22.0},
        inflation_rate=1.5,
        salary_growth_rate=5.5,
    ),
    StressScenario(
        key="market_crash",
        name="Market Crash Scenario",
        description="A 35% market loss ten years from now, then baseline returns",
        returns={"pension": 7.0, "training_fund": 6.5, "personal_portfolio": 8.0,
                 "real_estate": 6.0, "crypto": 15.0},
        inflation_rate=3.0,
        salary_growth_rate=3.5,
        shock_year=10,
        shock_losses=_market_loss(35.0),
    ),
    StressScenario(
        key="high_inflation",
        name="High Inflation Scenario",
        description="Persistent 1970s-style inflation; real assets act as hedges",
        returns={"pension": 8.0, "training_fund": 7.5, "personal_portfolio": 9.0,
                 "real_estate": 9.0, "crypto": 18.0},
        inflation_rate=7.5,
        salary_growth_rate=6.0,
    ),
    StressScenario(
        key="economic_stagnation",
        name="Economic Stagnation",
        description="Slow growth with reduced returns on every asset class",
        returns={"pension": 5.5, "training_fund": 5.0, "personal_portfolio": 6.5,
                 "real_estate": 4.0, "crypto": 10.0},
        inflation_rate=2.5,
        salary_growth_rate=1.0,
    ),
    StressScenario(
        key="financial_crisis_2008",
        name="2008 Financial Crisis",
        description="40% stock decline, 30% real estate decline and 15% lower income",
        inflation_increase=1.0,
        income_reduction=15.0,
        shock_year=1,
        shock_losses={"pension": 20.0, "training_fund": 20.0, "personal_portfolio": 40.0,
                      "real_estate": 30.0, "crypto": 60.0},
    ),
    StressScenario(
        key="covid_pandemic",
        name="COVID-19 Pandemic 2020",
        description="25% income reduction with a sharp but shallower market drop",
        inflation_increase=3.0,
        income_reduction=25.0,
        shock_year=1,
        shock_losses={"pension": 12.5, "training_fund": 12.5, "personal_portfolio": 25.0,
                      "real_estate": 10.0, "crypto": 37.5},
    ),
    StressScenario(
        key="inflation_spike",
        name="Inflation Spike",
        description="Inflation jumps by 12 points with falling real purchasing power",
        inflation_increase=12.0,
        income_reduction=5.0,
        shock_year=1,
        shock_losses={"pension": 7.5, "training_fund": 7.5, "personal_portfolio": 15.0,
                      "real_estate": 5.0, "crypto": 22.5},
    ),
)}

STRESS_RECOMMENDATIONS: Tuple[str, ...] = (
    "Increase your emergency fund to cover 6-12 months of expenses",
    "Consider diversifying into lower-volatility investments",
    "Explore additional income opportunities",
    "Reduce non-essential expenses",
)


def _lookup_key(key: str) -> str:
    return "".join(ch for ch in str(key).lower() if ch.isalnum())


_BY_LOOKUP = {_lookup_key(k): s for k, s in STRESS_SCENARIOS.items()}


def get_stress_scenario(key: Union[str, StressScenario]) -> StressScenario:
    """
    Scenario by key; "market_crash", "marketCrash" and "Market Crash" all match.

    Raises:
        ValueError: for an unknown key
    """
    if isinstance(key, StressScenario):
        return key
    scenario = _BY_LOOKUP.get(_lookup_key(key))
    if scenario is None:
        raise ValueError(f"Unknown stress scenario {key!r}; expected one of {sorted(STRESS_SCENARIOS)}")
    return scenario


# ============================================================================
# Results
# ============================================================================

@dataclass(frozen=True)
class StressTestResult:
    """Baseline and stressed projections of the same household."""
    scenario: StressScenario
    baseline: ProjectionResult
    stressed: ProjectionResult
    recommendations: Tuple[str, ...] = ()

    @property
    def shock_applied(self) -> bool:
        """False when the shock would land at or after retirement."""
        s = self.scenario
        return s.has_shock and 1 <= s.shock_year <= self.stressed.years_to_retirement

    @property
    def savings_change(self) -> float:
        return self.stressed.total_savings - self.baseline.total_savings

    @property
    def savings_change_pct(self) -> float:
        return 100.0 * safe_divide(self.savings_change, self.baseline.total_savings)

    @property
    def income_change(self) -> float:
        return self.stressed.monthly_income - self.baseline.monthly_income

    @property
    def readiness_change(self) -> float:
        return self.stressed.readiness_score - self.baseline.readiness_score

    def summary(self, decimals: int = 2) -> Dict[str, Any]:
        return {
            "scenario": self.scenario.key,
            "name": self.scenario.name,
            "shockApplied": self.shock_applied,
            "baseline": self.baseline.summary(decimals),
            "stressed": self.stressed.summary(decimals),
            "savingsChange": round(self.savings_change, decimals),
            "savingsChangePct": round(self.savings_change_pct, decimals),
            "incomeChange": round(self.income_change, decimals),
            "readinessChange": round(self.readiness_change, decimals),
            "recommendations": list(self.recommendations),
        }


# ============================================================================
# Public API
# ============================================================================

def _reduce_income(partner: PartnerInputs, reduction_pct: float) -> PartnerInputs:
    factor = 1.0 - clamp(reduction_pct, 0.0, 100.0) / 100.0
    return replace(
        partner,
        monthly_salary=partner.monthly_salary * factor,
        net_salary=partner.net_salary * factor,
        annual_bonus=partner.annual_bonus * factor,
        rsu_annual_value=partner.rsu_annual_value * factor,
        portfolio_monthly=partner.portfolio_monthly * factor,
        real_estate_monthly=partner.real_estate_monthly * factor,
        crypto_monthly=partner.crypto_monthly * factor,
    )


def apply_stress(
    canonical: Union[CanonicalInputs, Mapping[str, Any]],
    scenario: Union[str, StressScenario],
    returns: Union[ReturnAssumptions, str, MarketScenario, Mapping[str, Any], None] = None,
) -> Tuple[CanonicalInputs, ReturnAssumptions]:
    """
    Stressed copies of the household inputs and return assumptions.

    The one-time shock is not part of either; pass `scenario.shock_year` and
    `scenario.shock_losses` to project_retirement to apply it.
    """
    scenario = get_stress_scenario(scenario)
    canonical = normalize_inputs(canonical)
    baseline_returns = coerce_returns(returns, canonical)

    if scenario.returns:
        values = baseline_returns.as_dict()
        values.update({asset: float(v) for asset, v in scenario.returns.items() if asset in ASSET_CLASSES})
        stressed_returns = resolve_returns(values, canonical.allocations)
    else:
        stressed_returns = baseline_returns

    inflation = canonical.inflation_rate if scenario.inflation_rate is None else scenario.inflation_rate
    growth = canonical.salary_growth_rate if scenario.salary_growth_rate is None else scenario.salary_growth_rate
    partners = canonical.partners
    if scenario.income_reduction > 0:
        partners = tuple(_reduce_income(p, scenario.income_reduction) for p in partners)

    stressed = replace(
        canonical,
        inflation_rate=clamp(inflation + scenario.inflation_increase, 0.0, 100.0),
        salary_growth_rate=growth,
        partners=partners,
    )
    return stressed, stressed_returns


def run_stress_test(
    canonical: Union[CanonicalInputs, Mapping[str, Any]],
    scenario_key: Union[str, StressScenario],
    returns: Union[ReturnAssumptions, str, MarketScenario, Mapping[str, Any], None] = None,
) -> StressTestResult:
    """
    Project a household under one stress scenario and under its baseline.

    Args:
        canonical: CanonicalInputs or a raw mapping
        scenario_key: key in STRESS_SCENARIOS, or a StressScenario
        returns: baseline returns; None uses the scenario recorded on the inputs

    Returns:
        StressTestResult. Recommendations are listed only when the stress
        leaves the household with less than the baseline.

    Example:
        >>> r = run_stress_test({"currentAge": 40, "currentMonthlySalary": 20000}, "market_crash")
        >>> r.shock_applied
        True
    """
    scenario = get_stress_scenario(scenario_key)
    canonical = normalize_inputs(canonical)
    baseline = project_retirement(canonical, returns)
    stressed_inputs, stressed_returns = apply_stress(canonical, scenario, returns)
    stressed = project_retirement(
        stressed_inputs,
        stressed_returns,
        shock_year=scenario.shock_year,
        shock_losses=scenario.shock_losses,
    )
    recommendations = STRESS_RECOMMENDATIONS if stressed.total_savings < baseline.total_savings else ()
    _log.info("Stress test %s: savings %.0f -> %.0f", scenario.key, baseline.total_savings, stressed.total_savings)
    return StressTestResult(
        scenario=scenario,
        baseline=baseline,
        stressed=stressed,
        recommendations=recommendations,
    )


def compare_stress_scenarios(
    canonical: Union[CanonicalInputs, Mapping[str, Any]],
    keys: Optional[Iterable[str]] = None,
    returns: Union[ReturnAssumptions, str, MarketScenario, Mapping[str, Any], None] = None,
) -> pd.DataFrame:
    """One row per scenario plus a leading "baseline" row, indexed by key."""
    canonical = normalize_inputs(canonical)
    results = [run_stress_test(canonical, key, returns) for key in (keys or STRESS_SCENARIOS)]
    baseline = results[0].baseline if results else project_retirement(canonical, returns)

    rows = [{
        "scenario": "baseline",
        "total_savings": baseline.total_savings,
        "monthly_income": baseline.monthly_income,
        "readiness_score": baseline.readiness_score,
        "savings_change": 0.0,
        "savings_change_pct": 0.0,
        "shock_applied": False,
    }]
    for r in results:
        rows.append({
            "scenario": r.scenario.key,
            "total_savings": r.stressed.total_savings,
            "monthly_income": r.stressed.monthly_income,
            "readiness_score": r.stressed.readiness_score,
            "savings_change": r.savings_change,
            "savings_change_pct": r.savings_change_pct,
            "shock_applied": r.shock_applied,
        })
    return pd.DataFrame(rows).set_index("scenario")
