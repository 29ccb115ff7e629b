"""
Projection Engine - compounding savings to retirement

For every asset class (pension, training fund, personal portfolio, real
estate, crypto) each year:

    1. add the annual contribution (net of any deposit fee)
    2. compound at the asset's return
    3. deduct the annual management fee on the compounded balance

Couples are projected partner by partner and summed, so combined totals are
exactly the sum of partner totals. Values are never rounded here; use
ProjectionResult.summary() for presentation.
"""

from __future__ import annotations
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union
import logging

import numpy as np
import pandas as pd

from .country_rules import CountryRules, get_country_rules
from .inputs import CanonicalInputs, PartnerInputs, normalize_inputs, normalize_partner_inputs
from .scenarios import ASSET_CLASSES, MarketScenario, ReturnAssumptions, resolve_returns
from .utils.env_tools import get_planner_config
from .utils.safe_math import safe_divide

_log = logging.getLogger(__name__)

__all__ = [
    "AssetProjection",
    "IncomeBreakdown",
    "PartnerProjection",
    "ProjectionResult",
    "project_balance",
    "future_value",
    "calculate_monthly_income",
    "calculate_readiness_score",
    "project_partner",
    "coerce_returns",
    "project_retirement",
]


# ============================================================================
# Result containers
# ============================================================================

@dataclass(frozen=True)
class AssetProjection:
    """One asset class for one earner."""
    asset: str
    starting_balance: float
    annual_contribution: float
    return_pct: float
    annual_fee_pct: float
    ending_balance: float


@dataclass(frozen=True)
class IncomeBreakdown:
    """Monthly retirement income by source, before and after tax."""
    pension: float = 0.0
    training_fund: float = 0.0
    personal_portfolio: float = 0.0
    real_estate: float = 0.0
    crypto: float = 0.0
    rental: float = 0.0
    social_security: float = 0.0
    pension_tax: float = 0.0
    portfolio_tax: float = 0.0
    inflation_adjusted_net: float = 0.0

    @property
    def gross_total(self) -> float:
        return (
            self.pension + self.training_fund + self.personal_portfolio + self.real_estate
            + self.crypto + self.rental + self.social_security
        )

    @property
    def net_total(self) -> float:
        return self.gross_total - self.pension_tax - self.portfolio_tax

    def __add__(self, other: "IncomeBreakdown") -> "IncomeBreakdown":
        if not isinstance(other, IncomeBreakdown):
            return NotImplemented
        return IncomeBreakdown(**{
            f.name: getattr(self, f.name) + getattr(other, f.name) for f in fields(IncomeBreakdown)
        })


@dataclass(frozen=True)
class PartnerProjection:
    label: str
    assets: Tuple[AssetProjection, ...]
    income: IncomeBreakdown
    schedule: pd.DataFrame = field(compare=False, repr=False)

    @property
    def balances(self) -> Dict[str, float]:
        return {a.asset: a.ending_balance for a in self.assets}

    @property
    def total_savings(self) -> float:
        return sum(a.ending_balance for a in self.assets)


@dataclass(frozen=True)
class ProjectionResult:
    """
    Immutable projection output.

    Monetary values are in the working currency, nominal at retirement unless
    named otherwise. `partners` holds one projection per earner; for couples
    `total_savings` equals the sum of the partners' totals.

    Backward-compatibility properties mirror the UI's field names:
      - totalSavings, monthlyIncome, readinessScore
    """
    years_to_retirement: int
    scenario: MarketScenario
    balances: Dict[str, float]
    total_savings: float
    income: IncomeBreakdown
    monthly_income: float
    target_monthly_income: float
    replacement_ratio: float
    readiness_score: float
    future_monthly_expenses: float
    years_of_income_coverage: float
    partners: Tuple[PartnerProjection, ...]

    @property
    def is_couple(self) -> bool:
        return len(self.partners) > 1

    @property
    def inflation_adjusted_income(self) -> float:
        return self.income.inflation_adjusted_net

    @property
    def schedule(self) -> pd.DataFrame:
        """Year-by-year balances for the household (partners summed)."""
        frames = [p.schedule for p in self.partners]
        total = frames[0]
        for frame in frames[1:]:
            total = total.add(frame, fill_value=0.0)
        return total

    # ---- Backward compatibility read-only aliases ----
    @property
    def totalSavings(self) -> float:
        return self.total_savings

    @property
    def monthlyIncome(self) -> float:
        return self.monthly_income

    @property
    def readinessScore(self) -> float:
        return self.readiness_score

    def summary(self, decimals: int = 2) -> Dict[str, Any]:
        """Rounded plain-dict view for display or JSON export."""
        def r(x: float) -> float:
            return round(float(x), decimals)

        out: Dict[str, Any] = {
            "yearsToRetirement": self.years_to_retirement,
            "scenario": self.scenario.value,
            "totalSavings": r(self.total_savings),
            "monthlyIncome": r(self.monthly_income),
            "inflationAdjustedIncome": r(self.inflation_adjusted_income),
            "targetMonthlyIncome": r(self.target_monthly_income),
            "replacementRatio": r(self.replacement_ratio),
            "readinessScore": r(self.readiness_score),
            "futureMonthlyExpenses": r(self.future_monthly_expenses),
            "yearsOfIncomeCoverage": r(self.years_of_income_coverage),
            "balances": {k: r(v) for k, v in self.balances.items()},
        }
        if self.is_couple:
            out["partners"] = {p.label: r(p.total_savings) for p in self.partners}
        return out


# ============================================================================
# Building blocks
# ============================================================================

def project_balance(
    start: float,
    annual_contribution: float,
    return_pct: float,
    fee_pct: float,
    years: int,
    contribution_growth_pct: float = 0.0,
    shock_year: Optional[int] = None,
    shock_pct: float = 0.0,
) -> List[float]:
    """
    Year-end balances from year 0 (the starting balance) through `years`.

    Per year: add contribution, compound, then deduct the fee on the
    compounded balance. Contributions may grow yearly with salary. A one-time
    loss of `shock_pct` percent hits the balance at the end of year
    `shock_year` (1-based); shocks past the horizon never happen.

    Example:
        >>> project_balance(1000.0, 100.0, 50.0, 0.0, 2)
        [1000.0, 1650.0, 2625.0]
    """
    growth = max(-1.0, return_pct / 100.0)
    fee = min(max(0.0, fee_pct / 100.0), 1.0)
    shock = min(max(0.0, shock_pct / 100.0), 1.0)
    contribution_growth = contribution_growth_pct / 100.0
    balance = float(start)
    path = [balance]
    for year in range(max(0, int(years))):
        contribution = annual_contribution * (1.0 + contribution_growth) ** year
        balance += contribution
        balance *= 1.0 + growth
        balance -= balance * fee
        if shock_year is not None and year + 1 == shock_year:
            balance -= balance * shock
        path.append(balance)
    return path


def future_value(amount: float, rate_pct: float, years: float) -> float:
    """`amount` grown at `rate_pct` per year (e.g. expenses under inflation)."""
    return amount * (1.0 + rate_pct / 100.0) ** max(0.0, years)


def calculate_readiness_score(projected_monthly_income: float, target_monthly_income: float) -> float:
    """
    Staged score for projected vs target retirement income.

    Thresholds come from config.yaml `readiness` (default: ratio >= 1.2 -> 100,
    >= 1.0 -> 90, >= 0.8 -> 70, >= 0.6 -> 50, >= 0.4 -> 30, else 20). With no
    target to compare against the score is neutral (50).
    """
    cfg = get_planner_config()["readiness"]
    if target_monthly_income <= 0:
        return float(cfg["no_target_score"])
    ratio = safe_divide(projected_monthly_income, target_monthly_income)
    for threshold, score in cfg["thresholds"]:
        if ratio >= threshold:
            return float(score)
    return float(cfg["floor_score"])


def calculate_monthly_income(
    balances: Mapping[str, float],
    canonical: CanonicalInputs,
    rules: Optional[CountryRules] = None,
) -> IncomeBreakdown:
    """
    Monthly income one earner can draw from their balances at retirement.

    Withdrawal rates per asset come from config.yaml; real estate also yields
    rent at `rental_yield`. Pension income is taxed at the country's flat
    pension tax, portfolio and crypto withdrawals at the portfolio tax rate;
    the training fund is tax-free. Country social security is added per earner.
    """
    rules = rules or get_country_rules(canonical.country)
    rates = get_planner_config()["withdrawal_rates"]
    draws = {
        asset: balances.get(asset, 0.0) * float(rates[asset]) / 100.0 / 12.0 for asset in ASSET_CLASSES
    }
    rental = balances.get("real_estate", 0.0) * canonical.rental_yield / 100.0 / 12.0
    pension_tax = draws["pension"] * rules.pension_tax
    portfolio_tax = (draws["personal_portfolio"] + draws["crypto"]) * canonical.portfolio_tax_rate / 100.0

    partial = IncomeBreakdown(
        rental=rental,
        social_security=rules.social_security,
        pension_tax=pension_tax,
        portfolio_tax=portfolio_tax,
        **draws,
    )
    deflator = (1.0 + canonical.inflation_rate / 100.0) ** canonical.years_to_retirement
    return IncomeBreakdown(**{
        **{f.name: getattr(partial, f.name) for f in fields(IncomeBreakdown)},
        "inflation_adjusted_net": safe_divide(partial.net_total, deflator),
    })


def _asset_plan(partner: PartnerInputs, returns: ReturnAssumptions) -> List[Tuple[str, float, float, float, float, bool]]:
    # (asset, start, annual contribution, return, fee, grows with salary)
    pension_contribution = partner.monthly_pension_contribution * 12.0 * (1.0 - partner.pension_deposit_fee / 100.0)
    return [
        ("pension", partner.current_pension, pension_contribution,
         returns.pension, partner.pension_annual_fee, True),
        ("training_fund", partner.current_training_fund, partner.monthly_training_fund_contribution * 12.0,
         returns.training_fund, partner.training_fund_fee, True),
        ("personal_portfolio", partner.current_portfolio, partner.portfolio_monthly * 12.0,
         returns.personal_portfolio, partner.portfolio_fee, False),
        ("real_estate", partner.current_real_estate, partner.real_estate_monthly * 12.0,
         returns.real_estate, 0.0, False),
        ("crypto", partner.current_crypto, partner.crypto_monthly * 12.0,
         returns.crypto, 0.0, False),
    ]


def project_partner(
    partner: PartnerInputs,
    canonical: CanonicalInputs,
    returns: ReturnAssumptions,
    shock_year: Optional[int] = None,
    shock_losses: Optional[Mapping[str, float]] = None,
) -> PartnerProjection:
    """
    Project one earner's five asset classes to the household retirement age.

    `shock_losses` maps asset -> percent lost at the end of `shock_year`.
    """
    shock_losses = shock_losses or {}
    years = canonical.years_to_retirement
    assets: List[AssetProjection] = []
    paths: Dict[str, List[float]] = {}
    for asset, start, contribution, ret, fee, grows in _asset_plan(partner, returns):
        if years <= 0:
            path = [float(start)]
        else:
            path = project_balance(
                start, contribution, ret, fee, years,
                contribution_growth_pct=canonical.salary_growth_rate if grows else 0.0,
                shock_year=shock_year,
                shock_pct=shock_losses.get(asset, 0.0),
            )
        paths[asset] = path
        assets.append(AssetProjection(asset, float(start), contribution, ret, fee, path[-1]))

    ages = np.arange(canonical.current_age, canonical.current_age + len(paths["pension"]))
    schedule = pd.DataFrame(paths, index=pd.Index(ages, name="age"))
    schedule["total"] = schedule[list(ASSET_CLASSES)].sum(axis=1)

    balances = {a.asset: a.ending_balance for a in assets}
    income = calculate_monthly_income(balances, canonical)
    return PartnerProjection(label=partner.label, assets=tuple(assets), income=income, schedule=schedule)


def coerce_returns(
    returns: Union[ReturnAssumptions, str, MarketScenario, Mapping[str, Any], None],
    canonical: CanonicalInputs,
) -> ReturnAssumptions:
    """Returns to project with; None means the scenario or overrides recorded on the inputs."""
    if isinstance(returns, ReturnAssumptions):
        return returns
    if returns is None:
        returns = dict(canonical.return_overrides) if canonical.return_overrides else canonical.scenario
    return resolve_returns(returns, canonical.allocations)


# ============================================================================
# Public API
# ============================================================================

def project_retirement(
    canonical: Union[CanonicalInputs, Mapping[str, Any]],
    returns: Union[ReturnAssumptions, str, MarketScenario, Mapping[str, Any], None] = None,
    partner_inputs: Union[PartnerInputs, Mapping[str, Any], None] = None,
    shock_year: Optional[int] = None,
    shock_losses: Optional[Mapping[str, float]] = None,
) -> ProjectionResult:
    """
    Project savings and retirement income for an individual or a couple.

    Args:
        canonical: CanonicalInputs (a raw mapping is normalized first)
        returns: ReturnAssumptions, or anything resolve_returns accepts; None
            uses the scenario/overrides recorded on the inputs
        partner_inputs: optional second earner (PartnerInputs or raw mapping
            with plain field names); switches to couple mode
        shock_year: optional year (1-based, from today) of a one-time market
            loss; see run_stress_test
        shock_losses: asset -> percent lost in `shock_year`

    Returns:
        ProjectionResult. Already-retired households (years to retirement
        <= 0) get their current balances back with no growth applied.

    Example:
        >>> result = project_retirement({"currentAge": 39, "retirementAge": 67,
        ...                              "currentMonthlySalary": 20000}, "moderate")
        >>> result.total_savings > 0
        True
    """
    canonical = normalize_inputs(canonical)
    if partner_inputs is not None:
        if not isinstance(partner_inputs, PartnerInputs):
            partner_inputs = normalize_partner_inputs(partner_inputs, canonical.country, slot=0, label="partner2")
        canonical = canonical.with_partner(partner_inputs)
    resolved = coerce_returns(returns, canonical)

    years = canonical.years_to_retirement
    if years <= 0:
        _log.info("Current age %s is at or past retirement age %s; returning current balances",
                  canonical.current_age, canonical.retirement_age)

    partners = tuple(
        project_partner(p, canonical, resolved, shock_year=shock_year, shock_losses=shock_losses)
        for p in canonical.partners
    )

    balances = {asset: sum(p.balances[asset] for p in partners) for asset in ASSET_CLASSES}
    total_savings = sum(p.total_savings for p in partners)
    income = partners[0].income
    for p in partners[1:]:
        income = income + p.income
    monthly_income = income.net_total

    final_salary = future_value(canonical.monthly_salary, canonical.salary_growth_rate, years)
    target = final_salary * canonical.target_replacement_rate / 100.0
    future_expenses = future_value(canonical.monthly_expenses, canonical.inflation_rate, years)

    return ProjectionResult(
        years_to_retirement=years,
        scenario=resolved.scenario,
        balances=balances,
        total_savings=total_savings,
        income=income,
        monthly_income=monthly_income,
        target_monthly_income=target,
        replacement_ratio=safe_divide(monthly_income, final_salary),
        readiness_score=calculate_readiness_score(monthly_income, target),
        future_monthly_expenses=future_expenses,
        years_of_income_coverage=safe_divide(total_savings, future_expenses * 12.0),
        partners=partners,
    )
