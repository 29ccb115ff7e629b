"""
Input Normalizer - raw wizard fields to a canonical record

The calculator receives loosely named fields from several UI generations
("currentSavings", "pensionSavings", "partner1CurrentPension", ...). Every
field consumed downstream is described once in a declarative alias table and
resolved by a single routine, in this order:

    explicit name -> aliases -> country default -> global default

The result is an immutable CanonicalInputs in which every field is defined.
"""

from __future__ import annotations
from dataclasses import dataclass, field, fields, replace
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple
import logging

from .country_rules import CountryRules, get_country_rules
from .utils.env_tools import get_planner_config, is_debug_mode
from .utils.safe_math import clamp, is_finite_number, safe_parse_float

_log = logging.getLogger(__name__)

__all__ = [
    "FieldSpec",
    "PARTNER_FIELDS",
    "HOUSEHOLD_FIELDS",
    "PartnerInputs",
    "CanonicalInputs",
    "ValidationReport",
    "resolve_field",
    "infer_gross_from_net",
    "calculate_rsu_annual_value",
    "normalize_partner_inputs",
    "normalize_inputs",
    "validate_financial_inputs",
]

INDIVIDUAL = "individual"
COUPLE = "couple"
_COUPLE_MODES = {"couple", "couples", "joint", "partner", "partners", "family"}

RSU_FREQUENCY_MULTIPLIERS = {"monthly": 12, "quarterly": 4, "yearly": 1, "annual": 1, "annually": 1}

PERCENT_BOUNDS = (0.0, 100.0)
AGE_BOUNDS = (16.0, 120.0)


# ============================================================================
# Alias table
# ============================================================================

@dataclass(frozen=True)
class FieldSpec:
    """
    One canonical field and where its value may come from.

    `aliases` are raw key names tried in order. `default_key` names an entry in
    config.yaml `defaults`; `country_key` names a CountryRules attribute that
    takes precedence over the global default. With `allow_zero`, an explicit 0
    is honoured instead of falling through to the defaults. Values outside
    `bounds` are logged and replaced by the default, or pulled to the nearest
    bound when `clamp_to_bounds` is set.
    """
    name: str
    aliases: Tuple[str, ...]
    default: float = 0.0
    default_key: Optional[str] = None
    country_key: Optional[str] = None
    allow_zero: bool = True
    bounds: Optional[Tuple[float, float]] = None
    clamp_to_bounds: bool = False


def _spec(name: str, *aliases: str, **kwargs: Any) -> FieldSpec:
    return FieldSpec(name=name, aliases=(name,) + aliases, **kwargs)


PARTNER_FIELDS: Tuple[FieldSpec, ...] = (
    _spec("monthly_salary", "currentMonthlySalary", "monthlySalary", "grossSalary",
          "grossMonthlySalary", "salary", "currentSalary"),
    _spec("net_salary", "netSalary", "monthlyNetSalary", "netMonthlySalary"),
    _spec("pension_employee_rate", "employeePensionRate", "pensionEmployeeRate",
          "employeeContributionRate", "pensionContributionRate",
          default_key="pension_employee_rate", country_key="pension_employee_rate",
          bounds=PERCENT_BOUNDS),
    _spec("pension_employer_rate", "employerPensionRate", "pensionEmployerRate",
          "employerContributionRate",
          default_key="pension_employer_rate", country_key="pension_employer_rate",
          bounds=PERCENT_BOUNDS),
    _spec("training_fund_employee_rate", "trainingFundEmployeeRate", "employeeTrainingFundRate",
          default_key="training_fund_employee_rate", country_key="training_fund_employee_rate",
          bounds=PERCENT_BOUNDS),
    _spec("training_fund_employer_rate", "trainingFundEmployerRate", "employerTrainingFundRate",
          default_key="training_fund_employer_rate", country_key="training_fund_employer_rate",
          bounds=PERCENT_BOUNDS),
    _spec("current_pension", "currentPension", "currentSavings", "pensionSavings",
          "currentPensionSavings", "retirementSavings", "currentRetirementSavings"),
    _spec("current_training_fund", "currentTrainingFund", "trainingFund", "trainingFundValue"),
    _spec("current_portfolio", "currentPersonalPortfolio", "personalPortfolio", "portfolioValue"),
    _spec("current_real_estate", "currentRealEstate", "realEstate", "realEstateValue"),
    _spec("current_crypto", "currentCrypto", "crypto", "cryptoValue", "currentCryptoFiatValue"),
    _spec("portfolio_monthly", "personalPortfolioMonthly", "personalSavings",
          "monthlyPortfolioContribution"),
    _spec("real_estate_monthly", "realEstateMonthly", "monthlyRealEstateContribution"),
    _spec("crypto_monthly", "cryptoMonthly", "monthlyCryptoContribution"),
    _spec("annual_bonus", "annualBonus", "bonus"),
    _spec("pension_deposit_fee", "pensionDepositFee", "contributionFees", "depositFee",
          bounds=PERCENT_BOUNDS),
    _spec("pension_annual_fee", "pensionAccumulationFee", "pensionManagementFee",
          "accumulationFees", "managementFee", bounds=PERCENT_BOUNDS),
    _spec("training_fund_fee", "trainingFundManagementFee", "trainingFundFee", bounds=PERCENT_BOUNDS),
    _spec("portfolio_fee", "portfolioManagementFee", "portfolioFee", bounds=PERCENT_BOUNDS),
)

HOUSEHOLD_FIELDS: Tuple[FieldSpec, ...] = (
    _spec("current_age", "currentAge", "age", default_key="current_age", allow_zero=False,
          bounds=AGE_BOUNDS, clamp_to_bounds=True),
    _spec("retirement_age", "retirementAge", default_key="retirement_age",
          country_key="retirement_age", allow_zero=False,
          bounds=AGE_BOUNDS, clamp_to_bounds=True),
    _spec("monthly_expenses", "currentMonthlyExpenses", "monthlyExpenses", "expenses"),
    _spec("inflation_rate", "inflationRate", "inflation", default_key="inflation_rate",
          bounds=PERCENT_BOUNDS),
    _spec("target_replacement_rate", "targetReplacement", "targetReplacementRate",
          "replacementRate", default_key="target_replacement_rate", allow_zero=False,
          bounds=PERCENT_BOUNDS),
    _spec("portfolio_tax_rate", "portfolioTaxRate", "capitalGainsTax", default_key="portfolio_tax_rate",
          bounds=PERCENT_BOUNDS),
    _spec("rental_yield", "realEstateRentalYield", "rentalYield", default_key="rental_yield",
          bounds=PERCENT_BOUNDS),
    _spec("salary_growth_rate", "salaryGrowthRate", "salaryGrowth", default_key="salary_growth_rate",
          bounds=PERCENT_BOUNDS),
    _spec("total_debt", "totalDebt", "debt"),
    _spec("monthly_debt_payments", "monthlyDebtPayments", "debtPayments"),
    _spec("high_interest_debt", "highInterestDebt", "creditCardDebt"),
    _spec("emergency_fund", "emergencyFund", "emergencyFundAmount", "emergencySavings"),
    _spec("international_allocation", "internationalAllocation", "foreignAllocation",
          bounds=PERCENT_BOUNDS),
)

_TEXT_FIELDS: Dict[str, Tuple[Tuple[str, ...], str]] = {
    "country": (("country", "countryCode", "taxCountry"), ""),
    "planning_mode": (("planning_mode", "planningType", "planningMode", "mode"), INDIVIDUAL),
    "risk_tolerance": (("risk_tolerance", "riskTolerance", "riskProfile", "riskLevel"), "moderate"),
    "job_stability": (("job_stability", "jobStability", "employmentStability"), "stable"),
    "scenario": (("scenario", "marketScenario", "returnScenario", "expectedReturnScenario"), ""),
}

# Explicit per-asset return overrides (custom scenario)
_RETURN_FIELDS: Dict[str, Tuple[str, ...]] = {
    "pension": ("pensionReturn", "pension_return"),
    "training_fund": ("trainingFundReturn", "training_fund_return"),
    "personal_portfolio": ("personalPortfolioReturn", "portfolioReturn", "personal_portfolio_return"),
    "real_estate": ("realEstateReturn", "real_estate_return"),
    "crypto": ("cryptoReturn", "crypto_return"),
}


def _cap(name: str) -> str:
    return name[:1].upper() + name[1:]


def _partner_keys(alias: str, slot: int) -> List[str]:
    """Raw key spellings for one alias of partner 1 or 2."""
    if slot == 1:
        return [f"partner1{_cap(alias)}", f"partner1_{alias}", f"p1{_cap(alias)}"]
    return [
        f"partner2{_cap(alias)}",
        f"partner2_{alias}",
        f"p2{_cap(alias)}",
        f"partner{_cap(alias)}",
        f"partnerAdditional{_cap(alias)}",
    ]


# ============================================================================
# Canonical records
# ============================================================================

@dataclass(frozen=True)
class PartnerInputs:
    """Finances of one earner. Rates and fees are percentages."""
    label: str = "primary"
    monthly_salary: float = 0.0
    net_salary: float = 0.0
    salary_inferred_from_net: bool = False
    pension_employee_rate: float = 7.0
    pension_employer_rate: float = 10.5
    training_fund_employee_rate: float = 2.5
    training_fund_employer_rate: float = 7.5
    training_fund_salary_ceiling: Optional[float] = None
    current_pension: float = 0.0
    current_training_fund: float = 0.0
    current_portfolio: float = 0.0
    current_real_estate: float = 0.0
    current_crypto: float = 0.0
    portfolio_monthly: float = 0.0
    real_estate_monthly: float = 0.0
    crypto_monthly: float = 0.0
    annual_bonus: float = 0.0
    rsu_annual_value: float = 0.0
    pension_deposit_fee: float = 0.0
    pension_annual_fee: float = 0.0
    training_fund_fee: float = 0.0
    portfolio_fee: float = 0.0

    @property
    def pension_rate_total(self) -> float:
        return self.pension_employee_rate + self.pension_employer_rate

    @property
    def training_fund_rate_total(self) -> float:
        return self.training_fund_employee_rate + self.training_fund_employer_rate

    @property
    def monthly_gross_income(self) -> float:
        """Salary plus bonus and RSU vesting spread over twelve months."""
        return self.monthly_salary + self.annual_bonus / 12.0 + self.rsu_annual_value / 12.0

    @property
    def training_fund_salary_base(self) -> float:
        if self.training_fund_salary_ceiling:
            return min(self.monthly_salary, self.training_fund_salary_ceiling)
        return self.monthly_salary

    @property
    def monthly_pension_contribution(self) -> float:
        return self.monthly_salary * self.pension_rate_total / 100.0

    @property
    def monthly_training_fund_contribution(self) -> float:
        return self.training_fund_salary_base * self.training_fund_rate_total / 100.0

    @property
    def monthly_retirement_contributions(self) -> float:
        return (
            self.monthly_pension_contribution
            + self.monthly_training_fund_contribution
            + self.portfolio_monthly
            + self.real_estate_monthly
            + self.crypto_monthly
        )

    @property
    def current_balances(self) -> Dict[str, float]:
        return {
            "pension": self.current_pension,
            "training_fund": self.current_training_fund,
            "personal_portfolio": self.current_portfolio,
            "real_estate": self.current_real_estate,
            "crypto": self.current_crypto,
        }

    @property
    def current_total(self) -> float:
        return sum(self.current_balances.values())


@dataclass(frozen=True)
class CanonicalInputs:
    """
    Normalized household record. Every field is defined; consumers never need
    to null-check. `partners` holds one entry (individual) or two (couple).
    """
    current_age: int
    retirement_age: int
    country: str
    planning_mode: str
    partners: Tuple[PartnerInputs, ...]
    monthly_expenses: float = 0.0
    inflation_rate: float = 2.5
    target_replacement_rate: float = 70.0
    portfolio_tax_rate: float = 25.0
    rental_yield: float = 3.0
    salary_growth_rate: float = 0.0
    total_debt: float = 0.0
    monthly_debt_payments: float = 0.0
    high_interest_debt: float = 0.0
    emergency_fund: float = 0.0
    international_allocation: float = 0.0
    risk_tolerance: str = "moderate"
    job_stability: str = "stable"
    scenario: str = "moderate"
    return_overrides: Tuple[Tuple[str, float], ...] = ()
    allocations: Tuple[Mapping[str, Any], ...] = ()
    fallbacks: Tuple[str, ...] = field(default=(), compare=False)

    @property
    def years_to_retirement(self) -> int:
        return max(0, self.retirement_age - self.current_age)

    @property
    def is_couple(self) -> bool:
        return len(self.partners) > 1

    @property
    def primary(self) -> PartnerInputs:
        return self.partners[0]

    @property
    def partner(self) -> Optional[PartnerInputs]:
        return self.partners[1] if self.is_couple else None

    @property
    def country_rules(self) -> CountryRules:
        return get_country_rules(self.country)

    @property
    def monthly_gross_income(self) -> float:
        return sum(p.monthly_gross_income for p in self.partners)

    @property
    def monthly_salary(self) -> float:
        return sum(p.monthly_salary for p in self.partners)

    @property
    def monthly_retirement_contributions(self) -> float:
        return sum(p.monthly_retirement_contributions for p in self.partners)

    @property
    def current_balances(self) -> Dict[str, float]:
        totals: Dict[str, float] = {}
        for p in self.partners:
            for asset, value in p.current_balances.items():
                totals[asset] = totals.get(asset, 0.0) + value
        return totals

    @property
    def current_total_savings(self) -> float:
        return sum(self.current_balances.values())

    def with_partner(self, partner: PartnerInputs) -> "CanonicalInputs":
        """Copy with `partner` as the second earner (couple mode)."""
        return replace(self, partners=(self.primary, partner), planning_mode=COUPLE)


@dataclass(frozen=True)
class ValidationReport:
    """Outcome of validate_financial_inputs; never raised, only inspected."""
    is_valid: bool
    critical_missing: Tuple[str, ...]
    warnings: Tuple[str, ...]
    completeness: float


# ============================================================================
# Resolution helpers
# ============================================================================

def resolve_field(
    raw: Mapping[str, Any],
    keys: Sequence[str],
    allow_zero: bool = True,
) -> Optional[float]:
    """
    Return the first positive numeric value among `keys`.

    If no key holds a positive value but one holds an explicit zero (and
    `allow_zero`), return 0.0. Returns None when nothing usable is present.
    Negative values are treated like zero here; validation reports them.
    """
    saw_zero = False
    for key in keys:
        if key not in raw or raw[key] is None or raw[key] == "":
            continue
        value = safe_parse_float(raw[key], default=0.0, field=key)
        if value > 0:
            return value
        saw_zero = True
    if saw_zero and allow_zero:
        return 0.0
    return None


def _resolve_text(raw: Mapping[str, Any], keys: Sequence[str], default: str) -> str:
    for key in keys:
        value = raw.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return default


def _default_for(entry: FieldSpec, rules: CountryRules, defaults: Mapping[str, Any]) -> Tuple[float, str]:
    if entry.country_key:
        country_value = getattr(rules, entry.country_key, None)
        if country_value is not None:
            return float(country_value), f"country:{rules.key}"
    if entry.default_key and entry.default_key in defaults:
        return float(defaults[entry.default_key]), "default"
    return float(entry.default), "fallback"


def _bounded(entry: FieldSpec, value: float, prefix: str = "") -> Optional[float]:
    """`value` if inside the entry's bounds; else clamped, or None to fall back to the default."""
    lo, hi = entry.bounds
    if lo <= value <= hi:
        return value
    if entry.clamp_to_bounds:
        _log.warning("%s%s=%g outside [%g, %g]; clamped", prefix, entry.name, value, lo, hi)
        return clamp(value, lo, hi)
    _log.warning("%s%s=%g outside [%g, %g]; using default", prefix, entry.name, value, lo, hi)
    return None


def _resolve_fields(
    raw: Mapping[str, Any],
    entries: Sequence[FieldSpec],
    rules: CountryRules,
    key_builder,
    notes: List[str],
    prefix: str = "",
) -> Dict[str, float]:
    defaults = get_planner_config()["defaults"]
    values: Dict[str, float] = {}
    for entry in entries:
        keys = key_builder(entry)
        value = resolve_field(raw, keys, allow_zero=entry.allow_zero)
        if value is not None and entry.bounds is not None:
            value = _bounded(entry, value, prefix)
        if value is None:
            value, source = _default_for(entry, rules, defaults)
            if source != "fallback":
                notes.append(f"{prefix}{entry.name}={value:g} ({source})")
        values[entry.name] = value
    return values


def infer_gross_from_net(net_monthly: float, country: Optional[str] = None) -> float:
    """
    Approximate gross monthly salary from net (take-home) salary.

    Heuristic, not a tax inversion: gross = net / take-home fraction, using the
    country's flat fraction (a lower fraction above its high-income threshold).
    Unknown countries use 1 - default effective tax rate (25% -> 0.75).

    Example:
        >>> round(infer_gross_from_net(15000, "israel"), 2)
        20000.0
    """
    if not is_finite_number(net_monthly) or net_monthly <= 0:
        return 0.0
    rules = get_country_rules(country)
    if rules.key == "default":
        tax = float(get_planner_config()["defaults"]["effective_tax_rate"])
        fraction = 1.0 - tax / 100.0
    else:
        fraction = rules.take_home_for(net_monthly)
    if fraction <= 0:
        return 0.0
    return net_monthly / fraction


def calculate_rsu_annual_value(raw: Mapping[str, Any], prefix: str = "") -> float:
    """
    Annual RSU vesting value: units x price x vesting events per year.

    Falls back to a legacy quarterly value (x4), then to an explicit annual
    value. `prefix` selects partner keys such as "partner1".
    """
    def key(name: str) -> str:
        return f"{prefix}{_cap(name)}" if prefix else name

    units = safe_parse_float(raw.get(key("rsuUnits")), field=key("rsuUnits"))
    price = safe_parse_float(raw.get(key("rsuCurrentStockPrice")), field=key("rsuCurrentStockPrice"))
    frequency = str(raw.get(key("rsuFrequency")) or "quarterly").lower()
    if units > 0 and price > 0:
        return units * price * RSU_FREQUENCY_MULTIPLIERS.get(frequency, 4)
    quarterly = safe_parse_float(raw.get(key("quarterlyRSU")), field=key("quarterlyRSU"))
    if quarterly > 0:
        return quarterly * 4
    return max(0.0, safe_parse_float(raw.get(key("rsuAnnualValue")), field=key("rsuAnnualValue")))


def normalize_partner_inputs(
    raw: Mapping[str, Any],
    country: Optional[str] = None,
    slot: int = 0,
    label: str = "primary",
    notes: Optional[List[str]] = None,
) -> PartnerInputs:
    """
    Resolve one earner's fields.

    Args:
        raw: raw input mapping
        country: country key or alias used for defaults
        slot: 0 reads plain field names; 1 reads partner-1 spellings and falls
              back to plain names; 2 reads partner-2 spellings only
        label: name stored on the result
        notes: optional list collecting fallback notes

    Returns:
        PartnerInputs with every field defined
    """
    if not isinstance(raw, Mapping):
        raise TypeError(f"raw inputs must be a mapping, got {type(raw).__name__}")
    rules = get_country_rules(country)
    notes = notes if notes is not None else []

    def key_builder(entry: FieldSpec) -> List[str]:
        if slot == 0:
            return list(entry.aliases)
        keys: List[str] = []
        for alias in entry.aliases:
            keys.extend(_partner_keys(alias, slot))
        if slot == 1:
            keys.extend(entry.aliases)
        return keys

    values = _resolve_fields(raw, PARTNER_FIELDS, rules, key_builder, notes, prefix=f"{label}.")

    inferred = False
    if values["monthly_salary"] <= 0 and values["net_salary"] > 0:
        values["monthly_salary"] = infer_gross_from_net(values["net_salary"], rules.key)
        inferred = True
        notes.append(f"{label}.monthly_salary={values['monthly_salary']:.2f} (inferred from net)")

    if slot == 0:
        rsu = calculate_rsu_annual_value(raw)
    else:
        rsu = calculate_rsu_annual_value(raw, prefix=f"partner{slot}")
        if rsu <= 0 and slot == 1:
            rsu = calculate_rsu_annual_value(raw)

    kwargs = {f.name: values[f.name] for f in fields(PartnerInputs) if f.name in values}
    return PartnerInputs(
        label=label,
        salary_inferred_from_net=inferred,
        training_fund_salary_ceiling=rules.training_fund_salary_ceiling,
        rsu_annual_value=rsu,
        **kwargs,
    )


def _sum_expense_categories(raw: Mapping[str, Any]) -> float:
    categories = raw.get("expenseCategories") or raw.get("expense_categories")
    if isinstance(categories, Mapping):
        return sum(max(0.0, safe_parse_float(v, field=f"expenses.{k}")) for k, v in categories.items())
    return 0.0


def _return_overrides(raw: Mapping[str, Any]) -> Tuple[Tuple[str, float], ...]:
    overrides = []
    for asset, keys in _RETURN_FIELDS.items():
        for key in keys:
            if key in raw and raw[key] not in (None, ""):
                overrides.append((asset, safe_parse_float(raw[key], field=key)))
                break
    return tuple(overrides)


# ============================================================================
# Public API
# ============================================================================

def normalize_inputs(raw: Mapping[str, Any] | CanonicalInputs) -> CanonicalInputs:
    """
    Normalize a raw input mapping into CanonicalInputs.

    Pure transform: `raw` is never mutated. Missing optional fields never
    raise; unparseable numbers become 0 with a logged warning. Fallbacks used
    are recorded on `CanonicalInputs.fallbacks` and logged at DEBUG.

    Args:
        raw: mapping of field name -> value (camelCase UI names, their aliases,
             or snake_case canonical names)

    Returns:
        CanonicalInputs

    Example:
        >>> c = normalize_inputs({"currentAge": 39, "retirementAge": 67, "netSalary": 15000})
        >>> c.years_to_retirement, round(c.primary.monthly_salary)
        (28, 20000)
    """
    if isinstance(raw, CanonicalInputs):
        return raw
    if not isinstance(raw, Mapping):
        raise TypeError(f"raw inputs must be a mapping, got {type(raw).__name__}")

    defaults = get_planner_config()["defaults"]
    notes: List[str] = []

    country = _resolve_text(raw, _TEXT_FIELDS["country"][0], str(defaults["country"]))
    rules = get_country_rules(country)
    text = {name: _resolve_text(raw, keys, default) for name, (keys, default) in _TEXT_FIELDS.items()}

    household = _resolve_fields(raw, HOUSEHOLD_FIELDS, rules, lambda s: list(s.aliases), notes)
    if household["monthly_expenses"] <= 0:
        household["monthly_expenses"] = _sum_expense_categories(raw)

    mode = COUPLE if text["planning_mode"].lower() in _COUPLE_MODES else INDIVIDUAL
    if mode == COUPLE:
        partners = (
            normalize_partner_inputs(raw, rules.key, slot=1, label="partner1", notes=notes),
            normalize_partner_inputs(raw, rules.key, slot=2, label="partner2", notes=notes),
        )
    else:
        partners = (normalize_partner_inputs(raw, rules.key, slot=0, label="primary", notes=notes),)

    allocations = raw.get("allocations") or raw.get("portfolioAllocations") or ()
    if not isinstance(allocations, (list, tuple)):
        allocations = ()

    canonical = CanonicalInputs(
        current_age=int(household.pop("current_age")),
        retirement_age=int(household.pop("retirement_age")),
        country=rules.key,
        planning_mode=mode,
        partners=partners,
        risk_tolerance=text["risk_tolerance"],
        job_stability=text["job_stability"],
        scenario=(text["scenario"] or str(defaults["scenario"])).lower(),
        return_overrides=_return_overrides(raw),
        allocations=tuple(MappingProxyType(dict(a)) for a in allocations if isinstance(a, Mapping)),
        fallbacks=tuple(notes),
        **household,
    )

    if notes:
        log_fn = _log.info if is_debug_mode() else _log.debug
        log_fn("normalize_inputs used %d fallbacks: %s", len(notes), "; ".join(notes))
    return canonical


def validate_financial_inputs(raw: Mapping[str, Any]) -> ValidationReport:
    """
    Check raw inputs for missing essentials and implausible values.

    Critical: age and some income source. Warnings: negative amounts, rates
    outside [0, 100], current age at or past retirement age. Completeness is
    the share of commonly used fields that were provided, in percent.
    """
    critical: List[str] = []
    warnings: List[str] = []

    age = resolve_field(raw, ("currentAge", "age", "current_age"), allow_zero=False)
    if age is None:
        critical.append("age")
    income_keys = [a for entry in PARTNER_FIELDS if entry.name in ("monthly_salary", "net_salary") for a in entry.aliases]
    income_keys += [k for a in income_keys for k in _partner_keys(a, 1) + _partner_keys(a, 2)]
    if resolve_field(raw, income_keys, allow_zero=False) is None:
        critical.append("income")

    for key, value in raw.items():
        if isinstance(value, (str, int, float)) and not isinstance(value, bool):
            number = safe_parse_float(value, default=0.0, field=key)
            lowered = str(key).lower()
            if number < 0 and "debt" not in lowered:
                warnings.append(f"{key} is negative ({number:g})")
            if lowered.endswith("rate") and "growth" not in lowered and not 0 <= number <= 100:
                warnings.append(f"{key} should be a percentage between 0 and 100 ({number:g})")

    retirement_age = resolve_field(raw, ("retirementAge", "retirement_age"), allow_zero=False)
    if age is not None and retirement_age is not None and age >= retirement_age:
        warnings.append("current age is at or past retirement age; no further accumulation is projected")

    tracked = [entry for entry in HOUSEHOLD_FIELDS[:3]] + [entry for entry in PARTNER_FIELDS[:8]]
    provided = sum(1 for entry in tracked if any(k in raw for k in entry.aliases))
    completeness = round(100.0 * provided / len(tracked), 1) if tracked else 0.0

    return ValidationReport(
        is_valid=not critical,
        critical_missing=tuple(critical),
        warnings=tuple(warnings),
        completeness=completeness,
    )
