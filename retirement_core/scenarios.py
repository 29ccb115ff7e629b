from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union
import logging

from .utils.safe_math import safe_divide, safe_parse_float

_log = logging.getLogger(__name__)

__all__ = [
    "ASSET_CLASSES",
    "MarketScenario",
    "SCENARIO_RETURNS",
    "HISTORICAL_RANGES",
    "ReturnWarning",
    "ReturnAssumptions",
    "parse_scenario",
    "validate_return",
    "time_horizon_factor",
    "adjust_for_time_horizon",
    "calculate_weighted_return",
    "calculate_dynamic_return",
    "net_return",
    "risk_adjusted_return",
    "match_scenario",
    "return_recommendations",
    "resolve_returns",
]

ASSET_CLASSES: Tuple[str, ...] = ("pension", "training_fund", "personal_portfolio", "real_estate", "crypto")


# ============================================================================
# Scenario table
# ============================================================================

class MarketScenario(str, Enum):
    CONSERVATIVE = "conservative"
    MODERATE = "moderate"
    AGGRESSIVE = "aggressive"
    CUSTOM = "custom"


# Annual returns in percent. CUSTOM has no row: it is built from overrides.
SCENARIO_RETURNS: Dict[MarketScenario, Dict[str, float]] = {
    MarketScenario.CONSERVATIVE: {
        "pension": 5.5, "training_fund": 5.0, "personal_portfolio": 6.5, "real_estate": 4.5, "crypto": 10.0,
    },
    MarketScenario.MODERATE: {
        "pension": 7.0, "training_fund": 6.5, "personal_portfolio": 8.0, "real_estate": 6.0, "crypto": 15.0,
    },
    MarketScenario.AGGRESSIVE: {
        "pension": 8.5, "training_fund": 8.0, "personal_portfolio": 10.0, "real_estate": 7.5, "crypto": 20.0,
    },
}

# (min, max) plausible annual return per asset, percent
HISTORICAL_RANGES: Dict[str, Tuple[float, float]] = {
    "pension": (3.0, 12.0),
    "training_fund": (2.0, 10.0),
    "personal_portfolio": (3.0, 15.0),
    "real_estate": (2.0, 12.0),
    "crypto": (-20.0, 50.0),
}

# Floors applied after the time-horizon derating; crypto is never adjusted
HORIZON_FLOORS: Dict[str, float] = {
    "pension": 3.0,
    "training_fund": 2.5,
    "personal_portfolio": 4.0,
    "real_estate": 3.0,
}

CUSTOM_PORTFOLIO_WARN_ABOVE = 10.0

RISK_MULTIPLIERS: Dict[str, float] = {
    "veryconservative": 0.7,
    "conservative": 0.85,
    "moderate": 1.0,
    "aggressive": 1.15,
    "veryaggressive": 1.3,
}

DYNAMIC_BASE_RETURNS: Dict[str, float] = {"stocks": 8.0, "bonds": 4.0, "cash": 2.0, "alternatives": 6.0}

_ASSET_ALIASES: Dict[str, str] = {
    "pension": "pension",
    "trainingfund": "training_fund",
    "training_fund": "training_fund",
    "personalportfolio": "personal_portfolio",
    "personal_portfolio": "personal_portfolio",
    "portfolio": "personal_portfolio",
    "realestate": "real_estate",
    "real_estate": "real_estate",
    "crypto": "crypto",
}


@dataclass(frozen=True)
class ReturnWarning:
    asset: str
    value: float
    message: str


@dataclass(frozen=True)
class ReturnAssumptions:
    """
    Per-asset annual returns (percent) plus the blended return.

    `horizon_factor` is 1.0 unless a time-horizon adjustment was applied.
    `blended_return` is weighted by the allocations passed to resolve_returns;
    without allocations it is the pension return (the dominant vehicle).
    """
    pension: float
    training_fund: float
    personal_portfolio: float
    real_estate: float
    crypto: float
    scenario: MarketScenario = MarketScenario.MODERATE
    horizon_factor: float = 1.0
    blended_return: float = 0.0
    warnings: Tuple[ReturnWarning, ...] = ()

    def for_asset(self, asset: str) -> float:
        return float(getattr(self, _canonical_asset(asset)))

    def as_dict(self) -> Dict[str, float]:
        return {a: self.for_asset(a) for a in ASSET_CLASSES}


def _canonical_asset(asset: str) -> str:
    key = str(asset).strip()
    found = _ASSET_ALIASES.get(key) or _ASSET_ALIASES.get(key.lower().replace(" ", ""))
    if found is None:
        raise KeyError(f"Unknown asset class: {asset!r}")
    return found


def parse_scenario(value: Union[str, MarketScenario, None]) -> MarketScenario:
    """Map a scenario key to the enum; unknown keys fall back to MODERATE."""
    if isinstance(value, MarketScenario):
        return value
    key = str(value or "").strip().lower()
    try:
        return MarketScenario(key)
    except ValueError:
        _log.warning("Unknown market scenario %r; falling back to moderate", value)
        return MarketScenario.MODERATE


# ============================================================================
# Validation and adjustments
# ============================================================================

def validate_return(asset: str, value: float, custom: bool = False) -> List[ReturnWarning]:
    """
    Soft plausibility checks for one return assumption.

    Never raises; returns zero or more warnings. With `custom`, a personal
    portfolio return above 10% is also flagged as optimistic.
    """
    name = _canonical_asset(asset)
    lo, hi = HISTORICAL_RANGES[name]
    out: List[ReturnWarning] = []
    if value < lo:
        out.append(ReturnWarning(name, value, f"Below historical minimum of {lo:g}%"))
    if value > hi:
        out.append(ReturnWarning(name, value, f"Above historical maximum of {hi:g}%"))
    if name != "crypto":
        if value > 12:
            out.append(ReturnWarning(name, value, "Exceptionally high return - consider a more conservative estimate"))
        if value < 1:
            out.append(ReturnWarning(name, value, "Below expected inflation rate"))
    if custom and name == "personal_portfolio" and value > CUSTOM_PORTFOLIO_WARN_ABOVE:
        out.append(ReturnWarning(name, value, f"Custom portfolio return above {CUSTOM_PORTFOLIO_WARN_ABOVE:g}% is historically optimistic"))
    return out


def time_horizon_factor(years_to_retirement: float) -> float:
    """Shorter horizons get a lower multiplier (less time to recover from drawdowns)."""
    if years_to_retirement >= 30:
        return 1.0
    elif years_to_retirement >= 20:
        return 0.95
    elif years_to_retirement >= 10:
        return 0.90
    elif years_to_retirement >= 5:
        return 0.85
    else:
        return 0.80


def adjust_for_time_horizon(returns: Mapping[str, float], years_to_retirement: float) -> Dict[str, float]:
    """Scale non-crypto returns by the horizon factor, respecting per-asset floors."""
    factor = time_horizon_factor(years_to_retirement)
    adjusted: Dict[str, float] = {}
    for asset, value in returns.items():
        if asset in HORIZON_FLOORS:
            adjusted[asset] = max(HORIZON_FLOORS[asset], value * factor)
        else:
            adjusted[asset] = value
    return adjusted


def _allocation_weight(entry: Mapping[str, Any]) -> float:
    for key in ("allocation", "percentage", "weight"):
        if entry.get(key) not in (None, ""):
            return safe_parse_float(entry.get(key), field=key)
    return 0.0


def calculate_weighted_return(allocations: Optional[Iterable[Mapping[str, Any]]]) -> float:
    """
    Blend returns by allocation weight.

    Args:
        allocations: iterable of mappings with a weight (``allocation``,
            ``percentage`` or ``weight``, in percent) and an ``expectedReturn``
            / ``return`` in percent

    Returns:
        Weighted average return in percent; 0.0 for empty or all-zero weights.

    Example:
        >>> calculate_weighted_return([{"percentage": 60, "return": 8}, {"percentage": 40, "return": 4}])
        6.4
    """
    total_weight = 0.0
    weighted = 0.0
    for entry in allocations or ():
        weight = _allocation_weight(entry)
        ret = entry.get("expectedReturn", entry.get("return", 0.0))
        weighted += weight * safe_parse_float(ret, field="return")
        total_weight += weight
    return safe_divide(weighted, total_weight, default=0.0)


def calculate_dynamic_return(allocation: Mapping[str, float], years_to_retirement: float) -> float:
    """Return for a stocks/bonds/cash/alternatives mix, nudged by horizon length."""
    total = sum(max(0.0, float(allocation.get(k, 0.0))) for k in DYNAMIC_BASE_RETURNS)
    base = sum(
        max(0.0, float(allocation.get(k, 0.0))) * r for k, r in DYNAMIC_BASE_RETURNS.items()
    )
    blended = safe_divide(base, total, default=0.0)
    if years_to_retirement > 10:
        return blended * 1.1
    if years_to_retirement < 5:
        return blended * 0.9
    return blended


def net_return(gross_return: float, fee: float) -> float:
    return gross_return - fee


def risk_adjusted_return(base_return: float, risk_level: str) -> float:
    key = str(risk_level or "moderate").lower().replace("_", "").replace(" ", "")
    return base_return * RISK_MULTIPLIERS.get(key, 1.0)


def match_scenario(returns: Mapping[str, float]) -> MarketScenario:
    """Name the scenario whose table is within tolerance of `returns`, else CUSTOM."""
    for scenario, table in SCENARIO_RETURNS.items():
        if (
            abs(returns.get("pension", 0.0) - table["pension"]) <= 0.5
            and abs(returns.get("training_fund", 0.0) - table["training_fund"]) <= 0.5
            and abs(returns.get("personal_portfolio", 0.0) - table["personal_portfolio"]) <= 1.0
        ):
            return scenario
    return MarketScenario.CUSTOM


def return_recommendations(
    age: float,
    years_to_retirement: float,
    scenario: Union[str, MarketScenario],
    portfolio_return: Optional[float] = None,
) -> List[str]:
    """Advisory notes on whether the chosen scenario suits the saver."""
    sc = parse_scenario(scenario)
    notes: List[str] = []
    if age < 35 and sc is not MarketScenario.AGGRESSIVE:
        notes.append("With a long horizon ahead, a more aggressive growth scenario may be appropriate.")
    if age > 50:
        notes.append("Approaching retirement: prioritise capital preservation over growth.")
    if sc is MarketScenario.CONSERVATIVE and portfolio_return is not None and portfolio_return > 7:
        notes.append("Portfolio return assumption is high for a conservative risk profile.")
    if years_to_retirement <= 10 and sc is MarketScenario.AGGRESSIVE:
        notes.append("Aggressive assumptions over a short horizon leave little time to recover from losses.")
    return notes


# ============================================================================
# Public API
# ============================================================================

def resolve_returns(
    scenario_or_overrides: Union[str, MarketScenario, Mapping[str, Any], None] = None,
    allocations: Optional[Iterable[Mapping[str, Any]]] = None,
    years_to_retirement: Optional[float] = None,
) -> ReturnAssumptions:
    """
    Finalize per-asset return assumptions.

    Args:
        scenario_or_overrides: scenario key ("conservative", "moderate",
            "aggressive", "custom") or enum, or a mapping of asset -> return
            percent (implies CUSTOM; missing assets use moderate values)
        allocations: optional allocation entries used for the blended return
        years_to_retirement: when given, returns are derated for shorter
            horizons via adjust_for_time_horizon

    Returns:
        ReturnAssumptions. Implausible values produce warnings, never errors.

    Example:
        >>> resolve_returns("aggressive").personal_portfolio
        10.0
        >>> resolve_returns({"pension": 6.0}).scenario
        <MarketScenario.CUSTOM: 'custom'>
    """
    custom = False
    if isinstance(scenario_or_overrides, Mapping):
        scenario = MarketScenario.CUSTOM
        custom = True
        values = dict(SCENARIO_RETURNS[MarketScenario.MODERATE])
        for asset, value in scenario_or_overrides.items():
            try:
                name = _canonical_asset(asset)
            except KeyError:
                _log.warning("Ignoring return override for unknown asset %r", asset)
                continue
            values[name] = safe_parse_float(value, default=values[name], field=f"{name}_return")
    else:
        scenario = parse_scenario(scenario_or_overrides)
        if scenario is MarketScenario.CUSTOM:
            _log.warning("Custom scenario without overrides; using moderate returns")
            custom = True
            values = dict(SCENARIO_RETURNS[MarketScenario.MODERATE])
        else:
            values = dict(SCENARIO_RETURNS[scenario])

    warnings: List[ReturnWarning] = []
    if custom:
        for asset in ASSET_CLASSES:
            warnings.extend(validate_return(asset, values[asset], custom=True))
        for w in warnings:
            _log.warning("Return assumption %s=%.2f%%: %s", w.asset, w.value, w.message)

    factor = 1.0
    if years_to_retirement is not None:
        factor = time_horizon_factor(years_to_retirement)
        values = adjust_for_time_horizon(values, years_to_retirement)

    allocation_list = list(allocations or ())
    if allocation_list:
        enriched = []
        for entry in allocation_list:
            if "expectedReturn" not in entry and "return" not in entry and "asset" in entry:
                try:
                    entry = {**entry, "return": values[_canonical_asset(entry["asset"])]}
                except KeyError:
                    _log.debug("Allocation asset %r has no scenario return", entry.get("asset"))
            enriched.append(entry)
        blended = calculate_weighted_return(enriched)
    else:
        blended = values["pension"]

    return ReturnAssumptions(
        scenario=scenario,
        horizon_factor=factor,
        blended_return=blended,
        warnings=tuple(warnings),
        **values,
    )
